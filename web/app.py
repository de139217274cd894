"""
FastAPI application setup for the MindSage web API.
"""

from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI

from mindsage_platform import FileIdentityClient, SessionManager, load_config

from . import __version__ as WEB_VERSION
from .routes import router


def build_session_manager() -> SessionManager:
    """Build a session manager from the environment (and ``.env``, if present)."""
    load_dotenv()
    return SessionManager(identity_client=FileIdentityClient(), config=load_config())


def create_app(session_manager: Optional[SessionManager] = None) -> FastAPI:
    """Create the app around an explicitly provided (or env-built) session manager."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await app.state.session_manager.initialize()
        yield

    app = FastAPI(
        title="MindSage",
        description="Session and remote-channel API for the MindSage therapy companion",
        version=WEB_VERSION,
        lifespan=lifespan,
    )
    app.state.session_manager = session_manager or build_session_manager()
    app.include_router(router)
    return app
