"""
REST API routes for the MindSage web API.

Every domain route returns the session manager's normalized envelope with
HTTP 200; only malformed requests produce 4xx responses.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel

from mindsage_platform import Credential, SessionManager

router = APIRouter(prefix="/api")


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


# --- Request models ---

class LoginRequest(BaseModel):
    principal_id: Optional[str] = None
    token: Optional[str] = None
    expires_at: Optional[datetime] = None


class RegisterRequest(BaseModel):
    username: str


class StartSessionRequest(BaseModel):
    session_type: str
    stress_before: float


class EndSessionRequest(BaseModel):
    duration: int
    stress_after: float
    notes: str = ""
    pitch: float
    tempo: float


class ReflectionRequest(BaseModel):
    thought: str


# --- Helper ---

def _to_json(result: dict) -> dict:
    """Serialize an envelope using Python field names (not wire aliases)."""
    return jsonable_encoder(result, by_alias=False)


# --- Session lifecycle ---

@router.get("/session")
async def get_session(manager: SessionManager = Depends(get_session_manager)):
    """Return the current session snapshot."""
    return _to_json(manager.snapshot())


@router.post("/login")
async def login(
    req: Optional[LoginRequest] = None,
    manager: SessionManager = Depends(get_session_manager),
):
    """Log in, optionally with a delegation obtained by the browser."""
    credential = None
    if req is not None and (req.principal_id or req.token):
        if not (req.principal_id and req.token):
            raise HTTPException(status_code=400, detail="principal_id and token must be given together")
        credential = Credential(
            principal_id=req.principal_id,
            token=req.token,
            expires_at=req.expires_at,
        )

    logged_in = await manager.login(credential)
    return _to_json({"logged_in": logged_in, "session": manager.snapshot()})


@router.post("/logout")
async def logout(manager: SessionManager = Depends(get_session_manager)):
    await manager.logout()
    return _to_json({"session": manager.snapshot()})


# --- Profile ---

@router.post("/profile")
async def register_user(req: RegisterRequest, manager: SessionManager = Depends(get_session_manager)):
    return _to_json(await manager.register_user(req.username))


@router.post("/profile/last-active")
async def update_last_active(manager: SessionManager = Depends(get_session_manager)):
    return _to_json(await manager.update_last_active())


# --- Therapy sessions ---

@router.get("/therapy-sessions")
async def get_user_sessions(manager: SessionManager = Depends(get_session_manager)):
    return _to_json(await manager.get_user_sessions())


@router.post("/therapy-sessions")
async def start_therapy_session(
    req: StartSessionRequest,
    manager: SessionManager = Depends(get_session_manager),
):
    return _to_json(await manager.start_therapy_session(req.session_type, req.stress_before))


@router.post("/therapy-sessions/{session_id}/end")
async def end_therapy_session(
    session_id: str,
    req: EndSessionRequest,
    manager: SessionManager = Depends(get_session_manager),
):
    return _to_json(
        await manager.end_therapy_session(
            session_id,
            req.duration,
            req.stress_after,
            req.notes,
            req.pitch,
            req.tempo,
        )
    )


# --- Insights ---

@router.get("/report")
async def generate_progress_report(manager: SessionManager = Depends(get_session_manager)):
    return _to_json(await manager.generate_progress_report())


@router.post("/reflection")
async def get_cbt_reflection(req: ReflectionRequest, manager: SessionManager = Depends(get_session_manager)):
    return _to_json(await manager.get_cbt_reflection(req.thought))


@router.get("/stats")
async def get_service_stats(manager: SessionManager = Depends(get_session_manager)):
    return _to_json(await manager.get_service_stats())
