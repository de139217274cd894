"""Remote actor proxy for the MindSage service and its bind-with-fallback factory."""

from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import urlparse

from pydantic import ValidationError

from contracts.v1.adapters import adapt_reply, service_method
from contracts.v1.schemas import (
    CbtReflectionRequest,
    EndTherapySessionRequest,
    RegisterUserRequest,
    ResultEnvelope,
    StartTherapySessionRequest,
)

from .channel import Channel, ChannelBuilder
from .errors import ActorBindError, ChannelError
from .identity import Credential

logger = logging.getLogger(__name__)

# Textual service ids: dash-separated groups of five, last group shorter.
SERVICE_ID_PATTERN = re.compile(r"^[a-z0-9]{5}(-[a-z0-9]{5})*-[a-z0-9]{1,5}$")


class RemoteActor:
    """Typed proxy bound to one channel.

    Request arguments are validated against the contract before anything is
    sent, so ``pydantic.ValidationError`` from these methods always means
    bad input.  Replies that break the contract raise ``ChannelError``.
    """

    def __init__(self, channel: Channel, service_id: str):
        self.channel = channel
        self.service_id = service_id

    async def _invoke(self, method_name: str, *args) -> ResultEnvelope:
        method = service_method(method_name)
        send = self.channel.query if method.query else self.channel.call
        reply = await send(self.service_id, method_name, list(args))
        try:
            return adapt_reply(method_name, reply)
        except ValidationError as e:
            raise ChannelError(f"Service reply for {method_name} does not match the contract: {e}") from e

    async def register_user(self, username: str) -> ResultEnvelope:
        req = RegisterUserRequest(username=username)
        return await self._invoke("register_user", req.username)

    async def get_user_profile(self) -> ResultEnvelope:
        return await self._invoke("get_user_profile")

    async def update_last_active(self) -> ResultEnvelope:
        return await self._invoke("update_last_active")

    async def get_user_sessions(self) -> ResultEnvelope:
        return await self._invoke("get_user_sessions")

    async def generate_user_progress_report(self) -> ResultEnvelope:
        return await self._invoke("generate_user_progress_report")

    async def start_therapy_session(self, session_type: str, stress_before: float) -> ResultEnvelope:
        req = StartTherapySessionRequest(session_type=session_type, stress_before=stress_before)
        return await self._invoke("start_therapy_session", req.session_type, req.stress_before)

    async def end_therapy_session(
        self,
        session_id: str,
        duration_minutes: int,
        stress_after: float,
        notes: str,
        pitch: float,
        tempo: float,
    ) -> ResultEnvelope:
        req = EndTherapySessionRequest(
            session_id=session_id,
            duration_minutes=duration_minutes,
            stress_after=stress_after,
            notes=notes,
            pitch=pitch,
            tempo=tempo,
        )
        return await self._invoke(
            "end_therapy_session",
            req.session_id,
            req.duration_minutes,
            req.stress_after,
            req.notes,
            req.pitch,
            req.tempo,
        )

    async def get_cbt_reflection(self, thought: str) -> ResultEnvelope:
        req = CbtReflectionRequest(thought=thought)
        return await self._invoke("get_cbt_reflection", req.thought)

    async def get_total_users(self) -> ResultEnvelope:
        return await self._invoke("get_total_users")

    async def get_total_sessions(self) -> ResultEnvelope:
        return await self._invoke("get_total_sessions")


class RemoteActorFactory:
    """Binds channels to the service interface."""

    def __init__(self, *, service_id: str, channel_builder: ChannelBuilder):
        self.service_id = service_id
        self.channel_builder = channel_builder

    def bind(self, channel: Channel) -> RemoteActor:
        """Bind ``channel`` or raise ``ActorBindError``."""
        if not SERVICE_ID_PATTERN.match(self.service_id or ""):
            raise ActorBindError(f"Invalid service id: {self.service_id!r}")

        parsed = urlparse(channel.host)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ActorBindError(f"Channel host is not an http(s) URL: {channel.host!r}")

        if not channel.credential.principal_id:
            raise ActorBindError("Channel credential has no principal")

        return RemoteActor(channel, self.service_id)

    def bind_with_fallback(
        self, channel: Optional[Channel], credential: Credential
    ) -> Optional[RemoteActor]:
        """Bind the primary channel, else one minimal channel; ``None`` if both fail.

        A missing primary channel goes straight to the fallback.
        """
        if channel is not None:
            try:
                actor = self.bind(channel)
                logger.info("Successfully created authenticated actor")
                return actor
            except Exception as e:
                logger.error("Error creating authenticated actor: %s", e)

        logger.info("Attempting fallback actor creation...")
        try:
            actor = self.bind(self.channel_builder.build_minimal(credential))
            logger.info("Fallback actor created successfully")
            return actor
        except Exception as e:
            logger.error("Fallback actor creation also failed: %s", e)
            return None
