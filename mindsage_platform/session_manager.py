"""
Session manager: the authentication state machine and the remote operations
exposed to presentation layers.

Only one lifecycle transition (``initialize``/``login``/``logout``) may be in
flight at a time.  This is the caller's responsibility; overlap is logged,
not prevented.  Domain operations may run concurrently once an actor is
bound, and never raise: every outcome is a normalized envelope.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from contracts.v1.schemas import ResultEnvelope, ServiceStats, UserProfile

from .actor import RemoteActor, RemoteActorFactory
from .channel import Channel, ChannelBuilder
from .config import SessionConfig
from .errors import (
    ACTOR_UNAVAILABLE_MESSAGE,
    NOT_AUTHENTICATED_MESSAGE,
    ErrorKind,
    classify_error,
)
from .identity import Credential, IdentityClient, LoginOptions, LoginOutcome
from .results import failure, race_deadline, success
from .session_state_machine import (
    LifecycleState,
    SessionState,
    apply_profile,
    begin_transition,
    end_transition,
    resume_authenticated,
    settle_authenticated,
    settle_unauthenticated,
    state_payload,
)

logger = logging.getLogger(__name__)

Invoke = Callable[[RemoteActor], Awaitable[ResultEnvelope]]


class SessionManager:
    """Owns the session state, the channel and the remote actor handle."""

    def __init__(
        self,
        *,
        identity_client: IdentityClient,
        config: SessionConfig,
        channel_builder: Optional[ChannelBuilder] = None,
        actor_factory: Optional[RemoteActorFactory] = None,
    ):
        self.identity_client = identity_client
        self.config = config
        self.channel_builder = channel_builder or ChannelBuilder(config)
        self.actor_factory = actor_factory or RemoteActorFactory(
            service_id=config.service_id,
            channel_builder=self.channel_builder,
        )
        self.state = SessionState()
        # Bumped whenever the remote binding is dropped; replies from an older
        # generation belong to a previous identity.
        self._generation = 0
        self.channel: Optional[Channel] = None
        self.actor: Optional[RemoteActor] = None

    # ------------------------------------------------------------------
    # Presentation-facing state
    # ------------------------------------------------------------------

    @property
    def is_authenticated(self) -> bool:
        return self.state.authenticated

    @property
    def user_profile(self) -> Optional[UserProfile]:
        return self.state.user_profile

    @property
    def loading(self) -> bool:
        return self.state.loading

    def snapshot(self) -> dict:
        payload = state_payload(self.state)
        payload["actor_available"] = self.actor is not None
        return payload

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    def _begin(self, name: str, lifecycle: LifecycleState) -> None:
        if self.state.in_transition:
            logger.warning(
                "%s started while %s is still in flight; lifecycle calls must not overlap",
                name,
                self.state.lifecycle.value,
            )
        begin_transition(self.state, lifecycle)

    def _drop_remote(self) -> None:
        self._generation += 1
        self.channel = None
        self.actor = None

    async def initialize(self) -> None:
        """Restore a persisted credential and bring up channel, actor and profile."""
        self._begin("initialize", LifecycleState.INITIALIZING)
        try:
            await self._initialize()
        finally:
            end_transition(self.state)

    async def _initialize(self) -> None:
        self._drop_remote()
        try:
            credential = None
            if await self.identity_client.is_authenticated():
                credential = await self.identity_client.get_identity()
        except Exception as e:
            logger.error("Auth initialization error: %s", e)
            credential = None

        if credential is None:
            settle_unauthenticated(self.state)
            return

        try:
            channel = await self.channel_builder.build(credential)
        except Exception as e:
            logger.error("Channel construction failed for %s: %s", credential.principal_id, e)
            channel = None

        actor = self.actor_factory.bind_with_fallback(channel, credential)
        bound_channel = actor.channel if actor is not None else channel

        degraded_reason = None
        if actor is None:
            degraded_reason = ErrorKind.ACTOR_UNAVAILABLE.value
        elif not bound_channel.verified:
            degraded_reason = ErrorKind.CHANNEL_UNVERIFIED.value

        self.channel = bound_channel
        self.actor = actor
        settle_authenticated(
            self.state,
            credential,
            channel_ready=actor is not None,
            channel_verified=bool(bound_channel and bound_channel.verified),
            degraded_reason=degraded_reason,
        )
        logger.info(
            "Session initialized for %s (actor=%s, verified=%s)",
            credential.principal_id,
            actor is not None,
            self.state.channel_verified,
        )

        if actor is not None:
            await self._fetch_profile(actor)

    async def _fetch_profile(self, actor: RemoteActor) -> None:
        generation = self._generation
        try:
            outcome = await actor.get_user_profile()
        except Exception as e:
            logger.info("User not registered yet: %s", e)
            return
        if outcome.is_ok:
            self._store_profile(outcome.ok, generation)
        else:
            logger.info("User not registered yet: %s", outcome.err)

    async def login(self, credential: Optional[Credential] = None) -> bool:
        """Run the identity provider login, then re-initialize.

        ``credential`` passes through a delegation obtained out of band.
        Returns False on cancellation or provider error.  A session that was
        already authenticated stays as it was; otherwise it is left
        unauthenticated.
        """
        was_authenticated = self.state.authenticated
        self._begin("login", LifecycleState.INITIALIZING)
        try:
            options = LoginOptions(
                identity_provider=self.config.identity_provider,
                max_time_to_live=self.config.max_time_to_live,
                credential=credential,
            )
            try:
                outcome = await self.identity_client.login(options)
            except Exception as e:
                logger.error("Login failed: %s", e)
                outcome = LoginOutcome.failed(str(e))

            if not outcome.ok:
                logger.info("Login %s: %s", outcome.status, outcome.reason or "no reason given")
                if was_authenticated:
                    resume_authenticated(self.state)
                else:
                    self._drop_remote()
                    settle_unauthenticated(self.state)
                return False

            await self._initialize()
            return self.state.authenticated
        finally:
            end_transition(self.state)

    async def logout(self) -> None:
        """Invalidate the provider session and clear local state.

        Local state is cleared even when the provider call fails.
        """
        self._begin("logout", LifecycleState.LOGGING_OUT)
        try:
            await self.identity_client.logout()
        except Exception as e:
            logger.error("Logout error: %s", e)
        finally:
            self._drop_remote()
            settle_unauthenticated(self.state)
            end_transition(self.state)

    # ------------------------------------------------------------------
    # Domain operations
    # ------------------------------------------------------------------

    def _unavailable(self) -> Optional[dict]:
        if not self.state.authenticated:
            return failure(ErrorKind.NOT_AUTHENTICATED, NOT_AUTHENTICATED_MESSAGE)
        if self.actor is None:
            return failure(ErrorKind.ACTOR_UNAVAILABLE, ACTOR_UNAVAILABLE_MESSAGE)
        return None

    async def _run(
        self,
        operation: str,
        invoke: Invoke,
        *,
        payload_key: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> tuple[dict, Optional[ResultEnvelope]]:
        """Invoke a bound operation and normalize the outcome.

        Returns the envelope and, on success, the decoded reply.
        """
        unavailable = self._unavailable()
        if unavailable is not None:
            return unavailable, None

        try:
            pending = invoke(self.actor)
            if deadline is not None:
                outcome = await race_deadline(pending, deadline, operation=operation)
            else:
                outcome = await pending
        except Exception as e:
            kind, message = classify_error(e)
            logger.error("%s error: %s", operation, e)
            return failure(kind, message), None

        if not outcome.is_ok:
            logger.info("%s rejected by service: %s", operation, outcome.err)
            return failure(ErrorKind.REMOTE_REJECTED, outcome.err), None
        return success(payload_key, outcome.ok), outcome

    def _store_profile(self, profile: UserProfile, generation: int) -> None:
        """Attach ``profile`` unless the session it was requested for is gone."""
        if generation != self._generation or not self.state.authenticated:
            logger.warning("Discarding profile for %s: session ended", profile.principal_id)
            return
        if profile.principal_id != self.state.principal_id:
            logger.warning(
                "Discarding profile for %s: session belongs to %s",
                profile.principal_id,
                self.state.principal_id,
            )
            return
        apply_profile(self.state, profile)

    async def _refresh_profile(self, generation: int) -> None:
        actor = self.actor
        if actor is None or generation != self._generation:
            return
        try:
            outcome = await actor.get_user_profile()
        except Exception as e:
            logger.warning("Could not update user profile: %s", e)
            return
        if not outcome.is_ok:
            logger.warning("Could not update user profile: %s", outcome.err)
            return
        self._store_profile(outcome.ok, generation)

    async def register_user(self, username: str) -> dict:
        unavailable = self._unavailable()
        if unavailable is not None:
            return unavailable

        name = (username or "").strip()
        if not name:
            return failure(ErrorKind.INVALID_INPUT, "Username cannot be empty")

        generation = self._generation
        result, outcome = await self._run(
            "Registration",
            lambda actor: actor.register_user(name),
            payload_key="profile",
            deadline=self.config.registration_timeout_seconds,
        )
        if outcome is not None:
            self._store_profile(outcome.ok, generation)
        return result

    async def update_last_active(self) -> dict:
        result, _ = await self._run("Update last active", lambda actor: actor.update_last_active())
        return result

    async def get_user_sessions(self) -> dict:
        result, _ = await self._run(
            "Get sessions",
            lambda actor: actor.get_user_sessions(),
            payload_key="sessions",
        )
        return result

    async def generate_progress_report(self) -> dict:
        result, _ = await self._run(
            "Generate progress report",
            lambda actor: actor.generate_user_progress_report(),
            payload_key="report",
        )
        return result

    async def start_therapy_session(self, session_type: str, stress_before: float) -> dict:
        result, _ = await self._run(
            "Start therapy session",
            lambda actor: actor.start_therapy_session(session_type, stress_before),
            payload_key="session_id",
        )
        return result

    async def end_therapy_session(
        self,
        session_id: str,
        duration: int,
        stress_after: float,
        notes: str,
        pitch: float,
        tempo: float,
    ) -> dict:
        """End a session; on success refresh the profile once (best effort)."""
        generation = self._generation
        result, outcome = await self._run(
            "End therapy session",
            lambda actor: actor.end_therapy_session(
                session_id, duration, stress_after, notes, pitch, tempo
            ),
            payload_key="session",
        )
        if outcome is not None:
            await self._refresh_profile(generation)
        return result

    async def get_cbt_reflection(self, thought: str) -> dict:
        result, _ = await self._run(
            "Get CBT reflection",
            lambda actor: actor.get_cbt_reflection(thought),
            payload_key="reflection",
        )
        return result

    async def get_service_stats(self) -> dict:
        async def _stats(actor: RemoteActor) -> ResultEnvelope:
            users, sessions = await asyncio.gather(
                actor.get_total_users(),
                actor.get_total_sessions(),
            )
            return ResultEnvelope(Ok=ServiceStats(total_users=users.ok, total_sessions=sessions.ok))

        result, _ = await self._run("Service stats", _stats, payload_key="stats")
        return result
