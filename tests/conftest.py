"""
Shared fixtures for MindSage tests.
"""

from dataclasses import dataclass
from typing import Optional

import pytest

from mindsage_platform import (
    ChannelBuilder,
    Credential,
    EndpointClass,
    IdentityClient,
    IdentityClientOptions,
    LoginOptions,
    LoginOutcome,
    RemoteActorFactory,
    SessionConfig,
    SessionManager,
)
from mindsage_platform.errors import IdentityError

SERVICE_ID = "rrkah-fqaaa-aaaaa-aaaaq-cai"
ALICE = "2vxsx-fae"


def voice_emotion(pitch: float, tempo: float) -> str:
    if pitch > 250.0 and tempo > 180.0:
        return "High stress"
    if pitch < 180.0 and tempo < 100.0:
        return "Possible depression"
    return "Neutral"


class InMemoryMindSage:
    """In-memory stand-in for the remote service, speaking the wire shapes."""

    def __init__(self):
        self.profiles: dict[str, dict] = {}
        self.sessions: dict[str, list[dict]] = {}
        self.open_sessions: dict[str, dict] = {}
        self.calls: list[str] = []
        self.clock = 1_700_000_000_000_000_000
        self.fail_methods: dict[str, Exception] = {}

    def _tick(self) -> int:
        self.clock += 1_000_000_000
        return self.clock

    def handle(self, principal: str, method_name: str, args: list):
        self.calls.append(method_name)
        if method_name in self.fail_methods:
            raise self.fail_methods[method_name]
        return getattr(self, f"_{method_name}")(principal, *args)

    def _register_user(self, principal, username):
        if principal in self.profiles:
            return {"Err": "User already registered"}
        now = self._tick()
        self.profiles[principal] = {
            "principal": principal,
            "username": username,
            "created_at": now,
            "last_active": now,
            "session_count": 0,
            "total_sessions": 0,
        }
        self.sessions[principal] = []
        return {"Ok": dict(self.profiles[principal])}

    def _get_user_profile(self, principal):
        if principal not in self.profiles:
            return {"Err": "User not found"}
        return {"Ok": dict(self.profiles[principal])}

    def _update_last_active(self, principal):
        if principal not in self.profiles:
            return {"Err": "User not found"}
        self.profiles[principal]["last_active"] = self._tick()
        return {"Ok": None}

    def _get_user_sessions(self, principal):
        return {"Ok": list(self.sessions.get(principal, []))}

    def _generate_user_progress_report(self, principal):
        if principal not in self.profiles:
            return {"Err": "User not found"}
        done = self.sessions[principal]
        if done:
            avg = sum(s["stress_level_before"] - s["stress_level_after"] for s in done) / len(done)
        else:
            avg = 0.0
        trend = "Improving" if avg > 0 else "Stable"
        return {
            "Ok": {
                "user_principal": principal,
                "total_sessions": len(done),
                "trend": trend,
                "avg_stress_reduction": avg,
                "recommendations": ["Keep a thought journal"],
                "generated_at": self._tick(),
            }
        }

    def _start_therapy_session(self, principal, session_type, stress_before):
        if principal not in self.profiles:
            return {"Err": "User not found"}
        session_id = f"session_{len(self.open_sessions) + sum(map(len, self.sessions.values())) + 1}"
        self.open_sessions[session_id] = {
            "principal": principal,
            "session_type": session_type,
            "stress_before": stress_before,
            "timestamp": self._tick(),
        }
        return {"Ok": session_id}

    def _end_therapy_session(self, principal, session_id, duration, stress_after, notes, pitch, tempo):
        pending = self.open_sessions.get(session_id)
        if pending is None or pending["principal"] != principal:
            return {"Err": "Session not found"}
        del self.open_sessions[session_id]
        session = {
            "id": session_id,
            "user_principal": principal,
            "session_type": pending["session_type"],
            "timestamp": pending["timestamp"],
            "duration": duration,
            "stress_level_before": pending["stress_before"],
            "stress_level_after": stress_after,
            "notes": notes,
            "voice_analysis": {
                "pitch": pitch,
                "tempo": tempo,
                "emotion": voice_emotion(pitch, tempo),
                "stress_indicators": [],
            },
        }
        self.sessions[principal].append(session)
        profile = self.profiles[principal]
        profile["session_count"] += 1
        profile["total_sessions"] += 1
        return {"Ok": session}

    def _get_cbt_reflection(self, principal, thought):
        if "I'm a failure" in thought:
            return {"Ok": "Try to reframe: Everyone fails sometimes. What did you learn?"}
        if "No one cares about me" in thought:
            return {"Ok": "Challenge that thought: Is that 100% true? What evidence do you have?"}
        return {"Ok": "Reflect: Is this thought helping you or hurting you?"}

    def _get_total_users(self, principal):
        return len(self.profiles)

    def _get_total_sessions(self, principal):
        return sum(len(v) for v in self.sessions.values())


@dataclass(frozen=True)
class FakeChannel:
    """Duck-typed channel that routes calls into an ``InMemoryMindSage``."""

    service: InMemoryMindSage
    credential: Credential
    host: str = "http://127.0.0.1:4943"
    verified: bool = True
    minimal: bool = False

    async def query(self, service_id, method_name, args):
        return self.service.handle(self.credential.principal_id, method_name, args)

    async def call(self, service_id, method_name, args):
        return self.service.handle(self.credential.principal_id, method_name, args)


class FakeChannelBuilder(ChannelBuilder):
    def __init__(self, config: SessionConfig, service: InMemoryMindSage, *, verified: bool = True):
        super().__init__(config)
        self.service = service
        self.verified = verified
        self.build_error: Optional[Exception] = None
        self.minimal_builds = 0

    async def build(self, credential):
        if self.build_error is not None:
            raise self.build_error
        return FakeChannel(self.service, credential, verified=self.verified)

    def build_minimal(self, credential):
        self.minimal_builds += 1
        return FakeChannel(self.service, credential, minimal=True)


class FakeIdentityClient(IdentityClient):
    """Identity client holding its credential in memory."""

    def __init__(self, credential: Optional[Credential] = None):
        self.credential = credential
        self.next_login: Optional[Credential] = None
        self.login_outcome: Optional[LoginOutcome] = None
        self.logout_error: Optional[Exception] = None
        self.logout_calls = 0

    @classmethod
    async def create(cls, options: Optional[IdentityClientOptions] = None):
        return cls()

    async def is_authenticated(self) -> bool:
        return self.credential is not None

    async def get_identity(self) -> Credential:
        if self.credential is None:
            raise IdentityError("No stored identity")
        return self.credential

    async def login(self, options: LoginOptions) -> LoginOutcome:
        if self.login_outcome is not None and not self.login_outcome.ok:
            return self.login_outcome
        self.credential = options.credential or self.next_login
        if self.credential is None:
            return LoginOutcome.failed("no credential")
        return LoginOutcome.logged_in()

    async def logout(self) -> None:
        self.logout_calls += 1
        if self.logout_error is not None:
            raise self.logout_error
        self.credential = None


@pytest.fixture
def alice():
    return Credential(principal_id=ALICE, token="delegation-alice")


@pytest.fixture
def config():
    return SessionConfig(
        endpoint_class=EndpointClass.DEVELOPMENT,
        service_id=SERVICE_ID,
        root_key_retry_delay_seconds=0.0,
    )


@pytest.fixture
def service():
    return InMemoryMindSage()


@pytest.fixture
def identity_client():
    return FakeIdentityClient()


@pytest.fixture
def channel_builder(config, service):
    return FakeChannelBuilder(config, service)


@pytest.fixture
def make_manager(config, identity_client, channel_builder):
    """Build a SessionManager wired to the in-memory service.

    Usage:
        manager = make_manager()
        manager = make_manager(registration_timeout_seconds=0.05)
    """
    def _make(**config_overrides) -> SessionManager:
        cfg = config.with_overrides(**config_overrides) if config_overrides else config
        channel_builder.config = cfg
        return SessionManager(
            identity_client=identity_client,
            config=cfg,
            channel_builder=channel_builder,
            actor_factory=RemoteActorFactory(service_id=cfg.service_id, channel_builder=channel_builder),
        )
    return _make
