"""Pydantic contracts for the v1 MindSage service interface."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _StrictModel(BaseModel):
    """Base model that rejects unknown fields."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class _ReplyModel(BaseModel):
    """Base model for service replies; tolerates fields added by newer services."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


# --- Replies ---

class UserProfile(_ReplyModel):
    principal_id: str = Field(alias="principal")
    username: str
    created_at: int = Field(ge=0)
    last_active_at: int = Field(alias="last_active", ge=0)
    session_count: int = Field(default=0, ge=0)
    total_sessions: int = Field(default=0, ge=0)


class VoiceAnalysis(_ReplyModel):
    pitch: float
    tempo: float
    emotion: str
    stress_indicators: list[str] = Field(default_factory=list)


class TherapySession(_ReplyModel):
    id: str
    principal_id: str = Field(alias="user_principal")
    session_type: str
    timestamp: int = Field(ge=0)
    duration_minutes: int = Field(alias="duration", ge=0)
    stress_before: float = Field(alias="stress_level_before")
    stress_after: float = Field(alias="stress_level_after")
    notes: str = ""
    voice_metrics: VoiceAnalysis = Field(alias="voice_analysis")


class ProgressReport(_ReplyModel):
    principal_id: str = Field(alias="user_principal")
    total_sessions: int = Field(ge=0)
    trend: str
    avg_stress_reduction: float
    recommendations: list[str] = Field(default_factory=list)
    generated_at: int = Field(ge=0)


class ServiceStats(_ReplyModel):
    total_users: int = Field(ge=0)
    total_sessions: int = Field(ge=0)


class ResultEnvelope(_ReplyModel):
    """Variant reply ``{"Ok": value}`` or ``{"Err": reason}``."""

    ok: Any = Field(default=None, alias="Ok")
    err: str | None = Field(default=None, alias="Err")

    @model_validator(mode="before")
    @classmethod
    def _exactly_one_variant(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            raise ValueError("result variant must be an object")
        variants = [key for key in ("Ok", "Err", "ok", "err") if key in data]
        if len(variants) != 1:
            raise ValueError(f"result variant must have exactly one of Ok/Err, got {sorted(data)}")
        return data

    @property
    def is_ok(self) -> bool:
        return self.err is None


# --- Requests ---

class RegisterUserRequest(_StrictModel):
    username: str = Field(min_length=1, max_length=64)


class StartTherapySessionRequest(_StrictModel):
    session_type: str = Field(min_length=1)
    stress_before: float = Field(ge=0, le=10)


class EndTherapySessionRequest(_StrictModel):
    session_id: str = Field(min_length=1)
    duration_minutes: int = Field(ge=0, le=2**32 - 1)
    stress_after: float = Field(ge=0, le=10)
    notes: str = ""
    pitch: float = Field(ge=0)
    tempo: float = Field(ge=0)


class CbtReflectionRequest(_StrictModel):
    thought: str = Field(min_length=1)


class CanisterCallRequest(_StrictModel):
    """Body of a query/update call sent over a channel."""

    method_name: str = Field(min_length=1)
    arg: list[Any] = Field(default_factory=list)
    sender: str
    ingress_expiry: int = Field(ge=0)
