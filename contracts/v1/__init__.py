"""v1 service contract schemas and reply adapters."""

__version__ = "1.0.0"

from .adapters import SERVICE_METHODS, ServiceMethod, adapt_reply, service_method
from .schemas import (
    CanisterCallRequest,
    CbtReflectionRequest,
    EndTherapySessionRequest,
    ProgressReport,
    RegisterUserRequest,
    ResultEnvelope,
    ServiceStats,
    StartTherapySessionRequest,
    TherapySession,
    UserProfile,
    VoiceAnalysis,
)

__all__ = [
    "__version__",
    "CanisterCallRequest",
    "CbtReflectionRequest",
    "EndTherapySessionRequest",
    "ServiceMethod",
    "ProgressReport",
    "RegisterUserRequest",
    "ResultEnvelope",
    "SERVICE_METHODS",
    "ServiceStats",
    "StartTherapySessionRequest",
    "TherapySession",
    "UserProfile",
    "VoiceAnalysis",
    "adapt_reply",
    "service_method",
]
