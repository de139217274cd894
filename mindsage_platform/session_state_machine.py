"""Platform-owned session state and its transition helpers.

``SessionState`` is only mutated through the functions in this module, which
keep the invariant that an unauthenticated state holds no credential,
principal or profile.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from contracts.v1.schemas import UserProfile

from .identity import Credential


class LifecycleState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED_NO_PROFILE = "authenticated_no_profile"
    AUTHENTICATED_WITH_PROFILE = "authenticated_with_profile"
    LOGGING_OUT = "logging_out"


TRANSITIONAL_STATES = {LifecycleState.INITIALIZING, LifecycleState.LOGGING_OUT}


@dataclass
class SessionState:
    lifecycle: LifecycleState = LifecycleState.UNINITIALIZED
    authenticated: bool = False
    credential: Optional[Credential] = None
    principal_id: Optional[str] = None
    channel_ready: bool = False
    channel_verified: bool = False
    user_profile: Optional[UserProfile] = None
    loading: bool = False
    degraded_reason: Optional[str] = None

    @property
    def in_transition(self) -> bool:
        return self.lifecycle in TRANSITIONAL_STATES


def begin_transition(state: SessionState, lifecycle: LifecycleState) -> None:
    """Enter a transitional lifecycle state and raise the loading flag."""
    state.lifecycle = lifecycle
    state.loading = True


def end_transition(state: SessionState) -> None:
    state.loading = False


def settle_unauthenticated(state: SessionState) -> None:
    """Clear every identity-bound field and settle in UNAUTHENTICATED."""
    state.lifecycle = LifecycleState.UNAUTHENTICATED
    state.authenticated = False
    state.credential = None
    state.principal_id = None
    state.channel_ready = False
    state.channel_verified = False
    state.user_profile = None
    state.degraded_reason = None


def settle_authenticated(
    state: SessionState,
    credential: Credential,
    *,
    channel_ready: bool,
    channel_verified: bool,
    degraded_reason: Optional[str] = None,
) -> None:
    """Record an authenticated credential; the profile starts absent."""
    state.authenticated = True
    state.credential = credential
    state.principal_id = credential.principal_id
    state.channel_ready = channel_ready
    state.channel_verified = channel_verified
    state.degraded_reason = degraded_reason
    state.user_profile = None
    state.lifecycle = LifecycleState.AUTHENTICATED_NO_PROFILE


def resume_authenticated(state: SessionState) -> None:
    """Return an authenticated state to its settled lifecycle after an aborted transition."""
    if not state.authenticated:
        raise ValueError("Cannot resume an unauthenticated session")
    state.lifecycle = (
        LifecycleState.AUTHENTICATED_WITH_PROFILE
        if state.user_profile is not None
        else LifecycleState.AUTHENTICATED_NO_PROFILE
    )


def apply_profile(state: SessionState, profile: Optional[UserProfile]) -> None:
    """Store (or clear) the profile of an authenticated state."""
    if not state.authenticated:
        raise ValueError("Cannot attach a profile to an unauthenticated session")
    state.user_profile = profile
    state.lifecycle = (
        LifecycleState.AUTHENTICATED_WITH_PROFILE
        if profile is not None
        else LifecycleState.AUTHENTICATED_NO_PROFILE
    )


def state_payload(state: SessionState) -> dict:
    """Build a serializable snapshot for presentation layers."""
    return {
        "lifecycle": state.lifecycle.value,
        "is_authenticated": state.authenticated,
        "principal_id": state.principal_id,
        "channel_ready": state.channel_ready,
        "channel_verified": state.channel_verified,
        "degraded_reason": state.degraded_reason,
        "loading": state.loading,
        "user_profile": state.user_profile.model_dump() if state.user_profile else None,
    }
