"""Adapters between raw service replies and v1 contract models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import TypeAdapter

from .schemas import ProgressReport, ResultEnvelope, TherapySession, UserProfile


@dataclass(frozen=True)
class ServiceMethod:
    """Shape of one service method: call kind and reply decoding."""

    name: str
    query: bool
    ok_type: Any
    variant: bool = True


SERVICE_METHODS: dict[str, ServiceMethod] = {
    method.name: method
    for method in (
        ServiceMethod("register_user", query=False, ok_type=UserProfile),
        ServiceMethod("get_user_profile", query=True, ok_type=UserProfile),
        ServiceMethod("update_last_active", query=False, ok_type=None),
        ServiceMethod("get_user_sessions", query=True, ok_type=list[TherapySession]),
        ServiceMethod("generate_user_progress_report", query=True, ok_type=ProgressReport),
        ServiceMethod("start_therapy_session", query=False, ok_type=str),
        ServiceMethod("end_therapy_session", query=False, ok_type=TherapySession),
        ServiceMethod("get_cbt_reflection", query=False, ok_type=str),
        ServiceMethod("get_total_users", query=True, ok_type=int, variant=False),
        ServiceMethod("get_total_sessions", query=True, ok_type=int, variant=False),
    )
}

_ADAPTERS: dict[str, TypeAdapter] = {
    name: TypeAdapter(method.ok_type)
    for name, method in SERVICE_METHODS.items()
    if method.ok_type is not None
}


def service_method(method_name: str) -> ServiceMethod:
    """Return the description of ``method_name`` or raise ``KeyError``."""
    try:
        return SERVICE_METHODS[method_name]
    except KeyError:
        raise KeyError(f"Unknown service method: {method_name}") from None


def adapt_reply(method_name: str, reply: Any) -> ResultEnvelope:
    """Decode a raw reply into a ``ResultEnvelope`` with a typed ``ok`` value.

    Plain (non-variant) replies are wrapped as ``Ok``.  Raises
    ``pydantic.ValidationError`` when the reply does not match the contract.
    """
    method = service_method(method_name)
    envelope = ResultEnvelope.model_validate(reply if method.variant else {"Ok": reply})
    if not envelope.is_ok:
        return envelope

    if method.ok_type is None:
        return ResultEnvelope(Ok=None)
    return ResultEnvelope(Ok=_ADAPTERS[method_name].validate_python(envelope.ok))
