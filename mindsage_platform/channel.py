"""Authorized HTTP channels to the MindSage service, with trust bootstrap."""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import socket
import time
from dataclasses import dataclass
from typing import Any
from urllib import error, request

from contracts.v1.schemas import CanisterCallRequest

from .config import INGRESS_EXPIRY_SECONDS, PRODUCTION_ROOT_KEY, SessionConfig
from .errors import ChannelError, ChannelHTTPError, ChannelVerificationError
from .identity import Credential

logger = logging.getLogger(__name__)

STATUS_PATH = "/api/v2/status"


def request_json(
    method: str,
    url: str,
    payload: dict[str, Any] | None = None,
    *,
    headers: dict[str, str] | None = None,
    timeout_seconds: float,
) -> dict[str, Any]:
    """Send one JSON request and normalize failures into ``ChannelError``."""
    data = json.dumps(payload).encode("utf-8") if payload is not None else None
    req = request.Request(
        url,
        data=data,
        headers={"Content-Type": "application/json", **(headers or {})},
        method=method,
    )
    try:
        with request.urlopen(req, timeout=timeout_seconds) as resp:
            raw = resp.read().decode("utf-8")
            if not raw:
                return {}
            return json.loads(raw)
    except error.HTTPError as e:
        detail, error_code = _read_http_error_detail(e)
        raise ChannelHTTPError(e.code, detail, error_code) from e
    except (TimeoutError, socket.timeout) as e:
        raise ChannelError(f"Service request timed out: {e}", "TIMEOUT") from e
    except error.URLError as e:
        if isinstance(e.reason, (TimeoutError, socket.timeout)):
            raise ChannelError(f"Service request timed out: {e.reason}", "TIMEOUT") from e
        raise ChannelError(f"Service request failed: {e.reason}") from e
    except json.JSONDecodeError as e:
        raise ChannelError(f"Service returned invalid JSON: {e}") from e


def _read_http_error_detail(exc: error.HTTPError) -> tuple[str, str | None]:
    try:
        body = exc.read().decode("utf-8") if exc.fp is not None else ""
    except Exception:
        return str(exc.reason or "HTTP error"), None
    if not body:
        return str(exc.reason or "HTTP error"), None
    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        return body, None
    if isinstance(payload, dict) and "detail" in payload:
        code = payload.get("error_code")
        return str(payload["detail"]), str(code) if code else None
    return body, None


def root_key_fingerprint(root_key: bytes) -> str:
    return hashlib.sha256(root_key).hexdigest()[:32]


@dataclass(frozen=True)
class Channel:
    """Configured transport binding for one credential.

    ``verified`` is True only when ``root_key`` is set; every reply must then
    carry a matching fingerprint.  Without a trust anchor (degraded-trust
    mode) replies are accepted unchecked.
    """

    host: str
    credential: Credential
    timeout_seconds: float
    headers: tuple[tuple[str, str], ...] = ()
    root_key: bytes | None = None
    verified: bool = False
    minimal: bool = False

    def _request_headers(self) -> dict[str, str]:
        return {**dict(self.headers), "Authorization": f"Bearer {self.credential.token}"}

    async def query(self, service_id: str, method_name: str, args: list[Any]) -> Any:
        return await self._send("query", service_id, method_name, args)

    async def call(self, service_id: str, method_name: str, args: list[Any]) -> Any:
        return await self._send("call", service_id, method_name, args)

    async def _send(self, kind: str, service_id: str, method_name: str, args: list[Any]) -> Any:
        body = CanisterCallRequest(
            method_name=method_name,
            arg=args,
            sender=self.credential.principal_id,
            ingress_expiry=int((time.time() + INGRESS_EXPIRY_SECONDS) * 1_000_000_000),
        )
        url = f"{self.host}/api/v2/canister/{service_id}/{kind}"
        data = await asyncio.to_thread(
            request_json,
            "POST",
            url,
            body.model_dump(),
            headers=self._request_headers(),
            timeout_seconds=self.timeout_seconds,
        )
        self._verify(data)
        if "reply" not in data:
            raise ChannelError(f"Service reply for {method_name} has no 'reply' field")
        return data["reply"]

    def _verify(self, data: dict[str, Any]) -> None:
        if self.root_key is None:
            return
        claimed = data.get("root_key_fingerprint")
        if claimed is None:
            raise ChannelVerificationError("certificate verification failed: reply carries no root key fingerprint")
        if claimed != root_key_fingerprint(self.root_key):
            raise ChannelVerificationError(
                "certificate verification failed: reply was signed under a different root key"
            )


class ChannelBuilder:
    """Builds channels for a credential according to a ``SessionConfig``."""

    def __init__(self, config: SessionConfig):
        self.config = config

    async def build(self, credential: Credential) -> Channel:
        """Build a fully configured channel.

        Production channels are anchored to ``PRODUCTION_ROOT_KEY``.
        Development endpoints fetch the root key first; if every attempt
        fails the channel is still returned, unverified.
        """
        host = self.config.resolved_host
        root_key = self._default_root_key()

        if self.config.is_development:
            try:
                root_key = await self.fetch_root_key(host)
            except ChannelError as e:
                logger.warning("Root key fetch failed, continuing with an unverified channel: %s", e)

        return Channel(
            host=host,
            credential=credential,
            timeout_seconds=self.config.request_timeout_seconds,
            headers=self.config.extra_headers,
            root_key=root_key,
            verified=root_key is not None,
        )

    def build_minimal(self, credential: Credential) -> Channel:
        """Build a channel from endpoint-class defaults only (no bootstrap)."""
        return Channel(
            host=self.config.default_host,
            credential=credential,
            timeout_seconds=self.config.request_timeout_seconds,
            root_key=self._default_root_key(),
            verified=not self.config.is_development,
            minimal=True,
        )

    def _default_root_key(self) -> bytes | None:
        return None if self.config.is_development else PRODUCTION_ROOT_KEY

    async def fetch_root_key(self, host: str) -> bytes:
        """Fetch the replica's root key, retrying with a fixed delay."""
        attempts = max(1, self.config.root_key_fetch_attempts)
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            try:
                data = await asyncio.to_thread(
                    request_json,
                    "GET",
                    f"{host}{STATUS_PATH}",
                    timeout_seconds=self.config.request_timeout_seconds,
                )
                root_key = bytes.fromhex(str(data["root_key"]))
                if not root_key:
                    raise ValueError("empty root key")
                logger.info("Fetched root key from %s", host)
                return root_key
            except Exception as e:
                last_error = e
                logger.warning("Root key fetch attempt %d/%d failed: %s", attempt, attempts, e)
                if attempt < attempts:
                    await asyncio.sleep(self.config.root_key_retry_delay_seconds)

        raise ChannelError(f"Could not fetch root key after {attempts} attempts: {last_error}")
