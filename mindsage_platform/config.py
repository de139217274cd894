"""
Configuration constants and session settings for the MindSage platform.
"""

import os
from dataclasses import dataclass, replace
from datetime import timedelta
from enum import Enum


class EndpointClass(str, Enum):
    PRODUCTION = "production"
    DEVELOPMENT = "development"


# Hosts by endpoint class.  127.0.0.1 rather than localhost: some resolvers
# return ::1 first and the local replica only listens on IPv4.
DEFAULT_HOSTS = {
    EndpointClass.PRODUCTION: "https://ic0.app",
    EndpointClass.DEVELOPMENT: "http://127.0.0.1:4943",
}

DEFAULT_IDENTITY_PROVIDER = "https://identity.ic0.app/#authorize"

# Delegation lifetime we request; the identity provider accepts at most 8 days.
MAX_TIME_TO_LIVE = timedelta(days=7)

# DER-encoded root key of the production network; development replicas
# generate their own and it is fetched at channel construction.
PRODUCTION_ROOT_KEY = bytes.fromhex(
    "308182301d060d2b0601040182dc7c0503010201060c2b0601040182dc7c05030201"
    "036100814c0e6ec71fab583b08bd81373c255c3c371b2e84863c98a4f1e08b74235d"
    "14fb5d9c0cd546d9685f913a0c0b2cc5341583bf4b4392e467db96d65b9bb4cb7171"
    "12f8472e0d5a4d14505ffd7484b01291091c5f87b98883463f98091a0baaae"
)

# Trust bootstrap (development endpoints only)
ROOT_KEY_FETCH_ATTEMPTS = 3
ROOT_KEY_RETRY_DELAY_SECONDS = 1.0

REGISTRATION_TIMEOUT_SECONDS = 10.0
REQUEST_TIMEOUT_SECONDS = 30.0

# Calls are rejected by the service once their ingress expiry has passed.
INGRESS_EXPIRY_SECONDS = 5 * 60

_ENDPOINT_CLASS_ENV = "MINDSAGE_ENDPOINT_CLASS"
_NETWORK_ENV = "DFX_NETWORK"
_HOST_ENV = "MINDSAGE_HOST"
_SERVICE_ID_ENVS = ("MINDSAGE_SERVICE_ID", "CANISTER_ID_BACKEND")
_IDENTITY_PROVIDER_ENV = "MINDSAGE_IDENTITY_PROVIDER"
_REGISTRATION_TIMEOUT_ENV = "MINDSAGE_REGISTRATION_TIMEOUT_SECONDS"
_REQUEST_TIMEOUT_ENV = "MINDSAGE_REQUEST_TIMEOUT_SECONDS"


@dataclass(frozen=True)
class SessionConfig:
    """Explicit settings for one Session Manager.

    ``host`` of ``None`` means "the default host for ``endpoint_class``".
    ``extra_headers`` are only applied to fully configured channels; the
    fallback channel drops them.
    """

    endpoint_class: EndpointClass = EndpointClass.DEVELOPMENT
    service_id: str = ""
    host: str | None = None
    identity_provider: str = DEFAULT_IDENTITY_PROVIDER
    max_time_to_live: timedelta = MAX_TIME_TO_LIVE
    registration_timeout_seconds: float = REGISTRATION_TIMEOUT_SECONDS
    request_timeout_seconds: float = REQUEST_TIMEOUT_SECONDS
    root_key_fetch_attempts: int = ROOT_KEY_FETCH_ATTEMPTS
    root_key_retry_delay_seconds: float = ROOT_KEY_RETRY_DELAY_SECONDS
    extra_headers: tuple[tuple[str, str], ...] = ()

    @property
    def is_development(self) -> bool:
        return self.endpoint_class is EndpointClass.DEVELOPMENT

    @property
    def default_host(self) -> str:
        return DEFAULT_HOSTS[self.endpoint_class]

    @property
    def resolved_host(self) -> str:
        return (self.host or self.default_host).rstrip("/")

    def with_overrides(self, **changes) -> "SessionConfig":
        return replace(self, **changes)


def _to_float_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _endpoint_class_from_env() -> EndpointClass:
    raw = os.environ.get(_ENDPOINT_CLASS_ENV, "").strip().lower()
    if raw:
        try:
            return EndpointClass(raw)
        except ValueError:
            raise ValueError(
                f"{_ENDPOINT_CLASS_ENV} must be 'production' or 'development', got {raw!r}"
            ) from None
    if os.environ.get(_NETWORK_ENV, "").strip().lower() == "ic":
        return EndpointClass.PRODUCTION
    return EndpointClass.DEVELOPMENT


def _service_id_from_env() -> str:
    for name in _SERVICE_ID_ENVS:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return ""


def load_config() -> SessionConfig:
    """Build a ``SessionConfig`` from the process environment.

    Callers that want ``.env`` support load it first (``dotenv.load_dotenv``).
    """
    return SessionConfig(
        endpoint_class=_endpoint_class_from_env(),
        service_id=_service_id_from_env(),
        host=os.environ.get(_HOST_ENV, "").strip() or None,
        identity_provider=(
            os.environ.get(_IDENTITY_PROVIDER_ENV, "").strip() or DEFAULT_IDENTITY_PROVIDER
        ),
        registration_timeout_seconds=_to_float_env(
            _REGISTRATION_TIMEOUT_ENV, REGISTRATION_TIMEOUT_SECONDS
        ),
        request_timeout_seconds=_to_float_env(_REQUEST_TIMEOUT_ENV, REQUEST_TIMEOUT_SECONDS),
    )
