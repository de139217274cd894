"""Platform layer: identity, channels, remote actor and the session manager."""

__version__ = "1.0.0"

from .actor import RemoteActor, RemoteActorFactory
from .channel import Channel, ChannelBuilder
from .config import EndpointClass, SessionConfig, load_config
from .errors import (
    ActorBindError,
    CallTimeout,
    ChannelError,
    ChannelHTTPError,
    ChannelVerificationError,
    ErrorKind,
    IdentityError,
    LoginCancelled,
    MindSageError,
    classify_error,
)
from .identity import (
    Credential,
    FileIdentityClient,
    IdentityClient,
    IdentityClientOptions,
    LoginOptions,
    LoginOutcome,
)
from .results import failure, race_deadline, success
from .session_manager import SessionManager
from .session_state_machine import LifecycleState, SessionState

__all__ = [
    "__version__",
    "ActorBindError",
    "CallTimeout",
    "Channel",
    "ChannelBuilder",
    "ChannelError",
    "ChannelHTTPError",
    "ChannelVerificationError",
    "Credential",
    "EndpointClass",
    "ErrorKind",
    "FileIdentityClient",
    "IdentityClient",
    "IdentityClientOptions",
    "IdentityError",
    "LifecycleState",
    "LoginCancelled",
    "LoginOptions",
    "LoginOutcome",
    "MindSageError",
    "RemoteActor",
    "RemoteActorFactory",
    "SessionConfig",
    "SessionManager",
    "SessionState",
    "classify_error",
    "failure",
    "load_config",
    "race_deadline",
    "success",
]
