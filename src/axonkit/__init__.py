"""AxonKit - socket session adapter fronting an instant-messaging client."""

from axonkit._version import __version__
from axonkit.adapters.base import (
    AdapterFactory,
    BaseProtocolAdapter,
    ProtocolAdapter,
    Subscription,
)
from axonkit.adapters.mock import MockProtocolAdapter
from axonkit.config import AxonConfig, OneBotConfig
from axonkit.core.executor import ExecutorClosedError, SerialExecutor
from axonkit.core.relay import EventRelay
from axonkit.core.server import AxonServer
from axonkit.core.session import Session
from axonkit.errors import (
    AdapterOperationFailedError,
    AxonKitError,
    ClientNotInitializedError,
    HandlerDispatchError,
    IdentityNotFoundError,
    MalformedInputError,
)
from axonkit.identity.directory import IdentityDirectory
from axonkit.models.commands import Command, parse_command
from axonkit.models.enums import EventCode, SessionState, StatusCode
from axonkit.models.identity import FRIENDS, GroupInfo, GroupInvitation, Identity, Scope

# Backend name and version for embedding applications; not written on connect
MOTD = {"backend": "Axon", "version": __version__, "status": int(StatusCode.OK)}

__all__ = [
    "FRIENDS",
    "MOTD",
    "AdapterFactory",
    "AdapterOperationFailedError",
    "AxonConfig",
    "AxonKitError",
    "AxonServer",
    "BaseProtocolAdapter",
    "ClientNotInitializedError",
    "Command",
    "EventCode",
    "EventRelay",
    "ExecutorClosedError",
    "GroupInfo",
    "GroupInvitation",
    "HandlerDispatchError",
    "Identity",
    "IdentityDirectory",
    "IdentityNotFoundError",
    "MalformedInputError",
    "MockProtocolAdapter",
    "OneBotConfig",
    "ProtocolAdapter",
    "Scope",
    "SerialExecutor",
    "Session",
    "SessionState",
    "StatusCode",
    "Subscription",
    "__version__",
]
