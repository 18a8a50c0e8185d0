"""Exception hierarchy for AxonKit.

Every error that can surface at a command handler maps to a wire status code
through its ``status`` attribute.
"""

from __future__ import annotations

from axonkit.models.enums import StatusCode


class AxonKitError(Exception):
    """Base exception for all AxonKit errors."""

    status: StatusCode = StatusCode.UNKNOWN_ERROR


class ClientNotInitializedError(AxonKitError):
    """No protocol adapter has been created for the session yet."""

    status = StatusCode.NO_CLIENT


class IdentityNotFoundError(AxonKitError):
    """An alternate name, numeric id or group could not be resolved."""

    status = StatusCode.NOT_FOUND


class AdapterOperationFailedError(AxonKitError):
    """The protocol adapter rejected a send, login or fetch."""

    status = StatusCode.UNKNOWN_ERROR


class MalformedInputError(AxonKitError):
    """An inbound frame could not be parsed into a command."""


class HandlerDispatchError(AxonKitError):
    """An inbound frame named a command that does not exist."""

    def __init__(self, command: str) -> None:
        super().__init__(f"unrecognized command: {command!r}")
        self.command = command
