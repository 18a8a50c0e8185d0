"""Inbound command models.

Each command is a pydantic model tagged by its ``command`` field; together
they form the closed :data:`Command` union validated before dispatch.
"""

from __future__ import annotations

import base64
import binascii
from typing import Annotated, Any, Literal, get_args

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from axonkit.errors import HandlerDispatchError, MalformedInputError
from axonkit.models.enums import LoginMethod, OnlineStatus


class BaseCommand(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


def _check_base64(value: str) -> str:
    try:
        base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("data must be base64 encoded") from exc
    return value


Base64Str = Annotated[str, AfterValidator(_check_base64)]


class InitCommand(BaseCommand):
    command: Literal["INIT"]
    uin: int
    platform: int = Field(ge=1, le=5)


class LoginCommand(BaseCommand):
    command: Literal["LOGIN"]
    method: LoginMethod
    passwd: str | None = None

    @field_validator("method", mode="before")
    @classmethod
    def _coerce_method(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip().isdigit():
            return int(v)
        return v

    @model_validator(mode="after")
    def _require_password(self) -> LoginCommand:
        if self.method == LoginMethod.PASSWORD and not self.passwd:
            raise ValueError("password login requires passwd")
        return self


class GoAheadCommand(BaseCommand):
    command: Literal["GOAHEAD"]


class USendCommand(BaseCommand):
    command: Literal["USEND"]
    id: str
    message: str


class USendImgCommand(BaseCommand):
    command: Literal["USEND_IMG"]
    id: str
    data: Base64Str

    @property
    def image(self) -> bytes:
        return base64.b64decode(self.data)


class USendShakeCommand(BaseCommand):
    command: Literal["USEND_SHAKE"]
    id: str


class GSendCommand(BaseCommand):
    command: Literal["GSEND"]
    id: int
    message: str


class GSendImgCommand(BaseCommand):
    command: Literal["GSEND_IMG"]
    id: int
    data: Base64Str

    @property
    def image(self) -> bytes:
        return base64.b64decode(self.data)


class GInfoCommand(BaseCommand):
    command: Literal["GINFO"]
    id: int


class GMListCommand(BaseCommand):
    command: Literal["GMLIST"]
    id: int


class FListCommand(BaseCommand):
    command: Literal["FLIST"]


class GListCommand(BaseCommand):
    command: Literal["GLIST"]


class WhoAmICommand(BaseCommand):
    command: Literal["WHOAMI"]


class StatusCommand(BaseCommand):
    command: Literal["STATUS"]
    status: Literal["busy", "online", "invisible"]

    @property
    def online_status(self) -> OnlineStatus:
        return OnlineStatus[self.status.upper()]


class LookupCommand(BaseCommand):
    command: Literal["LOOKUP"]
    nickname: str


class ApproveCommand(BaseCommand):
    command: Literal["APPROVE"]


class RefuseCommand(BaseCommand):
    command: Literal["REFUSE"]


Command = Annotated[
    InitCommand
    | LoginCommand
    | GoAheadCommand
    | USendCommand
    | USendImgCommand
    | USendShakeCommand
    | GSendCommand
    | GSendImgCommand
    | GInfoCommand
    | GMListCommand
    | FListCommand
    | GListCommand
    | WhoAmICommand
    | StatusCommand
    | LookupCommand
    | ApproveCommand
    | RefuseCommand,
    Field(discriminator="command"),
]

COMMAND_TYPES: tuple[type[BaseCommand], ...] = (
    InitCommand,
    LoginCommand,
    GoAheadCommand,
    USendCommand,
    USendImgCommand,
    USendShakeCommand,
    GSendCommand,
    GSendImgCommand,
    GInfoCommand,
    GMListCommand,
    FListCommand,
    GListCommand,
    WhoAmICommand,
    StatusCommand,
    LookupCommand,
    ApproveCommand,
    RefuseCommand,
)

COMMAND_NAMES: frozenset[str] = frozenset(
    get_args(t.model_fields["command"].annotation)[0] for t in COMMAND_TYPES
)

_command_adapter: TypeAdapter[Command] = TypeAdapter(Command)


def parse_command(frame: Any) -> Command:
    """Validate one decoded frame into a typed command.

    Raises:
        MalformedInputError: The frame is not an object, lacks a ``command``
            field, or its fields fail validation.
        HandlerDispatchError: The ``command`` field names no known command.
    """
    if not isinstance(frame, dict):
        raise MalformedInputError("frame must be a JSON object")
    name = frame.get("command")
    if not isinstance(name, str):
        raise MalformedInputError("frame has no command field")
    if name not in COMMAND_NAMES:
        raise HandlerDispatchError(name)
    try:
        return _command_adapter.validate_python(frame)
    except ValidationError as exc:
        raise MalformedInputError(f"invalid {name} frame: {exc.error_count()} error(s)") from exc
