"""Server and adapter configuration."""

from __future__ import annotations

from pydantic import BaseModel, Field, SecretStr, field_validator

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9999


class AxonConfig(BaseModel):
    """Socket server configuration.

    ``debug`` logs every inbound and outbound frame at DEBUG level.
    ``max_frame_bytes`` bounds one line of input; longer lines are dropped.
    """

    host: str = DEFAULT_HOST
    port: int = Field(default=DEFAULT_PORT, ge=0, le=65535)
    debug: bool = False
    max_frame_bytes: int = Field(default=2**20, gt=0)


class OneBotConfig(BaseModel):
    """OneBot v11 forward WebSocket adapter configuration."""

    url: str = "ws://127.0.0.1:3001"
    access_token: SecretStr | None = None
    connect_timeout: float = 10.0
    action_timeout: float = 30.0

    @field_validator("url")
    @classmethod
    def _check_scheme(cls, v: str) -> str:
        if not v.startswith(("ws://", "wss://")):
            raise ValueError("url must be a ws:// or wss:// address")
        return v

    @property
    def headers(self) -> dict[str, str]:
        if self.access_token is None:
            return {}
        return {"Authorization": f"Bearer {self.access_token.get_secret_value()}"}
