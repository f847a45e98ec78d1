from __future__ import annotations

from datetime import datetime
from typing import Literal
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, field_validator

RequestMode = Literal["navigate", "same-origin", "no-cors", "cors"]


class InterceptedRequest(BaseModel):
    """An outgoing request handed to the worker before it reaches the network."""

    model_config = ConfigDict(frozen=True)

    url: str
    method: str = "GET"
    mode: RequestMode = "no-cors"
    destination: str = ""  # "document", "style", "script", "worker", "image", ...
    headers: dict[str, str] = {}
    body: bytes | None = None

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("url must use http or https scheme")
        parts = urlsplit(v)
        if not parts.hostname:
            raise ValueError("url must include a host")
        try:
            _ = parts.port
        except ValueError as exc:
            raise ValueError(f"url has an invalid port: {exc}") from exc
        return v

    @field_validator("method")
    @classmethod
    def validate_method(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("method must not be empty")
        return v

    @property
    def is_navigation(self) -> bool:
        return self.mode == "navigate"


class Response(BaseModel):
    """A response produced by the network or served from a named cache."""

    model_config = ConfigDict(frozen=True)

    url: str = ""
    status: int
    headers: dict[str, str] = {}
    body: bytes = b""
    cached: bool = False
    stored_at: datetime | None = None  # Set only when served from cache

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")
