from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from offlinekit.models.http import Response


class CacheEntry(BaseModel):
    """One stored response inside a named cache. Replaced wholesale, never edited."""

    model_config = ConfigDict(frozen=True)

    key: str  # RequestKey: "<METHOD> <normalized url>"
    url: str
    status: int
    headers: dict[str, str] = {}
    body: bytes = b""
    stored_at: datetime

    @classmethod
    def from_response(cls, key: str, response: Response, stored_at: datetime) -> CacheEntry:
        return cls(
            key=key,
            url=response.url,
            status=response.status,
            headers=dict(response.headers),
            body=response.body,
            stored_at=stored_at,
        )

    def to_response(self) -> Response:
        return Response(
            url=self.url,
            status=self.status,
            headers=dict(self.headers),
            body=self.body,
            cached=True,
            stored_at=self.stored_at,
        )
