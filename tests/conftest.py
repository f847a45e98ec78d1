"""Shared fixtures: requests for the two routed request kinds and test settings."""

from __future__ import annotations

import pytest

from offlinekit.config import PrecacheSettings, Settings
from offlinekit.models.http import InterceptedRequest

ORIGIN = "https://app.example.com"


@pytest.fixture()
def origin() -> str:
    return ORIGIN


@pytest.fixture()
def settings() -> Settings:
    """Settings pointing at the test origin with a small manifest."""
    return Settings(
        precache=PrecacheSettings(
            origin=ORIGIN,
            manifest=["/", "/index.html", "/css/style.css"],
            fallback_url="/offline.html",
        ),
        cache={"db_path": ":memory:"},
        entry_store={"db_path": ":memory:"},
    )


@pytest.fixture()
def navigation() -> InterceptedRequest:
    return InterceptedRequest(url=f"{ORIGIN}/notes", mode="navigate", destination="document")


@pytest.fixture()
def stylesheet() -> InterceptedRequest:
    return InterceptedRequest(url=f"{ORIGIN}/css/theme.css", mode="no-cors", destination="style")
