"""Integration test fixtures.

Provides a fully wired AppState (in-memory SQLite for both databases, real
httpx client) built by ``open_app``. Network responses are mocked per test
with respx.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from offlinekit.app import open_app

if TYPE_CHECKING:
    from offlinekit.config import Settings
    from offlinekit.state import AppState


@pytest.fixture()
async def app_state(settings: Settings) -> AppState:
    async with open_app(settings) as state:
        yield state
