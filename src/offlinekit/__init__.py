"""Offline-first request interception over persistent SQLite caches."""

from __future__ import annotations

__version__ = "0.1.0"
