"""Shared fixtures for the capture pipeline tests."""
from __future__ import annotations

import io

import pytest

from livecaption.config import Settings


@pytest.fixture
def settings() -> Settings:
    return Settings(session_seconds=5.0, stop_grace_seconds=1.0, frame_samples=8)


@pytest.fixture
def out() -> io.StringIO:
    return io.StringIO()
