"""Shared test fixtures for spotctl.

Provides isolated config directories, a controllable clock, token
factories, free loopback ports, and a CLI runner. These
fixtures are discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

import logging
import socket
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

import pytest

from spotctl.models import TokenRecord
from spotctl.output import reset_output


NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Auto-reset global state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _reset_logging_between_tests() -> None:
    """Drop the CLI's stderr handler so it never points at a closed stream."""
    yield
    logger = logging.getLogger("spotctl")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Time and tokens
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable clock returning a fixed aware UTC time that tests can advance."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_token(clock: FakeClock) -> Callable[..., TokenRecord]:
    """Factory for TokenRecords expiring ``expires_in`` seconds after the clock."""

    def _make(expires_in: float = 3600, **overrides: Any) -> TokenRecord:
        data: dict[str, Any] = {
            "access_token": "AT",
            "token_type": "Bearer",
            "refresh_token": "RT",
            "expiry": clock.now + timedelta(seconds=expires_in),
            "client_id": "abc",
            "scope": "user-read-playback-state",
        }
        data.update(overrides)
        return TokenRecord(**data)

    return _make


# ---------------------------------------------------------------------------
# Networking
# ---------------------------------------------------------------------------


@pytest.fixture
def free_port() -> int:
    """A loopback TCP port that was free a moment ago."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def redirect_uri(free_port: int) -> str:
    return f"http://127.0.0.1:{free_port}/callback"


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path,
    forces the XDG layout, and clears all SPOTCTL_* environment variables.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("spotctl.config._is_xdg_platform", lambda: True)

    for var in ["SPOTCTL_CLIENT_ID", "SPOTCTL_REDIRECT_URI"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
