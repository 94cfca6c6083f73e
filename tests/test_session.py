"""Tests for the Session: validity window, lazy refresh, cache loading, disconnect."""

from __future__ import annotations

import logging
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

import httpx
import pytest

from spotctl.auth.exchange import TokenExchanger
from spotctl.auth.token_cache import FileTokenCache, MemoryTokenCache
from spotctl.client.api import SpotifyAPI
from spotctl.exceptions import NoRefreshTokenError, TokenCacheError, TokenExchangeError
from spotctl.models import TokenRecord
from spotctl.session import Session


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TokenServer:
    """MockTransport handler standing in for the Spotify token endpoint."""

    def __init__(self, status: int = 200, body: Optional[dict[str, Any]] = None) -> None:
        self.status = status
        self.body = body if body is not None else {
            "access_token": "NEW",
            "token_type": "Bearer",
            "expires_in": 3600,
        }
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        return httpx.Response(self.status, json=self.body)


class BrokenCache(MemoryTokenCache):
    def __init__(self, record: Optional[TokenRecord] = None, fail_on: str = "save") -> None:
        super().__init__(record)
        self.fail_on = fail_on

    def save(self, record: TokenRecord) -> None:
        if self.fail_on == "save":
            raise TokenCacheError("disk full")
        super().save(record)

    def clear(self) -> None:
        if self.fail_on == "clear":
            raise TokenCacheError("permission denied")
        super().clear()


def _session(cache, clock, token_server: Optional[TokenServer] = None, client_id: str = "abc"):
    token_server = token_server or TokenServer()
    exchanger = TokenExchanger(
        http_client=httpx.Client(transport=httpx.MockTransport(token_server)), clock=clock
    )
    transport = httpx.MockTransport(lambda request: httpx.Response(204))
    return Session(
        client_id,
        cache=cache,
        exchanger=exchanger,
        api_factory=lambda token: SpotifyAPI(token, transport=transport),
        clock=clock,
    )


# ---------------------------------------------------------------------------
# Validity window and refresh
# ---------------------------------------------------------------------------


class TestTokenValidity:
    def test_59_seconds_is_not_valid(self, clock, make_token) -> None:
        session = _session(MemoryTokenCache(), clock)
        session.install(make_token(expires_in=59))
        assert session.is_connected
        assert session.is_token_valid is False

    def test_61_seconds_is_valid(self, clock, make_token) -> None:
        session = _session(MemoryTokenCache(), clock)
        session.install(make_token(expires_in=61))
        assert session.is_token_valid is True

    def test_disconnected_is_not_valid(self, clock) -> None:
        session = _session(MemoryTokenCache(), clock)
        assert session.is_connected is False
        assert session.is_token_valid is False
        assert session.token is None
        assert session.api is None


class TestRefreshIfNeeded:
    def test_valid_token_makes_no_network_calls(self, clock, make_token) -> None:
        server = TokenServer()
        session = _session(MemoryTokenCache(), clock, server)
        session.install(make_token(expires_in=3600))

        session.refresh_if_needed()
        session.refresh_if_needed()

        assert server.calls == 0
        assert session.token.access_token == "AT"

    def test_disconnected_is_a_no_op(self, clock) -> None:
        server = TokenServer()
        session = _session(MemoryTokenCache(), clock, server)
        session.refresh_if_needed()
        assert server.calls == 0
        assert not session.is_connected

    def test_refreshes_near_expiry(self, clock, make_token) -> None:
        cache = MemoryTokenCache()
        server = TokenServer()
        session = _session(cache, clock, server)
        session.install(make_token(expires_in=30), persist=False)

        session.refresh_if_needed()

        assert server.calls == 1
        assert session.token.access_token == "NEW"
        assert session.token.refresh_token == "RT"
        assert session.api.token.access_token == "NEW"
        assert cache.load().access_token == "NEW"

    def test_missing_refresh_token(self, clock, make_token) -> None:
        server = TokenServer()
        session = _session(MemoryTokenCache(), clock, server)
        session.install(make_token(expires_in=10, refresh_token=None))

        with pytest.raises(NoRefreshTokenError):
            session.refresh_if_needed()
        assert server.calls == 0

    def test_refresh_failure_propagates(self, clock, make_token) -> None:
        session = _session(MemoryTokenCache(), clock, TokenServer(status=500, body={}))
        session.install(make_token(expires_in=10))

        with pytest.raises(TokenExchangeError):
            session.refresh_if_needed()
        assert session.token.access_token == "AT"


# ---------------------------------------------------------------------------
# Install / disconnect
# ---------------------------------------------------------------------------


class TestInstall:
    def test_install_persists(self, clock, make_token) -> None:
        cache = MemoryTokenCache()
        session = _session(cache, clock)
        session.install(make_token())
        assert cache.load().access_token == "AT"

    def test_save_failure_keeps_session_connected(
        self, clock, make_token, caplog: pytest.LogCaptureFixture
    ) -> None:
        session = _session(BrokenCache(fail_on="save"), clock)
        with caplog.at_level(logging.WARNING, logger="spotctl"):
            session.install(make_token())

        assert session.is_connected
        assert "disk full" in caplog.text

    def test_api_sends_bearer_token(self, clock, make_token) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers["authorization"])
            return httpx.Response(204)

        session = Session(
            "abc",
            cache=MemoryTokenCache(),
            exchanger=TokenExchanger(
                http_client=httpx.Client(transport=httpx.MockTransport(TokenServer()))
            ),
            api_factory=lambda token: SpotifyAPI(token, transport=httpx.MockTransport(handler)),
            clock=clock,
        )
        session.install(make_token(access_token="XYZ"))
        session.api.pause()
        assert seen == ["Bearer XYZ"]

    def test_replaced_client_stays_usable_until_close(self, clock, make_token) -> None:
        session = _session(MemoryTokenCache(), clock)
        session.install(make_token(access_token="OLD"))
        held = session.api

        session.install(make_token(access_token="NEW"))
        held.pause()
        assert session.api is not held

        current = session.api
        session.close()
        assert held._client.is_closed
        assert current._client.is_closed

    def test_disconnected_client_closed_by_close(self, clock, make_token) -> None:
        session = _session(MemoryTokenCache(), clock)
        session.install(make_token())
        held = session.api

        session.disconnect()
        held.pause()

        session.close()
        assert held._client.is_closed


class TestDisconnect:
    def test_disconnect_clears_cache(self, clock, make_token) -> None:
        cache = MemoryTokenCache()
        session = _session(cache, clock)
        session.install(make_token())

        session.disconnect()

        assert cache.load() is None
        assert session.is_connected is False
        assert session.token is None

    def test_disconnect_when_disconnected(self, clock) -> None:
        session = _session(MemoryTokenCache(), clock)
        session.disconnect()
        assert not session.is_connected

    def test_clear_failure_is_raised_after_disconnecting(self, clock, make_token) -> None:
        session = _session(BrokenCache(fail_on="clear"), clock)
        session.install(make_token())

        with pytest.raises(TokenCacheError):
            session.disconnect()
        assert session.is_connected is False

    def test_file_cache_disconnect(self, tmp_path: Path, clock, make_token) -> None:
        cache = FileTokenCache(tmp_path / "token.json")
        session = _session(cache, clock)
        session.install(make_token())
        assert cache.path.exists()

        session.disconnect()
        assert cache.load() is None


# ---------------------------------------------------------------------------
# Loading the persisted token
# ---------------------------------------------------------------------------


class TestLoadFromCache:
    def test_valid_record_is_installed_without_resave(self, clock, make_token) -> None:
        cache = MemoryTokenCache(make_token(expires_in=3600))
        server = TokenServer()
        session = _session(cache, clock, server)

        assert session.is_connected
        assert session.token.access_token == "AT"
        assert server.calls == 0
        assert cache.saves == 0

    def test_expired_record_is_refreshed(self, clock, make_token) -> None:
        """An hour-old token with a refresh token comes back as NEW, keeping RT."""
        cache = MemoryTokenCache(make_token(expires_in=-3600, access_token="OLD"))
        server = TokenServer()
        session = _session(cache, clock, server)

        assert server.calls == 1
        assert session.is_connected
        assert session.token.access_token == "NEW"
        assert session.token.refresh_token == "RT"
        assert session.token.expiry == clock.now + timedelta(seconds=3600)
        assert cache.load().access_token == "NEW"

    def test_record_expiring_within_five_minutes_is_refreshed(self, clock, make_token) -> None:
        server = TokenServer()
        session = _session(MemoryTokenCache(make_token(expires_in=240)), clock, server)
        assert server.calls == 1
        assert session.token.access_token == "NEW"

    def test_record_at_exactly_five_minutes_is_refreshed(self, clock, make_token) -> None:
        server = TokenServer()
        _session(MemoryTokenCache(make_token(expires_in=300)), clock, server)
        assert server.calls == 1

    def test_other_client_id_is_ignored(self, clock, make_token) -> None:
        record = make_token(client_id="other")
        cache = MemoryTokenCache(record)
        server = TokenServer()
        session = _session(cache, clock, server)

        assert not session.is_connected
        assert cache.load() == record
        assert server.calls == 0

    def test_expired_without_refresh_token_is_cleared(self, clock, make_token) -> None:
        cache = MemoryTokenCache(make_token(expires_in=-60, refresh_token=None))
        session = _session(cache, clock)

        assert not session.is_connected
        assert cache.load() is None

    def test_refresh_failure_clears_cache(self, clock, make_token) -> None:
        cache = MemoryTokenCache(make_token(expires_in=-60))
        session = _session(cache, clock, TokenServer(status=400, body={"error": "invalid_grant"}))

        assert not session.is_connected
        assert cache.load() is None

    def test_unreadable_cache_leaves_session_disconnected(
        self, tmp_path: Path, clock, caplog: pytest.LogCaptureFixture
    ) -> None:
        path = tmp_path / "token.json"
        path.write_text("garbage")
        with caplog.at_level(logging.WARNING, logger="spotctl"):
            session = _session(FileTokenCache(path), clock)

        assert not session.is_connected
        assert path.exists()
        assert "unreadable" in caplog.text

    def test_empty_cache(self, clock) -> None:
        assert not _session(MemoryTokenCache(), clock).is_connected
