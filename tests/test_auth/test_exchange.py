"""Tests for the token endpoint client."""

from __future__ import annotations

from datetime import timedelta
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest

from spotctl.auth.exchange import TOKEN_URL, TokenExchanger
from spotctl.exceptions import TokenExchangeError


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _token_response(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "access_token": "AT",
        "token_type": "Bearer",
        "refresh_token": "RT",
        "expires_in": 3600,
        "scope": "user-read-playback-state",
    }
    data.update(overrides)
    return {k: v for k, v in data.items() if v is not None}


class _TokenEndpoint:
    """MockTransport handler that records form posts and replies with a fixed response."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response

    @property
    def form(self) -> dict[str, str]:
        body = parse_qs(self.requests[-1].content.decode())
        return {k: v[0] for k, v in body.items()}


def _exchanger(endpoint, clock) -> TokenExchanger:
    client = httpx.Client(transport=httpx.MockTransport(endpoint))
    return TokenExchanger(http_client=client, clock=clock)


# ---------------------------------------------------------------------------
# Authorization code grant
# ---------------------------------------------------------------------------


class TestExchangeCode:
    def test_sends_form_fields(self, clock) -> None:
        endpoint = _TokenEndpoint(httpx.Response(200, json=_token_response()))
        _exchanger(endpoint, clock).exchange_code(
            "AUTHCODE", "VERIFIER", "http://localhost:8888/callback", "abc"
        )

        request = endpoint.requests[0]
        assert request.method == "POST"
        assert str(request.url) == TOKEN_URL
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"
        assert endpoint.form == {
            "grant_type": "authorization_code",
            "code": "AUTHCODE",
            "redirect_uri": "http://localhost:8888/callback",
            "client_id": "abc",
            "code_verifier": "VERIFIER",
        }

    def test_builds_token_record(self, clock) -> None:
        endpoint = _TokenEndpoint(httpx.Response(200, json=_token_response()))
        record = _exchanger(endpoint, clock).exchange_code("C", "V", "http://x/callback", "abc")

        assert record.access_token == "AT"
        assert record.refresh_token == "RT"
        assert record.token_type == "Bearer"
        assert record.client_id == "abc"
        assert record.scope == "user-read-playback-state"
        assert record.expiry == clock.now + timedelta(seconds=3600)

    def test_missing_token_type_defaults_to_bearer(self, clock) -> None:
        endpoint = _TokenEndpoint(httpx.Response(200, json=_token_response(token_type=None)))
        record = _exchanger(endpoint, clock).exchange_code("C", "V", "http://x/callback", "abc")
        assert record.token_type == "Bearer"

    def test_http_error_carries_status(self, clock) -> None:
        endpoint = _TokenEndpoint(httpx.Response(400, json={"error": "invalid_grant"}))
        with pytest.raises(TokenExchangeError) as exc_info:
            _exchanger(endpoint, clock).exchange_code("C", "V", "http://x/callback", "abc")
        assert exc_info.value.status_code == 400
        assert exc_info.value.network_error is None
        assert "invalid_grant" in str(exc_info.value)

    def test_network_error_is_wrapped(self, clock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        exchanger = TokenExchanger(
            http_client=httpx.Client(transport=httpx.MockTransport(handler)), clock=clock
        )
        with pytest.raises(TokenExchangeError) as exc_info:
            exchanger.exchange_code("C", "V", "http://x/callback", "abc")
        assert isinstance(exc_info.value.network_error, httpx.ConnectError)
        assert exc_info.value.status_code is None

    def test_missing_access_token(self, clock) -> None:
        endpoint = _TokenEndpoint(httpx.Response(200, json={"token_type": "Bearer"}))
        with pytest.raises(TokenExchangeError, match="access_token"):
            _exchanger(endpoint, clock).exchange_code("C", "V", "http://x/callback", "abc")

    def test_non_json_body(self, clock) -> None:
        endpoint = _TokenEndpoint(httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(TokenExchangeError, match="invalid JSON"):
            _exchanger(endpoint, clock).exchange_code("C", "V", "http://x/callback", "abc")


# ---------------------------------------------------------------------------
# Refresh grant
# ---------------------------------------------------------------------------


class TestRefresh:
    def test_sends_form_fields(self, clock) -> None:
        endpoint = _TokenEndpoint(httpx.Response(200, json=_token_response()))
        _exchanger(endpoint, clock).refresh("RT", "abc")
        assert endpoint.form == {
            "grant_type": "refresh_token",
            "refresh_token": "RT",
            "client_id": "abc",
        }

    def test_preserves_refresh_token_when_absent(self, clock, make_token) -> None:
        endpoint = _TokenEndpoint(
            httpx.Response(200, json=_token_response(access_token="NEW", refresh_token=None))
        )
        previous = make_token(access_token="OLD", refresh_token="RT")
        record = _exchanger(endpoint, clock).refresh("RT", "abc", previous=previous)

        assert record.access_token == "NEW"
        assert record.refresh_token == "RT"

    def test_uses_rotated_refresh_token(self, clock) -> None:
        endpoint = _TokenEndpoint(httpx.Response(200, json=_token_response(refresh_token="RT2")))
        record = _exchanger(endpoint, clock).refresh("RT", "abc")
        assert record.refresh_token == "RT2"

    def test_keeps_previous_scope_when_absent(self, clock, make_token) -> None:
        endpoint = _TokenEndpoint(httpx.Response(200, json=_token_response(scope=None)))
        previous = make_token(scope="user-modify-playback-state")
        record = _exchanger(endpoint, clock).refresh("RT", "abc", previous=previous)
        assert record.scope == "user-modify-playback-state"

    def test_http_error(self, clock) -> None:
        endpoint = _TokenEndpoint(httpx.Response(401, text="unauthorized"))
        with pytest.raises(TokenExchangeError) as exc_info:
            _exchanger(endpoint, clock).refresh("RT", "abc")
        assert exc_info.value.status_code == 401
