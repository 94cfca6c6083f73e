"""Token endpoint client for the authorization-code and refresh grants.

Both requests are form-encoded ``POST`` calls to
``https://accounts.spotify.com/api/token``. PKCE replaces the client
secret, so only the ``client_id`` is sent. Each call is a single attempt.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import httpx

from spotctl.exceptions import TokenExchangeError
from spotctl.models import TokenRecord

logger = logging.getLogger(__name__)

TOKEN_URL = "https://accounts.spotify.com/api/token"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenExchanger:
    """Exchanges authorization codes and refresh tokens for access tokens.

    Args:
        token_url: Token endpoint URL.
        http_client: Optional pre-configured :class:`httpx.Client` (tests
            pass one backed by :class:`httpx.MockTransport`). When omitted a
            client is created and owned by this instance.
        timeout: Request timeout in seconds for the owned client.
        clock: Returns the current aware UTC time; used to compute expiry.
    """

    def __init__(
        self,
        token_url: str = TOKEN_URL,
        http_client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._token_url = token_url
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=timeout)
        self._clock = clock

    def exchange_code(
        self,
        code: str,
        code_verifier: str,
        redirect_uri: str,
        client_id: str,
    ) -> TokenRecord:
        """Redeem an authorization code.

        Raises:
            TokenExchangeError: On a non-2xx response, a network failure, or
                a response without ``access_token``.
        """
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": client_id,
            "code_verifier": code_verifier,
        }
        payload = self._post(data, "Token exchange")
        return self._to_record(payload, client_id, previous_refresh=None)

    def refresh(
        self,
        refresh_token: str,
        client_id: str,
        previous: Optional[TokenRecord] = None,
    ) -> TokenRecord:
        """Obtain a new access token with a refresh token.

        Spotify may omit ``refresh_token`` from the response; the prior
        value is kept in that case.

        Raises:
            TokenExchangeError: As for :meth:`exchange_code`.
        """
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": client_id,
        }
        payload = self._post(data, "Token refresh")
        record = self._to_record(payload, client_id, previous_refresh=refresh_token)
        if previous is not None and record.scope is None:
            record = record.model_copy(update={"scope": previous.scope})
        return record

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _post(self, data: dict[str, str], action: str) -> dict[str, Any]:
        logger.debug("%s: POST %s (grant_type=%s)", action, self._token_url, data["grant_type"])
        try:
            response = self._client.post(
                self._token_url,
                data=data,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise TokenExchangeError(f"{action} failed: {exc}", network_error=exc) from exc

        if not response.is_success:
            raise TokenExchangeError(
                f"{action} failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise TokenExchangeError(f"{action} returned invalid JSON") from exc
        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise TokenExchangeError(f"{action} response missing 'access_token' field")
        return payload

    def _to_record(
        self,
        payload: dict[str, Any],
        client_id: str,
        previous_refresh: Optional[str],
    ) -> TokenRecord:
        try:
            expires_in = float(payload.get("expires_in", 3600))
        except (TypeError, ValueError) as exc:
            raise TokenExchangeError(
                f"Token response has invalid 'expires_in': {payload.get('expires_in')!r}"
            ) from exc
        return TokenRecord(
            access_token=payload["access_token"],
            token_type=payload.get("token_type") or "Bearer",
            refresh_token=payload.get("refresh_token") or previous_refresh,
            expiry=self._clock() + timedelta(seconds=expires_in),
            client_id=client_id,
            scope=payload.get("scope"),
        )
