"""Thin synchronous client for the Spotify Web API player endpoints.

:class:`SpotifyAPI` wraps :class:`httpx.Client` with the session's token
installed as a static ``Authorization`` header. Methods return the decoded
JSON body, or ``None`` for ``204 No Content`` (Spotify's answer when nothing
is playing). Error statuses are mapped to the exception hierarchy:

* 401 / 403 -- :class:`~spotctl.exceptions.AuthError`
* 404 -- :class:`~spotctl.exceptions.NotFoundError`
* other 4xx and 5xx -- :class:`~spotctl.exceptions.ServerError`
* network failures -- :class:`~spotctl.exceptions.ConnectionError_`

Every request is a single attempt.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from spotctl.exceptions import AuthError, ConnectionError_, NotFoundError, ServerError
from spotctl.models import TokenRecord

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.spotify.com/v1"


class SpotifyAPI:
    """Spotify Web API client bound to one access token.

    Args:
        token: The token sent as a bearer credential on every request.
        base_url: API root, without trailing slash.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests pass a
            :class:`httpx.MockTransport`).

    Example::

        with SpotifyAPI(token) as api:
            devices = api.devices()
    """

    def __init__(
        self,
        token: TokenRecord,
        base_url: str = API_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._token = token
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Accept": "application/json",
                "Authorization": token.authorization_header,
            },
        )

    @property
    def token(self) -> TokenRecord:
        return self._token

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> SpotifyAPI:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Player endpoints
    # ------------------------------------------------------------------ #

    def currently_playing(self) -> Optional[dict[str, Any]]:
        """``GET /me/player/currently-playing``; ``None`` when nothing is playing."""
        return self.request("GET", "/me/player/currently-playing")

    def player_state(self) -> Optional[dict[str, Any]]:
        """``GET /me/player``; ``None`` when there is no active session."""
        return self.request("GET", "/me/player")

    def devices(self) -> list[dict[str, Any]]:
        """``GET /me/player/devices``."""
        body = self.request("GET", "/me/player/devices") or {}
        return list(body.get("devices") or [])

    def transfer(self, device_id: str, play: bool = False) -> None:
        """``PUT /me/player`` moving playback to *device_id*."""
        self.request("PUT", "/me/player", json_body={"device_ids": [device_id], "play": play})

    def play(self, device_id: Optional[str] = None) -> None:
        self.request("PUT", "/me/player/play", params=_device_param(device_id))

    def pause(self, device_id: Optional[str] = None) -> None:
        self.request("PUT", "/me/player/pause", params=_device_param(device_id))

    def next(self, device_id: Optional[str] = None) -> None:
        self.request("POST", "/me/player/next", params=_device_param(device_id))

    def previous(self, device_id: Optional[str] = None) -> None:
        self.request("POST", "/me/player/previous", params=_device_param(device_id))

    def volume(self, percent: int, device_id: Optional[str] = None) -> None:
        params = {"volume_percent": percent, **_device_param(device_id)}
        self.request("PUT", "/me/player/volume", params=params)

    def shuffle(self, state: bool, device_id: Optional[str] = None) -> None:
        params = {"state": "true" if state else "false", **_device_param(device_id)}
        self.request("PUT", "/me/player/shuffle", params=params)

    def repeat(self, state: str, device_id: Optional[str] = None) -> None:
        params = {"state": state, **_device_param(device_id)}
        self.request("PUT", "/me/player/repeat", params=params)

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #

    def request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[Any] = None,
    ) -> Any:
        """Send one request and return the decoded body.

        Returns:
            The parsed JSON body, or ``None`` for an empty response.

        Raises:
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            ServerError: On any other error status or an undecodable body.
            ConnectionError_: On network and timeout errors.
        """
        logger.debug("%s %s params=%s", method, path, params)
        try:
            response = self._client.request(method, path, params=params, json=json_body)
        except httpx.HTTPError as exc:
            raise ConnectionError_(f"Connection to Spotify failed: {exc}") from exc

        _map_response_error(response)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ServerError(
                f"Spotify returned invalid JSON for {method} {path}"
            ) from exc


def _device_param(device_id: Optional[str]) -> dict[str, str]:
    return {"device_id": device_id} if device_id else {}


def _map_response_error(response: httpx.Response) -> None:
    """Raise a typed exception for error HTTP status codes."""
    status = response.status_code
    if status < 400:
        return

    # Spotify wraps errors as {"error": {"status": ..., "message": ...}}.
    try:
        detail = response.json()
        error = detail.get("error") if isinstance(detail, dict) else None
        if isinstance(error, dict):
            msg = error.get("message") or ""
        elif isinstance(detail, dict):
            msg = str(error or detail.get("message") or "")
        else:
            msg = str(detail)
    except ValueError:
        msg = response.text[:200] if response.text else ""

    full_msg = f"HTTP {status}: {msg}" if msg else f"HTTP {status}"

    if status in (401, 403):
        raise AuthError(full_msg)
    if status == 404:
        raise NotFoundError(full_msg)
    raise ServerError(full_msg)
