"""Authenticated Spotify session: token ownership, lazy refresh, and persistence.

A :class:`Session` is either *disconnected* or *connected*. Connected means a
:class:`~spotctl.models.TokenRecord` is installed together with a
:class:`~spotctl.client.api.SpotifyAPI` client that sends it as a bearer
token. The pair is swapped as one immutable tuple under a lock, so readers
never see a token without its client.

On construction the session loads the persisted token:

* a record for a different ``client_id`` is ignored and left in place;
* a record expiring within five minutes is refreshed when it carries a
  refresh token, otherwise it is cleared;
* any other record is installed as-is.

A failed refresh at load time clears the cache and leaves the session
disconnected without raising.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from spotctl.auth.exchange import TokenExchanger
from spotctl.auth.token_cache import FileTokenCache, TokenCache
from spotctl.client.api import SpotifyAPI
from spotctl.exceptions import NoRefreshTokenError, TokenCacheError, TokenExchangeError
from spotctl.models import DEFAULT_REDIRECT_URI, TokenRecord

logger = logging.getLogger(__name__)

LOAD_REFRESH_MARGIN = timedelta(minutes=5)

ApiFactory = Callable[[TokenRecord], SpotifyAPI]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Session:
    """Owns the Spotify token and the API client built from it.

    Args:
        client_id: Spotify application client id.
        redirect_uri: Redirect URI registered with the application.
        cache: Token persistence. Defaults to a :class:`FileTokenCache`.
        exchanger: Token endpoint client. Defaults to a new
            :class:`TokenExchanger` owned by the session.
        api_factory: Builds the API client for an installed token.
        clock: Returns the current aware UTC time.
    """

    def __init__(
        self,
        client_id: str,
        redirect_uri: str = DEFAULT_REDIRECT_URI,
        cache: Optional[TokenCache] = None,
        exchanger: Optional[TokenExchanger] = None,
        api_factory: ApiFactory = SpotifyAPI,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._client_id = client_id
        self._redirect_uri = redirect_uri
        self._clock = clock or utcnow
        self._cache: TokenCache = cache if cache is not None else FileTokenCache()
        self._owns_exchanger = exchanger is None
        self._exchanger = exchanger or TokenExchanger(clock=self._clock)
        self._api_factory = api_factory

        self._lock = threading.Lock()
        self._refresh_lock = threading.Lock()
        self._state: Optional[tuple[TokenRecord, SpotifyAPI]] = None
        # Replaced clients may still be in use by another thread until close().
        self._retired: list[SpotifyAPI] = []

        self.pending_state: Optional[str] = None
        """State nonce of the login attempt in flight, if any."""

        self._load_cached()

    # ------------------------------------------------------------------ #
    # Read-only view
    # ------------------------------------------------------------------ #

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def redirect_uri(self) -> str:
        return self._redirect_uri

    @property
    def exchanger(self) -> TokenExchanger:
        return self._exchanger

    @property
    def token(self) -> Optional[TokenRecord]:
        state = self._state
        return state[0] if state else None

    @property
    def api(self) -> Optional[SpotifyAPI]:
        state = self._state
        return state[1] if state else None

    @property
    def is_connected(self) -> bool:
        return self._state is not None

    @property
    def is_token_valid(self) -> bool:
        """``True`` while the installed token outlives now by at least 60 seconds."""
        token = self.token
        return token is not None and token.is_valid(self._clock())

    # ------------------------------------------------------------------ #
    # State transitions
    # ------------------------------------------------------------------ #

    def install(self, token: TokenRecord, persist: bool = True) -> None:
        """Connect the session with *token*, replacing any previous one.

        A failure to persist is logged; the session stays connected.
        """
        api = self._api_factory(token)
        with self._lock:
            previous, self._state = self._state, (token, api)
            if previous is not None:
                self._retired.append(previous[1])
        logger.debug("Installed token expiring at %s", token.expiry.isoformat())

        if persist:
            try:
                self._cache.save(token)
            except TokenCacheError as exc:
                logger.warning("Could not save Spotify token: %s", exc)

    def refresh_if_needed(self) -> None:
        """Refresh the token when it is about to expire.

        Does nothing (and makes no network call) when the session is
        disconnected or the token is still valid.

        Raises:
            NoRefreshTokenError: The token expired and has no refresh token.
            TokenExchangeError: The refresh request failed.
        """
        with self._refresh_lock:
            token = self.token
            if token is None or token.is_valid(self._clock()):
                return
            if not token.refresh_token:
                raise NoRefreshTokenError()
            logger.debug("Access token expires at %s, refreshing", token.expiry.isoformat())
            refreshed = self._exchanger.refresh(
                token.refresh_token, self._client_id, previous=token
            )
            self.install(refreshed)

    def disconnect(self) -> None:
        """Drop the in-memory token and clear the persisted one.

        The session is disconnected even if clearing the cache fails.

        Raises:
            TokenCacheError: The cache could not be cleared.
        """
        with self._lock:
            previous, self._state = self._state, None
            if previous is not None:
                self._retired.append(previous[1])
        self._cache.clear()

    def authenticate(self, timeout: float = 60.0, **options: Any) -> TokenRecord:
        """Run the interactive browser login and connect the session.

        Keyword options are passed to :class:`~spotctl.auth.flow.Authenticator`.
        """
        from spotctl.auth.flow import Authenticator

        return Authenticator(self, **options).authenticate(timeout)

    def close(self) -> None:
        """Release HTTP clients, including replaced ones. The session keeps its token."""
        with self._lock:
            clients, self._retired = self._retired, []
            if self._state is not None:
                clients.append(self._state[1])
        for api in clients:
            api.close()
        if self._owns_exchanger:
            self._exchanger.close()

    def __enter__(self) -> Session:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Cache loading
    # ------------------------------------------------------------------ #

    def _load_cached(self) -> None:
        try:
            record = self._cache.load()
        except TokenCacheError as exc:
            logger.warning("Ignoring unreadable Spotify token cache: %s", exc)
            return
        if record is None:
            return

        if record.client_id != self._client_id:
            logger.debug(
                "Cached token belongs to client %s, not %s; ignoring it",
                record.client_id,
                self._client_id,
            )
            return

        if record.is_valid(self._clock(), margin=LOAD_REFRESH_MARGIN):
            self.install(record, persist=False)
            return

        if not record.refresh_token:
            logger.debug("Cached token expired and has no refresh token; clearing it")
            self._clear_cache_quietly()
            return

        try:
            refreshed = self._exchanger.refresh(
                record.refresh_token, self._client_id, previous=record
            )
        except TokenExchangeError as exc:
            logger.warning("Could not refresh cached Spotify token: %s", exc)
            self._clear_cache_quietly()
            return
        self.install(refreshed)

    def _clear_cache_quietly(self) -> None:
        try:
            self._cache.clear()
        except TokenCacheError as exc:
            logger.warning("Could not clear Spotify token cache: %s", exc)
