"""Interactive Authorization Code + PKCE login.

:class:`Authenticator` ties the pieces of a login together:

1. Start the loopback :class:`~spotctl.auth.callback_server.CallbackServer`.
   A bind failure aborts the login before any browser is opened.
2. Build the authorization URL and open it in the browser. A launch failure
   is not fatal: the URL is handed to ``on_url`` so the user can open it.
3. Wait for the redirect.
4. Stop the server, whatever happened.
5. Check the result: provider errors raise
   :class:`~spotctl.exceptions.AuthError`, a foreign ``state`` raises
   :class:`~spotctl.exceptions.InvalidStateError`.
6. Exchange the code and install the token into the session, which
   persists it.

Each attempt sends a fresh random ``state`` nonce by default. Pass
``state_factory=fixed_state`` to send the constant :data:`FIXED_STATE`.
"""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING, Callable, Optional, Sequence
from urllib.parse import urlencode

from spotctl.auth.browser import open_browser
from spotctl.auth.callback_server import CallbackServer
from spotctl.auth.pkce import new_pkce
from spotctl.exceptions import AuthError, BrowserLaunchError, InvalidStateError
from spotctl.models import TokenRecord

if TYPE_CHECKING:
    from spotctl.session import Session

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.spotify.com/authorize"

SCOPES: tuple[str, ...] = (
    "user-read-currently-playing",
    "user-read-playback-state",
    "user-modify-playback-state",
)

FIXED_STATE = "nadctl-state"

DEFAULT_TIMEOUT = 60.0


def new_state() -> str:
    """Return a fresh, unguessable state nonce."""
    return secrets.token_urlsafe(16)


def fixed_state() -> str:
    return FIXED_STATE


def build_authorize_url(
    client_id: str,
    redirect_uri: str,
    state: str,
    challenge: str,
    scopes: Sequence[str] = SCOPES,
    auth_url: str = AUTHORIZE_URL,
) -> str:
    """Build the Spotify authorization URL for one attempt."""
    params = {
        "response_type": "code",
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "state": state,
        "code_challenge": challenge,
        "code_challenge_method": "S256",
        "scope": " ".join(scopes),
        "show_dialog": "true",
    }
    return f"{auth_url}?{urlencode(params)}"


class Authenticator:
    """Runs the browser login for a :class:`~spotctl.session.Session`.

    Args:
        session: Session that receives the token.
        server_factory: Builds the callback server from the redirect URI.
        launcher: Opens a URL in the browser; may raise
            :class:`~spotctl.exceptions.BrowserLaunchError`.
        state_factory: Produces the state nonce for each attempt.
        auth_url: Authorization endpoint.
        scopes: Scopes to request.
        on_url: Called with the authorization URL when the browser could not
            be opened.
    """

    def __init__(
        self,
        session: Session,
        server_factory: Callable[[str], CallbackServer] = CallbackServer,
        launcher: Callable[[str], None] = open_browser,
        state_factory: Callable[[], str] = new_state,
        auth_url: str = AUTHORIZE_URL,
        scopes: Sequence[str] = SCOPES,
        on_url: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._session = session
        self._server_factory = server_factory
        self._launcher = launcher
        self._state_factory = state_factory
        self._auth_url = auth_url
        self._scopes = tuple(scopes)
        self._on_url = on_url

    def authenticate(self, timeout: float = DEFAULT_TIMEOUT) -> TokenRecord:
        """Log in through the browser and connect the session.

        Returns:
            The installed token.

        Raises:
            PortBusyError: The callback port is taken.
            InvalidRedirectError: The redirect URI cannot be used.
            AuthTimeoutError: No redirect within *timeout* seconds.
            AuthInterruptedError: The callback server was stopped while waiting.
            AuthError: The provider reported an error.
            InvalidStateError: The redirect carried a different state nonce.
            TokenExchangeError: The code could not be redeemed.
        """
        session = self._session
        pkce = new_pkce()
        state = self._state_factory()
        url = build_authorize_url(
            session.client_id,
            session.redirect_uri,
            state,
            pkce.challenge,
            self._scopes,
            self._auth_url,
        )

        session.pending_state = state
        try:
            with self._server_factory(session.redirect_uri) as server:
                self._open(url)
                result = server.wait(timeout)
        finally:
            session.pending_state = None

        if result.is_error:
            raise AuthError(result.error or "authentication failed")
        if result.state != state:
            logger.debug("State mismatch: sent %r, received %r", state, result.state)
            raise InvalidStateError()

        token = session.exchanger.exchange_code(
            result.code or "",
            pkce.verifier,
            session.redirect_uri,
            session.client_id,
        )
        session.install(token)
        return token

    def _open(self, url: str) -> None:
        try:
            self._launcher(url)
        except BrowserLaunchError as exc:
            logger.warning("Could not open browser: %s", exc)
            if self._on_url is not None:
                self._on_url(url)
