"""Spotify authentication: Authorization Code flow with PKCE.

The pieces, in the order a login uses them:

- :func:`new_pkce` -- verifier/challenge pair for one attempt.
- :class:`CallbackServer` -- loopback listener for the browser redirect,
  handing the result over through a :class:`Rendezvous`.
- :func:`open_browser` -- platform browser launcher.
- :class:`TokenExchanger` -- token endpoint client (code and refresh grants).
- :class:`Authenticator` -- runs the whole login for a
  :class:`~spotctl.session.Session`.
- :class:`FileTokenCache` / :class:`MemoryTokenCache` -- token persistence.

Typical usage::

    from spotctl.auth import Authenticator
    from spotctl.session import Session

    session = Session(client_id="abc")
    Authenticator(session).authenticate(timeout=60)
"""

from spotctl.auth.browser import open_browser
from spotctl.auth.callback_server import CallbackServer
from spotctl.auth.exchange import TOKEN_URL, TokenExchanger
from spotctl.auth.flow import (
    AUTHORIZE_URL,
    FIXED_STATE,
    SCOPES,
    Authenticator,
    build_authorize_url,
    fixed_state,
    new_state,
)
from spotctl.auth.pkce import code_challenge, new_pkce
from spotctl.auth.rendezvous import Rendezvous
from spotctl.auth.token_cache import FileTokenCache, MemoryTokenCache, TokenCache

__all__ = [
    "AUTHORIZE_URL",
    "Authenticator",
    "CallbackServer",
    "FIXED_STATE",
    "FileTokenCache",
    "MemoryTokenCache",
    "Rendezvous",
    "SCOPES",
    "TOKEN_URL",
    "TokenCache",
    "TokenExchanger",
    "build_authorize_url",
    "code_challenge",
    "fixed_state",
    "new_pkce",
    "new_state",
    "open_browser",
]
