"""spotctl -- Spotify Connect remote control with PKCE authentication.

This package authenticates a desktop application to Spotify using the OAuth2
Authorization Code flow with PKCE (no client secret), persists the resulting
token between runs, refreshes it lazily before expiry, and exposes a small
playback-control surface on top of the authenticated session.

Typical library usage::

    from spotctl.session import Session
    from spotctl.playback import Player

    session = Session(client_id="abc")
    if not session.is_connected:
        session.authenticate(timeout=60)
    Player(session).pause()

Modules:
    app: Typer application factory and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration management.
    session: Token ownership, lazy refresh, and cache loading.
    playback: Playback and device operations over a session.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
