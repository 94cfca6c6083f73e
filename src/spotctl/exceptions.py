"""Exception hierarchy for spotctl.

All exceptions inherit from :class:`SpotctlError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`spotctl.exit_codes`.
The top-level error handler in :func:`spotctl.app.main` catches
``SpotctlError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    SpotctlError (exit 1)
    +-- ConfigError             (exit 1)
    +-- NotConnectedError       (exit 3)
    +-- AuthError               (exit 4)
    |   +-- PortBusyError
    |   +-- InvalidRedirectError
    |   +-- AuthTimeoutError
    |   +-- InvalidStateError
    |   +-- TokenExchangeError
    |   +-- NoRefreshTokenError
    |   +-- BrowserLaunchError
    +-- AuthInterruptedError    (exit 130)
    +-- TokenCacheError         (exit 1)
    +-- NotFoundError           (exit 5)
    |   +-- NothingPlayingError
    |   +-- NoActivePlaybackError
    |   +-- DeviceNotFoundError
    +-- UpstreamError           (exit 6)
        +-- ServerError
        +-- ConnectionError_    (exit 7)
"""

from __future__ import annotations

from spotctl.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INTERRUPTED,
    EXIT_NOT_CONNECTED,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class SpotctlError(Exception):
    """Base exception for all spotctl errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`spotctl.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(SpotctlError):
    """Raised for configuration problems (missing client id, invalid JSON, unknown keys)."""

    exit_code = EXIT_GENERIC_FAILURE


class NotConnectedError(SpotctlError):
    """Raised when a playback operation is attempted without a valid session."""

    exit_code = EXIT_NOT_CONNECTED

    def __init__(self, message: str = "not connected to Spotify", exit_code: int | None = None):
        super().__init__(message, exit_code)


# --- Authentication ---


class AuthError(SpotctlError):
    """Raised when authentication fails.

    Used directly for provider-reported failures (``?error=access_denied``
    on the callback) and as the base class of every other auth failure.
    """

    exit_code = EXIT_AUTH_FAILURE


class PortBusyError(AuthError):
    """Raised when the loopback callback listener cannot bind its port."""


class InvalidRedirectError(AuthError):
    """Raised when the configured redirect URI cannot be parsed."""


class AuthTimeoutError(AuthError):
    """Raised when no callback arrives before the authentication deadline."""


class InvalidStateError(AuthError):
    """Raised when the callback ``state`` differs from the nonce that was sent."""

    def __init__(self, message: str = "invalid state parameter", exit_code: int | None = None):
        super().__init__(message, exit_code)


class TokenExchangeError(AuthError):
    """Raised when the token endpoint rejects a request or cannot be reached.

    Exactly one of ``status_code`` (non-2xx response) or ``network_error``
    (transport failure) is normally set. Both are ``None`` when the
    response was received but could not be interpreted.

    Args:
        message: Human-readable error description.
        status_code: HTTP status code returned by the token endpoint.
        network_error: The underlying transport exception.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        network_error: Exception | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.network_error = network_error


class NoRefreshTokenError(AuthError):
    """Raised when a refresh is required but no refresh token is stored."""

    def __init__(self, message: str = "no refresh token available", exit_code: int | None = None):
        super().__init__(message, exit_code)


class BrowserLaunchError(AuthError):
    """Raised when no browser command could be spawned.

    Non-fatal inside the authentication flow: the URL is reported to the
    user and the flow keeps waiting for the callback.
    """


class AuthInterruptedError(SpotctlError):
    """Raised when the callback rendezvous is closed before a result arrives.

    This signals application shutdown, not an authentication failure.
    """

    exit_code = EXIT_INTERRUPTED

    def __init__(
        self,
        message: str = "authentication was interrupted by application shutdown",
        exit_code: int | None = None,
    ):
        super().__init__(message, exit_code)


class TokenCacheError(SpotctlError):
    """Raised when the persisted token cache cannot be read, written, or removed."""

    exit_code = EXIT_GENERIC_FAILURE


# --- Playback / upstream ---


class NotFoundError(SpotctlError):
    """Raised when the API returns HTTP 404 or a requested entity does not exist."""

    exit_code = EXIT_NOT_FOUND


class NothingPlayingError(NotFoundError):
    """Raised when Spotify reports no currently playing item."""

    def __init__(self, message: str = "no track currently playing", exit_code: int | None = None):
        super().__init__(message, exit_code)


class NoActivePlaybackError(NotFoundError):
    """Raised when Spotify reports no active playback session."""

    def __init__(self, message: str = "no active playback", exit_code: int | None = None):
        super().__init__(message, exit_code)


class DeviceNotFoundError(NotFoundError):
    """Raised when a device selector matches none of the available devices."""


class UpstreamError(SpotctlError):
    """Raised when a Spotify Web API call fails.

    Playback operations wrap lower-level failures in this type with a
    message naming the operation (``"failed to pause playback: ..."``).
    """

    exit_code = EXIT_SERVER_ERROR


class ServerError(UpstreamError):
    """Raised when the API returns an HTTP error status other than 401/403/404."""


class ConnectionError_(UpstreamError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR
