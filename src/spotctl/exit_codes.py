"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~spotctl.exceptions.SpotctlError` subclass.
Shell wrappers can inspect the exit code to determine the failure class
without parsing stderr.

Example::

    $ spotctl pause
    $ echo $?
    3   # EXIT_NOT_CONNECTED -- run ``spotctl connect`` first
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_NOT_CONNECTED = 3
"""No authenticated Spotify session is available."""

EXIT_AUTH_FAILURE = 4
"""Authentication failed, timed out, or was rejected by the provider."""

EXIT_NOT_FOUND = 5
"""The requested resource (device, track, playback session) was not found."""

EXIT_SERVER_ERROR = 6
"""The Spotify Web API returned an error response."""

EXIT_CONNECTION_ERROR = 7
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_INTERRUPTED = 130
"""The operation was interrupted (Ctrl-C or application shutdown)."""
