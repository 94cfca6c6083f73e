"""stderr logging for the spotctl CLI.

Library modules only create ``logging.getLogger(__name__)`` loggers. The CLI
calls :func:`configure_logging` once so those records reach the terminal:
warnings and errors by default, everything with ``--verbose``.
"""

from __future__ import annotations

import logging
import sys

_HANDLER_NAME = "spotctl-stderr"
_FORMAT = "%(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool = False, quiet: bool = False) -> logging.Logger:
    """Attach a stderr handler to the ``spotctl`` logger. Safe to call repeatedly.

    Args:
        verbose: Log at DEBUG level.
        quiet: Log errors only.

    Returns:
        The configured package logger.
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING

    root = logging.getLogger("spotctl")
    for handler in list(root.handlers):
        if handler.get_name() == _HANDLER_NAME:
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)
    return root
