"""Open a URL in the user's browser with the platform's own launcher.

Windows uses ``cmd /c start`` with shell metacharacters caret-escaped,
macOS ``open``. Other systems try ``xdg-open`` first and fall back to
``gio open`` and ``kde-open`` when the executable is missing. The child is
not waited for and its output is discarded.
"""

from __future__ import annotations

import logging
import re
import subprocess
import sys
from typing import Optional

from spotctl.exceptions import BrowserLaunchError

logger = logging.getLogger(__name__)

# cmd.exe metacharacters that would split or redirect the start command.
_CMD_SPECIAL = re.compile(r"([\^&|<>()])")

_UNIX_LAUNCHERS: tuple[tuple[str, ...], ...] = (
    ("xdg-open",),
    ("gio", "open"),
    ("kde-open",),
)


def launch_commands(url: str, platform: Optional[str] = None) -> list[list[str]]:
    """Return the candidate commands for *url*, in the order they are tried."""
    platform = platform or sys.platform
    if platform.startswith("win"):
        # The empty string is the window title; without it a quoted URL becomes the title.
        return [["cmd", "/c", "start", "", _CMD_SPECIAL.sub(r"^\1", url)]]
    if platform == "darwin":
        return [["open", url]]
    return [[*launcher, url] for launcher in _UNIX_LAUNCHERS]


def open_browser(url: str, platform: Optional[str] = None) -> None:
    """Spawn the platform browser launcher for *url* and return immediately.

    Args:
        url: The page to open.
        platform: ``sys.platform``-style name; defaults to the running platform.

    Raises:
        BrowserLaunchError: If none of the candidate commands could be started.
    """
    failures: list[str] = []
    for command in launch_commands(url, platform):
        try:
            subprocess.Popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            logger.debug("Browser launcher %s failed: %s", command[0], exc)
            failures.append(f"{command[0]}: {exc}")
            continue
        logger.debug("Opened browser with %s", command[0])
        return
    raise BrowserLaunchError("could not open a browser (" + "; ".join(failures) + ")")
