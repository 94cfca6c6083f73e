"""Tests for the platform browser launcher."""

from __future__ import annotations

import re
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from spotctl.auth.browser import launch_commands, open_browser
from spotctl.auth.flow import build_authorize_url
from spotctl.exceptions import BrowserLaunchError

URL = "https://accounts.spotify.com/authorize?client_id=abc&state=s"


class TestLaunchCommands:
    def test_windows_escapes_ampersands(self) -> None:
        escaped = "https://accounts.spotify.com/authorize?client_id=abc^&state=s"
        assert launch_commands(URL, "win32") == [["cmd", "/c", "start", "", escaped]]

    def test_windows_command_line_keeps_query_intact(self) -> None:
        url = build_authorize_url("abc", "http://127.0.0.1:8888/callback", "s", "c")
        line = subprocess.list2cmdline(launch_commands(url, "win32")[0])

        assert line.startswith('cmd /c start "" https://accounts.spotify.com/authorize?')
        assert "^&client_id=abc^&" in line
        assert re.search(r"(?<!\^)&", line) is None

    def test_macos(self) -> None:
        assert launch_commands(URL, "darwin") == [["open", URL]]

    def test_linux_fallback_order(self) -> None:
        assert launch_commands(URL, "linux") == [
            ["xdg-open", URL],
            ["gio", "open", URL],
            ["kde-open", URL],
        ]


class TestOpenBrowser:
    def test_fire_and_forget(self) -> None:
        with patch("spotctl.auth.browser.subprocess.Popen") as popen:
            open_browser(URL, platform="linux")

        popen.assert_called_once()
        args, kwargs = popen.call_args
        assert args[0] == ["xdg-open", URL]
        assert kwargs["stdout"] is subprocess.DEVNULL
        assert kwargs["stderr"] is subprocess.DEVNULL
        popen.return_value.wait.assert_not_called()

    def test_falls_back_when_executable_missing(self) -> None:
        with patch(
            "spotctl.auth.browser.subprocess.Popen",
            side_effect=[FileNotFoundError("xdg-open"), MagicMock()],
        ) as popen:
            open_browser(URL, platform="linux")

        assert popen.call_count == 2
        assert popen.call_args[0][0] == ["gio", "open", URL]

    def test_raises_when_nothing_can_be_spawned(self) -> None:
        with patch(
            "spotctl.auth.browser.subprocess.Popen",
            side_effect=FileNotFoundError("missing"),
        ):
            with pytest.raises(BrowserLaunchError, match="could not open a browser"):
                open_browser(URL, platform="linux")

    def test_macos_uses_open(self) -> None:
        with patch("spotctl.auth.browser.subprocess.Popen") as popen:
            open_browser(URL, platform="darwin")
        assert popen.call_args[0][0] == ["open", URL]
