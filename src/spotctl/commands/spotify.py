"""Spotify commands -- connect, inspect, and control playback.

These are registered directly on the root application::

    spotctl connect              # browser login, token saved for later runs
    spotctl status               # connection and playback summary
    spotctl devices              # numbered device list
    spotctl transfer 2 --play    # move playback to device #2 and start it
    spotctl volume 40
    spotctl disconnect           # forget the saved token

Each command builds a :class:`~spotctl.session.Session` from the resolved
configuration with :func:`open_session`, so a saved token is picked up (and
refreshed if needed) automatically.
"""

from __future__ import annotations

import contextlib
from typing import Iterator, Optional

import typer

from spotctl.exceptions import (
    ConfigError,
    NoActivePlaybackError,
    NotConnectedError,
    PortBusyError,
    SpotctlError,
)
from spotctl.output import error, format_response, info, print_table, success, suggest
from spotctl.playback import Player
from spotctl.session import Session


def open_session() -> Session:
    """Build a session from the effective configuration and the file token cache."""
    from spotctl.auth.token_cache import FileTokenCache
    from spotctl.config import require_client_id, resolve_spotify_config

    spotify = resolve_spotify_config()
    client_id = require_client_id(spotify)
    return Session(client_id, spotify.redirect_uri, cache=FileTokenCache())


@contextlib.contextmanager
def _player() -> Iterator[Player]:
    with _handle_errors():
        with open_session() as session:
            yield Player(session)


@contextlib.contextmanager
def _handle_errors() -> Iterator[None]:
    """Print a :class:`SpotctlError` with a next-step hint and exit with its code."""
    try:
        yield
    except SpotctlError as exc:
        error(str(exc))
        if isinstance(exc, NotConnectedError):
            suggest("Run: spotctl connect")
        elif isinstance(exc, ConfigError) and "client ID" in str(exc):
            suggest("Create an app at https://developer.spotify.com/dashboard")
        elif isinstance(exc, PortBusyError):
            suggest("Set another port with: spotctl config set spotify.redirect_uri URI")
        raise typer.Exit(code=exc.exit_code) from None


def _format_ms(ms: int) -> str:
    seconds = max(ms, 0) // 1000
    return f"{seconds // 60}:{seconds % 60:02d}"


# ------------------------------------------------------------------ #
# Connection
# ------------------------------------------------------------------ #


def connect_command(
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", help="Seconds to wait for the browser login."
    ),
) -> None:
    """Log in to Spotify through the browser.

    Opens the Spotify authorization page and waits for the redirect on the
    local callback server. The token is saved, so later commands run
    without logging in again.
    """
    from spotctl.auth.flow import fixed_state, new_state
    from spotctl.config import resolve_spotify_config

    with _handle_errors():
        spotify = resolve_spotify_config()
        with open_session() as session:
            if session.is_connected:
                success("Already connected to Spotify")
                return

            info("Opening browser for Spotify authorization...")
            session.authenticate(
                timeout if timeout is not None else spotify.auth_timeout,
                state_factory=new_state if spotify.random_state else fixed_state,
                on_url=lambda url: info(f"Open this URL in your browser:\n{url}"),
            )
        success("Connected to Spotify")


def disconnect_command() -> None:
    """Forget the saved Spotify token."""
    with _handle_errors():
        with open_session() as session:
            session.disconnect()
    success("Disconnected from Spotify")


def status_command() -> None:
    """Show connection status and, when connected, what is playing."""
    with _handle_errors():
        with open_session() as session:
            token = session.token
            status = {
                "connected": session.is_connected,
                "token_valid": session.is_token_valid,
                "expires_at": token.expiry.isoformat() if token else None,
                "client_id": session.client_id,
            }
            if session.is_connected:
                try:
                    state = Player(session).playback_state()
                except NoActivePlaybackError:
                    status["playback"] = "none"
                else:
                    status.update(
                        {
                            "device": state.device_name,
                            "playing": state.is_playing,
                            "track": state.track.name,
                            "artist": state.track.artist,
                            "volume": state.volume,
                            "shuffle": state.shuffle,
                            "repeat": state.repeat.value,
                        }
                    )
    format_response(status)
    if not status["connected"]:
        suggest("Run: spotctl connect")


# ------------------------------------------------------------------ #
# Queries
# ------------------------------------------------------------------ #


def track_command() -> None:
    """Show the track currently playing."""
    with _player() as player:
        track = player.current_track()
    format_response(
        {
            "name": track.name,
            "artist": track.artist,
            "album": track.album,
            "progress": f"{_format_ms(track.progress_ms)} / {_format_ms(track.duration_ms)}",
            "playing": track.is_playing,
            "image_url": track.image_url,
        }
    )


def devices_command() -> None:
    """List Spotify Connect devices. The number can be passed to ``transfer``."""
    with _player() as player:
        devices = player.devices()
    if not devices:
        info("No devices found. Open Spotify on a device first.")
        return
    rows = [
        [
            str(i),
            d.name,
            d.type,
            "yes" if d.is_active else "",
            f"{d.volume_percent}%",
        ]
        for i, d in enumerate(devices, start=1)
    ]
    print_table(["#", "Name", "Type", "Active", "Volume"], rows, title="Devices")


# ------------------------------------------------------------------ #
# Playback control
# ------------------------------------------------------------------ #


def transfer_command(
    device: str = typer.Argument(help="Device number from 'spotctl devices' or part of its name."),
    play: bool = typer.Option(False, "--play", "-p", help="Start playing after the transfer."),
) -> None:
    """Move playback to another device."""
    with _player() as player:
        target = player.find_device(device)
        if target.is_active:
            info(f"{target.name} is already the active device")
            return
        player.transfer_playback(target.id, start_playing=play)
    success(f"Playback transferred to {target.name}")


def play_command() -> None:
    """Resume playback."""
    with _player() as player:
        player.play()
    success("Playing")


def pause_command() -> None:
    """Pause playback."""
    with _player() as player:
        player.pause()
    success("Paused")


def next_command() -> None:
    """Skip to the next track."""
    with _player() as player:
        player.next()
    success("Skipped to next track")


def prev_command() -> None:
    """Go back to the previous track."""
    with _player() as player:
        player.previous()
    success("Back to previous track")


def volume_command(
    level: int = typer.Argument(help="Volume 0-100; values outside are clamped."),
) -> None:
    """Set the playback volume."""
    with _player() as player:
        applied = player.set_volume(level)
    success(f"Volume set to {applied}%")


def shuffle_command() -> None:
    """Toggle shuffle."""
    with _player() as player:
        enabled = player.toggle_shuffle()
    success(f"Shuffle {'on' if enabled else 'off'}")


def repeat_command() -> None:
    """Cycle repeat mode: off, context, track."""
    with _player() as player:
        mode = player.cycle_repeat()
    success(f"Repeat: {mode.value}")


COMMANDS = {
    "connect": connect_command,
    "disconnect": disconnect_command,
    "status": status_command,
    "track": track_command,
    "devices": devices_command,
    "transfer": transfer_command,
    "play": play_command,
    "pause": pause_command,
    "next": next_command,
    "prev": prev_command,
    "volume": volume_command,
    "shuffle": shuffle_command,
    "repeat": repeat_command,
}


def register(app: typer.Typer) -> None:
    """Add every Spotify command to *app*."""
    for name, command in COMMANDS.items():
        app.command(name)(command)
