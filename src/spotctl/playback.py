"""Playback and device control on top of an authenticated session.

Every :class:`Player` operation checks that the session is connected,
refreshes the token if it is about to expire, then issues one Spotify Web
API call. API failures are re-raised as
:class:`~spotctl.exceptions.UpstreamError` naming the operation, with the
original exception chained and its exit code kept.
"""

from __future__ import annotations

import contextlib
import logging
from typing import Any, Iterator, Optional

from spotctl.client.api import SpotifyAPI
from spotctl.exceptions import (
    AuthError,
    DeviceNotFoundError,
    NoActivePlaybackError,
    NotConnectedError,
    NotFoundError,
    NothingPlayingError,
    UpstreamError,
)
from spotctl.models import Device, PlaybackState, RepeatMode, Track
from spotctl.session import Session

logger = logging.getLogger(__name__)

MIN_VOLUME = 0
MAX_VOLUME = 100


@contextlib.contextmanager
def _upstream(action: str) -> Iterator[None]:
    try:
        yield
    except (AuthError, NotFoundError, UpstreamError) as exc:
        raise UpstreamError(f"failed to {action}: {exc}", exit_code=exc.exit_code) from exc


def clamp_volume(percent: int) -> int:
    return max(MIN_VOLUME, min(MAX_VOLUME, percent))


def track_from_api(item: dict[str, Any], progress_ms: int = 0, is_playing: bool = False) -> Track:
    """Map a Spotify track object to a :class:`~spotctl.models.Track`."""
    album = item.get("album") or {}
    images = album.get("images") or []
    artists = [a.get("name", "") for a in item.get("artists") or []]
    return Track(
        name=item.get("name") or "",
        artist=", ".join(artists),
        album=album.get("name") or "",
        duration_ms=item.get("duration_ms") or 0,
        progress_ms=progress_ms or 0,
        is_playing=bool(is_playing),
        image_url=images[0].get("url") if images else None,
    )


def device_from_api(entry: dict[str, Any]) -> Device:
    return Device(
        id=entry.get("id") or "",
        name=entry.get("name") or "",
        type=entry.get("type") or "",
        is_active=bool(entry.get("is_active")),
        is_restricted=bool(entry.get("is_restricted")),
        volume_percent=entry.get("volume_percent") or 0,
    )


def repeat_mode(value: Optional[str]) -> RepeatMode:
    """Parse Spotify's ``repeat_state``; anything unrecognised is ``OFF``."""
    try:
        return RepeatMode(value)
    except ValueError:
        return RepeatMode.OFF


class Player:
    """Playback operations for a :class:`~spotctl.session.Session`."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def _api(self) -> SpotifyAPI:
        if not self._session.is_connected:
            raise NotConnectedError()
        self._session.refresh_if_needed()
        api = self._session.api
        if api is None:
            raise NotConnectedError()
        return api

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def current_track(self) -> Track:
        """Return the item currently playing.

        Raises:
            NothingPlayingError: Spotify reports no current item.
        """
        api = self._api()
        with _upstream("get current track"):
            data = api.currently_playing()
        if not data or not data.get("item"):
            raise NothingPlayingError()
        return track_from_api(data["item"], data.get("progress_ms") or 0, data.get("is_playing"))

    def devices(self) -> list[Device]:
        """Return the user's Spotify Connect devices; possibly empty."""
        api = self._api()
        with _upstream("get devices"):
            entries = api.devices()
        return [device_from_api(entry) for entry in entries]

    def find_device(self, selector: str) -> Device:
        """Pick a device by 1-based index or case-insensitive name substring.

        Raises:
            DeviceNotFoundError: Nothing matches *selector*.
        """
        devices = self.devices()
        selector = selector.strip()
        if selector.isdigit():
            index = int(selector)
            if 1 <= index <= len(devices):
                return devices[index - 1]
        needle = selector.lower()
        for device in devices:
            if needle and needle in device.name.lower():
                return device
        raise DeviceNotFoundError(f"device not found: {selector}")

    def playback_state(self) -> PlaybackState:
        """Return a snapshot of the current playback session.

        Raises:
            NoActivePlaybackError: Spotify reports no active session.
        """
        data = self._raw_state(self._api(), "get playback state")

        device = data.get("device") or {}
        item = data.get("item")
        progress = data.get("progress_ms") or 0
        is_playing = bool(data.get("is_playing"))
        track = track_from_api(item, progress, is_playing) if item else Track()

        return PlaybackState(
            track=track,
            device_name=device.get("name") or "",
            device_id=device.get("id") or "",
            available_devices=self.devices(),
            volume=device.get("volume_percent") or 0,
            is_playing=is_playing,
            shuffle=bool(data.get("shuffle_state")),
            repeat=repeat_mode(data.get("repeat_state")),
            progress_ms=progress,
            duration_ms=track.duration_ms,
        )

    # ------------------------------------------------------------------ #
    # Commands
    # ------------------------------------------------------------------ #

    def transfer_playback(self, device_id: str, start_playing: bool = False) -> None:
        api = self._api()
        with _upstream("transfer playback"):
            api.transfer(device_id, play=start_playing)

    def play(self) -> None:
        api = self._api()
        with _upstream("start playback"):
            api.play()

    def pause(self) -> None:
        api = self._api()
        with _upstream("pause playback"):
            api.pause()

    def next(self) -> None:
        api = self._api()
        with _upstream("skip to next track"):
            api.next()

    def previous(self) -> None:
        api = self._api()
        with _upstream("skip to previous track"):
            api.previous()

    def set_volume(self, percent: int) -> int:
        """Set the volume, clamped to 0-100.

        Returns:
            The volume actually sent.
        """
        volume = clamp_volume(percent)
        if volume != percent:
            logger.debug("Clamped volume %d to %d", percent, volume)
        api = self._api()
        with _upstream("set volume"):
            api.volume(volume)
        return volume

    def toggle_shuffle(self) -> bool:
        """Invert the shuffle setting and return the new value."""
        api = self._api()
        data = self._raw_state(api, "toggle shuffle")
        enabled = not bool(data.get("shuffle_state"))
        with _upstream("toggle shuffle"):
            api.shuffle(enabled)
        return enabled

    def cycle_repeat(self) -> RepeatMode:
        """Advance repeat ``off -> context -> track -> off`` and return the new mode."""
        api = self._api()
        data = self._raw_state(api, "cycle repeat mode")
        mode = repeat_mode(data.get("repeat_state")).next()
        with _upstream("cycle repeat mode"):
            api.repeat(mode.value)
        return mode

    def _raw_state(self, api: SpotifyAPI, action: str) -> dict[str, Any]:
        with _upstream(action):
            data = api.player_state()
        if not data:
            raise NoActivePlaybackError()
        return data
