"""Canonical Pydantic models shared across all spotctl modules.

This is the single source of truth for data shapes in the project. The models
fall into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`SpotifyConfig`, :class:`OutputConfig`, and :class:`GlobalConfig`.

**Authentication records** -- produced and consumed by :mod:`spotctl.auth`:
    :class:`PKCEPair`, :class:`CallbackResult`, and :class:`TokenRecord`
    (the latter is also the persisted token cache layout).

**Playback models** -- mapped from Spotify Web API responses by
:mod:`spotctl.playback`:
    :class:`Device`, :class:`Track`, :class:`RepeatMode`, and
    :class:`PlaybackState`.

All models use Pydantic v2.
"""

from __future__ import annotations

import enum
from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_REDIRECT_URI = "http://localhost:8888/callback"

VALIDITY_MARGIN = timedelta(seconds=60)
"""A token must outlive ``now`` by this margin to be used without refresh."""


# --- Configuration ---


class SpotifyConfig(BaseModel):
    """Spotify application settings.

    Example::

        SpotifyConfig(client_id="abc", redirect_uri="http://localhost:8888/callback")
    """

    client_id: Optional[str] = Field(
        default=None, description="Spotify application client id (PKCE, no secret)"
    )
    redirect_uri: str = Field(
        default=DEFAULT_REDIRECT_URI,
        description="Loopback redirect URI registered with the Spotify application",
    )
    random_state: bool = Field(
        default=True,
        description="Send a fresh random state nonce per login instead of a fixed literal",
    )
    auth_timeout: float = Field(
        default=60.0, gt=0, description="Seconds to wait for the browser callback"
    )


class OutputConfig(BaseModel):
    """Output formatting preferences."""

    format: str = Field(default="auto", description="auto, json, plain, rich")


class GlobalConfig(BaseModel):
    """Top-level user configuration stored at ``<config_dir>/config.json``."""

    spotify: SpotifyConfig = Field(default_factory=SpotifyConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Authentication records ---


class PKCEPair(BaseModel):
    """A PKCE ``code_verifier`` and its S256 ``code_challenge`` (:rfc:`7636`)."""

    model_config = ConfigDict(frozen=True)

    verifier: str
    challenge: str


class CallbackResult(BaseModel):
    """Outcome of a single browser redirect to the callback endpoint.

    Either ``code`` and ``state`` are set (success) or ``error`` is set.
    """

    model_config = ConfigDict(frozen=True)

    code: Optional[str] = None
    state: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


class TokenRecord(BaseModel):
    """An OAuth2 token plus the client id it was issued to.

    This is also the on-disk layout of the token cache; ``expiry`` is
    serialised as an RFC 3339 timestamp.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "Bearer"
    refresh_token: Optional[str] = None
    expiry: datetime
    client_id: str
    scope: Optional[str] = None

    @field_validator("expiry")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def is_valid(self, now: datetime, margin: timedelta = VALIDITY_MARGIN) -> bool:
        """Return ``True`` while ``now + margin`` is strictly before ``expiry``."""
        return now + margin < self.expiry

    @property
    def authorization_header(self) -> str:
        return f"{self.token_type or 'Bearer'} {self.access_token}"


# --- Playback ---


class Device(BaseModel):
    """A Spotify Connect device."""

    id: str
    name: str
    type: str = ""
    is_active: bool = False
    is_restricted: bool = False
    volume_percent: int = Field(default=0, ge=0, le=100)


class Track(BaseModel):
    """The currently playing item."""

    name: str = ""
    artist: str = ""
    album: str = ""
    duration_ms: int = 0
    progress_ms: int = 0
    is_playing: bool = False
    image_url: Optional[str] = None


class RepeatMode(str, enum.Enum):
    """Repeat modes accepted by ``PUT /me/player/repeat``."""

    OFF = "off"
    TRACK = "track"
    CONTEXT = "context"

    def next(self) -> RepeatMode:
        """Return the mode after this one in the cycle ``off -> context -> track -> off``."""
        return _REPEAT_CYCLE[self]


_REPEAT_CYCLE = {
    RepeatMode.OFF: RepeatMode.CONTEXT,
    RepeatMode.CONTEXT: RepeatMode.TRACK,
    RepeatMode.TRACK: RepeatMode.OFF,
}


class PlaybackState(BaseModel):
    """Snapshot of the user's current playback session."""

    track: Track = Field(default_factory=Track)
    device_name: str = ""
    device_id: str = ""
    available_devices: list[Device] = Field(default_factory=list)
    volume: int = 0
    is_playing: bool = False
    shuffle: bool = False
    repeat: RepeatMode = RepeatMode.OFF
    progress_ms: int = 0
    duration_ms: int = 0
