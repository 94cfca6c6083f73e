"""HTTP client for the Spotify Web API."""

from spotctl.client.api import API_BASE_URL, SpotifyAPI

__all__ = ["API_BASE_URL", "SpotifyAPI"]
