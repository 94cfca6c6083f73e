"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for spotctl:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.spotctl/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Global config** -- A single :class:`~spotctl.models.GlobalConfig`
  JSON file storing the Spotify application settings and output defaults.
* **Precedence resolution** -- :func:`resolve_spotify_config` merges CLI
  flags, environment variables, and the config file into the effective
  :class:`~spotctl.models.SpotifyConfig`.
* **Dotted-key editing** -- :func:`set_config_value` backs
  ``spotctl config set spotify.client_id <id>``.

All file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from spotctl.exceptions import ConfigError
from spotctl.models import GlobalConfig, SpotifyConfig

_APP_NAME = "spotctl"
_CONFIG_FILENAME = "config.json"

ENV_CLIENT_ID = "SPOTCTL_CLIENT_ID"
ENV_REDIRECT_URI = "SPOTCTL_REDIRECT_URI"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/spotctl/`` (default ``~/.config/spotctl/``).
    On macOS/Windows: ``~/.spotctl/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (token cache, crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/spotctl/`` (default ``~/.local/share/spotctl/``).
    On macOS/Windows: ``~/.spotctl/data/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    On success the temp file is renamed over *path*; on any failure the temp
    file is cleaned up.

    Args:
        path: Destination file.
        data: Text content to write.
        mode: Optional permission bits applied to the temp file before any
            content is written (e.g. ``0o600`` for secrets).
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Global config ---


def config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the config directory.

    Returns:
        The deserialised :class:`~spotctl.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk.

    Args:
        config: The configuration to save.
    """
    data = config.model_dump(mode="json")
    atomic_write(config_path(), json.dumps(data, indent=2) + "\n")


# --- Dotted-key editing ---


def set_config_value(key: str, value: str) -> GlobalConfig:
    """Set a single dotted config key (e.g. ``spotify.client_id``) and save.

    The value is validated by Pydantic, so ``"false"`` is accepted for a
    boolean field and ``"90"`` for a numeric one.

    Args:
        key: ``<section>.<field>`` path into :class:`~spotctl.models.GlobalConfig`.
        value: Raw string value from the command line.

    Returns:
        The updated and saved configuration.

    Raises:
        ConfigError: If the key is unknown or the value is invalid.
    """
    section, _, field = key.partition(".")
    config = load_global_config()
    data = config.model_dump()

    if not field or section not in data or field not in data[section]:
        known = ", ".join(sorted(_known_keys(data)))
        raise ConfigError(f"Unknown config key '{key}'. Known keys: {known}")

    data[section][field] = value
    try:
        updated = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid value for '{key}': {value!r}") from exc

    save_global_config(updated)
    return updated


def _known_keys(data: dict[str, Any]) -> list[str]:
    return [
        f"{section}.{field}"
        for section, fields in data.items()
        if isinstance(fields, dict)
        for field in fields
    ]


# --- Precedence resolution ---


def resolve_spotify_config(
    cli_client_id: Optional[str] = None,
    cli_redirect_uri: Optional[str] = None,
) -> SpotifyConfig:
    """Resolve the effective Spotify settings.

    Precedence (high to low):
        1. CLI flags (``cli_client_id``, ``cli_redirect_uri``)
        2. Environment variables (``SPOTCTL_CLIENT_ID``, ``SPOTCTL_REDIRECT_URI``)
        3. User config (``~/.config/spotctl/config.json``)
        4. Defaults

    Returns:
        The merged :class:`~spotctl.models.SpotifyConfig`.
    """
    spotify = load_global_config().spotify

    env_client_id = os.environ.get(ENV_CLIENT_ID)
    if env_client_id:
        spotify.client_id = env_client_id
    env_redirect = os.environ.get(ENV_REDIRECT_URI)
    if env_redirect:
        spotify.redirect_uri = env_redirect

    if cli_client_id is not None:
        spotify.client_id = cli_client_id
    if cli_redirect_uri is not None:
        spotify.redirect_uri = cli_redirect_uri

    return spotify


def require_client_id(spotify: SpotifyConfig) -> str:
    """Return the configured client id or raise a helpful :class:`ConfigError`."""
    if not spotify.client_id:
        raise ConfigError(
            "Spotify client ID not configured. "
            "Set it with: spotctl config set spotify.client_id YOUR_CLIENT_ID"
        )
    return spotify.client_id
