"""
Configuration management for top-albums.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml, and the server-side
credentials the token exchange gateway reads from the environment.

The configuration file contains:
    - The public Spotify client ID and OAuth redirect URI
    - The URL of the token exchange gateway
    - The directory holding the local store and logs
    - The name and description of the Top 50 playlist

The client secret is deliberately NOT part of config.yaml. Only the
gateway ever sees it, through SPOTIFY_CLIENT_SECRET.

Example config.yaml:
    spotify:
      client_id: "your_client_id_here"
      redirect_uri: "http://127.0.0.1:8888/callback"
      market: "US"

    gateway:
      url: "http://127.0.0.1:5000"
      timeout: 10

    storage:
      directory: "~/.top50"

    playlist:
      name: "🎵 Top 50 Albums"
      description: "Top 50 albums created with My Top Albums"
      embed_metadata: false
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from top_albums.core.exceptions import ConfigError


# Default configuration file name (looked up in the current working directory)
CONFIG_FILENAME = "config.yaml"

DEFAULT_REDIRECT_URI = "http://127.0.0.1:8888/callback"
DEFAULT_MARKET = "US"
DEFAULT_GATEWAY_URL = "http://127.0.0.1:5000"
DEFAULT_GATEWAY_TIMEOUT = 10.0
DEFAULT_STORAGE_DIRECTORY = "~/.top50"
DEFAULT_PLAYLIST_NAME = "🎵 Top 50 Albums"
DEFAULT_PLAYLIST_DESCRIPTION = "Top 50 albums created with My Top Albums"


@dataclass(frozen=True)
class SpotifyConfig:
    """
    Public Spotify application settings.

    Attributes:
        client_id: The Spotify application client ID (safe to expose).
        redirect_uri: Where Spotify sends the user back after authorizing.
        market: Market used for album track listings.
    """
    client_id: str
    redirect_uri: str
    market: str


@dataclass(frozen=True)
class GatewayConfig:
    """
    Location of the token exchange gateway.

    Attributes:
        url: Base URL of the gateway (no trailing slash).
        timeout: Request timeout in seconds for gateway calls.
    """
    url: str
    timeout: float


@dataclass(frozen=True)
class StorageConfig:
    """
    Attributes:
        directory: Absolute path holding top50.db and the logs/ folder.
    """
    directory: Path

    @property
    def database_path(self) -> Path:
        return self.directory / "top50.db"


@dataclass(frozen=True)
class PlaylistConfig:
    """
    Attributes:
        name: Reserved display name identifying the counterpart playlist.
        description: Description written when the playlist is created.
        embed_metadata: Also write the compact album metadata into the
                        description on every save.
    """
    name: str
    description: str
    embed_metadata: bool


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and treated as immutable (frozen dataclass).
    """
    spotify: SpotifyConfig
    gateway: GatewayConfig
    storage: StorageConfig
    playlist: PlaylistConfig


@dataclass(frozen=True)
class GatewayCredentials:
    """
    Server-side credentials used by the token exchange gateway.

    Any field may be None: the gateway reports missing credentials per
    request rather than refusing to start.
    """
    client_id: str | None
    client_secret: str | None
    redirect_uri: str | None

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "GatewayCredentials":
        """
        Read credentials from the environment.

        Args:
            load_env_file: Populate the environment from a .env file first
                           (existing variables are not overridden).
        """
        if load_env_file:
            load_dotenv()
        return cls(
            client_id=_env_or_none("SPOTIFY_CLIENT_ID"),
            client_secret=_env_or_none("SPOTIFY_CLIENT_SECRET"),
            redirect_uri=_env_or_none("SPOTIFY_REDIRECT_URI"),
        )

    def missing(self, *fields: str) -> list[str]:
        """Return the names of the requested fields that are not set."""
        return [name for name in fields if not getattr(self, name)]


def _env_or_none(name: str) -> str | None:
    value = os.environ.get(name, "").strip()
    return value or None


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration from config.yaml.

    Args:
        config_path: Optional explicit path to config file.
                     If None, looks for config.yaml in current working directory.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If the config file is not found, has invalid YAML syntax,
                     is missing required fields, or contains invalid values.

    Behavior:
        1. Locate config file (explicit path or CWD/config.yaml)
        2. Read and parse YAML content
        3. Validate and extract the spotify section (client_id required)
        4. Parse the optional sections, applying defaults
        5. Create and return frozen Config object
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except IOError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    return Config(
        spotify=_parse_spotify_config(_section(raw_config, "spotify", required=True)),
        gateway=_parse_gateway_config(_section(raw_config, "gateway")),
        storage=_parse_storage_config(_section(raw_config, "storage")),
        playlist=_parse_playlist_config(_section(raw_config, "playlist")),
    )


def _section(raw_config: dict[str, Any], name: str, required: bool = False) -> dict[str, Any]:
    section = raw_config.get(name)
    if section is None:
        if required:
            raise ConfigError(
                f"Missing required section: '{name}'",
                details={"missing_section": name}
            )
        return {}
    if not isinstance(section, dict):
        raise ConfigError(
            f"Section '{name}' must be a dictionary",
            details={"section": name}
        )
    return section


def _string_field(section: dict[str, Any], key: str, field_name: str, default: str | None = None) -> str:
    value = section.get(key, default)
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(
            f"'{field_name}' must be a non-empty string",
            details={"field": field_name}
        )
    return value.strip()


def _parse_spotify_config(spotify_section: dict[str, Any]) -> SpotifyConfig:
    return SpotifyConfig(
        client_id=_string_field(spotify_section, "client_id", "spotify.client_id"),
        redirect_uri=_string_field(
            spotify_section, "redirect_uri", "spotify.redirect_uri", DEFAULT_REDIRECT_URI
        ),
        market=_string_field(spotify_section, "market", "spotify.market", DEFAULT_MARKET),
    )


def _parse_gateway_config(gateway_section: dict[str, Any]) -> GatewayConfig:
    url = _string_field(gateway_section, "url", "gateway.url", DEFAULT_GATEWAY_URL)

    timeout = gateway_section.get("timeout", DEFAULT_GATEWAY_TIMEOUT)
    # bool is an int subclass; reject it explicitly
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ConfigError(
            "'gateway.timeout' must be a positive number",
            details={"field": "gateway.timeout", "value": timeout}
        )

    return GatewayConfig(url=url.rstrip("/"), timeout=float(timeout))


def _parse_storage_config(storage_section: dict[str, Any]) -> StorageConfig:
    directory = _string_field(
        storage_section, "directory", "storage.directory", DEFAULT_STORAGE_DIRECTORY
    )
    return StorageConfig(directory=Path(directory).expanduser().resolve())


def _parse_playlist_config(playlist_section: dict[str, Any]) -> PlaylistConfig:
    embed_metadata = playlist_section.get("embed_metadata", False)
    if not isinstance(embed_metadata, bool):
        raise ConfigError(
            "'playlist.embed_metadata' must be true or false",
            details={"field": "playlist.embed_metadata", "value": embed_metadata}
        )

    return PlaylistConfig(
        name=_string_field(playlist_section, "name", "playlist.name", DEFAULT_PLAYLIST_NAME),
        description=_string_field(
            playlist_section, "description", "playlist.description", DEFAULT_PLAYLIST_DESCRIPTION
        ),
        embed_metadata=embed_metadata,
    )
