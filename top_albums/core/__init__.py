"""
Core module for top-albums.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - database: Thread-safe SQLite key-value store for local state
    - logger: Logging system with console and file outputs

Usage:
    from top_albums.core import (
        Config, load_config,
        Database,
        setup_logging, get_logger,
        TopAlbumsError, ConfigError, StorageError
    )
"""

from top_albums.core.config import (
    Config,
    GatewayConfig,
    GatewayCredentials,
    PlaylistConfig,
    SpotifyConfig,
    StorageConfig,
    load_config,
)
from top_albums.core.database import (
    BACKUPS_KEY,
    MANUAL_ORDER_KEY,
    RANKED_LIST_KEY,
    SETTINGS_KEY,
    USER_PROFILE_KEY,
    USER_TOKEN_KEY,
    Database,
)
from top_albums.core.exceptions import (
    ConfigError,
    DecodeError,
    GatewayError,
    MissingCredentials,
    NotAuthenticatedError,
    PlaylistLoadError,
    SearchFailed,
    SpotifyError,
    StorageError,
    TopAlbumsError,
    UpstreamError,
)
from top_albums.core.logger import (
    get_logger,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    # Config
    "Config",
    "SpotifyConfig",
    "GatewayConfig",
    "StorageConfig",
    "PlaylistConfig",
    "GatewayCredentials",
    "load_config",
    # Database
    "Database",
    "RANKED_LIST_KEY",
    "MANUAL_ORDER_KEY",
    "BACKUPS_KEY",
    "SETTINGS_KEY",
    "USER_TOKEN_KEY",
    "USER_PROFILE_KEY",
    # Exceptions
    "TopAlbumsError",
    "ConfigError",
    "StorageError",
    "SpotifyError",
    "SearchFailed",
    "NotAuthenticatedError",
    "PlaylistLoadError",
    "DecodeError",
    "GatewayError",
    "MissingCredentials",
    "UpstreamError",
    # Logger
    "setup_logging",
    "get_logger",
    "shutdown_logging",
]
