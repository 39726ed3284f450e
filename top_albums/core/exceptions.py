"""
Exception classes for top-albums.

This module defines all custom exceptions used throughout the application.
Each exception is designed to provide clear, actionable error messages
and to distinguish between different failure modes.

Exception Hierarchy:
    TopAlbumsError (base)
        ConfigError - Configuration file issues
        StorageError - Local key-value store issues
        SpotifyError - Spotify API issues
            SearchFailed - Album search failed (carried, never raised to the UI)
        NotAuthenticatedError - User-scoped call without a user token
        PlaylistLoadError - A playlist could not be turned back into albums
        DecodeError - Share token is malformed
        GatewayError - Token exchange issues
            MissingCredentials - Server credentials absent
            UpstreamError - Spotify rejected the exchange
"""


class TopAlbumsError(Exception):
    """
    Base exception for all top-albums errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch all top-albums errors with a single
    except clause if desired.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g., album id, URL).

    Example:
        try:
            # some operation
        except TopAlbumsError as e:
            logger.error(f"Operation failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description that will be shown to the user.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'album_id': Spotify album ID involved in the error
                     - 'playlist_id': Spotify playlist ID involved in the error
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(TopAlbumsError):
    """
    Raised when there's an issue with the configuration file.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - config.yaml has invalid YAML syntax
        - Required fields missing (client_id)
        - Invalid field values (e.g., negative gateway timeout)
    """
    pass


class StorageError(TopAlbumsError):
    """
    Raised when the local key-value store cannot be opened or written.

    Only store construction lets this escape. Readers and writers of the
    ranked list and backup history catch it and log, because local
    persistence is best-effort.
    """
    pass


class SpotifyError(TopAlbumsError):
    """
    Raised when there's an issue with the Spotify API.

    Common causes:
        - Invalid or expired token (is_auth_error)
        - Rate limiting (is_rate_limit)
        - Album/playlist not found, private or region-locked
        - Network connectivity issues

    Attributes:
        is_auth_error: True if this is an authentication error.
        is_rate_limit: True if this is a rate limit error.
        http_status: HTTP status returned by Spotify, when known.
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        is_auth_error: bool = False,
        is_rate_limit: bool = False,
        http_status: int | None = None
    ) -> None:
        super().__init__(message, details)
        self.is_auth_error = is_auth_error
        self.is_rate_limit = is_rate_limit
        self.http_status = http_status

    @property
    def is_not_found(self) -> bool:
        """True when Spotify answered 404."""
        return self.http_status == 404


class SearchFailed(SpotifyError):
    """
    Album search could not be performed.

    Never raised past CatalogClient: it is attached to an empty
    SearchResult so the caller can tell "no results" from "error"
    when choosing what to show the user.
    """
    pass


class NotAuthenticatedError(TopAlbumsError):
    """Raised when a playlist operation needs a user token and none is stored."""
    pass


class PlaylistLoadError(TopAlbumsError):
    """
    Raised when a playlist cannot be reconstructed into a ranked list.

    Two distinct cases share this type and are told apart by `is_empty`:
        - the track listing call failed ("could not load")
        - the playlist loaded but holds no albums ("playlist is empty")
    """

    def __init__(self, message: str, details: dict | None = None, is_empty: bool = False) -> None:
        super().__init__(message, details)
        self.is_empty = is_empty


class DecodeError(TopAlbumsError):
    """
    Raised when a share token cannot be decoded into a ranked list.

    The token is either not valid base64, not JSON, or JSON without the
    expected {"albums": [...]} shape. No partial list is ever returned.
    """
    pass


class GatewayError(TopAlbumsError):
    """
    Base class for token exchange failures.

    Attributes:
        status_code: HTTP status the gateway answers with for this error.
    """

    status_code = 500


class MissingCredentials(GatewayError):
    """
    Server-side Spotify credentials are absent from the environment.

    The HTTP response only ever says "Missing Spotify credentials"; which
    variable is missing is logged server-side and nowhere else.
    """

    status_code = 500

    def __init__(self, details: dict | None = None) -> None:
        super().__init__("Missing Spotify credentials", details)


class UpstreamError(GatewayError):
    """
    Spotify's token endpoint rejected the exchange (e.g., expired or reused code).

    Attributes:
        description: The upstream error_description (or error) text.
    """

    status_code = 400

    def __init__(self, description: str, details: dict | None = None) -> None:
        super().__init__(description, details)
        self.description = description
