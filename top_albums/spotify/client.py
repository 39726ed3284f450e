"""
Thin Spotify Web API wrapper for top-albums.

This module wraps spotipy.Spotify so that the rest of the application
only ever sees one failure type: every spotipy or transport exception is
converted into SpotifyError, with rate limiting, auth failures and 404s
flagged on the error.

Two kinds of client exist:
    Catalog client: app-level client-credentials token, used for search,
                    album lookup and album track listing. The token comes
                    from the gateway through a ClientTokenCache.
    User client:    the logged-in user's access token, used for reading
                    and writing their playlists.

Neither holds the client secret. Token exchange happens in the gateway.

Usage:
    from top_albums.spotify.client import SpotifyClient

    catalog = SpotifyClient.for_catalog(token_cache)
    results = catalog.search_albums("ok computer", limit=20, market="US")

    user = SpotifyClient.for_user(access_token)
    me = user.current_user()
"""

from typing import Any

import requests
import spotipy

from top_albums.core.exceptions import SpotifyError
from top_albums.core.logger import get_logger


logger = get_logger(__name__)


# Spotify API per-request limits
ADD_ITEMS_BATCH_SIZE = 100
PLAYLIST_ITEMS_PAGE_SIZE = 100
USER_PLAYLISTS_PAGE_SIZE = 50
ALBUM_TRACKS_LIMIT = 50

REQUESTS_TIMEOUT = 10


def _convert_error(action: str, error: Exception, details: dict[str, Any]) -> SpotifyError:
    """
    Build the SpotifyError for a failed spotipy call.

    Args:
        action: What was being done, e.g. "fetch album".
        error: The spotipy or requests exception.
        details: Context to attach (ids, queries).
    """
    if isinstance(error, spotipy.SpotifyException):
        status = error.http_status
        details = {**details, "http_status": status, "original_error": str(error)}
        if status == 429:
            return SpotifyError(
                f"Rate limited while trying to {action}",
                details=details,
                is_rate_limit=True,
                http_status=status
            )
        if status in (401, 403):
            return SpotifyError(
                f"Not authorized to {action}: {error.msg}",
                details=details,
                is_auth_error=True,
                http_status=status
            )
        if status == 404:
            return SpotifyError(
                f"Not found while trying to {action}",
                details=details,
                http_status=status
            )
        return SpotifyError(
            f"Failed to {action}: {error.msg}",
            details=details,
            http_status=status
        )

    return SpotifyError(
        f"Network error while trying to {action}: {error}",
        details={**details, "original_error": str(error)}
    )


class SpotifyClient:
    """
    Spotify API client used by the catalog and playlist layers.

    Attributes:
        _spotify: The underlying spotipy.Spotify instance.

    Error Handling:
        Every public method raises SpotifyError on failure and nothing
        else. A SpotifyError raised by the token provider itself passes
        through unchanged.

    Rate Limiting:
        spotipy retries 429 responses with backoff on its own. A
        SpotifyError with is_rate_limit=True means retries ran out.
    """

    def __init__(self, spotify: spotipy.Spotify, token_provider: Any = None) -> None:
        self._spotify = spotify
        self._token_provider = token_provider

    @classmethod
    def for_catalog(cls, token_provider: Any) -> "SpotifyClient":
        """
        Create a client authenticated with the app's client-credentials token.

        Args:
            token_provider: Object exposing get_access_token(as_dict=False)
                            and invalidate(), typically a ClientTokenCache.
                            spotipy calls it before every request, so
                            refreshes are transparent.
        """
        return cls(
            spotipy.Spotify(auth_manager=token_provider, requests_timeout=REQUESTS_TIMEOUT),
            token_provider=token_provider
        )

    @classmethod
    def for_user(cls, access_token: str) -> "SpotifyClient":
        """Create a client acting on behalf of the logged-in user."""
        return cls(spotipy.Spotify(auth=access_token, requests_timeout=REQUESTS_TIMEOUT))

    def _call(self, action: str, details: dict[str, Any], method: str, *args: Any, **kwargs: Any) -> Any:
        """
        Run one spotipy call, converting its failures to SpotifyError.

        A 401 on a catalog client means the cached client token was
        revoked early: the token is dropped and the call retried once.
        """
        try:
            return self._request(action, details, method, *args, **kwargs)
        except SpotifyError as e:
            retry = self._token_provider is not None and e.http_status == 401 and e.__cause__ is not None
            if not retry:
                raise
        logger.info(f"Client token rejected while trying to {action}, fetching a new one")
        self._token_provider.invalidate()
        return self._request(action, details, method, *args, **kwargs)

    def _request(self, action: str, details: dict[str, Any], method: str, *args: Any, **kwargs: Any) -> Any:
        try:
            return getattr(self._spotify, method)(*args, **kwargs)
        except SpotifyError:
            raise
        except (spotipy.SpotifyException, requests.RequestException) as e:
            raise _convert_error(action, e, details) from e

    # =========================================================================
    # Catalog Operations
    # =========================================================================

    def search_albums(self, query: str, limit: int = 20, market: str | None = None) -> list[dict[str, Any]]:
        """
        Search the catalog for albums.

        Returns:
            The simplified album objects of the first result page.
        """
        result = self._call(
            "search albums", {"query": query}, "search",
            q=query, type="album", limit=limit, market=market
        )
        return ((result or {}).get("albums") or {}).get("items") or []

    def album(self, album_id: str, market: str | None = None) -> dict[str, Any]:
        """
        Get the full album object.

        Raises:
            SpotifyError: If the album does not exist (is_not_found) or
                          the call fails.
        """
        result = self._call("fetch album", {"album_id": album_id}, "album", album_id, market=market)
        if result is None:
            raise SpotifyError(
                f"Album not found: {album_id}",
                details={"album_id": album_id},
                http_status=404
            )
        return result

    def album_tracks(self, album_id: str, market: str | None = None) -> list[dict[str, Any]]:
        """Get the first page (up to 50) of an album's tracks, in disc order."""
        result = self._call(
            "fetch album tracks", {"album_id": album_id}, "album_tracks",
            album_id, limit=ALBUM_TRACKS_LIMIT, market=market
        )
        return (result or {}).get("items") or []

    # =========================================================================
    # User Operations
    # =========================================================================

    def current_user(self) -> dict[str, Any]:
        result = self._call("fetch the current user", {}, "current_user")
        if not result:
            raise SpotifyError("Spotify returned no user profile", is_auth_error=True)
        return result

    def current_user_playlists(self) -> list[dict[str, Any]]:
        """
        Get ALL of the user's playlists, handling pagination automatically.

        Order is the one Spotify returns (most recently created or followed
        first), which decides which playlist wins a name match.
        """
        playlists: list[dict[str, Any]] = []
        offset = 0

        while True:
            response = self._call(
                "list user playlists", {"offset": offset}, "current_user_playlists",
                limit=USER_PLAYLISTS_PAGE_SIZE, offset=offset
            ) or {}
            playlists.extend(p for p in response.get("items") or [] if p)

            if response.get("next") is None:
                break
            offset += USER_PLAYLISTS_PAGE_SIZE

        return playlists

    # =========================================================================
    # Playlist Operations
    # =========================================================================

    def create_playlist(self, user_id: str, name: str, description: str, public: bool = True) -> dict[str, Any]:
        return self._call(
            "create playlist", {"name": name}, "user_playlist_create",
            user_id, name, public=public, description=description
        )

    def add_items(self, playlist_id: str, uris: list[str]) -> int:
        """
        Append track URIs to a playlist, in order.

        Spotify accepts at most 100 URIs per request, so the list is sent
        in consecutive batches. 101 URIs means exactly 2 calls.

        Returns:
            Number of URIs sent.
        """
        for i in range(0, len(uris), ADD_ITEMS_BATCH_SIZE):
            batch = uris[i:i + ADD_ITEMS_BATCH_SIZE]
            self._call(
                "add tracks to playlist",
                {"playlist_id": playlist_id, "batch_start": i},
                "playlist_add_items",
                playlist_id, batch
            )
        return len(uris)

    def clear_playlist(self, playlist_id: str) -> None:
        """Remove every track by replacing the contents with nothing."""
        self._call("clear playlist", {"playlist_id": playlist_id}, "playlist_replace_items", playlist_id, [])

    def change_description(self, playlist_id: str, description: str) -> None:
        self._call(
            "update playlist description", {"playlist_id": playlist_id},
            "playlist_change_details", playlist_id, description=description
        )

    def playlist(self, playlist_id: str) -> dict[str, Any]:
        """
        Get playlist metadata (name, description, owner, images).

        Does NOT include the track list; use playlist_all_items() for that.
        """
        result = self._call(
            "fetch playlist", {"playlist_id": playlist_id}, "playlist",
            playlist_id, fields="id,name,description,owner,images,external_urls,tracks.total,uri"
        )
        if result is None:
            raise SpotifyError(
                f"Playlist not found: {playlist_id}",
                details={"playlist_id": playlist_id},
                http_status=404
            )
        return result

    def playlist_all_items(self, playlist_id: str) -> list[dict[str, Any]]:
        """
        Get ALL items of a playlist in playlist order, handling pagination.

        Raises:
            SpotifyError: If any page fails. No partial list is returned.
        """
        all_items: list[dict[str, Any]] = []
        offset = 0

        while True:
            response = self._call(
                "fetch playlist items", {"playlist_id": playlist_id, "offset": offset},
                "playlist_items",
                playlist_id, limit=PLAYLIST_ITEMS_PAGE_SIZE, offset=offset, additional_types=["track"]
            )
            if response is None:
                raise SpotifyError(
                    f"Failed to fetch playlist items: {playlist_id}",
                    details={"playlist_id": playlist_id, "offset": offset}
                )
            all_items.extend(response.get("items") or [])

            if response.get("next") is None:
                break
            offset += PLAYLIST_ITEMS_PAGE_SIZE

        return all_items
