"""
Remote catalog client: album search, lookup and track listing.

CatalogClient sits on top of SpotifyClient and turns raw Spotify payloads
into Album records. It is the boundary where catalog failures stop: no
method here raises.

    search_albums     -> SearchResult (empty + error on failure)
    get_album_by_id   -> Album, or None when missing or on failure
    get_album_tracks  -> list of track URIs, [] when none or on failure
"""

from dataclasses import dataclass, field

from top_albums.core.exceptions import SearchFailed, SpotifyError
from top_albums.core.logger import get_logger
from top_albums.library.models import Album
from top_albums.spotify.client import SpotifyClient

logger = get_logger(__name__)


DEFAULT_SEARCH_LIMIT = 20


@dataclass(frozen=True)
class SearchResult:
    """
    Outcome of an album search.

    Attributes:
        albums: Matching albums, in Spotify's relevance order.
        error: Set when the search could not be performed. `albums` is
               then empty, just like a search that found nothing.
    """
    albums: list[Album] = field(default_factory=list)
    error: SearchFailed | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class CatalogClient:
    """
    Normalizing wrapper over the catalog endpoints.

    Args:
        client: SpotifyClient authenticated with a client-credentials token.
        market: Market used for album and track lookups.
    """

    def __init__(self, client: SpotifyClient, market: str = "US") -> None:
        self._client = client
        self._market = market

    @property
    def client(self) -> SpotifyClient:
        return self._client

    def search_albums(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> SearchResult:
        """
        Search albums by free text.

        A blank query returns an empty result without touching the network.
        Multi-artist albums get every artist name joined with ", ".
        """
        if not query or not query.strip():
            return SearchResult()

        try:
            items = self._client.search_albums(query.strip(), limit=limit)
        except SpotifyError as e:
            logger.warning(f"Album search failed for '{query}': {e}")
            return SearchResult(error=SearchFailed(
                f"Search failed: {e.message}",
                details={"query": query, **e.details},
                is_auth_error=e.is_auth_error,
                is_rate_limit=e.is_rate_limit,
                http_status=e.http_status
            ))

        albums = []
        for item in items:
            if not item or not item.get("id"):
                continue
            albums.append(Album.from_spotify_api(item, join_artists=True))

        logger.debug(f"Search '{query}' returned {len(albums)} albums")
        return SearchResult(albums=albums)

    def get_album_by_id(self, album_id: str) -> Album | None:
        """
        Fetch one album with full metadata, keeping only the first artist.

        Returns:
            The Album, or None when it is missing (delisted, region-locked)
            or the call failed. Callers must have a fallback.
        """
        try:
            data = self._client.album(album_id, market=self._market)
        except SpotifyError as e:
            if e.is_not_found:
                logger.debug(f"Album {album_id} not found")
            else:
                logger.warning(f"Album lookup failed for {album_id}: {e}")
            return None
        return Album.from_spotify_api(data, join_artists=False)

    def get_album_tracks(self, album_id: str) -> list[str]:
        """
        List an album's track URIs in disc order.

        An album without tracks, or one whose listing failed, yields [].
        """
        try:
            tracks = self._client.album_tracks(album_id, market=self._market)
        except SpotifyError as e:
            logger.warning(f"Could not list tracks of album {album_id}: {e}")
            return []
        return [track["uri"] for track in tracks if track and track.get("uri")]
