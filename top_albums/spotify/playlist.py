"""
Playlist mapping engine: ranked list <-> Spotify playlist.

Encode (map_to_playlist):
    1. Resolve one representative track per album (its first track),
       strictly in rank order. Albums without tracks are skipped.
    2. Find the counterpart playlist (exact name match, first wins).
       Missing -> create it. Present -> clear it (full replace).
    3. Append the URIs in batches of at most 100.
    4. Optionally write compact metadata into the description.

Decode (decode_from_tracks):
    1. List the playlist's tracks in order. Failure here is fatal.
    2. Keep the first track of each album id; that position is the rank.
    3. Enrich every album with a full lookup. Failure here is not fatal:
       the album is rebuilt from the stub embedded in the track.

    Track order is the source of truth. The description metadata is only
    read by the secondary decode_from_metadata() path and to recognise
    app playlists in list_app_playlists().

Known Limitation:
    If the user owns several playlists with the reserved name, only the
    first one Spotify returns is ever recognised. Duplicates are neither
    merged nor cleaned up.
"""

import dataclasses
import time
from datetime import datetime, timezone
from typing import Callable

from top_albums.core.exceptions import NotAuthenticatedError, PlaylistLoadError, SpotifyError
from top_albums.core.logger import get_logger
from top_albums.library.models import PLACEHOLDER_COVER, SPOTIFY_ALBUM_URL, Album
from top_albums.spotify.catalog import CatalogClient
from top_albums.spotify.client import SpotifyClient
from top_albums.spotify.metadata import encode_description, has_metadata_marker, parse_description
from top_albums.spotify.models import AppPlaylist, PlaylistRef, SyncResult

logger = get_logger(__name__)


APP_PLAYLISTS_CACHE_SECONDS = 30

# Called once per album during track resolution with the URI picked (or None)
AlbumCallback = Callable[[Album, str | None], None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PlaylistMapper:
    """
    Maps ranked lists to and from the user's Spotify playlists.

    Args:
        catalog: Catalog client for track resolution and album enrichment.
        user_client: Client holding the user's token, or None when logged
                     out. Writing playlists requires it; reading public
                     playlists falls back to the catalog client.
        playlist_name: Reserved name identifying the counterpart playlist.
        description: Description for newly created playlists.
        embed_metadata: Also write compact metadata into the description.
        clock: Monotonic seconds source for the playlists cache.
        now: Wall-clock source for metadata timestamps.
    """

    def __init__(
        self,
        catalog: CatalogClient,
        user_client: SpotifyClient | None,
        playlist_name: str,
        description: str,
        embed_metadata: bool = False,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utc_now
    ) -> None:
        self._catalog = catalog
        self._user_client = user_client
        self.playlist_name = playlist_name
        self.description = description
        self.embed_metadata = embed_metadata
        self._clock = clock
        self._now = now
        self._playlists_cache: list[AppPlaylist] | None = None
        self._playlists_cache_time = 0.0

    def _require_user(self) -> SpotifyClient:
        if self._user_client is None:
            raise NotAuthenticatedError("Log in to Spotify first (top50 login)")
        return self._user_client

    def _reader(self) -> SpotifyClient:
        return self._user_client or self._catalog.client

    # =========================================================================
    # Identity Resolution
    # =========================================================================

    def find_existing_counterpart(self) -> PlaylistRef | None:
        """
        Return the user's first playlist named exactly `playlist_name`.

        Raises:
            NotAuthenticatedError: If no user is logged in.
            SpotifyError: If the playlists cannot be listed. Treating that
                          as "no counterpart" would create a duplicate.
        """
        for data in self._require_user().current_user_playlists():
            if data.get("name") == self.playlist_name:
                logger.debug(f"Counterpart playlist found: {data.get('id')}")
                return PlaylistRef.from_spotify_api(data)
        return None

    # =========================================================================
    # Encode
    # =========================================================================

    def resolve_track_uris(self, albums: list[Album], on_album: AlbumCallback | None = None) -> list[str]:
        """
        Pick the first track of each album, in rank order.

        Lookups run one after another so the output order is the rank
        order. Albums with no tracks (or whose listing failed) are
        logged and skipped.
        """
        uris: list[str] = []
        for album in albums:
            tracks = self._catalog.get_album_tracks(album.id)
            uri = tracks[0] if tracks else None
            if uri:
                uris.append(uri)
            else:
                logger.warning(f"No tracks found for {album.display_name}, skipping it")
            if on_album is not None:
                on_album(album, uri)
        return uris

    def _description_for(self, albums: list[Album]) -> str:
        if not self.embed_metadata:
            return self.description
        return encode_description(self.description, albums, self._now())

    def map_to_playlist(self, albums: list[Album], on_album: AlbumCallback | None = None) -> SyncResult:
        """
        Create or overwrite the counterpart playlist with `albums`.

        Returns:
            SyncResult with is_update=True when an existing counterpart
            was cleared and refilled.

        Raises:
            NotAuthenticatedError: If no user is logged in.
            SpotifyError: If listing, creating, clearing or appending fails.
        """
        user = self._require_user()
        uris = self.resolve_track_uris(albums, on_album)

        existing = self.find_existing_counterpart()
        if existing is None:
            profile = user.current_user()
            created = user.create_playlist(profile["id"], self.playlist_name, self._description_for(albums))
            playlist = PlaylistRef.from_spotify_api(created)
            logger.info(f"Created playlist '{playlist.name}' ({playlist.id})")
        else:
            playlist = existing
            user.clear_playlist(playlist.id)
            if self.embed_metadata:
                user.change_description(playlist.id, self._description_for(albums))
            logger.info(f"Updating existing playlist '{playlist.name}' ({playlist.id})")

        if uris:
            user.add_items(playlist.id, uris)
        else:
            logger.warning("No tracks to add to the playlist")

        self.invalidate_cache()
        return SyncResult(
            playlist=dataclasses.replace(playlist, total_tracks=len(uris)),
            tracks_added=len(uris),
            is_update=existing is not None,
        )

    # =========================================================================
    # Decode
    # =========================================================================

    def decode_from_tracks(self, playlist_id: str) -> list[Album]:
        """
        Rebuild a ranked list from a playlist's track order.

        One album per distinct album id, ranked by its first track.

        Raises:
            PlaylistLoadError: If the tracks cannot be listed. No partial
                               list is ever returned.
        """
        try:
            items = self._reader().playlist_all_items(playlist_id)
        except SpotifyError as e:
            raise PlaylistLoadError(
                f"Could not load playlist: {e.message}",
                details={"playlist_id": playlist_id, **e.details}
            ) from e

        stubs: dict[str, dict] = {}
        for item in items:
            track = (item or {}).get("track") or {}
            album_stub = track.get("album") or {}
            album_id = album_stub.get("id")
            if album_id and album_id not in stubs:
                stubs[album_id] = album_stub

        albums: list[Album] = []
        for album_id, stub in stubs.items():
            album = self._catalog.get_album_by_id(album_id)
            if album is None:
                logger.debug(f"Album {album_id} lookup failed, using track data")
                album = Album.from_track_stub(stub)
            albums.append(album)

        logger.info(f"Rebuilt {len(albums)} albums from {len(items)} playlist tracks")
        return albums

    def get_playlist(self, playlist_id: str) -> PlaylistRef:
        """
        Raises:
            PlaylistLoadError: If the playlist cannot be fetched.
        """
        try:
            return PlaylistRef.from_spotify_api(self._reader().playlist(playlist_id))
        except SpotifyError as e:
            raise PlaylistLoadError(
                f"Could not load playlist: {e.message}",
                details={"playlist_id": playlist_id, **e.details}
            ) from e

    def decode_from_metadata(self, playlist: PlaylistRef) -> list[Album]:
        """
        Rebuild a ranked list from the metadata in a playlist description.

        Secondary path: the description may be truncated or stale.
        Albums whose lookup fails are rebuilt from the recorded fields
        with a placeholder cover.
        """
        metadata = parse_description(playlist.description)
        if metadata is None:
            logger.debug(f"Playlist {playlist.id} carries no readable metadata")
            return []

        albums: list[Album] = []
        seen: set[str] = set()
        for entry in sorted(metadata.albums, key=lambda a: a.rank):
            if entry.id in seen:
                continue
            seen.add(entry.id)
            album = self._catalog.get_album_by_id(entry.id)
            if album is None:
                album = Album(
                    id=entry.id,
                    title=entry.title,
                    artist=entry.artist,
                    year=entry.year,
                    genre=entry.genre,
                    cover=PLACEHOLDER_COVER,
                    external_url=SPOTIFY_ALBUM_URL.format(album_id=entry.id),
                )
            albums.append(album)
        return albums

    def load_playlist(self, playlist_id: str) -> list[Album]:
        """
        Decode a playlist for replacing the local list.

        Raises:
            PlaylistLoadError: If the playlist cannot be read, or with
                               is_empty=True when it holds no albums.
        """
        albums = self.decode_from_tracks(playlist_id)
        if not albums:
            raise PlaylistLoadError(
                "This playlist has no albums",
                details={"playlist_id": playlist_id},
                is_empty=True
            )
        return albums

    # =========================================================================
    # App Playlists
    # =========================================================================

    def list_app_playlists(self) -> list[AppPlaylist]:
        """
        The user's playlists whose description carries Top 50 metadata.

        Newest first by the recorded creation time. Results are cached for
        30 seconds; map_to_playlist() and invalidate_cache() drop the cache.

        Raises:
            NotAuthenticatedError: If no user is logged in.
            SpotifyError: If the playlists cannot be listed.
        """
        now = self._clock()
        if self._playlists_cache is not None and now - self._playlists_cache_time < APP_PLAYLISTS_CACHE_SECONDS:
            return list(self._playlists_cache)

        found: list[AppPlaylist] = []
        for data in self._require_user().current_user_playlists():
            if not has_metadata_marker(data.get("description")):
                continue
            metadata = parse_description(data.get("description"))
            if metadata is None:
                logger.warning(f"Playlist '{data.get('name')}' has unreadable Top 50 metadata")
                continue
            found.append(AppPlaylist(playlist=PlaylistRef.from_spotify_api(data), metadata=metadata))

        oldest = datetime.min.replace(tzinfo=timezone.utc)

        def created(entry: AppPlaylist) -> datetime:
            moment = entry.metadata.created_at_datetime
            if moment is None:
                return oldest
            return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)

        found.sort(key=created, reverse=True)
        self._playlists_cache = found
        self._playlists_cache_time = now
        return list(found)

    def invalidate_cache(self) -> None:
        self._playlists_cache = None
        self._playlists_cache_time = 0.0
