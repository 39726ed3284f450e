"""
Playlist-side data models for top-albums.

    PlaylistRef:  the few fields of a Spotify playlist the app needs
    SyncResult:   outcome of pushing a ranked list to Spotify
    AppPlaylist:  a user playlist recognised as created by this app
"""

from dataclasses import dataclass
from typing import Any

from top_albums.spotify.metadata import DecodedMetadata


SPOTIFY_PLAYLIST_URL = "https://open.spotify.com/playlist/{playlist_id}"


@dataclass(frozen=True)
class PlaylistRef:
    """
    Reference to a Spotify playlist.

    Attributes:
        id: Spotify playlist ID.
        name: Playlist display name.
        url: Link on open.spotify.com.
        description: Raw description text as Spotify returns it.
        total_tracks: Track count, when the payload carried it.
    """
    id: str
    name: str
    url: str
    description: str = ""
    total_tracks: int | None = None

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any]) -> "PlaylistRef":
        playlist_id = data["id"]
        tracks = data.get("tracks")
        return cls(
            id=playlist_id,
            name=data.get("name") or "",
            url=(
                (data.get("external_urls") or {}).get("spotify")
                or SPOTIFY_PLAYLIST_URL.format(playlist_id=playlist_id)
            ),
            description=data.get("description") or "",
            total_tracks=tracks.get("total") if isinstance(tracks, dict) else None,
        )


@dataclass(frozen=True)
class SyncResult:
    """
    Outcome of PlaylistMapper.map_to_playlist().

    Attributes:
        playlist: The playlist that was created or updated.
        tracks_added: Representative tracks appended (albums without
                      tracks are skipped, so this can be < len(albums)).
        is_update: True when an existing counterpart was overwritten.
    """
    playlist: PlaylistRef
    tracks_added: int
    is_update: bool


@dataclass(frozen=True)
class AppPlaylist:
    """A user playlist whose description carries Top 50 metadata."""
    playlist: PlaylistRef
    metadata: DecodedMetadata

    @property
    def album_count(self) -> int:
        return self.metadata.album_count
