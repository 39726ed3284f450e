"""
Album record model.

The Album is the one value type every other part of top-albums passes
around: the ranked list is a list of Albums, backups and share tokens
serialise Albums, and the playlist mapper turns Spotify payloads into
Albums.

Design Decisions:
    - Frozen dataclass: an Album never changes once fetched
    - `id` is the identity key; two records with the same id are the same
      album for deduplication even if cover or genre differ
    - Serialized form uses the camelCase `externalUrl` key so that stored
      lists and share tokens keep the shape existing clients already wrote

Usage:
    from top_albums.library.models import Album

    album = Album.from_spotify_api(search_item)
    stored = album.to_dict()
    again = Album.from_dict(stored)
"""

from dataclasses import dataclass
from typing import Any


UNKNOWN_GENRE = "Unknown"
UNKNOWN_ARTIST = "Unknown Artist"
PLACEHOLDER_COVER = "/placeholder.svg?height=300&width=300&text=No+Image"
SPOTIFY_ALBUM_URL = "https://open.spotify.com/album/{album_id}"


def parse_release_year(release_date: str | None) -> int:
    """
    Extract the year from a Spotify release date.

    Spotify dates come as "1975-11-21", "1975-11" or "1975" depending on
    release_date_precision. Anything unparseable yields 0.

    Examples:
        parse_release_year("1975-11-21")  # 1975
        parse_release_year("")            # 0
    """
    if not release_date:
        return 0
    try:
        return int(str(release_date)[:4])
    except ValueError:
        return 0


def _first_image_url(images: list[dict[str, Any]] | None) -> str | None:
    if not images:
        return None
    return images[0].get("url") or None


@dataclass(frozen=True)
class Album:
    """
    Immutable representation of one album in a Top 50.

    Attributes:
        id: Spotify album ID (22-character base62 string). Identity key.
            Example: "4LH4d3cOWNNsVw41Gqt2kv"

        title: Album name as it appears on Spotify.
               Example: "The Dark Side of the Moon"

        artist: Display artist. Search results join every contributing
                artist with ", "; lookups keep only the first.
                Example: "Pink Floyd"

        year: Release year, 0 when the release date is unparseable.

        genre: Best-effort single genre, "Unknown" when Spotify has none.

        cover: URL of the cover image, or PLACEHOLDER_COVER.

        external_url: Link to the album on open.spotify.com.
    """

    id: str
    title: str
    artist: str
    year: int = 0
    genre: str = UNKNOWN_GENRE
    cover: str = PLACEHOLDER_COVER
    external_url: str = ""

    @classmethod
    def from_spotify_api(cls, data: dict[str, Any], join_artists: bool = True) -> "Album":
        """
        Create an Album from a Spotify album object.

        Args:
            data: Simplified or full album object (search item, or the
                  response of GET /albums/{id}).
            join_artists: Join all artist names with ", " (search results).
                          If False, keep only the first artist (lookups).

        Returns:
            Album populated from the payload, with fallbacks for missing
            genre, cover and artists.
        """
        artist_names = [a.get("name", "") for a in data.get("artists") or [] if a.get("name")]
        if join_artists:
            artist = ", ".join(artist_names)
        else:
            artist = artist_names[0] if artist_names else UNKNOWN_ARTIST

        genres = data.get("genres") or []

        return cls(
            id=data["id"],
            title=data.get("name", ""),
            artist=artist or UNKNOWN_ARTIST,
            year=parse_release_year(data.get("release_date")),
            genre=genres[0] if genres else UNKNOWN_GENRE,
            cover=_first_image_url(data.get("images")) or PLACEHOLDER_COVER,
            external_url=(data.get("external_urls") or {}).get("spotify", ""),
        )

    @classmethod
    def from_track_stub(cls, album_stub: dict[str, Any]) -> "Album":
        """
        Build a fallback Album from the album stub embedded in a track.

        Used when the full album lookup fails during playlist decoding, so
        the album is never dropped just because enrichment failed.
        """
        album_id = album_stub["id"]
        artists = album_stub.get("artists") or []

        return cls(
            id=album_id,
            title=album_stub.get("name", ""),
            artist=(artists[0].get("name") if artists else None) or UNKNOWN_ARTIST,
            year=parse_release_year(album_stub.get("release_date")),
            genre=UNKNOWN_GENRE,
            cover=_first_image_url(album_stub.get("images")) or PLACEHOLDER_COVER,
            external_url=(
                (album_stub.get("external_urls") or {}).get("spotify")
                or SPOTIFY_ALBUM_URL.format(album_id=album_id)
            ),
        )

    @classmethod
    def from_dict(cls, data: Any) -> "Album":
        """
        Rebuild an Album from its serialized form.

        Raises:
            ValueError: If data is not a dict or lacks a usable id, title
                        or artist, or year is not an integer.
        """
        if not isinstance(data, dict):
            raise ValueError(f"Album entry must be an object, got {type(data).__name__}")

        album_id = data.get("id")
        if not isinstance(album_id, str) or not album_id:
            raise ValueError("Album entry is missing an 'id'")

        for key in ("title", "artist"):
            if not isinstance(data.get(key), str):
                raise ValueError(f"Album {album_id} is missing '{key}'")

        year = data.get("year", 0)
        if isinstance(year, bool) or not isinstance(year, int):
            raise ValueError(f"Album {album_id} has a non-integer year: {year!r}")

        for key in ("genre", "cover", "externalUrl"):
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"Album {album_id} has a non-text '{key}': {value!r}")

        return cls(
            id=album_id,
            title=data["title"],
            artist=data["artist"],
            year=year,
            genre=data.get("genre") or UNKNOWN_GENRE,
            cover=data.get("cover") or PLACEHOLDER_COVER,
            external_url=data.get("externalUrl") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "year": self.year,
            "genre": self.genre,
            "cover": self.cover,
            "externalUrl": self.external_url,
        }

    @property
    def display_name(self) -> str:
        return f"{self.artist} - {self.title}"


def albums_from_dicts(items: Any) -> list[Album]:
    """
    Rebuild a list of Albums, all or nothing.

    Raises:
        ValueError: If items is not a list or any entry is malformed.
    """
    if not isinstance(items, list):
        raise ValueError(f"Expected a list of albums, got {type(items).__name__}")
    return [Album.from_dict(item) for item in items]


def albums_to_dicts(albums: list[Album]) -> list[dict[str, Any]]:
    return [album.to_dict() for album in albums]
