"""
Top 50 metadata embedded in a playlist description.

Older versions of the app stored a copy of the ranked list inside the
playlist description. That copy is advisory only: the playlist's tracks
are the source of truth, and the description is size-limited and can
drift after edits made in Spotify. It is still read to recognise app
playlists and as a secondary way to rebuild a list.

Schemas:
    compact (current):
        [MT50]{"v":"1","t":"<iso>","c":N,"a":[{"r":1,"i":id,"n":title,"ar":artist,"y":year}]}[/MT50]

        Spotify HTML-escapes descriptions, so the closing slash may come
        back as "&#x2F;" and quotes as "&quot;".

    legacy:
        [MUSIC_TOP_50]{"version":..,"createdAt":..,"albumCount":..,"albums":[..]}[/MUSIC_TOP_50]

parse_description() tries compact, then legacy, and returns None when
neither yields a usable payload.
"""

import html
import json
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from top_albums.core.logger import get_logger
from top_albums.library.models import UNKNOWN_GENRE, Album

logger = get_logger(__name__)


# Spotify rejects playlist descriptions longer than this
DESCRIPTION_MAX_LENGTH = 300
METADATA_VERSION = "1"

_SLASH = r"(?:/|&#x2F;|&#x2f;|&#47;)"
_COMPACT_PATTERN = re.compile(r"\[MT50\](.*?)\[" + _SLASH + r"MT50\]", re.DOTALL)
_LEGACY_PATTERN = re.compile(r"\[MUSIC_TOP_50\](.*?)\[" + _SLASH + r"MUSIC_TOP_50\]", re.DOTALL)


class MetadataSchema(Enum):
    COMPACT = "compact"
    LEGACY = "legacy"


@dataclass(frozen=True)
class MetadataAlbum:
    """One album as recorded in the description (no cover, no link)."""
    rank: int
    id: str
    title: str
    artist: str
    year: int
    genre: str = UNKNOWN_GENRE


@dataclass(frozen=True)
class DecodedMetadata:
    """
    A successfully parsed description blob.

    Attributes:
        schema: Which format it was found in.
        version: Version string written by the encoder.
        created_at: Creation time as written (ISO 8601 in practice).
        album_count: Length of the list when encoded; may exceed
                     len(albums) when the encoder had to truncate.
        albums: Recorded albums in rank order.
    """
    schema: MetadataSchema
    version: str
    created_at: str
    album_count: int
    albums: tuple[MetadataAlbum, ...]

    @property
    def created_at_datetime(self) -> datetime | None:
        try:
            return datetime.fromisoformat(self.created_at.replace("Z", "+00:00"))
        except (ValueError, AttributeError):
            return None


def _as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _require_object(item: Any, position: int) -> None:
    if not isinstance(item, dict):
        raise ValueError(f"album entry {position} is not an object")


def _compact_album(item: dict[str, Any], position: int) -> MetadataAlbum:
    _require_object(item, position)
    return MetadataAlbum(
        rank=_as_int(item.get("r"), position),
        id=str(item["i"]),
        title=str(item.get("n", "")),
        artist=str(item.get("ar", "")),
        year=_as_int(item.get("y")),
    )


def _legacy_album(item: dict[str, Any], position: int) -> MetadataAlbum:
    _require_object(item, position)
    return MetadataAlbum(
        rank=_as_int(item.get("rank"), position),
        id=str(item["id"]),
        title=str(item.get("title", "")),
        artist=str(item.get("artist", "")),
        year=_as_int(item.get("year")),
        genre=str(item.get("genre") or UNKNOWN_GENRE),
    )


def _parse_compact(payload: dict[str, Any]) -> DecodedMetadata:
    albums = tuple(_compact_album(item, i) for i, item in enumerate(payload["a"], start=1))
    return DecodedMetadata(
        schema=MetadataSchema.COMPACT,
        version=str(payload.get("v", "")),
        created_at=str(payload.get("t", "")),
        album_count=_as_int(payload.get("c"), len(albums)),
        albums=albums,
    )


def _parse_legacy(payload: dict[str, Any]) -> DecodedMetadata:
    albums = tuple(_legacy_album(item, i) for i, item in enumerate(payload["albums"], start=1))
    return DecodedMetadata(
        schema=MetadataSchema.LEGACY,
        version=str(payload.get("version", "")),
        created_at=str(payload.get("createdAt", "")),
        album_count=_as_int(payload.get("albumCount"), len(albums)),
        albums=albums,
    )


def _try_schema(text: str, pattern: re.Pattern, parser: Any, schema: MetadataSchema) -> DecodedMetadata | None:
    match = pattern.search(text)
    if match is None:
        return None
    try:
        payload = json.loads(html.unescape(match.group(1)))
        if not isinstance(payload, dict):
            raise ValueError("metadata is not an object")
        return parser(payload)
    except (ValueError, KeyError, TypeError) as e:
        logger.debug(f"Unreadable {schema.value} playlist metadata: {e}")
        return None


def has_metadata_marker(text: str | None) -> bool:
    """Cheap check for either schema's opening tag."""
    return bool(text) and ("[MT50]" in text or "[MUSIC_TOP_50]" in text)


def parse_description(text: str | None) -> DecodedMetadata | None:
    """
    Extract Top 50 metadata from a playlist description.

    Returns:
        DecodedMetadata tagged with the schema it was found in, or None.
    """
    if not has_metadata_marker(text):
        return None
    return (
        _try_schema(text, _COMPACT_PATTERN, _parse_compact, MetadataSchema.COMPACT)
        or _try_schema(text, _LEGACY_PATTERN, _parse_legacy, MetadataSchema.LEGACY)
    )


def _compact_blob(albums: list[Album], total: int, created_at: datetime) -> str:
    payload = {
        "v": METADATA_VERSION,
        "t": created_at.isoformat(),
        "c": total,
        "a": [
            {"r": rank, "i": album.id, "n": album.title, "ar": album.artist, "y": album.year}
            for rank, album in enumerate(albums, start=1)
        ],
    }
    return "[MT50]" + json.dumps(payload, separators=(",", ":"), ensure_ascii=False) + "[/MT50]"


def encode_description(prefix: str, albums: list[Album], created_at: datetime) -> str:
    """
    Build a playlist description carrying compact metadata.

    Trailing albums are dropped until the whole description fits within
    DESCRIPTION_MAX_LENGTH. The "c" field keeps the full list length.
    If not even an empty blob fits, the bare prefix is returned.
    """
    separator = " " if prefix else ""
    for kept in range(len(albums), -1, -1):
        description = prefix + separator + _compact_blob(albums[:kept], len(albums), created_at)
        if len(description) <= DESCRIPTION_MAX_LENGTH:
            if kept < len(albums):
                logger.debug(f"Playlist metadata truncated to {kept}/{len(albums)} albums")
            return description
    return prefix[:DESCRIPTION_MAX_LENGTH]
