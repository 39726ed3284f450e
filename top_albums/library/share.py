"""
Share/import codec for ranked lists.

A share token is a self-contained encoding of a ranked list: the full Album
records, not just ids, so a recipient needs no Spotify access to view it.

Token Format:
    urlsafe_base64( utf8( json({"albums": [album, ...]}) ) )

    Padding is stripped on encode. The decoder accepts URL-safe or standard
    base64, with or without padding.

Links:
    <base>?shared=<token>       import offer for a shared list
    <base>?spotify=<playlist>   offer to load a Spotify playlist

Neither link kind ever changes local state by itself. parse_link() only
reports what the link carries; the caller decides whether to import.
"""

import base64
import binascii
import json
from dataclasses import dataclass, field
from urllib.parse import parse_qs, urlencode, urlsplit

from top_albums.core.exceptions import DecodeError
from top_albums.library.models import Album, albums_from_dicts, albums_to_dicts


SHARED_PARAM = "shared"
PLAYLIST_PARAM = "spotify"


def encode_share_token(albums: list[Album]) -> str:
    payload = json.dumps({"albums": albums_to_dicts(albums)}, ensure_ascii=False)
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")


def decode_share_token(token: str) -> list[Album]:
    """
    Decode a share token back into a ranked list.

    Raises:
        DecodeError: If the token is not valid base64, not JSON, or not an
                     object with a well-formed "albums" list. Nothing is
                     ever partially decoded.
    """
    # Spaces are kept: a trailing "+" may have been decoded into one
    cleaned = (token or "").strip("\r\n\t")
    if not cleaned.strip():
        raise DecodeError("Share token is empty")

    # Query-string decoding turns "+" into " "
    normalized = cleaned.replace(" ", "+").replace("+", "-").replace("/", "_")
    normalized += "=" * (-len(normalized) % 4)

    try:
        raw = base64.urlsafe_b64decode(normalized.encode("ascii"))
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise DecodeError("Share token is not readable", details={"reason": str(e)}) from e

    if not isinstance(payload, dict) or "albums" not in payload:
        raise DecodeError("Share token does not contain an album list")

    try:
        return albums_from_dicts(payload["albums"])
    except ValueError as e:
        raise DecodeError("Share token contains malformed albums", details={"reason": str(e)}) from e


def _with_query(base_url: str, params: dict[str, str]) -> str:
    base = base_url.split("?", 1)[0].split("#", 1)[0]
    return f"{base}?{urlencode(params)}"


def build_share_url(base_url: str, albums: list[Album]) -> str:
    return _with_query(base_url, {SHARED_PARAM: encode_share_token(albums)})


def build_playlist_link(base_url: str, playlist_id: str) -> str:
    return _with_query(base_url, {PLAYLIST_PARAM: playlist_id})


@dataclass(frozen=True)
class LinkIntent:
    """
    What an incoming link asks for.

    Attributes:
        shared_albums: Decoded list when the link carries a valid share token.
        playlist_id: Spotify playlist offered for loading.
        error: DecodeError when a share token is present but malformed.
    """
    shared_albums: list[Album] | None = None
    playlist_id: str | None = None
    error: DecodeError | None = field(default=None, compare=False)

    @property
    def is_empty(self) -> bool:
        return self.shared_albums is None and self.playlist_id is None and self.error is None


def parse_link(url: str) -> LinkIntent:
    """
    Inspect a link for a share token or a playlist offer.

    The share token wins when both parameters are present. A link with
    neither parameter yields an empty intent.
    """
    params = parse_qs(urlsplit(url).query)

    shared = params.get(SHARED_PARAM)
    if shared:
        try:
            return LinkIntent(shared_albums=decode_share_token(shared[0]))
        except DecodeError as e:
            return LinkIntent(error=e)

    playlist = params.get(PLAYLIST_PARAM)
    if playlist and playlist[0]:
        return LinkIntent(playlist_id=playlist[0])

    return LinkIntent()


def format_share_text(albums: list[Album]) -> str:
    """
    Plain-text rendering of a ranked list for pasting into messages.

    Example:
        🎵 My Top 2 Albums

        1. Pink Floyd - The Dark Side of the Moon (1973)
        2. Radiohead - OK Computer (1997)
    """
    lines = [f"🎵 My Top {len(albums)} Albums", ""]
    lines.extend(
        f"{rank}. {album.artist} - {album.title} ({album.year})"
        for rank, album in enumerate(albums, start=1)
    )
    return "\n".join(lines)
