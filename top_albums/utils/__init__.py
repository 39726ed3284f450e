"""
Utility functions for top-albums.

Small parsing helpers for the values users paste on the command line:
Spotify links, URIs and bare IDs, and OAuth redirect URLs.

Usage:
    from top_albums.utils import extract_album_id, extract_playlist_id
"""

from urllib.parse import parse_qs, urlsplit


def extract_spotify_id(url_or_id: str) -> str:
    """
    Extract a Spotify ID from a URL or URI, or return the ID as-is.

    Handles:
        - https://open.spotify.com/album/ID
        - https://open.spotify.com/album/ID?si=xxx
        - spotify:album:ID
        - Just the ID

    Examples:
        extract_spotify_id("https://open.spotify.com/album/abc123?si=xyz")
        # Returns: "abc123"

        extract_spotify_id("spotify:playlist:abc123")
        # Returns: "abc123"
    """
    value = url_or_id.strip()

    if value.startswith("spotify:"):
        return value.split(":")[-1]

    if "spotify.com" in value:
        value = value.split("?")[0].split("#")[0]
        return value.rstrip("/").split("/")[-1]

    return value


def _extract_typed_id(url_or_id: str, kind: str) -> str:
    value = url_or_id.strip()
    if ("spotify.com" in value or value.startswith("spotify:")) and kind not in value:
        raise ValueError(f"Not a Spotify {kind} link: {url_or_id}")
    spotify_id = extract_spotify_id(value)
    if not spotify_id:
        raise ValueError(f"No {kind} ID in: {url_or_id}")
    return spotify_id


def extract_album_id(url_or_id: str) -> str:
    """
    Raises:
        ValueError: If the value is a Spotify link to something other than an album.
    """
    return _extract_typed_id(url_or_id, "album")


def extract_playlist_id(url_or_id: str) -> str:
    """
    Extract a playlist ID from a playlist link, URI or bare ID.

    Raises:
        ValueError: If the value is a Spotify link to something other than a playlist.

    Examples:
        extract_playlist_id("https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M")
        # Returns: "37i9dQZF1DXcBWIGoYBM5M"
    """
    return _extract_typed_id(url_or_id, "playlist")


def extract_auth_code(redirect_url_or_code: str) -> str:
    """
    Get the OAuth code from the URL Spotify redirected to.

    A value without a query string is taken to be the code itself.

    Raises:
        ValueError: If the redirect carries an error (e.g. access_denied)
                    or no code.
    """
    value = redirect_url_or_code.strip()
    if "?" not in value:
        if not value:
            raise ValueError("No authorization code given")
        return value

    params = parse_qs(urlsplit(value).query)
    if "error" in params:
        raise ValueError(f"Spotify refused the login: {params['error'][0]}")
    codes = params.get("code")
    if not codes or not codes[0]:
        raise ValueError("The redirect URL carries no authorization code")
    return codes[0]
