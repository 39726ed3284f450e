"""Test configuration and fixtures"""

import pytest
import tempfile
from pathlib import Path
from unittest.mock import MagicMock, Mock

import spotipy

from top_albums.core.database import Database
from top_albums.library.models import Album
from top_albums.spotify.catalog import CatalogClient
from top_albums.spotify.client import SpotifyClient


PLAYLIST_NAME = "🎵 Top 50 Albums"


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def database():
    """Throwaway in-memory key-value store"""
    db = Database(":memory:")
    yield db
    db.close()


@pytest.fixture
def clock():
    """Controllable seconds clock (set clock.return_value to move time)"""
    return Mock(return_value=1_700_000_000.0)


def make_album(album_id, title=None, artist="Test Artist", year=2000, genre="rock"):
    return Album(
        id=album_id,
        title=title or f"Album {album_id}",
        artist=artist,
        year=year,
        genre=genre,
        cover=f"https://i.scdn.co/image/{album_id}",
        external_url=f"https://open.spotify.com/album/{album_id}",
    )


@pytest.fixture
def sample_albums():
    """Three albums with distinct years, in no particular order"""
    return [
        make_album("album_b", "OK Computer", "Radiohead", 1997, "alternative rock"),
        make_album("album_a", "The Dark Side of the Moon", "Pink Floyd", 1973, "progressive rock"),
        make_album("album_c", "In Rainbows", "Radiohead", 2007, "art rock"),
    ]


def album_payload(album_id, name=None, artists=("Test Artist",), release_date="2000-01-01",
                  genres=None, images=True):
    """Spotify album object as returned by search or GET /albums/{id}"""
    return {
        "id": album_id,
        "name": name or f"Album {album_id}",
        "artists": [{"id": f"artist_{i}", "name": a} for i, a in enumerate(artists)],
        "release_date": release_date,
        "genres": list(genres or []),
        "images": [{"url": f"https://i.scdn.co/image/{album_id}", "height": 640}] if images else [],
        "external_urls": {"spotify": f"https://open.spotify.com/album/{album_id}"},
    }


def track_uri(album_id, number=1):
    return f"spotify:track:{album_id}-{number}"


def playlist_item(album_id, number=1, name=None):
    """Playlist item wrapping a track of album_id"""
    return {
        "track": {
            "uri": track_uri(album_id, number),
            "album": {
                "id": album_id,
                "name": name or f"Album {album_id}",
                "artists": [{"name": "Stub Artist"}],
                "release_date": "1999-05-01",
                "images": [],
            },
        }
    }


@pytest.fixture
def fake_spotipy():
    """In-memory stand-in for spotipy.Spotify"""
    return MagicMock(spec=spotipy.Spotify)


@pytest.fixture
def catalog_spotipy():
    """
    spotipy double for the catalog: every album has two tracks and a
    full album payload.
    """
    spotify = MagicMock(spec=spotipy.Spotify)
    spotify.album_tracks.side_effect = lambda album_id, limit=None, market=None: {
        "items": [{"uri": track_uri(album_id, 1)}, {"uri": track_uri(album_id, 2)}]
    }
    spotify.album.side_effect = lambda album_id, market=None: album_payload(
        album_id, artists=("Lookup Artist", "Guest"), genres=["rock"]
    )
    return spotify


@pytest.fixture
def catalog(catalog_spotipy):
    return CatalogClient(SpotifyClient(catalog_spotipy), market="US")


@pytest.fixture
def user_spotipy():
    """spotipy double for a logged-in user with no playlists yet"""
    spotify = MagicMock(spec=spotipy.Spotify)
    spotify.current_user.return_value = {"id": "user_1", "display_name": "Test User"}
    spotify.current_user_playlists.return_value = {"items": [], "next": None}
    spotify.user_playlist_create.return_value = {
        "id": "new_playlist",
        "name": PLAYLIST_NAME,
        "description": "",
        "external_urls": {"spotify": "https://open.spotify.com/playlist/new_playlist"},
    }
    return spotify


@pytest.fixture
def user_client(user_spotipy):
    return SpotifyClient(user_spotipy)
