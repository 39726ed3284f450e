"""Test the playlist mapping engine"""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest
from spotipy import SpotifyException

from top_albums.core.exceptions import NotAuthenticatedError, PlaylistLoadError, SpotifyError
from top_albums.library.models import PLACEHOLDER_COVER
from top_albums.spotify.metadata import encode_description
from top_albums.spotify.models import PlaylistRef
from top_albums.spotify.playlist import PlaylistMapper

from conftest import PLAYLIST_NAME, album_payload, make_album, playlist_item, track_uri


DESCRIPTION = "Top 50 albums created with My Top Albums"
NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def existing_playlist(playlist_id, name=PLAYLIST_NAME, description=""):
    return {
        "id": playlist_id,
        "name": name,
        "description": description,
        "external_urls": {"spotify": f"https://open.spotify.com/playlist/{playlist_id}"},
        "tracks": {"total": 3},
    }


@pytest.fixture
def mapper(catalog, user_client):
    return PlaylistMapper(catalog, user_client, PLAYLIST_NAME, DESCRIPTION, now=lambda: NOW)


def added_uris(user_spotipy):
    uris = []
    for call in user_spotipy.playlist_add_items.call_args_list:
        uris.extend(call.args[1])
    return uris


class TestFindCounterpart:
    """Test identity resolution of the Top 50 playlist"""

    def test_none(self, mapper):
        assert mapper.find_existing_counterpart() is None

    def test_exact_name_first_match(self, mapper, user_spotipy):
        user_spotipy.current_user_playlists.return_value = {"items": [
            existing_playlist("other", name="Top 50 Albums"),
            existing_playlist("first"),
            existing_playlist("second"),
        ], "next": None}

        counterpart = mapper.find_existing_counterpart()

        assert counterpart.id == "first"
        assert counterpart.total_tracks == 3

    def test_listing_failure_propagates(self, mapper, user_spotipy):
        user_spotipy.current_user_playlists.side_effect = SpotifyException(500, -1, "boom")

        with pytest.raises(SpotifyError):
            mapper.find_existing_counterpart()

    def test_requires_login(self, catalog):
        mapper = PlaylistMapper(catalog, None, PLAYLIST_NAME, DESCRIPTION)

        with pytest.raises(NotAuthenticatedError):
            mapper.find_existing_counterpart()


class TestMapToPlaylist:
    """Test encoding a ranked list into the counterpart playlist"""

    def test_creates_playlist(self, mapper, user_spotipy, sample_albums):
        result = mapper.map_to_playlist(sample_albums)

        assert not result.is_update
        assert result.playlist.id == "new_playlist"
        assert result.tracks_added == 3
        assert result.playlist.total_tracks == 3
        user_spotipy.user_playlist_create.assert_called_once_with(
            "user_1", PLAYLIST_NAME, public=True, description=DESCRIPTION
        )
        assert added_uris(user_spotipy) == [track_uri(a.id) for a in sample_albums]

    def test_updates_existing_playlist(self, mapper, user_spotipy, sample_albums):
        user_spotipy.current_user_playlists.return_value = {
            "items": [existing_playlist("existing")], "next": None
        }

        result = mapper.map_to_playlist(sample_albums)

        assert result.is_update
        assert result.playlist.id == "existing"
        user_spotipy.user_playlist_create.assert_not_called()
        user_spotipy.playlist_replace_items.assert_called_once_with("existing", [])
        assert added_uris(user_spotipy) == [track_uri(a.id) for a in sample_albums]

    def test_second_save_reuses_playlist(self, mapper, user_spotipy, sample_albums):
        first = mapper.map_to_playlist(sample_albums)
        user_spotipy.current_user_playlists.return_value = {
            "items": [existing_playlist(first.playlist.id)], "next": None
        }

        second = mapper.map_to_playlist(sample_albums[:1])

        assert second.is_update
        assert second.playlist.id == first.playlist.id
        assert user_spotipy.user_playlist_create.call_count == 1

    def test_large_list_is_sent_in_batches(self, mapper, user_spotipy):
        albums = [make_album(f"album_{i}") for i in range(101)]

        result = mapper.map_to_playlist(albums)

        assert result.tracks_added == 101
        assert user_spotipy.playlist_add_items.call_count == 2
        assert added_uris(user_spotipy) == [track_uri(a.id) for a in albums]

    def test_album_without_tracks_is_skipped(self, mapper, catalog_spotipy, user_spotipy, sample_albums):
        catalog_spotipy.album_tracks.side_effect = lambda album_id, limit=None, market=None: (
            {"items": []} if album_id == "album_a" else {"items": [{"uri": track_uri(album_id)}]}
        )
        seen = []

        result = mapper.map_to_playlist(sample_albums, on_album=lambda album, uri: seen.append((album.id, uri)))

        assert result.tracks_added == 2
        assert added_uris(user_spotipy) == [track_uri("album_b"), track_uri("album_c")]
        assert seen == [
            ("album_b", track_uri("album_b")),
            ("album_a", None),
            ("album_c", track_uri("album_c")),
        ]

    def test_listing_failure_creates_nothing(self, mapper, user_spotipy, sample_albums):
        user_spotipy.current_user_playlists.side_effect = SpotifyException(503, -1, "unavailable")

        with pytest.raises(SpotifyError):
            mapper.map_to_playlist(sample_albums)

        user_spotipy.user_playlist_create.assert_not_called()
        user_spotipy.playlist_replace_items.assert_not_called()

    def test_embed_metadata(self, catalog, user_client, user_spotipy, sample_albums):
        user_spotipy.current_user_playlists.return_value = {
            "items": [existing_playlist("existing")], "next": None
        }
        mapper = PlaylistMapper(catalog, user_client, PLAYLIST_NAME, DESCRIPTION,
                                embed_metadata=True, now=lambda: NOW)

        mapper.map_to_playlist(sample_albums)

        description = user_spotipy.playlist_change_details.call_args.kwargs["description"]
        assert description == encode_description(DESCRIPTION, sample_albums, NOW)

    def test_requires_login(self, catalog, sample_albums):
        mapper = PlaylistMapper(catalog, None, PLAYLIST_NAME, DESCRIPTION)

        with pytest.raises(NotAuthenticatedError):
            mapper.map_to_playlist(sample_albums)


class TestDecode:
    """Test rebuilding a ranked list from a playlist"""

    def test_one_album_per_id_in_first_track_order(self, mapper, user_spotipy):
        user_spotipy.playlist_items.return_value = {"items": [
            playlist_item("x", 1),
            playlist_item("y", 1),
            playlist_item("x", 2),
            {"track": None},
            playlist_item("z", 1),
        ], "next": None}

        albums = mapper.decode_from_tracks("pl")

        assert [a.id for a in albums] == ["x", "y", "z"]
        assert albums[0].artist == "Lookup Artist"

    def test_failed_lookup_falls_back_to_track_data(self, mapper, catalog_spotipy, user_spotipy):
        user_spotipy.playlist_items.return_value = {"items": [
            playlist_item("ok", 1), playlist_item("gone", 1, name="Delisted Album")
        ], "next": None}

        def lookup(album_id, market=None):
            if album_id == "gone":
                raise SpotifyException(404, -1, "not found")
            return album_payload(album_id)

        catalog_spotipy.album.side_effect = lookup

        albums = mapper.decode_from_tracks("pl")

        assert [a.id for a in albums] == ["ok", "gone"]
        assert albums[1].title == "Delisted Album"
        assert albums[1].artist == "Stub Artist"
        assert albums[1].year == 1999

    def test_listing_failure(self, mapper, user_spotipy):
        user_spotipy.playlist_items.side_effect = SpotifyException(404, -1, "no such playlist")

        with pytest.raises(PlaylistLoadError) as exc_info:
            mapper.decode_from_tracks("pl")

        assert not exc_info.value.is_empty

    def test_empty_playlist(self, mapper, user_spotipy):
        user_spotipy.playlist_items.return_value = {"items": [], "next": None}

        with pytest.raises(PlaylistLoadError) as exc_info:
            mapper.load_playlist("pl")

        assert exc_info.value.is_empty

    def test_logged_out_reads_with_catalog_client(self, catalog, catalog_spotipy):
        catalog_spotipy.playlist_items.return_value = {"items": [playlist_item("x")], "next": None}
        mapper = PlaylistMapper(catalog, None, PLAYLIST_NAME, DESCRIPTION)

        assert [a.id for a in mapper.load_playlist("public")] == ["x"]

    def test_round_trip(self, mapper, catalog_spotipy, user_spotipy, sample_albums):
        mapper.map_to_playlist(sample_albums)
        by_uri = {track_uri(a.id): a.id for a in sample_albums}
        user_spotipy.playlist_items.return_value = {
            "items": [playlist_item(by_uri[uri]) for uri in added_uris(user_spotipy)],
            "next": None,
        }

        decoded = mapper.load_playlist("new_playlist")

        assert [a.id for a in decoded] == [a.id for a in sample_albums]

    def test_decode_from_metadata(self, mapper, catalog_spotipy, sample_albums):
        catalog_spotipy.album.side_effect = SpotifyException(500, -1, "down")
        playlist = PlaylistRef(
            id="pl", name=PLAYLIST_NAME, url="",
            description=encode_description(DESCRIPTION, sample_albums, NOW),
        )

        albums = mapper.decode_from_metadata(playlist)

        assert [a.id for a in albums] == [a.id for a in sample_albums]
        assert [a.title for a in albums] == [a.title for a in sample_albums]
        assert all(a.cover == PLACEHOLDER_COVER for a in albums)

    def test_decode_from_metadata_without_metadata(self, mapper):
        playlist = PlaylistRef(id="pl", name="Mix", url="", description="no metadata here")

        assert mapper.decode_from_metadata(playlist) == []

    def test_get_playlist_failure(self, mapper, user_spotipy):
        user_spotipy.playlist.side_effect = SpotifyException(403, -1, "private")

        with pytest.raises(PlaylistLoadError):
            mapper.get_playlist("pl")


class TestAppPlaylists:
    """Test listing playlists created by the app"""

    @pytest.fixture
    def playlists(self, user_spotipy, sample_albums):
        older = encode_description("Top", sample_albums[:1], NOW - timedelta(days=3))
        newer = encode_description("Top", sample_albums, NOW)
        user_spotipy.current_user_playlists.return_value = {"items": [
            existing_playlist("older", name="Top 50 (old)", description=older),
            existing_playlist("plain", name="Road trip", description="songs"),
            existing_playlist("newer", description=newer),
            existing_playlist("broken", description="[MT50]{oops[/MT50]"),
        ], "next": None}
        return user_spotipy

    def test_newest_first(self, catalog, user_client, playlists):
        mapper = PlaylistMapper(catalog, user_client, PLAYLIST_NAME, DESCRIPTION)

        found = mapper.list_app_playlists()

        assert [p.playlist.id for p in found] == ["newer", "older"]
        assert found[0].album_count == 3

    def test_cached_for_30_seconds(self, catalog, user_client, playlists):
        clock = Mock(return_value=100.0)
        mapper = PlaylistMapper(catalog, user_client, PLAYLIST_NAME, DESCRIPTION, clock=clock)

        mapper.list_app_playlists()
        clock.return_value = 129.0
        mapper.list_app_playlists()
        assert playlists.current_user_playlists.call_count == 1

        clock.return_value = 131.0
        mapper.list_app_playlists()
        assert playlists.current_user_playlists.call_count == 2

        mapper.invalidate_cache()
        mapper.list_app_playlists()
        assert playlists.current_user_playlists.call_count == 3
