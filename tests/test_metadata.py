"""Test the Top 50 metadata carried in playlist descriptions"""

import html
import json
from datetime import datetime, timezone

from top_albums.spotify.metadata import (
    DESCRIPTION_MAX_LENGTH,
    MetadataSchema,
    encode_description,
    has_metadata_marker,
    parse_description,
)

from conftest import make_album


CREATED_AT = datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)

COMPACT_PAYLOAD = {
    "v": "1",
    "t": "2024-03-01T12:30:00+00:00",
    "c": 2,
    "a": [
        {"r": 1, "i": "id1", "n": "OK Computer", "ar": "Radiohead", "y": 1997},
        {"r": 2, "i": "id2", "n": "Blue", "ar": "Joni Mitchell", "y": 1971},
    ],
}


class TestParseDescription:
    """Test both description schemas"""

    def test_compact(self):
        text = "My favourites [MT50]" + json.dumps(COMPACT_PAYLOAD) + "[/MT50]"

        metadata = parse_description(text)

        assert metadata.schema is MetadataSchema.COMPACT
        assert metadata.album_count == 2
        assert [a.id for a in metadata.albums] == ["id1", "id2"]
        assert metadata.albums[1].artist == "Joni Mitchell"
        assert metadata.created_at_datetime == datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)

    def test_compact_html_escaped(self):
        blob = html.escape(json.dumps(COMPACT_PAYLOAD))
        text = f"Top 50 [MT50]{blob}[&#x2F;MT50]"

        metadata = parse_description(text)

        assert metadata.schema is MetadataSchema.COMPACT
        assert metadata.albums[0].title == "OK Computer"

    def test_legacy(self):
        payload = {
            "version": "1.0",
            "createdAt": "2023-06-01T10:00:00.000Z",
            "albumCount": 1,
            "albums": [{"rank": 1, "id": "id9", "title": "Kind of Blue", "artist": "Miles Davis",
                        "year": 1959, "genre": "jazz"}],
        }
        text = "[MUSIC_TOP_50]" + json.dumps(payload) + "[/MUSIC_TOP_50]"

        metadata = parse_description(text)

        assert metadata.schema is MetadataSchema.LEGACY
        assert metadata.albums[0].genre == "jazz"
        assert metadata.created_at_datetime.year == 2023

    def test_no_metadata(self):
        assert parse_description(None) is None
        assert parse_description("") is None
        assert parse_description("Just a playlist") is None
        assert not has_metadata_marker("Just a playlist")

    def test_unreadable_metadata(self):
        assert parse_description("[MT50]{not json[/MT50]") is None
        assert parse_description('[MT50]{"v": "1"}[/MT50]') is None
        assert parse_description("[MT50] never closed") is None

    def test_album_entries_must_be_objects(self):
        assert parse_description('[MT50]{"v": "1", "a": [1]}[/MT50]') is None
        assert parse_description('[MT50]{"v": "1", "a": "abc"}[/MT50]') is None
        assert parse_description('[MUSIC_TOP_50]{"albums": ["x"]}[/MUSIC_TOP_50]') is None

    def test_bad_compact_falls_back_to_legacy(self):
        legacy = {"albums": [{"id": "id9", "title": "Kind of Blue", "artist": "Miles Davis"}]}
        text = '[MT50]{"a": [null]}[/MT50] [MUSIC_TOP_50]' + json.dumps(legacy) + "[/MUSIC_TOP_50]"

        metadata = parse_description(text)

        assert metadata.schema is MetadataSchema.LEGACY
        assert metadata.albums[0].id == "id9"

    def test_unparseable_timestamp(self):
        payload = dict(COMPACT_PAYLOAD, t="yesterday")
        metadata = parse_description("[MT50]" + json.dumps(payload) + "[/MT50]")

        assert metadata.created_at_datetime is None


class TestEncodeDescription:
    """Test the compact encoder"""

    def test_round_trip(self, sample_albums):
        text = encode_description("Top 50", sample_albums, CREATED_AT)

        metadata = parse_description(text)
        assert text.startswith("Top 50 [MT50]")
        assert [a.id for a in metadata.albums] == [a.id for a in sample_albums]
        assert [a.rank for a in metadata.albums] == [1, 2, 3]
        assert metadata.created_at_datetime == CREATED_AT

    def test_truncates_to_spotify_limit(self):
        albums = [make_album(f"{i:022d}", f"A Rather Long Album Title {i}", f"Artist {i}") for i in range(50)]

        text = encode_description("Top 50 albums created with My Top Albums", albums, CREATED_AT)

        assert len(text) <= DESCRIPTION_MAX_LENGTH
        metadata = parse_description(text)
        assert metadata.album_count == 50
        assert 0 < len(metadata.albums) < 50
        assert metadata.albums[0].id == albums[0].id

    def test_prefix_too_long(self):
        prefix = "x" * 400

        assert encode_description(prefix, [], CREATED_AT) == "x" * DESCRIPTION_MAX_LENGTH
