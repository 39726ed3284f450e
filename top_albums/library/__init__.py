"""
Library module for top-albums.

Everything about the user's ranked list that does not touch the network:
    - models: the Album record
    - ranked_list: pure list operations and the TopList ordering model
    - persistence: local storage of the list and its backup history
    - share: share tokens and incoming link parsing
"""

from top_albums.library.models import (
    PLACEHOLDER_COVER,
    UNKNOWN_ARTIST,
    UNKNOWN_GENRE,
    Album,
    albums_from_dicts,
    albums_to_dicts,
    parse_release_year,
)
from top_albums.library.persistence import (
    MAX_BACKUPS,
    BackupEntry,
    BackupManager,
    BackupSource,
    ListRepository,
    format_backup_age,
)
from top_albums.library.ranked_list import (
    SOFT_CAP,
    AddOutcome,
    AddResult,
    SortDirection,
    SortMode,
    TopList,
    add_album,
    move_item,
    remove_album,
    same_albums,
    sort_by_year,
    summarize,
)
from top_albums.library.share import (
    LinkIntent,
    build_playlist_link,
    build_share_url,
    decode_share_token,
    encode_share_token,
    format_share_text,
    parse_link,
)

__all__ = [
    # Models
    "Album",
    "albums_from_dicts",
    "albums_to_dicts",
    "parse_release_year",
    "PLACEHOLDER_COVER",
    "UNKNOWN_ARTIST",
    "UNKNOWN_GENRE",
    # Ranked list
    "SOFT_CAP",
    "AddOutcome",
    "AddResult",
    "SortDirection",
    "SortMode",
    "TopList",
    "add_album",
    "move_item",
    "remove_album",
    "same_albums",
    "sort_by_year",
    "summarize",
    # Persistence
    "MAX_BACKUPS",
    "BackupEntry",
    "BackupManager",
    "BackupSource",
    "ListRepository",
    "format_backup_age",
    # Share
    "LinkIntent",
    "build_playlist_link",
    "build_share_url",
    "decode_share_token",
    "encode_share_token",
    "format_share_text",
    "parse_link",
]
