"""
Spotify module for top-albums.

    - client: spotipy wrapper converting failures into SpotifyError
    - tokens: client-credentials token cache and gateway client
    - catalog: album search, lookup and track listing
    - metadata: Top 50 metadata embedded in playlist descriptions
    - models: playlist references and sync results
    - playlist: ranked list <-> playlist mapping
    - auth: logged-in user state
"""

from top_albums.spotify.auth import AuthState
from top_albums.spotify.catalog import CatalogClient, SearchResult
from top_albums.spotify.client import SpotifyClient
from top_albums.spotify.metadata import (
    DecodedMetadata,
    MetadataAlbum,
    MetadataSchema,
    encode_description,
    parse_description,
)
from top_albums.spotify.models import AppPlaylist, PlaylistRef, SyncResult
from top_albums.spotify.playlist import PlaylistMapper
from top_albums.spotify.tokens import ClientTokenCache, GatewayTokenSource

__all__ = [
    "AuthState",
    "CatalogClient",
    "SearchResult",
    "SpotifyClient",
    "DecodedMetadata",
    "MetadataAlbum",
    "MetadataSchema",
    "encode_description",
    "parse_description",
    "AppPlaylist",
    "PlaylistRef",
    "SyncResult",
    "PlaylistMapper",
    "ClientTokenCache",
    "GatewayTokenSource",
]
