"""
Token exchange gateway for top-albums.

A small HTTP service that keeps the Spotify client secret away from the
command-line client:
    - exchange: talks to Spotify's accounts service
    - app: Flask routes wrapping the exchange
"""

from top_albums.gateway.app import create_app
from top_albums.gateway.exchange import TokenExchange, TokenGrant

__all__ = [
    "create_app",
    "TokenExchange",
    "TokenGrant",
]
