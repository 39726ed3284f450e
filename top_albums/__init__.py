"""
top-albums: build a personal Top 50 albums list from Spotify.

Search Spotify's catalog, keep a ranked list of your favourite albums
locally, push it to a Spotify playlist, and share it as a link.
"""

# Version string (if updated, update also in setup.py)
__version__ = "0.1.0"
