"""Spotify-backed artist track catalog with tempo metadata."""

__version__ = "0.1.0"
