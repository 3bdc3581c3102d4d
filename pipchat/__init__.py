"""Twitch chat bridge for Picture-in-Picture overlays."""

__version__ = "0.1.0"
