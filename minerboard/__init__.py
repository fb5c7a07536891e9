"""Minerboard: contribution tracking and leaderboard server for a shared mining pool."""

__version__ = "0.1.0"
