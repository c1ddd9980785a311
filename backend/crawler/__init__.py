"""Crawler - a turn-based dungeon crawler engine."""

__version__ = "0.1.0"
