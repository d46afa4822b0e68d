"""Telegram bot that drills vocabulary with spaced repetition."""

__version__ = "0.1.0"
