"""Twitch chat bot on EventSub with a small Flask app for the OAuth sign-in."""

__version__ = "0.1.0"