"""Engagement intelligence for live interactive sessions."""

__version__ = "0.1.0"
