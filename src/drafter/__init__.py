"""Announcement drafter: publish markdown files from merged pull requests as discussions."""

__version__ = "0.1.0"
