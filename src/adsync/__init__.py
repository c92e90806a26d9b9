"""
adsync - Meta Ad Library capture and sync

Captures ads from the public Ad Library by intercepting the GraphQL
traffic behind the page, and keeps a per-page JSON store in sync with it.
"""

__version__ = "0.1.0"
