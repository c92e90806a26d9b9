"""Test fixtures for adsync tests.

Provides builders for:
- Raw ad-like objects and GraphQL payloads
- Response bodies as the browser would deliver them
"""

from .payloads import *
