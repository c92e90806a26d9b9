"""Shared pytest fixtures."""

import logging

import pytest

from adsync.config import get_settings
from adsync.storage import FileAdStore, InMemoryAdStore

from .fixtures.payloads import FixedClock


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Point settings at a temporary data dir and disable scroll waits."""
    monkeypatch.setenv("ADSYNC_DATA_DIR", str(tmp_path / "ads_database"))
    monkeypatch.setenv("ADSYNC_INITIAL_WAIT_SECONDS", "0")
    monkeypatch.setenv("ADSYNC_SCROLL_WAIT_MIN_SECONDS", "0")
    monkeypatch.setenv("ADSYNC_SCROLL_WAIT_MAX_SECONDS", "0")
    monkeypatch.setenv("ADSYNC_INCREMENTAL_SCROLL_WAIT_SECONDS", "0")
    get_settings.cache_clear()
    root_logger = logging.getLogger()
    handlers, level = list(root_logger.handlers), root_logger.level
    yield
    # The CLI installs its own handler on stderr
    root_logger.handlers, root_logger.level = handlers, level
    get_settings.cache_clear()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def file_store(tmp_path):
    return FileAdStore(tmp_path / "store")


@pytest.fixture
def memory_store():
    return InMemoryAdStore()
