"""
Shared pytest fixtures for StrmExtract tests.

Provides reusable fakes for the host services the job consumes:
- Library items (factory)
- Refresher recording every call
- Progress sink recording reported values
- Configuration values

No live Jellyfin server is needed; HTTP-level tests use respx.
"""

import os

import pytest
from unittest.mock import MagicMock

from extraction.models import LibraryItem


# =============================================================================
# Library item fixtures
# =============================================================================

@pytest.fixture
def make_item():
    """
    Factory for LibraryItem records with sensible defaults.

    Usage:
        def test_x(make_item):
            item = make_item("/media/a.strm", streams=0)
    """
    counter = {'n': 0}

    def _make(path="/media/movie.strm", streams=0, name=None, kind="Movie", item_id=None):
        counter['n'] += 1
        n = counter['n']
        return LibraryItem(
            item_id=item_id or f"item{n}",
            name=name or f"Item {n}",
            path=path,
            kind=kind,
            media_stream_count=streams,
        )

    return _make


@pytest.fixture
def mixed_library(make_item):
    """Library snapshot with one target among non-targets (a.strm only)."""
    return [
        make_item("a.strm", streams=0, name="A"),
        make_item("b.mkv", streams=0, name="B"),
        make_item("c.strm", streams=2, name="C"),
        make_item("", streams=0, name="D", kind="Folder"),
    ]


# =============================================================================
# Host service fakes
# =============================================================================

class RecordingRefresher:
    """Refresher fake recording (item, options) for every call.

    Args:
        fail_on: 0-based call index that raises `error` instead of returning
        error: Exception raised on the failing call
        on_refresh: Optional callback invoked with the call index
    """

    def __init__(self, fail_on=None, error=None, on_refresh=None):
        self.calls = []
        self.fail_on = fail_on
        self.error = error or RuntimeError("probe failed")
        self.on_refresh = on_refresh

    @property
    def items(self):
        return [item for item, _ in self.calls]

    def refresh(self, item, options):
        index = len(self.calls)
        self.calls.append((item, options))
        if self.on_refresh:
            self.on_refresh(index)
        if self.fail_on == index:
            raise self.error


@pytest.fixture
def refresher():
    """Refresher fake that always succeeds."""
    return RecordingRefresher()


@pytest.fixture
def make_refresher():
    """Factory for RecordingRefresher with failure/callback options."""
    return RecordingRefresher


@pytest.fixture
def progress():
    """Progress sink recording reported values in .values."""
    values = []

    def report(p):
        values.append(p)

    report.values = values
    return report


@pytest.fixture
def never_cancelled():
    return lambda: False


# =============================================================================
# Configuration fixtures
# =============================================================================

@pytest.fixture
def valid_config_dict():
    """Minimal valid configuration values."""
    return {
        "jellyfin_url": "http://jellyfin:8096",
        "jellyfin_api_key": "0123456789abcdef0123456789abcdef",
    }


@pytest.fixture
def mock_config(tmp_path, valid_config_dict):
    """
    Mock configuration object with all StrmExtract settings.

    data_dir points at a per-test temporary directory.
    """
    config = MagicMock()
    config.jellyfin_url = valid_config_dict["jellyfin_url"]
    config.jellyfin_api_key = valid_config_dict["jellyfin_api_key"]
    config.jellyfin_user_id = None
    config.enabled = True
    config.page_size = 500
    config.connect_timeout = 5.0
    config.read_timeout = 300.0
    config.data_dir = str(tmp_path)
    config.log_level = "info"
    config.log_format = "text"
    return config


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path):
    """Keep real STRM_EXTRACT_ environment variables and config files out of tests."""
    for key in list(os.environ):
        if key.startswith("STRM_EXTRACT_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("STRM_EXTRACT_CONFIG_FILE", str(tmp_path / "absent.yml"))
