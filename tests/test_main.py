"""
Integration tests for the StrmExtract.py entry point.

The Jellyfin client is replaced by a MagicMock via build_client so every
mode can be exercised without a server.
"""

import logging
import threading
from unittest.mock import MagicMock, patch

import pytest

import StrmExtract
from extraction.models import LibraryItem
from extraction.scheduler import ExtractionScheduler, ExtractionState
from jellyfin.client import JellyfinConnectionError, JellyfinRequestError


@pytest.fixture(autouse=True)
def _keep_root_logger():
    """main() reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def library():
    return [
        LibraryItem(item_id="1", name="A", path="/m/a.strm", kind="Movie", media_stream_count=0),
        LibraryItem(item_id="2", name="B", path="/m/b.mkv", kind="Movie", media_stream_count=2),
        LibraryItem(item_id="3", name="C", path="/m/c.STRM", kind="Episode", media_stream_count=0),
    ]


@pytest.fixture
def mock_client(library):
    client = MagicMock()
    client.__enter__.return_value = client
    client.get_item_list.return_value = library
    client.get_server_info.return_value = {"ServerName": "jf", "Version": "10.10.3"}
    return client


@pytest.fixture
def argv(tmp_path, valid_config_dict):
    """Base CLI arguments with a per-test data dir."""
    def _argv(mode):
        return [
            "--mode", mode,
            "--data-dir", str(tmp_path),
            "--jellyfin-url", valid_config_dict["jellyfin_url"],
            "--api-key", valid_config_dict["jellyfin_api_key"],
        ]
    return _argv


def _state(tmp_path) -> ExtractionState:
    return ExtractionScheduler(str(tmp_path)).load_state()


class TestRunMode:

    def test_refreshes_targets_and_records_run(self, argv, tmp_path, mock_client):
        with patch("StrmExtract.build_client", return_value=mock_client):
            assert StrmExtract.main(argv("run")) == 0

        refreshed = [c.args[0].item_id for c in mock_client.refresh.call_args_list]
        assert refreshed == ["1", "3"]

        state = _state(tmp_path)
        assert state.last_status == "completed"
        assert state.last_items_checked == 3
        assert state.last_targets == 2
        assert state.last_refreshed == 2
        assert state.run_count == 1

    def test_default_mode_is_run(self, tmp_path, valid_config_dict, mock_client):
        args = [
            "--data-dir", str(tmp_path),
            "--jellyfin-url", valid_config_dict["jellyfin_url"],
            "--api-key", valid_config_dict["jellyfin_api_key"],
        ]
        with patch("StrmExtract.build_client", return_value=mock_client):
            assert StrmExtract.main(args) == 0

        assert mock_client.refresh.call_count == 2

    def test_library_scope_passed_to_listing(self, argv, monkeypatch, mock_client):
        monkeypatch.setenv("STRM_EXTRACT_LIBRARY_ID", "lib1")
        monkeypatch.setenv("STRM_EXTRACT_EXCLUDE_ITEM_TYPES", "BoxSet,Folder")

        with patch("StrmExtract.build_client", return_value=mock_client):
            assert StrmExtract.main(argv("run")) == 0

        query = mock_client.get_item_list.call_args.args[0]
        assert query.parent_id == "lib1"
        assert query.exclude_item_types == ("BoxSet", "Folder")

    def test_refresh_failure_recorded_and_exit_1(self, argv, tmp_path, mock_client):
        mock_client.refresh.side_effect = [None, JellyfinRequestError("HTTP 500", status_code=500)]

        with patch("StrmExtract.build_client", return_value=mock_client):
            assert StrmExtract.main(argv("run")) == 1

        state = _state(tmp_path)
        assert state.last_status == "failed"
        assert "JellyfinRequestError" in state.last_error

    def test_run_extraction_reraises_unchanged(self, mock_config, tmp_path, mock_client):
        error = RuntimeError("probe failed")
        mock_client.refresh.side_effect = error

        with patch("StrmExtract.build_client", return_value=mock_client):
            with pytest.raises(RuntimeError) as exc_info:
                StrmExtract.run_extraction(mock_config, str(tmp_path), threading.Event())

        assert exc_info.value is error
        assert mock_client.refresh.call_count == 1

    def test_stop_requested_cancels(self, mock_config, tmp_path, mock_client):
        stop = threading.Event()
        stop.set()

        with patch("StrmExtract.build_client", return_value=mock_client):
            assert StrmExtract.run_extraction(mock_config, str(tmp_path), stop) == 0

        mock_client.refresh.assert_not_called()
        assert _state(tmp_path).last_status == "cancelled"

    def test_listing_failure(self, argv, tmp_path, mock_client):
        mock_client.get_item_list.side_effect = JellyfinConnectionError("refused")

        with patch("StrmExtract.build_client", return_value=mock_client):
            assert StrmExtract.main(argv("run")) == 1

        assert _state(tmp_path).last_status == "failed"


class TestScheduledMode:

    def test_runs_when_due(self, argv, tmp_path, mock_client):
        with patch("StrmExtract.build_client", return_value=mock_client):
            assert StrmExtract.main(argv("scheduled")) == 0

        assert mock_client.refresh.call_count == 2

    def test_skips_when_not_due(self, argv, tmp_path, mock_client):
        with patch.object(ExtractionScheduler, "is_due", return_value=False):
            with patch("StrmExtract.build_client", return_value=mock_client) as build:
                assert StrmExtract.main(argv("scheduled")) == 0

        build.assert_not_called()
        assert _state(tmp_path).run_count == 0


class TestOtherModes:

    def test_list_is_dry_run(self, argv, tmp_path, mock_client, caplog):
        with patch("StrmExtract.build_client", return_value=mock_client):
            assert StrmExtract.main(argv("list")) == 0

        mock_client.refresh.assert_not_called()
        assert _state(tmp_path).run_count == 0

    def test_status_without_runs(self, argv):
        assert StrmExtract.main(argv("status")) == 0

    def test_status_after_run(self, argv, tmp_path):
        ExtractionScheduler(str(tmp_path)).save_state(
            ExtractionState(last_run_time=1000.0, last_status="failed", last_error="boom", run_count=1)
        )
        with patch.object(StrmExtract, "log_warn") as log_warn:
            assert StrmExtract.main(argv("status")) == 0

        log_warn.assert_called_once_with("Last error: boom")

    def test_health_ok(self, argv, mock_client):
        with patch("StrmExtract.build_client", return_value=mock_client):
            assert StrmExtract.main(argv("health")) == 0

    def test_health_unreachable(self, argv, mock_client):
        mock_client.get_server_info.side_effect = JellyfinConnectionError("refused")

        with patch("StrmExtract.build_client", return_value=mock_client):
            assert StrmExtract.main(argv("health")) == 1


class TestConfiguration:

    def test_missing_config_exits_1(self, tmp_path):
        assert StrmExtract.main(["--data-dir", str(tmp_path)]) == 1

    def test_malformed_config_file_exits_1(self, argv, monkeypatch, tmp_path):
        config_file = tmp_path / "broken.yml"
        config_file.write_text("jellyfin_url: [unclosed\n")
        monkeypatch.setenv("STRM_EXTRACT_CONFIG_FILE", str(config_file))

        with patch.object(StrmExtract, "log_error") as log_error:
            assert StrmExtract.main(argv("run")) == 1

        assert "Configuration error: invalid config file" in log_error.call_args.args[0]

    def test_disabled(self, argv, monkeypatch, mock_client):
        monkeypatch.setenv("STRM_EXTRACT_ENABLED", "false")

        with patch("StrmExtract.build_client", return_value=mock_client) as build:
            assert StrmExtract.main(argv("run")) == 0

        build.assert_not_called()

    def test_invalid_mode(self, argv):
        with pytest.raises(SystemExit):
            StrmExtract.main(argv("bogus"))

    def test_build_client_uses_config(self, mock_config):
        client = StrmExtract.build_client(mock_config)
        try:
            assert client.page_size == 500
            assert client.user_id is None
        finally:
            client.close()

    def test_signal_handlers_restored(self, argv, mock_client):
        import signal
        before = signal.getsignal(signal.SIGTERM)

        with patch("StrmExtract.build_client", return_value=mock_client):
            StrmExtract.main(argv("run"))

        assert signal.getsignal(signal.SIGTERM) is before
