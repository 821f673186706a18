#!/usr/bin/env python3
"""
StrmExtract - media info extraction for Jellyfin .strm items

Entry point. Loads configuration, connects to Jellyfin and runs the
extraction task in the requested mode. Meant to be invoked periodically
(cron, systemd timer); "scheduled" mode only runs when the daily trigger
has fired since the last recorded run.

Usage:
    python StrmExtract.py [--mode run|scheduled|list|status|health] [--data-dir DIR]
"""

import argparse
import os
import signal
import sys
import threading
import time
import traceback

from shared.log import create_logger, create_progress_logger
from shared.logging_config import configure_logging
log_trace, log_debug, log_info, log_warn, log_error = create_logger()
log_progress = create_progress_logger()

from extraction.job import StrmRefreshJob
from extraction.scheduler import (
    ExtractionScheduler,
    make_cancel_check,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_FAILED,
)
from extraction.selector import select
from extraction.task_info import default_triggers, get_task_info
from jellyfin.client import JellyfinClient, JellyfinConnectionError, JellyfinRequestError
from validation.config import StrmExtractConfig, validate_config

PLUGIN_DIR = os.path.dirname(os.path.abspath(__file__))


def get_data_dir(config: StrmExtractConfig) -> str:
    """
    Get or create the data directory holding run state.

    Returns:
        Path to data directory
    """
    data_dir = config.data_dir
    if not data_dir:
        # Default to install_dir/data
        data_dir = os.path.join(PLUGIN_DIR, 'data')

    os.makedirs(data_dir, exist_ok=True)
    return data_dir


def build_client(config: StrmExtractConfig) -> JellyfinClient:
    return JellyfinClient(
        url=config.jellyfin_url,
        api_key=config.jellyfin_api_key,
        user_id=config.jellyfin_user_id,
        page_size=config.page_size,
        connect_timeout=config.connect_timeout,
        read_timeout=config.read_timeout,
    )


def run_extraction(config: StrmExtractConfig, data_dir: str, stop_event: threading.Event) -> int:
    """
    Fetch a library snapshot and run the extraction job over it.

    The run is recorded in the scheduler state whatever its outcome. A
    failure is recorded and then re-raised unchanged.

    Returns:
        Exit code (0 for completed or cancelled runs)
    """
    task = get_task_info()
    trigger = default_triggers()[0]
    scheduler = ExtractionScheduler(data_dir)

    started_at = time.time()
    is_cancelled = make_cancel_check(stop_event, trigger.max_runtime, started_at)
    log_info(f"Starting task: {task.name} ({task.key})")

    try:
        with build_client(config) as client:
            items = client.get_item_list(config.item_query())
            summary = StrmRefreshJob().run(items, client, log_progress, is_cancelled)
    except Exception as e:
        scheduler.record_run(None, started_at, STATUS_FAILED, error=f"{type(e).__name__}: {e}")
        raise

    status = STATUS_CANCELLED if summary.cancelled else STATUS_COMPLETED
    scheduler.record_run(summary, started_at, status)

    log_info("=== Extraction Summary ===")
    log_info(f"Items checked: {summary.items_checked}")
    log_info(f"Strm items needing extraction: {summary.targets}")
    log_info(f"Refreshed: {summary.refreshed}")
    if summary.cancelled:
        log_warn(f"Run cancelled with {summary.targets - summary.refreshed} items left")
    return 0


def handle_run(config, data_dir, stop_event) -> int:
    return run_extraction(config, data_dir, stop_event)


def handle_scheduled(config, data_dir, stop_event) -> int:
    """Run the extraction only if the default trigger has fired since the last run."""
    trigger = default_triggers()[0]
    scheduler = ExtractionScheduler(data_dir)
    if not scheduler.is_due(trigger):
        log_debug("Extraction not due yet")
        return 0

    log_info(f"Scheduled extraction due (daily at {trigger.time_of_day})")
    return run_extraction(config, data_dir, stop_event)


def handle_list(config, data_dir, stop_event) -> int:
    """Dry run: log the items a run would refresh without refreshing them."""
    with build_client(config) as client:
        targets = select(client.get_item_list(config.item_query()))

    for item in targets:
        log_info(f"Would refresh: {item.name} - {item.path}")
    log_info(f"{len(targets)} strm items need extraction")
    return 0


def handle_status(config, data_dir, stop_event) -> int:
    """Log the persisted state of the last run."""
    state = ExtractionScheduler(data_dir).load_state()
    if state.run_count == 0:
        log_info("No extraction run recorded yet")
        return 0

    started = time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(state.last_run_time))
    log_info("=== Extraction Status ===")
    log_info(f"Last run: {started} ({state.last_status}, {state.last_duration:.1f}s)")
    log_info(f"Items checked: {state.last_items_checked}")
    log_info(f"Targets: {state.last_targets}, refreshed: {state.last_refreshed}")
    if state.last_error:
        log_warn(f"Last error: {state.last_error}")
    log_info(f"Total runs: {state.run_count}")
    return 0


def handle_health(config, data_dir, stop_event) -> int:
    """Check Jellyfin connectivity."""
    log_info("=== Jellyfin Health Check ===")
    start = time.time()
    try:
        with build_client(config) as client:
            info = client.get_server_info()
    except (JellyfinConnectionError, JellyfinRequestError) as e:
        log_warn(f"Jellyfin is UNREACHABLE: {e}")
        log_info("Verify Jellyfin URL and network connectivity")
        return 1

    latency_ms = (time.time() - start) * 1000
    log_info(
        f"Jellyfin is HEALTHY: {info.get('ServerName', '?')} "
        f"v{info.get('Version', '?')} (responded in {latency_ms:.0f}ms)"
    )
    return 0


# Dispatch table for task modes
_MODE_HANDLERS = {
    'run': handle_run,
    'scheduled': handle_scheduled,
    'list': handle_list,
    'status': handle_status,
    'health': handle_health,
}


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Extract media info for Jellyfin .strm items')
    parser.add_argument('--mode', '-m', choices=sorted(_MODE_HANDLERS), default='run',
                        help='Task mode (default: run)')
    parser.add_argument('--data-dir', '-d', help='Directory for run state (or set STRM_EXTRACT_DATA_DIR)')
    parser.add_argument('--jellyfin-url', help='Jellyfin server URL (or set STRM_EXTRACT_JELLYFIN_URL)')
    parser.add_argument('--api-key', help='Jellyfin API key (or set STRM_EXTRACT_JELLYFIN_API_KEY)')
    parser.add_argument('--log-level', help='trace, debug, info, warning or error')
    return parser.parse_args(argv)


def _overrides_from_args(args) -> dict:
    overrides = {
        'data_dir': args.data_dir,
        'jellyfin_url': args.jellyfin_url,
        'jellyfin_api_key': args.api_key,
        'log_level': args.log_level,
    }
    return {k: v for k, v in overrides.items() if v is not None}


def _install_stop_handlers(stop_event: threading.Event) -> dict:
    """Route SIGINT/SIGTERM to the stop event; returns the previous handlers."""
    def _request_stop(signum, frame):
        stop_event.set()

    previous = {}
    for sig in (signal.SIGINT, signal.SIGTERM):
        previous[sig] = signal.signal(sig, _request_stop)
    return previous


def main(argv=None) -> int:
    """Main entry point. Returns the process exit code."""
    args = parse_args(argv)

    config, error = validate_config(_overrides_from_args(args))
    if error:
        configure_logging()
        log_error(f"Configuration error: {error}")
        return 1

    configure_logging(config.log_level, config.log_format)
    config.log_config()

    if not config.enabled:
        log_info("StrmExtract is disabled via configuration")
        return 0

    data_dir = get_data_dir(config)
    log_trace(f"Data dir: {data_dir}")

    stop_event = threading.Event()
    previous_handlers = _install_stop_handlers(stop_event)
    try:
        return _MODE_HANDLERS[args.mode](config, data_dir, stop_event)
    except Exception as e:
        log_error(f"Task '{args.mode}' failed: {type(e).__name__}: {e}")
        traceback.print_exc()
        return 1
    finally:
        for sig, handler in previous_handlers.items():
            signal.signal(sig, handler)


if __name__ == "__main__":
    sys.exit(main())
