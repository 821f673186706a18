"""
Extraction scheduler for periodic strm extraction.

StrmExtract is invoked periodically (cron, systemd timer, container loop)
rather than running as a daemon, so the scheduler uses a check-on-invocation
pattern: each invocation checks whether the daily trigger has fired since the
last recorded run, based on persisted state in extraction_state.json.
"""

import json
import os
import threading
import time
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Callable, Optional

from extraction.models import RunSummary
from extraction.task_info import TaskTrigger, TRIGGER_DAILY
from shared.log import create_logger
_, log_debug, _, log_warn, _ = create_logger("Scheduler")

STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUS_FAILED = "failed"


@dataclass
class ExtractionState:
    """Persisted state of the last extraction run."""
    last_run_time: float = 0.0          # time.time() when the last run started
    last_status: str = ""               # completed / cancelled / failed
    last_items_checked: int = 0         # library snapshot size
    last_targets: int = 0               # items selected for refresh
    last_refreshed: int = 0             # refresh calls completed
    last_error: Optional[str] = None    # error text of a failed run
    last_duration: float = 0.0          # seconds
    run_count: int = 0                  # total runs


class ExtractionScheduler:
    """Decides whether the daily extraction is due via persisted state.

    NOT a timer/thread. On each invocation, call is_due() to check whether
    the trigger time has passed since the last recorded run.
    """

    STATE_FILE = 'extraction_state.json'

    def __init__(self, data_dir: str):
        self.data_dir = data_dir
        self.state_path = os.path.join(data_dir, self.STATE_FILE)

    def load_state(self) -> ExtractionState:
        """Load extraction state from disk."""
        try:
            if os.path.exists(self.state_path):
                with open(self.state_path, 'r') as f:
                    data = json.load(f)
                return ExtractionState(**data)
        except (json.JSONDecodeError, TypeError, KeyError, OSError) as e:
            log_debug(f"Failed to load extraction state, using defaults: {e}")
        return ExtractionState()

    def save_state(self, state: ExtractionState) -> None:
        """Save extraction state to disk atomically."""
        tmp_path = self.state_path + '.tmp'
        try:
            with open(tmp_path, 'w') as f:
                json.dump(asdict(state), f, indent=2)
            os.replace(tmp_path, self.state_path)
        except OSError as e:
            log_debug(f"Failed to save extraction state: {e}")

    @staticmethod
    def last_occurrence(trigger: TaskTrigger, now: float) -> float:
        """Return the most recent fire time of a daily trigger at or before now.

        Args:
            trigger: Daily trigger (time_of_day is local time)
            now: Current epoch time

        Returns:
            Epoch time of the latest fire at or before now
        """
        if trigger.type != TRIGGER_DAILY:
            raise ValueError(f"Unsupported trigger type: {trigger.type}")

        current = datetime.fromtimestamp(now)
        midnight = current.replace(hour=0, minute=0, second=0, microsecond=0)
        fire = midnight + trigger.time_of_day
        if fire > current:
            fire -= timedelta(days=1)
        return fire.timestamp()

    def is_due(self, trigger: TaskTrigger, now: Optional[float] = None) -> bool:
        """Check if the trigger has fired since the last recorded run.

        Args:
            trigger: Daily trigger to evaluate
            now: Current time (default: time.time()). For testing.

        Returns:
            True if extraction should run now.
        """
        if now is None:
            now = time.time()

        state = self.load_state()
        return state.last_run_time < self.last_occurrence(trigger, now)

    def record_run(
        self,
        summary: Optional[RunSummary],
        started_at: float,
        status: str,
        error: Optional[str] = None,
        finished_at: Optional[float] = None,
    ) -> None:
        """Record a finished extraction run.

        Args:
            summary: RunSummary from the job (None if the run failed before one existed)
            started_at: Epoch time the run started
            status: STATUS_COMPLETED, STATUS_CANCELLED or STATUS_FAILED
            error: Error text for failed runs
            finished_at: Epoch time the run ended (default: time.time())
        """
        if finished_at is None:
            finished_at = time.time()

        state = self.load_state()
        state.last_run_time = started_at
        state.last_status = status
        state.last_error = error
        state.last_duration = max(0.0, finished_at - started_at)
        if summary is not None:
            state.last_items_checked = summary.items_checked
            state.last_targets = summary.targets
            state.last_refreshed = summary.refreshed
        else:
            state.last_items_checked = 0
            state.last_targets = 0
            state.last_refreshed = 0
        state.run_count += 1
        self.save_state(state)


def make_cancel_check(
    stop_event: threading.Event,
    max_runtime: timedelta,
    started_at: float,
    clock: Callable[[], float] = time.time,
) -> Callable[[], bool]:
    """Build the cancellation predicate polled by the job between items.

    Args:
        stop_event: Set when a stop was requested (signal handler)
        max_runtime: Maximum runtime of the trigger
        started_at: Epoch time the run started
        clock: Time source. For testing.

    Returns:
        Callable returning True once a stop was requested or the run is over time
    """
    deadline = started_at + max_runtime.total_seconds()

    def is_cancelled() -> bool:
        if stop_event.is_set():
            return True
        if clock() >= deadline:
            log_warn(f"Maximum runtime of {max_runtime} exceeded")
            return True
        return False

    return is_cancelled
