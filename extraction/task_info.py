"""Registration data for the extraction task: identity and default trigger."""
from dataclasses import dataclass
from datetime import timedelta

PLUGIN_NAME = "JellyfinStrmExtract"
PLUGIN_ID = "5b9adc74-c34c-41bb-b8da-bbccd9e72455"

TRIGGER_DAILY = "daily"


@dataclass(frozen=True)
class TaskInfo:
    """Scheduler-facing identity of a task."""
    key: str
    name: str
    category: str
    description: str


@dataclass(frozen=True)
class TaskTrigger:
    """When a task fires and how long a run may take.

    Attributes:
        type: Trigger type (only "daily" is used)
        time_of_day: Offset from midnight (local time) at which the task fires
        max_runtime: Runs exceeding this are cancelled at the next item boundary
    """
    type: str
    time_of_day: timedelta
    max_runtime: timedelta


TASK_INFO = TaskInfo(
    key="JellyfinStrmExtractTask",
    name="Process Strm targets",
    category=PLUGIN_NAME,
    description="Run Strm Media Info Extraction",
)


def get_task_info() -> TaskInfo:
    return TASK_INFO


def default_triggers() -> list[TaskTrigger]:
    """Default schedule: once a day at 03:00, at most 24 hours per run."""
    return [
        TaskTrigger(
            type=TRIGGER_DAILY,
            time_of_day=timedelta(hours=3),
            max_runtime=timedelta(hours=24),
        )
    ]
