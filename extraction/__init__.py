"""Extraction package: strm item selection, refresh job and scheduling."""
from extraction.models import (
    ItemQuery,
    LibraryItem,
    LibraryItemSource,
    Refresher,
    RefreshMode,
    RefreshOptions,
    RunSummary,
)
from extraction.selector import needs_extraction, select
from extraction.job import StrmRefreshJob, build_refresh_options
from extraction.scheduler import ExtractionScheduler, ExtractionState, make_cancel_check
from extraction.task_info import TaskInfo, TaskTrigger, default_triggers, get_task_info

__all__ = [
    'ItemQuery',
    'LibraryItem',
    'LibraryItemSource',
    'Refresher',
    'RefreshMode',
    'RefreshOptions',
    'RunSummary',
    'needs_extraction',
    'select',
    'StrmRefreshJob',
    'build_refresh_options',
    'ExtractionScheduler',
    'ExtractionState',
    'make_cancel_check',
    'TaskInfo',
    'TaskTrigger',
    'default_triggers',
    'get_task_info',
]
