"""
Strm media info extraction job.

Selects .strm items without media streams from a library snapshot and
drives one metadata refresh per item through the host's refresher,
sequentially, reporting progress and polling for cancellation between items.
"""

from typing import Callable, Iterable

from extraction.models import LibraryItem, Refresher, RefreshOptions, RunSummary
from extraction.selector import select
from shared.log import create_logger

_, _, log_info, _, _ = create_logger("Job")


def build_refresh_options() -> RefreshOptions:
    """Build the fixed refresh options used for every extraction request."""
    return RefreshOptions()


class StrmRefreshJob:
    """Runs the select-then-refresh loop.

    Stateless between runs: every call to run() works on the snapshot it is
    given and nothing else. Refresh failures are not caught here; they abort
    the run and propagate to the caller.
    """

    def select(self, items: Iterable[LibraryItem]) -> list[LibraryItem]:
        """Return the items of the snapshot that need extraction, in order."""
        return select(items)

    def run(
        self,
        items: Iterable[LibraryItem],
        refresher: Refresher,
        report_progress: Callable[[float], None],
        is_cancelled: Callable[[], bool],
    ) -> RunSummary:
        """Refresh every selected item, one at a time.

        Args:
            items: Library snapshot (computed once by the caller)
            refresher: Host refresh service; each call blocks until done
            report_progress: Progress sink accepting a percentage in [0, 100]
            is_cancelled: Polled before each item; True stops the loop

        Returns:
            RunSummary with counts for the caller's bookkeeping
        """
        log_info("Task execute")
        items = list(items)
        targets = self.select(items)
        summary = RunSummary(items_checked=len(items), targets=len(targets))

        if not targets:
            log_info("No strm items need extraction")
            report_progress(100.0)
            log_info("Task complete")
            return summary

        total = float(len(targets))
        for current, item in enumerate(targets):
            if is_cancelled():
                log_info("Task cancelled")
                summary.cancelled = True
                break

            # Items completed so far; 100 only comes from the final report
            report_progress(current / total * 100)

            refresher.refresh(item, build_refresh_options())
            summary.refreshed += 1

            log_info(f"{current}/{len(targets)} - {item.path}")

        report_progress(100.0)
        log_info(f"Task complete ({summary.refreshed}/{summary.targets} refreshed)")
        return summary
