"""Selection of library items that still need media info extraction."""
from typing import Iterable

from extraction.models import LibraryItem
from shared.log import create_logger

_, _, log_info, _, _ = create_logger("Selector")

STRM_EXTENSION = ".strm"


def is_strm_path(path) -> bool:
    """Check if path points at a .strm file (case-insensitive).

    Args:
        path: File path, may be None or empty

    Returns:
        True if path is non-empty and ends with ".strm"
    """
    if not path:
        return False
    return path.lower().endswith(STRM_EXTENSION)


def needs_extraction(item: LibraryItem) -> bool:
    """Check if an item should be sent through the refresh pipeline.

    An item needs extraction when:
    - it is backed by a .strm file AND
    - the host knows no media streams for it yet

    Args:
        item: Library item to check

    Returns:
        True if the item belongs in the refresh set
    """
    return is_strm_path(item.path) and item.media_stream_count == 0


def select(items: Iterable[LibraryItem]) -> list[LibraryItem]:
    """Filter a library snapshot down to items needing extraction.

    Input order is preserved. Every dropped item is logged so a missing
    refresh can be traced back to the item's path, type or stream count.

    Args:
        items: Full, unfiltered library snapshot

    Returns:
        Items needing extraction, in input order
    """
    items = list(items)
    log_info(f"Number of items before filtering: {len(items)}")

    targets = []
    for item in items:
        if needs_extraction(item):
            targets.append(item)
        else:
            log_info(
                f"Item dropped: {item.name} - {item.path} - {item.kind} - "
                f"{item.media_stream_count}"
            )

    log_info(f"Number of items after filtering: {len(targets)}")
    return targets
