"""
Data model and host capability interfaces for strm extraction.

Library items are owned by the media server; this package only reads them.
The Protocol classes describe the host services the job consumes, so the
Jellyfin adapter and test fakes are interchangeable.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, runtime_checkable


class RefreshMode(str, Enum):
    """Host metadata refresh modes (values are the host's wire names)."""
    NONE = "None"
    VALIDATION_ONLY = "ValidationOnly"
    DEFAULT = "Default"
    FULL_REFRESH = "FullRefresh"


@dataclass(frozen=True)
class LibraryItem:
    """Read-only snapshot of one host library item.

    Attributes:
        item_id: Host item identifier (addresses refresh calls)
        name: Display name
        path: Backing file path, None for virtual items (folders, collections)
        kind: Host type discriminator ("Movie", "Episode", ...), diagnostic only
        media_stream_count: Number of media streams already known to the host
    """
    item_id: str
    name: str
    path: Optional[str] = None
    kind: str = ""
    media_stream_count: int = 0


@dataclass(frozen=True)
class RefreshOptions:
    """Options passed with each refresh request.

    Defaults are the fixed extraction options: probe the remote stream,
    replace metadata, only validate images.
    """
    enable_remote_content_probe: bool = True
    replace_all_metadata: bool = True
    image_refresh_mode: RefreshMode = RefreshMode.VALIDATION_ONLY
    metadata_refresh_mode: RefreshMode = RefreshMode.VALIDATION_ONLY
    replace_all_images: bool = False


@dataclass(frozen=True)
class ItemQuery:
    """Library query. An empty query returns the whole recursive library."""
    parent_id: Optional[str] = None
    include_item_types: tuple[str, ...] = ()
    exclude_item_types: tuple[str, ...] = ()


@dataclass
class RunSummary:
    """Counts from one extraction run.

    Attributes:
        items_checked: Items in the library snapshot
        targets: Items selected for refresh
        refreshed: Refresh calls that completed
        cancelled: True if the run stopped early on cancellation
    """
    items_checked: int = 0
    targets: int = 0
    refreshed: int = 0
    cancelled: bool = False


@runtime_checkable
class LibraryItemSource(Protocol):
    """Host service enumerating library items."""

    def get_item_list(self, query: Optional[ItemQuery] = None) -> list[LibraryItem]:
        ...


@runtime_checkable
class Refresher(Protocol):
    """Host service running the metadata refresh pipeline for one item."""

    def refresh(self, item: LibraryItem, options: RefreshOptions) -> object:
        ...
