"""
jellyfin.client: Jellyfin REST client implementing the extraction host services.

Design notes:
- Synchronous: the extraction job is a strictly sequential loop, one refresh
  at a time, so a blocking httpx.Client is all it needs.
- Jellyfin only queues a refresh on POST /Items/{id}/Refresh. refresh() then
  polls the item until it has media streams or the wait runs out, so one
  refresh never overlaps the next.
- Paging is offset based. Pages are sorted and repeated item ids are
  dropped, so a library changing mid-listing cannot yield an item twice.
- Implements both LibraryItemSource (get_item_list) and Refresher (refresh).
- Returns typed LibraryItem records so the job never sees raw JSON shapes.
- No retries. Failures are raised as JellyfinConnectionError /
  JellyfinRequestError and left to the caller.

Exports:
    JellyfinClient           -- REST client
    JellyfinConnectionError  -- server unreachable or timed out
    JellyfinRequestError     -- server answered with an error status
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import httpx

from extraction.models import ItemQuery, LibraryItem, RefreshOptions

log = logging.getLogger("StrmExtract.jellyfin")

# Item fields needed for selection; Path and MediaStreams are not returned by default
_ITEM_FIELDS = "Path,MediaStreams"

# Stable order across pages
_SORT_BY = "SortName,DateCreated"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class JellyfinConnectionError(Exception):
    """
    Jellyfin server is unreachable or the request timed out.

    Covers both connection failures (ConnectError) and timeouts
    (TimeoutException); both mean an unavailable server to the caller.
    """


class JellyfinRequestError(Exception):
    """
    Jellyfin answered with a non-success HTTP status.

    Attributes:
        status_code: HTTP status of the response
    """

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


# ---------------------------------------------------------------------------
# Parse helper
# ---------------------------------------------------------------------------


def _parse_item(raw: dict) -> LibraryItem:
    """
    Convert a raw Jellyfin BaseItemDto dict into a LibraryItem.

    Args:
        raw: Item dict from the /Items response.

    Returns:
        LibraryItem. Missing Path stays None; missing MediaStreams counts as 0.
    """
    return LibraryItem(
        item_id=str(raw["Id"]),
        name=raw.get("Name") or "",
        path=raw.get("Path"),
        kind=raw.get("Type") or "",
        media_stream_count=len(raw.get("MediaStreams") or []),
    )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class JellyfinClient:
    """
    Jellyfin REST client.

    Usage::

        with JellyfinClient("http://localhost:8096", api_key="key") as client:
            items = client.get_item_list()
            client.refresh(items[0], RefreshOptions())
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        user_id: Optional[str] = None,
        page_size: int = 500,
        connect_timeout: float = 5.0,
        read_timeout: float = 300.0,
        refresh_wait: Optional[float] = None,
        poll_interval: float = 2.0,
    ) -> None:
        """
        Create the Jellyfin client.

        Args:
            url:             Base URL of the server, e.g. ``http://localhost:8096``.
                             Trailing slashes are stripped automatically.
            api_key:         Jellyfin API key, sent as ``X-Emby-Token`` header.
            user_id:         Optional user ID to scope item queries to one user's view.
            page_size:       Items fetched per /Items request.
            connect_timeout: Connect timeout in seconds.
            read_timeout:    Read timeout in seconds (refreshes can be slow).
            refresh_wait:    Seconds refresh() waits for media streams to
                             appear (default: read_timeout).
            poll_interval:   Seconds between item polls while waiting.
        """
        self._url = url.rstrip("/")
        self.user_id = user_id
        self.page_size = page_size
        self.refresh_wait = read_timeout if refresh_wait is None else refresh_wait
        self.poll_interval = poll_interval

        self._client = httpx.Client(
            base_url=self._url,
            headers={
                "X-Emby-Token": api_key,
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(read_timeout, connect=connect_timeout),
        )
        log.debug("JellyfinClient initialised, url=%s user_id=%s", self._url, user_id)

    def close(self) -> None:
        """Close the underlying httpx client and release connections."""
        self._client.close()

    def __enter__(self) -> "JellyfinClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, path: str, params: Optional[dict] = None) -> httpx.Response:
        """
        Send one request to Jellyfin.

        Raises:
            JellyfinConnectionError: Server unreachable or request timed out.
            JellyfinRequestError:    Response status was not 2xx.
        """
        try:
            resp = self._client.request(method, path, params=params)
        except httpx.ConnectError as exc:
            raise JellyfinConnectionError(f"Cannot connect to Jellyfin: {exc}") from exc
        except httpx.TimeoutException as exc:
            raise JellyfinConnectionError(f"Jellyfin request timed out: {exc}") from exc

        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise JellyfinRequestError(
                f"Jellyfin {method} {path} failed with HTTP {resp.status_code}",
                status_code=resp.status_code,
            ) from exc
        return resp

    def _query_params(self, query: Optional[ItemQuery]) -> dict[str, Any]:
        params: dict[str, Any] = {
            "Recursive": "true",
            "Fields": _ITEM_FIELDS,
            "EnableImages": "false",
            "SortBy": _SORT_BY,
            "SortOrder": "Ascending",
        }
        if self.user_id:
            params["userId"] = self.user_id
        if query is not None:
            if query.parent_id:
                params["ParentId"] = query.parent_id
            if query.include_item_types:
                params["IncludeItemTypes"] = ",".join(query.include_item_types)
            if query.exclude_item_types:
                params["ExcludeItemTypes"] = ",".join(query.exclude_item_types)
        return params

    def get_item_list(self, query: Optional[ItemQuery] = None) -> list[LibraryItem]:
        """
        Fetch a snapshot of library items, following pagination to the end.

        Args:
            query: Optional filter. None (or an empty ItemQuery) returns every
                   item in the library, recursively.

        Returns:
            All matching items in sort order, each item id at most once.

        Raises:
            JellyfinConnectionError: Server unreachable or timed out.
            JellyfinRequestError:    Server answered with an error status.
        """
        params = self._query_params(query)
        items: list[LibraryItem] = []
        seen: set[str] = set()
        start = 0

        while True:
            page_params = dict(params, StartIndex=start, Limit=self.page_size)
            body = self._request("GET", "/Items", params=page_params).json()
            page = body.get("Items") or []
            for raw in page:
                item = _parse_item(raw)
                if item.item_id in seen:
                    log.debug("Skipping repeated item %s from shifted page", item.item_id)
                    continue
                seen.add(item.item_id)
                items.append(item)
            start += len(page)

            total = body.get("TotalRecordCount")
            log.debug("Fetched %d items (%d/%s)", len(page), start, total)
            if not page or (total is not None and start >= total):
                break

        return items

    def _fetch_stream_count(self, item_id: str) -> Optional[int]:
        """Return the item's current media stream count, or None if it is gone."""
        params: dict[str, Any] = {"Ids": item_id, "Fields": "MediaStreams"}
        if self.user_id:
            params["userId"] = self.user_id
        page = self._request("GET", "/Items", params=params).json().get("Items") or []
        if not page:
            return None
        return _parse_item(page[0]).media_stream_count

    def refresh(self, item: LibraryItem, options: RefreshOptions) -> None:
        """
        Refresh one item's metadata and wait for the extraction to land.

        Jellyfin queues the refresh and answers at once, so after the POST the
        item is polled until it reports media streams. When refresh_wait runs
        out first, a warning is logged and the call returns; the item stays a
        target for the next run.

        Remote content probing is what the server does for .strm items when
        metadata is refreshed; it has no separate REST parameter, so
        ``options.enable_remote_content_probe`` is only logged.

        Args:
            item:    Item to refresh.
            options: Refresh options.

        Raises:
            JellyfinConnectionError: Server unreachable or timed out.
            JellyfinRequestError:    Server answered with an error status.
        """
        params = {
            "metadataRefreshMode": options.metadata_refresh_mode.value,
            "imageRefreshMode": options.image_refresh_mode.value,
            "replaceAllMetadata": "true" if options.replace_all_metadata else "false",
            "replaceAllImages": "true" if options.replace_all_images else "false",
        }
        log.debug(
            "Refreshing item %s (remote probe=%s)",
            item.item_id, options.enable_remote_content_probe,
        )
        self._request("POST", f"/Items/{item.item_id}/Refresh", params=params)

        deadline = time.monotonic() + self.refresh_wait
        while True:
            count = self._fetch_stream_count(item.item_id)
            if count is None:
                log.warning("Item %s disappeared while refreshing", item.item_id)
                return
            if count > 0:
                log.debug("Item %s has %d media streams", item.item_id, count)
                return
            if time.monotonic() >= deadline:
                log.warning(
                    "No media streams for %s after %.0fs, moving on",
                    item.path or item.item_id, self.refresh_wait,
                )
                return
            time.sleep(self.poll_interval)

    def get_server_info(self) -> dict:
        """
        Fetch public server info (name, version, id).

        Raises:
            JellyfinConnectionError: Server unreachable or timed out.
            JellyfinRequestError:    Server answered with an error status.
        """
        return self._request("GET", "/System/Info/Public").json()
