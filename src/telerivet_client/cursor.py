# Telerivet REST Client
# File: cursor.py
# Version: v5

"""Lazy, single-pass iteration over paginated list endpoints.

A cursor does no I/O until iterated. It then fetches one page at a time
and yields each record wrapped as a loaded entity:

    cursor = client.query(CONTACT, {"project_id": project_id}, sort="name")
    async for contact in cursor.limit(500):
        print(await contact.get("name"))

List responses look like ``{"data": [...], "truncated": bool,
"next_marker": str | None}``. The marker is passed back as ``marker`` to
fetch the following page; when the server gives no marker the cursor falls
back to ``offset`` paging.

``all()`` collects every remaining item into a list, so it costs
O(total matching items) in both time and memory. Use it for bounded
result sets only.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from .errors import CursorStateError, ProtocolError

if TYPE_CHECKING:
    from .client import TelerivetClient
    from .resources import ResourceType

logger = logging.getLogger(__name__)

# Managed by the cursor itself, not part of the caller's filters.
_PAGING_PARAMS = ("page_size", "offset", "marker")


class Cursor:
    """Deferred sequence over ``GET path`` filtered by ``query``.

    Not restartable: once consumed (or partially consumed), build a new
    cursor with the same path and query to iterate again. A terminated
    cursor keeps raising ``StopAsyncIteration`` without touching the
    network.
    """

    def __init__(
        self,
        client: "TelerivetClient",
        resource_type: "ResourceType",
        path: str,
        query: Optional[Mapping[str, Any]] = None,
    ) -> None:
        query = dict(query or {})
        if "count" in query:
            raise ValueError(
                "Cannot construct a cursor with a 'count' parameter; call count() instead."
            )

        self._client = client
        self._resource_type = resource_type
        self._path = path
        self._query = query
        self._filters = {k: v for k, v in query.items() if k not in _PAGING_PARAMS}
        self._requested_page_size = query.get("page_size")

        self._limit: Optional[int] = None
        self._offset = int(query.get("offset") or 0)

        self._buffer: List[Mapping[str, Any]] = []
        self._page_offset = 0
        self._next_marker: Optional[str] = None
        self._more = True
        self._received = 0
        self._consumed = 0
        self._pages_fetched = 0
        self._started = False
        self._exhausted = False

    def __repr__(self) -> str:
        return (
            f"<Cursor {self._resource_type.name} {self._path} "
            f"consumed={self._consumed} exhausted={self._exhausted}>"
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def path(self) -> str:
        return self._path

    @property
    def query(self) -> Mapping[str, Any]:
        return MappingProxyType(self._query)

    @property
    def page_buffer(self) -> Tuple[Mapping[str, Any], ...]:
        return tuple(self._buffer)

    @property
    def page_offset(self) -> int:
        return self._page_offset

    @property
    def next_marker(self) -> Optional[str]:
        return self._next_marker

    @property
    def consumed_count(self) -> int:
        return self._consumed

    @property
    def pages_fetched(self) -> int:
        return self._pages_fetched

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    # ------------------------------------------------------------------
    # Configuration (only before the first page)
    # ------------------------------------------------------------------

    def _check_configurable(self, what: str, value: int) -> int:
        if self._started:
            raise CursorStateError(
                f"{what}() must be called before iteration starts",
                path=self._path,
            )
        value = int(value)
        if value < 0:
            raise ValueError(f"{what}() expects a non-negative integer, got {value}")
        return value

    def limit(self, n: int) -> "Cursor":
        """Yield at most ``n`` items."""
        self._limit = self._check_configurable("limit", n)
        return self

    def offset(self, n: int) -> "Cursor":
        """Skip the first ``n`` matching items on the server."""
        self._offset = self._check_configurable("offset", n)
        return self

    # ------------------------------------------------------------------
    # One-shot requests
    # ------------------------------------------------------------------

    async def count(self) -> int:
        """Total number of matching items, ignoring limit and offset."""
        params: Dict[str, Any] = dict(self._filters)
        params["count"] = 1

        response = await self._client.request("GET", self._path, params)
        count = response.get("count") if isinstance(response, Mapping) else None
        if not isinstance(count, int) or isinstance(count, bool):
            raise ProtocolError(
                "Count response did not contain an integer 'count'",
                method="GET",
                path=self._path,
            )
        return count

    async def all(self) -> List[Any]:
        """Drain the remaining items into a list."""
        return [item async for item in self]

    # ------------------------------------------------------------------
    # Paging
    # ------------------------------------------------------------------

    def effective_page_size(self) -> int:
        config = self._client.config
        size = int(self._requested_page_size or config.default_page_size)
        size = min(size, config.max_page_size)
        if self._limit:
            size = min(size, self._limit)
        return max(size, 1)

    def _page_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = dict(self._filters)
        params["page_size"] = self.effective_page_size()
        if self._next_marker is not None:
            params["marker"] = self._next_marker
        else:
            offset = self._offset + self._received
            if offset:
                params["offset"] = offset
        return params

    def _parse_page(
        self, response: Any
    ) -> Tuple[List[Mapping[str, Any]], Optional[str], bool]:
        data = response.get("data") if isinstance(response, Mapping) else None
        if not isinstance(data, list):
            raise ProtocolError(
                "List response must be an object with a 'data' array",
                method="GET",
                path=self._path,
            )
        for record in data:
            if not isinstance(record, Mapping):
                raise ProtocolError(
                    f"List item must be an object, got {type(record).__name__}",
                    method="GET",
                    path=self._path,
                )

        next_marker = response.get("next_marker") or None
        if next_marker is not None:
            more = True
        elif "truncated" in response:
            more = bool(response["truncated"])
        elif "next_marker" in response:
            more = False
        else:
            # no paging metadata at all: keep going until an empty page
            more = bool(data)

        return list(data), next_marker, more

    async def _fetch_page(self) -> None:
        params = self._page_params()
        response = await self._client.request("GET", self._path, params)
        records, next_marker, more = self._parse_page(response)

        # state only changes once the page is fully understood, so a failed
        # fetch can be retried without skipping or repeating items
        self._buffer = records
        self._page_offset = 0
        self._next_marker = next_marker
        self._more = more
        self._received += len(records)
        self._pages_fetched += 1
        self._started = True

        logger.debug(
            "Fetched page %d of %s (%d items, more=%s)",
            self._pages_fetched,
            self._path,
            len(records),
            more,
        )

    def _finish(self) -> None:
        self._exhausted = True
        self._buffer = []
        self._page_offset = 0

    def __aiter__(self) -> "Cursor":
        return self

    async def __anext__(self) -> Any:
        if self._exhausted:
            raise StopAsyncIteration

        if self._limit is not None and self._consumed >= self._limit:
            self._finish()
            raise StopAsyncIteration

        if self._page_offset >= len(self._buffer):
            if self._started and not self._more:
                self._finish()
                raise StopAsyncIteration

            await self._fetch_page()
            if not self._buffer:
                self._finish()
                raise StopAsyncIteration

        record = self._buffer[self._page_offset]
        self._page_offset += 1
        self._consumed += 1
        return self._client.make_entity(self._resource_type, record, loaded=True)
