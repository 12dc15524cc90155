from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from ..errors import RemoteOperationError, ResolutionError
from ..models import ResourceHandle
from ..services import GreenLakeServiceRegistry

logger = logging.getLogger(__name__)

# Upper bound on pages read for one collection
MAX_PAGES = 100


def odata_eq(field_name: str, value: str) -> str:
    """Build a `<field> eq '<value>'` filter, doubling embedded quotes."""
    escaped = value.replace("'", "''")
    return f"{field_name} eq '{escaped}'"


def items_of(body: Any) -> List[Dict[str, Any]]:
    """GreenLake list endpoints wrap results in `items`; some return a bare list."""
    if isinstance(body, list):
        return [i for i in body if isinstance(i, dict)]
    if isinstance(body, dict):
        items = body.get("items")
        if isinstance(items, list):
            return [i for i in items if isinstance(i, dict)]
    return []


def to_handle(
    item: Dict[str, Any],
    *,
    kind: str,
    region: Optional[str] = None,
    name_field: str = "name",
) -> ResourceHandle:
    return ResourceHandle(
        id=str(item.get("id", "")),
        name=str(item.get(name_field, "")),
        region=item.get("region", region),
        kind=kind,
        attributes=dict(item),
    )


class ResourceResolver:
    """
    Turns a human name into a ResourceHandle with a read (GET) request.

    A failed read is fatal: it raises ResolutionError, since no per-item
    status can be completed without knowing the target.
    """

    def __init__(self, services: GreenLakeServiceRegistry) -> None:
        self._services = services

    def list(
        self,
        url: str,
        *,
        kind: str,
        region: Optional[str] = None,
        name_field: str = "name",
        params: Optional[Dict[str, Any]] = None,
    ) -> List[ResourceHandle]:
        """
        Read every page of a collection.

        GreenLake list bodies carry `offset`, `count` and `total`; further
        pages are requested with `offset` until `total` items are read, an
        empty page comes back, or MAX_PAGES is reached. Bodies without
        `total` are a single page.
        """
        items: List[Dict[str, Any]] = []
        page_params: Dict[str, Any] = dict(params or {})

        for _ in range(MAX_PAGES):
            try:
                body = self._services.invoke("GET", url, params=page_params or None)
            except RemoteOperationError as exc:
                raise ResolutionError(
                    f"Unable to read {kind} list in region '{region or 'global'}': {exc}"
                ) from exc

            page_items = items_of(body)
            items.extend(page_items)

            total = body.get("total") if isinstance(body, dict) else None
            if not page_items or not isinstance(total, int) or len(items) >= total:
                break
            page_params = dict(page_params, offset=len(items))
        else:
            logger.warning("%s list truncated after %d pages", kind, MAX_PAGES)

        return [
            to_handle(item, kind=kind, region=region, name_field=name_field)
            for item in items
        ]

    def resolve(
        self,
        url: str,
        name: str,
        *,
        kind: str,
        region: Optional[str] = None,
        name_field: str = "name",
        filter_field: Optional[str] = None,
        extra_params: Optional[Dict[str, Any]] = None,
    ) -> Optional[ResourceHandle]:
        """
        Return the single resource whose `name_field` equals `name` exactly,
        or None when nothing matches.
        """
        params: Dict[str, Any] = dict(extra_params or {})
        if filter_field:
            params["filter"] = odata_eq(filter_field, name)

        handles = self.list(
            url,
            kind=kind,
            region=region,
            name_field=name_field,
            params=params or None,
        )
        matches = self._match(handles, name)
        if not matches:
            logger.debug("%s '%s' not found in region '%s'", kind, name, region)
            return None
        return matches[0]

    @staticmethod
    def _match(handles: Iterable[ResourceHandle], name: str) -> List[ResourceHandle]:
        return [h for h in handles if h.name == name]
