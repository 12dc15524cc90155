from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dateutil.parser import isoparse

from ..models import ResourceHandle
from ..pipeline import ResourceResolver, await_condition
from ..pipeline.resolver import odata_eq
from ..session import SessionContext

ACTIVITIES_PATH = "/compute-ops-mgmt/v1beta2/activities"

KIND = "COM.Activity"


class ComActivities:
    """
    Read access to the Compute Ops Management activity (audit) feed.

        glops.com.activities.list("eu-central", since=start)
    """

    def __init__(self, context: SessionContext) -> None:
        self._ctx = context
        self._resolver = ResourceResolver(context.services)

    def list(
        self,
        region: str,
        *,
        since: Optional[datetime] = None,
        category: Optional[str] = None,
        source_name: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[ResourceHandle]:
        """
        Activities newest first.

        Args:
            since:       Only activities created strictly after this time.
            category:    Activity source category, e.g. "server", "external-service".
            source_name: Display name of the resource the activity is about.
            limit:       Server-side page size.
        """
        if since is not None and since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)

        params: Dict[str, Any] = {}
        filter_str = self._build_filter(since=since, category=category)
        if filter_str:
            params["filter"] = filter_str
        if limit:
            params["limit"] = limit

        handles = self._resolver.list(
            self._ctx.com_url(region, ACTIVITIES_PATH),
            kind=KIND,
            region=region,
            name_field="title",
            params=params or None,
        )

        # The filter is applied again client side; the server rounds createdAt.
        selected = [
            h for h in handles
            if (since is None or self._created_at(h) > since)
            and (source_name is None or self._source_name(h) == source_name)
        ]
        selected.sort(key=self._created_at, reverse=True)
        return selected

    def wait_for_new_activity(
        self,
        region: str,
        since: datetime,
        *,
        source_name: Optional[str] = None,
        category: Optional[str] = None,
    ) -> ResourceHandle:
        """
        Block until an activity created after `since` shows up, bounded by
        config.activity_max_attempts polls.
        """
        cfg = self._ctx.config
        found = await_condition(
            lambda: self.list(region, since=since, category=category, source_name=source_name),
            lambda activities: bool(activities),
            cfg.activity_max_attempts,
            cfg.poll_interval,
            resource=f"activity for '{source_name or category or 'any resource'}'",
            region=region,
            description=f"created after {since.isoformat()}",
            sleep=cfg.sleep,
        )
        return found[0]

    # ----------------- internal helpers -----------------

    @staticmethod
    def _build_filter(*, since: Optional[datetime], category: Optional[str]) -> str:
        parts: List[str] = []
        if since is not None:
            stamp = since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
            parts.append(f"createdAt gt '{stamp}'")
        if category:
            parts.append(odata_eq("source/type", category))
        return " and ".join(parts)

    @staticmethod
    def _created_at(handle: ResourceHandle) -> datetime:
        raw = handle.get("createdAt")
        if not raw:
            return datetime.min.replace(tzinfo=timezone.utc)
        dt = isoparse(raw)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt

    @staticmethod
    def _source_name(handle: ResourceHandle) -> Optional[str]:
        source = handle.get("source") or {}
        return source.get("displayName")
