from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Union

from ..models import OperationStatus, ResourceHandle, Status
from ..pipeline import (
    MutationExecutor,
    MutationKind,
    ResourceResolver,
    StatusAggregator,
    as_items,
    await_condition,
    settle,
)
from ..pipeline.payloads import ClientCredential, ExternalServiceUpdate, ServiceNowIntegrationCreate
from ..pipeline.resolver import odata_eq
from ..session import SessionContext
from .activities import ComActivities

logger = logging.getLogger(__name__)

EXTERNAL_SERVICES_PATH = "/compute-ops-mgmt/v1beta1/external-services"

KIND = "COM.ExternalService"
LABEL = "External service"
SERVICE_NOW = "SERVICE_NOW"


class ComExternalServices:
    """
    External-service integrations (ServiceNow) in Compute Ops Management.

    Creation is asynchronous server side: after the POST the integration is
    polled until its status is ENABLED.
    """

    def __init__(self, context: SessionContext, activities: ComActivities) -> None:
        self._ctx = context
        self._activities = activities
        self._resolver = ResourceResolver(context.services)
        self._executor = MutationExecutor(context.services)

    def list(self, region: str, name: Optional[str] = None) -> List[ResourceHandle]:
        params = {"filter": odata_eq("name", name)} if name else None
        handles = self._resolver.list(
            self._collection(region), kind=KIND, region=region, params=params
        )
        return [h for h in handles if name is None or h.name == name]

    def create(
        self,
        name: str,
        region: str,
        *,
        credential: ClientCredential,
        refresh_token: str,
        oauth_url: str,
        incident_url: str,
        description: Optional[str] = None,
        refresh_token_expiry_days: int = 100,
    ) -> Optional[OperationStatus]:
        agg = self._aggregator(region)
        cfg = self._ctx.config

        def handler(item: str) -> Optional[OperationStatus]:
            payload = ServiceNowIntegrationCreate(
                name=item,
                credential=credential,
                refresh_token=refresh_token,
                oauth_url=oauth_url,
                incident_url=incident_url,
                description=description,
                refresh_token_expiry_days=refresh_token_expiry_days,
            )
            status = agg.new_status(item)
            outcome = self._executor.execute(
                MutationKind.CREATE,
                self._target(item, region),
                payload,
                url=self._collection(region),
                name=item,
                label=LABEL,
                region=region,
                dry_run=cfg.dry_run,
            )
            if outcome is None:
                return None
            if outcome.status is not Status.COMPLETE:
                return settle(status, outcome, "")

            await_condition(
                lambda: self._resolve(item, region),
                lambda handle: handle is not None and handle.get("status") == "ENABLED",
                cfg.poll_max_attempts,
                cfg.poll_interval,
                resource=f"external service '{item}'",
                region=region,
                description="status ENABLED",
                sleep=cfg.sleep,
            )
            return status.complete(
                f"External service '{item}' successfully created and enabled in '{region}' region"
            )

        return agg.run_one(name, handler)

    def update(
        self,
        name: str,
        region: str,
        *,
        new_name: Optional[str] = None,
        description: Optional[str] = None,
        incident_url: Optional[str] = None,
        refresh_token_expiry_days: Optional[int] = None,
    ) -> Optional[OperationStatus]:
        agg = self._aggregator(region)

        def handler(item: str) -> Optional[OperationStatus]:
            payload = ExternalServiceUpdate(
                new_name=new_name,
                description=description,
                incident_url=incident_url,
                refresh_token_expiry_days=refresh_token_expiry_days,
            )
            status = agg.new_status(item)
            outcome = self._executor.execute(
                MutationKind.UPDATE,
                self._target(item, region),
                payload,
                url=self._item_url(region),
                name=item,
                label=LABEL,
                region=region,
                dry_run=self._ctx.config.dry_run,
            )
            if outcome is None:
                return None
            return settle(status, outcome, f"External service '{item}' successfully updated in '{region}' region")

        return agg.run_one(name, handler)

    def remove(self, names: Union[str, Iterable[str]], region: str) -> List[OperationStatus]:
        agg = self._aggregator(region)

        def handler(item: str) -> Optional[OperationStatus]:
            status = agg.new_status(item)
            outcome = self._executor.execute(
                MutationKind.DELETE,
                self._target(item, region),
                None,
                url=self._item_url(region),
                name=item,
                label=LABEL,
                region=region,
                dry_run=self._ctx.config.dry_run,
            )
            if outcome is None:
                return None
            return settle(status, outcome, f"External service '{item}' successfully deleted from '{region}' region")

        return agg.run(as_items(names), handler)

    def test(self, name: str, region: str) -> Optional[OperationStatus]:
        """
        Trigger a connectivity test and wait for the activity COM records
        about it. The activity message becomes the status details.
        """
        agg = self._aggregator(region)

        def handler(item: str) -> Optional[OperationStatus]:
            status = agg.new_status(item)
            since = datetime.now(timezone.utc)
            outcome = self._executor.execute(
                MutationKind.ACTION,
                self._target(item, region),
                None,
                url=lambda h: f"{self._collection(region)}/{h.id}/test",
                name=item,
                label=LABEL,
                region=region,
                dry_run=self._ctx.config.dry_run,
            )
            if outcome is None:
                return None
            if outcome.status is not Status.COMPLETE:
                return settle(status, outcome, "")

            activity = self._activities.wait_for_new_activity(region, since, source_name=item)
            message = activity.get("formattedMessage") or activity.name
            return status.complete(f"Test of external service '{item}' completed: {message}")

        return agg.run_one(name, handler)

    # ---- internal helpers ----

    def _collection(self, region: str) -> str:
        return self._ctx.com_url(region, EXTERNAL_SERVICES_PATH)

    def _item_url(self, region: str):
        collection = self._collection(region)
        return lambda h: f"{collection}/{h.id}"

    def _resolve(self, name: str, region: str) -> Optional[ResourceHandle]:
        return self._resolver.resolve(
            self._collection(region), name, kind=KIND, region=region, filter_field="name"
        )

    def _target(self, name: str, region: str) -> Optional[ResourceHandle]:
        if self._ctx.config.dry_run:
            logger.warning("Dry run: lookup of external service '%s' in region '%s' skipped", name, region)
            return None
        return self._resolve(name, region)

    def _aggregator(self, region: str) -> StatusAggregator:
        return StatusAggregator(
            label=LABEL,
            type_name=f"{KIND}.Status",
            region=region,
            service_type=SERVICE_NOW,
            dry_run=self._ctx.config.dry_run,
        )
