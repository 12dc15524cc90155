from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Union

from ..models import OperationStatus, ResourceHandle
from ..pipeline import MutationExecutor, MutationKind, ResourceResolver, StatusAggregator, as_items, settle
from ..pipeline.payloads import WebhookCreate, WebhookUpdate
from ..pipeline.resolver import odata_eq
from ..session import SessionContext

logger = logging.getLogger(__name__)

WEBHOOKS_PATH = "/compute-ops-mgmt/v1beta1/webhooks"

KIND = "COM.Webhook"
LABEL = "Webhook"


class ComWebhooks:
    """
    Compute Ops Management webhooks.

        glops.com.webhooks.create("WebhookA", region="eu-central", ...)
    """

    def __init__(self, context: SessionContext) -> None:
        self._ctx = context
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
        destination: str,
        event_filter: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> Optional[OperationStatus]:
        agg = self._aggregator(region)

        def handler(item: str) -> Optional[OperationStatus]:
            payload = WebhookCreate(
                name=item,
                destination=destination,
                event_filter=event_filter,
                headers=headers,
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
                dry_run=self._ctx.config.dry_run,
            )
            if outcome is None:
                return None
            return settle(status, outcome, f"Webhook '{item}' successfully created in '{region}' region")

        return agg.run_one(name, handler)

    def update(
        self,
        name: str,
        region: str,
        *,
        new_name: Optional[str] = None,
        destination: Optional[str] = None,
        event_filter: Optional[str] = None,
        state: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Optional[OperationStatus]:
        """
        Partial update; fields left as None keep their current value.
        """
        agg = self._aggregator(region)

        def handler(item: str) -> Optional[OperationStatus]:
            payload = WebhookUpdate(
                new_name=new_name,
                destination=destination,
                event_filter=event_filter,
                state=state,
                headers=headers,
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
            return settle(status, outcome, f"Webhook '{item}' successfully updated in '{region}' region")

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
            return settle(status, outcome, f"Webhook '{item}' successfully deleted from '{region}' region")

        return agg.run(as_items(names), handler)

    def test(self, name: str, region: str) -> Optional[OperationStatus]:
        """Ask COM to send a test event to the webhook destination."""
        agg = self._aggregator(region)

        def handler(item: str) -> Optional[OperationStatus]:
            status = agg.new_status(item)
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
            return settle(status, outcome, f"Test event sent to webhook '{item}' in '{region}' region")

        return agg.run_one(name, handler)

    # ---- internal helpers ----

    def _collection(self, region: str) -> str:
        return self._ctx.com_url(region, WEBHOOKS_PATH)

    def _item_url(self, region: str):
        collection = self._collection(region)
        return lambda h: f"{collection}/{h.id}"

    def _target(self, name: str, region: str) -> Optional[ResourceHandle]:
        """Resolve the webhook; dry-run skips the read entirely."""
        if self._ctx.config.dry_run:
            logger.warning("Dry run: lookup of webhook '%s' in region '%s' skipped", name, region)
            return None
        return self._resolver.resolve(
            self._collection(region), name, kind=KIND, region=region, filter_field="name"
        )

    def _aggregator(self, region: str) -> StatusAggregator:
        return StatusAggregator(
            label=LABEL,
            type_name=f"{KIND}.Status",
            region=region,
            dry_run=self._ctx.config.dry_run,
        )
