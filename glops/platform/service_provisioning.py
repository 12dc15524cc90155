from __future__ import annotations

import logging
from typing import List, Optional

from ..models import OperationStatus, ResourceHandle, Status
from ..pipeline import MutationExecutor, MutationKind, ResourceResolver, StatusAggregator, await_condition, settle
from ..pipeline.convergence import PROVISION_INTERVAL, PROVISION_MAX_ATTEMPTS
from ..pipeline.payloads import ServiceProvisionCreate
from ..pipeline.resolver import odata_eq
from ..session import SessionContext

logger = logging.getLogger(__name__)

SERVICE_MANAGERS_PATH = "/service-catalog/v1beta1/service-managers"
PROVISIONS_PATH = "/service-catalog/v1beta1/service-manager-provisions"

KIND = "GLP.Service"
LABEL = "Service"
PROVISIONED = "PROVISIONED"


class PlatformServices:
    """
    Service manager provisioning in the GreenLake workspace.

        glops.platform.services.provision("Compute Ops Management", "eu-central")
    """

    def __init__(self, context: SessionContext) -> None:
        self._ctx = context
        self._resolver = ResourceResolver(context.services)
        self._executor = MutationExecutor(context.services)

    def list_service_managers(self) -> List[ResourceHandle]:
        return self._resolver.list(
            self._ctx.glp_url(SERVICE_MANAGERS_PATH), kind="GLP.ServiceManager"
        )

    def list_provisions(self, region: Optional[str] = None) -> List[ResourceHandle]:
        params = {"filter": odata_eq("region", region)} if region else None
        handles = self._resolver.list(
            self._ctx.glp_url(PROVISIONS_PATH),
            kind="GLP.ServiceProvision",
            region=region,
            name_field="service_manager_name",
            params=params,
        )
        return [h for h in handles if region is None or h.region == region]

    def find_service_manager(self, service_name: str) -> Optional[ResourceHandle]:
        return self._resolver.resolve(
            self._ctx.glp_url(SERVICE_MANAGERS_PATH), service_name, kind="GLP.ServiceManager"
        )

    def find_provision(self, service_name: str, region: str) -> Optional[ResourceHandle]:
        """Provision of `service_name` in `region`, whatever its provision_status."""
        manager = self.find_service_manager(service_name)
        if manager is None:
            return None
        return self._provision_for(manager, region)

    def provision(self, service_name: str, region: str) -> Optional[OperationStatus]:
        agg = self._aggregator(region)
        cfg = self._ctx.config

        def handler(item: str) -> Optional[OperationStatus]:
            status = agg.new_status(item)

            if cfg.dry_run:
                logger.warning("Dry run: lookup of service '%s' skipped", item)
                return self._executor.execute(
                    MutationKind.CREATE,
                    None,
                    ServiceProvisionCreate(service_manager_id=f"<id of {item}>", region=region),
                    url=self._ctx.glp_url(PROVISIONS_PATH),
                    name=item,
                    label=LABEL,
                    region=region,
                    dry_run=True,
                )

            manager = self.find_service_manager(item)
            if manager is None:
                return status.fail(f"Service '{item}' cannot be found in the service catalog!")

            existing = self._provision_for(manager, region)
            if existing is not None and existing.get("provision_status") != PROVISIONED:
                logger.info(
                    "Service '%s' has a provision in state %s, provisioning again",
                    item, existing.get("provision_status"),
                )
                existing = None
            outcome = self._executor.execute(
                MutationKind.CREATE,
                existing,
                ServiceProvisionCreate(service_manager_id=manager.id, region=region),
                url=self._ctx.glp_url(PROVISIONS_PATH),
                name=item,
                label=LABEL,
                region=region,
            )
            if outcome.status is not Status.COMPLETE:
                return settle(status, outcome, "")

            await_condition(
                lambda: self._provision_for(manager, region),
                lambda handle: handle is not None and handle.get("provision_status") == PROVISIONED,
                PROVISION_MAX_ATTEMPTS,
                PROVISION_INTERVAL,
                resource=f"service '{item}' provisioning",
                region=region,
                description=f"provision_status {PROVISIONED}",
                sleep=cfg.sleep,
            )
            return status.complete(f"Service '{item}' successfully provisioned in '{region}' region")

        return agg.run_one(service_name, handler)

    def deprovision(self, service_name: str, region: str, *, force: bool = False) -> Optional[OperationStatus]:
        """
        Remove a service provision. Asks config.confirm first unless forced.
        """
        agg = self._aggregator(region)
        cfg = self._ctx.config

        def handler(item: str) -> Optional[OperationStatus]:
            status = agg.new_status(item)
            url = self._ctx.glp_url(PROVISIONS_PATH)

            if cfg.dry_run:
                logger.warning("Dry run: lookup of service '%s' skipped", item)
                return self._executor.execute(
                    MutationKind.DELETE,
                    None,
                    None,
                    url=lambda h: f"{url}/{h.id}",
                    name=item,
                    label=LABEL,
                    region=region,
                    dry_run=True,
                )

            manager = self.find_service_manager(item)
            if manager is None:
                return status.fail(f"Service '{item}' cannot be found in the service catalog!")

            existing = self._provision_for(manager, region)
            if existing is not None and not (force or cfg.confirmed(
                f"Deprovision service '{item}' from region '{region}'? "
                f"Devices and subscriptions assigned to it will be released."
            )):
                return status.warn(f"Operation cancelled by the user! Service '{item}' was not deprovisioned.")

            outcome = self._executor.execute(
                MutationKind.DELETE,
                existing,
                None,
                url=lambda h: f"{url}/{h.id}",
                name=item,
                label=LABEL,
                region=region,
            )
            return settle(status, outcome, f"Service '{item}' successfully deprovisioned from '{region}' region")

        return agg.run_one(service_name, handler)

    # ---- internal helpers ----

    def _provision_for(self, manager: ResourceHandle, region: str) -> Optional[ResourceHandle]:
        for handle in self.list_provisions(region):
            if handle.get("service_manager_id") == manager.id:
                return handle
        return None

    def _aggregator(self, region: str) -> StatusAggregator:
        return StatusAggregator(
            label=LABEL,
            type_name=f"{KIND}.Status",
            region=region,
            dry_run=self._ctx.config.dry_run,
        )
