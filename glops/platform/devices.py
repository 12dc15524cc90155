from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Union

from ..models import MutationOutcome, OperationStatus, ResourceHandle
from ..pipeline import MutationExecutor, MutationKind, ResourceResolver, StatusAggregator, as_items, unique_items
from ..pipeline.payloads import DeviceAssignmentPatch
from ..services import MERGE_PATCH
from ..session import SessionContext
from .service_provisioning import PlatformServices

logger = logging.getLogger(__name__)

DEVICES_PATH = "/devices/v1/devices"

KIND = "GLP.Device"
LABEL = "Device"


class PlatformDevices:
    """
    Device (de)assignment to provisioned services.

    Unlike the other namespaces, assignment is done in bulk: every serial
    number is resolved with one read, and one PATCH is sent for all devices
    that passed validation.
    """

    def __init__(self, context: SessionContext, services: PlatformServices) -> None:
        self._ctx = context
        self._services = services
        self._resolver = ResourceResolver(context.services)
        self._executor = MutationExecutor(context.services)

    def list(self, serial_numbers: Optional[Iterable[str]] = None) -> List[ResourceHandle]:
        wanted = list(serial_numbers) if serial_numbers is not None else None
        params = {"filter": self._serial_filter(wanted)} if wanted else None
        handles = self._resolver.list(
            self._ctx.glp_url(DEVICES_PATH),
            kind=KIND,
            name_field="serialNumber",
            params=params,
        )
        return [h for h in handles if wanted is None or h.name in wanted]

    def assign(
        self,
        serial_numbers: Union[str, Iterable[str]],
        service_name: str,
        region: str,
    ) -> List[OperationStatus]:
        items = unique_items(as_items(serial_numbers))
        agg = StatusAggregator(label=LABEL, type_name=f"{KIND}.Status", region=region)

        if self._ctx.config.dry_run:
            logger.warning("Dry run: lookup of %d device(s) and service '%s' skipped", len(items), service_name)
            self._send(
                [f"<id of {sn}>" for sn in items if sn],
                DeviceAssignmentPatch(application_id=f"<id of {service_name}>", region=region),
                name=service_name,
                dry_run=True,
            )
            return []

        provision = self._services.find_provision(service_name, region)
        if provision is None:
            return [
                agg.new_status(sn).fail(f"Service '{service_name}' is not provisioned in region '{region}'!")
                for sn in items
            ]
        application_id = provision.get("service_manager_id")
        payload = DeviceAssignmentPatch(application_id=application_id, region=region)

        def validate(device: ResourceHandle, status: OperationStatus) -> bool:
            current = self._application_of(device)
            if current == application_id and device.get("region") == region:
                status.warn(
                    f"Device '{device.name}' is already assigned to '{service_name}' in '{region}' region! "
                    f"No action needed."
                )
                return False
            if current:
                status.fail(
                    f"Device '{device.name}' is assigned to another service. Unassign it first!"
                )
                return False
            return True

        return agg.run_bulk(
            items,
            lookup=self._lookup,
            validate=validate,
            send=lambda devices: self._send([d.id for d in devices], payload, name=service_name),
            success_detail=lambda sn: f"Device '{sn}' successfully assigned to '{service_name}' in '{region}' region",
        )

    def unassign(self, serial_numbers: Union[str, Iterable[str]]) -> List[OperationStatus]:
        items = unique_items(as_items(serial_numbers))
        agg = StatusAggregator(label=LABEL, type_name=f"{KIND}.Status")
        payload = DeviceAssignmentPatch()

        if self._ctx.config.dry_run:
            logger.warning("Dry run: lookup of %d device(s) skipped", len(items))
            self._send([f"<id of {sn}>" for sn in items if sn], payload, name="unassign", dry_run=True)
            return []

        def validate(device: ResourceHandle, status: OperationStatus) -> bool:
            if not self._application_of(device):
                status.warn(f"Device '{device.name}' is not assigned to any service! No action needed.")
                return False
            return True

        return agg.run_bulk(
            items,
            lookup=self._lookup,
            validate=validate,
            send=lambda devices: self._send([d.id for d in devices], payload, name="unassign"),
            success_detail=lambda sn: f"Device '{sn}' successfully unassigned",
        )

    # ---- internal helpers ----

    def _lookup(self, serial_numbers: List[str]) -> Dict[str, ResourceHandle]:
        return {h.name: h for h in self.list(serial_numbers)}

    def _send(
        self,
        device_ids: List[str],
        payload: DeviceAssignmentPatch,
        *,
        name: str,
        dry_run: bool = False,
    ) -> Optional[MutationOutcome]:
        return self._executor.dispatch(
            MutationKind.UPDATE,
            "PATCH",
            self._ctx.glp_url(DEVICES_PATH),
            payload.to_json(),
            name=name,
            label=LABEL,
            content_type=MERGE_PATCH,
            params=[("id", device_id) for device_id in device_ids],
            dry_run=dry_run,
        )

    @staticmethod
    def _application_of(device: ResourceHandle) -> Optional[str]:
        application = device.get("application") or {}
        return application.get("id")

    @staticmethod
    def _serial_filter(serial_numbers: List[str]) -> str:
        quoted = ", ".join("'" + sn.replace("'", "''") + "'" for sn in serial_numbers)
        return f"serialNumber in ({quoted})"
