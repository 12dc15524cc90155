from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Union

from ..models import ApiCredential, OperationStatus, ResourceHandle, Status
from ..pipeline import MutationExecutor, MutationKind, ResourceResolver, StatusAggregator, as_items, settle
from ..pipeline.payloads import ApiCredentialCreate
from ..session import SessionContext
from .service_provisioning import PlatformServices

logger = logging.getLogger(__name__)

CREDENTIALS_PATH = "/authn/v1/token-management/credentials"

KIND = "GLP.APICredential"
LABEL = "API credential"


class PlatformApiCredentials:
    """
    API client credentials for provisioned services.

    Created credentials are cached in the session (client id and secret) so
    later calls can use them; removing one drops it from the cache.
    """

    def __init__(self, context: SessionContext, services: PlatformServices) -> None:
        self._ctx = context
        self._services = services
        self._resolver = ResourceResolver(context.services)
        self._executor = MutationExecutor(context.services)

    def list(self) -> List[ResourceHandle]:
        return self._resolver.list(self._collection(), kind=KIND, name_field="credential_name")

    def create(self, name: str, service_name: str, region: str) -> Optional[OperationStatus]:
        agg = self._aggregator(region)
        cfg = self._ctx.config

        def handler(item: str) -> Optional[OperationStatus]:
            status = agg.new_status(item)

            if cfg.dry_run:
                logger.warning("Dry run: lookup of API credential '%s' skipped", item)
                return self._executor.execute(
                    MutationKind.CREATE,
                    None,
                    ApiCredentialCreate(name=item, application_instance_id=f"<id of {service_name}>"),
                    url=self._collection(),
                    name=item,
                    label=LABEL,
                    dry_run=True,
                )

            existing = self._resolve(item)
            if existing is not None:
                outcome = self._executor.execute(
                    MutationKind.CREATE, existing, None, url=self._collection(), name=item, label=LABEL
                )
                return settle(status, outcome, "")

            provision = self._services.find_provision(service_name, region)
            if provision is None:
                return status.fail(f"Service '{service_name}' is not provisioned in region '{region}'!")

            outcome = self._executor.execute(
                MutationKind.CREATE,
                None,
                ApiCredentialCreate(name=item, application_instance_id=provision.id),
                url=self._collection(),
                name=item,
                label=LABEL,
            )
            if outcome.status is not Status.COMPLETE:
                return settle(status, outcome, "")

            body = outcome.response if isinstance(outcome.response, dict) else {}
            self._ctx.add_credential(
                ApiCredential(
                    name=item,
                    client_id=body.get("client_id", ""),
                    client_secret=body.get("client_secret", ""),
                    application=service_name,
                    region=region,
                )
            )
            return status.complete(
                f"API credential '{item}' successfully created for '{service_name}' in '{region}' region. "
                f"Client id and secret are stored in the session."
            )

        return agg.run_one(name, handler)

    def remove(self, names: Union[str, Iterable[str]], *, force: bool = False) -> List[OperationStatus]:
        """
        Delete credentials. One the current session uses needs confirmation
        unless forced.
        """
        agg = self._aggregator()
        cfg = self._ctx.config

        def handler(item: str) -> Optional[OperationStatus]:
            status = agg.new_status(item)

            if cfg.dry_run:
                logger.warning("Dry run: lookup of API credential '%s' skipped", item)
                target = None
            else:
                target = self._resolve(item)
                in_use = self._ctx.find_credential(item) is not None
                if target is not None and in_use and not (force or cfg.confirmed(
                    f"API credential '{item}' is used by the current session. Delete it anyway?"
                )):
                    return status.warn(f"Operation cancelled by the user! API credential '{item}' was not deleted.")

            outcome = self._executor.execute(
                MutationKind.DELETE,
                target,
                None,
                url=lambda h: f"{self._collection()}/{h.id}",
                name=item,
                label=LABEL,
                dry_run=cfg.dry_run,
            )
            if outcome is None:
                return None
            if outcome.status is Status.COMPLETE:
                self._ctx.remove_credential(item)
            return settle(status, outcome, f"API credential '{item}' successfully deleted")

        return agg.run(as_items(names), handler)

    # ---- internal helpers ----

    def _collection(self) -> str:
        return self._ctx.glp_url(CREDENTIALS_PATH)

    def _resolve(self, name: str) -> Optional[ResourceHandle]:
        return self._resolver.resolve(self._collection(), name, kind=KIND, name_field="credential_name")

    def _aggregator(self, region: Optional[str] = None) -> StatusAggregator:
        return StatusAggregator(
            label=LABEL,
            type_name=f"{KIND}.Status",
            region=region,
            dry_run=self._ctx.config.dry_run,
        )
