from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, Union

from ..errors import RemoteOperationError
from ..models import MutationOutcome, OperationStatus, ResourceHandle, Status
from ..services import MERGE_PATCH, GreenLakeServiceRegistry, Params, error_detail
from .payloads import MutationRequest

logger = logging.getLogger(__name__)

UrlSpec = Union[str, Callable[[ResourceHandle], str]]


class MutationKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    ACTION = "action"


_DEFAULT_METHOD = {
    MutationKind.CREATE: "POST",
    MutationKind.UPDATE: "PATCH",
    MutationKind.DELETE: "DELETE",
    MutationKind.ACTION: "POST",
}


@dataclass(frozen=True)
class RoleHint:
    insufficient: Tuple[str, ...]
    sufficient: Tuple[str, ...]
    product: str


_COM_HINT = RoleHint(
    insufficient=("Observer", "Viewer"),
    sufficient=("Administrator", "Operator"),
    product="Compute Ops Management",
)
_GLP_HINT = RoleHint(
    insufficient=("Workspace Observer", "Workspace Operator"),
    sufficient=("Workspace Administrator",),
    product="HPE GreenLake",
)

ROLE_HINTS: Dict[str, RoleHint] = {
    "Webhook": _COM_HINT,
    "External service": _COM_HINT,
    "Service": _GLP_HINT,
    "Device": _GLP_HINT,
    "API credential": _GLP_HINT,
}


def permission_denied_message(label: str, name: str, operation: MutationKind) -> str:
    hint = ROLE_HINTS.get(label, _GLP_HINT)
    return (
        f"Permission denied: your role does not allow you to {operation.value} "
        f"{label.lower()} '{name}' in {hint.product}. "
        f"Roles without this permission: {', '.join(hint.insufficient)}. "
        f"Roles with sufficient permission: {', '.join(hint.sufficient)}. "
        f"Ask a workspace administrator to assign one of these roles and retry."
    )


def placeholder_handle(name: str, region: Optional[str], kind: str) -> ResourceHandle:
    """Stand-in target used by dry-run previews, where nothing is resolved."""
    return ResourceHandle(id=f"<id of {name}>", name=name, region=region, kind=kind)


class MutationExecutor:
    """
    Sends one mutating request for an already resolved (or absent) target
    and classifies what happened.

    Existence rules:
      - CREATE with an existing target    -> Warning, nothing sent
      - anything else without a target    -> Failed, nothing sent
    """

    def __init__(self, services: GreenLakeServiceRegistry) -> None:
        self._services = services

    def execute(
        self,
        operation: MutationKind,
        target: Optional[ResourceHandle],
        payload: Optional[MutationRequest],
        *,
        url: UrlSpec,
        name: str,
        label: str,
        region: Optional[str] = None,
        dry_run: bool = False,
        method: Optional[str] = None,
        content_type: Optional[str] = None,
        params: Params = None,
    ) -> Optional[MutationOutcome]:
        method = method or _DEFAULT_METHOD[operation]
        if operation is MutationKind.UPDATE and content_type is None:
            content_type = MERGE_PATCH

        if dry_run:
            preview_target = target or placeholder_handle(name, region, label)
            body = None
            if payload is not None:
                if operation is MutationKind.UPDATE and target is not None:
                    payload = payload.merged_with(target)
                body = payload.to_json()
                if operation is MutationKind.UPDATE and target is None:
                    # Unresolved update: show only the fields the caller set
                    body = _prune(body)
            self._services.invoke(
                method,
                self._url_for(url, preview_target),
                body=body,
                content_type=content_type,
                dry_run=True,
                params=params,
            )
            return None

        where = f" in the region '{region}'" if region else ""
        if operation is MutationKind.CREATE and target is not None:
            return MutationOutcome(
                status=Status.WARNING,
                detail=f"{label} '{name}' already exists{where}! No action needed.",
            )
        if operation is not MutationKind.CREATE and target is None:
            return MutationOutcome(
                status=Status.FAILED,
                detail=f"{label} '{name}' cannot be found{' in the region' if region else ''}!",
            )

        if operation is MutationKind.UPDATE and payload is not None:
            payload = payload.merged_with(target)

        return self.dispatch(
            operation,
            method,
            self._url_for(url, target),
            payload.to_json() if payload is not None else None,
            name=name,
            label=label,
            content_type=content_type,
            params=params,
        )

    def dispatch(
        self,
        operation: MutationKind,
        method: str,
        url: str,
        body: Optional[Any],
        *,
        name: str,
        label: str,
        content_type: Optional[str] = None,
        params: Params = None,
        dry_run: bool = False,
    ) -> Optional[MutationOutcome]:
        """
        Send the request with no existence checks and classify the result.
        Used directly for bulk requests that have no single target.
        """
        try:
            response = self._services.invoke(
                method,
                url,
                body=body,
                content_type=content_type,
                dry_run=dry_run,
                params=params,
            )
        except RemoteOperationError as exc:
            logger.info("%s %s '%s' failed: %s", operation.value, label, name, exc)
            if exc.status_code == 403:
                return MutationOutcome(
                    status=Status.FAILED,
                    detail=permission_denied_message(label, name, operation),
                    exception=exc,
                )
            return MutationOutcome(
                status=Status.FAILED,
                detail=self._failure_detail(exc),
                exception=exc,
            )

        if dry_run:
            return None
        logger.info("%s %s '%s' succeeded", operation.value, label, name)
        return MutationOutcome(status=Status.COMPLETE, response=response)

    # ---- internal helpers ----

    def _failure_detail(self, exc: RemoteOperationError) -> str:
        remote = self._services.last_error_response
        if remote not in (None, {}, ""):
            return error_detail(remote)
        return str(exc)

    @staticmethod
    def _url_for(url: UrlSpec, target: Optional[ResourceHandle]) -> str:
        if callable(url):
            if target is None:
                raise ValueError("A target is required to build this URL")
            return url(target)
        return url


def settle(status: OperationStatus, outcome: MutationOutcome, success_detail: str) -> OperationStatus:
    """Copy a non-complete outcome, or the given success text, onto a status."""
    if outcome.status is Status.COMPLETE:
        return status.complete(success_detail)
    if outcome.status is Status.WARNING:
        return status.warn(outcome.detail)
    return status.fail(outcome.detail, outcome.exception)


def _prune(body: Any) -> Any:
    if isinstance(body, dict):
        return {k: _prune(v) for k, v in body.items() if v is not None}
    return body
