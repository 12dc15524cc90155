from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..errors import InvalidInput
from ..models import MutationOutcome, OperationStatus, ResourceHandle
from .executor import settle

logger = logging.getLogger(__name__)

ItemHandler = Callable[[str], Optional[OperationStatus]]
Lookup = Callable[[List[str]], Dict[str, ResourceHandle]]
Validator = Callable[[ResourceHandle, OperationStatus], bool]
BulkSender = Callable[[List[ResourceHandle]], MutationOutcome]


def as_items(value: Union[str, Iterable[str]]) -> List[str]:
    """Accept one identifier or many, the way piped input does."""
    if isinstance(value, str):
        return [value]
    return list(value)


def unique_items(items: Iterable[str]) -> List[str]:
    """Drop repeated identifiers, keeping the first occurrence."""
    return list(dict.fromkeys(items))


class StatusAggregator:
    """
    Collects exactly one OperationStatus per input item and returns the
    whole list once every item has been processed.

    Items are independent: a Failed item never changes the outcome of the
    others. Only fatal errors (ResolutionError, ConvergenceTimeout) escape.

    With dry_run set, items that cannot be rendered (empty or invalid) are
    logged and dropped, so a dry run always returns an empty list.
    """

    def __init__(
        self,
        *,
        label: str,
        type_name: str,
        region: Optional[str] = None,
        service_type: Optional[str] = None,
        dry_run: bool = False,
    ) -> None:
        self._label = label
        self._type_name = type_name
        self._region = region
        self._service_type = service_type
        self._dry_run = dry_run

    def new_status(self, name: str) -> OperationStatus:
        return OperationStatus(
            name=name,
            region=self._region,
            service_type=self._service_type,
            type_name=self._type_name,
        )

    def run(self, items: Iterable[str], handler: ItemHandler) -> List[OperationStatus]:
        results: List[OperationStatus] = []

        for item in items:
            if not _present(item):
                if self._dry_run:
                    logger.warning("Dry run: empty %s identifier skipped", self._label.lower())
                    continue
                results.append(self._empty(item))
                continue
            try:
                status = handler(item)
            except InvalidInput as exc:
                if self._dry_run:
                    logger.warning("Dry run: %s '%s' skipped: %s", self._label.lower(), item, exc)
                    continue
                status = self.new_status(item).fail(str(exc), exc)
            if status is not None:
                results.append(status)

        return results

    def run_one(self, item: str, handler: ItemHandler) -> Optional[OperationStatus]:
        results = self.run([item], handler)
        return results[0] if results else None

    def run_bulk(
        self,
        items: Sequence[str],
        *,
        lookup: Lookup,
        validate: Validator,
        send: BulkSender,
        success_detail: Callable[[str], str],
    ) -> List[OperationStatus]:
        """
        Resolve every item with one lookup, validate each, then send a
        single request for all items that passed.
        """
        results: List[OperationStatus] = []
        queued: List[Tuple[ResourceHandle, OperationStatus]] = []

        # One status and one bulk entry per serial, even when repeated
        items = unique_items(items)
        wanted = [item for item in items if _present(item)]
        table = lookup(wanted) if wanted else {}

        for item in items:
            if not _present(item):
                results.append(self._empty(item))
                continue

            status = self.new_status(item)
            results.append(status)

            handle = table.get(item)
            if handle is None:
                status.fail(f"{self._label} '{item}' cannot be found in the workspace!")
                continue

            if validate(handle, status):
                queued.append((handle, status))

        if queued:
            outcome = send([handle for handle, _ in queued])
            for handle, status in queued:
                settle(status, outcome, success_detail(status.name))
            logger.info(
                "Bulk %s request for %d item(s): %s",
                self._label.lower(), len(queued), outcome.status.value,
            )

        return results

    def _empty(self, item: Optional[str]) -> OperationStatus:
        return self.new_status(item or "").fail(f"{self._label} identifier must not be empty")


def _present(item: Optional[str]) -> bool:
    return item is not None and bool(str(item).strip())
