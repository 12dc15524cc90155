from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional


class Status(str, Enum):
    COMPLETE = "Complete"
    FAILED = "Failed"
    WARNING = "Warning"


@dataclass
class OperationStatus:
    """
    Result record for one processed item.

    Starts without a status and is settled exactly once through
    complete(), fail() or warn(). Settling it a second time is a bug
    in the caller and raises RuntimeError.
    """
    name: str
    region: Optional[str] = None
    service_type: Optional[str] = None
    status: Optional[Status] = None
    details: str = ""
    exception: Optional[BaseException] = None
    type_name: str = "GreenLake.Status"

    def complete(self, details: str) -> "OperationStatus":
        return self._settle(Status.COMPLETE, details)

    def fail(self, details: str, exception: Optional[BaseException] = None) -> "OperationStatus":
        return self._settle(Status.FAILED, details, exception)

    def warn(self, details: str) -> "OperationStatus":
        return self._settle(Status.WARNING, details)

    @property
    def settled(self) -> bool:
        return self.status is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type_name,
            "name": self.name,
            "region": self.region,
            "service_type": self.service_type,
            "status": self.status.value if self.status else None,
            "details": self.details,
            "exception": str(self.exception) if self.exception else None,
        }

    def _settle(
        self,
        status: Status,
        details: str,
        exception: Optional[BaseException] = None,
    ) -> "OperationStatus":
        if self.status is not None:
            raise RuntimeError(
                f"Status for '{self.name}' already set to {self.status.value}"
            )
        self.status = status
        self.details = details
        self.exception = exception
        return self


@dataclass(frozen=True)
class ResourceHandle:
    """
    Read-only snapshot of a remote object (webhook, external service,
    service provision, device, API credential ...).
    """
    id: str
    name: str
    region: Optional[str] = None
    kind: str = "resource"
    attributes: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind,
            "id": self.id,
            "name": self.name,
            "region": self.region,
            **{k: v for k, v in self.attributes.items() if k not in ("id", "name", "region")},
        }


@dataclass(frozen=True)
class ConvergenceCondition:
    predicate: Callable[[Any], bool]
    max_attempts: int
    interval: float
    description: str = ""

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("ConvergenceCondition.max_attempts must be >= 1")
        if self.interval < 0:
            raise ValueError("ConvergenceCondition.interval must be >= 0")


@dataclass
class MutationOutcome:
    status: Status
    detail: str = ""
    response: Any = None
    exception: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status is Status.COMPLETE


@dataclass
class ApiCredential:
    """
    API client credential cached in the session after creation.
    """
    name: str
    client_id: str
    client_secret: str = field(repr=False, default="")
    application: Optional[str] = None
    region: Optional[str] = None
