"""
Request builders, one per mutation kind.

Each builder validates its fields at construction time (raising
InvalidInput) and knows how to serialise itself with to_json(). Update
builders leave unset fields as None; merged_with() fills them from the
resource's current values so the body sent is a complete merge-patch.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from ..errors import InvalidInput
from ..models import ResourceHandle

WEBHOOK_STATES = ("ENABLED", "DISABLED")


def _require(value: Optional[str], what: str) -> None:
    if value is None or not str(value).strip():
        raise InvalidInput(f"{what} must not be empty")


def _require_https(url: Optional[str], what: str) -> None:
    _require(url, what)
    parsed = urlparse(url)
    if parsed.scheme != "https" or not parsed.netloc:
        raise InvalidInput(f"{what} must be an https URL, got '{url}'")


@dataclass(frozen=True)
class ClientCredential:
    """
    OAuth client id/secret pair. The secret is only revealed when a
    request body is built and never appears in repr() or logs.
    """
    client_id: str
    client_secret: str = field(repr=False)

    def __post_init__(self) -> None:
        _require(self.client_id, "client_id")
        _require(self.client_secret, "client_secret")

    def reveal(self) -> str:
        return self.client_secret


class MutationRequest:
    kind = "mutation"

    def to_json(self) -> Dict[str, Any]:
        raise NotImplementedError

    def merged_with(self, existing: ResourceHandle) -> "MutationRequest":
        return self


# --------------------
# COM: Webhooks
# --------------------

@dataclass(frozen=True)
class WebhookCreate(MutationRequest):
    name: str
    destination: str
    event_filter: str
    headers: Optional[Dict[str, str]] = None
    state: str = "ENABLED"

    kind = "webhook-create"

    def __post_init__(self) -> None:
        _require(self.name, "Webhook name")
        _require_https(self.destination, "Webhook destination")
        _require(self.event_filter, "Webhook event filter")
        if self.state not in WEBHOOK_STATES:
            raise InvalidInput(f"Webhook state must be one of {WEBHOOK_STATES}")

    def to_json(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "name": self.name,
            "destination": self.destination,
            "eventFilter": self.event_filter,
            "state": self.state,
        }
        if self.headers:
            body["headers"] = dict(self.headers)
        return body


@dataclass(frozen=True)
class WebhookUpdate(MutationRequest):
    new_name: Optional[str] = None
    destination: Optional[str] = None
    event_filter: Optional[str] = None
    state: Optional[str] = None
    headers: Optional[Dict[str, str]] = None

    kind = "webhook-update"

    def __post_init__(self) -> None:
        if self.new_name is not None:
            _require(self.new_name, "Webhook name")
        if self.destination is not None:
            _require_https(self.destination, "Webhook destination")
        if self.event_filter is not None:
            _require(self.event_filter, "Webhook event filter")
        if self.state is not None and self.state not in WEBHOOK_STATES:
            raise InvalidInput(f"Webhook state must be one of {WEBHOOK_STATES}")

    def merged_with(self, existing: ResourceHandle) -> "WebhookUpdate":
        return replace(
            self,
            new_name=self.new_name if self.new_name is not None else existing.name,
            destination=self.destination if self.destination is not None else existing.get("destination"),
            event_filter=self.event_filter if self.event_filter is not None else existing.get("eventFilter"),
            state=self.state if self.state is not None else existing.get("state"),
            headers=self.headers if self.headers is not None else existing.get("headers"),
        )

    def to_json(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "name": self.new_name,
            "destination": self.destination,
            "eventFilter": self.event_filter,
            "state": self.state,
        }
        if self.headers is not None:
            body["headers"] = dict(self.headers)
        return body


# --------------------
# COM: External services (ServiceNow)
# --------------------

@dataclass(frozen=True)
class ServiceNowIntegrationCreate(MutationRequest):
    name: str
    credential: ClientCredential
    refresh_token: str = field(repr=False)
    oauth_url: str
    incident_url: str
    description: Optional[str] = None
    refresh_token_expiry_days: int = 100

    kind = "external-service-create"
    service_type = "SERVICE_NOW"

    def __post_init__(self) -> None:
        _require(self.name, "External service name")
        _require(self.refresh_token, "Refresh token")
        _require_https(self.oauth_url, "OAuth URL")
        _require_https(self.incident_url, "Incident URL")
        if not 1 <= self.refresh_token_expiry_days <= 365:
            raise InvalidInput("refresh_token_expiry_days must be between 1 and 365")

    def to_json(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description or "",
            "serviceType": self.service_type,
            "authenticationType": "OAUTH",
            "authentication": {
                "clientId": self.credential.client_id,
                "clientSecret": self.credential.reveal(),
                "refreshToken": self.refresh_token,
                "oauthUrl": self.oauth_url,
            },
            "serviceData": {
                "incidentUrl": self.incident_url,
                "refreshTokenExpiryInDays": self.refresh_token_expiry_days,
            },
        }


@dataclass(frozen=True)
class ExternalServiceUpdate(MutationRequest):
    new_name: Optional[str] = None
    description: Optional[str] = None
    incident_url: Optional[str] = None
    refresh_token_expiry_days: Optional[int] = None

    kind = "external-service-update"

    def __post_init__(self) -> None:
        if self.new_name is not None:
            _require(self.new_name, "External service name")
        if self.incident_url is not None:
            _require_https(self.incident_url, "Incident URL")
        if self.refresh_token_expiry_days is not None and not 1 <= self.refresh_token_expiry_days <= 365:
            raise InvalidInput("refresh_token_expiry_days must be between 1 and 365")

    def merged_with(self, existing: ResourceHandle) -> "ExternalServiceUpdate":
        service_data = existing.get("serviceData") or {}
        return replace(
            self,
            new_name=self.new_name if self.new_name is not None else existing.name,
            description=self.description if self.description is not None else existing.get("description"),
            incident_url=(
                self.incident_url if self.incident_url is not None
                else service_data.get("incidentUrl")
            ),
            refresh_token_expiry_days=(
                self.refresh_token_expiry_days if self.refresh_token_expiry_days is not None
                else service_data.get("refreshTokenExpiryInDays")
            ),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "name": self.new_name,
            "description": self.description,
            "serviceData": {
                "incidentUrl": self.incident_url,
                "refreshTokenExpiryInDays": self.refresh_token_expiry_days,
            },
        }


# --------------------
# GLP: Service provisioning, devices, API credentials
# --------------------

@dataclass(frozen=True)
class ServiceProvisionCreate(MutationRequest):
    service_manager_id: str
    region: str

    kind = "service-provision-create"

    def __post_init__(self) -> None:
        _require(self.service_manager_id, "Service manager id")
        _require(self.region, "Region")

    def to_json(self) -> Dict[str, Any]:
        return {"service_manager_id": self.service_manager_id, "region": self.region}


@dataclass(frozen=True)
class DeviceAssignmentPatch(MutationRequest):
    """
    Bulk body for PATCH /devices. application_id None means unassign.
    """
    application_id: Optional[str] = None
    region: Optional[str] = None

    kind = "device-assignment"

    def __post_init__(self) -> None:
        if self.application_id is not None:
            _require(self.application_id, "Application id")
            _require(self.region, "Region")

    @property
    def unassign(self) -> bool:
        return self.application_id is None

    def to_json(self) -> Dict[str, Any]:
        if self.unassign:
            return {"application": {"id": None}, "region": None}
        return {"application": {"id": self.application_id}, "region": self.region}


@dataclass(frozen=True)
class ApiCredentialCreate(MutationRequest):
    name: str
    application_instance_id: str

    kind = "api-credential-create"

    def __post_init__(self) -> None:
        _require(self.name, "Credential name")
        _require(self.application_instance_id, "Application instance id")

    def to_json(self) -> Dict[str, Any]:
        return {
            "credential_name": self.name,
            "application_instance_id": self.application_instance_id,
        }
