# tests/test_com_external_services.py

import pytest

from glops.errors import ConvergenceTimeout
from glops.models import Status
from glops.pipeline.payloads import ClientCredential

EXTERNAL = "https://eu-central-api.compute.cloud.hpe.com/compute-ops-mgmt/v1beta1/external-services"
ACTIVITIES = "https://eu-central-api.compute.cloud.hpe.com/compute-ops-mgmt/v1beta2/activities"


def integration(status):
    return {
        "id": "ext-1",
        "name": "SN-prod",
        "status": status,
        "description": "prod incidents",
        "serviceData": {
            "incidentUrl": "https://example.service-now.com/api/now/table/incident",
            "refreshTokenExpiryInDays": 100,
        },
    }


def create(gl):
    return gl.com.external_services.create(
        "SN-prod",
        "eu-central",
        credential=ClientCredential(client_id="client-1", client_secret="very-secret"),
        refresh_token="refresh-123",
        oauth_url="https://example.service-now.com/oauth_token.do",
        incident_url="https://example.service-now.com/api/now/table/incident",
    )


def test_create_waits_until_enabled(gl, services, sleeps):
    services.route(
        "GET",
        EXTERNAL,
        (200, {"items": []}),
        (200, {"items": [integration("PENDING")]}),
        (200, {"items": [integration("ENABLED")]}),
    )
    services.route("POST", EXTERNAL, (202, integration("PENDING")))

    result = create(gl)

    assert result.status is Status.COMPLETE
    assert "created and enabled" in result.details
    assert result.service_type == "SERVICE_NOW"
    assert sleeps == [2.0]

    (post,) = services.calls_to("POST", EXTERNAL)
    assert post.body["authentication"]["clientSecret"] == "very-secret"
    assert post.body["authentication"]["refreshToken"] == "refresh-123"
    assert post.body["serviceType"] == "SERVICE_NOW"


def test_create_times_out_with_configured_bounds(gl, services, config, sleeps):
    config.poll_max_attempts = 3
    config.poll_interval = 0.5
    services.route(
        "GET",
        EXTERNAL,
        (200, {"items": []}),
        (200, {"items": [integration("PENDING")]}),
    )
    services.route("POST", EXTERNAL, (202, {}))

    with pytest.raises(ConvergenceTimeout) as info:
        create(gl)

    assert info.value.attempts == 3
    assert sleeps == [0.5, 0.5]
    assert len(services.calls_to("GET", EXTERNAL)) == 4


def test_create_existing_is_warning(gl, services):
    services.route("GET", EXTERNAL, (200, {"items": [integration("ENABLED")]}))

    result = create(gl)

    assert result.status is Status.WARNING
    assert services.mutating_calls == []


def test_credential_secret_stays_out_of_repr():
    credential = ClientCredential(client_id="client-1", client_secret="very-secret")

    assert "very-secret" not in repr(credential)
    assert credential.reveal() == "very-secret"


def test_update_keeps_current_service_data(gl, services):
    services.route("GET", EXTERNAL, (200, {"items": [integration("ENABLED")]}))
    services.route("PATCH", f"{EXTERNAL}/ext-1", (200, {}))

    result = gl.com.external_services.update("SN-prod", "eu-central", description="new text")

    assert result.status is Status.COMPLETE
    (patch,) = services.calls_to("PATCH")
    assert patch.body == {
        "name": "SN-prod",
        "description": "new text",
        "serviceData": {
            "incidentUrl": "https://example.service-now.com/api/now/table/incident",
            "refreshTokenExpiryInDays": 100,
        },
    }


def test_test_reports_activity_message(gl, services, sleeps):
    services.route("GET", EXTERNAL, (200, {"items": [integration("ENABLED")]}))
    services.route("POST", f"{EXTERNAL}/ext-1/test", (202, None))
    activity = {
        "id": "act-1",
        "title": "External service test",
        "createdAt": "2099-01-01T00:00:00.000Z",
        "formattedMessage": "ServiceNow test incident created",
        "source": {"type": "external-service", "displayName": "SN-prod"},
    }
    services.route(
        "GET",
        ACTIVITIES,
        (200, {"items": []}),
        (200, {"items": [activity]}),
    )

    result = gl.com.external_services.test("SN-prod", "eu-central")

    assert result.status is Status.COMPLETE
    assert result.details == "Test of external service 'SN-prod' completed: ServiceNow test incident created"
    assert sleeps == [2.0]
    assert services.calls_to("GET", ACTIVITIES)[0].params["filter"].startswith("createdAt gt '")


def test_remove_batch(gl, services):
    services.route("GET", EXTERNAL, (200, {"items": [integration("ENABLED")]}))
    services.route("DELETE", f"{EXTERNAL}/ext-1", (204, None))

    results = gl.com.external_services.remove(["SN-prod", "SN-dev"], "eu-central")

    assert [r.status for r in results] == [Status.COMPLETE, Status.FAILED]
    assert len(services.calls_to("DELETE")) == 1


def test_test_gives_up_when_no_activity_appears(gl, services, sleeps):
    services.route("GET", EXTERNAL, (200, {"items": [integration("ENABLED")]}))
    services.route("POST", f"{EXTERNAL}/ext-1/test", (202, None))
    services.route("GET", ACTIVITIES, (200, {"items": []}))

    with pytest.raises(ConvergenceTimeout) as info:
        gl.com.external_services.test("SN-prod", "eu-central")

    assert info.value.attempts == 30
    assert len(services.calls_to("GET", ACTIVITIES)) == 30
    assert sleeps == [2.0] * 29
