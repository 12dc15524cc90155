# tests/test_platform_devices.py

from glops.models import Status
from glops.services import MERGE_PATCH

GLP = "https://global.api.greenlake.hpe.com"
DEVICES = f"{GLP}/devices/v1/devices"
MANAGERS = f"{GLP}/service-catalog/v1beta1/service-managers"
PROVISIONS = f"{GLP}/service-catalog/v1beta1/service-manager-provisions"


def device(serial, device_id, application=None, region=None):
    return {
        "id": device_id,
        "serialNumber": serial,
        "application": {"id": application} if application else None,
        "region": region,
    }


def provisioned(services):
    services.route("GET", MANAGERS, (200, {"items": [{"id": "sm-1", "name": "Compute Ops Management"}]}))
    services.route(
        "GET",
        PROVISIONS,
        (200, {"items": [{
            "id": "prov-1",
            "service_manager_id": "sm-1",
            "region": "eu-central",
            "provision_status": "PROVISIONED",
        }]}),
    )


def test_assign_sends_one_patch_for_valid_devices(gl, services):
    provisioned(services)
    services.route(
        "GET",
        DEVICES,
        (200, {"items": [
            device("SN1", "d-1"),
            device("SN2", "d-2", application="sm-1", region="eu-central"),
            device("SN3", "d-3", application="other-app", region="us-west"),
            device("SN4", "d-4"),
        ]}),
    )
    services.route("PATCH", DEVICES, (202, {"transactionId": "tx-1"}))

    results = gl.platform.devices.assign(
        ["SN1", "SN2", "SN3", "SN4", "SN5"], "Compute Ops Management", "eu-central"
    )

    assert [r.name for r in results] == ["SN1", "SN2", "SN3", "SN4", "SN5"]
    assert [r.status for r in results] == [
        Status.COMPLETE,
        Status.WARNING,
        Status.FAILED,
        Status.COMPLETE,
        Status.FAILED,
    ]
    assert "another service" in results[2].details
    assert "cannot be found in the workspace" in results[4].details

    (patch,) = services.calls_to("PATCH", DEVICES)
    assert patch.params == [("id", "d-1"), ("id", "d-4")]
    assert patch.headers["Content-Type"] == MERGE_PATCH
    assert patch.body == {"application": {"id": "sm-1"}, "region": "eu-central"}


def test_device_lookup_is_a_single_read(gl, services):
    provisioned(services)
    services.route("GET", DEVICES, (200, {"items": [device("SN1", "d-1"), device("SN2", "d-2")]}))
    services.route("PATCH", DEVICES, (202, {}))

    gl.platform.devices.assign(["SN1", "SN2"], "Compute Ops Management", "eu-central")

    (read,) = services.calls_to("GET", DEVICES)
    assert read.params == {"filter": "serialNumber in ('SN1', 'SN2')"}


def test_bulk_failure_fails_every_queued_device(gl, services):
    provisioned(services)
    services.route("GET", DEVICES, (200, {"items": [device("SN1", "d-1"), device("SN2", "d-2")]}))
    services.route("PATCH", DEVICES, (400, {"message": "Subscription required"}))

    results = gl.platform.devices.assign(["SN1", "SN2"], "Compute Ops Management", "eu-central")

    assert [r.status for r in results] == [Status.FAILED, Status.FAILED]
    assert all(r.details == "Subscription required" for r in results)


def test_nothing_valid_means_no_patch(gl, services):
    provisioned(services)
    services.route(
        "GET",
        DEVICES,
        (200, {"items": [device("SN1", "d-1", application="sm-1", region="eu-central")]}),
    )

    results = gl.platform.devices.assign(["SN1", ""], "Compute Ops Management", "eu-central")

    assert [r.status for r in results] == [Status.WARNING, Status.FAILED]
    assert services.mutating_calls == []


def test_assign_to_unprovisioned_service_fails_every_device(gl, services):
    services.route("GET", MANAGERS, (200, {"items": [{"id": "sm-1", "name": "Compute Ops Management"}]}))
    services.route("GET", PROVISIONS, (200, {"items": []}))

    results = gl.platform.devices.assign(["SN1", "SN2"], "Compute Ops Management", "eu-central")

    assert [r.status for r in results] == [Status.FAILED, Status.FAILED]
    assert services.calls_to("GET", DEVICES) == []


def test_unassign(gl, services):
    services.route(
        "GET",
        DEVICES,
        (200, {"items": [
            device("SN1", "d-1", application="sm-1", region="eu-central"),
            device("SN2", "d-2"),
        ]}),
    )
    services.route("PATCH", DEVICES, (202, {}))

    results = gl.platform.devices.unassign(["SN1", "SN2"])

    assert [r.status for r in results] == [Status.COMPLETE, Status.WARNING]
    (patch,) = services.calls_to("PATCH", DEVICES)
    assert patch.params == [("id", "d-1")]
    assert patch.body == {"application": {"id": None}, "region": None}


def test_repeated_serials_are_sent_once(gl, services):
    provisioned(services)
    services.route("GET", DEVICES, (200, {"items": [device("SN1", "d-1"), device("SN2", "d-2")]}))
    services.route("PATCH", DEVICES, (202, {}))

    results = gl.platform.devices.assign(["SN1", "SN2", "SN1"], "Compute Ops Management", "eu-central")

    assert [r.name for r in results] == ["SN1", "SN2"]
    assert [r.status for r in results] == [Status.COMPLETE, Status.COMPLETE]
    (patch,) = services.calls_to("PATCH", DEVICES)
    assert patch.params == [("id", "d-1"), ("id", "d-2")]
    (read,) = services.calls_to("GET", DEVICES)
    assert read.params == {"filter": "serialNumber in ('SN1', 'SN2')"}
