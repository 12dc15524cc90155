# tests/test_models.py

import pytest

from glops.models import OperationStatus, ResourceHandle, Status


def test_operation_status_initial_state():
    s = OperationStatus(name="WebhookA", region="eu-central")
    assert s.status is None
    assert s.settled is False
    assert s.details == ""
    assert s.type_name == "GreenLake.Status"


def test_operation_status_fail_records_exception():
    err = RuntimeError("boom")
    s = OperationStatus(name="WebhookA").fail("something went wrong", err)
    assert s.status is Status.FAILED
    assert s.details == "something went wrong"
    assert s.exception is err


def test_operation_status_settles_only_once():
    s = OperationStatus(name="WebhookA").complete("done")
    with pytest.raises(RuntimeError):
        s.warn("again")
    assert s.status is Status.COMPLETE


def test_operation_status_to_dict():
    s = OperationStatus(name="SN1", type_name="GLP.Device.Status").warn("No action needed.")
    assert s.to_dict() == {
        "type": "GLP.Device.Status",
        "name": "SN1",
        "region": None,
        "service_type": None,
        "status": "Warning",
        "details": "No action needed.",
        "exception": None,
    }


def test_resource_handle_to_dict_merges_attributes():
    h = ResourceHandle(
        id="wh-1",
        name="WebhookA",
        region="eu-central",
        kind="COM.Webhook",
        attributes={"id": "wh-1", "name": "WebhookA", "state": "ENABLED"},
    )
    assert h.to_dict() == {
        "type": "COM.Webhook",
        "id": "wh-1",
        "name": "WebhookA",
        "region": "eu-central",
        "state": "ENABLED",
    }
