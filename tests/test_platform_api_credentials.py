# tests/test_platform_api_credentials.py

import pytest

from glops.models import ApiCredential, Status

GLP = "https://global.api.greenlake.hpe.com"
CREDENTIALS = f"{GLP}/authn/v1/token-management/credentials"
MANAGERS = f"{GLP}/service-catalog/v1beta1/service-managers"
PROVISIONS = f"{GLP}/service-catalog/v1beta1/service-manager-provisions"

EXISTING = {"id": "cred-1", "credential_name": "automation"}


@pytest.fixture
def provisioned(services):
    services.route("GET", MANAGERS, (200, {"items": [{"id": "sm-1", "name": "Compute Ops Management"}]}))
    services.route(
        "GET",
        PROVISIONS,
        (200, {"items": [{"id": "prov-1", "service_manager_id": "sm-1", "region": "eu-central"}]}),
    )
    return services


def test_create_caches_credential_in_session(gl, provisioned):
    provisioned.route("GET", CREDENTIALS, (200, {"items": []}))
    provisioned.route(
        "POST",
        CREDENTIALS,
        (201, {"id": "cred-1", "client_id": "abc", "client_secret": "s3cr3t"}),
    )

    result = gl.platform.api_credentials.create("automation", "Compute Ops Management", "eu-central")

    assert result.status is Status.COMPLETE
    assert result.region == "eu-central"
    assert "s3cr3t" not in result.details
    assert provisioned.calls_to("POST", CREDENTIALS)[0].body == {
        "credential_name": "automation",
        "application_instance_id": "prov-1",
    }

    cached = gl.context.find_credential("automation")
    assert cached.client_id == "abc"
    assert cached.client_secret == "s3cr3t"
    assert "s3cr3t" not in repr(cached)


def test_create_existing_is_warning(gl, services):
    services.route("GET", CREDENTIALS, (200, {"items": [EXISTING]}))

    result = gl.platform.api_credentials.create("automation", "Compute Ops Management", "eu-central")

    assert result.status is Status.WARNING
    assert services.mutating_calls == []


def test_create_without_provision_fails(gl, services):
    services.route("GET", CREDENTIALS, (200, {"items": []}))
    services.route("GET", MANAGERS, (200, {"items": [{"id": "sm-1", "name": "Compute Ops Management"}]}))
    services.route("GET", PROVISIONS, (200, {"items": []}))

    result = gl.platform.api_credentials.create("automation", "Compute Ops Management", "eu-central")

    assert result.status is Status.FAILED
    assert "not provisioned" in result.details
    assert services.mutating_calls == []


def test_remove_in_use_credential_declined(gl, services, config):
    config.confirm = lambda prompt: False
    gl.context.add_credential(ApiCredential(name="automation", client_id="abc", client_secret="s"))
    services.route("GET", CREDENTIALS, (200, {"items": [EXISTING]}))

    (result,) = gl.platform.api_credentials.remove("automation")

    assert result.status is Status.WARNING
    assert result.details.startswith("Operation cancelled by the user!")
    assert services.mutating_calls == []
    assert gl.context.find_credential("automation") is not None


def test_remove_force_drops_cached_credential(gl, services, config):
    config.confirm = lambda prompt: pytest.fail("confirm must not be called")
    gl.context.add_credential(ApiCredential(name="automation", client_id="abc", client_secret="s"))
    services.route("GET", CREDENTIALS, (200, {"items": [EXISTING]}))
    services.route("DELETE", f"{CREDENTIALS}/cred-1", (204, None))

    (result,) = gl.platform.api_credentials.remove("automation", force=True)

    assert result.status is Status.COMPLETE
    assert gl.context.find_credential("automation") is None


def test_remove_missing_credential_fails(gl, services):
    services.route("GET", CREDENTIALS, (200, {"items": []}))

    (result,) = gl.platform.api_credentials.remove("automation")

    assert result.status is Status.FAILED
    assert result.details == "API credential 'automation' cannot be found!"
    assert services.mutating_calls == []
