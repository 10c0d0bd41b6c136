from unittest.mock import MagicMock

import pytest

from identity_manager.stores.keycloak import client as client_module
from identity_manager.stores.keycloak.client import KeycloakClient
from identity_manager.stores.keycloak.exceptions import KeycloakAPIError, KeycloakAuthenticationError


def _response(status_code=200, payload=None, text="", url="http://kc/x"):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload or {}
    resp.text = text
    resp.url = url
    return resp


@pytest.fixture
def token_post(monkeypatch):
    post = MagicMock(return_value=_response(payload={"access_token": "tok-1", "expires_in": 300}))
    monkeypatch.setattr(client_module.requests, "post", post)
    return post


@pytest.fixture
def http(monkeypatch):
    request = MagicMock(return_value=_response())
    monkeypatch.setattr(client_module.requests, "request", request)
    return request


def test_authenticate_uses_client_credentials(token_post):
    client = KeycloakClient("http://kc:8080/")

    token = client.authenticate_service_account("demo", "automation-cli", "s3cret")

    assert token == "tok-1"
    url = token_post.call_args.args[0]
    assert url == "http://kc:8080/realms/demo/protocol/openid-connect/token"
    assert token_post.call_args.kwargs["data"]["grant_type"] == "client_credentials"
    assert token_post.call_args.kwargs["timeout"] == client_module.REQUEST_TIMEOUT


def test_rejected_credentials_raise(monkeypatch):
    monkeypatch.setattr(client_module.requests, "post", MagicMock(return_value=_response(401, text="bad")))
    with pytest.raises(KeycloakAuthenticationError):
        KeycloakClient("http://kc").authenticate_service_account("demo", "cli", "wrong")


def test_requests_carry_bearer_token(token_post, http):
    client = KeycloakClient("http://kc")
    client.authenticate_service_account("demo", "automation-cli", "s3cret")

    client.get("/admin/realms/demo/users", params={"max": 1})

    method, url = http.call_args.args
    assert (method, url) == ("GET", "http://kc/admin/realms/demo/users")
    assert http.call_args.kwargs["headers"]["Authorization"] == "Bearer tok-1"
    assert http.call_args.kwargs["params"] == {"max": 1}


def test_unauthenticated_client_refuses_requests(http):
    with pytest.raises(KeycloakAuthenticationError):
        KeycloakClient("http://kc").get("/admin/realms/demo/users")
    http.assert_not_called()


def test_expired_token_is_refreshed(token_post, http):
    client = KeycloakClient("http://kc")
    client.authenticate_service_account("demo", "automation-cli", "s3cret")
    client._token_expires_at = client._token_expires_at.replace(year=2000)

    client.get("/admin/realms/demo/users")

    assert token_post.call_count == 2


def test_http_errors_raise_api_error(token_post, http):
    http.return_value = _response(409, text='{"errorMessage": "User exists with same username"}')
    client = KeycloakClient("http://kc")
    client.authenticate_service_account("demo", "automation-cli", "s3cret")

    with pytest.raises(KeycloakAPIError) as exc:
        client.post("/admin/realms/demo/users", json={})

    assert exc.value.status_code == 409
    assert exc.value.description == "User exists with same username"


@pytest.mark.parametrize(
    "body, expected",
    [
        ('{"error_description": "Invalid client"}', "Invalid client"),
        ('{"error": "unknown_error"}', "unknown_error"),
        ("plain text", "plain text"),
        ("", "Keycloak request failed with status 500"),
    ],
)
def test_error_description(body, expected):
    assert KeycloakAPIError(500, body, "/x").description == expected
