"""Tests for the transport layer of sonar_mcp/client.py"""

import asyncio
import base64

import pytest
import requests
import requests_mock as req_mock

from sonar_mcp.client import (
    AuthenticationError,
    NotFoundError,
    PermissionDeniedError,
    ServerUnreachableError,
    SonarClient,
    SonarClientError,
    UpstreamError,
)
from sonar_mcp.config import Config

BASE = "https://sonar.example.com"
URL = f"{BASE}/api/issues/search"

#: Every public operation, called with no arguments (default project key)
OPERATIONS = [
    "get_issues",
    "get_code_smells",
    "get_bugs",
    "get_vulnerabilities",
    "get_security_hotspots",
    "get_metrics",
    "get_coverage",
    "get_project_status",
    "get_components",
    "get_branches",
    "get_pull_requests",
]


def run(coro):
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# get() - happy path
# ---------------------------------------------------------------------------

def test_get_returns_parsed_json(client, requests_mock):
    requests_mock.get(URL, json={"issues": [], "paging": {"total": 0}})
    data = run(client.get("/issues/search"))
    assert data == {"issues": [], "paging": {"total": 0}}


def test_base_url_ends_with_api():
    client = SonarClient(Config(url=f"{BASE}/", token="t"))
    assert client.base_url == f"{BASE}/api"


def test_get_sends_token_as_basic_auth_username(client, requests_mock):
    adapter = requests_mock.get(URL, json={})
    run(client.get("/issues/search"))

    scheme, encoded = adapter.last_request.headers["Authorization"].split()
    assert scheme == "Basic"
    assert base64.b64decode(encoded) == b"squ_test:"


def test_get_negotiates_json(client, requests_mock):
    adapter = requests_mock.get(URL, json={})
    run(client.get("/issues/search"))
    assert adapter.last_request.headers["Accept"] == "application/json"


def test_get_uses_30_second_timeout(client, requests_mock):
    adapter = requests_mock.get(URL, json={})
    run(client.get("/issues/search"))
    assert adapter.last_request.timeout == 30


# ---------------------------------------------------------------------------
# get() - HTTP error codes
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("status, error", [
    (401, AuthenticationError),
    (403, PermissionDeniedError),
    (404, NotFoundError),
])
def test_get_classifies_status(client, requests_mock, status, error):
    requests_mock.get(URL, status_code=status)
    with pytest.raises(error):
        run(client.get("/issues/search"))


def test_get_500_raises_upstream_error(client, requests_mock):
    requests_mock.get(URL, status_code=500, text="Internal Server Error")
    with pytest.raises(UpstreamError, match="500") as excinfo:
        run(client.get("/issues/search"))
    assert excinfo.value.status_code == 500


def test_get_invalid_json_raises_upstream_error(client, requests_mock):
    requests_mock.get(URL, text="<html>maintenance</html>")
    with pytest.raises(UpstreamError, match="Invalid JSON"):
        run(client.get("/issues/search"))


def test_all_errors_share_base_class():
    for error in (AuthenticationError, PermissionDeniedError, NotFoundError,
                  ServerUnreachableError, UpstreamError):
        assert issubclass(error, SonarClientError)


# ---------------------------------------------------------------------------
# get() - network errors
# ---------------------------------------------------------------------------

def test_get_connection_error_raises_server_unreachable(client, requests_mock):
    requests_mock.get(URL, exc=requests.exceptions.ConnectionError)
    with pytest.raises(ServerUnreachableError, match=BASE):
        run(client.get("/issues/search"))


def test_get_connect_timeout_raises_server_unreachable(client, requests_mock):
    requests_mock.get(URL, exc=requests.exceptions.ConnectTimeout)
    with pytest.raises(ServerUnreachableError):
        run(client.get("/issues/search"))


def test_get_read_timeout_raises_upstream_error(client, requests_mock):
    requests_mock.get(URL, exc=requests.exceptions.ReadTimeout)
    with pytest.raises(UpstreamError, match="timed out"):
        run(client.get("/issues/search"))


def test_get_other_transport_error_raises_upstream_error(client, requests_mock):
    requests_mock.get(URL, exc=requests.exceptions.TooManyRedirects("loop"))
    with pytest.raises(UpstreamError, match="loop"):
        run(client.get("/issues/search"))


# ---------------------------------------------------------------------------
# Classification is shared by every operation
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("operation", OPERATIONS)
def test_401_is_authentication_error_for_every_operation(client, requests_mock, operation):
    requests_mock.get(req_mock.ANY, status_code=401)
    with pytest.raises(AuthenticationError):
        run(getattr(client, operation)())


@pytest.mark.parametrize("operation", OPERATIONS)
def test_connection_refused_for_every_operation(client, requests_mock, operation):
    requests_mock.get(req_mock.ANY, exc=requests.exceptions.ConnectionError)
    with pytest.raises(ServerUnreachableError):
        run(getattr(client, operation)())


def test_every_call_hits_the_network(client, requests_mock):
    requests_mock.get(URL, json={"issues": [], "paging": {"total": 0}})
    run(client.get_issues())
    run(client.get_issues())
    assert requests_mock.call_count == 2


def test_operations_can_run_concurrently(client, requests_mock):
    requests_mock.get(f"{BASE}/api/project_branches/list", json={"branches": []})
    requests_mock.get(f"{BASE}/api/project_pull_requests/list", json={"pullRequests": []})

    async def both():
        return await asyncio.gather(client.get_branches(), client.get_pull_requests())

    assert run(both()) == [[], []]
