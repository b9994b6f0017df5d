"""
Tests for the Nest API client.
"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import patch

import httpx

from nest_health.client import NestClient

BASE_URL = "https://nest.test/api/v0"
NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)

PROJECT = {
    "key": "nest",
    "name": "OWASP Nest",
    "level": "Flagship",
    "createdAt": "2024-01-01T00:00:00Z",
    "updatedAt": "2025-05-31T00:00:00Z",
}


def run(handler, call, api_key="test-key", **kwargs):
    """Run `call(client)` against a NestClient backed by a mock transport."""

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = NestClient(
                api_key=api_key,
                base_url=BASE_URL,
                organization="OWASP",
                http_client=http,
                **kwargs,
            )
            return await call(client)

    return asyncio.run(scenario())


def route(responses):
    """Build a handler answering by request path (relative to the API base)."""
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        path = request.url.path.removeprefix("/api/v0/").strip("/")
        repository = request.url.params.get("repository")
        key = f"{path}?{repository}" if repository else path
        response = responses.get(key, responses.get(path))
        if response is None:
            return httpx.Response(404, json={"detail": "Not found"})
        if isinstance(response, Exception):
            raise response
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(200, json=response)

    handler.requests = requests
    return handler


def test_list_projects_sends_api_key_and_ordering():
    handler = route({"projects": {"items": [PROJECT]}})
    projects = run(handler, lambda client: client.list_projects())

    assert [p.key for p in projects] == ["nest"]
    request = handler.requests[0]
    assert request.headers["X-API-Key"] == "test-key"
    assert request.url.params["ordering"] == "-created_at"
    assert str(request.url).startswith(f"{BASE_URL}/projects/")


def test_no_api_key_header_when_key_is_empty():
    handler = route({"chapters": {"items": []}})
    run(handler, lambda client: client.list_chapters(), api_key="")
    assert "X-API-Key" not in handler.requests[0].headers


def test_api_key_read_from_environment():
    with patch.dict("os.environ", {"NEST_API_KEY": "env-key"}):
        client = NestClient(base_url=BASE_URL)
    assert client.api_key == "env-key"


def test_list_http_error_degrades_to_empty():
    handler = route({"chapters": httpx.Response(500, text="boom")})
    assert run(handler, lambda client: client.list_chapters()) == []


def test_list_network_error_degrades_to_empty():
    handler = route({"events": httpx.ConnectError("connection refused")})
    assert run(handler, lambda client: client.list_events()) == []


def test_list_non_json_degrades_to_empty():
    handler = route({"sponsors": httpx.Response(200, text="<html>oops</html>")})
    assert run(handler, lambda client: client.list_sponsors()) == []


def test_list_unexpected_shape_degrades_to_empty():
    handler = route({"committees": {"items": "not a list"}})
    assert run(handler, lambda client: client.list_committees()) == []


def test_list_members_from_data_envelope():
    handler = route({"members": {"data": {"items": [{"id": "m1", "name": "Ada"}]}}})
    members = run(handler, lambda client: client.list_members())
    assert [m.name for m in members] == ["Ada"]


def test_get_project():
    handler = route({"projects/nest": PROJECT})
    project = run(handler, lambda client: client.get_project("nest"))
    assert project.name == "OWASP Nest"
    assert project.extra == PROJECT


def test_get_missing_resource_returns_none():
    handler = route({})
    assert run(handler, lambda client: client.get_sponsor("missing")) is None


def test_get_resource_server_error_returns_none():
    handler = route({"events/appsec": httpx.Response(503)})
    assert run(handler, lambda client: client.get_event("appsec")) is None


def test_get_resource_escapes_identifier():
    handler = route({})
    run(handler, lambda client: client.get_chapter("a/b"))
    assert handler.requests[0].url.raw_path.startswith(b"/api/v0/chapters/a%2Fb")


def test_repository_resources_are_scoped():
    handler = route({"issues?nest": {"items": [{"id": 1, "state": "open"}]}})
    issues = run(handler, lambda client: client.list_issues("nest"))

    assert len(issues) == 1
    params = handler.requests[0].url.params
    assert params["organization"] == "OWASP"
    assert params["repository"] == "nest"


def test_repositories_with_meta_isolates_failures():
    handler = route(
        {
            "repositories": {"items": [{"name": "alpha"}, {"name": "beta"}]},
            "issues?alpha": {"items": [{"id": 1, "state": "closed"}]},
            "issues?beta": httpx.Response(500),
            "milestones?alpha": {"items": []},
            "milestones?beta": {"items": [{"id": 2, "state": "open"}]},
            "releases?alpha": {"items": [{"tagName": "v1"}]},
            "releases?beta": httpx.ReadTimeout("slow"),
        }
    )
    repos = run(
        handler, lambda client: client.get_repositories_with_meta(), max_concurrent=1
    )

    assert [r.name for r in repos] == ["alpha", "beta"]
    alpha, beta = repos
    assert len(alpha.issues) == 1
    assert [r.tag_name for r in alpha.releases] == ["v1"]
    assert beta.issues == []
    assert len(beta.milestones) == 1
    assert beta.releases == []
    assert handler.requests[0].url.params["organization_id"] == "OWASP"


def test_repositories_with_meta_empty_when_listing_fails():
    handler = route({"repositories": httpx.Response(401)})
    assert run(handler, lambda client: client.get_repositories_with_meta()) == []


def test_project_report():
    handler = route(
        {
            "projects/nest": PROJECT,
            "repositories": {"items": [{"name": "nest"}]},
            "issues?nest": {"items": [{"id": i, "state": "closed"} for i in range(4)]},
            "milestones?nest": {"items": []},
            "releases?nest": {"items": []},
        }
    )
    report = run(handler, lambda client: client.get_project_report("nest", now=NOW))

    assert report.project.key == "nest"
    assert len(report.repositories) == 1
    assert report.health.score == 92
    assert report.health.status == "Healthy"


def test_project_report_missing_project():
    handler = route({"repositories": {"items": []}})
    assert run(handler, lambda client: client.get_project_report("nope")) is None
