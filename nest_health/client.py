"""
OWASP Nest API client.

All requests are read-only GETs authenticated with an API key. Failures never
propagate to callers: network errors and unexpected payloads are reported on
the console and degrade to empty collections (lists) or None (details).
"""

import asyncio
from datetime import datetime
from typing import Any, NamedTuple
from urllib.parse import quote

import httpx
from rich.console import Console

from nest_health.config import (
    get_api_key,
    get_base_url,
    get_max_concurrent,
    get_organization,
)
from nest_health.health import calculate_project_health
from nest_health.http_client import _get_async_http_client
from nest_health.models import (
    Chapter,
    Committee,
    Event,
    HealthScore,
    Issue,
    Member,
    Milestone,
    Project,
    Release,
    RepositorySummary,
    RepositoryWithMeta,
    Sponsor,
)
from nest_health.normalize import normalize_detail, normalize_payload

console = Console(stderr=True)


class ProjectReport(NamedTuple):
    """A project with the repository data its health score was computed from."""

    project: Project
    repositories: list[RepositoryWithMeta]
    health: HealthScore


class NestClient:
    """Read-only client for the OWASP Nest REST API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        organization: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        max_concurrent: int | None = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: Nest API key. If not provided, reads NEST_API_KEY.
            base_url: API base URL. Defaults to the configured base URL.
            organization: Organization whose repositories are scored.
            http_client: Optional client to use instead of the shared one.
            max_concurrent: Maximum repositories enriched concurrently.
        """
        self.api_key = api_key if api_key is not None else get_api_key()
        self.base_url = (base_url or get_base_url()).rstrip("/")
        self.organization = organization or get_organization()
        self.max_concurrent = max_concurrent or get_max_concurrent()
        self._http_client = http_client

        if not self.api_key:
            console.print(
                "[yellow]Warning: NEST_API_KEY is not set. "
                "Requests are sent without an API key.[/yellow]"
            )

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        client = self._http_client or await _get_async_http_client()
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["X-API-Key"] = self.api_key
        return await client.get(f"{self.base_url}/{path}/", params=params, headers=headers)

    async def list_resource(
        self, kind: str, params: dict[str, Any] | None = None
    ) -> list:
        """
        Fetch and normalize a list resource.

        Args:
            kind: Resource kind, also the API path (e.g. "projects").
            params: Query parameters.

        Returns:
            Normalized entities; empty on any failure.
        """
        try:
            response = await self._get(kind, params)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            console.print(f"[yellow]Warning: Failed to fetch {kind}: {e}[/yellow]")
            return []
        except ValueError:
            console.print(
                f"[yellow]Warning: Nest API returned a non-JSON {kind} response.[/yellow]"
            )
            return []

        entities = normalize_payload(kind, payload)
        if entities is None:
            console.print(
                f"[yellow]Warning: Unexpected {kind} response shape from Nest API.[/yellow]"
            )
            return []
        return entities

    async def get_resource(self, kind: str, resource_id: str) -> Any:
        """
        Fetch and normalize a single record.

        Returns:
            The normalized entity, or None if it is missing or the request failed.
        """
        path = f"{kind}/{quote(resource_id, safe='')}"
        try:
            response = await self._get(path)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            console.print(
                f"[yellow]Warning: Failed to fetch {kind} '{resource_id}': {e}[/yellow]"
            )
            return None
        except ValueError:
            console.print(
                f"[yellow]Warning: Nest API returned a non-JSON {kind} response.[/yellow]"
            )
            return None
        return normalize_detail(kind, payload)

    # --- Projects ---

    async def list_projects(self) -> list[Project]:
        """List projects, newest first."""
        projects = await self.list_resource("projects", {"ordering": "-created_at"})
        if not projects:
            console.print("[dim]No valid projects found in Nest API response.[/dim]")
        return projects

    async def get_project(self, project_id: str) -> Project | None:
        return await self.get_resource("projects", project_id)

    # --- Repositories ---

    async def list_repositories(self) -> list[RepositorySummary]:
        return await self.list_resource(
            "repositories", {"organization_id": self.organization}
        )

    def _repository_params(self, repo_name: str) -> dict[str, str]:
        return {"organization": self.organization, "repository": repo_name}

    async def list_issues(self, repo_name: str) -> list[Issue]:
        return await self.list_resource("issues", self._repository_params(repo_name))

    async def list_milestones(self, repo_name: str) -> list[Milestone]:
        return await self.list_resource(
            "milestones", self._repository_params(repo_name)
        )

    async def list_releases(self, repo_name: str) -> list[Release]:
        return await self.list_resource("releases", self._repository_params(repo_name))

    async def get_repositories_with_meta(self) -> list[RepositoryWithMeta]:
        """
        List repositories and enrich each with issues, milestones and releases.

        Repositories are processed concurrently (bounded by max_concurrent) and
        the three sub-collections of each repository are fetched in parallel.
        A failed fetch leaves only that collection empty.
        """
        repositories = await self.list_repositories()
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def enrich(repo: RepositorySummary) -> RepositoryWithMeta:
            async with semaphore:
                issues, milestones, releases = await asyncio.gather(
                    self.list_issues(repo.name),
                    self.list_milestones(repo.name),
                    self.list_releases(repo.name),
                )
            return RepositoryWithMeta(
                *repo, issues=issues, milestones=milestones, releases=releases
            )

        return list(await asyncio.gather(*(enrich(repo) for repo in repositories)))

    async def get_project_report(
        self, project_id: str, now: datetime | None = None
    ) -> ProjectReport | None:
        """
        Fetch a project with its repository data and compute its health score.

        Returns:
            ProjectReport, or None if the project does not exist.
        """
        project, repositories = await asyncio.gather(
            self.get_project(project_id),
            self.get_repositories_with_meta(),
        )
        if project is None:
            return None
        health = calculate_project_health(project, repositories, now=now)
        return ProjectReport(project, repositories, health)

    # --- Dashboard resources ---

    async def list_chapters(self) -> list[Chapter]:
        return await self.list_resource("chapters")

    async def get_chapter(self, chapter_id: str) -> Chapter | None:
        return await self.get_resource("chapters", chapter_id)

    async def list_committees(self) -> list[Committee]:
        return await self.list_resource("committees")

    async def get_committee(self, committee_id: str) -> Committee | None:
        return await self.get_resource("committees", committee_id)

    async def list_events(self) -> list[Event]:
        return await self.list_resource("events")

    async def get_event(self, event_id: str) -> Event | None:
        return await self.get_resource("events", event_id)

    async def list_members(self) -> list[Member]:
        return await self.list_resource("members")

    async def get_member(self, member_id: str) -> Member | None:
        return await self.get_resource("members", member_id)

    async def list_sponsors(self) -> list[Sponsor]:
        return await self.list_resource("sponsors")

    async def get_sponsor(self, sponsor_id: str) -> Sponsor | None:
        return await self.get_resource("sponsors", sponsor_id)
