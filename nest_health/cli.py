"""
Command-line interface for OWASP Nest Health.
"""

import asyncio
import json
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from nest_health.client import NestClient, ProjectReport
from nest_health.config import (
    set_api_key,
    set_base_url,
    set_organization,
    set_verify_ssl,
)
from nest_health.health import (
    MAX_FRESHNESS_SCORE,
    MAX_ISSUE_SCORE,
    MAX_MATURITY_SCORE,
    MAX_MILESTONE_SCORE,
    calculate_project_health,
    health_score_to_dict,
    safe_date,
)
from nest_health.http_client import close_async_http_client
from nest_health.models import HealthScore, Project, RepositoryWithMeta
from nest_health.normalize import normalize_project, normalize_repository_with_meta
from nest_health.presentation import (
    issue_state_distribution,
    metric_style,
    milestone_due_dates,
    release_dates,
    sparkline,
    status_style,
)

T = TypeVar("T")

# --- Typer App ---
app = typer.Typer(help="Read-only dashboard for OWASP Nest data with project health scores.")
console = Console()


@app.callback()
def main(
    api_key: str | None = typer.Option(
        None,
        "--api-key",
        help="Nest API key. Defaults to the NEST_API_KEY environment variable.",
    ),
    base_url: str | None = typer.Option(
        None,
        "--base-url",
        help="Nest API base URL.",
    ),
    organization: str | None = typer.Option(
        None,
        "--organization",
        help="Organization whose repositories feed the health score (default: OWASP).",
    ),
    insecure: bool = typer.Option(
        False,
        "--insecure",
        help="Disable SSL certificate verification for HTTPS requests.",
    ),
):
    """Apply global options before running a command."""
    set_api_key(api_key)
    set_base_url(base_url)
    set_organization(organization)
    set_verify_ssl(not insecure)


# --- Helper Functions ---


def _run(call: Callable[[NestClient], Awaitable[T]]) -> T:
    """Run an API call on a fresh client, closing the shared HTTP client afterwards."""

    async def runner() -> T:
        client = NestClient()
        try:
            return await call(client)
        finally:
            await close_async_http_client()

    return asyncio.run(runner())


def format_date(value: Any) -> str:
    parsed = safe_date(value)
    if parsed is None:
        return "-" if not value else str(value)
    return parsed.strftime("%Y-%m-%d")


def _not_found(kind: str, resource_id: str) -> None:
    console.print(f"[red]{kind} '{resource_id}' not found.[/red]")
    raise typer.Exit(code=1)


def display_list(title: str, columns: list[str], rows: list[list[Any]], empty: str):
    """Display records as a table, or an empty-state message."""
    if not rows:
        console.print(f"[dim]{empty}[/dim]")
        return
    table = Table(title=title)
    table.add_column(columns[0], justify="left", style="cyan", no_wrap=True)
    for column in columns[1:]:
        table.add_column(column, justify="left")
    for row in rows:
        table.add_row(*("-" if value is None else escape(str(value)) for value in row))
    console.print(table)


def display_detail(title: str, fields: dict[str, Any]):
    """Display a single record as a panel of label/value lines."""
    lines = [
        f"[bold]{label}:[/bold] {value}"
        for label, value in fields.items()
        if value not in (None, "", "-")
    ]
    console.print(Panel("\n".join(lines) or "[dim]No details.[/dim]", title=title))


def display_health(health: HealthScore):
    """Display a health score with its capped sub-scores."""
    style = status_style(health.status)
    console.print(
        f"\n🩺 Health Score: [{style}]{health.score}/100 ({health.status})[/{style}]"
    )

    metrics_table = Table(show_header=True, header_style="bold magenta")
    metrics_table.add_column("Metric", style="cyan", no_wrap=True)
    metrics_table.add_column("Score", justify="center")
    metrics_table.add_column("Max", justify="center", style="magenta")

    for name, score, cap in (
        ("Maturity", health.metrics.maturity_score, MAX_MATURITY_SCORE),
        ("Freshness", health.metrics.freshness_score, MAX_FRESHNESS_SCORE),
        ("Issues", health.metrics.issue_score, MAX_ISSUE_SCORE),
        ("Milestones", health.metrics.milestone_score, MAX_MILESTONE_SCORE),
    ):
        metric_color = metric_style(score, cap)
        metrics_table.add_row(
            name, f"[{metric_color}]{score}[/{metric_color}]", str(cap)
        )
    console.print(metrics_table)


def display_repositories(repositories: list[RepositoryWithMeta]):
    """Display repository activity: per-repository counts, issue states and timelines."""
    if not repositories:
        console.print("[dim]No repositories found for this organization.[/dim]")
        return

    table = Table(title="Repositories")
    table.add_column("Repository", style="cyan", no_wrap=True)
    table.add_column("Issues", justify="right")
    table.add_column("Milestones", justify="right")
    table.add_column("Releases", justify="right")
    table.add_column("URL", justify="left")
    for repo in repositories:
        table.add_row(
            repo.name,
            str(len(repo.issues or [])),
            str(len(repo.milestones or [])),
            str(len(repo.releases or [])),
            repo.url or "-",
        )
    console.print(table)

    distribution = issue_state_distribution(repositories)
    if distribution.total:
        shares = distribution.fractions()
        console.print(
            f"Issues: [green]{distribution.closed} closed ({shares['closed']:.0%})[/green]"
            f" · [yellow]{distribution.open} open ({shares['open']:.0%})[/yellow]"
            f" · [dim]{distribution.other} other[/dim]"
        )
    else:
        console.print("[dim]No issues in any repository.[/dim]")

    for label, points in (
        ("Release dates", release_dates(repositories)),
        ("Milestone due dates", milestone_due_dates(repositories)),
    ):
        if points:
            console.print(
                f"{label}: {format_date(points[0].date)} "
                f"[cyan]{sparkline(points)}[/cyan] {format_date(points[-1].date)}"
            )
        else:
            console.print(f"[dim]No {label.lower()}.[/dim]")


def display_repository_items(repo: RepositoryWithMeta):
    """Display the milestones, issues and releases of a single repository."""
    header = f"\n📁 [bold cyan]{repo.name}[/bold cyan]"
    if repo.provider:
        header += f" [dim]({repo.provider})[/dim]"
    console.print(header)
    if repo.url:
        console.print(f"   {repo.url}")

    display_list(
        "Milestones",
        ["Title", "Status", "Due"],
        [[m.title, m.state, format_date(m.due_on)] for m in repo.milestones or []],
        "No milestones.",
    )
    display_list(
        "Issues",
        ["Title", "Status", "URL"],
        [[issue.title, issue.state, issue.url] for issue in repo.issues or []],
        "No issues.",
    )
    display_list(
        "Releases",
        ["Tag", "Name", "Created", "Published", "URL"],
        [
            [
                release.tag_name,
                release.name,
                format_date(release.created_at),
                format_date(release.published_at),
                release.url,
            ]
            for release in repo.releases or []
        ],
        "No releases.",
    )


def display_project_fields(project: Project):
    """Display every raw field of the project record."""
    if not project.extra:
        return
    table = Table(title="Project details", show_header=True, header_style="bold magenta")
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", justify="left")
    for field, value in project.extra.items():
        if isinstance(value, (dict, list)):
            text = json.dumps(value, indent=2, default=str)
        else:
            text = str(value)
        table.add_row(field, escape(text))
    console.print(table)


def display_project_report(report: ProjectReport):
    project = report.project
    display_detail(
        project.name or project.key or "Project",
        {
            "Key": project.key,
            "Level": project.level,
            "Created": format_date(project.created_at),
            "Updated": format_date(project.updated_at),
        },
    )
    display_project_fields(project)
    display_health(report.health)
    display_repositories(report.repositories)
    for repo in report.repositories:
        display_repository_items(repo)


def _project_json(project: Project, health: HealthScore) -> dict[str, Any]:
    return {
        "project": {
            "id": project.id,
            "key": project.key,
            "name": project.name,
            "level": project.level,
            "createdAt": project.created_at,
            "updatedAt": project.updated_at,
        },
        "health": health_score_to_dict(health),
    }


# --- Projects ---


@app.command()
def projects():
    """List OWASP projects, newest first."""
    items = _run(lambda client: client.list_projects())
    display_list(
        "OWASP Projects",
        ["Key", "Name", "Level", "Created", "Updated"],
        [
            [p.key, p.name, p.level, format_date(p.created_at), format_date(p.updated_at)]
            for p in items
        ],
        "No projects found.",
    )


@app.command()
def project(
    project_id: str = typer.Argument(..., help="Project key (e.g. 'nest')."),
    output_json: bool = typer.Option(
        False, "--json", help="Print the health score as JSON."
    ),
):
    """Show a project with its repositories and health score."""
    report = _run(lambda client: client.get_project_report(project_id))
    if report is None:
        _not_found("Project", project_id)

    if output_json:
        console.print_json(data=_project_json(report.project, report.health), default=str)
    else:
        display_project_report(report)


@app.command()
def score(
    payload_file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        help='JSON file shaped like {"project": {...}, "repositories": [...]}.',
    ),
    as_of: str | None = typer.Option(
        None,
        "--as-of",
        help="Score as of this ISO-8601 instant instead of now.",
    ),
    output_json: bool = typer.Option(
        False, "--json", help="Print the health score as JSON."
    ),
):
    """Score a saved project payload offline."""
    now = None
    if as_of is not None:
        now = safe_date(as_of)
        if now is None:
            raise typer.BadParameter(f"Invalid date: {as_of}", param_hint="--as-of")

    try:
        payload = json.loads(payload_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Could not read {payload_file}: {e}[/red]")
        raise typer.Exit(code=1) from e

    project_record = normalize_project(
        payload.get("project") if isinstance(payload, dict) else None
    )
    if project_record is None:
        console.print(f"[red]No project record found in {payload_file}.[/red]")
        raise typer.Exit(code=1)

    raw_repositories = payload.get("repositories")
    repositories = [
        repo
        for repo in (
            normalize_repository_with_meta(item)
            for item in (raw_repositories if isinstance(raw_repositories, list) else [])
        )
        if repo is not None
    ]
    health = calculate_project_health(project_record, repositories, now=now)

    if output_json:
        console.print_json(data=_project_json(project_record, health), default=str)
    else:
        display_project_report(ProjectReport(project_record, repositories, health))


# --- Chapters ---


@app.command()
def chapters():
    """List OWASP chapters."""
    items = _run(lambda client: client.list_chapters())
    display_list(
        "OWASP Chapters",
        ["ID", "Name", "Country", "Region", "Updated"],
        [[c.id, c.name, c.country, c.region, format_date(c.updated_at)] for c in items],
        "No chapters found.",
    )


@app.command()
def chapter(chapter_id: str = typer.Argument(..., help="Chapter key.")):
    """Show a single chapter."""
    item = _run(lambda client: client.get_chapter(chapter_id))
    if item is None:
        _not_found("Chapter", chapter_id)
    display_detail(
        item.name,
        {
            "ID": item.id,
            "Country": item.country,
            "Region": item.region,
            "Created": format_date(item.created_at),
            "Updated": format_date(item.updated_at),
        },
    )


# --- Committees ---


@app.command()
def committees():
    """List OWASP committees."""
    items = _run(lambda client: client.list_committees())
    display_list(
        "OWASP Committees",
        ["ID", "Name", "Kind", "Updated"],
        [[c.id, c.name, c.kind, format_date(c.updated_at)] for c in items],
        "No committees found.",
    )


@app.command()
def committee(committee_id: str = typer.Argument(..., help="Committee key.")):
    """Show a single committee."""
    item = _run(lambda client: client.get_committee(committee_id))
    if item is None:
        _not_found("Committee", committee_id)
    display_detail(
        item.name,
        {
            "ID": item.id,
            "Kind": item.kind,
            "Created": format_date(item.created_at),
            "Updated": format_date(item.updated_at),
        },
    )


# --- Events ---


@app.command()
def events():
    """List OWASP events."""
    items = _run(lambda client: client.list_events())
    display_list(
        "OWASP Events",
        ["ID", "Name", "Starts", "Ends", "Location"],
        [
            [e.id, e.name, format_date(e.starts_at), format_date(e.ends_at), e.location]
            for e in items
        ],
        "No events found.",
    )


@app.command()
def event(event_id: str = typer.Argument(..., help="Event key.")):
    """Show a single event."""
    item = _run(lambda client: client.get_event(event_id))
    if item is None:
        _not_found("Event", event_id)
    display_detail(
        item.name,
        {
            "ID": item.id,
            "Starts": format_date(item.starts_at),
            "Ends": format_date(item.ends_at),
            "Location": item.location,
        },
    )


# --- Community ---


@app.command()
def members():
    """List OWASP community members."""
    items = _run(lambda client: client.list_members())
    display_list(
        "OWASP Community",
        ["ID", "Name", "Role", "Country"],
        [[m.id, m.name, m.role, m.country] for m in items],
        "No community members found.",
    )


@app.command()
def member(member_id: str = typer.Argument(..., help="Member ID or login.")):
    """Show a single community member."""
    item = _run(lambda client: client.get_member(member_id))
    if item is None:
        _not_found("Member", member_id)
    display_detail(
        item.name,
        {"ID": item.id, "Role": item.role, "Country": item.country},
    )


# --- Sponsors ---


@app.command()
def sponsors():
    """List OWASP sponsors."""
    items = _run(lambda client: client.list_sponsors())
    display_list(
        "OWASP Sponsors",
        ["ID", "Name", "Level", "Website"],
        [[s.id, s.name, s.level, s.website_url] for s in items],
        "No sponsors found.",
    )


@app.command()
def sponsor(sponsor_id: str = typer.Argument(..., help="Sponsor key.")):
    """Show a single sponsor."""
    item = _run(lambda client: client.get_sponsor(sponsor_id))
    if item is None:
        _not_found("Sponsor", sponsor_id)
    display_detail(
        item.name,
        {"ID": item.id, "Level": item.level, "Website": item.website_url},
    )


if __name__ == "__main__":
    app()
