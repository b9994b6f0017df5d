"""
Project health scoring.

A project's health score is the sum of four capped sub-scores:

- Maturity (max 20): declared lifecycle stage of the project
- Freshness (max 40): recency of the latest release or project update
- Issues (max 25): share of issues that are closed
- Milestones (max 15): whether planned work is on schedule

Categories without any data get a small neutral score instead of zero, so
projects that simply don't use a feature (e.g. milestones) are not punished.
"""

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

from dateutil import parser as date_parser

from nest_health.models import (
    HealthMetrics,
    HealthScore,
    Issue,
    Milestone,
    Project,
    RepositoryWithMeta,
)

MAX_MATURITY_SCORE = 20
MAX_FRESHNESS_SCORE = 40
MAX_ISSUE_SCORE = 25
MAX_MILESTONE_SCORE = 15

MATURITY_POINTS = {
    "Flagship": 20,
    "Production": 15,
    "Lab": 10,
    "Incubator": 5,
}

# (max months since last activity, points); checked in order, bounds inclusive
FRESHNESS_BUCKETS = (
    (3, 40),  # Very active
    (6, 30),  # Active
    (12, 15),  # Maintained
)

# (min closed percentage, points); checked in order, bounds inclusive
ISSUE_BUCKETS = (
    (90, 25),  # Excellent
    (75, 20),  # Good
    (50, 10),  # Okay
)

# (score must be strictly greater than, status); checked in order
STATUS_THRESHOLDS = (
    (80, "Healthy"),
    (60, "Active"),
    (30, "Needs Attention"),
)
DEFAULT_STATUS = "Stale"

NEUTRAL_FRESHNESS_SCORE = 10
NEUTRAL_ISSUE_SCORE = 5
NEUTRAL_MILESTONE_SCORE = 7
OPEN_MILESTONE_SCORE = 15
COMPLETED_MILESTONE_SCORE = 10

MS_PER_DAY = 24 * 60 * 60 * 1000
DAYS_PER_MONTH = 30

# Fills in the month and day of partial dates such as "2024-06" or "2024"
PARTIAL_DATE_DEFAULT = datetime(2000, 1, 1)


def safe_date(value: Any) -> datetime | None:
    """
    Parse a timestamp-like value into an aware datetime.

    Accepts datetime objects, ISO-8601 strings (a trailing "Z" is allowed)
    and other common textual forms such as "2025/06/01", "2024-06" or
    RFC 1123 ("Sun, 01 Jun 2025 00:00:00 GMT"). Missing month or day parts
    default to 1. Naive values are taken as UTC.

    Returns:
        The parsed datetime, or None when the value is empty or unparseable.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            try:
                parsed = date_parser.parse(text, default=PARTIAL_DATE_DEFAULT)
            except (ValueError, OverflowError):
                return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _state_is(item: Issue | Milestone, state: str) -> bool:
    return isinstance(item.state, str) and item.state.lower() == state


def _months_since(moment: datetime, now: datetime) -> float:
    elapsed_ms = (now - moment).total_seconds() * 1000
    return elapsed_ms / MS_PER_DAY / DAYS_PER_MONTH


def score_maturity(project: Project) -> int:
    """Points for the project's lifecycle stage (exact match, unknown -> 0)."""
    return MATURITY_POINTS.get(project.level, 0)


def collect_activity_dates(
    project: Project, repositories: Iterable[RepositoryWithMeta]
) -> list[datetime]:
    """
    Gather every valid activity date for a project.

    Release dates prefer published_at and fall back to created_at. The
    project's own updated_at and created_at are included too.
    """
    dates = []
    for repo in repositories:
        for release in repo.releases or []:
            if release.published_at is not None:
                release_date = safe_date(release.published_at)
            else:
                release_date = safe_date(release.created_at)
            if release_date is not None:
                dates.append(release_date)

    for value in (project.updated_at, project.created_at):
        project_date = safe_date(value)
        if project_date is not None:
            dates.append(project_date)
    return dates


def score_freshness(
    project: Project,
    repositories: Iterable[RepositoryWithMeta],
    now: datetime,
) -> int:
    """
    Points for the recency of the latest activity.

    Scoring:
    - No activity dates at all: 10 (neutral)
    - <=3 months: 40
    - <=6 months: 30
    - <=12 months: 15
    - Older: 0
    """
    dates = collect_activity_dates(project, repositories)
    if not dates:
        return NEUTRAL_FRESHNESS_SCORE

    months_ago = _months_since(max(dates), now)
    for max_months, points in FRESHNESS_BUCKETS:
        if months_ago <= max_months:
            return points
    return 0


def score_issues(repositories: Iterable[RepositoryWithMeta]) -> int:
    """
    Points for the share of closed issues across all repositories.

    Issues in any state other than open/closed count toward the total only.

    Scoring:
    - No issues: 5 (neutral)
    - >=90% closed: 25
    - >=75% closed: 20
    - >=50% closed: 10
    - Otherwise: 0
    """
    issues = [issue for repo in repositories for issue in repo.issues or []]
    if not issues:
        return NEUTRAL_ISSUE_SCORE

    closed = sum(1 for issue in issues if _state_is(issue, "closed"))
    closed_percentage = closed / len(issues) * 100
    for min_percentage, points in ISSUE_BUCKETS:
        if closed_percentage >= min_percentage:
            return points
    return 0


def score_milestones(
    repositories: Iterable[RepositoryWithMeta], now: datetime
) -> int:
    """
    Points for milestone management across all repositories.

    Scoring:
    - No milestones: 7 (neutral)
    - Any open milestone past its due date: 0
    - At least one open milestone, none overdue: 15
    - All milestones closed: 10
    """
    milestones = [m for repo in repositories for m in repo.milestones or []]
    if not milestones:
        return NEUTRAL_MILESTONE_SCORE

    open_milestones = [m for m in milestones if _state_is(m, "open")]
    for milestone in open_milestones:
        due = safe_date(milestone.due_on)
        if due is not None and due < now:
            return 0
    if open_milestones:
        return OPEN_MILESTONE_SCORE
    return COMPLETED_MILESTONE_SCORE


def health_status(score: int) -> str:
    """Map a composite score to its status label (lower bounds exclusive)."""
    for threshold, status in STATUS_THRESHOLDS:
        if score > threshold:
            return status
    return DEFAULT_STATUS


def calculate_project_health(
    project: Project,
    repositories: Iterable[RepositoryWithMeta] | None,
    now: datetime | None = None,
) -> HealthScore:
    """
    Calculate the composite health score of a project.

    Args:
        project: Normalized project record.
        repositories: Repositories with their issues, milestones and releases.
        now: Reference instant for freshness and overdue checks. Defaults to
             the current UTC time.

    Returns:
        HealthScore with the 0-100 score, status label and sub-scores.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    repo_list = list(repositories or [])

    metrics = HealthMetrics(
        maturity_score=score_maturity(project),
        freshness_score=score_freshness(project, repo_list, now),
        issue_score=score_issues(repo_list),
        milestone_score=score_milestones(repo_list, now),
    )
    score = round(sum(metrics))
    return HealthScore(score=score, status=health_status(score), metrics=metrics)


def health_score_to_dict(health: HealthScore) -> dict[str, Any]:
    """Serialize a HealthScore using the camelCase keys of the web dashboard."""
    return {
        "score": health.score,
        "status": health.status,
        "metrics": {
            "maturityScore": health.metrics.maturity_score,
            "freshnessScore": health.metrics.freshness_score,
            "issueScore": health.metrics.issue_score,
            "milestoneScore": health.metrics.milestone_score,
        },
    }
