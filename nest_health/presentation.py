"""
Display-only derivations of project data.

Color mappings for health scores and the date and issue-state series drawn
next to them. Date validity and issue-state categorization follow the same
rules as the scorer in nest_health.health.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any, NamedTuple

from nest_health.health import safe_date
from nest_health.models import RepositoryWithMeta

STATUS_STYLES = {
    "Healthy": "green",
    "Active": "cyan",
    "Needs Attention": "yellow",
    "Stale": "red",
}

SPARK_CHARS = "▁▂▃▄▅▆▇█"


class DatePoint(NamedTuple):
    """A dated point positioned on a 0-1 time axis."""

    date: datetime
    x: float


class IssueDistribution(NamedTuple):
    """Issue counts by state across repositories."""

    open: int
    closed: int
    other: int

    @property
    def total(self) -> int:
        return self.open + self.closed + self.other

    def fractions(self) -> dict[str, float]:
        """Share of each state; empty when there are no issues."""
        if self.total == 0:
            return {}
        return {
            "open": self.open / self.total,
            "closed": self.closed / self.total,
            "other": self.other / self.total,
        }


def status_style(status: str) -> str:
    return STATUS_STYLES.get(status, "white")


def metric_style(score: float, cap: float) -> str:
    """Color for a capped sub-score based on its fraction of the cap."""
    fraction = score / cap if cap else 0
    if fraction >= 0.75:
        return "green"
    if fraction >= 0.4:
        return "yellow"
    return "red"


def date_points(values: Iterable[Any]) -> list[DatePoint]:
    """
    Place valid dates on a time axis.

    Invalid or missing values are dropped. Points are sorted oldest first and
    x is the position within the covered time span (0.0 for a single point).
    """
    dates = sorted(d for d in (safe_date(value) for value in values) if d is not None)
    if not dates:
        return []
    span = (dates[-1] - dates[0]).total_seconds()
    if span == 0:
        return [DatePoint(d, 0.0) for d in dates]
    return [DatePoint(d, (d - dates[0]).total_seconds() / span) for d in dates]


def release_dates(repositories: Iterable[RepositoryWithMeta]) -> list[DatePoint]:
    """Release dates (published, else created) across all repositories."""
    return date_points(
        release.published_at if release.published_at is not None else release.created_at
        for repo in repositories
        for release in repo.releases or []
    )


def milestone_due_dates(repositories: Iterable[RepositoryWithMeta]) -> list[DatePoint]:
    return date_points(
        milestone.due_on for repo in repositories for milestone in repo.milestones or []
    )


def issue_state_distribution(
    repositories: Iterable[RepositoryWithMeta],
) -> IssueDistribution:
    """Count open, closed and other issues (states compared case-insensitively)."""
    counts = {"open": 0, "closed": 0, "other": 0}
    for repo in repositories:
        for issue in repo.issues or []:
            state = issue.state.lower() if isinstance(issue.state, str) else ""
            counts[state if state in ("open", "closed") else "other"] += 1
    return IssueDistribution(**counts)


def sparkline(points: list[DatePoint], width: int = 20) -> str:
    """
    Render date points as a text sparkline of activity density.

    The time span is split into `width` buckets; each character's height is
    proportional to the number of points in its bucket.
    """
    if not points or width <= 0:
        return ""
    buckets = [0] * width
    for point in points:
        buckets[min(int(point.x * width), width - 1)] += 1
    peak = max(buckets)
    top = len(SPARK_CHARS) - 1
    return "".join(
        " " if count == 0 else SPARK_CHARS[round(count / peak * top)]
        for count in buckets
    )
