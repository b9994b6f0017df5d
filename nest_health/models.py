"""
Shared data types for OWASP Nest Health.

Every record fetched from the Nest API is normalized into one of these
NamedTuples before it reaches the scorer or the renderers.
"""

from datetime import datetime
from typing import Any, NamedTuple

Timestamp = str | datetime | None


class Project(NamedTuple):
    """An OWASP project as returned by the Nest API."""

    id: str | None = None
    key: str | None = None
    name: str = ""
    level: str | None = None  # "Flagship", "Production", "Lab", "Incubator"
    created_at: Timestamp = None
    updated_at: Timestamp = None
    extra: dict[str, Any] = {}  # Raw API record


class RepositorySummary(NamedTuple):
    """A repository listed for the configured organization."""

    id: str
    name: str
    provider: str | None = None
    url: str | None = None


class Issue(NamedTuple):
    id: str
    title: str
    state: str | None = None
    url: str | None = None
    raw: dict[str, Any] = {}


class Milestone(NamedTuple):
    id: str
    title: str
    state: str | None = None
    due_on: Timestamp = None
    raw: dict[str, Any] = {}


class Release(NamedTuple):
    id: str
    tag_name: str
    name: str | None = None
    created_at: Timestamp = None
    published_at: Timestamp = None
    url: str | None = None
    raw: dict[str, Any] = {}


class RepositoryWithMeta(NamedTuple):
    """A repository together with its issues, milestones and releases."""

    id: str
    name: str
    provider: str | None = None
    url: str | None = None
    issues: list[Issue] = []
    milestones: list[Milestone] = []
    releases: list[Release] = []


class HealthMetrics(NamedTuple):
    """Capped sub-scores that make up a project health score."""

    maturity_score: int  # 0-20
    freshness_score: int  # 0-40
    issue_score: int  # 0-25
    milestone_score: int  # 0-15


class HealthScore(NamedTuple):
    """Composite project health score."""

    score: int
    status: str  # "Healthy", "Active", "Needs Attention", "Stale"
    metrics: HealthMetrics


# --- Dashboard records (display only) ---


class Chapter(NamedTuple):
    id: str
    name: str
    country: str | None = None
    region: str | None = None
    created_at: Timestamp = None
    updated_at: Timestamp = None


class Committee(NamedTuple):
    id: str
    name: str
    kind: str | None = None
    created_at: Timestamp = None
    updated_at: Timestamp = None


class Event(NamedTuple):
    id: str
    name: str
    starts_at: Timestamp = None
    ends_at: Timestamp = None
    location: str | None = None


class Member(NamedTuple):
    id: str
    name: str
    role: str | None = None
    country: str | None = None


class Sponsor(NamedTuple):
    id: str
    name: str
    level: str | None = None
    website_url: str | None = None
