"""
Normalization of loosely-typed Nest API payloads.

The Nest API (and the SDKs built on it) wrap list results in different
envelopes and are inconsistent about field names. Everything is mapped into
the strict NamedTuples of nest_health.models here, so nothing downstream has
to branch on raw shapes.
"""

from typing import Any, Callable, NamedTuple

from nest_health.models import (
    Chapter,
    Committee,
    Event,
    Issue,
    Member,
    Milestone,
    Project,
    Release,
    RepositorySummary,
    RepositoryWithMeta,
    Sponsor,
)


def extract_items(payload: Any) -> list | None:
    """
    Extract the list of records from a list response.

    Supported shapes: {"items": [...]}, {"data": {"items": [...]}} and a bare
    list. Missing items are treated as an empty list.

    Returns:
        The records, or None when the payload has an unexpected shape.
    """
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return None

    items = payload.get("items")
    if items is None:
        data = payload.get("data")
        items = data.get("items") if isinstance(data, dict) else None
    if items is None:
        return []
    return items if isinstance(items, list) else None


def pick(record: dict[str, Any], *keys: str) -> Any:
    """Return the first value among `keys` that is present and not None."""
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) else None


class EntitySpec(NamedTuple):
    """How to turn one raw record of a given kind into a model instance."""

    kind: str
    build: Callable[[dict[str, Any], int], Any]
    is_valid: Callable[[Any], bool] = lambda entity: True


def normalize_records(spec: EntitySpec, items: list) -> list:
    """
    Map raw records to model instances, dropping invalid ones.

    Args:
        spec: Entity description for this kind of record.
        items: Raw records from extract_items().

    Returns:
        List of normalized entities in input order.
    """
    entities = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            continue
        entity = spec.build(item, index)
        if entity is not None and spec.is_valid(entity):
            entities.append(entity)
    return entities


def _has_string_id_and_name(entity: Any) -> bool:
    return isinstance(entity.id, str) and isinstance(entity.name, str)


def _slug_id(item: dict[str, Any]) -> Any:
    return pick(item, "id", "slug", "key", "name")


def _web_url(item: dict[str, Any]) -> Any:
    return pick(item, "url", "htmlUrl", "html_url", "webUrl", "web_url")


def _created_at(item: dict[str, Any]) -> Any:
    return pick(item, "createdAt", "created_at")


def _updated_at(item: dict[str, Any]) -> Any:
    return pick(item, "updatedAt", "updated_at")


# --- Projects ---


def _build_project_summary(item: dict[str, Any], _index: int) -> Project | None:
    key = item.get("key")
    name = item.get("name")
    level = item.get("level")
    created_at = _created_at(item)
    updated_at = _updated_at(item)
    if not all(isinstance(value, str) for value in (key, name, level)):
        return None
    if not created_at or not updated_at:
        return None
    return Project(
        id=key,
        key=key,
        name=name,
        level=level,
        created_at=created_at,
        updated_at=updated_at,
        extra=item,
    )


def normalize_project(item: Any) -> Project | None:
    """
    Normalize a project detail record.

    Unlike list entries, detail records only need to be a JSON object; every
    field is optional.
    """
    if not isinstance(item, dict):
        return None
    key = _text(item.get("key"))
    return Project(
        id=key or _text(item.get("id")),
        key=key,
        name=_text(item.get("name")) or key or "",
        level=_text(item.get("level")),
        created_at=_created_at(item),
        updated_at=_updated_at(item),
        extra=item,
    )


# --- Repositories and their contents ---


def _build_repository(item: dict[str, Any], _index: int) -> RepositorySummary:
    return RepositorySummary(
        id=_slug_id(item),
        name=item.get("name"),
        provider=item.get("provider"),
        url=_web_url(item),
    )


def _default(value: Any, fallback: Any) -> Any:
    return fallback if value is None else value


def _record_id(item: dict[str, Any], keys: tuple[str, ...], prefix: str, index: int) -> str:
    # Records without any identifier get a positional one
    return str(_default(pick(item, *keys), f"{prefix}-{index}"))


def _build_issue(item: dict[str, Any], index: int) -> Issue:
    issue_id = _record_id(item, ("id", "number", "key", "title"), "issue", index)
    return Issue(
        id=issue_id,
        title=_default(pick(item, "title", "name"), f"Issue {issue_id}"),
        state=_text(pick(item, "state", "status")),
        url=_web_url(item),
        raw=item,
    )


def _build_milestone(item: dict[str, Any], index: int) -> Milestone:
    milestone_id = _record_id(
        item, ("id", "number", "key", "title"), "milestone", index
    )
    return Milestone(
        id=milestone_id,
        title=_default(pick(item, "title", "name"), f"Milestone {milestone_id}"),
        state=_text(pick(item, "state", "status")),
        due_on=pick(item, "dueOn", "dueDate", "due_on", "due_date"),
        raw=item,
    )


def _build_release(item: dict[str, Any], index: int) -> Release:
    release_id = _record_id(item, ("id", "tagName", "tag_name", "name"), "release", index)
    return Release(
        id=release_id,
        tag_name=_default(
            pick(item, "tagName", "tag_name", "name"), f"release-{release_id}"
        ),
        name=item.get("name"),
        created_at=_created_at(item),
        published_at=pick(item, "publishedAt", "published_at"),
        url=_web_url(item),
        raw=item,
    )


# --- Dashboard resources ---


def _build_chapter(item: dict[str, Any], _index: int) -> Chapter:
    return Chapter(
        id=_slug_id(item),
        name=item.get("name"),
        country=item.get("country"),
        region=item.get("region"),
        created_at=_created_at(item),
        updated_at=_updated_at(item),
    )


def _build_committee(item: dict[str, Any], _index: int) -> Committee:
    return Committee(
        id=_slug_id(item),
        name=item.get("name"),
        kind=item.get("kind"),
        created_at=_created_at(item),
        updated_at=_updated_at(item),
    )


def _build_event(item: dict[str, Any], _index: int) -> Event:
    return Event(
        id=_slug_id(item),
        name=pick(item, "name", "title") or "Untitled event",
        starts_at=pick(item, "startsAt", "startAt", "startDate", "start_date"),
        ends_at=pick(item, "endsAt", "endAt", "endDate", "end_date"),
        location=pick(item, "location", "city", "country"),
    )


def _build_member(item: dict[str, Any], _index: int) -> Member | None:
    member_id = item.get("id")
    if not member_id or not isinstance(member_id, str):
        return None
    return Member(
        id=member_id,
        name=pick(item, "name", "username", "login") or "Member",
        role=pick(item, "role", "title"),
        country=item.get("country"),
    )


def _build_sponsor(item: dict[str, Any], _index: int) -> Sponsor:
    return Sponsor(
        id=_slug_id(item),
        name=item.get("name"),
        level=pick(item, "level", "tier", "sponsor_type"),
        website_url=pick(item, "websiteUrl", "website_url", "url"),
    )


PROJECTS = EntitySpec("projects", _build_project_summary)
REPOSITORIES = EntitySpec("repositories", _build_repository, _has_string_id_and_name)
ISSUES = EntitySpec("issues", _build_issue)
MILESTONES = EntitySpec("milestones", _build_milestone)
RELEASES = EntitySpec("releases", _build_release)
CHAPTERS = EntitySpec("chapters", _build_chapter, _has_string_id_and_name)
COMMITTEES = EntitySpec("committees", _build_committee, _has_string_id_and_name)
EVENTS = EntitySpec("events", _build_event, _has_string_id_and_name)
MEMBERS = EntitySpec("members", _build_member)
SPONSORS = EntitySpec("sponsors", _build_sponsor, _has_string_id_and_name)

ENTITY_SPECS = {
    spec.kind: spec
    for spec in (
        PROJECTS,
        REPOSITORIES,
        ISSUES,
        MILESTONES,
        RELEASES,
        CHAPTERS,
        COMMITTEES,
        EVENTS,
        MEMBERS,
        SPONSORS,
    )
}


def normalize_payload(kind: str, payload: Any) -> list | None:
    """
    Extract and normalize the records of a list response.

    Returns:
        Normalized entities, or None when the payload shape is unexpected.
    """
    items = extract_items(payload)
    if items is None:
        return None
    return normalize_records(ENTITY_SPECS[kind], items)


def normalize_repository_with_meta(item: Any) -> RepositoryWithMeta | None:
    """
    Normalize a repository record that embeds its issues, milestones and releases.

    Used for saved payloads; sub-collections that are missing or malformed
    become empty lists.
    """
    if not isinstance(item, dict):
        return None
    summary = _build_repository(item, 0)
    if not _has_string_id_and_name(summary):
        return None

    def _children(spec: EntitySpec, key: str) -> list:
        children = item.get(key)
        return normalize_records(spec, children) if isinstance(children, list) else []

    return RepositoryWithMeta(
        *summary,
        issues=_children(ISSUES, "issues"),
        milestones=_children(MILESTONES, "milestones"),
        releases=_children(RELEASES, "releases"),
    )


def normalize_detail(kind: str, payload: Any) -> Any:
    """Normalize a single detail record of the given kind, or None."""
    if kind == "projects":
        return normalize_project(payload)
    if not isinstance(payload, dict):
        return None
    entities = normalize_records(ENTITY_SPECS[kind], [payload])
    return entities[0] if entities else None
