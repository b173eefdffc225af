"""Project discovery from event metadata and project-scope helpers."""

import os
from dataclasses import dataclass, field
from urllib.parse import unquote, urlparse

from proofline.ids import stable_id
from proofline.models import (
    AllProjectsScope,
    ProjectCandidate,
    ProjectScope,
    QueryIntent,
    RawEvent,
    SingleProjectScope,
)
from proofline.paths import normalize_path, path_contains

# Metadata keys that may carry a working directory, in lookup order
ROOT_METADATA_KEYS = ("cwd", "projectRoot", "project", "workspace", "root")


def scope_projects(scope: ProjectScope) -> list[ProjectCandidate]:
    match scope:
        case SingleProjectScope(project=project):
            return [project]
        case AllProjectsScope(projects=projects):
            return list(projects)
    raise TypeError(f"Unknown project scope: {scope!r}")


def scope_roots(scope: ProjectScope) -> list[str]:
    return [p.root for p in scope_projects(scope)]


def match_project(scope: ProjectScope, path: str | None) -> ProjectCandidate | None:
    """Return the in-scope project whose root contains ``path``.

    When roots are nested the deepest one wins. Sibling directories that
    merely share a string prefix never match.
    """
    if not path:
        return None
    best: ProjectCandidate | None = None
    for project in scope_projects(scope):
        if not path_contains(project.root, path):
            continue
        if best is None or len(normalize_path(project.root)) > len(normalize_path(best.root)):
            best = project
    return best


def match_project_id(scope: ProjectScope, path: str | None) -> str | None:
    project = match_project(scope, path)
    return project.id if project else None


def metadata_root(metadata: dict) -> str | None:
    """First usable working-directory hint in event metadata."""
    for key in ("cwd", "projectRoot", "project"):
        value = metadata.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def _uri_to_path(value: str) -> str:
    if value.startswith("file://"):
        return unquote(urlparse(value).path)
    return value


def _normalize_root(value: str) -> str | None:
    path = _uri_to_path(value.strip())
    if not path or not os.path.isabs(path):
        return None
    return normalize_path(path)


@dataclass
class _Accumulator:
    root: str
    signal_score: float = 0.0
    last_active_at: int = 0
    sources: set[str] = field(default_factory=set)


def discover_projects(client: str, events: list[RawEvent]) -> list[ProjectCandidate]:
    """Rank candidate project roots mentioned in raw-event metadata.

    Each mention adds 2 to a root's signal score; candidates are ordered by
    score, then most recent activity.
    """
    found: dict[str, _Accumulator] = {}
    for event in events:
        metadata = event.metadata or {}
        for key in ROOT_METADATA_KEYS:
            value = metadata.get(key)
            if not isinstance(value, str):
                continue
            root = _normalize_root(value)
            if not root:
                continue
            acc = found.setdefault(root, _Accumulator(root=root))
            acc.signal_score += 2
            acc.last_active_at = max(acc.last_active_at, event.timestamp)
            acc.sources.add("event:metadata")

    candidates = [
        ProjectCandidate(
            id=stable_id(client, acc.root),
            name=os.path.basename(acc.root) or acc.root,
            root=acc.root,
            client=client,
            signal_score=round(acc.signal_score, 2),
            last_active_at=acc.last_active_at,
            sources=sorted(acc.sources),
        )
        for acc in found.values()
    ]
    candidates.sort(key=lambda c: (-c.signal_score, -c.last_active_at))
    return candidates


def match_projects(candidates: list[ProjectCandidate], hint: str) -> list[ProjectCandidate]:
    key = hint.strip().lower()
    if not key:
        return []
    matched = [
        c for c in candidates
        if key in c.name.lower() or key in c.root.lower()
    ]
    return sorted(matched, key=lambda c: -c.signal_score)


def default_project_scope(candidates: list[ProjectCandidate],
                          query: QueryIntent | None) -> ProjectScope | None:
    """Pick a scope for a query, or None when the user has to choose."""
    if not candidates:
        return None
    if query is None:
        return AllProjectsScope(projects=list(candidates))
    if query.asks_all_projects:
        return AllProjectsScope(projects=list(candidates))
    if query.project_hint:
        matched = match_projects(candidates, query.project_hint)
        if matched:
            return SingleProjectScope(project=matched[0])
    if not query.asks_project:
        return AllProjectsScope(projects=list(candidates))
    if len(candidates) == 1:
        return SingleProjectScope(project=candidates[0])
    return None
