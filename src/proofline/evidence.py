"""Evidence collection from the timeline and a bounded project-root walk."""

import os
from dataclasses import dataclass, field

import structlog

from proofline.errors import PathDenied
from proofline.ids import stable_id
from proofline.models import (
    EvidenceItem,
    EvidenceType,
    PathAccessAudit,
    ProjectScope,
    QueryIntent,
    RawEvent,
    TimelineEvent,
    TimeRange,
)
from proofline.paths import assert_path_allowed, normalize_path
from proofline.projects import match_project_id, metadata_root, scope_roots

logger = structlog.get_logger()

MAX_FILES_PER_ROOT = 600

# Directory names never descended into during the walk
DENY_NAMES = frozenset({
    ".git", "node_modules", "dist", "build", ".next", ".cache",
    "__pycache__", ".venv", ".mypy_cache", ".pytest_cache",
})

FS_CONFIDENCE = 0.97
FS_PRIORITY = 6

# (priority, confidence) by evidence type; more direct evidence ranks higher
_TYPE_WEIGHTS: dict[EvidenceType, tuple[int, float]] = {
    EvidenceType.FILE_CHANGE: (6, 0.95),
    EvidenceType.TOOL_CALL: (5, 0.9),
    EvidenceType.TOOL_RESULT: (5, 0.9),
    EvidenceType.ASSISTANT_TEXT: (4, 0.82),
    EvidenceType.USER_TEXT: (3, 0.72),
    EvidenceType.SYSTEM: (2, 0.6),
}


@dataclass(frozen=True)
class CollectEvidenceInput:
    client: str
    scope: ProjectScope
    range: TimeRange
    timeline: list[TimelineEvent]
    audit: PathAccessAudit
    allowed_roots: list[str]
    raw_events: list[RawEvent] = field(default_factory=list)
    query: QueryIntent | None = None
    max_files_per_root: int = MAX_FILES_PER_ROOT


def priority_of(evidence_type: EvidenceType) -> int:
    return _TYPE_WEIGHTS[evidence_type][0]


def confidence_of(evidence_type: EvidenceType) -> float:
    return _TYPE_WEIGHTS[evidence_type][1]


def evidence_type_for(event: TimelineEvent) -> EvidenceType:
    """Classify a timeline event; explicit tags beat the actor fallback."""
    tags = " ".join(event.tags).lower()
    text = f"{event.label} {event.detail}".lower()
    if "file_change" in tags:
        return EvidenceType.FILE_CHANGE
    if "tool_result" in tags or "function_call_output" in text:
        return EvidenceType.TOOL_RESULT
    if "tool_use" in tags or "function_call" in text:
        return EvidenceType.TOOL_CALL
    if event.actor == "assistant":
        return EvidenceType.ASSISTANT_TEXT
    if event.actor == "user":
        return EvidenceType.USER_TEXT
    return EvidenceType.SYSTEM


def _timeline_evidence(data: CollectEvidenceInput) -> list[EvidenceItem]:
    items = []
    for event in data.timeline:
        if not data.range.contains(event.ts):
            continue

        project_id = match_project_id(data.scope, metadata_root(event.metadata or {}))
        ev_type = evidence_type_for(event)
        items.append(EvidenceItem(
            id=stable_id(data.client, "timeline", event.id, ev_type.value),
            client=data.client,
            project_id=project_id,
            ts=event.ts,
            type=ev_type,
            source_path=event.source_path,
            summary=event.label,
            detail=event.detail,
            confidence=confidence_of(ev_type),
            priority=priority_of(ev_type),
            event_id=event.id,
            metadata={"actor": str(getattr(event.actor, "value", event.actor)),
                      "tags": list(event.tags)},
        ))
    return items


def walk_changed_files(root: str, time_range: TimeRange, audit: PathAccessAudit,
                       allowed_roots: list[str], max_files: int = MAX_FILES_PER_ROOT,
                       skip_roots: list[str] | tuple[str, ...] = (),
                       ) -> list[tuple[str, int]]:
    """Depth-first walk of ``root`` returning (path, mtime_ms) for files modified in range.

    Every directory and entry is checked through the path guard before use.
    Unreadable directories are skipped. Stops once ``max_files`` are found.
    Directories listed in ``skip_roots`` (other project roots nested inside
    this one) are left to their own walk.
    """
    skip = {normalize_path(r) for r in skip_roots} - {normalize_path(root)}
    stack = [root]
    found: list[tuple[str, int]] = []

    while stack and len(found) < max_files:
        current = stack.pop()
        assert_path_allowed(current, allowed_roots, audit, "scan")

        try:
            with os.scandir(current) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as exc:
            logger.debug("evidence.walk_skipped", path=current, error=str(exc))
            continue

        for entry in entries:
            if entry.name in DENY_NAMES:
                continue
            full = os.path.join(current, entry.name)
            assert_path_allowed(full, allowed_roots, audit, "scan")

            try:
                if entry.is_dir(follow_symlinks=False):
                    if normalize_path(full) not in skip:
                        stack.append(full)
                    continue
                if not entry.is_file(follow_symlinks=False):
                    continue
                mtime = entry.stat(follow_symlinks=False).st_mtime_ns // 1_000_000
            except OSError:
                continue

            if time_range.contains(mtime):
                found.append((full, mtime))
                if len(found) >= max_files:
                    break

    found.sort(key=lambda item: item[1])
    return found


def _filesystem_evidence(data: CollectEvidenceInput) -> list[EvidenceItem]:
    items = []
    roots = scope_roots(data.scope)
    for root in roots:
        project_id = match_project_id(data.scope, root)
        try:
            changed = walk_changed_files(root, data.range, data.audit,
                                         data.allowed_roots, data.max_files_per_root,
                                         skip_roots=roots)
        except PathDenied as exc:
            logger.warning("evidence.root_denied", root=root, path=exc.path)
            continue

        for path, mtime in changed:
            rel = os.path.relpath(path, root).replace(os.sep, "/")
            metadata = {"root": root, "inferred": True}
            if data.query is not None:
                metadata["query"] = data.query.raw
            items.append(EvidenceItem(
                id=stable_id(data.client, "file_change", path, mtime),
                client=data.client,
                project_id=project_id,
                ts=mtime,
                type=EvidenceType.FILE_CHANGE,
                source_path=path,
                summary=f"changed {rel}",
                detail=f"filesystem mtime changed within {data.range.label}",
                confidence=FS_CONFIDENCE,
                priority=FS_PRIORITY,
                metadata=metadata,
            ))
    return items


def collect_evidence(data: CollectEvidenceInput) -> list[EvidenceItem]:
    """Merge timeline-derived and filesystem-derived evidence, sorted by time."""
    evidence = _timeline_evidence(data)
    evidence.extend(_filesystem_evidence(data))
    evidence.sort(key=lambda item: item.ts)
    logger.debug("evidence.collected", count=len(evidence), client=data.client)
    return evidence
