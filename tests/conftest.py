"""Shared fixtures for Proofline tests."""

import os

import pytest
import structlog

from proofline.ids import stable_id
from proofline.models import (
    Actor,
    AllProjectsScope,
    EvidenceItem,
    EvidenceType,
    ProjectCandidate,
    RawEvent,
    SingleProjectScope,
    TimelineEvent,
)
from proofline.serialization import Batch

# Fixed epoch ms, aligned to a minute boundary
BASE_TS = 1_770_998_400_000
MINUTE = 60_000

_KINDS = {
    Actor.USER: "user_message",
    Actor.ASSISTANT: "assistant_message",
    Actor.SYSTEM: "system",
}


@pytest.fixture(autouse=True)
def reset_logging():
    """configure_logging binds the current stderr; undo it after each test."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def make_event():
    def _make(event_id: str, ts: int, detail: str, actor: Actor = Actor.USER,
              label: str | None = None, tags: list[str] | None = None,
              metadata: dict | None = None, client: str = "codex") -> TimelineEvent:
        return TimelineEvent(
            id=event_id,
            client=client,
            ts=ts,
            label=label if label is not None else f"{actor.value} {event_id}",
            detail=detail,
            actor=actor,
            tags=tags if tags is not None else [client, _KINDS[actor]],
            source_path="/tmp/session.jsonl",
            metadata=metadata or {},
        )
    return _make


@pytest.fixture
def make_evidence():
    def _make(evidence_id: str, ev_type: EvidenceType, ts: int,
              source_path: str = "/tmp/session.jsonl", summary: str | None = None,
              detail: str | None = None, confidence: float = 0.9, priority: int = 5,
              project_id: str | None = "paper-id", event_id: str | None = None) -> EvidenceItem:
        return EvidenceItem(
            id=evidence_id,
            client="codex",
            project_id=project_id,
            ts=ts,
            type=ev_type,
            source_path=source_path,
            summary=summary if summary is not None else ev_type.value,
            detail=detail if detail is not None else (summary or ev_type.value),
            confidence=confidence,
            priority=priority,
            event_id=event_id,
        )
    return _make


@pytest.fixture
def make_project():
    def _make(root, name: str | None = None, client: str = "codex") -> ProjectCandidate:
        root = str(root)
        return ProjectCandidate(
            id=stable_id(client, root),
            name=name or root.rstrip("/").rsplit("/", 1)[-1],
            root=root,
            client=client,
            signal_score=2,
            last_active_at=BASE_TS,
            sources=["fixture"],
        )
    return _make


@pytest.fixture
def paper_project():
    return ProjectCandidate(
        id="paper-id",
        name="paper",
        root="/Users/alfred/projects/paper",
        client="codex",
        signal_score=1,
        last_active_at=1,
        sources=["fixture"],
    )


@pytest.fixture
def paper_scope(paper_project):
    return SingleProjectScope(project=paper_project)


@pytest.fixture
def sibling_projects(tmp_path, make_project):
    """Two projects whose roots share a string prefix but not a path prefix."""
    proj = tmp_path / "proj"
    proj2 = tmp_path / "proj2"
    proj.mkdir()
    proj2.mkdir()
    return make_project(proj), make_project(proj2)


@pytest.fixture
def all_siblings_scope(sibling_projects):
    return AllProjectsScope(projects=list(sibling_projects))


@pytest.fixture
def make_raw():
    def _make(event_id: str, ts: int, kind: str = "user_message", content: str = "",
              title: str | None = None, client: str = "codex", **metadata) -> RawEvent:
        return RawEvent(
            id=event_id,
            client=client,
            source_path="/tmp/session.jsonl",
            timestamp=ts,
            kind=kind,
            title=title or f"{kind} {event_id}",
            content=content,
            metadata=metadata,
        )
    return _make


@pytest.fixture
def project_session(tmp_path, make_raw):
    """A short codex session inside a real project with two files edited mid-session.

    Returns (project_root, batch).
    """
    root = tmp_path / "paper"
    note_dir = root / "src" / "note"
    note_dir.mkdir(parents=True)
    for name, offset in (("raw.ts", 2), ("index.ts", 3)):
        path = note_dir / name
        path.write_text("export {}\n")
        ns = (BASE_TS + offset * MINUTE) * 1_000_000
        os.utime(path, ns=(ns, ns))

    cwd = str(root)
    events = [
        make_raw("u1", BASE_TS, "user_message",
                 "switch the note format from plain text to structured json",
                 title="ask note format", cwd=cwd),
        make_raw("a1", BASE_TS + MINUTE, "assistant_message", "looking at the note module",
                 title="assistant reply", cwd=cwd),
        make_raw("a2", BASE_TS + 4 * MINUTE, "assistant_message", "done, all tests pass",
                 title="assistant report", cwd=cwd),
    ]
    return root, Batch(client="codex", raw_events=events)
