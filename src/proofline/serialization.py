"""camelCase JSON form of the data model, and the batch-file loader."""

import json
from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from pathlib import Path

import structlog

from proofline.errors import MalformedInput
from proofline.ids import now_ms, stable_id, to_timestamp
from proofline.models import (
    RAW_EVENT_KINDS,
    Actor,
    ProjectCandidate,
    RawEvent,
    TimelineEvent,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class Batch:
    """One finite input batch: a single client's raw events."""

    client: str
    raw_events: list[RawEvent]
    timeline: list[TimelineEvent] | None = None
    projects: list[ProjectCandidate] = field(default_factory=list)


def camel_case(name: str) -> str:
    head, *rest = name.rstrip("_").split("_")
    return head + "".join(part.capitalize() for part in rest)


def to_dict(value):
    """Recursively convert dataclasses to plain JSON data.

    Dataclass field names become camelCase, None-valued fields are omitted
    and enums collapse to their values. Keys of plain dicts (metadata) are
    kept verbatim.
    """
    if is_dataclass(value) and not isinstance(value, type):
        out = {}
        for f in fields(value):
            item = getattr(value, f.name)
            if item is None:
                continue
            out[camel_case(f.name)] = to_dict(item)
        return out
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): to_dict(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_dict(v) for v in value]
    return value


def dumps(value, indent: int | None = 2) -> str:
    return json.dumps(to_dict(value), indent=indent, ensure_ascii=False)


def _pick(data: dict, *keys: str, default=None):
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


def raw_event_from_dict(data: dict, client: str | None = None) -> RawEvent:
    """Lenient RawEvent reader: camelCase or snake_case keys, missing id derived from content."""
    if not isinstance(data, dict):
        raise MalformedInput(f"raw event must be an object, got {type(data).__name__}")

    event_client = str(_pick(data, "client", default=client or "unknown"))
    kind = str(_pick(data, "kind", "type", default="unknown"))
    if kind not in RAW_EVENT_KINDS:
        kind = "unknown"
    timestamp = to_timestamp(_pick(data, "timestamp", "ts", "time"), default=0)
    content = _text(_pick(data, "content", "text", "detail", default=""))
    title = _text(_pick(data, "title", "label", default=kind))
    source_path = str(_pick(data, "sourcePath", "source_path", default=""))
    metadata = _pick(data, "metadata", default={})
    if not isinstance(metadata, dict):
        metadata = {"value": metadata}

    event_id = _pick(data, "id")
    if not event_id:
        event_id = stable_id(event_client, source_path, timestamp, kind, content[:200])

    return RawEvent(
        id=str(event_id),
        client=event_client,
        source_path=source_path,
        timestamp=timestamp,
        kind=kind,
        title=title,
        content=content,
        metadata=metadata,
    )


def timeline_event_from_dict(data: dict) -> TimelineEvent:
    if not isinstance(data, dict) or not data.get("id"):
        raise MalformedInput("timeline event must be an object with an id")
    actor = str(data.get("actor", "system"))
    try:
        actor = Actor(actor)
    except ValueError:
        actor = Actor.SYSTEM
    metadata = data.get("metadata") or {}
    return TimelineEvent(
        id=str(data["id"]),
        client=str(data.get("client", "unknown")),
        ts=to_timestamp(_pick(data, "ts", "timestamp"), default=0),
        label=_text(data.get("label", "")),
        detail=_text(data.get("detail", "")),
        actor=actor,
        tags=[str(t) for t in data.get("tags") or []],
        source_path=str(_pick(data, "sourcePath", "source_path", default="")),
        metadata=metadata if isinstance(metadata, dict) else {},
    )


def project_from_dict(data: dict, client: str) -> ProjectCandidate:
    if not isinstance(data, dict) or not data.get("root"):
        raise MalformedInput("project must be an object with a root")
    root = str(data["root"])
    return ProjectCandidate(
        id=str(data.get("id") or stable_id(client, root)),
        name=str(data.get("name") or Path(root).name or root),
        root=root,
        client=str(data.get("client", client)),
        signal_score=float(_pick(data, "signalScore", "signal_score", default=0)),
        last_active_at=to_timestamp(_pick(data, "lastActiveAt", "last_active_at"), default=0),
        sources=[str(s) for s in data.get("sources") or []],
    )


def _read_rows(rows: list, reader, what: str, **kwargs) -> list:
    out = []
    for index, row in enumerate(rows):
        try:
            out.append(reader(row, **kwargs))
        except (MalformedInput, TypeError, ValueError, OverflowError) as e:
            logger.warning("batch.row_skipped", kind=what, index=index, error=str(e))
    return out


def _parse_jsonl(text: str) -> list:
    rows = []
    for lineno, line in enumerate(text.splitlines(), 1):
        line = line.strip()
        if not line:
            continue
        try:
            rows.append(json.loads(line))
        except ValueError as e:
            logger.warning("batch.row_skipped", kind="line", index=lineno, error=str(e))
    return rows


def parse_batch(text: str, client: str | None = None) -> Batch:
    """Parse batch text: an object with rawEvents, a bare array, or JSONL.

    Bad rows are skipped and logged. Raises MalformedInput only when nothing
    in the text can be read as a batch.
    """
    try:
        data = json.loads(text)
    except ValueError:
        data = _parse_jsonl(text)
        if not data:
            raise MalformedInput("batch is neither JSON nor JSON lines") from None

    if isinstance(data, list):
        payload: dict = {"rawEvents": data}
    elif isinstance(data, dict) and "kind" in data and "rawEvents" not in data:
        # single-line JSONL
        payload = {"rawEvents": [data]}
    elif isinstance(data, dict):
        payload = data
    else:
        raise MalformedInput(f"batch must be an object or array, got {type(data).__name__}")

    rows = _pick(payload, "rawEvents", "raw_events", "events")
    if not isinstance(rows, list):
        raise MalformedInput("batch object has no rawEvents array")

    first_client = next(
        (r.get("client") for r in rows if isinstance(r, dict) and r.get("client")), None)
    batch_client = str(client or payload.get("client") or first_client or "unknown")

    raw_events = _read_rows(rows, raw_event_from_dict, "raw_event", client=batch_client)

    timeline = None
    if isinstance(payload.get("timeline"), list):
        timeline = _read_rows(payload["timeline"], timeline_event_from_dict, "timeline_event")

    projects = []
    if isinstance(payload.get("projects"), list):
        projects = _read_rows(payload["projects"], project_from_dict, "project",
                              client=batch_client)

    logger.debug("batch.parsed", client=batch_client, raw_events=len(raw_events),
                 skipped=len(rows) - len(raw_events))
    return Batch(client=batch_client, raw_events=raw_events, timeline=timeline,
                 projects=projects)


def load_batch(path: str | Path, client: str | None = None) -> Batch:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise MalformedInput(f"cannot read batch file {path}: {e}") from e
    return parse_batch(text, client=client)


def run_summary(output) -> dict:
    """Counts for a RunOutput, used by the CLI and the run store."""
    return {
        "runId": output.context.run_id,
        "client": output.context.client,
        "startedAt": output.context.started_at,
        "endedAt": output.context.ended_at or now_ms(),
        "rawEvents": len(output.raw_events),
        "timeline": len(output.timeline),
        "evidence": len(output.evidence),
        "conflicts": len(output.conflicts),
        "majorEvents": len(output.major_events),
        "actionChains": len(output.action_chains),
    }
