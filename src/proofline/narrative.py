"""Phase narrative: the timeline cut into gap- and size-bounded segments."""

from dataclasses import dataclass, field

from proofline.ids import stable_id, uniq
from proofline.models import (
    Actor,
    EvidenceItem,
    EvidenceType,
    MajorEvent,
    MajorEventType,
    TimelineEvent,
    TimelineNarrativeSegment,
    UserInstruction,
)

MAX_GAP_MS = 2 * 60 * 60 * 1000
MAX_EVENTS_PER_SEGMENT = 1200
MAX_SEGMENTS = 8
MAX_EVIDENCE_IDS = 12

_RISK_TYPES = (MajorEventType.PENALTY, MajorEventType.YELLOW_CARD, MajorEventType.RED_CARD)
_TOOL_TYPES = (EvidenceType.TOOL_CALL, EvidenceType.TOOL_RESULT)


@dataclass
class Segment:
    start: int
    end: int
    events: list[TimelineEvent] = field(default_factory=list)

    def covers(self, ts: int) -> bool:
        return self.start <= ts <= self.end


def split_segments(timeline: list[TimelineEvent]) -> list[Segment]:
    """Start a new segment on a gap over two hours or once a segment is full."""
    if not timeline:
        return []
    segments = []
    current = Segment(start=timeline[0].ts, end=timeline[0].ts)
    for event in timeline:
        if current.events:
            gap = event.ts - current.events[-1].ts > MAX_GAP_MS
            full = len(current.events) >= MAX_EVENTS_PER_SEGMENT
            if gap or full:
                segments.append(current)
                current = Segment(start=event.ts, end=event.ts)
        current.events.append(event)
        current.end = event.ts
    segments.append(current)
    return segments[:MAX_SEGMENTS]


def phase_title(segment: Segment, major_events: list[MajorEvent],
                evidence: list[EvidenceItem], index: int) -> str:
    majors = [m for m in major_events if segment.covers(m.ts)]
    if any(m.type == MajorEventType.GOAL for m in majors):
        kind = "Delivery progress"
    elif any(m.type in _RISK_TYPES for m in majors):
        kind = "Issue handling"
    elif any(i.type == EvidenceType.FILE_CHANGE and segment.covers(i.ts) for i in evidence):
        kind = "Implementation iteration"
    else:
        kind = "Requirement shaping"
    return f"Phase {index + 1}: {kind}"


def summarize_segment(segment: Segment, major_events: list[MajorEvent],
                      evidence: list[EvidenceItem], instructions: list[UserInstruction]) -> str:
    actors = [e.actor for e in segment.events]
    users = actors.count(Actor.USER)
    assistants = actors.count(Actor.ASSISTANT)
    systems = actors.count(Actor.SYSTEM)

    in_segment = [i for i in evidence if segment.covers(i.ts)]
    file_changes = sum(1 for i in in_segment if i.type == EvidenceType.FILE_CHANGE)
    tool_ops = sum(1 for i in in_segment if i.type in _TOOL_TYPES)
    majors = [m for m in major_events if segment.covers(m.ts)]

    intent_tokens = uniq(
        token
        for item in instructions if segment.covers(item.ts)
        for token in item.tokens[:2]
    )
    top_intent = " / ".join(intent_tokens[:4])

    lines = [
        f"This phase has {len(segment.events)} timeline events "
        f"(user {users}, assistant {assistants}, system {systems}), "
        f"{tool_ops} tool call/results, and {file_changes} file changes.",
        f"User intent concentrated on {top_intent}." if top_intent
        else "User instructions mostly refined the same active task.",
    ]
    if majors:
        types = ", ".join(m.type.value for m in majors[:3])
        lines.append(f"Detected {len(majors)} major events in this phase ({types}).")
    else:
        lines.append("No clear major event in this phase; work mainly progressed steadily.")
    return " ".join(lines)


def build_timeline_narrative(timeline: list[TimelineEvent], major_events: list[MajorEvent],
                             evidence: list[EvidenceItem],
                             instructions: list[UserInstruction]) -> list[TimelineNarrativeSegment]:
    narrative = []
    for index, segment in enumerate(split_segments(timeline)):
        evidence_ids = [i.id for i in evidence if segment.covers(i.ts)][:MAX_EVIDENCE_IDS]
        narrative.append(TimelineNarrativeSegment(
            id=stable_id("narrative", index, segment.start, segment.end),
            start=segment.start,
            end=segment.end,
            title=phase_title(segment, major_events, evidence, index),
            summary=summarize_segment(segment, major_events, evidence, instructions),
            evidence_ids=evidence_ids,
        ))
    return narrative
