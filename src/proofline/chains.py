"""Action chains: a major event, its follow-ups and their evidence."""

from proofline.ids import stable_id
from proofline.models import (
    ActionChain,
    ActionChainStep,
    EvidenceItem,
    MajorEvent,
    TimelineEvent,
)

FALLBACK_CONFIDENCE = 0.72


def index_evidence_by_event(evidence: list[EvidenceItem]) -> dict[str, list[EvidenceItem]]:
    by_event: dict[str, list[EvidenceItem]] = {}
    for item in evidence:
        if item.event_id:
            by_event.setdefault(item.event_id, []).append(item)
    return by_event


def summarize_chain(major: MajorEvent, steps: list[TimelineEvent]) -> str:
    if not steps:
        return major.summary
    first, last = steps[0], steps[-1]
    if first.id == last.id:
        return f"{major.type.value}: {first.label}"
    return f"{major.type.value}: {first.label} -> {last.label}"


def build_action_chains(timeline: list[TimelineEvent], major_events: list[MajorEvent],
                        evidence: list[EvidenceItem]) -> list[ActionChain]:
    """One chain per major event; unknown trigger or follow-up ids are dropped."""
    by_id = {event.id: event for event in timeline}
    by_event = index_evidence_by_event(evidence)

    chains = []
    for major in major_events:
        step_ids = [major.trigger_event_id, *major.follow_up_event_ids]
        steps = [by_id[i] for i in step_ids if i in by_id]
        attached = [item for step in steps for item in by_event.get(step.id, [])]

        if attached:
            confidence = sum(item.confidence for item in attached) / len(attached)
        else:
            confidence = FALLBACK_CONFIDENCE

        chains.append(ActionChain(
            id=stable_id("action_chain", major.id),
            major_event_id=major.id,
            project_id=attached[0].project_id if attached else None,
            summary=summarize_chain(major, steps),
            confidence=round(confidence, 3),
            steps=[
                ActionChainStep(
                    event_id=step.id,
                    ts=step.ts,
                    label=step.label,
                    detail=step.detail,
                    actor=step.actor,
                    evidence_ids=[item.id for item in by_event.get(step.id, [])],
                )
                for step in steps
            ],
        ))
    return chains
