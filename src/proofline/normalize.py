"""Raw events to a sorted, de-duplicated timeline."""

from proofline.models import Actor, RawEvent, TimelineEvent

_ASSISTANT_KINDS = frozenset({"assistant_message", "tool_use"})


def infer_actor(kind: str) -> Actor:
    if kind == "user_message":
        return Actor.USER
    if kind in _ASSISTANT_KINDS:
        return Actor.ASSISTANT
    return Actor.SYSTEM


def normalize(raw_events: list[RawEvent]) -> list[TimelineEvent]:
    """First occurrence of each id wins; ties in timestamp keep input order."""
    seen: dict[str, RawEvent] = {}
    for event in raw_events:
        seen.setdefault(event.id, event)

    ordered = sorted(seen.values(), key=lambda e: e.timestamp)
    return [
        TimelineEvent(
            id=event.id,
            client=event.client,
            ts=event.timestamp,
            label=event.title,
            detail=event.content,
            actor=infer_actor(event.kind),
            tags=[event.client, event.kind],
            source_path=event.source_path,
            metadata=dict(event.metadata or {}),
        )
        for event in ordered
    ]
