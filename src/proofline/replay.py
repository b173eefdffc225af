"""Replay windows around each major event."""

from proofline.models import MajorEvent, ReplaySegment, TimelineEvent


def build_replay_segments(timeline: list[TimelineEvent], major_events: list[MajorEvent],
                          before_count: int = 5, after_count: int = 12) -> list[ReplaySegment]:
    """Slice the ``before_count`` events preceding and ``after_count`` following each trigger.

    A trigger missing from the timeline is treated as the first event.
    """
    index_by_id = {event.id: i for i, event in enumerate(timeline)}
    segments = []
    for major in major_events:
        focus = index_by_id.get(major.trigger_event_id, 0)
        start = max(0, focus - max(0, before_count))
        segments.append(ReplaySegment(
            event_id=major.id,
            before=timeline[start:focus],
            focus=major,
            after=timeline[focus + 1:focus + 1 + max(0, after_count)],
        ))
    return segments
