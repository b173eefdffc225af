"""Tests for raw event normalization."""

from conftest import BASE_TS

from proofline.models import Actor, RawEvent
from proofline.normalize import infer_actor, normalize


def _raw(event_id, ts, kind="user_message", content="x", **metadata):
    return RawEvent(id=event_id, client="codex", source_path="/tmp/s.jsonl", timestamp=ts,
                    kind=kind, title=f"{kind} {event_id}", content=content, metadata=metadata)


class TestInferActor:

    def test_kinds(self):
        assert infer_actor("user_message") == Actor.USER
        assert infer_actor("assistant_message") == Actor.ASSISTANT
        assert infer_actor("tool_use") == Actor.ASSISTANT
        assert infer_actor("tool_result") == Actor.SYSTEM
        assert infer_actor("file_change") == Actor.SYSTEM
        assert infer_actor("unknown") == Actor.SYSTEM


class TestNormalize:

    def test_sorted_by_timestamp(self):
        timeline = normalize([_raw("b", BASE_TS + 2), _raw("a", BASE_TS + 1)])
        assert [e.id for e in timeline] == ["a", "b"]

    def test_ties_keep_input_order(self):
        timeline = normalize([_raw("z", BASE_TS), _raw("y", BASE_TS), _raw("x", BASE_TS)])
        assert [e.id for e in timeline] == ["z", "y", "x"]

    def test_first_duplicate_wins(self):
        timeline = normalize([_raw("a", BASE_TS, content="first"), _raw("a", BASE_TS, content="second")])
        assert len(timeline) == 1
        assert timeline[0].detail == "first"

    def test_fields(self):
        event = normalize([_raw("a", BASE_TS, kind="tool_use", content="ls", cwd="/work/a")])[0]
        assert event.label == "tool_use a"
        assert event.detail == "ls"
        assert event.actor == Actor.ASSISTANT
        assert event.tags == ["codex", "tool_use"]
        assert event.ts == BASE_TS
        assert event.metadata == {"cwd": "/work/a"}

    def test_metadata_copied(self):
        raw = _raw("a", BASE_TS, cwd="/work/a")
        normalize([raw])[0].metadata["cwd"] = "/elsewhere"
        assert raw.metadata == {"cwd": "/work/a"}

    def test_empty(self):
        assert normalize([]) == []
