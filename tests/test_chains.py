"""Tests for action chain construction."""

from conftest import BASE_TS, MINUTE

from proofline.chains import FALLBACK_CONFIDENCE, build_action_chains
from proofline.models import Actor, EvidenceType, MajorEvent, MajorEventType


def _major(trigger, followups, major_type=MajorEventType.GOAL):
    return MajorEvent(
        id=f"m-{trigger}",
        client="codex",
        ts=BASE_TS,
        type=major_type,
        title=f"{major_type.value}: x",
        summary="rule summary",
        score=1.2,
        trigger_event_id=trigger,
        follow_up_event_ids=followups,
        rule_id="goal-delivery",
    )


class TestBuildActionChains:

    def test_steps_evidence_and_confidence(self, make_event, make_evidence):
        timeline = [
            make_event("t1", BASE_TS, "ship it", label="start"),
            make_event("t2", BASE_TS + MINUTE, "working", actor=Actor.ASSISTANT, label="middle"),
            make_event("t3", BASE_TS + 2 * MINUTE, "done", actor=Actor.ASSISTANT, label="end"),
        ]
        evidence = [
            make_evidence("ev1", EvidenceType.USER_TEXT, BASE_TS, confidence=0.7, event_id="t1"),
            make_evidence("ev3", EvidenceType.ASSISTANT_TEXT, BASE_TS + 2 * MINUTE,
                          confidence=0.9, event_id="t3", project_id="other-id"),
        ]
        chains = build_action_chains(timeline, [_major("t1", ["t2", "missing", "t3"])], evidence)

        assert len(chains) == 1
        chain = chains[0]
        assert [s.event_id for s in chain.steps] == ["t1", "t2", "t3"]
        assert [s.evidence_ids for s in chain.steps] == [["ev1"], [], ["ev3"]]
        assert chain.confidence == 0.8
        assert chain.summary == "GOAL: start -> end"
        assert chain.project_id == "paper-id"
        assert chain.major_event_id == "m-t1"

    def test_fallback_confidence_without_evidence(self, make_event):
        timeline = [make_event("t1", BASE_TS, "x", label="only")]
        chain = build_action_chains(timeline, [_major("t1", [])], [])[0]

        assert chain.confidence == FALLBACK_CONFIDENCE
        assert chain.summary == "GOAL: only"
        assert chain.project_id is None

    def test_unknown_trigger_keeps_major_summary(self):
        chain = build_action_chains([], [_major("ghost", ["also-ghost"])], [])[0]
        assert chain.steps == []
        assert chain.summary == "rule summary"

    def test_chain_ids_are_stable(self, make_event):
        timeline = [make_event("t1", BASE_TS, "x")]
        majors = [_major("t1", [])]
        assert build_action_chains(timeline, majors, [])[0].id == \
            build_action_chains(timeline, majors, [])[0].id

    def test_empty(self):
        assert build_action_chains([], [], []) == []
