"""Tests for rule scoring and major-event classification."""

import asyncio

from conftest import BASE_TS, MINUTE

from proofline.classify import (
    ClassifyOptions,
    classify_events,
    follow_up_ids,
    score_rule,
    top_rule,
)
from proofline.errors import EnrichmentFailure
from proofline.models import Actor, EventRule, LLMProviderConfig, MajorEventType
from proofline.rules import DEFAULT_RULES

LLM = LLMProviderConfig(provider="openai", api_key="sk-test", model="gpt-4o-mini")


def _timeline(make_event, details):
    return [
        make_event(f"e{i}", BASE_TS + i * MINUTE, detail,
                   actor=Actor.USER if i % 2 == 0 else Actor.ASSISTANT)
        for i, detail in enumerate(details)
    ]


class TestScoreRule:

    def test_seed_hits_times_weight(self):
        rule = EventRule(id="r", event_type=MajorEventType.PENALTY,
                         any_of=("error", "failed"), weight=1.1)
        assert score_rule(rule, "build failed with error") == 2 * 1.1

    def test_missing_all_of_scores_zero(self):
        rule = EventRule(id="r", event_type=MajorEventType.GOAL, any_of=("fixed",),
                         all_of=("tests",))
        assert score_rule(rule, "fixed the bug") == 0
        assert score_rule(rule, "fixed the bug, tests pass") == 1

    def test_not_token_scores_zero(self):
        rule = EventRule(id="r", event_type=MajorEventType.GOAL, any_of=("fixed",),
                         not_=("not fixed",))
        assert score_rule(rule, "it is not fixed") == 0

    def test_boost_alone_never_scores(self):
        rule = EventRule(id="r", event_type=MajorEventType.RED_CARD, any_of=("fatal",),
                         boost=("webpack",))
        assert score_rule(rule, "webpack webpack webpack") == 0
        assert score_rule(rule, "fatal webpack crash") == 2 * 1


class TestTopRule:

    def test_tie_goes_to_list_order(self, make_event):
        first = EventRule(id="first", event_type=MajorEventType.GOAL, any_of=("ship",))
        second = EventRule(id="second", event_type=MajorEventType.ASSIST, any_of=("ship",))
        event = make_event("e", BASE_TS, "ship")
        assert top_rule(event, [first, second])[0].id == "first"
        assert top_rule(event, [second, first])[0].id == "second"

    def test_below_min_score_yields_nothing(self, make_event):
        rule = EventRule(id="r", event_type=MajorEventType.GOAL, any_of=("ship",), min_score=2)
        assert top_rule(make_event("e", BASE_TS, "ship it"), [rule]) is None

    def test_neutral_event_yields_nothing(self, make_event):
        assert top_rule(make_event("e", BASE_TS, "hello there"), DEFAULT_RULES) is None


class TestFollowUps:

    def test_count_within_window(self, make_event):
        timeline = _timeline(make_event, ["a"] * 6)
        assert follow_up_ids(timeline, 0, window=10, count=3) == ["e1", "e2", "e3"]

    def test_window_limits_count(self, make_event):
        timeline = _timeline(make_event, ["a"] * 6)
        assert follow_up_ids(timeline, 0, window=2, count=3) == ["e1", "e2"]

    def test_end_of_timeline(self, make_event):
        timeline = _timeline(make_event, ["a"] * 3)
        assert follow_up_ids(timeline, 2, window=10, count=3) == []


class TestClassifyEvents:

    def test_major_event_fields(self, make_event):
        timeline = _timeline(make_event, ["the build failed with an error", "looking", "ok"])
        majors = asyncio.run(classify_events(timeline))

        assert len(majors) == 1
        major = majors[0]
        assert major.type == MajorEventType.PENALTY
        assert major.trigger_event_id == "e0"
        assert major.title == "PENALTY: user e0"
        assert major.summary == "the build failed with an error"
        assert major.score == 2.2
        assert major.rule_id == "penalty-failure"
        assert major.follow_up_event_ids == ["e1", "e2"]

    def test_at_most_one_major_per_event(self, make_event):
        timeline = _timeline(make_event, ["fixed and shipped, but a warning and an error"])
        majors = asyncio.run(classify_events(timeline))
        assert len(majors) == 1
        assert majors[0].type == MajorEventType.GOAL

    def test_deterministic(self, make_event):
        timeline = _timeline(make_event, [
            "plan the scaffold", "tool call: shell", "error: timeout", "fixed it", "revert that",
        ])
        options = ClassifyOptions(follow_up_window=3, follow_up_count=2)
        first = asyncio.run(classify_events(timeline, options))
        second = asyncio.run(classify_events(timeline, options))

        assert first == second
        assert len(first) == 5

    def test_summary_truncated(self, make_event):
        timeline = _timeline(make_event, ["error " * 100])
        major = asyncio.run(classify_events(timeline))[0]
        assert len(major.summary) == 220

    def test_empty_timeline(self):
        assert asyncio.run(classify_events([])) == []


class TestEnrichment:

    def test_summary_replaced(self, make_event):
        async def summarizer(config, major, timeline):
            return "  Late penalty conceded in the build  "

        timeline = _timeline(make_event, ["build failed"])
        majors = asyncio.run(classify_events(timeline, ClassifyOptions(llm=LLM), summarizer))
        assert majors[0].summary == "Late penalty conceded in the build"

    def test_failure_keeps_rule_summary(self, make_event):
        async def summarizer(config, major, timeline):
            raise EnrichmentFailure("provider down")

        timeline = _timeline(make_event, ["build failed"])
        majors = asyncio.run(classify_events(timeline, ClassifyOptions(llm=LLM), summarizer))
        assert majors[0].summary == "build failed"

    def test_timeout_keeps_rule_summary(self, make_event):
        async def summarizer(config, major, timeline):
            await asyncio.sleep(1)
            return "too slow"

        timeline = _timeline(make_event, ["build failed"])
        options = ClassifyOptions(llm=LLM, enrichment_timeout=0.01)
        majors = asyncio.run(classify_events(timeline, options, summarizer))
        assert majors[0].summary == "build failed"

    def test_disabled_config_skips_summarizer(self, make_event):
        calls = []

        async def summarizer(config, major, timeline):
            calls.append(major.id)
            return "never"

        disabled = LLMProviderConfig(provider="openai", api_key="k", model="m", enabled=False)
        timeline = _timeline(make_event, ["build failed"])
        majors = asyncio.run(classify_events(timeline, ClassifyOptions(llm=disabled), summarizer))
        assert calls == []
        assert majors[0].summary == "build failed"
