"""Rule-based classification of timeline events into major events."""

import asyncio
from dataclasses import dataclass, replace
from typing import Awaitable, Callable

import structlog

from proofline import providers
from proofline.ids import stable_id
from proofline.models import EventRule, LLMProviderConfig, MajorEvent, TimelineEvent
from proofline.rules import DEFAULT_RULES

logger = structlog.get_logger()

SUMMARY_MAX_CHARS = 220

Summarizer = Callable[[LLMProviderConfig, MajorEvent, list[TimelineEvent]], Awaitable[str]]


@dataclass(frozen=True)
class ClassifyOptions:
    rules: tuple[EventRule, ...] = DEFAULT_RULES
    follow_up_window: int = 10
    follow_up_count: int = 3
    llm: LLMProviderConfig | None = None
    enrichment_timeout: float = 20.0


def event_text(event: TimelineEvent) -> str:
    return f"{event.label} {event.detail} {' '.join(event.tags)}".lower()


def score_rule(rule: EventRule, text: str) -> float:
    """Score lowercased event text against one rule.

    Zero when an all_of token is missing, a not_ token is present, or no
    seed any_of token matches. Bootstrapped boost tokens only add to a
    score the seeds already earned.
    """
    if rule.all_of and not all(t.lower() in text for t in rule.all_of):
        return 0
    if rule.not_ and any(t.lower() in text for t in rule.not_):
        return 0

    seed_hits = sum(1 for t in rule.any_of if t.lower() in text)
    if seed_hits == 0:
        return 0
    boost_hits = sum(1 for t in rule.boost if t.lower() in text)
    return (seed_hits + boost_hits) * rule.weight


def top_rule(event: TimelineEvent, rules: tuple[EventRule, ...] | list[EventRule],
             ) -> tuple[EventRule, float] | None:
    """Highest-scoring rule (earliest in list order on ties), or None below its min_score."""
    text = event_text(event)
    best: tuple[EventRule, float] | None = None
    for rule in rules:
        score = score_rule(rule, text)
        if best is None or score > best[1]:
            best = (rule, score)
    if best is None or best[1] <= 0 or best[1] < best[0].min_score:
        return None
    return best


def follow_up_ids(timeline: list[TimelineEvent], index: int,
                  window: int, count: int) -> list[str]:
    """Ids of the next ``count`` events inside the next ``window`` events."""
    following = timeline[index + 1:index + 1 + max(0, window)]
    return [e.id for e in following[:max(0, count)]]


def _rule_major_event(event: TimelineEvent, rule: EventRule, score: float,
                      followups: list[str]) -> MajorEvent:
    return MajorEvent(
        id=stable_id(event.id, rule.id, event.ts),
        client=event.client,
        ts=event.ts,
        type=rule.event_type,
        title=f"{rule.event_type.value}: {event.label}",
        summary=event.detail[:SUMMARY_MAX_CHARS],
        score=round(score, 2),
        trigger_event_id=event.id,
        follow_up_event_ids=followups,
        rule_id=rule.id,
    )


async def _enrich(major: MajorEvent, timeline: list[TimelineEvent],
                  options: ClassifyOptions, summarizer: Summarizer) -> MajorEvent:
    try:
        summary = await asyncio.wait_for(
            summarizer(options.llm, major, timeline),
            timeout=options.enrichment_timeout,
        )
    except Exception as e:
        logger.warning("classify.enrichment_failed", major_event=major.id, error=str(e))
        return major
    if not summary or not summary.strip():
        return major
    return replace(major, summary=summary.strip())


async def classify_events(timeline: list[TimelineEvent],
                          options: ClassifyOptions | None = None,
                          summarizer: Summarizer | None = None) -> list[MajorEvent]:
    """Emit at most one major event per timeline event.

    Without an enabled LLM config the result is a pure function of the
    timeline and options. Enrichment runs sequentially, in timeline order;
    a failed or slow call keeps the rule-derived summary.
    """
    options = options or ClassifyOptions()
    enrich = options.llm is not None and options.llm.enabled
    summarizer = summarizer or providers.summarize_major_event

    major_events: list[MajorEvent] = []
    for i, event in enumerate(timeline):
        match = top_rule(event, options.rules)
        if match is None:
            continue
        rule, score = match
        followups = follow_up_ids(timeline, i, options.follow_up_window,
                                  options.follow_up_count)
        major = _rule_major_event(event, rule, score, followups)
        if enrich:
            major = await _enrich(major, timeline, options, summarizer)
        major_events.append(major)

    return major_events
