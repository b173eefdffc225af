"""Higher-level insights over one run: instructions, repetition, deltas, narrative."""

from dataclasses import dataclass

import structlog

from proofline.deltas import build_feature_deltas
from proofline.instructions import build_user_instructions
from proofline.models import (
    AnalysisInsights,
    EvidenceItem,
    MajorEvent,
    ProjectScope,
    QueryIntent,
    TimelineEvent,
)
from proofline.narrative import build_timeline_narrative
from proofline.repetition import build_repetition_clusters

logger = structlog.get_logger()


@dataclass(frozen=True)
class InsightsInput:
    query: QueryIntent | None
    scope: ProjectScope
    timeline: list[TimelineEvent]
    evidence: list[EvidenceItem]
    major_events: list[MajorEvent]


def analyze_insights(data: InsightsInput) -> AnalysisInsights:
    """Pure function of its input; every list is empty when the timeline and evidence are."""
    instructions = build_user_instructions(data.timeline)
    insights = AnalysisInsights(
        instructions=instructions,
        repetition=build_repetition_clusters(instructions, data.evidence),
        feature_deltas=build_feature_deltas(data.scope, data.evidence),
        timeline_narrative=build_timeline_narrative(
            data.timeline, data.major_events, data.evidence, instructions),
    )
    logger.debug(
        "insights.analyzed",
        instructions=len(insights.instructions),
        repetition=len(insights.repetition),
        feature_deltas=len(insights.feature_deltas),
        segments=len(insights.timeline_narrative),
    )
    return insights
