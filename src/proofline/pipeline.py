"""Stage wiring: one batch in, one RunOutput out."""

import uuid
from dataclasses import dataclass, field

import structlog

from proofline.bootstrap import bootstrap_rules_from_timeline
from proofline.chains import build_action_chains
from proofline.classify import ClassifyOptions, Summarizer, classify_events
from proofline.config import Settings, load_settings
from proofline.conflicts import resolve_conflicts
from proofline.evidence import CollectEvidenceInput, collect_evidence
from proofline.ids import now_ms, stable_id, uniq
from proofline.insights import InsightsInput, analyze_insights
from proofline.models import (
    AllProjectsScope,
    EvidenceItem,
    LLMProviderConfig,
    ProjectCandidate,
    ProjectScope,
    QueryIntent,
    RunContext,
    RunOutput,
    SingleProjectScope,
    TimelineEvent,
    TimeRange,
)
from proofline.normalize import normalize
from proofline.paths import create_audit, path_contains
from proofline.projects import (
    default_project_scope,
    discover_projects,
    match_projects,
    metadata_root,
    scope_roots,
)
from proofline.query import parse_query, since_range
from proofline.replay import build_replay_segments
from proofline.rules import DEFAULT_RULES
from proofline.serialization import Batch

logger = structlog.get_logger()


@dataclass(frozen=True)
class PipelineOptions:
    question: str | None = None
    project: str | None = None
    all_projects: bool = False
    since: str | None = None
    roots: list[str] = field(default_factory=list)
    bootstrap: bool = True
    llm: LLMProviderConfig | None = None
    replay_before: int = 5
    replay_after: int = 12


def batch_range(timeline: list[TimelineEvent], now: int) -> TimeRange:
    """Range spanning every event in the batch; ``now`` alone for an empty batch."""
    if not timeline:
        return TimeRange(start=now, end=now, label="batch", source="default")
    return TimeRange(start=timeline[0].ts, end=timeline[-1].ts, label="batch", source="default")


def select_scope(candidates: list[ProjectCandidate], query: QueryIntent | None,
                 options: PipelineOptions) -> ProjectScope:
    """Explicit flags first, then the query's preference; ambiguity falls back to all projects."""
    if options.all_projects:
        return AllProjectsScope(projects=list(candidates))
    if options.project:
        matched = match_projects(candidates, options.project)
        if matched:
            return SingleProjectScope(project=matched[0])
        logger.warning("pipeline.project_not_found", hint=options.project,
                       candidates=len(candidates))
    scope = default_project_scope(candidates, query)
    if scope is None:
        return AllProjectsScope(projects=list(candidates))
    return scope


def narrow_scope(scope: ProjectScope, evidence: list[EvidenceItem]) -> ProjectScope:
    """Drop projects from an all-projects scope that no evidence was attributed to."""
    match scope:
        case SingleProjectScope():
            return scope
        case AllProjectsScope(projects=projects):
            if not projects:
                return scope
            active = {item.project_id for item in evidence if item.project_id}
            return AllProjectsScope(projects=[p for p in projects if p.id in active])
    raise TypeError(f"Unknown project scope: {scope!r}")


def in_scope(event: TimelineEvent, scope: ProjectScope) -> bool:
    """Events without a root hint always belong; others must sit under an in-scope root."""
    root = metadata_root(event.metadata or {})
    roots = scope_roots(scope)
    if not root or not roots:
        return True
    return any(path_contains(r, root) for r in roots)


def filter_timeline(timeline: list[TimelineEvent], time_range: TimeRange,
                    scope: ProjectScope) -> list[TimelineEvent]:
    return [e for e in timeline if time_range.contains(e.ts) and in_scope(e, scope)]


async def run_pipeline(batch: Batch, options: PipelineOptions | None = None,
                       settings: Settings | None = None, now: int | None = None,
                       summarizer: Summarizer | None = None) -> RunOutput:
    """Run every stage over one batch.

    The time range comes from ``since``, then the question, then the span
    of the batch itself.
    """
    options = options or PipelineOptions()
    settings = settings or load_settings()
    now = now_ms() if now is None else now
    log = logger.bind(client=batch.client)

    query = parse_query(options.question, now) if options.question else None
    timeline_all = batch.timeline if batch.timeline is not None else normalize(batch.raw_events)
    if options.since:
        time_range = since_range(options.since, now)
    elif query is not None:
        time_range = query.time_range
    else:
        time_range = batch_range(timeline_all, now)

    candidates = batch.projects or discover_projects(batch.client, batch.raw_events)
    preliminary = select_scope(candidates, query, options)
    log.debug("pipeline.scope", mode=preliminary.mode, projects=len(scope_roots(preliminary)),
              range=time_range.label)

    audit = create_audit(batch.client)
    allowed_roots = uniq([*options.roots, *scope_roots(preliminary)])
    collected = collect_evidence(CollectEvidenceInput(
        client=batch.client,
        scope=preliminary,
        range=time_range,
        timeline=timeline_all,
        audit=audit,
        allowed_roots=allowed_roots,
        raw_events=batch.raw_events,
        query=query,
        max_files_per_root=settings.max_files_per_root,
    ))
    resolution = resolve_conflicts(collected)
    scope = narrow_scope(preliminary, resolution.evidence)

    timeline = filter_timeline(timeline_all, time_range, scope)
    rules = bootstrap_rules_from_timeline(timeline) if options.bootstrap else DEFAULT_RULES
    major_events = await classify_events(timeline, ClassifyOptions(
        rules=rules,
        follow_up_window=settings.follow_up_window,
        follow_up_count=settings.follow_up_count,
        llm=options.llm,
        enrichment_timeout=settings.llm_timeout,
    ), summarizer=summarizer)
    chains = build_action_chains(timeline, major_events, resolution.evidence)
    replay = build_replay_segments(timeline, major_events,
                                   options.replay_before, options.replay_after)
    insights = analyze_insights(InsightsInput(
        query=query,
        scope=scope,
        timeline=timeline,
        evidence=resolution.evidence,
        major_events=major_events,
    ))

    context = RunContext(
        run_id=stable_id(batch.client, now, uuid.uuid4().hex),
        client=batch.client,
        started_at=timeline[0].ts if timeline else time_range.start,
        ended_at=timeline[-1].ts if timeline else time_range.end,
        selected_by="flag" if options.project or options.all_projects else "auto",
        data_roots=uniq([*options.roots, *scope_roots(scope)]),
        since_ms=now - time_range.start if options.since else None,
    )
    log.info("pipeline.completed", run_id=context.run_id, timeline=len(timeline),
             evidence=len(resolution.evidence), major_events=len(major_events))

    return RunOutput(
        context=context,
        query=query,
        project_scope=scope,
        raw_events=batch.raw_events,
        timeline=timeline,
        major_events=major_events,
        action_chains=chains,
        evidence=resolution.evidence,
        conflicts=resolution.conflicts,
        insights=insights,
        replay=replay,
        audit=audit,
    )
