"""Output formatters for runs, replay segments and rules."""

import json

from proofline.ids import format_ts
from proofline.models import (
    AllProjectsScope,
    EventRule,
    MajorEvent,
    ProjectScope,
    ReplaySegment,
    RunOutput,
    SingleProjectScope,
    TimelineEvent,
)
from proofline.serialization import dumps, to_dict

DETAIL_CHARS = 120


def _clip(text: str, limit: int = DETAIL_CHARS) -> str:
    flat = " ".join(text.split())
    return flat if len(flat) <= limit else f"{flat[:limit - 3]}..."


def _scope_str(scope: ProjectScope | None) -> str:
    match scope:
        case None:
            return "(no scope)"
        case SingleProjectScope(project=project):
            return f"single: {project.name}"
        case AllProjectsScope(projects=projects):
            names = [p.name for p in projects]
            if not names:
                return "all: (no projects)"
            if len(names) <= 3:
                return f"all: {', '.join(names)}"
            return f"all: {', '.join(names[:3])} +{len(names) - 3} more"
    raise TypeError(f"Unknown project scope: {scope!r}")


def format_major_event_compact(major: MajorEvent) -> str:
    follow = f" (follow-ups: {len(major.follow_up_event_ids)})" if major.follow_up_event_ids else ""
    return f"[{format_ts(major.ts)}] [{major.type.value}] {major.score:g} — {_clip(major.summary or major.title)}{follow}"


def format_timeline_event_compact(event: TimelineEvent) -> str:
    return f"[{format_ts(event.ts)}] [{event.actor.value}] {_clip(event.label)} — {_clip(event.detail, 80)}"


def format_run_compact(output: RunOutput) -> str:
    """Sectioned text report for one run."""
    ctx = output.context
    lines = [
        f"# Proofline run {ctx.run_id} — {ctx.client} "
        f"({format_ts(ctx.started_at)} → {format_ts(ctx.ended_at)} UTC)",
        f"# {len(output.timeline)} events | {len(output.evidence)} evidence "
        f"| {len(output.conflicts)} conflicts | scope {_scope_str(output.project_scope)}",
        "",
    ]
    if output.query is not None:
        lines.insert(1, f"# Q: {output.query.raw} [{output.query.time_range.label}]")
    header = len(lines)

    if output.major_events:
        lines.append(f"## Major Events ({len(output.major_events)})")
        lines.extend(format_major_event_compact(m) for m in output.major_events)
        lines.append("")

    if output.action_chains:
        lines.append(f"## Action Chains ({len(output.action_chains)})")
        for chain in output.action_chains:
            lines.append(f"{_clip(chain.summary)} ({len(chain.steps)} steps, conf {chain.confidence:g})")
        lines.append("")

    insights = output.insights
    if insights.feature_deltas:
        lines.append(f"## Feature Deltas ({len(insights.feature_deltas)})")
        for delta in insights.feature_deltas:
            lines.append(f"{delta.area}: {_clip(delta.before, 60)} -> {_clip(delta.after, 60)}")
        lines.append("")

    if insights.repetition:
        lines.append(f"## Repetition ({len(insights.repetition)})")
        for cluster in insights.repetition:
            lines.append(f"[{cluster.interpretation.value}] {cluster.topic} x{cluster.count} ({cluster.kind.value})")
        lines.append("")

    if insights.timeline_narrative:
        lines.append("## Narrative")
        for segment in insights.timeline_narrative:
            lines.append(f"{segment.title} [{format_ts(segment.start)} → {format_ts(segment.end)}]")
            lines.append(f"  {segment.summary}")
        lines.append("")

    if len(lines) == header:
        lines.append("(no activity in range)")
    return "\n".join(lines).rstrip()


def format_run_json(output: RunOutput) -> str:
    return dumps(output)


def format_replay_compact(segments: list[ReplaySegment]) -> str:
    if not segments:
        return "(no major events to replay)"
    blocks = []
    for segment in segments:
        lines = [f">> {format_major_event_compact(segment.focus)}"]
        lines.extend(f"   - {format_timeline_event_compact(e)}" for e in segment.before)
        lines.append(f"   * {_clip(segment.focus.title)}")
        lines.extend(f"   + {format_timeline_event_compact(e)}" for e in segment.after)
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def format_replay_json(segments: list[ReplaySegment]) -> str:
    return dumps(segments)


def format_rules_compact(rules: tuple[EventRule, ...] | list[EventRule]) -> str:
    lines = []
    for rule in rules:
        boost = f" +boost[{', '.join(rule.boost)}]" if rule.boost else ""
        lines.append(f"{rule.id} [{rule.event_type.value}] x{rule.weight:g} "
                     f"seeds={len(rule.any_of)}{boost}")
    return "\n".join(lines)


def format_rules_json(rules: tuple[EventRule, ...] | list[EventRule]) -> str:
    return dumps(list(rules))


def format_runs_compact(runs: list[dict]) -> str:
    if not runs:
        return "(no runs)"
    lines = []
    for run in runs:
        question = f' "{run["question"]}"' if run.get("question") else ""
        lines.append(
            f"[{run['runId']}] [{format_ts(run['startedAt'])}] {run['client']}{question} — "
            f"{run['timeline']} events, {run['majorEvents']} major, {run['evidence']} evidence"
        )
    return "\n".join(lines)


def format_runs_json(runs: list[dict]) -> str:
    return json.dumps(to_dict(runs), indent=2, ensure_ascii=False)
