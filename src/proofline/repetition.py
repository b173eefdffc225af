"""Repeated-instruction clustering and stuck/polish diagnosis."""

import re
from bisect import bisect_left, bisect_right

from proofline.ids import stable_id
from proofline.instructions import is_trivial
from proofline.models import (
    EvidenceItem,
    EvidenceType,
    Interpretation,
    RepetitionCluster,
    RepetitionKind,
    UserInstruction,
)

PROGRESS_WINDOW_MS = 20 * 60 * 1000
MAX_CLUSTERS = 12
TOPIC_TOKENS = 3

_STUCK_LANGUAGE = re.compile(
    r"(还是|仍然|不行|失败|报错|卡住|没好|again|still|retry|not\s+work|cannot|can't|failed|error)"
)


def topic_key(tokens: list[str]) -> str:
    return "|".join([t for t in tokens if len(t) > 1][:TOPIC_TOKENS])


def file_changes_around(instruction_ts: list[int], evidence: list[EvidenceItem],
                        window_ms: int = PROGRESS_WINDOW_MS) -> int:
    """Sum over instructions of file_change evidence within ``window_ms`` either side."""
    change_ts = sorted(item.ts for item in evidence if item.type == EvidenceType.FILE_CHANGE)
    if not change_ts or not instruction_ts:
        return 0
    total = 0
    for ts in instruction_ts:
        total += bisect_right(change_ts, ts + window_ms) - bisect_left(change_ts, ts - window_ms)
    return total


def has_stuck_language(texts: list[str]) -> bool:
    return _STUCK_LANGUAGE.search(" ".join(texts).lower()) is not None


def interpret(kind: RepetitionKind, count: int, texts: list[str],
              progress: int) -> Interpretation:
    if count >= 3 and kind == RepetitionKind.EXACT_REPEAT and (
            has_stuck_language(texts) or progress <= 1):
        return Interpretation.STUCK_ISSUE
    if count >= 3 and progress >= max(2, count - 1):
        return Interpretation.FEATURE_POLISH
    return Interpretation.NORMAL_ITERATION


def _cluster(cluster_id: str, topic: str, kind: RepetitionKind,
             group: list[UserInstruction], evidence: list[EvidenceItem]) -> RepetitionCluster:
    progress = file_changes_around([item.ts for item in group], evidence)
    return RepetitionCluster(
        id=cluster_id,
        topic=topic or "general",
        count=len(group),
        instruction_ids=[item.id for item in group],
        kind=kind,
        interpretation=interpret(kind, len(group), [item.text for item in group], progress),
    )


def build_repetition_clusters(instructions: list[UserInstruction],
                              evidence: list[EvidenceItem]) -> list[RepetitionCluster]:
    """Exact and topic repeat clusters among non-trivial instructions.

    A topic group whose members all share one normalized text is already an
    exact group and is not reported twice. Groups that only partly overlap an
    exact group are reported under both kinds.
    """
    scoped = [item for item in instructions if not is_trivial(item)]

    by_normalized: dict[str, list[UserInstruction]] = {}
    by_topic: dict[str, list[UserInstruction]] = {}
    for item in scoped:
        by_normalized.setdefault(item.normalized, []).append(item)
        key = topic_key(item.tokens)
        if key:
            by_topic.setdefault(key, []).append(item)

    clusters = []
    for normalized, group in by_normalized.items():
        if len(group) < 2:
            continue
        topic = " / ".join(group[0].tokens[:TOPIC_TOKENS]) or normalized[:80]
        clusters.append(_cluster(stable_id("repeat", "exact", normalized), topic,
                                 RepetitionKind.EXACT_REPEAT, group, evidence))

    for key, group in by_topic.items():
        if len(group) < 2:
            continue
        if all(item.normalized == group[0].normalized for item in group):
            continue
        clusters.append(_cluster(stable_id("repeat", "topic", key), key.replace("|", " / "),
                                 RepetitionKind.TOPIC_REPEAT, group, evidence))

    clusters.sort(key=lambda c: (-c.count, c.kind.value))
    return clusters[:MAX_CLUSTERS]
