"""Deduplicate evidence observed through more than one channel."""

import structlog

from proofline.ids import stable_id
from proofline.models import ConflictResolution, EvidenceConflict, EvidenceItem

logger = structlog.get_logger()

BUCKET_MS = 60_000
CONFLICT_REASON = "priority_rule:file_change>tool>assistant>user"


def collision_key(item: EvidenceItem) -> tuple[int, str, str]:
    """(minute bucket, project, case-insensitive summary)."""
    return (item.ts // BUCKET_MS, item.project_id or "-", item.summary.lower())


def _rank(item: EvidenceItem) -> tuple[int, float, int]:
    return (item.priority, item.confidence, item.ts)


def resolve_conflicts(items: list[EvidenceItem]) -> ConflictResolution:
    """Keep one winner per collision group: priority, then confidence, then most recent.

    Groups of one pass through untouched; every larger group yields one
    EvidenceConflict naming the winner and the discarded ids.
    """
    groups: dict[tuple[int, str, str], list[EvidenceItem]] = {}
    for item in items:
        groups.setdefault(collision_key(item), []).append(item)

    kept: list[EvidenceItem] = []
    conflicts: list[EvidenceConflict] = []

    for group in groups.values():
        if len(group) == 1:
            kept.append(group[0])
            continue

        ranked = sorted(group, key=_rank, reverse=True)
        winner = ranked[0]
        kept.append(winner)
        conflicts.append(EvidenceConflict(
            id=stable_id("conflict", winner.id, len(ranked)),
            winner_evidence_id=winner.id,
            discarded_evidence_ids=[x.id for x in ranked[1:]],
            reason=CONFLICT_REASON,
            confidence=winner.confidence,
        ))

    kept.sort(key=lambda item: item.ts)
    if conflicts:
        logger.debug("conflicts.resolved", groups=len(conflicts), kept=len(kept))
    return ConflictResolution(evidence=kept, conflicts=conflicts)
