"""Before/after feature deltas derived from file-change evidence."""

import os
import re
from dataclasses import dataclass, field

from proofline.ids import stable_id, uniq
from proofline.models import (
    AllProjectsScope,
    EvidenceItem,
    EvidenceType,
    FeatureDelta,
    ProjectScope,
    SingleProjectScope,
)
from proofline.projects import match_project
from proofline.text import extract_readable_text, normalize_text, strip_markdown, tokenize

HOUR_MS = 60 * 60 * 1000
CONTEXT_WINDOW_MS = 45 * 60 * 1000
MAX_DELTAS = 10
MAX_FILES = 6
MAX_BASIS_GROUP_IDS = 8
MAX_SUMMARY_CHARS = 110

_CODE_NOISE = re.compile(r"(fromnodeid|tonodeid|artifactedge| uuid | let | func | struct | class )",
                         re.IGNORECASE)
_ZH_PHRASE = re.compile(r"从(.{1,80})改成(.{1,80})")
_ARROW_PHRASE = re.compile(r"(.{1,100})\s*->\s*(.{1,100})")
_EN_PHRASE = re.compile(r"from\s+(.{1,80})\s+to\s+(.{1,80})", re.IGNORECASE)
_CHANGE_CUE = re.compile(
    r"(改成|修复|删除|新增|调整|优化|update|fix|remove|add|refactor|migrate|rewrite)", re.IGNORECASE)
_TOOL_NOISE = re.compile(
    r"(exit code|wall time|output:|\[(wdyd|devreplay|proofline)\]|experimentalwarning|select project)",
    re.IGNORECASE)
_META_NOISE = re.compile(r"(rerunning|re-run|query|export|insights|inspection|test updates)",
                         re.IGNORECASE)
_SYMBOLS = re.compile(r"[{}()\[\];<>:=]")
_KEY_VALUE_LIST = re.compile(r"^\w+\s*:\s*\w+(,\s*\w+\s*:\s*\w+){2,}")

_BEFORE_TYPES = (EvidenceType.USER_TEXT, EvidenceType.ASSISTANT_TEXT)
_AFTER_TYPES = (EvidenceType.TOOL_RESULT, EvidenceType.ASSISTANT_TEXT)


@dataclass
class _AreaGroup:
    area: str
    project_id: str | None
    first_ts: int
    last_ts: int
    files: set[str] = field(default_factory=set)
    evidence_ids: list[str] = field(default_factory=list)
    confidence_sum: float = 0.0
    count: int = 0

    def add(self, item: EvidenceItem) -> None:
        self.files.add(item.source_path)
        self.evidence_ids.append(item.id)
        self.confidence_sum += item.confidence
        self.count += 1
        self.first_ts = min(self.first_ts, item.ts)
        self.last_ts = max(self.last_ts, item.ts)


def _has_code_noise(text: str) -> bool:
    return _CODE_NOISE.search(f" {text} ") is not None


def capture_phrase(text: str) -> tuple[str | None, str | None]:
    """(before, after) from "从X改成Y", "X -> Y" or "from X to Y"; code-like text yields nothing."""
    trimmed = strip_markdown(extract_readable_text(text))
    if not trimmed or _has_code_noise(trimmed):
        return None, None
    for pattern in (_ZH_PHRASE, _ARROW_PHRASE, _EN_PHRASE):
        match = pattern.search(trimmed)
        if match:
            return match.group(1).strip(), match.group(2).strip()
    return None, None


def _project_root(scope: ProjectScope, path: str, project_id: str | None) -> str | None:
    match scope:
        case SingleProjectScope(project=project):
            return project.root
        case AllProjectsScope(projects=projects):
            if project_id:
                for project in projects:
                    if project.id == project_id:
                        return project.root
            found = match_project(scope, path)
            return found.root if found else None
    raise TypeError(f"Unknown project scope: {scope!r}")


def derive_area(scope: ProjectScope, path: str, project_id: str | None = None) -> str:
    """First two path segments of ``path`` relative to its project root."""
    resolved = os.path.normpath(os.path.abspath(path))
    root = _project_root(scope, resolved, project_id)
    rel = os.path.relpath(resolved, root) if root else os.path.basename(resolved)
    parts = [p for p in rel.replace("\\", "/").split("/") if p and p != "."]
    if not parts:
        return os.path.basename(resolved)
    return "/".join(parts[:2])


def score_candidate(item: EvidenceItem, mode: str, anchor_ts: int,
                    area_tokens: list[str]) -> float:
    text = extract_readable_text(item.detail)
    score = 0.0
    if mode == "before":
        if item.type == EvidenceType.USER_TEXT:
            score += 4
        elif item.type == EvidenceType.ASSISTANT_TEXT:
            score += 2
    else:
        if item.type == EvidenceType.TOOL_RESULT:
            score += 4
        elif item.type == EvidenceType.ASSISTANT_TEXT:
            score += 3

    if _CHANGE_CUE.search(text):
        score += 3
    if any(capture_phrase(text)):
        score += 5
    lowered = text.lower()
    if any(token and token in lowered for token in area_tokens):
        score += 2
    if _TOOL_NOISE.search(text):
        score -= 6
    if _META_NOISE.search(text):
        score -= 8

    return score - abs(item.ts - anchor_ts) / HOUR_MS


def _pick_best(candidates: list[EvidenceItem], mode: str, anchor_ts: int,
               area_tokens: list[str]) -> EvidenceItem | None:
    best: EvidenceItem | None = None
    best_score = 0.0
    for item in candidates:
        score = score_candidate(item, mode, anchor_ts, area_tokens)
        if best is None or score > best_score:
            best, best_score = item, score
    if best is None or best_score <= 0:
        return None
    return best


def _nearest(evidence: list[EvidenceItem], group: _AreaGroup):
    start = group.first_ts - CONTEXT_WINDOW_MS
    end = group.last_ts + CONTEXT_WINDOW_MS
    scoped = [
        item for item in evidence
        if start <= item.ts <= end
        and (not group.project_id or item.project_id == group.project_id)
    ]
    area_tokens = tokenize(normalize_text(group.area.replace("/", " ")))

    before = _pick_best(
        [i for i in scoped if i.ts <= group.first_ts and i.type in _BEFORE_TYPES],
        "before", group.first_ts, area_tokens)
    after = _pick_best(
        [i for i in scoped if i.ts >= group.last_ts and i.type in _AFTER_TYPES],
        "after", group.last_ts, area_tokens)

    phrase = (None, None)
    for source in (before, after):
        if source is None or not source.detail:
            continue
        found = capture_phrase(source.detail)
        if any(found):
            phrase = found
            break
    return before, after, phrase


def summarize_evidence_text(text: str, fallback: str) -> str:
    """Short readable summary, or ``fallback`` when the text looks like code or data."""
    cleaned = strip_markdown(extract_readable_text(text))
    if not cleaned:
        return fallback
    ratio = len(_SYMBOLS.findall(cleaned)) / max(1, len(cleaned))
    if ratio > 0.08 and len(cleaned) > 45:
        return fallback
    if _KEY_VALUE_LIST.match(cleaned) or _has_code_noise(cleaned):
        return fallback
    if len(cleaned) > MAX_SUMMARY_CHARS:
        return f"{cleaned[:MAX_SUMMARY_CHARS]}..."
    return cleaned


def _group_by_area(scope: ProjectScope, evidence: list[EvidenceItem]) -> list[_AreaGroup]:
    groups: dict[tuple[str, str], _AreaGroup] = {}
    for item in evidence:
        if item.type != EvidenceType.FILE_CHANGE:
            continue
        area = derive_area(scope, item.source_path, item.project_id)
        key = (item.project_id or "-", area)
        group = groups.get(key)
        if group is None:
            group = groups[key] = _AreaGroup(area=area, project_id=item.project_id,
                                             first_ts=item.ts, last_ts=item.ts)
        group.add(item)
    return list(groups.values())


def build_feature_deltas(scope: ProjectScope, evidence: list[EvidenceItem]) -> list[FeatureDelta]:
    """Up to 10 area deltas, busiest areas first, each with a before and after line."""
    groups = _group_by_area(scope, evidence)
    groups.sort(key=lambda g: (-g.count, -g.last_ts))

    deltas = []
    for group in groups[:MAX_DELTAS]:
        before_item, after_item, (phrase_before, phrase_after) = _nearest(evidence, group)
        files = sorted(group.files)[:MAX_FILES]

        if phrase_before is not None:
            before = phrase_before
        elif before_item is not None:
            before = summarize_evidence_text(before_item.detail,
                                             f"Started working on issues in {group.area}")
        else:
            before = f"Started from the prior implementation and behavior in {group.area}"

        if phrase_after is not None:
            after = phrase_after
        elif after_item is not None:
            after = summarize_evidence_text(after_item.detail,
                                            f"Completed and validated changes in {group.area}")
        else:
            names = ", ".join(os.path.basename(f) for f in files)
            after = f"Applied and saved changes in {names}"

        basis = uniq([
            *group.evidence_ids[:MAX_BASIS_GROUP_IDS],
            before_item.id if before_item else None,
            after_item.id if after_item else None,
        ])
        confidence = round(min(0.99, group.confidence_sum / max(1, group.count)), 3)

        deltas.append(FeatureDelta(
            id=stable_id("delta", group.project_id or "-", group.area,
                         group.first_ts, group.last_ts),
            area=group.area,
            files=files,
            before=before,
            after=after,
            basis=basis,
            confidence=confidence,
        ))
    return deltas
