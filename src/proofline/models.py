"""Data models for the Proofline evidence and insight pipeline.

All timestamps are integer epoch milliseconds.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal


class Actor(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class EvidenceType(str, Enum):
    FILE_CHANGE = "file_change"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    ASSISTANT_TEXT = "assistant_text"
    USER_TEXT = "user_text"
    SYSTEM = "system"


class MajorEventType(str, Enum):
    GOAL = "GOAL"
    ASSIST = "ASSIST"
    PENALTY = "PENALTY"
    YELLOW_CARD = "YELLOW_CARD"
    RED_CARD = "RED_CARD"
    CORNER = "CORNER"
    OFFSIDE = "OFFSIDE"
    SUBSTITUTION = "SUBSTITUTION"


class RepetitionKind(str, Enum):
    EXACT_REPEAT = "exact_repeat"
    TOPIC_REPEAT = "topic_repeat"


class Interpretation(str, Enum):
    FEATURE_POLISH = "feature_polish"
    STUCK_ISSUE = "stuck_issue"
    NORMAL_ITERATION = "normal_iteration"


RAW_EVENT_KINDS = frozenset({
    "user_message", "assistant_message", "tool_use", "tool_result",
    "file_change", "system", "progress", "token", "history_entry",
    "composer", "db_row", "unknown",
})

PATH_ACTIONS = frozenset({"read", "glob", "sqlite", "scan", "runner"})


@dataclass(frozen=True)
class RawEvent:
    id: str
    client: str
    source_path: str
    timestamp: int
    kind: str
    title: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TimelineEvent:
    id: str
    client: str
    ts: int
    label: str
    detail: str
    actor: Actor
    tags: list[str] = field(default_factory=list)
    source_path: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TimeRange:
    start: int
    end: int
    label: str
    source: Literal["query", "flag", "default"] = "default"

    def contains(self, ts: int) -> bool:
        return self.start <= ts <= self.end


@dataclass(frozen=True)
class QueryIntent:
    raw: str
    normalized: str
    language: Literal["zh", "en", "mixed"]
    type: Literal["project_activity", "daily_recap", "history", "generic"]
    asks_project: bool
    asks_all_projects: bool
    time_range: TimeRange
    project_hint: str | None = None


@dataclass(frozen=True)
class ProjectCandidate:
    id: str
    name: str
    root: str
    client: str
    signal_score: float = 0.0
    last_active_at: int = 0
    sources: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class SingleProjectScope:
    project: ProjectCandidate
    mode: Literal["single"] = "single"


@dataclass(frozen=True)
class AllProjectsScope:
    projects: list[ProjectCandidate]
    mode: Literal["all"] = "all"


ProjectScope = SingleProjectScope | AllProjectsScope


@dataclass(frozen=True)
class EvidenceItem:
    id: str
    client: str
    ts: int
    type: EvidenceType
    source_path: str
    summary: str
    detail: str
    confidence: float
    priority: int
    project_id: str | None = None
    event_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EvidenceConflict:
    id: str
    winner_evidence_id: str
    discarded_evidence_ids: list[str]
    reason: str
    confidence: float


@dataclass(frozen=True)
class ConflictResolution:
    evidence: list[EvidenceItem]
    conflicts: list[EvidenceConflict]


@dataclass(frozen=True)
class EventRule:
    id: str
    event_type: MajorEventType
    any_of: tuple[str, ...]
    all_of: tuple[str, ...] = ()
    not_: tuple[str, ...] = ()
    min_score: float = 1
    weight: float = 1
    # Tokens mined from the session by the bootstrapper; they only add to a
    # score once a seed any_of token is present.
    boost: tuple[str, ...] = ()


@dataclass(frozen=True)
class MajorEvent:
    id: str
    client: str
    ts: int
    type: MajorEventType
    title: str
    summary: str
    score: float
    trigger_event_id: str
    follow_up_event_ids: list[str]
    rule_id: str


@dataclass(frozen=True)
class ActionChainStep:
    event_id: str
    ts: int
    label: str
    detail: str
    actor: Actor
    evidence_ids: list[str]


@dataclass(frozen=True)
class ActionChain:
    id: str
    major_event_id: str
    summary: str
    confidence: float
    steps: list[ActionChainStep]
    project_id: str | None = None


@dataclass(frozen=True)
class ReplaySegment:
    event_id: str
    before: list[TimelineEvent]
    focus: MajorEvent
    after: list[TimelineEvent]


@dataclass(frozen=True)
class UserInstruction:
    id: str
    ts: int
    text: str
    normalized: str
    tokens: list[str]
    source_event_id: str | None = None


@dataclass(frozen=True)
class RepetitionCluster:
    id: str
    topic: str
    count: int
    instruction_ids: list[str]
    kind: RepetitionKind
    interpretation: Interpretation


@dataclass(frozen=True)
class FeatureDelta:
    id: str
    area: str
    files: list[str]
    before: str
    after: str
    basis: list[str]
    confidence: float


@dataclass(frozen=True)
class TimelineNarrativeSegment:
    id: str
    start: int
    end: int
    title: str
    summary: str
    evidence_ids: list[str]


@dataclass(frozen=True)
class AnalysisInsights:
    instructions: list[UserInstruction] = field(default_factory=list)
    repetition: list[RepetitionCluster] = field(default_factory=list)
    feature_deltas: list[FeatureDelta] = field(default_factory=list)
    timeline_narrative: list[TimelineNarrativeSegment] = field(default_factory=list)


@dataclass(frozen=True)
class PathAccessRecord:
    path: str
    action: str
    allowed: bool
    reason: str
    ts: int


@dataclass
class PathAccessAudit:
    client: str
    records: list[PathAccessRecord] = field(default_factory=list)


@dataclass(frozen=True)
class LLMProviderConfig:
    provider: Literal["openai", "anthropic", "google"]
    api_key: str
    model: str
    base_url: str | None = None
    enabled: bool = True


@dataclass(frozen=True)
class RunContext:
    run_id: str
    client: str
    started_at: int
    ended_at: int
    selected_by: Literal["auto", "manual", "flag", "env"] = "flag"
    data_roots: list[str] = field(default_factory=list)
    since_ms: int | None = None


@dataclass(frozen=True)
class RunOutput:
    context: RunContext
    raw_events: list[RawEvent]
    timeline: list[TimelineEvent]
    major_events: list[MajorEvent]
    action_chains: list[ActionChain]
    evidence: list[EvidenceItem]
    conflicts: list[EvidenceConflict]
    insights: AnalysisInsights
    replay: list[ReplaySegment]
    audit: PathAccessAudit
    query: QueryIntent | None = None
    project_scope: ProjectScope | None = None
