"""Question parsing: time range, project hint, language and intent type."""

import re
from datetime import datetime, timedelta, timezone

from proofline.ids import now_ms
from proofline.models import QueryIntent, TimeRange

DAY_MS = 24 * 60 * 60 * 1000

DURATION_PATTERN = re.compile(r"^(\d+)(s|m|h|d|w)$")

DURATION_MULTIPLIERS = {
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "d": timedelta(days=1),
    "w": timedelta(weeks=1),
}

_CJK = re.compile(r"[一-鿿]")
_LATIN = re.compile(r"[a-z]", re.IGNORECASE)

_YESTERDAY = re.compile(r"(昨天|yesterday)")
_LAST_3_DAYS = re.compile(r"(最近三天|近三天|过去三天|last\s*3\s*days|past\s*3\s*days|recent\s*3\s*days)")
_TODAY = re.compile(r"(今天|today)")
_LAST_DAY = re.compile(r"(最近一天|过去一天|last\s*day|past\s*day|last\s*24\s*hours|past\s*24\s*hours)")

# Tried in order; the first capture wins
_HINT_PATTERNS = (
    re.compile(r"对[“\"'`]?([A-Za-z0-9._/-]+)[”\"'`]?项目"),
    re.compile(r"在[“\"'`]?([A-Za-z0-9._/-]{2,})[”\"'`]?(?:项目|工程|仓库|repo|里|中)?"),
    re.compile(r"(?:on|for)\s+[\"'`]?([A-Za-z0-9._/-]+)[\"'`]?\s*(?:project|repo|folder)?", re.IGNORECASE),
    re.compile(r"in\s+[\"'`]?([A-Za-z0-9._/-]{2,})[\"'`]?\s*(?:project|repo|folder|workspace)?",
               re.IGNORECASE),
    re.compile(r"[“\"'`]([A-Za-z0-9._/-]{2,})[”\"'`]"),
)

_ALL_PROJECTS = re.compile(
    r"(所有项目|全部项目|哪些项目|什么项目|哪几个项目|all projects|all repos|all folders"
    r"|which projects|what projects)"
)
_PROJECT_WORDS = re.compile(r"(项目|repo|repository|folder|workspace)")
_ACTIVITY = re.compile(r"(做了什么|干嘛了|what\s+did\s+i\s+do|what\s+did\s+we\s+do)")
_RECAP = re.compile(r"(回顾|总结|recap|summary|daily)")
_HISTORY = re.compile(r"(成长史|历史|timeline|history)")


def parse_duration_ms(text: str) -> int:
    """Convert "45s", "30m", "24h", "7d" or "2w" to milliseconds."""
    match = DURATION_PATTERN.match(text.strip())
    if not match:
        raise ValueError(f"Invalid duration: {text!r} (expected e.g. 30m, 24h, 7d, 2w)")
    delta = DURATION_MULTIPLIERS[match.group(2)] * int(match.group(1))
    return int(delta.total_seconds() * 1000)


def parse_since_ms(since: str, now: int | None = None) -> int:
    """Relative duration ("24h") or ISO date/datetime to an epoch-ms lower bound.

    Naive dates are taken as UTC.
    """
    now = now_ms() if now is None else now
    if DURATION_PATTERN.match(since.strip()):
        return now - parse_duration_ms(since)

    for fmt in ("%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M:%S%z"):
        try:
            dt = datetime.strptime(since.strip(), fmt)
        except ValueError:
            continue
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return int(dt.timestamp() * 1000)

    raise ValueError(f"Invalid --since value: {since!r}")


def since_range(since: str, now: int | None = None) -> TimeRange:
    now = now_ms() if now is None else now
    return TimeRange(start=parse_since_ms(since, now), end=now, label=f"since_{since}", source="flag")


def start_of_day(ts: int) -> int:
    """Local midnight of the day containing ``ts``."""
    local = datetime.fromtimestamp(ts / 1000).replace(hour=0, minute=0, second=0, microsecond=0)
    return int(local.timestamp() * 1000)


def detect_language(text: str) -> str:
    has_cjk = _CJK.search(text) is not None
    has_latin = _LATIN.search(text) is not None
    if has_cjk and has_latin:
        return "mixed"
    return "zh" if has_cjk else "en"


def resolve_time_range(normalized: str, now: int) -> TimeRange:
    if _YESTERDAY.search(normalized):
        today = start_of_day(now)
        return TimeRange(start=today - DAY_MS, end=today - 1, label="yesterday", source="query")
    if _LAST_3_DAYS.search(normalized):
        return TimeRange(start=now - 3 * DAY_MS, end=now, label="last_3_days", source="query")
    if _TODAY.search(normalized):
        return TimeRange(start=start_of_day(now), end=now, label="today", source="query")
    if _LAST_DAY.search(normalized):
        return TimeRange(start=now - DAY_MS, end=now, label="last_24h", source="query")
    return TimeRange(start=now - DAY_MS, end=now, label="default_last_24h", source="default")


def extract_project_hint(question: str) -> str | None:
    for pattern in _HINT_PATTERNS:
        match = pattern.search(question)
        if match and match.group(1):
            return match.group(1)
    return None


def infer_type(normalized: str) -> str:
    if _ACTIVITY.search(normalized):
        return "project_activity"
    if _RECAP.search(normalized):
        return "daily_recap"
    if _HISTORY.search(normalized):
        return "history"
    return "generic"


def parse_query(question: str, now: int | None = None) -> QueryIntent:
    now = now_ms() if now is None else now
    normalized = question.strip().lower()
    query_type = infer_type(normalized)
    hint = extract_project_hint(question)
    asks_all = _ALL_PROJECTS.search(normalized) is not None
    asks_project = (
        asks_all
        or bool(hint)
        or _PROJECT_WORDS.search(normalized) is not None
        or query_type == "project_activity"
    )
    return QueryIntent(
        raw=question,
        normalized=normalized,
        language=detect_language(question),
        type=query_type,
        asks_project=asks_project,
        asks_all_projects=asks_all,
        time_range=resolve_time_range(normalized, now),
        project_hint=hint,
    )
