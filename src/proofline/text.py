"""Text mining helpers: unwrap JSON-ish payloads, normalize and tokenize."""

import json
import re
import unicodedata

MAX_DEPTH = 5
MAX_FIELDS = 20
MAX_TEXT_CHARS = 1500

PREFERRED_KEYS = ("text", "content", "message", "input", "prompt", "detail")
SKIPPED_KEYS = frozenset({"type", "role", "id", "name"})

EN_STOPWORDS = frozenset({
    "the", "a", "an", "and", "or", "to", "for", "in", "of", "on", "at", "is",
    "are", "was", "were", "be", "been", "with", "that", "this", "it", "what",
    "which", "did", "do", "does", "yesterday", "today", "last", "days", "day",
    "project", "repo", "folder", "workspace", "please", "need", "type",
    "input", "text", "go", "ahead", "implement", "plan",
})

ZH_STOPWORDS = frozenset({
    "我", "你", "他", "她", "它", "我们", "你们", "他们", "做", "做了", "什么",
    "哪些", "项目", "昨天", "今天", "最近", "三天", "一下", "这个", "那个",
    "然后", "现在", "帮我", "请", "需要", "就是", "还是", "已经", "进行",
    "继续", "分析", "改动", "更新", "修复",
})

MAX_TOKENS = 14

_MARKDOWN_CHARS = re.compile(r"[`*_#<\[\]]|(?<!-)>")
_WHITESPACE = re.compile(r"\s+")
_TEXT_FIELD = re.compile(r'"text"\s*:\s*"((?:\\.|[^"\\])*)"')
_TEXT_FIELD_START = re.compile(r'"text"\s*:\s*"')
_UNICODE_ESCAPE = re.compile(r"\\u([0-9a-fA-F]{4})")
_UNSAFE_CHARS = re.compile(r"[^\w\s./\-]")
_TOKEN = re.compile(r"[一-鿿]{1,4}|[a-z0-9][a-z0-9._/\-]+", re.IGNORECASE)
_CJK_ONLY = re.compile(r"^[一-鿿]+$")


def strip_markdown(text: str) -> str:
    return _WHITESPACE.sub(" ", _MARKDOWN_CHARS.sub(" ", text)).strip()


def safe_json_loads(text: str):
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        return None


def _scan_unterminated(text: str, start: int) -> str:
    """Read a JSON string body from ``start`` up to the closing quote or end of text."""
    out = []
    escaped = False
    for char in text[start:]:
        if escaped:
            out.append(char)
            escaped = False
            continue
        if char == "\\":
            out.append(char)
            escaped = True
            continue
        if char == '"':
            break
        out.append(char)
    return "".join(out).strip()


def extract_text_field(text: str) -> str | None:
    """Pull the first ``"text": "..."`` value out of JSON-like text, even if truncated."""
    match = _TEXT_FIELD.search(text)
    captured = match.group(1) if match else None
    if not captured:
        marker = _TEXT_FIELD_START.search(text)
        if marker is None:
            return None
        captured = _scan_unterminated(text, marker.end()) or None
    if not captured:
        return None

    unescaped = _UNICODE_ESCAPE.sub(lambda m: chr(int(m.group(1), 16)), captured)
    unescaped = (unescaped.replace('\\"', '"')
                 .replace("\\n", " ").replace("\\r", " ").replace("\\t", " "))
    return strip_markdown(unescaped) or None


def _looks_like_json(raw: str) -> bool:
    if raw.startswith(("{", "[")):
        return True
    return raw.startswith(('"', "'")) and len(raw) > 2


def collect_text_fields(value, out: list[str], depth: int = 0) -> None:
    """Recursively gather human text from a str/list/dict value.

    Objects contribute their preferred keys when any are present, otherwise
    every non-string child except bookkeeping keys. Recursion depth and the
    number of collected fields are both capped.
    """
    if depth > MAX_DEPTH or len(out) > MAX_FIELDS:
        return

    if isinstance(value, str):
        raw = value.strip()
        field = extract_text_field(raw)
        if field:
            out.append(field)
            return
        if _looks_like_json(raw):
            parsed = safe_json_loads(raw)
            if parsed is not None:
                collect_text_fields(parsed, out, depth + 1)
                return
        cleaned = strip_markdown(value)
        if cleaned:
            out.append(cleaned)
        return

    if isinstance(value, list):
        for item in value:
            collect_text_fields(item, out, depth + 1)
        return

    if not isinstance(value, dict):
        return

    preferred = [key for key in PREFERRED_KEYS if key in value]
    if preferred:
        for key in preferred:
            collect_text_fields(value[key], out, depth + 1)
        return

    for key, item in value.items():
        if key in SKIPPED_KEYS or isinstance(item, str):
            continue
        collect_text_fields(item, out, depth + 1)


def _cap(text: str) -> str:
    return f"{text[:MAX_TEXT_CHARS]}..." if len(text) > MAX_TEXT_CHARS else text


def extract_readable_text(raw: str) -> str:
    """Human-readable text from a possibly JSON-wrapped or escaped payload."""
    trimmed = (raw or "").strip()
    if not trimmed:
        return ""

    field = extract_text_field(trimmed)
    if field:
        return field

    quoted = (trimmed.startswith('"') and trimmed.endswith('"')) or \
        (trimmed.startswith("'") and trimmed.endswith("'"))
    if quoted:
        first = safe_json_loads(trimmed)
        if isinstance(first, str):
            return extract_readable_text(first)

    if trimmed.startswith(("{", "[")):
        parsed = safe_json_loads(trimmed)
        if parsed is not None:
            fields: list[str] = []
            collect_text_fields(parsed, fields)
            joined = " ".join(f.strip() for f in fields if f.strip())
            if joined:
                return _cap(joined)

    return _cap(strip_markdown(trimmed))


def normalize_text(text: str) -> str:
    """NFKC, case-fold, keep letters, digits, whitespace and ``._/-``."""
    folded = unicodedata.normalize("NFKC", text).casefold()
    return _WHITESPACE.sub(" ", _UNSAFE_CHARS.sub(" ", folded)).strip()


def tokenize(text: str) -> list[str]:
    """CJK runs of 1-4 chars or alnum/path-like runs of 2+, minus stopwords."""
    tokens = []
    for token in _TOKEN.findall(text):
        token = token.lower()
        if _CJK_ONLY.match(token):
            if token in ZH_STOPWORDS:
                continue
        elif token in EN_STOPWORDS:
            continue
        tokens.append(token)
    return tokens[:MAX_TOKENS]
