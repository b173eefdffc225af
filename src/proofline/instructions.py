"""User instruction extraction from the timeline."""

import re

from proofline.ids import stable_id
from proofline.models import Actor, TimelineEvent, UserInstruction
from proofline.text import extract_readable_text, normalize_text, tokenize

_ACKNOWLEDGEMENT = re.compile(r"^(go|go on|continue|ok|okay|yes|done|run|继续|好的|开始|走起)$")
_NUMBERED_GO = re.compile(r"^\d+\s*\.?\s*(go|go on|go ahead|continue)$")

# Prefixes and fragments of injected agent context, not typed by the user
_BOILERPLATE_PREFIXES = (
    "# agents.md instructions",
    "agents.md instructions",
    "<environment_context>",
    "environment context",
)
_BOILERPLATE_FRAGMENTS = (
    "a skill is a set of local instructions",
    "turn aborted",
)


def is_boilerplate(text: str) -> bool:
    lowered = text.lower()
    if lowered.startswith(_BOILERPLATE_PREFIXES):
        return True
    if "cwd /users/" in lowered and "shell zsh" in lowered:
        return True
    return any(fragment in lowered for fragment in _BOILERPLATE_FRAGMENTS)


def is_trivial(instruction: UserInstruction) -> bool:
    """Acknowledgements like "ok" or "3. go" that carry no topic."""
    normalized = instruction.normalized
    if not normalized:
        return True
    if _ACKNOWLEDGEMENT.match(normalized) or _NUMBERED_GO.match(normalized):
        return True
    return len(instruction.tokens) <= 1 and len(normalized) <= 8


def build_user_instructions(timeline: list[TimelineEvent]) -> list[UserInstruction]:
    """One instruction per non-empty, non-boilerplate user event, sorted by ts."""
    instructions = []
    for event in timeline:
        if event.actor != Actor.USER:
            continue
        text = extract_readable_text(str(event.detail or ""))
        if not text or is_boilerplate(text):
            continue
        normalized = normalize_text(text)
        instructions.append(UserInstruction(
            id=stable_id("instruction", event.id),
            ts=event.ts,
            text=text,
            normalized=normalized,
            tokens=tokenize(normalized),
            source_event_id=event.id,
        ))
    instructions.sort(key=lambda item: item.ts)
    return instructions
