"""Session-vocabulary mining that extends the default rule set."""

import re
from collections import Counter
from dataclasses import replace

from proofline.classify import event_text
from proofline.models import EventRule, TimelineEvent
from proofline.rules import DEFAULT_RULES

WORD_PATTERN = re.compile(r"[a-z0-9]+")
MIN_WORD_LENGTH = 4
MIN_OCCURRENCES = 2

# Frequent words that carry no signal about what kind of event happened
_NOISE_WORDS = frozenset({
    "this", "that", "with", "from", "have", "will", "into", "then", "than",
    "when", "what", "there", "their", "they", "them", "been", "were", "also",
    "just", "only", "some", "more", "should", "would", "could", "about",
    "after", "before", "user", "assistant", "system", "message", "codex",
    "claude", "cursor", "vscode", "opencode", "antigravity", "true", "false",
    "null", "none", "text", "type", "content", "input", "output",
})


class RuleBootstrapper:
    """Adds per-session boost tokens to each rule from events its seeds already match."""

    def __init__(self, rules: tuple[EventRule, ...] | list[EventRule] = DEFAULT_RULES,
                 top_keywords: int = 6):
        self.rules = tuple(rules)
        self.top_keywords = top_keywords

    def bootstrap(self, timeline: list[TimelineEvent]) -> tuple[EventRule, ...]:
        """Return a new rule tuple; the input rules are never modified."""
        if self.top_keywords <= 0 or not timeline:
            return self.rules

        texts = [event_text(event) for event in timeline]
        return tuple(self._boost_rule(rule, texts) for rule in self.rules)

    def _boost_rule(self, rule: EventRule, texts: list[str]) -> EventRule:
        seeds = [t.lower() for t in rule.any_of]
        excluded = {t.lower() for t in (*rule.any_of, *rule.all_of, *rule.not_, *rule.boost)}

        bag: Counter[str] = Counter()
        for text in texts:
            if not any(seed in text for seed in seeds):
                continue
            for word in WORD_PATTERN.findall(text):
                if len(word) < MIN_WORD_LENGTH or word.isdigit():
                    continue
                if word in _NOISE_WORDS or word in excluded:
                    continue
                bag[word] += 1

        mined = sorted(
            (w for w, n in bag.items() if n >= MIN_OCCURRENCES),
            key=lambda w: (-bag[w], w),
        )[: self.top_keywords]

        if not mined:
            return rule
        return replace(rule, boost=rule.boost + tuple(mined))


def bootstrap_rules_from_timeline(timeline: list[TimelineEvent],
                                  top_keywords: int = 6,
                                  rules: tuple[EventRule, ...] | list[EventRule] = DEFAULT_RULES,
                                  ) -> tuple[EventRule, ...]:
    return RuleBootstrapper(rules, top_keywords=top_keywords).bootstrap(timeline)
