# trigger.py
from __future__ import annotations

from fnmatch import fnmatchcase
from typing import Iterable, Optional, Tuple

from .errors import ConfigurationError
from .model import EVENT_KINDS, Event, TriggerRule


def validate_rules(rules: Iterable[TriggerRule]) -> Tuple[TriggerRule, ...]:
    """Reject rules for event kinds we do not know how to receive."""
    out = tuple(rules)
    for rule in out:
        if rule.kind not in EVENT_KINDS:
            raise ConfigurationError(
                f"Unknown trigger event {rule.kind!r}. Expected one of: {', '.join(EVENT_KINDS)}"
            )
        for pattern in rule.branches:
            if not isinstance(pattern, str) or not pattern:
                raise ConfigurationError(f"Invalid branch pattern for {rule.kind}: {pattern!r}")
    return out


def _branch_matches(branch: str, patterns: Tuple[str, ...]) -> bool:
    # no patterns -> every branch
    if not patterns:
        return True
    return any(fnmatchcase(branch, p) for p in patterns)


class TriggerListener:
    """Decides whether an incoming event starts a run."""

    def __init__(self, rules: Iterable[TriggerRule]):
        self.rules = validate_rules(rules)

    def matching_rule(self, event: object) -> Optional[TriggerRule]:
        if not isinstance(event, Event):
            return None
        if event.kind not in EVENT_KINDS:
            return None
        if not isinstance(event.branch, str) or not event.branch:
            return None

        for rule in self.rules:
            if rule.kind == event.kind and _branch_matches(event.branch, rule.branches):
                return rule
        return None

    def accepts(self, event: object) -> bool:
        return self.matching_rule(event) is not None
