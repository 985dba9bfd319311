"""Rule records read from the rule store."""

from dataclasses import dataclass, field
from typing import Tuple

from tabsorter.tab_policy.taxonomy import DEFAULT_GROUP_COLOR


@dataclass(frozen=True)
class GroupingRule:
    title: str
    color: str = DEFAULT_GROUP_COLOR
    patterns: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {"title": self.title, "color": self.color, "patterns": list(self.patterns)}


@dataclass(frozen=True)
class AutoCloseRule:
    pattern: str
    delay_seconds: int = 1

    def to_dict(self) -> dict:
        return {"pattern": self.pattern, "delaySeconds": self.delay_seconds}


@dataclass(frozen=True)
class RuleMatch:
    title: str
    color: str
