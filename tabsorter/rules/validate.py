"""Validation applied before user-edited rules are persisted."""

from __future__ import annotations

import re
from typing import Iterable, Sequence

from tabsorter.tab_policy.matching import split_pattern
from tabsorter.tab_policy.taxonomy import (
    AUTO_CLOSE_MAX_DELAY_SECONDS,
    AUTO_CLOSE_MIN_DELAY_SECONDS,
    GROUP_COLORS,
)

from .models import AutoCloseRule, GroupingRule

_HOST_RE = re.compile(r"^[a-z0-9.-]+\.[a-z]{2,}$", re.IGNORECASE)
_PATH_RE = re.compile(r"^/\S*$")


class RuleValidationError(ValueError):
    """A rule failed validation; ``field`` names the offending row/field."""

    def __init__(self, message: str, field: str = "") -> None:
        super().__init__(message)
        self.field = field


def is_valid_pattern(pattern: str) -> bool:
    if not pattern:
        return False
    host_part, path_part = split_pattern(pattern)
    if host_part.startswith("*."):
        host_part = host_part[2:]
    if not _HOST_RE.match(host_part):
        return False
    if path_part is not None and not _PATH_RE.match(path_part):
        return False
    return True


def validate_grouping_rules(rules: Sequence[GroupingRule]) -> None:
    for row, rule in enumerate(rules, start=1):
        if not rule.title or not rule.title.strip():
            raise RuleValidationError(f"Row {row}: Title is required", field=f"groupingRules[{row - 1}].title")
        if rule.color not in GROUP_COLORS:
            raise RuleValidationError(f"Row {row}: Invalid color", field=f"groupingRules[{row - 1}].color")
        if not rule.patterns:
            raise RuleValidationError(
                f"Row {row}: Add at least one pattern", field=f"groupingRules[{row - 1}].patterns"
            )
        for idx, pattern in enumerate(rule.patterns):
            if not is_valid_pattern(pattern):
                raise RuleValidationError(
                    f'Row {row}: Invalid pattern "{pattern}"',
                    field=f"groupingRules[{row - 1}].patterns[{idx}]",
                )


def validate_auto_close_rules(rules: Iterable[AutoCloseRule]) -> None:
    for idx, rule in enumerate(rules):
        if not is_valid_pattern(rule.pattern):
            raise RuleValidationError(
                f'Auto-close: Invalid pattern "{rule.pattern}"', field=f"autoClosePatterns[{idx}].pattern"
            )
        delay = rule.delay_seconds
        valid_delay = (
            isinstance(delay, int)
            and not isinstance(delay, bool)
            and AUTO_CLOSE_MIN_DELAY_SECONDS <= delay <= AUTO_CLOSE_MAX_DELAY_SECONDS
        )
        if not valid_delay:
            raise RuleValidationError(
                f'Auto-close: Invalid delay "{delay}" for "{rule.pattern}"',
                field=f"autoClosePatterns[{idx}].delaySeconds",
            )


def validate_rules(grouping: Sequence[GroupingRule], auto_close: Sequence[AutoCloseRule] = ()) -> None:
    validate_grouping_rules(grouping)
    validate_auto_close_rules(auto_close)
