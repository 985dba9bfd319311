"""Versioned loading of persisted rule collections.

Two grouping-rule shapes exist in storage:

- current: ``{"title": str, "color": str, "patterns": [str, ...]}``
- legacy:  ``{"pattern": str, "color": str, "title"?: str}`` (one record per pattern)

Legacy records are folded by title into current-shape rules; current-shape
records are kept as stored, one rule each, in order. Auto-close rules
were once stored as bare pattern strings, which imply a one second delay.
Loaders report whether anything was migrated so the caller can write the
normalized form back.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Tuple

from tabsorter.tab_policy.taxonomy import (
    AUTO_CLOSE_MAX_DELAY_SECONDS,
    AUTO_CLOSE_MIN_DELAY_SECONDS,
    DEFAULT_GROUP_COLOR,
    normalize_color,
)

from .models import AutoCloseRule, GroupingRule

logger = logging.getLogger(__name__)


def _is_current_grouping_record(record: object) -> bool:
    return isinstance(record, dict) and isinstance(record.get("patterns"), list)


def _is_legacy_grouping_record(record: object) -> bool:
    return isinstance(record, dict) and isinstance(record.get("pattern"), str) and "patterns" not in record


def _clean_patterns(values: list) -> List[str]:
    out: List[str] = []
    for value in values:
        if not isinstance(value, str):
            continue
        pattern = value.strip()
        if pattern and pattern not in out:
            out.append(pattern)
    return out


def _clean_title(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


def load_grouping_rules(raw: object) -> Tuple[List[GroupingRule], bool]:
    """Normalize stored grouping rules.

    Returns ``(rules, migrated)``; ``migrated`` is True when at least one legacy
    record was folded and the caller should persist the result.
    """
    if not isinstance(raw, list):
        if raw is not None:
            logger.warning("groupingRules is not a list (%s); ignoring", type(raw).__name__)
        return [], False

    entries: List[dict] = []
    legacy_by_title: Dict[str, dict] = {}
    migrated = False
    for position, record in enumerate(raw):
        if _is_current_grouping_record(record):
            title = _clean_title(record.get("title"))
            patterns = _clean_patterns(record["patterns"])
            if not title or not patterns:
                logger.warning("dropping grouping rule %d: empty title or patterns", position)
                continue
            # Stored order decides which rule wins, so current rules are never merged.
            entries.append({"title": title, "color": normalize_color(record.get("color")), "patterns": patterns})
            continue

        if not _is_legacy_grouping_record(record):
            logger.warning("dropping malformed grouping rule %d", position)
            continue
        migrated = True
        pattern = record["pattern"].strip()
        if not pattern:
            logger.warning("dropping legacy grouping rule %d: empty pattern", position)
            continue
        title = _clean_title(record.get("title")) or pattern
        color = normalize_color(record.get("color"))

        group = legacy_by_title.get(title)
        if group is None:
            group = {"title": title, "color": color, "patterns": [pattern]}
            legacy_by_title[title] = group
            entries.append(group)
            continue
        if pattern not in group["patterns"]:
            group["patterns"].append(pattern)
        # First non-default color wins over the default.
        if group["color"] == DEFAULT_GROUP_COLOR and color != DEFAULT_GROUP_COLOR:
            group["color"] = color

    rules = [
        GroupingRule(title=g["title"], color=g["color"], patterns=tuple(g["patterns"]))
        for g in entries
    ]
    return rules, migrated


def _coerce_delay(value: object) -> int:
    try:
        delay = float(value)
    except (TypeError, ValueError):
        return AUTO_CLOSE_MIN_DELAY_SECONDS
    if not math.isfinite(delay):
        return AUTO_CLOSE_MIN_DELAY_SECONDS
    delay = math.floor(delay)
    if delay < AUTO_CLOSE_MIN_DELAY_SECONDS:
        return AUTO_CLOSE_MIN_DELAY_SECONDS
    if delay > AUTO_CLOSE_MAX_DELAY_SECONDS:
        return AUTO_CLOSE_MAX_DELAY_SECONDS
    return int(delay)


def load_auto_close_rules(raw: object) -> Tuple[List[AutoCloseRule], bool]:
    if not isinstance(raw, list):
        if raw is not None:
            logger.warning("autoClosePatterns is not a list (%s); ignoring", type(raw).__name__)
        return [], False

    rules: List[AutoCloseRule] = []
    migrated = False
    for position, record in enumerate(raw):
        if isinstance(record, str):
            migrated = True
            pattern = record.strip()
            delay = AUTO_CLOSE_MIN_DELAY_SECONDS
        elif isinstance(record, dict) and isinstance(record.get("pattern"), str):
            pattern = record["pattern"].strip()
            raw_delay = record.get("delaySeconds")
            if raw_delay is None:
                raw_delay = record.get("delay")
                migrated = migrated or raw_delay is not None
            delay = _coerce_delay(raw_delay)
        else:
            logger.warning("dropping malformed auto-close rule %d", position)
            continue
        if not pattern:
            logger.warning("dropping auto-close rule %d: empty pattern", position)
            continue
        rules.append(AutoCloseRule(pattern=pattern, delay_seconds=delay))
    return rules, migrated


def dump_grouping_rules(rules: List[GroupingRule]) -> List[dict]:
    return [rule.to_dict() for rule in rules]


def dump_auto_close_rules(rules: List[AutoCloseRule]) -> List[dict]:
    return [rule.to_dict() for rule in rules]
