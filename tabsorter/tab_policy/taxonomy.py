"""Shared vocabulary for rules, groups and storage keys."""

from __future__ import annotations

# Tab group colors accepted by the host.
GROUP_COLOR_ORDER = (
    "grey",
    "blue",
    "red",
    "yellow",
    "green",
    "pink",
    "purple",
    "cyan",
    "orange",
)
GROUP_COLORS = set(GROUP_COLOR_ORDER)
DEFAULT_GROUP_COLOR = "grey"

TAB_GROUP_ID_NONE = -1

AUTO_CLOSE_MIN_DELAY_SECONDS = 1
AUTO_CLOSE_MAX_DELAY_SECONDS = 10

# Storage keys, shared with the options page.
GROUPING_RULES_KEY = "groupingRules"
AUTO_CLOSE_RULES_KEY = "autoClosePatterns"
SCHEMA_VERSION_KEY = "rulesSchemaVersion"
PREPOPULATE_RULE_KEY = "prepopulateRule"
RULES_SCHEMA_VERSION = 2

RULE_CREATOR_COMMAND = "open-rule-creator"


def normalize_color(color: object) -> str:
    value = str(color or "").strip().lower()
    if value in GROUP_COLORS:
        return value
    return DEFAULT_GROUP_COLOR
