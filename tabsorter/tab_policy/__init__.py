"""Shared tab rule semantics used by the engine, the rule store and the CLI."""

from .matching import (
    find_auto_close_rule,
    find_matching_rule,
    glob_to_regex,
    path_matches,
    pattern_matches_host,
    pattern_matches_url,
    split_pattern,
)
from .taxonomy import (
    AUTO_CLOSE_MAX_DELAY_SECONDS,
    AUTO_CLOSE_MIN_DELAY_SECONDS,
    DEFAULT_GROUP_COLOR,
    GROUP_COLOR_ORDER,
    GROUP_COLORS,
    TAB_GROUP_ID_NONE,
    normalize_color,
)
from .urls import host_and_path, host_of, path_of

__all__ = [
    "find_auto_close_rule",
    "find_matching_rule",
    "glob_to_regex",
    "path_matches",
    "pattern_matches_host",
    "pattern_matches_url",
    "split_pattern",
    "AUTO_CLOSE_MAX_DELAY_SECONDS",
    "AUTO_CLOSE_MIN_DELAY_SECONDS",
    "DEFAULT_GROUP_COLOR",
    "GROUP_COLOR_ORDER",
    "GROUP_COLORS",
    "TAB_GROUP_ID_NONE",
    "normalize_color",
    "host_and_path",
    "host_of",
    "path_of",
]
