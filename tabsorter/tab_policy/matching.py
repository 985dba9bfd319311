"""Host and path pattern matching for grouping and auto-close rules."""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Callable, Iterable, Optional, Sequence


def split_pattern(pattern: str) -> tuple[str, Optional[str]]:
    """Split ``host[/path]`` into its host part and optional path part (leading ``/`` kept)."""
    slash = pattern.find("/")
    if slash < 0:
        return pattern, None
    return pattern[:slash], pattern[slash:]


def pattern_matches_host(pattern: str, host: str) -> bool:
    pattern_norm = str(pattern or "").lower()
    host_norm = str(host or "").lower()
    if not pattern_norm or not host_norm:
        return False

    if pattern_norm.startswith("*."):
        base = pattern_norm[2:]
        # At least one label before the base; "*.example.com" never matches "example.com".
        return bool(base) and host_norm.endswith("." + base)
    return host_norm == pattern_norm


@lru_cache(maxsize=512)
def glob_to_regex(glob: str) -> re.Pattern:
    escaped = re.escape(glob).replace(r"\*", ".*")
    return re.compile("^" + escaped + "$", re.DOTALL)


def path_matches(path_pattern: Optional[str], path: str) -> bool:
    if path_pattern is None:
        return True
    path = path or "/"
    if "*" in path_pattern:
        return glob_to_regex(path_pattern).match(path) is not None
    return path == path_pattern


def pattern_matches_url(pattern: str, host: str, path: str) -> bool:
    """Return True when ``pattern`` matches the host (case-insensitive) and path (case-sensitive).

    Examples:
      example.com          any path on example.com
      example.com/docs     only /docs
      example.com/docs/*   /docs/ and everything below it
      *.example.com/*      any path on any subdomain of example.com
    """
    if not pattern or not host:
        return False
    host_pattern, path_pattern = split_pattern(pattern)
    if not pattern_matches_host(host_pattern, host):
        return False
    return path_matches(path_pattern, path)


def first_matching(host: str, path: str, rules: Iterable, patterns_of: Callable) -> Optional[object]:
    if not host:
        return None
    for rule in rules:
        for pattern in patterns_of(rule):
            if isinstance(pattern, str) and pattern_matches_url(pattern, host, path):
                return rule
    return None


def find_matching_rule(host: str, path: str, rules: Sequence) -> Optional[object]:
    """First grouping rule (in order) with any pattern matching; patterns are tried in order."""
    return first_matching(host, path, rules, lambda rule: rule.patterns)


def find_auto_close_rule(host: str, path: str, rules: Sequence) -> Optional[object]:
    return first_matching(host, path, rules, lambda rule: (rule.pattern,))
