"""URL helpers: only http(s) URLs with a host take part in rule matching."""

import urllib.parse
from typing import Optional, Tuple

WEB_SCHEMES = {"http", "https"}


def _split_web_url(url: str) -> Optional[urllib.parse.SplitResult]:
    if not url:
        return None
    try:
        parsed = urllib.parse.urlsplit(url.strip())
    except Exception:
        return None
    if (parsed.scheme or "").lower() not in WEB_SCHEMES:
        return None
    return parsed


def host_of(url: str) -> Optional[str]:
    """Lowercased hostname without a trailing dot, or None for non-http(s) URLs."""
    parsed = _split_web_url(url)
    if parsed is None:
        return None
    try:
        host = parsed.hostname or ""
    except ValueError:
        return None
    host = host.lower().rstrip(".")
    return host or None


def path_of(url: str) -> Optional[str]:
    parsed = _split_web_url(url)
    if parsed is None:
        return None
    return parsed.path or "/"


def host_and_path(url: Optional[str]) -> Tuple[Optional[str], str]:
    host = host_of(url or "")
    if host is None:
        return None, "/"
    return host, path_of(url or "") or "/"
