"""Runtime configuration and wiring."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Dict, Optional

from tabsorter.engine.directory import GroupDirectory
from tabsorter.engine.router import EventRouter, OpenOptions
from tabsorter.engine.scheduling import Sleep
from tabsorter.rules.store import JsonFileKeyValueStore, MemoryKeyValueStore, RuleStore

DEFAULT_CFG: Dict = {
    "organizeDebounceMs": 200,
    "rulesPath": "~/.config/tabsorter/rules.json",
    "localStatePath": None,
    "verbose": False,
}


def merge_cfg(payload_cfg: Dict | None, override_cfg: Dict | None) -> Dict:
    merged = dict(DEFAULT_CFG)
    if payload_cfg:
        merged.update(payload_cfg)
    if override_cfg:
        merged.update(override_cfg)
    return merged


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on", "y"}


def _env_float(name: str, default: float, *, minimum: Optional[float] = None, maximum: Optional[float] = None) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if minimum is not None and value < minimum:
        value = minimum
    if maximum is not None and value > maximum:
        value = maximum
    return value


def env_cfg() -> Dict:
    """Overrides taken from ``TABSORTER_*`` environment variables."""
    out: Dict = {}
    if os.environ.get("TABSORTER_DEBOUNCE_MS") is not None:
        out["organizeDebounceMs"] = _env_float(
            "TABSORTER_DEBOUNCE_MS", DEFAULT_CFG["organizeDebounceMs"], minimum=0.0, maximum=10_000.0
        )
    rules_path = os.environ.get("TABSORTER_RULES_PATH", "").strip()
    if rules_path:
        out["rulesPath"] = rules_path
    if os.environ.get("TABSORTER_VERBOSE") is not None:
        out["verbose"] = _env_flag("TABSORTER_VERBOSE")
    return out


def load_runtime_cfg(override_cfg: Dict | None = None) -> Dict:
    return merge_cfg(env_cfg(), override_cfg)


def debounce_seconds(cfg: Dict) -> float:
    try:
        ms = float(cfg.get("organizeDebounceMs", DEFAULT_CFG["organizeDebounceMs"]))
    except (TypeError, ValueError):
        ms = float(DEFAULT_CFG["organizeDebounceMs"])
    return max(0.0, ms) / 1000.0


def rule_store_from_cfg(cfg: Dict) -> RuleStore:
    rules_path = cfg.get("rulesPath")
    sync = JsonFileKeyValueStore(Path(rules_path)) if rules_path else MemoryKeyValueStore()
    local_path = cfg.get("localStatePath")
    local = JsonFileKeyValueStore(Path(local_path)) if local_path else MemoryKeyValueStore()
    return RuleStore(sync, local)


def router_from_cfg(
    directory: GroupDirectory,
    cfg: Dict,
    *,
    rules: Optional[RuleStore] = None,
    sleep: Sleep = asyncio.sleep,
    open_options: Optional[OpenOptions] = None,
) -> EventRouter:
    return EventRouter(
        directory,
        rules if rules is not None else rule_store_from_cfg(cfg),
        debounce_seconds=debounce_seconds(cfg),
        sleep=sleep,
        open_options=open_options,
    )
