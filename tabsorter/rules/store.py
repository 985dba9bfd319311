"""Rule persistence on top of an async key-value store."""

from __future__ import annotations

import copy
import json
import logging
import os
import stat
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Protocol

from tabsorter.tab_policy.taxonomy import (
    AUTO_CLOSE_RULES_KEY,
    DEFAULT_GROUP_COLOR,
    GROUPING_RULES_KEY,
    PREPOPULATE_RULE_KEY,
    RULES_SCHEMA_VERSION,
    SCHEMA_VERSION_KEY,
)

from .loader import dump_auto_close_rules, dump_grouping_rules, load_auto_close_rules, load_grouping_rules
from .models import AutoCloseRule, GroupingRule
from .validate import validate_rules

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    async def get(self, defaults: Mapping[str, object]) -> Dict[str, object]:
        """Return stored values for the keys of ``defaults``, falling back to the given defaults."""

    async def set(self, items: Mapping[str, object]) -> None:
        ...

    async def remove(self, keys: Iterable[str]) -> None:
        ...


class MemoryKeyValueStore:
    def __init__(self, initial: Optional[Mapping[str, object]] = None) -> None:
        self._data: Dict[str, object] = copy.deepcopy(dict(initial or {}))

    async def get(self, defaults: Mapping[str, object]) -> Dict[str, object]:
        return {key: copy.deepcopy(self._data.get(key, default)) for key, default in defaults.items()}

    async def set(self, items: Mapping[str, object]) -> None:
        self._data.update(copy.deepcopy(dict(items)))

    async def remove(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def snapshot(self) -> Dict[str, object]:
        return copy.deepcopy(self._data)


class JsonFileKeyValueStore:
    """Single JSON object file; written owner-only."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser()

    def _read(self) -> Dict[str, object]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("unreadable rule file %s (%s); treating as empty", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("rule file %s does not hold a JSON object; treating as empty", self.path)
            return {}
        return data

    def _write(self, data: Mapping[str, object]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        os.chmod(self.path, stat.S_IRUSR | stat.S_IWUSR)

    async def get(self, defaults: Mapping[str, object]) -> Dict[str, object]:
        data = self._read()
        return {key: data.get(key, default) for key, default in defaults.items()}

    async def set(self, items: Mapping[str, object]) -> None:
        data = self._read()
        data.update(items)
        self._write(data)

    async def remove(self, keys: Iterable[str]) -> None:
        data = self._read()
        for key in keys:
            data.pop(key, None)
        self._write(data)


class RuleStore:
    """Grouping and auto-close rules.

    ``sync`` holds the persisted rule collections; ``local`` holds transient,
    device-only values such as the rule staged by the rule-creator command.
    Every read returns a fresh snapshot, migrating legacy shapes on the way.
    """

    def __init__(self, sync: KeyValueStore, local: Optional[KeyValueStore] = None) -> None:
        self.sync = sync
        self.local = local if local is not None else MemoryKeyValueStore()

    async def grouping_rules(self) -> List[GroupingRule]:
        stored = await self.sync.get({GROUPING_RULES_KEY: []})
        rules, migrated = load_grouping_rules(stored.get(GROUPING_RULES_KEY))
        if migrated:
            await self._write_back(
                {GROUPING_RULES_KEY: dump_grouping_rules(rules), SCHEMA_VERSION_KEY: RULES_SCHEMA_VERSION}
            )
        return rules

    async def auto_close_rules(self) -> List[AutoCloseRule]:
        stored = await self.sync.get({AUTO_CLOSE_RULES_KEY: []})
        rules, migrated = load_auto_close_rules(stored.get(AUTO_CLOSE_RULES_KEY))
        if migrated:
            await self._write_back(
                {AUTO_CLOSE_RULES_KEY: dump_auto_close_rules(rules), SCHEMA_VERSION_KEY: RULES_SCHEMA_VERSION}
            )
        return rules

    async def _write_back(self, items: Mapping[str, object]) -> None:
        try:
            await self.sync.set(items)
        except Exception as exc:
            # The migrated rules are still used for this pass; the next read retries.
            logger.warning("failed to persist migrated rules (%s)", exc)
        else:
            logger.info("migrated stored rules to schema v%d", RULES_SCHEMA_VERSION)

    async def save_rules(
        self,
        grouping: List[GroupingRule],
        auto_close: Optional[List[AutoCloseRule]] = None,
    ) -> None:
        """Validate and persist; raises RuleValidationError without writing anything."""
        auto_close = list(auto_close) if auto_close is not None else []
        validate_rules(grouping, auto_close)
        await self.sync.set(
            {
                GROUPING_RULES_KEY: dump_grouping_rules(grouping),
                AUTO_CLOSE_RULES_KEY: dump_auto_close_rules(auto_close),
                SCHEMA_VERSION_KEY: RULES_SCHEMA_VERSION,
            }
        )

    async def stage_prepopulated_rule(self, host: str) -> dict:
        rule = {"pattern": host, "color": DEFAULT_GROUP_COLOR, "title": ""}
        await self.local.set({PREPOPULATE_RULE_KEY: rule})
        return rule

    async def take_prepopulated_rule(self) -> Optional[dict]:
        stored = await self.local.get({PREPOPULATE_RULE_KEY: None})
        rule = stored.get(PREPOPULATE_RULE_KEY)
        if rule is not None:
            await self.local.remove([PREPOPULATE_RULE_KEY])
        return rule if isinstance(rule, dict) else None
