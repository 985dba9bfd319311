"""Delayed closing of tabs that match auto-close rules."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from tabsorter.rules.models import AutoCloseRule
from tabsorter.rules.store import RuleStore
from tabsorter.tab_policy.matching import find_auto_close_rule
from tabsorter.tab_policy.taxonomy import AUTO_CLOSE_MIN_DELAY_SECONDS
from tabsorter.tab_policy.urls import host_and_path

from .directory import DirectoryError, GroupDirectory, Tab
from .scheduling import Sleep

logger = logging.getLogger(__name__)


def auto_close_rule_for(tab: Tab, rules: Sequence[AutoCloseRule]) -> Optional[AutoCloseRule]:
    if tab.pinned:
        return None
    host, path = host_and_path(tab.current_url)
    if host is None:
        return None
    return find_auto_close_rule(host, path, rules)


class AutoCloseScheduler:
    """One pending close timer per tab id.

    The match is checked when the timer is armed and again when it fires,
    against the tab and rules as they are at that moment.
    """

    def __init__(self, directory: GroupDirectory, rules: RuleStore, sleep: Sleep = asyncio.sleep) -> None:
        self.directory = directory
        self.rules = rules
        self._sleep = sleep
        self._timers: Dict[int, asyncio.Task] = {}

    def is_pending(self, tab_id: int) -> bool:
        task = self._timers.get(tab_id)
        return task is not None and not task.done()

    def pending_tab_ids(self) -> List[int]:
        return sorted(tab_id for tab_id in self._timers if self.is_pending(tab_id))

    async def maybe_schedule(self, tab: Optional[Tab]) -> None:
        if tab is None or tab.pinned:
            return
        host, _path = host_and_path(tab.current_url)
        if host is None:
            return
        rule = auto_close_rule_for(tab, await self._current_rules())
        if rule is None:
            return

        self.cancel(tab.id)
        delay = max(AUTO_CLOSE_MIN_DELAY_SECONDS, int(rule.delay_seconds))
        self._timers[tab.id] = asyncio.get_running_loop().create_task(self._fire(tab.id, delay))
        logger.debug("tab %s: auto-close in %ds (%s)", tab.id, delay, rule.pattern)

    def cancel(self, tab_id: int) -> None:
        task = self._timers.pop(tab_id, None)
        if task is not None and not task.done():
            task.cancel()

    async def shutdown(self) -> None:
        tasks = list(self._timers.values())
        self._timers.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _current_rules(self) -> List[AutoCloseRule]:
        try:
            return await self.rules.auto_close_rules()
        except Exception as exc:
            logger.debug("auto-close rules unavailable (%s); treating as none", exc)
            return []

    async def _fire(self, tab_id: int, delay: int) -> None:
        await self._sleep(delay)
        if self._timers.get(tab_id) is asyncio.current_task():
            del self._timers[tab_id]
        try:
            fresh = await self.directory.get_tab(tab_id)
            latest = await self._current_rules()
            if auto_close_rule_for(fresh, latest) is None:
                return
            await self.directory.remove_tab(tab_id)
            logger.debug("tab %s: auto-closed", tab_id)
        except DirectoryError as exc:
            logger.debug("tab %s: auto-close dropped (%s)", tab_id, exc)
