"""Put each tab into the group its URL calls for."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from tabsorter.rules.models import GroupingRule, RuleMatch
from tabsorter.rules.store import RuleStore
from tabsorter.tab_policy.matching import find_matching_rule
from tabsorter.tab_policy.taxonomy import normalize_color
from tabsorter.tab_policy.urls import host_and_path

from .dedupe import GroupDeduplicator
from .directory import DirectoryError, Group, GroupDirectory, Tab
from .reconciler import WindowReconciler

logger = logging.getLogger(__name__)


def match_tab(tab: Tab, rules: Sequence[GroupingRule]) -> Optional[RuleMatch]:
    """Rule match for a tab, or None for pinned tabs and non-web URLs."""
    if tab.pinned:
        return None
    host, path = host_and_path(tab.current_url)
    if host is None:
        return None
    rule = find_matching_rule(host, path, rules)
    if rule is None:
        return None
    return RuleMatch(title=rule.title, color=normalize_color(rule.color))


class GroupAssigner:
    def __init__(
        self,
        directory: GroupDirectory,
        rules: RuleStore,
        deduplicator: GroupDeduplicator,
        reconciler: WindowReconciler,
    ) -> None:
        self.directory = directory
        self.rules = rules
        self.deduplicator = deduplicator
        self.reconciler = reconciler

    async def reconcile_tab(self, tab: Optional[Tab]) -> None:
        if tab is None:
            return
        try:
            rules = await self.rules.grouping_rules()
        except Exception as exc:
            logger.debug("tab %s: grouping rules unavailable (%s)", tab.id, exc)
            return
        try:
            match = match_tab(tab, rules)
            if match is not None:
                await self._ensure_membership(tab, match)
            else:
                await self._release_if_managed(tab, rules)
        except DirectoryError as exc:
            logger.debug("tab %s: reconciliation skipped (%s)", tab.id, exc)

    async def reconcile_tab_id(self, tab_id: int) -> None:
        try:
            tab = await self.directory.get_tab(tab_id)
        except DirectoryError:
            return
        await self.reconcile_tab(tab)

    async def sweep(self) -> None:
        """Reconcile every tab of every window, then lay each window out once."""
        try:
            tabs = await self.directory.query_tabs()
        except DirectoryError as exc:
            logger.debug("sweep skipped: %s", exc)
            return
        for tab in tabs:
            await self.reconcile_tab(tab)
        for window_id in sorted({t.window_id for t in tabs}):
            self.reconciler.reconcile(window_id)

    async def _find_group(self, window_id: int, title: str) -> Optional[Group]:
        groups = await self.directory.query_groups(window_id=window_id)
        same_title = sorted((g for g in groups if g.title == title), key=lambda g: g.id)
        return same_title[0] if same_title else None

    async def _ensure_membership(self, tab: Tab, match: RuleMatch) -> None:
        existing = await self._find_group(tab.window_id, match.title)
        if existing is not None:
            if tab.group_id != existing.id:
                await self.directory.group_tabs([tab.id], group_id=existing.id)
            # Only the color is corrected; the title may be mid-merge.
            if existing.color != match.color:
                await self.directory.update_group(existing.id, color=match.color)
        else:
            group_id = await self.directory.group_tabs([tab.id])
            await self.directory.update_group(group_id, title=match.title, color=match.color)
            logger.debug("tab %s: created group %s %r", tab.id, group_id, match.title)

        # Two tabs can create same-title groups concurrently.
        await self.deduplicator.merge(tab.window_id, match.title, match.color)
        self.reconciler.reconcile(tab.window_id)

    async def _release_if_managed(self, tab: Tab, rules: List[GroupingRule]) -> None:
        if not tab.grouped:
            return
        group = await self.directory.get_group(tab.group_id)
        managed_titles = {rule.title for rule in rules}
        if group.title not in managed_titles:
            return
        await self.directory.ungroup_tabs([tab.id])
        logger.debug("tab %s: left managed group %r", tab.id, group.title)
        self.reconciler.reconcile(tab.window_id)
