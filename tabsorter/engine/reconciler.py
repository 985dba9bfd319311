"""Window layout: pinned tabs, then groups, then ungrouped tabs.

Group order is derived from where each group's first tab currently sits, and
ungrouped tabs keep their relative order, so the pass carries no memory of an
"intended" layout beyond the snapshot it reads.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .directory import DirectoryError, GroupDirectory, Tab
from .scheduling import KeyedDebouncer, Sleep

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LayoutPlan:
    pinned: Tuple[int, ...]
    groups: Tuple[Tuple[int, Tuple[int, ...]], ...]
    ungrouped: Tuple[int, ...]

    def target_order(self) -> List[int]:
        order = list(self.pinned)
        for _group_id, members in self.groups:
            order.extend(members)
        order.extend(self.ungrouped)
        return order


def plan_layout(tabs: Sequence[Tab]) -> LayoutPlan:
    ordered = sorted(tabs, key=lambda t: t.index)
    pinned: List[int] = []
    ungrouped: List[int] = []
    members: Dict[int, List[int]] = {}
    first_index: Dict[int, int] = {}

    for tab in ordered:
        if tab.pinned:
            pinned.append(tab.id)
        elif tab.grouped:
            if tab.group_id not in members:
                members[tab.group_id] = []
                first_index[tab.group_id] = tab.index
            members[tab.group_id].append(tab.id)
        else:
            ungrouped.append(tab.id)

    group_order = sorted(members, key=lambda gid: first_index[gid])
    return LayoutPlan(
        pinned=tuple(pinned),
        groups=tuple((gid, tuple(members[gid])) for gid in group_order),
        ungrouped=tuple(ungrouped),
    )


def _block_at(order: List[int], block: Sequence[int], index: int) -> bool:
    return order[index:index + len(block)] == list(block)


def _move_block(order: List[int], block: Sequence[int], index: int) -> None:
    moving = set(block)
    rest = [tab_id for tab_id in order if tab_id not in moving]
    index = min(index, len(rest))
    order[:] = rest[:index] + list(block) + rest[index:]


class WindowReconciler:
    """Debounced, re-entrancy guarded layout enforcement, one state per window."""

    def __init__(self, directory: GroupDirectory, debounce_seconds: float = 0.2, sleep: Sleep = asyncio.sleep) -> None:
        self.directory = directory
        self.scheduler = KeyedDebouncer(self._run, delay=debounce_seconds, sleep=sleep)

    def reconcile(self, window_id: Optional[int]) -> bool:
        """Request a pass for the window; bursts of requests collapse into one."""
        if window_id is None:
            return False
        return self.scheduler.request(window_id)

    async def reconcile_now(self, window_id: int) -> int:
        moves = await self.scheduler.run_guarded(window_id)
        return int(moves or 0)

    def forget(self, window_id: int) -> None:
        self.scheduler.forget(window_id)

    async def shutdown(self) -> None:
        await self.scheduler.shutdown()

    async def _run(self, window_id: int) -> int:
        try:
            tabs = await self.directory.query_tabs(window_id=window_id)
        except DirectoryError as exc:
            logger.debug("window %s vanished before reconciliation: %s", window_id, exc)
            return 0
        if not tabs:
            return 0
        moves = await self._apply(tabs)
        if moves:
            logger.debug("window %s reconciled with %d move(s)", window_id, moves)
        return moves

    async def _apply(self, tabs: Sequence[Tab]) -> int:
        plan = plan_layout(tabs)
        order = [t.id for t in sorted(tabs, key=lambda t: t.index)]
        moves = 0
        cursor = len(plan.pinned)

        # Groups first; a group move carries all of its tabs.
        for group_id, members in plan.groups:
            if not _block_at(order, members, cursor):
                try:
                    await self.directory.move_group(group_id, cursor)
                except DirectoryError as exc:
                    logger.debug("move of group %s failed: %s", group_id, exc)
                else:
                    _move_block(order, members, cursor)
                    moves += 1
            cursor += len(members)

        for tab_id in plan.ungrouped:
            if not _block_at(order, (tab_id,), cursor):
                try:
                    await self.directory.move_tab(tab_id, cursor)
                except DirectoryError as exc:
                    # Closed mid-pass; the next event corrects whatever is left.
                    logger.debug("move of tab %s failed: %s", tab_id, exc)
                    continue
                _move_block(order, (tab_id,), cursor)
                moves += 1
            cursor += 1
        return moves
