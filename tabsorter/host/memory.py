"""In-memory host with Chrome-like tab/group semantics.

Implements ``GroupDirectory`` for tests and offline simulation:

- tab indices are positions in the window's tab list, pinned tabs first;
- grouping a tab moves it next to its group, a new group forms where its
  first tab was;
- a group disappears when its last tab leaves;
- ``move_group``/``move_tab`` remove the moved tabs and re-insert them at
  ``index`` in what remains, clamped so unpinned tabs stay behind pinned ones.

When ``listener`` is set, mutations report the events the real host would
emit (``router.dispatch`` fits).
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Sequence

from tabsorter.engine.directory import DirectoryError, Group, GroupNotFoundError, Tab, TabNotFoundError
from tabsorter.engine.events import GroupEvent, GroupEventKind, TabEvent, TabEventKind, WindowEvent
from tabsorter.tab_policy.taxonomy import DEFAULT_GROUP_COLOR, TAB_GROUP_ID_NONE


@dataclass
class _TabRecord:
    id: int
    window_id: int
    url: Optional[str] = None
    pending_url: Optional[str] = None
    pinned: bool = False
    group_id: int = TAB_GROUP_ID_NONE
    active: bool = False


class MemoryDirectory:
    def __init__(self, listener: Optional[Callable[[object], object]] = None) -> None:
        self.listener = listener
        self.last_focused_window: Optional[int] = None
        self.calls: List[tuple] = []
        self._windows: Dict[int, List[int]] = {}
        self._tabs: Dict[int, _TabRecord] = {}
        self._groups: Dict[int, Group] = {}
        self._window_ids = itertools.count(1)
        self._tab_ids = itertools.count(1)
        self._group_ids = itertools.count(1)

    # -- setup and inspection -------------------------------------------------

    def open_window(self) -> int:
        window_id = next(self._window_ids)
        self._windows[window_id] = []
        self.last_focused_window = window_id
        return window_id

    def add_tab(
        self,
        window_id: int,
        url: Optional[str] = None,
        *,
        pinned: bool = False,
        active: bool = False,
        pending_url: Optional[str] = None,
    ) -> Tab:
        order = self._window(window_id)
        record = _TabRecord(
            id=next(self._tab_ids),
            window_id=window_id,
            url=url,
            pending_url=pending_url,
            pinned=pinned,
            active=active,
        )
        self._tabs[record.id] = record
        if pinned:
            order.insert(self._pinned_count(window_id), record.id)
        else:
            order.append(record.id)
        if active:
            for other in order:
                if other != record.id:
                    self._tabs[other].active = False
        tab = self._snapshot(record)
        self._emit(TabEvent(TabEventKind.CREATED, record.id, window_id=window_id, tab=tab))
        return tab

    def add_group(self, window_id: int, tab_ids: Sequence[int], title: str = "", color: str = DEFAULT_GROUP_COLOR) -> Group:
        """Create a group from existing tabs without going through the async API."""
        group = Group(id=next(self._group_ids), window_id=window_id, title=title, color=color)
        self._groups[group.id] = group
        self._join(list(tab_ids), group)
        return group

    def navigate(self, tab_id: int, url: str) -> Tab:
        record = self._record(tab_id)
        record.url = url
        record.pending_url = None
        tab = self._snapshot(record)
        self._emit(TabEvent(TabEventKind.UPDATED, tab_id, window_id=record.window_id, tab=tab, url_changed=True))
        return tab

    def close_window(self, window_id: int) -> None:
        for tab_id in list(self._window(window_id)):
            self._drop_tab(tab_id)
            self._emit(TabEvent(TabEventKind.REMOVED, tab_id, window_id=window_id, is_window_closing=True))
        del self._windows[window_id]
        self._emit(WindowEvent(window_id))

    def order(self, window_id: int) -> List[int]:
        return list(self._window(window_id))

    def members(self, group_id: int) -> List[int]:
        return [tab_id for tab_id in self._all_tab_ids() if self._tabs[tab_id].group_id == group_id]

    def groups_titled(self, window_id: int, title: str) -> List[Group]:
        return sorted(
            (g for g in self._groups.values() if g.window_id == window_id and g.title == title), key=lambda g: g.id
        )

    # -- GroupDirectory ---------------------------------------------------------

    async def query_tabs(
        self,
        *,
        window_id: Optional[int] = None,
        group_id: Optional[int] = None,
        pinned: Optional[bool] = None,
        active: Optional[bool] = None,
        last_focused_window: bool = False,
    ) -> List[Tab]:
        out = []
        for tab_id in self._all_tab_ids():
            record = self._tabs[tab_id]
            if window_id is not None and record.window_id != window_id:
                continue
            if last_focused_window and record.window_id != self.last_focused_window:
                continue
            if group_id is not None and record.group_id != group_id:
                continue
            if pinned is not None and record.pinned != pinned:
                continue
            if active is not None and record.active != active:
                continue
            out.append(self._snapshot(record))
        return out

    async def get_tab(self, tab_id: int) -> Tab:
        return self._snapshot(self._record(tab_id))

    async def query_groups(self, *, window_id: Optional[int] = None, title: Optional[str] = None) -> List[Group]:
        return [
            g
            for g in sorted(self._groups.values(), key=lambda g: g.id)
            if (window_id is None or g.window_id == window_id) and (title is None or g.title == title)
        ]

    async def get_group(self, group_id: int) -> Group:
        return self._group(group_id)

    async def update_group(self, group_id: int, *, title: Optional[str] = None, color: Optional[str] = None) -> Group:
        self.calls.append(("update_group", group_id, title, color))
        group = self._group(group_id)
        changes = {}
        if title is not None:
            changes["title"] = title
        if color is not None:
            changes["color"] = color
        group = replace(group, **changes)
        self._groups[group_id] = group
        self._emit(GroupEvent(GroupEventKind.UPDATED, group))
        return group

    async def move_group(self, group_id: int, index: int) -> None:
        self.calls.append(("move_group", group_id, index))
        group = self._group(group_id)
        block = [tab_id for tab_id in self._window(group.window_id) if self._tabs[tab_id].group_id == group_id]
        self._place(group.window_id, block, index)
        self._emit(GroupEvent(GroupEventKind.MOVED, group))

    async def group_tabs(self, tab_ids: Sequence[int], group_id: Optional[int] = None) -> int:
        self.calls.append(("group_tabs", tuple(tab_ids), group_id))
        if not tab_ids:
            raise DirectoryError("no tabs to group")
        records = [self._record(tab_id) for tab_id in tab_ids]
        if group_id is None:
            group = Group(id=next(self._group_ids), window_id=records[0].window_id)
            self._groups[group.id] = group
            self._join(list(tab_ids), group)
            self._emit(GroupEvent(GroupEventKind.CREATED, group))
        else:
            group = self._group(group_id)
            self._join(list(tab_ids), group)
        return group.id

    async def ungroup_tabs(self, tab_ids: Sequence[int]) -> None:
        self.calls.append(("ungroup_tabs", tuple(tab_ids)))
        for tab_id in tab_ids:
            record = self._record(tab_id)
            old = record.group_id
            if old == TAB_GROUP_ID_NONE:
                continue
            record.group_id = TAB_GROUP_ID_NONE
            remaining = self.members(old)
            if remaining:
                # Leaves the group on its right-hand side.
                order = self._window(record.window_id)
                order.remove(tab_id)
                order.insert(order.index(remaining[-1]) + 1, tab_id)
            self._collect(old)

    async def move_tab(self, tab_id: int, index: int) -> None:
        self.calls.append(("move_tab", tab_id, index))
        record = self._record(tab_id)
        self._place(record.window_id, [tab_id], index)
        self._emit(TabEvent(TabEventKind.MOVED, tab_id, window_id=record.window_id))

    async def remove_tab(self, tab_id: int) -> None:
        self.calls.append(("remove_tab", tab_id))
        window_id = self._record(tab_id).window_id
        self._drop_tab(tab_id)
        self._emit(TabEvent(TabEventKind.REMOVED, tab_id, window_id=window_id))

    # -- internals ----------------------------------------------------------------

    def _emit(self, event: object) -> None:
        if self.listener is not None:
            self.listener(event)

    def _window(self, window_id: int) -> List[int]:
        try:
            return self._windows[window_id]
        except KeyError:
            raise DirectoryError(f"no window with id {window_id}") from None

    def _record(self, tab_id: int) -> _TabRecord:
        try:
            return self._tabs[tab_id]
        except KeyError:
            raise TabNotFoundError(f"no tab with id {tab_id}") from None

    def _group(self, group_id: int) -> Group:
        try:
            return self._groups[group_id]
        except KeyError:
            raise GroupNotFoundError(f"no group with id {group_id}") from None

    def _all_tab_ids(self) -> List[int]:
        return [tab_id for window_id in sorted(self._windows) for tab_id in self._windows[window_id]]

    def _pinned_count(self, window_id: int) -> int:
        return sum(1 for tab_id in self._window(window_id) if self._tabs[tab_id].pinned)

    def _snapshot(self, record: _TabRecord) -> Tab:
        return Tab(
            id=record.id,
            window_id=record.window_id,
            index=self._window(record.window_id).index(record.id),
            url=record.url,
            pending_url=record.pending_url,
            pinned=record.pinned,
            group_id=record.group_id,
            active=record.active,
        )

    def _place(self, window_id: int, block: List[int], index: int) -> None:
        order = self._window(window_id)
        moving = set(block)
        rest = [tab_id for tab_id in order if tab_id not in moving]
        pinned = sum(1 for tab_id in rest if self._tabs[tab_id].pinned)
        if index < 0 or index > len(rest):
            index = len(rest)
        if not any(self._tabs[tab_id].pinned for tab_id in block):
            index = max(index, pinned)
        order[:] = rest[:index] + block + rest[index:]

    def _join(self, tab_ids: List[int], group: Group) -> None:
        target = self._window(group.window_id)
        previous = set()
        for tab_id in tab_ids:
            record = self._record(tab_id)
            if record.window_id != group.window_id:
                self._windows[record.window_id].remove(tab_id)
                target.append(tab_id)
                record.window_id = group.window_id
            previous.add(record.group_id)
            record.pinned = False

        existing = [tab_id for tab_id in target if self._tabs[tab_id].group_id == group.id and tab_id not in tab_ids]
        if existing:
            moving = set(tab_ids)
            rest = [tab_id for tab_id in target if tab_id not in moving]
            anchor = rest.index(existing[-1]) + 1
            target[:] = rest[:anchor] + sorted(tab_ids, key=target.index) + rest[anchor:]
        else:
            anchor = min(target.index(tab_id) for tab_id in tab_ids)
            ordered = sorted(tab_ids, key=target.index)
            self._place(group.window_id, ordered, anchor)

        for tab_id in tab_ids:
            self._tabs[tab_id].group_id = group.id
        for old in previous:
            if old != TAB_GROUP_ID_NONE and old != group.id:
                self._collect(old)

    def _collect(self, group_id: int) -> None:
        if group_id in self._groups and not self.members(group_id):
            del self._groups[group_id]

    def _drop_tab(self, tab_id: int) -> None:
        record = self._record(tab_id)
        self._window(record.window_id).remove(tab_id)
        del self._tabs[tab_id]
        self._collect(record.group_id)
