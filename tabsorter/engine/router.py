"""Event entry points: host events in, engine work out."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

from tabsorter.rules.store import RuleStore
from tabsorter.tab_policy.taxonomy import GROUPING_RULES_KEY, RULE_CREATOR_COMMAND
from tabsorter.tab_policy.urls import host_of

from .assigner import GroupAssigner
from .autoclose import AutoCloseScheduler
from .dedupe import GroupDeduplicator
from .directory import DirectoryError, GroupDirectory
from .events import (
    CommandEvent,
    GroupEvent,
    GroupEventKind,
    RuleChangeEvent,
    StartupEvent,
    TabEvent,
    TabEventKind,
    WindowEvent,
)
from .reconciler import WindowReconciler
from .scheduling import Sleep

logger = logging.getLogger(__name__)

OpenOptions = Callable[[], Awaitable[None]]


async def _no_options_page() -> None:
    return None


class EventRouter:
    """Owns the engine components for one host and routes its events to them.

    Handlers never raise for host-state failures; anything left inconsistent
    is corrected by the next event.
    """

    def __init__(
        self,
        directory: GroupDirectory,
        rules: RuleStore,
        *,
        debounce_seconds: float = 0.2,
        sleep: Sleep = asyncio.sleep,
        open_options: Optional[OpenOptions] = None,
    ) -> None:
        self.directory = directory
        self.rules = rules
        self.deduplicator = GroupDeduplicator(directory)
        self.reconciler = WindowReconciler(directory, debounce_seconds=debounce_seconds, sleep=sleep)
        self.assigner = GroupAssigner(directory, rules, self.deduplicator, self.reconciler)
        self.auto_close = AutoCloseScheduler(directory, rules, sleep=sleep)
        self.open_options = open_options or _no_options_page
        self._tasks: Set[asyncio.Task] = set()

    def dispatch(self, event: object) -> asyncio.Task:
        """Handle ``event`` in the background, as host listeners do."""
        task = asyncio.get_running_loop().create_task(self.handle(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def settle(self, max_rounds: int = 100) -> None:
        """Wait until no handler or debounced window pass is outstanding (auto-close timers excluded)."""
        for _ in range(max_rounds):
            pending = list(self._tasks) + self.reconciler.scheduler.outstanding_tasks()
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self) -> None:
        await self.drain()
        await self.reconciler.shutdown()
        await self.auto_close.shutdown()

    async def handle(self, event: object) -> None:
        if isinstance(event, TabEvent):
            await self.on_tab_event(event)
        elif isinstance(event, GroupEvent):
            await self.on_group_event(event)
        elif isinstance(event, WindowEvent):
            await self.on_window_event(event)
        elif isinstance(event, RuleChangeEvent):
            await self.on_rule_change(event)
        elif isinstance(event, CommandEvent):
            await self.on_command(event)
        elif isinstance(event, StartupEvent):
            await self.on_startup()
        else:
            raise TypeError(f"unsupported event: {event!r}")

    async def on_startup(self) -> None:
        await self.assigner.sweep()

    async def on_tab_event(self, event: TabEvent) -> None:
        kind = event.kind
        if kind == TabEventKind.CREATED:
            await self.assigner.reconcile_tab(event.tab)
            self.reconciler.reconcile(event.window_id if event.window_id is not None else _window_of(event))
            await self.auto_close.maybe_schedule(event.tab)
        elif kind == TabEventKind.UPDATED:
            if not (event.url_changed or event.status == "complete"):
                return
            await self.assigner.reconcile_tab_id(event.tab_id)
            tab = event.tab
            if tab is None:
                try:
                    tab = await self.directory.get_tab(event.tab_id)
                except DirectoryError:
                    return
            await self.auto_close.maybe_schedule(tab)
        elif kind == TabEventKind.ATTACHED:
            await self.assigner.reconcile_tab_id(event.tab_id)
            self.reconciler.reconcile(event.window_id)
        elif kind == TabEventKind.MOVED:
            self.reconciler.reconcile(event.window_id)
        elif kind == TabEventKind.DETACHED:
            self.reconciler.reconcile(event.old_window_id)
        elif kind == TabEventKind.REMOVED:
            self.auto_close.cancel(event.tab_id)
            if not event.is_window_closing:
                self.reconciler.reconcile(event.window_id)

    async def on_group_event(self, event: GroupEvent) -> None:
        group = event.group
        if group.window_id is None:
            return
        if event.kind in (GroupEventKind.CREATED, GroupEventKind.UPDATED) and group.title:
            await self.deduplicator.merge(group.window_id, group.title, group.color)
        self.reconciler.reconcile(group.window_id)

    async def on_window_event(self, event: WindowEvent) -> None:
        if event.removed:
            self.reconciler.forget(event.window_id)

    async def on_rule_change(self, event: RuleChangeEvent) -> None:
        if event.area != "sync":
            return
        if GROUPING_RULES_KEY in event.keys:
            await self.assigner.sweep()
        # Auto-close rules are read fresh whenever a timer is armed or fires.

    async def on_command(self, event: CommandEvent) -> None:
        if event.name != RULE_CREATOR_COMMAND:
            return
        try:
            active = await self.directory.query_tabs(active=True, last_focused_window=True)
        except DirectoryError:
            active = []
        host = host_of(active[0].current_url or "") if active else None
        if host:
            await self.rules.stage_prepopulated_rule(host)
        await self.open_options()


def _window_of(event: TabEvent) -> Optional[int]:
    return event.tab.window_id if event.tab is not None else None
