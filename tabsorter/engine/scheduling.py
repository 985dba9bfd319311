"""Per-key debounce with a running guard.

Each key (a window id) is either idle or pending a debounced run. A request
while pending replaces the pending run. A request while the key's run is in
progress is dropped, and a run never starts for a key that is already running.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Hashable, List, Optional, Set

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class KeyState:
    pending: Optional[asyncio.Task] = None
    running: bool = False


class KeyedDebouncer:
    def __init__(
        self,
        run: Callable[[Hashable], Awaitable[object]],
        delay: float = 0.2,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._run = run
        self.delay = max(0.0, float(delay))
        self._sleep = sleep
        self._states: Dict[Hashable, KeyState] = {}
        self._outstanding: Set[asyncio.Task] = set()

    def state(self, key: Hashable) -> Optional[KeyState]:
        return self._states.get(key)

    def is_pending(self, key: Hashable) -> bool:
        state = self._states.get(key)
        return bool(state and state.pending and not state.pending.done())

    def is_running(self, key: Hashable) -> bool:
        state = self._states.get(key)
        return bool(state and state.running)

    def outstanding_tasks(self) -> List[asyncio.Task]:
        """Debounced runs that have not finished yet, including ones already running."""
        return [task for task in self._outstanding if not task.done()]

    def request(self, key: Hashable) -> bool:
        """Schedule a debounced run for ``key``; returns False when the request was dropped."""
        state = self._states.setdefault(key, KeyState())
        if state.running:
            logger.debug("run for %r in progress; dropping request", key)
            return False
        if state.pending is not None and not state.pending.done():
            state.pending.cancel()
        state.pending = asyncio.get_running_loop().create_task(self._fire(key, state))
        self._outstanding.add(state.pending)
        state.pending.add_done_callback(self._outstanding.discard)
        return True

    async def _fire(self, key: Hashable, state: KeyState) -> None:
        await self._sleep(self.delay)
        if self._states.get(key) is not state:
            return
        state.pending = None
        try:
            await self.run_guarded(key)
        except Exception:
            logger.exception("debounced run for %r failed", key)

    async def run_guarded(self, key: Hashable) -> object:
        state = self._states.setdefault(key, KeyState())
        if state.running:
            return None
        state.running = True
        try:
            return await self._run(key)
        finally:
            state.running = False

    def forget(self, key: Hashable) -> None:
        state = self._states.pop(key, None)
        if state is not None and state.pending is not None and not state.pending.done():
            state.pending.cancel()

    async def shutdown(self) -> None:
        tasks = self.outstanding_tasks()
        for task in tasks:
            task.cancel()
        self._states.clear()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
