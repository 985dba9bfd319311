"""Interface to the host's live tab/group registry.

The engine never owns tabs or groups; it reads snapshots and issues mutation
requests. Any request may fail because the tab or group vanished in the
meantime, which surfaces as a ``DirectoryError``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from tabsorter.tab_policy.taxonomy import DEFAULT_GROUP_COLOR, TAB_GROUP_ID_NONE


class DirectoryError(Exception):
    """Transient host-state failure (tab/group closed, moved or regrouped mid-operation)."""


class TabNotFoundError(DirectoryError):
    pass


class GroupNotFoundError(DirectoryError):
    pass


@dataclass(frozen=True)
class Tab:
    id: int
    window_id: int
    index: int = 0
    url: Optional[str] = None
    pending_url: Optional[str] = None
    pinned: bool = False
    group_id: int = TAB_GROUP_ID_NONE
    active: bool = False

    @property
    def current_url(self) -> Optional[str]:
        return self.url or self.pending_url

    @property
    def grouped(self) -> bool:
        return self.group_id != TAB_GROUP_ID_NONE


@dataclass(frozen=True)
class Group:
    id: int
    window_id: int
    title: str = ""
    color: str = DEFAULT_GROUP_COLOR


class GroupDirectory(Protocol):
    async def query_tabs(
        self,
        *,
        window_id: Optional[int] = None,
        group_id: Optional[int] = None,
        pinned: Optional[bool] = None,
        active: Optional[bool] = None,
        last_focused_window: bool = False,
    ) -> List[Tab]:
        ...

    async def get_tab(self, tab_id: int) -> Tab:
        ...

    async def query_groups(self, *, window_id: Optional[int] = None, title: Optional[str] = None) -> List[Group]:
        ...

    async def get_group(self, group_id: int) -> Group:
        ...

    async def update_group(self, group_id: int, *, title: Optional[str] = None, color: Optional[str] = None) -> Group:
        ...

    async def move_group(self, group_id: int, index: int) -> None:
        ...

    async def group_tabs(self, tab_ids: Sequence[int], group_id: Optional[int] = None) -> int:
        """Add tabs to ``group_id``, or to a new group when None; returns the group id."""

    async def ungroup_tabs(self, tab_ids: Sequence[int]) -> None:
        ...

    async def move_tab(self, tab_id: int, index: int) -> None:
        ...

    async def remove_tab(self, tab_id: int) -> None:
        ...
