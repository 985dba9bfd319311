"""Host events consumed by the router."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional

from .directory import Group, Tab


class TabEventKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    MOVED = "moved"
    ATTACHED = "attached"
    DETACHED = "detached"
    REMOVED = "removed"


class GroupEventKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    MOVED = "moved"


@dataclass(frozen=True)
class TabEvent:
    kind: TabEventKind
    tab_id: int
    window_id: Optional[int] = None
    tab: Optional[Tab] = None
    # updated
    url_changed: bool = False
    status: Optional[str] = None
    # detached
    old_window_id: Optional[int] = None
    # removed
    is_window_closing: bool = False


@dataclass(frozen=True)
class GroupEvent:
    kind: GroupEventKind
    group: Group


@dataclass(frozen=True)
class WindowEvent:
    window_id: int
    removed: bool = True


@dataclass(frozen=True)
class RuleChangeEvent:
    keys: FrozenSet[str] = field(default_factory=frozenset)
    area: str = "sync"


@dataclass(frozen=True)
class CommandEvent:
    name: str


@dataclass(frozen=True)
class StartupEvent:
    reason: str = "startup"
