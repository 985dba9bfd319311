"""Merge same-title groups within one window."""

from __future__ import annotations

import logging
from typing import Optional

from .directory import DirectoryError, GroupDirectory

logger = logging.getLogger(__name__)


class GroupDeduplicator:
    def __init__(self, directory: GroupDirectory) -> None:
        self.directory = directory

    async def merge(self, window_id: Optional[int], title: str, preferred_color: Optional[str] = None) -> None:
        """Fold every group titled ``title`` in the window into the lowest-id one.

        Member tabs of the extra groups are regrouped into the canonical group;
        the host drops the emptied groups. Safe to repeat: a second call finds
        at most one group and returns.
        """
        if window_id is None or not title:
            return
        try:
            groups = await self.directory.query_groups(window_id=window_id)
            same_title = sorted((g for g in groups if g.title == title), key=lambda g: g.id)
            if len(same_title) <= 1:
                return

            canonical, extras = same_title[0], same_title[1:]
            for extra in extras:
                tabs = await self.directory.query_tabs(group_id=extra.id)
                tab_ids = [t.id for t in tabs]
                if tab_ids:
                    await self.directory.group_tabs(tab_ids, group_id=canonical.id)
            logger.debug(
                "merged %d duplicate group(s) titled %r into %d (window %s)",
                len(extras),
                title,
                canonical.id,
                window_id,
            )

            if preferred_color:
                await self.directory.update_group(canonical.id, title=title, color=preferred_color)
            else:
                await self.directory.update_group(canonical.id, title=title)
        except DirectoryError as exc:
            logger.debug("merge of %r in window %s abandoned: %s", title, window_id, exc)
