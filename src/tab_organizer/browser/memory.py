"""
In-memory model of the browser's tabs, windows and tab groups.

Mirrors the host platform's rules: groups live in exactly one window,
a tab can only join a group in its own window, and a group disappears when
its last tab leaves it.
"""

import asyncio
from typing import Optional

from tab_organizer.browser.base import (
    NO_GROUP,
    BrowserTab,
    GroupColor,
    GroupingError,
    GroupingService,
    TabGroup,
)
from tab_organizer.config import get_logger

logger = get_logger(__name__)


class InMemoryGroupingService(GroupingService):
    """
    Grouping service backed by plain dictionaries.

    Used by the HTTP server as the mirror of the browser state reported by
    the extension, and by tests as the grouping collaborator.
    """

    def __init__(self, first_group_id: int = 1):
        self.tabs: dict[int, BrowserTab] = {}
        self.groups: dict[int, TabGroup] = {}
        self._next_group_id = first_group_id
        self.color_pool: list[GroupColor] = list(GroupColor)
        self._next_color_index = 0

    def _get_next_color(self) -> GroupColor:
        """Get the next available color for a new group (round-robin)."""
        color = self.color_pool[self._next_color_index]
        self._next_color_index = (self._next_color_index + 1) % len(self.color_pool)
        return color

    def _require_tab(self, tab_id: int) -> BrowserTab:
        tab = self.tabs.get(tab_id)
        if tab is None:
            raise GroupingError(f"No tab with id: {tab_id}")
        return tab

    def _require_group(self, group_id: int) -> TabGroup:
        group = self.groups.get(group_id)
        if group is None:
            raise GroupingError(f"No group with id: {group_id}")
        return group

    def _drop_group_if_empty(self, group_id: int) -> None:
        if group_id == NO_GROUP:
            return
        if not any(t.group_id == group_id for t in self.tabs.values()):
            removed = self.groups.pop(group_id, None)
            if removed:
                logger.debug(f"Group {group_id} ({removed.title!r}) removed, no tabs left")

    # ------------------------------------------------------------------
    # Browser-side bookkeeping
    # ------------------------------------------------------------------

    def upsert_tab(self, tab: BrowserTab) -> BrowserTab:
        """
        Register or refresh a tab reported by the browser.

        Browser reports are ground truth, including group membership.
        Group ids not seen before are adopted as untitled groups of the
        tab's window.
        """
        existing = self.tabs.get(tab.id)
        if tab.group_id != NO_GROUP and tab.group_id not in self.groups:
            self.groups[tab.group_id] = TabGroup(
                id=tab.group_id, window_id=tab.window_id, color=self._get_next_color()
            )
            self._next_group_id = max(self._next_group_id, tab.group_id + 1)

        stored = tab.model_copy()
        self.tabs[tab.id] = stored
        if existing is not None and existing.group_id != stored.group_id:
            self._drop_group_if_empty(existing.group_id)
        return stored

    def remove_tab(self, tab_id: int) -> Optional[BrowserTab]:
        """Forget a closed tab."""
        tab = self.tabs.pop(tab_id, None)
        if tab is not None:
            self._drop_group_if_empty(tab.group_id)
        return tab

    # ------------------------------------------------------------------
    # GroupingService interface
    # ------------------------------------------------------------------

    async def list_groups(self, window_id: Optional[int] = None) -> list[TabGroup]:
        await asyncio.sleep(0)
        return [
            g.model_copy() for g in self.groups.values()
            if window_id is None or g.window_id == window_id
        ]

    async def list_tabs(self, window_id: Optional[int] = None) -> list[BrowserTab]:
        await asyncio.sleep(0)
        return [
            t.model_copy() for t in self.tabs.values()
            if window_id is None or t.window_id == window_id
        ]

    async def get_tab(self, tab_id: int) -> BrowserTab:
        await asyncio.sleep(0)
        return self._require_tab(tab_id).model_copy()

    async def create_group(self, tab_id: int) -> int:
        await asyncio.sleep(0)
        tab = self._require_tab(tab_id)
        group_id = self._next_group_id
        self._next_group_id += 1
        self.groups[group_id] = TabGroup(
            id=group_id, window_id=tab.window_id, color=self._get_next_color()
        )
        previous = tab.group_id
        tab.group_id = group_id
        self._drop_group_if_empty(previous)
        return group_id

    async def add_to_group(self, tab_id: int, group_id: int) -> None:
        await asyncio.sleep(0)
        tab = self._require_tab(tab_id)
        group = self._require_group(group_id)
        if group.window_id != tab.window_id:
            raise GroupingError(
                f"Tab {tab_id} is in window {tab.window_id}, group {group_id} is in window {group.window_id}"
            )
        previous = tab.group_id
        tab.group_id = group_id
        if previous != group_id:
            self._drop_group_if_empty(previous)

    async def update_group_title(self, group_id: int, title: str) -> TabGroup:
        await asyncio.sleep(0)
        group = self._require_group(group_id)
        group.title = title
        return group.model_copy()

    async def ungroup(self, tab_id: int) -> None:
        await asyncio.sleep(0)
        tab = self._require_tab(tab_id)
        previous = tab.group_id
        tab.group_id = NO_GROUP
        self._drop_group_if_empty(previous)
