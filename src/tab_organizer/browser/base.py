"""
Abstract interface for the browser's tab and tab-group primitives.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from pydantic import BaseModel

NO_GROUP = -1


class GroupColor(str, Enum):
    """Available colors for tab groups (Chrome Tab Group colors)."""
    GREY = "grey"
    BLUE = "blue"
    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"
    PINK = "pink"
    PURPLE = "purple"
    CYAN = "cyan"
    ORANGE = "orange"


class BrowserTab(BaseModel):
    """A browser tab as reported by the host platform.

    Attributes:
        id: Tab id
        url: Current URL
        title: Tab title
        window_id: Window containing the tab
        group_id: Tab group id, or NO_GROUP when ungrouped
    """

    id: int
    url: str
    title: str = ""
    window_id: int
    group_id: int = NO_GROUP


class TabGroup(BaseModel):
    """A browser tab group (always scoped to one window)."""

    id: int
    title: Optional[str] = None
    window_id: int
    color: GroupColor = GroupColor.GREY
    collapsed: bool = False


class GroupingError(RuntimeError):
    """Raised when a grouping operation refers to an unknown tab or group."""


class GroupingService(ABC):
    """Abstract interface for tab/group manipulation in the browser."""

    @abstractmethod
    async def list_groups(self, window_id: Optional[int] = None) -> list[TabGroup]:
        """
        List tab groups.

        Args:
            window_id: Restrict to one window; None lists groups in all windows

        Returns:
            List of groups
        """
        pass

    @abstractmethod
    async def list_tabs(self, window_id: Optional[int] = None) -> list[BrowserTab]:
        """List tabs, optionally restricted to one window."""
        pass

    @abstractmethod
    async def get_tab(self, tab_id: int) -> BrowserTab:
        """Return a tab by id (raises GroupingError if unknown)."""
        pass

    @abstractmethod
    async def create_group(self, tab_id: int) -> int:
        """
        Create a new group in the tab's window containing the tab.

        Returns:
            Id of the new group
        """
        pass

    @abstractmethod
    async def add_to_group(self, tab_id: int, group_id: int) -> None:
        """Move a tab into an existing group."""
        pass

    @abstractmethod
    async def update_group_title(self, group_id: int, title: str) -> TabGroup:
        """Rename a group."""
        pass

    @abstractmethod
    async def ungroup(self, tab_id: int) -> None:
        """Remove a tab from its group (no-op if already ungrouped)."""
        pass
