"""
Automatic grouping (pipeline stage 4).

Moves a tab into the suggested group when the suggestion authorizes it,
creating the group if the tab's window has none with that title.
"""

from typing import Optional

from tab_organizer.agents.models import GroupSuggestion
from tab_organizer.browser.base import BrowserTab, GroupingService, TabGroup
from tab_organizer.config import get_logger
from tab_organizer.state.group_catalog import GroupCatalog

logger = get_logger(__name__)


def find_group_by_title(groups: list[TabGroup], name: str) -> Optional[TabGroup]:
    """
    Find a group whose title equals ``name`` ignoring case.

    Matching is exact otherwise: "Research" matches "research" but not
    "Research Papers".
    """
    wanted = name.lower()
    for group in groups:
        if group.title and group.title.lower() == wanted:
            return group
    return None


class AutoGrouper:
    """Applies an authorized group suggestion to the browser and the catalog."""

    def __init__(self, grouping: GroupingService, catalog: GroupCatalog):
        """
        Initialize the auto-grouper.

        Args:
            grouping: Browser grouping service
            catalog: Group catalog receiving description updates
        """
        self.grouping = grouping
        self.catalog = catalog

    async def apply(self, tab: BrowserTab, suggestion: GroupSuggestion) -> Optional[int]:
        """
        Group a tab according to a suggestion.

        An existing group's description is only overwritten if its AI
        control permits it; the tab is placed into the group either way.
        New groups start with AI updates allowed.

        Args:
            tab: The tab to group
            suggestion: Stage 2 result

        Returns:
            Id of the group the tab was placed in, or None if grouping was
            not requested or failed
        """
        if not suggestion.auto_group:
            return None

        try:
            # Grouping is window-local, so only this window's groups can match
            groups = await self.grouping.list_groups(window_id=tab.window_id)
            existing = find_group_by_title(groups, suggestion.suggested_group)

            if existing is not None:
                await self.catalog.apply_ai_description(existing.id, suggestion.group_description)
                await self.grouping.add_to_group(tab.id, existing.id)
                logger.info(f"Tab {tab.id} added to existing group '{existing.title}' ({existing.id})")
                return existing.id

            group_id = await self.grouping.create_group(tab.id)
            await self.grouping.update_group_title(group_id, suggestion.suggested_group)
            await self.catalog.register_new_group(group_id, suggestion.group_description)
            logger.info(f"Tab {tab.id} placed in new group '{suggestion.suggested_group}' ({group_id})")
            return group_id

        except Exception as e:
            logger.warning(f"Error in auto-grouping tab {tab.id}: {e}", exc_info=True)
            return None
