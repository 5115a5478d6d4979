"""
Suggestion publishing (pipeline stage 3).
"""

from tab_organizer.agents.models import GroupSuggestion, PendingSuggestion
from tab_organizer.config import get_logger
from tab_organizer.events import FullRefresh, NotificationBus
from tab_organizer.state.tab_state import TabStateStore

logger = get_logger(__name__)


class SuggestionPublisher:
    """Stores a tab's latest suggestion for the settings surface and signals a refresh."""

    def __init__(self, tab_state: TabStateStore, bus: NotificationBus):
        self.tab_state = tab_state
        self.bus = bus

    async def publish(self, tab_id: int, suggestion: GroupSuggestion) -> None:
        """
        Persist the pending suggestion for a tab and emit a full refresh.

        Never raises: a storage failure is logged and the refresh is still sent.
        """
        pending = PendingSuggestion.from_suggestion(tab_id, suggestion)
        try:
            await self.tab_state.set_suggestion(pending)
        except Exception as e:
            logger.warning(f"Failed to store suggestion for tab {tab_id}: {e}")

        await self.bus.publish(FullRefresh())
