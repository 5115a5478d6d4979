"""
Per-tab persistent state: classifications, pending suggestions and the
user's free-text instructions.
"""

import asyncio
from typing import Optional

from tab_organizer.agents.models import PendingSuggestion, TabClassification
from tab_organizer.config import get_logger
from tab_organizer.state.base import KeyValueStore

logger = get_logger(__name__)

TAB_DATA_KEY = "tabData"
INSTRUCTIONS_KEY = "aiInstructions"
SUGGESTION_PREFIX = "suggestion_"


def suggestion_key(tab_id: int) -> str:
    """Storage key of a tab's pending suggestion."""
    return f"{SUGGESTION_PREFIX}{tab_id}"


class TabStateStore:
    """
    Storage operations for tab classifications, suggestions and instructions.

    Classifications follow first-write-wins: the pipeline can only add a
    record for a URL that has none, while a human edit always overwrites.
    """

    def __init__(self, store: KeyValueStore):
        """
        Initialize the tab state store.

        Args:
            store: Durable key-value store
        """
        self.store = store
        self._tab_data_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Classifications (tabData, keyed by URL)
    # ------------------------------------------------------------------

    async def all_classifications(self) -> dict[str, TabClassification]:
        """Return every stored classification keyed by URL."""
        raw = await self.store.get(TAB_DATA_KEY) or {}
        return {url: TabClassification.model_validate(data) for url, data in raw.items()}

    async def get_classification(self, url: str) -> Optional[TabClassification]:
        """Return the stored classification for a URL, if any."""
        raw = await self.store.get(TAB_DATA_KEY) or {}
        data = raw.get(url)
        return TabClassification.model_validate(data) if data else None

    async def record_classification(self, url: str, classification: TabClassification) -> bool:
        """
        Store a pipeline-computed classification unless one already exists.

        Args:
            url: Page URL
            classification: Newly computed classification

        Returns:
            True if stored, False if an earlier classification was kept
        """
        async with self._tab_data_lock:
            tab_data = dict(await self.store.get(TAB_DATA_KEY) or {})
            if url in tab_data:
                logger.debug(f"Classification for {url} already stored, keeping it")
                return False
            tab_data[url] = classification.model_dump()
            await self.store.set(TAB_DATA_KEY, tab_data)
        return True

    async def edit_classification(self, url: str, classification: TabClassification) -> None:
        """Overwrite a URL's classification with a human edit."""
        async with self._tab_data_lock:
            tab_data = dict(await self.store.get(TAB_DATA_KEY) or {})
            tab_data[url] = classification.model_dump()
            await self.store.set(TAB_DATA_KEY, tab_data)
        logger.info(f"Classification for {url} edited by user")

    # ------------------------------------------------------------------
    # Pending suggestions (suggestion_<tabId>)
    # ------------------------------------------------------------------

    async def set_suggestion(self, suggestion: PendingSuggestion) -> None:
        """Store a tab's pending suggestion, replacing any previous one."""
        await self.store.set(
            suggestion_key(suggestion.tab_id), suggestion.model_dump(by_alias=True)
        )

    async def get_suggestion(self, tab_id: int) -> Optional[PendingSuggestion]:
        """Return the pending suggestion for a tab, if any."""
        data = await self.store.get(suggestion_key(tab_id))
        return PendingSuggestion.model_validate(data) if data else None

    async def clear_suggestion(self, tab_id: int) -> bool:
        """Drop a tab's pending suggestion."""
        return await self.store.delete(suggestion_key(tab_id))

    # ------------------------------------------------------------------
    # User instructions (aiInstructions)
    # ------------------------------------------------------------------

    async def get_instructions(self) -> str:
        """Return the user's free-text instructions ("" when unset)."""
        return await self.store.get(INSTRUCTIONS_KEY) or ""

    async def set_instructions(self, instructions: str) -> None:
        await self.store.set(INSTRUCTIONS_KEY, instructions)
