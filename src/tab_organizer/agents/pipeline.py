"""
Tab classification pipeline orchestrator.

One "tab finished loading" event triggers one run of four stages:

1. DescriptionGenerator - page snapshot → TabClassification
2. GroupSuggester       - classification + existing groups → GroupSuggestion
3. SuggestionPublisher  - store the pending suggestion, signal a refresh
4. AutoGrouper          - move the tab into the group if authorized

A failure in stage 1 or 2 ends the run early. Whatever the path, a final
FullRefresh is published so observers resynchronize. Runs for different
tabs interleave at every await; there is no per-tab locking.
"""

import asyncio
from enum import Enum
from typing import Optional

from tab_organizer.agents.auto_grouper import AutoGrouper
from tab_organizer.agents.content_extractor import ContentExtractor
from tab_organizer.agents.description_generator import DescriptionGenerator
from tab_organizer.agents.group_suggester import GroupSuggester
from tab_organizer.agents.inference import InferenceSession
from tab_organizer.agents.suggestion_publisher import SuggestionPublisher
from tab_organizer.browser.base import BrowserTab, GroupingService
from tab_organizer.config import get_logger
from tab_organizer.events import FullRefresh, NotificationBus
from tab_organizer.state.group_catalog import GroupCatalog
from tab_organizer.state.tab_state import TabStateStore

logger = get_logger(__name__)

INTERNAL_URL_PREFIXES = ("chrome://", "chrome-extension://")
LOAD_COMPLETE = "complete"


class PipelineOutcome(str, Enum):
    """Terminal state of a pipeline run."""
    DONE = "done"
    SKIPPED = "skipped"
    ABORTED_AT_STAGE1 = "aborted_at_stage1"
    ABORTED_AT_STAGE2 = "aborted_at_stage2"


class TabPipeline:
    """
    Sequences the four stages for each loaded tab.

    Attributes:
        internal_prefixes: URL prefixes never classified (browser and extension pages)
    """

    def __init__(
        self,
        describer: DescriptionGenerator,
        suggester: GroupSuggester,
        publisher: SuggestionPublisher,
        auto_grouper: AutoGrouper,
        tab_state: TabStateStore,
        bus: NotificationBus,
        internal_prefixes: tuple[str, ...] = INTERNAL_URL_PREFIXES,
    ):
        self.describer = describer
        self.suggester = suggester
        self.publisher = publisher
        self.auto_grouper = auto_grouper
        self.tab_state = tab_state
        self.bus = bus
        self.internal_prefixes = internal_prefixes
        self._tasks: set[asyncio.Task] = set()

    def should_process(self, url: Optional[str]) -> bool:
        """Reject empty URLs and the browser's or extension's own pages."""
        if not url:
            return False
        return not url.startswith(self.internal_prefixes)

    async def _load_instructions(self) -> str:
        try:
            return await self.tab_state.get_instructions()
        except Exception as e:
            logger.warning(f"Failed to load user instructions: {e}")
            return ""

    async def process_tab(self, tab: BrowserTab) -> PipelineOutcome:
        """
        Run the pipeline for one loaded tab.

        Args:
            tab: The tab that finished loading

        Returns:
            Terminal state of the run
        """
        if not self.should_process(tab.url):
            logger.debug(f"Skipping internal page: {tab.url}")
            return PipelineOutcome.SKIPPED

        try:
            outcome = await self._run_stages(tab)
        finally:
            await self.bus.publish(FullRefresh())

        logger.info(f"Pipeline for tab {tab.id} finished: {outcome.value}")
        return outcome

    async def _run_stages(self, tab: BrowserTab) -> PipelineOutcome:
        instructions = await self._load_instructions()

        classification = await self.describer.generate(tab, instructions)
        if classification is None:
            return PipelineOutcome.ABORTED_AT_STAGE1

        suggestion = await self.suggester.suggest(tab, classification, instructions)
        if suggestion is None:
            return PipelineOutcome.ABORTED_AT_STAGE2

        await self.publisher.publish(tab.id, suggestion)
        await self.auto_grouper.apply(tab, suggestion)
        return PipelineOutcome.DONE

    # ------------------------------------------------------------------
    # Browser event handlers
    # ------------------------------------------------------------------

    def on_tab_updated(self, tab: BrowserTab, status: Optional[str]) -> Optional[asyncio.Task]:
        """
        Start a pipeline run when a tab finishes loading.

        Must be called from a running event loop.

        Args:
            tab: Updated tab
            status: Load status reported with the update

        Returns:
            The scheduled task, or None if no run was started
        """
        if status != LOAD_COMPLETE or not self.should_process(tab.url):
            return None

        task = asyncio.create_task(self.process_tab(tab), name=f"tab-pipeline-{tab.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> list[PipelineOutcome]:
        """Wait for every in-flight run to finish."""
        if not self._tasks:
            return []
        return list(await asyncio.gather(*list(self._tasks)))


def create_pipeline(
    session: InferenceSession,
    extractor: ContentExtractor,
    grouping: GroupingService,
    tab_state: TabStateStore,
    catalog: GroupCatalog,
    bus: NotificationBus,
) -> TabPipeline:
    """
    Wire the four stages around shared state.

    The same TabStateStore and GroupCatalog instances must be used by every
    writer of the underlying store, since each serializes its own writes.

    Args:
        session: Inference session used by stages 1 and 2
        extractor: Content extractor used by stage 1
        grouping: Grouping service used by stages 2 and 4
        tab_state: Shared tab state store
        catalog: Shared group catalog
        bus: Notification channel

    Returns:
        Ready-to-use TabPipeline
    """
    return TabPipeline(
        describer=DescriptionGenerator(session, extractor, tab_state, bus),
        suggester=GroupSuggester(session, grouping, catalog),
        publisher=SuggestionPublisher(tab_state, bus),
        auto_grouper=AutoGrouper(grouping, catalog),
        tab_state=tab_state,
        bus=bus,
    )
