"""
Page description generation (pipeline stage 1).

Turns a page snapshot plus optional user instructions into a validated
TabClassification with one inference call.
"""

from typing import Optional

from pydantic import ValidationError

from tab_organizer.agents.content_extractor import ContentExtractor, extract_snapshot
from tab_organizer.agents.inference import InferenceSession
from tab_organizer.agents.models import PageSnapshot, TabClassification
from tab_organizer.agents.response_parsing import ResponseParseError, parse_json_with_fallback
from tab_organizer.browser.base import BrowserTab
from tab_organizer.config import get_logger
from tab_organizer.events import NotificationBus, TabDataPatch
from tab_organizer.state.tab_state import TabStateStore

logger = get_logger(__name__)


def build_description_prompt(snapshot: PageSnapshot, instructions: Optional[str] = None) -> str:
    """
    Build the prompt asking for a description, tags and title.

    Args:
        snapshot: Page content
        instructions: Optional free-text user instructions

    Returns:
        Prompt text
    """
    instructions_block = f"User Instructions: {instructions}\n" if instructions else ""

    return f"""Analyze this webpage and generate a description and tags.
{instructions_block}
Page Information:
Title: {snapshot.title}
URL: {snapshot.url}
Content Preview: {snapshot.content_excerpt}
Meta Description: {snapshot.meta_description}

Please provide output in the following JSON format:
{{
  "description": "A concise one-sentence description of the page",
  "tags": ["tag1", "tag2", "tag3"],
  "title": "page title"
}}"""


class DescriptionGenerator:
    """Service producing and persisting a TabClassification for a loaded tab."""

    def __init__(
        self,
        session: InferenceSession,
        extractor: ContentExtractor,
        tab_state: TabStateStore,
        bus: NotificationBus,
    ):
        """
        Initialize the description generator.

        Args:
            session: Shared inference session
            extractor: Page content extractor
            tab_state: Store holding classifications by URL
            bus: Notification channel for classification patches
        """
        self.session = session
        self.extractor = extractor
        self.tab_state = tab_state
        self.bus = bus

    async def generate(
        self, tab: BrowserTab, instructions: Optional[str] = None
    ) -> Optional[TabClassification]:
        """
        Describe a tab's page.

        The result is stored only if the URL has no classification yet, but
        the newly computed record is always broadcast as a patch.

        Args:
            tab: The loaded tab
            instructions: Optional user instructions

        Returns:
            Validated classification, or None if the model output is unusable
        """
        snapshot = await extract_snapshot(self.extractor, tab)
        prompt = build_description_prompt(snapshot, instructions)
        logger.debug(f"Description prompt for tab {tab.id}:\n{prompt}")

        try:
            response = await self.session.prompt(prompt)
            logger.debug(f"Description response for tab {tab.id}: {response}")

            data = parse_json_with_fallback(response)
            classification = TabClassification.model_validate(data)
        except (ResponseParseError, ValidationError) as e:
            logger.error(f"Invalid description response for tab {tab.id}: {e}")
            return None
        except Exception as e:
            logger.error(f"AI error describing tab {tab.id}: {e}", exc_info=True)
            return None

        try:
            if await self.tab_state.record_classification(snapshot.url, classification):
                logger.info(f"Stored classification for {snapshot.url[:80]}")
        except Exception as e:
            logger.warning(f"Failed to store classification for {snapshot.url[:80]}: {e}")

        await self.bus.publish(TabDataPatch(patch={snapshot.url: classification}))
        return classification
