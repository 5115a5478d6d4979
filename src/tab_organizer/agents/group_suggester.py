"""
Group suggestion (pipeline stage 2).

Asks the model to place a classified tab into one of the existing groups, or
to invent a new group when none of them fits.
"""

import json
from typing import Optional

from pydantic import ValidationError

from tab_organizer.agents.inference import InferenceSession
from tab_organizer.agents.models import GroupSuggestion, TabClassification
from tab_organizer.agents.response_parsing import ResponseParseError, parse_sanitized_json
from tab_organizer.browser.base import BrowserTab, GroupingService, TabGroup
from tab_organizer.config import get_logger
from tab_organizer.state.group_catalog import GroupCatalog, GroupRecord

logger = get_logger(__name__)

AI_DISABLED_MARKER = "[AI updates disabled]"


def describe_existing_group(group: TabGroup, record: GroupRecord) -> str:
    """
    Render one prompt line for an existing group.

    Descriptions of groups with AI updates disabled are replaced by
    AI_DISABLED_MARKER so the model never sees them.
    """
    description = record.description if record.ai_updates_allowed else AI_DISABLED_MARKER
    return f'Group "{group.title or ""}": {description}'


def build_suggestion_prompt(
    classification: TabClassification,
    group_lines: list[str],
    instructions: Optional[str] = None,
) -> str:
    """
    Build the prompt asking for a group assignment.

    Args:
        classification: Stage 1 result for the tab
        group_lines: One line per existing group (see describe_existing_group)
        instructions: Optional free-text user instructions

    Returns:
        Prompt text
    """
    basis = " based on the user Instructions below." if instructions else ""
    instructions_block = f"User Instructions: {instructions}\n" if instructions else ""
    page_info = json.dumps(classification.model_dump(), indent=2)

    return f"""Determine the appropriate tab group for this page{basis}
{instructions_block}
Page Information:
{page_info}

Existing Groups:
{chr(10).join(group_lines)}
Create new group name if the tags do not match the existing groups.
Please provide output in the following JSON format:
{{
  "suggestedGroup": "name of the group",
  "reason": "reason why this belongs to the group or reason new group was created",
  "groupDescription": "new description of group containing this tab",
  "autoGroup": boolean (based on user instructions, should this be automatically grouped?)
}}"""


class GroupSuggester:
    """Service choosing (or inventing) a group for a classified tab."""

    def __init__(
        self,
        session: InferenceSession,
        grouping: GroupingService,
        catalog: GroupCatalog,
    ):
        """
        Initialize the group suggester.

        Args:
            session: Shared inference session
            grouping: Browser grouping service (groups are listed across all windows)
            catalog: Group catalog providing descriptions and AI-control flags
        """
        self.session = session
        self.grouping = grouping
        self.catalog = catalog

    async def existing_group_lines(self) -> list[str]:
        """Describe every group in every window for the prompt."""
        groups = await self.grouping.list_groups()
        records = await self.catalog.get_records([g.id for g in groups])
        return [describe_existing_group(g, records[g.id]) for g in groups]

    async def suggest(
        self,
        tab: BrowserTab,
        classification: TabClassification,
        instructions: Optional[str] = None,
    ) -> Optional[GroupSuggestion]:
        """
        Suggest a group for a tab.

        Args:
            tab: The tab being classified
            classification: Stage 1 result
            instructions: Optional user instructions

        Returns:
            GroupSuggestion, or None if no usable suggestion was produced
        """
        try:
            group_lines = await self.existing_group_lines()
            prompt = build_suggestion_prompt(classification, group_lines, instructions)
            logger.debug(f"Group prompt for tab {tab.id}:\n{prompt}")

            response = await self.session.prompt(prompt)
            logger.debug(f"Group response for tab {tab.id}: {response}")

            suggestion = GroupSuggestion.model_validate(parse_sanitized_json(response))
        except (ResponseParseError, ValidationError) as e:
            logger.error(f"Invalid group suggestion for tab {tab.id}: {e}")
            return None
        except Exception as e:
            logger.error(f"AI error suggesting group for tab {tab.id}: {e}", exc_info=True)
            return None

        logger.info(
            f"Suggested group '{suggestion.suggested_group}' for tab {tab.id} "
            f"(auto_group={suggestion.auto_group})"
        )
        return suggestion
