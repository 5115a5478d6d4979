"""
Agents implementing the tab classification pipeline.

This package provides:
- Page description and tagging (description_generator.DescriptionGenerator)
- Group suggestion against the existing groups (group_suggester.GroupSuggester)
- Pending suggestion publishing (suggestion_publisher.SuggestionPublisher)
- Automatic grouping (auto_grouper.AutoGrouper)
- The orchestrator sequencing them per loaded tab (pipeline.TabPipeline)

Only the data models are re-exported here; the stage modules depend on
the state and event modules, which themselves import these models.
"""

from tab_organizer.agents.models import (
    PageSnapshot,
    TabClassification,
    GroupSuggestion,
    PendingSuggestion,
)

__all__ = [
    "PageSnapshot",
    "TabClassification",
    "GroupSuggestion",
    "PendingSuggestion",
]
