"""
Data models for tab classification and grouping.

This module defines the records that flow through the four-stage pipeline:
the page snapshot fed to the describer, the per-URL classification it
produces, the group suggestion returned by the suggester, and the pending
suggestion surfaced to the user.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_CONTENT_CHARS = 1000


class PageSnapshot(BaseModel):
    """Visible content of a loaded page, produced fresh for every pipeline run.

    Attributes:
        title: Document title (falls back to the tab title)
        url: The page URL
        content_excerpt: Leading visible text of the page body
        meta_description: Content of the page's meta description tag
    """

    title: str = ""
    url: str
    content_excerpt: str = ""
    meta_description: str = ""

    @field_validator("content_excerpt", mode="before")
    @classmethod
    def truncate_excerpt(cls, v):
        """Keep at most MAX_CONTENT_CHARS characters of page text."""
        if v is None:
            return ""
        return str(v)[:MAX_CONTENT_CHARS]

    @field_validator("title", "meta_description", mode="before")
    @classmethod
    def convert_none_to_empty_string(cls, v):
        """Convert None to empty string for optional text fields."""
        return v if v is not None else ""


class TabClassification(BaseModel):
    """AI-derived description and tags for a page, keyed by URL in storage.

    Attributes:
        description: One-sentence description of the page
        tags: Ordered topic tags
        title: Page title as understood by the model
    """

    description: str = Field(min_length=1)
    tags: list[str]
    title: str = Field(min_length=1)


class GroupSuggestion(BaseModel):
    """Group choice returned by the suggester.

    Field aliases match the JSON keys the model is asked to produce.

    Attributes:
        suggested_group: Name of an existing group or a newly invented one
        reason: Why the tab belongs there (or why a new group was needed)
        group_description: Updated description of the group including this tab
        auto_group: Whether the tab should be moved into the group automatically
    """

    suggested_group: str = Field(alias="suggestedGroup", min_length=1)
    reason: str = ""
    group_description: str = Field(default="", alias="groupDescription")
    auto_group: bool = Field(default=False, alias="autoGroup")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("reason", "group_description", mode="before")
    @classmethod
    def convert_none_to_empty_string(cls, v):
        """Models sometimes emit null for free-text fields."""
        return v if v is not None else ""

    @field_validator("auto_group", mode="before")
    @classmethod
    def convert_none_to_false(cls, v):
        """A missing or null autoGroup never authorizes grouping."""
        return v if v is not None else False


class PendingSuggestion(BaseModel):
    """Not-yet-applied suggestion stored per tab for the settings surface.

    Serialized with camelCase keys (tabId, groupName, description, autoGroup).
    """

    tab_id: int = Field(alias="tabId")
    group_name: str = Field(alias="groupName")
    description: str = ""
    auto_group: bool = Field(default=False, alias="autoGroup")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_suggestion(cls, tab_id: int, suggestion: GroupSuggestion) -> "PendingSuggestion":
        """Build the stored record from a suggester result."""
        return cls(
            tab_id=tab_id,
            group_name=suggestion.suggested_group,
            description=suggestion.group_description,
            auto_group=suggestion.auto_group,
        )
