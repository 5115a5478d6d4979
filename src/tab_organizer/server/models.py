"""
Pydantic models for API request/response validation.
"""

from typing import Optional
from pydantic import BaseModel, Field

from tab_organizer.agents.models import PageSnapshot
from tab_organizer.browser.base import NO_GROUP, BrowserTab


# ============================================================================
# Request Models
# ============================================================================


class TabInput(BaseModel):
    """Input model for a browser tab from the extension."""

    id: int
    url: str
    title: str = ""
    window_id: int
    group_id: int = NO_GROUP
    # Page content captured by the content script (optional)
    page_title: Optional[str] = None
    content: Optional[str] = None
    meta_description: Optional[str] = None

    def to_browser_tab(self) -> BrowserTab:
        return BrowserTab(
            id=self.id,
            url=self.url,
            title=self.title,
            window_id=self.window_id,
            group_id=self.group_id,
        )

    def reported_snapshot(self) -> Optional[PageSnapshot]:
        """Snapshot built from content sent along with the tab, if any."""
        if self.content is None and self.meta_description is None:
            return None
        return PageSnapshot(
            title=self.page_title or self.title,
            url=self.url,
            content_excerpt=self.content or "",
            meta_description=self.meta_description or "",
        )


class TabUpdatedRequest(BaseModel):
    """Request model for /api/tabs/events/updated endpoint."""

    tab: TabInput
    status: Optional[str] = None  # "loading" or "complete"


class TabCreatedRequest(BaseModel):
    """Request model for /api/tabs/events/created endpoint."""

    tab: TabInput


class TabRemovedRequest(BaseModel):
    """Request model for /api/tabs/events/removed endpoint."""

    tab_id: int


class ClassificationEditRequest(BaseModel):
    """Request model for PUT /api/tabs/data (human edit)."""

    url: str
    description: str = Field(min_length=1)
    tags: list[str] = Field(default_factory=list)
    title: str = Field(min_length=1)


class MoveTabRequest(BaseModel):
    """Request model for drag-and-drop moves; group_id -1 ungroups the tab."""

    group_id: int


class GroupDescriptionUpdate(BaseModel):
    description: str


class GroupAiControlUpdate(BaseModel):
    enabled: bool


class GroupTitleUpdate(BaseModel):
    title: str


class InstructionsBody(BaseModel):
    """Request/response model for the user's AI instructions."""

    instructions: str = ""


# ============================================================================
# Response Models
# ============================================================================


class TabEventResponse(BaseModel):
    """Response model for tab event endpoints."""

    status: str
    tab_id: int
    scheduled: bool = False


class GroupResponse(BaseModel):
    """Response model for a tab group with its catalog entry."""

    id: int
    title: Optional[str] = None
    window_id: Optional[int] = None
    color: Optional[str] = None
    description: str
    ai_control: str
    ai_updates_allowed: bool


class GroupsResponse(BaseModel):
    """Response model for GET /api/groups endpoint."""

    groups: list[GroupResponse]


class DashboardTab(BaseModel):
    """A tab row on the dashboard."""

    id: int
    url: str
    title: str
    group_id: int
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class DashboardSection(BaseModel):
    """A group (or the ungrouped tabs) with its tabs."""

    group: Optional[GroupResponse] = None
    tabs: list[DashboardTab] = Field(default_factory=list)


class DashboardResponse(BaseModel):
    """Response model for GET /api/tabs endpoint."""

    sections: list[DashboardSection]
    timestamp: str


class HealthResponse(BaseModel):
    """Response model for /health endpoint."""

    status: str
    version: str = "0.1.0"
    timestamp: str
