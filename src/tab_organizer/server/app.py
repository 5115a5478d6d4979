"""
FastAPI application for the tab organizer backend.

This server provides endpoints for:
- Tab events from the browser extension (loaded, created, removed)
- The dashboard (tabs by group, group descriptions and AI control)
- The settings popup (AI instructions, pending suggestions)
- A WebSocket stream of change notifications
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, UTC
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from tab_organizer.agents.content_extractor import HttpContentExtractor, ReportedContentExtractor
from tab_organizer.agents.inference import get_inference_session
from tab_organizer.agents.models import PendingSuggestion, TabClassification
from tab_organizer.agents.pipeline import LOAD_COMPLETE, TabPipeline, create_pipeline
from tab_organizer.browser.base import NO_GROUP, BrowserTab, GroupingError, TabGroup
from tab_organizer.browser.memory import InMemoryGroupingService
from tab_organizer.config import get_logger, get_settings
from tab_organizer.events import FullRefresh, NotificationBus, TabDataPatch, parse_message
from tab_organizer.state.database import SQLiteKeyValueStore
from tab_organizer.state.group_catalog import GroupCatalog, GroupRecord
from tab_organizer.state.tab_state import TabStateStore

logger = get_logger(__name__)
from tab_organizer.server.models import (
    ClassificationEditRequest,
    DashboardResponse,
    DashboardSection,
    DashboardTab,
    GroupAiControlUpdate,
    GroupDescriptionUpdate,
    GroupResponse,
    GroupsResponse,
    GroupTitleUpdate,
    HealthResponse,
    InstructionsBody,
    MoveTabRequest,
    TabCreatedRequest,
    TabEventResponse,
    TabRemovedRequest,
    TabUpdatedRequest,
)

# ============================================================================
# FastAPI App Initialization
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Release the HTTP client and the store when the server stops."""
    yield
    await shutdown_resources()


app = FastAPI(
    title="Tab Organizer API",
    description="AI-assisted tab grouping with a persistent group catalog",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware for browser extension
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "chrome-extension://*",
        "http://localhost:*",
        "https://localhost:*",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================================================
# Global State
# ============================================================================

# One instance of each per process; the catalog and tab state serialize
# their own writes, so every writer must share them.
_store: Optional[SQLiteKeyValueStore] = None
_grouping: Optional[InMemoryGroupingService] = None
_bus: Optional[NotificationBus] = None
_tab_state: Optional[TabStateStore] = None
_catalog: Optional[GroupCatalog] = None
_extractor: Optional[ReportedContentExtractor] = None
_pipeline: Optional[TabPipeline] = None


def get_store() -> SQLiteKeyValueStore:
    """Get or create the global key-value store."""
    global _store
    if _store is None:
        _store = SQLiteKeyValueStore(get_settings().store_path)
    return _store


def get_grouping_service() -> InMemoryGroupingService:
    """Get or create the mirror of the browser's tabs and groups."""
    global _grouping
    if _grouping is None:
        _grouping = InMemoryGroupingService()
    return _grouping


def get_bus() -> NotificationBus:
    global _bus
    if _bus is None:
        _bus = NotificationBus()
    return _bus


def get_tab_state() -> TabStateStore:
    global _tab_state
    if _tab_state is None:
        _tab_state = TabStateStore(get_store())
    return _tab_state


def get_catalog() -> GroupCatalog:
    global _catalog
    if _catalog is None:
        _catalog = GroupCatalog(get_store())
    return _catalog


def get_extractor() -> ReportedContentExtractor:
    """Get or create the extractor (reported content first, then HTTP fetch)."""
    global _extractor
    if _extractor is None:
        settings = get_settings()
        _extractor = ReportedContentExtractor(
            fallback=HttpContentExtractor(
                timeout=settings.fetch_timeout,
                max_chars=settings.content_max_chars,
            )
        )
    return _extractor


def get_pipeline() -> TabPipeline:
    """Get or create the global pipeline wired to the shared state."""
    global _pipeline
    if _pipeline is None:
        _pipeline = create_pipeline(
            session=get_inference_session(),
            extractor=get_extractor(),
            grouping=get_grouping_service(),
            tab_state=get_tab_state(),
            catalog=get_catalog(),
            bus=get_bus(),
        )
    return _pipeline


async def shutdown_resources() -> None:
    """Close the extractor's HTTP client and the store, and forget all globals."""
    global _store, _grouping, _bus, _tab_state, _catalog, _extractor, _pipeline

    if _extractor is not None:
        await _extractor.aclose()
    if _store is not None:
        _store.close()
        logger.info("Key-value store closed")

    _store = _grouping = _bus = _tab_state = _catalog = _extractor = _pipeline = None


def _dashboard_tab(tab: BrowserTab, classification: Optional[TabClassification]) -> DashboardTab:
    return DashboardTab(
        id=tab.id,
        url=tab.url,
        title=tab.title,
        group_id=tab.group_id,
        description=classification.description if classification else None,
        tags=classification.tags if classification else [],
    )


def _group_response(group: Optional[TabGroup], record: GroupRecord) -> GroupResponse:
    return GroupResponse(
        id=record.group_id,
        title=group.title if group else None,
        window_id=group.window_id if group else None,
        color=group.color.value if group else None,
        description=record.description,
        ai_control=record.ai_control.value,
        ai_updates_allowed=record.ai_updates_allowed,
    )


# ============================================================================
# API Endpoints
# ============================================================================


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC).isoformat(),
    )


@app.post("/api/tabs/events/updated", response_model=TabEventResponse)
async def tab_updated(request: TabUpdatedRequest, background_tasks: BackgroundTasks):
    """
    Record a tab update and classify the tab once it has finished loading.

    The tab is upserted into the grouping model first. Content captured by
    the extension, if sent, is used instead of fetching the page. The
    pipeline runs after the response is sent.

    Args:
        request: Updated tab and its load status
        background_tasks: FastAPI background tasks running the pipeline

    Returns:
        Whether a pipeline run was scheduled
    """
    tab = get_grouping_service().upsert_tab(request.tab.to_browser_tab())

    scheduled = False
    if request.status == LOAD_COMPLETE:
        pipeline = get_pipeline()
        scheduled = pipeline.should_process(tab.url)
    if scheduled:
        snapshot = request.tab.reported_snapshot()
        if snapshot is not None:
            get_extractor().report(tab.id, snapshot)
        background_tasks.add_task(pipeline.process_tab, tab)
        logger.info(f"Queued pipeline run for tab {tab.id}: {tab.url[:80]}")

    return TabEventResponse(status="success", tab_id=tab.id, scheduled=scheduled)


@app.post("/api/tabs/events/created", response_model=TabEventResponse)
async def tab_created(request: TabCreatedRequest):
    """Register a newly opened tab."""
    tab = get_grouping_service().upsert_tab(request.tab.to_browser_tab())
    await get_bus().publish(FullRefresh())
    return TabEventResponse(status="success", tab_id=tab.id)


@app.post("/api/tabs/events/removed", response_model=TabEventResponse)
async def tab_removed(request: TabRemovedRequest):
    """
    Forget a closed tab.

    Its pending suggestion is dropped too, since the browser reuses tab ids.
    """
    get_grouping_service().remove_tab(request.tab_id)
    get_extractor().discard(request.tab_id)
    await get_tab_state().clear_suggestion(request.tab_id)
    await get_bus().publish(FullRefresh())
    return TabEventResponse(status="success", tab_id=request.tab_id)


@app.get("/api/tabs", response_model=DashboardResponse)
async def get_dashboard(window_id: Optional[int] = Query(default=None)):
    """
    Get tabs organized by group, with their classifications.

    Args:
        window_id: Restrict to one window (all windows if omitted)

    Returns:
        One section per group, followed by the ungrouped tabs (if any)
    """
    grouping = get_grouping_service()
    tabs = await grouping.list_tabs(window_id=window_id)
    groups = await grouping.list_groups(window_id=window_id)
    records = await get_catalog().get_records([g.id for g in groups])
    tab_data = await get_tab_state().all_classifications()

    by_group: dict[int, list[DashboardTab]] = {}
    for tab in tabs:
        by_group.setdefault(tab.group_id, []).append(_dashboard_tab(tab, tab_data.get(tab.url)))

    sections = [
        DashboardSection(group=_group_response(g, records[g.id]), tabs=by_group.pop(g.id, []))
        for g in groups
    ]
    if by_group.get(NO_GROUP):
        sections.append(DashboardSection(group=None, tabs=by_group[NO_GROUP]))

    return DashboardResponse(sections=sections, timestamp=datetime.now(UTC).isoformat())


@app.get("/api/tabs/data", response_model=dict[str, TabClassification])
async def get_tab_data():
    """Get every stored tab classification keyed by URL."""
    return await get_tab_state().all_classifications()


@app.get("/api/tabs/data/lookup", response_model=TabClassification)
async def lookup_tab_data(url: str = Query(...)):
    """Get the stored classification for one URL."""
    classification = await get_tab_state().get_classification(url)
    if classification is None:
        raise HTTPException(status_code=404, detail=f"No classification for {url}")
    return classification


@app.put("/api/tabs/data", response_model=TabClassification)
async def edit_tab_data(request: ClassificationEditRequest):
    """Overwrite a URL's classification with a human edit."""
    classification = TabClassification(
        description=request.description,
        tags=request.tags,
        title=request.title,
    )
    await get_tab_state().edit_classification(request.url, classification)
    await get_bus().publish(TabDataPatch(patch={request.url: classification}))
    return classification


@app.get("/api/tabs/{tab_id}", response_model=DashboardTab)
async def get_tab(tab_id: int):
    """Get one tab with its stored classification."""
    try:
        tab = await get_grouping_service().get_tab(tab_id)
    except GroupingError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return _dashboard_tab(tab, await get_tab_state().get_classification(tab.url))


@app.post("/api/tabs/{tab_id}/move", response_model=TabEventResponse)
async def move_tab(tab_id: int, request: MoveTabRequest):
    """
    Move a tab to another group (drag and drop).

    A group_id of -1 removes the tab from its group.
    """
    grouping = get_grouping_service()
    try:
        if request.group_id == NO_GROUP:
            await grouping.ungroup(tab_id)
        else:
            await grouping.add_to_group(tab_id, request.group_id)
    except GroupingError as e:
        logger.warning(f"Error during drag-and-drop of tab {tab_id}: {e}")
        raise HTTPException(status_code=404, detail=str(e))

    await get_bus().publish(FullRefresh())
    return TabEventResponse(status="success", tab_id=tab_id)


@app.get("/api/groups", response_model=GroupsResponse)
async def get_groups(window_id: Optional[int] = Query(default=None)):
    """Get tab groups with their descriptions and AI-control state."""
    groups = await get_grouping_service().list_groups(window_id=window_id)
    records = await get_catalog().get_records([g.id for g in groups])
    return GroupsResponse(groups=[_group_response(g, records[g.id]) for g in groups])


@app.get("/api/groups/catalog", response_model=GroupsResponse)
async def get_group_catalog():
    """
    Get every catalog entry, including groups the browser no longer has.

    Entries without a live group carry no title, window or color.
    """
    groups = get_grouping_service().groups
    records = await get_catalog().all_records()
    return GroupsResponse(
        groups=[_group_response(groups.get(group_id), record) for group_id, record in records.items()]
    )


@app.put("/api/groups/{group_id}/description", response_model=GroupResponse)
async def update_group_description(group_id: int, request: GroupDescriptionUpdate):
    """Store a human-written group description."""
    catalog = get_catalog()
    await catalog.set_description(group_id, request.description)
    group = get_grouping_service().groups.get(group_id)
    return _group_response(group, await catalog.get_record(group_id))


@app.put("/api/groups/{group_id}/ai-control", response_model=GroupResponse)
async def update_group_ai_control(group_id: int, request: GroupAiControlUpdate):
    """Allow or forbid AI updates to a group's description."""
    catalog = get_catalog()
    await catalog.set_ai_control(group_id, request.enabled)
    group = get_grouping_service().groups.get(group_id)
    return _group_response(group, await catalog.get_record(group_id))


@app.put("/api/groups/{group_id}/title", response_model=GroupResponse)
async def update_group_title(group_id: int, request: GroupTitleUpdate):
    """Rename a tab group."""
    try:
        group = await get_grouping_service().update_group_title(group_id, request.title)
    except GroupingError as e:
        raise HTTPException(status_code=404, detail=str(e))

    await get_bus().publish(FullRefresh())
    return _group_response(group, await get_catalog().get_record(group_id))


@app.get("/api/instructions", response_model=InstructionsBody)
async def get_instructions():
    """Get the user's free-text instructions for the AI."""
    return InstructionsBody(instructions=await get_tab_state().get_instructions())


@app.put("/api/instructions", response_model=InstructionsBody)
async def set_instructions(request: InstructionsBody):
    """Replace the user's free-text instructions for the AI."""
    await get_tab_state().set_instructions(request.instructions)
    return request


@app.get("/api/suggestions/{tab_id}", response_model=PendingSuggestion)
async def get_suggestion(tab_id: int):
    """Get the latest pending group suggestion for a tab."""
    suggestion = await get_tab_state().get_suggestion(tab_id)
    if suggestion is None:
        raise HTTPException(status_code=404, detail=f"No suggestion for tab {tab_id}")
    return suggestion


@app.websocket("/ws/events")
async def stream_events(websocket: WebSocket):
    """
    Stream change notifications to a dashboard.

    Each message is {"type": "data_changed"} with a "patch" member for
    incremental classification updates. Messages of the same shape sent by
    a client are relayed to every observer; anything else is ignored.
    """
    queue: asyncio.Queue = asyncio.Queue()
    bus = get_bus()
    unsubscribe = bus.subscribe(queue.put_nowait)
    await websocket.accept()

    async def forward_events():
        while True:
            event = await queue.get()
            await websocket.send_json(event.to_message())

    forwarder = asyncio.create_task(forward_events())
    try:
        while True:
            try:
                event = parse_message(await websocket.receive_json())
            except ValueError as e:
                logger.warning(f"Ignoring client message: {e}")
                continue
            await bus.publish(event)
    except WebSocketDisconnect:
        logger.debug("Event stream client disconnected")
    finally:
        unsubscribe()
        forwarder.cancel()
