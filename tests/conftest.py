"""
Shared fixtures: scripted collaborators and in-memory state.
"""

import json
from typing import Optional, Union

import pytest

from tab_organizer.agents.content_extractor import ContentExtractor
from tab_organizer.agents.inference import InferenceSession
from tab_organizer.agents.models import PageSnapshot
from tab_organizer.agents.pipeline import create_pipeline
from tab_organizer.browser.base import BrowserTab
from tab_organizer.browser.memory import InMemoryGroupingService
from tab_organizer.events import NotificationBus
from tab_organizer.state.database import SQLiteKeyValueStore
from tab_organizer.state.group_catalog import GroupCatalog
from tab_organizer.state.tab_state import TabStateStore


class ScriptedInferenceSession(InferenceSession):
    """Inference session returning canned responses in order."""

    def __init__(self, responses: Optional[list[Union[str, Exception]]] = None):
        super().__init__(temperature=0.3, top_k=40)
        self.responses = list(responses or [])
        self.prompts: list[str] = []

    def queue(self, *responses: Union[str, dict, Exception]) -> None:
        for response in responses:
            self.responses.append(json.dumps(response) if isinstance(response, dict) else response)

    async def prompt(self, text: str) -> str:
        self.prompts.append(text)
        if not self.responses:
            raise RuntimeError("No scripted response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class StaticContentExtractor(ContentExtractor):
    """Extractor returning fixed page text per URL."""

    def __init__(self, pages: Optional[dict[str, str]] = None, fail: bool = False):
        self.pages = pages or {}
        self.fail = fail
        self.calls = 0

    async def extract(self, tab: BrowserTab) -> PageSnapshot:
        self.calls += 1
        if self.fail:
            raise RuntimeError("Cannot access contents of the page")
        return PageSnapshot(
            title=tab.title,
            url=tab.url,
            content_excerpt=self.pages.get(tab.url, ""),
            meta_description="",
        )


@pytest.fixture
def session():
    """Scripted inference session (queue responses with session.queue)."""
    return ScriptedInferenceSession()


@pytest.fixture
def extractor():
    return StaticContentExtractor()


@pytest.fixture
def failing_extractor():
    """Extractor that cannot reach the page."""
    return StaticContentExtractor(fail=True)


@pytest.fixture
def store():
    """In-memory SQLite key-value store."""
    kv = SQLiteKeyValueStore(":memory:")
    yield kv
    kv.close()


@pytest.fixture
def tab_state(store):
    return TabStateStore(store)


@pytest.fixture
def catalog(store):
    return GroupCatalog(store)


@pytest.fixture
def bus():
    return NotificationBus()


@pytest.fixture
def events(bus):
    """List collecting every published notification."""
    received = []
    bus.subscribe(received.append)
    return received


@pytest.fixture
def grouping():
    return InMemoryGroupingService()


@pytest.fixture
def make_tab(grouping):
    """Factory registering a tab in the grouping service."""

    def _make_tab(
        tab_id: int,
        url: str,
        title: str = "",
        window_id: int = 1,
    ) -> BrowserTab:
        return grouping.upsert_tab(
            BrowserTab(id=tab_id, url=url, title=title or url, window_id=window_id)
        )

    return _make_tab


@pytest.fixture
def pipeline(session, extractor, grouping, tab_state, catalog, bus):
    """Pipeline wired to scripted inference and in-memory collaborators."""
    return create_pipeline(
        session=session,
        extractor=extractor,
        grouping=grouping,
        tab_state=tab_state,
        catalog=catalog,
        bus=bus,
    )


@pytest.fixture
def rust_classification():
    return {
        "description": "An introduction to the Rust language",
        "tags": ["rust", "programming"],
        "title": "Intro to Rust",
    }


@pytest.fixture
def programming_suggestion():
    return {
        "suggestedGroup": "Programming",
        "reason": "The page teaches a programming language",
        "groupDescription": "Programming language resources",
        "autoGroup": True,
    }
