"""
Tests for FastAPI backend endpoints.
"""

import sqlite3
from unittest.mock import AsyncMock, Mock, patch

import pytest
from fastapi.testclient import TestClient

from tab_organizer.browser.base import NO_GROUP


class TestHealthEndpoint:
    """Tests for GET /health endpoint."""

    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data


class TestTabUpdatedEndpoint:
    """Tests for POST /api/tabs/events/updated endpoint."""

    def test_loading_tab_is_registered_not_classified(self, client, session, rust_tab):
        response = client.post("/api/tabs/events/updated", json={"tab": rust_tab, "status": "loading"})

        assert response.status_code == 200
        assert response.json() == {"status": "success", "tab_id": 1, "scheduled": False}
        assert session.prompts == []

        dashboard = client.get("/api/tabs").json()
        assert dashboard["sections"][0]["group"] is None
        assert dashboard["sections"][0]["tabs"][0]["url"] == rust_tab["url"]

    def test_internal_page_is_not_classified(self, client, session):
        tab = {"id": 3, "url": "chrome://settings", "window_id": 1}

        response = client.post("/api/tabs/events/updated", json={"tab": tab, "status": "complete"})

        assert response.json()["scheduled"] is False
        assert session.prompts == []

    def test_complete_load_runs_pipeline(
        self, client, session, rust_tab, rust_classification, programming_suggestion
    ):
        session.queue(rust_classification, programming_suggestion)

        response = client.post("/api/tabs/events/updated", json={"tab": rust_tab, "status": "complete"})

        assert response.status_code == 200
        assert response.json()["scheduled"] is True
        assert "Content Preview: Rust is a systems language..." in session.prompts[0]
        assert "Meta Description: Learn Rust" in session.prompts[0]

        tab_data = client.get("/api/tabs/data").json()
        assert tab_data[rust_tab["url"]]["title"] == "Intro to Rust"

        groups = client.get("/api/groups").json()["groups"]
        assert len(groups) == 1
        assert groups[0]["title"] == "Programming"
        assert groups[0]["description"] == "Programming language resources"
        assert groups[0]["ai_control"] == "allowed"

        dashboard = client.get("/api/tabs").json()
        section = dashboard["sections"][0]
        assert section["group"]["title"] == "Programming"
        assert section["tabs"][0]["description"] == "An introduction to the Rust language"
        assert section["tabs"][0]["tags"] == ["rust", "programming"]

    def test_pending_suggestion_uses_camel_case(
        self, client, session, rust_tab, rust_classification, programming_suggestion
    ):
        session.queue(rust_classification, {**programming_suggestion, "autoGroup": False})
        client.post("/api/tabs/events/updated", json={"tab": rust_tab, "status": "complete"})

        response = client.get("/api/suggestions/1")

        assert response.status_code == 200
        assert response.json() == {
            "tabId": 1,
            "groupName": "Programming",
            "description": "Programming language resources",
            "autoGroup": False,
        }
        assert client.get("/api/groups").json()["groups"] == []

    def test_failed_classification_stores_nothing(self, client, session, rust_tab):
        session.queue("I am not JSON")

        client.post("/api/tabs/events/updated", json={"tab": rust_tab, "status": "complete"})

        assert client.get("/api/tabs/data").json() == {}
        assert client.get("/api/suggestions/1").status_code == 404


class TestTabLifecycleEndpoints:
    """Tests for tab created/removed events."""

    def test_created_then_removed(self, client, news_tab):
        created = client.post("/api/tabs/events/created", json={"tab": news_tab})
        assert created.status_code == 200

        removed = client.post("/api/tabs/events/removed", json={"tab_id": news_tab["id"]})
        assert removed.status_code == 200
        assert client.get("/api/tabs").json()["sections"] == []

    def test_window_filter(self, client, news_tab, rust_tab):
        client.post("/api/tabs/events/created", json={"tab": news_tab})
        client.post("/api/tabs/events/created", json={"tab": {**rust_tab, "window_id": 2}})

        sections = client.get("/api/tabs", params={"window_id": 2}).json()["sections"]

        assert [t["id"] for t in sections[0]["tabs"]] == [rust_tab["id"]]

    def test_removed_tab_drops_pending_suggestion(
        self, client, session, rust_tab, rust_classification, programming_suggestion
    ):
        session.queue(rust_classification, {**programming_suggestion, "autoGroup": False})
        client.post("/api/tabs/events/updated", json={"tab": rust_tab, "status": "complete"})
        assert client.get("/api/suggestions/1").status_code == 200

        client.post("/api/tabs/events/removed", json={"tab_id": 1})

        assert client.get("/api/suggestions/1").status_code == 404

    def test_events_do_not_need_inference_provider(self, client, session, rust_tab, news_tab):
        no_provider = ValueError("OPENAI_API_KEY is required")
        with patch("tab_organizer.server.app.get_inference_session", side_effect=no_provider):
            created = client.post("/api/tabs/events/created", json={"tab": news_tab})
            loading = client.post(
                "/api/tabs/events/updated", json={"tab": rust_tab, "status": "loading"}
            )
            removed = client.post("/api/tabs/events/removed", json={"tab_id": news_tab["id"]})

        assert [created.status_code, loading.status_code, removed.status_code] == [200, 200, 200]
        assert session.prompts == []


class TestTabDataEndpoints:
    """Tests for classification lookup and human edits."""

    def test_lookup_missing_returns_404(self, client):
        response = client.get("/api/tabs/data/lookup", params={"url": "https://unknown.test"})

        assert response.status_code == 404

    def test_edit_overwrites_classification(self, client):
        edit = {
            "url": "https://rust.test/intro",
            "description": "My own notes",
            "tags": ["notes"],
            "title": "Rust notes",
        }

        response = client.put("/api/tabs/data", json=edit)
        assert response.status_code == 200

        lookup = client.get("/api/tabs/data/lookup", params={"url": edit["url"]})
        assert lookup.json() == {"description": "My own notes", "tags": ["notes"], "title": "Rust notes"}

    def test_edit_requires_title(self, client):
        edit = {"url": "https://rust.test", "description": "x", "tags": [], "title": ""}

        assert client.put("/api/tabs/data", json=edit).status_code == 422

    def test_get_single_tab_with_classification(self, client, rust_tab):
        client.post("/api/tabs/events/created", json={"tab": rust_tab})
        edit = {"url": rust_tab["url"], "description": "Rust intro", "tags": ["rust"], "title": "Rust"}
        client.put("/api/tabs/data", json=edit)

        response = client.get("/api/tabs/1")

        assert response.status_code == 200
        assert response.json() == {
            "id": 1,
            "url": rust_tab["url"],
            "title": "Intro to Rust",
            "group_id": NO_GROUP,
            "description": "Rust intro",
            "tags": ["rust"],
        }
        assert rust_tab["url"] in client.get("/api/tabs/data").json()

    def test_get_unknown_tab_returns_404(self, client):
        assert client.get("/api/tabs/7").status_code == 404

    def test_edit_is_streamed_as_patch(self, client):
        edit = {"url": "https://rust.test", "description": "Edited", "tags": [], "title": "Rust"}

        with client.websocket_connect("/ws/events") as websocket:
            client.put("/api/tabs/data", json=edit)
            message = websocket.receive_json()

        assert message == {
            "type": "data_changed",
            "patch": {"https://rust.test": {"description": "Edited", "tags": [], "title": "Rust"}},
        }


class TestMoveTabEndpoint:
    """Tests for POST /api/tabs/{tab_id}/move endpoint."""

    def test_move_into_reported_group_and_out(self, client, rust_tab, news_tab):
        client.post("/api/tabs/events/created", json={"tab": {**rust_tab, "group_id": 5}})
        client.post("/api/tabs/events/created", json={"tab": news_tab})

        moved = client.post("/api/tabs/2/move", json={"group_id": 5})
        assert moved.status_code == 200
        section = client.get("/api/tabs").json()["sections"][0]
        assert {t["id"] for t in section["tabs"]} == {1, 2}

        ungrouped = client.post("/api/tabs/2/move", json={"group_id": NO_GROUP})
        assert ungrouped.status_code == 200
        sections = client.get("/api/tabs").json()["sections"]
        assert sections[-1]["group"] is None
        assert [t["id"] for t in sections[-1]["tabs"]] == [2]

    def test_move_to_unknown_group_returns_404(self, client, news_tab):
        client.post("/api/tabs/events/created", json={"tab": news_tab})

        assert client.post("/api/tabs/2/move", json={"group_id": 99}).status_code == 404

    def test_move_streams_refresh(self, client, rust_tab):
        client.post("/api/tabs/events/created", json={"tab": {**rust_tab, "group_id": 5}})

        with client.websocket_connect("/ws/events") as websocket:
            client.post("/api/tabs/1/move", json={"group_id": NO_GROUP})
            message = websocket.receive_json()

        assert message == {"type": "data_changed"}


class TestGroupEndpoints:
    """Tests for group catalog endpoints."""

    def test_description_and_ai_control(self, client, rust_tab):
        client.post("/api/tabs/events/created", json={"tab": {**rust_tab, "group_id": 5}})

        described = client.put("/api/groups/5/description", json={"description": "Hand written"})
        assert described.json()["description"] == "Hand written"
        assert described.json()["ai_control"] == "unset"
        assert described.json()["ai_updates_allowed"] is True

        controlled = client.put("/api/groups/5/ai-control", json={"enabled": False})
        assert controlled.json()["ai_control"] == "denied"
        assert controlled.json()["ai_updates_allowed"] is False

        groups = client.get("/api/groups").json()["groups"]
        assert groups[0]["description"] == "Hand written"
        assert groups[0]["ai_control"] == "denied"

    def test_disabled_group_keeps_description_after_pipeline(
        self, client, session, rust_tab, news_tab, rust_classification, programming_suggestion
    ):
        client.post("/api/tabs/events/created", json={"tab": {**news_tab, "group_id": 5}})
        client.put("/api/groups/5/title", json={"title": "programming"})
        client.put("/api/groups/5/description", json={"description": "Legacy group"})
        client.put("/api/groups/5/ai-control", json={"enabled": False})
        session.queue(rust_classification, programming_suggestion)

        client.post("/api/tabs/events/updated", json={"tab": rust_tab, "status": "complete"})

        groups = client.get("/api/groups").json()["groups"]
        assert len(groups) == 1
        assert groups[0]["description"] == "Legacy group"
        section = client.get("/api/tabs").json()["sections"][0]
        assert {t["id"] for t in section["tabs"]} == {1, 2}

    def test_rename_unknown_group_returns_404(self, client):
        assert client.put("/api/groups/42/title", json={"title": "Nope"}).status_code == 404

    def test_catalog_lists_entries_without_live_group(self, client, rust_tab):
        client.post("/api/tabs/events/created", json={"tab": {**rust_tab, "group_id": 5}})
        client.put("/api/groups/5/description", json={"description": "Live group"})
        client.put("/api/groups/77/description", json={"description": "Closed group"})

        groups = {g["id"]: g for g in client.get("/api/groups/catalog").json()["groups"]}

        assert set(groups) == {5, 77}
        assert groups[5]["description"] == "Live group"
        assert groups[5]["window_id"] == 1
        assert groups[77]["description"] == "Closed group"
        assert groups[77]["title"] is None
        assert [g["id"] for g in client.get("/api/groups").json()["groups"]] == [5]


class TestInstructionsEndpoints:
    """Tests for GET/PUT /api/instructions."""

    def test_default_is_empty(self, client):
        assert client.get("/api/instructions").json() == {"instructions": ""}

    def test_instructions_used_by_pipeline(
        self, client, session, rust_tab, rust_classification, programming_suggestion
    ):
        client.put("/api/instructions", json={"instructions": "Never auto-group"})
        session.queue(rust_classification, programming_suggestion)

        client.post("/api/tabs/events/updated", json={"tab": rust_tab, "status": "complete"})

        assert client.get("/api/instructions").json() == {"instructions": "Never auto-group"}
        assert "User Instructions: Never auto-group" in session.prompts[1]


class TestEventStream:
    """Tests for the /ws/events stream."""

    def test_client_notification_is_relayed(self, client):
        patch_message = {
            "type": "data_changed",
            "patch": {"https://rust.test": {"description": "Rust", "tags": ["rust"], "title": "Rust"}},
        }

        with client.websocket_connect("/ws/events") as sender, client.websocket_connect(
            "/ws/events"
        ) as listener:
            sender.send_json(patch_message)
            message = listener.receive_json()

        assert message == patch_message

    def test_unknown_messages_are_ignored(self, client):
        with client.websocket_connect("/ws/events") as websocket:
            websocket.send_json({"type": "something_else"})
            websocket.send_json(["not", "a", "message"])
            websocket.send_json({"type": "data_changed"})
            message = websocket.receive_json()

        assert message == {"type": "data_changed"}


class TestLifespan:
    """Tests for startup and shutdown handling."""

    def test_shutdown_closes_store_and_http_client(self):
        import tab_organizer.server.app as app_module

        with TestClient(app_module.app) as client:
            assert client.get("/health").status_code == 200
            store = app_module.get_store()
            http_client = Mock(aclose=AsyncMock())
            app_module.get_extractor().fallback._client = http_client

        http_client.aclose.assert_awaited_once()
        assert app_module._store is None
        assert app_module._extractor is None
        with pytest.raises(sqlite3.ProgrammingError):
            store.conn.execute("SELECT 1")
