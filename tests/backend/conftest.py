"""
Pytest configuration and fixtures for backend API tests.
"""

import pytest
from unittest.mock import Mock, patch
from fastapi.testclient import TestClient

APP_GLOBALS = (
    "_store",
    "_grouping",
    "_bus",
    "_tab_state",
    "_catalog",
    "_extractor",
    "_pipeline",
)


@pytest.fixture(autouse=True)
def reset_app_state():
    """Reset the global application state between tests."""
    import tab_organizer.server.app as app_module

    for name in APP_GLOBALS:
        setattr(app_module, name, None)
    yield
    if app_module._store is not None:
        app_module._store.close()
    for name in APP_GLOBALS:
        setattr(app_module, name, None)


@pytest.fixture(autouse=True)
def mock_settings():
    """Mock settings to avoid requiring .env file in tests."""
    with patch("tab_organizer.server.app.get_settings") as mock:
        settings = Mock()
        settings.store_path = ":memory:"  # In-memory SQLite for tests
        settings.fetch_timeout = 1.0
        settings.content_max_chars = 1000
        mock.return_value = settings
        yield settings


@pytest.fixture(autouse=True)
def mock_inference(session):
    """Serve the scripted session instead of a real provider."""
    with patch("tab_organizer.server.app.get_inference_session", return_value=session):
        yield session


@pytest.fixture
def client():
    """Test client sharing one event loop across requests."""
    from tab_organizer.server.app import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def rust_tab():
    """Tab payload with page content captured by the extension."""
    return {
        "id": 1,
        "url": "https://rust.test/intro",
        "title": "Intro to Rust",
        "window_id": 1,
        "content": "Rust is a systems language...",
        "meta_description": "Learn Rust",
    }


@pytest.fixture
def news_tab():
    return {
        "id": 2,
        "url": "https://news.test",
        "title": "Daily News",
        "window_id": 1,
        "content": "Today's headlines",
    }
