"""Tests for the FastAPI endpoints."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from src.errors import AuthenticationError, ContentRefreshError, RateLimitError, UpstreamFailure
from src.models import CachedContent, Listing
from src.search import ParsedFilters, RawInterpretationFallback
from src.server import app

REFRESHED_AT = datetime(2026, 2, 17, 6, 0, tzinfo=UTC)


@pytest.fixture
def mock_assistant():
    """Create a mock assistant and attach it to app state (mirrors the lifespan)."""
    assistant = MagicMock()
    assistant.reply = AsyncMock(return_value="Hallo, ich bin Emil!")
    assistant.reply_to_history = AsyncMock(return_value="Gern geschehen.")
    assistant.interpret_search = AsyncMock(
        return_value=ParsedFilters(interpretation="IT", filters=["Branche: IT"], confidence=0.9),
    )
    pages = [
        CachedContent(
            source_url="https://hof.example/",
            title="Gutshof",
            text="Eventlocation",
            listings=[Listing(name="Alpha", status="VERKAUF")],
        ),
    ]
    assistant.content.get_current_content = AsyncMock(return_value=pages)
    assistant.content.refresh_content = AsyncMock(return_value=pages)
    assistant.content.last_refreshed = REFRESHED_AT

    app.state.assistant = assistant
    yield assistant
    app.state.assistant = None


@pytest.fixture
def client(mock_assistant):
    """FastAPI test client with the mock assistant wired up (no lifespan)."""
    return TestClient(app)


class TestPlainRoutes:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "OK", "message": "Server läuft"}

    def test_root_info_page(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "Gutshof-KI Emil" in response.text

    @pytest.mark.parametrize("path", ["/favicon.ico", "/favicon.png"])
    def test_favicon_is_empty(self, client, path):
        response = client.get(path)
        assert response.status_code == 204
        assert response.content == b""

    def test_request_id_is_echoed(self, client):
        response = client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"

    def test_request_id_is_generated(self, client):
        assert client.get("/health").headers["X-Request-ID"]


class TestChatEndpoint:
    def test_returns_reply(self, client, mock_assistant):
        response = client.post("/api/chat", json={"message": "Was kostet eine Hochzeit?"})
        assert response.status_code == 200
        assert response.json() == {"reply": "Hallo, ich bin Emil!"}
        mock_assistant.reply.assert_awaited_once_with("Was kostet eine Hochzeit?")

    @pytest.mark.parametrize("body", [{}, {"message": ""}, {"text": "hi"}])
    def test_missing_message_is_400_without_calls(self, client, mock_assistant, body):
        response = client.post("/api/chat", json=body)
        assert response.status_code == 400
        assert "message" in response.json()["detail"]
        mock_assistant.reply.assert_not_awaited()

    def test_rate_limit_is_429(self, client, mock_assistant):
        mock_assistant.reply.side_effect = RateLimitError()
        response = client.post("/api/chat", json={"message": "Hi"})
        assert response.status_code == 429
        assert "Rate-Limit" in response.json()["detail"]

    def test_bad_credential_is_500(self, client, mock_assistant):
        mock_assistant.reply.side_effect = AuthenticationError()
        response = client.post("/api/chat", json={"message": "Hi"})
        assert response.status_code == 500
        assert response.json()["detail"] == "API-Schlüssel ungültig"

    def test_upstream_failure_is_generic_500(self, client, mock_assistant):
        mock_assistant.reply.side_effect = UpstreamFailure()
        response = client.post("/api/chat", json={"message": "Hi"})
        assert response.status_code == 500
        assert response.json()["detail"].startswith("Ein Fehler ist aufgetreten")

    def test_unexpected_error_does_not_leak(self, client, mock_assistant):
        mock_assistant.reply.side_effect = RuntimeError("secret internals")
        response = client.post("/api/chat", json={"message": "Hi"})
        assert response.status_code == 500
        assert "secret" not in response.text

    def test_not_ready_is_503(self, client, mock_assistant):
        app.state.assistant = None
        response = client.post("/api/chat", json={"message": "Hi"})
        assert response.status_code == 503


class TestAdvancedChatEndpoint:
    def test_passes_history(self, client, mock_assistant):
        history = [
            {"role": "user", "content": "Hallo"},
            {"role": "assistant", "content": "Hallo! Wie kann ich helfen?"},
            {"role": "user", "content": "Danke"},
        ]
        response = client.post("/api/chat-advanced", json={"messages": history})
        assert response.status_code == 200
        assert response.json() == {"reply": "Gern geschehen."}
        mock_assistant.reply_to_history.assert_awaited_once_with(history)

    @pytest.mark.parametrize("body", [{}, {"messages": "Hallo"}, {"messages": None}, {"messages": {"role": "user"}}])
    def test_missing_or_non_array_history_is_400(self, client, mock_assistant, body):
        response = client.post("/api/chat-advanced", json=body)
        assert response.status_code == 400
        mock_assistant.reply_to_history.assert_not_awaited()

    @pytest.mark.parametrize("messages", [
        [],
        [{"role": "system", "content": "Antworte kurz."}, {"role": "user", "content": "Hi"}],
        [{"role": "user", "content": ""}],
    ])
    def test_any_history_array_is_forwarded(self, client, mock_assistant, messages):
        response = client.post("/api/chat-advanced", json={"messages": messages})
        assert response.status_code == 200
        mock_assistant.reply_to_history.assert_awaited_once_with(messages)

    def test_provider_rejecting_empty_history_is_500(self, client, mock_assistant):
        mock_assistant.reply_to_history.side_effect = UpstreamFailure()
        response = client.post("/api/chat-advanced", json={"messages": []})
        assert response.status_code == 500

    def test_rate_limit_is_reported_as_500(self, client, mock_assistant):
        mock_assistant.reply_to_history.side_effect = RateLimitError()
        response = client.post("/api/chat-advanced", json={"messages": [{"role": "user", "content": "Hi"}]})
        assert response.status_code == 500


class TestContentEndpoints:
    def test_refresh_reports_page_count(self, client, mock_assistant):
        response = client.post("/api/refresh-content")
        assert response.status_code == 200
        assert response.json() == {
            "status": "OK",
            "message": "Inhalte erfolgreich aktualisiert",
            "pagesScraped": 1,
        }
        mock_assistant.content.refresh_content.assert_awaited_once()

    def test_refresh_failure_is_500(self, client, mock_assistant):
        mock_assistant.content.refresh_content.side_effect = ContentRefreshError()
        response = client.post("/api/refresh-content")
        assert response.status_code == 500
        assert response.json()["detail"] == "Fehler beim Aktualisieren der Inhalte"

    def test_content_uses_wire_names(self, client):
        response = client.get("/api/content")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "OK"
        assert data["lastUpdated"].startswith("2026-02-17T06:00:00")
        page = data["content"][0]
        assert page["url"] == "https://hof.example/"
        assert page["content"] == "Eventlocation"
        assert page["companyListings"][0]["name"] == "Alpha"

    def test_content_before_first_scrape(self, client, mock_assistant):
        mock_assistant.content.get_current_content.return_value = []
        mock_assistant.content.last_refreshed = None
        data = client.get("/api/content").json()
        assert data["content"] == []
        assert data["lastUpdated"] is None


class TestKiSearchEndpoint:
    def test_returns_filters(self, client, mock_assistant):
        response = client.post("/api/ki-search", json={"query": "IT Firma", "type": "kauf"})
        assert response.status_code == 200
        data = response.json()
        assert data["filters"] == ["Branche: IT"]
        assert data["finsweetFilters"] == []
        assert "kind" not in data
        mock_assistant.interpret_search.assert_awaited_once_with("IT Firma", "kauf")

    @pytest.mark.parametrize("search_type", [1, None, ["kauf"]])
    def test_type_of_any_shape_is_accepted(self, client, mock_assistant, search_type):
        response = client.post("/api/ki-search", json={"query": "IT Firma", "type": search_type})
        assert response.status_code == 200
        mock_assistant.interpret_search.assert_awaited_once_with("IT Firma", search_type)

    def test_fallback_shape(self, client, mock_assistant):
        mock_assistant.interpret_search.return_value = RawInterpretationFallback.from_reply("Freitext")
        data = client.post("/api/ki-search", json={"query": "irgendwas"}).json()
        assert data["confidence"] == 0.7
        assert data["filters"] == ["Allgemeine Suche"]

    def test_missing_query_is_400(self, client, mock_assistant):
        assert client.post("/api/ki-search", json={}).status_code == 400
        mock_assistant.interpret_search.assert_not_awaited()

    def test_rate_limit_is_429(self, client, mock_assistant):
        mock_assistant.interpret_search.side_effect = RateLimitError()
        assert client.post("/api/ki-search", json={"query": "x"}).status_code == 429
