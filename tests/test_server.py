"""Tests for the HTTP API (no network, scripted gateway)."""

import pytest
from starlette.testclient import TestClient

from conftest import FailingStore, MockGateway, http_error
from chat_memory.manager import MemoryManager
from chat_memory.server.app import create_app
from chat_memory.server.metrics import ServerMetrics
from chat_memory.types import ConfigError

CHAT_BODY = {
    "userId": "user-1",
    "chatId": "chat-1",
    "aiFriendId": "ai_friend",
    "userMessage": "Hi",
    "totalMessageCount": 12,
}


def _client(manager) -> TestClient:
    return TestClient(create_app(manager=manager))


@pytest.fixture
def client(manager):
    return _client(manager)


class TestChatEndpoint:
    def test_success(self, client, store, ts):
        resp = client.post("/ai/chat", json=CHAT_BODY)
        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "message": "Hello",
            "timestamp": ts.isoformat(),
        }
        record = store.get_record("chat-1")
        assert record.encoded_state == "__SUMMARY____RECENT__Human: Hi\nAI: Hello"
        assert record.message_count == 12

    @pytest.mark.parametrize("missing", ["userId", "chatId", "aiFriendId", "userMessage"])
    def test_missing_field(self, client, gateway, missing):
        body = {k: v for k, v in CHAT_BODY.items() if k != missing}
        resp = client.post("/ai/chat", json=body)
        assert resp.status_code == 400
        assert resp.json()["success"] is False
        assert "Missing required fields" in resp.json()["error"]
        assert gateway.requests == []

    def test_non_object_body(self, client):
        resp = client.post("/ai/chat", json=["not", "an", "object"])
        assert resp.status_code == 400

    def test_invalid_json(self, client):
        resp = client.post(
            "/ai/chat", content=b"{nope", headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400

    def test_unknown_persona(self, client, store):
        resp = client.post("/ai/chat", json={**CHAT_BODY, "aiFriendId": "ai_robot"})
        assert resp.status_code == 400
        assert resp.json()["error"].startswith("Invalid aiFriendId: ai_robot")
        assert store.get_record("chat-1") is None

    def test_gateway_failure(self, store, sample_config):
        manager = MemoryManager(store, MockGateway(responses=[http_error(500)]), sample_config)
        metrics = ServerMetrics()
        client = TestClient(create_app(manager=manager, metrics=metrics))

        resp = client.post("/ai/chat", json=CHAT_BODY)

        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "AI completion request failed: 500"}
        assert store.get_record("chat-1") is None
        assert metrics.snapshot()["reply_failures"] == 1

    def test_persist_failure_still_replies(self, tmp_sqlite_db, gateway, sample_config):
        store = FailingStore(tmp_sqlite_db, fail_upsert=True)
        manager = MemoryManager(store, gateway, sample_config)
        metrics = ServerMetrics()
        client = TestClient(create_app(manager=manager, metrics=metrics))

        resp = client.post("/ai/chat", json=CHAT_BODY)

        assert resp.status_code == 200
        assert resp.json()["message"] == "Hello"
        assert metrics.snapshot()["counters"]["persist_failed"] == 1
        store.close()


class TestOtherEndpoints:
    def test_friends(self, client):
        resp = client.get("/ai/friends")
        assert resp.status_code == 200
        friends = resp.json()["friends"]
        assert len(friends) == 5
        assert friends[0]["id"] == "ai_tutor"

    def test_translate(self, store, sample_config):
        gateway = MockGateway(responses=["밥 먹었어?"])
        client = _client(MemoryManager(store, gateway, sample_config))

        resp = client.post("/ai/translate", json={"text": "Did you eat?", "aiFriendId": "ai_friend"})

        data = resp.json()
        assert resp.status_code == 200
        assert data["translatedText"] == "밥 먹었어?"
        assert data["originalText"] == "Did you eat?"
        assert data["targetLanguage"] == "ko"
        assert store.list_threads() == []

    def test_translate_requires_text(self, client):
        resp = client.post("/ai/translate", json={"aiFriendId": "ai_friend"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Missing required field: text"

    def test_translate_failure(self, store, sample_config):
        gateway = MockGateway(responses=[http_error(503)])
        client = _client(MemoryManager(store, gateway, sample_config))
        resp = client.post("/ai/translate", json={"text": "Hello"})
        assert resp.status_code == 500
        assert "Translation API request failed: 503" in resp.json()["error"]

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_metrics(self, client):
        client.post("/ai/chat", json=CHAT_BODY)
        snapshot = client.get("/metrics").json()
        assert snapshot["turns"] == 1
        assert snapshot["compactions_succeeded"] == 0

    def test_cors_headers(self, client):
        resp = client.get("/health", headers={"Origin": "https://app.example"})
        assert "access-control-allow-origin" in resp.headers


class TestCreateApp:
    def test_missing_api_key_is_fatal(self, monkeypatch, tmp_path):
        from chat_memory.config import load_config

        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        config = load_config(config_dict={"storage_root": str(tmp_path)})
        with pytest.raises(ConfigError, match="OPENAI_API_KEY"):
            create_app(config=config)

    def test_builds_from_config(self, monkeypatch, tmp_path):
        from chat_memory.config import load_config

        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        config = load_config(config_dict={"storage_root": str(tmp_path)})
        app = create_app(config=config)
        assert app.state.manager.config is config
        app.state.manager.close()
