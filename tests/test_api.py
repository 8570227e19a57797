import pytest
from fastapi.testclient import TestClient

from prompt_enhancer.main import create_app
from prompt_enhancer.services.enhancement_orchestrator import EnhancementOrchestrator
from prompt_enhancer.services.errors import ServiceError
from fakes import FakeCompletionClient


@pytest.fixture
def client(settings, orchestrator):
    app = create_app(settings=settings, orchestrator=orchestrator)
    with TestClient(app) as test_client:
        yield test_client


class TestAPI:

    def test_root_endpoint(self, client):
        """Test the root endpoint"""
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert "message" in data
        assert "version" in data

    def test_health_endpoint(self, client):
        """Test the health check endpoint"""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["enhancement_configured"] is True

    def test_enhance_prompt(self, client, completion_client):
        """Test enhancing an existing prompt"""
        completion_client.text = "Compose an evocative poem..."
        payload = {"user_id": "alice", "content": "Write a poem", "tone": "creative"}
        response = client.post("/api/prompts/prompt_1/enhance", json=payload)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["enhanced"] == "Compose an evocative poem..."
        assert data["session_id"].startswith("enh_")
        assert data["remaining"] == 9

        status = client.get("/api/enhancement/rate-limit", params={"user_id": "alice"}).json()
        assert status["remaining"] == 9
        assert status["limit"] == 10
        assert status["allowed"] is True

    def test_enhance_new_prompt(self, client):
        """Test enhancing text before the prompt exists"""
        payload = {"user_id": "alice", "content": "Write a poem", "platform": "ChatGPT", "focus": "clarity"}
        response = client.post("/api/prompts/enhance-new", json=payload)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["session_id"] is None

        history = client.get("/api/enhancement/history", params={"user_id": "alice"}).json()
        assert history["sessions"] == []

    def test_empty_content_rejected(self, client):
        """Test enhancement with blank content"""
        response = client.post("/api/prompts/prompt_1/enhance", json={"user_id": "alice", "content": "   "})

        assert response.status_code == 400
        assert "error" in response.json()["detail"]
        status = client.get("/api/enhancement/rate-limit", params={"user_id": "alice"}).json()
        assert status["remaining"] == 10

    def test_invalid_tone_rejected(self, client):
        """Test with an unknown tone"""
        payload = {"user_id": "alice", "content": "Write a poem", "tone": "sarcastic"}
        response = client.post("/api/prompts/prompt_1/enhance", json=payload)
        assert response.status_code == 422

    def test_missing_user(self, client):
        """Test with invalid JSON payload"""
        response = client.post("/api/prompts/prompt_1/enhance", json={"content": "Write a poem"})
        assert response.status_code == 422

    def test_rate_limit_exceeded(self, client):
        """Test the 429 response once quota is used up"""
        for _ in range(10):
            response = client.post("/api/prompts/enhance-new", json={"user_id": "alice", "content": "Write a poem"})
            assert response.status_code == 200

        response = client.post("/api/prompts/prompt_1/enhance", json={"user_id": "alice", "content": "Write a poem"})

        assert response.status_code == 429
        detail = response.json()["detail"]
        assert detail["error"] == "rate limit exceeded"
        assert detail["remaining"] == 0
        assert detail["limit"] == 10
        assert detail["resets_at"] is not None

        history = client.get("/api/prompts/prompt_1/enhancement-history", params={"user_id": "alice"}).json()
        assert history["sessions"] == []

    def test_premium_tier(self, client):
        payload = {"user_id": "alice", "content": "Write a poem", "tier": "premium"}
        response = client.post("/api/prompts/enhance-new", json=payload)

        assert response.json()["limit"] == 100
        status = client.get("/api/enhancement/rate-limit", params={"user_id": "alice", "tier": "premium"}).json()
        assert status["remaining"] == 99

    def test_upstream_failure(self, client, completion_client):
        """Test that upstream errors are hidden and quota is refunded"""
        completion_client.error = ServiceError("Completion service returned an error", status_code=503, body="secret upstream body")
        response = client.post("/api/prompts/prompt_1/enhance", json={"user_id": "alice", "content": "Write a poem"})

        assert response.status_code == 502
        detail = response.json()["detail"]
        assert detail["error"] == "Failed to enhance prompt. Please try again."
        assert "secret" not in response.text

        status = client.get("/api/enhancement/rate-limit", params={"user_id": "alice"}).json()
        assert status["remaining"] == 10

        history = client.get("/api/prompts/prompt_1/enhancement-history", params={"user_id": "alice"}).json()
        assert len(history["sessions"]) == 1
        entry = history["sessions"][0]
        assert entry["status"] == "failed"
        assert entry["id"] == detail["session_id"]
        assert "error_message" not in entry

    def test_enhancement_history(self, client):
        for content in ("First", "Second"):
            client.post("/api/prompts/prompt_1/enhance", json={"user_id": "alice", "content": content, "tone": "casual"})
        client.post("/api/prompts/prompt_2/enhance", json={"user_id": "alice", "content": "Other"})

        response = client.get("/api/prompts/prompt_1/enhancement-history", params={"user_id": "alice"})

        assert response.status_code == 200
        sessions = response.json()["sessions"]
        assert len(sessions) == 2
        assert all(s["status"] == "success" for s in sessions)
        assert all(s["options"]["tone"] == "casual" for s in sessions)

        everything = client.get("/api/enhancement/history", params={"user_id": "alice"}).json()
        assert len(everything["sessions"]) == 3


class TestUnconfiguredAPI:

    @pytest.fixture
    def client(self, settings, quota_tracker, session_store):
        orchestrator = EnhancementOrchestrator(settings, quota_tracker, session_store,
                                               FakeCompletionClient(configured=False))
        with TestClient(create_app(settings=settings, orchestrator=orchestrator)) as test_client:
            yield test_client

    def test_status_works_without_credentials(self, client):
        response = client.get("/api/enhancement/rate-limit", params={"user_id": "alice"})
        assert response.status_code == 200
        assert response.json()["remaining"] == 10

    def test_enhance_reports_unavailable(self, client):
        response = client.post("/api/prompts/prompt_1/enhance", json={"user_id": "alice", "content": "Write a poem"})

        assert response.status_code == 503
        assert response.json()["detail"]["error"] == "Enhancement service is not configured"
        assert client.get("/health").json()["enhancement_configured"] is False
