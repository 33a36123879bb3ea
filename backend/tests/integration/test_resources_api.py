"""Integration tests for the resource reconciliation and installation endpoints."""

from assistant_sync.models.resources import DataFileConfig
from assistant_sync.reconcilers.data_file import fingerprint_of
from assistant_sync.services.pinecone_client import MissingApiKeyError, RemoteServiceError

ASSISTANT = {"name": "support-bot", "instructions": "Answer billing questions."}
DATA_FILE = {"assistant_name": "support-bot", "content": "Refunds take 5 days.", "filename": "r.md"}


def _missing_key():
    raise MissingApiKeyError("Pinecone API key is required")


class TestAssistantEndpoints:
    def test_sync_creates_assistant(self, client, fake_service):
        client.app.state.assistant_service_factory = lambda: fake_service

        response = client.post("/api/v1/resources/assistants/sync", json={"config": ASSISTANT})

        assert response.status_code == 200
        data = response.json()
        assert data["new_status"] == "in_progress"
        assert data["next_schedule_delay"] == 10
        assert data["signal_updates"]["status"] == "Initializing"
        assert fake_service.call_names() == ["create_assistant"]

    def test_sync_with_ready_signals_checks_drift(self, client, fake_service):
        client.app.state.assistant_service_factory = lambda: fake_service
        fake_service.add_assistant("support-bot", instructions="Answer billing questions.")

        response = client.post(
            "/api/v1/resources/assistants/sync",
            json={"config": ASSISTANT, "signals": {"status": "Ready"}},
        )

        assert response.json()["new_status"] == "ready"
        assert "update_assistant" not in fake_service.call_names()

    def test_drain(self, client, fake_service):
        client.app.state.assistant_service_factory = lambda: fake_service
        fake_service.add_assistant("support-bot")

        response = client.post(
            "/api/v1/resources/assistants/drain",
            json={"config": ASSISTANT, "signals": {"status": "Ready"}},
        )

        assert response.json()["new_status"] == "drained"
        assert fake_service.assistants == {}

    def test_missing_api_key_reports_failed(self, client):
        client.app.state.assistant_service_factory = _missing_key

        response = client.post("/api/v1/resources/assistants/sync", json={"config": ASSISTANT})

        assert response.status_code == 200
        assert response.json()["new_status"] == "failed"
        assert response.json()["custom_status_description"] == "Pinecone API key is required."

    def test_missing_api_key_fails_drain(self, client):
        client.app.state.assistant_service_factory = _missing_key

        response = client.post("/api/v1/resources/assistants/drain", json={"config": ASSISTANT})

        assert response.json()["new_status"] == "draining_failed"

    def test_requires_service_wiring(self, client):
        client.app.state.assistant_service_factory = None

        response = client.post("/api/v1/resources/assistants/sync", json={"config": ASSISTANT})

        assert response.status_code == 503

    def test_rejects_invalid_config(self, client, fake_service):
        client.app.state.assistant_service_factory = lambda: fake_service

        response = client.post(
            "/api/v1/resources/assistants/sync",
            json={"config": {"name": "", "instructions": "x"}},
        )

        assert response.status_code == 422
        assert fake_service.calls == []


class TestDataFileEndpoints:
    def test_sync_uploads(self, client, fake_service):
        client.app.state.assistant_service_factory = lambda: fake_service

        response = client.post("/api/v1/resources/data-files/sync", json={"config": DATA_FILE})

        data = response.json()
        assert data["new_status"] == "in_progress"
        assert data["signal_updates"]["file_id"] == "file-1"
        assert data["signal_updates"]["content_hash"] == fingerprint_of(DataFileConfig(**DATA_FILE))

    def test_settled_file_is_idempotent(self, client, fake_service):
        client.app.state.assistant_service_factory = lambda: fake_service
        signals = {
            "content_hash": fingerprint_of(DataFileConfig(**DATA_FILE)),
            "file_id": "file-1",
            "status": "Available",
        }

        for _ in range(3):
            response = client.post(
                "/api/v1/resources/data-files/sync",
                json={"config": DATA_FILE, "signals": signals},
            )
            assert response.json()["new_status"] == "ready"

        assert fake_service.calls == []

    def test_drain_without_upload(self, client, fake_service):
        client.app.state.assistant_service_factory = lambda: fake_service

        response = client.post("/api/v1/resources/data-files/drain", json={"config": DATA_FILE})

        assert response.json()["new_status"] == "drained"


class TestInstallationEndpoint:
    def test_valid_key_is_ready(self, client, fake_service):
        client.app.state.assistant_service_factory = lambda: fake_service

        response = client.post("/api/v1/installation/sync")

        assert response.json()["new_status"] == "ready"
        assert fake_service.call_names() == ["list_assistants"]

    def test_connection_error_fails(self, client, fake_service):
        client.app.state.assistant_service_factory = lambda: fake_service
        fake_service.errors["list_assistants"] = RemoteServiceError("list_assistants failed: 401")

        response = client.post("/api/v1/installation/sync")

        data = response.json()
        assert data["new_status"] == "failed"
        assert data["custom_status_description"] == (
            "Error connecting to Pinecone. Check logs for details."
        )

    def test_missing_key_fails(self, client):
        client.app.state.assistant_service_factory = _missing_key

        response = client.post("/api/v1/installation/sync")

        assert response.json()["custom_status_description"] == "Pinecone API key is required."
