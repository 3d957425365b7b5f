import pytest

from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from ..dependencies.dependency_container import dependency_container
from ..dependencies.fake.fake_supabase_client import FakeSupabaseClient
from ..dependencies.fake.fake_supabase_client_factory import FakeSupabaseClientFactory
from ..internal.schemas import (
    SAVED_MESSAGE,
    SESSION_AGENDA_TABLE_NAME,
    SESSION_FINALIZED_MESSAGE,
    SESSION_NOTES_TABLE_NAME,
)
from ..routers.session_notes_router import SessionNotesRouter
from ..service_coordinator import EndpointServiceCoordinator
from .test_session_notes_manager import StaleReadSupabaseClient

FAKE_THERAPIST_ID = "4987b72e-dcbb-41fb-96a6-bf69756942cc"
FAKE_CASE_ID = "a789baad-6eb1-44f9-901e-f19d4da910ab"
FAKE_CLIENT_ID = "09b6da8d-a58e-45e2-9022-7d58ca02266b"
FAKE_UNKNOWN_NOTE_ID = "5b0bdfc8-4b8e-4e4f-8a6b-0bd3c4a3f1e2"
FAKE_REFRESH_TOKEN = "3ac77394-86b5-42dc-be14-0b92414d8443"
FAKE_ACCESS_TOKEN = "884f507c-f391-4248-91c4-7c25a138633a"
STORE_HEADERS = {
    "store-access-token": FAKE_ACCESS_TOKEN,
    "store-refresh-token": FAKE_REFRESH_TOKEN,
}
ENVIRONMENT = "testing"
LONG_QUIET_PERIOD = 30
SHORT_QUIET_PERIOD = 0.05

class TestingHarnessSessionNotesRouter:

    def setup_method(self):
        # Clear out any old state between tests
        dependency_container._supabase_client_factory = None
        dependency_container._summarization_client = None
        dependency_container._testing_environment = True

        self.fake_supabase_client_factory: FakeSupabaseClientFactory = dependency_container.inject_supabase_client_factory()
        self.fake_supabase_client: FakeSupabaseClient = self.fake_supabase_client_factory.fake_supabase_user_client
        self.client = self._client(LONG_QUIET_PERIOD)

    def _client(self, quiet_period_seconds: float) -> TestClient:
        coordinator = EndpointServiceCoordinator(
            routers=[SessionNotesRouter(environment=ENVIRONMENT,
                                        autosave_quiet_period_seconds=quiet_period_seconds).router],
            environment=ENVIRONMENT
        )
        return TestClient(coordinator.app)

    def _seed_note(self, content: str, session_index: int | None = None, updated_at: str = "2024-01-01T00:00:00+00:00") -> dict:
        return self.fake_supabase_client.seed(SESSION_NOTES_TABLE_NAME, [{
            "therapist_id": FAKE_THERAPIST_ID,
            "case_id": FAKE_CASE_ID,
            "client_id": FAKE_CLIENT_ID,
            "session_index": session_index,
            "content": content,
            "updated_at": updated_at,
        }])[0]

    def _live_url(self) -> str:
        return f"{SessionNotesRouter.LIVE_SESSION_NOTES_ENDPOINT}?therapist_id={FAKE_THERAPIST_ID}&case_id={FAKE_CASE_ID}"

    # Latest

    def test_latest_without_store_tokens(self):
        response = self.client.get(
            SessionNotesRouter.LATEST_SESSION_NOTE_ENDPOINT,
            params={"therapist_id": FAKE_THERAPIST_ID, "case_id": FAKE_CASE_ID},
        )
        assert response.status_code == 401

    def test_latest_with_invalid_therapist_id(self):
        response = self.client.get(
            SessionNotesRouter.LATEST_SESSION_NOTE_ENDPOINT,
            params={"therapist_id": "someone", "case_id": FAKE_CASE_ID},
            headers=STORE_HEADERS,
        )
        assert response.status_code == 400

    def test_latest_without_notes_is_empty(self):
        response = self.client.get(
            SessionNotesRouter.LATEST_SESSION_NOTE_ENDPOINT,
            params={"therapist_id": FAKE_THERAPIST_ID, "case_id": FAKE_CASE_ID},
            headers=STORE_HEADERS,
        )
        assert response.status_code == 200
        assert response.json() == {}

    def test_latest_returns_the_most_recent_note(self):
        self._seed_note("Session one", session_index=1, updated_at="2024-01-01T00:00:00+00:00")
        latest = self._seed_note("Draft", updated_at="2024-01-02T00:00:00+00:00")

        response = self.client.get(
            SessionNotesRouter.LATEST_SESSION_NOTE_ENDPOINT,
            params={"therapist_id": FAKE_THERAPIST_ID, "case_id": FAKE_CASE_ID},
            headers=STORE_HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["id"] == latest["id"]
        assert response.json()["content"] == "Draft"

    def test_latest_backend_failure(self):
        self.fake_supabase_client.failing_tables.add(SESSION_NOTES_TABLE_NAME)
        response = self.client.get(
            SessionNotesRouter.LATEST_SESSION_NOTE_ENDPOINT,
            params={"therapist_id": FAKE_THERAPIST_ID, "case_id": FAKE_CASE_ID},
            headers=STORE_HEADERS,
        )
        assert response.status_code == 417

    # History and single notes

    def test_history(self):
        self._seed_note("One", session_index=1, updated_at="2024-01-01T00:00:00+00:00")
        self._seed_note("Two", session_index=2, updated_at="2024-01-03T00:00:00+00:00")
        self._seed_note("Draft", updated_at="2024-01-02T00:00:00+00:00")

        response = self.client.get(
            SessionNotesRouter.SESSION_HISTORY_ENDPOINT,
            params={"therapist_id": FAKE_THERAPIST_ID, "case_id": FAKE_CASE_ID, "limit": 2},
            headers=STORE_HEADERS,
        )
        assert response.status_code == 200
        assert [entry["session_index"] for entry in response.json()["history"]] == [2, None]
        assert set(response.json()["history"][0].keys()) == {"id", "session_index", "updated_at"}

    def test_single_note(self):
        seeded = self._seed_note("Session one", session_index=1)

        response = self.client.get(
            SessionNotesRouter.SINGLE_SESSION_NOTE_ENDPOINT.format(session_note_id=seeded["id"]),
            headers=STORE_HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["session_index"] == 1

    def test_single_note_not_found(self):
        response = self.client.get(
            SessionNotesRouter.SINGLE_SESSION_NOTE_ENDPOINT.format(session_note_id=FAKE_UNKNOWN_NOTE_ID),
            headers=STORE_HEADERS,
        )
        assert response.status_code == 404

    # Persist

    def test_persist_whitespace_writes_nothing(self):
        response = self.client.put(
            SessionNotesRouter.SESSION_NOTES_ENDPOINT,
            json={"therapist_id": FAKE_THERAPIST_ID, "case_id": FAKE_CASE_ID, "content": "   "},
            headers=STORE_HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["session_note_id"] is None
        assert self.fake_supabase_client.rows(SESSION_NOTES_TABLE_NAME) == []

    def test_persist_draft_twice_updates_the_same_row(self):
        first = self.client.put(
            SessionNotesRouter.SESSION_NOTES_ENDPOINT,
            json={"therapist_id": FAKE_THERAPIST_ID, "case_id": FAKE_CASE_ID, "content": "First"},
            headers=STORE_HEADERS,
        )
        second = self.client.put(
            SessionNotesRouter.SESSION_NOTES_ENDPOINT,
            json={"therapist_id": FAKE_THERAPIST_ID, "case_id": FAKE_CASE_ID, "content": "Second"},
            headers=STORE_HEADERS,
        )
        assert first.status_code == second.status_code == 200
        assert first.json()["session_note_id"] == second.json()["session_note_id"]

        rows = self.fake_supabase_client.rows(SESSION_NOTES_TABLE_NAME)
        assert len(rows) == 1
        assert rows[0]["content"] == "Second"

    def test_persist_finalize_completes_pending_agenda(self):
        seeded = self._seed_note("Session one", session_index=1)
        self.fake_supabase_client.seed(SESSION_AGENDA_TABLE_NAME, [
            {"case_id": FAKE_CASE_ID, "therapist_id": FAKE_THERAPIST_ID, "title": "Pending", "completed_at": None},
        ])

        response = self.client.put(
            SessionNotesRouter.SESSION_NOTES_ENDPOINT,
            json={
                "id": seeded["id"],
                "therapist_id": FAKE_THERAPIST_ID,
                "case_id": FAKE_CASE_ID,
                "content": "Session one, final",
                "finalize": True,
            },
            headers=STORE_HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["session_note_id"] == seeded["id"]
        assert response.json()["finalized"] is True
        assert self.fake_supabase_client.rows(SESSION_AGENDA_TABLE_NAME)[0]["completed_at"] is not None

    def test_persist_with_invalid_note_id(self):
        response = self.client.put(
            SessionNotesRouter.SESSION_NOTES_ENDPOINT,
            json={"id": "abc", "therapist_id": FAKE_THERAPIST_ID, "case_id": FAKE_CASE_ID, "content": "Text"},
            headers=STORE_HEADERS,
        )
        assert response.status_code == 400

    def test_persist_backend_failure(self):
        self.fake_supabase_client.failing_tables.add(SESSION_NOTES_TABLE_NAME)
        response = self.client.put(
            SessionNotesRouter.SESSION_NOTES_ENDPOINT,
            json={"therapist_id": FAKE_THERAPIST_ID, "case_id": FAKE_CASE_ID, "content": "Text"},
            headers=STORE_HEADERS,
        )
        assert response.status_code == 417

    # New sessions

    def test_new_session_follows_existing_indices(self):
        for index in [1, 2, 3]:
            self._seed_note(f"Session {index}", session_index=index)

        response = self.client.post(
            SessionNotesRouter.NEW_SESSION_ENDPOINT,
            json={"therapist_id": FAKE_THERAPIST_ID, "case_id": FAKE_CASE_ID, "client_id": FAKE_CLIENT_ID},
            headers=STORE_HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["session_index"] == 4
        assert response.json()["content"] == ""

    def test_first_new_session_is_one(self):
        response = self.client.post(
            SessionNotesRouter.NEW_SESSION_ENDPOINT,
            json={"therapist_id": FAKE_THERAPIST_ID, "case_id": FAKE_CASE_ID},
            headers=STORE_HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["session_index"] == 1

    def test_new_session_collision(self):
        stale_client = StaleReadSupabaseClient()
        stale_client.seed(SESSION_NOTES_TABLE_NAME, [
            {"therapist_id": FAKE_THERAPIST_ID, "case_id": FAKE_CASE_ID, "session_index": 1, "content": ""}
        ])
        self.fake_supabase_client_factory.fake_supabase_user_client = stale_client

        response = self.client.post(
            SessionNotesRouter.NEW_SESSION_ENDPOINT,
            json={"therapist_id": FAKE_THERAPIST_ID, "case_id": FAKE_CASE_ID},
            headers=STORE_HEADERS,
        )
        assert response.status_code == 409
        assert response.json()["detail"] == "Could not start a new session."

    # Live editor

    def test_live_editor_without_store_tokens(self):
        with pytest.raises(WebSocketDisconnect):
            with self.client.websocket_connect(self._live_url()) as websocket:
                websocket.receive_json()

    def test_live_editor_autosaves_after_quiet_period(self):
        client = self._client(SHORT_QUIET_PERIOD)
        with client.websocket_connect(self._live_url(), headers=STORE_HEADERS) as websocket:
            initial_state = websocket.receive_json()
            assert initial_state["content"] == ""
            assert initial_state["session_note_id"] is None

            for text in ["P", "Pa", "Pat", "Patient is calmer."]:
                websocket.send_json({"action": "edit", "text": text})

            state = websocket.receive_json()
            for _ in range(10):
                if state["save_info"] == SAVED_MESSAGE:
                    break
                state = websocket.receive_json()

            assert state["save_info"] == SAVED_MESSAGE
            assert state["dirty"] is False
            assert state["session_note_id"] is not None

        rows = self.fake_supabase_client.rows(SESSION_NOTES_TABLE_NAME)
        assert len(rows) == 1
        assert rows[0]["content"] == "Patient is calmer."
        assert self.fake_supabase_client.invocation_count("upsert", SESSION_NOTES_TABLE_NAME) == 1

    def test_live_editor_finalize(self):
        seeded = self._seed_note("Session one", session_index=1)

        with self.client.websocket_connect(self._live_url(), headers=STORE_HEADERS) as websocket:
            initial_state = websocket.receive_json()
            assert initial_state["session_note_id"] == seeded["id"]
            assert initial_state["history"][0]["id"] == seeded["id"]

            websocket.send_json({"action": "edit", "text": "Session one, wrapped up"})
            assert websocket.receive_json()["dirty"] is True

            websocket.send_json({"action": "finalize"})
            state = websocket.receive_json()
            assert state["saving"] is True
            state = websocket.receive_json()
            assert state["save_info"] == SESSION_FINALIZED_MESSAGE
            assert state["finalized"] is True

        row = self.fake_supabase_client.rows(SESSION_NOTES_TABLE_NAME)[0]
        assert row["content"] == "Session one, wrapped up"
        assert row["finalized"] is True

    def test_live_editor_new_session_and_switch(self):
        seeded = self._seed_note("Session one", session_index=1)

        with self.client.websocket_connect(self._live_url(), headers=STORE_HEADERS) as websocket:
            websocket.receive_json()

            websocket.send_json({"action": "new_session"})
            state = websocket.receive_json()
            assert state["session_index"] == 2
            assert state["content"] == ""

            websocket.send_json({"action": "switch", "session_note_id": seeded["id"]})
            state = websocket.receive_json()
            assert state["session_index"] == 1
            assert state["content"] == "Session one"

            websocket.send_json({"action": "switch", "session_note_id": FAKE_UNKNOWN_NOTE_ID})
            assert websocket.receive_json() == {"error": "Could not load selected session."}

            websocket.send_json({"action": "dance"})
            assert websocket.receive_json() == {"error": "Unsupported action: dance"}

