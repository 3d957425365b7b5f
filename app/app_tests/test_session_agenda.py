import asyncio

from fastapi.testclient import TestClient

from ..dependencies.dependency_container import dependency_container
from ..dependencies.fake.fake_supabase_client import FakeSupabaseClient
from ..dependencies.fake.fake_supabase_client_factory import FakeSupabaseClientFactory
from ..internal.schemas import SESSION_AGENDA_TABLE_NAME
from ..managers.session_agenda_manager import SessionAgendaManager
from ..routers.session_agenda_router import SessionAgendaRouter
from ..service_coordinator import EndpointServiceCoordinator

FAKE_THERAPIST_ID = "4987b72e-dcbb-41fb-96a6-bf69756942cc"
FAKE_OTHER_THERAPIST_ID = "0d6a2b51-2b8f-4a6e-9a54-2f8f3c6f1d90"
FAKE_CASE_ID = "a789baad-6eb1-44f9-901e-f19d4da910ab"
FAKE_UNKNOWN_ITEM_ID = "5b0bdfc8-4b8e-4e4f-8a6b-0bd3c4a3f1e2"
FAKE_REFRESH_TOKEN = "3ac77394-86b5-42dc-be14-0b92414d8443"
FAKE_ACCESS_TOKEN = "884f507c-f391-4248-91c4-7c25a138633a"
STORE_HEADERS = {
    "store-access-token": FAKE_ACCESS_TOKEN,
    "store-refresh-token": FAKE_REFRESH_TOKEN,
}
ENVIRONMENT = "testing"

class TestingHarnessSessionAgendaManager:

    def setup_method(self):
        self.fake_supabase_client = FakeSupabaseClient()
        self.manager = SessionAgendaManager()

    def test_complete_pending_items_only_touches_pending_rows_of_the_case(self):
        self.fake_supabase_client.seed(SESSION_AGENDA_TABLE_NAME, [
            {"case_id": FAKE_CASE_ID, "therapist_id": FAKE_THERAPIST_ID, "title": "Pending 1", "completed_at": None},
            {"case_id": FAKE_CASE_ID, "therapist_id": FAKE_THERAPIST_ID, "title": "Pending 2", "completed_at": None},
            {"case_id": FAKE_CASE_ID, "therapist_id": FAKE_THERAPIST_ID, "title": "Done", "completed_at": "2024-01-01T00:00:00+00:00"},
            {"case_id": FAKE_CASE_ID, "therapist_id": FAKE_OTHER_THERAPIST_ID, "title": "Not mine", "completed_at": None},
        ])

        completed = asyncio.run(self.manager.complete_pending_items(self.fake_supabase_client, FAKE_THERAPIST_ID, FAKE_CASE_ID))

        assert completed == 2
        rows = {row["title"]: row["completed_at"] for row in self.fake_supabase_client.rows(SESSION_AGENDA_TABLE_NAME)}
        assert rows["Pending 1"] is not None
        assert rows["Pending 2"] is not None
        assert rows["Done"] == "2024-01-01T00:00:00+00:00"
        assert rows["Not mine"] is None

class TestingHarnessSessionAgendaRouter:

    def setup_method(self):
        # Clear out any old state between tests
        dependency_container._supabase_client_factory = None
        dependency_container._summarization_client = None
        dependency_container._testing_environment = True

        self.fake_supabase_client_factory: FakeSupabaseClientFactory = dependency_container.inject_supabase_client_factory()
        self.fake_supabase_client: FakeSupabaseClient = self.fake_supabase_client_factory.fake_supabase_user_client

        coordinator = EndpointServiceCoordinator(
            routers=[SessionAgendaRouter(environment=ENVIRONMENT).router],
            environment=ENVIRONMENT
        )
        self.client = TestClient(coordinator.app)

    def _add_item(self, title: str):
        return self.client.post(
            SessionAgendaRouter.AGENDA_ENDPOINT,
            json={
                "case_id": FAKE_CASE_ID,
                "therapist_id": FAKE_THERAPIST_ID,
                "title": title,
                "source": "resource",
                "payload": {"resource_id": "r-1"},
            },
            headers=STORE_HEADERS,
        )

    def test_agenda_without_store_tokens(self):
        response = self.client.get(
            SessionAgendaRouter.AGENDA_ENDPOINT,
            params={"therapist_id": FAKE_THERAPIST_ID, "case_id": FAKE_CASE_ID},
        )
        assert response.status_code == 401

    def test_agenda_with_invalid_case_id(self):
        response = self.client.get(
            SessionAgendaRouter.AGENDA_ENDPOINT,
            params={"therapist_id": FAKE_THERAPIST_ID, "case_id": "12345"},
            headers=STORE_HEADERS,
        )
        assert response.status_code == 400

    def test_add_item_then_list(self):
        response = self._add_item("Review breathing worksheet")
        assert response.status_code == 200
        assert response.json()["source"] == "resource"
        assert response.json()["completed_at"] is None

        response = self.client.get(
            SessionAgendaRouter.AGENDA_ENDPOINT,
            params={"therapist_id": FAKE_THERAPIST_ID, "case_id": FAKE_CASE_ID},
            headers=STORE_HEADERS,
        )
        assert response.status_code == 200
        assert [item["title"] for item in response.json()["agenda"]] == ["Review breathing worksheet"]

    def test_add_item_without_title(self):
        response = self._add_item("   ")
        assert response.status_code == 400
        assert self.fake_supabase_client.rows(SESSION_AGENDA_TABLE_NAME) == []

    def test_toggle_item_completion(self):
        item_id = self._add_item("Check homework").json()["id"]

        response = self.client.put(
            SessionAgendaRouter.SINGLE_AGENDA_ITEM_ENDPOINT.format(agenda_item_id=item_id),
            json={"completed": True},
            headers=STORE_HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["completed_at"] is not None

        response = self.client.put(
            SessionAgendaRouter.SINGLE_AGENDA_ITEM_ENDPOINT.format(agenda_item_id=item_id),
            json={"completed": False},
            headers=STORE_HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["completed_at"] is None

    def test_toggle_unknown_item(self):
        response = self.client.put(
            SessionAgendaRouter.SINGLE_AGENDA_ITEM_ENDPOINT.format(agenda_item_id=FAKE_UNKNOWN_ITEM_ID),
            json={"completed": True},
            headers=STORE_HEADERS,
        )
        assert response.status_code == 404

    def test_remove_item(self):
        item_id = self._add_item("Discuss sleep log").json()["id"]

        response = self.client.delete(
            SessionAgendaRouter.AGENDA_ENDPOINT,
            params={"agenda_item_id": item_id},
            headers=STORE_HEADERS,
        )
        assert response.status_code == 200
        assert self.fake_supabase_client.rows(SESSION_AGENDA_TABLE_NAME) == []

        response = self.client.delete(
            SessionAgendaRouter.AGENDA_ENDPOINT,
            params={"agenda_item_id": item_id},
            headers=STORE_HEADERS,
        )
        assert response.status_code == 404

    def test_agenda_backend_failure(self):
        self.fake_supabase_client.failing_tables.add(SESSION_AGENDA_TABLE_NAME)

        response = self.client.get(
            SessionAgendaRouter.AGENDA_ENDPOINT,
            params={"therapist_id": FAKE_THERAPIST_ID, "case_id": FAKE_CASE_ID},
            headers=STORE_HEADERS,
        )
        assert response.status_code == 417
