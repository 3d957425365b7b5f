from pydantic import BaseModel
from typing import Any

from ..dependencies.api.supabase_base_class import SupabaseBaseClass
from ..internal.schemas import AgendaItemSource, SESSION_AGENDA_TABLE_NAME
from ..internal.utilities import datetime_handler

class SessionAgendaItem(BaseModel):
    id: str
    case_id: str
    therapist_id: str
    source: str | None = None
    source_id: str | None = None
    title: str
    payload: dict[str, Any] | None = None
    created_at: str | None = None
    completed_at: str | None = None

class AgendaItemInsert(BaseModel):
    case_id: str
    therapist_id: str
    title: str
    source: AgendaItemSource = AgendaItemSource.MANUAL
    source_id: str | None = None
    payload: dict[str, Any] | None = None

class AgendaItemUpdate(BaseModel):
    completed: bool

class SessionAgendaManager:

    AGENDA_FIELDS = "id, case_id, therapist_id, source, source_id, title, payload, created_at, completed_at"

    async def retrieve_agenda(
        self,
        supabase_client: SupabaseBaseClass,
        therapist_id: str,
        case_id: str,
    ) -> list[SessionAgendaItem]:
        try:
            response = await supabase_client.select(
                fields=self.AGENDA_FIELDS,
                filters={
                    "case_id": case_id,
                    "therapist_id": therapist_id,
                },
                table_name=SESSION_AGENDA_TABLE_NAME,
                order_column="created_at",
            )
            return [SessionAgendaItem(**row) for row in response['data']]
        except Exception as e:
            raise RuntimeError(e) from e

    async def add_agenda_item(
        self,
        supabase_client: SupabaseBaseClass,
        body: AgendaItemInsert,
    ) -> SessionAgendaItem:
        try:
            response = await supabase_client.insert(
                payload={
                    "case_id": body.case_id,
                    "therapist_id": body.therapist_id,
                    "source": body.source.value,
                    "source_id": body.source_id,
                    "title": body.title,
                    "payload": body.payload,
                    "created_at": datetime_handler.utc_now_iso(),
                    "completed_at": None,
                },
                table_name=SESSION_AGENDA_TABLE_NAME,
            )
            return SessionAgendaItem(**response['data'][0])
        except Exception as e:
            raise RuntimeError(e) from e

    async def set_agenda_item_completed(
        self,
        supabase_client: SupabaseBaseClass,
        agenda_item_id: str,
        completed: bool,
    ) -> SessionAgendaItem | None:
        try:
            response = await supabase_client.update(
                payload={
                    "completed_at": datetime_handler.utc_now_iso() if completed else None
                },
                filters={
                    "id": agenda_item_id
                },
                table_name=SESSION_AGENDA_TABLE_NAME,
            )
            return None if len(response['data']) == 0 else SessionAgendaItem(**response['data'][0])
        except Exception as e:
            raise RuntimeError(e) from e

    async def remove_agenda_item(
        self,
        supabase_client: SupabaseBaseClass,
        agenda_item_id: str,
    ) -> bool:
        try:
            response = await supabase_client.delete(
                filters={
                    "id": agenda_item_id
                },
                table_name=SESSION_AGENDA_TABLE_NAME,
            )
            return len(response['data']) > 0
        except Exception as e:
            raise RuntimeError(e) from e

    async def complete_pending_items(
        self,
        supabase_client: SupabaseBaseClass,
        therapist_id: str,
        case_id: str,
    ) -> int:
        """
        Marks every pending agenda item of the case as completed. Returns the count of updated items.
        """
        try:
            response = await supabase_client.update(
                payload={
                    "completed_at": datetime_handler.utc_now_iso()
                },
                filters={
                    "case_id": case_id,
                    "therapist_id": therapist_id,
                    "completed_at": None,
                },
                table_name=SESSION_AGENDA_TABLE_NAME,
            )
            return len(response['data'])
        except Exception as e:
            raise RuntimeError(e) from e
