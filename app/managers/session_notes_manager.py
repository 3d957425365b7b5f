import asyncio, logging, weakref

from pydantic import BaseModel
from typing import Any

from ..dependencies.api.supabase_base_class import SupabaseBaseClass, UniqueViolationError
from ..internal.schemas import (
    NEW_SESSION_ERROR_MESSAGE,
    SESSION_HISTORY_PAGE_SIZE,
    SESSION_NOTES_DRAFT_CONFLICT_COLUMNS,
    SESSION_NOTES_TABLE_NAME,
)
from ..internal.utilities import datetime_handler, general_utilities

class SessionNote(BaseModel):
    id: str | None = None
    therapist_id: str
    case_id: str
    client_id: str | None = None
    session_index: int | None = None
    content: Any = ""
    created_at: str | None = None
    updated_at: str | None = None
    finalized: bool | None = None
    finalized_at: str | None = None

    @property
    def text(self) -> str:
        return general_utilities.note_text(self.content)

class SessionHistoryEntry(BaseModel):
    id: str
    session_index: int | None = None
    updated_at: str | None = None

class SessionNotePersistPayload(BaseModel):
    id: str | None = None
    therapist_id: str
    case_id: str
    client_id: str | None = None
    content: str
    finalize: bool = False

class NewSessionPayload(BaseModel):
    therapist_id: str
    case_id: str
    client_id: str | None = None

class SessionIndexCollisionError(Exception):
    """
    Raised when a new numbered session collides with an index that another writer just took.
    """
    status_code = 409

class SessionNotesManager:

    SESSION_NOTE_FIELDS = "id, therapist_id, case_id, client_id, session_index, content, created_at, updated_at, finalized, finalized_at"
    HISTORY_FIELDS = "id, session_index, updated_at"

    def __init__(self):
        # Entries go away once no caller holds the case lock.
        self._new_session_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    async def load_latest(
        self,
        supabase_client: SupabaseBaseClass,
        therapist_id: str,
        case_id: str,
    ) -> SessionNote | None:
        """
        Returns the most recently modified note for the case and author, regardless of its session index.
        Returns None when no note exists yet.
        """
        try:
            row = await supabase_client.select_single(
                fields=self.SESSION_NOTE_FIELDS,
                filters={
                    "therapist_id": therapist_id,
                    "case_id": case_id,
                },
                table_name=SESSION_NOTES_TABLE_NAME,
                order_column="updated_at",
            )
            return None if row is None else SessionNote(**row)
        except Exception as e:
            raise RuntimeError(e) from e

    async def load_by_id(
        self,
        supabase_client: SupabaseBaseClass,
        session_note_id: str,
    ) -> SessionNote | None:
        try:
            row = await supabase_client.select_single(
                fields=self.SESSION_NOTE_FIELDS,
                filters={
                    "id": session_note_id
                },
                table_name=SESSION_NOTES_TABLE_NAME,
            )
            return None if row is None else SessionNote(**row)
        except Exception as e:
            raise RuntimeError(e) from e

    async def load_history(
        self,
        supabase_client: SupabaseBaseClass,
        therapist_id: str,
        case_id: str,
        limit: int = SESSION_HISTORY_PAGE_SIZE,
    ) -> list[SessionHistoryEntry]:
        try:
            response = await supabase_client.select(
                fields=self.HISTORY_FIELDS,
                filters={
                    "therapist_id": therapist_id,
                    "case_id": case_id,
                },
                table_name=SESSION_NOTES_TABLE_NAME,
                limit=limit,
                order_column="updated_at",
            )
            return [SessionHistoryEntry(**row) for row in response['data']]
        except Exception as e:
            raise RuntimeError(e) from e

    async def persist(
        self,
        supabase_client: SupabaseBaseClass,
        note: SessionNote,
        finalize: bool = False,
    ) -> bool:
        """
        Writes the note's content, returning whether the write succeeded.

        Notes with an id are updated in place. Notes without one are upserted as the
        (author, case) draft, and the stored id is written back onto `note`.
        Whitespace-only content is never written and counts as a success.

        Arguments:
        supabase_client – the client used for reaching the backend.
        note – the note to be persisted.
        finalize – whether the note should be stamped as finalized.
        """
        text = note.text
        if len(text.strip()) == 0:
            return True

        now = datetime_handler.utc_now_iso()
        payload = {
            "content": text,
            "updated_at": now,
        }
        if finalize:
            payload["finalized"] = True
            payload["finalized_at"] = now

        try:
            if note.id is not None:
                response = await supabase_client.update(
                    payload=payload,
                    filters={
                        "id": note.id
                    },
                    table_name=SESSION_NOTES_TABLE_NAME,
                )
                assert len(response['data']) > 0, f"No session note was updated for id {note.id}"
            else:
                payload.update({
                    "therapist_id": note.therapist_id,
                    "case_id": note.case_id,
                    "client_id": note.client_id,
                    "session_index": None,
                })
                response = await supabase_client.upsert(
                    payload=payload,
                    on_conflict=SESSION_NOTES_DRAFT_CONFLICT_COLUMNS,
                    table_name=SESSION_NOTES_TABLE_NAME,
                )
                assert len(response['data']) > 0, "Draft upsert returned no rows"
                note.id = response['data'][0]['id']
        except Exception as e:
            logging.error(f"[SessionNotesManager] Failed to persist session note {note.id}: {str(e)}")
            return False

        note.content = text
        note.updated_at = now
        if finalize:
            note.finalized = True
            note.finalized_at = now
        return True

    async def start_new_session(
        self,
        supabase_client: SupabaseBaseClass,
        therapist_id: str,
        case_id: str,
        client_id: str | None = None,
    ) -> SessionNote:
        """
        Creates the next numbered session for the case with empty content.
        Requests for the same case are serialized within this process; a collision with
        another writer raises SessionIndexCollisionError and is not retried.
        """
        lock = self._new_session_locks.setdefault(case_id, asyncio.Lock())
        async with lock:
            try:
                # Drafts carry a null index and sort first when descending, so the max is taken here.
                response = await supabase_client.select(
                    fields="session_index",
                    filters={
                        "case_id": case_id
                    },
                    table_name=SESSION_NOTES_TABLE_NAME,
                )
                indices = [row['session_index'] for row in response['data'] if row.get('session_index') is not None]
                next_index = max(indices, default=0) + 1

                now = datetime_handler.utc_now_iso()
                insert_response = await supabase_client.insert(
                    payload={
                        "therapist_id": therapist_id,
                        "case_id": case_id,
                        "client_id": client_id,
                        "content": "",
                        "session_index": next_index,
                        "created_at": now,
                        "updated_at": now,
                    },
                    table_name=SESSION_NOTES_TABLE_NAME,
                )
                return SessionNote(**insert_response['data'][0])
            except UniqueViolationError as e:
                logging.error(f"[SessionNotesManager] Session index collision for case {case_id}: {str(e)}")
                raise SessionIndexCollisionError(NEW_SESSION_ERROR_MESSAGE) from e
            except Exception as e:
                raise RuntimeError(e) from e
