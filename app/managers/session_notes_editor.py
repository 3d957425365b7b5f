import asyncio, logging

from pydantic import BaseModel
from typing import Any, Awaitable, Callable

from .session_agenda_manager import SessionAgendaManager
from .session_notes_manager import SessionHistoryEntry, SessionNote, SessionNotesManager
from ..dependencies.api.supabase_base_class import SupabaseBaseClass
from ..internal.schemas import (
    AUTOSAVE_QUIET_PERIOD_SECONDS,
    NOTHING_TO_SAVE_MESSAGE,
    SAVE_FAILED_MESSAGE,
    SAVE_INFO_DISMISS_SECONDS,
    SAVED_MESSAGE,
    SESSION_FINALIZED_MESSAGE,
)
from ..internal.utilities.debounced_caller import DebouncedCaller

class DirtyStateTracker:
    """
    Tracks whether the editing buffer differs from the last persisted text.
    Whitespace at either end is not considered a change.
    """

    def __init__(self):
        self.last_persisted_text = ""
        self.current_text = ""
        self._saves_in_flight = 0

    @property
    def saving(self) -> bool:
        return self._saves_in_flight > 0

    def is_dirty(self) -> bool:
        return self.current_text.strip() != self.last_persisted_text.strip()

    def mark_persisted(self, saved_text: str):
        self.last_persisted_text = saved_text

    def reset(self, loaded_text: str = ""):
        self.last_persisted_text = loaded_text
        self.current_text = loaded_text

    def begin_save(self):
        self._saves_in_flight += 1

    def end_save(self):
        self._saves_in_flight = max(self._saves_in_flight - 1, 0)

class EditorState(BaseModel):
    session_note_id: str | None = None
    session_index: int | None = None
    content: str
    dirty: bool
    saving: bool
    finalized: bool
    save_info: str | None = None
    history: list[SessionHistoryEntry]

class SessionNotesEditor:
    """
    Editing context for the session notes of a single (therapist, case) pair.

    Edits are autosaved once the buffer has been quiet for the configured period.
    Explicit saves, finalization, session switches and new sessions are driven
    by the host, which is also responsible for saving before tearing the editor down.
    """

    def __init__(
        self,
        supabase_client: SupabaseBaseClass,
        therapist_id: str | None,
        case_id: str | None,
        client_id: str | None = None,
        session_notes_manager: SessionNotesManager | None = None,
        session_agenda_manager: SessionAgendaManager | None = None,
        quiet_period_seconds: float = AUTOSAVE_QUIET_PERIOD_SECONDS,
        save_info_dismiss_seconds: float = SAVE_INFO_DISMISS_SECONDS,
        on_state_change: Callable[[EditorState], Awaitable | Any] | None = None,
    ):
        self._supabase_client = supabase_client
        self.therapist_id = therapist_id
        self.case_id = case_id
        self.client_id = client_id
        self._session_notes_manager = session_notes_manager or SessionNotesManager()
        self._session_agenda_manager = session_agenda_manager or SessionAgendaManager()
        self._on_state_change = on_state_change
        self._autosave = DebouncedCaller(
            delay_seconds=quiet_period_seconds,
            on_error=self._on_autosave_error
        )
        self._save_info_dismissal = DebouncedCaller(delay_seconds=save_info_dismiss_seconds)
        self._context_generation = 0

        self.dirty_state = DirtyStateTracker()
        self.session_note_id: str | None = None
        self.session_index: int | None = None
        self.finalized = False
        self.save_info: str | None = None
        self.history: list[SessionHistoryEntry] = []

    @property
    def can_save(self) -> bool:
        return len(self.therapist_id or '') > 0 and len(self.case_id or '') > 0

    def is_dirty(self) -> bool:
        return self.dirty_state.is_dirty()

    def is_saving(self) -> bool:
        return self.dirty_state.saving

    def state(self) -> EditorState:
        return EditorState(
            session_note_id=self.session_note_id,
            session_index=self.session_index,
            content=self.dirty_state.current_text,
            dirty=self.is_dirty(),
            saving=self.is_saving(),
            finalized=self.finalized,
            save_info=self.save_info,
            history=self.history,
        )

    async def load(self, session_note_id: str | None = None):
        """
        Loads the session history and either the given note or the latest one for the case.
        A missing note or a failed load leaves an empty editor.
        """
        self._context_generation += 1
        if not self.can_save:
            self.history = []
            self._apply_loaded_note(None)
            await self._notify()
            return

        try:
            self.history = await self._session_notes_manager.load_history(
                supabase_client=self._supabase_client,
                therapist_id=self.therapist_id,
                case_id=self.case_id,
            )
            if session_note_id is not None:
                note = await self._session_notes_manager.load_by_id(
                    supabase_client=self._supabase_client,
                    session_note_id=session_note_id,
                )
            else:
                note = await self._session_notes_manager.load_latest(
                    supabase_client=self._supabase_client,
                    therapist_id=self.therapist_id,
                    case_id=self.case_id,
                )
            self._apply_loaded_note(note)
        except Exception as e:
            logging.warning(f"[SessionNotesEditor] Failed to load notes for case {self.case_id}: {str(e)}")
            self.history = []
            self._apply_loaded_note(None)
        await self._notify()

    async def edit(self, text: str):
        self.dirty_state.current_text = text
        if self.dirty_state.is_dirty():
            self._autosave.schedule(self._autosave_if_not_empty)
        else:
            self._autosave.cancel()
        await self._notify()

    async def save_now(self) -> bool:
        self._autosave.cancel()
        return await self._persist(self.dirty_state.current_text)

    async def finalize(self) -> bool:
        """
        Saves the buffer stamping the note as finalized, then completes the case's pending agenda items.
        Finalizing doesn't lock the note.
        """
        self._autosave.cancel()
        succeeded = await self._persist(self.dirty_state.current_text, finalize=True)
        if succeeded and self.can_save:
            try:
                await self._session_agenda_manager.complete_pending_items(
                    supabase_client=self._supabase_client,
                    therapist_id=self.therapist_id,
                    case_id=self.case_id,
                )
            except Exception as e:
                logging.warning(f"[SessionNotesEditor] Could not complete agenda items for case {self.case_id}: {str(e)}")
        return succeeded

    async def start_new_session(self) -> SessionNote:
        """
        Creates the next numbered session and makes it the editing target.
        The previous buffer is not saved.
        """
        self._autosave.cancel()
        note = await self._session_notes_manager.start_new_session(
            supabase_client=self._supabase_client,
            therapist_id=self.therapist_id,
            case_id=self.case_id,
            client_id=self.client_id,
        )
        self._context_generation += 1
        self._apply_loaded_note(note)
        self.history.insert(0, SessionHistoryEntry(
            id=note.id,
            session_index=note.session_index,
            updated_at=note.updated_at,
        ))
        await self._notify()
        return note

    async def switch_session(self, session_note_id: str) -> bool:
        """
        Makes the given note the editing target. The previous buffer is not saved.
        Returns False, keeping the current note, when the note can't be loaded.
        """
        try:
            note = await self._session_notes_manager.load_by_id(
                supabase_client=self._supabase_client,
                session_note_id=session_note_id,
            )
        except Exception as e:
            logging.warning(f"[SessionNotesEditor] Could not load session note {session_note_id}: {str(e)}")
            return False

        if note is None:
            return False

        self._context_generation += 1
        self._apply_loaded_note(note)
        await self._notify()
        return True

    async def close(self):
        self._autosave.cancel()
        await self._autosave.drain()
        self._save_info_dismissal.cancel()
        self._on_state_change = None

    # Private

    def _apply_loaded_note(self, note: SessionNote | None):
        self._autosave.cancel()
        self.dirty_state.reset("" if note is None else note.text)
        self.session_note_id = None if note is None else note.id
        self.session_index = None if note is None else note.session_index
        self.finalized = False if note is None else bool(note.finalized)

    async def _autosave_if_not_empty(self):
        text = self.dirty_state.current_text
        if len(text.strip()) > 0:
            await self._persist(text)

    async def _persist(self, text: str, finalize: bool = False) -> bool:
        if not self.can_save:
            return False

        if len(text.strip()) == 0:
            self._show_save_info(NOTHING_TO_SAVE_MESSAGE)
            await self._notify()
            return True

        generation = self._context_generation
        note = SessionNote(
            id=self.session_note_id,
            therapist_id=self.therapist_id,
            case_id=self.case_id,
            client_id=self.client_id,
            session_index=self.session_index,
            content=text,
        )

        self.dirty_state.begin_save()
        await self._notify()
        try:
            succeeded = await self._session_notes_manager.persist(
                supabase_client=self._supabase_client,
                note=note,
                finalize=finalize,
            )
        finally:
            self.dirty_state.end_save()

        # The editing target changed while the save was in flight.
        if generation != self._context_generation:
            return succeeded

        if succeeded:
            self.dirty_state.mark_persisted(text)
            self.session_note_id = note.id
            # Edits made while this save was in flight still need their own save.
            if self.dirty_state.is_dirty() and len(self.dirty_state.current_text.strip()) > 0:
                self._autosave.schedule(self._autosave_if_not_empty)
            if finalize:
                self.finalized = True
            self._show_save_info(SESSION_FINALIZED_MESSAGE if finalize else SAVED_MESSAGE)
        else:
            self._show_save_info(SAVE_FAILED_MESSAGE)
        await self._notify()
        return succeeded

    def _show_save_info(self, message: str):
        self.save_info = message
        self._save_info_dismissal.schedule(self._dismiss_save_info)

    async def _dismiss_save_info(self):
        self.save_info = None
        await self._notify()

    async def _on_autosave_error(self, e: Exception):
        logging.error(f"[SessionNotesEditor] Autosave failed for case {self.case_id}: {str(e)}")

    async def _notify(self):
        if self._on_state_change is None:
            return

        try:
            result = self._on_state_change(self.state())
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logging.warning(f"[SessionNotesEditor] State listener failed: {str(e)}")
