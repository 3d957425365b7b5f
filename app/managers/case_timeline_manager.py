import logging

from pydantic import BaseModel

from ..dependencies.api.summarization_base_class import SummarizationBaseClass
from ..dependencies.api.supabase_base_class import SupabaseBaseClass
from ..dependencies.dependency_container import dependency_container
from ..internal.schemas import (
    CASE_SUMMARIES_CONFLICT_COLUMNS,
    CASE_SUMMARIES_TABLE_NAME,
    DEFAULT_SUPERVISION_HIGHLIGHT,
    DEFAULT_SUPERVISION_REASON,
    HIGHLIGHTS_ERROR_MESSAGE,
    HIGHLIGHTS_MAX_LINES,
    NO_HIGHLIGHTS_MESSAGE,
    SESSION_NOTES_READER_PAGE_SIZE,
    SESSION_NOTES_READER_PREVIEW_LENGTH,
    SESSION_NOTES_TABLE_NAME,
    SUPERVISION_FLAGS_TABLE_NAME,
    SUPERVISION_HIGHLIGHT_LENGTH,
    SupervisionFlagStatus,
    TIMELINE_ERROR_MESSAGE,
    TIMELINE_MISC_KEY,
    TIMELINE_PREVIEW_LENGTH,
    TIMELINE_PREVIEWS_PER_CARD,
    TREATMENT_PLAN_PHASES_TABLE_NAME,
)
from ..internal.utilities import datetime_handler, general_utilities

class TimelineNotePreview(BaseModel):
    id: str
    preview: str

class TimelineCard(BaseModel):
    phase_id: str
    label: str
    phase: str | None = None
    planned_date: str | None = None
    session_index: int | None = None
    notes_count: int
    previews: list[TimelineNotePreview]
    remaining_count: int
    latest_note_id: str | None = None

class CaseTimeline(BaseModel):
    case_id: str
    cards: list[TimelineCard]
    error: str | None = None

class SessionNotesPageItem(BaseModel):
    id: str
    session_index: int | None = None
    created_at: str | None = None
    updated_at: str | None = None
    content: str

class SessionNotesPage(BaseModel):
    case_id: str
    session_index: int
    page: int
    page_size: int
    items: list[SessionNotesPageItem]
    has_next: bool
    highlights: str

class SupervisionFlagPayload(BaseModel):
    therapist_id: str
    case_title: str | None = None

def fallback_highlights(texts: list) -> str:
    """
    Builds a local digest out of the first non-empty lines of the given texts.
    """
    lines = "\n".join([general_utilities.note_text(text) for text in texts]).split("\n")
    picks = [line.strip() for line in lines if len(line.strip()) > 0][:HIGHLIGHTS_MAX_LINES]
    if len(picks) == 0:
        return NO_HIGHLIGHTS_MESSAGE
    return "• " + "\n• ".join(picks)

def group_notes_by_session(notes: list[dict]) -> dict[str, list[dict]]:
    """
    Groups notes by their session index, keeping the incoming order within each group.
    Notes without a session index (null or zero) are grouped under the misc key.
    """
    notes_by_session: dict[str, list[dict]] = {}
    for note in notes:
        key = session_key(note.get('session_index'))
        notes_by_session.setdefault(key, []).append(note)
    return notes_by_session

def session_key(session_index: int | None) -> str:
    return str(session_index) if session_index else TIMELINE_MISC_KEY

class CaseTimelineManager:

    PHASE_FIELDS = "id, case_id, phase, planned_date, session_index"
    NOTE_FIELDS = "id, case_id, therapist_id, content, created_at, updated_at, session_index"

    async def retrieve_timeline(
        self,
        supabase_client: SupabaseBaseClass,
        case_id: str,
    ) -> CaseTimeline:
        """
        Joins the case's planned treatment phases with its session notes, one card per phase.
        If either query fails, no cards are returned and the timeline carries a single error.

        Arguments:
        supabase_client – the client used for reaching the backend.
        case_id – the id of the case.
        """
        try:
            phases_response = await supabase_client.select(
                fields=self.PHASE_FIELDS,
                filters={
                    "case_id": case_id
                },
                table_name=TREATMENT_PLAN_PHASES_TABLE_NAME,
                order_column="session_index",
                order_ascending=True,
            )
            notes_response = await supabase_client.select(
                fields=self.NOTE_FIELDS,
                filters={
                    "case_id": case_id
                },
                table_name=SESSION_NOTES_TABLE_NAME,
                order_column="updated_at",
            )
        except Exception as e:
            logging.error(f"[CaseTimelineManager] Failed to load timeline for case {case_id}: {str(e)}")
            return CaseTimeline(
                case_id=case_id,
                cards=[],
                error=TIMELINE_ERROR_MESSAGE,
            )

        notes_by_session = group_notes_by_session(notes_response['data'])
        cards = []
        for phase in phases_response['data']:
            related_notes = notes_by_session.get(session_key(phase.get('session_index')), [])
            previews = [
                TimelineNotePreview(
                    id=note['id'],
                    preview=general_utilities.truncate(
                        general_utilities.note_text(note.get('content')),
                        TIMELINE_PREVIEW_LENGTH
                    )
                )
                for note in related_notes[:TIMELINE_PREVIEWS_PER_CARD]
            ]
            session_index = phase.get('session_index')
            cards.append(TimelineCard(
                phase_id=phase['id'],
                label=f"S{session_index}" if session_index else (phase.get('phase') or ""),
                phase=phase.get('phase'),
                planned_date=datetime_handler.format_planned_date(phase.get('planned_date')),
                session_index=session_index,
                notes_count=len(related_notes),
                previews=previews,
                remaining_count=max(len(related_notes) - TIMELINE_PREVIEWS_PER_CARD, 0),
                latest_note_id=None if len(related_notes) == 0 else related_notes[0]['id'],
            ))

        return CaseTimeline(
            case_id=case_id,
            cards=cards,
        )

    async def retrieve_session_notes_page(
        self,
        supabase_client: SupabaseBaseClass,
        case_id: str,
        session_index: int,
        page: int = 0,
    ) -> SessionNotesPage:
        """
        Returns one page of the notes sharing a session index, newest first, along with a digest of the page.
        """
        range_start = page * SESSION_NOTES_READER_PAGE_SIZE
        range_end = range_start + SESSION_NOTES_READER_PAGE_SIZE - 1
        try:
            response = await supabase_client.select_within_range(
                fields=self.NOTE_FIELDS,
                filters={
                    "case_id": case_id,
                    "session_index": session_index,
                },
                table_name=SESSION_NOTES_TABLE_NAME,
                range_start=range_start,
                range_end=range_end,
                order_column="updated_at",
            )
        except Exception as e:
            logging.error(f"[CaseTimelineManager] Failed to load session {session_index} notes for case {case_id}: {str(e)}")
            return SessionNotesPage(
                case_id=case_id,
                session_index=session_index,
                page=page,
                page_size=SESSION_NOTES_READER_PAGE_SIZE,
                items=[],
                has_next=False,
                highlights=HIGHLIGHTS_ERROR_MESSAGE,
            )

        rows = response['data']
        texts = [general_utilities.note_text(row.get('content')) for row in rows]
        items = [
            SessionNotesPageItem(
                id=row['id'],
                session_index=row.get('session_index'),
                created_at=row.get('created_at'),
                updated_at=row.get('updated_at'),
                content=general_utilities.truncate(text, SESSION_NOTES_READER_PREVIEW_LENGTH),
            )
            for row, text in zip(rows, texts)
        ]
        return SessionNotesPage(
            case_id=case_id,
            session_index=session_index,
            page=page,
            page_size=SESSION_NOTES_READER_PAGE_SIZE,
            items=items,
            has_next=len(rows) == SESSION_NOTES_READER_PAGE_SIZE,
            highlights=await self.generate_highlights(texts),
        )

    async def generate_highlights(
        self,
        texts: list[str],
    ) -> str:
        """
        Returns the summarization service's digest of the texts, or the local fallback digest
        when the service is unavailable or fails.
        """
        if len(texts) == 0:
            return fallback_highlights(texts)

        try:
            summarization_client: SummarizationBaseClass = dependency_container.inject_summarization_client()
            return await summarization_client.summarize(texts)
        except Exception as e:
            logging.warning(f"[CaseTimelineManager] Summarization unavailable, using local highlights: {str(e)}")
            return fallback_highlights(texts)

    async def flag_case_for_supervision(
        self,
        supabase_client: SupabaseBaseClass,
        case_id: str,
        therapist_id: str,
        case_title: str | None = None,
    ) -> dict:
        """
        Opens a supervision flag for the case and refreshes the case summary with the latest note.

        Arguments:
        supabase_client – the client used for reaching the backend.
        case_id – the id of the case being flagged.
        therapist_id – the id of the therapist flagging the case.
        case_title – the display title for the case summary.
        """
        try:
            now = datetime_handler.utc_now_iso()
            await supabase_client.insert(
                payload={
                    "case_id": case_id,
                    "therapist_id": therapist_id,
                    "status": SupervisionFlagStatus.OPEN.value,
                    "reason": DEFAULT_SUPERVISION_REASON,
                    "created_at": now,
                },
                table_name=SUPERVISION_FLAGS_TABLE_NAME,
            )

            latest_note = await supabase_client.select_single(
                fields="content, updated_at",
                filters={
                    "case_id": case_id
                },
                table_name=SESSION_NOTES_TABLE_NAME,
                order_column="updated_at",
            )
            latest_text = "" if latest_note is None else general_utilities.note_text(latest_note.get('content'))
            highlight_source = latest_text if len(latest_text) > 0 else DEFAULT_SUPERVISION_HIGHLIGHT

            summary_response = await supabase_client.upsert(
                payload={
                    "case_id": case_id,
                    "title": case_title or f"Case {case_id[:6]}…",
                    "last_highlight": general_utilities.truncate(highlight_source, SUPERVISION_HIGHLIGHT_LENGTH),
                    "updated_at": now,
                    "updated_by": therapist_id,
                },
                on_conflict=CASE_SUMMARIES_CONFLICT_COLUMNS,
                table_name=CASE_SUMMARIES_TABLE_NAME,
            )
            return summary_response['data'][0]
        except Exception as e:
            raise RuntimeError(e) from e
