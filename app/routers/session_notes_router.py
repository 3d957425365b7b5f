import logging

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    HTTPException,
    Query,
    Request,
    status,
    WebSocket,
    WebSocketDisconnect,
)
from ..dependencies.dependency_container import SupabaseBaseClass
from ..internal.logging import (
    API_METHOD_GET,
    API_METHOD_POST,
    API_METHOD_PUT,
    API_METHOD_WEBSOCKET,
    log_error,
)
from ..internal.schemas import (
    AUTOSAVE_QUIET_PERIOD_SECONDS,
    EditorAction,
    SESSION_HISTORY_PAGE_SIZE,
    STORE_ACCESS_TOKEN_HEADER,
    STORE_REFRESH_TOKEN_HEADER,
)
from ..internal.utilities import general_utilities
from ..internal.utilities.route_verification import get_user_supabase_client, user_supabase_client
from ..managers.session_agenda_manager import SessionAgendaManager
from ..managers.session_notes_editor import EditorState, SessionNotesEditor
from ..managers.session_notes_manager import (
    NewSessionPayload,
    SessionNote,
    SessionNotePersistPayload,
    SessionNotesManager,
)

class SessionNotesRouter:

    SESSION_NOTES_ENDPOINT = "/v1/session-notes"
    LATEST_SESSION_NOTE_ENDPOINT = "/v1/session-notes/latest"
    SESSION_HISTORY_ENDPOINT = "/v1/session-notes/history"
    NEW_SESSION_ENDPOINT = "/v1/session-notes/new-session"
    LIVE_SESSION_NOTES_ENDPOINT = "/v1/session-notes/live"
    SINGLE_SESSION_NOTE_ENDPOINT = "/v1/session-notes/{session_note_id}"
    ROUTER_TAG = "session-notes"

    def __init__(
        self,
        environment: str | None,
        autosave_quiet_period_seconds: float = AUTOSAVE_QUIET_PERIOD_SECONDS,
    ):
        self._environment = environment
        self._autosave_quiet_period_seconds = autosave_quiet_period_seconds
        self._session_notes_manager = SessionNotesManager()
        self._session_agenda_manager = SessionAgendaManager()
        self.router = APIRouter()
        self._register_routes()

    def _register_routes(self):
        """
        Registers the set of routes that the class' router can access.
        """
        @self.router.get(type(self).LATEST_SESSION_NOTE_ENDPOINT, tags=[type(self).ROUTER_TAG])
        async def retrieve_latest_session_note(
            request: Request,
            therapist_id: str,
            case_id: str,
            supabase_client: SupabaseBaseClass = Depends(get_user_supabase_client),
        ):
            return await self._retrieve_latest_session_note_internal(
                request=request,
                therapist_id=therapist_id,
                case_id=case_id,
                supabase_client=supabase_client,
            )

        @self.router.get(type(self).SESSION_HISTORY_ENDPOINT, tags=[type(self).ROUTER_TAG])
        async def retrieve_session_history(
            request: Request,
            therapist_id: str,
            case_id: str,
            limit: int = Query(SESSION_HISTORY_PAGE_SIZE, ge=1, le=100),
            supabase_client: SupabaseBaseClass = Depends(get_user_supabase_client),
        ):
            return await self._retrieve_session_history_internal(
                request=request,
                therapist_id=therapist_id,
                case_id=case_id,
                limit=limit,
                supabase_client=supabase_client,
            )

        @self.router.websocket(type(self).LIVE_SESSION_NOTES_ENDPOINT)
        async def live_session_notes(
            websocket: WebSocket,
            therapist_id: str,
            case_id: str,
            client_id: str | None = None,
            session_note_id: str | None = None,
        ):
            await self._live_session_notes_internal(
                websocket=websocket,
                therapist_id=therapist_id,
                case_id=case_id,
                client_id=client_id,
                session_note_id=session_note_id,
            )

        @self.router.get(type(self).SINGLE_SESSION_NOTE_ENDPOINT, tags=[type(self).ROUTER_TAG])
        async def retrieve_session_note(
            request: Request,
            session_note_id: str,
            supabase_client: SupabaseBaseClass = Depends(get_user_supabase_client),
        ):
            return await self._retrieve_session_note_internal(
                request=request,
                session_note_id=session_note_id,
                supabase_client=supabase_client,
            )

        @self.router.put(type(self).SESSION_NOTES_ENDPOINT, tags=[type(self).ROUTER_TAG])
        async def persist_session_note(
            request: Request,
            background_tasks: BackgroundTasks,
            body: SessionNotePersistPayload,
            supabase_client: SupabaseBaseClass = Depends(get_user_supabase_client),
        ):
            return await self._persist_session_note_internal(
                request=request,
                background_tasks=background_tasks,
                body=body,
                supabase_client=supabase_client,
            )

        @self.router.post(type(self).NEW_SESSION_ENDPOINT, tags=[type(self).ROUTER_TAG])
        async def start_new_session(
            request: Request,
            body: NewSessionPayload,
            supabase_client: SupabaseBaseClass = Depends(get_user_supabase_client),
        ):
            return await self._start_new_session_internal(
                request=request,
                body=body,
                supabase_client=supabase_client,
            )

    async def _retrieve_latest_session_note_internal(
        self,
        request: Request,
        therapist_id: str,
        case_id: str,
        supabase_client: SupabaseBaseClass,
    ):
        """
        Retrieves the most recently modified note for the case and therapist.
        Returns an empty object when the case has no notes yet.

        Arguments:
        request – the request object.
        therapist_id – the id of the note's author.
        case_id – the id of the case.
        supabase_client – the user-scoped backend client.
        """
        self._validate_ids(
            request=request,
            therapist_id=therapist_id,
            case_id=case_id,
        )

        try:
            note = await self._session_notes_manager.load_latest(
                supabase_client=supabase_client,
                therapist_id=therapist_id,
                case_id=case_id,
            )
            return {} if note is None else note.model_dump()
        except Exception as e:
            raise self._log_and_build_http_exception(
                e=e,
                request=request,
                method=API_METHOD_GET,
                fallback=status.HTTP_417_EXPECTATION_FAILED,
                therapist_id=therapist_id,
                case_id=case_id,
            )

    async def _retrieve_session_history_internal(
        self,
        request: Request,
        therapist_id: str,
        case_id: str,
        limit: int,
        supabase_client: SupabaseBaseClass,
    ):
        self._validate_ids(
            request=request,
            therapist_id=therapist_id,
            case_id=case_id,
        )

        try:
            history = await self._session_notes_manager.load_history(
                supabase_client=supabase_client,
                therapist_id=therapist_id,
                case_id=case_id,
                limit=limit,
            )
            return {
                "history": [entry.model_dump() for entry in history]
            }
        except Exception as e:
            raise self._log_and_build_http_exception(
                e=e,
                request=request,
                method=API_METHOD_GET,
                fallback=status.HTTP_417_EXPECTATION_FAILED,
                therapist_id=therapist_id,
                case_id=case_id,
            )

    async def _retrieve_session_note_internal(
        self,
        request: Request,
        session_note_id: str,
        supabase_client: SupabaseBaseClass,
    ):
        self._validate_ids(
            request=request,
            session_note_id=session_note_id,
        )

        try:
            note = await self._session_notes_manager.load_by_id(
                supabase_client=supabase_client,
                session_note_id=session_note_id,
            )
        except Exception as e:
            raise self._log_and_build_http_exception(
                e=e,
                request=request,
                method=API_METHOD_GET,
                fallback=status.HTTP_417_EXPECTATION_FAILED,
                session_note_id=session_note_id,
            )

        if note is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Session note not found."
            )
        return note.model_dump()

    async def _persist_session_note_internal(
        self,
        request: Request,
        background_tasks: BackgroundTasks,
        body: SessionNotePersistPayload,
        supabase_client: SupabaseBaseClass,
    ):
        """
        Persists the note's content, updating it by id or upserting the case draft.
        Whitespace-only content is acknowledged without being written.

        Arguments:
        request – the request object.
        background_tasks – object for scheduling concurrent tasks.
        body – the note to be persisted.
        supabase_client – the user-scoped backend client.
        """
        self._validate_ids(
            request=request,
            therapist_id=body.therapist_id,
            case_id=body.case_id,
            session_note_id=body.id,
        )

        note = SessionNote(
            id=body.id,
            therapist_id=body.therapist_id,
            case_id=body.case_id,
            client_id=body.client_id,
            content=body.content,
        )
        succeeded = await self._session_notes_manager.persist(
            supabase_client=supabase_client,
            note=note,
            finalize=body.finalize,
        )
        if not succeeded:
            raise self._log_and_build_http_exception(
                e=Exception("Save failed"),
                request=request,
                method=API_METHOD_PUT,
                fallback=status.HTTP_417_EXPECTATION_FAILED,
                therapist_id=body.therapist_id,
                case_id=body.case_id,
                session_note_id=body.id,
            )

        if body.finalize and len(body.content.strip()) > 0:
            background_tasks.add_task(
                self._complete_pending_agenda_items,
                supabase_client,
                body.therapist_id,
                body.case_id,
            )

        return {
            "session_note_id": note.id,
            "updated_at": note.updated_at,
            "finalized": bool(note.finalized),
        }

    async def _start_new_session_internal(
        self,
        request: Request,
        body: NewSessionPayload,
        supabase_client: SupabaseBaseClass,
    ):
        self._validate_ids(
            request=request,
            therapist_id=body.therapist_id,
            case_id=body.case_id,
        )

        try:
            note = await self._session_notes_manager.start_new_session(
                supabase_client=supabase_client,
                therapist_id=body.therapist_id,
                case_id=body.case_id,
                client_id=body.client_id,
            )
            return note.model_dump()
        except Exception as e:
            raise self._log_and_build_http_exception(
                e=e,
                request=request,
                method=API_METHOD_POST,
                fallback=status.HTTP_417_EXPECTATION_FAILED,
                therapist_id=body.therapist_id,
                case_id=body.case_id,
            )

    async def _live_session_notes_internal(
        self,
        websocket: WebSocket,
        therapist_id: str,
        case_id: str,
        client_id: str | None,
        session_note_id: str | None,
    ):
        """
        Hosts a session notes editor for the lifetime of the websocket connection.
        Every action, and every autosave, is answered with the editor's state.
        A dirty buffer is saved when the connection goes away.

        Arguments:
        websocket – the websocket connection.
        therapist_id – the id of the note's author.
        case_id – the id of the case.
        client_id – the optional id of the case's client.
        session_note_id – the optional id of the note to open instead of the latest one.
        """
        try:
            supabase_client = await user_supabase_client(
                store_access_token=(websocket.headers.get(STORE_ACCESS_TOKEN_HEADER)
                                    or websocket.query_params.get("store_access_token")),
                store_refresh_token=(websocket.headers.get(STORE_REFRESH_TOKEN_HEADER)
                                     or websocket.query_params.get("store_refresh_token")),
            )
            assert general_utilities.is_valid_uuid(therapist_id), "Invalid therapist_id."
            assert general_utilities.is_valid_uuid(case_id), "Invalid case_id."
        except Exception as e:
            log_error(
                endpoint_name=websocket.url.path,
                method=API_METHOD_WEBSOCKET,
                error_code=general_utilities.extract_status_code(e, fallback=status.HTTP_400_BAD_REQUEST),
                therapist_id=therapist_id,
                case_id=case_id,
                description=str(e) if not isinstance(e, HTTPException) else e.detail,
            )
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

        await websocket.accept()

        async def send_state(state: EditorState):
            await websocket.send_json(state.model_dump())

        editor = SessionNotesEditor(
            supabase_client=supabase_client,
            therapist_id=therapist_id,
            case_id=case_id,
            client_id=client_id,
            session_notes_manager=self._session_notes_manager,
            session_agenda_manager=self._session_agenda_manager,
            quiet_period_seconds=self._autosave_quiet_period_seconds,
            on_state_change=send_state,
        )

        try:
            await editor.load(session_note_id=session_note_id)
            while True:
                message = await websocket.receive_json()
                await self._dispatch_editor_action(
                    websocket=websocket,
                    editor=editor,
                    message=message,
                )
        except WebSocketDisconnect:
            logging.info(f"[SessionNotesRouter] Live editor disconnected for case {case_id}")
        except Exception as e:
            log_error(
                endpoint_name=websocket.url.path,
                method=API_METHOD_WEBSOCKET,
                error_code=status.WS_1011_INTERNAL_ERROR,
                therapist_id=therapist_id,
                case_id=case_id,
                description=str(e),
            )
        finally:
            if editor.is_dirty():
                await editor.save_now()
            await editor.close()

    async def _dispatch_editor_action(
        self,
        websocket: WebSocket,
        editor: SessionNotesEditor,
        message: dict,
    ):
        try:
            action = EditorAction(message.get("action"))
        except ValueError:
            await websocket.send_json({
                "error": f"Unsupported action: {message.get('action')}"
            })
            return

        if action == EditorAction.EDIT:
            await editor.edit(str(message.get("text") or ""))
        elif action == EditorAction.SAVE_NOW:
            await editor.save_now()
        elif action == EditorAction.FINALIZE:
            await editor.finalize()
        elif action == EditorAction.SWITCH:
            if not await editor.switch_session(str(message.get("session_note_id") or "")):
                await websocket.send_json({
                    "error": "Could not load selected session."
                })
        elif action == EditorAction.NEW_SESSION:
            try:
                await editor.start_new_session()
            except Exception as e:
                log_error(
                    endpoint_name=websocket.url.path,
                    method=API_METHOD_WEBSOCKET,
                    error_code=general_utilities.extract_status_code(e, fallback=status.HTTP_417_EXPECTATION_FAILED),
                    therapist_id=editor.therapist_id,
                    case_id=editor.case_id,
                    description=str(e),
                )
                await websocket.send_json({
                    "error": str(e)
                })

    async def _complete_pending_agenda_items(
        self,
        supabase_client: SupabaseBaseClass,
        therapist_id: str,
        case_id: str,
    ):
        try:
            await self._session_agenda_manager.complete_pending_items(
                supabase_client=supabase_client,
                therapist_id=therapist_id,
                case_id=case_id,
            )
        except Exception as e:
            logging.warning(f"[SessionNotesRouter] Could not complete agenda items for case {case_id}: {str(e)}")

    def _validate_ids(
        self,
        request: Request,
        **ids,
    ):
        """
        Raises a 400 for the first provided id that isn't a valid UUID. Ids passed as None are skipped.
        """
        try:
            for name, value in ids.items():
                if value is None:
                    continue
                assert general_utilities.is_valid_uuid(value), f"Invalid {name}."
        except Exception as e:
            raise self._log_and_build_http_exception(
                e=e,
                request=request,
                method=request.method,
                fallback=status.HTTP_400_BAD_REQUEST,
                **{key: value for key, value in ids.items() if key in ["therapist_id", "case_id", "session_note_id"]},
            )

    def _log_and_build_http_exception(
        self,
        e: Exception,
        request: Request,
        method: str,
        fallback: int,
        **kwargs,
    ) -> HTTPException:
        status_code = general_utilities.extract_status_code(e, fallback=fallback)
        description = str(e)
        log_error(
            endpoint_name=request.url.path,
            method=method,
            error_code=status_code,
            description=description,
            **kwargs,
        )
        return HTTPException(
            status_code=status_code,
            detail=description
        )
