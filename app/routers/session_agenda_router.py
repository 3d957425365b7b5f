from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Request,
    status,
)

from ..dependencies.dependency_container import SupabaseBaseClass
from ..internal.logging import (
    API_METHOD_DELETE,
    API_METHOD_GET,
    API_METHOD_POST,
    API_METHOD_PUT,
    log_error,
)
from ..internal.utilities import general_utilities
from ..internal.utilities.route_verification import get_user_supabase_client
from ..managers.session_agenda_manager import (
    AgendaItemInsert,
    AgendaItemUpdate,
    SessionAgendaManager,
)

class SessionAgendaRouter:

    AGENDA_ENDPOINT = "/v1/session-agenda"
    SINGLE_AGENDA_ITEM_ENDPOINT = "/v1/session-agenda/{agenda_item_id}"
    ROUTER_TAG = "session-agenda"

    def __init__(
        self,
        environment: str | None,
    ):
        self._environment = environment
        self._session_agenda_manager = SessionAgendaManager()
        self.router = APIRouter()
        self._register_routes()

    def _register_routes(self):
        """
        Registers the set of routes that the class' router can access.
        """
        @self.router.get(type(self).AGENDA_ENDPOINT, tags=[type(self).ROUTER_TAG])
        async def retrieve_agenda(
            request: Request,
            therapist_id: str,
            case_id: str,
            supabase_client: SupabaseBaseClass = Depends(get_user_supabase_client),
        ):
            return await self._retrieve_agenda_internal(
                request=request,
                therapist_id=therapist_id,
                case_id=case_id,
                supabase_client=supabase_client,
            )

        @self.router.post(type(self).AGENDA_ENDPOINT, tags=[type(self).ROUTER_TAG])
        async def add_agenda_item(
            request: Request,
            body: AgendaItemInsert,
            supabase_client: SupabaseBaseClass = Depends(get_user_supabase_client),
        ):
            return await self._add_agenda_item_internal(
                request=request,
                body=body,
                supabase_client=supabase_client,
            )

        @self.router.put(type(self).SINGLE_AGENDA_ITEM_ENDPOINT, tags=[type(self).ROUTER_TAG])
        async def update_agenda_item(
            request: Request,
            agenda_item_id: str,
            body: AgendaItemUpdate,
            supabase_client: SupabaseBaseClass = Depends(get_user_supabase_client),
        ):
            return await self._update_agenda_item_internal(
                request=request,
                agenda_item_id=agenda_item_id,
                body=body,
                supabase_client=supabase_client,
            )

        @self.router.delete(type(self).AGENDA_ENDPOINT, tags=[type(self).ROUTER_TAG])
        async def remove_agenda_item(
            request: Request,
            agenda_item_id: str,
            supabase_client: SupabaseBaseClass = Depends(get_user_supabase_client),
        ):
            return await self._remove_agenda_item_internal(
                request=request,
                agenda_item_id=agenda_item_id,
                supabase_client=supabase_client,
            )

    async def _retrieve_agenda_internal(
        self,
        request: Request,
        therapist_id: str,
        case_id: str,
        supabase_client: SupabaseBaseClass,
    ):
        self._validate_uuids(
            request=request,
            method=API_METHOD_GET,
            therapist_id=therapist_id,
            case_id=case_id,
        )

        try:
            agenda = await self._session_agenda_manager.retrieve_agenda(
                supabase_client=supabase_client,
                therapist_id=therapist_id,
                case_id=case_id,
            )
            return {
                "agenda": [item.model_dump() for item in agenda]
            }
        except Exception as e:
            raise self._handle_failure(
                e=e,
                request=request,
                method=API_METHOD_GET,
                therapist_id=therapist_id,
                case_id=case_id,
            )

    async def _add_agenda_item_internal(
        self,
        request: Request,
        body: AgendaItemInsert,
        supabase_client: SupabaseBaseClass,
    ):
        self._validate_uuids(
            request=request,
            method=API_METHOD_POST,
            therapist_id=body.therapist_id,
            case_id=body.case_id,
        )
        try:
            assert len(body.title.strip()) > 0, "Agenda items need a title."
        except Exception as e:
            raise self._handle_failure(
                e=e,
                request=request,
                method=API_METHOD_POST,
                fallback=status.HTTP_400_BAD_REQUEST,
                therapist_id=body.therapist_id,
                case_id=body.case_id,
            )

        try:
            item = await self._session_agenda_manager.add_agenda_item(
                supabase_client=supabase_client,
                body=body,
            )
            return item.model_dump()
        except Exception as e:
            raise self._handle_failure(
                e=e,
                request=request,
                method=API_METHOD_POST,
                therapist_id=body.therapist_id,
                case_id=body.case_id,
            )

    async def _update_agenda_item_internal(
        self,
        request: Request,
        agenda_item_id: str,
        body: AgendaItemUpdate,
        supabase_client: SupabaseBaseClass,
    ):
        """
        Marks an agenda item as completed, or back as pending.

        Arguments:
        request – the request object.
        agenda_item_id – the id of the agenda item.
        body – the completion state to be set.
        supabase_client – the user-scoped backend client.
        """
        self._validate_uuids(
            request=request,
            method=API_METHOD_PUT,
            agenda_item_id=agenda_item_id,
        )

        try:
            item = await self._session_agenda_manager.set_agenda_item_completed(
                supabase_client=supabase_client,
                agenda_item_id=agenda_item_id,
                completed=body.completed,
            )
        except Exception as e:
            raise self._handle_failure(
                e=e,
                request=request,
                method=API_METHOD_PUT,
            )

        if item is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Agenda item not found."
            )
        return item.model_dump()

    async def _remove_agenda_item_internal(
        self,
        request: Request,
        agenda_item_id: str,
        supabase_client: SupabaseBaseClass,
    ):
        self._validate_uuids(
            request=request,
            method=API_METHOD_DELETE,
            agenda_item_id=agenda_item_id,
        )

        try:
            removed = await self._session_agenda_manager.remove_agenda_item(
                supabase_client=supabase_client,
                agenda_item_id=agenda_item_id,
            )
        except Exception as e:
            raise self._handle_failure(
                e=e,
                request=request,
                method=API_METHOD_DELETE,
            )

        if not removed:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Agenda item not found."
            )
        return {}

    def _validate_uuids(
        self,
        request: Request,
        method: str,
        **ids,
    ):
        try:
            for name, value in ids.items():
                assert general_utilities.is_valid_uuid(value), f"Invalid {name}."
        except Exception as e:
            raise self._handle_failure(
                e=e,
                request=request,
                method=method,
                fallback=status.HTTP_400_BAD_REQUEST,
                therapist_id=ids.get("therapist_id"),
                case_id=ids.get("case_id"),
            )

    def _handle_failure(
        self,
        e: Exception,
        request: Request,
        method: str,
        fallback: int = status.HTTP_417_EXPECTATION_FAILED,
        therapist_id: str | None = None,
        case_id: str | None = None,
    ) -> HTTPException:
        description = str(e)
        status_code = general_utilities.extract_status_code(
            e,
            fallback=fallback
        )
        log_error(
            endpoint_name=request.url.path,
            method=method,
            error_code=status_code,
            therapist_id=therapist_id,
            case_id=case_id,
            description=description,
        )
        return HTTPException(
            status_code=status_code,
            detail=description
        )
