from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    Request,
    status,
)

from ..dependencies.dependency_container import SupabaseBaseClass
from ..internal.logging import API_METHOD_POST, log_error
from ..internal.utilities import general_utilities
from ..internal.utilities.route_verification import get_user_supabase_client
from ..managers.case_timeline_manager import CaseTimelineManager, SupervisionFlagPayload

class CaseTimelineRouter:

    TIMELINE_ENDPOINT = "/v1/cases/{case_id}/timeline"
    SESSION_NOTES_PAGE_ENDPOINT = "/v1/cases/{case_id}/timeline/sessions/{session_index}"
    SUPERVISION_FLAGS_ENDPOINT = "/v1/cases/{case_id}/supervision-flags"
    ROUTER_TAG = "case-timeline"

    def __init__(
        self,
        environment: str | None,
    ):
        self._environment = environment
        self._case_timeline_manager = CaseTimelineManager()
        self.router = APIRouter()
        self._register_routes()

    def _register_routes(self):
        """
        Registers the set of routes that the class' router can access.
        """
        @self.router.get(type(self).TIMELINE_ENDPOINT, tags=[type(self).ROUTER_TAG])
        async def retrieve_timeline(
            request: Request,
            case_id: str,
            supabase_client: SupabaseBaseClass = Depends(get_user_supabase_client),
        ):
            return await self._retrieve_timeline_internal(
                request=request,
                case_id=case_id,
                supabase_client=supabase_client,
            )

        @self.router.get(type(self).SESSION_NOTES_PAGE_ENDPOINT, tags=[type(self).ROUTER_TAG])
        async def retrieve_session_notes_page(
            request: Request,
            case_id: str,
            session_index: int,
            page: int = Query(0, ge=0),
            supabase_client: SupabaseBaseClass = Depends(get_user_supabase_client),
        ):
            return await self._retrieve_session_notes_page_internal(
                request=request,
                case_id=case_id,
                session_index=session_index,
                page=page,
                supabase_client=supabase_client,
            )

        @self.router.post(type(self).SUPERVISION_FLAGS_ENDPOINT, tags=[type(self).ROUTER_TAG])
        async def flag_case_for_supervision(
            request: Request,
            case_id: str,
            body: SupervisionFlagPayload,
            supabase_client: SupabaseBaseClass = Depends(get_user_supabase_client),
        ):
            return await self._flag_case_for_supervision_internal(
                request=request,
                case_id=case_id,
                body=body,
                supabase_client=supabase_client,
            )

    async def _retrieve_timeline_internal(
        self,
        request: Request,
        case_id: str,
        supabase_client: SupabaseBaseClass,
    ):
        """
        Retrieves the case timeline. A backend failure is reported in the payload's `error`
        field with no cards, rather than as an error response.

        Arguments:
        request – the request object.
        case_id – the id of the case.
        supabase_client – the user-scoped backend client.
        """
        self._validate_case_id(request=request, case_id=case_id)

        timeline = await self._case_timeline_manager.retrieve_timeline(
            supabase_client=supabase_client,
            case_id=case_id,
        )
        return timeline.model_dump()

    async def _retrieve_session_notes_page_internal(
        self,
        request: Request,
        case_id: str,
        session_index: int,
        page: int,
        supabase_client: SupabaseBaseClass,
    ):
        self._validate_case_id(request=request, case_id=case_id)

        notes_page = await self._case_timeline_manager.retrieve_session_notes_page(
            supabase_client=supabase_client,
            case_id=case_id,
            session_index=session_index,
            page=page,
        )
        return notes_page.model_dump()

    async def _flag_case_for_supervision_internal(
        self,
        request: Request,
        case_id: str,
        body: SupervisionFlagPayload,
        supabase_client: SupabaseBaseClass,
    ):
        """
        Flags the case for supervision and refreshes its case summary.

        Arguments:
        request – the request object.
        case_id – the id of the case.
        body – the flagging therapist and the optional case title.
        supabase_client – the user-scoped backend client.
        """
        self._validate_case_id(request=request, case_id=case_id)
        try:
            assert general_utilities.is_valid_uuid(body.therapist_id), "Invalid therapist_id."
        except Exception as e:
            log_error(
                endpoint_name=request.url.path,
                method=API_METHOD_POST,
                error_code=status.HTTP_400_BAD_REQUEST,
                case_id=case_id,
                description=str(e),
            )
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(e)
            )

        try:
            case_summary = await self._case_timeline_manager.flag_case_for_supervision(
                supabase_client=supabase_client,
                case_id=case_id,
                therapist_id=body.therapist_id,
                case_title=body.case_title,
            )
            return {
                "case_summary": case_summary
            }
        except Exception as e:
            description = str(e)
            status_code = general_utilities.extract_status_code(
                e,
                fallback=status.HTTP_417_EXPECTATION_FAILED
            )
            log_error(
                endpoint_name=request.url.path,
                method=API_METHOD_POST,
                error_code=status_code,
                therapist_id=body.therapist_id,
                case_id=case_id,
                description=description,
            )
            raise HTTPException(
                status_code=status_code,
                detail=description
            )

    def _validate_case_id(
        self,
        request: Request,
        case_id: str,
    ):
        try:
            assert general_utilities.is_valid_uuid(case_id), "Invalid case_id."
        except Exception as e:
            log_error(
                endpoint_name=request.url.path,
                method=request.method,
                error_code=status.HTTP_400_BAD_REQUEST,
                case_id=case_id,
                description=str(e),
            )
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(e)
            )
