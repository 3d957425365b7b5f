import logging
import os

from .internal.schemas import AUTOSAVE_QUIET_PERIOD_SECONDS
from .routers.case_timeline_router import CaseTimelineRouter
from .routers.session_agenda_router import SessionAgendaRouter
from .routers.session_notes_router import SessionNotesRouter
from .service_coordinator import EndpointServiceCoordinator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)

environment = os.environ.get("ENVIRONMENT")

quiet_period_ms = os.environ.get("AUTOSAVE_QUIET_PERIOD_MS")
autosave_quiet_period_seconds = (AUTOSAVE_QUIET_PERIOD_SECONDS if len(quiet_period_ms or '') == 0
                                 else int(quiet_period_ms) / 1000)

app = EndpointServiceCoordinator(routers=[
                                    SessionNotesRouter(environment=environment,
                                                       autosave_quiet_period_seconds=autosave_quiet_period_seconds).router,
                                    CaseTimelineRouter(environment=environment).router,
                                    SessionAgendaRouter(environment=environment).router,
                                ],
                                 environment=environment).app
