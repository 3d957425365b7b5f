from enum import Enum

# Tables
SESSION_NOTES_TABLE_NAME = "session_notes"
TREATMENT_PLAN_PHASES_TABLE_NAME = "treatment_plan_phases"
SESSION_AGENDA_TABLE_NAME = "session_agenda"
SUPERVISION_FLAGS_TABLE_NAME = "supervision_flags"
CASE_SUMMARIES_TABLE_NAME = "case_summaries"
ERROR_LOGS_TABLE_NAME = "error_logs"

# Conflict targets
SESSION_NOTES_DRAFT_CONFLICT_COLUMNS = "therapist_id,case_id,session_index"
CASE_SUMMARIES_CONFLICT_COLUMNS = "case_id"

# Environments
TESTING_ENVIRONMENT = "testing"
PROD_ENVIRONMENT = "prod"

# Session notes
SESSION_HISTORY_PAGE_SIZE = 30
AUTOSAVE_QUIET_PERIOD_SECONDS = 0.6
SAVE_INFO_DISMISS_SECONDS = 3.0

# Timeline
TIMELINE_MISC_KEY = "misc"
TIMELINE_PREVIEWS_PER_CARD = 2
TIMELINE_PREVIEW_LENGTH = 60
SESSION_NOTES_READER_PAGE_SIZE = 5
SESSION_NOTES_READER_PREVIEW_LENGTH = 600
HIGHLIGHTS_MAX_LINES = 8
SUPERVISION_HIGHLIGHT_LENGTH = 240

# User-facing messages
SAVED_MESSAGE = "Saved"
SAVE_FAILED_MESSAGE = "Save failed"
NOTHING_TO_SAVE_MESSAGE = "Nothing to save"
SESSION_FINALIZED_MESSAGE = "Session finalized"
TIMELINE_ERROR_MESSAGE = "Failed to load timeline."
NO_HIGHLIGHTS_MESSAGE = "No salient highlights could be extracted."
HIGHLIGHTS_ERROR_MESSAGE = "Could not generate highlights."
NEW_SESSION_ERROR_MESSAGE = "Could not start a new session."
DEFAULT_SUPERVISION_HIGHLIGHT = "Flagged for supervision."
DEFAULT_SUPERVISION_REASON = "Flagged from Workspace"

# Headers
STORE_ACCESS_TOKEN_HEADER = "store-access-token"
STORE_REFRESH_TOKEN_HEADER = "store-refresh-token"

class SupervisionFlagStatus(Enum):
    OPEN = "open"
    CLOSED = "closed"

class AgendaItemSource(Enum):
    RESOURCE = "resource"
    CLIENT_ACTIVITY = "client_activity"
    MANUAL = "manual"

class EditorAction(Enum):
    EDIT = "edit"
    SAVE_NOW = "save_now"
    FINALIZE = "finalize"
    NEW_SESSION = "new_session"
    SWITCH = "switch"
