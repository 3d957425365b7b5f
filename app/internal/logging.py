import logging
import os

from .schemas import ERROR_LOGS_TABLE_NAME, PROD_ENVIRONMENT
from .utilities.fire_and_forget_caller import fire_and_forget
from ..dependencies.dependency_container import dependency_container

API_METHOD_POST = "POST"
API_METHOD_PUT = "PUT"
API_METHOD_GET = "GET"
API_METHOD_DELETE = "DELETE"
API_METHOD_WEBSOCKET = "WEBSOCKET"

"""
Logs an error that happened during an API invocation.
Errors always reach the application log; in prod they're also stored in the error logs table.

Arguments:
kwargs – the set of associated optional args.
"""
def log_error(**kwargs):
    session_id = None if "session_id" not in kwargs else kwargs["session_id"]
    therapist_id = None if "therapist_id" not in kwargs else kwargs["therapist_id"]
    case_id = None if "case_id" not in kwargs else kwargs["case_id"]
    endpoint_name = None if "endpoint_name" not in kwargs else kwargs["endpoint_name"]
    error_code = None if "error_code" not in kwargs else kwargs["error_code"]
    description = None if "description" not in kwargs else kwargs["description"]
    method = None if "method" not in kwargs else kwargs["method"]
    session_note_id = None if "session_note_id" not in kwargs else kwargs["session_note_id"]

    logging.error(f"[{endpoint_name}] {method} failed ({error_code}): {description}")

    # We don't want to store logs if we're in staging or dev
    environment = (os.environ.get("ENVIRONMENT") or "").lower()
    if environment != PROD_ENVIRONMENT:
        return

    payload = {
        "session_id": session_id,
        "therapist_id": therapist_id,
        "case_id": case_id,
        "endpoint_name": endpoint_name,
        "error_code": error_code,
        "description": description,
        "method": method,
        "session_note_id": session_note_id,
    }

    try:
        fire_and_forget(_store_log_row(payload, ERROR_LOGS_TABLE_NAME))
    except Exception as e:
        logging.warning(f"Silently failing when trying to log error - Error: {str(e)}")

async def _store_log_row(payload: dict, table_name: str):
    try:
        supabase_client = await dependency_container.inject_supabase_client_factory().supabase_admin_client()
        await supabase_client.insert(payload=payload, table_name=table_name)
    except Exception as e:
        logging.warning(f"Silently failing when trying to store log row - Error: {str(e)}")
