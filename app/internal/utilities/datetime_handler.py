from datetime import datetime

from pytz import utc

DATE_FORMAT = "%m-%d-%Y"
DATE_FORMAT_YYYY_MM_DD = '%Y-%m-%d'

"""
Returns the current UTC time as an ISO-8601 string, the format used for every persisted timestamp.
"""
def utc_now_iso() -> str:
    return datetime.now(utc).isoformat()

"""
Returns the incoming date formatted as mm-dd-yyyy, or None when it can't be parsed.

Arguments:
date_input – the date (or timestamp) to be formatted.
"""
def format_planned_date(date_input: str | None) -> str | None:
    if len(date_input or '') == 0:
        return None

    try:
        parsed = datetime.fromisoformat(date_input)
    except ValueError:
        try:
            parsed = datetime.strptime(date_input, DATE_FORMAT_YYYY_MM_DD)
        except ValueError:
            return None
    return parsed.strftime(DATE_FORMAT)
