import json, uuid

from fastapi import (
    HTTPException,
    status,
)
from typing import Any

def extract_status_code(
    exception,
    fallback: status
):
    """
    Attempts to extract a status code for an Exception object whose underlying type we don't know.
    """
    if isinstance(exception, HTTPException):
        return exception.status_code

    common_status_attributes = ['status_code', 'code', 'status', 'response_code']
    for attr in common_status_attributes:
        if hasattr(exception, attr):
            value = getattr(exception, attr)
            if isinstance(value, int):
                return value
    return fallback

def is_valid_uuid(
    uuid_string: str
) -> bool:
    if len(uuid_string or '') == 0:
        return False

    try:
        val = uuid.UUID(uuid_string, version=None)
        return str(val) == uuid_string.lower()
    except (ValueError, AttributeError, TypeError):
        return False

def note_text(
    content: Any
) -> str:
    """
    Returns the displayable text of a note's content.
    Structured content is rendered as its JSON serialization.
    """
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    return json.dumps(content)

def truncate(
    text: str,
    max_length: int
) -> str:
    return text[:max_length]
