"""Payload validation for book creation and updates.

Each function returns a list of human-readable messages; an empty list means
the payload is valid. Nothing here touches the database.
"""

from models import STATUSES

STATUS_MESSAGE = f"status must be one of {', '.join(STATUSES)}"
RATING_MESSAGE = "rating must be between 0 and 5"


def _is_blank(value) -> bool:
    # lists, objects and numbers are not text
    return not isinstance(value, str) or not value.strip()


def _valid_rating(value) -> bool:
    # bools are ints in python, but not ratings
    if isinstance(value, bool):
        return False
    try:
        if isinstance(value, float) and not value.is_integer():
            return False
        rating = int(str(value).strip()) if isinstance(value, str) else int(value)
    except (TypeError, ValueError):
        return False
    return 0 <= rating <= 5


def _check_rating_and_status(payload: dict, errors: list):
    if payload.get("rating") is not None and not _valid_rating(payload["rating"]):
        errors.append(RATING_MESSAGE)
    if payload.get("status") is not None and str(payload["status"]) not in STATUSES:
        errors.append(STATUS_MESSAGE)


def validate_create(payload: dict) -> list:
    errors = []
    if payload.get("user_id") is None:
        errors.append("user_id is required")
    if _is_blank(payload.get("title")):
        errors.append("title is required")
    if _is_blank(payload.get("author_name")):
        errors.append("author_name is required")
    _check_rating_and_status(payload, errors)
    return errors


def validate_update(payload: dict) -> list:
    """Same rules as creation, applied only to the fields being patched."""
    errors = []
    if "title" in payload and _is_blank(payload["title"]):
        errors.append("title can't be blank")
    if "status" in payload and payload["status"] is None:
        errors.append(STATUS_MESSAGE)
    if "rating" in payload and payload["rating"] is None:
        errors.append(RATING_MESSAGE)
    _check_rating_and_status(payload, errors)
    return errors
