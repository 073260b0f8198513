import logging

from sqlalchemy.orm import Session

from config import BULK_MAX_ITEMS
from serializers import serialize_book
from services.books import create_book, BookServiceError
from validators import validate_create

logger = logging.getLogger(__name__)


class BulkRequestError(Exception):
    """The batch as a whole is unusable; nothing was processed."""

    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.status_code = status_code


def check_batch(books, max_items=BULK_MAX_ITEMS):
    if books is None:
        raise BulkRequestError("books parameter is required")
    if not isinstance(books, list):
        raise BulkRequestError("books must be an array")
    if not books:
        raise BulkRequestError("books array cannot be empty", status_code=422)
    if max_items is not None and len(books) > max_items:
        raise BulkRequestError(f"books array exceeds maximum of {max_items} items")


def _create_one(db: Session, index, item) -> dict:
    if not isinstance(item, dict):
        return {"success": False, "error": "book entry must be an object", "index": index}

    errors = validate_create(item)
    if errors:
        return {"success": False, "error": ", ".join(errors), "index": index}

    try:
        book = create_book(
            db,
            user_id=item.get("user_id"),
            title=item.get("title"),
            author_name=item.get("author_name"),
            status=item.get("status"),
            rating=item.get("rating"),
        )
    except BookServiceError as e:
        return {"success": False, "error": str(e), "index": index}
    return {"success": True, "book": serialize_book(book)}


def ingest(db: Session, books) -> dict:
    """Create every valid item independently; one item's failure never stops the rest."""
    results = []
    successful = 0
    failed = 0

    for index, item in enumerate(books):
        result = _create_one(db, index, item)
        if result["success"]:
            successful += 1
        else:
            failed += 1
            logger.info("Bulk item %d rejected: %s", index, result["error"])
        results.append(result)

    logger.info("Bulk ingest finished: %d total, %d ok, %d failed", len(books), successful, failed)
    return {
        "results": results,
        "meta": {
            "total": len(books),
            "successful": successful,
            "failed": failed,
        },
    }


def create_bulk(db: Session, books) -> dict:
    check_batch(books)
    return ingest(db, books)
