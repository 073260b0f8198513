import logging
from decimal import Decimal, ROUND_HALF_UP

import pandas as pd
from sqlalchemy.orm import Session

from models import Book, STATUSES
from schemas import ExportQuery
from serializers import serialize_book, format_timestamp, utc_timestamp
from services.query import filter_books, with_relations

logger = logging.getLogger(__name__)

FORMATS = ("json", "csv")

CSV_COLUMNS = [
    "id", "title", "status", "rating", "total_minutes",
    "author_id", "author_name", "tags",
    "review_count", "average_review_rating",
    "reading_session_count",
    "created_at", "updated_at",
]


class ExportError(Exception):
    pass


def _average_review_rating(reviews) -> float:
    # 0.0 rather than None here: csv consumers expect a number in every cell
    if not reviews:
        return 0.0
    mean = Decimal(sum(r.rating for r in reviews)) / Decimal(len(reviews))
    return float(mean.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _csv_row(book) -> list:
    return [
        book.id,
        book.title,
        book.status,
        book.rating,
        book.total_minutes,
        book.author.id,
        book.author.name,
        ", ".join(sorted(t.name for t in book.tags)),
        len(book.reviews),
        _average_review_rating(book.reviews),
        len(book.reading_sessions),
        format_timestamp(book.created_at),
        format_timestamp(book.updated_at),
    ]


def books_to_csv(books) -> str:
    df = pd.DataFrame([_csv_row(b) for b in books], columns=CSV_COLUMNS)
    # keep float formatting stable even when every row averages to a whole number
    df["average_review_rating"] = df["average_review_rating"].astype(float)
    return df.to_csv(index=False, lineterminator="\n")


def export_books(db: Session, options: ExportQuery):
    """Materialize every matching book as a JSON document (dict) or CSV text (str)."""
    fmt = (options.format or "").strip().lower()
    if not fmt:
        raise ExportError("format parameter is required")
    if fmt not in FORMATS:
        raise ExportError("Invalid format. Must be 'json' or 'csv'")
    if options.status is not None and options.status not in STATUSES:
        raise ExportError(f"Invalid status. Must be one of: {', '.join(STATUSES)}")

    books = (
        with_relations(filter_books(db.query(Book), options.user_id, options.status, options.tag))
          .order_by(Book.created_at.desc(), Book.id.desc())
          .all()
    )
    logger.info("Exporting %d books as %s", len(books), fmt)

    if fmt == "csv":
        return books_to_csv(books)
    return {
        "books": [serialize_book(b) for b in books],
        "meta": {
            "total": len(books),
            "format": "json",
            "exported_at": utc_timestamp(),
        },
    }
