from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import func, false
from sqlalchemy.orm import Session

from models import Book, ReadingSession
from schemas import coerce_int

RATING_VALUES = (1, 2, 3, 4, 5)


def _mean(total, count):
    """total/count rounded half-up to 2 places; None when there is nothing to average."""
    if not count:
        return None
    value = (Decimal(int(total)) / Decimal(int(count))).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(value)


def compute_stats(db: Session, user_id=None) -> dict:
    # scope = all books, or one user's books
    scope = []
    if user_id is not None:
        uid = coerce_int(user_id)
        scope.append(Book.user_id == uid if uid is not None else false())

    status_counts = dict(
        db.query(Book.status, func.count(Book.id))
          .filter(*scope)
          .group_by(Book.status)
          .all()
    )
    total_books = sum(status_counts.values())
    finished_count = status_counts.get("finished", 0)

    rating_counts = dict(
        db.query(Book.rating, func.count(Book.id))
          .filter(*scope, Book.rating > 0)
          .group_by(Book.rating)
          .all()
    )
    total_rated_books = sum(rating_counts.values())
    rating_sum = sum(rating * n for rating, n in rating_counts.items())

    session_count, minutes_sum, books_with_sessions = (
        db.query(
            func.count(ReadingSession.id),
            func.coalesce(func.sum(ReadingSession.minutes), 0),
            func.count(func.distinct(ReadingSession.book_id)),
        )
          .select_from(ReadingSession)
          .join(Book, ReadingSession.book_id == Book.id)
          .filter(*scope)
          .one()
    )

    return {
        "total_books": total_books,
        "total_finished": finished_count,
        "total_minutes": int(minutes_sum or 0),

        "to_read_count": status_counts.get("to_read", 0),
        "reading_count": status_counts.get("reading", 0),
        "finished_count": finished_count,

        "average_rating": _mean(rating_sum, total_rated_books),
        "total_rated_books": total_rated_books,
        "rating_distribution": {str(r): rating_counts.get(r, 0) for r in RATING_VALUES},

        "total_reading_sessions": session_count,
        "average_session_minutes": _mean(minutes_sum, session_count),
        "books_with_sessions": books_with_sessions,
    }
