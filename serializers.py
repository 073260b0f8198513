from datetime import datetime, timezone

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def format_timestamp(value):
    # sqlite hands back naive datetimes; they are stored as UTC
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(TIMESTAMP_FORMAT)


def utc_timestamp() -> str:
    return format_timestamp(datetime.now(timezone.utc))


def serialize_user(user):
    return {"id": user.id, "name": user.name, "email": user.email}


def serialize_author(author):
    return {"id": author.id, "name": author.name}


def serialize_tag(tag):
    return {"id": tag.id, "name": tag.name}


def serialize_book(book) -> dict:
    """Public representation of a Book with its owner, author and child rows."""
    tags = sorted(book.tags, key=lambda t: (t.name, t.id))
    # ids are assigned in insertion order, so highest id is newest
    reviews = sorted(book.reviews, key=lambda r: r.id, reverse=True)
    sessions = sorted(book.reading_sessions, key=lambda s: (s.date, s.id), reverse=True)

    return {
        "id": book.id,
        "title": book.title,
        "status": book.status,
        "rating": book.rating,
        "total_minutes": book.total_minutes,
        "user": serialize_user(book.user) if book.user else None,
        "author": serialize_author(book.author),
        "tags": [serialize_tag(t) for t in tags],
        "reviews": [{"id": r.id, "body": r.body, "rating": r.rating} for r in reviews],
        "reading_sessions": [
            {"id": s.id, "minutes": s.minutes, "date": s.date.isoformat()} for s in sessions
        ],
        "created_at": format_timestamp(book.created_at),
        "updated_at": format_timestamp(book.updated_at),
    }
