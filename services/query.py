from sqlalchemy import false
from sqlalchemy.orm import Session, selectinload, joinedload

from models import Book, Author, Tag
from schemas import BookQuery, coerce_int

SORT_COLUMNS = {
    "title": Book.title,
    "created_at": Book.created_at,
}


def with_relations(query):
    """Eager-load everything serialize_book touches."""
    return query.options(
        joinedload(Book.user),
        joinedload(Book.author),
        selectinload(Book.tags),
        selectinload(Book.reviews),
        selectinload(Book.reading_sessions),
    )


def filter_books(query, user_id=None, status=None, tag=None):
    """Filters shared by listing and export."""
    if user_id is not None:
        uid = coerce_int(user_id)
        query = query.filter(Book.user_id == uid) if uid is not None else query.filter(false())
    if status is not None:
        query = query.filter(Book.status == status)
    if tag is not None:
        query = query.filter(Book.tags.any(Tag.name == tag))
    return query


def query_books(db: Session, options: BookQuery) -> dict:
    q = filter_books(db.query(Book), options.user_id, options.status, options.tag)

    if options.author_q is not None or options.q is not None:
        q = q.join(Author, Book.author_id == Author.id)
    if options.author_q is not None:
        q = q.filter(Author.name.icontains(options.author_q, autoescape=True))
    if options.q is not None:
        q = q.filter(
            Book.title.icontains(options.q, autoescape=True)
            | Author.name.icontains(options.q, autoescape=True)
        )

    total = q.count()

    column = SORT_COLUMNS[options.sort]
    if options.dir == "asc":
        q = q.order_by(column.asc(), Book.id.asc())
    else:
        q = q.order_by(column.desc(), Book.id.desc())

    records = (
        with_relations(q)
          .offset(options.offset)
          .limit(options.per_page)
          .all()
    )

    return {
        "records": records,
        "meta": {
            "page": options.page,
            "per_page": options.per_page,
            "total": total,
        },
    }
