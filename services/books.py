import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import User, Author, Tag, Book, BookTag
from schemas import coerce_int

logger = logging.getLogger(__name__)


class BookServiceError(Exception):
    pass


def _find_or_create_by_name(db: Session, model, name: str):
    # the unique index on name decides races; the loser re-reads the winner's row
    row = db.query(model).filter_by(name=name).first()
    if row:
        return row
    row = model(name=name)
    db.add(row)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        row = db.query(model).filter_by(name=name).one()
    return row


def find_or_create_author(db: Session, name: str) -> Author:
    return _find_or_create_by_name(db, Author, name.strip())


def find_or_create_tag(db: Session, name: str) -> Tag:
    return _find_or_create_by_name(db, Tag, name.strip())


def create_book(db: Session, user_id, title, author_name, status=None, rating=None) -> Book:
    """Create a book for an existing user, resolving the author by exact name."""
    if user_id is None:
        raise BookServiceError("user_id required")
    if not str(title or "").strip():
        raise BookServiceError("title required")
    if not str(author_name or "").strip():
        raise BookServiceError("author_name required")

    uid = coerce_int(user_id)
    user = db.get(User, uid) if uid is not None else None
    if not user:
        raise BookServiceError("User not found")

    author = find_or_create_author(db, str(author_name))
    book = Book(user=user, author=author, title=str(title).strip())
    if status is not None:
        book.status = str(status)
    if rating is not None:
        book.rating = coerce_int(rating)

    db.add(book)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("Book insert rejected by database: %s", e.orig)
        raise BookServiceError("Book could not be saved") from e
    db.refresh(book)
    logger.debug("Created book %s (%r) for user %s", book.id, book.title, user.id)
    return book


def add_tags(db: Session, book: Book, names) -> Book:
    """Link tags by name; names already linked are left alone."""
    for name in names:
        tag = find_or_create_tag(db, name)
        exists = db.query(BookTag).filter_by(book_id=book.id, tag_id=tag.id).first()
        if exists:
            continue
        db.add(BookTag(book_id=book.id, tag_id=tag.id))
        try:
            db.commit()
        except IntegrityError:
            # linked concurrently, which is the outcome we wanted
            db.rollback()
    db.refresh(book)
    return book
