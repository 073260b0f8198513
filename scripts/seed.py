from datetime import date

from sqlalchemy.orm import Session

from models import User, Book, Review, ReadingSession
from services.books import find_or_create_author, add_tags


def _book(db: Session, user, author, title, **fields):
    book = db.query(Book).filter_by(title=title, user_id=user.id, author_id=author.id).first()
    if not book:
        book = Book(user=user, author=author, title=title, **fields)
        db.add(book)
        db.commit()
    return book


def seed_demo(db: Session) -> User:
    """Small demo library; safe to run more than once."""
    user = db.query(User).filter_by(email="demo@example.com").first()
    if not user:
        user = User(name="Demo User", email="demo@example.com")
        db.add(user)
        db.commit()

    rowling = find_or_create_author(db, "J. K. Rowling")
    martin = find_or_create_author(db, "George R. R. Martin")

    hp = _book(db, user, rowling, "Harry Potter and the Sorcerer's Stone", status="reading", rating=5)
    _book(db, user, martin, "A Game of Thrones", status="to_read", rating=0)

    add_tags(db, hp, ["fantasy", "ya"])

    if not db.query(Review).filter_by(book_id=hp.id).first():
        db.add(Review(book_id=hp.id, body="Magical start to a classic series.", rating=5))
    if not db.query(ReadingSession).filter_by(book_id=hp.id).first():
        db.add(ReadingSession(book_id=hp.id, minutes=45, date=date.today()))
    db.commit()
    return user


if __name__ == "__main__":
    from database import SessionLocal, init_db

    init_db()
    db = SessionLocal()
    try:
        user = seed_demo(db)
        print(f"Seeded demo data. User email: {user.email}")
    finally:
        db.close()
