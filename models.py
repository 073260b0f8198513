from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Text, Date, DateTime, ForeignKey,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from database import Base

STATUSES = ("to_read", "reading", "finished")


def _utcnow():
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"
    id    = Column(Integer, primary_key=True, autoincrement=True)
    name  = Column(String(200))
    email = Column(String(255), nullable=False, unique=True, index=True)
    created_at = Column(DateTime, default=_utcnow)

    books = relationship("Book", back_populates="user", cascade="all, delete-orphan")

class Author(Base):
    __tablename__ = "authors"
    id   = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(300), nullable=False, unique=True, index=True)

    books = relationship("Book", back_populates="author")

class Tag(Base):
    __tablename__ = "tags"
    id   = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True, index=True)

class Book(Base):
    __tablename__ = "books"
    id        = Column(Integer, primary_key=True, autoincrement=True)
    user_id   = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("authors.id"), nullable=False, index=True)
    title     = Column(String(500), nullable=False, index=True)
    status    = Column(String(20), nullable=False, default="to_read", index=True)
    rating    = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=_utcnow, index=True)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
    __table_args__ = (
        CheckConstraint("status IN ('to_read', 'reading', 'finished')", name="ck_books_status"),
        CheckConstraint("rating >= 0 AND rating <= 5", name="ck_books_rating_range"),
    )

    user   = relationship("User", back_populates="books")
    author = relationship("Author", back_populates="books")
    book_tags = relationship("BookTag", back_populates="book", cascade="all, delete-orphan")
    tags = relationship("Tag", secondary="book_tags", viewonly=True)
    reviews = relationship("Review", back_populates="book", cascade="all, delete-orphan")
    reading_sessions = relationship("ReadingSession", back_populates="book", cascade="all, delete-orphan")

    @property
    def total_minutes(self):
        return sum(s.minutes for s in self.reading_sessions)

class BookTag(Base):
    __tablename__ = "book_tags"
    id      = Column(Integer, primary_key=True, autoincrement=True)
    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    tag_id  = Column(Integer, ForeignKey("tags.id", ondelete="CASCADE"), nullable=False)
    __table_args__ = (UniqueConstraint("book_id", "tag_id", name="uq_book_tag"),)

    book = relationship("Book", back_populates="book_tags")
    tag  = relationship("Tag")

class Review(Base):
    __tablename__ = "reviews"
    id      = Column(Integer, primary_key=True, autoincrement=True)
    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    body    = Column(Text, nullable=False)
    rating  = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=_utcnow)
    __table_args__ = (
        CheckConstraint("rating >= 0 AND rating <= 5", name="ck_reviews_rating_range"),
    )

    book = relationship("Book", back_populates="reviews")

class ReadingSession(Base):
    __tablename__ = "reading_sessions"
    id      = Column(Integer, primary_key=True, autoincrement=True)
    book_id = Column(Integer, ForeignKey("books.id", ondelete="CASCADE"), nullable=False, index=True)
    minutes = Column(Integer, nullable=False)
    date    = Column(Date, nullable=False, index=True)
    created_at = Column(DateTime, default=_utcnow)
    __table_args__ = (
        CheckConstraint("minutes > 0", name="ck_reading_sessions_minutes_positive"),
    )

    book = relationship("Book", back_populates="reading_sessions")
