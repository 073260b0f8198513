import os

# must be set before config/database are imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("API_KEY", None)

import pytest
from fastapi.testclient import TestClient

import models
from database import Base, engine, SessionLocal
from main import app


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def user(db):
    u = models.User(name="Reader", email="reader@example.com")
    db.add(u)
    db.commit()
    return u


@pytest.fixture
def make_book(db):
    """Insert a book directly, bypassing the service layer."""
    def _make(user, title, author_name="Some Author", **fields):
        author = db.query(models.Author).filter_by(name=author_name).first()
        if not author:
            author = models.Author(name=author_name)
            db.add(author)
            db.flush()
        book = models.Book(user=user, author=author, title=title, **fields)
        db.add(book)
        db.commit()
        return book
    return _make
