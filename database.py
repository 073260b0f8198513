import os
import logging

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from config import DATABASE_URL

logger = logging.getLogger(__name__)

engine_args = {}
if DATABASE_URL.startswith("sqlite"):
    engine_args["connect_args"] = {"check_same_thread": False}
    # in-memory database has to live on a single shared connection
    if DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        engine_args["poolclass"] = StaticPool
else:
    engine_args.update({
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_recycle": 1800,
    })

engine = create_engine(DATABASE_URL, **engine_args, echo=False)

if DATABASE_URL.startswith("sqlite"):
    @event.listens_for(engine, "connect")
    def _enable_sqlite_fks(dbapi_conn, _record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: one session per request, closed afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create the sqlite data/ directory if needed, then all tables."""
    if DATABASE_URL.startswith("sqlite:///./"):
        os.makedirs(os.path.dirname(DATABASE_URL[len("sqlite:///"):]), exist_ok=True)

    # register the tables on Base.metadata
    import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database initialized (%s)", engine.url.render_as_string(hide_password=True))
