import os
from dotenv import load_dotenv

load_dotenv()

APP_NAME = "personal_book_tracker"
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# --- Database ---
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./data/books.db")

# SQLAlchemy only understands the postgresql:// scheme
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

# --- Bulk ingestion ---
BULK_MAX_ITEMS = 100


def get_api_key() -> str:
    """API key guarding write routes. Read per call so rotating it needs no restart."""
    return os.getenv("API_KEY", "").strip()
