import io
import logging

import pandas as pd
from sqlalchemy.orm import Session

from services.bulk import check_batch, ingest

logger = logging.getLogger(__name__)

# columns a book import must carry; user_id/status/rating are optional
REQUIRED = ["title", "author_name"]


class CsvImportError(Exception):
    pass


def _to_int(x):
    # csv cells arrive as floats ("3.0"), strings or NaN
    try:
        if x is None:
            return None
        if isinstance(x, (int, float)):
            if pd.isna(x):
                return None
            return int(x) if float(x).is_integer() else None
        s = str(x).strip()
        if not s or s.lower() == "nan":
            return None
        v = float(s)
        return int(v) if v.is_integer() else None
    except (TypeError, ValueError):
        return None


def _to_str(x):
    if x is None or (isinstance(x, float) and pd.isna(x)):
        return None
    s = str(x).strip()
    return s or None


def rows_to_payloads(df: pd.DataFrame, default_user_id=None) -> list:
    """Turn csv rows into the same payload dicts the bulk endpoint accepts."""
    payloads = []
    for _, row in df.iterrows():
        payload = {
            "title": _to_str(row["title"]),
            "author_name": _to_str(row["author_name"]),
        }
        user_id = _to_int(row["user_id"]) if "user_id" in df.columns else None
        payload["user_id"] = user_id if user_id is not None else default_user_id

        if "status" in df.columns and _to_str(row["status"]) is not None:
            payload["status"] = _to_str(row["status"])
        if "rating" in df.columns:
            raw = row["rating"]
            rating = _to_int(raw)
            if rating is not None:
                payload["rating"] = rating
            elif _to_str(raw) is not None:
                # keep garbage so the validator reports it
                payload["rating"] = _to_str(raw)
        payloads.append(payload)
    return payloads


def import_books_csv(file_bytes: bytes, db: Session, default_user_id=None) -> dict:
    """Read a book csv and feed its rows through the bulk pipeline, without the batch size cap."""
    try:
        df = pd.read_csv(io.BytesIO(file_bytes), dtype=object)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as e:
        raise CsvImportError(f"could not parse csv: {e}") from e

    df.columns = [str(c).strip().lower() for c in df.columns]
    missing = [c for c in REQUIRED if c not in df.columns]
    if missing:
        raise CsvImportError(f"missing columns: {missing}")

    payloads = rows_to_payloads(df, default_user_id=default_user_id)
    check_batch(payloads, max_items=None)
    logger.info("Importing %d csv rows", len(payloads))
    return ingest(db, payloads)
