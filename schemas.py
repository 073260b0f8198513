from typing import Optional, List

from pydantic import BaseModel, Field, field_validator

SORT_FIELDS = ("title", "created_at")
DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100

# sqlite INTEGER is a signed 64-bit value
INT64_MIN = -2 ** 63
INT64_MAX = 2 ** 63 - 1


def _parse_int(value):
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        n = value
    elif isinstance(value, float):
        if not value.is_integer():
            return None
        n = int(value)
    else:
        try:
            n = int(str(value).strip())
        except ValueError:
            return None
    return n


def coerce_int(value):
    """int for ints and integer strings that fit a database INTEGER, None for anything else."""
    n = _parse_int(value)
    return n if n is not None and INT64_MIN <= n <= INT64_MAX else None


def _blank_to_none(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


# --- request payloads ---

class UserCreate(BaseModel):
    name: Optional[str] = None
    email: str = Field(min_length=1)

class AuthorCreate(BaseModel):
    name: str = Field(min_length=1)

class TagNames(BaseModel):
    names: List[str] = []

class ReviewCreate(BaseModel):
    body: str = Field(min_length=1)
    rating: int = Field(default=0, ge=0, le=5)

class ReadingSessionCreate(BaseModel):
    minutes: int = Field(gt=0, le=INT64_MAX)
    date: Optional[str] = None


# --- query options ---

class BookQuery(BaseModel):
    """Filter, search, sort and paging options for listing books.

    Every field is optional; validators normalize raw query-string values so
    that the query engine only ever sees well-formed options:

    - ``user_id``: exact owner match. Kept as given; a non-integer value
      matches nothing.
    - ``status``: exact match, deliberately not checked against the enum.
    - ``author_q``: case-insensitive substring of the author's name.
    - ``tag``: exact name of a tag linked to the book.
    - ``q``: trimmed free text matched against title OR author name; blank
      means no search.
    - ``sort``: ``title`` or ``created_at`` (default).
    - ``dir``: ``asc`` or ``desc`` (default).
    - ``page``: 1-based, defaults to 1.
    - ``per_page``: defaults to 20, capped at 100.
    """

    user_id: Optional[str] = None
    status: Optional[str] = None
    author_q: Optional[str] = None
    tag: Optional[str] = None
    q: Optional[str] = None
    sort: str = "created_at"
    dir: str = "desc"
    page: int = DEFAULT_PAGE
    per_page: int = DEFAULT_PER_PAGE

    @field_validator("user_id", "status", "author_q", "tag", mode="before")
    @classmethod
    def _stringify(cls, v):
        return None if v is None else str(v)

    @field_validator("q", mode="before")
    @classmethod
    def _strip_query(cls, v):
        return _blank_to_none(v)

    @field_validator("sort", mode="before")
    @classmethod
    def _known_sort(cls, v):
        v = "" if v is None else str(v)
        return v if v in SORT_FIELDS else "created_at"

    @field_validator("dir", mode="before")
    @classmethod
    def _direction(cls, v):
        return "asc" if str(v or "").lower() == "asc" else "desc"

    @field_validator("page", mode="before")
    @classmethod
    def _page(cls, v):
        n = _parse_int(v)
        if n is None or n <= 0:
            return DEFAULT_PAGE
        # keep OFFSET inside the INTEGER range; such a page is past any data anyway
        return min(n, INT64_MAX // MAX_PER_PAGE)

    @field_validator("per_page", mode="before")
    @classmethod
    def _per_page(cls, v):
        n = _parse_int(v)
        if n is None or n <= 0:
            return DEFAULT_PER_PAGE
        return min(n, MAX_PER_PAGE)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


class ExportQuery(BaseModel):
    """Options for exporting books. Unlike BookQuery there is no paging or
    search, and ``format``/``status`` are checked by the export service."""

    format: Optional[str] = None
    user_id: Optional[str] = None
    status: Optional[str] = None
    tag: Optional[str] = None

    @field_validator("format", "user_id", "status", "tag", mode="before")
    @classmethod
    def _stringify(cls, v):
        return None if v is None else str(v)
