import hmac
import logging
from datetime import date as _date
from typing import Optional

from fastapi import FastAPI, UploadFile, File, HTTPException, Depends, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

import models
import config
from database import get_db, init_db
from schemas import (
    UserCreate, AuthorCreate, TagNames, ReviewCreate, ReadingSessionCreate,
    BookQuery, ExportQuery, coerce_int,
)
from serializers import serialize_book, serialize_user, serialize_author, serialize_tag
from services.books import create_book as create_book_record, add_tags, BookServiceError
from services.bulk import create_bulk, BulkRequestError
from services.etl import import_books_csv, CsvImportError
from services.export import export_books, ExportError
from services.query import query_books, with_relations
from services.stats import compute_stats
from validators import validate_create, validate_update

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="[%(levelname)s] [%(asctime)s] [%(module)s:%(funcName)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Personal Book Tracker", version=config.APP_VERSION)

# create tables once at startup
init_db()


# --- errors: every failure body is {"error": ...} ---

@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)

@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if any(e.get("type") == "json_invalid" for e in errors):
        return JSONResponse({"error": "Invalid JSON"}, status_code=400)
    messages = [f"{e['loc'][-1]} {e['msg']}" for e in errors]
    return JSONResponse({"error": messages}, status_code=422)

@app.exception_handler(Exception)
async def unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


# --- helpers ---

def require_api_key(request: Request):
    expected = config.get_api_key()
    if not expected:
        return
    given = request.headers.get("x-api-key", "")
    if not hmac.compare_digest(given.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")

async def json_body(request: Request) -> dict:
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="request body must be a JSON object")
    return payload

def get_book_or_404(db: Session, book_id: int) -> models.Book:
    book_id = coerce_int(book_id)
    book = None
    if book_id is not None:
        book = with_relations(db.query(models.Book)).filter(models.Book.id == book_id).first()
    if not book:
        raise HTTPException(status_code=404, detail="Not found")
    return book


# --- service info ---

@app.get("/")
def root():
    return {"name": config.APP_NAME, "version": config.APP_VERSION}

@app.get("/health")
def health():
    return {"status": "ok"}

@app.get("/version")
def version():
    return {"version": config.APP_VERSION}


# --- users / authors / tags ---

@app.post("/users", status_code=201, dependencies=[Depends(require_api_key)])
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    email = payload.email.strip()
    if not email:
        raise HTTPException(status_code=422, detail=["Email can't be blank"])
    user = models.User(name=payload.name, email=email)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=422, detail=["Email has already been taken"])
    db.refresh(user)
    return serialize_user(user)

@app.post("/authors", status_code=201, dependencies=[Depends(require_api_key)])
def create_author(payload: AuthorCreate, db: Session = Depends(get_db)):
    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=422, detail=["Name can't be blank"])
    author = models.Author(name=name)
    db.add(author)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=422, detail=["Name has already been taken"])
    db.refresh(author)
    return serialize_author(author)

@app.get("/authors")
def list_authors(q: Optional[str] = None, db: Session = Depends(get_db)):
    query = db.query(models.Author)
    if q:
        query = query.filter(models.Author.name.icontains(q, autoescape=True))
    return {"authors": [serialize_author(a) for a in query.order_by(models.Author.name).all()]}

@app.get("/tags")
def list_tags(q: Optional[str] = None, db: Session = Depends(get_db)):
    query = db.query(models.Tag)
    if q:
        query = query.filter(models.Tag.name.icontains(q, autoescape=True))
    return {"tags": [serialize_tag(t) for t in query.order_by(models.Tag.name).all()]}


# --- books: collection ---

@app.post("/books", status_code=201, dependencies=[Depends(require_api_key)])
async def create_book(request: Request, db: Session = Depends(get_db)):
    payload = await json_body(request)
    errors = validate_create(payload)
    if errors:
        raise HTTPException(status_code=422, detail=errors)
    try:
        book = create_book_record(
            db,
            user_id=payload.get("user_id"),
            title=payload.get("title"),
            author_name=payload.get("author_name"),
            status=payload.get("status"),
            rating=payload.get("rating"),
        )
    except BookServiceError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return serialize_book(book)

@app.get("/books")
def list_books(
    user_id: Optional[str] = None,
    status: Optional[str] = None,
    author: Optional[str] = None,
    tag: Optional[str] = None,
    q: Optional[str] = None,
    sort: Optional[str] = None,
    dir: Optional[str] = None,
    page: Optional[str] = None,
    per_page: Optional[str] = None,
    db: Session = Depends(get_db),
):
    options = BookQuery(
        user_id=user_id, status=status, author_q=author, tag=tag, q=q,
        sort=sort, dir=dir, page=page, per_page=per_page,
    )
    result = query_books(db, options)
    return {
        "books": [serialize_book(b) for b in result["records"]],
        "meta": result["meta"],
    }

@app.post("/books/bulk", dependencies=[Depends(require_api_key)])
async def bulk_create_books(request: Request, db: Session = Depends(get_db)):
    payload = await json_body(request)
    try:
        return create_bulk(db, payload.get("books"))
    except BulkRequestError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

@app.post("/books/import", dependencies=[Depends(require_api_key)])
async def import_books(
    file: UploadFile = File(...),
    user_id: Optional[str] = None,
    db: Session = Depends(get_db),
):
    if not (file.filename or "").lower().endswith(".csv"):
        raise HTTPException(status_code=415, detail="upload a .csv file")
    content = await file.read()
    try:
        return import_books_csv(content, db, default_user_id=user_id)
    except CsvImportError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BulkRequestError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

@app.get("/books/export")
def export(
    format: Optional[str] = None,
    user_id: Optional[str] = None,
    status: Optional[str] = None,
    tag: Optional[str] = None,
    db: Session = Depends(get_db),
):
    options = ExportQuery(format=format, user_id=user_id, status=status, tag=tag)
    try:
        result = export_books(db, options)
    except ExportError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if isinstance(result, str):
        return Response(
            content=result,
            media_type="text/csv",
            headers={"Content-Disposition": 'attachment; filename="books_export.csv"'},
        )
    return result


# --- books: single record ---

@app.get("/books/{book_id}")
def read_book(book_id: int, db: Session = Depends(get_db)):
    return serialize_book(get_book_or_404(db, book_id))

@app.patch("/books/{book_id}", dependencies=[Depends(require_api_key)])
async def update_book(book_id: int, request: Request, db: Session = Depends(get_db)):
    book = get_book_or_404(db, book_id)
    payload = await json_body(request)
    changes = {k: payload[k] for k in ("title", "status", "rating") if k in payload}

    errors = validate_update(changes)
    if errors:
        raise HTTPException(status_code=422, detail=errors)

    if "title" in changes:
        book.title = str(changes["title"]).strip()
    if "status" in changes:
        book.status = str(changes["status"])
    if "rating" in changes:
        book.rating = int(changes["rating"])
    db.commit()
    return serialize_book(get_book_or_404(db, book_id))

@app.delete("/books/{book_id}", status_code=204, dependencies=[Depends(require_api_key)])
def delete_book(book_id: int, db: Session = Depends(get_db)):
    book = get_book_or_404(db, book_id)
    db.delete(book)
    db.commit()
    logger.info("Deleted book %s", book_id)
    return Response(status_code=204)

@app.post("/books/{book_id}/tags", dependencies=[Depends(require_api_key)])
def tag_book(book_id: int, payload: TagNames, db: Session = Depends(get_db)):
    book = get_book_or_404(db, book_id)
    names = [n.strip() for n in payload.names if n and n.strip()]
    if not names:
        raise HTTPException(status_code=422, detail="names must be a non-empty array")
    add_tags(db, book, names)
    return serialize_book(get_book_or_404(db, book_id))

@app.post("/books/{book_id}/reviews", status_code=201, dependencies=[Depends(require_api_key)])
def review_book(book_id: int, payload: ReviewCreate, db: Session = Depends(get_db)):
    book = get_book_or_404(db, book_id)
    if not payload.body.strip():
        raise HTTPException(status_code=422, detail=["Body can't be blank"])
    db.add(models.Review(book_id=book.id, body=payload.body, rating=payload.rating))
    db.commit()
    return serialize_book(get_book_or_404(db, book_id))

@app.post("/books/{book_id}/reading_sessions", status_code=201, dependencies=[Depends(require_api_key)])
def log_reading_session(book_id: int, payload: ReadingSessionCreate, db: Session = Depends(get_db)):
    book = get_book_or_404(db, book_id)
    try:
        day = _date.fromisoformat(payload.date) if payload.date else _date.today()
    except ValueError:
        day = _date.today()
    db.add(models.ReadingSession(book_id=book.id, minutes=payload.minutes, date=day))
    db.commit()
    return serialize_book(get_book_or_404(db, book_id))


# --- stats ---

@app.get("/stats")
def stats(user_id: Optional[str] = None, db: Session = Depends(get_db)):
    return compute_stats(db, user_id=user_id)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
