import csv
import io
from datetime import date, datetime, timedelta

import pytest

import models
from schemas import ExportQuery
from services.books import add_tags
from services.export import export_books, ExportError, CSV_COLUMNS


@pytest.fixture
def shelf(db, user, make_book):
    other = models.User(name="Other", email="other@example.com")
    db.add(other)
    db.commit()
    base = datetime(2024, 2, 1, 9, 30, 0)
    dune = make_book(user, "Dune", "Author One", status="finished", rating=5, created_at=base)
    foundation = make_book(user, "Foundation", "Author Two", status="reading", rating=4,
                           created_at=base + timedelta(hours=1))
    another = make_book(other, "Another Book", "Author One", created_at=base + timedelta(hours=2))

    add_tags(db, dune, ["sci-fi", "classic"])
    db.add_all([
        models.ReadingSession(book_id=dune.id, minutes=60, date=date(2024, 2, 2)),
        models.ReadingSession(book_id=dune.id, minutes=40, date=date(2024, 2, 3)),
        models.Review(book_id=foundation.id, body="Good", rating=5),
        models.Review(book_id=foundation.id, body="Fine", rating=3),
    ])
    db.commit()
    return {"dune": dune, "foundation": foundation, "another": another, "other": other}


def parse(text):
    return list(csv.DictReader(io.StringIO(text)))


class TestValidation:
    @pytest.mark.parametrize("fmt", [None, "", "   "])
    def test_format_required(self, db, fmt):
        with pytest.raises(ExportError, match="format parameter is required"):
            export_books(db, ExportQuery(format=fmt))

    @pytest.mark.parametrize("fmt", ["xml", "pdf"])
    def test_unknown_format(self, db, fmt):
        with pytest.raises(ExportError, match="Invalid format"):
            export_books(db, ExportQuery(format=fmt))

    def test_invalid_status_is_an_error(self, db):
        with pytest.raises(ExportError, match="Invalid status"):
            export_books(db, ExportQuery(format="json", status="bogus"))

    def test_format_is_case_insensitive(self, db, shelf):
        assert export_books(db, ExportQuery(format="JSON"))["meta"]["format"] == "json"


class TestJson:
    def test_all_books_newest_first(self, db, shelf):
        doc = export_books(db, ExportQuery(format="json"))
        assert [b["title"] for b in doc["books"]] == ["Another Book", "Foundation", "Dune"]
        assert doc["meta"]["total"] == 3
        assert doc["meta"]["format"] == "json"
        assert doc["meta"]["exported_at"].endswith("Z")

    def test_filters(self, db, user, shelf):
        doc = export_books(db, ExportQuery(format="json", user_id=str(user.id), status="reading"))
        assert [b["title"] for b in doc["books"]] == ["Foundation"]

        doc = export_books(db, ExportQuery(format="json", tag="sci-fi"))
        assert [b["title"] for b in doc["books"]] == ["Dune"]

    def test_unknown_user_is_empty(self, db, shelf):
        assert export_books(db, ExportQuery(format="json", user_id="99999"))["books"] == []
        assert export_books(db, ExportQuery(format="json", user_id="not_a_number"))["books"] == []
        assert export_books(db, ExportQuery(format="json", user_id="99999999999999999999999"))["books"] == []

    def test_no_pagination(self, db, user, make_book):
        for i in range(130):
            make_book(user, f"Book {i}")
        assert export_books(db, ExportQuery(format="json"))["meta"]["total"] == 130


class TestCsv:
    def test_header_only_when_nothing_matches(self, db):
        text = export_books(db, ExportQuery(format="csv"))
        lines = text.strip("\n").split("\n")
        assert lines == [",".join(CSV_COLUMNS)]

    def test_flattened_rows(self, db, shelf):
        rows = {r["title"]: r for r in parse(export_books(db, ExportQuery(format="csv")))}
        assert len(rows) == 3

        dune = rows["Dune"]
        assert dune["status"] == "finished"
        assert dune["rating"] == "5"
        assert dune["total_minutes"] == "100"
        assert dune["author_id"] == str(shelf["dune"].author_id)
        assert dune["author_name"] == "Author One"
        assert dune["tags"] == "classic, sci-fi"
        assert dune["reading_session_count"] == "2"
        assert dune["created_at"] == "2024-02-01T09:30:00Z"

        foundation = rows["Foundation"]
        assert foundation["review_count"] == "2"
        assert foundation["average_review_rating"] == "4.0"

        another = rows["Another Book"]
        assert another["review_count"] == "0"
        assert another["average_review_rating"] == "0.0"
        assert another["reading_session_count"] == "0"
        assert another["tags"] == ""

    def test_filtered_csv(self, db, user, shelf):
        rows = parse(export_books(db, ExportQuery(format="csv", user_id=str(user.id))))
        assert sorted(r["title"] for r in rows) == ["Dune", "Foundation"]


class TestExportEndpoint:
    def test_csv_response_headers(self, client, shelf):
        resp = client.get("/books/export", params={"format": "csv"})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert 'filename="books_export.csv"' in resp.headers["content-disposition"]
        assert "attachment" in resp.headers["content-disposition"]

    def test_json_response(self, client, shelf):
        resp = client.get("/books/export", params={"format": "json", "tag": "sci-fi"})
        assert resp.status_code == 200
        assert resp.json()["meta"]["total"] == 1

    def test_missing_format(self, client):
        resp = client.get("/books/export")
        assert resp.status_code == 400
        assert "format" in resp.json()["error"]
        assert "required" in resp.json()["error"]

    def test_bogus_status_is_client_error_here_but_not_in_listing(self, client, shelf):
        assert client.get("/books/export", params={"format": "json", "status": "bogus"}).status_code == 400
        listing = client.get("/books", params={"status": "bogus"})
        assert listing.status_code == 200
        assert listing.json()["meta"]["total"] == 0
