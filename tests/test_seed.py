import models
from scripts.seed import seed_demo
from services.stats import compute_stats


def test_seed_is_idempotent(db):
    seed_demo(db)
    seed_demo(db)
    db.expire_all()

    assert db.query(models.User).count() == 1
    assert db.query(models.Book).count() == 2
    assert db.query(models.BookTag).count() == 2
    assert db.query(models.Review).count() == 1
    assert db.query(models.ReadingSession).count() == 1


def test_seeded_library_stats(db):
    user = seed_demo(db)
    stats = compute_stats(db, user_id=user.id)
    assert stats["total_books"] == 2
    assert stats["reading_count"] == 1
    assert stats["average_rating"] == 5.0
    assert stats["total_minutes"] == 45
