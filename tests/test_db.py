from datetime import UTC, datetime, timedelta

import pytest

from tech_job_ingest.db import Database, normalize_company, title_similarity
from tech_job_ingest.models import JobCategory, PersistedJob


def test_init_db(db):
    """Test that the table and its indexes are created."""
    cursor = db.connection.cursor()
    cursor.execute("SELECT name FROM sqlite_master WHERE type='table' AND name='jobs'")
    assert cursor.fetchone() is not None

    cursor.execute("SELECT name FROM sqlite_master WHERE type='index' AND name='idx_jobs_source_id'")
    assert cursor.fetchone() is not None


def test_save_job_success(db, enriched_job):
    """Test saving an accepted job."""
    job_id = db.save_job(enriched_job, final_score=0.95, category="ENGINEERING")

    assert job_id is not None
    row = db.connection.execute("SELECT title, url, final_score FROM jobs WHERE id = ?", (job_id,)).fetchone()
    assert row["title"] == "Senior Software Engineer"
    assert row["url"] == enriched_job.url
    assert row["final_score"] == 0.95
    assert db.count_jobs() == 1


def test_save_job_duplicate_url(db, enriched_job):
    """A second job with the same url is refused."""
    assert db.save_job(enriched_job, 0.9, "ENGINEERING") is not None

    other = enriched_job.model_copy(update={"title": "Different Title", "source_id": "999"})
    assert db.save_job(other, 0.9, "ENGINEERING") is None
    assert db.count_jobs() == 1


def test_save_job_duplicate_source_id(db, enriched_job):
    """Same (source, source_id) under a different url is refused too."""
    assert db.save_job(enriched_job, 0.9, "ENGINEERING") is not None

    other = enriched_job.model_copy(update={"url": "https://careers.paystack.com/apply/456"})
    assert db.save_job(other, 0.9, "ENGINEERING") is None
    assert db.count_jobs() == 1


def test_jobs_without_source_id_do_not_conflict(db, enriched_job):
    first = enriched_job.model_copy(update={"source_id": None})
    second = enriched_job.model_copy(
        update={"source_id": None, "url": "https://careers.paystack.com/apply/456"}
    )

    assert db.save_job(first, 0.9, None) is not None
    assert db.save_job(second, 0.9, None) is not None
    assert db.count_jobs() == 2


def test_get_job_round_trips_fields(db, enriched_job):
    job_id = db.save_job(enriched_job, 0.95, "ENGINEERING")

    stored = db.get_job(job_id)

    assert isinstance(stored, PersistedJob)
    assert stored.id == job_id
    assert stored.cleaned_title == "Senior Software Engineer"
    assert stored.posted_at == datetime(2025, 1, 10, tzinfo=UTC)
    assert stored.is_visa_sponsored is True
    assert stored.remote is False
    assert stored.ai_category == JobCategory.ENGINEERING
    assert stored.category == "ENGINEERING"
    assert stored.is_active is True
    assert stored.created_at is not None


def test_get_job_missing(db):
    assert db.get_job(42) is None


def test_find_by_source_id_and_url(db, enriched_job):
    job_id = db.save_job(enriched_job, 0.9, None)

    assert db.find_by_source_id("LinkedIn", "3912345678") == job_id
    assert db.find_by_source_id("Indeed", "3912345678") is None
    assert db.find_by_url(enriched_job.url) == job_id
    assert db.find_by_url(enriched_job.listing_url) == job_id
    assert db.find_by_url("https://example.com/nothing") is None


def test_find_similar_jobs(db, enriched_job):
    job_id = db.save_job(enriched_job, 0.9, None)
    start = enriched_job.posted_at - timedelta(days=7)
    end = enriched_job.posted_at + timedelta(days=7)

    matches = db.find_similar_jobs("Paystack Ltd.", "Senior Software Engineers", start, end)

    assert len(matches) == 1
    assert matches[0][0] == job_id
    assert matches[0][1] >= 0.85


@pytest.mark.parametrize(
    "company, title, shift_days",
    [
        ("Flutterwave", "Senior Software Engineer", 0),
        ("Paystack", "Senior Software Engineer - Payments", 0),
        ("Paystack", "Product Manager", 0),
        ("Paystack", "Senior Software Engineer", 30),
    ],
)
def test_find_similar_jobs_misses(db, enriched_job, company, title, shift_days):
    db.save_job(enriched_job, 0.9, None)
    posted = enriched_job.posted_at + timedelta(days=shift_days)

    assert db.find_similar_jobs(company, title, posted - timedelta(days=7), posted + timedelta(days=7)) == []


def test_normalize_company():
    assert normalize_company("Paystack Ltd.") == "paystack"
    assert normalize_company("ACME, Inc") == "acme"
    assert normalize_company(None) == ""


def test_title_similarity():
    assert title_similarity("Senior Software Engineer", "senior software engineer!") == 1.0
    assert title_similarity("Senior Software Engineer", "") == 0.0
    assert title_similarity("Backend Engineer", "Marketing Lead") < 0.5


# --- Connection lifecycle ---


def test_context_manager_closes_connection():
    """Test that the context manager properly closes the connection on exit."""
    with Database(db_path=":memory:") as test_db:
        assert test_db.connection is not None

    assert test_db._conn is None


def test_close_method():
    """Test that close() sets _conn to None and can be called safely."""
    test_db = Database(db_path=":memory:")
    test_db.close()
    assert test_db._conn is None

    # Calling close() again should not raise
    test_db.close()


def test_connection_after_close_raises():
    test_db = Database(db_path=":memory:")
    test_db.close()

    with pytest.raises(RuntimeError):
        _ = test_db.connection


def test_file_database_persists(tmp_path, enriched_job):
    path = str(tmp_path / "jobs.db")
    with Database(db_path=path) as first:
        first.save_job(enriched_job, 0.9, None)

    with Database(db_path=path) as second:
        assert second.count_jobs() == 1
