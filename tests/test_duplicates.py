import sqlite3
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from tech_job_ingest.duplicates import DuplicateDetector
from tech_job_ingest.normalizer import UNKNOWN_COMPANY


@pytest.fixture
def detector(db):
    return DuplicateDetector(db)


@pytest.fixture
def stored_id(db, enriched_job):
    return db.save_job(enriched_job, 0.9, "ENGINEERING")


def test_no_match_on_empty_store(detector, normalized_job):
    assert detector.find_existing(normalized_job) is None


def test_match_on_source_id(detector, normalized_job, stored_id):
    job = normalized_job.model_copy(
        update={"url": "https://careers.paystack.com/apply/other", "title": "Anything"}
    )

    match = detector.find_existing(job)

    assert match.id == stored_id
    assert match.matched_on == "source_id"


def test_source_id_match_skips_fuzzy_search(detector, db, normalized_job, stored_id):
    with patch.object(db, "find_similar_jobs", MagicMock()) as mock_similar:
        detector.find_existing(normalized_job)

    mock_similar.assert_not_called()


def test_match_on_apply_url(detector, normalized_job, stored_id):
    job = normalized_job.model_copy(update={"source_id": None, "title": "Anything"})

    match = detector.find_existing(job)

    assert (match.id, match.matched_on) == (stored_id, "url")


def test_match_on_listing_url(detector, normalized_job, stored_id):
    job = normalized_job.model_copy(
        update={"source_id": None, "url": "https://jobs.lever.co/paystack/1", "title": "Anything"}
    )

    match = detector.find_existing(job)

    assert (match.id, match.matched_on) == (stored_id, "url")


def test_match_on_similar_title(detector, normalized_job, stored_id):
    job = normalized_job.model_copy(
        update={
            "source_id": "4000000000",
            "url": "https://jobs.lever.co/paystack/1",
            "listing_url": "https://www.linkedin.com/jobs/view/4000000000",
            "title": "Senior Software Engineers",
            "company_name": "Paystack Ltd",
            "posted_at": normalized_job.posted_at + timedelta(days=3),
        }
    )

    match = detector.find_existing(job)

    assert match.id == stored_id
    assert match.matched_on == "similarity"
    assert match.score >= 0.85


def test_similar_title_outside_window_is_new(detector, normalized_job, stored_id):
    job = normalized_job.model_copy(
        update={
            "source_id": "4000000000",
            "url": "https://jobs.lever.co/paystack/1",
            "listing_url": "https://www.linkedin.com/jobs/view/4000000000",
            "posted_at": normalized_job.posted_at + timedelta(days=8),
        }
    )

    assert detector.find_existing(job) is None


def test_unknown_company_is_never_a_fuzzy_match(detector, db, normalized_job, enriched_job):
    db.save_job(enriched_job.model_copy(update={"company_name": UNKNOWN_COMPANY}), 0.9, None)
    job = normalized_job.model_copy(
        update={
            "source_id": "4000000000",
            "url": "https://jobs.lever.co/other/7",
            "listing_url": "https://www.linkedin.com/jobs/view/4000000000",
            "company_name": UNKNOWN_COMPANY,
        }
    )

    with patch.object(db, "find_similar_jobs", wraps=db.find_similar_jobs) as mock_similar:
        assert detector.find_existing(job) is None

    mock_similar.assert_not_called()


def test_failing_tier_falls_through(detector, db, normalized_job, stored_id):
    with patch.object(
        db, "find_by_source_id", MagicMock(side_effect=sqlite3.OperationalError("locked"))
    ):
        match = detector.find_existing(normalized_job)

    assert match.matched_on == "url"


def test_all_tiers_failing_means_no_match(detector, db, normalized_job):
    broken = MagicMock(side_effect=sqlite3.OperationalError("locked"))
    with (
        patch.object(db, "find_by_source_id", broken),
        patch.object(db, "find_by_url", broken),
        patch.object(db, "find_similar_jobs", broken),
    ):
        assert detector.find_existing(normalized_job) is None
