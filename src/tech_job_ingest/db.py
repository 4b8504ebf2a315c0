import logging
import re
import sqlite3
from datetime import UTC, datetime
from difflib import SequenceMatcher
from types import TracebackType

from tech_job_ingest.models import EnrichedJob, PersistedJob

logger = logging.getLogger(__name__)

FUZZY_THRESHOLD = 0.85

_COMPANY_SUFFIXES = re.compile(
    r"\b(?:inc|llc|ltd|limited|plc|gmbh|corp|corporation|co|company)\b\.?", re.IGNORECASE
)


def normalize_company(name: str | None) -> str:
    """Lowercased company name without punctuation or legal suffixes."""
    if not name:
        return ""
    name = _COMPANY_SUFFIXES.sub("", name.lower())
    return re.sub(r"[^a-z0-9]+", " ", name).strip()


def normalize_title(title: str | None) -> str:
    if not title:
        return ""
    return re.sub(r"[^a-z0-9]+", " ", title.lower()).strip()


def title_similarity(a: str | None, b: str | None) -> float:
    """Similarity ratio (0.0-1.0) of two titles after normalization."""
    left, right = normalize_title(a), normalize_title(b)
    if not left or not right:
        return 0.0
    return SequenceMatcher(None, left, right).ratio()


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


class Database:
    """
    SQLite store for accepted job postings.

    Uses a single persistent connection for both file-based and in-memory
    databases and supports the context manager protocol. Uniqueness is
    enforced on `url` and on `(source, source_id)` when a source id is known;
    `save_job` reports a conflict by returning None.
    """

    def __init__(self, db_path: str = "jobs.db") -> None:
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.create_function("TITLE_SIMILARITY", 2, title_similarity, deterministic=True)
        self._conn.create_function("NORMALIZE_COMPANY", 1, normalize_company, deterministic=True)
        self.init_db()

    @property
    def connection(self) -> sqlite3.Connection:
        """Return the persistent database connection."""
        if self._conn is None:
            raise RuntimeError("Database connection is closed")
        return self._conn

    def init_db(self) -> None:
        """Create the jobs table and its indexes if they don't exist."""
        cursor = self.connection.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS jobs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                cleaned_title TEXT NOT NULL,
                description TEXT,
                summarized_description TEXT,
                company_name TEXT NOT NULL,
                company_website TEXT,
                city TEXT,
                standardized_city TEXT,
                country TEXT,
                posted_at TEXT NOT NULL,
                type TEXT NOT NULL,
                job_type TEXT NOT NULL,
                experience_level TEXT NOT NULL,
                salary_text TEXT,
                salary_min REAL,
                salary_max REAL,
                currency TEXT,
                url TEXT NOT NULL UNIQUE,
                listing_url TEXT,
                source TEXT NOT NULL,
                source_id TEXT,
                remote INTEGER NOT NULL DEFAULT 0,
                sponsorship_hint INTEGER NOT NULL DEFAULT 0,
                is_tech_job INTEGER NOT NULL DEFAULT 1,
                is_visa_sponsored INTEGER NOT NULL DEFAULT 0,
                quality_score REAL NOT NULL,
                final_score REAL NOT NULL,
                category TEXT,
                ai_category TEXT,
                ai_provider TEXT,
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        cursor.execute("""
            CREATE UNIQUE INDEX IF NOT EXISTS idx_jobs_source_id
            ON jobs (source, source_id) WHERE source_id IS NOT NULL
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_jobs_listing_url ON jobs (listing_url)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_jobs_posted_at ON jobs (posted_at)")
        self.connection.commit()

        logger.info(f"Database initialized at {self.db_path}")

    def find_by_source_id(self, source: str, source_id: str) -> int | None:
        row = self.connection.execute(
            "SELECT id FROM jobs WHERE source = ? AND source_id = ?", (source, source_id)
        ).fetchone()
        return row["id"] if row else None

    def find_by_url(self, url: str) -> int | None:
        """Match against both the stored apply URL and the stored listing URL."""
        row = self.connection.execute(
            "SELECT id FROM jobs WHERE url = ? OR listing_url = ? ORDER BY id LIMIT 1", (url, url)
        ).fetchone()
        return row["id"] if row else None

    def find_similar_jobs(
        self,
        company_name: str,
        title: str,
        start: datetime,
        end: datetime,
        threshold: float = FUZZY_THRESHOLD,
    ) -> list[tuple[int, float]]:
        """
        Jobs from the same (normalized) company posted within [start, end]
        whose title similarity is at least `threshold`, best match first.
        """
        rows = self.connection.execute(
            """
            SELECT id, TITLE_SIMILARITY(title, ?) AS score
            FROM jobs
            WHERE NORMALIZE_COMPANY(company_name) = NORMALIZE_COMPANY(?)
              AND posted_at BETWEEN ? AND ?
              AND TITLE_SIMILARITY(title, ?) >= ?
            ORDER BY score DESC, id
            """,
            (title, company_name, _iso(start), _iso(end), title, threshold),
        ).fetchall()
        return [(row["id"], row["score"]) for row in rows]

    def save_job(self, job: EnrichedJob, final_score: float, category: str | None) -> int | None:
        """
        Insert an accepted job. Returns the new id, or None if a row with the
        same url or (source, source_id) already exists.
        """
        try:
            cursor = self.connection.cursor()
            cursor.execute(
                """
                INSERT INTO jobs (
                    title, cleaned_title, description, summarized_description,
                    company_name, company_website, city, standardized_city, country,
                    posted_at, type, job_type, experience_level,
                    salary_text, salary_min, salary_max, currency,
                    url, listing_url, source, source_id,
                    remote, sponsorship_hint, is_tech_job, is_visa_sponsored,
                    quality_score, final_score, category, ai_category, ai_provider
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?,
                        ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    job.title,
                    job.cleaned_title,
                    job.description,
                    job.summarized_description,
                    job.company_name,
                    job.company_website,
                    job.city,
                    job.standardized_city,
                    job.country,
                    _iso(job.posted_at),
                    job.type.value,
                    job.job_type.value,
                    job.experience_level.value,
                    job.salary_text,
                    job.salary_min,
                    job.salary_max,
                    job.currency,
                    job.url,
                    job.listing_url,
                    job.source,
                    job.source_id,
                    int(job.remote),
                    int(job.sponsorship_hint),
                    int(job.is_tech_job),
                    int(job.is_visa_sponsored),
                    job.quality_score,
                    final_score,
                    category,
                    job.ai_category.value if job.ai_category else None,
                    job.ai_provider,
                ),
            )
            self.connection.commit()
            return cursor.lastrowid
        except sqlite3.IntegrityError:
            # url or (source, source_id) already stored
            logger.debug(f"Duplicate job skipped: {job.url}")
            return None
        except Exception as e:
            logger.error(f"Error saving job {job.url}: {e}")
            raise

    def get_job(self, job_id: int) -> PersistedJob | None:
        row = self.connection.execute("SELECT * FROM jobs WHERE id = ?", (job_id,)).fetchone()
        if row is None:
            return None
        data = dict(row)
        for flag in ("remote", "sponsorship_hint", "is_tech_job", "is_visa_sponsored", "is_active"):
            data[flag] = bool(data[flag])
        if data["created_at"]:
            data["created_at"] = datetime.fromisoformat(data["created_at"]).replace(tzinfo=UTC)
        return PersistedJob.model_validate(data)

    def count_jobs(self) -> int:
        return self.connection.execute("SELECT COUNT(*) FROM jobs").fetchone()[0]

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "Database":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()
