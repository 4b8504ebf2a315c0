from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from tech_job_ingest.models import RawCandidate


class SourceRateLimitedError(Exception):
    """The job source answered HTTP 429. Fatal for the current crawl run."""


class BaseScraper(ABC):
    """
    Abstract base class for listing fetchers.
    """

    SOURCE_NAME: str

    @abstractmethod
    def fetch(self, query, limit: int) -> AsyncIterator[RawCandidate]:
        """
        Yield raw job cards for the query, page by page, until the source
        runs dry or `limit` candidates have been produced.
        """
