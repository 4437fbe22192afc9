"""Abstract base class for content providers and shared error handling."""

import logging
from abc import ABC, abstractmethod

from content_engine.core.schemas import ArticleCandidate, ContentType, SearchQuery, VideoCandidate
from content_engine.pipeline.filters import DeduplicationFilter
from content_engine.pipeline.quota_ledger import BudgetExceededError

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """A provider call failed; ``kind`` classifies the failure."""

    def __init__(
        self,
        provider: str,
        kind: str,
        message: str,
        status_code: int | None = None,
        retryable: bool = False,
    ) -> None:
        self.provider = provider
        self.kind = kind
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message)


def classify_http_error(provider: str, status_code: int, detail: str = "") -> ProviderError:
    """Map an HTTP status to a ProviderError kind."""
    if status_code == 400:
        kind, retryable = "api_error", False
    elif status_code == 401:
        kind, retryable = "invalid_key", False
    elif status_code == 403:
        kind, retryable = "quota_exceeded", False
    elif status_code == 429:
        kind, retryable = "quota_exceeded", True
    elif 500 <= status_code < 600:
        kind, retryable = "service_unavailable", True
    else:
        kind, retryable = "api_error", False
    message = f"{provider} API returned {status_code}"
    if detail:
        message = f"{message}: {detail[:200]}"
    return ProviderError(provider, kind, message, status_code=status_code, retryable=retryable)


class ProviderSearchResult:
    """Outcome of one provider fan-out across several queries."""

    def __init__(
        self,
        provider: str,
        candidates: list[VideoCandidate | ArticleCandidate],
        queries_run: list[str],
        budget_exceeded: bool = False,
    ) -> None:
        self.provider = provider
        self.candidates = candidates
        self.queries_run = queries_run
        self.budget_exceeded = budget_exceeded


class ContentProvider(ABC):
    """Base class that every content provider must implement."""

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'youtube')."""

    @property
    @abstractmethod
    def content_type(self) -> ContentType:
        """Content type this provider returns."""

    @abstractmethod
    async def search(
        self, query: SearchQuery, max_results: int,
    ) -> list[VideoCandidate | ArticleCandidate]:
        """Run one query and return normalized candidates.

        Raises BudgetExceededError before any network I/O when the ledger
        refuses the call. Every other failure is logged and yields [].
        """

    async def search_many(
        self, queries: list[SearchQuery], max_results: int,
    ) -> ProviderSearchResult:
        """Run queries in priority order, deduplicating by URL.

        Stops once ``max_results`` unique candidates are collected, or when
        the quota ledger refuses a call.
        """
        dedup = DeduplicationFilter()
        collected: list[VideoCandidate | ArticleCandidate] = []
        queries_run: list[str] = []
        budget_exceeded = False

        for query in queries:
            if len(collected) >= max_results:
                break
            try:
                found = await self.search(query, max_results)
            except BudgetExceededError as e:
                logger.warning(
                    "%s fan-out stopped after %d queries: %s", self.provider_id, len(queries_run), e,
                )
                budget_exceeded = True
                break
            queries_run.append(query.text)
            collected.extend(dedup(found))

        logger.info(
            "%s: %d unique candidates from %d queries", self.provider_id, len(collected), len(queries_run),
        )
        return ProviderSearchResult(
            provider=self.provider_id,
            candidates=collected[:max_results],
            queries_run=queries_run,
            budget_exceeded=budget_exceeded,
        )
