"""Tavily search API provider for educational articles."""

import hashlib
import logging
import os
import re
from typing import Any

import httpx

from content_engine.core.config import ArticleProviderConfig
from content_engine.core.schemas import ArticleCandidate, ContentType, SearchQuery
from content_engine.pipeline.quality import DOMAIN_AUTHORITY
from content_engine.pipeline.quota_ledger import BudgetExceededError, QuotaLedger
from content_engine.pipeline.signals import (
    detect_content_depth,
    detect_content_kind,
    extract_domain,
    format_reading_time,
    guess_difficulty,
    has_code_examples,
    is_valid_url,
    parse_published_at,
    reading_minutes,
)
from content_engine.providers.base import ContentProvider, ProviderError, classify_http_error

logger = logging.getLogger(__name__)

_MAX_FETCH = 20
_DESCRIPTION_CHARS = 200
_DEPTH_TO_LEVEL = {"basic": "beginner", "intermediate": "intermediate", "advanced": "advanced"}

# (title, url, content, score, published_date, author); {q} is the query text.
_MOCK_RESULTS: tuple[tuple[str, str, str, float, str, str], ...] = (
    (
        "Complete Guide to Learning {q}",
        "https://developer.mozilla.org/en-US/docs/Web/JavaScript",
        "A comprehensive tutorial covering all aspects of {q}. This guide includes practical "
        "examples, best practices, and real-world applications. Perfect for developers looking "
        "to master {q} from basics to advanced concepts.",
        0.95, "2024-01-15", "MDN Web Docs",
    ),
    (
        "{q} Best Practices and Advanced Techniques",
        "https://css-tricks.com/advanced-techniques",
        "Learn advanced techniques and best practices for working with {q}. This article covers "
        "optimization strategies, common pitfalls, and professional development approaches.",
        0.88, "2024-01-10", "CSS-Tricks Team",
    ),
    (
        "Getting Started with {q}: A Beginner's Tutorial",
        "https://freecodecamp.org/tutorial",
        "Step-by-step tutorial for absolute beginners. Learn {q} fundamentals through hands-on "
        "examples and interactive exercises. Perfect for those starting their programming journey.",
        0.82, "2024-01-08", "freeCodeCamp",
    ),
    (
        "{q} vs Other Technologies: A Comprehensive Comparison",
        "https://smashingmagazine.com/comparison",
        "Detailed comparison of {q} with similar technologies. Understand the pros and cons, "
        "use cases, and when to choose {q} over alternatives.",
        0.78, "2024-01-05", "Smashing Magazine",
    ),
    (
        "Advanced {q} Patterns and Optimization",
        "https://alistapart.com/advanced-patterns",
        "Explore advanced patterns, optimization techniques, and architectural considerations "
        "for {q}. This article is aimed at experienced developers looking to optimize their "
        "{q} implementations.",
        0.75, "2024-01-01", "A List Apart",
    ),
)


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def article_id(url: str) -> str:
    """Stable id derived from the URL."""
    return "article-" + hashlib.sha1(url.encode("utf-8")).hexdigest()[:12]


class TavilyProvider(ContentProvider):
    """Article search through the Tavily API.

    One governed call per query. Without an API key the provider returns
    five canned educational results.
    """

    def __init__(
        self,
        config: ArticleProviderConfig | None = None,
        ledger: QuotaLedger | None = None,
        api_key: str | None = None,
    ) -> None:
        self._config = config or ArticleProviderConfig()
        self._ledger = ledger
        self._api_key = api_key if api_key is not None else os.environ.get(self._config.api_key_env)

    @property
    def provider_id(self) -> str:
        return "tavily"

    @property
    def content_type(self) -> ContentType:
        return "article"

    async def search(self, query: SearchQuery, max_results: int) -> list[ArticleCandidate]:
        if not self._config.enabled:
            logger.info("Tavily provider disabled, skipping '%s'", query.text)
            return []
        if not self._api_key:
            logger.warning("%s not set, using mock articles for '%s'", self._config.api_key_env, query.text)
            return self._mock_articles(query, max_results)

        if self._ledger is not None:
            self._ledger.check(1)
        try:
            async with httpx.AsyncClient(timeout=self._config.timeout_s) as client:
                response = await client.post(
                    self._config.endpoint,
                    headers={
                        "Content-Type": "application/json",
                        "Authorization": f"Bearer {self._api_key}",
                    },
                    json=self._request_body(query, max_results),
                )
            if response.status_code != 200:
                raise classify_http_error("tavily", response.status_code, str(response.text))
            if self._ledger is not None:
                self._ledger.record(1)

            data = response.json()
            results = data.get("results") if isinstance(data, dict) else None
            if not isinstance(results, list):
                msg = "Malformed Tavily response: missing results"
                raise ValueError(msg)
        except BudgetExceededError:
            raise
        except ProviderError as e:
            logger.warning("Tavily %s for '%s': %s", e.kind, query.text, e)
            return []
        except (httpx.HTTPError, ValueError):
            logger.warning("Tavily search failed for '%s'", query.text, exc_info=True)
            return []

        articles = []
        for result in results:
            if not isinstance(result, dict):
                logger.debug("Tavily: malformed result skipped: %r", result)
                continue
            url = result.get("url")
            if not isinstance(url, str) or not is_valid_url(url):
                logger.debug("Tavily: invalid URL skipped: %r", url)
                continue
            try:
                articles.append(self._parse_result(result, query))
            except (ValueError, TypeError, KeyError, AttributeError):
                logger.debug("Tavily: malformed result for %s skipped", url, exc_info=True)

        logger.info("Tavily: %d articles for '%s'", len(articles), query.text)
        return articles[:max_results]

    def _request_body(self, query: SearchQuery, max_results: int) -> dict[str, Any]:
        body: dict[str, Any] = {
            "query": query.text,
            "max_results": min(max(max_results, 1) * self._config.overfetch_factor, _MAX_FETCH),
            "search_depth": self._config.search_depth,
            "include_answer": True,
            "include_raw_content": True,
            "include_images": False,
        }
        if self._config.restrict_to_known_domains:
            body["include_domains"] = sorted(DOMAIN_AUTHORITY)
        return body

    @staticmethod
    def _parse_result(result: dict[str, Any], query: SearchQuery) -> ArticleCandidate:
        url = str(result["url"])
        title = str(result.get("title") or "")
        content = str(result.get("content") or "")
        domain = extract_domain(url)
        depth = detect_content_depth(title, content)
        minutes = reading_minutes(content or title)
        description = content[:_DESCRIPTION_CHARS] + ("..." if len(content) > _DESCRIPTION_CHARS else "")

        score = result.get("score")
        provider_score = None
        if isinstance(score, (int, float)):
            provider_score = min(1.0, max(0.0, float(score)))

        return ArticleCandidate(
            id=article_id(url),
            title=title,
            description=description,
            url=url,
            source=domain,
            source_domain=domain,
            published_at=parse_published_at(result.get("published_date")),
            query=query.text,
            difficulty_guess=guess_difficulty(title, _DEPTH_TO_LEVEL[depth]),
            author=str(result.get("author") or ""),
            content_kind=detect_content_kind(title, content),
            content_depth=depth,
            has_code_examples=has_code_examples(title, content),
            reading_minutes=minutes,
            reading_time=format_reading_time(minutes),
            provider_score=provider_score,
        )

    @classmethod
    def _mock_articles(cls, query: SearchQuery, max_results: int) -> list[ArticleCandidate]:
        q = query.text
        slug = _slug(q)
        articles = []
        for title, url, content, score, published, author in _MOCK_RESULTS:
            articles.append(cls._parse_result(
                {
                    "title": title.format(q=q),
                    "url": f"{url}?q={slug}",
                    "content": content.format(q=q),
                    "score": score,
                    "published_date": published,
                    "author": author,
                },
                query,
            ))
        return articles[:max_results]
