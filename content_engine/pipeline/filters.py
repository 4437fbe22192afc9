"""Candidate pool filters.

Filters used by the pipeline:
  1. DeduplicationFilter: per fan-out, by URL, first-seen order wins
  2. ThresholdFilter:     quality / authority / view-count / age cutoffs
"""

import logging
from datetime import datetime

from content_engine.core.schemas import (
    AdaptiveThresholds,
    ArticleCandidate,
    ScoredCandidate,
    VideoCandidate,
)
from content_engine.pipeline.signals import age_in_days

logger = logging.getLogger(__name__)


class DeduplicationFilter:
    """Remove candidates whose URL was already seen.

    Stateful: tracks seen URLs across calls within the same filter instance,
    so it spans every query of one provider fan-out.
    """

    def __init__(self) -> None:
        self._seen: set[str] = set()

    def __call__(self, candidates: list[VideoCandidate | ArticleCandidate]) -> list:
        result = []
        for c in candidates:
            key = c.url.rstrip("/")
            if key not in self._seen:
                self._seen.add(key)
                result.append(c)
        deduped = len(candidates) - len(result)
        if deduped:
            logger.debug("DeduplicationFilter: removed %d duplicates", deduped)
        return result

    @property
    def seen_count(self) -> int:
        return len(self._seen)


class ThresholdFilter:
    """Keep scored candidates that clear every cutoff in ``thresholds``.

    A candidate with an unknown publish date is never excluded on age.
    """

    def __init__(self, thresholds: AdaptiveThresholds, now: datetime | None = None) -> None:
        self._thresholds = thresholds
        self._now = now

    def __call__(self, scored: list[ScoredCandidate]) -> list[ScoredCandidate]:
        result = [s for s in scored if self.passes(s)]
        excluded = len(scored) - len(result)
        if excluded:
            logger.debug(
                "ThresholdFilter(step %d): removed %d %ss",
                self._thresholds.step, excluded, self._thresholds.content_type,
            )
        return result

    def passes(self, scored: ScoredCandidate) -> bool:
        t = self._thresholds
        candidate = scored.candidate
        if scored.score < t.min_quality:
            return False
        if isinstance(candidate, VideoCandidate) and candidate.view_count < t.min_view_count:
            return False
        if isinstance(candidate, ArticleCandidate) and scored.breakdown.authority_score < t.min_authority:
            return False
        age = age_in_days(candidate.published_at, self._now)
        return age is None or age <= t.max_age_days
