"""Milestone relevance matching and greedy per-milestone distribution.

Milestones are processed in roadmap order: earlier milestones get first
pick of the most relevant content, and an assigned candidate leaves the
pool immediately. Empty slots are filled with deterministic fallbacks.
"""

import logging

from content_engine.core.config import DistributionConfig
from content_engine.core.schemas import (
    DIFFICULTY_ORDER,
    ArticleCandidate,
    Assignment,
    ContentType,
    FallbackContent,
    Milestone,
    MilestoneCounts,
    ScoredCandidate,
    VideoCandidate,
)
from content_engine.pipeline.quality import effective_duration_minutes
from content_engine.pipeline.signals import extract_key_terms

logger = logging.getLogger(__name__)

AUTHORITATIVE_SOURCES = (
    "youtube", "khan academy", "coursera", "edx", "udemy", "freecodecamp",
    "mdn", "w3schools", "stack overflow", "github", "medium", "dev.to",
)

# Longest comfortable length (minutes) per milestone difficulty.
_LENGTH_LIMITS = {"beginner": 10, "intermediate": 20, "advanced": 30}


def _length_minutes(candidate: VideoCandidate | ArticleCandidate) -> float:
    if isinstance(candidate, VideoCandidate):
        return effective_duration_minutes(candidate)
    return float(candidate.reading_minutes)


def milestone_relevance(scored: ScoredCandidate, milestone: Milestone) -> float:
    """Relevance of one candidate to one milestone; higher is a better match."""
    candidate = scored.candidate
    score = 0.0

    milestone_terms = extract_key_terms(f"{milestone.title} {milestone.description}")
    content_terms = set(extract_key_terms(f"{candidate.title} {candidate.description}"))
    score += sum(1 for t in milestone_terms if t in content_terms) * 10

    gap = abs(
        DIFFICULTY_ORDER.index(milestone.difficulty)
        - DIFFICULTY_ORDER.index(candidate.difficulty_guess)
    )
    if gap == 0:
        score += 20
    elif gap == 1:
        score += 10

    if _length_minutes(candidate) <= _LENGTH_LIMITS[milestone.difficulty]:
        score += 15

    score += min(scored.score / 10, 10)

    source = candidate.source.lower()
    if any(s in source for s in AUTHORITATIVE_SOURCES):
        score += 5
    return score


def create_fallback(
    milestone: Milestone,
    milestone_index: int,
    slot_index: int,
    content_type: ContentType,
    config: DistributionConfig,
) -> FallbackContent:
    """Placeholder for an unfilled slot; the same inputs always give the same item.

    Article slots are numbered after the milestone's video slots.
    """
    number = slot_index + 1
    if content_type == "article":
        number += config.videos_per_milestone
    tier = milestone.difficulty.capitalize()
    return FallbackContent(
        id=f"fallback-{milestone_index}-{content_type}-{slot_index}",
        title=f"{tier} Learning Resource {number}",
        description=f"Essential {milestone.difficulty} content to support your learning journey",
        source=config.fallback_source,
        quality_score=config.fallback_quality_score,
    )


def distribute(
    pool: list[ScoredCandidate],
    milestones: list[Milestone],
    content_type: ContentType,
    quota: int,
    config: DistributionConfig,
) -> list[list[Assignment]]:
    """Assign ``quota`` items per milestone from ``pool``.

    Returns one list of exactly ``quota`` assignments per milestone, in
    roadmap order. ``pool`` is expected in quality rank order; relevance
    ties keep that order.
    """
    if not milestones:
        msg = "cannot distribute content over an empty milestone list"
        raise ValueError(msg)
    if quota < 0:
        msg = f"quota must not be negative, got {quota}"
        raise ValueError(msg)

    remaining = list(pool)
    result: list[list[Assignment]] = []

    for m_idx, milestone in enumerate(milestones):
        ranked = sorted(
            ((milestone_relevance(s, milestone), s) for s in remaining),
            key=lambda pair: pair[0],
            reverse=True,
        )
        chosen = ranked[:quota]
        chosen_ids = {id(s) for _, s in chosen}
        remaining = [s for s in remaining if id(s) not in chosen_ids]

        assignments = [
            Assignment(
                milestone_index=m_idx,
                content_type=content_type,
                slot_index=slot,
                candidate=scored,
                relevance=relevance,
            )
            for slot, (relevance, scored) in enumerate(chosen)
        ]
        for slot in range(len(chosen), quota):
            assignments.append(Assignment(
                milestone_index=m_idx,
                content_type=content_type,
                slot_index=slot,
                fallback=create_fallback(milestone, m_idx, slot, content_type, config),
            ))

        logger.debug(
            "Milestone %d: %d real / %d fallback %ss",
            m_idx + 1, len(chosen), quota - len(chosen), content_type,
        )
        result.append(assignments)

    return result


class DistributionResult:
    """Per-milestone assignments for both content types plus real/fallback counts."""

    def __init__(
        self,
        videos: list[list[Assignment]],
        articles: list[list[Assignment]],
    ) -> None:
        self.videos = videos
        self.articles = articles
        self.counts = [
            MilestoneCounts(
                milestone_index=i,
                real_videos=sum(1 for a in v if not a.is_fallback),
                fallback_videos=sum(1 for a in v if a.is_fallback),
                real_articles=sum(1 for a in a_list if not a.is_fallback),
                fallback_articles=sum(1 for a in a_list if a.is_fallback),
            )
            for i, (v, a_list) in enumerate(zip(videos, articles))
        ]

    @property
    def real_videos(self) -> int:
        return sum(c.real_videos for c in self.counts)

    @property
    def fallback_videos(self) -> int:
        return sum(c.fallback_videos for c in self.counts)

    @property
    def real_articles(self) -> int:
        return sum(c.real_articles for c in self.counts)

    @property
    def fallback_articles(self) -> int:
        return sum(c.fallback_articles for c in self.counts)


def distribute_roadmap(
    videos: list[ScoredCandidate],
    articles: list[ScoredCandidate],
    milestones: list[Milestone],
    config: DistributionConfig,
) -> DistributionResult:
    """Distribute both content pools across the roadmap."""
    result = DistributionResult(
        videos=distribute(videos, milestones, "video", config.videos_per_milestone, config),
        articles=distribute(articles, milestones, "article", config.articles_per_milestone, config),
    )
    logger.info(
        "Distributed over %d milestones: videos %d real / %d fallback, articles %d real / %d fallback",
        len(milestones), result.real_videos, result.fallback_videos,
        result.real_articles, result.fallback_articles,
    )
    return result
