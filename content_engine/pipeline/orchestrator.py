"""Orchestrator: wires query generation, providers, scoring and distribution.

Data flow:
  1. Query generation (LLM or deterministic fallback)
  2. Video and article provider fan-outs, concurrently, under a deadline
  3. Scoring + adaptive threshold selection per content type
  4. Milestone distribution with fallback synthesis
  5. Enriched roadmap + metadata
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any

from content_engine.core.config import Settings
from content_engine.core.schemas import (
    AdaptiveThresholds,
    Assignment,
    EnrichedRoadmap,
    Milestone,
    QueryPlan,
    Roadmap,
    ScoredCandidate,
    SearchQuery,
    VideoCandidate,
)
from content_engine.pipeline.distributor import DistributionResult, distribute_roadmap
from content_engine.pipeline.quality import (
    SelectionResult,
    quality_insights,
    score_candidates,
    select_candidates,
)
from content_engine.pipeline.query_generator import QueryGenerator
from content_engine.pipeline.signals import format_duration
from content_engine.providers.base import ContentProvider

logger = logging.getLogger(__name__)

DEFAULT_MILESTONES = 5

_SKELETON = (
    ("Foundations of {t}", "Get comfortable with the core ideas and vocabulary of {t}.", "beginner"),
    ("Core {t} Concepts", "Build a working understanding of the essential {t} concepts.", "beginner"),
    ("Practical {t} Projects", "Apply {t} in small hands-on projects.", "intermediate"),
    ("Intermediate {t} Techniques", "Deepen your {t} skills with intermediate techniques.", "intermediate"),
    ("Advanced {t} Mastery", "Master advanced {t} patterns and best practices.", "advanced"),
)


class BranchOutcome:
    """Result of one provider branch of the concurrent search."""

    def __init__(
        self,
        provider: str,
        candidates: list,
        queries_run: list[str],
        budget_exceeded: bool = False,
        timed_out: bool = False,
        failed: bool = False,
    ) -> None:
        self.provider = provider
        self.candidates = candidates
        self.queries_run = queries_run
        self.budget_exceeded = budget_exceeded
        self.timed_out = timed_out
        self.failed = failed


class ContentSearchResult:
    """Ranked, threshold-filtered content for one topic."""

    def __init__(
        self,
        plan: QueryPlan,
        videos: list[ScoredCandidate],
        articles: list[ScoredCandidate],
        video_selection: SelectionResult,
        article_selection: SelectionResult,
        video_branch: BranchOutcome,
        article_branch: BranchOutcome,
    ) -> None:
        self.plan = plan
        self.videos = videos
        self.articles = articles
        self.video_selection = video_selection
        self.article_selection = article_selection
        self.video_branch = video_branch
        self.article_branch = article_branch


async def _run_branch(
    provider: ContentProvider,
    queries: list[SearchQuery],
    max_results: int,
    timeout_s: float | None,
) -> BranchOutcome:
    """Run one provider fan-out; a timed-out or failed branch yields no candidates."""
    try:
        result = await asyncio.wait_for(provider.search_many(queries, max_results), timeout=timeout_s)
    except asyncio.TimeoutError:
        logger.warning("%s search timed out after %ss", provider.provider_id, timeout_s)
        return BranchOutcome(provider.provider_id, [], [], timed_out=True)
    except Exception:
        logger.error("%s search failed, continuing without it", provider.provider_id, exc_info=True)
        return BranchOutcome(provider.provider_id, [], [], failed=True)
    return BranchOutcome(
        provider.provider_id,
        result.candidates,
        result.queries_run,
        budget_exceeded=result.budget_exceeded,
    )


async def search_all_content(
    topic: str,
    skill_level: str,
    settings: Settings,
    *,
    query_generator: QueryGenerator,
    video_provider: ContentProvider,
    article_provider: ContentProvider,
    max_videos: int | None = None,
    max_articles: int | None = None,
    milestone: Milestone | None = None,
    timeout_s: float | None = None,
    now: datetime | None = None,
) -> ContentSearchResult:
    """Generate queries, search both providers concurrently, score and select."""
    if max_videos is None:
        max_videos = settings.distribution.videos_per_milestone * DEFAULT_MILESTONES
    if max_articles is None:
        max_articles = settings.distribution.articles_per_milestone * DEFAULT_MILESTONES
    if timeout_s is None:
        timeout_s = settings.search.timeout_s

    # Step 1: Query generation
    plan = await query_generator.generate(topic, skill_level, settings.search.max_queries, milestone)
    logger.info(
        "Queries for '%s' (%s%s): %d video, %d article",
        topic, plan.canonical_topic, ", degraded" if plan.degraded else "",
        len(plan.video_queries), len(plan.article_queries),
    )

    # Step 2: Concurrent provider branches
    article_queries = plan.article_queries[: settings.search.article_query_limit]
    video_branch, article_branch = await asyncio.gather(
        _run_branch(video_provider, plan.video_queries, max_videos, timeout_s),
        _run_branch(article_provider, article_queries, max_articles, timeout_s),
    )
    logger.info(
        "Raw candidates: %d videos, %d articles",
        len(video_branch.candidates), len(article_branch.candidates),
    )

    # Step 3: Score and adaptively select
    quality = settings.quality
    scored_videos = score_candidates(video_branch.candidates, quality, skill_level, now, topic)
    scored_articles = score_candidates(article_branch.candidates, quality, skill_level, now, topic)
    video_selection = select_candidates(scored_videos, "video", max_videos, quality, skill_level, now)
    article_selection = select_candidates(
        scored_articles, "article", max_articles, quality, skill_level, now,
    )

    return ContentSearchResult(
        plan=plan,
        videos=video_selection.selected,
        articles=article_selection.selected,
        video_selection=video_selection,
        article_selection=article_selection,
        video_branch=video_branch,
        article_branch=article_branch,
    )


# ---------------------------------------------------------------------------
# Roadmap enrichment
# ---------------------------------------------------------------------------


def _video_entry(assignment: Assignment) -> dict[str, Any]:
    if assignment.fallback is not None:
        return _fallback_entry(assignment)
    scored = assignment.candidate
    video = scored.candidate
    if not isinstance(video, VideoCandidate):
        msg = f"expected a video assignment, got {video.content_type}"
        raise TypeError(msg)
    return {
        "id": video.id,
        "title": video.title,
        "url": video.url,
        "description": video.description,
        "duration": format_duration(video.duration_seconds),
        "thumbnail": video.thumbnail_url,
        "channelTitle": video.channel_title,
        "viewCount": video.view_count,
        "source": "YouTube",
        "qualityScore": scored.score,
        "type": "real",
    }


def _article_entry(assignment: Assignment) -> dict[str, Any]:
    if assignment.fallback is not None:
        return _fallback_entry(assignment)
    scored = assignment.candidate
    article = scored.candidate
    return {
        "id": article.id,
        "title": article.title,
        "url": article.url,
        "description": article.description,
        "readingTime": article.reading_time,
        "source": article.source,
        "author": article.author,
        "qualityScore": scored.score,
        "type": "real",
    }


def _fallback_entry(assignment: Assignment) -> dict[str, Any]:
    fallback = assignment.fallback
    return {
        "id": fallback.id,
        "title": fallback.title,
        "url": fallback.url,
        "description": fallback.description,
        "source": fallback.source,
        "qualityScore": fallback.quality_score,
        "type": fallback.type,
    }


def _rewrite_resources(
    resources: list[dict[str, Any]],
    videos: list[dict[str, Any]],
    articles: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Overlay assigned content onto the milestone's video/article resources."""
    result = []
    for index, resource in enumerate(resources):
        kind = resource.get("type")
        pool = videos if kind == "video" else articles if kind == "article" else None
        if not pool:
            result.append(resource)
            continue
        item = pool[index % len(pool)]
        updated = {**resource}
        for key in ("title", "url", "description", "source", "qualityScore", "duration", "readingTime"):
            if item.get(key) not in (None, ""):
                updated[key] = item[key]
        result.append(updated)
    return result


def _thresholds_meta(thresholds: AdaptiveThresholds) -> dict[str, Any]:
    return {
        "minQuality": thresholds.min_quality,
        "minAuthority": thresholds.min_authority,
        "minViewCount": thresholds.min_view_count,
        "maxAgeDays": thresholds.max_age_days,
        "relaxationSteps": thresholds.step,
    }


def _build_metadata(search: ContentSearchResult, distribution: DistributionResult) -> dict[str, Any]:
    plan = search.plan
    return {
        "searchQueries": {
            "youtube": [q.text for q in plan.video_queries],
            "articles": [q.text for q in plan.article_queries],
            "detectedTopic": plan.detected_topic,
            "reasoning": plan.reasoning,
        },
        "contentOptimization": plan.content_optimization.model_dump(by_alias=True),
        "classification": plan.classification.model_dump(by_alias=True),
        "apiResults": {
            "videos": len(search.video_branch.candidates),
            "articles": len(search.article_branch.candidates),
        },
        "realVideos": distribution.real_videos,
        "realArticles": distribution.real_articles,
        "fallbackVideos": distribution.fallback_videos,
        "fallbackArticles": distribution.fallback_articles,
        "degradedQueries": plan.degraded,
        "thresholds": {
            "video": _thresholds_meta(search.video_selection.thresholds),
            "article": _thresholds_meta(search.article_selection.thresholds),
        },
        "budgetExceeded": {
            search.video_branch.provider: search.video_branch.budget_exceeded,
            search.article_branch.provider: search.article_branch.budget_exceeded,
        },
        "timedOut": {
            search.video_branch.provider: search.video_branch.timed_out,
            search.article_branch.provider: search.article_branch.timed_out,
        },
        "failed": {
            search.video_branch.provider: search.video_branch.failed,
            search.article_branch.provider: search.article_branch.failed,
        },
        "qualityInsights": quality_insights(search.videos + search.articles).model_dump(by_alias=True),
        "milestoneCounts": [c.model_dump() for c in distribution.counts],
    }


def enhance_roadmap(
    roadmap: Roadmap,
    search: ContentSearchResult,
    settings: Settings,
) -> EnrichedRoadmap:
    """Distribute searched content over the roadmap's milestones."""
    distribution = distribute_roadmap(
        search.videos, search.articles, roadmap.milestones, settings.distribution,
    )

    milestones = []
    for index, milestone in enumerate(roadmap.milestones):
        videos = [_video_entry(a) for a in distribution.videos[index]]
        articles = [_article_entry(a) for a in distribution.articles[index]]
        data = milestone.model_dump()
        data["resources"] = _rewrite_resources(milestone.resources, videos, articles)
        data["videos"] = videos
        data["articles"] = articles
        milestones.append(data)

        counts = distribution.counts[index]
        logger.info(
            "Milestone %d (\"%s\"): %d/%d real videos, %d/%d real articles",
            index + 1, milestone.title,
            counts.real_videos, len(videos), counts.real_articles, len(articles),
        )

    return EnrichedRoadmap.model_validate({
        **(roadmap.model_extra or {}),
        "topic": roadmap.topic,
        "skill_level": roadmap.skill_level,
        "milestones": milestones,
        "metadata": _build_metadata(search, distribution),
    })


async def generate_enriched_roadmap(
    roadmap: Roadmap,
    settings: Settings,
    *,
    query_generator: QueryGenerator,
    video_provider: ContentProvider,
    article_provider: ContentProvider,
    timeout_s: float | None = None,
    now: datetime | None = None,
) -> EnrichedRoadmap:
    """Search content for the roadmap's topic and distribute it over its milestones."""
    if not roadmap.milestones:
        msg = "roadmap has no milestones"
        raise ValueError(msg)

    count = len(roadmap.milestones)
    search = await search_all_content(
        roadmap.topic,
        roadmap.skill_level,
        settings,
        query_generator=query_generator,
        video_provider=video_provider,
        article_provider=article_provider,
        max_videos=settings.distribution.videos_per_milestone * count,
        max_articles=settings.distribution.articles_per_milestone * count,
        timeout_s=timeout_s,
        now=now,
    )
    return enhance_roadmap(roadmap, search, settings)


def build_skeleton_roadmap(topic: str, skill_level: str = "beginner") -> Roadmap:
    """Five-milestone roadmap (beginner to advanced) used when none is supplied."""
    milestones = []
    for order, (title, description, difficulty) in enumerate(_SKELETON, start=1):
        milestones.append(Milestone(
            id=f"milestone-{order}",
            title=title.format(t=topic),
            description=description.format(t=topic),
            difficulty=difficulty,
            order=order,
            resources=[
                {"type": "video", "title": f"{topic} video lesson"},
                {"type": "article", "title": f"{topic} reading"},
            ],
        ))
    return Roadmap(topic=topic, skill_level=skill_level, milestones=milestones)


def export_roadmap_json(enriched: EnrichedRoadmap) -> str:
    """Export an enriched roadmap as a JSON string."""
    return json.dumps(enriched.model_dump(mode="json"), indent=2)
