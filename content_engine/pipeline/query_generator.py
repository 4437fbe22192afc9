"""Search query generation: LLM primary path with a deterministic fallback.

The generator never raises for collaborator failures. Anything that stops
the LLM path (no provider, missing key or SDK, exhausted LLM budget,
malformed output) produces a keyword-based plan tagged ``degraded=True``.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from typing import Any

from content_engine.core.schemas import (
    ContentOptimization,
    Milestone,
    QueryPlan,
    SearchQuery,
    TopicClassification,
)
from content_engine.llm.base import SYSTEM_PROMPT, LLMProvider, build_user_prompt, parse_response
from content_engine.pipeline.quota_ledger import BudgetExceededError, QuotaLedger
from content_engine.pipeline.signals import most_frequent_terms

logger = logging.getLogger(__name__)

_FILLER = re.compile(r"\b(how to|learn|tutorial|guide)\b", re.IGNORECASE)

_COMPLEXITY = {"beginner": "low", "intermediate": "medium", "advanced": "high"}

# One concrete interpretation per ambiguous topic, kept across every phrase.
KNOWN_INTERPRETATIONS: dict[str, str] = {
    "juggling": "3 ball juggling",
    "photography": "digital photography",
    "cooking": "home cooking",
    "dancing": "hip hop dancing",
    "dance": "hip hop dancing",
    "guitar": "acoustic guitar",
    "painting": "watercolor painting",
}


class TopicDisambiguator(ABC):
    """Strategy that maps a raw topic to one canonical search phrase."""

    @abstractmethod
    def disambiguate(self, topic: str) -> str:
        """Return the canonical phrase for ``topic``."""


class KeywordDisambiguator(TopicDisambiguator):
    """Strip filler words and map known ambiguous topics to one interpretation."""

    def __init__(self, interpretations: dict[str, str] | None = None) -> None:
        self._interpretations = (
            interpretations if interpretations is not None else KNOWN_INTERPRETATIONS
        )

    def disambiguate(self, topic: str) -> str:
        cleaned = " ".join(_FILLER.sub(" ", topic).split())
        if not cleaned:
            cleaned = " ".join(topic.split())
        return self._interpretations.get(cleaned.lower(), cleaned)


class QueryGenerator:
    """Builds a QueryPlan for a topic, optionally focused on one milestone.

    Args:
        provider: LLM collaborator; None always uses the fallback path.
        disambiguator: Strategy for the fallback canonical topic.
        ledger: Optional quota ledger guarding LLM calls.
        model: Override the provider's default model.
    """

    def __init__(
        self,
        provider: LLMProvider | None = None,
        disambiguator: TopicDisambiguator | None = None,
        ledger: QuotaLedger | None = None,
        model: str | None = None,
    ) -> None:
        self._provider = provider
        self._disambiguator = disambiguator or KeywordDisambiguator()
        self._ledger = ledger
        self._model = model

    async def generate(
        self,
        topic: str,
        skill_level: str,
        max_queries: int = 3,
        milestone: Milestone | None = None,
    ) -> QueryPlan:
        if max_queries < 1:
            msg = f"max_queries must be at least 1, got {max_queries}"
            raise ValueError(msg)
        if not topic.strip():
            msg = "topic must not be empty"
            raise ValueError(msg)

        if self._provider is None:
            logger.info("No LLM provider configured, using fallback queries for '%s'", topic)
            return self.fallback(topic, skill_level, max_queries, milestone)

        try:
            return await self._generate_with_llm(
                self._provider, topic, skill_level, max_queries, milestone,
            )
        except BudgetExceededError as e:
            logger.warning("LLM budget exhausted (%s), using fallback queries", e.window)
        except Exception:
            logger.warning(
                "LLM query generation failed for '%s', using fallback queries",
                topic, exc_info=True,
            )
        return self.fallback(topic, skill_level, max_queries, milestone)

    async def _generate_with_llm(
        self,
        provider: LLMProvider,
        topic: str,
        skill_level: str,
        max_queries: int,
        milestone: Milestone | None,
    ) -> QueryPlan:
        if self._ledger is not None:
            self._ledger.check()

        context = f"{milestone.title} - {milestone.description}" if milestone else None
        prompt = build_user_prompt(topic, skill_level, max_queries, context)
        raw = await asyncio.to_thread(
            provider.complete, prompt, self._model, system=SYSTEM_PROMPT,
        )
        if self._ledger is not None:
            self._ledger.record()

        data = parse_response(raw or "")
        plan = _plan_from_llm(data, topic, skill_level, max_queries)
        logger.info(
            "LLM generated %d video / %d article queries for '%s' (%s)",
            len(plan.video_queries), len(plan.article_queries), topic, plan.detected_topic,
        )
        return plan

    def fallback(
        self,
        topic: str,
        skill_level: str,
        max_queries: int = 3,
        milestone: Milestone | None = None,
    ) -> QueryPlan:
        """Deterministic keyword-based plan; same inputs always give the same phrases."""
        canonical = self._disambiguator.disambiguate(topic)
        base = canonical
        reasoning = f"Fallback queries generated for {topic}"

        if milestone is not None:
            terms = most_frequent_terms(f"{milestone.title} {milestone.description}", limit=3)
            if terms:
                base = f"{canonical} {' '.join(terms)}"
                reasoning = f"Fallback queries generated for {topic} - milestone: \"{milestone.title}\""

        level = milestone.difficulty if milestone is not None else skill_level
        video_phrases = [f"{base} tutorial", f"{base} {level}", f"{base} examples"]
        article_phrases = [f"{base} guide", f"{base} tutorial", f"{base} best practices"]

        return QueryPlan(
            topic=topic,
            canonical_topic=canonical,
            skill_level=skill_level,
            video_queries=[
                SearchQuery(text=t, content_type="video", skill_level=skill_level)
                for t in video_phrases[:max_queries]
            ],
            article_queries=[
                SearchQuery(text=t, content_type="article", skill_level=skill_level)
                for t in article_phrases[:max_queries]
            ],
            detected_topic=canonical,
            reasoning=reasoning,
            classification=TopicClassification(
                domain="general",
                complexity=_COMPLEXITY.get(skill_level, "medium"),
                prerequisites=["basic knowledge"],
                estimated_time="4-8 weeks",
            ),
            content_optimization=ContentOptimization(
                learning_style="mixed",
                difficulty_adjustment=f"{skill_level}-focused",
                content_types=["tutorials", "guides", "examples"],
                search_strategy="milestone-specific" if milestone is not None else "basic",
            ),
            degraded=True,
        )


def _plan_from_llm(
    data: dict[str, Any],
    topic: str,
    skill_level: str,
    max_queries: int,
) -> QueryPlan:
    """Build a QueryPlan from the LLM's camelCase JSON; raises ValueError when unusable."""
    video_texts = _clean_phrases(data.get("youtubeQueries"))[:max_queries]
    article_texts = _clean_phrases(data.get("articleQueries"))[:max_queries]
    if not video_texts or not article_texts:
        msg = "LLM response is missing youtubeQueries or articleQueries"
        raise ValueError(msg)

    detected = str(data.get("detectedTopic") or topic).strip()
    optimization = data.get("contentOptimization") or {}
    classification = data.get("classification") or {}
    complexity = str(classification.get("complexity", "")).lower()

    return QueryPlan(
        topic=topic,
        canonical_topic=detected,
        skill_level=skill_level,
        video_queries=[
            SearchQuery(text=t, content_type="video", skill_level=skill_level) for t in video_texts
        ],
        article_queries=[
            SearchQuery(text=t, content_type="article", skill_level=skill_level)
            for t in article_texts
        ],
        detected_topic=detected,
        reasoning=str(data.get("reasoning", "")),
        classification=TopicClassification(
            domain=str(classification.get("domain") or "general"),
            complexity=complexity if complexity in ("low", "medium", "high") else "medium",
            prerequisites=[str(p) for p in classification.get("prerequisites") or ["basic knowledge"]],
            estimated_time=str(classification.get("estimatedTime") or "4-8 weeks"),
        ),
        content_optimization=ContentOptimization(
            learning_style=str(optimization.get("learningStyle") or "mixed"),
            difficulty_adjustment=str(optimization.get("difficultyAdjustment") or "beginner-friendly"),
            content_types=[str(c) for c in optimization.get("contentTypes") or ["tutorials", "examples"]],
            search_strategy=str(optimization.get("searchStrategy") or "comprehensive"),
        ),
    )


def _clean_phrases(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [" ".join(str(v).split()) for v in value if isinstance(v, str) and v.strip()]
