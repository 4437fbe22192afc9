"""Configuration models and YAML loader for the roadmap content engine."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

_WEIGHT_TOLERANCE = 1e-6


class QuotaConfig(BaseModel):
    """Sliding-window ceilings for a single provider."""

    max_requests_per_minute: int = Field(default=50, ge=1)
    max_requests_per_hour: int = Field(default=1000, ge=1)
    max_daily_cost: float = Field(default=10000.0, gt=0)
    warning_ratio: float = Field(default=0.8, gt=0.0, le=1.0)


def _default_quotas() -> dict[str, QuotaConfig]:
    return {
        "youtube": QuotaConfig(),
        "tavily": QuotaConfig(
            max_requests_per_minute=20,
            max_requests_per_hour=200,
            max_daily_cost=1000.0,
        ),
        "llm": QuotaConfig(
            max_requests_per_minute=10,
            max_requests_per_hour=100,
            max_daily_cost=500.0,
        ),
    }


class LLMConfig(BaseModel):
    """Generative model used for search query generation."""

    provider: str | None = "openai"
    model: str | None = None


class VideoProviderConfig(BaseModel):
    """YouTube Data API client settings."""

    enabled: bool = True
    api_key_env: str = Field(default="YOUTUBE_API_KEY", min_length=1)
    base_url: str = Field(default="https://www.googleapis.com/youtube/v3", min_length=1)
    timeout_s: float = Field(default=30.0, gt=0)
    region_code: str = Field(default="US", min_length=1)
    relevance_language: str = Field(default="en", min_length=1)
    preferred_duration: str | None = None

    @field_validator("preferred_duration")
    @classmethod
    def known_duration_bucket(cls, v: str | None) -> str | None:
        if v is not None and v not in ("any", "short", "medium", "long"):
            msg = f"preferred_duration must be any/short/medium/long, got '{v}'"
            raise ValueError(msg)
        return v


class ArticleProviderConfig(BaseModel):
    """Tavily search API client settings."""

    enabled: bool = True
    api_key_env: str = Field(default="TAVILY_API_KEY", min_length=1)
    endpoint: str = Field(default="https://api.tavily.com/search", min_length=1)
    timeout_s: float = Field(default=30.0, gt=0)
    search_depth: str = Field(default="basic", min_length=1)
    restrict_to_known_domains: bool = True
    overfetch_factor: int = Field(default=2, ge=1, le=5)


class ProvidersConfig(BaseModel):
    video: VideoProviderConfig = Field(default_factory=VideoProviderConfig)
    article: ArticleProviderConfig = Field(default_factory=ArticleProviderConfig)


class RelaxationStep(BaseModel):
    """One step of adaptive threshold relaxation."""

    quality_factor: float = Field(gt=0.0, le=1.0)
    quality_floor: float = Field(ge=0.0)
    authority_factor: float = Field(default=1.0, gt=0.0, le=1.0)
    authority_floor: float = Field(default=0.0, ge=0.0)
    view_count_factor: float = Field(default=1.0, gt=0.0, le=1.0)
    age_factor: float = Field(ge=1.0)


class VideoWeights(BaseModel):
    """Relevance outweighs engagement so popularity alone cannot win."""

    relevance: float = 0.35
    engagement: float = 0.20
    authority: float = 0.15
    depth: float = 0.20
    bonus: float = 0.10
    freshness: float = 0.0

    @model_validator(mode="after")
    def sums_to_one(self) -> "VideoWeights":
        _check_weights(self.model_dump())
        return self


class ArticleWeights(BaseModel):
    authority: float = 0.30
    relevance: float = 0.25
    depth: float = 0.20
    freshness: float = 0.10
    bonus: float = 0.15
    engagement: float = 0.0

    @model_validator(mode="after")
    def sums_to_one(self) -> "ArticleWeights":
        _check_weights(self.model_dump())
        return self


def _check_weights(weights: dict[str, float]) -> None:
    if any(w < 0 for w in weights.values()):
        msg = "quality weights must not be negative"
        raise ValueError(msg)
    total = sum(weights.values())
    if abs(total - 1.0) > _WEIGHT_TOLERANCE:
        msg = f"quality weights must sum to 1.0, got {total:.3f}"
        raise ValueError(msg)
    if weights.get("relevance", 0.0) < weights.get("engagement", 0.0):
        msg = "relevance weight must not be below the engagement weight"
        raise ValueError(msg)


def _default_video_relaxation() -> list[RelaxationStep]:
    return [
        RelaxationStep(quality_factor=0.7, quality_floor=2, view_count_factor=0.5, age_factor=1.5),
        RelaxationStep(quality_factor=0.5, quality_floor=1, view_count_factor=0.3, age_factor=2.0),
    ]


def _default_article_relaxation() -> list[RelaxationStep]:
    return [
        RelaxationStep(
            quality_factor=0.7, quality_floor=5,
            authority_factor=0.7, authority_floor=5, age_factor=1.5,
        ),
        RelaxationStep(
            quality_factor=0.5, quality_floor=5,
            authority_factor=0.5, authority_floor=5, age_factor=2.0,
        ),
    ]


class VideoQualityConfig(BaseModel):
    """Static thresholds and weights for video scoring."""

    min_quality_score: float = Field(default=5.0, ge=0.0, le=100.0)
    min_view_count: int = Field(default=1_000_000, ge=0)
    max_age_days: float = Field(default=3650.0, gt=0)
    base_view_counts: dict[str, int] = Field(
        default_factory=lambda: {
            "beginner": 1_000_000,
            "intermediate": 100_000,
            "advanced": 50_000,
        },
    )
    weights: VideoWeights = Field(default_factory=VideoWeights)
    relaxation: list[RelaxationStep] = Field(
        default_factory=_default_video_relaxation, max_length=2,
    )


class ArticleQualityConfig(BaseModel):
    """Static thresholds and weights for article scoring."""

    min_quality_score: float = Field(default=15.0, ge=0.0, le=100.0)
    min_authority_score: float = Field(default=10.0, ge=0.0, le=100.0)
    max_age_days: float = Field(default=1825.0, gt=0)
    weights: ArticleWeights = Field(default_factory=ArticleWeights)
    relaxation: list[RelaxationStep] = Field(
        default_factory=_default_article_relaxation, max_length=2,
    )


class QualityConfig(BaseModel):
    video: VideoQualityConfig = Field(default_factory=VideoQualityConfig)
    article: ArticleQualityConfig = Field(default_factory=ArticleQualityConfig)


class DistributionConfig(BaseModel):
    """Per-milestone quotas and fallback placeholder settings."""

    videos_per_milestone: int = Field(default=3, ge=0)
    articles_per_milestone: int = Field(default=1, ge=0)
    fallback_quality_score: int = Field(default=70, ge=0, le=100)
    fallback_source: str = Field(default="Roadmap Engine", min_length=1)


class SearchConfig(BaseModel):
    """Query fan-out and deadline settings."""

    max_queries: int = Field(default=3, ge=1, le=10)
    article_query_limit: int = Field(default=2, ge=1)
    timeout_s: float | None = Field(default=45.0, gt=0)


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    quotas: dict[str, QuotaConfig] = Field(default_factory=_default_quotas)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    quality: QualityConfig = Field(default_factory=QualityConfig)
    distribution: DistributionConfig = Field(default_factory=DistributionConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)
