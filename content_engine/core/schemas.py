"""Core data models for the roadmap content engine."""

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

SkillLevel = Literal["beginner", "intermediate", "advanced"]
ContentType = Literal["video", "article"]

DIFFICULTY_ORDER: tuple[str, ...] = ("beginner", "intermediate", "advanced")

FALLBACK_URL = "#"


class SearchQuery(BaseModel):
    """One disambiguated search phrase for one content type."""

    model_config = ConfigDict(frozen=True)

    text: str
    content_type: ContentType
    skill_level: SkillLevel = "beginner"

    @field_validator("text")
    @classmethod
    def text_not_empty(cls, v: str) -> str:
        if not v.strip():
            msg = "query text must not be empty"
            raise ValueError(msg)
        return " ".join(v.split())


# ---------------------------------------------------------------------------
# Candidates
# ---------------------------------------------------------------------------


class ChannelStats(BaseModel):
    """Channel-level signals used for video authority scoring."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    description: str = ""
    subscriber_count: int = Field(default=0, ge=0)
    video_count: int = Field(default=0, ge=0)
    view_count: int = Field(default=0, ge=0)
    is_educational: bool = False


class _CandidateBase(BaseModel):
    """Fields shared by every normalized content item.

    Frozen: scores live on the ScoredCandidate wrapper.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str = ""
    url: str
    source: str = ""
    source_domain: str = ""
    published_at: datetime | None = None
    query: str = ""
    difficulty_guess: SkillLevel = "beginner"


class VideoCandidate(_CandidateBase):
    content_type: Literal["video"] = "video"
    channel_id: str = ""
    channel_title: str = ""
    channel: ChannelStats | None = None
    view_count: int = Field(default=0, ge=0)
    like_count: int = Field(default=0, ge=0)
    comment_count: int = Field(default=0, ge=0)
    duration_seconds: int | None = Field(default=None, ge=0)
    definition: str = ""
    has_captions: bool = False
    tags: tuple[str, ...] = ()
    thumbnail_url: str = ""


class ArticleCandidate(_CandidateBase):
    content_type: Literal["article"] = "article"
    author: str = ""
    content_kind: Literal["tutorial", "documentation", "guide", "research", "article"] = "article"
    content_depth: Literal["basic", "intermediate", "advanced"] = "intermediate"
    has_code_examples: bool = False
    reading_minutes: int = Field(default=1, ge=1)
    reading_time: str = "1 min read"
    provider_score: float | None = Field(default=None, ge=0.0, le=1.0)


Candidate = Annotated[VideoCandidate | ArticleCandidate, Field(discriminator="content_type")]


class QualityBreakdown(BaseModel):
    """Sub-scores feeding the final quality score, each bounded before weighting."""

    model_config = ConfigDict(frozen=True)

    authority_score: float = Field(default=0.0, ge=0.0, le=100.0)
    freshness_score: float = Field(default=0.0, ge=0.0, le=100.0)
    relevance_score: float = Field(default=0.0, ge=0.0, le=100.0)
    engagement_score: float = Field(default=0.0, ge=0.0, le=100.0)
    depth_score: float = Field(default=0.0, ge=0.0, le=100.0)
    bonus_score: float = Field(default=0.0, ge=0.0, le=100.0)


class ScoredCandidate(BaseModel):
    """Wrapper that pairs a frozen Candidate with its quality score."""

    model_config = ConfigDict(frozen=True)

    candidate: Candidate
    breakdown: QualityBreakdown = Field(default_factory=QualityBreakdown)
    score: int = Field(default=0, ge=0, le=100)


class AdaptiveThresholds(BaseModel):
    """Working filter cutoffs for one search.

    step 0 is the static configuration; each relaxation step increments it.
    """

    model_config = ConfigDict(frozen=True)

    content_type: ContentType
    min_quality: float = Field(ge=0.0)
    min_authority: float = Field(default=0.0, ge=0.0)
    min_view_count: int = Field(default=0, ge=0)
    max_age_days: float = Field(gt=0)
    step: int = Field(default=0, ge=0)


class ContentTypeQuality(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    count: int = 0
    average_quality: float = 0.0


class QualityInsights(BaseModel):
    """Aggregate quality of a selected pool; band counts are keyed by label."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total: int = 0
    average_quality: float = 0.0
    quality_distribution: dict[str, int] = Field(default_factory=dict)
    authority_distribution: dict[str, int] = Field(default_factory=dict)
    content_types: dict[str, ContentTypeQuality] = Field(default_factory=dict)


class QuotaLedgerEntry(BaseModel):
    """One governed request."""

    model_config = ConfigDict(frozen=True)

    timestamp: float
    cost_units: float = Field(default=1.0, ge=0.0)


class QuotaUsage(BaseModel):
    """Snapshot of a ledger's sliding windows against its ceilings."""

    provider: str
    requests_last_minute: int
    requests_last_hour: int
    cost_last_day: float
    max_requests_per_minute: int
    max_requests_per_hour: int
    max_daily_cost: float


# ---------------------------------------------------------------------------
# Query plan
# ---------------------------------------------------------------------------


class TopicClassification(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    domain: str = "general"
    complexity: Literal["low", "medium", "high"] = "medium"
    prerequisites: list[str] = Field(default_factory=lambda: ["basic knowledge"])
    estimated_time: str = "4-8 weeks"


class ContentOptimization(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    learning_style: str = "mixed"
    difficulty_adjustment: str = "beginner-friendly"
    content_types: list[str] = Field(default_factory=lambda: ["tutorials", "examples"])
    search_strategy: str = "comprehensive"


class QueryPlan(BaseModel):
    """Ordered search phrases per content type plus topic analysis."""

    model_config = ConfigDict(frozen=True)

    topic: str
    canonical_topic: str
    skill_level: SkillLevel
    video_queries: list[SearchQuery]
    article_queries: list[SearchQuery]
    detected_topic: str = "other"
    reasoning: str = ""
    classification: TopicClassification = Field(default_factory=TopicClassification)
    content_optimization: ContentOptimization = Field(default_factory=ContentOptimization)
    degraded: bool = False

    @model_validator(mode="after")
    def has_queries(self) -> "QueryPlan":
        if not self.video_queries or not self.article_queries:
            msg = "query plan needs at least one video and one article query"
            raise ValueError(msg)
        return self


# ---------------------------------------------------------------------------
# Roadmap, milestones, assignments
# ---------------------------------------------------------------------------


class Milestone(BaseModel):
    """One roadmap step produced by the external roadmap generator.

    Unknown fields are preserved so they pass through enrichment untouched.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    title: str
    description: str = ""
    difficulty: SkillLevel = "beginner"
    order: int = 0
    resources: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("difficulty", mode="before")
    @classmethod
    def normalize_difficulty(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v


class Roadmap(BaseModel):
    model_config = ConfigDict(extra="allow")

    topic: str
    skill_level: SkillLevel = "beginner"
    milestones: list[Milestone]


class FallbackContent(BaseModel):
    """Deterministic placeholder used when real candidates run out."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    url: str = FALLBACK_URL
    source: str
    quality_score: int = Field(ge=0, le=100)
    type: Literal["fallback"] = "fallback"


class Assignment(BaseModel):
    """Binding of a real candidate or a fallback placeholder to one milestone slot."""

    model_config = ConfigDict(frozen=True)

    milestone_index: int = Field(ge=0)
    content_type: ContentType
    slot_index: int = Field(ge=0)
    candidate: ScoredCandidate | None = None
    fallback: FallbackContent | None = None
    relevance: float = 0.0

    @model_validator(mode="after")
    def exactly_one_item(self) -> "Assignment":
        if (self.candidate is None) == (self.fallback is None):
            msg = "assignment needs exactly one of candidate or fallback"
            raise ValueError(msg)
        return self

    @property
    def is_fallback(self) -> bool:
        return self.fallback is not None


class MilestoneCounts(BaseModel):
    milestone_index: int
    real_videos: int = 0
    fallback_videos: int = 0
    real_articles: int = 0
    fallback_articles: int = 0


class EnrichedRoadmap(BaseModel):
    """Roadmap with per-milestone content arrays and search metadata."""

    model_config = ConfigDict(extra="allow")

    topic: str
    skill_level: SkillLevel
    milestones: list[dict[str, Any]]
    metadata: dict[str, Any] = Field(default_factory=dict)
