"""Multi-factor quality scoring with adaptive thresholds.

Score range: 0-100 (rounded, clamped). Every sub-score in QualityBreakdown is
clamped to 0-100 before weighting. Video weights lean on engagement, article
weights favour domain authority. Both weigh query relevance above raw
popularity (see VideoWeights / ArticleWeights).
"""

import logging
from datetime import datetime, timezone

from content_engine.core.config import (
    ArticleQualityConfig,
    QualityConfig,
    RelaxationStep,
    VideoQualityConfig,
)
from content_engine.core.schemas import (
    AdaptiveThresholds,
    ArticleCandidate,
    ContentType,
    ContentTypeQuality,
    QualityBreakdown,
    QualityInsights,
    ScoredCandidate,
    VideoCandidate,
)
from content_engine.pipeline.filters import ThresholdFilter
from content_engine.pipeline.signals import (
    age_in_days,
    count_matches,
    duration_category,
    estimate_duration_minutes,
)

logger = logging.getLogger(__name__)

NEUTRAL_FRESHNESS = 50.0
NEUTRAL_ENGAGEMENT = 50.0
EDUCATIONAL_CHANNEL_FLOOR = 80.0
UNKNOWN_DOMAIN_AUTHORITY = 30.0
TOPIC_IN_TITLE_BONUS = 50.0
TOPIC_IN_DESCRIPTION_BONUS = 20.0

EDUCATIONAL_CHANNELS = frozenset({
    "UC8butISFwT-Wl7EV0hUK0BQ",  # freeCodeCamp
    "UCWv7vMbMWH4-V0ZXdmDpPBA",  # Programming with Mosh
    "UCVTlvUkGslCV_h-nSAId8Sw",  # CheatSheet
    "UCJ5v_MCY6GNUBTO8-D3XoAg",  # Dev Ed
    "UCW5YeuERMmlnqo4oq8vwUpg",  # The Net Ninja
    "UC29ju8bIPH5as8OGnQzwJyA",  # Traversy Media
    "UCsT0YIqwnpJCM-mx7-gSA4Q",  # TEDx Talks
    "UCJ24N4O0bP7LGLBDvye7oCA",  # Computerphile
    "UCBa659QWEk1AI4Tg--mrJ2A",  # Tom Scott
    "UCsBjURrPoezykLs9EqgamOA",  # Fireship
})

DOMAIN_AUTHORITY: dict[str, float] = {
    # official documentation
    "developer.mozilla.org": 95, "docs.python.org": 95, "nodejs.org": 90,
    "react.dev": 90, "vuejs.org": 90, "angular.io": 90,
    "docs.microsoft.com": 90, "learn.microsoft.com": 90, "cloud.google.com": 90,
    "aws.amazon.com": 90, "docs.oracle.com": 90, "go.dev": 90,
    "rust-lang.org": 90, "doc.rust-lang.org": 90, "swift.org": 90,
    "kubernetes.io": 85, "docker.com": 85, "docs.docker.com": 85,
    "kotlinlang.org": 85, "nextjs.org": 85, "svelte.dev": 85, "laravel.com": 85,
    "flask.palletsprojects.com": 85, "djangoproject.com": 85,
    # academic
    "arxiv.org": 85, "ieee.org": 85, "acm.org": 85,
    "coursera.org": 80, "edx.org": 80, "khan-academy.org": 80, "khanacademy.org": 80,
    # tutorials
    "freecodecamp.org": 80, "css-tricks.com": 80, "smashingmagazine.com": 80,
    "alistapart.com": 80, "codecademy.com": 75, "udacity.com": 75,
    "w3schools.com": 70,
    # reference and community
    "devdocs.io": 75, "stackoverflow.com": 75, "github.com": 70,
    "towardsdatascience.com": 75, "dev.to": 65, "hackernoon.com": 65, "medium.com": 60,
}

# -- video keyword tables ----------------------------------------------------

_CHANNEL_QUALITY_KEYWORDS = (
    "tutorial", "guide", "how to", "learn", "explained", "tips", "tricks", "demo", "example",
)
_TITLE_QUALITY_KEYWORDS = (
    "tutorial", "guide", "learn", "explained", "tips", "tricks",
    "demo", "example", "walkthrough", "step by step", "complete",
)
_DESCRIPTION_QUALITY_KEYWORDS = (
    "learn", "understand", "master", "practice", "example",
    "demonstration", "walkthrough", "comprehensive", "detailed", "show",
)
_TAG_QUALITY_KEYWORDS = (
    "tutorial", "guide", "tips", "tricks", "demo", "example",
    "learn", "explained", "walkthrough", "complete",
)
_SKILL_LEVEL_KEYWORDS: dict[str, tuple[str, ...]] = {
    "beginner": ("beginner", "basic", "intro", "starting", "first", "simple", "easy"),
    "intermediate": ("intermediate", "advanced", "next level", "building on", "deeper"),
    "advanced": ("advanced", "expert", "master", "professional", "complex", "sophisticated"),
}
_STRUCTURE_KEYWORDS = (
    "part 1", "episode", "chapter", "section", "module", "lesson",
    "step 1", "complete guide", "full course", "comprehensive",
)
_PRACTICAL_KEYWORDS = (
    "example", "demo", "build", "create", "project", "hands-on",
    "practice", "exercise", "workshop", "lab",
)
_DURATION_POINTS = {"medium": 40, "long": 35, "short": 25, "extended": 20, "micro": 10}
_VIEW_BANDS = (
    (1_000_000, 60), (500_000, 55), (100_000, 50), (50_000, 45),
    (10_000, 40), (5_000, 35), (1_000, 30),
)

# -- article keyword tables --------------------------------------------------

_KIND_BONUS = {"tutorial": 20, "documentation": 15, "guide": 15, "research": 10, "article": 5}
_EDUCATIONAL_KEYWORDS = ("learn", "understand", "explain", "demonstrate", "example", "practice")
_DEPTH_LEVEL_SCORE = {"advanced": 100.0, "intermediate": 70.0, "basic": 40.0}

# (label, inclusive floor), highest band first.
_QUALITY_BANDS = (
    ("90-100 (Excellent)", 90), ("80-89 (Very Good)", 80), ("70-79 (Good)", 70),
    ("60-69 (Fair)", 60), ("0-59 (Poor)", 0),
)
_AUTHORITY_BANDS = (
    ("90-100 (Expert)", 90), ("70-89 (Professional)", 70),
    ("50-69 (Reliable)", 50), ("0-49 (Unverified)", 0),
)


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


# ---------------------------------------------------------------------------
# Shared sub-scores
# ---------------------------------------------------------------------------


def freshness_score(published_at: datetime | None, now: datetime | None = None) -> float:
    """Step-down decay of publish age; unknown dates score neutral."""
    days = age_in_days(published_at, now)
    if days is None:
        return NEUTRAL_FRESHNESS
    if days < 30:
        return 100.0
    if days < 90:
        return 80.0
    if days < 365:
        return 60.0
    if days < 730:
        return 40.0
    return 20.0


def relevance_score(
    title: str,
    description: str,
    query: str,
    skill_level: str | None,
    topic: str | None = None,
) -> float:
    """Keyword overlap between the candidate text and the query / skill vocabulary.

    The whole topic phrase appearing verbatim in the title or description
    earns the largest bonuses.
    """
    title = title.lower()
    description = description.lower()
    score = 0.0

    phrase = (topic or "").strip().lower()
    if phrase:
        if phrase in title:
            score += TOPIC_IN_TITLE_BONUS
        if phrase in description:
            score += TOPIC_IN_DESCRIPTION_BONUS

    query_words = [w for w in query.lower().split() if len(w) > 2]
    if query_words:
        title_hits = sum(1 for w in query_words if w in title)
        desc_hits = sum(1 for w in query_words if w in description)
        score += min(title_hits / len(query_words) * 30, 30)
        score += min(desc_hits / len(query_words) * 10, 10)

    text = f"{title} {description}"
    if skill_level:
        level_keywords = _SKILL_LEVEL_KEYWORDS.get(skill_level, ())
        score += min(count_matches(text, level_keywords) * 5, 25)
    score += min(count_matches(text, _STRUCTURE_KEYWORDS) * 4, 20)
    score += min(count_matches(text, _PRACTICAL_KEYWORDS) * 3, 15)
    return _clamp(score)


# ---------------------------------------------------------------------------
# Video sub-scores
# ---------------------------------------------------------------------------


def engagement_score(video: VideoCandidate) -> float:
    """View-count band plus a capped like/comment engagement rate."""
    if video.view_count == 0:
        return 0.0
    view_points = next((pts for floor, pts in _VIEW_BANDS if video.view_count >= floor), 20)
    rate = (video.like_count + video.comment_count) / video.view_count * 1000
    return _clamp(view_points + min(round(rate * 8), 40))


def channel_authority_score(video: VideoCandidate) -> float:
    channel = video.channel
    if channel is None:
        return EDUCATIONAL_CHANNEL_FLOOR if video.channel_id in EDUCATIONAL_CHANNELS else 0.0

    score = 0.0
    subs = channel.subscriber_count
    if subs > 1_000_000:
        score += 40
    elif subs > 100_000:
        score += 30
    elif subs > 10_000:
        score += 20
    elif subs > 1_000:
        score += 10

    videos = channel.video_count
    if videos > 100:
        score += 20
    elif videos > 50:
        score += 15
    elif videos > 20:
        score += 10
    elif videos > 5:
        score += 5

    if channel.view_count > 0 and videos > 0:
        avg_views = channel.view_count / videos
        if avg_views > 100_000:
            score += 20
        elif avg_views > 10_000:
            score += 15
        elif avg_views > 1_000:
            score += 10
        elif avg_views > 100:
            score += 5

    score += min(count_matches(channel.description.lower(), _CHANNEL_QUALITY_KEYWORDS) * 3, 20)

    if channel.is_educational or channel.id in EDUCATIONAL_CHANNELS:
        score = max(score, EDUCATIONAL_CHANNEL_FLOOR)
    return _clamp(score)


def educational_priority_score(video: VideoCandidate) -> float:
    """Instructional signal from title, description, tags and channel; "how to" weighs heaviest."""
    title = video.title.lower()
    description = video.description.lower()
    score = 0.0

    if "how to" in title:
        score += 40
    else:
        score += min(count_matches(title, _TITLE_QUALITY_KEYWORDS) * 3, 20)

    if "how to" in description:
        score += 15
    score += min(count_matches(description, _DESCRIPTION_QUALITY_KEYWORDS), 5)

    tags = [t.lower() for t in video.tags]
    if any("how to" in t for t in tags):
        score += 15
    tag_hits = sum(1 for t in tags if any(kw in t for kw in _TAG_QUALITY_KEYWORDS))
    score += min(tag_hits, 5)

    if video.channel is not None:
        channel_desc = video.channel.description.lower()
        if "how to" in channel_desc or "tutorial" in channel_desc:
            score += 20
        elif "guide" in channel_desc or "tips" in channel_desc:
            score += 10
    return _clamp(score)


def effective_duration_minutes(video: VideoCandidate) -> float:
    """Parsed duration, or a keyword-based estimate when the provider gave none."""
    if video.duration_seconds:
        return video.duration_seconds / 60
    return float(estimate_duration_minutes(video.title, video.description))


def technical_score(video: VideoCandidate, now: datetime | None = None) -> float:
    score = float(_DURATION_POINTS[duration_category(effective_duration_minutes(video))])
    days = age_in_days(video.published_at, now)
    if days is not None:
        if days < 365:
            score += 30
        elif days < 730:
            score += 20
        elif days < 1095:
            score += 10
    if video.definition.lower() == "hd":
        score += 15
    if video.has_captions:
        score += 15
    return _clamp(score)


def score_video(
    video: VideoCandidate,
    config: VideoQualityConfig,
    skill_level: str | None = None,
    now: datetime | None = None,
    topic: str | None = None,
) -> ScoredCandidate:
    breakdown = QualityBreakdown(
        authority_score=channel_authority_score(video),
        freshness_score=freshness_score(video.published_at, now),
        relevance_score=relevance_score(
            video.title, video.description, video.query, skill_level, topic,
        ),
        engagement_score=engagement_score(video),
        depth_score=educational_priority_score(video),
        bonus_score=technical_score(video, now),
    )
    return ScoredCandidate(
        candidate=video,
        breakdown=breakdown,
        score=_weighted(breakdown, config.weights.model_dump()),
    )


# ---------------------------------------------------------------------------
# Article sub-scores
# ---------------------------------------------------------------------------


def domain_authority_score(domain: str) -> float:
    """Known educational domains score from the table; subdomains inherit their parent."""
    domain = domain.lower()
    while domain:
        if domain in DOMAIN_AUTHORITY:
            return DOMAIN_AUTHORITY[domain]
        _, _, domain = domain.partition(".")
        if "." not in domain:
            break
    return UNKNOWN_DOMAIN_AUTHORITY


def educational_value_score(article: ArticleCandidate) -> float:
    score = 50.0 + _KIND_BONUS[article.content_kind]
    if article.has_code_examples:
        score += 15
    text = f"{article.title} {article.description}".lower()
    score += min(count_matches(text, _EDUCATIONAL_KEYWORDS) * 5, 20)
    return _clamp(score)


def article_bonus_score(article: ArticleCandidate) -> float:
    """Depth level and code examples, blended 60/40."""
    level = _DEPTH_LEVEL_SCORE[article.content_depth]
    code = 100.0 if article.has_code_examples else 0.0
    return _clamp(0.6 * level + 0.4 * code)


def score_article(
    article: ArticleCandidate,
    config: ArticleQualityConfig,
    skill_level: str | None = None,
    now: datetime | None = None,
    topic: str | None = None,
) -> ScoredCandidate:
    engagement = (
        article.provider_score * 100
        if article.provider_score is not None
        else NEUTRAL_ENGAGEMENT
    )
    breakdown = QualityBreakdown(
        authority_score=domain_authority_score(article.source_domain),
        freshness_score=freshness_score(article.published_at, now),
        relevance_score=relevance_score(
            article.title, article.description, article.query, skill_level, topic,
        ),
        engagement_score=_clamp(engagement),
        depth_score=educational_value_score(article),
        bonus_score=article_bonus_score(article),
    )
    return ScoredCandidate(
        candidate=article,
        breakdown=breakdown,
        score=_weighted(breakdown, config.weights.model_dump()),
    )


def _weighted(breakdown: QualityBreakdown, weights: dict[str, float]) -> int:
    total = sum(getattr(breakdown, f"{name}_score") * w for name, w in weights.items())
    return int(round(_clamp(total)))


# ---------------------------------------------------------------------------
# Batch scoring and ranking
# ---------------------------------------------------------------------------


def score_candidate(
    candidate: VideoCandidate | ArticleCandidate,
    config: QualityConfig,
    skill_level: str | None = None,
    now: datetime | None = None,
    topic: str | None = None,
) -> ScoredCandidate:
    """Score a single candidate with the rules for its content type."""
    if isinstance(candidate, VideoCandidate):
        return score_video(candidate, config.video, skill_level, now, topic)
    return score_article(candidate, config.article, skill_level, now, topic)


def rank_key(scored: ScoredCandidate) -> tuple[float, float, float]:
    """Sort key: score desc, then authority desc, then most recent first."""
    published = scored.candidate.published_at
    if published is not None and published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)
    recency = published.timestamp() if published is not None else float("-inf")
    return (-scored.score, -scored.breakdown.authority_score, -recency)


def score_candidates(
    candidates: list[VideoCandidate | ArticleCandidate],
    config: QualityConfig,
    skill_level: str | None = None,
    now: datetime | None = None,
    topic: str | None = None,
) -> list[ScoredCandidate]:
    """Score a batch, returning ScoredCandidate list in rank order."""
    scored = [score_candidate(c, config, skill_level, now, topic) for c in candidates]
    scored.sort(key=rank_key)
    return scored


def _band(value: float, bands: tuple[tuple[str, int], ...]) -> str:
    return next(label for label, floor in bands if value >= floor)


def quality_insights(scored: list[ScoredCandidate]) -> QualityInsights:
    """Average score plus score, authority and content-type breakdowns."""
    if not scored:
        return QualityInsights()

    quality = {label: 0 for label, _ in _QUALITY_BANDS}
    authority = {label: 0 for label, _ in _AUTHORITY_BANDS}
    by_type: dict[str, list[int]] = {}
    for s in scored:
        quality[_band(s.score, _QUALITY_BANDS)] += 1
        authority[_band(s.breakdown.authority_score, _AUTHORITY_BANDS)] += 1
        by_type.setdefault(s.candidate.content_type, []).append(s.score)

    return QualityInsights(
        total=len(scored),
        average_quality=round(sum(s.score for s in scored) / len(scored), 1),
        quality_distribution=quality,
        authority_distribution=authority,
        content_types={
            kind: ContentTypeQuality(
                count=len(scores), average_quality=round(sum(scores) / len(scores), 1),
            )
            for kind, scores in by_type.items()
        },
    )


# ---------------------------------------------------------------------------
# Adaptive thresholds
# ---------------------------------------------------------------------------


def initial_thresholds(content_type: ContentType, config: QualityConfig) -> AdaptiveThresholds:
    """Static thresholds from configuration (step 0)."""
    if content_type == "video":
        return AdaptiveThresholds(
            content_type="video",
            min_quality=config.video.min_quality_score,
            min_view_count=config.video.min_view_count,
            max_age_days=config.video.max_age_days,
        )
    return AdaptiveThresholds(
        content_type="article",
        min_quality=config.article.min_quality_score,
        min_authority=config.article.min_authority_score,
        max_age_days=config.article.max_age_days,
    )


def relax_thresholds(
    current: AdaptiveThresholds,
    config: QualityConfig,
    skill_level: str | None = None,
) -> AdaptiveThresholds | None:
    """Return the next relaxation step, or None when the bound is reached.

    Factors apply to the static values; each result is clamped against
    ``current`` so a step can only loosen a cutoff.
    """
    base = initial_thresholds(current.content_type, config)
    steps = _relaxation_steps(current.content_type, config)
    if current.step >= len(steps):
        return None
    step: RelaxationStep = steps[current.step]

    min_quality = min(current.min_quality, max(step.quality_floor, base.min_quality * step.quality_factor))
    min_authority = min(
        current.min_authority,
        max(step.authority_floor, base.min_authority * step.authority_factor),
    )
    min_view_count = current.min_view_count
    if current.content_type == "video":
        level_base = config.video.base_view_counts.get(
            skill_level or "", config.video.base_view_counts.get("intermediate", base.min_view_count),
        )
        min_view_count = min(current.min_view_count, int(level_base * step.view_count_factor))
    max_age_days = max(current.max_age_days, base.max_age_days * step.age_factor)

    return AdaptiveThresholds(
        content_type=current.content_type,
        min_quality=min_quality,
        min_authority=min_authority,
        min_view_count=min_view_count,
        max_age_days=max_age_days,
        step=current.step + 1,
    )


def passes_thresholds(
    scored: ScoredCandidate,
    thresholds: AdaptiveThresholds,
    now: datetime | None = None,
) -> bool:
    return ThresholdFilter(thresholds, now).passes(scored)


def _relaxation_steps(content_type: ContentType, config: QualityConfig) -> list[RelaxationStep]:
    if content_type == "video":
        return config.video.relaxation
    return config.article.relaxation


class SelectionResult:
    """Survivors of adaptive filtering and the thresholds that admitted them."""

    def __init__(
        self,
        selected: list[ScoredCandidate],
        thresholds: AdaptiveThresholds,
        history: list[AdaptiveThresholds],
        considered: int,
    ) -> None:
        self.selected = selected
        self.thresholds = thresholds
        self.history = history
        self.considered = considered

    @property
    def relaxation_steps(self) -> int:
        return self.thresholds.step


def select_candidates(
    scored: list[ScoredCandidate],
    content_type: ContentType,
    target: int,
    config: QualityConfig,
    skill_level: str | None = None,
    now: datetime | None = None,
) -> SelectionResult:
    """Filter ranked candidates, relaxing thresholds until ``target`` pass or the bound is hit.

    Returns at most ``target`` candidates in rank order.
    """
    if target < 0:
        msg = f"target must not be negative, got {target}"
        raise ValueError(msg)

    ranked = sorted(scored, key=rank_key)
    thresholds = initial_thresholds(content_type, config)
    history = [thresholds]
    passing = ThresholdFilter(thresholds, now)(ranked)

    while len(passing) < target:
        relaxed = relax_thresholds(thresholds, config, skill_level)
        if relaxed is None:
            break
        thresholds = relaxed
        history.append(thresholds)
        passing = ThresholdFilter(thresholds, now)(ranked)

    if thresholds.step:
        logger.info(
            "Relaxed %s thresholds %d step(s): quality>=%.1f views>=%d authority>=%.1f age<=%.0fd",
            content_type, thresholds.step, thresholds.min_quality,
            thresholds.min_view_count, thresholds.min_authority, thresholds.max_age_days,
        )
    logger.info(
        "Selected %d/%d %ss (target %d)",
        min(len(passing), target), len(ranked), content_type, target,
    )
    return SelectionResult(
        selected=passing[:target],
        thresholds=thresholds,
        history=history,
        considered=len(ranked),
    )
