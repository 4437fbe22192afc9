"""Tests for quality scoring, ranking and adaptive threshold relaxation."""

from datetime import datetime, timedelta, timezone

import pytest

from content_engine.core.config import QualityConfig
from content_engine.core.schemas import (
    ArticleCandidate,
    ChannelStats,
    QualityBreakdown,
    ScoredCandidate,
    VideoCandidate,
)
from content_engine.pipeline.quality import (
    NEUTRAL_FRESHNESS,
    UNKNOWN_DOMAIN_AUTHORITY,
    channel_authority_score,
    domain_authority_score,
    educational_priority_score,
    effective_duration_minutes,
    engagement_score,
    freshness_score,
    initial_thresholds,
    passes_thresholds,
    quality_insights,
    rank_key,
    relax_thresholds,
    relevance_score,
    score_candidate,
    score_candidates,
    select_candidates,
    technical_score,
)

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)
CONFIG = QualityConfig()


def _video(**overrides) -> VideoCandidate:
    data = {
        "id": "v1",
        "title": "Guitar lesson",
        "url": "https://www.youtube.com/watch?v=v1",
    }
    data.update(overrides)
    if "url" not in overrides:
        data["url"] = f"https://www.youtube.com/watch?v={data['id']}"
    return VideoCandidate(**data)


def _article(**overrides) -> ArticleCandidate:
    data = {
        "id": "a1",
        "title": "Guitar guide",
        "url": "https://freecodecamp.org/a1",
        "source_domain": "freecodecamp.org",
    }
    data.update(overrides)
    return ArticleCandidate(**data)


def _scored(candidate, score: int, authority: float = 0.0) -> ScoredCandidate:
    return ScoredCandidate(
        candidate=candidate, breakdown=QualityBreakdown(authority_score=authority), score=score,
    )


# ---------------------------------------------------------------------------
# Sub-scores
# ---------------------------------------------------------------------------


class TestFreshness:
    @pytest.mark.parametrize(
        ("days", "expected"),
        [(10, 100.0), (60, 80.0), (200, 60.0), (500, 40.0), (1000, 20.0)],
    )
    def test_step_down(self, days: int, expected: float) -> None:
        assert freshness_score(NOW - timedelta(days=days), NOW) == expected

    def test_unknown_date_is_neutral(self) -> None:
        assert freshness_score(None, NOW) == NEUTRAL_FRESHNESS


class TestRelevance:
    def test_query_words_in_title_count(self) -> None:
        hit = relevance_score("Acoustic guitar chords", "", "acoustic guitar chords", None)
        miss = relevance_score("Cooking pasta", "", "acoustic guitar chords", None)
        assert hit == 30
        assert miss == 0

    def test_skill_level_keywords(self) -> None:
        score = relevance_score("Guitar for beginners", "simple and easy", "", "beginner")
        assert score == 15

    def test_topic_phrase_bonuses(self) -> None:
        title, description = "Acoustic guitar chords", "An acoustic guitar primer"
        assert relevance_score(title, description, "", None) == 0
        assert relevance_score(title, description, "", None, topic="Acoustic Guitar") == 70
        assert relevance_score(title, "", "", None, topic="acoustic guitar") == 50

    def test_topic_phrase_must_appear_verbatim(self) -> None:
        assert relevance_score("Guitar, acoustic style", "", "", None, topic="acoustic guitar") == 0

    def test_bounded(self) -> None:
        text = " ".join(["beginner basic intro first simple easy lesson module chapter"] * 5)
        assert relevance_score(text, text, "beginner basic intro", "beginner") <= 100


class TestVideoSubScores:
    def test_engagement_zero_views(self) -> None:
        assert engagement_score(_video(view_count=0, like_count=10)) == 0

    def test_engagement_view_band_only(self) -> None:
        assert engagement_score(_video(view_count=2_000_000)) == 60

    def test_engagement_rate_capped(self) -> None:
        assert engagement_score(_video(view_count=10_000, like_count=500)) == 80

    def test_educational_channel_without_stats(self) -> None:
        assert channel_authority_score(_video(channel_id="UC8butISFwT-Wl7EV0hUK0BQ")) == 80
        assert channel_authority_score(_video(channel_id="UCunknown")) == 0

    def test_channel_stats(self) -> None:
        channel = ChannelStats(
            id="UCbig", subscriber_count=2_000_000, video_count=200, view_count=40_000_000,
        )
        assert channel_authority_score(_video(channel_id="UCbig", channel=channel)) == 80

    def test_educational_flag_sets_floor(self) -> None:
        channel = ChannelStats(id="UCsmall", subscriber_count=50, is_educational=True)
        assert channel_authority_score(_video(channel_id="UCsmall", channel=channel)) == 80

    def test_how_to_title_weighs_most(self) -> None:
        assert educational_priority_score(_video(title="How to play a G chord")) == 40

    def test_effective_duration(self) -> None:
        assert effective_duration_minutes(_video(duration_seconds=600)) == 10.0
        assert effective_duration_minutes(_video(title="Quick tips")) == 6.0

    def test_technical_score(self) -> None:
        video = _video(
            duration_seconds=900,
            published_at=NOW - timedelta(days=100),
            definition="hd",
            has_captions=True,
        )
        assert technical_score(video, NOW) == 100


class TestDomainAuthority:
    def test_known_domain(self) -> None:
        assert domain_authority_score("developer.mozilla.org") == 95

    def test_subdomain_inherits_parent(self) -> None:
        assert domain_authority_score("news.freecodecamp.org") == 80

    @pytest.mark.parametrize("domain", ["blog.example.com", "unknown.io", ""])
    def test_unknown_domain(self, domain: str) -> None:
        assert domain_authority_score(domain) == UNKNOWN_DOMAIN_AUTHORITY


# ---------------------------------------------------------------------------
# Composite score
# ---------------------------------------------------------------------------


class TestScoreCandidate:
    def test_minimal_video_scores_technical_bonus_only(self) -> None:
        scored = score_candidate(_video(title="x"), CONFIG, now=NOW)
        assert scored.breakdown.bonus_score == 40
        assert scored.score == 4

    def test_rich_video_within_bounds(self) -> None:
        video = _video(
            title="How to play guitar - complete tutorial for beginners",
            description="Learn and practice with examples",
            query="guitar tutorial",
            view_count=5_000_000,
            like_count=400_000,
            comment_count=50_000,
            duration_seconds=1200,
            published_at=NOW - timedelta(days=5),
            definition="hd",
            has_captions=True,
            tags=("how to", "tutorial"),
            channel_id="UC8butISFwT-Wl7EV0hUK0BQ",
        )
        scored = score_candidate(video, CONFIG, "beginner", NOW)
        assert 0 <= scored.score <= 100
        assert scored.score > score_candidate(_video(title="x"), CONFIG, now=NOW).score

    def test_article_authority_dominates(self) -> None:
        mdn = _article(id="a1", url="https://developer.mozilla.org/x", source_domain="developer.mozilla.org")
        unknown = _article(id="a2", url="https://blog.example.com/x", source_domain="blog.example.com")
        assert score_candidate(mdn, CONFIG, now=NOW).score > score_candidate(unknown, CONFIG, now=NOW).score

    def test_article_breakdown_bounded(self) -> None:
        article = _article(content_kind="tutorial", has_code_examples=True, content_depth="advanced")
        scored = score_candidate(article, CONFIG, now=NOW)
        assert scored.breakdown.depth_score == 85
        assert scored.breakdown.bonus_score == 100
        assert scored.breakdown.engagement_score == 50
        assert 0 <= scored.score <= 100

    @pytest.mark.parametrize("topic", [None, "acoustic guitar"])
    def test_relevant_video_outranks_popular_off_topic_one(self, topic: str | None) -> None:
        on_topic = _video(
            id="on",
            title="Acoustic guitar chords tutorial for beginners",
            description="Learn your first chords step by step",
            query="acoustic guitar chords",
            view_count=1_000,
            like_count=20,
            published_at=NOW - timedelta(days=100),
        )
        popular = _video(
            id="off",
            title="Funny cat compilation",
            description="The best cats of the year",
            query="acoustic guitar chords",
            view_count=5_000_000,
            like_count=250_000,
            comment_count=10_000,
            published_at=NOW - timedelta(days=100),
        )
        ranked = score_candidates([popular, on_topic], CONFIG, "beginner", NOW, topic)
        assert [s.candidate.id for s in ranked] == ["on", "off"]
        assert ranked[1].breakdown.engagement_score > ranked[0].breakdown.engagement_score

    def test_relevant_article_outranks_off_topic_one(self) -> None:
        on_topic = _article(id="on", title="Acoustic guitar chords", query="acoustic guitar chords")
        off_topic = _article(
            id="off",
            title="Sourdough bread baking",
            url="https://freecodecamp.org/a2",
            query="acoustic guitar chords",
            provider_score=1.0,
        )
        on_score = score_candidate(on_topic, CONFIG, now=NOW).score
        off_score = score_candidate(off_topic, CONFIG, now=NOW).score
        assert on_score > off_score

    def test_score_candidates_sorted(self) -> None:
        low = _video(id="low", view_count=100)
        high = _video(id="high", view_count=3_000_000, like_count=90_000)
        ranked = score_candidates([low, high], CONFIG, now=NOW)
        assert [s.candidate.id for s in ranked] == ["high", "low"]


class TestRankKey:
    def test_tie_breaks(self) -> None:
        older = _scored(_video(id="old", published_at=NOW - timedelta(days=90)), 50, 60)
        newer = _scored(_video(id="new", published_at=NOW - timedelta(days=1)), 50, 60)
        undated = _scored(_video(id="none"), 50, 60)
        strong = _scored(_video(id="auth"), 50, 90)
        best = _scored(_video(id="best"), 70, 0)

        ranked = sorted([undated, older, strong, newer, best], key=rank_key)
        assert [s.candidate.id for s in ranked] == ["best", "auth", "new", "old", "none"]


# ---------------------------------------------------------------------------
# Adaptive thresholds
# ---------------------------------------------------------------------------


class TestThresholds:
    def test_initial_video(self) -> None:
        t = initial_thresholds("video", CONFIG)
        assert (t.min_quality, t.min_view_count, t.max_age_days, t.step) == (5, 1_000_000, 3650, 0)

    def test_initial_article(self) -> None:
        t = initial_thresholds("article", CONFIG)
        assert (t.min_quality, t.min_authority, t.max_age_days) == (15, 10, 1825)

    def test_video_relaxation_steps(self) -> None:
        first = relax_thresholds(initial_thresholds("video", CONFIG), CONFIG, "beginner")
        assert first is not None
        assert first.step == 1
        assert first.min_quality == pytest.approx(3.5)
        assert first.min_view_count == 500_000
        assert first.max_age_days == pytest.approx(5475)

        second = relax_thresholds(first, CONFIG, "beginner")
        assert second is not None
        assert second.min_quality == pytest.approx(2.5)
        assert second.min_view_count == 300_000
        assert second.max_age_days == pytest.approx(7300)

        assert relax_thresholds(second, CONFIG, "beginner") is None

    def test_view_floor_follows_skill_level(self) -> None:
        first = relax_thresholds(initial_thresholds("video", CONFIG), CONFIG, "intermediate")
        assert first is not None
        assert first.min_view_count == 50_000

    def test_article_relaxation_steps(self) -> None:
        first = relax_thresholds(initial_thresholds("article", CONFIG), CONFIG)
        assert first is not None
        assert first.min_quality == pytest.approx(10.5)
        assert first.min_authority == pytest.approx(7)
        second = relax_thresholds(first, CONFIG)
        assert second is not None
        assert second.min_quality == pytest.approx(7.5)
        assert second.min_authority == pytest.approx(5)
        assert second.max_age_days == pytest.approx(3650)

    @pytest.mark.parametrize("content_type", ["video", "article"])
    @pytest.mark.parametrize("skill_level", ["beginner", "intermediate", "advanced", None])
    def test_relaxation_never_tightens(self, content_type: str, skill_level: str | None) -> None:
        current = initial_thresholds(content_type, CONFIG)
        while (nxt := relax_thresholds(current, CONFIG, skill_level)) is not None:
            assert nxt.min_quality <= current.min_quality
            assert nxt.min_authority <= current.min_authority
            assert nxt.min_view_count <= current.min_view_count
            assert nxt.max_age_days >= current.max_age_days
            current = nxt
        assert current.step <= 2

    def test_passes_thresholds(self) -> None:
        t = initial_thresholds("video", CONFIG)
        assert passes_thresholds(_scored(_video(view_count=1_000_000), 5), t, NOW)
        assert not passes_thresholds(_scored(_video(view_count=999), 90), t, NOW)


class TestSelectCandidates:
    def _pool(self, count: int, views: int) -> list[ScoredCandidate]:
        return [_scored(_video(id=f"v{i}", view_count=views), 60 - i) for i in range(count)]

    def test_no_relaxation_when_target_met(self) -> None:
        result = select_candidates(self._pool(4, 2_000_000), "video", 3, CONFIG, "beginner", NOW)
        assert [s.candidate.id for s in result.selected] == ["v0", "v1", "v2"]
        assert result.relaxation_steps == 0
        assert result.considered == 4

    def test_relaxes_until_target_reached(self) -> None:
        pool = self._pool(2, 400_000)
        assert not any(passes_thresholds(s, initial_thresholds("video", CONFIG), NOW) for s in pool)

        result = select_candidates(pool, "video", 2, CONFIG, "beginner", NOW)

        assert len(result.selected) == 2
        assert result.relaxation_steps == 2
        assert len(result.history) == 3

    def test_stops_at_first_sufficient_step(self) -> None:
        result = select_candidates(self._pool(3, 60_000), "video", 3, CONFIG, "intermediate", NOW)
        assert len(result.selected) == 3
        assert result.relaxation_steps == 1

    def test_relaxation_bounded_when_pool_too_small(self) -> None:
        result = select_candidates(self._pool(1, 10), "video", 3, CONFIG, "beginner", NOW)
        assert result.selected == []
        assert result.relaxation_steps == 2

    def test_zero_target(self) -> None:
        result = select_candidates(self._pool(2, 2_000_000), "video", 0, CONFIG, now=NOW)
        assert result.selected == []
        assert result.relaxation_steps == 0

    def test_negative_target_raises(self) -> None:
        with pytest.raises(ValueError, match="target"):
            select_candidates([], "video", -1, CONFIG)

    def test_articles_filtered_on_authority(self) -> None:
        pool = [
            _scored(_article(id="good"), 40, authority=80),
            _scored(_article(id="weak", url="https://x.io/a"), 40, authority=3),
        ]
        result = select_candidates(pool, "article", 2, CONFIG, now=NOW)
        assert [s.candidate.id for s in result.selected] == ["good"]
        assert result.relaxation_steps == 2


# ---------------------------------------------------------------------------
# Insights
# ---------------------------------------------------------------------------


class TestQualityInsights:
    def test_empty_pool(self) -> None:
        insights = quality_insights([])
        assert insights.total == 0
        assert insights.average_quality == 0.0
        assert insights.quality_distribution == {}

    def test_bands_and_content_types(self) -> None:
        pool = [
            _scored(_video(id="v1"), 95, authority=92),
            _scored(_video(id="v2"), 85, authority=75),
            _scored(_article(id="a1"), 40, authority=30),
        ]

        insights = quality_insights(pool)

        assert insights.total == 3
        assert insights.average_quality == pytest.approx(73.3)
        assert insights.quality_distribution == {
            "90-100 (Excellent)": 1,
            "80-89 (Very Good)": 1,
            "70-79 (Good)": 0,
            "60-69 (Fair)": 0,
            "0-59 (Poor)": 1,
        }
        assert insights.authority_distribution == {
            "90-100 (Expert)": 1,
            "70-89 (Professional)": 1,
            "50-69 (Reliable)": 0,
            "0-49 (Unverified)": 1,
        }
        assert insights.content_types["video"].count == 2
        assert insights.content_types["video"].average_quality == 90.0
        assert insights.content_types["article"].average_quality == 40.0

    def test_camel_case_dump(self) -> None:
        dumped = quality_insights([_scored(_video(), 50)]).model_dump(by_alias=True)
        assert dumped["averageQuality"] == 50.0
        assert dumped["contentTypes"]["video"] == {"count": 1, "averageQuality": 50.0}
