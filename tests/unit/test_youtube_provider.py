"""Tests for the YouTube provider: HTTP flow, error mapping, mock mode, fan-out."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from content_engine.core.config import QuotaConfig, VideoProviderConfig
from content_engine.core.schemas import SearchQuery
from content_engine.pipeline.quota_ledger import MINUTE, BudgetExceededError, QuotaLedger
from content_engine.providers.base import ProviderError, classify_http_error
from content_engine.providers.youtube import YouTubeProvider

SEARCH_ITEMS = {
    "items": [
        {"id": {"kind": "youtube#video", "videoId": "abc123"}},
        {"id": {"kind": "youtube#video", "videoId": "def456"}},
    ],
}
VIDEO_ITEMS = {
    "items": [
        {
            "id": "abc123",
            "snippet": {
                "title": "Acoustic Guitar for Beginners",
                "description": "Your first chords",
                "channelId": "UC8butISFwT-Wl7EV0hUK0BQ",
                "channelTitle": "freeCodeCamp.org",
                "publishedAt": "2024-03-01T12:00:00Z",
                "thumbnails": {"high": {"url": "https://i.ytimg.com/abc123.jpg"}},
                "tags": ["guitar"],
            },
            "contentDetails": {"duration": "PT12M5S", "definition": "hd", "caption": "true"},
            "statistics": {"viewCount": "250000", "likeCount": "9000", "commentCount": "300"},
        },
        {
            "id": "def456",
            "snippet": {
                "title": "Advanced fingerstyle",
                "channelId": "UCother",
                "publishedAt": "2023-01-01T00:00:00Z",
            },
            "contentDetails": {"duration": "PT40M"},
            "statistics": {"viewCount": "1200"},
        },
    ],
}
CHANNEL_ITEMS = {
    "items": [
        {
            "id": "UC8butISFwT-Wl7EV0hUK0BQ",
            "snippet": {"title": "freeCodeCamp.org"},
            "statistics": {"subscriberCount": "9000000", "videoCount": "1500", "viewCount": "700000000"},
        },
        {"id": "UCother", "snippet": {"title": "Other"}, "statistics": {"subscriberCount": "100"}},
    ],
}


def _query(text: str = "acoustic guitar tutorial") -> SearchQuery:
    return SearchQuery(text=text, content_type="video", skill_level="beginner")


def _response(status_code: int = 200, payload: dict | None = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    response.text = "error body"
    return response


def _mock_client(*responses: MagicMock) -> AsyncMock:
    client = AsyncMock()
    client.get.side_effect = list(responses)
    return client


def _patched(client: AsyncMock):
    mock_cls = MagicMock()
    mock_cls.return_value.__aenter__.return_value = client
    return patch("content_engine.providers.youtube.httpx.AsyncClient", mock_cls)


def _ledger(per_minute: int = 50) -> QuotaLedger:
    return QuotaLedger("youtube", QuotaConfig(max_requests_per_minute=per_minute), clock=lambda: 10.0)


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------


class TestClassifyHttpError:
    @pytest.mark.parametrize(
        ("status", "kind", "retryable"),
        [
            (400, "api_error", False),
            (401, "invalid_key", False),
            (403, "quota_exceeded", False),
            (429, "quota_exceeded", True),
            (503, "service_unavailable", True),
            (418, "api_error", False),
        ],
    )
    def test_mapping(self, status: int, kind: str, retryable: bool) -> None:
        error = classify_http_error("youtube", status)
        assert isinstance(error, ProviderError)
        assert error.kind == kind
        assert error.retryable is retryable
        assert error.status_code == status

    def test_detail_truncated(self) -> None:
        error = classify_http_error("tavily", 500, "x" * 500)
        assert str(error) == "tavily API returned 500: " + "x" * 200


# ---------------------------------------------------------------------------
# Live flow
# ---------------------------------------------------------------------------


class TestYouTubeSearch:
    async def test_full_flow_normalizes_videos(self) -> None:
        client = _mock_client(
            _response(payload=SEARCH_ITEMS),
            _response(payload=VIDEO_ITEMS),
            _response(payload=CHANNEL_ITEMS),
        )
        ledger = _ledger()
        provider = YouTubeProvider(ledger=ledger, api_key="key")

        with _patched(client):
            videos = await provider.search(_query(), 5)

        assert [v.id for v in videos] == ["abc123", "def456"]
        first = videos[0]
        assert first.url == "https://www.youtube.com/watch?v=abc123"
        assert first.view_count == 250000
        assert first.duration_seconds == 725
        assert first.has_captions
        assert first.thumbnail_url == "https://i.ytimg.com/abc123.jpg"
        assert first.channel is not None
        assert first.channel.is_educational
        assert first.channel.subscriber_count == 9_000_000
        assert videos[1].difficulty_guess == "advanced"
        assert not videos[1].channel.is_educational
        assert ledger.count_in_window(MINUTE) == 3

    async def test_search_params(self) -> None:
        client = _mock_client(_response(payload={"items": []}))
        config = VideoProviderConfig(preferred_duration="medium")
        provider = YouTubeProvider(config=config, api_key="secret")

        with _patched(client):
            assert await provider.search(_query(), 80) == []

        url = client.get.call_args.args[0]
        params = client.get.call_args.kwargs["params"]
        assert url.endswith("/search")
        assert params["q"] == "acoustic guitar tutorial"
        assert params["maxResults"] == 50
        assert params["videoDuration"] == "medium"
        assert params["key"] == "secret"
        assert params["videoEmbeddable"] == "true"

    async def test_quota_error_returns_empty(self) -> None:
        client = _mock_client(_response(status_code=403))
        provider = YouTubeProvider(api_key="key")
        with _patched(client):
            assert await provider.search(_query(), 5) == []

    async def test_malformed_response_returns_empty(self) -> None:
        client = _mock_client(_response(payload={"kind": "youtube#searchListResponse"}))
        provider = YouTubeProvider(api_key="key")
        with _patched(client):
            assert await provider.search(_query(), 5) == []

    async def test_transport_error_returns_empty(self) -> None:
        client = AsyncMock()
        client.get.side_effect = httpx.ConnectError("boom")
        provider = YouTubeProvider(api_key="key")
        with _patched(client):
            assert await provider.search(_query(), 5) == []

    async def test_budget_refused_before_io(self) -> None:
        ledger = _ledger(per_minute=1)
        ledger.record()
        client = _mock_client()
        provider = YouTubeProvider(ledger=ledger, api_key="key")

        with _patched(client), pytest.raises(BudgetExceededError):
            await provider.search(_query(), 5)
        client.get.assert_not_called()

    async def test_failed_call_not_recorded(self) -> None:
        ledger = _ledger()
        client = _mock_client(_response(status_code=500))
        provider = YouTubeProvider(ledger=ledger, api_key="key")
        with _patched(client):
            await provider.search(_query(), 5)
        assert ledger.count_in_window(MINUTE) == 0


# ---------------------------------------------------------------------------
# Malformed items
# ---------------------------------------------------------------------------


class TestYouTubeMalformedItems:
    async def test_invalid_video_skipped_others_kept(self) -> None:
        details = {
            "items": [
                {"id": "abc123", "snippet": {"title": None, "channelId": "UCother"}},
                VIDEO_ITEMS["items"][1],
            ],
        }
        client = _mock_client(
            _response(payload=SEARCH_ITEMS),
            _response(payload=details),
            _response(payload=CHANNEL_ITEMS),
        )
        provider = YouTubeProvider(api_key="key")

        with _patched(client):
            videos = await provider.search(_query(), 5)

        assert [v.id for v in videos] == ["def456"]

    async def test_non_dict_items_ignored(self) -> None:
        search = {
            "items": [
                "oops",
                {"id": "not-a-dict"},
                {"id": {"videoId": 7}},
                {"id": {"videoId": "abc123"}},
            ],
        }
        details = {"items": ["junk", {"id": ["abc123"]}, VIDEO_ITEMS["items"][0]]}
        channels = {"items": ["junk", {"snippet": {}}, CHANNEL_ITEMS["items"][0]]}
        client = _mock_client(
            _response(payload=search),
            _response(payload=details),
            _response(payload=channels),
        )
        ledger = _ledger()
        provider = YouTubeProvider(ledger=ledger, api_key="key")

        with _patched(client):
            videos = await provider.search(_query(), 5)

        assert [v.id for v in videos] == ["abc123"]
        assert videos[0].channel is not None
        assert videos[0].channel.is_educational
        assert client.get.call_args_list[1].kwargs["params"]["id"] == "abc123"
        assert ledger.count_in_window(MINUTE) == 3

    async def test_odd_field_types_tolerated(self) -> None:
        item = {
            "id": "abc123",
            "snippet": {
                "title": "Guitar basics",
                "publishedAt": 1700000000,
                "thumbnails": "none",
                "channelId": None,
            },
            "contentDetails": None,
            "statistics": {"viewCount": "lots"},
        }
        client = _mock_client(
            _response(payload={"items": [{"id": {"videoId": "abc123"}}]}),
            _response(payload={"items": [item]}),
        )
        provider = YouTubeProvider(api_key="key")

        with _patched(client):
            videos = await provider.search(_query(), 5)

        assert len(videos) == 1
        assert videos[0].published_at is None
        assert videos[0].view_count == 0
        assert videos[0].thumbnail_url == ""
        assert client.get.call_count == 2


# ---------------------------------------------------------------------------
# Mock mode / disabled
# ---------------------------------------------------------------------------


class TestYouTubeMockMode:
    async def test_no_key_returns_mock_videos(self) -> None:
        with patch.dict("os.environ", {}, clear=True):
            provider = YouTubeProvider()
        videos = await provider.search(_query("Guitar Chords"), 5)

        assert [v.id for v in videos] == ["mock-video-1-guitar-chords", "mock-video-2-guitar-chords"]
        assert videos[0].title == "Complete guitar chords Tutorial for Beginners"
        assert videos[0].view_count == 15000
        assert videos[1].duration_seconds == 1335

    async def test_mock_respects_max_results(self) -> None:
        provider = YouTubeProvider(api_key="")
        assert len(await provider.search(_query(), 1)) == 1

    async def test_disabled_returns_empty(self) -> None:
        provider = YouTubeProvider(config=VideoProviderConfig(enabled=False), api_key="key")
        assert await provider.search(_query(), 5) == []


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------


class TestSearchMany:
    async def test_distinct_mock_queries_are_kept(self) -> None:
        provider = YouTubeProvider(api_key="")
        result = await provider.search_many([_query("guitar chords"), _query("guitar scales")], 10)
        assert len(result.candidates) == 4
        assert result.queries_run == ["guitar chords", "guitar scales"]
        assert not result.budget_exceeded

    async def test_stops_once_enough_collected(self) -> None:
        provider = YouTubeProvider(api_key="")
        result = await provider.search_many([_query("a b"), _query("c d"), _query("e f")], 2)
        assert len(result.candidates) == 2
        assert result.queries_run == ["a b"]

    async def test_duplicates_removed_across_queries(self) -> None:
        provider = YouTubeProvider(api_key="")
        result = await provider.search_many([_query("guitar"), _query("Guitar")], 10)
        assert len(result.candidates) == 2

    async def test_budget_stops_fan_out(self) -> None:
        ledger = _ledger(per_minute=1)
        ledger.record()
        provider = YouTubeProvider(ledger=ledger, api_key="key")
        client = _mock_client()

        with _patched(client):
            result = await provider.search_many([_query("a"), _query("b")], 5)

        assert result.candidates == []
        assert result.budget_exceeded
        assert result.queries_run == []
