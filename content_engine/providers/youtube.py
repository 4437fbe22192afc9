"""YouTube Data API v3 provider: search → video details → channel stats."""

import logging
import os
import re
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from content_engine.core.config import VideoProviderConfig
from content_engine.core.schemas import ChannelStats, ContentType, SearchQuery, VideoCandidate
from content_engine.pipeline.quality import EDUCATIONAL_CHANNELS
from content_engine.pipeline.quota_ledger import BudgetExceededError, QuotaLedger
from content_engine.pipeline.signals import guess_difficulty, parse_iso8601_duration, parse_published_at
from content_engine.providers.base import ContentProvider, ProviderError, classify_http_error

logger = logging.getLogger(__name__)

WATCH_URL = "https://www.youtube.com/watch?v={}"
_MAX_PAGE_SIZE = 50
_LEVEL_LABEL = {"beginner": "Beginners", "intermediate": "Intermediate", "advanced": "Advanced"}
# pydantic.ValidationError subclasses ValueError.
_MALFORMED_ITEM = (ValueError, TypeError, KeyError, AttributeError)


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def _dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _int(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


class YouTubeProvider(ContentProvider):
    """Video search against the YouTube Data API.

    Each query costs three governed calls (search, videos, channels), one
    unit apiece. Without an API key the provider returns mock videos.
    """

    def __init__(
        self,
        config: VideoProviderConfig | None = None,
        ledger: QuotaLedger | None = None,
        api_key: str | None = None,
    ) -> None:
        self._config = config or VideoProviderConfig()
        self._ledger = ledger
        self._api_key = api_key if api_key is not None else os.environ.get(self._config.api_key_env)

    @property
    def provider_id(self) -> str:
        return "youtube"

    @property
    def content_type(self) -> ContentType:
        return "video"

    async def search(self, query: SearchQuery, max_results: int) -> list[VideoCandidate]:
        if not self._config.enabled:
            logger.info("YouTube provider disabled, skipping '%s'", query.text)
            return []
        if not self._api_key:
            logger.warning("%s not set, using mock videos for '%s'", self._config.api_key_env, query.text)
            return self._mock_videos(query, max_results)

        self._gate()
        try:
            async with httpx.AsyncClient(timeout=self._config.timeout_s) as client:
                found = await self._get(client, "search", self._search_params(query, max_results))
                video_ids = [
                    vid for vid in (_dict(_dict(item).get("id")).get("videoId") for item in found)
                    if isinstance(vid, str) and vid
                ]
                if not video_ids:
                    logger.info("YouTube: no results for '%s'", query.text)
                    return []

                self._gate()
                details = await self._get(client, "videos", {
                    "part": "snippet,contentDetails,statistics",
                    "id": ",".join(video_ids),
                })

                channel_ids = sorted({
                    cid for cid in (_dict(_dict(d).get("snippet")).get("channelId") for d in details)
                    if isinstance(cid, str) and cid
                })
                channels: list[dict[str, Any]] = []
                if channel_ids:
                    self._gate()
                    channels = await self._get(client, "channels", {
                        "part": "snippet,statistics",
                        "id": ",".join(channel_ids),
                    })
        except BudgetExceededError:
            raise
        except ProviderError as e:
            logger.warning("YouTube %s for '%s': %s", e.kind, query.text, e)
            return []
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError):
            logger.warning("YouTube search failed for '%s'", query.text, exc_info=True)
            return []

        stats: dict[str, ChannelStats] = {}
        for channel in channels:
            try:
                parsed = self._parse_channel(channel)
            except _MALFORMED_ITEM:
                logger.debug("YouTube: malformed channel item skipped: %r", channel)
                continue
            stats[parsed.id] = parsed

        by_id = {d["id"]: d for d in details if isinstance(d, dict) and isinstance(d.get("id"), str)}
        videos = []
        for video_id in video_ids:
            item = by_id.get(video_id)
            if item is None:
                logger.debug("YouTube: no details for %s, skipping", video_id)
                continue
            try:
                videos.append(self._parse_video(item, query, stats))
            except _MALFORMED_ITEM:
                logger.debug("YouTube: malformed video %s skipped", video_id, exc_info=True)

        logger.info("YouTube: %d videos for '%s'", len(videos), query.text)
        return videos[:max_results]

    # -- HTTP ---------------------------------------------------------------

    def _gate(self) -> None:
        if self._ledger is not None:
            self._ledger.check(1)

    async def _get(
        self, client: httpx.AsyncClient, resource: str, params: dict[str, Any],
    ) -> list[dict[str, Any]]:
        response = await client.get(
            f"{self._config.base_url}/{resource}",
            params={**params, "key": self._api_key},
        )
        if response.status_code != 200:
            raise classify_http_error("youtube", response.status_code, str(response.text))
        if self._ledger is not None:
            self._ledger.record(1)

        data = response.json()
        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            msg = f"Malformed YouTube {resource} response: missing items"
            raise ValueError(msg)
        return items

    def _search_params(self, query: SearchQuery, max_results: int) -> dict[str, Any]:
        params: dict[str, Any] = {
            "part": "snippet",
            "q": query.text,
            "type": "video",
            "maxResults": min(max(max_results, 1), _MAX_PAGE_SIZE),
            "relevanceLanguage": self._config.relevance_language,
            "regionCode": self._config.region_code,
            "videoEmbeddable": "true",
            "order": "viewCount",
        }
        if self._config.preferred_duration and self._config.preferred_duration != "any":
            params["videoDuration"] = self._config.preferred_duration
        return params

    # -- normalization --------------------------------------------------------

    @staticmethod
    def _parse_channel(item: dict[str, Any]) -> ChannelStats:
        snippet = _dict(item.get("snippet"))
        statistics = _dict(item.get("statistics"))
        return ChannelStats(
            id=item["id"],
            title=snippet.get("title", ""),
            description=snippet.get("description", ""),
            subscriber_count=_int(statistics.get("subscriberCount")),
            video_count=_int(statistics.get("videoCount")),
            view_count=_int(statistics.get("viewCount")),
            is_educational=item["id"] in EDUCATIONAL_CHANNELS,
        )

    @staticmethod
    def _parse_video(
        item: dict[str, Any], query: SearchQuery, channels: dict[str, ChannelStats],
    ) -> VideoCandidate:
        snippet = _dict(item.get("snippet"))
        details = _dict(item.get("contentDetails"))
        statistics = _dict(item.get("statistics"))
        title = snippet.get("title", "")
        description = snippet.get("description", "")
        channel_id = str(snippet.get("channelId") or "")
        thumbnails = _dict(snippet.get("thumbnails"))
        thumbnail = _dict(thumbnails.get("high") or thumbnails.get("medium")).get("url", "")

        return VideoCandidate(
            id=item["id"],
            title=title,
            description=description,
            url=WATCH_URL.format(item["id"]),
            source="youtube",
            source_domain="youtube.com",
            published_at=parse_published_at(snippet.get("publishedAt")),
            query=query.text,
            difficulty_guess=guess_difficulty(f"{title} {description}", query.skill_level),
            channel_id=channel_id,
            channel_title=snippet.get("channelTitle", ""),
            channel=channels.get(channel_id),
            view_count=_int(statistics.get("viewCount")),
            like_count=_int(statistics.get("likeCount")),
            comment_count=_int(statistics.get("commentCount")),
            duration_seconds=parse_iso8601_duration(details.get("duration")),
            definition=details.get("definition", ""),
            has_captions=str(details.get("caption", "")).lower() == "true",
            tags=tuple(snippet.get("tags") or ()),
            thumbnail_url=thumbnail,
        )

    # -- mock mode ----------------------------------------------------------

    @staticmethod
    def _mock_videos(query: SearchQuery, max_results: int) -> list[VideoCandidate]:
        """Two canned videos per query; ids carry the query so fan-outs stay distinct."""
        q = query.text.lower()
        level = query.skill_level
        slug = _slug(q)
        now = datetime.now(timezone.utc)
        videos = [
            VideoCandidate(
                id=f"mock-video-1-{slug}",
                title=f"Complete {q} Tutorial for {_LEVEL_LABEL[level]}",
                description=(
                    f"Learn {q} from scratch with this comprehensive tutorial. "
                    f"Perfect for {level} level learners."
                ),
                url=WATCH_URL.format(f"mock-video-1-{slug}"),
                source="youtube",
                source_domain="youtube.com",
                published_at=now,
                query=query.text,
                difficulty_guess=level,
                channel_id="mock-channel-1",
                channel_title="Learning Channel",
                view_count=15000,
                like_count=850,
                comment_count=120,
                duration_seconds=parse_iso8601_duration("PT15M30S"),
                tags=(q, "tutorial", level, "learning"),
            ),
            VideoCandidate(
                id=f"mock-video-2-{slug}",
                title=f"{q} Tips and Tricks - {level} Guide",
                description=(
                    f"Advanced tips and techniques for mastering {q}. "
                    f"Essential knowledge for {level} learners."
                ),
                url=WATCH_URL.format(f"mock-video-2-{slug}"),
                source="youtube",
                source_domain="youtube.com",
                published_at=now - timedelta(days=7),
                query=query.text,
                difficulty_guess=level,
                channel_id="mock-channel-2",
                channel_title="Expert Tutorials",
                view_count=8500,
                like_count=420,
                comment_count=65,
                duration_seconds=parse_iso8601_duration("PT22M15S"),
                tags=(q, "tips", level, "advanced"),
            ),
        ]
        return videos[:max_results]
