"""Text, duration and date heuristics shared by scoring and matching.

All helpers are pure functions of their inputs (plus ``now`` where ages are
involved) so scores are reproducible.
"""

import math
import re
from collections import Counter
from datetime import datetime, timezone
from urllib.parse import urlparse

STOPWORDS = frozenset({
    "the", "and", "for", "with", "from", "this", "that", "will", "learn",
    "about", "how", "what", "when", "where", "why", "your", "into", "using",
})

_ISO_DURATION = re.compile(r"^P(?:(\d+)D)?T?(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?$")
_NON_WORD = re.compile(r"[^\w\s]")

LONG_FORM_KEYWORDS = (
    "tutorial", "course", "lesson", "guide", "complete", "full", "comprehensive",
    "masterclass", "deep dive", "in depth", "detailed", "step by step", "series",
)
SHORT_FORM_KEYWORDS = (
    "quick", "fast", "brief", "overview", "intro", "basics", "tips", "tricks",
    "summary", "recap", "explained", "demo", "example",
)

# Midpoints of the long / short / mixed estimate ranges (minutes).
_LONG_ESTIMATE = 22
_SHORT_ESTIMATE = 6
_DEFAULT_ESTIMATE = 11

BEGINNER_KEYWORDS = (
    "beginner", "getting started", "introduction", "basics", "fundamentals",
    "first time", "hello world", "quick start", "primer", "essentials",
    "foundation", "starter", "zero to hero", "from scratch", "no experience",
    "newbie", "novice",
)
ADVANCED_KEYWORDS = (
    "advanced", "expert", "mastery", "optimization", "performance", "architecture",
    "enterprise", "scalable", "distributed", "microservices", "system design",
    "algorithm", "data structures", "complex", "sophisticated", "cutting-edge",
)
CODE_KEYWORDS = ("code", "example", "snippet", "implementation", "function", "class", "method")


# ---------------------------------------------------------------------------
# Terms
# ---------------------------------------------------------------------------


def tokenize(text: str) -> list[str]:
    """Lower-case words with punctuation removed."""
    return _NON_WORD.sub("", text.lower()).split()


def extract_key_terms(text: str, limit: int = 10) -> list[str]:
    """Return the first ``limit`` significant words (len > 3, not a stopword)."""
    terms = [w for w in tokenize(text) if len(w) > 3 and w not in STOPWORDS]
    return terms[:limit]


def most_frequent_terms(text: str, limit: int = 3) -> list[str]:
    """Return the ``limit`` most frequent significant words, ties in first-seen order."""
    terms = [w for w in tokenize(text) if len(w) > 3 and w not in STOPWORDS]
    counts = Counter(terms)
    first_seen = {t: i for i, t in reversed(list(enumerate(terms)))}
    ranked = sorted(counts, key=lambda t: (-counts[t], first_seen[t]))
    return ranked[:limit]


def count_matches(text: str, keywords: tuple[str, ...] | list[str]) -> int:
    """Count how many keywords occur as substrings of ``text`` (already lower-cased)."""
    return sum(1 for kw in keywords if kw in text)


def guess_difficulty(text: str, default: str = "beginner") -> str:
    """Difficulty tier named in the text; advanced wins over intermediate over beginner."""
    lowered = text.lower()
    for level in ("advanced", "intermediate", "beginner"):
        if level in lowered:
            return level
    return default


# ---------------------------------------------------------------------------
# Duration
# ---------------------------------------------------------------------------


def parse_iso8601_duration(value: str | None) -> int | None:
    """Parse an ISO 8601 duration (``PT1H2M3S``) into seconds.

    Returns None for empty or malformed input.
    """
    if not isinstance(value, str) or not value:
        return None
    match = _ISO_DURATION.match(value.strip().upper())
    if not match or not any(match.groups()):
        return None
    days, hours, minutes, seconds = (int(g or 0) for g in match.groups())
    return ((days * 24 + hours) * 60 + minutes) * 60 + seconds


def estimate_duration_minutes(title: str, description: str) -> int:
    """Estimate a video's length from long-form vs short-form keywords."""
    text = f"{title} {description}".lower()
    long_matches = count_matches(text, LONG_FORM_KEYWORDS)
    short_matches = count_matches(text, SHORT_FORM_KEYWORDS)
    if long_matches > short_matches:
        return _LONG_ESTIMATE
    if short_matches > long_matches:
        return _SHORT_ESTIMATE
    return _DEFAULT_ESTIMATE


def duration_category(minutes: float) -> str:
    """Bucket a duration: micro < 3, short < 10, medium < 30, long < 60, else extended."""
    if minutes < 3:
        return "micro"
    if minutes < 10:
        return "short"
    if minutes < 30:
        return "medium"
    if minutes < 60:
        return "long"
    return "extended"


def format_duration(seconds: int | None) -> str:
    """Render seconds as ``M:SS`` or ``H:MM:SS``; empty string when unknown."""
    if seconds is None:
        return ""
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------


def extract_domain(url: str) -> str:
    """Host name of a URL, lower-cased, without a leading ``www.``."""
    host = (urlparse(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def detect_content_kind(title: str, description: str) -> str:
    text = f"{title} {description}".lower()
    if "tutorial" in text or "step by step" in text or "how to" in text:
        return "tutorial"
    if "documentation" in text or " api" in f" {text}" or "reference" in text:
        return "documentation"
    if "guide" in text or "complete" in text or "comprehensive" in text:
        return "guide"
    if "research" in text or "study" in text or "analysis" in text:
        return "research"
    return "article"


def detect_content_depth(title: str, description: str) -> str:
    text = f"{title} {description}".lower()
    beginner = count_matches(text, BEGINNER_KEYWORDS)
    advanced = count_matches(text, ADVANCED_KEYWORDS)
    if advanced > beginner:
        return "advanced"
    if beginner > 0:
        return "basic"
    return "intermediate"


def has_code_examples(title: str, description: str) -> bool:
    text = f"{title} {description}".lower()
    return any(kw in text for kw in CODE_KEYWORDS)


def reading_minutes(content: str) -> int:
    """Estimated reading time; technical and research prose read slower."""
    lowered = content.lower()
    if re.search(r"```|`|function|class|import|const|let|var", content) or re.search(
        r"algorithm|architecture|optimization|performance|scalable", lowered,
    ):
        words_per_minute = 150
    elif re.search(r"research|study|analysis|methodology|hypothesis", lowered):
        words_per_minute = 120
    elif "tutorial" in lowered or "step by step" in lowered:
        words_per_minute = 180
    elif "documentation" in lowered or "api" in lowered:
        words_per_minute = 160
    else:
        words_per_minute = 200

    word_count = len(_NON_WORD.sub(" ", content).split())
    code_blocks = content.count("```") // 2
    adjusted = word_count + code_blocks * 50
    return max(1, math.ceil(adjusted / words_per_minute))


def format_reading_time(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes} min read"
    hours, rest = divmod(minutes, 60)
    if rest == 0:
        return f"{hours} hour{'s' if hours > 1 else ''} read"
    return f"{hours}h {rest}m read"


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def parse_published_at(value: object) -> datetime | None:
    """Parse an ISO date or datetime; naive values are treated as UTC.

    Returns None when the value is missing, not a string or unparseable.
    """
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def age_in_days(published_at: datetime | None, now: datetime | None = None) -> float | None:
    """Days since publication, never negative; None when the date is unknown."""
    if published_at is None:
        return None
    now = now or datetime.now(timezone.utc)
    if published_at.tzinfo is None:
        published_at = published_at.replace(tzinfo=timezone.utc)
    return max(0.0, (now - published_at).total_seconds() / 86400)
