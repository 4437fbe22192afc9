"""Abstract base class for LLM providers and shared prompt logic."""

import json
import os
import re
from abc import ABC, abstractmethod
from typing import Any

# Query plans are short JSON objects; low temperature keeps phrasing stable.
PLAN_MAX_TOKENS = 800
PLAN_TEMPERATURE = 0.3

SYSTEM_PROMPT = (
    "You are an expert at creating targeted search queries for learning content. "
    "Given a topic and a skill level, generate search phrases for finding "
    "educational videos and articles.\n\n"
    "If the topic is ambiguous, pick exactly ONE specific, concrete interpretation "
    "and use it consistently in EVERY phrase. Never mix interpretations. Examples:\n"
    '- "juggling" -> "3 ball juggling"\n'
    '- "photography" -> "digital photography"\n'
    '- "cooking" -> "home cooking"\n'
    '- "dancing" -> "hip hop dancing"\n'
    '- "guitar" -> "acoustic guitar"\n'
    '- "painting" -> "watercolor painting"\n\n'
    "Return ONLY a JSON object (no markdown, no explanation) with these fields:\n"
    "- youtubeQueries (list[str]): video search phrases, most important first\n"
    "- articleQueries (list[str]): article search phrases, most important first\n"
    "- detectedTopic (string): the specific interpretation you chose\n"
    "- reasoning (string): one sentence on why\n"
    "- contentOptimization (object): learningStyle, difficultyAdjustment, "
    "contentTypes (list[str]), searchStrategy\n"
    '- classification (object): domain, complexity ("low", "medium" or "high"), '
    "prerequisites (list[str]), estimatedTime"
)


def build_user_prompt(
    topic: str,
    skill_level: str,
    max_queries: int,
    milestone_context: str | None = None,
) -> str:
    """Render the per-request prompt sent alongside SYSTEM_PROMPT."""
    lines = [
        f"Topic: {topic}",
        f"Skill level: {skill_level}",
        f"Generate at most {max_queries} youtubeQueries and {max_queries} articleQueries.",
    ]
    if milestone_context:
        lines.append(f"Focus on this milestone: {milestone_context}")
    return "\n".join(lines)


def parse_response(raw_text: str) -> dict[str, Any]:
    """Parse an LLM response text into a JSON object.

    Handles markdown-wrapped JSON (```json ... ```) and plain JSON.
    """
    cleaned = re.sub(r"^```(?:json)?\s*\n?", "", raw_text.strip())
    cleaned = re.sub(r"\n?```\s*$", "", cleaned)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        msg = f"Failed to parse LLM response as JSON: {e}"
        raise ValueError(msg) from e

    if not isinstance(data, dict):
        msg = f"Expected a JSON object from the LLM, got {type(data).__name__}"
        raise ValueError(msg)
    return data


class LLMProvider(ABC):
    """Base class that every LLM provider must implement."""

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'openai')."""

    @abstractmethod
    def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        system: str | None = None,
    ) -> str:
        """Send a prompt to the LLM and return raw response text.

        Args:
            prompt: User prompt describing the topic and skill level.
            model: Override the provider's default model. None uses default.
            system: Override the system prompt. None falls back to SYSTEM_PROMPT.

        Returns:
            Raw text response from the LLM (expected to be JSON).
        """

    @property
    @abstractmethod
    def default_model(self) -> str:
        """The default model ID used when no override is specified."""

    @property
    @abstractmethod
    def env_var(self) -> str | None:
        """Environment variable name for the API key, or None if not needed."""

    def require_api_key(self) -> str:
        """Read the provider's API key from the environment."""
        api_key = os.environ.get(self.env_var) if self.env_var else None
        if not api_key:
            msg = (
                f"{self.env_var} environment variable is required "
                f"for {self.provider_id} query generation"
            )
            raise ValueError(msg)
        return api_key


def missing_sdk(package: str, extra: str) -> ImportError:
    """ImportError raised when an optional LLM SDK is not installed."""
    msg = (
        f"{package} is required for LLM query generation. "
        f"Install with: pip install 'roadmap-content-engine[{extra}]'"
    )
    return ImportError(msg)


def require_text(text: str | None, provider_id: str) -> str:
    """Reject an empty completion so the caller falls back to keyword queries."""
    if not text or not text.strip():
        msg = f"{provider_id} returned an empty query plan"
        raise ValueError(msg)
    return text
