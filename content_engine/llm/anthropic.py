"""Query-plan generation with Anthropic Claude (Messages API)."""

import logging

from content_engine.llm.base import (
    PLAN_MAX_TOKENS,
    SYSTEM_PROMPT,
    LLMProvider,
    missing_sdk,
    require_text,
)

logger = logging.getLogger(__name__)


class AnthropicProvider(LLMProvider):
    """Claude writes the search plan; text blocks of the reply are joined."""

    @property
    def provider_id(self) -> str:
        return "anthropic"

    @property
    def default_model(self) -> str:
        return "claude-sonnet-4-20250514"

    @property
    def env_var(self) -> str:
        return "ANTHROPIC_API_KEY"

    def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        system: str | None = None,
    ) -> str:
        api_key = self.require_api_key()
        try:
            import anthropic
        except ImportError:
            raise missing_sdk("anthropic", "anthropic") from None

        plan_model = model or self.default_model
        logger.info("Asking Claude (%s) for a search query plan", plan_model)
        message = anthropic.Anthropic(api_key=api_key).messages.create(
            model=plan_model,
            max_tokens=PLAN_MAX_TOKENS,
            system=SYSTEM_PROMPT if system is None else system,
            messages=[{"role": "user", "content": prompt}],
        )
        if message.stop_reason == "max_tokens":
            logger.warning("Claude query plan truncated at %d tokens", PLAN_MAX_TOKENS)

        text = "".join(
            block.text for block in message.content if isinstance(getattr(block, "text", None), str)
        )
        return require_text(text, self.provider_id)
