"""Query-plan generation with OpenAI chat completions in JSON mode."""

import logging

from content_engine.llm.base import (
    PLAN_MAX_TOKENS,
    PLAN_TEMPERATURE,
    SYSTEM_PROMPT,
    LLMProvider,
    missing_sdk,
    require_text,
)

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """JSON mode guarantees the reply is a single object."""

    @property
    def provider_id(self) -> str:
        return "openai"

    @property
    def default_model(self) -> str:
        return "gpt-4o-mini"

    @property
    def env_var(self) -> str:
        return "OPENAI_API_KEY"

    def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        system: str | None = None,
    ) -> str:
        api_key = self.require_api_key()
        try:
            import openai
        except ImportError:
            raise missing_sdk("openai", "openai") from None

        plan_model = model or self.default_model
        logger.info("Asking OpenAI (%s) for a search query plan", plan_model)
        response = openai.OpenAI(api_key=api_key).chat.completions.create(
            model=plan_model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT if system is None else system},
                {"role": "user", "content": prompt},
            ],
            temperature=PLAN_TEMPERATURE,
            max_tokens=PLAN_MAX_TOKENS,
            response_format={"type": "json_object"},
        )

        choice = response.choices[0]
        if choice.finish_reason == "length":
            logger.warning("OpenAI query plan truncated at %d tokens", PLAN_MAX_TOKENS)
        return require_text(choice.message.content, self.provider_id)
