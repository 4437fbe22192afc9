"""Query-plan generation with a local Ollama model over its OpenAI-compatible API."""

import logging
import os

from content_engine.llm.base import (
    PLAN_TEMPERATURE,
    SYSTEM_PROMPT,
    LLMProvider,
    missing_sdk,
    require_text,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434/v1"


class OllamaProvider(LLMProvider):
    """No API key; ``OLLAMA_BASE_URL`` points at a non-default server."""

    @property
    def provider_id(self) -> str:
        return "ollama"

    @property
    def default_model(self) -> str:
        return "llama3"

    @property
    def env_var(self) -> None:
        return None

    def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        system: str | None = None,
    ) -> str:
        try:
            import openai
        except ImportError:
            raise missing_sdk("openai", "openai") from None

        base_url = os.environ.get("OLLAMA_BASE_URL", DEFAULT_BASE_URL)
        plan_model = model or self.default_model
        logger.info("Asking Ollama at %s (%s) for a search query plan", base_url, plan_model)
        # The client insists on a key; Ollama ignores it.
        response = openai.OpenAI(base_url=base_url, api_key="ollama").chat.completions.create(
            model=plan_model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT if system is None else system},
                {"role": "user", "content": prompt},
            ],
            temperature=PLAN_TEMPERATURE,
            response_format={"type": "json_object"},
        )
        return require_text(response.choices[0].message.content, self.provider_id)
