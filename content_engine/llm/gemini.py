"""Query-plan generation with Google Gemini (google-genai SDK)."""

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


class GeminiProvider(LLMProvider):
    """Gemini with ``application/json`` as the response MIME type."""

    @property
    def provider_id(self) -> str:
        return "gemini"

    @property
    def default_model(self) -> str:
        return "gemini-2.5-flash"

    @property
    def env_var(self) -> str:
        return "GOOGLE_API_KEY"

    def complete(
        self,
        prompt: str,
        model: str | None = None,
        *,
        system: str | None = None,
    ) -> str:
        api_key = self.require_api_key()
        try:
            from google import genai
            from google.genai import types as genai_types
        except ImportError:
            raise missing_sdk("google-genai", "gemini") from None

        plan_model = model or self.default_model
        logger.info("Asking Gemini (%s) for a search query plan", plan_model)
        response = genai.Client(api_key=api_key).models.generate_content(
            model=plan_model,
            contents=prompt,
            config=genai_types.GenerateContentConfig(
                system_instruction=SYSTEM_PROMPT if system is None else system,
                response_mime_type="application/json",
                temperature=PLAN_TEMPERATURE,
                max_output_tokens=PLAN_MAX_TOKENS,
            ),
        )
        return require_text(response.text, self.provider_id)
