"""LLM provider registry with lazy loading.

Usage:
    from content_engine.llm import get_provider, parse_response

    provider = get_provider("openai")
    raw = provider.complete(build_user_prompt("guitar", "beginner", 3))
    data = parse_response(raw)
"""

import importlib

from content_engine.llm.base import LLMProvider, parse_response

__all__ = ["LLMProvider", "available_providers", "get_provider", "parse_response"]

# Lazy registry: maps provider name → (module_path, class_name)
_REGISTRY: dict[str, tuple[str, str]] = {
    "anthropic": ("content_engine.llm.anthropic", "AnthropicProvider"),
    "openai": ("content_engine.llm.openai", "OpenAIProvider"),
    "gemini": ("content_engine.llm.gemini", "GeminiProvider"),
    "ollama": ("content_engine.llm.ollama", "OllamaProvider"),
}


def get_provider(name: str) -> LLMProvider:
    """Instantiate and return an LLM provider by name.

    Raises:
        ValueError: If the provider name is unknown.
    """
    if name not in _REGISTRY:
        valid = ", ".join(sorted(_REGISTRY))
        msg = f"Unknown LLM provider '{name}'. Available: {valid}"
        raise ValueError(msg)

    module_path, class_name = _REGISTRY[name]
    module = importlib.import_module(module_path)
    cls = getattr(module, class_name)
    return cls()  # type: ignore[no-any-return]


def available_providers() -> list[str]:
    """Return sorted list of registered provider names."""
    return sorted(_REGISTRY)
