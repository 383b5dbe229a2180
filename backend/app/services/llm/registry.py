"""
Model Registry

Maps model IDs to their provider types and API model names.
Used by the answer synthesizer to select the configured chat model.
"""

from app.core.config import get_settings
from app.core.exceptions import ServiceUnavailable
from app.services.llm.base import LLMProvider


# ── Model Registry ────────────────────────────────────────────────────────────
# Each entry maps a model_id (as set in OPENAI_CHAT_MODEL) to:
#   - provider:  Which LLMProvider class to use
#   - api_model: The actual model string sent to the provider API

MODEL_REGISTRY: dict[str, dict] = {
    "gpt-4-turbo": {
        "provider": "openai_chat",
        "api_model": "gpt-4-turbo",
    },
    "gpt-4o": {
        "provider": "openai_chat",
        "api_model": "gpt-4o",
    },
    "gpt-4o-mini": {
        "provider": "openai_chat",
        "api_model": "gpt-4o-mini",
    },
}


# ── Provider Factory ──────────────────────────────────────────────────────────

# Provider class registry (lazy-loaded singletons)
_provider_instances: dict[str, LLMProvider] = {}


def _create_provider(provider_type: str) -> LLMProvider:
    """Create a provider instance by type string."""
    if provider_type == "openai_chat":
        if not get_settings().openai_api_key:
            raise ServiceUnavailable("OPENAI_API_KEY is not configured")
        from app.services.llm.openai_chat import OpenAIChatProvider
        return OpenAIChatProvider()
    else:
        raise ValueError(f"Unknown provider type: {provider_type}")


def get_provider(model_id: str) -> tuple[LLMProvider, str]:
    """
    Get the provider instance and API model name for a given model_id.

    Args:
        model_id: The configured model identifier (e.g., "gpt-4-turbo")

    Returns:
        Tuple of (provider_instance, api_model_name)

    Raises:
        ValueError: If the model_id is not in the registry
        ServiceUnavailable: If the provider cannot be configured
    """
    if model_id not in MODEL_REGISTRY:
        raise ValueError(
            f"Unknown model: {model_id}. "
            f"Available models: {', '.join(MODEL_REGISTRY.keys())}"
        )

    model_info = MODEL_REGISTRY[model_id]
    provider_type = model_info["provider"]

    # Lazy singleton creation
    if provider_type not in _provider_instances:
        _provider_instances[provider_type] = _create_provider(provider_type)

    return _provider_instances[provider_type], model_info["api_model"]
