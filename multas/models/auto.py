"""Build a classification model from settings.

``local`` means "no LLM": callers get ``None`` and use keyword
classification instead. A provider whose key is missing also yields
``None`` (graceful degradation) from ``auto_configure_model``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from multas.config import Settings
    from multas.protocols import ModelProtocol

logger = logging.getLogger(__name__)

PROVIDERS = ("openai", "claude", "ollama")


def create_model(provider: str, settings: "Settings") -> "ModelProtocol":
    """Instantiate the model for ``provider``.

    Raises:
        ValueError: Unknown provider or missing API key.
        ImportError: Provider SDK not installed.
    """
    provider = provider.lower().strip()
    if provider == "anthropic":
        provider = "claude"

    if provider == "openai":
        from multas.models.openai import OpenAIModel

        return OpenAIModel(model_id=settings.openai_model, api_key=settings.openai_api_key)

    if provider == "claude":
        from multas.models.anthropic import AnthropicModel

        return AnthropicModel(model_id=settings.claude_model, api_key=settings.claude_api_key)

    if provider == "ollama":
        from multas.models.ollama import OllamaModel

        return OllamaModel(model_id=settings.ollama_model, base_url=settings.ollama_url)

    raise ValueError(f"Unknown model provider '{provider}'")


def auto_configure_model(settings: Optional["Settings"] = None) -> Optional["ModelProtocol"]:
    """Model for the configured ``ai_provider``, or None.

    Returns None for the ``local`` provider, or when the provider cannot be
    constructed (missing key or SDK); the failure is logged.
    """
    if settings is None:
        from multas.config import get_settings

        settings = get_settings()

    provider = settings.ai_provider
    if provider not in PROVIDERS:
        return None

    try:
        model = create_model(provider, settings)
    except (ValueError, ImportError) as e:
        logger.warning("Cannot configure %s model, using keyword classification: %s", provider, e)
        return None

    logger.info("Auto-configured %s model (model=%s)", provider, model.model_id)
    return model
