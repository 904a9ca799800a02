"""MULTAs model implementations.

Concrete ModelProtocol implementations used by the classification pipeline.
SDK-backed models import their SDK only when instantiated.
"""

from __future__ import annotations

from multas.models.anthropic import AnthropicModel, AnthropicModelError
from multas.models.auto import auto_configure_model, create_model
from multas.models.ollama import OllamaModel, OllamaModelError
from multas.models.openai import OpenAIModel, OpenAIModelError

__all__ = [
    "AnthropicModel",
    "AnthropicModelError",
    "OllamaModel",
    "OllamaModelError",
    "OpenAIModel",
    "OpenAIModelError",
    "auto_configure_model",
    "create_model",
]
