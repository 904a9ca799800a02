"""Lightweight single-shot classifier with a keyword fallback ladder.

Asks the configured provider for a bare category number. Any failure,
including a missing API key or SDK, drops to keyword classification, which
itself falls back to the default category.
"""

import logging
from typing import Callable, Optional

from multas.config import Settings, get_settings
from multas.logging_config import log_timing
from multas.models.auto import create_model
from multas.protocols import ModelMessage, ModelProtocol
from multas.types import ClassificationResult

from .keywords import classify_by_keywords
from .parsing import extract_first_number
from .prompts import CLASSIFICATION_SYSTEM_PROMPT, quick_classification_prompt

logger = logging.getLogger(__name__)

PROVIDER_LABELS = {"openai": "OpenAI", "claude": "Claude", "ollama": "LocalLLM"}


class ProviderClassifier:
    """Quick classifier for a named provider.

    ``local`` skips the model entirely and classifies by keywords.
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        settings: Optional[Settings] = None,
        model_factory: Callable[[str, Settings], ModelProtocol] = create_model,
    ):
        self.settings = settings or get_settings()
        self.provider = (provider or self.settings.ai_provider).lower().strip()
        if self.provider == "anthropic":
            self.provider = "claude"
        self.default_category = self.settings.default_category
        self._model_factory = model_factory
        self._model: Optional[ModelProtocol] = None

    def _get_model(self) -> ModelProtocol:
        if self._model is None:
            self._model = self._model_factory(self.provider, self.settings)
        return self._model

    def classify(self, text: str) -> ClassificationResult:
        if self.provider == "local":
            return classify_by_keywords(text, self.default_category)

        try:
            with log_timing(logger, "quick classification"):
                response = self._get_model().generate(
                    [ModelMessage(role="user", content=quick_classification_prompt(text))],
                    system=CLASSIFICATION_SYSTEM_PROMPT,
                    temperature=0.1,
                    max_tokens=10,
                )
        except Exception as e:
            logger.error(f"AI classification failed, falling back to keywords: {e}")
            return classify_by_keywords(text, self.default_category)

        category = extract_first_number(response.content, self.default_category)
        label = PROVIDER_LABELS.get(self.provider, self.provider)
        logger.info(f"Classified as category {category} ({self.provider})")
        return ClassificationResult(
            category=category,
            reason=f"{label}分類: カテゴリ{category}",
            confidence=0.7,
            provider=self.provider,
        )
