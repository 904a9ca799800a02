"""Classification pipeline.

Short texts are classified directly. Texts longer than the length
threshold are first decomposed by the model into up to five learning
elements, each classified on its own. No method here raises on provider
or parse failures: the caller always gets a category back.
"""

import logging
from typing import List, Optional

from multas.logging_config import log_timing
from multas.protocols import ModelMessage, ModelProtocol
from multas.types import AnalysisResult, ClassificationResult, ElementResult

from .categories import DEFAULT_CATEGORY
from .keywords import classify_by_keywords
from .parsing import parse_classification, parse_elements
from .prompts import classification_prompt, decomposition_prompt

logger = logging.getLogger(__name__)

LENGTH_THRESHOLD = 200
MAX_ELEMENTS = 5
MIN_ELEMENT_LENGTH = 10
SUMMARY_LENGTH = 100


class ClassificationPipeline:
    """Classify and decompose experience texts with an LLM.

    Args:
        model: Any ModelProtocol. ``None`` classifies by keywords only.
        default_category: Category used when the model gives no usable answer.
        length_threshold: Texts longer than this many characters are decomposed.
        max_elements: Upper bound on decomposed elements.
        min_element_length: Elements this short or shorter are discarded.
    """

    def __init__(
        self,
        model: Optional[ModelProtocol] = None,
        *,
        default_category: int = DEFAULT_CATEGORY,
        length_threshold: int = LENGTH_THRESHOLD,
        max_elements: int = MAX_ELEMENTS,
        min_element_length: int = MIN_ELEMENT_LENGTH,
    ):
        self.model = model
        self.default_category = default_category
        self.length_threshold = length_threshold
        self.max_elements = max_elements
        self.min_element_length = min_element_length

    @property
    def provider(self) -> str:
        return self.model.provider if self.model is not None else "keyword"

    def classify(self, text: str) -> ClassificationResult:
        """Assign one category to ``text``."""
        if self.model is None:
            return classify_by_keywords(text, self.default_category)

        try:
            with log_timing(logger, "classify"):
                response = self.model.generate(
                    [ModelMessage(role="user", content=classification_prompt(text))],
                    temperature=0.3,
                    max_tokens=200,
                )
        except Exception as e:
            logger.error(f"Classification failed ({self.provider}): {e}")
            return ClassificationResult(
                category=self.default_category,
                reason=f"エラー: {e}",
                confidence=0.0,
                provider="fallback",
            )

        category, reason = parse_classification(response.content, self.default_category)
        return ClassificationResult(
            category=category,
            reason=reason or "分類理由不明",
            confidence=0.8,
            provider=self.provider,
        )

    def decompose(self, text: str) -> List[str]:
        """Ask the model for learning elements. May raise on provider errors."""
        if self.model is None:
            return []
        with log_timing(logger, "decompose"):
            response = self.model.generate(
                [
                    ModelMessage(
                        role="user", content=decomposition_prompt(text, self.max_elements)
                    )
                ],
                temperature=0.3,
                max_tokens=500,
            )
        return parse_elements(response.content, self.max_elements, self.min_element_length)

    def analyze(self, text: str) -> AnalysisResult:
        """Classify ``text``, decomposing it first when it is long.

        When decomposition yields nothing usable, the whole text is
        classified and stored as one element summarised to its first 100
        characters.
        """
        if len(text) <= self.length_threshold:
            result = self.classify(text)
            return AnalysisResult(
                is_multiple=False,
                elements=[self._element(text, result)],
                original_text=text,
            )

        try:
            parts = self.decompose(text)
        except Exception as e:
            logger.warning(f"Decomposition failed, classifying as a whole: {e}")
            parts = []

        if parts:
            elements = [self._element(part, self.classify(part)) for part in parts]
        else:
            summary = text[:SUMMARY_LENGTH] + "..."
            elements = [self._element(summary, self.classify(text))]

        logger.info(f"Analyzed long text into {len(elements)} element(s)")
        return AnalysisResult(is_multiple=True, elements=elements, original_text=text)

    @staticmethod
    def _element(text: str, result: ClassificationResult) -> ElementResult:
        return ElementResult(
            text=text,
            category=result.category,
            reason=result.reason,
            confidence=result.confidence,
        )
