"""Keyword-based classification, used when no LLM is available."""

from multas.types import ClassificationResult

from .categories import CATEGORIES, DEFAULT_CATEGORY, category_name


def classify_by_keywords(text: str, default: int = DEFAULT_CATEGORY) -> ClassificationResult:
    """First category (in id order) with a keyword contained in ``text``.

    Matching is a case-insensitive substring test. When nothing matches the
    default category is returned with provider ``fallback``.
    """
    lowered = (text or "").lower()
    for category in CATEGORIES:
        if any(keyword.lower() in lowered for keyword in category.keywords):
            return ClassificationResult(
                category=category.id,
                reason=f"キーワード分類: {category.name}",
                confidence=0.5,
                provider="keyword",
            )

    return ClassificationResult(
        category=default,
        reason=f"デフォルト分類: {category_name(default)}",
        confidence=0.0,
        provider="fallback",
    )
