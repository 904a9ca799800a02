"""Classification of clinical experiences into the 12-category clock taxonomy."""

from .categories import (
    CATEGORIES,
    DEFAULT_CATEGORY,
    UNCLASSIFIED,
    Category,
    category_name,
    get_category,
    is_valid_category,
)
from .keywords import classify_by_keywords
from .pipeline import ClassificationPipeline
from .providers import ProviderClassifier
from .summaries import ReflectionWriter

__all__ = [
    "CATEGORIES",
    "DEFAULT_CATEGORY",
    "UNCLASSIFIED",
    "Category",
    "ClassificationPipeline",
    "ProviderClassifier",
    "ReflectionWriter",
    "category_name",
    "classify_by_keywords",
    "get_category",
    "is_valid_category",
]
