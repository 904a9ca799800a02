"""Submission flow: validate, classify, store.

A long submission may be split by the classification pipeline into several
elements; each element becomes its own record. Classification never
fails the submission, but local storage errors do.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from multas.classification.categories import DEFAULT_CATEGORY, is_valid_category
from multas.classification.pipeline import ClassificationPipeline
from multas.protocols import Storage
from multas.storage.codec import coerce_category
from multas.types import DEFAULT_USER_NAME, AddResult, AnalysisResult, Record

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 10000
MAX_USER_NAME_LENGTH = 100


@dataclass
class SubmissionResult:
    """Records written for one submission."""

    results: List[AddResult] = field(default_factory=list)
    analysis: Optional[AnalysisResult] = None

    @property
    def is_multiple(self) -> bool:
        return self.analysis is not None and self.analysis.is_multiple

    @property
    def records(self) -> List[Record]:
        return [r.record for r in self.results if r.record is not None]

    @property
    def synced(self) -> bool:
        return all(r.synced for r in self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_multiple": self.is_multiple,
            "records": [r.to_dict() for r in self.records],
            "synced": self.synced,
        }


def validate_submission(
    text: Any,
    user_name: Any = None,
    category: Any = None,
    default_category: int = DEFAULT_CATEGORY,
) -> Tuple[str, str, Optional[int]]:
    """Normalize submission input.

    Returns:
        ``(text, user_name, category)`` where ``category`` is None when the
        caller did not supply one. A supplied but invalid category becomes
        ``default_category``.

    Raises:
        ValueError: Missing, blank or over-long text.
    """
    if not isinstance(text, str) or not text:
        raise ValueError("Text is required")
    if not text.strip():
        raise ValueError("Text is empty")
    if len(text) > MAX_TEXT_LENGTH:
        raise ValueError(f"Text is too long (max {MAX_TEXT_LENGTH} characters)")

    if not isinstance(user_name, str) or not user_name.strip():
        name = DEFAULT_USER_NAME
    else:
        name = user_name[:MAX_USER_NAME_LENGTH].strip()

    if category is not None:
        category = coerce_category(category, default=-1)
        if not is_valid_category(category):
            category = default_category

    return text.strip(), name, category


class ExperienceService:
    """Classify experiences and persist them through a Storage facade."""

    def __init__(
        self,
        storage: Storage,
        pipeline: ClassificationPipeline,
        default_category: int = DEFAULT_CATEGORY,
    ):
        self.storage = storage
        self.pipeline = pipeline
        self.default_category = default_category

    def submit(
        self,
        text: str,
        user_name: Optional[str] = None,
        category: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> SubmissionResult:
        """Store one submission, classifying it when no category is given.

        Raises:
            ValueError: Invalid input.
            StorageError: The local (or, in remote-only mode, remote) write failed.
        """
        text, user_name, category = validate_submission(
            text, user_name, category, self.default_category
        )

        if category is not None:
            result = self.storage.add_record(
                {"text": text, "user_name": user_name, "category": category, "reason": reason or ""}
            )
            return SubmissionResult(results=[result])

        analysis = self.pipeline.analyze(text)
        results = []
        for element in analysis.elements:
            results.append(
                self.storage.add_record(
                    {
                        "text": element.text,
                        "user_name": user_name,
                        "category": element.category,
                        "reason": element.reason,
                    }
                )
            )

        logger.info(
            f"Stored {len(results)} record(s) for {user_name} "
            f"(multiple={analysis.is_multiple}, text={text[:30]!r})"
        )
        return SubmissionResult(results=results, analysis=analysis)

    def edit(self, record_id: str, text: str) -> bool:
        """Replace a record's text and re-classify it as a single element.

        Returns:
            False when the record does not exist.
        """
        text, _, _ = validate_submission(text)
        result = self.pipeline.classify(text)
        return self.storage.update_post(
            record_id,
            {"text": text, "category": result.category, "reason": result.reason},
        )
