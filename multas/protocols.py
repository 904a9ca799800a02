"""
MULTAs Protocol Definitions
===========================

Interface contracts shared by the storage layer, the model providers and
the classification pipeline.

Components and their roles:
- Storage:  A uniform CRUD surface over experience records. Hybrid
            (local workbook + background mirror) or remote-only.
- Model:    The LLM that classifies and decomposes text. Interchangeable
            (OpenAI, Anthropic, Ollama) or absent.

Error handling philosophy:
- Local storage failures raise StorageError and reach the caller
- Remote mirror failures raise RemoteMirrorError; the sync queue turns them
  into retry decisions, remote-only storage lets them propagate
- Invalid arguments raise ValueError
- Model failures raise a provider-specific MultasError subclass; the
  classification pipeline catches them and falls back to a default category
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, runtime_checkable

from multas.types import AddResult, Record

# =============================================================================
# ERRORS
# =============================================================================


class MultasError(Exception):
    """Base for all MULTAs errors."""

    pass


class StorageError(MultasError):
    """Raised on local storage failures (file I/O, backups, malformed workbook)."""

    pass


class RemoteMirrorError(StorageError):
    """Raised when the remote spreadsheet API rejects a call or is unreachable."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(MultasError):
    """Raised when a required setting is missing for the selected mode."""

    pass


# =============================================================================
# MODEL TYPES
# =============================================================================


@dataclass
class ModelMessage:
    """A message in a conversation."""

    role: str  # "system", "user", "assistant"
    content: str


@dataclass
class ModelResponse:
    """Complete response from a model."""

    content: str
    usage: dict[str, int] = field(default_factory=dict)
    stop_reason: Optional[str] = None
    model_id: Optional[str] = None


@runtime_checkable
class ModelProtocol(Protocol):
    """Interface for the classification engine.

    Implementations: OpenAIModel, AnthropicModel, OllamaModel.
    """

    @property
    def model_id(self) -> str:
        """Identifier (e.g., 'gpt-4o-mini', 'qwen2.5:7b')."""
        ...

    @property
    def provider(self) -> str:
        """Provider label reported in classification results."""
        ...

    def generate(
        self,
        messages: list[ModelMessage],
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        system: Optional[str] = None,
    ) -> ModelResponse:
        """Generate a complete response."""
        ...


# =============================================================================
# STORAGE PROTOCOL
# =============================================================================


@runtime_checkable
class Storage(Protocol):
    """Uniform storage contract consumed by the presentation layer.

    Both HybridStorage and SheetsStorage implement it; callers never need
    to know which mode was selected.
    """

    mode: str

    def load_all_records(self) -> list[Record]: ...

    def add_record(self, record: Record | dict[str, Any]) -> AddResult: ...

    def update_post(self, post_id: str, fields: dict[str, Any]) -> bool: ...

    def delete_post(self, post_id: str) -> bool: ...

    def load_by_user(self, user_name: str) -> list[Record]: ...

    def get_sync_status(self) -> dict[str, Any]: ...

    def reconcile(self) -> int: ...

    def force_sync(self) -> Any: ...

    def get_stats(self) -> dict[str, Any]: ...

    def close(self) -> None: ...
