"""AnthropicModel: ModelProtocol implementation for Anthropic's API.

Wraps the ``anthropic`` Python SDK. The SDK is imported lazily so that
the module can be imported without having ``anthropic`` installed (the
import fails only when the class is instantiated).
"""

from __future__ import annotations

import os
from typing import Any, Optional

from multas.protocols import MultasError, ModelMessage, ModelResponse


class AnthropicModelError(MultasError):
    """Raised when the Anthropic SDK reports an error."""

    def __init__(self, error_class: str, message: str) -> None:
        super().__init__(message)
        self.error_class = error_class


class AnthropicModel:
    """ModelProtocol implementation backed by the Anthropic API.

    Requires the ``anthropic`` package::

        pip install multas[anthropic]

    Usage::

        model = AnthropicModel()  # uses CLAUDE_API_KEY / ANTHROPIC_API_KEY
        response = model.generate([ModelMessage(role="user", content="...")])
    """

    def __init__(
        self,
        model_id: str = "claude-3-haiku-20240307",
        *,
        api_key: Optional[str] = None,
        max_tokens: int = 1000,
    ) -> None:
        try:
            import anthropic  # noqa: F811
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for AnthropicModel. "
                "Install it with: pip install anthropic"
            ) from None

        resolved_key = (
            api_key or os.environ.get("CLAUDE_API_KEY") or os.environ.get("ANTHROPIC_API_KEY")
        )
        if not resolved_key:
            raise ValueError(
                "An API key is required. Pass api_key= or set CLAUDE_API_KEY / ANTHROPIC_API_KEY."
            )

        self._model_id = model_id
        self._max_tokens = max_tokens
        self._client = anthropic.Anthropic(api_key=resolved_key)

    @property
    def model_id(self) -> str:
        return self._model_id

    @property
    def provider(self) -> str:
        return "claude"

    def generate(
        self,
        messages: list[ModelMessage],
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        system: Optional[str] = None,
    ) -> ModelResponse:
        """Generate a complete response via the Anthropic messages API."""
        api_messages, extracted_system = self._prepare_messages(messages, system)
        kwargs: dict[str, Any] = {
            "model": self._model_id,
            "messages": api_messages,
            "max_tokens": max_tokens or self._max_tokens,
        }
        if extracted_system:
            kwargs["system"] = extracted_system
        if temperature is not None:
            kwargs["temperature"] = temperature

        try:
            response = self._client.messages.create(**kwargs)
        except Exception as exc:
            raise self._classify_error(exc, "Anthropic API error") from exc

        return self._parse_response(response)

    def _prepare_messages(
        self,
        messages: list[ModelMessage],
        system: Optional[str],
    ) -> tuple[list[dict[str, Any]], Optional[str]]:
        """Convert ModelMessages to Anthropic format, extracting system messages."""
        extracted_system = system
        api_messages: list[dict[str, Any]] = []

        for msg in messages:
            if msg.role == "system":
                # Anthropic API uses a top-level system param, not a system role
                if extracted_system:
                    extracted_system = f"{extracted_system}\n\n{msg.content}"
                else:
                    extracted_system = msg.content
                continue
            api_messages.append({"role": msg.role, "content": msg.content})

        return api_messages, extracted_system

    @staticmethod
    def _classify_error(exc: Exception, prefix: str) -> AnthropicModelError:
        """Classify an Anthropic SDK exception into an error class."""
        try:
            import anthropic as _anthropic
        except ImportError:
            return AnthropicModelError("unknown", f"{prefix}: {exc}")

        _checks: list[tuple[str, str, str]] = [
            ("RateLimitError", "rate_limit", "rate limited"),
            ("AuthenticationError", "auth", "auth failed"),
            ("APITimeoutError", "timeout", "timeout"),
        ]
        for attr, cls, label in _checks:
            exc_type = getattr(_anthropic, attr, None)
            if isinstance(exc_type, type) and isinstance(exc, exc_type):
                return AnthropicModelError(cls, f"{prefix}: {label}: {exc}")

        api_status = getattr(_anthropic, "APIStatusError", None)
        if isinstance(api_status, type) and isinstance(exc, api_status):
            code = getattr(exc, "status_code", "?")
            return AnthropicModelError("server", f"{prefix}: API error ({code}): {exc}")

        return AnthropicModelError("unknown", f"{prefix}: {exc}")

    def _parse_response(self, response: Any) -> ModelResponse:
        """Convert an Anthropic response to ModelResponse."""
        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        usage = {}
        if getattr(response, "usage", None):
            usage = {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            }
        return ModelResponse(
            content=text.strip(),
            usage=usage,
            stop_reason=getattr(response, "stop_reason", None),
            model_id=getattr(response, "model", self._model_id),
        )
