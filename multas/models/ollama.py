"""OllamaModel: ModelProtocol implementation for local Ollama instances.

Uses HTTP requests to the Ollama REST API. No external SDK required
beyond ``requests``.
"""

from __future__ import annotations

from typing import Any, Optional

from multas.protocols import MultasError, ModelMessage, ModelResponse


class OllamaModelError(MultasError):
    """Raised when the Ollama API reports an error or is unreachable."""

    def __init__(self, error_class: str, message: str) -> None:
        super().__init__(message)
        self.error_class = error_class


class OllamaModel:
    """ModelProtocol implementation backed by a local Ollama instance.

    Requires a running Ollama server (default: ``http://localhost:11434``).

    Usage::

        model = OllamaModel(model_id="qwen2.5:7b")
        response = model.generate([ModelMessage(role="user", content="...")])
    """

    def __init__(
        self,
        model_id: str = "qwen2.5:7b",
        *,
        base_url: str = "http://localhost:11434",
        timeout: int = 30,
    ) -> None:
        try:
            import requests as _requests  # noqa: F811
        except ImportError:
            raise ImportError(
                "The 'requests' package is required for OllamaModel. "
                "Install it with: pip install requests"
            ) from None

        self._requests = _requests
        self._model_id = model_id
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @property
    def model_id(self) -> str:
        return self._model_id

    @property
    def provider(self) -> str:
        return "ollama"

    def generate(
        self,
        messages: list[ModelMessage],
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        system: Optional[str] = None,
    ) -> ModelResponse:
        """Generate a complete response via the Ollama chat API."""
        api_messages: list[dict[str, Any]] = []
        if system:
            api_messages.append({"role": "system", "content": system})
        api_messages.extend({"role": m.role, "content": m.content} for m in messages)

        payload: dict[str, Any] = {
            "model": self._model_id,
            "messages": api_messages,
            "stream": False,
        }
        if temperature is not None:
            payload.setdefault("options", {})["temperature"] = temperature
        if max_tokens is not None:
            payload.setdefault("options", {})["num_predict"] = max_tokens

        data = self._post("/api/chat", payload)
        message = data.get("message", {})
        usage: dict[str, int] = {}
        if "prompt_eval_count" in data:
            usage["input_tokens"] = data["prompt_eval_count"]
        if "eval_count" in data:
            usage["output_tokens"] = data["eval_count"]
        return ModelResponse(
            content=(message.get("content") or "").strip(),
            usage=usage,
            stop_reason="stop",
            model_id=data.get("model", self._model_id),
        )

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST to the Ollama API and return parsed JSON."""
        url = f"{self._base_url}{path}"
        try:
            resp = self._requests.post(url, json=payload, timeout=self._timeout)
        except self._requests.ConnectionError as exc:
            raise OllamaModelError(
                "timeout", f"Cannot connect to Ollama at {self._base_url}: {exc}"
            ) from exc
        except self._requests.Timeout as exc:
            raise OllamaModelError(
                "timeout", f"Ollama request timed out after {self._timeout}s: {exc}"
            ) from exc

        if resp.status_code != 200:
            raise OllamaModelError(
                self._classify_http_status(resp.status_code),
                f"Ollama returned HTTP {resp.status_code}: {resp.text}",
            )
        return resp.json()

    @staticmethod
    def _classify_http_status(status_code: int) -> str:
        """Map HTTP status codes to error classes."""
        if status_code == 401:
            return "auth"
        if status_code == 429:
            return "rate_limit"
        if status_code >= 500:
            return "server"
        return "unknown"
