"""HTTP adapter around the hosted model service (Anthropic or OpenAI-compatible)."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Callable, Optional, Sequence
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen


class ModelServiceError(RuntimeError):
    """Raised when the model service call fails or returns an unusable payload."""


@dataclass
class LLMRequest:
    """Represents a single completion request."""

    prompt: str
    provider: str
    model: str
    temperature: Optional[float]
    max_tokens: Optional[int]
    base_url: str
    api_key: Optional[str]
    request_timeout: Optional[float]


class LLMRunner:
    """Executes prompts against the configured model service."""

    DEFAULT_MODELS = {
        "anthropic": "claude-sonnet-4-20250514",
        "openai": "gpt-4o-mini",
    }
    DEFAULT_BASE_URLS = {
        "anthropic": "https://api.anthropic.com",
        "openai": "https://api.openai.com/v1",
    }
    ANTHROPIC_VERSION = "2023-06-01"
    ENV_API_KEY_KEYS = {
        "anthropic": ("README_BOT_LLM_API_KEY", "ANTHROPIC_API_KEY"),
        "openai": ("README_BOT_LLM_API_KEY", "OPENAI_API_KEY"),
    }

    def __init__(
        self,
        model: str | None = None,
        *,
        provider: str = "anthropic",
        base_url: str | None = None,
        temperature: Optional[float] = 0.1,
        max_tokens: Optional[int] = 4000,
        api_key: str | None = None,
        request_timeout: Optional[float] = 60.0,
        runner: Callable[[LLMRequest], str] | None = None,
    ) -> None:
        self.provider = provider.lower()
        if self.provider not in self.DEFAULT_MODELS:
            raise ValueError(f"Unsupported model provider '{provider}'")
        self.model = model or self.DEFAULT_MODELS[self.provider]
        self.base_url = (base_url or self.DEFAULT_BASE_URLS[self.provider]).rstrip("/")
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.api_key = api_key or self._first_env_value(self.ENV_API_KEY_KEYS[self.provider])
        self.request_timeout = request_timeout
        if runner is not None:
            self._runner = runner
        elif self.provider == "anthropic":
            self._runner = self._anthropic_runner
        else:
            self._runner = self._openai_runner

    def run(self, prompt: str, *, max_tokens: int | None = None) -> str:
        """Send a single user-role prompt and return the response text."""
        request = LLMRequest(
            prompt=prompt,
            provider=self.provider,
            model=self.model,
            temperature=self.temperature,
            max_tokens=max_tokens if max_tokens is not None else self.max_tokens,
            base_url=self.base_url,
            api_key=self.api_key,
            request_timeout=self.request_timeout,
        )
        return self._runner(request)

    @staticmethod
    def _anthropic_runner(request: LLMRequest) -> str:
        payload: dict[str, object] = {
            "model": request.model,
            "max_tokens": request.max_tokens or 4000,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        headers = {
            "Content-Type": "application/json",
            "anthropic-version": LLMRunner.ANTHROPIC_VERSION,
        }
        if request.api_key:
            headers["x-api-key"] = request.api_key
        response_payload = LLMRunner._post_json(f"{request.base_url}/v1/messages", payload, headers, request)

        content = LLMRunner._extract_anthropic_text(response_payload)
        if not content:
            raise ModelServiceError("Unexpected response type from model service")
        return content.strip()

    @staticmethod
    def _openai_runner(request: LLMRequest) -> str:
        payload: dict[str, object] = {
            "model": request.model,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if request.temperature is not None:
            payload["temperature"] = request.temperature
        if request.max_tokens is not None:
            payload["max_tokens"] = request.max_tokens
        headers = {"Content-Type": "application/json"}
        if request.api_key:
            headers["Authorization"] = f"Bearer {request.api_key}"
        response_payload = LLMRunner._post_json(
            f"{request.base_url}/chat/completions", payload, headers, request
        )

        content = LLMRunner._extract_openai_text(response_payload)
        if not content:
            raise ModelServiceError("Model service returned an empty response")
        return content.strip()

    @staticmethod
    def _post_json(
        endpoint: str,
        payload: dict[str, object],
        headers: dict[str, str],
        request: LLMRequest,
    ) -> dict[str, object]:
        data = json.dumps(payload).encode("utf-8")
        http_request = Request(endpoint, data=data, headers=headers, method="POST")
        timeout = request.request_timeout or 60.0

        try:
            with urlopen(http_request, timeout=timeout) as response:  # type: ignore[arg-type]
                raw = response.read()
        except HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="ignore") if hasattr(exc, "read") else ""
            message = detail.strip() or exc.reason
            raise ModelServiceError(
                f"Model service request failed with status {exc.code}: {message}"
            ) from exc
        except URLError as exc:
            raise ModelServiceError(f"Model service request failed: {exc.reason}") from exc
        except TimeoutError as exc:
            raise ModelServiceError("Model service request timed out") from exc

        try:
            decoded = json.loads(raw.decode("utf-8"))
        except json.JSONDecodeError as exc:
            raise ModelServiceError("Model service returned invalid JSON") from exc
        if not isinstance(decoded, dict):
            raise ModelServiceError("Model service returned an unexpected payload")
        return decoded

    @staticmethod
    def _extract_anthropic_text(payload: dict[str, object]) -> str:
        blocks = payload.get("content")
        if not isinstance(blocks, list) or not blocks:
            return ""
        first = blocks[0]
        if not isinstance(first, dict) or first.get("type") != "text":
            return ""
        text = first.get("text")
        return text if isinstance(text, str) else ""

    @staticmethod
    def _extract_openai_text(payload: dict[str, object]) -> str:
        choices = payload.get("choices")
        if not isinstance(choices, list) or not choices:
            return ""
        first = choices[0]
        if not isinstance(first, dict):
            return ""
        message = first.get("message")
        if isinstance(message, dict):
            content = message.get("content")
            if isinstance(content, str):
                return content
        text = first.get("text")
        if isinstance(text, str):
            return text
        return ""

    @staticmethod
    def _first_env_value(keys: Sequence[str]) -> str | None:
        for key in keys:
            value = os.getenv(key)
            if value:
                return value
        return None
