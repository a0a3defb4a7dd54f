"""LLM client: HTTP connection to a text-completion backend.

Both collaborator passes of a turn go through one callable:

    async def __call__(self, stage: str, prompt: str) -> str: ...

``stage`` is ``"understand"`` (player input -> mutations) or ``"narrate"``
(applied mutations -> message, NPC reply, progress signals). Implementations
may log or route on it.

    HttpLLM   real client for KoboldCpp, OpenAI-style completions and
              OpenAI-style chat completions, selected by provider_format
    EchoLLM   returns the prompt unchanged; useful to check prompt rendering

Every transport failure surfaces as ``LLMError``. The turn orchestrator lets
it propagate untouched, so the caller can retry the whole turn.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Protocol

import httpx

logger = logging.getLogger(__name__)


class LLMError(RuntimeError):
    """The backend could not be reached or answered with something unusable."""


class LLM(Protocol):
    async def __call__(self, stage: str, prompt: str) -> str: ...


# ---------------------------------------------------------------------------
# HttpLLM
# ---------------------------------------------------------------------------

ProviderFormat = Literal["koboldcpp", "openai", "openai_chat"]


class HttpLLM:
    """Async HTTP client for text-completion backends.

    Wire formats:
      "koboldcpp"    POST /api/v1/generate       {"prompt", "max_length"}
                     -> {"results": [{"text": ...}]}
      "openai"       POST /v1/completions        {"model", "prompt", "max_tokens"}
                     -> {"choices": [{"text": ...}]}
      "openai_chat"  POST /v1/chat/completions   {"model", "messages", "max_tokens"}
                     -> {"choices": [{"message": {"content": ...}}]}

    Args:
        provider_url:    Base URL, e.g. "http://localhost:5001".
        api_key:         Bearer token, or "" if the backend needs none.
        provider_format: One of the formats above.
        model:           Model name; sent by the OpenAI formats only.
        timeout:         Seconds before a request is abandoned.
        max_tokens:      Completion length cap.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "koboldcpp",
        model: str = "",
        timeout: float = 60.0,
        max_tokens: int = 1024,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout
        self._max_tokens = max_tokens

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, prompt: str) -> tuple[str, dict[str, Any]]:
        if self._format == "openai_chat":
            body: dict[str, Any] = {
                "messages": [{"role": "user", "content": prompt}],
                "max_tokens": self._max_tokens,
            }
            if self._model:
                body["model"] = self._model
            return f"{self._base_url}/v1/chat/completions", body

        if self._format == "openai":
            body = {"prompt": prompt, "max_tokens": self._max_tokens}
            if self._model:
                body["model"] = self._model
            return f"{self._base_url}/v1/completions", body

        return (
            f"{self._base_url}/api/v1/generate",
            {"prompt": prompt, "max_length": self._max_tokens},
        )

    def _parse_response(self, data: dict[str, Any]) -> str:
        if self._format == "openai_chat":
            choices = data.get("choices")
            first = choices[0] if isinstance(choices, list) and choices else None
            message = first.get("message") if isinstance(first, dict) else None
            if not isinstance(message, dict) or "content" not in message:
                raise LLMError("Unexpected response format from chat backend")
            return message["content"]

        if self._format == "openai":
            choices = data.get("choices")
            if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict) \
                    or "text" not in choices[0]:
                raise LLMError("Unexpected response format from OpenAI-compatible backend")
            return choices[0]["text"]

        results = data.get("results")
        if not isinstance(results, list) or not results or not isinstance(results[0], dict) \
                or "text" not in results[0]:
            raise LLMError("Unexpected response format from KoboldCpp backend")
        return results[0]["text"]

    async def __call__(self, stage: str, prompt: str) -> str:
        url, body = self._build_request(prompt)
        logger.debug("llm call stage=%s url=%s prompt_len=%d", stage, url, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(f"LLM backend returned HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise LLMError(f"LLM request failed: {e.__class__.__name__}: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise LLMError("LLM backend returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise LLMError("LLM backend returned JSON that is not an object")

        text = self._parse_response(data)
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text


class EchoLLM:
    """Returns the prompt as-is; no network.

    The echoed prompt is not valid collaborator JSON, so a turn run against
    it fails with ``CollaboratorError``. Use it to eyeball rendered prompts.
    """

    async def __call__(self, stage: str, prompt: str) -> str:
        logger.debug("EchoLLM stage=%s prompt_len=%d", stage, len(prompt))
        return prompt


def llm_from_config(config: dict[str, Any]) -> HttpLLM:
    """Build an ``HttpLLM`` from the ``"llm"`` section of the app config."""
    settings = config["llm"]
    return HttpLLM(
        provider_url=settings["provider_url"],
        api_key=settings.get("api_key", ""),
        provider_format=settings.get("provider_format", "koboldcpp"),
        model=settings.get("model", ""),
        timeout=float(settings.get("timeout", 60.0)),
        max_tokens=int(settings.get("max_tokens", 1024)),
    )
