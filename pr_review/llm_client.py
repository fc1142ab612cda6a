"""Client wrapper for OpenAI-compatible chat completion endpoints."""

from __future__ import annotations

import asyncio
import time
from typing import Any, List, Literal, Sequence

import httpx
from pydantic import BaseModel, Field, ValidationError

from pr_review.logger import get_logger, log_with_context

logger = get_logger()

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class LLMAPIError(RuntimeError):
    """Raised when the completion service fails or returns nothing usable."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class CompletionParams(BaseModel):
    model: str
    temperature: float = 0.2
    max_tokens: int = Field(default=1500, gt=0)


class _CompletionRequest(BaseModel):
    model: str
    messages: List[ChatMessage]
    temperature: float
    max_completion_tokens: int


class _ChoiceMessage(BaseModel):
    role: str | None = None
    content: str | None = None


class _Choice(BaseModel):
    index: int = 0
    message: _ChoiceMessage
    finish_reason: str | None = None


class _CompletionResponse(BaseModel):
    id: str | None = None
    model: str | None = None
    choices: List[_Choice] = Field(default_factory=list)


class LLMClient:
    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 120.0,
        max_retries: int = 2,
        retry_delay: float = 2.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )
        self._owns_client = client is None
        self._auth_headers = {"Authorization": f"Bearer {api_key}"}
        self._max_retries = max_retries
        self._retry_delay = retry_delay

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def complete(self, messages: Sequence[ChatMessage], params: CompletionParams) -> str:
        """Return the generated text for ``messages`` or raise ``LLMAPIError``."""

        ctx_logger = log_with_context(logger, model=params.model)
        request = _CompletionRequest(
            model=params.model,
            messages=list(messages),
            temperature=params.temperature,
            max_completion_tokens=params.max_tokens,
        )
        body = request.model_dump()

        attempts = self._max_retries + 1
        for attempt in range(attempts):
            attempt_start = time.perf_counter()
            try:
                response = await self._client.post(
                    "/chat/completions", json=body, headers=self._auth_headers
                )
            except httpx.HTTPError as exc:
                if attempt < attempts - 1:
                    sleep_time = self._retry_delay * (attempt + 1)
                    ctx_logger.warning(
                        f"Completion request failed on attempt {attempt + 1}: {exc}. "
                        f"Retrying in {sleep_time:.2f}s..."
                    )
                    await asyncio.sleep(sleep_time)
                    continue
                raise LLMAPIError(f"Completion request failed: {exc}") from exc

            if response.status_code in RETRYABLE_STATUS_CODES and attempt < attempts - 1:
                sleep_time = self._retry_delay * (2 ** attempt)
                ctx_logger.warning(
                    f"Completion service returned {response.status_code} on attempt {attempt + 1}. "
                    f"Retrying in {sleep_time:.2f}s..."
                )
                await asyncio.sleep(sleep_time)
                continue

            _raise_for_status(response)
            ctx_logger.debug(
                f"Completion received on attempt {attempt + 1} "
                f"(took {time.perf_counter() - attempt_start:.3f}s)"
            )
            return _extract_text(response)

        # The final attempt always returns or raises above.
        raise LLMAPIError("Completion retries exhausted.")  # pragma: no cover


def _error_detail(response: httpx.Response) -> str:
    try:
        payload: Any = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return error
    return str(payload)


def _raise_for_status(response: httpx.Response) -> None:
    if response.status_code < 400:
        return
    raise LLMAPIError(
        f"Completion request failed with status {response.status_code}: {_error_detail(response)}",
        response.status_code,
    )


def _extract_text(response: httpx.Response) -> str:
    try:
        parsed = _CompletionResponse.model_validate(response.json())
    except (ValueError, ValidationError) as exc:
        raise LLMAPIError("Completion service returned an unreadable response.", response.status_code) from exc

    if not parsed.choices:
        raise LLMAPIError("Completion service returned no choices.", response.status_code)
    content = (parsed.choices[0].message.content or "").strip()
    if not content:
        raise LLMAPIError("Completion service returned an empty message.", response.status_code)
    return content
