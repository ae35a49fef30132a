"""Async text-generation client for OpenAI-compatible chat-completions endpoints."""

from __future__ import annotations

import json
import logging
import os
from time import perf_counter
from typing import Any, Dict, Optional, Protocol, runtime_checkable
from uuid import uuid4

import httpx

from env_validation import get_env_float, get_env_int
from schemas import GenerationResult

DEFAULT_API_URL = "http://localhost:4891/v1/chat/completions"
DEFAULT_MODEL_ID = "llama3-8b-8192"
SYSTEM_PROMPT = (
    "You are an expert educational assistant for Ugandan Competency-Based Assessment (CBA) "
    "curriculum. Provide clear, structured responses aligned with UNEB standards."
)

_LLM_LOGGER = logging.getLogger("cba.llm")
if not _LLM_LOGGER.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter("%(message)s"))
    _LLM_LOGGER.addHandler(_handler)
_LLM_LOGGER.setLevel(logging.INFO)
_LLM_LOGGER.propagate = False


class GenerationError(RuntimeError):
    """Raised when the generation endpoint returns an unusable payload."""


@runtime_checkable
class TextGenerator(Protocol):
    """Anything that can turn a prompt into generated text."""

    async def generate(self, prompt: str) -> GenerationResult:
        ...


def _extract_text(data: Any) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        content = None
    if content is None:
        try:
            content = data["choices"][0]["text"]
        except (KeyError, IndexError, TypeError):
            content = None
    if content is None:
        raise GenerationError(f"Unexpected generation response: {str(data)[:300]}")
    return str(content)


def _coerce_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class ChatCompletionGenerator:
    """Post prompts to a chat-completions endpoint; no retries are attempted."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        *,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        system_prompt: str = SYSTEM_PROMPT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_url = api_url or os.getenv("GENERATION_API_URL") or DEFAULT_API_URL
        self.api_key = api_key if api_key is not None else os.getenv("GENERATION_API_KEY")
        self.model = model or os.getenv("MODEL_ID") or DEFAULT_MODEL_ID
        self.temperature = temperature if temperature is not None else get_env_float("LLM_TEMPERATURE", 0.7)
        self.max_tokens = max_tokens if max_tokens is not None else get_env_int("LLM_MAX_TOKENS", 2048)
        self.timeout = timeout if timeout is not None else get_env_float("LLM_TIMEOUT", 60.0)
        self.system_prompt = system_prompt
        self._client = client

    def _payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    async def generate(self, prompt: str) -> GenerationResult:
        headers: Dict[str, str] = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        request_id = str(uuid4())
        start = perf_counter()
        tokens_in: Optional[int] = None
        tokens_out: Optional[int] = None
        status = "error"
        client = self._client or httpx.AsyncClient(timeout=self.timeout)
        try:
            response = await client.post(self.api_url, json=self._payload(prompt), headers=headers or None)
            response.raise_for_status()
            try:
                data = response.json()
            except ValueError as exc:
                raise GenerationError("Generation endpoint returned invalid JSON") from exc

            text = _extract_text(data)
            usage = data.get("usage") if isinstance(data, dict) else None
            total: Optional[int] = None
            if isinstance(usage, dict):
                tokens_in = _coerce_int(usage.get("prompt_tokens"))
                tokens_out = _coerce_int(usage.get("completion_tokens"))
                total = _coerce_int(usage.get("total_tokens"))
                if total is None and (tokens_in is not None or tokens_out is not None):
                    total = (tokens_in or 0) + (tokens_out or 0)
            status = "ok"
            return GenerationResult(
                text=text,
                tokens_used=total or 0,
                latency_ms=int((perf_counter() - start) * 1000),
                model=str(data.get("model") or self.model) if isinstance(data, dict) else self.model,
            )
        finally:
            if self._client is None:
                await client.aclose()
            log_record = {
                "event": "llm_call",
                "request_id": request_id,
                "model": self.model,
                "status": status,
                "latency_ms": int((perf_counter() - start) * 1000),
                "tokens_in": tokens_in,
                "tokens_out": tokens_out,
            }
            _LLM_LOGGER.info(json.dumps(log_record, ensure_ascii=False))
