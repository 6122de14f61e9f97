"""
Groq chat-completions client (OpenAI-compatible API).

Features
- Timeouts, retries w/ exponential backoff + jitter, and Retry-After support.
- JSON-mode passthrough via `response_format`.
- Normalized `LLMResponse` surface shared by callers.

Environment (Vault or process env)
- GROQ_API_KEY (required)
- GROQ_MODEL (optional, default llama-3.1-8b-instant)

Usage:
    from rfpengine.utils.llm.LLM_GROQ import GroqLLM, ChatMessage
    with GroqLLM.from_env() as client:
        resp = client.chat(
            messages=[ChatMessage(role="user", content="Say hello!")],
            temperature=0,
        )
    print(resp.text)
"""

from __future__ import annotations

import time
import httpx
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from rfpengine.utils.vault import KNOWN_SETTINGS, secrets
from rfpengine.utils.core.errors import ConfigurationError
from rfpengine.utils.core.log import get_logger

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
GROQ_MODEL_DEFAULT = KNOWN_SETTINGS["groq_model"]


@dataclass
class ChatMessage:
    role: str  # "user" | "assistant" | "system"
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content}


@dataclass
class LLMResponse:
    """Normalized response surface."""
    raw: Dict[str, Any]
    model: str
    created: int
    usage: Optional[Dict[str, int]]
    finish_reason: Optional[str]
    text: str  # content of the first choice


class GroqError(Exception):
    def __init__(self, status_code: int, message: str, metadata: Optional[Dict[str, Any]] = None):
        super().__init__(f"[{status_code}] {message}")
        self.status_code = status_code
        self.message = message
        self.metadata = metadata or {}


@dataclass
class GroqLLM:
    api_key: str
    model: str = GROQ_MODEL_DEFAULT
    base_url: str = GROQ_BASE_URL
    timeout: float = 60.0
    connect_timeout: float = 10.0
    max_retries: int = 3
    backoff_initial: float = 0.7
    backoff_max: float = 15.0
    _client: Optional[httpx.Client] = field(default=None, init=False)

    @classmethod
    def from_env(cls, **kwargs) -> "GroqLLM":
        api_key = secrets.get("groq_api_key")
        if not api_key:
            raise ConfigurationError("GROQ_API_KEY is not set")
        kwargs.setdefault("model", secrets.get("groq_model"))
        return cls(api_key=api_key, **kwargs)

    def __enter__(self) -> "GroqLLM":
        self._client = self._make_client()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def _make_client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
            headers=self._build_headers(),
        )

    def _build_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def chat(
        self,
        messages: List[ChatMessage],
        model: Optional[str] = None,
        response_format: Optional[Dict[str, Any]] = None,
        **params: Any,
    ) -> LLMResponse:
        """Non-streaming chat completion."""
        if not messages:
            raise ValueError("`messages` must not be empty.")

        payload: Dict[str, Any] = {
            "model": model or self.model,
            "messages": [m.to_dict() for m in messages],
        }
        if response_format is not None:
            payload["response_format"] = response_format
        # temperature, max_tokens, etc.
        payload.update(params)

        data = self._request_json_with_retries("POST", "/chat/completions", json=payload)
        return self._to_llm_response(data)

    def _to_llm_response(self, data: Dict[str, Any]) -> LLMResponse:
        choices = data.get("choices") or []
        text = ""
        finish_reason = None
        if choices:
            c0 = choices[0]
            msg = c0.get("message") or {}
            text = (msg.get("content") or "") if isinstance(msg, dict) else ""
            finish_reason = c0.get("finish_reason")

        return LLMResponse(
            raw=data,
            model=data.get("model", ""),
            created=data.get("created", 0),
            usage=data.get("usage"),
            finish_reason=finish_reason,
            text=text or "",
        )

    def _request_json_with_retries(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        logger = get_logger()
        attempt = 0

        while True:
            attempt += 1
            try:
                resp = self._request(method, path, **kwargs)
                if resp.status_code == 200:
                    return resp.json()
                err = _read_error_safely(resp)
                raise GroqError(
                    resp.status_code,
                    err.get("message", "Request error"),
                    {"retry_after": resp.headers.get("retry-after")},
                )
            except GroqError as e:
                # Retry on 408/429/5xx; 400/401/403 are final
                if self._should_retry_status(e.status_code) and attempt <= self.max_retries:
                    retry_after = _parse_retry_after(e.metadata.get("retry_after"))
                    logger.debug(f"Groq {e.status_code}; retry {attempt}/{self.max_retries}")
                    self._sleep_backoff(attempt, retry_after)
                    continue
                raise
            except (httpx.ConnectError, httpx.ReadError, httpx.RemoteProtocolError, httpx.ConnectTimeout, httpx.ReadTimeout) as e:
                if attempt <= self.max_retries:
                    self._sleep_backoff(attempt, retry_after=None)
                    continue
                raise GroqError(408, f"Network error: {e}") from e

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        if self._client is not None:
            return self._client.request(method, path, **kwargs)
        with self._make_client() as client:
            return client.request(method, path, **kwargs)

    def _sleep_backoff(self, attempt: int, retry_after: Optional[float]) -> None:
        if retry_after is not None and retry_after >= 0:
            delay = float(retry_after)
        else:
            # Exponential backoff with full jitter
            base = self.backoff_initial * (2 ** (attempt - 1))
            delay = min(base, self.backoff_max) * random.uniform(0.5, 1.5)
        time.sleep(delay)

    @staticmethod
    def _should_retry_status(status: int) -> bool:
        return status in (408, 429, 500, 502, 503, 504)


def _read_error_safely(resp: httpx.Response) -> Dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {"code": resp.status_code, "message": f"HTTP {resp.status_code}"}
    err = data.get("error") or {}
    if isinstance(err, str):
        return {"code": resp.status_code, "message": err}
    return {
        "code": err.get("code", resp.status_code),
        "message": err.get("message") or f"HTTP {resp.status_code}",
    }


def _parse_retry_after(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def call_groq_sync(
    user_prompt: str,
    *,
    system_instruction: str | None = None,
    model: str | None = None,
    temperature: float = 0.0,
    json_mode: bool = True,
) -> str:
    """
    One-shot chat call returning the text of the first choice.

    json_mode asks Groq for a JSON object; the prompts must then mention JSON
    or the API rejects the request with a 400.
    """
    messages = []
    if system_instruction:
        messages.append(ChatMessage(role="system", content=system_instruction))
    messages.append(ChatMessage(role="user", content=user_prompt))

    with GroqLLM.from_env() as client:
        resp = client.chat(
            messages=messages,
            model=model,
            response_format={"type": "json_object"} if json_mode else None,
            temperature=temperature,
        )

    if not resp.text.strip():
        raise GroqError(502, "Groq returned empty content")
    return resp.text
