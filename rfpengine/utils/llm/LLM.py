"""Centralised Gemini helper utilities.

This module exposes a single interface for calling Google's Gemini models.
It hides client creation, rate-limiting and error handling behind one
shared utility.

## Key Features

- One lazily created, lock-guarded `genai.Client` per process, keyed by
  the `gemini_api_key` secret.

- Per-minute sliding window limiter (`RateLimiter`) for request and token
budgets.

- Tenacity-backed exponential retries on transient faults (5xx, 429/499,
empty responses); everything else bails out at once.

- `to_parts()` coerces strings, bytes, or `Part` instances into a list of
`Part` objects for Gemini calls.

Import pattern for tools:
```python
from rfpengine.utils.llm.LLM import call_llm_sync
```
"""

from __future__ import annotations

import time
import httpx
import threading
from collections import deque
from typing import Any, List, Mapping, Optional, Sequence

import tenacity
from google import genai
from google.genai import types
from google.genai.types import Part
from google.genai import errors as gerrors

from rfpengine.utils.vault import secrets
from rfpengine.utils.core.errors import ConfigurationError
from rfpengine.utils.core.log import get_logger


__all__ = [
    "Part",
    "RateLimiter",
    "EmptyLLMResponseError",
    "get_client",
    "to_parts",
    "call_llm_sync",
]

# Configuration

REQUESTS_PER_MINUTE = 200
TOKENS_PER_MINUTE = 1_000_000
CHARS_PER_TOKEN = 4
_RETRIABLE_CLIENT_CODES = {429, 499}

_CLIENT = None
_LOCK = threading.Lock()


def _make_preview(parts, max_chars: int = 120) -> str:
    for p in parts:
        t = getattr(p, "text", None)
        if isinstance(t, str) and t.strip():
            s = " ".join(t.split())
            return (s[:max_chars] + "...") if len(s) > max_chars else s
    return ""


def _debug_merge(meta: Optional[Mapping[str, str]], fallback_preview: str) -> dict:
    meta = dict(meta or {})
    meta.setdefault("caller", "unknown")
    meta.setdefault("preview", fallback_preview or "")
    return meta


class EmptyLLMResponseError(Exception):
    """Raised when LLM returns empty output (e.g. max tokens hit)."""
    pass


def _is_retriable(exc: Exception) -> bool:
    """Return True only for transient faults we want to retry."""
    if isinstance(exc, EmptyLLMResponseError):
        return True
    if isinstance(exc, gerrors.ServerError):  # 5xx
        return True
    if isinstance(exc, gerrors.ClientError):  # 4xx
        return getattr(exc, "code", None) in _RETRIABLE_CLIENT_CODES
    return False


_retry_policy = tenacity.retry(
    retry=tenacity.retry_if_exception(_is_retriable),
    wait=tenacity.wait_exponential(multiplier=1, min=1, max=8),
    stop=tenacity.stop_after_attempt(3),
    reraise=True,
)


def _finish_reason(resp) -> str:
    candidates = getattr(resp, "candidates", None) or []
    if not candidates:
        return "STOP"
    reason = getattr(candidates[0], "finish_reason", None)
    if reason is None:
        return "STOP"
    return str(getattr(reason, "name", reason)).upper()


def _wrap_sdk_call(fn, *args, _log_model=None, _debug_meta: dict | None = None, **kwargs):
    """Run an SDK call, classify errors, and emit structured logs."""
    logger = get_logger()
    t0 = time.perf_counter()
    meta = _debug_meta or {}
    caller = meta.get("caller", "unknown")
    preview = meta.get("preview", "")
    callee = getattr(fn, "__name__", repr(fn))

    try:
        resp = fn(*args, **kwargs)
        latency_ms = int((time.perf_counter() - t0) * 1000)
        usage = getattr(resp, "usage_metadata", None)

        prompt_tok = getattr(usage, "prompt_token_count", -1) if usage else -1
        total_tok = getattr(usage, "total_token_count", -1) if usage else -1
        finish = _finish_reason(resp)

        base_msg = (
            f"LLM Call OK | model={_log_model} | latency={latency_ms}ms | "
            f"prompt_tokens={prompt_tok} | total_tokens={total_tok}"
        )

        if finish != "STOP":  # safety-stop, max-tokens, etc.
            logger.warning(base_msg + f" | finish_reason={finish}")
        else:
            logger.debug(base_msg)

        return resp

    except gerrors.ClientError as e:
        logger.error("LLM ClientError | caller=%s | callee=%s | model=%s | code=%s | err=%s | preview='%s'",
                     caller, callee, _log_model, getattr(e, "code", None), e, preview, exc_info=True,)
        raise
    except gerrors.ServerError as e:
        logger.error("LLM ServerError | caller=%s | callee=%s | model=%s | err=%s | preview='%s'",
                     caller, callee, _log_model, e, preview, exc_info=True,)
        raise
    except Exception as e:
        logger.exception("LLM UnexpectedError | caller=%s | callee=%s | model=%s | err=%s | preview='%s'",
                         caller, callee, _log_model, e, preview)
        raise


def _create_client() -> genai.Client:
    api_key = secrets.get("gemini_api_key")
    if not api_key:
        raise ConfigurationError("GEMINI_API_KEY is not set")

    http_options = types.HttpOptions(
        api_version="v1",
        client_args={
            "limits": httpx.Limits(
                max_keepalive_connections=20,
                max_connections=100,
                keepalive_expiry=60.0,
            ),
            "timeout": httpx.Timeout(30.0),
        },
    )
    return genai.Client(api_key=api_key, http_options=http_options)


def get_client() -> genai.Client:
    global _CLIENT
    if _CLIENT is None:
        with _LOCK:
            if _CLIENT is None:
                _CLIENT = _create_client()
    return _CLIENT


# Rate limiter
class RateLimiter:
    """Simple token/request bucket for minute-long windows (thread-safe)."""

    def __init__(
        self, req_pm: int = REQUESTS_PER_MINUTE, tok_pm: int = TOKENS_PER_MINUTE
    ):
        self.req_pm = req_pm
        self.tok_pm = tok_pm
        self._mtx = threading.Lock()
        self._req: deque[float] = deque()
        self._tok: deque[tuple[float, int]] = deque()

    def acquire_sync(self, tokens: int = 0) -> None:
        """Blocking acquire for use from sync code or threads."""
        tokens = max(0, int(tokens))
        while True:
            now = time.time()
            window_start = now - 60.0

            with self._mtx:
                while self._req and self._req[0] < window_start:
                    self._req.popleft()
                while self._tok and self._tok[0][0] < window_start:
                    self._tok.popleft()

                used_tokens = sum(t for _, t in self._tok)
                can_req = len(self._req) < self.req_pm
                can_tok = (used_tokens + tokens) <= self.tok_pm

                if can_req and can_tok:
                    self._req.append(now)
                    self._tok.append((now, tokens))
                    return

                next_req = (self._req[0] + 60.0 - now) if self._req else 0.05
                next_tok = (self._tok[0][0] + 60.0 - now) if self._tok else 0.05
                sleep_for = max(
                    0.001,
                    (
                        min(x for x in (next_req, next_tok) if x > 0)
                        if (self._req or self._tok)
                        else 0.05
                    ),
                )

            time.sleep(sleep_for)


_GLOBAL_LIMITER = RateLimiter()


def to_parts(content: Sequence[Part | str | bytes]) -> List[Part]:
    "makes content gemini safe by converting to parts"
    parts: List[Part] = []
    for item in content:
        if isinstance(item, Part):
            parts.append(item)
        elif isinstance(item, str):
            parts.append(Part.from_text(text=item))
        elif isinstance(item, (bytes, bytearray)):
            parts.append(
                Part.from_bytes(data=bytes(item), mime_type="application/octet-stream")
            )
        else:
            raise TypeError(f"Unsupported Part type: {type(item)}")
    return parts


def estimate_tokens(parts: Sequence[Part]) -> int:
    """Rough token estimate used for rate limiting."""
    chars = sum(len(getattr(p, "text", None) or "") for p in parts)
    return max(1, chars // CHARS_PER_TOKEN)


@_retry_policy
def call_llm_sync(
    prompt_parts: Sequence[Part | str],
    *,
    model: str | None = None,
    system_instruction: str | None = None,
    cfg: dict[str, Any] | None = None,
    limiter: RateLimiter | None = None,
    debug_caller: str | None = None,
) -> str:
    """
    Synchronously call Gemini with the given prompt parts.

    Args:
        prompt_parts: Parts (or plain strings) to send as the user turn.
        model: Model name; defaults to the `llm_model` setting.
        system_instruction: Optional system instruction.
        cfg: Generation config; defaults to temperature 0 and 8192 output tokens.
        limiter: Rate limiter; defaults to the process-wide limiter.
        debug_caller: Label used in error logs.

    Returns:
        The response text.
    """
    model = model or secrets.get("llm_model")
    cfg = cfg or {"temperature": 0.0, "max_output_tokens": 8192}
    limiter = limiter or _GLOBAL_LIMITER
    prompt_parts = to_parts(prompt_parts)

    limiter.acquire_sync(estimate_tokens(prompt_parts))

    client = get_client()
    config = types.GenerateContentConfig(
        system_instruction=system_instruction or None,
        **cfg,
    )

    preview = _make_preview(prompt_parts)
    meta = _debug_merge({"caller": debug_caller, "preview": preview}, preview)

    resp = _wrap_sdk_call(
        client.models.generate_content,
        model=model,
        contents=prompt_parts,
        config=config,
        _log_model=model,
        _debug_meta=meta,
    )
    text = getattr(resp, "text", None)
    if not text or not text.strip():
        raise EmptyLLMResponseError("LLM returned empty text")
    return text
