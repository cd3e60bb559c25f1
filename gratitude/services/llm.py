"""
LLM client for extraction and image transcription.

Every provider speaks the OpenAI chat-completions dialect, so one request
shape serves all three. A call goes to FF_LLM_PROVIDER first; when that
provider has no key, or fails after retries, it is sent once more to the
first other provider that has a key.

Retryable statuses (429, 5xx) and timeouts back off exponentially with
jitter, honouring Retry-After when the provider sends one.
"""

import asyncio
import logging
import random
import time
from typing import Any, NamedTuple, Optional

import httpx

from ..core.config import get_settings
from ..core.flags import get_flags

logger = logging.getLogger(__name__)

# ── Shared client ────────────────────────────────────────────────────

_client: Optional[httpx.AsyncClient] = None


def _get_client() -> httpx.AsyncClient:
    global _client
    if _client is None or _client.is_closed:
        _client = httpx.AsyncClient(
            timeout=httpx.Timeout(connect=10, read=120, write=30, pool=10),
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        )
    return _client


def set_client(client: Optional[httpx.AsyncClient]) -> None:
    """Swap the shared client (tests inject one with a MockTransport)."""
    global _client
    _client = client


async def close_client():
    global _client
    if _client and not _client.is_closed:
        await _client.aclose()
        _client = None


# ── Providers ────────────────────────────────────────────────────────

PROVIDERS = ("gemini", "aiml", "openai")
GEMINI_OPENAI_URL = "https://generativelanguage.googleapis.com/v1beta/openai"


class Provider(NamedTuple):
    name: str
    base_url: str
    api_key: str
    model: str


def get_provider(name: Optional[str] = None) -> Provider:
    settings = get_settings()
    name = (name or get_flags().llm_provider).lower()
    base_url, api_key = {
        "gemini": (GEMINI_OPENAI_URL, settings.gemini_api_key),
        "aiml": (settings.aiml_base_url, settings.aiml_api_key),
    }.get(name, (settings.openai_base_url, settings.openai_api_key))
    return Provider(name, base_url, api_key, settings.default_llm_model)


def is_configured() -> bool:
    """True if any provider has an API key."""
    return any(get_provider(p).api_key for p in PROVIDERS)


def _fallback_for(primary: str) -> Optional[Provider]:
    """First other provider with a key, in PROVIDERS order."""
    for name in PROVIDERS:
        if name != primary:
            candidate = get_provider(name)
            if candidate.api_key:
                return candidate
    return None


# ── Retry ────────────────────────────────────────────────────────────

RETRYABLE_STATUS = {429, 500, 502, 503, 504}
MAX_RETRIES = 3
BASE_DELAY = 1.0
MAX_DELAY = 16.0


def _backoff(attempt: int, retry_after: Optional[str] = None) -> float:
    if retry_after:
        try:
            return min(MAX_DELAY, float(retry_after))
        except ValueError:
            pass
    return min(MAX_DELAY, BASE_DELAY * (2 ** attempt) + random.uniform(0, 1))


async def _post_with_retry(url: str, payload: dict, api_key: str) -> httpx.Response:
    headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
    last_exc: Optional[Exception] = None

    for attempt in range(MAX_RETRIES + 1):
        try:
            resp = await _get_client().post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            delay = _backoff(attempt)
            logger.warning("LLM timeout (attempt %d/%d), retrying in %.1fs", attempt + 1, MAX_RETRIES + 1, delay)
            last_exc = e
        else:
            if resp.status_code not in RETRYABLE_STATUS:
                if resp.status_code >= 400:
                    logger.error("LLM API error %d: %s", resp.status_code, resp.text[:500])
                resp.raise_for_status()
                return resp

            delay = _backoff(attempt, resp.headers.get("retry-after"))
            logger.warning(
                "LLM %d (attempt %d/%d), retrying in %.1fs",
                resp.status_code, attempt + 1, MAX_RETRIES + 1, delay,
            )
            last_exc = httpx.HTTPStatusError(str(resp.status_code), request=resp.request, response=resp)

        if attempt < MAX_RETRIES:
            await asyncio.sleep(delay)

    raise last_exc or RuntimeError("LLM request failed after retries")


# ── Chat ─────────────────────────────────────────────────────────────

async def chat(
    messages: list[dict],
    model: Optional[str] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    provider: Optional[str] = None,
) -> dict:
    """
    Chat completion. Returns the raw response dict.
    An explicit `provider` is never swapped for a fallback.
    """
    settings = get_settings()
    target = get_provider(provider)
    fallback = None if provider else _fallback_for(target.name)

    if not target.api_key:
        if fallback:
            logger.info("No key for %s, using %s", target.name, fallback.name)
            return await chat(messages, model, temperature, max_tokens, provider=fallback.name)
        raise ValueError(
            f"No API key for LLM provider '{target.name}'. "
            "Set GEMINI_API_KEY, AIML_API_KEY, or OPENAI_API_KEY."
        )

    payload: dict[str, Any] = {
        "model": model or target.model,
        "messages": messages,
        "temperature": temperature if temperature is not None else settings.default_llm_temperature,
        "max_tokens": max_tokens or settings.default_llm_max_tokens,
    }

    start = time.monotonic()
    try:
        resp = await _post_with_retry(f"{target.base_url.rstrip('/')}/chat/completions", payload, target.api_key)
    except Exception as e:
        logger.error("LLM %s failed after %.1fs: %s", target.name, time.monotonic() - start, e)
        if fallback:
            logger.info("Falling back to %s", fallback.name)
            return await chat(messages, model, temperature, max_tokens, provider=fallback.name)
        raise

    data = resp.json()
    usage = data.get("usage") or {}
    logger.info(
        "LLM chat: %dms | in=%d out=%d tokens | provider=%s model=%s",
        int((time.monotonic() - start) * 1000),
        usage.get("prompt_tokens", 0),
        usage.get("completion_tokens", 0),
        target.name,
        payload["model"],
    )
    return data


def _content(response: dict) -> str:
    return response["choices"][0]["message"]["content"] or ""


async def chat_simple(
    prompt: str,
    system: str = "",
    model: Optional[str] = None,
    temperature: float = 0.7,
    max_tokens: int = 2000,
) -> str:
    """Send a prompt, get a string back."""
    messages = [{"role": "system", "content": system}] if system else []
    messages.append({"role": "user", "content": prompt})
    return _content(await chat(messages, model=model, temperature=temperature, max_tokens=max_tokens))


async def chat_with_vision(
    prompt: str,
    image_urls: list[str],
    model: Optional[str] = None,
    max_tokens: int = 2000,
) -> str:
    """Prompt plus images (URLs or data: URIs). Returns the reply text."""
    content: list[dict] = [{"type": "text", "text": prompt}]
    content += [{"type": "image_url", "image_url": {"url": url}} for url in image_urls]
    response = await chat([{"role": "user", "content": content}], model=model, max_tokens=max_tokens)
    return _content(response)
