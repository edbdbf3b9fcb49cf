from __future__ import annotations

import asyncio
from typing import Optional
import httpx
from .base import LLMClient
from ..errors import UpstreamError
from ..logger_factory import get_logger
from ..utils.logfmt import fmt


class OpenAICompatClient(LLMClient):
    """Chat-completions client for OpenAI and OpenAI-compatible hosts (DeepSeek).

    Accepts base_url as .../v1 or .../v1/chat/completions. Exactly one
    completion is requested per call (n=1), no streaming, no retries.
    """

    def __init__(
        self,
        *,
        name: str,
        api_key: Optional[str],
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o-mini",
        concurrency: int = 4,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.name = name
        self.log = get_logger(f"LLM.{name}")
        if not api_key:
            raise RuntimeError(f"Missing API key for backend '{name}'")
        self.api_key = api_key
        u = base_url.rstrip("/")
        if u.endswith("/chat/completions"):
            self.chat_url = u
        elif u.endswith("/v1"):
            self.chat_url = u + "/chat/completions"
        else:
            self.chat_url = u + "/v1/chat/completions"
        self.model = model
        self.timeout = timeout
        self._sem = asyncio.Semaphore(concurrency)
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    def build_payload(self, messages: list[dict], model: Optional[str], temperature: Optional[float]) -> dict:
        payload: dict = {
            "model": model or self.model,
            "n": 1,
            "messages": messages,
        }
        # Omitted temperature means the provider default applies
        if temperature is not None:
            payload["temperature"] = temperature
        return payload

    async def generate_chat(
        self,
        messages: list[dict],
        *,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        context_fields: Optional[dict] = None,
    ) -> dict:
        payload = self.build_payload(messages, model, temperature)
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        async with self._sem:
            try:
                r = await self._client.post(self.chat_url, json=payload, headers=headers)
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                raise UpstreamError(self.name, f"request failed: {e.__class__.__name__}: {e}") from e
        if r.status_code < 200 or r.status_code >= 300:
            raise UpstreamError(self.name, _error_message(r), status=r.status_code)
        try:
            data = r.json()
            text = (data["choices"][0]["message"]["content"] or "").strip()
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise UpstreamError(self.name, f"response parse error: {r.text[:500]}", status=r.status_code) from e
        usage = data.get("usage") or {}
        cf = context_fields or {}
        self.log.debug(f"[llm-provider-finish] {fmt('provider', self.name)} {fmt('channel', cf.get('channel'))} {fmt('user', cf.get('user'))} {fmt('correlation', cf.get('correlation'))}")
        return {
            "text": text,
            "usage": {
                "input_tokens": usage.get("prompt_tokens"),
                "output_tokens": usage.get("completion_tokens"),
                "total_tokens": usage.get("total_tokens"),
            },
            "provider": self.name,
            "model": payload["model"],
        }

    async def aclose(self) -> None:
        await self._client.aclose()


def _error_message(r: httpx.Response) -> str:
    # OpenAI-style {"error": {"message": ...}} when available, raw body otherwise
    try:
        data = r.json()
        err = data.get("error") if isinstance(data, dict) else None
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str):
            return err
    except ValueError:
        pass
    return (r.text or r.reason_phrase or "no body")[:500]
