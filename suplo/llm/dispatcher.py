from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .base import LLMClient
from .provider_router import ProviderRouter
from ..errors import UnsupportedInputError
from ..logger_factory import get_logger, is_full_enabled
from ..utils.logfmt import fmt


@dataclass
class CompletionResult:
    text: str
    backend: str
    model: Optional[str] = None
    usage: dict = field(default_factory=dict)


class CompletionDispatcher:
    """Sends one completion request to a named backend.

    The backend is chosen up front by ProviderRouter.resolve_backend, so an
    invalid stored selection costs one fallback decision and never a second
    dispatch.
    """

    def __init__(self, clients: Mapping[str, LLMClient], router: ProviderRouter):
        self.clients = dict(clients)
        self.router = router
        self.log = get_logger("LLMDispatch")

    async def complete(
        self,
        backend: str,
        messages: list[dict],
        *,
        temperature: Optional[float] = None,
        context_fields: Optional[dict] = None,
    ) -> CompletionResult:
        """One completion on `backend`; temperature=None leaves the provider default."""
        client = self.clients.get(backend)
        if client is None:
            raise UnsupportedInputError(
                f"Unsupported backend '{backend}'. Valid options are: {', '.join(self.clients)}"
            )
        cf = context_fields or {}
        self.log.info(
            f"[llm-start] {fmt('backend', backend)} {fmt('channel', cf.get('channel'))} {fmt('user', cf.get('user'))} "
            f"{fmt('messages', len(messages))} {fmt('temperature', temperature)} {fmt('correlation', cf.get('correlation'))}"
        )
        if is_full_enabled():
            self.log.debug(f"[llm-prompt] {fmt('correlation', cf.get('correlation'))} {fmt('messages', messages)}")
        started = time.perf_counter()
        resp = await client.generate_chat(messages, temperature=temperature, context_fields=cf)
        dur_ms = int((time.perf_counter() - started) * 1000)
        usage = resp.get("usage") or {}
        self.log.info(
            f"[llm-finish] {fmt('backend', backend)} {fmt('model', resp.get('model'))} {fmt('duration_ms', dur_ms)} "
            f"{fmt('tokens_in', usage.get('input_tokens'))} {fmt('tokens_out', usage.get('output_tokens'))} "
            f"{fmt('correlation', cf.get('correlation'))}"
        )
        return CompletionResult(text=resp.get("text", ""), backend=backend, model=resp.get("model"), usage=usage)

    async def dispatch_with_fallback(
        self,
        user_id: Optional[str],
        messages: list[dict],
        *,
        temperature: Optional[float] = None,
        context_fields: Optional[dict] = None,
    ) -> CompletionResult:
        choice = self.router.resolve_backend(user_id)
        cf = dict(context_fields or {})
        cf.setdefault("user", user_id)
        if choice.fell_back:
            cf["fallback_from"] = choice.requested
        return await self.complete(choice.backend, messages, temperature=temperature, context_fields=cf)

    async def aclose(self) -> None:
        for c in self.clients.values():
            await c.aclose()
