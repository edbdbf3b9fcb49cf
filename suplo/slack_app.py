from __future__ import annotations

import importlib
import pkgutil
from dataclasses import dataclass
from typing import Any

from slack_bolt.async_app import AsyncApp
from slack_bolt.middleware.assistant.async_assistant import AsyncAssistant

from .approval_service import ApprovalService
from .config_service import ConfigService
from .llm.provider_router import ProviderRouter
from .logger_factory import get_logger
from .message_router import MessageRouter
from .persona_service import PersonaService
from .slack_gateway import SlackGateway
from .utils.logfmt import fmt


@dataclass
class Services:
    config: ConfigService
    persona: PersonaService
    gateway: SlackGateway
    router: MessageRouter
    provider_router: ProviderRouter
    approvals: ApprovalService


def suggested_prompts(persona, channel_id: str | None) -> list[dict]:
    p = persona.persona()
    prompts = [dict(it) for it in p.suggested_prompts]
    if channel_id:
        prompts.append({"title": "Summarize channel", "message": p.summarize_prompt})
    return prompts


def build_assistant(services: Services) -> AsyncAssistant:
    assistant = AsyncAssistant()
    log = get_logger("Assistant")

    @assistant.thread_started
    async def start_thread(payload: dict, say, set_suggested_prompts, save_thread_context):
        context = ((payload or {}).get("assistant_thread") or {}).get("context") or {}
        p = services.persona.persona()
        try:
            await say(p.greeting)
            await save_thread_context()
            await set_suggested_prompts(
                prompts=suggested_prompts(services.persona, context.get("channel_id")),
                title=p.suggested_prompts_title,
            )
        except Exception:
            log.exception(f"[thread-start-error] {fmt('channel', context.get('channel_id'))}")

    @assistant.thread_context_changed
    async def context_changed(save_thread_context):
        try:
            await save_thread_context()
        except Exception:
            log.exception("[thread-context-error]")

    @assistant.user_message
    async def respond(payload: dict, say, set_title, set_status, get_thread_context):
        payload = payload or {}
        text = payload.get("text") or ""
        try:
            await set_title(text)
            await set_status(services.router.pipeline.typing_status)
        except Exception as e:
            # cosmetic only; the reply still goes out
            log.warning(f"[thread-status-error] {fmt('channel', payload.get('channel'))} {fmt('error', e)}")
        context_channel = None
        try:
            ctx = await get_thread_context()
            context_channel = ctx.get("channel_id") if ctx else None
        except Exception as e:
            log.warning(f"[thread-context-missing] {fmt('channel', payload.get('channel'))} {fmt('error', e)}")

        async def reply(t: str):
            return await say(text=t)

        await services.router.handle_user_message(payload, reply, context_channel=context_channel)

    return assistant


def load_cogs(app: AsyncApp, services: Services, package: str = "suplo.cogs") -> int:
    """Import every module in suplo/cogs and call its setup(app, services)."""
    log = get_logger("SlackApp")
    pkg = importlib.import_module(package)
    loaded = 0
    for module_info in pkgutil.iter_modules(pkg.__path__):
        if module_info.name.startswith("_"):
            continue
        module = importlib.import_module(f"{package}.{module_info.name}")
        setup = getattr(module, "setup", None)
        if setup is None:
            continue
        setup(app, services)
        loaded += 1
    log.info(f"cogs-loaded count={loaded}")
    return loaded


def create_slack_app(services: Services, *, token: str, signing_secret: str | None = None, **kwargs: Any) -> AsyncApp:
    app = AsyncApp(token=token, signing_secret=signing_secret, **kwargs)
    app.assistant(build_assistant(services))

    @app.event("app_mention")
    async def on_mention(event: dict, say):
        async def reply(t: str):
            return await say(text=t)

        await services.router.handle_mention(event, reply)

    @app.event("file_shared")
    async def on_file_shared(event: dict):
        await services.router.handle_file_shared(event)

    @app.error
    async def on_error(error, body):
        get_logger("SlackApp").error(f"[bolt-error] {fmt('type', (body or {}).get('type'))} {fmt('error', error)}")

    load_cogs(app, services)
    return app
