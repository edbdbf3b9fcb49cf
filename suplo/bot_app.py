import asyncio
import os
import shutil
from dotenv import load_dotenv
from slack_sdk.web.async_client import AsyncWebClient
from .approval_service import ApprovalService
from .config_service import ConfigService
from .llm.dispatcher import CompletionDispatcher
from .llm.openai_compat_client import OpenAICompatClient
from .llm.provider_router import ProviderRouter
from .logger_factory import get_logger, configure_logging
from .message_router import MessageRouter
from .persona_service import PersonaService
from .preference_store import InMemoryPreferenceStore, JsonFilePreferenceStore
from .prompt_template_engine import PromptTemplateEngine
from .salesforce_client import SalesforceClient
from .shortcuts import Shortcuts
from .slack_app import Services, create_slack_app
from .slack_gateway import SlackGateway
from .tokenizer_service import TokenizerService


def _seed(target: str, example: str) -> None:
    if not os.path.exists(target) and os.path.exists(example):
        shutil.copyfile(example, target)


def build_llm_clients(config: ConfigService, logger) -> dict:
    clients = {}
    for name, b in config.backends().items():
        key = b.api_key()
        if not key:
            logger.warning(f"backend-disabled name={name} reason=missing_{b.api_key_env}")
            continue
        clients[name] = OpenAICompatClient(
            name=name,
            api_key=key,
            base_url=b.base_url,
            model=b.model,
            concurrency=b.concurrency,
            timeout=b.timeout,
        )
        logger.info(f"backend-enabled name={name} model={b.model}")
    return clients


def build_services(config: ConfigService, web_client, user_client=None) -> Services:
    logger = get_logger("bot_app")
    pipeline = config.pipeline()
    persona = PersonaService(config.persona_path())
    template_engine = PromptTemplateEngine(persona)
    p = persona.persona()
    shortcuts = Shortcuts(
        config.identity_triggers(),
        p.identity_reply,
        p.summarize_prompt,
        config.summary_keywords(),
    )

    clients = build_llm_clients(config, logger)
    if pipeline.default_backend not in clients:
        raise RuntimeError(f"Default backend '{pipeline.default_backend}' has no API key configured")
    pref_path = config.preferences_path()
    store = JsonFilePreferenceStore(pref_path) if pref_path else InMemoryPreferenceStore()
    provider_router = ProviderRouter(store, supported=list(clients), default=pipeline.default_backend)
    dispatcher = CompletionDispatcher(clients, provider_router)

    gateway = SlackGateway(web_client, user_client)
    router = MessageRouter(
        gateway,
        template_engine,
        shortcuts,
        dispatcher,
        pipeline,
        tokenizer=TokenizerService(),
        bot_token=os.getenv("SLACK_BOT_TOKEN"),
        config=config,
        logger=get_logger("MessageRouter"),
    )

    sf_cfg = config.salesforce()
    salesforce = SalesforceClient(sf_cfg) if sf_cfg.instance_url else None
    if salesforce is None:
        logger.warning("salesforce-disabled reason=missing_SALESFORCE_URL")
    approvals = ApprovalService(gateway, salesforce, config.approval_channel(), timezone=sf_cfg.timezone, config=config)

    return Services(
        config=config,
        persona=persona,
        gateway=gateway,
        router=router,
        provider_router=provider_router,
        approvals=approvals,
    )


async def main() -> None:
    _seed(".env", ".env.example")
    load_dotenv()
    _seed("config.yaml", "config.example.yaml")

    config = ConfigService("config.yaml")
    configure_logging(
        level=config.log_level(),
        tz=config.log_timezone(),
        lib_log_level=config.lib_log_level(),
        console_to_file=config.log_console(),
        error_file=config.log_errors(),
    )
    logger = get_logger("bot_app")

    bot_token = os.getenv("SLACK_BOT_TOKEN")
    if not bot_token:
        raise RuntimeError("Missing SLACK_BOT_TOKEN in environment")
    web_client = AsyncWebClient(token=bot_token)
    user_token = os.getenv("SLACK_USER_TOKEN")
    user_client = AsyncWebClient(token=user_token) if user_token else None

    services = build_services(config, web_client, user_client)
    mode = config.bot_method()
    slack_app = create_slack_app(
        services,
        token=bot_token,
        signing_secret=os.getenv("SLACK_SIGNING_SECRET") if mode == "HTTP" else None,
        client=web_client,
    )

    try:
        if mode == "HTTP":
            import uvicorn
            from .http_app import create_app

            host, port = config.http_host(), config.http_port()
            server = uvicorn.Server(uvicorn.Config(create_app(slack_app), host=host, port=port, log_level="info"))
            logger.info(f"Suplo HTTP mode: http://{host}:{port}/slack/events")
            await server.serve()
        else:
            from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler

            app_token = os.getenv("SLACK_APP_TOKEN")
            if not app_token:
                raise RuntimeError("Missing SLACK_APP_TOKEN in environment (required for Socket Mode)")
            handler = AsyncSocketModeHandler(slack_app, app_token)
            logger.info("⚡️ Suplo app is running (Socket Mode)")
            await handler.start_async()
    finally:
        await services.router.dispatcher.aclose()
        if services.approvals.salesforce is not None:
            await services.approvals.salesforce.aclose()


if __name__ == "__main__":
    asyncio.run(main())
