from __future__ import annotations

from typing import Awaitable, Callable, Optional

from .config_service import ConfigService, PipelineConfig
from .conversation import normalize_thread
from .documents import SUPPORTED_TYPES, download_file, process_document
from .errors import SuploError, UnsupportedInputError
from .llm.dispatcher import CompletionDispatcher
from .logger_factory import get_logger
from .prompt_template_engine import PromptTemplateEngine
from .shortcuts import IDENTITY, SUMMARIZE, Shortcuts
from .slack_gateway import SlackGateway
from .tokenizer_service import TokenizerService
from .utils.correlation import make_correlation_id
from .utils.logfmt import fmt, fmt_all

FALLBACK_REPLY = "Something unexpected happened while processing your request"
UNSUPPORTED_FILE_REPLY = "Sorry, Suplo only supports PDF and DOCX files at the moment."
NO_CHANNEL_REPLY = "Open me from a channel first, then I can summarize its activity."

Reply = Callable[[str], Awaitable[object]]
Downloader = Callable[[str, str], Awaitable[bytes]]


class MessageRouter:
    """Turns inbound Slack events into model replies.

    The `reply_*` / `summarize_channel` methods return text and raise SuploError;
    the `handle_*` methods are the event-handler boundary: they post the reply,
    log failures and answer with a fallback text instead of raising.
    """

    def __init__(
        self,
        gateway: SlackGateway,
        template_engine: PromptTemplateEngine,
        shortcuts: Shortcuts,
        dispatcher: CompletionDispatcher,
        pipeline: PipelineConfig,
        *,
        tokenizer: Optional[TokenizerService] = None,
        bot_token: Optional[str] = None,
        downloader: Optional[Downloader] = None,
        config: Optional[ConfigService] = None,
        logger=None,
    ):
        self.gateway = gateway
        self.tmpl = template_engine
        self._shortcuts = shortcuts
        self.dispatcher = dispatcher
        self._pipeline = pipeline
        self.config = config
        self.tok = tokenizer or TokenizerService()
        self.bot_token = bot_token
        self.download = downloader or download_file
        self.log = logger or get_logger("MessageRouter")

    # config.yaml edits (window, temperature, triggers, document stage) apply on the next event
    @property
    def pipeline(self) -> PipelineConfig:
        if self.config is not None:
            try:
                self._pipeline = self.config.pipeline()
            except ValueError as e:
                self.log.error(f"[config-invalid] {fmt('error', e)} keeping=previous")
        return self._pipeline

    @property
    def shortcuts(self) -> Shortcuts:
        if self.config is not None:
            s = self._shortcuts
            self._shortcuts = Shortcuts(
                self.config.identity_triggers(), s.identity_reply, s.summarize_prompt, self.config.summary_keywords()
            )
        return self._shortcuts

    # ------------------------------------------------------------------
    # Reply builders (raise on failure)
    # ------------------------------------------------------------------
    async def reply_to_thread_message(self, message: dict, *, context_channel: Optional[str] = None) -> str:
        channel = message.get("channel")
        thread_ts = message.get("thread_ts") or message.get("ts")
        user = message.get("user")
        text = message.get("text") or ""
        corr = make_correlation_id(channel, message.get("ts"))

        decision = self.shortcuts.for_thread_message(text)
        self.log.debug(f"[shortcut] {fmt('action', decision.action)} {fmt('channel', channel)} {fmt('user', user)} {fmt('correlation', corr)}")
        if decision.action == IDENTITY:
            return decision.reply or ""
        if decision.action == SUMMARIZE:
            if not context_channel:
                return NO_CHANNEL_REPLY
            return await self.summarize_channel(context_channel, user_id=user, correlation=corr)

        p = self.pipeline
        replies = await self.gateway.thread_replies(channel, thread_ts)
        # The triggering message goes last as the utterance, so it is left out of the
        # history; the window then holds the N replies before it, not N including it.
        replies = [m for m in replies if m.get("ts") != message.get("ts")]
        window = normalize_thread(
            replies,
            placeholders=p.placeholder_messages,
            window_size=p.window_size,
        )
        messages = self.tmpl.assemble(window, text)
        result = await self.dispatcher.dispatch_with_fallback(
            user, messages, temperature=p.temperature, context_fields={"channel": channel, "correlation": corr}
        )
        return result.text

    async def summarize_channel(self, channel_id: str, *, user_id: Optional[str] = None, correlation: Optional[str] = None) -> str:
        history = await self.gateway.channel_history(channel_id, limit=self.pipeline.summary_history_limit)
        # Slack returns newest first
        chronological = list(reversed(history))
        messages = self.tmpl.build_channel_summary(channel_id, chronological)
        self.log.info(f"[summarize] {fmt('channel', channel_id)} {fmt('messages', len(chronological))} {fmt('correlation', correlation)}")
        # summaries and plain mentions run at the provider default temperature
        result = await self.dispatcher.dispatch_with_fallback(
            user_id, messages, context_fields={"channel": channel_id, "correlation": correlation}
        )
        return result.text

    async def reply_to_mention(self, event: dict) -> str:
        channel = event.get("channel")
        user = event.get("user")
        text = event.get("text") or ""
        corr = make_correlation_id(channel, event.get("ts"))
        decision = self.shortcuts.for_mention(text)
        self.log.debug(f"[shortcut] {fmt('action', decision.action)} {fmt('channel', channel)} {fmt('user', user)} {fmt('correlation', corr)}")
        if decision.action == SUMMARIZE:
            return await self.summarize_channel(channel, user_id=user, correlation=corr)
        if decision.action == IDENTITY:
            return decision.reply or ""
        result = await self.dispatcher.dispatch_with_fallback(
            user, self.tmpl.build_single_turn(text), context_fields={"channel": channel, "correlation": corr}
        )
        return result.text

    async def reply_to_document(self, file_id: str, *, user_id: Optional[str] = None, channel: Optional[str] = None) -> str:
        info = await self.gateway.file_info(file_id)
        file_type = str(info.get("filetype") or "").lower()
        if file_type not in SUPPORTED_TYPES:
            raise UnsupportedInputError(UNSUPPORTED_FILE_REPLY)
        data = await self.download(info.get("url_private") or "", self.bot_token or "")
        text = process_document(data, file_type)
        p = self.pipeline
        if self.tok.estimate_tokens(text) > p.document_max_tokens:
            self.log.info(f"[document-truncated] {fmt('file', file_id)} {fmt('tokens', self.tok.estimate_tokens(text))} {fmt('limit', p.document_max_tokens)}")
            text = self.tok.truncate(text, p.document_max_tokens)
        result = await self.dispatcher.dispatch_with_fallback(
            user_id, self.tmpl.build_document_prompt(text), temperature=p.temperature,
            context_fields={"channel": channel, "correlation": make_correlation_id(channel, file_id)},
        )
        return result.text

    # ------------------------------------------------------------------
    # Event-handler boundary (never raises)
    # ------------------------------------------------------------------
    async def _respond(self, say: Reply, produce: Callable[[], Awaitable[str]], what: str, **fields) -> Optional[str]:
        try:
            text = await produce()
        except UnsupportedInputError as e:
            self.log.warning(f"[{what}-unsupported] {fmt('error', e)} {fmt_all(**fields)}")
            text = e.user_message
        except SuploError as e:
            self.log.error(f"[{what}-error] {fmt('error', e)} {fmt_all(**fields)}")
            text = FALLBACK_REPLY
        except Exception:
            self.log.exception(f"[{what}-error] {fmt_all(**fields)}")
            text = FALLBACK_REPLY
        try:
            await say(text)
        except Exception:
            self.log.exception(f"[{what}-reply-failed] {fmt_all(**fields)}")
            return None
        return text

    async def handle_user_message(self, message: dict, say: Reply, *, context_channel: Optional[str] = None) -> Optional[str]:
        return await self._respond(
            say,
            lambda: self.reply_to_thread_message(message, context_channel=context_channel),
            "thread",
            channel=message.get("channel"),
            user=message.get("user"),
        )

    async def handle_mention(self, event: dict, say: Reply) -> Optional[str]:
        return await self._respond(
            say, lambda: self.reply_to_mention(event), "mention",
            channel=event.get("channel"), user=event.get("user"),
        )

    async def handle_file_shared(self, event: dict) -> Optional[str]:
        if not self.pipeline.documents_enabled:
            self.log.debug(f"[document-skip] {fmt('file', event.get('file_id'))} reason=disabled")
            return None
        channel = event.get("channel_id")
        if not channel:
            return None

        async def post(text: str):
            return await self.gateway.post_message(channel, text)

        return await self._respond(
            post,
            lambda: self.reply_to_document(event.get("file_id") or "", user_id=event.get("user_id"), channel=channel),
            "document",
            channel=channel,
            file=event.get("file_id"),
        )
