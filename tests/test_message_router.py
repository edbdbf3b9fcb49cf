import asyncio
import os

from suplo.config_service import DEFAULT_IDENTITY_TRIGGERS, ConfigService, PipelineConfig
from suplo.errors import UpstreamError
from suplo.llm.dispatcher import CompletionDispatcher
from suplo.llm.provider_router import ProviderRouter
from suplo.message_router import FALLBACK_REPLY, NO_CHANNEL_REPLY, UNSUPPORTED_FILE_REPLY, MessageRouter
from suplo.persona_service import PersonaService
from suplo.preference_store import InMemoryPreferenceStore
from suplo.prompt_template_engine import PromptTemplateEngine
from suplo.shortcuts import Shortcuts
from suplo.slack_gateway import SlackGateway


class DummySlackClient:
    def __init__(self, replies=None, history=None, files=None):
        self.replies = replies or []
        self.history = history or []
        self.files = files or {}
        self.calls = []
        self.posted = []

    async def conversations_replies(self, **kw):
        self.calls.append(("conversations.replies", kw))
        return {"ok": True, "messages": self.replies}

    async def conversations_history(self, **kw):
        self.calls.append(("conversations.history", kw))
        return {"ok": True, "messages": self.history}

    async def files_info(self, **kw):
        self.calls.append(("files.info", kw))
        return {"ok": True, "file": self.files[kw["file"]]}

    async def chat_postMessage(self, **kw):
        self.posted.append(kw)
        return {"ok": True, "ts": "999.1"}


class DummyLLM:
    def __init__(self, text="model reply", error=None):
        self.text = text
        self.error = error
        self.calls = []
        self.temperatures = []

    async def generate_chat(self, messages, *, model=None, temperature=None, context_fields=None):
        self.calls.append(messages)
        self.temperatures.append(temperature)
        if self.error is not None:
            raise self.error
        return {"text": self.text, "usage": {}, "model": "m"}

    async def aclose(self):
        pass


class Say:
    def __init__(self):
        self.sent = []

    async def __call__(self, text):
        self.sent.append(text)


def _router(tmp_path, slack, llm, pipeline=None, downloader=None, config=None):
    persona = PersonaService(str(tmp_path / "none.md"))
    p = persona.persona()
    shortcuts = Shortcuts(DEFAULT_IDENTITY_TRIGGERS, p.identity_reply, p.summarize_prompt)
    clients = {"openai": llm}
    dispatcher = CompletionDispatcher(
        clients, ProviderRouter(InMemoryPreferenceStore(), supported=["openai"], default="openai")
    )
    return MessageRouter(
        SlackGateway(slack),
        PromptTemplateEngine(persona),
        shortcuts,
        dispatcher,
        pipeline or PipelineConfig(),
        bot_token="xoxb-test",
        downloader=downloader,
        config=config,
    )


def test_identity_question_skips_model(tmp_path):
    slack, llm, say = DummySlackClient(), DummyLLM(), Say()
    r = _router(tmp_path, slack, llm)
    msg = {"channel": "D1", "thread_ts": "1.0", "ts": "3.0", "user": "UA", "text": "who are you"}
    asyncio.run(r.handle_user_message(msg, say))
    assert say.sent == [r.shortcuts.identity_reply]
    assert llm.calls == []
    assert slack.calls == []


def test_thread_reply_builds_windowed_prompt(tmp_path):
    replies = [
        {"user": "UA", "text": "first question", "ts": "1.0"},
        {"bot_id": "B1", "text": "Hi, how can Suplo help?", "ts": "1.1"},
        {"bot_id": "B1", "text": "first answer", "ts": "2.0"},
        {"user": "UA", "text": "follow up", "ts": "3.0"},
    ]
    slack, llm, say = DummySlackClient(replies=replies), DummyLLM("sure thing"), Say()
    r = _router(tmp_path, slack, llm)
    msg = {"channel": "D1", "thread_ts": "1.0", "ts": "3.0", "user": "UA", "text": "follow up"}
    asyncio.run(r.handle_user_message(msg, say))
    assert say.sent == ["sure thing"]
    assert slack.calls[0] == ("conversations.replies", {"channel": "D1", "ts": "1.0", "oldest": "1.0"})
    sent = llm.calls[0]
    assert sent[0]["role"] == "system"
    assert sent[1:] == [
        {"role": "user", "content": "first question"},
        {"role": "assistant", "content": "first answer"},
        {"role": "user", "content": "follow up"},
    ]


def test_summarize_prompt_in_thread_uses_context_channel(tmp_path):
    history = [{"user": "U2", "text": "newest", "ts": "3"}, {"user": "U1", "text": "oldest", "ts": "1"}]
    slack, llm, say = DummySlackClient(history=history), DummyLLM("summary"), Say()
    r = _router(tmp_path, slack, llm)
    msg = {"channel": "D1", "thread_ts": "1.0", "ts": "3.0", "user": "UA", "text": r.shortcuts.summarize_prompt}
    asyncio.run(r.handle_user_message(msg, say, context_channel="C9"))
    assert say.sent == ["summary"]
    assert slack.calls == [("conversations.history", {"channel": "C9", "limit": 50})]
    assert "<#C9>" in llm.calls[0][-1]["content"]


def test_summarize_prompt_without_channel(tmp_path):
    slack, llm, say = DummySlackClient(), DummyLLM(), Say()
    r = _router(tmp_path, slack, llm)
    msg = {"channel": "D1", "ts": "3.0", "user": "UA", "text": r.shortcuts.summarize_prompt}
    asyncio.run(r.handle_user_message(msg, say))
    assert say.sent == [NO_CHANNEL_REPLY]
    assert llm.calls == []


def test_mention_summary_is_chronological(tmp_path):
    # Slack history comes newest first
    history = [
        {"user": "U3", "text": "third", "ts": "3"},
        {"bot_id": "B1", "text": "bot says hi", "ts": "2.5"},
        {"user": "U2", "text": "second", "ts": "2"},
        {"user": "U1", "text": "first", "ts": "1"},
    ]
    slack, llm, say = DummySlackClient(history=history), DummyLLM("channel summary"), Say()
    r = _router(tmp_path, slack, llm)
    asyncio.run(r.handle_mention({"channel": "C1", "user": "UA", "ts": "4", "text": "<@UBOT> please summarize"}, say))
    assert say.sent == ["channel summary"]
    assert len(llm.calls) == 1
    prompt = llm.calls[0][-1]["content"]
    assert prompt.index("first") < prompt.index("second") < prompt.index("third")
    assert "bot says hi" not in prompt


def test_mention_plain_question(tmp_path):
    slack, llm, say = DummySlackClient(), DummyLLM("42"), Say()
    r = _router(tmp_path, slack, llm)
    asyncio.run(r.handle_mention({"channel": "C1", "user": "UA", "ts": "4", "text": "<@UBOT> meaning of life?"}, say))
    assert say.sent == ["42"]
    assert [m["role"] for m in llm.calls[0]] == ["system", "user"]


def test_backend_failure_sends_fallback(tmp_path):
    slack, say = DummySlackClient(), Say()
    llm = DummyLLM(error=UpstreamError("openai", "Rate limit reached", status=429))
    r = _router(tmp_path, slack, llm)
    asyncio.run(r.handle_mention({"channel": "C1", "user": "UA", "ts": "4", "text": "hello"}, say))
    assert say.sent == [FALLBACK_REPLY]


def test_unexpected_failure_sends_fallback(tmp_path):
    slack, say = DummySlackClient(), Say()
    r = _router(tmp_path, slack, DummyLLM(error=KeyError("choices")))
    msg = {"channel": "D1", "ts": "3.0", "user": "UA", "text": "hello"}
    asyncio.run(r.handle_user_message(msg, say))
    assert say.sent == [FALLBACK_REPLY]


def test_document_shared_is_analyzed(tmp_path, make_docx):
    files = {"F1": {"id": "F1", "filetype": "docx", "url_private": "https://files.slack.test/F1"}}
    slack, llm = DummySlackClient(files=files), DummyLLM("looks fine")
    fetched = []

    async def downloader(url, token):
        fetched.append((url, token))
        return make_docx("Budget 2025 is approved")

    r = _router(tmp_path, slack, llm, downloader=downloader)
    asyncio.run(r.handle_file_shared({"file_id": "F1", "user_id": "UA", "channel_id": "C1"}))
    assert fetched == [("https://files.slack.test/F1", "xoxb-test")]
    assert llm.calls[0][-1]["content"] == "Analyze this document content: Budget 2025 is approved"
    assert slack.posted == [{"channel": "C1", "text": "looks fine"}]


def test_unsupported_document_reply(tmp_path):
    files = {"F2": {"id": "F2", "filetype": "txt", "url_private": "https://files.slack.test/F2"}}
    slack, llm = DummySlackClient(files=files), DummyLLM()
    r = _router(tmp_path, slack, llm)
    asyncio.run(r.handle_file_shared({"file_id": "F2", "user_id": "UA", "channel_id": "C1"}))
    assert llm.calls == []
    assert slack.posted == [{"channel": "C1", "text": UNSUPPORTED_FILE_REPLY}]


def test_documents_disabled(tmp_path):
    slack, llm = DummySlackClient(), DummyLLM()
    r = _router(tmp_path, slack, llm, pipeline=PipelineConfig(documents_enabled=False))
    assert asyncio.run(r.handle_file_shared({"file_id": "F1", "channel_id": "C1"})) is None
    assert slack.calls == [] and slack.posted == []


def test_long_document_is_truncated(tmp_path, make_docx):
    files = {"F3": {"id": "F3", "filetype": "docx", "url_private": "u"}}
    slack, llm = DummySlackClient(files=files), DummyLLM()

    async def downloader(url, token):
        return make_docx("lorem ipsum " * 500)

    r = _router(tmp_path, slack, llm, pipeline=PipelineConfig(document_max_tokens=50), downloader=downloader)
    asyncio.run(r.handle_file_shared({"file_id": "F3", "channel_id": "C1"}))
    content = llm.calls[0][-1]["content"]
    assert content.endswith("[...truncated]")
    assert len(content) < 300


def test_temperature_only_on_thread_and_document_replies(tmp_path, make_docx):
    files = {"F1": {"id": "F1", "filetype": "docx", "url_private": "u"}}
    slack, llm = DummySlackClient(files=files), DummyLLM()

    async def downloader(url, token):
        return make_docx("numbers")

    r = _router(tmp_path, slack, llm, pipeline=PipelineConfig(temperature=0.4), downloader=downloader)
    asyncio.run(r.handle_user_message({"channel": "D1", "ts": "3.0", "user": "UA", "text": "hello"}, Say()))
    asyncio.run(r.handle_file_shared({"file_id": "F1", "channel_id": "C1"}))
    asyncio.run(r.handle_mention({"channel": "C1", "user": "UA", "ts": "4", "text": "<@UBOT> hi"}, Say()))
    asyncio.run(r.handle_mention({"channel": "C1", "user": "UA", "ts": "5", "text": "<@UBOT> summary"}, Say()))
    assert llm.temperatures == [0.4, 0.4, None, None]


def _write_config(path, window_size, temperature, triggers=("who are you",)):
    lines = [
        "pipeline:",
        f"  window_size: {window_size}",
        f"  temperature: {temperature}",
        "shortcuts:",
        "  identity_triggers:",
    ]
    lines += [f"    - {t}" for t in triggers]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _touch_later(path):
    st = path.stat()
    os.utime(path, ns=(st.st_atime_ns, st.st_mtime_ns + 1_000_000_000))


def test_config_edits_apply_to_next_event(tmp_path):
    cfg_path = tmp_path / "config.yaml"
    _write_config(cfg_path, window_size=10, temperature=0.7)
    replies = [{"user": "UA", "text": f"m{i}", "ts": f"{i}.0"} for i in range(6)]
    slack, llm = DummySlackClient(replies=replies), DummyLLM()
    r = _router(tmp_path, slack, llm, config=ConfigService(cfg_path))
    msg = {"channel": "D1", "thread_ts": "0.0", "ts": "9.0", "user": "UA", "text": "next"}

    asyncio.run(r.handle_user_message(msg, Say()))
    assert len(llm.calls[0]) == 1 + 6 + 1
    assert llm.temperatures[0] == 0.7

    _write_config(cfg_path, window_size=3, temperature=0.2, triggers=("who are you", "kamu siapa"))
    _touch_later(cfg_path)

    asyncio.run(r.handle_user_message(msg, Say()))
    assert [m["content"] for m in llm.calls[1][1:]] == ["m3", "m4", "m5", "next"]
    assert llm.temperatures[1] == 0.2

    say = Say()
    asyncio.run(r.handle_user_message(dict(msg, text="kamu siapa?"), say))
    assert say.sent == [r.shortcuts.identity_reply]
    assert len(llm.calls) == 2


def test_invalid_config_edit_keeps_previous_pipeline(tmp_path):
    cfg_path = tmp_path / "config.yaml"
    _write_config(cfg_path, window_size=2, temperature=0.5)
    r = _router(tmp_path, DummySlackClient(), DummyLLM(), config=ConfigService(cfg_path))
    assert r.pipeline.window_size == 2
    cfg_path.write_text("llm:\n  default_backend: gemini\n  backends:\n    openai: {}\n", encoding="utf-8")
    _touch_later(cfg_path)
    assert r.pipeline.window_size == 2
