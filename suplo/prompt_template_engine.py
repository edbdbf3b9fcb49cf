from __future__ import annotations

from jinja2 import Environment, BaseLoader
from .conversation import ConversationMessage, SYSTEM, USER
from .persona_service import PersonaService


# Authors render as Slack mentions so the model can keep <@U…> syntax verbatim
CHANNEL_SUMMARY_TEMPLATE = (
    "Please generate a brief summary of the following messages from Slack channel <#{{ channel_id }}>:"
    "{% for m in messages %}\n<@{{ m.user }}> says: {{ m.text }}{% endfor %}"
)

DOCUMENT_TEMPLATE = "Analyze this document content: {{ text }}"


class PromptTemplateEngine:
    def __init__(self, persona_service: PersonaService, *, summary_template: str | None = None, document_template: str | None = None):
        self.persona = persona_service
        # autoescape off: prompts are plain text, not HTML
        self.env = Environment(loader=BaseLoader(), autoescape=False, keep_trailing_newline=False)
        self._summary_tmpl = self.env.from_string(summary_template or CHANNEL_SUMMARY_TEMPLATE)
        self._document_tmpl = self.env.from_string(document_template or DOCUMENT_TEMPLATE)

    def build_system_message(self) -> ConversationMessage:
        return ConversationMessage(role=SYSTEM, content=self.persona.persona().system_prompt)

    def assemble(self, window: list[ConversationMessage], utterance: str) -> list[dict]:
        """[system] + window + [new user utterance], as chat-completion dicts.

        Any system entry smuggled into the window is dropped so the persona
        instruction stays the single leading system message.
        """
        messages = [self.build_system_message()]
        messages.extend(m for m in window if m.role != SYSTEM)
        messages.append(ConversationMessage(role=USER, content=utterance))
        return [m.as_dict() for m in messages]

    def build_channel_summary(self, channel_id: str, history: list[dict]) -> list[dict]:
        """Single synthetic prompt over channel history (already chronological).

        Only messages with a human author (`user`) are included.
        """
        rows = [
            {"user": m.get("user"), "text": m.get("text") or ""}
            for m in history
            if isinstance(m, dict) and m.get("user")
        ]
        prompt = self._summary_tmpl.render(channel_id=channel_id, messages=rows)
        return self.assemble([], prompt)

    def build_single_turn(self, text: str) -> list[dict]:
        return self.assemble([], text)

    def build_document_prompt(self, text: str) -> list[dict]:
        return self.assemble([], self._document_tmpl.render(text=text))
