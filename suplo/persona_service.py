from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import re
import yaml

from .logger_factory import get_logger


_FRONTMATTER_RE = re.compile(r"^---\n(.*?)\n---\n(.*)$", re.DOTALL)

DEFAULT_SYSTEM_CONTENT = """You are Suplo, an assistant in a Slack Langit Kreasi Solusindo workspace.
Users in the workspace will ask you to help them write something or to think better about a specific topic.
You'll respond to those questions in a professional way unless explicitly requested otherwise.
When you include markdown text, convert them to Slack compatible ones.
When a prompt has Slack's special syntax like <@USER_ID> or <#CHANNEL_ID>, you must keep them as-is in your response.
Avoid starting responses with greetings unless explicitly requested by the user."""

SUMMARIZE_CHANNEL_PROMPT = "Assistant, please summarize the activity in this channel!"


@dataclass
class Persona:
    name: str = "Suplo"
    system_prompt: str = DEFAULT_SYSTEM_CONTENT
    greeting: str = "Hi, how can Suplo help?"
    identity_reply: str = "I'm Suplo, LKS Assistant ready to serve all LKS Members."
    suggested_prompts_title: str = "Here are some suggested options by Suplo:"
    suggested_prompts: list[dict] = field(default_factory=lambda: [
        {
            "title": "This is a suggested prompt",
            "message": (
                "When a user clicks a prompt, the resulting prompt message text can be passed "
                "directly to your LLM for processing.\n\nAssistant, please create some helpful prompts "
                "I can provide to my users."
            ),
        },
    ])
    summarize_prompt: str = SUMMARIZE_CHANNEL_PROMPT


class PersonaService:
    """Loads the bot persona from a markdown file with YAML front matter.

    The markdown body is the system instruction; front matter keys override
    the other Persona fields. A missing or unreadable file yields the built-in
    Suplo persona.
    """

    def __init__(self, path: str | None):
        self.path = Path(path) if path else Path("personas/suplo/persona.md")
        self.log = get_logger("Persona")
        self._persona = self._load()

    def _load(self) -> Persona:
        try:
            text = self.path.read_text(encoding="utf-8") if self.path.exists() else ""
        except OSError as e:
            self.log.warning(f"persona-read-error path={self.path} error={e}")
            text = ""
        if not text.strip():
            return Persona()
        m = _FRONTMATTER_RE.match(text)
        if m:
            fm, body = m.group(1), m.group(2)
            meta = yaml.safe_load(fm) or {}
        else:
            meta, body = {}, text
        if not isinstance(meta, dict):
            meta = {}
        p = Persona()
        if body.strip():
            p.system_prompt = body.strip()
        for key in ("name", "greeting", "identity_reply", "suggested_prompts_title", "summarize_prompt"):
            if isinstance(meta.get(key), str) and meta[key].strip():
                setattr(p, key, meta[key].strip())
        prompts = meta.get("suggested_prompts")
        if isinstance(prompts, list):
            p.suggested_prompts = [
                {"title": str(it["title"]), "message": str(it["message"])}
                for it in prompts
                if isinstance(it, dict) and it.get("title") and it.get("message")
            ]
        return p

    def persona(self) -> Persona:
        return self._persona
