from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

SYSTEM = "system"
USER = "user"
ASSISTANT = "assistant"


@dataclass(frozen=True)
class ConversationMessage:
    role: str
    content: str

    def as_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


def is_bot_message(entry: dict) -> bool:
    return bool(entry.get("bot_id")) or entry.get("subtype") == "bot_message"


def normalize_thread(
    replies: Iterable[dict] | None,
    *,
    placeholders: Iterable[str] = (),
    window_size: int | None = None,
) -> list[ConversationMessage]:
    """Convert Slack thread replies into a chronological ThreadWindow.

    Placeholder greetings are dropped before windowing so they never take up
    a slot; entries without text are skipped. window_size=None keeps all.
    """
    skip = set(placeholders)
    out: list[ConversationMessage] = []
    for entry in replies or ():
        if not isinstance(entry, dict):
            continue
        text = entry.get("text")
        if not isinstance(text, str):
            continue
        if text in skip:
            continue
        out.append(ConversationMessage(role=ASSISTANT if is_bot_message(entry) else USER, content=text))
    if window_size is not None and window_size > 0:
        out = out[-window_size:]
    return out
