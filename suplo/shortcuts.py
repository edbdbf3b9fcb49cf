from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

IDENTITY = "identity"
SUMMARIZE = "summarize"
COMPLETE = "complete"


@dataclass(frozen=True)
class ShortcutDecision:
    action: str
    reply: str | None = None


class Shortcuts:
    """Trigger phrases checked before any model call.

    Identity matching is a case-insensitive substring test, so a trigger quoted
    inside a longer message also matches.
    """

    def __init__(self, identity_triggers: Iterable[str], identity_reply: str, summarize_prompt: str, summary_keywords: Iterable[str] = ("summarize", "summary")):
        self.identity_triggers = tuple(t.lower() for t in identity_triggers)
        self.identity_reply = identity_reply
        self.summarize_prompt = summarize_prompt
        self.summary_keywords = tuple(k.lower() for k in summary_keywords)

    def is_identity_question(self, text: str | None) -> bool:
        low = (text or "").lower()
        return any(q in low for q in self.identity_triggers)

    def for_thread_message(self, text: str | None) -> ShortcutDecision:
        if self.is_identity_question(text):
            return ShortcutDecision(IDENTITY, self.identity_reply)
        if (text or "").strip() == self.summarize_prompt:
            return ShortcutDecision(SUMMARIZE)
        return ShortcutDecision(COMPLETE)

    def for_mention(self, text: str | None) -> ShortcutDecision:
        low = (text or "").lower()
        if any(k in low for k in self.summary_keywords):
            return ShortcutDecision(SUMMARIZE)
        if self.is_identity_question(text):
            return ShortcutDecision(IDENTITY, self.identity_reply)
        return ShortcutDecision(COMPLETE)
