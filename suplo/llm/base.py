from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


class LLMClient(ABC):
    name: str = "llm"

    @abstractmethod
    async def generate_chat(
        self,
        messages: list[dict],
        *,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        context_fields: Optional[dict] = None,
    ) -> dict:
        """Return {"text", "usage", "provider", "model"} for one completion."""
        ...

    async def aclose(self) -> None:
        return None
