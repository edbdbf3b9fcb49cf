from __future__ import annotations


class TokenizerService:
    """Character-count token estimate; good enough to keep document prompts under a budget."""

    def __init__(self, chars_per_token: float = 4.0):
        self.chars_per_token = max(1e-6, float(chars_per_token))

    def estimate_tokens(self, text: str | None) -> int:
        if not text:
            return 0
        return max(1, int(len(text) / self.chars_per_token))

    def truncate(self, text: str, max_tokens: int, marker: str = "\n[...truncated]") -> str:
        if max_tokens <= 0:
            return ""
        limit = int(max_tokens * self.chars_per_token)
        if len(text) <= limit:
            return text
        cut = text[: max(0, limit - len(marker))]
        # prefer a whitespace boundary in the last 10% of the slice
        ws = cut.rfind(" ", int(len(cut) * 0.9))
        if ws > 0:
            cut = cut[:ws]
        return cut + marker
