from __future__ import annotations


def make_correlation_id(channel_id: str | None, ts: str | None) -> str:
    """Return a stable correlation id tying shortcut → llm → post.

    Format: "<channelId>-<messageTs>". Slack timestamps are unique per channel.
    """
    return f"{channel_id or 'NA'}-{ts or 'NA'}"
