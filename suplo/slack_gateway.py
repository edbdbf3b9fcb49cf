from __future__ import annotations

from typing import Any, Optional

from slack_sdk.errors import SlackApiError

from .errors import TransportError
from .logger_factory import get_logger
from .utils.logfmt import fmt


class SlackGateway:
    """Outbound Slack Web API calls used by the bot.

    Wraps an AsyncWebClient (bot token) and an optional user-token client for
    profile status updates; every SlackApiError surfaces as TransportError.
    """

    def __init__(self, client: Any, user_client: Any = None):
        self.client = client
        self.user_client = user_client
        self.log = get_logger("SlackGateway")

    async def _call(self, method: str, fn, **kwargs):
        try:
            return await fn(**kwargs)
        except SlackApiError as e:
            err = None
            try:
                err = e.response.get("error")
            except AttributeError:
                pass
            self.log.error(f"[slack-error] {fmt('method', method)} {fmt('error', err or str(e))}")
            raise TransportError(method, err or str(e)) from e

    async def thread_replies(self, channel: str, thread_ts: str) -> list[dict]:
        resp = await self._call(
            "conversations.replies", self.client.conversations_replies,
            channel=channel, ts=thread_ts, oldest=thread_ts,
        )
        return list(resp.get("messages") or [])

    async def channel_history(self, channel: str, limit: int = 50) -> list[dict]:
        """Most recent messages, newest first (Slack order). Joins public channels once if needed."""
        try:
            resp = await self._call("conversations.history", self.client.conversations_history, channel=channel, limit=limit)
        except TransportError as e:
            if e.error != "not_in_channel":
                raise
            self.log.info(f"[slack-join] {fmt('channel', channel)}")
            await self._call("conversations.join", self.client.conversations_join, channel=channel)
            resp = await self._call("conversations.history", self.client.conversations_history, channel=channel, limit=limit)
        return list(resp.get("messages") or [])

    async def file_info(self, file_id: str) -> dict:
        resp = await self._call("files.info", self.client.files_info, file=file_id)
        return dict(resp.get("file") or {})

    async def user_email(self, user_id: str, default: str = "unknown@example.com") -> str:
        resp = await self._call("users.info", self.client.users_info, user=user_id)
        profile = (resp.get("user") or {}).get("profile") or {}
        return profile.get("email") or default

    async def post_message(self, channel: str, text: str, *, blocks: Optional[list] = None, thread_ts: Optional[str] = None):
        kwargs: dict = {"channel": channel, "text": text}
        if blocks is not None:
            kwargs["blocks"] = blocks
        if thread_ts:
            kwargs["thread_ts"] = thread_ts
        return await self._call("chat.postMessage", self.client.chat_postMessage, **kwargs)

    async def update_message(self, channel: str, ts: str, *, text: str, blocks: Optional[list] = None):
        kwargs: dict = {"channel": channel, "ts": ts, "text": text}
        if blocks is not None:
            kwargs["blocks"] = blocks
        return await self._call("chat.update", self.client.chat_update, **kwargs)

    async def open_view(self, trigger_id: str, view: dict):
        return await self._call("views.open", self.client.views_open, trigger_id=trigger_id, view=view)

    async def set_user_status(self, user_id: str, text: str, emoji: str, expiration: int = 0):
        if self.user_client is None:
            self.log.warning(f"[slack-status-skipped] {fmt('user', user_id)} reason=no_user_token")
            return None
        profile = {"status_text": text, "status_emoji": emoji, "status_expiration": int(expiration)}
        return await self._call("users.profile.set", self.user_client.users_profile_set, user=user_id, profile=profile)
