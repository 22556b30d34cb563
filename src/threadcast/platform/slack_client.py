"""슬랙 플랫폼 클라이언트

slack_sdk WebClient 위에 PlatformClient 능력 집합을 구현합니다.
WebClient 호출은 블로킹이므로 asyncio.to_thread로 이벤트 루프 밖에서 실행합니다.
"""

import asyncio
import logging
from typing import Optional

from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError

from threadcast.config import Config
from threadcast.platform.slack_formatter import SlackFormatter
from threadcast.platform.types import MessageLimits, PlatformPost

logger = logging.getLogger(__name__)


def _error_code(e: SlackApiError) -> str:
    """SlackApiError 응답의 error 코드"""
    return e.response.get("error", "") or ""


class SlackPlatformClient:
    """한 채널을 대상으로 하는 슬랙 PlatformClient 구현"""

    def __init__(
        self,
        client: WebClient,
        channel_id: str,
        *,
        limits: Optional[MessageLimits] = None,
        bot_user_id: str = "",
    ):
        self._client = client
        self.channel_id = channel_id
        self.bot_user_id = bot_user_id
        self._limits = limits or MessageLimits(
            max_length=Config.slack.max_post_length,
            hard_threshold=Config.slack.hard_threshold,
        )
        self._formatter = SlackFormatter()

    @classmethod
    def from_config(cls) -> "SlackPlatformClient":
        """Config 값으로 클라이언트 생성"""
        return cls(
            WebClient(token=Config.slack.bot_token),
            Config.slack.channel_id,
        )

    async def _call(self, method: str, **kwargs) -> dict:
        func = getattr(self._client, method)
        return await asyncio.to_thread(func, **kwargs)

    def _to_post(self, response: dict, text: str, thread_id: Optional[str] = None) -> PlatformPost:
        ts = response.get("ts", "")
        return PlatformPost(
            id=ts,
            channel_id=response.get("channel", self.channel_id),
            message=text,
            root_id=thread_id,
            user_id=self.bot_user_id,
            create_at=float(ts) if ts else 0.0,
        )

    async def create_post(self, message: str, thread_id: Optional[str] = None) -> PlatformPost:
        kwargs = {"channel": self.channel_id, "text": message}
        if thread_id:
            kwargs["thread_ts"] = thread_id
        response = await self._call("chat_postMessage", **kwargs)
        return self._to_post(response, message, thread_id)

    async def update_post(self, post_id: str, message: str) -> PlatformPost:
        response = await self._call(
            "chat_update", channel=self.channel_id, ts=post_id, text=message
        )
        return self._to_post(response, message)

    async def delete_post(self, post_id: str) -> None:
        logger.debug(f"게시물 삭제: {post_id}")
        await self._call("chat_delete", channel=self.channel_id, ts=post_id)

    async def create_interactive_post(
        self, message: str, reactions: list[str], thread_id: Optional[str] = None
    ) -> PlatformPost:
        """게시물 생성 후 선택지 리액션을 순서대로 추가

        일부 리액션 추가가 실패해도 나머지는 계속 추가합니다.
        """
        post = await self.create_post(message, thread_id)
        for emoji in reactions:
            try:
                await self.add_reaction(post.id, emoji)
            except Exception as e:
                logger.warning(f"리액션 추가 실패 ({emoji}): {e}")
        return post

    async def pin_post(self, post_id: str) -> None:
        try:
            await self._call("pins_add", channel=self.channel_id, timestamp=post_id)
        except SlackApiError as e:
            if _error_code(e) == "already_pinned":
                logger.debug(f"이미 고정된 게시물: {post_id}")
                return
            raise

    async def unpin_post(self, post_id: str) -> None:
        try:
            await self._call("pins_remove", channel=self.channel_id, timestamp=post_id)
        except SlackApiError as e:
            if _error_code(e) == "no_pin":
                logger.debug(f"고정되지 않은 게시물: {post_id}")
                return
            raise

    async def add_reaction(self, post_id: str, emoji_name: str) -> None:
        await self._call(
            "reactions_add", channel=self.channel_id, timestamp=post_id, name=emoji_name
        )

    async def remove_reaction(self, post_id: str, emoji_name: str) -> None:
        await self._call(
            "reactions_remove", channel=self.channel_id, timestamp=post_id, name=emoji_name
        )

    def get_message_limits(self) -> MessageLimits:
        return self._limits

    def get_formatter(self) -> SlackFormatter:
        return self._formatter
