"""채팅 플랫폼 Protocol 정의

렌더링 파이프라인이 채팅 플랫폼에 요구하는 능력 집합입니다.
구체 클라이언트(Slack 등)는 이 Protocol을 duck-typing으로 만족하면 됩니다.
"""

import time
from dataclasses import dataclass, field
from typing import Optional, Protocol, runtime_checkable


@dataclass
class PlatformPost:
    """플랫폼에 게시된 메시지"""

    id: str
    channel_id: str = ""
    message: str = ""
    root_id: Optional[str] = None
    user_id: str = ""
    create_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class MessageLimits:
    """플랫폼이 정하는 게시물 크기 한도

    max_length: 게시물 하나의 절대 상한 (초과 시 잘라냄)
    hard_threshold: 이 길이를 넘으면 새 게시물로 분할
    """

    max_length: int
    hard_threshold: int


@runtime_checkable
class PlatformFormatter(Protocol):
    """플랫폼별 마크다운 방언 Protocol"""

    def format_bold(self, text: str) -> str: ...
    def format_italic(self, text: str) -> str: ...
    def format_code(self, text: str) -> str: ...
    def format_code_block(self, code: str, language: Optional[str] = None) -> str: ...
    def format_user_mention(self, username: str, user_id: Optional[str] = None) -> str: ...
    def format_link(self, text: str, url: str) -> str: ...
    def format_blockquote(self, text: str) -> str: ...
    def format_horizontal_rule(self) -> str: ...
    def format_strikethrough(self, text: str) -> str: ...
    def format_heading(self, text: str, level: int) -> str: ...
    def format_markdown(self, content: str) -> str: ...


@runtime_checkable
class PlatformClient(Protocol):
    """채팅 플랫폼 클라이언트 Protocol

    게시물 생성/수정/삭제, 리액션, 고정 기능만 정의합니다.
    실패 시 예외를 던지며, 복구는 호출자(executor)의 몫입니다.
    """

    async def create_post(self, message: str, thread_id: Optional[str] = None) -> PlatformPost: ...
    async def update_post(self, post_id: str, message: str) -> PlatformPost: ...
    async def delete_post(self, post_id: str) -> None: ...
    async def create_interactive_post(
        self, message: str, reactions: list[str], thread_id: Optional[str] = None
    ) -> PlatformPost: ...
    async def pin_post(self, post_id: str) -> None: ...
    async def unpin_post(self, post_id: str) -> None: ...
    async def add_reaction(self, post_id: str, emoji_name: str) -> None: ...
    async def remove_reaction(self, post_id: str, emoji_name: str) -> None: ...
    def get_message_limits(self) -> MessageLimits: ...
    def get_formatter(self) -> PlatformFormatter: ...
