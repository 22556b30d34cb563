"""프롬프트 executor

두 종류의 선택 게시물을 다룹니다.

- 스레드 컨텍스트 프롬프트: 대화 도중 세션이 새로 시작될 때 이전 메시지를
  몇 개 포함할지 묻습니다. 응답이 없으면 제한 시간 뒤 컨텍스트 없이 진행합니다.
- 업데이트 프롬프트: 새 버전이 있을 때 지금 업데이트할지 미룰지 묻습니다.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from threadcast.config import Config
from threadcast.events import (
    CONTEXT_PROMPT_COMPLETE,
    UPDATE_PROMPT_COMPLETE,
    ContextPromptCompleteEvent,
    UpdatePromptCompleteEvent,
)
from threadcast.executors.base import BaseExecutor, ExecutorContext
from threadcast.operations.emoji import (
    APPROVAL_EMOJIS,
    DENIAL_EMOJIS,
    NUMBER_DISPLAY,
    NUMBER_EMOJIS,
    get_number_emoji_index,
    is_approval_emoji,
    is_denial_emoji,
)
from threadcast.operations.post_tracker import InteractionType, PostType

logger = logging.getLogger(__name__)

CONTEXT_OPTIONS = (3, 5, 10)
MAX_CONTEXT_CHOICES = 3
# ❌ 표시와 같은 리액션. 👎도 건너뛰기로 인정
CONTEXT_SKIP_EMOJI = "x"

ContextSelection = Union[int, str]


def get_valid_context_options(message_count: int) -> list[int]:
    return [opt for opt in CONTEXT_OPTIONS if opt <= message_count]


def build_context_choices(message_count: int) -> list[int]:
    """게시물에 보여줄 선택지 (메시지 수 목록)

    고정 선택지 중 메시지 수 이하인 것만 남기고, 메시지가 가장 큰 선택지보다 많으면
    자리가 남는 경우 "전체"를 덧붙입니다.
    """
    choices = get_valid_context_options(message_count)
    if (not choices or message_count > choices[-1]) and len(choices) < MAX_CONTEXT_CHOICES:
        choices.append(message_count)
    return choices


@dataclass
class PendingContextPrompt:
    post_id: str
    queued_prompt: str
    thread_message_count: int
    available_options: list[int]
    created_at: float = field(default_factory=time.time)
    queued_files: Optional[list[Any]] = None


@dataclass
class PendingUpdatePrompt:
    post_id: str
    version: str


@dataclass
class PromptState:
    context_prompt: Optional[PendingContextPrompt] = None
    update_prompt: Optional[PendingUpdatePrompt] = None


class PromptExecutor(BaseExecutor[PromptState]):
    def __init__(self, *args, context_timeout: Optional[float] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.context_timeout = (
            Config.stream.context_prompt_timeout if context_timeout is None else context_timeout
        )
        self._timeout_task: Optional[asyncio.Task] = None

    def _initial_state(self) -> PromptState:
        return PromptState()

    def hydrate_state(
        self,
        context_prompt: Optional[PendingContextPrompt] = None,
        update_prompt: Optional[PendingUpdatePrompt] = None,
    ) -> None:
        self.state = PromptState(context_prompt=context_prompt, update_prompt=update_prompt)

    def reset(self) -> None:
        self.cancel_timeout()
        super().reset()

    def has_pending_context_prompt(self) -> bool:
        return self.state.context_prompt is not None

    def has_pending_update_prompt(self) -> bool:
        return self.state.update_prompt is not None

    def clear_pending_context_prompt(self) -> None:
        self.cancel_timeout()
        self.state.context_prompt = None

    def clear_pending_update_prompt(self) -> None:
        self.state.update_prompt = None

    # --- 컨텍스트 프롬프트 ---

    async def request_context_prompt(
        self,
        queued_prompt: str,
        thread_message_count: int,
        ctx: ExecutorContext,
        queued_files: Optional[list[Any]] = None,
    ) -> Optional[str]:
        if self.state.context_prompt is not None:
            logger.debug("컨텍스트 프롬프트가 이미 대기 중")
            return None

        fmt = ctx.platform.get_formatter()
        choices = build_context_choices(thread_message_count)
        valid = set(get_valid_context_options(thread_message_count))

        options_text = ""
        for emoji, count in zip(NUMBER_DISPLAY, choices):
            label = f"Last {count} messages" if count in valid else f"All {count} messages"
            options_text += f"{emoji} {label}\n"
        options_text += f"❌ No context (default after {round(self.context_timeout)}s)"

        plural = "" if thread_message_count == 1 else "s"
        message = (
            f"🧵 {fmt.format_bold('Include thread context?')}\n"
            f"This thread has {thread_message_count} message{plural} before this point.\n"
            "React to include previous messages, or continue without context.\n\n"
            f"{options_text}"
        )

        reactions = list(NUMBER_EMOJIS[:len(choices)]) + [CONTEXT_SKIP_EMOJI]
        post = await ctx.platform.create_interactive_post(message, reactions, ctx.thread_id)
        self.state.context_prompt = PendingContextPrompt(
            post_id=post.id,
            queued_prompt=queued_prompt,
            thread_message_count=thread_message_count,
            available_options=choices,
            queued_files=queued_files,
        )
        self.register_post(
            post.id,
            post_type=PostType.CONTEXT_PROMPT,
            interaction_type=InteractionType.CONTEXT_SELECTION,
        )
        self.update_last_message(post)

        self.cancel_timeout()
        self._timeout_task = asyncio.create_task(self._expire_context_prompt(post.id, ctx))
        logger.debug(f"컨텍스트 프롬프트 게시: {post.id} (선택지 {choices})")
        return post.id

    async def _expire_context_prompt(self, post_id: str, ctx: ExecutorContext) -> None:
        await asyncio.sleep(self.context_timeout)
        # 응답 처리 중 취소되지 않도록 먼저 참조를 비움
        self._timeout_task = None
        await self.handle_context_prompt_response(post_id, "timeout", "", ctx)

    def cancel_timeout(self) -> None:
        task, self._timeout_task = self._timeout_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def handle_context_prompt_response(
        self, post_id: str, selection: ContextSelection, username: str, ctx: ExecutorContext
    ) -> bool:
        pending = self.state.context_prompt
        if pending is None or pending.post_id != post_id:
            return False

        fmt = ctx.platform.get_formatter()
        if selection == "timeout":
            status = "⏱️ Continuing without context (no response)"
            logger.info("컨텍스트 프롬프트 시간 초과, 컨텍스트 없이 진행")
        elif selection == 0:
            status = f"✅ Continuing without context (skipped by {fmt.format_user_mention(username)})"
            logger.info(f"@{username} 컨텍스트 건너뜀")
        else:
            status = f"✅ Including last {selection} messages (selected by {fmt.format_user_mention(username)})"
            logger.info(f"@{username} 컨텍스트 선택: 최근 {selection}개")

        try:
            await ctx.platform.update_post(post_id, status)
        except Exception as e:
            logger.debug(f"컨텍스트 프롬프트 게시물 갱신 실패: {e}")

        self.clear_pending_context_prompt()
        await self._emit(
            CONTEXT_PROMPT_COMPLETE,
            ContextPromptCompleteEvent(
                selection=selection,
                queued_prompt=pending.queued_prompt,
                thread_message_count=pending.thread_message_count,
                queued_files=pending.queued_files,
            ),
        )
        return True

    # --- 업데이트 프롬프트 ---

    async def request_update_prompt(self, version: str, ctx: ExecutorContext) -> Optional[str]:
        if self.state.update_prompt is not None:
            logger.debug("업데이트 프롬프트가 이미 대기 중")
            return None

        fmt = ctx.platform.get_formatter()
        message = (
            f"🔄 {fmt.format_bold('Update available:')} v{version}\n\n"
            "React: 👍 to update now | 👎 to defer for 1 hour\n"
            f"{fmt.format_italic('Update will proceed automatically after timeout if no response')}"
        )
        post = await ctx.platform.create_interactive_post(
            message, [APPROVAL_EMOJIS[0], DENIAL_EMOJIS[0]], ctx.thread_id
        )
        self.state.update_prompt = PendingUpdatePrompt(post_id=post.id, version=version)
        self.register_post(
            post.id,
            post_type=PostType.UPDATE_PROMPT,
            interaction_type=InteractionType.UPDATE_NOW,
            metadata={"version": version},
        )
        self.update_last_message(post)
        return post.id

    async def handle_update_prompt_response(
        self, post_id: str, decision: str, username: str, ctx: ExecutorContext
    ) -> bool:
        pending = self.state.update_prompt
        if pending is None or pending.post_id != post_id:
            return False

        fmt = ctx.platform.get_formatter()
        if decision == "update_now":
            status = f"🔄 {fmt.format_bold('Forcing update')} - restarting shortly..."
            logger.info(f"@{username} 즉시 업데이트 선택")
        else:
            status = f"⏸️ {fmt.format_bold('Update deferred')} for 1 hour"
            logger.info(f"@{username} 업데이트 연기")

        try:
            await ctx.platform.update_post(post_id, status)
        except Exception as e:
            logger.debug(f"업데이트 프롬프트 게시물 갱신 실패: {e}")

        self.state.update_prompt = None
        await self._emit(UPDATE_PROMPT_COMPLETE, UpdatePromptCompleteEvent(decision=decision))
        return True

    # --- 리액션 ---

    async def handle_reaction(
        self, post_id: str, emoji: str, user: str, action: str, ctx: ExecutorContext
    ) -> bool:
        if action != "added":
            return False

        context_prompt = self.state.context_prompt
        if context_prompt is not None and context_prompt.post_id == post_id:
            index = get_number_emoji_index(emoji)
            if 0 <= index < len(context_prompt.available_options):
                selection = context_prompt.available_options[index]
                return await self.handle_context_prompt_response(post_id, selection, user, ctx)
            if emoji == CONTEXT_SKIP_EMOJI or is_denial_emoji(emoji):
                return await self.handle_context_prompt_response(post_id, 0, user, ctx)
            return False

        update_prompt = self.state.update_prompt
        if update_prompt is not None and update_prompt.post_id == post_id:
            if is_approval_emoji(emoji):
                return await self.handle_update_prompt_response(post_id, "update_now", user, ctx)
            if is_denial_emoji(emoji):
                return await self.handle_update_prompt_response(post_id, "defer", user, ctx)
            return False

        return False
