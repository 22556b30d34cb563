"""본문 스트리밍 executor

어시스턴트 본문을 버퍼에 모았다가 flush 시점에 게시물로 내보냅니다.
현재 게시물을 계속 늘려가다가 플랫폼 한도나 접힘 임계값을 넘으면
코드 펜스를 자르지 않는 지점에서 새 게시물로 나눕니다.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from threadcast.executors.base import BaseExecutor, ExecutorContext
from threadcast.formatting import TRUNCATION_INDICATOR, truncate_message_safely
from threadcast.operations.content_breaker import (
    MIN_BREAK_THRESHOLD,
    choose_split_point,
    should_break_early,
)
from threadcast.operations.post_tracker import PostType
from threadcast.operations.types import AppendContentOp, FlushOp, FlushReason

logger = logging.getLogger(__name__)

# 새 게시물 대신 재활용할 게시물 ID를 돌려주는 콜백 (없으면 None)
RepurposeCallback = Callable[[ExecutorContext, str], Awaitable[Optional[str]]]
# 새 본문 게시물 아래로 태스크 리스트를 옮기는 콜백
BumpCallback = Callable[[ExecutorContext], Awaitable[Optional[str]]]


@dataclass
class ContentState:
    """본문 스트리밍 상태

    current_post_content는 현재 게시물에 이미 기록된 본문입니다.
    flush 때 새 본문을 여기에 이어 붙여 게시물 전체를 다시 씁니다.
    """

    current_post_id: Optional[str] = None
    current_post_content: str = ""
    pending_content: str = ""


class ContentExecutor(BaseExecutor[ContentState]):
    def __init__(
        self,
        *args,
        repurpose_post: Optional[RepurposeCallback] = None,
        bump_task_list: Optional[BumpCallback] = None,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self._repurpose_post = repurpose_post
        self._bump_task_list = bump_task_list
        # 디바운스 타이머 flush와 명시적 flush가 겹치지 않도록
        self._flush_lock = asyncio.Lock()

    def _initial_state(self) -> ContentState:
        return ContentState()

    @property
    def current_post_id(self) -> Optional[str]:
        return self.state.current_post_id

    @property
    def has_pending(self) -> bool:
        return bool(self.state.pending_content.strip())

    def reset_content_post(self) -> None:
        """다음 flush가 새 게시물에서 시작하도록 현재 게시물 참조를 버림"""
        self.state.current_post_id = None
        self.state.current_post_content = ""

    async def execute_append(self, op: AppendContentOp, ctx: ExecutorContext) -> None:
        pending = self.state.pending_content
        if pending and not pending.endswith("\n"):
            pending += "\n"
        self.state.pending_content = pending + op.content

    async def execute_flush(self, op: FlushOp, ctx: ExecutorContext) -> None:
        await self.flush(ctx, op.reason)

    async def flush(self, ctx: ExecutorContext, reason: FlushReason = FlushReason.EXPLICIT) -> None:
        async with self._flush_lock:
            await self._flush(ctx, reason)

    async def _flush(self, ctx: ExecutorContext, reason: FlushReason) -> None:
        if not self.state.pending_content.strip():
            return

        pending_at_start = self.state.pending_content
        formatter = ctx.platform.get_formatter()
        limits = ctx.platform.get_message_limits()
        content = formatter.format_markdown(pending_at_start).strip()

        post_id = self.state.current_post_id
        if post_id and self.state.current_post_content:
            combined = f"{self.state.current_post_content}\n\n{content}"
        else:
            combined = content

        break_early = bool(
            post_id
            and len(combined) > MIN_BREAK_THRESHOLD
            and should_break_early(combined)
        )

        if post_id and (len(combined) > limits.hard_threshold or break_early):
            await self._split(ctx, combined, pending_at_start)
            return

        if len(combined) > limits.max_length:
            logger.warning(f"본문이 너무 김 ({len(combined)}자), 잘라냄")
            combined = self._truncate(ctx, combined)

        if post_id:
            if await self._update_current(ctx, combined):
                self._clear_flushed(pending_at_start)
            return

        logger.debug(f"flush ({reason.value}): {len(combined)}자")
        await self._create_new_post(ctx, combined, pending_at_start)

    async def _split(self, ctx: ExecutorContext, combined: str, pending_at_start: str) -> None:
        limits = ctx.platform.get_message_limits()
        split_at = choose_split_point(combined, limits.hard_threshold)

        if split_at is None:
            if len(combined) > limits.max_length:
                # 현재 게시물은 더 늘릴 수 없으므로 그대로 두고 새 본문은 새 게시물로
                logger.debug(f"분할 지점 없음, 새 게시물에서 이어감 ({len(combined)}자)")
                self.reset_content_post()
                await self._flush(ctx, FlushReason.HARD_THRESHOLD)
                return
            # 안전한 분할 지점이 없으면 현재 게시물을 유지하고 다음 flush를 기다림
            if await self._update_current(ctx, combined):
                self._clear_flushed(pending_at_start)
            return

        first = combined[:split_at].strip()
        remainder = combined[split_at:].strip()
        logger.debug(f"게시물 분할: {split_at}자 지점 (이어질 본문 {len(remainder)}자)")

        if first:
            if len(first) > limits.max_length:
                first = self._truncate(ctx, first)
            if not await self._update_current(ctx, first):
                return

        self.reset_content_post()
        # 남은 부분이 새 게시물로 나갈 때까지 버퍼에 둠 (flush 도중 붙은 본문은 그 뒤로)
        pending = self.state.pending_content
        appended = pending[len(pending_at_start):] if pending.startswith(pending_at_start) else ""
        self.state.pending_content = remainder + appended

        if remainder:
            display = remainder
            if len(display) > limits.max_length:
                display = self._truncate(ctx, display)
            await self._create_new_post(ctx, display, remainder)

    async def _update_current(self, ctx: ExecutorContext, content: str) -> bool:
        """현재 게시물 갱신. 실패하면 참조를 버리고 False (버퍼는 유지)"""
        post_id = self.state.current_post_id
        try:
            await ctx.platform.update_post(post_id, content)
        except Exception as e:
            logger.debug(f"게시물 갱신 실패, 다음 flush에서 새로 생성: {e}")
            self.reset_content_post()
            return False
        self.state.current_post_content = content
        return True

    async def _create_new_post(
        self, ctx: ExecutorContext, content: str, flushed: str
    ) -> None:
        """새 게시물 생성. 활성 태스크 리스트가 있으면 그 게시물을 재활용"""
        if self._repurpose_post:
            repurposed_id = await self._repurpose_post(ctx, content)
            if repurposed_id:
                self.state.current_post_id = repurposed_id
                self.state.current_post_content = content
                self._clear_flushed(flushed)
                return

        try:
            post = await ctx.platform.create_post(content, ctx.thread_id)
        except Exception as e:
            logger.error(f"게시물 생성 실패: {e}")
            return

        self.state.current_post_id = post.id
        self.state.current_post_content = content
        self.register_post(post.id, post_type=PostType.CONTENT)
        self.update_last_message(post)
        self._clear_flushed(flushed)
        logger.debug(f"본문 게시물 생성: {post.id}")

        if self._bump_task_list:
            # 태스크 리스트는 항상 스레드 맨 아래
            await self._bump_task_list(ctx)

    def _clear_flushed(self, flushed: str) -> None:
        """flush 도중 새로 붙은 본문은 남기고 내보낸 부분만 제거"""
        pending = self.state.pending_content
        if pending.startswith(flushed):
            self.state.pending_content = pending[len(flushed):].lstrip("\n")
        else:
            self.state.pending_content = ""

    @staticmethod
    def _truncate(ctx: ExecutorContext, content: str) -> str:
        formatter = ctx.platform.get_formatter()
        return truncate_message_safely(
            content,
            ctx.platform.get_message_limits().max_length,
            formatter.format_italic(TRUNCATION_INDICATOR),
        )
