"""서브에이전트 executor

서브에이전트(Task 도구)마다 경과 시간과 프롬프트 미리보기를 보여주는 게시물을 하나씩 만듭니다.
진행 중인 항목이 있는 동안 공용 주기 작업이 경과 시간을 갱신합니다.

완료된 항목도 대화가 끝날 때까지 지우지 않습니다.
완료 뒤에 들어온 접기/펼치기 리액션도 처리해야 하기 때문입니다.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from threadcast.config import Config
from threadcast.executors.base import BaseExecutor, ExecutorContext
from threadcast.formatting import format_duration
from threadcast.operations.emoji import MINIMIZE_TOGGLE_EMOJIS, is_minimize_toggle_emoji
from threadcast.operations.post_tracker import InteractionType, PostType
from threadcast.operations.types import SubagentAction, SubagentOp
from threadcast.platform.types import PlatformFormatter

logger = logging.getLogger(__name__)


@dataclass
class SubagentEntry:
    post_id: str
    start_time: float
    description: str
    subagent_type: str
    is_minimized: bool = False
    is_complete: bool = False
    last_update_time: float = 0.0
    completed_at: Optional[float] = None


@dataclass
class SubagentState:
    entries: dict[str, SubagentEntry] = field(default_factory=dict)


class SubagentExecutor(BaseExecutor[SubagentState]):
    def __init__(
        self,
        *args,
        on_bump_task_list: Optional[Callable[[ExecutorContext], Awaitable[object]]] = None,
        update_interval: Optional[float] = None,
        toggle_emoji: str = MINIMIZE_TOGGLE_EMOJIS[0],
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self._on_bump_task_list = on_bump_task_list
        self.update_interval = (
            Config.stream.subagent_update_interval if update_interval is None else update_interval
        )
        self.toggle_emoji = toggle_emoji
        self._update_task: Optional[asyncio.Task] = None

    def _initial_state(self) -> SubagentState:
        return SubagentState()

    def reset(self) -> None:
        self.stop_update_timer()
        super().reset()

    @property
    def has_update_timer(self) -> bool:
        return self._update_task is not None and not self._update_task.done()

    def has_active(self) -> bool:
        return any(not e.is_complete for e in self.state.entries.values())

    async def execute(self, op: SubagentOp, ctx: ExecutorContext) -> None:
        if op.action == SubagentAction.START:
            await self._start(op, ctx)
        elif op.action == SubagentAction.UPDATE:
            await self._update(op, ctx)
        elif op.action == SubagentAction.COMPLETE:
            await self._complete(op, ctx)
        elif op.action == SubagentAction.TOGGLE_MINIMIZE:
            entry = self.state.entries.get(op.tool_use_id)
            if entry:
                await self._set_minimized(entry, not entry.is_minimized, ctx)
        else:
            logger.warning(f"알 수 없는 서브에이전트 동작: {op.action}")

    async def _start(self, op: SubagentOp, ctx: ExecutorContext) -> None:
        now = time.monotonic()
        entry = SubagentEntry(
            post_id="",
            start_time=now,
            description=op.description,
            subagent_type=op.subagent_type,
            is_minimized=bool(op.is_minimized),
            last_update_time=now,
        )
        formatter = ctx.platform.get_formatter()
        post = await ctx.platform.create_interactive_post(
            self.format_post(entry, formatter), [self.toggle_emoji], ctx.thread_id
        )
        entry.post_id = post.id
        self.state.entries[op.tool_use_id] = entry

        self.register_post(
            post.id,
            post_type=PostType.SUBAGENT,
            interaction_type=InteractionType.TOGGLE_MINIMIZE,
            tool_use_id=op.tool_use_id,
        )
        self.update_last_message(post)
        logger.debug(f"서브에이전트 시작: {op.subagent_type} ({post.id})")

        self._start_update_timer(ctx)

        # 태스크 리스트가 서브에이전트 게시물 아래에 오도록
        if self._on_bump_task_list:
            await self._on_bump_task_list(ctx)

    async def _update(self, op: SubagentOp, ctx: ExecutorContext) -> None:
        entry = self.state.entries.get(op.tool_use_id)
        if not entry:
            return
        if op.description:
            entry.description = op.description
        if op.is_minimized is not None:
            entry.is_minimized = op.is_minimized
        await self._render(entry, ctx)

    async def _complete(self, op: SubagentOp, ctx: ExecutorContext) -> None:
        entry = self.state.entries.get(op.tool_use_id)
        if not entry:
            return
        entry.is_complete = True
        entry.completed_at = time.monotonic()
        await self._render(entry, ctx)

        if not self.has_active():
            self.stop_update_timer()
        logger.debug(f"서브에이전트 완료: {op.tool_use_id}")

    async def handle_reaction(
        self, post_id: str, emoji: str, action: str, ctx: ExecutorContext
    ) -> bool:
        """리액션 상태 = 접힘 상태 (추가 = 접기, 제거 = 펼치기)"""
        if emoji != self.toggle_emoji and not is_minimize_toggle_emoji(emoji):
            return False
        entry = next((e for e in self.state.entries.values() if e.post_id == post_id), None)
        if entry is None:
            return False

        minimize = action == "added"
        if entry.is_minimized != minimize:
            await self._set_minimized(entry, minimize, ctx)
        return True

    async def _set_minimized(self, entry: SubagentEntry, minimized: bool, ctx: ExecutorContext) -> None:
        entry.is_minimized = minimized
        logger.debug(f"서브에이전트 {'접기' if minimized else '펼치기'}: {entry.post_id}")
        await self._render(entry, ctx)

    async def _render(self, entry: SubagentEntry, ctx: ExecutorContext) -> bool:
        entry.last_update_time = time.monotonic()
        try:
            await ctx.platform.update_post(entry.post_id, self.format_post(entry, ctx.platform.get_formatter()))
        except Exception as e:
            logger.debug(f"서브에이전트 게시물 갱신 실패: {e}")
            return False
        return True

    def format_post(self, entry: SubagentEntry, formatter: PlatformFormatter) -> str:
        end = entry.completed_at if entry.completed_at is not None else time.monotonic()
        elapsed = format_duration((end - entry.start_time) * 1000)

        header = (
            f"🤖 {formatter.format_bold('Subagent')} "
            f"{formatter.format_italic(f'({entry.subagent_type})')}"
        )
        header += f" ✅ {elapsed}" if entry.is_complete else f" ⏳ {elapsed}"

        if entry.is_minimized:
            return f"{header} 🔽"
        return (
            f"{header}\n📋 {formatter.format_bold('Prompt:')}\n"
            f"{formatter.format_blockquote(entry.description)}\n🔽"
        )

    # --- 경과 시간 갱신 ---

    def _start_update_timer(self, ctx: ExecutorContext) -> None:
        if self.has_update_timer or not self.has_active():
            return
        self._update_task = asyncio.create_task(self._update_loop(ctx))

    def stop_update_timer(self) -> None:
        if self._update_task is not None:
            if not self._update_task.done():
                self._update_task.cancel()
            self._update_task = None

    async def _update_loop(self, ctx: ExecutorContext) -> None:
        while self.has_active():
            await asyncio.sleep(self.update_interval)
            await self.refresh_elapsed(ctx)

    async def refresh_elapsed(self, ctx: ExecutorContext) -> None:
        """진행 중이고 최근에 갱신되지 않은 항목만 다시 렌더링"""
        now = time.monotonic()
        for entry in list(self.state.entries.values()):
            if entry.is_complete:
                continue
            if now - entry.last_update_time < self.update_interval - 0.5:
                continue
            await self._render(entry, ctx)
