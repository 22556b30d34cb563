"""태스크 리스트 executor

할 일 목록을 스레드 맨 아래에 고정된 게시물 하나로 렌더링합니다.
토글 리액션으로 한 줄 요약(진행률 + 현재 작업)으로 접을 수 있습니다.

게시물 생성/갱신, 맨 아래로 옮기기, 본문용 재활용은 모두 같은 asyncio.Lock 아래에서
실행되며, 락을 얻은 뒤 상태(게시물 존재 여부, 완료 여부)를 다시 확인합니다.
이벤트 처리가 플랫폼 호출을 기다리지 않고 진행되므로,
락이 없으면 "게시물이 있는가" 확인이 겹쳐 태스크 리스트가 두 개 생길 수 있습니다.
"""

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import Optional

from threadcast.config import Config
from threadcast.executors.base import BaseExecutor, ExecutorContext
from threadcast.operations.emoji import MINIMIZE_TOGGLE_EMOJIS, is_minimize_toggle_emoji
from threadcast.operations.post_tracker import InteractionType, PostType
from threadcast.operations.types import TaskItem, TaskListAction, TaskListOp, TaskStatus
from threadcast.platform.types import PlatformFormatter

logger = logging.getLogger(__name__)

_PROGRESS_RE = re.compile(r"\((\d+)/(\d+) · (\d+)%\)")
_IN_PROGRESS_RE = re.compile(r"🔄 \*{1,2}([^*]+)\*{1,2}(?:\s*\((\d+)s\))?")


@dataclass
class TaskListState:
    """태스크 리스트 상태

    last_content는 마지막으로 렌더링한 전체 목록이며, 접힌 표시를 다시 만들 때 씁니다.
    """

    post_id: Optional[str] = None
    last_content: Optional[str] = None
    completed: bool = False
    minimized: bool = False
    in_progress_task: Optional[str] = None
    in_progress_started: Optional[float] = None


class TaskListExecutor(BaseExecutor[TaskListState]):
    def __init__(
        self,
        *args,
        toggle_emoji: str = MINIMIZE_TOGGLE_EMOJIS[0],
        elapsed_min_seconds: int = 3,
        repurpose_enabled: Optional[bool] = None,
        repurpose_max_length: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.toggle_emoji = toggle_emoji
        self.elapsed_min_seconds = elapsed_min_seconds
        self.repurpose_enabled = (
            Config.stream.repurpose_task_list if repurpose_enabled is None else repurpose_enabled
        )
        self.repurpose_max_length = (
            Config.stream.repurpose_max_length if repurpose_max_length is None else repurpose_max_length
        )
        self._lock = asyncio.Lock()

    def _initial_state(self) -> TaskListState:
        return TaskListState()

    def hydrate_state(
        self,
        post_id: Optional[str] = None,
        last_content: Optional[str] = None,
        completed: bool = False,
        minimized: bool = False,
    ) -> None:
        """저장된 상태 복원 (진행 중 작업 시각은 저장하지 않음)"""
        self.state = TaskListState(
            post_id=post_id,
            last_content=last_content,
            completed=completed,
            minimized=minimized,
        )

    @property
    def post_id(self) -> Optional[str]:
        return self.state.post_id

    def has_active_tasks(self) -> bool:
        return bool(self.state.post_id and self.state.last_content and not self.state.completed)

    async def execute(self, op: TaskListOp, ctx: ExecutorContext) -> None:
        if op.action == TaskListAction.UPDATE:
            await self.update(op.tasks, ctx)
        elif op.action == TaskListAction.COMPLETE:
            await self.complete(op.tasks, ctx)
        elif op.action == TaskListAction.BUMP_TO_BOTTOM:
            await self.bump_to_bottom(ctx)
        elif op.action == TaskListAction.TOGGLE_MINIMIZE:
            await self.toggle_minimize(ctx)
        else:
            logger.warning(f"알 수 없는 태스크 리스트 동작: {op.action}")

    async def update(self, tasks: tuple[TaskItem, ...], ctx: ExecutorContext) -> None:
        async with self._lock:
            formatter = ctx.platform.get_formatter()
            self._track_in_progress(tasks)
            content = self.format_task_list(tasks, formatter)
            self.state.last_content = content
            self.state.completed = False
            display = self._display_content(formatter)

            # 락 대기 중 다른 갱신이 게시물을 만들었을 수 있으므로 여기서 확인
            if self.state.post_id:
                try:
                    await ctx.platform.update_post(self.state.post_id, display)
                    return
                except Exception as e:
                    logger.debug(f"태스크 게시물 갱신 실패, 새로 생성: {e}")
                    self.state.post_id = None

            await self._create_task_post(display, ctx)

    async def complete(self, tasks: tuple[TaskItem, ...], ctx: ExecutorContext) -> None:
        """완료된 목록은 항상 펼쳐서 표시하고 고정 해제"""
        async with self._lock:
            formatter = ctx.platform.get_formatter()
            self.state.in_progress_task = None
            self.state.in_progress_started = None
            content = self.format_task_list(tasks, formatter)
            self.state.last_content = content
            self.state.completed = True

            post_id = self.state.post_id
            if not post_id:
                return
            try:
                await ctx.platform.update_post(post_id, content)
            except Exception as e:
                logger.debug(f"완료된 태스크 게시물 갱신 실패: {e}")
                return
            await self._quietly(ctx.platform.unpin_post(post_id), "고정 해제")

    async def bump_to_bottom(self, ctx: ExecutorContext) -> Optional[str]:
        """태스크 리스트를 스레드 맨 아래로 옮김. 옮겨진 경우 이전 게시물 ID 반환"""
        async with self._lock:
            if not self.has_active_tasks():
                return None

            old_post_id = self.state.post_id
            logger.debug(f"태스크 리스트를 맨 아래로: {old_post_id}")
            await self._detach(old_post_id, ctx)
            await self._quietly(ctx.platform.delete_post(old_post_id), "삭제")

            self.state.post_id = None
            await self._create_task_post(self._display_content(ctx.platform.get_formatter()), ctx)
            return old_post_id

    async def repurpose_for_content(self, ctx: ExecutorContext, content: str) -> Optional[str]:
        """태스크 리스트 게시물을 본문 게시물로 바꾸고 새 태스크 리스트를 맨 아래에 생성

        재활용한 게시물 ID를 반환합니다. 재활용하지 않았으면 None이며,
        호출자는 새 본문 게시물을 직접 만들어야 합니다.
        """
        if not self.repurpose_enabled:
            return None
        if self.repurpose_max_length and len(content) > self.repurpose_max_length:
            return None

        async with self._lock:
            if not self.has_active_tasks():
                return None

            old_post_id = self.state.post_id
            logger.debug(f"태스크 게시물을 본문용으로 재활용: {old_post_id}")
            await self._detach(old_post_id, ctx)

            repurposed_id = None
            try:
                await ctx.platform.update_post(old_post_id, content)
                repurposed_id = old_post_id
                self.register_post(old_post_id, post_type=PostType.CONTENT)
            except Exception as e:
                logger.debug(f"태스크 게시물 재활용 실패: {e}")

            self.state.post_id = None
            await self._create_task_post(self._display_content(ctx.platform.get_formatter()), ctx)
            return repurposed_id

    async def toggle_minimize(self, ctx: ExecutorContext) -> None:
        async with self._lock:
            if not self.state.post_id or not self.state.last_content:
                return
            self.state.minimized = not self.state.minimized
            display = self._display_content(ctx.platform.get_formatter())
            try:
                await ctx.platform.update_post(self.state.post_id, display)
            except Exception as e:
                logger.debug(f"태스크 리스트 접기/펼치기 실패: {e}")

    async def handle_reaction(
        self, post_id: str, emoji: str, action: str, ctx: ExecutorContext
    ) -> bool:
        """토글 이모지가 추가될 때만 접기/펼치기. 제거는 소유만 인정하고 무시"""
        if not post_id or post_id != self.state.post_id:
            return False
        if emoji != self.toggle_emoji and not is_minimize_toggle_emoji(emoji):
            return False
        if action == "added":
            await self.toggle_minimize(ctx)
        return True

    # --- 렌더링 ---

    def format_task_list(self, tasks: tuple[TaskItem, ...], formatter: PlatformFormatter) -> str:
        completed = sum(1 for t in tasks if t.status == TaskStatus.COMPLETED)
        total = len(tasks)
        pct = round(completed / total * 100) if total else 0

        lines = [
            formatter.format_horizontal_rule(),
            f"📋 {formatter.format_bold('Tasks')} ({completed}/{total} · {pct}%)",
            "",
        ]
        for task in tasks:
            if task.status == TaskStatus.COMPLETED:
                lines.append(f"✅ {formatter.format_strikethrough(task.content)}")
            elif task.status == TaskStatus.IN_PROGRESS:
                text = formatter.format_bold(task.active_form or task.content)
                elapsed = self._in_progress_elapsed()
                if elapsed is not None:
                    text += f" ({elapsed}s)"
                lines.append(f"🔄 {text}")
            else:
                lines.append(f"⬜ {task.content}")
        return "\n".join(lines)

    def minimized_content(self, full_content: str, formatter: PlatformFormatter) -> str:
        """전체 목록에서 진행률과 현재 작업을 뽑아 한 줄 요약 생성"""
        progress = _PROGRESS_RE.search(full_content)
        completed, total, pct = progress.groups() if progress else ("0", "0", "0")

        current = ""
        in_progress = _IN_PROGRESS_RE.search(full_content)
        if in_progress:
            elapsed = f" ({in_progress.group(2)}s)" if in_progress.group(2) else ""
            current = f" · 🔄 {in_progress.group(1)}{elapsed}"

        return (
            f"{formatter.format_horizontal_rule()}\n"
            f"📋 {formatter.format_bold('Tasks')} ({completed}/{total} · {pct}%){current} 🔽"
        )

    def _display_content(self, formatter: PlatformFormatter) -> str:
        content = self.state.last_content or ""
        if self.state.minimized:
            return self.minimized_content(content, formatter)
        return content

    def _track_in_progress(self, tasks: tuple[TaskItem, ...]) -> None:
        active = next((t for t in tasks if t.status == TaskStatus.IN_PROGRESS), None)
        if active is None:
            self.state.in_progress_task = None
            self.state.in_progress_started = None
        elif active.content != self.state.in_progress_task:
            self.state.in_progress_task = active.content
            self.state.in_progress_started = time.monotonic()

    def _in_progress_elapsed(self) -> Optional[int]:
        if self.state.in_progress_started is None:
            return None
        elapsed = round(time.monotonic() - self.state.in_progress_started)
        return elapsed if elapsed >= self.elapsed_min_seconds else None

    # --- 플랫폼 호출 ---

    async def _create_task_post(self, display: str, ctx: ExecutorContext) -> None:
        """락을 쥔 상태에서만 호출"""
        try:
            post = await ctx.platform.create_interactive_post(
                display, [self.toggle_emoji], ctx.thread_id
            )
        except Exception as e:
            logger.error(f"태스크 게시물 생성 실패: {e}")
            self.state.post_id = None
            return

        self.state.post_id = post.id
        self.register_post(
            post.id,
            post_type=PostType.TASK_LIST,
            interaction_type=InteractionType.TOGGLE_MINIMIZE,
        )
        self.update_last_message(post)
        await self._quietly(ctx.platform.pin_post(post.id), "고정")
        logger.debug(f"태스크 게시물 생성: {post.id}")

    async def _detach(self, post_id: str, ctx: ExecutorContext) -> None:
        """기존 태스크 게시물에서 토글 리액션과 고정 제거"""
        await self._quietly(ctx.platform.remove_reaction(post_id, self.toggle_emoji), "리액션 제거")
        await self._quietly(ctx.platform.unpin_post(post_id), "고정 해제")

    @staticmethod
    async def _quietly(call, what: str) -> None:
        # 고정/리액션 같은 부수 효과는 실패해도 목록 표시에 영향 없음
        try:
            await call
        except Exception as e:
            logger.debug(f"태스크 게시물 {what} 실패 (무시): {e}")
