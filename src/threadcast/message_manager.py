"""대화별 렌더링 오케스트레이터

MessageManager는 대화 하나에 대해 executor를 하나씩 갖고,
어시스턴트 이벤트를 오퍼레이션으로 변환해 각 executor로 보냅니다.

본문 추가 오퍼레이션은 디바운스 타이머를 예약하고(이미 예약돼 있으면 그대로 둠),
flush 오퍼레이션은 타이머를 취소한 뒤 즉시 내보냅니다.
리액션은 정해진 우선순위(질문/승인 → 메시지 승인 → 프롬프트 → 태스크 리스트 → 서브에이전트)로
executor에 물어보고, 처음으로 게시물 소유를 인정한 executor에서 멈춥니다.

완료 알림은 events로 받습니다:

    manager.events.on(QUESTION_COMPLETE, lambda e: send_answers(e.tool_use_id, e.answers))
    manager.events.on(APPROVAL_COMPLETE, lambda e: send_approval(e.tool_use_id, e.approved))
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from threadcast.config import Config
from threadcast.events import ManagerEvents
from threadcast.executors import (
    ContentExecutor,
    ExecutorContext,
    MessageApprovalExecutor,
    PromptExecutor,
    QuestionApprovalExecutor,
    SubagentExecutor,
    SystemExecutor,
    TaskListExecutor,
)
from threadcast.executors.message_approval import MessageApprovalState
from threadcast.executors.prompt import PromptState
from threadcast.executors.question_approval import InteractiveState
from threadcast.executors.task_list import TaskListState
from threadcast.operations.post_tracker import InteractionType, PostTracker, PostType
from threadcast.operations.tool_formatters import WorktreeInfo
from threadcast.operations.transformer import TransformContext, transform_event
from threadcast.operations.types import (
    AppendContentOp,
    FlushOp,
    FlushReason,
    MessageOperation,
    OperationType,
)
from threadcast.platform.types import PlatformClient, PlatformPost

logger = logging.getLogger(__name__)

OperationHandler = Callable[[Any, ExecutorContext], Awaitable[None]]


@dataclass
class InteractiveSnapshot:
    """저장/복원용 대화형 상태 묶음"""

    question_approval: InteractiveState
    message_approval: MessageApprovalState
    prompt: PromptState


class MessageManager:
    """대화 하나의 채팅 화면 렌더링을 담당"""

    def __init__(
        self,
        platform: PlatformClient,
        post_tracker: PostTracker,
        session_id: str,
        thread_id: str,
        *,
        worktree_info: Optional[WorktreeInfo] = None,
        flush_delay_ms: Optional[int] = None,
        detailed_tools: Optional[bool] = None,
        on_last_message: Optional[Callable[[PlatformPost], None]] = None,
        debug: bool = False,
    ):
        self.platform = platform
        self.post_tracker = post_tracker
        self.session_id = session_id
        self.thread_id = thread_id
        self.debug = debug
        self.flush_delay_ms = (
            Config.stream.flush_delay_ms if flush_delay_ms is None else flush_delay_ms
        )
        self.last_post: Optional[PlatformPost] = None
        self._on_last_message = on_last_message
        self._flush_task: Optional[asyncio.Task] = None

        self.events = ManagerEvents()
        self._transform_ctx = TransformContext(
            session_id=session_id,
            formatter=platform.get_formatter(),
            worktree_info=worktree_info,
            detailed=Config.stream.detailed_tools if detailed_tools is None else detailed_tools,
            elapsed_min_seconds=Config.stream.tool_elapsed_min_seconds,
        )

        common = dict(
            register_post=self._register_post,
            update_last_message=self._update_last_message,
            events=self.events,
        )
        toggle_emoji = Config.emoji.minimize_toggle
        self.task_list = TaskListExecutor(
            toggle_emoji=toggle_emoji,
            elapsed_min_seconds=Config.stream.tool_elapsed_min_seconds,
            **common,
        )
        self.content = ContentExecutor(
            repurpose_post=self.task_list.repurpose_for_content,
            bump_task_list=self.task_list.bump_to_bottom,
            **common,
        )
        self.question_approval = QuestionApprovalExecutor(**common)
        self.message_approval = MessageApprovalExecutor(**common)
        self.prompt = PromptExecutor(**common)
        self.subagent = SubagentExecutor(
            on_bump_task_list=self.task_list.bump_to_bottom, toggle_emoji=toggle_emoji, **common
        )
        self.system = SystemExecutor(**common)

        self._handlers: dict[OperationType, OperationHandler] = {
            OperationType.APPEND_CONTENT: self._handle_append,
            OperationType.FLUSH: self._handle_flush,
            OperationType.TASK_LIST: self.task_list.execute,
            OperationType.QUESTION: self.question_approval.execute,
            OperationType.APPROVAL: self.question_approval.execute,
            OperationType.SUBAGENT: self.subagent.execute,
            OperationType.SYSTEM_MESSAGE: self.system.execute,
            OperationType.STATUS_UPDATE: self.system.execute,
            OperationType.LIFECYCLE: self.system.execute,
        }
        missing = set(OperationType) - set(self._handlers)
        if missing:
            raise RuntimeError(f"처리기가 없는 오퍼레이션: {sorted(t.value for t in missing)}")

    # --- 콜백 ---

    def _register_post(
        self,
        post_id: str,
        *,
        post_type: PostType = PostType.CONTENT,
        interaction_type: Optional[InteractionType] = None,
        tool_use_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        self.post_tracker.register(
            post_id,
            self.thread_id,
            self.session_id,
            post_type=post_type,
            interaction_type=interaction_type,
            tool_use_id=tool_use_id,
            metadata=metadata,
        )

    def _update_last_message(self, post: PlatformPost) -> None:
        self.last_post = post
        if self._on_last_message:
            self._on_last_message(post)

    def executor_context(self) -> ExecutorContext:
        return ExecutorContext(
            session_id=self.session_id,
            thread_id=self.thread_id,
            platform=self.platform,
            post_tracker=self.post_tracker,
            debug=self.debug,
        )

    # --- 이벤트 처리 ---

    async def handle_event(self, event: dict[str, Any]) -> list[MessageOperation]:
        """이벤트를 변환해 순서대로 실행. 생성된 오퍼레이션 목록 반환"""
        ops = transform_event(event, self._transform_ctx)
        if not ops:
            logger.debug(f"오퍼레이션 없는 이벤트: {event.get('type')}")
            return ops

        logger.debug(f"{event.get('type')} → 오퍼레이션 {len(ops)}개")
        ctx = self.executor_context()
        for op in ops:
            await self.execute_operation(op, ctx)
        return ops

    async def execute_operation(
        self, op: MessageOperation, ctx: Optional[ExecutorContext] = None
    ) -> None:
        """오퍼레이션 하나 실행. 실패는 기록만 하고 다음 오퍼레이션을 막지 않음"""
        ctx = ctx or self.executor_context()
        try:
            await self._handlers[op.type](op, ctx)
        except Exception:
            logger.exception(f"오퍼레이션 실행 실패: {op.type.value}")

    async def _handle_append(self, op: AppendContentOp, ctx: ExecutorContext) -> None:
        await self.content.execute_append(op, ctx)
        self._schedule_flush(ctx)

    async def _handle_flush(self, op: FlushOp, ctx: ExecutorContext) -> None:
        self._cancel_scheduled_flush()
        await self.content.execute_flush(op, ctx)

    # --- 디바운스 ---

    @property
    def has_scheduled_flush(self) -> bool:
        return self._flush_task is not None and not self._flush_task.done()

    def _schedule_flush(self, ctx: ExecutorContext) -> None:
        if self.has_scheduled_flush:
            return
        self._flush_task = asyncio.create_task(self._delayed_flush(ctx))

    async def _delayed_flush(self, ctx: ExecutorContext) -> None:
        await asyncio.sleep(self.flush_delay_ms / 1000)
        # flush가 시작되면 더 이상 취소 대상이 아님
        self._flush_task = None
        try:
            await self.content.flush(ctx, FlushReason.SOFT_THRESHOLD)
        except Exception:
            logger.exception("예약된 flush 실패")

    def _cancel_scheduled_flush(self) -> None:
        task, self._flush_task = self._flush_task, None
        if task is not None and not task.done():
            task.cancel()

    async def flush(self) -> None:
        """예약된 flush를 취소하고 남은 본문을 즉시 내보냄"""
        self._cancel_scheduled_flush()
        await self.content.flush(self.executor_context(), FlushReason.EXPLICIT)

    # --- 사용자 메시지 ---

    def reset_content_post(self) -> None:
        self.content.reset_content_post()

    async def bump_task_list(self) -> Optional[str]:
        return await self.task_list.bump_to_bottom(self.executor_context())

    async def prepare_for_user_message(self) -> None:
        """후속 사용자 메시지 전에 호출

        남은 본문을 내보내고, 응답이 새 게시물에서 시작하도록 현재 게시물을 놓고,
        태스크 리스트를 사용자 메시지 아래로 옮깁니다.
        """
        logger.debug(f"사용자 메시지 준비: {self.session_id}")
        await self.flush()
        self.reset_content_post()
        await self.bump_task_list()

    # --- 리액션 ---

    async def handle_reaction(self, post_id: str, emoji: str, user: str, action: str) -> bool:
        """게시물을 소유한 첫 executor가 처리. 처리했으면 True"""
        ctx = self.executor_context()
        if await self.question_approval.handle_reaction(post_id, emoji, user, action, ctx):
            return True
        if await self.message_approval.handle_reaction(post_id, emoji, user, action, ctx):
            return True
        if await self.prompt.handle_reaction(post_id, emoji, user, action, ctx):
            return True
        if await self.task_list.handle_reaction(post_id, emoji, action, ctx):
            return True
        if await self.subagent.handle_reaction(post_id, emoji, action, ctx):
            return True
        logger.debug(f"처리할 executor 없는 리액션: {emoji} ({action}) on {post_id}")
        return False

    # --- 대화형 요청 ---

    async def request_message_approval(self, from_user: str, message: str) -> Optional[str]:
        return await self.message_approval.request_approval(from_user, message, self.executor_context())

    async def request_context_prompt(
        self,
        queued_prompt: str,
        thread_message_count: int,
        queued_files: Optional[list[Any]] = None,
    ) -> Optional[str]:
        return await self.prompt.request_context_prompt(
            queued_prompt, thread_message_count, self.executor_context(), queued_files=queued_files
        )

    async def request_update_prompt(self, version: str) -> Optional[str]:
        return await self.prompt.request_update_prompt(version, self.executor_context())

    # --- 시스템 메시지 ---

    async def post_info(self, message: str) -> Optional[PlatformPost]:
        return await self.system.post_info(message, self.executor_context())

    async def post_warning(self, message: str) -> Optional[PlatformPost]:
        return await self.system.post_warning(message, self.executor_context())

    async def post_error(self, message: str) -> Optional[PlatformPost]:
        return await self.system.post_error(message, self.executor_context())

    async def post_success(self, message: str) -> Optional[PlatformPost]:
        return await self.system.post_success(message, self.executor_context())

    async def cleanup_ephemeral_posts(self) -> int:
        return await self.system.cleanup_ephemeral_posts(self.executor_context())

    # --- 상태 저장/복원 ---

    def get_task_list_state(self) -> TaskListState:
        return self.task_list.get_state()

    def hydrate_task_list_state(self, state: TaskListState) -> None:
        self.task_list.hydrate_state(
            post_id=state.post_id,
            last_content=state.last_content,
            completed=state.completed,
            minimized=state.minimized,
        )

    def get_interactive_state(self) -> InteractiveSnapshot:
        return InteractiveSnapshot(
            question_approval=self.question_approval.get_state(),
            message_approval=self.message_approval.get_state(),
            prompt=self.prompt.get_state(),
        )

    def hydrate_interactive_state(self, snapshot: InteractiveSnapshot) -> None:
        qa = snapshot.question_approval
        self.question_approval.hydrate_state(question_set=qa.question_set, approval=qa.approval)
        self.message_approval.hydrate_state(pending=snapshot.message_approval.pending)
        self.prompt.hydrate_state(
            context_prompt=snapshot.prompt.context_prompt,
            update_prompt=snapshot.prompt.update_prompt,
        )

    # --- 작업 디렉터리 ---

    def set_worktree_info(self, path: str, branch: str) -> None:
        self._transform_ctx.worktree_info = WorktreeInfo(path=path, branch=branch)

    def clear_worktree_info(self) -> None:
        self._transform_ctx.worktree_info = None

    # --- 정리 ---

    def reset(self) -> None:
        """모든 executor 상태와 도구 추적 정보 초기화 (이벤트 구독은 유지)"""
        self._cancel_scheduled_flush()
        for executor in (
            self.content,
            self.task_list,
            self.question_approval,
            self.message_approval,
            self.prompt,
            self.subagent,
            self.system,
        ):
            executor.reset()
        self._transform_ctx.tool_start_times.clear()
        self._transform_ctx.subagent_tool_ids.clear()
        self.last_post = None

    def dispose(self) -> None:
        """타이머를 모두 멈추고 이벤트 구독 해제"""
        self._cancel_scheduled_flush()
        self.subagent.stop_update_timer()
        self.prompt.cancel_timeout()
        self.events.remove_all_listeners()
        logger.debug(f"MessageManager 정리: {self.session_id}")
