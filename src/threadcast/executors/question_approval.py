"""질문/승인 executor

질문 세트는 한 번에 한 질문씩 번호 리액션이 달린 게시물로 보여줍니다.
답을 받으면 그 게시물의 본문을 선택한 답 한 줄로 바꿔 기록으로 남기고,
다음 질문은 새 게시물로 올립니다. 답한 게시물을 다음 질문에 다시 쓰지는 않습니다.
마지막 답을 받으면 question:complete를 내보내고 세트를 비웁니다.

승인(계획 승인 / 동작 승인)은 👍/👎 리액션 하나로 끝나는 두 단계 흐름입니다.
두 흐름 모두 이미 대기 중인 것이 있으면 새로 만들지 않습니다.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from threadcast.events import (
    APPROVAL_COMPLETE,
    QUESTION_COMPLETE,
    ApprovalCompleteEvent,
    QuestionAnswer,
    QuestionCompleteEvent,
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
from threadcast.operations.types import ApprovalKind, ApprovalOp, QuestionOp, QuestionOption

logger = logging.getLogger(__name__)

MAX_OPTIONS = len(NUMBER_EMOJIS)


@dataclass
class PendingQuestion:
    header: str
    question: str
    options: list[QuestionOption]
    answer: Optional[str] = None


@dataclass
class PendingQuestionSet:
    tool_use_id: str
    questions: list[PendingQuestion]
    current_index: int = 0
    current_post_id: Optional[str] = None


@dataclass
class PendingApproval:
    post_id: str
    kind: ApprovalKind
    tool_use_id: str


@dataclass
class InteractiveState:
    question_set: Optional[PendingQuestionSet] = None
    approval: Optional[PendingApproval] = None


class QuestionApprovalExecutor(BaseExecutor[InteractiveState]):
    def _initial_state(self) -> InteractiveState:
        return InteractiveState()

    def hydrate_state(
        self,
        question_set: Optional[PendingQuestionSet] = None,
        approval: Optional[PendingApproval] = None,
    ) -> None:
        self.state = InteractiveState(question_set=question_set, approval=approval)

    def has_pending_questions(self) -> bool:
        return self.state.question_set is not None

    def has_pending_approval(self) -> bool:
        return self.state.approval is not None

    def clear_pending_questions(self) -> None:
        self.state.question_set = None

    def clear_pending_approval(self) -> None:
        self.state.approval = None

    async def execute(self, op: Union[QuestionOp, ApprovalOp], ctx: ExecutorContext) -> None:
        if isinstance(op, QuestionOp):
            await self._start_questions(op, ctx)
        elif isinstance(op, ApprovalOp):
            await self._start_approval(op, ctx)

    # --- 질문 ---

    async def _start_questions(self, op: QuestionOp, ctx: ExecutorContext) -> None:
        if self.state.question_set is not None:
            logger.debug(f"이미 대기 중인 질문이 있어 건너뜀: {op.tool_use_id}")
            return
        if not op.questions:
            return

        self.state.question_set = PendingQuestionSet(
            tool_use_id=op.tool_use_id,
            current_index=op.current_index,
            questions=[
                PendingQuestion(header=q.header, question=q.question, options=list(q.options))
                for q in op.questions
            ],
        )
        await self._post_current_question(ctx)

    async def _post_current_question(self, ctx: ExecutorContext) -> None:
        qs = self.state.question_set
        if qs is None or qs.current_index >= len(qs.questions):
            return

        fmt = ctx.platform.get_formatter()
        q = qs.questions[qs.current_index]
        options = q.options[:MAX_OPTIONS]

        message = (
            f"❓ {fmt.format_bold('Question')} "
            f"{fmt.format_italic(f'({qs.current_index + 1}/{len(qs.questions)})')}\n"
            f"{fmt.format_bold(f'{q.header}:')} {q.question}\n\n"
        )
        for emoji, option in zip(NUMBER_DISPLAY, options):
            line = f"{emoji} {fmt.format_bold(option.label)}"
            if option.description:
                line += f" - {option.description}"
            message += line + "\n"

        try:
            post = await ctx.platform.create_interactive_post(
                message, list(NUMBER_EMOJIS[:len(options)]), ctx.thread_id
            )
        except Exception as e:
            # 답할 게시물이 없는 세트가 남으면 이후 질문이 모두 막힘
            logger.error(f"질문 게시물 생성 실패, 질문 세트 취소: {qs.tool_use_id} ({e})")
            self.state.question_set = None
            return
        qs.current_post_id = post.id
        self.register_post(
            post.id,
            post_type=PostType.QUESTION,
            interaction_type=InteractionType.QUESTION,
            tool_use_id=qs.tool_use_id,
        )
        self.update_last_message(post)

    async def handle_question_answer(
        self, post_id: str, option_index: int, ctx: ExecutorContext
    ) -> bool:
        qs = self.state.question_set
        if qs is None or qs.current_post_id != post_id:
            return False
        if qs.current_index >= len(qs.questions):
            return False
        question = qs.questions[qs.current_index]
        if not 0 <= option_index < min(len(question.options), MAX_OPTIONS):
            return False

        selected = question.options[option_index]
        question.answer = selected.label
        logger.debug(f"질문 답변: {question.header} → {selected.label}")

        # 답한 게시물은 기록으로 남기고, 다음 질문은 새 게시물로
        fmt = ctx.platform.get_formatter()
        try:
            await ctx.platform.update_post(post_id, f"✅ {fmt.format_bold(question.header)}: {selected.label}")
        except Exception as e:
            logger.debug(f"질문 게시물 갱신 실패: {e}")

        qs.current_index += 1
        if qs.current_index < len(qs.questions):
            await self._post_current_question(ctx)
            return True

        answers = [
            QuestionAnswer(header=q.header, answer=q.answer)
            for q in qs.questions
            if q.answer is not None
        ]
        self.state.question_set = None
        logger.debug(f"모든 질문 답변 완료: {qs.tool_use_id}")
        await self._emit(QUESTION_COMPLETE, QuestionCompleteEvent(tool_use_id=qs.tool_use_id, answers=answers))
        return True

    # --- 승인 ---

    async def _start_approval(self, op: ApprovalOp, ctx: ExecutorContext) -> None:
        if self.state.approval is not None:
            logger.debug(f"이미 대기 중인 승인이 있어 건너뜀: {op.tool_use_id}")
            return

        fmt = ctx.platform.get_formatter()
        if op.kind == ApprovalKind.PLAN:
            message = (
                f"✅ {fmt.format_bold('Plan ready for approval')}\n\n"
                "👍 Approve and start building\n"
                "👎 Request changes\n\n"
                f"{fmt.format_italic('React to respond')}"
            )
        else:
            message = f"⚠️ {fmt.format_bold('Action requires approval')}\n\n"
            if op.content:
                message += f"{op.content}\n\n"
            message += f"👍 Approve\n👎 Deny\n\n{fmt.format_italic('React to respond')}"

        post = await ctx.platform.create_interactive_post(
            message, [APPROVAL_EMOJIS[0], DENIAL_EMOJIS[0]], ctx.thread_id
        )
        self.state.approval = PendingApproval(post_id=post.id, kind=op.kind, tool_use_id=op.tool_use_id)
        self.register_post(
            post.id,
            post_type=PostType.PLAN_APPROVAL,
            interaction_type=(
                InteractionType.PLAN_APPROVAL if op.kind == ApprovalKind.PLAN
                else InteractionType.ACTION_APPROVAL
            ),
            tool_use_id=op.tool_use_id,
        )
        self.update_last_message(post)
        logger.debug(f"{op.kind.value} 승인 게시물 생성: {post.id}")

    async def handle_approval_response(
        self, post_id: str, approved: bool, ctx: ExecutorContext
    ) -> bool:
        approval = self.state.approval
        if approval is None or approval.post_id != post_id:
            return False

        logger.info(f"{approval.kind.value} {'승인' if approved else '거절'}")
        fmt = ctx.platform.get_formatter()
        is_plan = approval.kind == ApprovalKind.PLAN
        if approved:
            status = f"✅ {fmt.format_bold('Plan approved' if is_plan else 'Action approved')} - proceeding..."
        else:
            status = f"❌ {fmt.format_bold('Changes requested' if is_plan else 'Action denied')}"

        try:
            await ctx.platform.update_post(post_id, status)
        except Exception as e:
            logger.debug(f"승인 게시물 갱신 실패: {e}")

        self.state.approval = None
        await self._emit(
            APPROVAL_COMPLETE,
            ApprovalCompleteEvent(tool_use_id=approval.tool_use_id, approved=approved),
        )
        return True

    # --- 리액션 ---

    async def handle_reaction(
        self, post_id: str, emoji: str, user: str, action: str, ctx: ExecutorContext
    ) -> bool:
        """결정은 리액션 추가 시점에만 반영"""
        if action != "added":
            return False

        qs = self.state.question_set
        if qs is not None and qs.current_post_id == post_id:
            index = get_number_emoji_index(emoji)
            if index < 0:
                return False
            logger.debug(f"질문 답변 리액션 (@{user}): {index + 1}번")
            return await self.handle_question_answer(post_id, index, ctx)

        approval = self.state.approval
        if approval is not None and approval.post_id == post_id:
            if is_approval_emoji(emoji):
                return await self.handle_approval_response(post_id, True, ctx)
            if is_denial_emoji(emoji):
                return await self.handle_approval_response(post_id, False, ctx)

        return False
