"""메시지 승인 executor

세션 참여자가 아닌 사용자의 메시지를 바로 전달하지 않고 승인 게시물로 올립니다.
👍 이번만 허용, ✅ 세션에 초대, 👎 거절 중 하나로 결정합니다.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from threadcast.events import (
    MESSAGE_APPROVAL_COMPLETE,
    MessageApprovalCompleteEvent,
    MessageApprovalDecision,
)
from threadcast.executors.base import BaseExecutor, ExecutorContext
from threadcast.formatting import truncate_at_word
from threadcast.operations.emoji import (
    ALLOW_ALL_EMOJIS,
    APPROVAL_EMOJIS,
    DENIAL_EMOJIS,
    is_allow_all_emoji,
    is_approval_emoji,
    is_denial_emoji,
)
from threadcast.operations.post_tracker import InteractionType, PostType

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 200


@dataclass
class PendingMessageApproval:
    post_id: str
    from_user: str
    original_message: str


@dataclass
class MessageApprovalState:
    pending: Optional[PendingMessageApproval] = None


class MessageApprovalExecutor(BaseExecutor[MessageApprovalState]):
    def _initial_state(self) -> MessageApprovalState:
        return MessageApprovalState()

    def hydrate_state(self, pending: Optional[PendingMessageApproval] = None) -> None:
        self.state = MessageApprovalState(pending=pending)

    def has_pending(self) -> bool:
        return self.state.pending is not None

    def clear_pending(self) -> None:
        self.state.pending = None

    async def request_approval(
        self, from_user: str, message: str, ctx: ExecutorContext
    ) -> Optional[str]:
        """승인 게시물 생성. 이미 대기 중이면 아무것도 하지 않고 None"""
        if self.state.pending is not None:
            logger.debug(f"메시지 승인 대기 중, @{from_user}의 메시지 무시")
            return None

        fmt = ctx.platform.get_formatter()
        preview = message if len(message) <= PREVIEW_LENGTH else message[:PREVIEW_LENGTH] + "..."
        text = (
            f"🔒 {fmt.format_bold(f'Message from {fmt.format_user_mention(from_user)}')} needs approval:\n\n"
            f"{fmt.format_blockquote(preview)}\n\n"
            "React: 👍 Allow once | ✅ Invite to session | 👎 Deny"
        )

        post = await ctx.platform.create_interactive_post(
            text, [APPROVAL_EMOJIS[0], ALLOW_ALL_EMOJIS[0], DENIAL_EMOJIS[0]], ctx.thread_id
        )
        self.state.pending = PendingMessageApproval(
            post_id=post.id, from_user=from_user, original_message=message
        )
        self.register_post(
            post.id,
            post_type=PostType.MESSAGE_APPROVAL,
            interaction_type=InteractionType.MESSAGE_APPROVAL,
            metadata={"from_user": from_user, "preview": truncate_at_word(message, 50)},
        )
        self.update_last_message(post)
        logger.info(f"@{from_user}의 메시지 승인 요청: {post.id}")
        return post.id

    async def handle_response(
        self,
        post_id: str,
        decision: MessageApprovalDecision,
        approver: str,
        ctx: ExecutorContext,
    ) -> bool:
        pending = self.state.pending
        if pending is None or pending.post_id != post_id:
            return False

        fmt = ctx.platform.get_formatter()
        from_user = fmt.format_user_mention(pending.from_user)
        by = fmt.format_user_mention(approver)
        if decision == "allow":
            status = f"✅ Message from {from_user} approved by {by}"
        elif decision == "invite":
            status = f"✅ {from_user} invited to session by {by}"
        else:
            status = f"❌ Message from {from_user} denied by {by}"
        logger.info(f"@{pending.from_user}의 메시지: {decision} (@{approver})")

        try:
            await ctx.platform.update_post(post_id, status)
        except Exception as e:
            logger.debug(f"메시지 승인 게시물 갱신 실패: {e}")

        self.state.pending = None
        await self._emit(
            MESSAGE_APPROVAL_COMPLETE,
            MessageApprovalCompleteEvent(
                decision=decision,
                from_user=pending.from_user,
                original_message=pending.original_message,
                approved_by=approver,
            ),
        )
        return True

    async def handle_reaction(
        self, post_id: str, emoji: str, user: str, action: str, ctx: ExecutorContext
    ) -> bool:
        if action != "added":
            return False
        pending = self.state.pending
        if pending is None or pending.post_id != post_id:
            return False

        if is_approval_emoji(emoji):
            return await self.handle_response(post_id, "allow", user, ctx)
        if is_allow_all_emoji(emoji):
            return await self.handle_response(post_id, "invite", user, ctx)
        if is_denial_emoji(emoji):
            return await self.handle_response(post_id, "deny", user, ctx)
        return False
