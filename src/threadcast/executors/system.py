"""시스템 메시지 executor

정보/경고/오류/성공 게시물을 만들고, 상태 갱신과 생명주기 이벤트를
ManagerEvents로 다시 내보냅니다.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from threadcast.events import LIFECYCLE_EVENT, STATUS_UPDATE, LifecycleEventPayload
from threadcast.executors.base import BaseExecutor, ExecutorContext
from threadcast.operations.post_tracker import PostType
from threadcast.operations.types import (
    LifecycleOp,
    StatusUpdateOp,
    SystemMessageLevel,
    SystemMessageOp,
)
from threadcast.platform.types import PlatformPost

logger = logging.getLogger(__name__)

LEVEL_INDICATORS = {
    SystemMessageLevel.INFO: "ℹ️",
    SystemMessageLevel.WARNING: "⚠️",
    SystemMessageLevel.ERROR: "❌",
    SystemMessageLevel.SUCCESS: "✅",
}


@dataclass
class SystemState:
    # 나중에 한꺼번에 지울 임시 게시물
    ephemeral_post_ids: list[str] = field(default_factory=list)


class SystemExecutor(BaseExecutor[SystemState]):
    def _initial_state(self) -> SystemState:
        return SystemState()

    async def execute(
        self, op: Union[SystemMessageOp, StatusUpdateOp, LifecycleOp], ctx: ExecutorContext
    ) -> None:
        if isinstance(op, SystemMessageOp):
            post = await self._post(op.message, op.level, ctx)
            if post and op.ephemeral:
                self.state.ephemeral_post_ids.append(post.id)
        elif isinstance(op, StatusUpdateOp):
            await self._emit(STATUS_UPDATE, op)
            logger.debug(f"상태 갱신: model={op.model_id}, cost={op.total_cost_usd}")
        elif isinstance(op, LifecycleOp):
            await self._emit(LIFECYCLE_EVENT, LifecycleEventPayload(event=op.event))
            logger.debug(f"생명주기 이벤트: {op.event.value}")

    async def post_info(self, message: str, ctx: ExecutorContext) -> Optional[PlatformPost]:
        return await self._post(message, SystemMessageLevel.INFO, ctx)

    async def post_warning(self, message: str, ctx: ExecutorContext) -> Optional[PlatformPost]:
        return await self._post(message, SystemMessageLevel.WARNING, ctx)

    async def post_error(self, message: str, ctx: ExecutorContext) -> Optional[PlatformPost]:
        return await self._post(message, SystemMessageLevel.ERROR, ctx)

    async def post_success(self, message: str, ctx: ExecutorContext) -> Optional[PlatformPost]:
        return await self._post(message, SystemMessageLevel.SUCCESS, ctx)

    async def cleanup_ephemeral_posts(self, ctx: ExecutorContext) -> int:
        """임시 게시물 삭제. 삭제에 성공한 수 반환"""
        deleted = 0
        for post_id in self.state.ephemeral_post_ids:
            try:
                await ctx.platform.delete_post(post_id)
                deleted += 1
            except Exception as e:
                logger.debug(f"임시 게시물 삭제 실패 ({post_id}): {e}")
        self.state.ephemeral_post_ids.clear()
        return deleted

    @staticmethod
    def format_message(message: str, level: SystemMessageLevel) -> str:
        return f"{LEVEL_INDICATORS[level]} {message}"

    async def _post(
        self, message: str, level: SystemMessageLevel, ctx: ExecutorContext
    ) -> Optional[PlatformPost]:
        try:
            post = await ctx.platform.create_post(self.format_message(message, level), ctx.thread_id)
        except Exception as e:
            logger.error(f"시스템 메시지({level.value}) 게시 실패: {e}")
            return None
        self.register_post(post.id, post_type=PostType.SYSTEM)
        self.update_last_message(post)
        return post
