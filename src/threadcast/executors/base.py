"""executor 공통 기반

executor는 채팅 화면 상태의 한 조각을 독점 소유하고
오퍼레이션을 플랫폼 호출로 바꿉니다. 상태는 executor별 dataclass로 두며,
바깥에는 get_state()의 복사본만 노출합니다.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, Protocol, TypeVar

from threadcast.events import ManagerEvents
from threadcast.operations.post_tracker import InteractionType, PostTracker, PostType
from threadcast.platform.types import PlatformClient, PlatformPost

logger = logging.getLogger(__name__)


@dataclass
class ExecutorContext:
    """오퍼레이션 실행 시 전달되는 대화 컨텍스트"""

    session_id: str
    thread_id: str
    platform: PlatformClient
    post_tracker: PostTracker
    debug: bool = False


class RegisterPostCallback(Protocol):
    def __call__(
        self,
        post_id: str,
        *,
        post_type: PostType = PostType.CONTENT,
        interaction_type: Optional[InteractionType] = None,
        tool_use_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None: ...


UpdateLastMessageCallback = Callable[[PlatformPost], None]

StateT = TypeVar("StateT")


class BaseExecutor(Generic[StateT]):
    """상태 보관, 게시물 등록 콜백, 이벤트 이미터를 묶는 기반 클래스"""

    def __init__(
        self,
        register_post: RegisterPostCallback,
        update_last_message: UpdateLastMessageCallback,
        events: Optional[ManagerEvents] = None,
    ):
        self.register_post = register_post
        self.update_last_message = update_last_message
        self.events = events
        self.state: StateT = self._initial_state()

    def _initial_state(self) -> StateT:
        raise NotImplementedError

    def get_state(self) -> StateT:
        """상태 스냅샷 (수정해도 executor에 영향 없음)"""
        return copy.deepcopy(self.state)

    def reset(self) -> None:
        self.state = self._initial_state()

    async def _emit(self, event_name: str, payload: Any) -> None:
        if self.events is None:
            logger.debug(f"이벤트 이미터 없음, 무시: {event_name}")
            return
        await self.events.emit(event_name, payload)
