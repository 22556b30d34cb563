"""MessageManager 이벤트

executor가 사용자 결정(질문 답변, 승인 등)이나 상태 변화를 바깥 협력자에게
알리는 통로입니다. 협력자는 이벤트를 받아 어시스턴트 프로세스에 돌려보낼
응답 형식으로 직렬화합니다.

리스너는 동기 함수나 코루틴 함수 모두 가능하며,
리스너 예외는 로깅 후 건너뜁니다 (다른 리스너 호출을 막지 않음).
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Optional, Union

from threadcast.operations.types import LifecycleEvent, StatusUpdateOp

logger = logging.getLogger(__name__)


# --- 이벤트 이름 ---

QUESTION_COMPLETE = "question:complete"
APPROVAL_COMPLETE = "approval:complete"
MESSAGE_APPROVAL_COMPLETE = "message-approval:complete"
CONTEXT_PROMPT_COMPLETE = "context-prompt:complete"
UPDATE_PROMPT_COMPLETE = "update-prompt:complete"
STATUS_UPDATE = "status:update"
LIFECYCLE_EVENT = "lifecycle:event"

EVENT_NAMES = (
    QUESTION_COMPLETE,
    APPROVAL_COMPLETE,
    MESSAGE_APPROVAL_COMPLETE,
    CONTEXT_PROMPT_COMPLETE,
    UPDATE_PROMPT_COMPLETE,
    STATUS_UPDATE,
    LIFECYCLE_EVENT,
)


# --- 페이로드 ---

@dataclass(frozen=True)
class QuestionAnswer:
    header: str
    answer: str


@dataclass(frozen=True)
class QuestionCompleteEvent:
    tool_use_id: str
    answers: list[QuestionAnswer] = field(default_factory=list)


@dataclass(frozen=True)
class ApprovalCompleteEvent:
    tool_use_id: str
    approved: bool


MessageApprovalDecision = Literal["allow", "invite", "deny"]


@dataclass(frozen=True)
class MessageApprovalCompleteEvent:
    decision: MessageApprovalDecision
    from_user: str
    original_message: str
    approved_by: str


@dataclass(frozen=True)
class ContextPromptCompleteEvent:
    """selection: 포함할 이전 메시지 수 (0 = 없음) 또는 "timeout" """

    selection: Union[int, Literal["timeout"]]
    queued_prompt: str
    thread_message_count: int
    queued_files: Optional[list[Any]] = None


@dataclass(frozen=True)
class UpdatePromptCompleteEvent:
    decision: Literal["update_now", "defer"]


@dataclass(frozen=True)
class LifecycleEventPayload:
    event: LifecycleEvent


Listener = Callable[[Any], Any]


class ManagerEvents:
    """이름 기반 이벤트 이미터"""

    def __init__(self):
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, event_name: str, listener: Listener) -> None:
        if event_name not in EVENT_NAMES:
            raise ValueError(f"알 수 없는 이벤트: {event_name}")
        self._listeners.setdefault(event_name, []).append(listener)

    def off(self, event_name: str, listener: Listener) -> None:
        listeners = self._listeners.get(event_name, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, []))

    def remove_all_listeners(self) -> None:
        self._listeners.clear()

    async def emit(self, event_name: str, payload: Any) -> int:
        """리스너를 등록 순서대로 호출. 호출된 리스너 수 반환"""
        listeners = list(self._listeners.get(event_name, []))
        for listener in listeners:
            try:
                result = listener(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.error(f"이벤트 리스너 오류: {event_name}", exc_info=True)
        return len(listeners)


StatusUpdatePayload = StatusUpdateOp
