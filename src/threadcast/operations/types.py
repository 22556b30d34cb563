"""렌더링 오퍼레이션 타입 정의

Transformer가 어시스턴트 이벤트 하나에서 만들어내는 불변 렌더링 의도입니다.
모든 오퍼레이션은 type 판별 필드를 가지며, MessageManager는
이 필드로만 라우팅합니다 (모양 추측 금지).
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class OperationType(Enum):
    """오퍼레이션 판별자"""

    APPEND_CONTENT = "append_content"
    FLUSH = "flush"
    TASK_LIST = "task_list"
    QUESTION = "question"
    APPROVAL = "approval"
    SUBAGENT = "subagent"
    SYSTEM_MESSAGE = "system_message"
    STATUS_UPDATE = "status_update"
    LIFECYCLE = "lifecycle"


class FlushReason(Enum):
    SOFT_THRESHOLD = "soft_threshold"
    HARD_THRESHOLD = "hard_threshold"
    LOGICAL_BREAK = "logical_break"
    RESULT = "result"
    TOOL_COMPLETE = "tool_complete"
    EXPLICIT = "explicit"


class TaskListAction(Enum):
    UPDATE = "update"
    BUMP_TO_BOTTOM = "bump_to_bottom"
    TOGGLE_MINIMIZE = "toggle_minimize"
    COMPLETE = "complete"


class TaskStatus(Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ApprovalKind(Enum):
    PLAN = "plan"
    ACTION = "action"


class SubagentAction(Enum):
    START = "start"
    UPDATE = "update"
    COMPLETE = "complete"
    TOGGLE_MINIMIZE = "toggle_minimize"


class SystemMessageLevel(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


class LifecycleEvent(Enum):
    STARTED = "started"
    PROCESSING = "processing"
    IDLE = "idle"
    PAUSED = "paused"
    RESUMED = "resumed"
    ENDING = "ending"


# --- 페이로드 ---

@dataclass(frozen=True)
class TaskItem:
    """할 일 목록의 항목 하나"""

    content: str
    status: TaskStatus
    active_form: str = ""


@dataclass(frozen=True)
class QuestionOption:
    label: str
    description: str = ""


@dataclass(frozen=True)
class Question:
    header: str
    question: str
    options: tuple[QuestionOption, ...] = ()
    multi_select: bool = False


# --- 오퍼레이션 ---
# 공통 필드 session_id, timestamp와 고정 type 필드를 가집니다.

@dataclass(frozen=True)
class AppendContentOp:
    session_id: str
    content: str
    is_tool_output: bool = False
    timestamp: float = field(default_factory=time.time)
    type: OperationType = field(default=OperationType.APPEND_CONTENT, init=False)


@dataclass(frozen=True)
class FlushOp:
    session_id: str
    reason: FlushReason
    timestamp: float = field(default_factory=time.time)
    type: OperationType = field(default=OperationType.FLUSH, init=False)


@dataclass(frozen=True)
class TaskListOp:
    session_id: str
    action: TaskListAction
    tasks: tuple[TaskItem, ...] = ()
    timestamp: float = field(default_factory=time.time)
    type: OperationType = field(default=OperationType.TASK_LIST, init=False)


@dataclass(frozen=True)
class QuestionOp:
    session_id: str
    tool_use_id: str
    questions: tuple[Question, ...]
    current_index: int = 0
    timestamp: float = field(default_factory=time.time)
    type: OperationType = field(default=OperationType.QUESTION, init=False)


@dataclass(frozen=True)
class ApprovalOp:
    session_id: str
    tool_use_id: str
    kind: ApprovalKind
    content: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
    type: OperationType = field(default=OperationType.APPROVAL, init=False)


@dataclass(frozen=True)
class SubagentOp:
    session_id: str
    tool_use_id: str
    action: SubagentAction
    description: str = ""
    subagent_type: str = "general-purpose"
    is_minimized: Optional[bool] = None
    result: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
    type: OperationType = field(default=OperationType.SUBAGENT, init=False)


@dataclass(frozen=True)
class SystemMessageOp:
    session_id: str
    message: str
    level: SystemMessageLevel = SystemMessageLevel.INFO
    ephemeral: bool = False
    timestamp: float = field(default_factory=time.time)
    type: OperationType = field(default=OperationType.SYSTEM_MESSAGE, init=False)


@dataclass(frozen=True)
class StatusUpdateOp:
    """상태 갱신 (모델, 비용, 컨텍스트 사용량)

    턴 종료 정리 작업이 이 오퍼레이션에 의존하므로 모든 필드가 비어 있어도 발행됩니다.
    """

    session_id: str
    model_id: Optional[str] = None
    model_display_name: Optional[str] = None
    context_window_size: Optional[int] = None
    context_tokens: Optional[int] = None
    total_cost_usd: Optional[float] = None
    timestamp: float = field(default_factory=time.time)
    type: OperationType = field(default=OperationType.STATUS_UPDATE, init=False)


@dataclass(frozen=True)
class LifecycleOp:
    session_id: str
    event: LifecycleEvent
    timestamp: float = field(default_factory=time.time)
    type: OperationType = field(default=OperationType.LIFECYCLE, init=False)


MessageOperation = Union[
    AppendContentOp,
    FlushOp,
    TaskListOp,
    QuestionOp,
    ApprovalOp,
    SubagentOp,
    SystemMessageOp,
    StatusUpdateOp,
    LifecycleOp,
]


def parse_task_status(value: str) -> TaskStatus:
    """알 수 없는 상태 문자열은 pending으로 취급"""
    try:
        return TaskStatus(value)
    except ValueError:
        return TaskStatus.PENDING
