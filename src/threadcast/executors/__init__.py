"""오퍼레이션 executor 패키지

각 executor는 채팅 화면 상태의 한 조각을 소유합니다.
"""

from threadcast.executors.base import BaseExecutor, ExecutorContext
from threadcast.executors.content import ContentExecutor
from threadcast.executors.message_approval import MessageApprovalExecutor
from threadcast.executors.prompt import PromptExecutor
from threadcast.executors.question_approval import QuestionApprovalExecutor
from threadcast.executors.subagent import SubagentExecutor
from threadcast.executors.system import SystemExecutor
from threadcast.executors.task_list import TaskListExecutor

__all__ = [
    "BaseExecutor",
    "ExecutorContext",
    "ContentExecutor",
    "MessageApprovalExecutor",
    "PromptExecutor",
    "QuestionApprovalExecutor",
    "SubagentExecutor",
    "SystemExecutor",
    "TaskListExecutor",
]
