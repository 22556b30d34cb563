"""이벤트 → 오퍼레이션 변환 패키지"""

from threadcast.operations.post_tracker import InteractionType, PostInfo, PostTracker, PostType
from threadcast.operations.transformer import TransformContext, transform_event
from threadcast.operations.types import MessageOperation, OperationType

__all__ = [
    "InteractionType",
    "PostInfo",
    "PostTracker",
    "PostType",
    "TransformContext",
    "transform_event",
    "MessageOperation",
    "OperationType",
]
