"""게시물 → 대화 스레드 추적

리액션 이벤트가 도착했을 때 해당 게시물을 소유한 대화(스레드)를 찾기 위해
플랫폼 게시물 ID를 스레드/세션에 매핑합니다.

대화가 진행되는 동안 항목은 지우지 않습니다. 오래된 항목은 무해하며,
이후 "어느 executor가 이 게시물을 소유하는가" 조회에서 매칭되지 않을 뿐입니다.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


class PostType(Enum):
    CONTENT = "content"
    TASK_LIST = "task_list"
    QUESTION = "question"
    PLAN_APPROVAL = "plan_approval"
    MESSAGE_APPROVAL = "message_approval"
    CONTEXT_PROMPT = "context_prompt"
    UPDATE_PROMPT = "update_prompt"
    SUBAGENT = "subagent"
    SYSTEM = "system"


class InteractionType(Enum):
    QUESTION = "question"
    PLAN_APPROVAL = "plan_approval"
    ACTION_APPROVAL = "action_approval"
    MESSAGE_APPROVAL = "message_approval"
    CONTEXT_SELECTION = "context_selection"
    UPDATE_NOW = "update_now"
    TOGGLE_MINIMIZE = "toggle_minimize"


@dataclass
class PostInfo:
    """추적 중인 게시물 정보"""

    post_id: str
    thread_id: str
    session_id: str
    type: PostType = PostType.CONTENT
    interaction_type: Optional[InteractionType] = None
    tool_use_id: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    metadata: dict[str, Any] = field(default_factory=dict)


class PostTracker:
    """게시물 ID → 스레드/세션 매핑 (세션별 역인덱스 포함)"""

    def __init__(self):
        self._posts: dict[str, PostInfo] = {}
        self._session_index: dict[str, set[str]] = {}

    def register(
        self,
        post_id: str,
        thread_id: str,
        session_id: str,
        *,
        post_type: PostType = PostType.CONTENT,
        interaction_type: Optional[InteractionType] = None,
        tool_use_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> PostInfo:
        """게시물 등록. 이미 있으면 새 정보로 덮어씀 (재활용된 게시물 등)"""
        previous = self._posts.get(post_id)
        if previous and previous.session_id != session_id:
            self._drop_from_index(previous)

        info = PostInfo(
            post_id=post_id,
            thread_id=thread_id,
            session_id=session_id,
            type=post_type,
            interaction_type=interaction_type,
            tool_use_id=tool_use_id,
            metadata=metadata or {},
        )
        self._posts[post_id] = info
        self._session_index.setdefault(session_id, set()).add(post_id)
        logger.debug(f"게시물 등록: {post_id} ({post_type.value}) → {thread_id}")
        return info

    def unregister(self, post_id: str) -> bool:
        info = self._posts.pop(post_id, None)
        if info is None:
            return False
        self._drop_from_index(info)
        return True

    def get(self, post_id: str) -> Optional[PostInfo]:
        return self._posts.get(post_id)

    def get_thread_id(self, post_id: str) -> Optional[str]:
        info = self._posts.get(post_id)
        return info.thread_id if info else None

    def find_session_for_post(self, post_id: str) -> Optional[str]:
        info = self._posts.get(post_id)
        return info.session_id if info else None

    def get_posts_for_session(self, session_id: str) -> list[PostInfo]:
        post_ids = self._session_index.get(session_id, set())
        return [self._posts[pid] for pid in post_ids if pid in self._posts]

    def get_posts_by_type(self, session_id: str, post_type: PostType) -> list[PostInfo]:
        return [p for p in self.get_posts_for_session(session_id) if p.type == post_type]

    def clear_session(self, session_id: str) -> int:
        """세션의 모든 게시물 제거. 제거한 수 반환"""
        post_ids = self._session_index.pop(session_id, set())
        for post_id in post_ids:
            self._posts.pop(post_id, None)
        if post_ids:
            logger.debug(f"세션 게시물 정리: {session_id} ({len(post_ids)}개)")
        return len(post_ids)

    def clear(self) -> None:
        self._posts.clear()
        self._session_index.clear()

    @property
    def size(self) -> int:
        return len(self._posts)

    def has(self, post_id: str) -> bool:
        return post_id in self._posts

    def _drop_from_index(self, info: PostInfo) -> None:
        post_ids = self._session_index.get(info.session_id)
        if not post_ids:
            return
        post_ids.discard(info.post_id)
        if not post_ids:
            del self._session_index[info.session_id]
