"""대화별 이벤트 디스패처

어시스턴트 이벤트를 받는 쪽은 플랫폼 호출을 기다리지 않습니다.
submit()은 이벤트를 대화별 asyncio.Queue에 넣고 바로 돌아오며,
대화마다 하나씩 있는 작업 태스크가 큐에서 꺼내 MessageManager로 넘깁니다.
같은 대화의 이벤트는 들어온 순서대로 처리되고, 다른 대화끼리는 서로 기다리지 않습니다.

리액션은 공유 PostTracker에서 게시물의 스레드를 찾아 해당 대화의 MessageManager로 보냅니다.

Slack Bolt 핸들러처럼 동기 스레드에서 호출하는 경우를 위해
데몬 스레드에서 도는 공유 이벤트 루프(get_shared_loop)를 제공합니다.
"""

import asyncio
import logging
import threading
from typing import Any, Callable, Optional

from threadcast.message_manager import MessageManager
from threadcast.operations.post_tracker import PostTracker
from threadcast.platform.types import PlatformClient

logger = logging.getLogger(__name__)

ManagerFactory = Callable[[str, str], MessageManager]

_shared_loop: Optional[asyncio.AbstractEventLoop] = None
_loop_thread: Optional[threading.Thread] = None
_loop_lock = threading.Lock()


def get_shared_loop() -> asyncio.AbstractEventLoop:
    """공유 이벤트 루프가 없거나 멈춰 있으면 데몬 스레드에서 새로 생성"""
    global _shared_loop, _loop_thread
    with _loop_lock:
        if _shared_loop is not None and _shared_loop.is_running():
            return _shared_loop

        loop = asyncio.new_event_loop()
        thread = threading.Thread(
            target=loop.run_forever,
            daemon=True,
            name="threadcast-loop",
        )
        thread.start()

        _shared_loop = loop
        _loop_thread = thread
        logger.info("공유 이벤트 루프 생성됨")
        return loop


def reset_shared_loop() -> None:
    """공유 루프 정지 (테스트용)"""
    global _shared_loop, _loop_thread
    with _loop_lock:
        if _shared_loop is not None and _shared_loop.is_running():
            _shared_loop.call_soon_threadsafe(_shared_loop.stop)
            if _loop_thread is not None:
                _loop_thread.join(timeout=2)
        _shared_loop = None
        _loop_thread = None


class ConversationDispatcher:
    """대화(스레드)별 MessageManager와 이벤트 큐 관리"""

    def __init__(
        self,
        platform: PlatformClient,
        post_tracker: Optional[PostTracker] = None,
        manager_factory: Optional[ManagerFactory] = None,
    ):
        self.platform = platform
        self.post_tracker = post_tracker or PostTracker()
        self._manager_factory = manager_factory or self._default_factory
        self._managers: dict[str, MessageManager] = {}
        self._queues: dict[str, asyncio.Queue] = {}
        self._workers: dict[str, asyncio.Task] = {}

    def _default_factory(self, thread_id: str, session_id: str) -> MessageManager:
        return MessageManager(self.platform, self.post_tracker, session_id, thread_id)

    def get_manager(self, thread_id: str, session_id: Optional[str] = None) -> MessageManager:
        """대화의 MessageManager. 없으면 생성 (세션 ID 기본값은 스레드 ID)"""
        manager = self._managers.get(thread_id)
        if manager is None:
            manager = self._manager_factory(thread_id, session_id or thread_id)
            self._managers[thread_id] = manager
            logger.debug(f"MessageManager 생성: thread={thread_id}")
        return manager

    def has_conversation(self, thread_id: str) -> bool:
        return thread_id in self._managers

    @property
    def conversation_count(self) -> int:
        return len(self._managers)

    def submit(self, thread_id: str, event: dict[str, Any], session_id: Optional[str] = None) -> None:
        """이벤트를 대화 큐에 넣고 즉시 반환 (이벤트 루프 안에서 호출)"""
        self.get_manager(thread_id, session_id)
        queue = self._queues.get(thread_id)
        if queue is None:
            queue = asyncio.Queue()
            self._queues[thread_id] = queue
        queue.put_nowait(event)

        worker = self._workers.get(thread_id)
        if worker is None or worker.done():
            self._workers[thread_id] = asyncio.create_task(self._worker(thread_id, queue))

    async def _worker(self, thread_id: str, queue: asyncio.Queue) -> None:
        manager = self._managers[thread_id]
        while True:
            event = await queue.get()
            try:
                await manager.handle_event(event)
            except Exception:
                logger.exception(f"이벤트 처리 실패: thread={thread_id}, type={event.get('type')}")
            finally:
                queue.task_done()

    async def drain(self, thread_id: Optional[str] = None) -> None:
        """큐에 쌓인 이벤트가 모두 처리될 때까지 대기"""
        if thread_id is None:
            queues = list(self._queues.values())
        else:
            queues = [self._queues[thread_id]] if thread_id in self._queues else []
        for queue in queues:
            await queue.join()

    async def handle_reaction(self, post_id: str, emoji: str, user: str, action: str) -> bool:
        """게시물이 속한 대화로 리액션 전달. 처리한 executor가 있으면 True"""
        thread_id = self.post_tracker.get_thread_id(post_id)
        if thread_id is None:
            return False
        manager = self._managers.get(thread_id)
        if manager is None:
            logger.debug(f"대화가 이미 닫힌 게시물의 리액션: {post_id}")
            return False
        return await manager.handle_reaction(post_id, emoji, user, action)

    async def close_conversation(self, thread_id: str) -> None:
        """남은 이벤트를 처리하고 본문을 내보낸 뒤 대화 자원 정리"""
        manager = self._managers.get(thread_id)
        if manager is None:
            return
        await self.drain(thread_id)

        worker = self._workers.pop(thread_id, None)
        if worker is not None:
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass
        self._queues.pop(thread_id, None)

        await manager.flush()
        manager.dispose()
        del self._managers[thread_id]
        removed = self.post_tracker.clear_session(manager.session_id)
        logger.info(f"대화 종료: thread={thread_id}, 추적 게시물 {removed}개 정리")

    async def shutdown(self) -> None:
        for thread_id in list(self._managers):
            await self.close_conversation(thread_id)
