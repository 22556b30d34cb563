"""Slack 리액션 이벤트 핸들러

reaction_added / reaction_removed를 ConversationDispatcher로 넘깁니다.
Bolt 핸들러는 동기 스레드에서 실행되므로 코루틴은 공유 이벤트 루프에 제출만 하고
결과를 기다리지 않습니다.
"""

import asyncio
import logging
from concurrent.futures import Future

from threadcast.dispatcher import ConversationDispatcher

logger = logging.getLogger(__name__)


def parse_reaction_event(event: dict) -> tuple[str, str, str] | None:
    """(게시물 ID, 이모지, 사용자) 추출. 메시지 대상 리액션이 아니면 None"""
    item = event.get("item", {})
    if item.get("type") != "message":
        return None

    ts = item.get("ts", "")
    emoji = event.get("reaction", "")
    user = event.get("user", "")
    if not ts or not emoji:
        return None
    return ts, emoji, user


def dispatch_reaction(
    event: dict,
    action: str,
    dispatcher: ConversationDispatcher,
    loop: asyncio.AbstractEventLoop,
    bot_user_id: str = "",
) -> Future | None:
    parsed = parse_reaction_event(event)
    if parsed is None:
        return None
    post_id, emoji, user = parsed

    # 봇이 직접 단 선택지 리액션은 사용자 응답이 아님
    if bot_user_id and user == bot_user_id:
        return None

    future = asyncio.run_coroutine_threadsafe(
        dispatcher.handle_reaction(post_id, emoji, user, action), loop
    )
    future.add_done_callback(_log_failure)
    return future


def _log_failure(future: Future) -> None:
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.error(f"리액션 처리 실패: {error}", exc_info=error)


def register_reaction_handlers(app, dispatcher: ConversationDispatcher, loop, bot_user_id: str = ""):
    """리액션 핸들러를 앱에 등록

    Args:
        app: Slack Bolt App 인스턴스
        dispatcher: 대화별 이벤트 디스패처
        loop: 디스패처가 도는 이벤트 루프 (get_shared_loop())
        bot_user_id: 봇 자신의 사용자 ID. 이 사용자의 리액션은 무시
    """

    @app.event("reaction_added")
    def handle_reaction_added(event):
        """리액션 추가: 선택/승인/접기"""
        dispatch_reaction(event, "added", dispatcher, loop, bot_user_id)

    @app.event("reaction_removed")
    def handle_reaction_removed(event):
        """리액션 제거: 펼치기"""
        dispatch_reaction(event, "removed", dispatcher, loop, bot_user_id)
