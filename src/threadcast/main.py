"""threadcast 슬랙 진입점

앱 초기화와 리액션 라우팅만 담당합니다.
어시스턴트 이벤트는 어시스턴트 프로세스를 관리하는 쪽에서
공유 루프 위의 dispatcher.submit()으로 넣습니다.
"""

import asyncio
import logging

from slack_bolt import App
from slack_bolt.adapter.socket_mode import SocketModeHandler

from threadcast.config import Config
from threadcast.dispatcher import ConversationDispatcher, get_shared_loop
from threadcast.handlers import register_all_handlers
from threadcast.logging_config import setup_logging
from threadcast.platform.slack_client import SlackPlatformClient

logger = logging.getLogger(__name__)


def init_bot_user_id(app: App) -> str:
    """봇 자신의 사용자 ID 조회. 실패하면 빈 문자열"""
    try:
        auth_result = app.client.auth_test()
        return auth_result["user_id"]
    except Exception as e:
        logger.error(f"봇 사용자 ID 조회 실패: {e}")
        return ""


def create_app(
    loop: asyncio.AbstractEventLoop | None = None,
) -> tuple[App, ConversationDispatcher]:
    """슬랙 앱과 디스패처를 만들고 리액션 핸들러를 등록"""
    Config.validate()

    app = App(token=Config.slack.bot_token, logger=logger)
    bot_user_id = init_bot_user_id(app)
    platform = SlackPlatformClient(app.client, Config.slack.channel_id, bot_user_id=bot_user_id)
    dispatcher = ConversationDispatcher(platform)

    register_all_handlers(app, dispatcher, loop or get_shared_loop(), bot_user_id)
    logger.info(f"BOT_USER_ID: {bot_user_id or '(unknown)'}")
    return app, dispatcher


def main():
    """봇 메인 진입점"""
    setup_logging()
    logger.info("threadcast를 시작합니다...")
    logger.info(f"LOG_PATH: {Config.get_log_path()}")
    logger.info(f"DEBUG: {Config.debug}")

    app, _ = create_app()
    handler = SocketModeHandler(app, Config.slack.app_token)
    handler.start()


if __name__ == "__main__":
    main()
