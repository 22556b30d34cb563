"""Slack 이벤트 핸들러 패키지"""

from threadcast.handlers.reaction import register_reaction_handlers


def register_all_handlers(app, dispatcher, loop, bot_user_id: str = ""):
    """모든 핸들러를 앱에 등록"""
    register_reaction_handlers(app, dispatcher, loop, bot_user_id)


__all__ = ["register_all_handlers", "register_reaction_handlers"]
