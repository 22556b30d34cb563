"""설정 관리

카테고리별로 구분된 설정을 관리합니다.
- 경로 설정: get_*() 메서드 (cwd 기준 계산 필요)
- 그 외 설정: @dataclass 하위 그룹 (모듈 로드 시 평가)
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()


class ConfigurationError(Exception):
    """설정 오류 예외

    필수 환경변수 누락 등 설정 관련 오류 시 발생합니다.
    """

    def __init__(self, missing_vars: List[str]):
        self.missing_vars = missing_vars
        message = f"필수 환경변수가 설정되지 않았습니다: {', '.join(missing_vars)}"
        super().__init__(message)


def _get_path(env_var: str, default_subdir: str) -> str:
    """환경변수가 없으면 현재 경로 하위 폴더 반환"""
    env_value = os.getenv(env_var)
    if env_value:
        return env_value
    return str(Path.cwd() / default_subdir)


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """문자열을 bool로 변환"""
    if value is None:
        return default
    return value.lower() == "true"


@dataclass
class SlackConfig:
    """Slack 연결 및 메시지 크기 설정

    max_post_length는 게시물 하나의 절대 상한,
    hard_threshold는 이어쓰기 대신 새 게시물로 분할을 강제하는 길이입니다.
    """

    bot_token: str | None = os.getenv("SLACK_BOT_TOKEN")
    app_token: str | None = os.getenv("SLACK_APP_TOKEN")
    channel_id: str = os.getenv("SLACK_CHANNEL_ID", "")
    max_post_length: int = int(os.getenv("SLACK_MAX_POST_LENGTH", "12000"))
    hard_threshold: int = int(os.getenv("SLACK_HARD_THRESHOLD", "10000"))


@dataclass
class StreamConfig:
    """스트리밍 렌더링 설정"""

    flush_delay_ms: int = int(os.getenv("STREAM_FLUSH_DELAY_MS", "500"))
    # 도구 결과에 경과 시간을 붙이는 최소 초
    tool_elapsed_min_seconds: int = int(os.getenv("STREAM_TOOL_ELAPSED_MIN_SECONDS", "3"))
    subagent_update_interval: float = float(
        os.getenv("STREAM_SUBAGENT_UPDATE_INTERVAL", "5.0")
    )
    context_prompt_timeout: float = float(
        os.getenv("STREAM_CONTEXT_PROMPT_TIMEOUT", "30.0")
    )
    # 새 본문 게시물 대신 활성 태스크 리스트 게시물을 재활용할지 여부
    repurpose_task_list: bool = _parse_bool(
        os.getenv("STREAM_REPURPOSE_TASK_LIST"), True
    )
    # 재활용할 본문 길이 상한 (0 = 제한 없음)
    repurpose_max_length: int = int(os.getenv("STREAM_REPURPOSE_MAX_LENGTH", "0"))
    detailed_tools: bool = _parse_bool(os.getenv("STREAM_DETAILED_TOOLS"), True)


@dataclass
class EmojiConfig:
    """인터랙티브 게시물 리액션 이모지 (콜론 없이)

    선택지/승인 리액션은 이름이 고정이고, 접기/펼치기 토글만 바꿀 수 있습니다.
    """

    minimize_toggle: str = os.getenv("EMOJI_MINIMIZE_TOGGLE", "arrow_down_small")


class Config:
    """애플리케이션 설정

    설정 접근 방식:
    - 경로 관련: get_*() 메서드 (런타임에 cwd 기준 계산)
    - 그 외: 하위 설정 그룹 (모듈 로드 시 평가)
    """

    debug: bool = _parse_bool(os.getenv("DEBUG"), False)

    slack = SlackConfig()
    stream = StreamConfig()
    emoji = EmojiConfig()

    # ========================================
    # 경로 설정 (런타임에 cwd 기준 계산)
    # ========================================
    @staticmethod
    def get_log_path() -> str:
        """로그 경로"""
        return _get_path("LOG_PATH", "logs")

    # ========================================
    # 설정 검증
    # ========================================
    @classmethod
    def validate(cls) -> None:
        """Slack 어댑터 구동에 필요한 설정 검증

        Raises:
            ConfigurationError: 필수 환경변수가 누락된 경우
        """
        missing = []
        if not cls.slack.bot_token:
            missing.append("SLACK_BOT_TOKEN")
        if not cls.slack.app_token:
            missing.append("SLACK_APP_TOKEN")
        if missing:
            raise ConfigurationError(missing)
