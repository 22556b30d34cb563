"""로깅 설정 모듈

로깅 레벨 가이드라인
==================

본 프로젝트에서 로깅 레벨을 선택할 때 다음 기준을 따릅니다.

logger.exception()
    - 예외 처리 블록에서 스택 트레이스가 필요한 경우
    - 예상치 못한 오류로 디버깅에 스택 트레이스가 도움이 될 때
    - 예: 오퍼레이션 실행 중 예기치 못한 오류

logger.error()
    - 효과가 유실되는 플랫폼 호출 실패
    - 예: "게시물 생성 실패: {e}", "시스템 메시지 게시 실패: {e}"

logger.warning()
    - 복구 가능한 이상 상황
    - 예: "본문이 너무 길어 잘라냅니다", "알 수 없는 오퍼레이션 타입"

logger.info()
    - 사용자 결정 등 주요 상태 변경
    - 예: "plan 승인", "메시지 승인 결정"

logger.debug()
    - 예상된 일시적 실패 (사라진 게시물 업데이트 등)
    - 타이머, 락 획득/해제 등 상세 흐름
"""

import logging
from datetime import datetime
from pathlib import Path

from threadcast.config import Config


def setup_logging() -> logging.Logger:
    """로깅 설정 및 로거 반환"""
    log_dir = Path(Config.get_log_path())
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / f"threadcast_{datetime.now().strftime('%Y%m%d')}.log"

    logging.basicConfig(
        level=logging.DEBUG if Config.debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.FileHandler(log_file, encoding="utf-8"),
            logging.StreamHandler()
        ]
    )

    # Slack SDK HTTP 로그는 경고 이상만
    logging.getLogger("slack_sdk").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    return logging.getLogger(__name__)
