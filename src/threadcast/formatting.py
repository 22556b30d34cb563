"""메시지 포맷팅: 공유 리프 모듈

순수 텍스트 변환 함수를 모아둔 모듈입니다.
operations/, executors/, platform/ 등 여러 패키지에서 공통으로 사용합니다.

이 모듈은 threadcast 내부 의존성이 없는 리프(leaf) 모듈이어야 합니다.
"""

import re


# --- 상수 ---

HORIZONTAL_RULE = "━" * 20
TRUNCATION_INDICATOR = "... (truncated)"

_THINKING_TAG_RE = re.compile(r"<thinking>[\s\S]*?</thinking>")
_FENCED_BLOCK_RE = re.compile(r"```[\s\S]*?```")
_INLINE_CODE_RE = re.compile(r"`[^`\n]+`")
_HEADING_RE = re.compile(r"^#{1,6}\s+(.+)$", re.MULTILINE)
_BOLD_RE = re.compile(r"\*\*([^*]+)\*\*")
_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_HR_RE = re.compile(r"^[-*_]{3,}\s*$", re.MULTILINE)
_TABLE_RE = re.compile(
    r"^\|(.+)\|[ \t]*\n\|[-:\s|]+\|[ \t]*\n((?:\|.+\|[ \t]*\n?)+)",
    re.MULTILINE,
)
_PLACEHOLDER = "\x00CODE_BLOCK_{}\x00"


# --- 함수 ---

def strip_thinking_tags(text: str) -> str:
    """텍스트 안에 섞여 나온 <thinking>...</thinking> 구간 제거"""
    return _THINKING_TAG_RE.sub("", text)


def truncate_at_word(text: str, max_length: int) -> str:
    """단어 경계에서 잘라내고 말줄임표를 붙임

    max_length의 70% 이후에 공백이 있으면 그 위치에서 자르고,
    없으면 max_length에서 자릅니다.
    """
    if len(text) <= max_length:
        return text
    truncated = text[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length * 0.7:
        truncated = truncated[:last_space]
    return truncated + "..."


def truncate_message_safely(
    message: str,
    max_length: int,
    indicator: str = TRUNCATION_INDICATOR,
) -> str:
    """코드 블록을 깨뜨리지 않고 메시지를 잘라냄

    잘린 지점이 열린 코드 펜스 안이면 펜스를 닫은 뒤 표시문을 붙입니다.
    닫는 펜스(4자)와 구분 줄바꿈(2자)만큼 공간을 미리 비워둡니다.
    """
    if len(message) <= max_length:
        return message

    reserved = 4 + 2 + len(indicator)
    truncated = message[:max(max_length - reserved, 0)]

    if truncated.count("```") % 2 == 1:
        truncated += "\n```"

    return truncated + "\n\n" + indicator


def format_duration(ms: float) -> str:
    """밀리초를 "1h 5m" / "2m 3s" / "7s" 형태로 변환 (0인 하위 단위는 생략)"""
    total_seconds = int(ms // 1000)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}h {minutes}m" if minutes else f"{hours}h"
    if minutes > 0:
        return f"{minutes}m {seconds}s" if seconds else f"{minutes}m"
    return f"{seconds}s"


def escape_code_block_content(content: str) -> str:
    """코드 블록 안에 들어갈 텍스트의 ``` 를 무력화"""
    return content.replace("```", "` ``")


def convert_markdown_tables(content: str) -> str:
    """마크다운 표를 `*헤더:* 셀 · *헤더:* 셀` 줄 목록으로 변환"""

    def _replace(match: re.Match) -> str:
        headers = [h.strip() for h in match.group(1).split("|") if h.strip()]
        lines = []
        for row in match.group(2).strip().split("\n"):
            cells = [c.strip() for c in row.split("|") if c.strip() != ""]
            items = []
            for i, cell in enumerate(cells):
                header = headers[i] if i < len(headers) else ""
                items.append(f"*{header}:* {cell}" if header else cell)
            lines.append(" · ".join(items))
        return "\n".join(lines) + "\n"

    return _TABLE_RE.sub(_replace, content)


def convert_markdown_to_slack(content: str) -> str:
    """표준 마크다운을 슬랙 mrkdwn으로 변환

    코드 블록과 인라인 코드는 변환 대상에서 제외합니다.
    """
    preserved: list[str] = []

    def _stash(match: re.Match) -> str:
        preserved.append(match.group(0))
        return _PLACEHOLDER.format(len(preserved) - 1)

    text = _FENCED_BLOCK_RE.sub(_stash, content)
    text = _INLINE_CODE_RE.sub(_stash, text)

    text = convert_markdown_tables(text)
    text = _HEADING_RE.sub(r"*\1*", text)
    text = _BOLD_RE.sub(r"*\1*", text)
    text = _LINK_RE.sub(r"<\2|\1>", text)
    text = _HR_RE.sub(HORIZONTAL_RULE, text)

    for i, original in enumerate(preserved):
        text = text.replace(_PLACEHOLDER.format(i), original, 1)

    return text
