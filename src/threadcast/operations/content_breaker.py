"""본문 분할 지점 탐색

스트리밍 본문을 여러 게시물로 나눌 때 사용하는 순수 함수 모음입니다.
어떤 분할 지점도 열린 코드 펜스 안에 놓이지 않도록 보장합니다.

분할 우선순위:
1. 도구 완료 마커 줄 (  ↳ ✓ / ❌)
2. 마크다운 제목 (## / ###)
3. 코드 펜스 닫힘
4. 빈 줄 (문단 경계)
5. 아무 줄바꿈
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


# --- 상수 ---

SOFT_BREAK_THRESHOLD = 2000
MIN_BREAK_THRESHOLD = 500
MAX_LINES_BEFORE_BREAK = 15
DEFAULT_LOOKAHEAD = 500

_FENCE_RE = re.compile(r"^```(\w*)$", re.MULTILINE)
_FENCE_CLOSE_RE = re.compile(r"^```$", re.MULTILINE)
_TOOL_MARKER_RE = re.compile(r" {2}↳ [✓❌][^\n]*\n")
_TOOL_MARKER_END_RE = re.compile(r" {2}↳ [✓❌][^\n]*$")
_HEADING_RE = re.compile(r"\n(#{2,3} )")


class BreakpointType(Enum):
    """분할 지점 종류"""

    HEADING = "heading"
    CODE_BLOCK_END = "code_block_end"
    PARAGRAPH = "paragraph"
    TOOL_MARKER = "tool_marker"
    NONE = "none"


@dataclass(frozen=True)
class CodeFenceState:
    """특정 위치의 코드 펜스 상태"""

    is_inside: bool
    language: Optional[str] = None
    open_position: Optional[int] = None


@dataclass(frozen=True)
class Breakpoint:
    position: int
    type: BreakpointType


def code_fence_state(text: str, position: int) -> CodeFenceState:
    """text[:position] 구간의 펜스 마커를 세어 position이 펜스 안인지 판단

    마커 수가 홀수면 마지막 마커가 아직 닫히지 않은 여는 펜스입니다.
    """
    markers = list(_FENCE_RE.finditer(text[:position]))
    if len(markers) % 2 == 0:
        return CodeFenceState(is_inside=False)
    last = markers[-1]
    return CodeFenceState(
        is_inside=True,
        language=last.group(1) or None,
        open_position=last.start(),
    )


def _fence_close_positions(text: str, start: int, window: str):
    """window 안의 닫는 펜스 뒤 위치. 실제 줄 시작에서 시작하는 마커만 인정"""
    for match in _FENCE_CLOSE_RE.finditer(window):
        line_start = start + match.start()
        if line_start > 0 and text[line_start - 1] != "\n":
            continue
        yield _after_fence_close(text, start + match.end())


def _after_fence_close(text: str, match_end: int) -> int:
    # 닫는 펜스 뒤의 줄바꿈까지 현재 게시물에 포함
    if match_end < len(text) and text[match_end] == "\n":
        return match_end + 1
    return match_end


def find_breakpoint(
    text: str,
    start: int,
    lookahead: int = DEFAULT_LOOKAHEAD,
) -> Optional[Breakpoint]:
    """start부터 lookahead 범위 안에서 안전한 분할 지점 탐색

    start가 펜스 안이면 그 펜스의 닫힘만 찾고, 못 찾으면 None을 반환합니다.
    이때 호출자는 탐색 범위를 넓히거나 펜스 시작 전에서 나눠야 합니다.
    """
    window = text[start:start + lookahead]

    if code_fence_state(text, start).is_inside:
        for position in _fence_close_positions(text, start, window):
            if not code_fence_state(text, position).is_inside:
                return Breakpoint(position, BreakpointType.CODE_BLOCK_END)
        return None

    candidates = []

    match = _TOOL_MARKER_RE.search(window)
    if match:
        candidates.append((start + match.end(), BreakpointType.TOOL_MARKER))

    match = _HEADING_RE.search(window)
    if match:
        candidates.append((start + match.start(), BreakpointType.HEADING))

    position = next(_fence_close_positions(text, start, window), None)
    if position is not None:
        candidates.append((position, BreakpointType.CODE_BLOCK_END))

    idx = window.find("\n\n")
    if idx >= 0:
        candidates.append((start + idx + 2, BreakpointType.PARAGRAPH))

    idx = window.find("\n")
    if idx >= 0:
        candidates.append((start + idx + 1, BreakpointType.NONE))

    for position, bp_type in candidates:
        if not code_fence_state(text, position).is_inside:
            return Breakpoint(position, bp_type)

    return None


def should_break_early(text: str) -> bool:
    """접힘("더 보기")이 생기기 전에 미리 나눠야 할 만큼 길거나 높은지"""
    if len(text) >= SOFT_BREAK_THRESHOLD:
        return True
    return text.count("\n") >= MAX_LINES_BEFORE_BREAK


def breakpoint_at_end(text: str) -> BreakpointType:
    """텍스트가 이미 어떤 자연스러운 경계로 끝나는지 분류"""
    trimmed = text.rstrip()

    if _TOOL_MARKER_END_RE.search(trimmed):
        return BreakpointType.TOOL_MARKER
    if trimmed.endswith("```"):
        return BreakpointType.CODE_BLOCK_END
    if text.endswith("\n\n"):
        return BreakpointType.PARAGRAPH
    return BreakpointType.NONE


def choose_split_point(content: str, hard_threshold: int) -> Optional[int]:
    """게시물을 나눌 위치 결정. None이면 나누지 않고 현재 게시물을 유지.

    - hard_threshold 초과: 한도의 70% 지점부터 30% 범위를 탐색합니다.
      닫히지 않는 펜스 안이면 펜스가 열리기 직전 줄에서 나눠
      펜스 전체를 다음 게시물로 넘깁니다.
    - 그 외(조기 분할): 소프트 한도 이후의 논리적 경계에서 나눕니다.
    """
    if len(content) > hard_threshold:
        search_start = int(hard_threshold * 0.7)
        found = find_breakpoint(content, search_start, int(hard_threshold * 0.3))
        if found:
            return found.position

        state = code_fence_state(content, search_start)
        if state.is_inside:
            if not state.open_position:
                return None
            before_fence = content.rfind("\n", 0, state.open_position)
            return before_fence if before_fence > 0 else None

        position = content.rfind("\n", 0, hard_threshold + 1)
        if position < hard_threshold * 0.7:
            position = hard_threshold
        return position

    search_start = SOFT_BREAK_THRESHOLD if len(content) >= SOFT_BREAK_THRESHOLD else MIN_BREAK_THRESHOLD
    found = find_breakpoint(content, search_start)
    if found and found.position < len(content):
        return found.position
    return None
