"""리액션 이모지 집합

플랫폼 리액션 이름(콜론 없이)을 의미별로 묶습니다.
같은 의미의 이모지가 여러 이름을 갖는 경우 모두 허용합니다.
"""

APPROVAL_EMOJIS = ("+1", "thumbsup")
DENIAL_EMOJIS = ("-1", "thumbsdown")
ALLOW_ALL_EMOJIS = ("white_check_mark", "heavy_check_mark")
NUMBER_EMOJIS = ("one", "two", "three", "four")
MINIMIZE_TOGGLE_EMOJIS = ("arrow_down_small", "small_red_triangle_down")

# 선택지 번호를 게시물 본문에 표시할 때 사용
NUMBER_DISPLAY = ("1️⃣", "2️⃣", "3️⃣", "4️⃣")

_UNICODE_NUMBER_INDEX = {emoji: i for i, emoji in enumerate(NUMBER_DISPLAY)}


def is_approval_emoji(emoji: str) -> bool:
    return emoji in APPROVAL_EMOJIS


def is_denial_emoji(emoji: str) -> bool:
    return emoji in DENIAL_EMOJIS


def is_allow_all_emoji(emoji: str) -> bool:
    return emoji in ALLOW_ALL_EMOJIS


def is_minimize_toggle_emoji(emoji: str) -> bool:
    return emoji in MINIMIZE_TOGGLE_EMOJIS


def get_number_emoji_index(emoji: str) -> int:
    """숫자 이모지의 0부터 시작하는 인덱스. 숫자 이모지가 아니면 -1"""
    if emoji in NUMBER_EMOJIS:
        return NUMBER_EMOJIS.index(emoji)
    return _UNICODE_NUMBER_INDEX.get(emoji, -1)
