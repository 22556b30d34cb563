"""채팅 플랫폼 추상화"""

from threadcast.platform.types import (
    MessageLimits,
    PlatformClient,
    PlatformFormatter,
    PlatformPost,
)
from threadcast.platform.slack_formatter import SlackFormatter

__all__ = [
    "MessageLimits",
    "PlatformClient",
    "PlatformFormatter",
    "PlatformPost",
    "SlackFormatter",
]
