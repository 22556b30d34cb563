"""슬랙 mrkdwn 포맷터"""

from typing import Optional

from threadcast.formatting import HORIZONTAL_RULE, convert_markdown_to_slack


class SlackFormatter:
    """PlatformFormatter의 슬랙 구현"""

    def format_bold(self, text: str) -> str:
        return f"*{text}*"

    def format_italic(self, text: str) -> str:
        return f"_{text}_"

    def format_code(self, text: str) -> str:
        return f"`{text}`"

    def format_code_block(self, code: str, language: Optional[str] = None) -> str:
        # 슬랙은 언어 힌트를 렌더링하지 않으므로 생략
        return f"```\n{code}\n```"

    def format_user_mention(self, username: str, user_id: Optional[str] = None) -> str:
        if user_id:
            return f"<@{user_id}>"
        return f"@{username}"

    def format_link(self, text: str, url: str) -> str:
        return f"<{url}|{text}>"

    def format_blockquote(self, text: str) -> str:
        return "\n".join(f"> {line}" for line in text.split("\n"))

    def format_horizontal_rule(self) -> str:
        return HORIZONTAL_RULE

    def format_strikethrough(self, text: str) -> str:
        """취소선

        본문의 ~ 뒤에 zero-width space를 넣어 슬랙이 이를 닫는 구분자로
        해석하지 않게 합니다 (예: ~/.config 경로).
        """
        escaped = text.replace("~", "~\u200b")
        return f"~{escaped}~"

    def format_heading(self, text: str, level: int) -> str:
        return f"*{text}*"

    def escape_text(self, text: str) -> str:
        return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")

    def format_markdown(self, content: str) -> str:
        return convert_markdown_to_slack(content)
