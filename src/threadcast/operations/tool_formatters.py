"""도구 호출 표시 포맷터

어시스턴트의 tool_use 블록을 채팅 게시물용 한 줄(또는 미리보기 포함 블록)로 렌더링합니다.
도구 이름(정확히 일치 또는 glob 패턴)별로 포맷터를 등록하며,
등록되지 않은 도구는 일반 표시(● *이름*)나 MCP 표시(🔌 *도구* _(서버)_)로 대체합니다.
"""

import difflib
import fnmatch
import os
from dataclasses import dataclass
from typing import Any, Callable, Optional

from threadcast.formatting import escape_code_block_content
from threadcast.platform.types import PlatformFormatter


@dataclass(frozen=True)
class WorktreeInfo:
    """작업 트리 경로 표시용 정보"""

    path: str
    branch: str


@dataclass
class ToolFormatOptions:
    formatter: PlatformFormatter
    detailed: bool = False
    max_command_length: int = 50
    max_preview_lines: int = 20
    worktree_info: Optional[WorktreeInfo] = None


@dataclass
class ToolFormatResult:
    """포맷 결과

    display가 None이면 본문에 표시하지 않습니다 (전용 오퍼레이션으로 처리되는 도구).
    """

    display: Optional[str]
    permission_text: Optional[str] = None
    is_destructive: bool = False
    hidden: bool = False


ToolFormatFunc = Callable[[str, dict[str, Any], ToolFormatOptions], Optional[ToolFormatResult]]


# --- 유틸 ---

def shorten_path(
    path: str,
    home_dir: Optional[str] = None,
    worktree_info: Optional[WorktreeInfo] = None,
) -> str:
    """작업 트리 경로는 [branch]/상대경로로, 홈 디렉토리는 ~로 축약"""
    if not path:
        return ""

    if worktree_info and worktree_info.path and worktree_info.branch:
        root = worktree_info.path if worktree_info.path.endswith("/") else worktree_info.path + "/"
        if path.startswith(root):
            return f"[{worktree_info.branch}]/{path[len(root):]}"
        if path == worktree_info.path:
            return f"[{worktree_info.branch}]/"

    home = home_dir if home_dir is not None else os.environ.get("HOME", "")
    if home and path.startswith(home):
        return "~" + path[len(home):]
    return path


def parse_mcp_tool_name(tool_name: str) -> Optional[tuple[str, str]]:
    """mcp__server__tool 형식이면 (server, tool) 반환"""
    if not tool_name.startswith("mcp__"):
        return None
    parts = tool_name.split("__")
    if len(parts) < 3:
        return None
    return parts[1], "__".join(parts[2:])


def _same(display: str, **kwargs) -> ToolFormatResult:
    return ToolFormatResult(display=display, permission_text=display, **kwargs)


# --- 레지스트리 ---

class ToolFormatterRegistry:
    """도구 이름 → 포맷 함수 레지스트리

    정확히 일치하는 이름을 먼저 찾고, 없으면 등록 순서대로 glob 패턴을 검사합니다.
    """

    def __init__(self):
        self._exact: dict[str, ToolFormatFunc] = {}
        self._wildcards: list[tuple[str, ToolFormatFunc]] = []

    def register(self, tool_names: list[str], func: ToolFormatFunc) -> None:
        for name in tool_names:
            if "*" in name or "?" in name:
                self._wildcards.append((name, func))
            else:
                self._exact[name] = func

    def _find(self, tool_name: str) -> Optional[ToolFormatFunc]:
        func = self._exact.get(tool_name)
        if func:
            return func
        for pattern, func in self._wildcards:
            if fnmatch.fnmatchcase(tool_name, pattern):
                return func
        return None

    def has_formatter(self, tool_name: str) -> bool:
        return self._find(tool_name) is not None

    def format(
        self, tool_name: str, tool_input: dict[str, Any], options: ToolFormatOptions
    ) -> ToolFormatResult:
        func = self._find(tool_name)
        if func:
            result = func(tool_name, tool_input or {}, options)
            if result:
                return result
        return self._format_generic(tool_name, options)

    def _format_generic(self, tool_name: str, options: ToolFormatOptions) -> ToolFormatResult:
        fmt = options.formatter
        mcp = parse_mcp_tool_name(tool_name)
        if mcp:
            server, tool = mcp
            return _same(f"🔌 {fmt.format_bold(tool)} {fmt.format_italic(f'({server})')}")
        return _same(f"● {fmt.format_bold(tool_name)}")

    def clear(self) -> None:
        self._exact.clear()
        self._wildcards.clear()


# --- 파일 도구 ---

def _diff_lines(old: str, new: str) -> list[tuple[str, str]]:
    """줄 단위 diff. (접두사, 줄) 목록"""
    old_lines = old.split("\n") if old else []
    new_lines = new.split("\n") if new else []
    result = []
    matcher = difflib.SequenceMatcher(a=old_lines, b=new_lines, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            result.extend(("  ", line) for line in old_lines[i1:i2])
            continue
        if tag in ("replace", "delete"):
            result.extend(("- ", line) for line in old_lines[i1:i2])
        if tag in ("replace", "insert"):
            result.extend(("+ ", line) for line in new_lines[j1:j2])
    return result


def format_file_tool(
    tool_name: str, tool_input: dict[str, Any], options: ToolFormatOptions
) -> Optional[ToolFormatResult]:
    fmt = options.formatter

    def short(path) -> str:
        return shorten_path(path or "", worktree_info=options.worktree_info)

    if tool_name == "Read":
        return _same(f"📄 {fmt.format_bold('Read')} {fmt.format_code(short(tool_input.get('file_path')))}")

    if tool_name == "Edit":
        path = short(tool_input.get("file_path"))
        header = f"✏️ {fmt.format_bold('Edit')} {fmt.format_code(path)}"
        old = tool_input.get("old_string") or ""
        new = tool_input.get("new_string") or ""
        if not (options.detailed and (old or new)):
            return _same(header, is_destructive=True)

        changes = _diff_lines(old, new)
        max_lines = options.max_preview_lines
        body = "\n".join(
            f"{prefix}{escape_code_block_content(line)}" for prefix, line in changes[:max_lines]
        )
        if len(changes) > max_lines:
            body += f"\n... (+{len(changes) - max_lines} more lines)"
        return ToolFormatResult(
            display=f"{header}\n{fmt.format_code_block(body, 'diff')}",
            permission_text=header,
            is_destructive=True,
        )

    if tool_name == "Write":
        path = short(tool_input.get("file_path"))
        header = f"📝 {fmt.format_bold('Write')} {fmt.format_code(path)}"
        content = tool_input.get("content") or ""
        if not (options.detailed and content):
            return _same(header, is_destructive=True)

        lines = content.split("\n")
        preview_max = 6
        preview = "\n".join(escape_code_block_content(line) for line in lines[:preview_max])
        if len(lines) > preview_max:
            preview += f"\n... ({len(lines) - preview_max} more lines)"
        return ToolFormatResult(
            display=(
                f"{header} {fmt.format_italic(f'({len(lines)} lines)')}\n"
                f"{fmt.format_code_block(preview)}"
            ),
            permission_text=header,
            is_destructive=True,
        )

    if tool_name == "Glob":
        return _same(f"🔍 {fmt.format_bold('Glob')} {fmt.format_code(tool_input.get('pattern') or '')}")

    if tool_name == "Grep":
        return _same(f"🔎 {fmt.format_bold('Grep')} {fmt.format_code(tool_input.get('pattern') or '')}")

    return None


def format_notebook_tool(
    tool_name: str, tool_input: dict[str, Any], options: ToolFormatOptions
) -> Optional[ToolFormatResult]:
    fmt = options.formatter
    path = shorten_path(tool_input.get("notebook_path") or "", worktree_info=options.worktree_info)
    cell_id = tool_input.get("cell_id") or ""
    edit_mode = tool_input.get("edit_mode") or "replace"
    cell_type = tool_input.get("cell_type") or ""

    details = []
    if cell_id:
        details.append(f"cell: {cell_id}")
    if edit_mode != "replace":
        details.append(edit_mode)
    if cell_type:
        details.append(cell_type)
    detail_str = f" ({', '.join(details)})" if details else ""

    icon = {"insert": "➕", "delete": "🗑️"}.get(edit_mode, "📓")
    header = f"{icon} {fmt.format_bold('NotebookEdit')} {fmt.format_code(path)}"
    return ToolFormatResult(
        display=header + detail_str,
        permission_text=header,
        is_destructive=edit_mode == "delete",
    )


# --- 셸 도구 ---

def format_bash_tool(
    tool_name: str, tool_input: dict[str, Any], options: ToolFormatOptions
) -> Optional[ToolFormatResult]:
    fmt = options.formatter
    cmd = tool_input.get("command") or ""
    worktree = options.worktree_info
    if worktree and worktree.path:
        cmd = cmd.replace(worktree.path, f"[{worktree.branch}]")

    limit = options.max_command_length
    shown = cmd[:limit] + ("..." if len(cmd) > limit else "")
    permission_cmd = cmd[:100] + ("..." if len(cmd) >= 100 else "")
    return ToolFormatResult(
        display=f"💻 {fmt.format_bold('Bash')} {fmt.format_code(shown)}",
        permission_text=f"💻 {fmt.format_bold('Bash')} {fmt.format_code(permission_cmd)}",
        is_destructive=True,
    )


def format_shell_tool(
    tool_name: str, tool_input: dict[str, Any], options: ToolFormatOptions
) -> Optional[ToolFormatResult]:
    fmt = options.formatter

    if tool_name == "TaskOutput":
        task_id = tool_input.get("task_id") or "unknown"
        details = ""
        if tool_input.get("block") is False:
            details = " (non-blocking)"
        elif tool_input.get("timeout"):
            details = f" (timeout: {round(tool_input['timeout'] / 1000)}s)"
        header = f"📋 {fmt.format_bold('TaskOutput')} {fmt.format_code(task_id)}"
        return ToolFormatResult(display=header + details, permission_text=header)

    if tool_name == "BashOutput":
        bash_id = tool_input.get("bash_id") or "unknown"
        details = ""
        if tool_input.get("block") is False:
            details = " (non-blocking)"
        elif tool_input.get("wait_up_to"):
            details = f" (wait: {tool_input['wait_up_to']}s)"
        header = f"💻 {fmt.format_bold('BashOutput')} {fmt.format_code(bash_id)}"
        return ToolFormatResult(display=header + details, permission_text=header)

    if tool_name == "KillShell":
        shell_id = tool_input.get("shell_id") or "unknown"
        return _same(
            f"🛑 {fmt.format_bold('KillShell')} {fmt.format_code(shell_id)}",
            is_destructive=True,
        )

    return None


# --- 웹 도구 ---

def format_web_tool(
    tool_name: str, tool_input: dict[str, Any], options: ToolFormatOptions
) -> Optional[ToolFormatResult]:
    fmt = options.formatter
    if tool_name == "WebFetch":
        url = (tool_input.get("url") or "")[:40]
        return _same(f"🌐 {fmt.format_bold('Fetching')} {fmt.format_code(url)}")
    if tool_name == "WebSearch":
        query = tool_input.get("query") or ""
        return _same(f"🔍 {fmt.format_bold('Searching')} {fmt.format_code(query)}")
    return None


# --- 전용 처리 도구 ---

HIDDEN_TOOLS = ("TodoWrite", "Task", "ExitPlanMode", "AskUserQuestion")


def format_task_tool(
    tool_name: str, tool_input: dict[str, Any], options: ToolFormatOptions
) -> Optional[ToolFormatResult]:
    # 태스크 리스트, 서브에이전트, 승인, 질문은 전용 오퍼레이션으로 표시
    if tool_name in HIDDEN_TOOLS:
        return ToolFormatResult(display=None, hidden=True)
    if tool_name == "EnterPlanMode":
        return _same(f"📋 {options.formatter.format_bold('Planning...')}")
    return None


def create_default_registry() -> ToolFormatterRegistry:
    """내장 포맷터를 모두 등록한 레지스트리 생성"""
    registry = ToolFormatterRegistry()
    registry.register(["Read", "Write", "Edit", "Glob", "Grep"], format_file_tool)
    registry.register(["NotebookEdit"], format_notebook_tool)
    registry.register(["Bash"], format_bash_tool)
    registry.register(["TaskOutput", "BashOutput", "KillShell"], format_shell_tool)
    registry.register(["WebFetch", "WebSearch"], format_web_tool)
    registry.register([*HIDDEN_TOOLS, "EnterPlanMode"], format_task_tool)
    return registry


default_registry = create_default_registry()


def format_tool_use(
    tool_name: str,
    tool_input: dict[str, Any],
    formatter: PlatformFormatter,
    *,
    detailed: bool = False,
    worktree_info: Optional[WorktreeInfo] = None,
    registry: Optional[ToolFormatterRegistry] = None,
) -> Optional[str]:
    """본문 표시 문자열. 숨김 도구는 None"""
    result = (registry or default_registry).format(
        tool_name,
        tool_input,
        ToolFormatOptions(formatter=formatter, detailed=detailed, worktree_info=worktree_info),
    )
    return result.display or None


def format_tool_for_permission(
    tool_name: str,
    tool_input: dict[str, Any],
    formatter: PlatformFormatter,
    *,
    worktree_info: Optional[WorktreeInfo] = None,
    registry: Optional[ToolFormatterRegistry] = None,
) -> str:
    """승인 요청용 짧은 표시 (미리보기 없음)"""
    result = (registry or default_registry).format(
        tool_name,
        tool_input,
        ToolFormatOptions(formatter=formatter, worktree_info=worktree_info),
    )
    return result.permission_text or tool_name
