"""어시스턴트 이벤트 → 렌더링 오퍼레이션 변환

transform_event()는 이벤트 하나를 받아 0개 이상의 오퍼레이션을 순서대로 반환합니다.
부수 효과는 TransformContext의 도구 시작 시각 테이블 갱신뿐입니다.

이벤트는 어시스턴트 프로세스가 내보내는 JSON 레코드(dict)이며 type 필드로 구분합니다.
알 수 없는 type은 오퍼레이션을 만들지 않습니다.
"""

import json
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from threadcast.formatting import strip_thinking_tags, truncate_at_word
from threadcast.operations.tool_formatters import (
    ToolFormatOptions,
    ToolFormatterRegistry,
    WorktreeInfo,
    default_registry,
)
from threadcast.operations.types import (
    AppendContentOp,
    ApprovalKind,
    ApprovalOp,
    FlushOp,
    FlushReason,
    MessageOperation,
    Question,
    QuestionOp,
    QuestionOption,
    StatusUpdateOp,
    SubagentAction,
    SubagentOp,
    TaskItem,
    TaskListAction,
    TaskListOp,
    TaskStatus,
    parse_task_status,
)
from threadcast.platform.types import PlatformFormatter

THINKING_PREVIEW_LENGTH = 200
SERVER_TOOL_INPUT_PREVIEW = 50


@dataclass
class TransformContext:
    """변환에 필요한 대화별 컨텍스트

    tool_start_times: 도구 ID → 시작 시각(time.monotonic). 결과 이벤트에서 제거됩니다.
    subagent_tool_ids: 아직 결과가 오지 않은 서브에이전트(Task) 도구 ID
    """

    session_id: str
    formatter: PlatformFormatter
    worktree_info: Optional[WorktreeInfo] = None
    detailed: bool = True
    elapsed_min_seconds: int = 3
    registry: ToolFormatterRegistry = field(default_factory=lambda: default_registry)
    tool_start_times: dict[str, float] = field(default_factory=dict)
    subagent_tool_ids: set[str] = field(default_factory=set)


def transform_event(event: dict[str, Any], ctx: TransformContext) -> list[MessageOperation]:
    """이벤트 하나를 오퍼레이션 목록으로 변환"""
    event_type = event.get("type")

    if event_type == "assistant":
        return _transform_assistant(event, ctx)
    if event_type == "tool_use":
        return _transform_tool_use(event, ctx)
    if event_type == "tool_result":
        return _transform_tool_result(event, ctx)
    if event_type == "result":
        return _transform_result(event, ctx)

    # system(컴팩션 등)과 user(도구 결과 에코)는 이 파이프라인 밖에서 처리
    return []


# --- assistant ---

def _transform_assistant(event: dict, ctx: TransformContext) -> list[MessageOperation]:
    message = event.get("message") or {}
    operations: list[MessageOperation] = []
    parts: list[str] = []

    def push_parts() -> None:
        if parts:
            operations.append(AppendContentOp(ctx.session_id, "\n\n".join(parts)))
            parts.clear()

    for block in message.get("content") or []:
        block_type = block.get("type")

        if block_type == "text" and block.get("text"):
            text = strip_thinking_tags(block["text"]).strip()
            if text:
                parts.append(text)

        elif block_type == "tool_use" and block.get("name"):
            tool_id = block.get("id") or ""
            if tool_id:
                ctx.tool_start_times.setdefault(tool_id, time.monotonic())
            special = _special_tool_ops(block["name"], tool_id, block.get("input") or {}, ctx)
            if special is not None:
                # 전용 오퍼레이션보다 앞선 본문이 먼저 렌더링되도록
                push_parts()
                operations.extend(special)
                continue
            display = _format_tool(block["name"], block.get("input") or {}, ctx)
            if display:
                parts.append(display)

        elif block_type == "thinking" and block.get("thinking"):
            preview = truncate_at_word(block["thinking"], THINKING_PREVIEW_LENGTH)
            fmt = ctx.formatter
            parts.append(fmt.format_blockquote(f"💭 {fmt.format_italic(preview)}"))

        elif block_type == "server_tool_use" and block.get("name"):
            tool_input = block.get("input")
            input_str = json.dumps(tool_input, ensure_ascii=False)[:SERVER_TOOL_INPUT_PREVIEW] if tool_input else ""
            parts.append(f"🌐 {ctx.formatter.format_bold(block['name'])} {input_str}")

    push_parts()
    return operations


# --- tool_use ---

def _transform_tool_use(event: dict, ctx: TransformContext) -> list[MessageOperation]:
    tool = event.get("tool_use") or {}
    name = tool.get("name")
    if not name:
        return []

    tool_id = tool.get("id") or ""
    if tool_id:
        ctx.tool_start_times[tool_id] = time.monotonic()

    tool_input = tool.get("input") or {}
    special = _special_tool_ops(name, tool_id, tool_input, ctx)
    if special is not None:
        return special

    display = _format_tool(name, tool_input, ctx)
    if display:
        return [AppendContentOp(ctx.session_id, display, is_tool_output=True)]
    return []


def _format_tool(name: str, tool_input: dict, ctx: TransformContext) -> Optional[str]:
    result = ctx.registry.format(
        name,
        tool_input,
        ToolFormatOptions(
            formatter=ctx.formatter,
            detailed=ctx.detailed,
            worktree_info=ctx.worktree_info,
        ),
    )
    if result.hidden or not result.display:
        return None
    return result.display


# --- tool_result ---

def _transform_tool_result(event: dict, ctx: TransformContext) -> list[MessageOperation]:
    result = event.get("tool_result")
    if not result:
        return []

    tool_id = result.get("tool_use_id") or ""
    elapsed = ""
    started = ctx.tool_start_times.pop(tool_id, None) if tool_id else None
    if started is not None:
        secs = round(time.monotonic() - started)
        if secs >= ctx.elapsed_min_seconds:
            elapsed = f" ({secs}s)"

    marker = "❌ Error" if result.get("is_error") else "✓"
    operations: list[MessageOperation] = [
        AppendContentOp(ctx.session_id, f"  ↳ {marker}{elapsed}", is_tool_output=True),
        # 도구 완료는 자연스러운 분할 지점
        FlushOp(ctx.session_id, FlushReason.TOOL_COMPLETE),
    ]

    if tool_id in ctx.subagent_tool_ids:
        ctx.subagent_tool_ids.discard(tool_id)
        operations.append(SubagentOp(
            ctx.session_id,
            tool_id,
            SubagentAction.COMPLETE,
            result=_result_text(result.get("content")),
        ))

    return operations


def _result_text(content: Any) -> Optional[str]:
    """tool_result content(문자열 또는 블록 목록)를 텍스트로"""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = [b.get("text", "") for b in content if isinstance(b, dict) and b.get("type") == "text"]
        return "\n".join(texts) if texts else None
    return None


# --- result ---

def _transform_result(event: dict, ctx: TransformContext) -> list[MessageOperation]:
    """턴 종료: 최종 flush와 상태 갱신

    상태 갱신은 사용량 정보가 없어도 항상 발행합니다.
    턴 종료 정리(남은 태스크 리스트 정리 등)가 이 오퍼레이션을 기다립니다.
    """
    payload = event.get("result")
    if not isinstance(payload, dict):
        payload = event

    cost = payload.get("cost_usd")
    if cost is None:
        cost = payload.get("total_cost_usd")

    context_tokens = None
    usage = payload.get("usage")
    if isinstance(usage, dict):
        context_tokens = (
            (usage.get("input_tokens") or 0)
            + (usage.get("cache_creation_input_tokens") or 0)
            + (usage.get("cache_read_input_tokens") or 0)
        )

    return [
        FlushOp(ctx.session_id, FlushReason.RESULT),
        StatusUpdateOp(
            ctx.session_id,
            model_id=payload.get("model"),
            context_tokens=context_tokens,
            total_cost_usd=cost,
        ),
    ]


# --- 전용 도구 ---

def _special_tool_ops(
    name: str, tool_id: str, tool_input: dict, ctx: TransformContext
) -> Optional[list[MessageOperation]]:
    """전용 오퍼레이션으로 처리하는 도구면 오퍼레이션 목록, 아니면 None"""
    if name == "TodoWrite":
        return _todo_write_ops(tool_input, ctx)
    if name == "Task":
        if tool_id:
            ctx.subagent_tool_ids.add(tool_id)
        description = tool_input.get("description") or tool_input.get("prompt") or "Subagent"
        return [SubagentOp(
            ctx.session_id,
            tool_id,
            SubagentAction.START,
            description=description,
            subagent_type=tool_input.get("subagent_type") or "general-purpose",
        )]
    if name == "AskUserQuestion":
        return [QuestionOp(ctx.session_id, tool_id, _parse_questions(tool_input), current_index=0)]
    if name == "ExitPlanMode":
        return [ApprovalOp(ctx.session_id, tool_id, ApprovalKind.PLAN)]
    return None


def _todo_write_ops(tool_input: dict, ctx: TransformContext) -> list[MessageOperation]:
    tasks = tuple(
        TaskItem(
            content=todo.get("content", ""),
            status=parse_task_status(todo.get("status", "")),
            active_form=todo.get("activeForm") or "",
        )
        for todo in tool_input.get("todos") or []
    )
    all_done = all(t.status == TaskStatus.COMPLETED for t in tasks)
    action = TaskListAction.COMPLETE if all_done else TaskListAction.UPDATE
    return [TaskListOp(ctx.session_id, action, tasks)]


def _parse_questions(tool_input: dict) -> tuple[Question, ...]:
    questions = []
    for raw in tool_input.get("questions") or []:
        options = tuple(
            QuestionOption(label=o.get("label", ""), description=o.get("description") or "")
            for o in raw.get("options") or []
        )
        questions.append(Question(
            header=raw.get("header", ""),
            question=raw.get("question", ""),
            options=options,
            multi_select=bool(raw.get("multiSelect", False)),
        ))
    return tuple(questions)
