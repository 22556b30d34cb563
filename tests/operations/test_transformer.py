"""이벤트 → 오퍼레이션 변환 테스트"""

import time

import pytest

from threadcast.operations.tool_formatters import WorktreeInfo
from threadcast.operations.transformer import TransformContext, transform_event
from threadcast.operations.types import (
    AppendContentOp,
    ApprovalKind,
    ApprovalOp,
    FlushOp,
    FlushReason,
    OperationType,
    QuestionOp,
    StatusUpdateOp,
    SubagentAction,
    SubagentOp,
    TaskListAction,
    TaskListOp,
    TaskStatus,
)
from threadcast.platform.slack_formatter import SlackFormatter


def _make_ctx(**overrides) -> TransformContext:
    defaults = {"session_id": "s1", "formatter": SlackFormatter()}
    defaults.update(overrides)
    return TransformContext(**defaults)


def _assistant(*blocks) -> dict:
    return {"type": "assistant", "message": {"content": list(blocks)}}


def _todo_event(*statuses) -> dict:
    todos = [
        {"content": f"task {i}", "status": status, "activeForm": f"doing task {i}"}
        for i, status in enumerate(statuses)
    ]
    return _assistant({"type": "tool_use", "id": "todo-1", "name": "TodoWrite", "input": {"todos": todos}})


class TestAssistantEvent:
    """assistant 이벤트 변환"""

    def test_text_and_read_tool_become_one_append(self, monkeypatch):
        monkeypatch.setenv("HOME", "/home/tester")
        ops = transform_event(
            _assistant(
                {"type": "text", "text": "Hello"},
                {"type": "tool_use", "id": "t1", "name": "Read", "input": {"file_path": "/tmp/a.py"}},
            ),
            _make_ctx(),
        )
        assert len(ops) == 1
        op = ops[0]
        assert isinstance(op, AppendContentOp)
        assert op.type == OperationType.APPEND_CONTENT
        assert op.content.index("Hello") < op.content.index("Read")
        assert "`/tmp/a.py`" in op.content

    def test_thinking_tags_are_stripped(self):
        ops = transform_event(
            _assistant({"type": "text", "text": "<thinking>secret plan</thinking>Visible answer"}),
            _make_ctx(),
        )
        assert ops[0].content == "Visible answer"

    def test_only_thinking_tags_produces_nothing(self):
        ops = transform_event(_assistant({"type": "text", "text": "<thinking>x</thinking>  "}), _make_ctx())
        assert ops == []

    def test_thinking_block_rendered_as_quote(self):
        ops = transform_event(_assistant({"type": "thinking", "thinking": "let me consider"}), _make_ctx())
        assert ops[0].content == "> 💭 _let me consider_"

    def test_long_thinking_preview_is_truncated(self):
        ops = transform_event(_assistant({"type": "thinking", "thinking": "word " * 100}), _make_ctx())
        assert ops[0].content.endswith("..._")
        assert len(ops[0].content) < 230

    def test_server_tool_use(self):
        ops = transform_event(
            _assistant({"type": "server_tool_use", "name": "web_search", "input": {"query": "python"}}),
            _make_ctx(),
        )
        assert ops[0].content == '🌐 *web_search* {"query": "python"}'

    def test_tool_use_block_records_start_time(self):
        ctx = _make_ctx()
        transform_event(
            _assistant({"type": "tool_use", "id": "t9", "name": "Bash", "input": {"command": "ls"}}),
            ctx,
        )
        assert "t9" in ctx.tool_start_times

    def test_text_before_special_tool_comes_first(self):
        ops = transform_event(
            _assistant(
                {"type": "text", "text": "Planning the work"},
                {"type": "tool_use", "id": "todo", "name": "TodoWrite",
                 "input": {"todos": [{"content": "a", "status": "pending"}]}},
                {"type": "text", "text": "Starting now"},
            ),
            _make_ctx(),
        )
        assert [op.type for op in ops] == [
            OperationType.APPEND_CONTENT,
            OperationType.TASK_LIST,
            OperationType.APPEND_CONTENT,
        ]
        assert ops[0].content == "Planning the work"
        assert ops[2].content == "Starting now"

    def test_empty_message(self):
        assert transform_event({"type": "assistant", "message": {}}, _make_ctx()) == []


class TestTodoWrite:
    """태스크 리스트 변환"""

    def test_all_completed_is_complete(self):
        ops = transform_event(_todo_event("completed", "completed"), _make_ctx())
        assert len(ops) == 1
        assert isinstance(ops[0], TaskListOp)
        assert ops[0].action == TaskListAction.COMPLETE

    def test_in_progress_is_update(self):
        ops = transform_event(_todo_event("completed", "in_progress"), _make_ctx())
        assert ops[0].action == TaskListAction.UPDATE
        assert ops[0].tasks[1].status == TaskStatus.IN_PROGRESS
        assert ops[0].tasks[1].active_form == "doing task 1"

    def test_unknown_status_is_pending(self):
        ops = transform_event(_todo_event("weird"), _make_ctx())
        assert ops[0].tasks[0].status == TaskStatus.PENDING


class TestSpecialTools:
    """전용 오퍼레이션으로 처리하는 도구"""

    def test_ask_user_question(self):
        questions = [
            {"header": "Lang", "question": "Which language?",
             "options": [{"label": "Python", "description": "snakes"}, {"label": "Go"}]},
            {"header": "DB", "question": "Which database?", "options": [{"label": "Postgres"}]},
        ]
        ops = transform_event(
            _assistant({"type": "tool_use", "id": "q1", "name": "AskUserQuestion", "input": {"questions": questions}}),
            _make_ctx(),
        )
        assert len(ops) == 1
        op = ops[0]
        assert isinstance(op, QuestionOp)
        assert op.current_index == 0
        assert len(op.questions) == 2
        assert op.questions[0].options[0].description == "snakes"
        assert op.questions[0].options[1].description == ""

    def test_exit_plan_mode(self):
        ops = transform_event(
            _assistant({"type": "tool_use", "id": "p1", "name": "ExitPlanMode", "input": {}}),
            _make_ctx(),
        )
        assert isinstance(ops[0], ApprovalOp)
        assert ops[0].kind == ApprovalKind.PLAN
        assert ops[0].tool_use_id == "p1"

    def test_task_starts_subagent(self):
        ctx = _make_ctx()
        ops = transform_event(
            _assistant({"type": "tool_use", "id": "sub1", "name": "Task",
                        "input": {"description": "Explore code", "subagent_type": "Explore"}}),
            ctx,
        )
        assert isinstance(ops[0], SubagentOp)
        assert ops[0].action == SubagentAction.START
        assert ops[0].description == "Explore code"
        assert ops[0].subagent_type == "Explore"
        assert "sub1" in ctx.subagent_tool_ids

    def test_task_description_falls_back_to_prompt(self):
        ops = transform_event(
            _assistant({"type": "tool_use", "id": "sub2", "name": "Task", "input": {"prompt": "Find bugs"}}),
            _make_ctx(),
        )
        assert ops[0].description == "Find bugs"
        assert ops[0].subagent_type == "general-purpose"


class TestToolUseEvent:
    """단독 tool_use 이벤트"""

    def test_regular_tool_is_tool_output(self):
        ctx = _make_ctx()
        ops = transform_event(
            {"type": "tool_use", "tool_use": {"id": "b1", "name": "Bash", "input": {"command": "pytest"}}},
            ctx,
        )
        assert len(ops) == 1
        assert ops[0].is_tool_output is True
        assert ops[0].content == "💻 *Bash* `pytest`"
        assert "b1" in ctx.tool_start_times

    def test_worktree_path_is_shortened(self):
        ctx = _make_ctx(worktree_info=WorktreeInfo(path="/repo/wt", branch="feat"))
        ops = transform_event(
            {"type": "tool_use", "tool_use": {"id": "r1", "name": "Read", "input": {"file_path": "/repo/wt/src/x.py"}}},
            ctx,
        )
        assert "[feat]/src/x.py" in ops[0].content

    def test_missing_name_is_ignored(self):
        assert transform_event({"type": "tool_use", "tool_use": {"id": "x"}}, _make_ctx()) == []


class TestToolResultEvent:
    """tool_result 이벤트"""

    def test_success_marker_and_flush(self):
        ops = transform_event({"type": "tool_result", "tool_result": {"tool_use_id": "t1"}}, _make_ctx())
        assert ops[0].content == "  ↳ ✓"
        assert isinstance(ops[1], FlushOp)
        assert ops[1].reason == FlushReason.TOOL_COMPLETE

    def test_error_marker(self):
        ops = transform_event(
            {"type": "tool_result", "tool_result": {"tool_use_id": "t1", "is_error": True}},
            _make_ctx(),
        )
        assert ops[0].content == "  ↳ ❌ Error"

    def test_elapsed_time_shown_after_threshold(self):
        ctx = _make_ctx(elapsed_min_seconds=3)
        ctx.tool_start_times["slow"] = time.monotonic() - 10
        ops = transform_event({"type": "tool_result", "tool_result": {"tool_use_id": "slow"}}, ctx)
        assert ops[0].content == "  ↳ ✓ (10s)"
        assert "slow" not in ctx.tool_start_times

    def test_fast_tool_has_no_elapsed(self):
        ctx = _make_ctx(elapsed_min_seconds=3)
        ctx.tool_start_times["fast"] = time.monotonic()
        ops = transform_event({"type": "tool_result", "tool_result": {"tool_use_id": "fast"}}, ctx)
        assert ops[0].content == "  ↳ ✓"

    def test_subagent_result_completes_subagent(self):
        ctx = _make_ctx()
        ctx.subagent_tool_ids.add("sub1")
        ops = transform_event(
            {"type": "tool_result", "tool_result": {
                "tool_use_id": "sub1",
                "content": [{"type": "text", "text": "done"}],
            }},
            ctx,
        )
        assert len(ops) == 3
        assert isinstance(ops[2], SubagentOp)
        assert ops[2].action == SubagentAction.COMPLETE
        assert ops[2].result == "done"
        assert "sub1" not in ctx.subagent_tool_ids


class TestResultEvent:
    """result 이벤트"""

    def test_without_usage_still_emits_status_update(self):
        ops = transform_event({"type": "result"}, _make_ctx())
        assert [op.type for op in ops] == [OperationType.FLUSH, OperationType.STATUS_UPDATE]
        assert ops[0].reason == FlushReason.RESULT
        status = ops[1]
        assert isinstance(status, StatusUpdateOp)
        assert status.context_tokens is None
        assert status.total_cost_usd is None

    def test_usage_and_cost(self):
        ops = transform_event(
            {
                "type": "result",
                "model": "model-x",
                "total_cost_usd": 0.25,
                "usage": {
                    "input_tokens": 100,
                    "cache_creation_input_tokens": 20,
                    "cache_read_input_tokens": 5,
                    "output_tokens": 999,
                },
            },
            _make_ctx(),
        )
        status = ops[1]
        assert status.model_id == "model-x"
        assert status.total_cost_usd == 0.25
        assert status.context_tokens == 125


class TestIgnoredEvents:
    """처리하지 않는 이벤트"""

    @pytest.mark.parametrize("event_type", ["user", "system", "something_new"])
    def test_no_operations(self, event_type):
        assert transform_event({"type": event_type}, _make_ctx()) == []
