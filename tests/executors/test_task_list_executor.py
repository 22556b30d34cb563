"""태스크 리스트 executor 테스트"""

import asyncio
import time
from unittest.mock import MagicMock

import pytest

from threadcast.executors.task_list import TaskListExecutor
from threadcast.formatting import HORIZONTAL_RULE
from threadcast.operations.post_tracker import InteractionType, PostType
from threadcast.operations.types import TaskItem, TaskListAction, TaskListOp, TaskStatus


def _make_executor(**kwargs) -> TaskListExecutor:
    kwargs.setdefault("repurpose_enabled", True)
    kwargs.setdefault("repurpose_max_length", 500)
    return TaskListExecutor(MagicMock(), MagicMock(), **kwargs)


def _make_tasks(*statuses) -> tuple[TaskItem, ...]:
    names = "abcdefgh"
    return tuple(
        TaskItem(content=names[i], status=status, active_form=f"doing {names[i]}")
        for i, status in enumerate(statuses)
    )


TASKS = _make_tasks(TaskStatus.COMPLETED, TaskStatus.IN_PROGRESS, TaskStatus.PENDING)
EXPECTED = "\n".join([
    HORIZONTAL_RULE,
    "📋 *Tasks* (1/3 · 33%)",
    "",
    "✅ ~a~",
    "🔄 *doing b*",
    "⬜ c",
])


class TestUpdate:
    """목록 생성과 갱신"""

    @pytest.mark.asyncio
    async def test_first_update_creates_pinned_post(self, platform, ctx):
        executor = _make_executor()
        await executor.execute(TaskListOp("s1", TaskListAction.UPDATE, TASKS), ctx)

        assert platform.posts["post-1"] == EXPECTED
        assert platform.reactions["post-1"] == ["arrow_down_small"]
        assert "post-1" in platform.pinned
        executor.register_post.assert_called_once_with(
            "post-1",
            post_type=PostType.TASK_LIST,
            interaction_type=InteractionType.TOGGLE_MINIMIZE,
        )
        assert executor.has_active_tasks()

    @pytest.mark.asyncio
    async def test_second_update_edits_post(self, platform, ctx):
        executor = _make_executor()
        await executor.update(TASKS, ctx)
        await executor.update(_make_tasks(TaskStatus.COMPLETED, TaskStatus.COMPLETED, TaskStatus.IN_PROGRESS), ctx)

        assert platform.create_interactive_post.await_count == 1
        assert "(2/3 · 67%)" in platform.posts["post-1"]

    @pytest.mark.asyncio
    async def test_concurrent_updates_create_one_post(self, platform, ctx):
        """게시물 생성이 지연되어도 동시 갱신은 게시물 하나만 만듦"""
        gate = asyncio.Event()
        create = platform._create_interactive_post

        async def slow_create(message, reactions, thread_id=None):
            await gate.wait()
            return await create(message, reactions, thread_id)

        platform.create_interactive_post.side_effect = slow_create
        executor = _make_executor()

        first = asyncio.create_task(executor.update(TASKS, ctx))
        second = asyncio.create_task(executor.update(TASKS, ctx))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        gate.set()
        await asyncio.gather(first, second)

        assert platform.create_interactive_post.await_count == 1
        platform.update_post.assert_awaited_once()
        assert executor.post_id == "post-1"

    @pytest.mark.asyncio
    async def test_update_recreates_deleted_post(self, platform, ctx):
        executor = _make_executor()
        await executor.update(TASKS, ctx)
        del platform.posts["post-1"]

        await executor.update(TASKS, ctx)
        assert executor.post_id == "post-2"

    @pytest.mark.asyncio
    async def test_elapsed_time_for_long_running_task(self, platform, ctx):
        executor = _make_executor()
        await executor.update(TASKS, ctx)
        executor.state.in_progress_started = time.monotonic() - 10

        await executor.update(TASKS, ctx)
        assert "🔄 *doing b* (10s)" in platform.posts["post-1"]

    @pytest.mark.asyncio
    async def test_in_progress_falls_back_to_content(self, platform, ctx):
        executor = _make_executor()
        await executor.update((TaskItem("write docs", TaskStatus.IN_PROGRESS),), ctx)
        assert "🔄 *write docs*" in platform.posts["post-1"]


class TestComplete:
    """목록 완료"""

    @pytest.mark.asyncio
    async def test_complete_unpins_and_shows_full_list(self, platform, ctx):
        executor = _make_executor()
        await executor.update(TASKS, ctx)
        await executor.toggle_minimize(ctx)

        done = _make_tasks(TaskStatus.COMPLETED, TaskStatus.COMPLETED, TaskStatus.COMPLETED)
        await executor.execute(TaskListOp("s1", TaskListAction.COMPLETE, done), ctx)

        assert "(3/3 · 100%)" in platform.posts["post-1"]
        assert "🔽" not in platform.posts["post-1"]
        assert "post-1" not in platform.pinned
        assert executor.state.completed
        assert not executor.has_active_tasks()

    @pytest.mark.asyncio
    async def test_complete_without_post_creates_nothing(self, platform, ctx):
        executor = _make_executor()
        await executor.complete(TASKS, ctx)
        platform.create_interactive_post.assert_not_awaited()


class TestBumpToBottom:
    @pytest.mark.asyncio
    async def test_moves_post(self, platform, ctx):
        executor = _make_executor()
        await executor.update(TASKS, ctx)

        old = await executor.bump_to_bottom(ctx)
        assert old == "post-1"
        assert "post-1" not in platform.posts
        assert platform.posts["post-2"] == EXPECTED
        assert "post-2" in platform.pinned
        platform.remove_reaction.assert_awaited_once_with("post-1", "arrow_down_small")

    @pytest.mark.asyncio
    async def test_noop_without_active_tasks(self, platform, ctx):
        executor = _make_executor()
        assert await executor.bump_to_bottom(ctx) is None
        platform.delete_post.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bump_op(self, platform, ctx):
        executor = _make_executor()
        await executor.update(TASKS, ctx)
        await executor.execute(TaskListOp("s1", TaskListAction.BUMP_TO_BOTTOM), ctx)
        assert executor.post_id == "post-2"


class TestRepurpose:
    """본문용 재활용"""

    @pytest.mark.asyncio
    async def test_repurpose_turns_task_post_into_content(self, platform, ctx):
        executor = _make_executor()
        await executor.update(TASKS, ctx)
        executor.register_post.reset_mock()

        repurposed = await executor.repurpose_for_content(ctx, "Hello")
        assert repurposed == "post-1"
        assert platform.posts["post-1"] == "Hello"
        assert platform.posts["post-2"] == EXPECTED
        assert executor.post_id == "post-2"
        executor.register_post.assert_any_call("post-1", post_type=PostType.CONTENT)

    @pytest.mark.asyncio
    async def test_disabled(self, platform, ctx):
        executor = _make_executor(repurpose_enabled=False)
        await executor.update(TASKS, ctx)
        assert await executor.repurpose_for_content(ctx, "Hello") is None

    @pytest.mark.asyncio
    async def test_content_too_long(self, platform, ctx):
        executor = _make_executor(repurpose_max_length=10)
        await executor.update(TASKS, ctx)
        assert await executor.repurpose_for_content(ctx, "x" * 11) is None
        assert executor.post_id == "post-1"

    @pytest.mark.asyncio
    async def test_completed_list_is_not_repurposed(self, platform, ctx):
        executor = _make_executor()
        await executor.update(TASKS, ctx)
        await executor.complete(TASKS, ctx)
        assert await executor.repurpose_for_content(ctx, "Hello") is None


class TestMinimize:
    """접기/펼치기"""

    @pytest.mark.asyncio
    async def test_toggle_reaction_minimizes(self, platform, ctx):
        executor = _make_executor()
        await executor.update(TASKS, ctx)

        handled = await executor.handle_reaction("post-1", "arrow_down_small", "added", ctx)
        assert handled
        assert executor.state.minimized
        assert platform.posts["post-1"] == f"{HORIZONTAL_RULE}\n📋 *Tasks* (1/3 · 33%) · 🔄 doing b 🔽"

        await executor.handle_reaction("post-1", "arrow_down_small", "added", ctx)
        assert platform.posts["post-1"] == EXPECTED

    @pytest.mark.asyncio
    async def test_removed_reaction_is_owned_but_ignored(self, platform, ctx):
        executor = _make_executor()
        await executor.update(TASKS, ctx)
        assert await executor.handle_reaction("post-1", "arrow_down_small", "removed", ctx)
        assert not executor.state.minimized

    @pytest.mark.asyncio
    async def test_other_post_or_emoji(self, platform, ctx):
        executor = _make_executor()
        await executor.update(TASKS, ctx)
        assert not await executor.handle_reaction("post-9", "arrow_down_small", "added", ctx)
        assert not await executor.handle_reaction("post-1", "+1", "added", ctx)

    @pytest.mark.asyncio
    async def test_minimized_list_stays_minimized_on_update(self, platform, ctx):
        executor = _make_executor()
        await executor.update(TASKS, ctx)
        await executor.toggle_minimize(ctx)
        await executor.update(TASKS, ctx)
        assert platform.posts["post-1"].endswith("🔽")

    def test_minimized_content_with_elapsed(self, platform):
        executor = _make_executor()
        full = f"{HORIZONTAL_RULE}\n📋 *Tasks* (2/5 · 40%)\n\n🔄 *Running tests* (12s)"
        summary = executor.minimized_content(full, platform.get_formatter())
        assert summary == f"{HORIZONTAL_RULE}\n📋 *Tasks* (2/5 · 40%) · 🔄 Running tests (12s) 🔽"


class TestState:
    def test_hydrate_and_snapshot(self):
        executor = _make_executor()
        executor.hydrate_state(post_id="p9", last_content="list", minimized=True)
        snapshot = executor.get_state()
        snapshot.post_id = "changed"
        assert executor.post_id == "p9"
        assert executor.state.minimized
        assert executor.has_active_tasks()
