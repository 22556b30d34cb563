"""서브에이전트 executor 테스트"""

import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from threadcast.executors.subagent import SubagentExecutor
from threadcast.operations.post_tracker import InteractionType, PostType
from threadcast.operations.types import SubagentAction, SubagentOp


def _make_executor(**kwargs) -> SubagentExecutor:
    kwargs.setdefault("update_interval", 100)
    return SubagentExecutor(MagicMock(), MagicMock(), **kwargs)


def _start_op(tool_id="sub1", description="Explore code", subagent_type="Explore", **kwargs):
    return SubagentOp("s1", tool_id, SubagentAction.START, description, subagent_type, **kwargs)


class TestStart:
    @pytest.mark.asyncio
    async def test_start_creates_post(self, platform, ctx):
        executor = _make_executor()
        try:
            await executor.execute(_start_op(), ctx)

            assert platform.posts["post-1"] == (
                "🤖 *Subagent* _(Explore)_ ⏳ 0s\n📋 *Prompt:*\n> Explore code\n🔽"
            )
            assert platform.reactions["post-1"] == ["arrow_down_small"]
            executor.register_post.assert_called_once_with(
                "post-1",
                post_type=PostType.SUBAGENT,
                interaction_type=InteractionType.TOGGLE_MINIMIZE,
                tool_use_id="sub1",
            )
            assert executor.has_active()
            assert executor.has_update_timer
        finally:
            executor.stop_update_timer()

    @pytest.mark.asyncio
    async def test_start_bumps_task_list(self, platform, ctx):
        bump = AsyncMock()
        executor = _make_executor(on_bump_task_list=bump)
        try:
            await executor.execute(_start_op(), ctx)
            bump.assert_awaited_once_with(ctx)
        finally:
            executor.stop_update_timer()

    @pytest.mark.asyncio
    async def test_start_minimized(self, platform, ctx):
        executor = _make_executor()
        try:
            await executor.execute(_start_op(is_minimized=True), ctx)
            assert platform.posts["post-1"] == "🤖 *Subagent* _(Explore)_ ⏳ 0s 🔽"
        finally:
            executor.stop_update_timer()


class TestComplete:
    @pytest.mark.asyncio
    async def test_complete_stops_timer_and_keeps_entry(self, platform, ctx):
        executor = _make_executor()
        await executor.execute(_start_op(), ctx)
        executor.state.entries["sub1"].start_time = time.monotonic() - 65

        await executor.execute(SubagentOp("s1", "sub1", SubagentAction.COMPLETE, result="done"), ctx)

        assert platform.posts["post-1"].startswith("🤖 *Subagent* _(Explore)_ ✅ 1m 5s")
        assert not executor.has_active()
        assert not executor.has_update_timer
        assert "sub1" in executor.state.entries

    @pytest.mark.asyncio
    async def test_timer_runs_until_last_completes(self, platform, ctx):
        executor = _make_executor()
        await executor.execute(_start_op("a"), ctx)
        await executor.execute(_start_op("b"), ctx)
        await executor.execute(SubagentOp("s1", "a", SubagentAction.COMPLETE), ctx)
        assert executor.has_update_timer

        await executor.execute(SubagentOp("s1", "b", SubagentAction.COMPLETE), ctx)
        assert not executor.has_update_timer

    @pytest.mark.asyncio
    async def test_unknown_tool_id_is_ignored(self, platform, ctx):
        executor = _make_executor()
        await executor.execute(SubagentOp("s1", "missing", SubagentAction.COMPLETE), ctx)
        platform.update_post.assert_not_awaited()


class TestMinimize:
    """리액션 상태 = 접힘 상태"""

    @pytest.mark.asyncio
    async def test_added_minimizes_removed_expands(self, platform, ctx):
        executor = _make_executor()
        try:
            await executor.execute(_start_op(), ctx)

            assert await executor.handle_reaction("post-1", "arrow_down_small", "added", ctx)
            assert platform.posts["post-1"].endswith("⏳ 0s 🔽")
            assert "Prompt" not in platform.posts["post-1"]

            assert await executor.handle_reaction("post-1", "arrow_down_small", "removed", ctx)
            assert "> Explore code" in platform.posts["post-1"]
        finally:
            executor.stop_update_timer()

    @pytest.mark.asyncio
    async def test_same_state_does_not_rerender(self, platform, ctx):
        executor = _make_executor()
        try:
            await executor.execute(_start_op(), ctx)
            await executor.handle_reaction("post-1", "arrow_down_small", "removed", ctx)
            platform.update_post.assert_not_awaited()
        finally:
            executor.stop_update_timer()

    @pytest.mark.asyncio
    async def test_completed_entry_still_toggles(self, platform, ctx):
        executor = _make_executor()
        await executor.execute(_start_op(), ctx)
        await executor.execute(SubagentOp("s1", "sub1", SubagentAction.COMPLETE), ctx)

        assert await executor.handle_reaction("post-1", "arrow_down_small", "added", ctx)
        assert platform.posts["post-1"].endswith("🔽")
        assert "Prompt" not in platform.posts["post-1"]

    @pytest.mark.asyncio
    async def test_unrelated_reaction(self, platform, ctx):
        executor = _make_executor()
        try:
            await executor.execute(_start_op(), ctx)
            assert not await executor.handle_reaction("post-1", "+1", "added", ctx)
            assert not await executor.handle_reaction("post-9", "arrow_down_small", "added", ctx)
        finally:
            executor.stop_update_timer()

    @pytest.mark.asyncio
    async def test_toggle_op(self, platform, ctx):
        executor = _make_executor()
        try:
            await executor.execute(_start_op(), ctx)
            await executor.execute(SubagentOp("s1", "sub1", SubagentAction.TOGGLE_MINIMIZE), ctx)
            assert executor.state.entries["sub1"].is_minimized
        finally:
            executor.stop_update_timer()


class TestRefresh:
    @pytest.mark.asyncio
    async def test_refresh_skips_recently_updated(self, platform, ctx):
        executor = _make_executor(update_interval=5)
        try:
            await executor.execute(_start_op(), ctx)
            await executor.refresh_elapsed(ctx)
            platform.update_post.assert_not_awaited()

            executor.state.entries["sub1"].last_update_time = time.monotonic() - 10
            await executor.refresh_elapsed(ctx)
            platform.update_post.assert_awaited_once()
        finally:
            executor.stop_update_timer()

    @pytest.mark.asyncio
    async def test_reset_stops_timer(self, platform, ctx):
        executor = _make_executor()
        await executor.execute(_start_op(), ctx)
        executor.reset()
        assert not executor.has_update_timer
        assert executor.state.entries == {}
