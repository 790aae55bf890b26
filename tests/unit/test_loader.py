from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

import projconf
from projconf import ProjectConfig
from projconf.core import loader as loader_mod
from projconf.core.stages import ExecuteStage, FindFilesStage, WalkStage
from projconf.exceptions import PipelineInvariantError

from helpers.recorder import CallbackRecorder
from helpers.tree import ProjectTree


def _options(tree: ProjectTree, recorder: CallbackRecorder, on: str = "manual", **extra):
    return {
        "config_dir": str(tree.config_dir),
        "loading": {"on": on, "start_dir": str(tree.start_file)},
        **recorder.callbacks(),
        **extra,
    }


def test_setup_is_idempotent(tree: ProjectTree, recorder: CallbackRecorder) -> None:
    ctx = projconf.setup(_options(tree, recorder))
    again = projconf.setup({"config_dir": "/elsewhere"})

    assert again is ctx
    assert projconf.get_context() is ctx
    assert ctx.config_dir == tree.config_dir


def test_default_pipeline_shape(tree: ProjectTree, recorder: CallbackRecorder) -> None:
    ctx = ProjectConfig().setup(_options(tree, recorder))

    kinds = [type(stage).__name__ for stage in ctx.pipeline]
    assert kinds == ["WalkStage", "DetectStage", "FindFilesStage", "ExecuteStage"]
    assert isinstance(ctx.pipeline[0], WalkStage)
    assert isinstance(ctx.pipeline[2], FindFilesStage)
    assert isinstance(ctx.pipeline[3], ExecuteStage)
    assert set(ctx.handlers) >= {"json", "py"}


def test_operations_before_setup_are_no_ops() -> None:
    assert projconf.get_context() is None
    assert projconf.load_await() is None
    projconf.load()
    projconf.clear()
    projconf.notify_buffer_enter("/tmp/x")
    projconf.notify_cwd_changed("/tmp")


def test_startup_without_event_loop_falls_back_to_manual(tree: ProjectTree, recorder: CallbackRecorder) -> None:
    ctx = ProjectConfig().setup(_options(tree, recorder, on="startup"))
    assert ctx.active_run is None


def test_untrusted_mtime_probe_disables_trust(
    tree: ProjectTree, recorder: CallbackRecorder, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(loader_mod, "probe_mtime_trust", lambda directory: False)
    ctx = ProjectConfig().setup(_options(tree, recorder))
    assert ctx.trust_mtime is False


@pytest.mark.asyncio
async def test_load_await_resolves_with_context(tree: ProjectTree, recorder: CallbackRecorder) -> None:
    tree.config("p.json", {"a": 1})
    pc = ProjectConfig()
    ctx = pc.setup(_options(tree, recorder))

    result = await asyncio.wait_for(pc.load_await(), 5.0)

    assert result is ctx
    assert ctx.project_root == tree.project
    assert ctx.json.to_dict() == {"a": 1}
    assert recorder.loads == [ctx]


@pytest.mark.asyncio
async def test_startup_mode_schedules_a_run(tree: ProjectTree, recorder: CallbackRecorder) -> None:
    ctx = ProjectConfig().setup(_options(tree, recorder, on="startup"))
    assert ctx.active_run is None

    await asyncio.sleep(0)

    assert ctx.active_run is not None
    assert await asyncio.wait_for(ctx.active_run.wait(), 5.0) is ctx


@pytest.mark.asyncio
async def test_lazy_mode_loads_on_first_buffer_enter(tree: ProjectTree, recorder: CallbackRecorder) -> None:
    pc = ProjectConfig()
    ctx = pc.setup(_options(tree, recorder, on="lazy"))
    await asyncio.sleep(0)
    assert ctx.active_run is None

    pc.notify_buffer_enter(tree.start_file)
    first = ctx.active_run
    assert first is not None
    await asyncio.wait_for(first.wait(), 5.0)

    pc.notify_buffer_enter(tree.start_file)
    assert ctx.active_run is first


@pytest.mark.asyncio
async def test_restart_clears_previous_run_state(tree: ProjectTree, recorder: CallbackRecorder) -> None:
    tree.config("p.json", {"a": 1})
    pc = ProjectConfig()
    ctx = pc.setup(_options(tree, recorder))

    await asyncio.wait_for(pc.load_await(), 5.0)
    first_doc = ctx.json
    await asyncio.wait_for(pc.load_await(), 5.0)

    assert len(recorder.clears) == 1
    assert ctx.json is not first_doc
    assert ctx.files_loaded == [tree.config_dir / "p.json"]
    assert ctx.json.to_dict() == {"a": 1}


@pytest.mark.asyncio
async def test_load_while_running_is_rejected(tree: ProjectTree, recorder: CallbackRecorder) -> None:
    pc = ProjectConfig()
    pc.setup(_options(tree, recorder))
    handle = pc.load_await()

    with pytest.raises(PipelineInvariantError):
        pc.load()

    await asyncio.wait_for(handle.wait(), 5.0)


@pytest.mark.asyncio
async def test_clear_resets_state_but_keeps_caches(tree: ProjectTree, recorder: CallbackRecorder) -> None:
    path = tree.config("p.json", {"a": 1})
    pc = ProjectConfig()
    ctx = pc.setup(_options(tree, recorder))
    await asyncio.wait_for(pc.load_await(), 5.0)
    old_doc = ctx.json

    pc.clear()

    assert ctx.project_root is None
    assert ctx.project_name is None
    assert ctx.files_loaded == []
    assert ctx.last_project_json is None
    assert ctx.json is not old_doc and len(ctx.json) == 0
    assert recorder.clears == [ctx]
    assert ctx.file_cache.lookup(path) is not None


@pytest.mark.asyncio
async def test_clear_during_run_prevents_on_load(tree: ProjectTree, recorder: CallbackRecorder) -> None:
    tree.config("p.json", {"a": 1})
    pc = ProjectConfig()
    ctx = pc.setup(_options(tree, recorder))

    handle = pc.load_await()
    pc.clear()

    assert await asyncio.wait_for(handle.wait(), 5.0) is None
    assert recorder.loads == []
    assert ctx.json.to_dict() == {}


@pytest.mark.asyncio
async def test_start_dir_argument_overrides_option(tmp_path: Path, recorder: CallbackRecorder) -> None:
    first = ProjectTree.create(tmp_path / "one", name="alpha")
    second = ProjectTree.create(tmp_path / "two", name="beta")
    pc = ProjectConfig()
    ctx = pc.setup(_options(first, recorder))

    await asyncio.wait_for(pc.load_await(start_dir=second.project), 5.0)

    assert ctx.project_name == "beta"


@pytest.mark.asyncio
async def test_clear_during_inline_coroutine_handler_records_nothing(
    tree: ProjectTree, recorder: CallbackRecorder
) -> None:
    tree.config("p.lua", "-- settings")
    entered = asyncio.Event()
    finished = []

    async def slow_lua(ctx, path: Path) -> None:
        entered.set()
        await asyncio.sleep(0.05)
        finished.append(path)

    pc = ProjectConfig()
    ctx = pc.setup(_options(tree, recorder, handlers={"lua": slow_lua}))
    handle = pc.load_await()
    await asyncio.wait_for(entered.wait(), 5.0)

    pc.clear()

    assert await asyncio.wait_for(handle.wait(), 5.0) is None
    assert finished == [tree.config_dir / "p.lua"]
    assert ctx.files_loaded == []
    assert recorder.loads == []
