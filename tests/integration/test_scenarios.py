"""End-to-end behaviour of the default pipeline on real filesystem trees."""
from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from projconf import ProjectConfig
from projconf.core.pipeline import stop
from projconf.exceptions import ArtifactDecodeError

from helpers.recorder import CallbackRecorder
from helpers.tree import ProjectTree, bump_mtime, read_json, rewrite_keeping_mtime


@pytest.fixture
def lua_calls():
    return []


@pytest.fixture
def loader(tree: ProjectTree, recorder: CallbackRecorder, lua_calls):
    pc = ProjectConfig()
    pc.setup(
        {
            "config_dir": str(tree.config_dir),
            "loading": {"on": "manual", "start_dir": str(tree.start_file)},
            "handlers": {"lua": lambda ctx, path: lua_calls.append(path)},
            **recorder.callbacks(),
        }
    )
    yield pc
    pc.teardown()


async def _load(pc: ProjectConfig):
    return await asyncio.wait_for(pc.load_await(), 5.0)


@pytest.mark.asyncio
async def test_basic_detection(tree: ProjectTree, loader: ProjectConfig, lua_calls) -> None:
    lua = tree.config("p.lua", "-- settings")

    ctx = await _load(loader)

    assert ctx.project_root == tree.project
    assert ctx.project_name == "p"
    assert ctx.files_loaded == [lua]
    assert lua_calls == [lua]


@pytest.mark.asyncio
async def test_json_merge(tree: ProjectTree, loader: ProjectConfig) -> None:
    p_json = tree.config("p.json", {"a": 1, "b": {"x": 1}})
    local = tree.config("p/local.json", {"b": {"y": 2}})

    ctx = await _load(loader)

    assert ctx.files_loaded == [p_json, local]
    assert ctx.json.to_dict() == {"a": 1, "b": {"x": 1, "y": 2}}
    assert ctx.last_project_json == local


@pytest.mark.asyncio
async def test_reactive_write_through(tree: ProjectTree, loader: ProjectConfig) -> None:
    tree.config("p.json", {"a": 1, "b": {"x": 1}})
    local = tree.config("p/local.json", {"b": {"y": 2}})
    ctx = await _load(loader)

    ctx.json["b"]["x"] = 9

    on_disk = read_json(local)
    assert on_disk["b"] == {"x": 9, "y": 2}
    assert on_disk == ctx.json.to_dict()
    assert ctx.json["b"]["y"] == 2
    assert ctx.file_cache.lookup(local).parsed == on_disk


@pytest.mark.asyncio
async def test_reactive_round_trip_at_new_path(tree: ProjectTree, loader: ProjectConfig) -> None:
    target = tree.config("p.json", {})
    ctx = await _load(loader)

    ctx.json.set_path(["a", "b"], [1, 2])

    assert ctx.json.get_path(["a", "b"]) == [1, 2]
    assert read_json(target)["a"]["b"] == [1, 2]


@pytest.mark.asyncio
async def test_cancellation_before_execute(tree: ProjectTree, loader: ProjectConfig, recorder: CallbackRecorder) -> None:
    tree.config("p.json", {"a": 1})
    tree.config("p.lua", "")

    handle = loader.load_await()
    stop(handle.ctx)

    assert await asyncio.wait_for(handle.wait(), 1.0) is None
    assert recorder.loads == []
    assert handle.ctx.files_loaded == []
    assert handle.ctx.json.to_dict() == {}


@pytest.mark.asyncio
async def test_cache_invalidation(tree: ProjectTree, loader: ProjectConfig) -> None:
    path = tree.config("p.json", {"v": 1})
    ctx = await _load(loader)
    assert ctx.file_cache.lookup(path).parsed == {"v": 1}

    path.write_text('{"v": 2}', encoding="utf-8")
    bump_mtime(path)
    entry = await ctx.file_cache.read(path)

    assert entry.content == b'{"v": 2}'
    assert entry.parsed is None


@pytest.mark.asyncio
async def test_nested_project(tree: ProjectTree, loader: ProjectConfig) -> None:
    tree.config("repo.json", {"k": 1})
    inner = tree.config("repo/pkg.json", {"k": 2})
    ctx = loader.get_context()

    def name_repo_pkg(c, path: Path) -> None:
        c.project_root = path
        c.project_name = "repo/pkg"

    ctx.pipeline[1].on_match = name_repo_pkg
    await _load(loader)

    assert ctx.json.to_dict() == {"k": 2}
    assert ctx.last_project_json == inner


@pytest.mark.asyncio
async def test_no_marker_means_nothing_loaded(tmp_path: Path, recorder: CallbackRecorder) -> None:
    (tmp_path / "plain").mkdir()
    (tmp_path / "c").mkdir()
    (tmp_path / "c" / "plain.json").write_text('{"a": 1}', encoding="utf-8")
    pc = ProjectConfig()
    ctx = pc.setup(
        {
            "config_dir": str(tmp_path / "c"),
            "loading": {"on": "manual"},
            "detect": {"markers": ["no-such-marker-xyz"]},
            **recorder.callbacks(),
        }
    )

    await asyncio.wait_for(pc.load_await(start_dir=tmp_path / "plain"), 5.0)

    assert ctx.project_root is None
    assert ctx.files_loaded == []
    assert ctx.json.to_dict() == {}


@pytest.mark.asyncio
async def test_bad_json_is_skipped_others_apply(
    tree: ProjectTree, loader: ProjectConfig, recorder: CallbackRecorder
) -> None:
    bad = tree.config("p.json", "{broken")
    good = tree.config("p/local.json", {"ok": True})

    ctx = await _load(loader)

    assert ctx.files_loaded == [good]
    assert ctx.json.to_dict() == {"ok": True}
    assert recorder.error_types() == [ArtifactDecodeError]
    assert recorder.errors[0][1] == bad
    assert recorder.loads == [ctx]


@pytest.mark.asyncio
async def test_document_equals_merge_of_loaded_json(tree: ProjectTree, loader: ProjectConfig) -> None:
    tree.config("p.json", {"a": {"x": 1, "l": [1, 2]}, "keep": True})
    tree.config("p/a.json", {"a": {"l": [3]}})
    tree.config("p/b.json", {"a": {"x": 2}, "new": 1})

    ctx = await _load(loader)

    assert ctx.json.to_dict() == {"a": {"x": 2, "l": [3]}, "keep": True, "new": 1}
    assert [p.name for p in ctx.files_loaded] == ["p.json", "a.json", "b.json"]


@pytest.mark.asyncio
async def test_untrusted_mtime_reflects_live_disk_state(tree: ProjectTree, recorder: CallbackRecorder) -> None:
    path = tree.config("p.json", {"v": 1})
    pc = ProjectConfig()
    ctx = pc.setup(
        {
            "config_dir": str(tree.config_dir),
            "loading": {"on": "manual", "start_dir": str(tree.start_file)},
            "cache": {"trust_mtime": False},
            **recorder.callbacks(),
        }
    )
    await asyncio.wait_for(pc.load_await(), 5.0)
    rewrite_keeping_mtime(path, '{"v": 2}')
    await asyncio.wait_for(pc.load_await(), 5.0)

    assert ctx.json["v"] == 2
