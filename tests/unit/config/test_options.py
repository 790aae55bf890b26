from __future__ import annotations

from pathlib import Path

import pytest

from projconf.core.config import (
    LOADING_MODES,
    coerce_env_value,
    iter_env_overrides,
    load_options,
    resolve_config_dir,
    validate_options,
)
from projconf.data import get_data_path, read_yaml
from projconf.exceptions import ConfigError


def test_bundled_defaults_validate() -> None:
    defaults = read_yaml("config", "defaults.yaml")
    validate_options(defaults)
    assert defaults["loading"]["watch"]["debounce_ms"] == 100
    assert "on" in defaults["loading"]
    assert True not in defaults["loading"]
    assert defaults["loading"]["on"] in LOADING_MODES
    assert get_data_path("schemas", "options.schema.json").is_file()


def test_defaults_apply_when_no_options(xdg_config_home: Path) -> None:
    opts = load_options({}, environ={})

    assert opts.config_dir == xdg_config_home / "projconf" / "projects"
    assert opts.loading_on == "startup"
    assert opts.debounce_ms == 100
    assert opts.trust_mtime is True
    assert opts.executors["json"] == {"async": True}
    assert opts.pipeline is None


def test_user_options_merge_over_defaults(tmp_path: Path) -> None:
    opts = load_options(
        {"config_dir": str(tmp_path), "loading": {"on": "manual", "watch": {"cwd": True}}},
        environ={},
    )

    assert opts.config_dir == tmp_path
    assert opts.loading_on == "manual"
    assert opts.watch["cwd"] is True
    assert opts.watch["buffer"] is False


def test_callable_options_bypass_validation(tmp_path: Path) -> None:
    def on_load(ctx) -> None:
        pass

    handler = lambda ctx, path: None  # noqa: E731
    opts = load_options(
        {
            "config_dir": lambda: tmp_path / "produced",
            "pipeline": [object()],
            "handlers": {".lua": handler},
            "on_load": on_load,
        },
        environ={},
    )

    assert opts.config_dir == tmp_path / "produced"
    assert len(opts.pipeline) == 1
    assert opts.handlers == {"lua": handler}
    assert opts.on_load is on_load


def test_environment_overrides_win(tmp_path: Path) -> None:
    env = {
        "PROJCONF_loading__watch__debounce_ms": "250",
        "PROJCONF_cache__trust_mtime": "false",
        "PROJCONF_detect__markers": '[".svn"]',
        "UNRELATED": "1",
    }
    opts = load_options({"config_dir": str(tmp_path), "loading": {"watch": {"debounce_ms": 5}}}, environ=env)

    assert opts.debounce_ms == 250
    assert opts.trust_mtime is False
    assert opts.detect["markers"] == [".svn"]


def test_environment_read_from_os_environ(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PROJCONF_LOADING__ON", "lazy")
    assert load_options({"config_dir": str(tmp_path)}).loading_on == "lazy"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("true", True),
        ("False", False),
        ("42", 42),
        ("-1.5", -1.5),
        ('{"a": 1}', {"a": 1}),
        ("[1, 2]", [1, 2]),
        ("null", None),
        ("  text ", "text"),
    ],
)
def test_env_value_coercion(raw: str, expected) -> None:
    assert coerce_env_value(raw) == expected


def test_malformed_env_key_rejected() -> None:
    with pytest.raises(ConfigError):
        list(iter_env_overrides({"PROJCONF_loading____on": "lazy"}))


@pytest.mark.parametrize(
    "options",
    [
        {"loading": {"on": "sometimes"}},
        {"loading": {"watch": {"debounce_ms": -1}}},
        {"cache": {"trust_mtime": "yes"}},
        {"find_files": {"extensions": ["json"]}},
        {"executors": {"lua": {"async": 1}}},
    ],
)
def test_invalid_options_raise_config_error(tmp_path: Path, options) -> None:
    with pytest.raises(ConfigError) as exc_info:
        load_options({"config_dir": str(tmp_path), **options}, environ={})
    assert exc_info.value.context["errors"]


def test_non_callable_handlers_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_options({"config_dir": str(tmp_path), "handlers": {"lua": "not callable"}}, environ={})


def test_relative_config_dir_is_under_user_config_home(xdg_config_home: Path) -> None:
    assert resolve_config_dir("mine") == xdg_config_home / "mine"
    with pytest.raises(ConfigError):
        resolve_config_dir(lambda: None)
