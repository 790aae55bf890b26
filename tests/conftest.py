import os
import sys
from pathlib import Path

import pytest

# Keep the repository free of Python bytecode and __pycache__ artifacts during tests.
sys.dont_write_bytecode = True

TESTS_ROOT = Path(__file__).resolve().parent
REPO_ROOT = TESTS_ROOT.parent
SRC_ROOT = REPO_ROOT / "src"

# Make src/ importable as 'projconf' and tests/ as 'helpers'
for p in (SRC_ROOT, TESTS_ROOT):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))


from helpers.cache_utils import reset_projconf_state
from helpers.recorder import CallbackRecorder
from helpers.tree import ProjectTree


@pytest.fixture(autouse=True)
def _reset_projconf_state(monkeypatch):
    """Ensure module-level caches and the default loader are fresh for each test."""
    for key in list(os.environ):
        if key.startswith("PROJCONF_"):
            monkeypatch.delenv(key, raising=False)
    reset_projconf_state()
    yield
    reset_projconf_state()


@pytest.fixture
def tree(tmp_path: Path) -> ProjectTree:
    """A project directory ``p`` (with a ``.git`` marker) and a config dir ``c``."""
    return ProjectTree.create(tmp_path)


@pytest.fixture
def recorder() -> CallbackRecorder:
    return CallbackRecorder()


@pytest.fixture
def xdg_config_home(tmp_path: Path, monkeypatch) -> Path:
    home = tmp_path / "xdg"
    home.mkdir()
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home))
    return home
