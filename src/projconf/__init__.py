"""
projconf - per-project editor configuration

projconf walks upward from a starting directory, detects the project root,
finds the configuration artifacts registered for that project and applies
them through extension-specific handlers. JSON artifacts merge into a single
reactive document whose writes persist back to disk.
"""

from projconf.core.loader import (
    ProjectConfig,
    clear,
    get_context,
    load,
    load_await,
    notify_buffer_enter,
    notify_cwd_changed,
    setup,
    teardown,
)

__version__ = "1.0.0"
__all__ = [
    "__version__",
    "ProjectConfig",
    "setup",
    "load",
    "load_await",
    "clear",
    "get_context",
    "notify_buffer_enter",
    "notify_cwd_changed",
    "teardown",
]
