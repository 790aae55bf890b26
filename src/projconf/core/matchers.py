"""Matcher algebra.

A matcher spec is normalised once into a :class:`Matcher`, an async
predicate over a directory path:

- ``"name"``: the directory has an immediate child (file or directory) called
  ``name``; one listing lookup through the directory cache
- a callable ``(path) -> bool``; coroutine functions are awaited
- a list or tuple: logical OR, in order
- ``any_of(...)``, ``all_of(...)``, ``not_(m)``: explicit combinators
- ``None``: always matches

``literal(name)`` and ``pattern(regex)`` test the evaluated path's own
basename instead, which is what ``walk`` filters usually want.
"""
from __future__ import annotations

import inspect
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Optional, Pattern, Sequence, Union

from projconf.exceptions import ConfigError

if TYPE_CHECKING:
    from projconf.core.cache import DirectoryCache


class Matcher(ABC):
    """Normalised predicate over a path."""

    @abstractmethod
    async def matches(self, path: Path, dir_cache: Optional["DirectoryCache"] = None) -> bool:
        ...

    async def __call__(self, path: Path, dir_cache: Optional["DirectoryCache"] = None) -> bool:
        return await self.matches(Path(path), dir_cache)


class _Always(Matcher):
    async def matches(self, path, dir_cache=None):
        return True

    def __repr__(self) -> str:
        return "always()"


class ChildMatcher(Matcher):
    """True when the directory contains a child named ``name``."""

    def __init__(self, name: str) -> None:
        self.name = name

    async def matches(self, path, dir_cache=None):
        if dir_cache is None:
            # Lazy import to avoid a cycle with the cache package.
            from projconf.core.cache import DirectoryCache

            dir_cache = DirectoryCache(trust_mtime=False)
        return await dir_cache.contains(path, self.name)

    def __repr__(self) -> str:
        return f"child({self.name!r})"


class PredicateMatcher(Matcher):
    def __init__(self, func: Callable[[Path], Any]) -> None:
        self.func = func

    async def matches(self, path, dir_cache=None):
        result = self.func(path)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)

    def __repr__(self) -> str:
        return f"fn({getattr(self.func, '__name__', self.func)!r})"


class BasenameMatcher(Matcher):
    """True when the path's own basename equals a string or matches a regex."""

    def __init__(self, expected: Union[str, Pattern[str]]) -> None:
        self.expected = expected

    async def matches(self, path, dir_cache=None):
        name = path.name
        if isinstance(self.expected, str):
            return name == self.expected
        return self.expected.search(name) is not None

    def __repr__(self) -> str:
        if isinstance(self.expected, str):
            return f"literal({self.expected!r})"
        return f"pattern({self.expected.pattern!r})"


class AnyMatcher(Matcher):
    def __init__(self, matchers: Sequence[Matcher]) -> None:
        self.matchers = list(matchers)

    async def matches(self, path, dir_cache=None):
        for matcher in self.matchers:
            if await matcher.matches(path, dir_cache):
                return True
        return False

    def __repr__(self) -> str:
        return f"any_of({', '.join(map(repr, self.matchers))})"


class AllMatcher(Matcher):
    def __init__(self, matchers: Sequence[Matcher]) -> None:
        self.matchers = list(matchers)

    async def matches(self, path, dir_cache=None):
        for matcher in self.matchers:
            if not await matcher.matches(path, dir_cache):
                return False
        return True

    def __repr__(self) -> str:
        return f"all_of({', '.join(map(repr, self.matchers))})"


class NotMatcher(Matcher):
    def __init__(self, matcher: Matcher) -> None:
        self.matcher = matcher

    async def matches(self, path, dir_cache=None):
        return not await self.matcher.matches(path, dir_cache)

    def __repr__(self) -> str:
        return f"not_({self.matcher!r})"


def normalize(spec: Any) -> Matcher:
    """Normalise any supported matcher spec into a single :class:`Matcher`.

    Raises:
        ConfigError: unsupported spec type
    """
    if spec is None:
        return _Always()
    if isinstance(spec, Matcher):
        return spec
    if isinstance(spec, str):
        return ChildMatcher(spec)
    if isinstance(spec, (list, tuple)):
        return AnyMatcher([normalize(item) for item in spec])
    if isinstance(spec, re.Pattern):
        return BasenameMatcher(spec)
    if callable(spec):
        return PredicateMatcher(spec)
    raise ConfigError(
        f"unsupported matcher type: {type(spec).__name__}",
        context={"matcher": repr(spec)},
    )


def any_of(*specs: Any) -> Matcher:
    return AnyMatcher([normalize(s) for s in specs])


def all_of(*specs: Any) -> Matcher:
    return AllMatcher([normalize(s) for s in specs])


def not_(spec: Any) -> Matcher:
    return NotMatcher(normalize(spec))


def fn(func: Callable[[Path], Any]) -> Matcher:
    """Wrap a predicate explicitly."""
    return PredicateMatcher(func)


def literal(name: str) -> Matcher:
    return BasenameMatcher(name)


def pattern(regex: Union[str, Pattern[str]]) -> Matcher:
    return BasenameMatcher(re.compile(regex) if isinstance(regex, str) else regex)


__all__ = [
    "Matcher",
    "normalize",
    "any_of",
    "all_of",
    "not_",
    "fn",
    "literal",
    "pattern",
]
