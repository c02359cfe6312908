"""Сбор сигнатуры теста: какие callable прикладного кода были вызваны.

Сигнатура — множество строк ``<Owner>#<name>``, где ``Owner`` — класс
(префикс ``__qualname__``) или имя модуля для функций верхнего уровня.
Повторные вызовы одного и того же callable дают одну запись.

В сигнатуру попадают только функции и методы. Тела модулей и классов
(``<module>``, ``class User:``), а также lambda и comprehension-кадры
(``<lambda>``, ``<listcomp>``, ``<genexpr>`` и т.п.) пропускаются.
"""

from __future__ import annotations

import logging
import re
import sys
from collections.abc import Callable
from inspect import CO_OPTIMIZED
from types import CodeType, FrameType
from typing import Any, Protocol, runtime_checkable

from tsim.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

PathPredicate = Callable[[str], bool]


@runtime_checkable
class Tracer(Protocol):
    """Протокол трассировщика одного прогона теста."""

    def start(self) -> None:
        """Начать запись вызовов."""
        ...

    def stop(self) -> frozenset[str]:
        """Остановить запись и вернуть сигнатуру."""
        ...


def path_filter_predicate(pattern: str) -> PathPredicate:
    """Построить предикат «путь — прикладной код» из регулярного выражения.

    Raises:
        ConfigurationError: Если выражение не компилируется.
    """
    try:
        compiled = re.compile(pattern)
    except re.error as exc:
        raise ConfigurationError(
            f"Некорректное регулярное выражение path_filter {pattern!r}: {exc}"
        ) from exc
    return lambda path: compiled.search(path) is not None


def is_callable_code(code: CodeType) -> bool:
    """True для кода обычной функции или метода.

    У тел модулей и классов нет флага ``CO_OPTIMIZED``, а имена
    служебных кадров начинаются с ``<``.
    """
    return bool(code.co_flags & CO_OPTIMIZED) and not code.co_name.startswith("<")


def callable_identifier(frame: FrameType) -> str:
    """``<Owner>#<name>`` для кадра вызова."""
    code = frame.f_code
    owner, _, name = code.co_qualname.rpartition(".")
    if not owner:
        owner = frame.f_globals.get("__name__", "<unknown>")
    return f"{owner}#{name}"


class CallTracer:
    """Трассировщик на ``sys.setprofile``: пишет вызовы Python-функций,
    чей файл удовлетворяет предикату.

    Работает только в текущем потоке. Предыдущая profile-функция
    восстанавливается в ``stop()``.
    """

    def __init__(self, path_predicate: PathPredicate) -> None:
        self._path_predicate = path_predicate
        self._calls: set[str] = set()
        self._path_cache: dict[str, bool] = {}
        self._previous_profiler: Any = None
        self._active = False

    def start(self) -> None:
        if self._active:
            return
        self._calls = set()
        self._previous_profiler = sys.getprofile()
        self._active = True
        sys.setprofile(self._profile)

    def stop(self) -> frozenset[str]:
        if self._active:
            sys.setprofile(self._previous_profiler)
            self._previous_profiler = None
            self._active = False
        logger.debug("Записано %d уникальных вызовов", len(self._calls))
        return frozenset(self._calls)

    def __enter__(self) -> CallTracer:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    @property
    def calls(self) -> frozenset[str]:
        return frozenset(self._calls)

    def _profile(self, frame: FrameType, event: str, arg: object) -> None:  # noqa: ARG002
        if event != "call":
            return

        code = frame.f_code
        if not is_callable_code(code):
            return

        path = code.co_filename
        matches = self._path_cache.get(path)
        if matches is None:
            matches = self._path_predicate(path)
            self._path_cache[path] = matches
        if matches:
            self._calls.add(callable_identifier(frame))
