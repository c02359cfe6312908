"""pytest-плагин: записывает сигнатуру каждого теста в JSON-артефакт.

Подключается через entry point ``pytest11`` и ничего не делает без
флага ``--tsim-record``.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from tsim.config import Settings
from tsim.exceptions import ConfigurationError
from tsim.models.signature import SignatureArtifact, TestInfo
from tsim.store.json_store import JsonSignatureStore
from tsim.tracing.tracer import CallTracer, PathPredicate, path_filter_predicate

logger = logging.getLogger(__name__)


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("tsim", "поиск дублирующихся тестов")
    group.addoption(
        "--tsim-record",
        action="store_true",
        default=False,
        help="Записывать сигнатуры вызовов прикладного кода для каждого теста",
    )
    group.addoption(
        "--tsim-output-dir",
        default=None,
        help="Директория артефактов (переопределяет TSIM_OUTPUT_DIR)",
    )
    group.addoption(
        "--tsim-path-filter",
        default=None,
        help="Регулярное выражение для путей прикладного кода (переопределяет TSIM_PATH_FILTER)",
    )
    group.addoption(
        "--tsim-clear",
        action="store_true",
        default=False,
        help="Удалить старые артефакты перед прогоном",
    )


def pytest_configure(config: pytest.Config) -> None:
    if not config.getoption("tsim_record"):
        return

    try:
        settings = Settings()
    except ValidationError as exc:
        raise pytest.UsageError(f"Ошибка конфигурации tsim: {exc}") from exc

    output_dir = config.getoption("tsim_output_dir") or settings.output_dir
    path_filter = config.getoption("tsim_path_filter") or settings.path_filter

    try:
        predicate = path_filter_predicate(path_filter)
    except ConfigurationError as exc:
        raise pytest.UsageError(str(exc)) from exc

    store = JsonSignatureStore(Path(config.rootpath) / output_dir)
    # Чистит только контроллер xdist
    if config.getoption("tsim_clear") and not hasattr(config, "workerinput"):
        store.clear()

    recorder = SignatureRecorder(store, predicate)
    config.pluginmanager.register(recorder, "tsim-recorder")
    logger.debug("Запись сигнатур включена: %s (фильтр %r)", output_dir, path_filter)


def describe_item(item: pytest.Item) -> TestInfo:
    """Класс/имя/расположение теста для артефакта.

    Для тестов вне класса в качестве «класса» берётся имя модуля.
    ``item.location`` уже содержит путь относительно rootdir и строку с 0.
    """
    cls = getattr(item, "cls", None)
    if cls is not None:
        test_class = cls.__name__
    else:
        module = getattr(item, "module", None)
        test_class = module.__name__ if module is not None else item.nodeid.split("::", 1)[0]

    relpath, lineno, _ = item.location
    return TestInfo(
        test_class=test_class,
        name=item.name,
        file=relpath,
        line=lineno + 1 if lineno is not None else None,
    )


class SignatureRecorder:
    """Трассирует каждый тест целиком и пишет артефакт.

    В сигнатуру входят все фазы теста: setup, call и teardown, так что
    прикладной код, вызванный из фикстур, тоже учитывается.
    """

    def __init__(self, store: JsonSignatureStore, path_predicate: PathPredicate) -> None:
        self._store = store
        self._path_predicate = path_predicate

    @pytest.hookimpl(hookwrapper=True)
    def pytest_runtest_protocol(self, item: pytest.Item, nextitem: pytest.Item | None):  # noqa: ARG002
        tracer = CallTracer(self._path_predicate)
        tracer.start()
        # Исключения фаз не пробрасываются в hookwrapper — остаются в отчётах
        yield
        signature = tracer.stop()

        artifact = SignatureArtifact(
            test=describe_item(item),
            signature=sorted(signature),
            signature_size=len(signature),
        )
        self._store.write(artifact)

    def pytest_terminal_summary(self, terminalreporter) -> None:
        terminalreporter.write_line(
            f"tsim: сигнатуры тестов записаны в {self._store.output_dir}"
        )
