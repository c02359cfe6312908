"""Точка входа CLI tsim: поиск дублирующихся тестов по записанным сигнатурам."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import TYPE_CHECKING, Any

from tsim import __version__

if TYPE_CHECKING:
    from tsim.config import Settings
    from tsim.models.similarity import (
        SimilarityCluster,
        SimilarityStats,
        SimilarMatch,
        TestListing,
    )
    from tsim.services.similarity_service import SimilarityService

logger = logging.getLogger(__name__)

_MAX_COMMON_PATHS = 10


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tsim",
        description="Поиск дублирующихся тестов по множествам вызванных методов прикладного кода",
    )
    parser.add_argument(
        "--dir",
        dest="output_dir",
        default=None,
        help="Директория с артефактами сигнатур (переопределяет TSIM_OUTPUT_DIR)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Уровень логирования (переопределяет TSIM_LOG_LEVEL)",
    )
    parser.add_argument(
        "--output-format",
        choices=["text", "json"],
        default="text",
        help="Формат вывода (по умолчанию: text)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"tsim {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    threshold_help = "Порог схожести 0.0-1.0 (переопределяет TSIM_THRESHOLD)"
    summary = subparsers.add_parser("summary", help="Сводная статистика")
    summary.add_argument("--threshold", type=float, default=None, help=threshold_help)

    report = subparsers.add_parser("report", help="Сводка и кластеры похожих тестов")
    report.add_argument("--threshold", type=float, default=None, help=threshold_help)

    listing = subparsers.add_parser("list", help="Все тесты с их лучшим совпадением")
    listing.add_argument("--threshold", type=float, default=None, help=threshold_help)

    check = subparsers.add_parser("check", help="Похожие тесты для одного теста")
    check.add_argument("test_id", help="ID теста в формате TestClass#test_name")
    check.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Порог схожести 0.0-1.0 (переопределяет TSIM_CHECK_THRESHOLD)",
    )

    diff = subparsers.add_parser("diff", help="Сравнение сигнатур двух тестов")
    diff.add_argument("test_a")
    diff.add_argument("test_b")

    return parser


def run(args: argparse.Namespace) -> int:
    """Загрузить сигнатуры и выполнить команду. Возвращает код выхода."""
    # Отложенные импорты — чтобы --help работал быстро
    from tsim.config import Settings
    from tsim.exceptions import TsimError
    from tsim.logging_config import setup_logging
    from tsim.services.similarity_service import SimilarityService
    from tsim.store.json_store import JsonSignatureStore

    # 1. Загрузка настроек
    try:
        overrides: dict[str, object] = {}
        if args.output_dir is not None:
            overrides["output_dir"] = args.output_dir
        threshold = getattr(args, "threshold", None)
        if threshold is not None:
            key = "check_threshold" if args.command == "check" else "threshold"
            overrides[key] = threshold
        settings = Settings(**overrides)  # type: ignore[arg-type]
    except Exception as exc:
        # pydantic-settings выбрасывает ValidationError при некорректных значениях
        print(f"Ошибка конфигурации: {exc}", file=sys.stderr)
        return 2

    # 2. Настройка логирования
    setup_logging(args.log_level or settings.log_level)

    # 3. Загрузка снапшота и выполнение команды
    try:
        records = JsonSignatureStore(settings.output_dir).load()
        service = SimilarityService(records)
        return _dispatch(args, settings, service)
    except TsimError as exc:
        logger.error("Ошибка: %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Прервано пользователем")
        return 130


def _dispatch(args: argparse.Namespace, settings: Settings, service: SimilarityService) -> int:
    as_json = args.output_format == "json"

    if args.command == "summary":
        return _run_summary(service, settings.threshold, as_json)
    if args.command == "report":
        return _run_report(service, settings.threshold, as_json)
    if args.command == "list":
        return _run_list(service, settings.threshold, settings.output_dir, as_json)
    if args.command == "check":
        return _run_check(service, args.test_id, settings.check_threshold, as_json)
    if args.command == "diff":
        return _run_diff(service, args.test_a, args.test_b, as_json)

    logger.error("Неизвестная команда: %s", args.command)
    return 2


# --- Commands ---


def _run_summary(service: SimilarityService, threshold: float, as_json: bool) -> int:
    stats = service.summary(threshold)
    if as_json:
        _print_json(stats.model_dump() if stats is not None else None)
    else:
        _print_summary(stats)
    return 0


def _run_report(service: SimilarityService, threshold: float, as_json: bool) -> int:
    stats = service.summary(threshold)
    clusters = service.clusters(threshold)

    if as_json:
        from tsim.report.json_report import describe_test

        _print_json(
            {
                "summary": stats.model_dump() if stats is not None else None,
                "clusters": [
                    {
                        "tests": [describe_test(service, t) for t in c.member_test_ids],
                        "member_count": c.member_count,
                        "common_methods": c.common_methods,
                    }
                    for c in clusters
                ],
            }
        )
        return 0

    _print_summary(stats)
    _print_clusters(service, clusters)
    return 0


def _run_list(
    service: SimilarityService,
    threshold: float,
    output_dir: str,
    as_json: bool,
) -> int:
    listing = service.list_tests(threshold)

    if as_json:
        from tsim.report.json_report import list_as_json

        _print_json(list_as_json(service, listing))
        return 0

    if listing.total_tests == 0:
        print(f"Записанные тесты не найдены в {output_dir}")
        return 0

    _print_summary(service.summary(threshold))
    _print_listing(service, listing)
    return 0


def _run_check(
    service: SimilarityService,
    test_id: str,
    threshold: float,
    as_json: bool,
) -> int:
    if test_id not in service:
        if as_json:
            _print_json({"error": "Test not found", "test_id": test_id})
            return 1
        print(f"Тест не найден: {test_id}")
        print("Доступные тесты:")
        for available in service.test_ids:
            print(f"  {available}")
        return 1

    similar = service.find_similar(test_id, threshold)

    if as_json:
        from tsim.report.json_report import check_as_json

        _print_json(check_as_json(service, test_id, similar))
        return 0

    _print_summary(service.summary(threshold))
    _print_check(service, test_id, similar, threshold)
    return 0


def _run_diff(service: SimilarityService, test_a: str, test_b: str, as_json: bool) -> int:
    diff = service.diff(test_a, test_b)
    if diff is None:
        missing = [t for t in (test_a, test_b) if t not in service]
        if as_json:
            _print_json({"error": "Test not found", "test_id": missing})
        else:
            print(f"Тест не найден: {', '.join(missing)}")
        return 1

    if as_json:
        _print_json(diff.model_dump())
        return 0

    from tsim.report.json_report import percent

    print(f"{test_a} <-> {test_b}: {percent(diff.score)}% схожести")
    print("=" * 60)
    _print_method_block(f"Только в {_short_name(test_a)}", diff.only_in_a)
    _print_method_block(f"Только в {_short_name(test_b)}", diff.only_in_b)
    _print_method_block("Общие", diff.common)
    return 0


# --- Text output ---


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _print_summary(stats: SimilarityStats | None) -> None:
    """Вывод сводки; для пустого снапшота ничего не печатается."""
    if stats is None:
        return

    threshold_pct = int(stats.threshold * 100)

    print("Сводка схожести тестов")
    print("-" * 22)
    print(f"Всего тестов: {stats.total_tests}")
    print()
    print("Схожесть с лучшим совпадением:")
    print(f"  среднее: {stats.best_match_avg:.2f}")
    print(f"  медиана: {stats.best_match_median:.2f}")
    print(f"  максимум: {stats.best_match_max:.2f}")
    print()
    print(f"Кластеры схожести (>={threshold_pct}%):")
    print(f"  кластеров: {stats.cluster_count}")
    if stats.largest_cluster > 0:
        print(f"  крупнейший: {stats.largest_cluster} тестов")
    print()
    if stats.concentration is not None:
        print("Концентрация схожести:")
        print(
            f"  на топ-20% тестов приходится {stats.concentration}% "
            f"пар с высокой схожестью"
        )
        print()


def _print_clusters(service: SimilarityService, clusters: list[SimilarityCluster]) -> None:
    """Вывод кластеров: участники с расположением и общие пути кода."""
    if not clusters:
        print("Кластеры схожести не найдены.")
        return

    print("Кластеры")
    print("-" * 8)

    for i, cluster in enumerate(clusters, 1):
        print()
        print(f"Кластер #{i} ({cluster.member_count} тестов):")
        for test_id in cluster.member_test_ids:
            print(f"  {test_id}")
            location = service.records[test_id].location
            if location:
                print(f"    {location}")

        common = cluster.common_methods
        if common:
            print()
            print(f"  Общие пути кода ({len(common)}):")
            for method in common[:_MAX_COMMON_PATHS]:
                print(f"    {method}")
            if len(common) > _MAX_COMMON_PATHS:
                print(f"    ... и ещё {len(common) - _MAX_COMMON_PATHS}")


def _print_listing(service: SimilarityService, listing: TestListing) -> None:
    from tsim.report.json_report import percent

    threshold_pct = int(listing.threshold * 100)

    print(f"Записано тестов: {listing.total_tests}")
    print("=" * 70)
    print()

    if listing.potentially_redundant:
        print(f"Возможно избыточные (>= {threshold_pct}% схожести):")
        print("-" * 70)
        for entry in listing.potentially_redundant:
            print(f"  {percent(entry.score)}%  {entry.test}")
            location = service.records[entry.test].location
            if location:
                print(f"        {location}")
            print(f"        -> {entry.best_match.matched_test_id}")
        print()

    if listing.other_tests:
        print("Остальные тесты:")
        print("-" * 70)
        for entry in listing.other_tests:
            if entry.best_match is not None:
                print(f"  {percent(entry.score)}%  {entry.test}")
            else:
                print(f"    -   {entry.test}")
        print()

    print("=" * 70)
    print("Подробнее: tsim check 'TestClass#test_name'")


def _print_check(
    service: SimilarityService,
    test_id: str,
    similar: list[SimilarMatch],
    threshold: float,
) -> None:
    from tsim.report.json_report import percent

    threshold_pct = int(threshold * 100)
    if not similar:
        print(f"Похожие тесты для {test_id} не найдены (порог: {threshold_pct}%)")
        return

    print(f"Похожие тесты для: {test_id}")
    location = service.records[test_id].location
    if location:
        print(f"  {location}")
    print("=" * 60)
    print()

    for match in similar:
        diff = service.diff(test_id, match.test)
        print(f"{percent(match.score)}% схожести: {match.test}")
        match_location = service.records[match.test].location
        if match_location:
            print(f"  {match_location}")
        print("-" * 60)

        if diff.only_in_a:
            print(f"  Только в {_short_name(test_id)}:")
            for method in diff.only_in_a:
                print(f"    - {method}")
        if diff.only_in_b:
            print(f"  Только в {_short_name(match.test)}:")
            for method in diff.only_in_b:
                print(f"    - {method}")

        print(f"  Общих методов: {len(diff.common)}")
        print()


def _print_method_block(title: str, methods: list[str]) -> None:
    print(f"{title} ({len(methods)}):")
    for method in methods:
        print(f"  - {method}")
    print()


def _short_name(test_id: str) -> str:
    """``TestClass#test_name`` → ``test_name``."""
    return test_id.rsplit("#", 1)[-1]


def main(argv: list[str] | None = None) -> None:
    """Синхронная точка входа для CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    sys.exit(run(args))


if __name__ == "__main__":
    main()
