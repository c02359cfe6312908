"""Машиночитаемые представления результатов анализа для вывода ``--output-format json``."""

from __future__ import annotations

from typing import Any

from tsim.models.similarity import SimilarMatch, TestListing
from tsim.services.similarity_service import SimilarityService


def percent(score: float) -> float:
    """Оценка 0..1 → проценты с одним знаком после запятой."""
    return round(score * 100, 1)


def threshold_percent(threshold: float) -> int:
    return int(threshold * 100)


def describe_test(service: SimilarityService, test_id: str) -> dict[str, Any]:
    """ID теста и, если записано, его расположение."""
    result: dict[str, Any] = {"id": test_id}
    record = service.records.get(test_id)
    if record is None:
        return result
    if record.source_file:
        result["file"] = record.source_file
    if record.source_line is not None:
        result["line"] = record.source_line
    return result


def list_as_json(service: SimilarityService, listing: TestListing) -> dict[str, Any]:
    all_tests: list[dict[str, Any]] = []
    for entry in listing.all_tests:
        item = describe_test(service, entry.test)
        if entry.best_match is not None:
            item["max_similarity"] = percent(entry.best_match.score)
            item["most_similar_to"] = entry.best_match.matched_test_id
        all_tests.append(item)

    return {
        "total_tests": listing.total_tests,
        "threshold": threshold_percent(listing.threshold),
        "potentially_redundant": [
            {
                "test": describe_test(service, entry.test),
                "most_similar": describe_test(service, entry.best_match.matched_test_id),
                "similarity": percent(entry.best_match.score),
            }
            for entry in listing.potentially_redundant
            if entry.best_match is not None
        ],
        "all_tests": all_tests,
    }


def check_as_json(
    service: SimilarityService,
    test_id: str,
    similar: list[SimilarMatch],
) -> dict[str, Any]:
    similar_tests: list[dict[str, Any]] = []
    for match in similar:
        diff = service.diff(test_id, match.test)
        if diff is None:
            continue
        similar_tests.append(
            {
                "test": describe_test(service, match.test),
                "similarity": percent(match.score),
                "only_in_target": diff.only_in_a,
                "only_in_similar": diff.only_in_b,
                "common_count": len(diff.common),
            }
        )

    return {
        "test": describe_test(service, test_id),
        "similar_tests": similar_tests,
    }
