"""Тесты SimilarityService: попарные схожести, лучшие совпадения, запросы."""

from __future__ import annotations

import pytest

from conftest import make_record, make_service
from tsim.services.similarity_service import SimilarityService


def _pair_keys(pairs) -> list[tuple[str, str]]:
    return [(p.test_a, p.test_b) for p in pairs]


# --- similarities ---


def test_identical_signatures_form_single_pair() -> None:
    service = make_service(
        a={"m1", "m2", "m3"},
        b={"m1", "m2", "m3"},
        c={"x", "y", "z"},
    )

    pairs = service.similarities(0.8)

    assert _pair_keys(pairs) == [("a", "b")]
    assert pairs[0].score == 1.0


def test_threshold_controls_qualifying_pairs() -> None:
    service = make_service(
        a={"m1", "m2", "m3", "m4"},
        b={"m1", "m2", "m3"},
        c={"m1", "m2", "m3", "m4"},
    )

    high = service.similarities(0.9)
    low = service.similarities(0.7)

    assert _pair_keys(high) == [("a", "c")]
    assert len(low) == 3
    assert low[0].score == 1.0
    assert [p.score for p in low] == sorted((p.score for p in low), reverse=True)


def test_pairs_with_equal_scores_keep_enumeration_order() -> None:
    service = make_service(
        a={"m1", "m2", "m3", "m4"},
        b={"m1", "m2", "m3"},
        c={"m1", "m2", "m3", "m4"},
    )

    assert _pair_keys(service.similarities(0.7)) == [("a", "c"), ("a", "b"), ("b", "c")]


def test_higher_threshold_yields_subset_of_pairs() -> None:
    service = make_service(
        a={"m1", "m2", "m3", "m4"},
        b={"m1", "m2", "m3"},
        c={"m1", "m2"},
        d={"m1", "x"},
        e={"x", "y"},
    )

    thresholds = [0.0, 0.1, 0.25, 0.5, 0.75, 1.0]
    for low, high in zip(thresholds, thresholds[1:]):
        low_pairs = set(_pair_keys(service.similarities(low)))
        high_pairs = set(_pair_keys(service.similarities(high)))
        assert high_pairs <= low_pairs


def test_every_unordered_pair_is_considered_once() -> None:
    service = make_service(a={"m"}, b={"m"}, c={"m"}, d={"m"})

    pairs = service.similarities(0.0)

    assert len(pairs) == 6
    assert len(set(_pair_keys(pairs))) == 6
    assert all(p.test_a < p.test_b for p in pairs)


def test_similarities_are_cached_per_threshold() -> None:
    """Повторный вызов с тем же порогом возвращает тот же объект."""
    service = make_service(a={"m1"}, b={"m1"}, c={"m2"})

    first = service.similarities(0.8)

    assert service.similarities(0.8) is first
    assert service.similarities(0.5) is not first


def test_separate_instances_do_not_share_cache() -> None:
    records = {
        "a": make_record("a", signature={"m1"}),
        "b": make_record("b", signature={"m1"}),
    }
    first = SimilarityService(records)
    second = SimilarityService(records)

    assert first.similarities(0.8) is not second.similarities(0.8)
    assert first.similarities(0.8) == second.similarities(0.8)


def test_snapshot_is_read_only_and_detached_from_input() -> None:
    records = {"a": make_record("a", signature={"m1"})}
    service = SimilarityService(records)

    records["b"] = make_record("b", signature={"m1"})

    assert "b" not in service
    with pytest.raises(TypeError):
        service.records["c"] = make_record("c")  # type: ignore[index]


# --- best_match ---


def test_best_match_picks_highest_score() -> None:
    service = make_service(
        a={"m1", "m2", "m3", "m4"},
        b={"m1", "m2", "m3"},
        c={"x"},
    )

    match = service.best_match("a")

    assert match is not None
    assert match.test_id == "a"
    assert match.matched_test_id == "b"
    assert match.score == 0.75


def test_best_match_tie_is_broken_lexicographically() -> None:
    """При равных оценках выигрывает тест с меньшим ID, независимо от порядка загрузки."""
    service = make_service(
        zeta={"m1", "m2"},
        beta={"m1", "m2"},
        target={"m1", "m2"},
        alpha={"m1", "m2"},
    )

    match = service.best_match("target")

    assert match is not None
    assert match.matched_test_id == "alpha"


def test_best_match_is_stable_across_calls() -> None:
    service = make_service(a={"m1", "m2"}, b={"m1"}, c={"m2"})

    assert service.best_match("a") == service.best_match("a")
    assert service.best_match("b") == service.best_match("b")


def test_best_match_unknown_test_is_none() -> None:
    service = make_service(a={"m1"}, b={"m1"})

    assert service.best_match("missing") is None


def test_best_match_single_test_is_none() -> None:
    service = make_service(only={"m1"})

    assert service.best_match("only") is None


def test_best_match_with_zero_score_still_reported() -> None:
    service = make_service(a={"m1"}, b={"m2"})

    match = service.best_match("a")

    assert match is not None
    assert match.matched_test_id == "b"
    assert match.score == 0.0


# --- summary ---


def test_summary_for_identical_pair_and_outlier() -> None:
    service = make_service(
        a={"m1", "m2", "m3"},
        b={"m1", "m2", "m3"},
        c={"x", "y", "z"},
    )

    stats = service.summary(0.8)

    assert stats is not None
    assert stats.total_tests == 3
    assert stats.best_match_avg == pytest.approx(2 / 3)
    assert stats.best_match_median == 1.0
    assert stats.best_match_max == 1.0
    assert stats.cluster_count == 1
    assert stats.largest_cluster == 2
    assert stats.concentration == 100
    assert stats.threshold == 0.8


def test_summary_empty_snapshot_is_none() -> None:
    service = SimilarityService({})

    assert service.summary() is None


def test_summary_single_test() -> None:
    service = make_service(only={"m1", "m2"})

    stats = service.summary(0.8)

    assert stats is not None
    assert stats.total_tests == 1
    assert stats.cluster_count == 0
    assert stats.largest_cluster == 0
    assert stats.best_match_max == 0.0
    assert stats.concentration is None


def test_summary_without_qualifying_pairs_has_no_concentration() -> None:
    service = make_service(a={"m1"}, b={"m2"}, c={"m3"})

    stats = service.summary(0.8)

    assert stats is not None
    assert stats.cluster_count == 0
    assert stats.concentration is None


# --- find_similar ---


def test_find_similar_sorted_and_excludes_self() -> None:
    service = make_service(
        target={"m1", "m2", "m3", "m4"},
        close={"m1", "m2", "m3"},
        same={"m1", "m2", "m3", "m4"},
        far={"m1", "x", "y", "z"},
    )

    results = service.find_similar("target", threshold=0.5)

    assert [r.test for r in results] == ["same", "close"]
    assert [r.score for r in results] == [1.0, 0.75]


def test_find_similar_unknown_test_returns_empty_list() -> None:
    service = make_service(a={"m1"}, b={"m1"})

    assert service.find_similar("missing") == []


def test_find_similar_no_matches_returns_empty_list() -> None:
    service = make_service(a={"m1"}, b={"m2"})

    assert service.find_similar("a", threshold=0.5) == []


# --- diff ---


def test_diff_splits_signatures() -> None:
    service = make_service(a={"validate", "save"}, b={"save"})

    diff = service.diff("a", "b")

    assert diff is not None
    assert diff.only_in_a == ["validate"]
    assert diff.only_in_b == []
    assert diff.common == ["save"]
    assert diff.score == 0.5


def test_diff_lists_are_sorted() -> None:
    service = make_service(a={"z", "b", "m", "c"}, b={"y", "a", "m", "c"})

    diff = service.diff("a", "b")

    assert diff is not None
    assert diff.only_in_a == ["b", "z"]
    assert diff.only_in_b == ["a", "y"]
    assert diff.common == ["c", "m"]


def test_diff_unknown_test_is_none() -> None:
    service = make_service(a={"m1"})

    assert service.diff("a", "missing") is None
    assert service.diff("missing", "a") is None


# --- list_tests ---


def test_list_tests_partitions_by_threshold() -> None:
    service = make_service(
        a={"m1", "m2", "m3"},
        b={"m1", "m2", "m3"},
        c={"m1", "x", "y"},
    )

    listing = service.list_tests(0.8)

    assert listing.total_tests == 3
    assert [e.test for e in listing.potentially_redundant] == ["a", "b"]
    assert [e.test for e in listing.other_tests] == ["c"]
    assert listing.other_tests[0].best_match is not None
    assert listing.other_tests[0].score == pytest.approx(0.2)


def test_list_tests_sorted_by_best_score() -> None:
    service = make_service(
        a={"m1", "m2", "m3", "m4"},
        b={"m1", "m2", "m3"},
        c={"m1", "x"},
    )

    listing = service.list_tests(0.0)

    scores = [e.score for e in listing.all_tests]
    assert scores == sorted(scores, reverse=True)


def test_list_tests_empty_snapshot() -> None:
    listing = SimilarityService({}).list_tests(0.8)

    assert listing.total_tests == 0
    assert listing.potentially_redundant == []
    assert listing.other_tests == []


def test_list_tests_single_test_is_not_redundant_even_at_zero_threshold() -> None:
    listing = make_service(only={"m1"}).list_tests(0.0)

    assert listing.potentially_redundant == []
    assert [e.test for e in listing.other_tests] == ["only"]
    assert listing.other_tests[0].best_match is None
