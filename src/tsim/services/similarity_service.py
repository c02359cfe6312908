"""Движок анализа схожести тестов по сигнатурам вызовов.

Снапшот (``test_id → TestRecord``) загружается один раз и дальше только
читается. Все производные структуры вычисляются лениво и кешируются
в пределах экземпляра:

- попарные схожести — отдельно для каждого порога;
- таблица лучших совпадений — одна на экземпляр (от порога не зависит).

Обход тестов всегда идёт в лексикографическом порядке ``test_id``: это
определяет порядок в парах и выбор лучшего совпадения при равных оценках.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType

from tsim.models.signature import TestRecord
from tsim.models.similarity import (
    BestMatch,
    SignatureDiff,
    SimilarityCluster,
    SimilarityPair,
    SimilarityStats,
    SimilarMatch,
    TestListEntry,
    TestListing,
)
from tsim.services.clustering_service import build_clusters
from tsim.services.stats_service import best_match_stats, calculate_concentration
from tsim.utils.similarity import jaccard

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.8
DEFAULT_SIMILAR_THRESHOLD = 0.5


class SimilarityService:
    """Находит похожие тесты, кластеры и сводную статистику по снапшоту."""

    def __init__(self, records: Mapping[str, TestRecord]) -> None:
        self._records: Mapping[str, TestRecord] = MappingProxyType(dict(records))
        self._test_ids: tuple[str, ...] = tuple(sorted(self._records))
        self._similarities_cache: dict[float, list[SimilarityPair]] = {}
        self._best_matches_cache: dict[str, BestMatch] | None = None

    @property
    def records(self) -> Mapping[str, TestRecord]:
        """Снапшот только для чтения."""
        return self._records

    @property
    def test_ids(self) -> tuple[str, ...]:
        return self._test_ids

    def __len__(self) -> int:
        return len(self._test_ids)

    def __contains__(self, test_id: object) -> bool:
        return test_id in self._records

    # --- Pairwise index ---

    def similarities(self, threshold: float = DEFAULT_THRESHOLD) -> list[SimilarityPair]:
        """Пары со схожестью ``>= threshold``, по убыванию оценки.

        Результат кешируется по значению порога: повторный вызов возвращает
        тот же самый список.
        """
        cached = self._similarities_cache.get(threshold)
        if cached is None:
            cached = self._compute_similarities(threshold)
            self._similarities_cache[threshold] = cached
        return cached

    def _compute_similarities(self, threshold: float) -> list[SimilarityPair]:
        results: list[SimilarityPair] = []
        ids = self._test_ids

        for i, test_a in enumerate(ids):
            signature_a = self._records[test_a].signature
            for test_b in ids[i + 1:]:
                score = jaccard(signature_a, self._records[test_b].signature)
                if score < threshold:
                    continue
                results.append(SimilarityPair(test_a=test_a, test_b=test_b, score=score))

        # sort стабилен: при равных оценках сохраняется порядок перебора пар
        results.sort(key=lambda p: -p.score)

        logger.debug(
            "Схожесть >= %.2f: %d пар из %d тестов",
            threshold,
            len(results),
            len(ids),
        )
        return results

    # --- Best match ---

    def best_match(self, test_id: str) -> BestMatch | None:
        """Самый похожий на ``test_id`` тест или None.

        None — если теста нет в снапшоте или в снапшоте нет других тестов.
        """
        if test_id not in self._records:
            return None
        if self._best_matches_cache is None:
            self._best_matches_cache = self._compute_best_matches()
        return self._best_matches_cache.get(test_id)

    def _compute_best_matches(self) -> dict[str, BestMatch]:
        result: dict[str, BestMatch] = {}

        for test_a in self._test_ids:
            signature_a = self._records[test_a].signature
            best_id: str | None = None
            best_score = 0.0
            for test_b in self._test_ids:
                if test_b == test_a:
                    continue
                score = jaccard(signature_a, self._records[test_b].signature)
                # Строгое сравнение: при равенстве остаётся первый по порядку
                if best_id is None or score > best_score:
                    best_id, best_score = test_b, score
            if best_id is not None:
                result[test_a] = BestMatch(
                    test_id=test_a, matched_test_id=best_id, score=best_score,
                )

        logger.debug("Вычислены лучшие совпадения для %d тестов", len(result))
        return result

    # --- Clusters ---

    def clusters(self, threshold: float = DEFAULT_THRESHOLD) -> list[SimilarityCluster]:
        """Кластеры из двух и более тестов, связанных схожестью ``>= threshold``."""
        pairs = self.similarities(threshold)
        if not pairs:
            return []

        return build_clusters(
            self._test_ids,
            pairs,
            {test_id: record.signature for test_id, record in self._records.items()},
        )

    # --- Statistics ---

    def summary(self, threshold: float = DEFAULT_THRESHOLD) -> SimilarityStats | None:
        """Сводная статистика по снапшоту; None для пустого снапшота."""
        if not self._records:
            return None

        pairs = self.similarities(threshold)
        scores = sorted(
            match.score if match else 0.0
            for match in (self.best_match(t) for t in self._test_ids)
        )
        avg, median, maximum = best_match_stats(scores)

        clusters = self.clusters(threshold)
        largest_cluster = max((c.member_count for c in clusters), default=0)

        stats = SimilarityStats(
            total_tests=len(self._records),
            best_match_avg=avg,
            best_match_median=median,
            best_match_max=maximum,
            cluster_count=len(clusters),
            largest_cluster=largest_cluster,
            concentration=calculate_concentration(pairs),
            threshold=threshold,
        )

        logger.info(
            "Проанализировано %d тестов: %d кластеров (порог %.2f)",
            stats.total_tests,
            stats.cluster_count,
            threshold,
        )
        return stats

    # --- Queries ---

    def find_similar(
        self,
        test_id: str,
        threshold: float = DEFAULT_SIMILAR_THRESHOLD,
    ) -> list[SimilarMatch]:
        """Все остальные тесты со схожестью ``>= threshold``, по убыванию оценки."""
        record = self._records.get(test_id)
        if record is None:
            return []

        results: list[SimilarMatch] = []
        for other_id in self._test_ids:
            if other_id == test_id:
                continue
            score = jaccard(record.signature, self._records[other_id].signature)
            if score < threshold:
                continue
            results.append(SimilarMatch(test=other_id, score=score))

        results.sort(key=lambda m: -m.score)
        return results

    def diff(self, test_a: str, test_b: str) -> SignatureDiff | None:
        """Сравнение сигнатур двух тестов; None, если хотя бы одного нет."""
        record_a = self._records.get(test_a)
        record_b = self._records.get(test_b)
        if record_a is None or record_b is None:
            return None

        sig_a, sig_b = record_a.signature, record_b.signature
        return SignatureDiff(
            only_in_a=sorted(sig_a - sig_b),
            only_in_b=sorted(sig_b - sig_a),
            common=sorted(sig_a & sig_b),
            score=jaccard(sig_a, sig_b),
        )

    def list_tests(self, threshold: float = DEFAULT_THRESHOLD) -> TestListing:
        """Все тесты с лучшими совпадениями, разбитые по порогу.

        Сортировка — по оценке лучшего совпадения по убыванию; тест без
        совпадения считается как 0.0.
        """
        entries = [
            TestListEntry(test=test_id, best_match=self.best_match(test_id))
            for test_id in self._test_ids
        ]
        entries.sort(key=lambda e: -e.score)

        redundant = [e for e in entries if e.best_match is not None and e.score >= threshold]
        others = [e for e in entries if e.best_match is None or e.score < threshold]

        return TestListing(
            total_tests=len(entries),
            threshold=threshold,
            potentially_redundant=redundant,
            other_tests=others,
        )
