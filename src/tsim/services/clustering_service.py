"""Группировка похожих тестов в кластеры (компоненты связности).

Алгоритм:
1. Каждый тест снапшота — отдельное множество.
2. Для каждой пары со схожестью не ниже порога множества объединяются
   (union-find со сжатием путей).
3. Тесты группируются по корню, группы из одного теста отбрасываются.

Состав кластеров зависит только от набора рёбер, но не от их порядка.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Set

from tsim.models.similarity import SimilarityCluster, SimilarityPair

logger = logging.getLogger(__name__)


class DisjointSet:
    """Union-find над строковыми идентификаторами тестов.

    Корнем объединённого множества становится лексикографически меньший
    корень, поэтому результат детерминирован.
    """

    def __init__(self, items: Iterable[str]) -> None:
        self._parent: dict[str, str] = {item: item for item in items}

    def find(self, item: str) -> str:
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        # Сжатие путей
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, a: str, b: str) -> None:
        root_a, root_b = self.find(a), self.find(b)
        if root_a == root_b:
            return
        if root_a < root_b:
            self._parent[root_b] = root_a
        else:
            self._parent[root_a] = root_b

    def groups(self) -> list[list[str]]:
        """Все множества; порядок членов — порядок добавления элементов."""
        grouped: dict[str, list[str]] = {}
        for item in self._parent:
            grouped.setdefault(self.find(item), []).append(item)
        return list(grouped.values())


def common_methods(signatures: Iterable[Set[str]]) -> list[str]:
    """Методы, вызываемые всеми тестами группы (отсортированы).

    Пустой результат допустим: высокая попарная схожесть не гарантирует
    наличия метода, общего для всех членов кластера.
    """
    common: set[str] | None = None
    for signature in signatures:
        common = set(signature) if common is None else common & signature
        if not common:
            return []
    return sorted(common) if common else []


def build_clusters(
    test_ids: Iterable[str],
    pairs: Iterable[SimilarityPair],
    signatures: Mapping[str, Set[str]],
) -> list[SimilarityCluster]:
    """Построить кластеры из тестов и пар, прошедших порог.

    Кластеры упорядочены по размеру (по убыванию), затем по первому тесту.
    """
    disjoint = DisjointSet(test_ids)
    edge_count = 0
    for pair in pairs:
        disjoint.union(pair.test_a, pair.test_b)
        edge_count += 1

    clusters: list[SimilarityCluster] = []
    for group in disjoint.groups():
        if len(group) < 2:
            continue
        members = sorted(group)
        clusters.append(
            SimilarityCluster(
                member_test_ids=members,
                member_count=len(members),
                common_methods=common_methods(signatures[m] for m in members),
            )
        )

    clusters.sort(key=lambda c: (-c.member_count, c.member_test_ids[0]))

    logger.debug(
        "Построено %d кластеров из %d рёбер",
        len(clusters),
        edge_count,
    )
    return clusters
