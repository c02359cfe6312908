"""Агрегаты по лучшим совпадениям и концентрации пар с высокой схожестью."""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Sequence

import numpy as np

from tsim.models.similarity import SimilarityPair

DEFAULT_TOP_PERCENT = 0.2


def best_match_stats(scores: Sequence[float]) -> tuple[float, float, float]:
    """Вернуть avg/median/max по списку оценок лучших совпадений.

    Для чётного количества медиана — среднее двух центральных значений.
    """
    if not scores:
        return 0.0, 0.0, 0.0

    values = np.asarray(scores, dtype=np.float64)
    return float(values.mean()), float(np.median(values)), float(values.max())


def calculate_concentration(
    pairs: Sequence[SimilarityPair],
    top_percent: float = DEFAULT_TOP_PERCENT,
) -> int | None:
    """Какой процент пар с высокой схожестью затрагивает топ-N% «активных» тестов.

    Тесты ранжируются по числу пар, в которых участвуют; при равенстве —
    по порядку первого появления. Размер топа считается от числа тестов,
    участвующих хотя бы в одной паре, а не от размера снапшота.

    Returns:
        Целый процент (округление half-up) или None, если пар нет.
    """
    if not pairs:
        return None

    pair_count: Counter[str] = Counter()
    for pair in pairs:
        pair_count[pair.test_a] += 1
        pair_count[pair.test_b] += 1

    # round() убирает артефакты float: 15 * 0.2 == 3.0000000000000004
    top_count = max(1, math.ceil(round(len(pair_count) * top_percent, 9)))
    top_tests = {test_id for test_id, _ in pair_count.most_common(top_count)}

    pairs_with_top = sum(
        1 for p in pairs if p.test_a in top_tests or p.test_b in top_tests
    )
    return math.floor(pairs_with_top / len(pairs) * 100 + 0.5)
