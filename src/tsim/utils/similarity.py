"""Коэффициент Жаккара для сигнатур тестов."""

from __future__ import annotations

from collections.abc import Set


def jaccard(set_a: Set[str], set_b: Set[str]) -> float:
    """``|A ∩ B| / |A ∪ B|``.

    Два пустых множества дают 0.0, а не 1.0: тесты, не затронувшие
    прикладной код, не считаются похожими друг на друга.
    """
    if not set_a and not set_b:
        return 0.0

    if len(set_a) > len(set_b):
        set_a, set_b = set_b, set_a
    intersection = sum(1 for item in set_a if item in set_b)
    union = len(set_a) + len(set_b) - intersection
    return intersection / union
