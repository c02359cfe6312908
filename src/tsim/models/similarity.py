"""Pydantic-модели результатов анализа схожести тестов."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SimilarityPair(BaseModel):
    """Неупорядоченная пара тестов с коэффициентом Жаккара.

    ``test_a`` всегда предшествует ``test_b`` в порядке обхода снапшота.
    """

    test_a: str
    test_b: str
    score: float = Field(ge=0.0, le=1.0)


class BestMatch(BaseModel):
    """Самый похожий на ``test_id`` тест среди остальных тестов снапшота."""

    test_id: str
    matched_test_id: str
    score: float = Field(ge=0.0, le=1.0)


class SimilarMatch(BaseModel):
    """Элемент результата ``find_similar``."""

    test: str
    score: float = Field(ge=0.0, le=1.0)


class SignatureDiff(BaseModel):
    """Поэлементное сравнение сигнатур двух тестов (списки отсортированы)."""

    only_in_a: list[str] = Field(default_factory=list)
    only_in_b: list[str] = Field(default_factory=list)
    common: list[str] = Field(default_factory=list)
    score: float = Field(ge=0.0, le=1.0)


class SimilarityCluster(BaseModel):
    """Кластер — компонента связности графа схожести при заданном пороге."""

    member_test_ids: list[str] = Field(default_factory=list)
    member_count: int = 0
    common_methods: list[str] = Field(
        default_factory=list,
        description="Методы, вызываемые всеми тестами кластера (может быть пустым)",
    )


class SimilarityStats(BaseModel):
    """Сводная статистика по снапшоту при заданном пороге."""

    total_tests: int
    best_match_avg: float
    best_match_median: float
    best_match_max: float
    cluster_count: int
    largest_cluster: int = 0
    concentration: int | None = Field(
        default=None,
        description="Доля (%) пар с высокой схожестью, приходящаяся на топ-20% тестов",
    )
    threshold: float


class TestListEntry(BaseModel):
    """Тест вместе с его лучшим совпадением."""

    __test__ = False

    test: str
    best_match: BestMatch | None = None

    @property
    def score(self) -> float:
        return self.best_match.score if self.best_match else 0.0


class TestListing(BaseModel):
    """Результат ``list_tests``: все тесты, разбитые по порогу."""

    __test__ = False

    total_tests: int = 0
    threshold: float
    potentially_redundant: list[TestListEntry] = Field(default_factory=list)
    other_tests: list[TestListEntry] = Field(default_factory=list)

    @property
    def all_tests(self) -> list[TestListEntry]:
        return [*self.potentially_redundant, *self.other_tests]
