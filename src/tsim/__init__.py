"""tsim — поиск дублирующихся тестов по сигнатурам вызовов прикладного кода."""

__version__ = "0.1.0"
