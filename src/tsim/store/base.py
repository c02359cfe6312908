"""Абстрактный интерфейс для источников сигнатур тестов."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from tsim.models.signature import TestRecord


@runtime_checkable
class SignatureStore(Protocol):
    """Протокол, определяющий контракт любого хранилища сигнатур.

    Реализации:
    - JsonSignatureStore: один JSON-файл на тест в директории
    """

    def load(self) -> dict[str, TestRecord]:
        """Загрузить снапшот ``test_id → TestRecord``.

        Повторная запись для того же ``test_id`` перезаписывает предыдущую.
        """
        ...
