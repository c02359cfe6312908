"""Общие фабрики и фикстуры для тестов tsim."""

from __future__ import annotations

import json
from pathlib import Path

from tsim.models.signature import TestRecord
from tsim.services.similarity_service import SimilarityService


def make_record(test_id: str = "TestUser#test_save", **overrides) -> TestRecord:
    """Фабрика TestRecord с разумными дефолтами."""
    defaults: dict = {
        "id": test_id,
        "signature": frozenset({"User#save"}),
    }
    defaults.update(overrides)
    if not isinstance(defaults["signature"], frozenset):
        defaults["signature"] = frozenset(defaults["signature"])
    return TestRecord.model_validate(defaults)


def make_service(**signatures: set[str]) -> SimilarityService:
    """SimilarityService над синтетическими сигнатурами: ``make_service(a={"m1"}, b={"m2"})``."""
    return SimilarityService(
        {test_id: make_record(test_id, signature=sig) for test_id, sig in signatures.items()}
    )


def write_artifact(
    directory: Path,
    test_class: str,
    name: str,
    signature: list[str],
    **test_fields,
) -> Path:
    """Записать JSON-артефакт в формате, который пишет трассировщик."""
    directory.mkdir(parents=True, exist_ok=True)
    payload = {
        "test": {"class": test_class, "name": name, **test_fields},
        "signature": signature,
        "signature_size": len(set(signature)),
    }
    path = directory / f"{test_class}-{name}.json"
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path
