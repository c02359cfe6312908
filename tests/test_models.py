"""Тесты Pydantic-моделей сигнатур и результатов анализа."""

from __future__ import annotations

from tsim.models.signature import SignatureArtifact, TestRecord
from tsim.models.similarity import BestMatch, TestListEntry, TestListing


def test_artifact_parses_class_alias_and_optional_location() -> None:
    artifact = SignatureArtifact.model_validate(
        {"test": {"class": "TestUser", "name": "test_save"}, "signature": ["User#save"]}
    )

    assert artifact.test.test_id == "TestUser#test_save"
    assert artifact.test.file is None
    assert artifact.signature_size is None


def test_artifact_allows_extra_fields() -> None:
    artifact = SignatureArtifact.model_validate(
        {"test": {"class": "T", "name": "n"}, "signature": [], "recorded_at": "2026-01-01"}
    )

    assert artifact.test.test_id == "T#n"


def test_record_from_artifact_collapses_duplicates() -> None:
    artifact = SignatureArtifact.model_validate(
        {
            "test": {"class": "TestUser", "name": "test_save", "file": "t.py", "line": 7},
            "signature": ["a", "a", "b"],
            "signature_size": 2,
        }
    )

    record = TestRecord.from_artifact(artifact)

    assert record.id == "TestUser#test_save"
    assert record.signature == frozenset({"a", "b"})
    assert record.location == "t.py:7"


def test_record_location_without_line() -> None:
    record = TestRecord(id="T#n", source_file="t.py")

    assert record.location == "t.py"


def test_listing_entry_score_defaults_to_zero() -> None:
    entry = TestListEntry(test="T#n")

    assert entry.score == 0.0


def test_listing_all_tests_keeps_partition_order() -> None:
    match = BestMatch(test_id="A#a", matched_test_id="B#b", score=0.9)
    listing = TestListing(
        threshold=0.8,
        potentially_redundant=[TestListEntry(test="A#a", best_match=match)],
        other_tests=[TestListEntry(test="C#c")],
    )

    assert [e.test for e in listing.all_tests] == ["A#a", "C#c"]
