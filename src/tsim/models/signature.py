"""Pydantic-модели артефактов сигнатур и записей снапшота."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class TestInfo(BaseModel):
    """Идентификация теста внутри артефакта: класс, имя и (опционально) расположение."""

    __test__ = False

    model_config = ConfigDict(populate_by_name=True)

    test_class: str = Field(alias="class")
    name: str
    file: str | None = None
    line: int | None = None

    @property
    def test_id(self) -> str:
        return f"{self.test_class}#{self.name}"


class SignatureArtifact(BaseModel):
    """Артефакт одного прогона теста — то, что пишется на диск трассировщиком.

    ``signature_size`` — информационное поле, для анализа не требуется.
    ``extra="allow"`` позволяет читать артефакты с дополнительными полями.
    """

    model_config = ConfigDict(extra="allow")

    test: TestInfo
    signature: list[str] = Field(default_factory=list)
    signature_size: int | None = None


class TestRecord(BaseModel):
    """Доменная модель: записанный прогон теста в снапшоте."""

    __test__ = False

    model_config = ConfigDict(frozen=True)

    id: str
    signature: frozenset[str] = Field(default_factory=frozenset)
    source_file: str | None = None
    source_line: int | None = None

    @classmethod
    def from_artifact(cls, artifact: SignatureArtifact) -> TestRecord:
        """Построить запись из артефакта; повторы в сигнатуре схлопываются."""
        return cls(
            id=artifact.test.test_id,
            signature=frozenset(artifact.signature),
            source_file=artifact.test.file,
            source_line=artifact.test.line,
        )

    @property
    def location(self) -> str | None:
        """``file:line`` для вывода или None, если расположение не записано."""
        if not self.source_file:
            return None
        if self.source_line is None:
            return self.source_file
        return f"{self.source_file}:{self.source_line}"
