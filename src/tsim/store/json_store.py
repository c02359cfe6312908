"""Файловое хранилище сигнатур: один JSON-артефакт на тест."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from pydantic import ValidationError

from tsim.exceptions import SignatureStoreError
from tsim.models.signature import SignatureArtifact, TestRecord

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_RE = re.compile(r"[/\\]")


def filename_for(artifact: SignatureArtifact) -> str:
    """Имя файла артефакта: ``<class>-<name>.json``."""
    raw = f"{artifact.test.test_class}-{artifact.test.name}.json"
    return _UNSAFE_FILENAME_RE.sub("_", raw)


class JsonSignatureStore:
    """Реализация SignatureStore, читающая и пишущая JSON-файлы на диске.

    Файлы читаются в отсортированном порядке; запись для уже встреченного
    ``test_id`` перезаписывает предыдущую. Файл с ошибкой разбора или
    валидации логируется и пропускается.
    """

    def __init__(self, output_dir: str | Path) -> None:
        self._output_dir = Path(output_dir)

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    def load(self) -> dict[str, TestRecord]:
        """Загрузить все артефакты из директории.

        Raises:
            SignatureStoreError: Если путь существует, но не является директорией,
                или если нет прав доступа к директории.
        """
        if not self._output_dir.exists():
            logger.warning(
                "Директория сигнатур не найдена: %s. Снапшот будет пустым.",
                self._output_dir,
            )
            return {}

        if not self._output_dir.is_dir():
            raise SignatureStoreError(
                "Путь к сигнатурам не является директорией", str(self._output_dir),
            )

        try:
            paths = sorted(p for p in self._output_dir.glob("*.json") if p.is_file())
        except PermissionError as exc:
            raise SignatureStoreError(
                "Нет прав доступа к директории сигнатур", str(self._output_dir),
            ) from exc

        records: dict[str, TestRecord] = {}
        for path in paths:
            try:
                artifact = SignatureArtifact.model_validate_json(
                    path.read_text(encoding="utf-8")
                )
            except PermissionError as exc:
                raise SignatureStoreError(
                    "Нет прав доступа к файлу сигнатуры", str(path),
                ) from exc
            except (ValidationError, OSError, UnicodeDecodeError) as exc:
                logger.warning("Ошибка чтения артефакта %s: %s. Пропущен.", path, exc)
                continue

            record = TestRecord.from_artifact(artifact)
            if record.id in records:
                logger.debug(
                    "Повторная запись для '%s' в %s перезаписывает предыдущую",
                    record.id, path,
                )
            records[record.id] = record
            logger.debug(
                "Загружена сигнатура: %s (%d методов) из %s",
                record.id, len(record.signature), path,
            )

        logger.info(
            "Сигнатуры загружены: %d тестов из %s",
            len(records),
            self._output_dir,
        )
        return records

    def write(self, artifact: SignatureArtifact) -> Path:
        """Записать артефакт одного теста; директория создаётся при необходимости."""
        self._output_dir.mkdir(parents=True, exist_ok=True)

        payload = artifact.model_copy(
            update={
                "signature": sorted(set(artifact.signature)),
                "signature_size": len(set(artifact.signature)),
            }
        )
        path = self._output_dir / filename_for(artifact)
        path.write_text(
            json.dumps(
                payload.model_dump(by_alias=True, exclude_none=True),
                indent=2,
                ensure_ascii=False,
            ),
            encoding="utf-8",
        )
        logger.debug("Записан артефакт %s", path)
        return path

    def clear(self) -> int:
        """Удалить ранее записанные артефакты. Возвращает число удалённых файлов."""
        if not self._output_dir.is_dir():
            return 0

        removed = 0
        for path in self._output_dir.glob("*.json"):
            path.unlink()
            removed += 1
        if removed:
            logger.info("Удалено %d старых артефактов из %s", removed, self._output_dir)
        return removed
