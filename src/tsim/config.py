"""Конфигурация приложения, загружаемая из переменных окружения."""

import re

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Конфигурация приложения tsim.

    Все значения задаются через переменные окружения с префиксом ``TSIM_``
    или через файл ``.env`` в рабочей директории.
    """

    model_config = SettingsConfigDict(
        env_prefix="TSIM_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    output_dir: str = Field(
        default="tmp/test_similarity",
        description="Директория с артефактами сигнатур (по одному JSON-файлу на тест)",
    )
    path_filter: str = Field(
        default="/app/",
        description="Регулярное выражение: путь к файлу, считающийся прикладным кодом",
    )

    threshold: float = Field(
        default=0.8, ge=0.0, le=1.0,
        description="Порог схожести для summary/report/list (0.0-1.0)",
    )
    check_threshold: float = Field(
        default=0.5, ge=0.0, le=1.0,
        description="Порог схожести для поиска похожих тестов командой check (0.0-1.0)",
    )

    log_level: str = Field(default="INFO", description="Уровень логирования")

    @field_validator("path_filter")
    @classmethod
    def _validate_path_filter(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"Некорректное регулярное выражение path_filter: {exc}") from exc
        return value
