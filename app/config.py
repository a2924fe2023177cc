from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, HttpUrl, TypeAdapter, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import PydanticBaseSettingsSource, YamlConfigSettingsSource

from domain.services.catalog_store import DEFAULT_AVATAR_URL_TEMPLATE, DEFAULT_REVIEWER_NAME
from domain.services.rating_aggregator import (
    AVERAGE_RATING_LABEL,
    REVIEW_COUNT_LABEL,
    MetricLabels,
)
from domain.services.relative_time import DEFAULT_LANGUAGE, normalize_language

DEFAULT_CONFIG_PATH = Path("config/catalog.yaml")
AVATAR_SEED_PLACEHOLDER = "{seed}"

_HTTP_URL_ADAPTER = TypeAdapter(HttpUrl)
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


class CatalogSettings(BaseModel):
    data_path: Path = Path("data/projects.json")
    create_if_missing: bool = False
    display_language: str = DEFAULT_LANGUAGE
    default_reviewer_name: str = DEFAULT_REVIEWER_NAME
    avatar_url_template: str = DEFAULT_AVATAR_URL_TEMPLATE
    average_metric_label: str = AVERAGE_RATING_LABEL
    review_count_metric_label: str = REVIEW_COUNT_LABEL
    log_level: str = "INFO"

    @field_validator("display_language", mode="before")
    @classmethod
    def normalize_display_language(cls, value: object) -> str:
        return normalize_language(str(value)) if value else DEFAULT_LANGUAGE

    @field_validator("default_reviewer_name", mode="after")
    @classmethod
    def require_reviewer_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            msg = "catalog.default_reviewer_name must not be blank"
            raise ValueError(msg)
        return normalized

    @field_validator("avatar_url_template", mode="after")
    @classmethod
    def validate_avatar_url_template(cls, value: str) -> str:
        normalized = value.strip()
        if AVATAR_SEED_PLACEHOLDER not in normalized:
            msg = f"catalog.avatar_url_template must contain {AVATAR_SEED_PLACEHOLDER}"
            raise ValueError(msg)
        _HTTP_URL_ADAPTER.validate_python(normalized.replace(AVATAR_SEED_PLACEHOLDER, "seed"))
        return normalized

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value: object) -> str:
        level = str(value or "INFO").strip().upper()
        if level not in _LOG_LEVELS:
            msg = f"catalog.log_level must be one of {sorted(_LOG_LEVELS)}"
            raise ValueError(msg)
        return level

    def metric_labels(self) -> MetricLabels:
        return MetricLabels(
            average_rating=self.average_metric_label,
            review_count=self.review_count_metric_label,
        )


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PCAT_", env_nested_delimiter="__")

    catalog: CatalogSettings = CatalogSettings()

    _yaml_path: ClassVar[Path | None] = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        ]
        if cls._yaml_path:
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=cls._yaml_path))
        return tuple(sources)


def load_settings(config_path: Path | None = None) -> AppSettings:
    env_path = os.getenv("PCAT_CONFIG_PATH")
    resolved_path: Path | None = None

    if config_path is not None:
        resolved_path = config_path
    elif env_path:
        resolved_path = Path(env_path)
    elif DEFAULT_CONFIG_PATH.exists():
        resolved_path = DEFAULT_CONFIG_PATH

    previous = AppSettings._yaml_path
    try:
        if resolved_path is not None:
            if not resolved_path.exists():
                msg = f"Config file not found: {resolved_path}"
                raise FileNotFoundError(msg)
            AppSettings._yaml_path = resolved_path
        return AppSettings()
    finally:
        AppSettings._yaml_path = previous

