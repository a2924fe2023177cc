from __future__ import annotations

import os
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from adapters.filesystem.catalog_repository import FileSystemCatalogRepository
from app.config import AppSettings, CatalogSettings
from domain.services.catalog_store import CatalogStore
from domain.services.relative_time import RelativeTimeConverter
from tests.helpers.catalog_fixtures import FixedClock, write_catalog


def _clear_pcat_env() -> None:
    for key in list(os.environ):
        if key.startswith("PCAT_"):
            os.environ.pop(key, None)


_clear_pcat_env()


@pytest.fixture(autouse=True)
def clear_pcat_env() -> Generator[None, None, None]:
    _clear_pcat_env()
    yield
    _clear_pcat_env()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def catalog_path(tmp_path: Path) -> Path:
    return write_catalog(tmp_path / "data" / "projects.json")


@pytest.fixture
def converter(clock: FixedClock) -> RelativeTimeConverter:
    return RelativeTimeConverter(clock, "en")


@pytest.fixture
def store(catalog_path: Path, converter: RelativeTimeConverter) -> CatalogStore:
    return CatalogStore(FileSystemCatalogRepository(catalog_path), converter)


@pytest.fixture
def catalog_settings(catalog_path: Path) -> CatalogSettings:
    return CatalogSettings(
        data_path=catalog_path,
        create_if_missing=False,
        display_language="en",
        default_reviewer_name="Usuario",
        log_level="WARNING",
    )


@pytest.fixture
def catalog_settings_factory(
    catalog_settings: CatalogSettings,
) -> Callable[..., CatalogSettings]:
    def _factory(**overrides: object) -> CatalogSettings:
        return catalog_settings.model_copy(update=overrides)

    return _factory


@pytest.fixture
def app_settings(catalog_settings: CatalogSettings) -> AppSettings:
    return AppSettings(catalog=catalog_settings)


@pytest.fixture
def app_settings_factory(
    catalog_settings_factory: Callable[..., CatalogSettings],
) -> Callable[..., AppSettings]:
    def _factory(**overrides: object) -> AppSettings:
        return AppSettings(catalog=catalog_settings_factory(**overrides))

    return _factory
