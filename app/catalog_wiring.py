from __future__ import annotations

from adapters.filesystem.catalog_repository import FileSystemCatalogRepository
from app.config import AppSettings
from domain.ports.catalog import CatalogRepository, Clock
from domain.services.catalog_store import CatalogStore
from domain.services.relative_time import RelativeTimeConverter, utc_now


def build_catalog_repository(settings: AppSettings) -> CatalogRepository:
    return FileSystemCatalogRepository(
        settings.catalog.data_path,
        create_if_missing=settings.catalog.create_if_missing,
    )


def build_relative_time_converter(
    settings: AppSettings, clock: Clock | None = None
) -> RelativeTimeConverter:
    return RelativeTimeConverter(clock or utc_now, settings.catalog.display_language)


def build_catalog_store(settings: AppSettings, clock: Clock | None = None) -> CatalogStore:
    catalog = settings.catalog
    return CatalogStore(
        build_catalog_repository(settings),
        build_relative_time_converter(settings, clock),
        default_reviewer_name=catalog.default_reviewer_name,
        avatar_url_template=catalog.avatar_url_template,
        metric_labels=catalog.metric_labels(),
    )
