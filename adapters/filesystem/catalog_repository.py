from __future__ import annotations

import logging
from pathlib import Path

from filelock import FileLock

from adapters.filesystem.catalog_codec import decode_catalog, encode_catalog
from domain.errors import CatalogFileNotFoundError, CatalogPersistenceError
from domain.models import ProjectCatalog
from domain.ports.catalog import CatalogRepository

logger = logging.getLogger(__name__)


class FileSystemCatalogRepository(CatalogRepository):
    def __init__(self, path: Path, *, create_if_missing: bool = False) -> None:
        self._path = path
        self._create_if_missing = create_if_missing

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> ProjectCatalog:
        if not self._path.exists():
            if not self._create_if_missing:
                raise CatalogFileNotFoundError(self._path)
            catalog = ProjectCatalog()
            self.save(catalog)
            logger.info("Created empty catalog at %s", self._path)
            return catalog
        return decode_catalog(self._path.read_bytes())

    def save(self, catalog: ProjectCatalog) -> None:
        data = encode_catalog(catalog)
        lock_path = self._path.with_suffix(f"{self._path.suffix}.lock")
        tmp_path = self._path.with_suffix(f"{self._path.suffix}.tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with FileLock(str(lock_path)):
                tmp_path.write_bytes(data)
                tmp_path.replace(self._path)
        except OSError as exc:
            msg = f"Failed to write catalog to {self._path}: {exc}"
            raise CatalogPersistenceError(msg) from exc
