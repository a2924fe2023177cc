from __future__ import annotations

from pathlib import Path


class CatalogError(Exception):
    pass


class ProjectNotFoundError(CatalogError, LookupError):
    def __init__(self, slug: str) -> None:
        super().__init__(f"Project not found: {slug!r}")
        self.slug = slug


class CatalogFileNotFoundError(CatalogError, FileNotFoundError):
    def __init__(self, path: Path) -> None:
        super().__init__(f"Catalog file not found: {path}")
        self.path = path


class CatalogFormatError(CatalogError, ValueError):
    pass


class CatalogPersistenceError(CatalogError, OSError):
    pass
