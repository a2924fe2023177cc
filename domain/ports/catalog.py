from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from domain.models import ProjectCatalog

Clock = Callable[[], datetime]


class CatalogRepository(Protocol):
    def load(self) -> ProjectCatalog: ...

    def save(self, catalog: ProjectCatalog) -> None: ...
