from __future__ import annotations

import orjson
from pydantic import ValidationError

from domain.errors import CatalogFormatError
from domain.models import ProjectCatalog


def decode_catalog(data: bytes) -> ProjectCatalog:
    try:
        payload = orjson.loads(data) if data.strip() else {}
    except orjson.JSONDecodeError as exc:
        msg = f"Catalog is not valid JSON: {exc}"
        raise CatalogFormatError(msg) from exc
    if not isinstance(payload, dict):
        msg = "Catalog root must be a JSON object"
        raise CatalogFormatError(msg)
    try:
        return ProjectCatalog.model_validate(payload)
    except ValidationError as exc:
        msg = f"Catalog does not match the project schema: {exc}"
        raise CatalogFormatError(msg) from exc


def encode_catalog(catalog: ProjectCatalog) -> bytes:
    return orjson.dumps(catalog.to_payload(), option=orjson.OPT_INDENT_2)
