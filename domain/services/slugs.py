from __future__ import annotations

import re
import uuid
from collections.abc import Iterable

_SLUG_RE = re.compile(r"[^a-z0-9]+")


def slug_key(slug: str) -> str:
    return str(slug or "").strip().casefold()


def generate_slug(text: str) -> str:
    """Derive a URL-safe slug from free text.

    Anything outside ``[a-z0-9]`` after lower-casing becomes a single ``-``.
    Text without a single ASCII letter or digit yields a random hex token.
    """
    lowered = str(text or "").strip().lower()
    slug = _SLUG_RE.sub("-", lowered).strip("-")
    return slug or uuid.uuid4().hex


def ensure_unique_slug(text: str, existing: Iterable[str]) -> str:
    """Return the first of ``base``, ``base-1``, ``base-2``... absent from ``existing``.

    The caller must hold the catalog write lock so the check and the insert
    that follows it cannot interleave with another writer.
    """
    taken = {slug_key(slug) for slug in existing}
    base = generate_slug(text)
    slug = base
    index = 1
    while slug_key(slug) in taken:
        slug = f"{base}-{index}"
        index += 1
    return slug
