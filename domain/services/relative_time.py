from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Final

from domain.ports.catalog import Clock

SUPPORTED_LANGUAGES: Final[set[str]] = {"en", "es"}
DEFAULT_LANGUAGE: Final[str] = "es"

MINUTE = timedelta(minutes=1)
HOUR = timedelta(hours=1)
DAY = timedelta(days=1)
WEEK = timedelta(days=7)
MONTH = timedelta(days=30)
YEAR = timedelta(days=365)

_UNIT_DELTAS: Final[dict[str, timedelta]] = {
    "minute": MINUTE,
    "hour": HOUR,
    "day": DAY,
    "week": WEEK,
    "month": MONTH,
    "year": YEAR,
}

# Prefixes are matched against the lower-cased, accent-stripped unit word.
_UNIT_PREFIXES: Final[tuple[tuple[str, str], ...]] = (
    ("minut", "minute"),
    ("hour", "hour"),
    ("hora", "hour"),
    ("day", "day"),
    ("dia", "day"),
    ("week", "week"),
    ("semana", "week"),
    ("month", "month"),
    ("mes", "month"),
    ("year", "year"),
    ("ano", "year"),
)

_SPANISH_PHRASE_RE = re.compile(r"\bhace\s+(\d+)\s+([a-z]+)")
_ENGLISH_PHRASE_RE = re.compile(r"\b(\d+)\s+([a-z]+)\s+ago\b")
_LONG_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


@dataclass(frozen=True)
class _Phrasing:
    just_now: str
    template: str
    units: dict[str, tuple[str, str]]

    def render(self, value: int, unit: str) -> str:
        singular, plural = self.units[unit]
        return self.template.format(value=value, unit=singular if value == 1 else plural)


_PHRASINGS: Final[dict[str, _Phrasing]] = {
    "en": _Phrasing(
        just_now="moments ago",
        template="{value} {unit} ago",
        units={
            "minute": ("minute", "minutes"),
            "hour": ("hour", "hours"),
            "day": ("day", "days"),
            "week": ("week", "weeks"),
            "month": ("month", "months"),
            "year": ("year", "years"),
        },
    ),
    "es": _Phrasing(
        just_now="Hace unos segundos",
        template="Hace {value} {unit}",
        units={
            "minute": ("minuto", "minutos"),
            "hour": ("hora", "horas"),
            "day": ("día", "días"),
            "week": ("semana", "semanas"),
            "month": ("mes", "meses"),
            "year": ("año", "años"),
        },
    ),
}


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def normalize_language(value: str) -> str:
    language = str(value or "").strip().lower()
    if language not in SUPPORTED_LANGUAGES:
        msg = f"Unsupported display language: {value!r}"
        raise ValueError(msg)
    return language


class RelativeTimeConverter:
    """Converts stored review timestamp tokens to and from relative phrases.

    A token is either an ISO-8601 timestamp or a legacy phrase such as
    ``"Hace 2 días"`` / ``"2 days ago"``. Parsing a phrase is approximate:
    months are 30 days and years 365 days, so a phrase only pins the
    original time down to its unit bucket.
    """

    def __init__(self, clock: Clock = utc_now, language: str = DEFAULT_LANGUAGE) -> None:
        self._clock = clock
        self._language = normalize_language(language)
        self._phrasing = _PHRASINGS[self._language]

    @property
    def language(self) -> str:
        return self._language

    def now(self) -> datetime:
        return _as_utc(self._clock())

    def stamp(self) -> str:
        return self.now().isoformat()

    def parse(self, token: str) -> datetime | None:
        text = str(token or "").strip()
        if not text:
            return None
        parsed = _parse_absolute(text)
        if parsed is not None:
            return parsed
        return self._parse_phrase(text)

    def format(self, timestamp: datetime | None, fallback: str = "") -> str:
        if timestamp is None:
            return fallback if fallback.strip() else self._phrasing.just_now

        elapsed = self.now() - _as_utc(timestamp)
        if elapsed < timedelta(0):
            elapsed = timedelta(0)

        if elapsed < MINUTE:
            return self._phrasing.just_now
        if elapsed < HOUR:
            return self._render(elapsed, "minute")
        if elapsed < DAY:
            return self._render(elapsed, "hour")
        if elapsed < WEEK:
            return self._render(elapsed, "day")
        if elapsed < MONTH:
            return self._render(elapsed, "week")
        if elapsed < YEAR:
            return self._render(elapsed, "month")
        return self._render(elapsed, "year")

    def resolve(self, token: str) -> tuple[datetime | None, str]:
        timestamp = self.parse(token)
        return timestamp, self.format(timestamp, token)

    def _render(self, elapsed: timedelta, unit: str) -> str:
        value = max(1, elapsed // _UNIT_DELTAS[unit])
        return self._phrasing.render(value, unit)

    def _parse_phrase(self, text: str) -> datetime | None:
        normalized = _strip_accents(text).lower()
        match = _SPANISH_PHRASE_RE.search(normalized) or _ENGLISH_PHRASE_RE.search(normalized)
        if match is None:
            return None
        unit = _resolve_unit(match.group(2))
        if unit is None:
            return None
        try:
            return self.now() - int(match.group(1)) * _UNIT_DELTAS[unit]
        except (OverflowError, ValueError):
            return None


def _parse_absolute(text: str) -> datetime | None:
    candidate = _LONG_FRACTION_RE.sub(r"\1", text)
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return None
    return _as_utc(parsed)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _resolve_unit(word: str) -> str | None:
    for prefix, unit in _UNIT_PREFIXES:
        if word.startswith(prefix):
            return unit
    return None


def _strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(char for char in decomposed if not unicodedata.combining(char))
