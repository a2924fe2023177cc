from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from domain.models import (
    BREAKDOWN_STARS,
    RATING_MAX,
    RATING_MIN,
    ProjectMetric,
    ProjectReview,
    RatingBreakdownItem,
)

AVERAGE_RATING_LABEL = "Calificación Promedio"
REVIEW_COUNT_LABEL = "Número de Revisiones"


@dataclass(frozen=True)
class MetricLabels:
    average_rating: str = AVERAGE_RATING_LABEL
    review_count: str = REVIEW_COUNT_LABEL


@dataclass(frozen=True)
class RatingAggregate:
    average_rating: float
    review_count: int
    breakdown: list[RatingBreakdownItem]
    metrics: list[ProjectMetric]


def round_half_up(value: float, digits: int = 0) -> Decimal:
    exponent = Decimal(1).scaleb(-digits)
    return Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)


def clamp_rating(value: float) -> float:
    if math.isnan(value):
        return float(RATING_MIN)
    return float(min(max(value, RATING_MIN), RATING_MAX))


def average_rating(ratings: Sequence[float]) -> float:
    if not ratings:
        return 0.0
    return float(round_half_up(sum(ratings) / len(ratings), 2))


def rating_breakdown(ratings: Sequence[float]) -> list[RatingBreakdownItem]:
    buckets = dict.fromkeys(BREAKDOWN_STARS, 0)
    for rating in ratings:
        star = int(round_half_up(clamp_rating(rating)))
        buckets[star] += 1
    total = len(ratings)
    return [
        RatingBreakdownItem(
            stars=star,
            percentage=0 if total == 0 else int(round_half_up(buckets[star] * 100 / total)),
        )
        for star in BREAKDOWN_STARS
    ]


def upsert_metric(metrics: list[ProjectMetric], label: str, value: str) -> list[ProjectMetric]:
    """Replace the value of the metric whose label matches (case-insensitive) or append one."""
    wanted = label.casefold()
    result: list[ProjectMetric] = []
    replaced = False
    for metric in metrics:
        if not replaced and metric.label.casefold() == wanted:
            result.append(metric.model_copy(update={"value": value}))
            replaced = True
        else:
            result.append(metric.model_copy())
    if not replaced:
        result.append(ProjectMetric(label=label, value=value))
    return result


def standard_metrics(
    rating: float,
    review_count: int,
    existing: Iterable[ProjectMetric] = (),
    labels: MetricLabels = MetricLabels(),
) -> list[ProjectMetric]:
    metrics = upsert_metric(list(existing), labels.average_rating, f"{round_half_up(rating, 1)}")
    return upsert_metric(metrics, labels.review_count, str(review_count))


def aggregate_ratings(
    reviews: Sequence[ProjectReview],
    metrics: Iterable[ProjectMetric] = (),
    labels: MetricLabels = MetricLabels(),
) -> RatingAggregate:
    ratings = [review.rating for review in reviews]
    average = average_rating(ratings)
    return RatingAggregate(
        average_rating=average,
        review_count=len(ratings),
        breakdown=rating_breakdown(ratings),
        metrics=standard_metrics(average, len(ratings), metrics, labels),
    )
