from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from urllib.parse import quote

from domain.catalog import (
    AuthorStats,
    ProjectDetail,
    ProjectSummary,
    ReviewInput,
    ReviewResult,
    ReviewView,
)
from domain.errors import CatalogPersistenceError, ProjectNotFoundError
from domain.models import Project, ProjectCatalog, ProjectReview
from domain.ports.catalog import CatalogRepository
from domain.services.rating_aggregator import (
    MetricLabels,
    aggregate_ratings,
    clamp_rating,
    round_half_up,
    standard_metrics,
)
from domain.services.relative_time import RelativeTimeConverter
from domain.services.slugs import ensure_unique_slug, slug_key

DEFAULT_REVIEWER_NAME = "Usuario"
DEFAULT_AVATAR_URL_TEMPLATE = (
    "https://api.dicebear.com/7.x/initials/svg?seed={seed}"
    "&backgroundType=gradientLinear&backgroundColor=fb923c,facc15"
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _CatalogState:
    catalog: ProjectCatalog
    by_slug: Mapping[str, Project]

    @classmethod
    def build(cls, catalog: ProjectCatalog) -> _CatalogState:
        return cls(
            catalog=catalog,
            by_slug={slug_key(project.slug): project for project in catalog.projects},
        )

    def get(self, slug: str) -> Project | None:
        key = slug_key(slug)
        if not key:
            return None
        return self.by_slug.get(key)


class CatalogStore:
    """In-memory project catalog backed by a single persisted file.

    Readers work on an immutable snapshot and never block. Writers serialize
    on one lock, derive the next snapshot from copies, persist it, and only
    then publish it. When the save fails the previous snapshot stays current,
    so memory and disk never diverge.
    """

    def __init__(
        self,
        repository: CatalogRepository,
        time_converter: RelativeTimeConverter | None = None,
        *,
        default_reviewer_name: str = DEFAULT_REVIEWER_NAME,
        avatar_url_template: str = DEFAULT_AVATAR_URL_TEMPLATE,
        metric_labels: MetricLabels | None = None,
    ) -> None:
        self._repository = repository
        self._time = time_converter or RelativeTimeConverter()
        self._default_reviewer_name = default_reviewer_name
        self._avatar_url_template = avatar_url_template
        self._metric_labels = metric_labels or MetricLabels()
        self._write_lock = threading.Lock()
        self._state = _CatalogState.build(repository.load())
        logger.info(
            "Loaded catalog with %d projects and %d recent slugs",
            len(self._state.catalog.projects),
            len(self._state.catalog.recent_slugs),
        )

    def list_all(self) -> list[ProjectSummary]:
        return [ProjectSummary.from_project(project) for project in self._state.catalog.projects]

    def list_recent(self) -> list[ProjectSummary]:
        state = self._state
        summaries: list[ProjectSummary] = []
        for slug in state.catalog.recent_slugs:
            project = state.get(slug)
            if project is not None:
                summaries.append(ProjectSummary.from_project(project))
        return summaries

    def list_by_author(self, username: str) -> list[ProjectSummary]:
        if not str(username or "").strip():
            return []
        wanted = username.casefold()
        return [
            ProjectSummary.from_project(project)
            for project in self._state.catalog.projects
            if project.author_username.casefold() == wanted
        ]

    def recent_slugs(self) -> list[str]:
        return list(self._state.catalog.recent_slugs)

    def get_detail(self, slug: str) -> ProjectDetail | None:
        project = self._state.get(slug)
        if project is None:
            return None
        return self._to_detail(project)

    def get_by_slug(self, slug: str) -> Project | None:
        project = self._state.get(slug)
        if project is None:
            return None
        return project.model_copy(deep=True)

    def author_stats(self, username: str) -> AuthorStats:
        projects = self._state.catalog.projects
        wanted = str(username or "").casefold()
        owned = [p for p in projects if wanted.strip() and p.author_username.casefold() == wanted]
        rated = [p for p in owned if p.review_count > 0 and p.rating > 0]
        total_reviews = sum(p.review_count for p in rated)
        weighted = 0.0
        if total_reviews:
            weighted = float(
                round_half_up(sum(p.rating * p.review_count for p in rated) / total_reviews, 2)
            )
        return AuthorStats(
            username=username,
            project_count=len(owned),
            review_count=sum(p.review_count for p in owned),
            weighted_average=weighted,
        )

    def add(self, draft: Project) -> ProjectSummary:
        seed = draft.slug if draft.slug.strip() else draft.title
        if not seed.strip():
            msg = "Project draft requires a title or slug"
            raise ValueError(msg)

        with self._write_lock:
            state = self._state
            slug = ensure_unique_slug(seed, state.by_slug.keys())
            logger.debug("Assigned slug %s to project %r", slug, draft.title)
            project = draft.model_copy(deep=True, update={"slug": slug})
            key = slug_key(slug)
            recent = [slug, *(s for s in state.catalog.recent_slugs if slug_key(s) != key)]
            catalog = state.catalog.model_copy(
                update={
                    "projects": [*state.catalog.projects, project],
                    "recent_slugs": recent,
                }
            )
            self._commit(catalog)
            logger.info("Added project %s", slug)
            return ProjectSummary.from_project(project)

    def update(self, project: Project) -> bool:
        with self._write_lock:
            state = self._state
            existing = state.get(project.slug)
            if existing is None:
                return False

            changes: dict[str, object] = {
                "title": project.title,
                "description": project.description,
                "overview": project.overview,
                "technology": project.technology,
            }
            if project.image_url.strip():
                changes["image_url"] = project.image_url
            updated = existing.model_copy(update=changes)
            self._commit(self._replace_project(state.catalog, existing, updated))
            logger.info("Updated project %s", existing.slug)
            return True

    def delete(self, slug: str) -> bool:
        with self._write_lock:
            state = self._state
            existing = state.get(slug)
            if existing is None:
                return False

            key = slug_key(existing.slug)
            catalog = state.catalog.model_copy(
                update={
                    "projects": [p for p in state.catalog.projects if p is not existing],
                    "recent_slugs": [
                        s for s in state.catalog.recent_slugs if slug_key(s) != key
                    ],
                }
            )
            self._commit(catalog)
            logger.info("Deleted project %s", existing.slug)
            return True

    def add_review(self, review_input: ReviewInput) -> ReviewResult:
        if not str(review_input.slug or "").strip():
            raise ProjectNotFoundError(review_input.slug)

        with self._write_lock:
            state = self._state
            existing = state.get(review_input.slug)
            if existing is None:
                raise ProjectNotFoundError(review_input.slug)

            review = self._build_review(review_input)
            reviews = [review, *existing.reviews]
            aggregate = aggregate_ratings(reviews, existing.metrics, self._metric_labels)
            updated = existing.model_copy(
                update={
                    "reviews": reviews,
                    "review_count": aggregate.review_count,
                    "rating": aggregate.average_rating,
                    "rating_breakdown": aggregate.breakdown,
                    "metrics": aggregate.metrics,
                }
            )
            self._commit(self._replace_project(state.catalog, existing, updated))
            logger.info(
                "Added review to %s (reviews=%d, rating=%.2f)",
                updated.slug,
                updated.review_count,
                updated.rating,
            )
            return ReviewResult.from_detail(self._to_detail(updated))

    def reload(self) -> None:
        with self._write_lock:
            self._state = _CatalogState.build(self._repository.load())
            logger.info("Reloaded catalog with %d projects", len(self._state.catalog.projects))

    def _build_review(self, review_input: ReviewInput) -> ProjectReview:
        reviewer_name = str(review_input.reviewer_name or "").strip() or self._default_reviewer_name
        avatar_url = str(review_input.avatar_url or "").strip()
        if not avatar_url:
            avatar_url = self._avatar_url_template.format(seed=quote(reviewer_name, safe=""))
        return ProjectReview(
            reviewer_name=reviewer_name,
            avatar_url=avatar_url,
            time_ago=self._time.stamp(),
            rating=clamp_rating(review_input.rating),
            comment=str(review_input.comment or "").strip(),
            up_votes=0,
            down_votes=0,
        )

    def _replace_project(
        self, catalog: ProjectCatalog, existing: Project, updated: Project
    ) -> ProjectCatalog:
        projects = [updated if p is existing else p for p in catalog.projects]
        return catalog.model_copy(update={"projects": projects})

    def _commit(self, catalog: ProjectCatalog) -> None:
        try:
            self._repository.save(catalog)
        except CatalogPersistenceError:
            logger.exception("Catalog flush failed, keeping previous state")
            raise
        self._state = _CatalogState.build(catalog)

    def _to_detail(self, project: Project) -> ProjectDetail:
        reviews: list[ReviewView] = []
        for review in project.reviews:
            created_at, time_ago = self._time.resolve(review.time_ago)
            reviews.append(
                ReviewView(
                    reviewer_name=review.reviewer_name,
                    avatar_url=review.avatar_url,
                    created_at=created_at,
                    time_ago=time_ago,
                    rating=review.rating,
                    comment=review.comment,
                    up_votes=review.up_votes,
                    down_votes=review.down_votes,
                )
            )
        metrics = [metric.model_copy() for metric in project.metrics]
        if not metrics:
            metrics = standard_metrics(
                project.rating, project.review_count, labels=self._metric_labels
            )
        return ProjectDetail(
            summary=ProjectSummary.from_project(project),
            overview=project.overview if project.overview.strip() else project.description,
            attachments=[item.model_copy() for item in project.attachments],
            rating_breakdown=[item.model_copy() for item in project.rating_breakdown],
            reviews=reviews,
            metrics=metrics,
        )
