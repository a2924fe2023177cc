from __future__ import annotations

from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

RATING_MIN = 1
RATING_MAX = 5
BREAKDOWN_STARS = (5, 4, 3, 2, 1)


class CatalogRecord(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @model_validator(mode="before")
    @classmethod
    def drop_null_fields(cls, data: Any) -> Any:
        # Missing and null values both fall back to the field default.
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class ProjectAttachment(CatalogRecord):
    file_name: str = ""
    file_type: str = ""
    download_url: str = ""


class RatingBreakdownItem(CatalogRecord):
    stars: int = 0
    percentage: int = 0


class ProjectReview(CatalogRecord):
    reviewer_name: str = ""
    avatar_url: str = ""
    time_ago: str = ""
    rating: float = 0.0
    comment: str = ""
    up_votes: int = 0
    down_votes: int = 0


class ProjectMetric(CatalogRecord):
    label: str = ""
    value: str = ""


class Project(CatalogRecord):
    slug: str = ""
    title: str = ""
    description: str = ""
    image_url: str = ""
    technology: str = ""
    rating: float = 0.0
    review_count: int = 0
    task_type: str = ""
    difficulty: str = ""
    languages: List[str] = Field(default_factory=list)
    overview: str = ""
    attachments: List[ProjectAttachment] = Field(default_factory=list)
    rating_breakdown: List[RatingBreakdownItem] = Field(default_factory=list)
    reviews: List[ProjectReview] = Field(default_factory=list)
    metrics: List[ProjectMetric] = Field(default_factory=list)
    author_username: str = ""
    author_display_name: str = ""

    @field_validator("languages", mode="after")
    @classmethod
    def strip_blank_languages(cls, languages: List[str]) -> List[str]:
        return [language.strip() for language in languages if language and language.strip()]


class ProjectCatalog(CatalogRecord):
    recent_slugs: List[str] = Field(default_factory=list)
    projects: List[Project] = Field(default_factory=list)

    @field_validator("projects", mode="after")
    @classmethod
    def ensure_unique_slugs(cls, projects: List[Project]) -> List[Project]:
        seen: set[str] = set()
        for project in projects:
            key = project.slug.strip().casefold()
            if not key:
                continue
            if key in seen:
                msg = f"Duplicate project slug found: {project.slug}"
                raise ValueError(msg)
            seen.add(key)
        return projects

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
