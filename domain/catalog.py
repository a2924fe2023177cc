from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from domain.models import Project, ProjectAttachment, ProjectMetric, RatingBreakdownItem


@dataclass(frozen=True)
class ProjectSummary:
    slug: str
    title: str
    description: str
    image_url: str
    technology: str
    task_type: str
    difficulty: str
    languages: list[str]
    rating: float
    review_count: int
    author_username: str
    author_display_name: str

    @classmethod
    def from_project(cls, project: Project) -> ProjectSummary:
        return cls(
            slug=project.slug,
            title=project.title,
            description=project.description,
            image_url=project.image_url,
            technology=project.technology,
            task_type=project.task_type,
            difficulty=project.difficulty,
            languages=list(project.languages),
            rating=project.rating,
            review_count=project.review_count,
            author_username=project.author_username,
            author_display_name=project.author_display_name,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "slug": self.slug,
            "title": self.title,
            "description": self.description,
            "imageUrl": self.image_url,
            "technology": self.technology,
            "taskType": self.task_type,
            "difficulty": self.difficulty,
            "languages": list(self.languages),
            "rating": self.rating,
            "reviewCount": self.review_count,
            "authorUsername": self.author_username,
            "authorDisplayName": self.author_display_name,
        }


@dataclass(frozen=True)
class ReviewView:
    reviewer_name: str
    avatar_url: str
    created_at: datetime | None
    time_ago: str
    rating: float
    comment: str
    up_votes: int = 0
    down_votes: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "reviewerName": self.reviewer_name,
            "avatarUrl": self.avatar_url,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "timeAgo": self.time_ago,
            "rating": self.rating,
            "comment": self.comment,
            "upVotes": self.up_votes,
            "downVotes": self.down_votes,
        }


@dataclass(frozen=True)
class ProjectDetail:
    summary: ProjectSummary
    overview: str
    attachments: list[ProjectAttachment] = field(default_factory=list)
    rating_breakdown: list[RatingBreakdownItem] = field(default_factory=list)
    reviews: list[ReviewView] = field(default_factory=list)
    metrics: list[ProjectMetric] = field(default_factory=list)

    @property
    def slug(self) -> str:
        return self.summary.slug

    @property
    def title(self) -> str:
        return self.summary.title

    @property
    def average_rating(self) -> float:
        return self.summary.rating

    @property
    def review_count(self) -> int:
        return self.summary.review_count

    def to_dict(self) -> dict[str, Any]:
        payload = self.summary.to_dict()
        payload.update(
            {
                "overview": self.overview,
                "attachments": [item.model_dump(by_alias=True) for item in self.attachments],
                "ratingBreakdown": [
                    item.model_dump(by_alias=True) for item in self.rating_breakdown
                ],
                "reviews": [review.to_dict() for review in self.reviews],
                "metrics": [metric.model_dump(by_alias=True) for metric in self.metrics],
            }
        )
        return payload


@dataclass(frozen=True)
class ReviewInput:
    slug: str
    rating: float
    comment: str = ""
    reviewer_name: str = ""
    avatar_url: str = ""


@dataclass(frozen=True)
class ReviewResult:
    average_rating: float
    review_count: int
    rating_breakdown: list[RatingBreakdownItem]
    reviews: list[ReviewView]
    metrics: list[ProjectMetric]

    @classmethod
    def from_detail(cls, detail: ProjectDetail) -> ReviewResult:
        return cls(
            average_rating=detail.average_rating,
            review_count=detail.review_count,
            rating_breakdown=list(detail.rating_breakdown),
            reviews=list(detail.reviews),
            metrics=list(detail.metrics),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "averageRating": self.average_rating,
            "reviewCount": self.review_count,
            "ratingBreakdown": [item.model_dump(by_alias=True) for item in self.rating_breakdown],
            "reviews": [review.to_dict() for review in self.reviews],
            "metrics": [metric.model_dump(by_alias=True) for metric in self.metrics],
        }


@dataclass(frozen=True)
class AuthorStats:
    username: str
    project_count: int
    review_count: int
    weighted_average: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "projectCount": self.project_count,
            "reviewCount": self.review_count,
            "weightedAverage": self.weighted_average,
        }
