from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from pathlib import Path

import orjson
import pytest

from adapters.filesystem.catalog_repository import FileSystemCatalogRepository
from domain.catalog import ReviewInput
from domain.errors import CatalogPersistenceError, ProjectNotFoundError
from domain.models import Project, ProjectCatalog, ProjectReview
from domain.services.catalog_store import CatalogStore
from domain.services.rating_aggregator import AVERAGE_RATING_LABEL, REVIEW_COUNT_LABEL
from domain.services.relative_time import RelativeTimeConverter
from tests.helpers.catalog_fixtures import (
    FIXED_NOW,
    InMemoryCatalogRepository,
    catalog_payload,
)


def _reopen(path: Path, converter: RelativeTimeConverter) -> CatalogStore:
    return CatalogStore(FileSystemCatalogRepository(path), converter)


@pytest.fixture
def memory_repo() -> InMemoryCatalogRepository:
    return InMemoryCatalogRepository(ProjectCatalog.model_validate(catalog_payload()))


@pytest.fixture
def memory_store(
    memory_repo: InMemoryCatalogRepository, converter: RelativeTimeConverter
) -> CatalogStore:
    return CatalogStore(memory_repo, converter)


def test_list_all_keeps_insertion_order(store: CatalogStore) -> None:
    summaries = store.list_all()

    assert [s.slug for s in summaries] == ["weather-station", "todo-api"]
    assert summaries[0].languages == ["Python", "C++"]
    assert summaries[0].rating == 4.5


def test_list_recent_skips_missing_slugs(store: CatalogStore) -> None:
    assert [s.slug for s in store.list_recent()] == ["weather-station"]


def test_list_by_author_is_case_insensitive(store: CatalogStore) -> None:
    assert [s.slug for s in store.list_by_author("MARIA")] == ["weather-station", "todo-api"]
    assert store.list_by_author("") == []
    assert store.list_by_author("   ") == []
    assert store.list_by_author("pedro") == []


def test_get_detail_returns_none_for_blank_or_unknown(store: CatalogStore) -> None:
    assert store.get_detail("") is None
    assert store.get_detail("  ") is None
    assert store.get_detail("nope") is None


def test_get_detail_resolves_review_times(store: CatalogStore) -> None:
    detail = store.get_detail("Weather-Station")

    assert detail is not None
    assert detail.slug == "weather-station"
    assert detail.overview == "Collects temperature and humidity readings."
    assert detail.attachments[0].file_name == "schematic.pdf"
    first, second = detail.reviews
    assert first.reviewer_name == "Ana"
    assert first.time_ago == "1 week ago"
    assert first.created_at == FIXED_NOW - timedelta(days=9)
    assert second.time_ago == "3 weeks ago"
    assert second.created_at == FIXED_NOW - timedelta(days=21)


def test_get_detail_falls_back_for_overview_and_metrics(store: CatalogStore) -> None:
    detail = store.get_detail("todo-api")

    assert detail is not None
    assert detail.overview == "REST API for tasks"
    assert [(m.label, m.value) for m in detail.metrics] == [
        (AVERAGE_RATING_LABEL, "0.0"),
        (REVIEW_COUNT_LABEL, "0"),
    ]
    assert store.get_by_slug("todo-api").metrics == []  # type: ignore[union-attr]


def test_get_by_slug_returns_defensive_copy(store: CatalogStore) -> None:
    project = store.get_by_slug("weather-station")
    assert project is not None

    project.title = "Hacked"
    project.reviews.append(ProjectReview(reviewer_name="Mallory", rating=1))
    project.languages.clear()

    fresh = store.get_by_slug("weather-station")
    assert fresh is not None
    assert fresh.title == "Weather Station"
    assert len(fresh.reviews) == 2
    assert fresh.languages == ["Python", "C++"]
    assert store.get_by_slug("") is None


def test_add_assigns_slug_and_persists(
    store: CatalogStore, catalog_path: Path, converter: RelativeTimeConverter
) -> None:
    draft = Project(title="My Project", author_username="leo", author_display_name="Leo")

    summary = store.add(draft)

    assert summary.slug == "my-project"
    assert draft.slug == ""
    assert store.recent_slugs()[0] == "my-project"
    assert [s.slug for s in store.list_all()][-1] == "my-project"

    reopened = _reopen(catalog_path, converter)
    assert reopened.get_by_slug("my-project") is not None
    assert reopened.recent_slugs() == ["my-project", "weather-station", "missing-project"]


def test_add_generates_unique_slugs(store: CatalogStore) -> None:
    first = store.add(Project(title="My Project"))
    second = store.add(Project(title="My Project"))
    third = store.add(Project(slug="Weather Station", title="Another station"))

    assert (first.slug, second.slug, third.slug) == (
        "my-project",
        "my-project-1",
        "weather-station-1",
    )
    assert store.recent_slugs()[:3] == ["weather-station-1", "my-project-1", "my-project"]


def test_add_requires_title_or_slug(store: CatalogStore) -> None:
    with pytest.raises(ValueError, match="title or slug"):
        store.add(Project(title="  "))


def test_update_unknown_slug_leaves_file_untouched(
    store: CatalogStore, catalog_path: Path
) -> None:
    before = catalog_path.read_bytes()

    assert store.update(Project(slug="nope", title="Ghost")) is False
    assert store.update(Project(slug="", title="Ghost")) is False

    assert catalog_path.read_bytes() == before
    assert len(store.list_all()) == 2


def test_update_only_touches_mutable_fields(
    store: CatalogStore, catalog_path: Path, converter: RelativeTimeConverter
) -> None:
    edited = store.get_by_slug("weather-station")
    assert edited is not None
    edited.title = "Weather Station v2"
    edited.description = "Now with solar power"
    edited.overview = "Runs off-grid."
    edited.technology = "ESP32"
    edited.image_url = "   "
    edited.rating = 1.0
    edited.reviews = []
    edited.author_username = "intruder"

    assert store.update(edited) is True

    reopened = _reopen(catalog_path, converter)
    project = reopened.get_by_slug("weather-station")
    assert project is not None
    assert project.title == "Weather Station v2"
    assert project.description == "Now with solar power"
    assert project.overview == "Runs off-grid."
    assert project.technology == "ESP32"
    assert project.image_url == "https://img.example/weather.png"
    assert project.rating == 4.5
    assert len(project.reviews) == 2
    assert project.author_username == "maria"


def test_update_replaces_non_blank_image(store: CatalogStore) -> None:
    edited = store.get_by_slug("todo-api")
    assert edited is not None
    edited.image_url = "https://img.example/todo.png"

    assert store.update(edited) is True
    assert store.list_all()[1].image_url == "https://img.example/todo.png"


def test_delete_removes_project_and_recent_slug(
    store: CatalogStore, catalog_path: Path, converter: RelativeTimeConverter
) -> None:
    assert store.delete("WEATHER-STATION") is True

    assert store.get_by_slug("weather-station") is None
    assert "weather-station" not in store.recent_slugs()
    assert [s.slug for s in store.list_all()] == ["todo-api"]
    assert store.delete("weather-station") is False
    assert store.delete("") is False

    payload = orjson.loads(catalog_path.read_bytes())
    assert [p["slug"] for p in payload["projects"]] == ["todo-api"]
    assert payload["recentSlugs"] == ["missing-project"]


def test_add_review_unknown_slug_raises(store: CatalogStore) -> None:
    with pytest.raises(ProjectNotFoundError):
        store.add_review(ReviewInput(slug="nope", rating=5))
    with pytest.raises(ProjectNotFoundError):
        store.add_review(ReviewInput(slug="  ", rating=5))


def test_add_review_recomputes_aggregates(
    store: CatalogStore, catalog_path: Path, converter: RelativeTimeConverter
) -> None:
    result = store.add_review(
        ReviewInput(slug="weather-station", rating=9, comment="  Solid build  ", reviewer_name=" ")
    )

    assert result.review_count == 3
    assert result.average_rating == 4.67
    assert {item.stars: item.percentage for item in result.rating_breakdown} == {
        5: 67,
        4: 33,
        3: 0,
        2: 0,
        1: 0,
    }
    assert [(m.label, m.value) for m in result.metrics] == [
        (AVERAGE_RATING_LABEL, "4.7"),
        ("Descargas", "120"),
        (REVIEW_COUNT_LABEL, "3"),
    ]
    newest = result.reviews[0]
    assert newest.reviewer_name == "Usuario"
    assert newest.rating == 5
    assert newest.comment == "Solid build"
    assert newest.avatar_url.startswith("https://api.dicebear.com/7.x/initials/svg?seed=Usuario&")
    assert newest.created_at == FIXED_NOW
    assert newest.time_ago == "moments ago"
    assert (newest.up_votes, newest.down_votes) == (0, 0)

    detail = _reopen(catalog_path, converter).get_detail("weather-station")
    assert detail is not None
    assert detail.review_count == 3
    assert detail.reviews[0].comment == "Solid build"


def test_add_review_keeps_supplied_avatar_and_encodes_seed(store: CatalogStore) -> None:
    custom = store.add_review(
        ReviewInput(slug="todo-api", rating=3, reviewer_name="Eva", avatar_url="https://a/eva.png")
    )
    seeded = store.add_review(ReviewInput(slug="todo-api", rating=0, reviewer_name="Ana María"))

    assert custom.reviews[0].avatar_url == "https://a/eva.png"
    assert "seed=Ana%20Mar%C3%ADa&" in seeded.reviews[0].avatar_url
    assert seeded.reviews[0].rating == 1
    assert seeded.average_rating == 2.0
    assert {item.stars: item.percentage for item in seeded.rating_breakdown} == {
        5: 0,
        4: 0,
        3: 50,
        2: 0,
        1: 50,
    }


def test_add_review_then_detail_shows_new_review_first(store: CatalogStore) -> None:
    before = store.get_detail("weather-station")
    assert before is not None

    store.add_review(ReviewInput(slug="weather-station", rating=4, reviewer_name="Zoe"))

    after = store.get_detail("weather-station")
    assert after is not None
    assert after.review_count == before.review_count + 1
    assert after.reviews[0].reviewer_name == "Zoe"


def test_failed_flush_rolls_back_every_mutation(
    memory_store: CatalogStore, memory_repo: InMemoryCatalogRepository
) -> None:
    memory_repo.fail_saves = True
    summaries_before = memory_store.list_all()
    detail_before = memory_store.get_detail("weather-station")

    with pytest.raises(CatalogPersistenceError):
        memory_store.add(Project(title="Lost"))
    with pytest.raises(CatalogPersistenceError):
        memory_store.add_review(ReviewInput(slug="weather-station", rating=1))
    with pytest.raises(CatalogPersistenceError):
        memory_store.update(Project(slug="weather-station", title="Renamed"))
    with pytest.raises(CatalogPersistenceError):
        memory_store.delete("todo-api")

    assert memory_store.list_all() == summaries_before
    assert memory_store.get_detail("weather-station") == detail_before
    assert memory_store.recent_slugs() == ["weather-station", "missing-project"]
    assert memory_repo.saves == 0

    memory_repo.fail_saves = False
    assert memory_store.add(Project(title="Lost")).slug == "lost"
    assert memory_repo.saves == 1


def test_concurrent_reviews_are_not_lost(
    store: CatalogStore, catalog_path: Path, converter: RelativeTimeConverter
) -> None:
    workers = 16

    def submit(idx: int) -> None:
        store.add_review(
            ReviewInput(slug="weather-station", rating=1 + idx % 5, reviewer_name=f"user{idx}")
        )

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(submit, range(workers)))

    detail = store.get_detail("weather-station")
    assert detail is not None
    assert detail.review_count == 2 + workers
    assert len(detail.reviews) == 2 + workers

    reopened = _reopen(catalog_path, converter).get_by_slug("weather-station")
    assert reopened is not None
    assert reopened.review_count == 2 + workers


def test_concurrent_adds_get_distinct_slugs(store: CatalogStore) -> None:
    with ThreadPoolExecutor(max_workers=8) as pool:
        summaries = list(pool.map(lambda _: store.add(Project(title="Same Title")), range(10)))

    slugs = {summary.slug for summary in summaries}
    assert len(slugs) == 10
    assert "same-title" in slugs
    assert len(store.list_all()) == 12


def test_author_stats_weights_by_review_count(store: CatalogStore) -> None:
    store.add_review(ReviewInput(slug="todo-api", rating=2))

    stats = store.author_stats("maria")

    assert stats.project_count == 2
    assert stats.review_count == 3
    assert stats.weighted_average == 3.67
    assert store.author_stats("").project_count == 0
    assert store.author_stats("pedro").weighted_average == 0.0


def test_reload_picks_up_external_changes(store: CatalogStore, catalog_path: Path) -> None:
    payload = catalog_payload()
    payload["projects"] = payload["projects"][:1]
    catalog_path.write_bytes(orjson.dumps(payload))

    store.reload()

    assert [s.slug for s in store.list_all()] == ["weather-station"]


def test_get_detail_tolerates_out_of_range_review_phrases(
    memory_repo: InMemoryCatalogRepository, converter: RelativeTimeConverter
) -> None:
    project = memory_repo.catalog.projects[0]
    project.reviews[0] = project.reviews[0].model_copy(update={"time_ago": "Hace 3000 años"})
    store = CatalogStore(memory_repo, converter)

    detail = store.get_detail("weather-station")

    assert detail is not None
    assert detail.reviews[0].created_at is None
    assert detail.reviews[0].time_ago == "Hace 3000 años"
    result = store.add_review(ReviewInput(slug="weather-station", rating=4))
    assert result.reviews[1].time_ago == "Hace 3000 años"


def test_add_review_with_nan_rating_counts_as_minimum(memory_store: CatalogStore) -> None:
    result = memory_store.add_review(ReviewInput(slug="weather-station", rating=float("nan")))

    assert result.reviews[0].rating == 1
    assert result.review_count == 3
