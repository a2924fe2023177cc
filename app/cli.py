from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from adapters.filesystem.catalog_repository import FileSystemCatalogRepository
from app.catalog_wiring import build_catalog_store
from app.config import AppSettings, load_settings
from domain.catalog import ProjectSummary, ReviewInput
from domain.errors import CatalogError, ProjectNotFoundError
from domain.services.catalog_store import CatalogStore

app = typer.Typer(no_args_is_help=True)
console = Console()


def _settings(config: Optional[Path]) -> AppSettings:
    settings = load_settings(config)
    logging.basicConfig(
        level=settings.catalog.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return settings


def _open_store(config: Optional[Path]) -> CatalogStore:
    settings = _settings(config)
    try:
        return build_catalog_store(settings)
    except CatalogError as exc:
        console.print(f"[red]Cannot open catalog:[/] {exc}")
        raise typer.Exit(code=1) from exc


def _summary_table(title: str, summaries: list[ProjectSummary]) -> Table:
    table = Table(title=title)
    table.add_column("Slug")
    table.add_column("Title")
    table.add_column("Author")
    table.add_column("Rating", justify="right")
    table.add_column("Reviews", justify="right")
    for summary in summaries:
        table.add_row(
            summary.slug,
            summary.title,
            summary.author_display_name or summary.author_username,
            f"{summary.rating:.2f}",
            str(summary.review_count),
        )
    return table


@app.command("list")
def list_projects(
    author: Optional[str] = typer.Option(None, help="Only projects by this username."),
    recent: bool = typer.Option(False, help="Only the recently added projects."),
    config: Optional[Path] = typer.Option(None, "--config", help="YAML settings file."),
) -> None:
    store = _open_store(config)
    if author is not None:
        summaries = store.list_by_author(author)
        title = f"Projects by {author}"
    elif recent:
        summaries = store.list_recent()
        title = "Recent projects"
    else:
        summaries = store.list_all()
        title = "All projects"
    if not summaries:
        console.print("[yellow]No projects found[/]")
        return
    console.print(_summary_table(title, summaries))


@app.command("show")
def show_project(
    slug: str = typer.Argument(..., help="Project slug."),
    config: Optional[Path] = typer.Option(None, "--config", help="YAML settings file."),
) -> None:
    store = _open_store(config)
    detail = store.get_detail(slug)
    if detail is None:
        console.print(f"[red]Project not found:[/] {slug}")
        raise typer.Exit(code=1)

    summary = detail.summary
    console.print(f"[bold]{summary.title}[/] ({summary.slug})")
    console.print(detail.overview)
    console.print(f"Rating {summary.rating:.2f} from {summary.review_count} reviews")
    for item in detail.rating_breakdown:
        console.print(f"  {item.stars}★ {item.percentage}%")
    for metric in detail.metrics:
        console.print(f"  {metric.label}: {metric.value}")
    for review in detail.reviews:
        console.print(
            f"- {review.reviewer_name} ({review.time_ago}) {review.rating:g}: {review.comment}"
        )


@app.command("review")
def add_review(
    slug: str = typer.Argument(..., help="Project slug."),
    rating: float = typer.Option(..., help="Rating from 1 to 5."),
    comment: str = typer.Option("", help="Review text."),
    name: str = typer.Option("", help="Reviewer display name."),
    config: Optional[Path] = typer.Option(None, "--config", help="YAML settings file."),
) -> None:
    store = _open_store(config)
    try:
        result = store.add_review(
            ReviewInput(slug=slug, rating=rating, comment=comment, reviewer_name=name)
        )
    except ProjectNotFoundError as exc:
        console.print(f"[red]Project not found:[/] {slug}")
        raise typer.Exit(code=1) from exc
    except CatalogError as exc:
        console.print(f"[red]Cannot save review:[/] {exc}")
        raise typer.Exit(code=1) from exc
    console.print(
        f"[green]Review added.[/] Average {result.average_rating:.2f} "
        f"from {result.review_count} reviews"
    )


@app.command("delete")
def delete_project(
    slug: str = typer.Argument(..., help="Project slug."),
    config: Optional[Path] = typer.Option(None, "--config", help="YAML settings file."),
) -> None:
    store = _open_store(config)
    try:
        deleted = store.delete(slug)
    except CatalogError as exc:
        console.print(f"[red]Cannot delete project:[/] {exc}")
        raise typer.Exit(code=1) from exc
    if not deleted:
        console.print(f"[red]Project not found:[/] {slug}")
        raise typer.Exit(code=1)
    console.print(f"[green]Deleted[/] {slug}")


@app.command("stats")
def author_stats(
    username: str = typer.Argument(..., help="Author username."),
    config: Optional[Path] = typer.Option(None, "--config", help="YAML settings file."),
) -> None:
    store = _open_store(config)
    stats = store.author_stats(username)
    console.print(
        f"{stats.username}: {stats.project_count} projects, "
        f"{stats.review_count} reviews, weighted average {stats.weighted_average:.2f}"
    )


@app.command("init")
def init_catalog(
    config: Optional[Path] = typer.Option(None, "--config", help="YAML settings file."),
) -> None:
    settings = _settings(config)
    path = settings.catalog.data_path
    if path.exists():
        console.print(f"[yellow]Catalog already exists:[/] {path}")
        return
    FileSystemCatalogRepository(path, create_if_missing=True).load()
    console.print(f"[green]Created[/] {path}")


if __name__ == "__main__":
    app()
