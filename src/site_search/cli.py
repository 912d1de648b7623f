"""Operator CLI for the site search index.

Content is read from a JSON export of the form
``{"content": [...], "taxonomy_terms": [...]}``; the index, suggestion
snapshot and analytics live in the configured SQLite database.

Usage:
    # Rebuild the whole index from an export
    site-search --content export.json rebuild

    # Rebuild only posts and pages
    site-search --content export.json rebuild --types post page

    # Refresh the suggestion snapshot
    site-search --content export.json rebuild-suggestions

    # Ranked search, weighted search and autocomplete
    site-search search "garden tools" --page 2
    site-search weighted "garden tools"
    site-search suggest gard

    # Index status and the analytics dashboard
    site-search status
    site-search dashboard --days 7
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys

from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table

from site_search.adapters.content_repository import InMemoryContentRepository
from site_search.config import Settings
from site_search.domain.errors import SiteSearchError
from site_search.domain.index_progress import BuildProgress
from site_search.domain.search import SearchFilters
from site_search.observability.logging import configure_logging
from site_search.service_layer.search_service import SearchService


logger = logging.getLogger(__name__)
console = Console()


def _build_service(args: argparse.Namespace) -> SearchService:
    overrides = {}
    if args.database:
        overrides["database_path"] = str(args.database)
    settings = Settings(**overrides)
    configure_logging(settings.log_level, settings.log_json and not args.plain_logs)
    repository = InMemoryContentRepository.from_json(args.content) if args.content else InMemoryContentRepository()
    return SearchService(settings, repository, subscribe=False)


def _require_content(args: argparse.Namespace) -> bool:
    if args.content is None:
        console.print("[red]❌ --content is required for this command[/red]")
        return False
    return True


def cmd_rebuild(service: SearchService, args: argparse.Namespace) -> int:
    if not _require_content(args):
        return 2
    with Progress(
        TextColumn("[bold blue]Indexing"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task_id = progress.add_task("index", total=None)

        def on_progress(update: BuildProgress) -> None:
            progress.update(task_id, total=update.total, completed=update.processed)

        result = service.build_all(args.types or None, on_progress=on_progress)

    style = "bold green" if result.success else "bold yellow"
    console.print(
        f"Indexed {result.indexed}, skipped {result.skipped}, failed {result.failed} of {result.total}",
        style=style,
    )
    for error in result.errors:
        console.print(f"   • [red]{error}[/red]")
    if args.with_suggestions:
        count = service.rebuild_suggestions()
        console.print(f"Suggestion snapshot: {count} terms")
    return 0 if result.success else 1


def cmd_rebuild_suggestions(service: SearchService, args: argparse.Namespace) -> int:
    if not _require_content(args):
        return 2
    count = service.rebuild_suggestions()
    console.print(f"✅ Suggestion snapshot rebuilt with {count} terms", style="bold green")
    return 0


def cmd_search(service: SearchService, args: argparse.Namespace) -> int:
    filters = SearchFilters(content_types=tuple(args.types or ()))
    page = service.search(args.query, filters, args.page, args.page_size, track=not args.no_track)
    table = Table(title=f"Results for '{args.query}' ({page.total_count} total, page {page.page})")
    table.add_column("ID", justify="right")
    table.add_column("Type")
    table.add_column("Title")
    table.add_column("Score", justify="right")
    table.add_column("Relevance", justify="right")
    table.add_column("Boost", justify="right")
    for result in page.results:
        table.add_row(
            str(result.content_id),
            result.content_type,
            result.title,
            f"{result.final_score:.3f}",
            f"{result.relevance_score:.2f}",
            f"{result.boost_factor:.2f}",
        )
    console.print(table)
    return 0


def cmd_weighted(service: SearchService, args: argparse.Namespace) -> int:
    processed = service.query_processor.process(args.query)
    console.print(f"Terms: [cyan]{processed.filtered_query or '(none)'}[/cyan]")
    results = service.weighted_search(args.query, args.limit, track=not args.no_track)
    table = Table(title=f"Weighted results for '{args.query}'")
    table.add_column("ID", justify="right")
    table.add_column("Title")
    table.add_column("Score", justify="right")
    for result in results:
        table.add_row(str(result.content_id), result.title, f"{result.final_score:.3f}")
    console.print(table)
    return 0


def cmd_suggest(service: SearchService, args: argparse.Namespace) -> int:
    matches = service.suggest(args.prefix, args.limit)
    if not matches:
        console.print("No suggestions")
        return 0
    table = Table(title=f"Suggestions for '{args.prefix}'")
    table.add_column("Term")
    table.add_column("Score", justify="right")
    table.add_column("Source")
    for match in matches:
        table.add_row(match.term, str(match.score), match.source_type)
    console.print(table)
    return 0


def cmd_status(service: SearchService, args: argparse.Namespace) -> int:
    console.print(service.status_summary())
    return 0


def cmd_dashboard(service: SearchService, args: argparse.Namespace) -> int:
    data = service.get_dashboard_data(args.days)
    console.rule(f"[bold blue]Search analytics, last {data.days} days[/bold blue]")
    console.print(
        f"Total searches: {data.total_searches}   "
        f"Avg results: {data.avg_results}   "
        f"Zero-result rate: {data.zero_result_rate}%"
    )

    popular = Table(title="Popular searches")
    popular.add_column("Query")
    popular.add_column("Searches", justify="right")
    popular.add_column("Avg results", justify="right")
    for row in data.popular_searches:
        popular.add_row(row.query, str(row.search_count), str(row.avg_results))
    console.print(popular)

    zero = Table(title="Searches with no results")
    zero.add_column("Query")
    zero.add_column("Searches", justify="right")
    for row in data.zero_result_searches:
        zero.add_row(row.query, str(row.search_count))
    console.print(zero)

    volume = Table(title="Daily volume")
    volume.add_column("Day")
    volume.add_column("Searches", justify="right")
    for row in data.daily_volume:
        volume.add_row(row.day.isoformat(), str(row.search_count))
    console.print(volume)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="site-search", description="Manage and query the site search index")
    parser.add_argument("--content", type=Path, help="JSON export of site content and taxonomy terms")
    parser.add_argument("--database", type=Path, help="SQLite database path (overrides SITE_SEARCH_DATABASE_PATH)")
    parser.add_argument("--plain-logs", action="store_true", help="Human readable logs instead of JSON")
    subparsers = parser.add_subparsers(dest="command", required=True)

    rebuild = subparsers.add_parser("rebuild", help="Rebuild the whole index")
    rebuild.add_argument("--types", nargs="+", help="Content types to index (default: configured types)")
    rebuild.add_argument("--with-suggestions", action="store_true", help="Also rebuild the suggestion snapshot")
    rebuild.set_defaults(handler=cmd_rebuild)

    suggestions = subparsers.add_parser("rebuild-suggestions", help="Rebuild the suggestion snapshot")
    suggestions.set_defaults(handler=cmd_rebuild_suggestions)

    search = subparsers.add_parser("search", help="Ranked full-text search")
    search.add_argument("query")
    search.add_argument("--types", nargs="+", help="Restrict to these content types")
    search.add_argument("--page", type=int, default=1)
    search.add_argument("--page-size", type=int, default=None)
    search.add_argument("--no-track", action="store_true", help="Do not record the query in analytics")
    search.set_defaults(handler=cmd_search)

    weighted = subparsers.add_parser("weighted", help="Stop/boost word weighted pattern search")
    weighted.add_argument("query")
    weighted.add_argument("--limit", type=int, default=None)
    weighted.add_argument("--no-track", action="store_true", help="Do not record the query in analytics")
    weighted.set_defaults(handler=cmd_weighted)

    suggest = subparsers.add_parser("suggest", help="Autocomplete suggestions")
    suggest.add_argument("prefix")
    suggest.add_argument("--limit", type=int, default=None)
    suggest.set_defaults(handler=cmd_suggest)

    status = subparsers.add_parser("status", help="Show index status")
    status.set_defaults(handler=cmd_status)

    dashboard = subparsers.add_parser("dashboard", help="Show search analytics")
    dashboard.add_argument("--days", type=int, default=30)
    dashboard.set_defaults(handler=cmd_dashboard)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        service = _build_service(args)
    except SiteSearchError as exc:
        console.print(f"[red]❌ {exc}[/red]")
        return 1
    try:
        return args.handler(service, args)
    except SiteSearchError as exc:
        logger.error("Command %s failed: %s", args.command, exc)
        console.print(f"[red]❌ {exc}[/red]")
        return 1
    finally:
        service.close()


if __name__ == "__main__":
    sys.exit(main())
