#!/usr/bin/env python3
"""
AutoNews - News Content Back Office
===================================

Command line entry point. Every trigger of the pipeline is one command, meant
to be invoked by cron or a systemd timer; each invocation builds its own
services and runs to completion.

Usage:
    python main.py --help                     # Show all commands
    python main.py check-config               # Validate configuration
    python main.py init-db                    # Initialize database
    python main.py fetch-feeds                # Ingest all due RSS sources
    python main.py upload stories.csv         # Enqueue an uploaded batch
    python main.py process-queue --limit 20   # Convert queue entries to articles
    python main.py rewrite-queue              # AI rewrite of eligible entries
    python main.py affiliate-click 3          # Track a click, print the redirect target
"""

import sys
import asyncio
from datetime import timedelta
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from autonews.ai.providers.groq_provider import GroqRewriter
from autonews.ai.rewrite_service import RewriteService, RewriteItemStatus
from autonews.config.settings import get_settings
from autonews.database.connection import DatabaseConnection
from autonews.database.models import AffiliateLink, Category, ProcessingStatus, RSSSource, utc_now
from autonews.database.schema import DatabaseSchema
from autonews.ingestion.content_cleaner import generate_slug
from autonews.ingestion.content_normalizer import ContentNormalizer
from autonews.ingestion.rss_parser import RSSParser
from autonews.ingestion.upload_parser import UploadFormat, parse_upload
from autonews.processing.content_ingestor import ContentIngestor
from autonews.processing.feed_fetcher import FeedFetcher
from autonews.processing.queue_processor import QueueItemStatus, QueueProcessor
from autonews.scheduler.feed_scheduler import FeedScheduler, SourceRunStatus
from autonews.storage import (
    AffiliateRepository,
    ArticleRepository,
    CategoryRepository,
    QueueRepository,
    SourceRepository,
)
from autonews.utils.exceptions import handle_exception
from autonews.utils.logging import configure_application_logging, get_logger_for_component


console = Console()
logger = get_logger_for_component("cli")


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, debug):
    """AutoNews - RSS and upload ingestion with AI rewriting."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def _bootstrap(ctx):
    """Load settings, configure logging and open the database."""
    settings = get_settings()
    configure_application_logging(
        log_level="DEBUG" if ctx.obj.get('debug') else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
    )
    db = DatabaseConnection(settings.database.path, pool_size=settings.database.pool_size)
    return settings, db


def _build_ingestor(settings, db) -> ContentIngestor:
    return ContentIngestor(
        db,
        fetcher=FeedFetcher(settings),
        parser=RSSParser(),
        normalizer=ContentNormalizer(settings),
        settings=settings,
    )


def _build_rewrite_service(settings, db) -> RewriteService:
    return RewriteService(db, GroqRewriter.from_settings(settings.ai), settings)


def _fail(prefix: str, error: Exception) -> None:
    error = handle_exception(error, logger, prefix)
    console.print(f"[bold red]❌ {prefix}: {error}[/bold red]")
    sys.exit(1)


@cli.command()
def check_config():
    """Validate configuration and environment variables."""
    console.print("[bold blue]🔧 Checking AutoNews Configuration[/bold blue]")

    try:
        settings = get_settings()
    except Exception as e:
        _fail("Configuration error", e)

    table = Table(title="Configuration Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Details")

    table.add_row("Database", "✅ Valid", f"Path: {settings.database.path}, pool: {settings.database.pool_size}")
    table.add_row(
        "Logging", "✅ Valid",
        f"Level: {settings.get_effective_log_level()}, file: {settings.logging.file_path or 'disabled'}",
    )
    table.add_row(
        "Fetching", "✅ Valid",
        f"Timeout: {settings.fetch.request_timeout}s, default interval: {settings.fetch.default_fetch_interval}s",
    )
    table.add_row(
        "Processing", "✅ Valid",
        f"Queue batch: {settings.processing.queue_batch_size}, rewrite batch: {settings.processing.rewrite_batch_size}",
    )
    if settings.ai.has_credentials():
        table.add_row("AI Rewrite", "✅ Valid", f"Groq model: {settings.ai.groq_model}")
    else:
        table.add_row("AI Rewrite", "⚠️ Disabled", "AUTONEWS_AI__GROQ_API_KEY not set")

    console.print(table)
    console.print("[bold green]✅ Configuration loaded[/bold green]")


@cli.command()
@click.pass_context
def init_db(ctx):
    """Initialize database with schema."""
    console.print("[bold blue]🗄️ Initializing AutoNews Database[/bold blue]")

    try:
        settings, db = _bootstrap(ctx)
        Path(settings.database.path).parent.mkdir(parents=True, exist_ok=True)

        schema = DatabaseSchema(settings.database.path)
        schema.create_tables()
        if not schema.verify_schema():
            console.print("[bold red]❌ Database schema verification failed[/bold red]")
            sys.exit(1)

        info = db.get_database_info()
        info_table = Table(title="Database Information")
        info_table.add_column("Property", style="cyan")
        info_table.add_column("Value", style="green")
        info_table.add_row("Database Path", settings.database.path)
        info_table.add_row("Size", f"{info['database_size_mb']:.2f} MB")
        for table_name, count in info['table_counts'].items():
            info_table.add_row(f"Rows in {table_name}", str(count))

        console.print("[bold green]✅ Database initialized successfully![/bold green]")
        console.print(info_table)

    except Exception as e:
        _fail("Database initialization error", e)


@cli.command()
@click.argument('name')
@click.option('--slug', help='URL slug (default: derived from the name)')
@click.option('--description', help='Category description')
@click.pass_context
def add_category(ctx, name, slug, description):
    """Create an editorial category."""
    try:
        settings, db = _bootstrap(ctx)
        category = Category(name=name, slug=slug or generate_slug(name), description=description)
        category_id = CategoryRepository(db).create_category(category)
        console.print(f"[bold green]✅ Category '{name}' created (id={category_id})[/bold green]")
    except Exception as e:
        _fail("Could not create category", e)


@cli.command()
@click.argument('name')
@click.argument('url')
@click.option('--category-id', type=int, help='Category for items from this source')
@click.option('--interval', type=int, help='Minimum seconds between fetches')
@click.pass_context
def add_source(ctx, name, url, category_id, interval):
    """Register an RSS/Atom feed."""
    try:
        settings, db = _bootstrap(ctx)
        source = RSSSource(
            name=name,
            url=url,
            category_id=category_id,
            fetch_interval=interval or settings.fetch.default_fetch_interval,
        )
        source_id = SourceRepository(db).create_source(source)
        console.print(f"[bold green]✅ Source '{name}' registered (id={source_id})[/bold green]")
    except Exception as e:
        _fail("Could not add source", e)


@cli.command()
@click.option('--active-only', is_flag=True, help='Only show active sources')
@click.pass_context
def list_sources(ctx, active_only):
    """List RSS sources."""
    try:
        settings, db = _bootstrap(ctx)
        sources = SourceRepository(db).list_sources(active_only=active_only)
    except Exception as e:
        _fail("Could not list sources", e)

    table = Table(title=f"RSS Sources ({len(sources)})")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("URL")
    table.add_column("Active")
    table.add_column("Interval")
    table.add_column("Last Fetched")
    for source in sources:
        table.add_row(
            str(source.id),
            source.name,
            source.url,
            "✅" if source.is_active else "❌",
            f"{source.fetch_interval}s",
            source.last_fetched_at.strftime("%Y-%m-%d %H:%M") if source.last_fetched_at else "never",
        )
    console.print(table)


@cli.command()
@click.argument('source_id', type=int)
@click.option('--active/--inactive', default=True, help='Activate or deactivate the source')
@click.pass_context
def toggle_source(ctx, source_id, active):
    """Activate or deactivate an RSS source."""
    try:
        settings, db = _bootstrap(ctx)
        if not SourceRepository(db).set_active(source_id, active):
            console.print(f"[bold red]❌ Source {source_id} not found[/bold red]")
            sys.exit(1)
        console.print(f"[green]Source {source_id} is now {'active' if active else 'inactive'}[/green]")
    except Exception as e:
        _fail("Could not update source", e)


@cli.command()
@click.pass_context
def fetch_feeds(ctx):
    """Ingest every active RSS source whose fetch interval has elapsed."""
    console.print("[bold blue]📡 Fetching due RSS sources[/bold blue]")

    async def run():
        settings, db = _bootstrap(ctx)
        scheduler = FeedScheduler(_build_ingestor(settings, db), SourceRepository(db))
        return await scheduler.run_due_sources()

    try:
        results = asyncio.run(run())
    except Exception as e:
        _fail("Feed scheduling error", e)

    table = Table(title="Scheduling Pass")
    table.add_column("Source", style="cyan")
    table.add_column("Status")
    table.add_column("Enqueued", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Details")
    for result in results:
        ingest = result.ingest
        table.add_row(
            result.source_name,
            result.status.value,
            str(ingest.enqueued) if ingest else "-",
            str(ingest.skipped) if ingest else "-",
            result.error or result.reason or "",
        )
    console.print(table)

    if any(r.status == SourceRunStatus.ERROR for r in results):
        sys.exit(1)


@cli.command()
@click.argument('source_id', type=int)
@click.pass_context
def fetch_source(ctx, source_id):
    """Ingest one RSS source now, ignoring its fetch interval."""

    async def run():
        settings, db = _bootstrap(ctx)
        return await _build_ingestor(settings, db).ingest_source(source_id)

    try:
        result = asyncio.run(run())
    except Exception as e:
        _fail(f"Source {source_id} failed", e)

    console.print(
        f"[bold green]✅ {result.source_name}: {result.enqueued} enqueued, "
        f"{result.skipped} skipped, {result.failed} failed of {result.total_items}[/bold green]"
    )
    for error in result.errors:
        console.print(f"  [yellow]⚠️ {error}[/yellow]")


@cli.command()
@click.argument('file_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--format', 'upload_format', type=click.Choice([f.value for f in UploadFormat]),
              help='Upload format (default: from the file extension)')
@click.pass_context
def upload(ctx, file_path, upload_format):
    """Validate an uploaded JSON/CSV/spreadsheet file and enqueue its records."""
    try:
        settings, db = _bootstrap(ctx)
        upload_format = UploadFormat(upload_format) if upload_format else UploadFormat.from_filename(file_path)
        records = parse_upload(Path(file_path).read_bytes(), upload_format)
        result = _build_ingestor(settings, db).ingest_records(records, upload_format)
    except Exception as e:
        _fail("Upload rejected", e)

    console.print(
        f"[bold green]✅ {result.enqueued} enqueued, {result.skipped} skipped, "
        f"{result.failed} failed of {result.total_records} records[/bold green]"
    )
    for error in result.errors:
        console.print(f"  [yellow]⚠️ {error}[/yellow]")


@cli.command()
@click.option('--limit', type=int, help='Maximum entries to process')
@click.pass_context
def process_queue(ctx, limit):
    """Convert pending queue entries into unpublished articles."""
    try:
        settings, db = _bootstrap(ctx)
        processor = QueueProcessor(db, ContentNormalizer(settings), settings)
        results = processor.process_batch(limit=limit)
    except Exception as e:
        _fail("Queue processing error", e)

    completed = sum(1 for r in results if r.status == QueueItemStatus.COMPLETED)
    console.print(f"[bold green]✅ {completed} of {len(results)} entries converted[/bold green]")
    for result in results:
        if result.status == QueueItemStatus.FAILED:
            console.print(f"  [red]Entry {result.queue_id}: {result.error}[/red]")


@cli.command()
@click.option('--limit', type=int, help='Maximum entries to rewrite')
@click.pass_context
def rewrite_queue(ctx, limit):
    """AI rewrite of queue entries that have not been rewritten yet."""

    async def run():
        settings, db = _bootstrap(ctx)
        return await _build_rewrite_service(settings, db).process_pending(limit=limit)

    try:
        results = asyncio.run(run())
    except Exception as e:
        _fail("Rewrite error", e)

    rewritten = sum(1 for r in results if r.status == RewriteItemStatus.REWRITTEN)
    console.print(f"[bold green]✅ {rewritten} of {len(results)} entries rewritten[/bold green]")
    for result in results:
        if result.status == RewriteItemStatus.FAILED:
            console.print(f"  [red]Entry {result.queue_id}: {result.error}[/red]")


@cli.command()
@click.argument('queue_id', type=int)
@click.pass_context
def rewrite_entry(ctx, queue_id):
    """AI rewrite of a single queue entry."""

    async def run():
        settings, db = _bootstrap(ctx)
        entry = QueueRepository(db).get_entry(queue_id)
        if entry is None:
            raise click.ClickException(f"Queue entry {queue_id} not found")
        service = _build_rewrite_service(settings, db)
        content, title, source_url = service.original_content(entry)
        return await service.rewrite_content(content, title, source_url, queue_id=queue_id)

    try:
        result = asyncio.run(run())
    except Exception as e:
        _fail(f"Rewrite of entry {queue_id} failed", e)

    console.print(f"[bold green]✅ Rewritten: {result.title}[/bold green]")
    console.print(f"Category: {result.category or '-'}")
    console.print(f"Keywords: {', '.join(result.keywords) or '-'}")
    console.print(f"Summary: {result.summary or '-'}")


@cli.command()
@click.argument('article_id', type=int)
@click.argument('language')
@click.pass_context
def translate(ctx, article_id, language):
    """Translate an article and store the translation."""

    async def run():
        settings, db = _bootstrap(ctx)
        return await _build_rewrite_service(settings, db).translate_article(article_id, language)

    try:
        outcome = asyncio.run(run())
    except Exception as e:
        _fail("Translation failed", e)

    console.print(
        f"[bold green]✅ Article {outcome.article_id} translated to {outcome.language}: "
        f"{outcome.title}[/bold green]"
    )


@cli.command()
@click.option('--status', type=click.Choice([s.value for s in ProcessingStatus]),
              help='Also list entries with this processing status')
@click.option('--limit', default=20, help='Entries to list with --status')
@click.pass_context
def queue_status(ctx, status, limit):
    """Show queue counts per processing and rewrite status."""
    try:
        settings, db = _bootstrap(ctx)
        queue = QueueRepository(db)
        stats = queue.get_stats()
        entries = queue.list_entries(ProcessingStatus(status), limit=limit) if status else []
    except Exception as e:
        _fail("Could not read queue", e)

    table = Table(title=f"Content Queue ({stats.total} entries)")
    table.add_column("Dimension", style="cyan")
    table.add_column("Status")
    table.add_column("Count", justify="right")
    for name, count in stats.processing.items():
        table.add_row("processing", name, str(count))
    for name, count in stats.rewrite.items():
        table.add_row("rewrite", name, str(count))
    console.print(table)

    if entries:
        entry_table = Table(title=f"Entries with status {status}")
        entry_table.add_column("ID", style="cyan")
        entry_table.add_column("Title")
        entry_table.add_column("State")
        entry_table.add_column("Error")
        for entry in entries:
            entry_table.add_row(
                str(entry.id), entry.title[:60], str(entry.state),
                entry.error_message or entry.ai_error_message or "",
            )
        console.print(entry_table)


@cli.command()
@click.argument('article_id', type=int)
@click.pass_context
def publish(ctx, article_id):
    """Publish an article."""
    try:
        settings, db = _bootstrap(ctx)
        published = ArticleRepository(db).publish(article_id)
    except Exception as e:
        _fail("Publish failed", e)

    if not published:
        console.print(f"[yellow]Article {article_id} not found or already published[/yellow]")
        sys.exit(1)
    console.print(f"[bold green]✅ Article {article_id} published[/bold green]")


@cli.command()
@click.option('--published', 'published_only', is_flag=True, help='Only published articles')
@click.option('--category-id', type=int, help='Published articles of one category')
@click.option('--limit', default=20, help='Number of articles')
@click.pass_context
def list_articles(ctx, published_only, category_id, limit):
    """List recent articles."""
    try:
        settings, db = _bootstrap(ctx)
        articles = ArticleRepository(db)
        if published_only or category_id is not None:
            rows = articles.list_published(category_id=category_id, limit=limit)
        else:
            rows = articles.list_recent(limit=limit)
    except Exception as e:
        _fail("Could not list articles", e)

    table = Table(title=f"Articles ({len(rows)})")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Slug")
    table.add_column("Source")
    table.add_column("Published")
    table.add_column("Views", justify="right")
    for article in rows:
        table.add_row(
            str(article.id),
            article.title[:60],
            article.slug,
            article.source_name or "",
            "✅" if article.is_published else "❌",
            str(article.view_count),
        )
    console.print(table)


@cli.command()
@click.argument('name')
@click.argument('original_url')
@click.argument('affiliate_url')
@click.option('--network', default='', help='Affiliate network')
@click.option('--commission', 'commission_rate', type=float, default=0.0, help='Commission rate in percent')
@click.pass_context
def add_affiliate(ctx, name, original_url, affiliate_url, network, commission_rate):
    """Register an affiliate link."""
    try:
        settings, db = _bootstrap(ctx)
        link = AffiliateLink(
            name=name,
            original_url=original_url,
            affiliate_url=affiliate_url,
            network=network,
            commission_rate=commission_rate,
        )
        link_id = AffiliateRepository(db).create_link(link)
        console.print(f"[bold green]✅ Affiliate link '{name}' registered (id={link_id})[/bold green]")
    except Exception as e:
        _fail("Could not add affiliate link", e)


@cli.command()
@click.option('--days', type=int, help='Rank links by clicks over the last N days instead')
@click.pass_context
def list_affiliates(ctx, days):
    """List affiliate links with their click counts."""
    try:
        settings, db = _bootstrap(ctx)
        repository = AffiliateRepository(db)
        if days is not None:
            links = repository.top_links(since=utc_now() - timedelta(days=days))
        else:
            links = repository.list_links()
    except Exception as e:
        _fail("Could not list affiliate links", e)

    title = f"Top Affiliate Links, last {days} days" if days is not None else "Affiliate Links"
    table = Table(title=f"{title} ({len(links)})")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Network")
    table.add_column("Commission", justify="right")
    table.add_column("Active")
    table.add_column("Clicks", justify="right")
    for link in links:
        table.add_row(
            str(link.id),
            link.name,
            link.network,
            f"{link.commission_rate:g}%",
            "✅" if link.is_active else "❌",
            str(link.click_count),
        )
    console.print(table)


@cli.command()
@click.argument('link_id', type=int)
@click.option('--active/--inactive', default=True, help='Activate or deactivate the link')
@click.pass_context
def toggle_affiliate(ctx, link_id, active):
    """Activate or deactivate an affiliate link."""
    try:
        settings, db = _bootstrap(ctx)
        if not AffiliateRepository(db).set_active(link_id, active):
            console.print(f"[bold red]❌ Affiliate link {link_id} not found[/bold red]")
            sys.exit(1)
        console.print(f"[green]Affiliate link {link_id} is now {'active' if active else 'inactive'}[/green]")
    except Exception as e:
        _fail("Could not update affiliate link", e)


@cli.command()
@click.argument('link_id', type=int)
@click.option('--ip', 'ip_address', help='Client address')
@click.option('--user-agent', help='Client user agent')
@click.option('--referrer', help='Referring page')
@click.pass_context
def affiliate_click(ctx, link_id, ip_address, user_agent, referrer):
    """Record a click on an affiliate link and print its redirect target."""
    try:
        settings, db = _bootstrap(ctx)
        target = AffiliateRepository(db).resolve_and_track(
            link_id, ip_address=ip_address, user_agent=user_agent, referrer=referrer
        )
    except Exception as e:
        _fail("Could not track affiliate click", e)

    if target is None:
        console.print(f"[bold red]❌ Affiliate link {link_id} not found[/bold red]")
        sys.exit(1)
    click.echo(target)


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 AutoNews interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n[bold red]❌ Unexpected error: {e}[/bold red]")
        sys.exit(1)
