"""Typer-based operator CLI."""

import os

os.environ.setdefault("LOGFIRE_IGNORE_NO_CONFIG", "1")

from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path.cwd() / ".env")
load_dotenv(Path.cwd() / ".env.local")

import asyncio
import json
from typing import List, Optional

import typer
from pydantic import BaseModel, ValidationError

from guide_crawler.models.crawl_models import CrawlRequest
from guide_crawler.services.cache_store import get_cache_store
from guide_crawler.services.crawler import InvalidWebsiteUrlError, get_website_crawler
from guide_crawler.services.scheduler import GuideNotFoundError, get_scheduler
from guide_crawler.services.site_search import get_site_search

app = typer.Typer(help="Crawl, cache and search guide websites.")


def _print_model(model: BaseModel) -> None:
    typer.echo(model.model_dump_json(by_alias=True, exclude_none=True, indent=2))


def _fail(message: str) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(1)


@app.command()
def crawl(
    website_url: str = typer.Argument(..., help="Site to crawl"),
    max_pages: Optional[int] = typer.Option(None, help="Maximum pages to return"),
    max_depth: Optional[int] = typer.Option(None, help="Maximum link depth"),
    max_concurrency: Optional[int] = typer.Option(None, help="Concurrent fetches"),
    include: List[str] = typer.Option([], help="Regex a URL must match (repeatable)"),
    exclude: List[str] = typer.Option([], help="Regex a URL must not match (repeatable)"),
    ignore_robots: bool = typer.Option(False, help="Do not honour robots.txt"),
):
    """Crawl a website and print the pages found."""
    payload = {"websiteUrl": website_url, "respectRobotsTxt": not ignore_robots}
    if max_pages is not None:
        payload["maxPages"] = max_pages
    if max_depth is not None:
        payload["maxDepth"] = max_depth
    if max_concurrency is not None:
        payload["maxConcurrency"] = max_concurrency
    if include:
        payload["includePatterns"] = include
    if exclude:
        payload["excludePatterns"] = exclude

    try:
        request = CrawlRequest.model_validate(payload)
        response = asyncio.run(get_website_crawler().crawl(request))
    except (ValidationError, InvalidWebsiteUrlError) as e:
        _fail(str(e))
    _print_model(response)


@app.command()
def search(
    base: str = typer.Argument(..., help="Site to search"),
    query: str = typer.Argument(..., help="Free-text query"),
):
    """Search a website live for pages matching a query."""
    try:
        response = asyncio.run(get_site_search().search(base, query))
    except InvalidWebsiteUrlError as e:
        _fail(str(e))
    _print_model(response)


@app.command()
def sweep():
    """Crawl and cache every active guide once."""
    stats = asyncio.run(get_scheduler().run())
    _print_model(stats)


@app.command("run-guide")
def run_guide(
    slug: str = typer.Argument(..., help="Guide slug"),
    website_url: Optional[str] = typer.Option(
        None, help="Site to crawl (looked up in the guide directory when omitted)"
    ),
):
    """Crawl and cache a single guide."""
    try:
        result = asyncio.run(get_scheduler().run_for_guide(slug, website_url))
    except (GuideNotFoundError, ValueError) as e:
        _fail(str(e))
    _print_model(result)


@app.command("cache-list")
def cache_list():
    """List persisted guide caches, newest first."""
    entries = asyncio.run(get_cache_store().list_documents())
    typer.echo(
        json.dumps([e.model_dump(by_alias=True) for e in entries], indent=2)
    )


@app.command("cache-cleanup")
def cache_cleanup():
    """Delete expired guide caches."""
    removed = asyncio.run(get_cache_store().cleanup_expired())
    typer.echo(json.dumps({"removed": removed}))


if __name__ == "__main__":
    app()
