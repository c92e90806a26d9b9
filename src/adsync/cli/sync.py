"""CLI commands for capture runs and the ad store.

Usage:
    adsync initial URL [--max N] [--data-dir DIR] [--headed] [-v]
    adsync incremental PAGE_ID [--data-dir DIR] [--headed] [-v]
    adsync extract PAYLOAD_FILE [--page-id ID]
    adsync show PAGE_ID [--data-dir DIR]
"""

import asyncio
import json
import sys
from pathlib import Path

import click

from ..logging import setup_logging
from ..models import SyncResult


def _data_dir_option(func):
    return click.option(
        "--data-dir",
        type=click.Path(file_okay=False, path_type=Path),
        default=None,
        help="Root directory of the ad store (default: ADSYNC_DATA_DIR or ./ads_database)",
    )(func)


@click.command()
@click.argument("url")
@click.option(
    "--max",
    "max_ads",
    type=click.IntRange(min=0),
    default=None,
    help="Maximum number of distinct ads to capture",
)
@_data_dir_option
@click.option("--headed", is_flag=True, help="Show the browser window")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def initial_sync(url: str, max_ads: int | None, data_dir: Path | None, headed: bool, verbose: bool):
    """Capture every ad reachable from an Ad Library URL.

    Examples:

        # Capture all ads of a page
        adsync initial "https://www.facebook.com/ads/library/?view_all_page_id=282592881929497"

        # Stop after 200 ads
        adsync initial URL --max 200
    """
    from ..storage import get_store
    from ..sync.runs import run_initial_sync

    if verbose:
        setup_logging("DEBUG")
        click.echo(f"  URL: {url}")
        click.echo(f"  Limit: {max_ads if max_ads is not None else 'none'}")

    click.echo("Starting initial sync...")
    try:
        result = asyncio.run(
            run_initial_sync(
                url,
                max_ads=max_ads,
                store=get_store(data_dir),
                headless=False if headed else None,
            )
        )
        _print_result(result, verbose)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.command()
@click.argument("page_id")
@_data_dir_option
@click.option("--headed", is_flag=True, help="Show the browser window")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def incremental_sync(page_id: str, data_dir: Path | None, headed: bool, verbose: bool):
    """Refresh the stored ads of one page.

    Only ads that are new or whose status, dates or creative text changed
    are written.
    """
    from ..storage import get_store
    from ..sync.runs import run_incremental_sync

    if verbose:
        setup_logging("DEBUG")

    click.echo(f"Starting incremental sync for page {page_id}...")
    try:
        result = asyncio.run(
            run_incremental_sync(
                page_id,
                store=get_store(data_dir),
                headless=False if headed else None,
            )
        )
        _print_result(result, verbose)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.command()
@click.argument("payload_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--page-id", default=None, help="Only print ads of this page")
def extract_payload(payload_file: Path, page_id: str | None):
    """Extract ads from a saved response body and print them as JSON.

    Useful for checking a captured payload against the extractor without
    opening a browser.
    """
    from ..extraction import PayloadExtractor

    batch = PayloadExtractor().extract_from_body(payload_file.read_bytes(), source_url=str(payload_file))
    records = [r for r in batch.records if page_id is None or r.page_id == page_id]

    click.echo(json.dumps([r.model_dump(mode="json") for r in records], indent=2, ensure_ascii=False))
    click.echo(
        f"Found {batch.found} ad-like objects, {len(batch.records)} valid, {batch.rejected} rejected",
        err=True,
    )


@click.command()
@click.argument("page_id")
@_data_dir_option
def show_page(page_id: str, data_dir: Path | None):
    """Show stored metadata and ad counts for a page."""
    from ..storage import get_store

    try:
        store = get_store(data_dir)
        metadata = store.load_metadata(page_id)
        ads = store.list_ads(page_id)
        known_pages = store.list_pages()
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if metadata is None and not ads:
        click.echo(f"No stored data for page {page_id}", err=True)
        if known_pages:
            click.echo(f"Stored pages: {', '.join(known_pages)}", err=True)
        sys.exit(1)

    click.echo(f"Page: {page_id}")
    if metadata is not None:
        click.echo(f"Last synced: {metadata.last_synced.isoformat()}")
        click.echo(f"Total ads (metadata): {metadata.total_ads}")
    click.echo(f"Ads on disk: {len(ads)}")
    click.echo(f"Active ads: {sum(1 for ad in ads if ad.is_active)}")


def _print_result(result: SyncResult, verbose: bool):
    """Print sync result."""
    status_color = {
        "completed": "green",
        "failed": "red",
    }.get(result.status, "white")

    click.echo("\n" + "=" * 40)
    click.echo(f"{str(result.mode).capitalize()} sync ", nl=False)
    click.secho(result.status.upper(), fg=status_color)
    click.echo("=" * 40)

    click.echo(f"Duration: {result.duration_seconds or 0:.1f} seconds")
    click.echo(f"Total ads: {result.records_total}")
    click.echo(f"New: {result.records_new}")
    click.echo(f"Changed: {result.records_changed}")
    click.echo(f"Unchanged: {result.records_unchanged}")
    click.echo(f"Rejected: {result.records_rejected}")
    click.echo(f"Files written: {result.records_saved}")
    if result.cap_reached:
        click.echo("Stopped at the --max limit")

    if verbose:
        click.echo(f"Responses seen: {result.responses_seen}")
        click.echo(f"Payloads decoded: {result.payloads_decoded}")

    if result.errors:
        click.echo(f"\nErrors: {len(result.errors)}")
        if verbose:
            for i, error in enumerate(result.errors[:10], 1):
                click.echo(f"  {i}. {error.get('error', 'Unknown error')}")
