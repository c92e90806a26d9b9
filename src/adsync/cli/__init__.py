"""CLI entry points for adsync.

Provides command-line tools for:
- Full and incremental capture runs
- Offline extraction of saved responses
- Inspecting the ad store
"""

import click

from .. import __version__
from ..logging import setup_logging
from .sync import extract_payload, incremental_sync, initial_sync, show_page


@click.group()
@click.version_option(version=__version__, prog_name="adsync")
def main():
    """adsync - Meta Ad Library capture engine.

    Captures ads from the Ad Library by intercepting its GraphQL
    responses, and keeps a per-page JSON store up to date.
    """
    setup_logging()


main.add_command(initial_sync, name="initial")
main.add_command(incremental_sync, name="incremental")
main.add_command(extract_payload, name="extract")
main.add_command(show_page, name="show")


if __name__ == "__main__":
    main()
