"""tillsync CLI entry point - assembles all command groups."""
import logging

import click

from tillsync.core import receipt

from . import __version__
from .offline_cmd import offline
from .sale_cmd import sale


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.option("--quiet", "-q", is_flag=True, help="Do not print receipts")
def cli(verbose: bool, quiet: bool):
    """tillsync: keep selling when the network does not."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    if quiet:
        receipt.RECEIPTS_ENABLED = False


cli.add_command(offline)
cli.add_command(sale)


if __name__ == "__main__":
    cli()
