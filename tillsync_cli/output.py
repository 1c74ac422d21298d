"""Shared output formatting. NO class - just functions."""

import json

import click


def print_json(data: dict) -> None:
    """Print JSON data formatted."""
    click.echo(json.dumps(data, indent=2, sort_keys=True, default=str))


def print_error(message: str) -> None:
    """Print error message in red."""
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)


def print_success(message: str) -> None:
    """Print success message in green."""
    click.echo(click.style(message, fg="green"))


def print_warning(message: str) -> None:
    """Print warning message in yellow."""
    click.echo(click.style(message, fg="yellow"))


def table(headers: list[str], rows: list[list[str]]) -> None:
    """Print simple table for list commands."""
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            if i < len(widths):
                widths[i] = max(widths[i], len(str(cell)))

    click.echo("  ".join(h.ljust(widths[i]) for i, h in enumerate(headers)))
    click.echo("  ".join("-" * w for w in widths))
    for row in rows:
        click.echo("  ".join(str(cell).ljust(widths[i]) for i, cell in enumerate(row)))
