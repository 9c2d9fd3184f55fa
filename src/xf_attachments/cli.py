"""CLI interface for xf-attachments."""

import asyncio
import logging
from pathlib import Path

import click
import orjson

from .config import (
    DEFAULT_DELAY_MS,
    DEFAULT_USER_AGENT,
    ENV_COOKIE,
    ENV_DELAY_MS,
    ENV_USER_AGENT,
    Settings,
)
from .errors import FileReadFailure, RootDirectoryError
from .extractor import extract_blocks
from .naming import choose_output_filename
from .runner import AttachmentRunner
from .utils import find_txt_files, read_text_file


def configure_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _ascii_header(ctx, param, value):
    """Reject header values that cannot be sent (HTTP header values are ASCII)."""
    if value and not all(ord(c) < 128 for c in value):
        raise click.BadParameter("must contain ASCII characters only")
    return value


@click.group()
def main():
    """xf-attachments - Download attachments referenced by xenforo-dl text exports."""
    pass


@main.command()
@click.argument('directory', required=False, default='.')
@click.option(
    '-k', '--cookie',
    default='',
    envvar=ENV_COOKIE,
    callback=_ascii_header,
    help='Cookie header sent with every request (e.g. "xf_session=...;xf_csrf=...")'
)
@click.option(
    '-u', '--user-agent',
    default=DEFAULT_USER_AGENT,
    envvar=ENV_USER_AGENT,
    callback=_ascii_header,
    show_default=True,
    help='User-Agent header sent with every request'
)
@click.option(
    '-d', '--delay-ms',
    default=str(DEFAULT_DELAY_MS),
    envvar=ENV_DELAY_MS,
    show_default=True,
    help='Pause after each download in milliseconds (0 disables it)'
)
@click.option(
    '--report',
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help='Write a JSON report of the run to this file'
)
@click.option(
    '--no-progress',
    is_flag=True,
    help='Hide the progress bar'
)
@click.option(
    '-v', '--verbose',
    is_flag=True,
    help='Log redirects and other debug details'
)
def download(directory, cookie, user_agent, delay_ms, report, no_progress, verbose):
    """Download all attachments found in .txt exports below DIRECTORY."""
    configure_logging(verbose)
    settings = Settings.from_options(directory, cookie, user_agent, delay_ms)

    runner = AttachmentRunner(
        settings.root_dir,
        headers=settings.headers,
        delay_ms=settings.delay_ms,
        show_progress=not no_progress,
    )

    try:
        summary = asyncio.run(runner.run())
    except RootDirectoryError as e:
        raise click.ClickException(str(e))

    if summary.files_scanned == 0:
        click.echo("No .txt files found.")
        return

    if report:
        report_path = Path(report)
        try:
            report_path.parent.mkdir(parents=True, exist_ok=True)
            report_path.write_bytes(orjson.dumps(summary.to_dict(), option=orjson.OPT_INDENT_2))
        except OSError as e:
            raise click.ClickException(f"Could not write report {report_path}: {e}")

    click.echo("\nDone.")
    click.echo(f"TXT files scanned: {summary.files_scanned}")
    click.echo(f"Pattern matches found: {summary.matches_found}")
    click.echo(f"Downloaded: {summary.downloaded}")
    click.echo(f"Failed: {summary.failed}")


@main.command()
@click.argument('directory', required=False, default='.')
def scan(directory):
    """List attachment blocks found below DIRECTORY without downloading anything."""
    root = Path(directory).resolve()
    if not root.is_dir():
        raise click.ClickException(str(RootDirectoryError(root)))

    total = 0
    for txt_file in find_txt_files(root):
        try:
            blocks = extract_blocks(read_text_file(txt_file))
        except FileReadFailure as e:
            click.echo(f"{e}, skipping", err=True)
            continue
        if not blocks:
            continue

        click.echo(f"{txt_file} ({len(blocks)})")
        for block in blocks:
            click.echo(f"  {choose_output_filename(block.declared_name, block.url)}  <-  {block.url}")
        total += len(blocks)

    click.echo(f"Pattern matches found: {total}")


if __name__ == '__main__':
    main()
