"""CLI entry point for termki. Uses Click for argument parsing."""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from termki.config import Config, get_config_dir, get_config_path, load_config, save_config


def _run(coro):
    """Run an async function synchronously."""
    return asyncio.run(coro)


def _apply_overrides(config: Config, url, media_dir, practice) -> Config:
    if url:
        config.anki_connect_url = url
    if media_dir:
        config.media_dir = media_dir
    if practice is not None:
        config.practice_mode = practice
    return config


@click.group(invoke_without_command=True)
@click.option("--url", default=None, help="AnkiConnect endpoint (default: http://localhost:8765)")
@click.option("--media-dir", default=None, type=click.Path(file_okay=False), help="Anki media directory")
@click.option("--deck", default=None, help="Start reviewing this deck without the picker")
@click.option("--practice/--review", "practice", default=None, help="Start in practice or review mode")
@click.option("--log-file", default=None, type=click.Path(dir_okay=False), help="Log file path")
@click.option(
    "--log-level",
    default="warning",
    type=click.Choice(["debug", "info", "warning", "error"]),
    help="Log level",
)
@click.pass_context
def main(ctx, url, media_dir, deck, practice, log_file, log_level):
    """Review due Anki cards in the terminal."""
    ctx.ensure_object(dict)
    ctx.obj["overrides"] = (url, media_dir, practice)
    if ctx.invoked_subcommand is not None:
        return

    if not sys.stdin.isatty() or not sys.stdout.isatty():
        raise click.ClickException("termki needs an interactive terminal")

    # stdout belongs to the TUI, so logs always go to a file.
    if log_file is None:
        get_config_dir().mkdir(parents=True, exist_ok=True)
        log_file = str(get_config_dir() / "termki.log")
    logging.basicConfig(
        filename=log_file,
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    config = _apply_overrides(load_config(), url, media_dir, practice)

    from termki.app import run_app
    from termki.terminal import ProcessTerminal

    _run(run_app(config, ProcessTerminal(), deck=deck))


@main.command("init-config")
@click.pass_context
def init_config(ctx):
    """Write the current settings (plus any overrides) to the config file."""
    url, media_dir, practice = ctx.obj["overrides"]
    config = _apply_overrides(load_config(), url, media_dir, practice)
    save_config(config)
    click.echo(f"Saved {get_config_path()}")


@main.command("doctor")
def doctor():
    """Report terminal image support and AnkiConnect reachability."""
    from termki.anki_connect import AnkiConnectClient, AnkiConnectError, discover_media_dir
    from termki.terminal_image import get_capabilities

    config = load_config()
    caps = get_capabilities()
    click.echo(f"Terminal: {caps.terminal}")
    click.echo(f"Image protocol: {caps.images or 'none'}")

    with AnkiConnectClient(config.anki_connect_url, timeout=config.request_timeout) as client:
        try:
            decks = client.deck_names()
        except AnkiConnectError as e:
            click.echo(f"AnkiConnect: unavailable ({e})")
            media_dir = config.media_dir or discover_media_dir(None)
        else:
            click.echo(f"AnkiConnect: {len(decks)} decks")
            media_dir = config.media_dir or discover_media_dir(client)
    click.echo(f"Media directory: {media_dir or 'not found'}")


if __name__ == "__main__":
    main()
