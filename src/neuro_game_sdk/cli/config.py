"""CLI: neuro-game config"""

import json
from pathlib import Path
from typing import Optional

import click
from rich.console import Console

from neuro_game_sdk.config import CONFIG_FILE, ENV_GAME, ENV_URL, load_config, read_config_file, write_config_file
from neuro_game_sdk.errors import ConfigError
from neuro_game_sdk.transport.websocket import REQUIRED_SCHEME

console = Console()


def _update(key: str, value: str, path: Optional[str]) -> None:
    file = Path(path) if path else CONFIG_FILE
    try:
        values = read_config_file(file)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    values[key] = value
    write_config_file(values, file)
    console.print(f"[green]Saved {key} to {file}[/green]")


@click.group()
def config():
    """Show or edit the SDK config file."""


@config.command("show")
@click.option("--path", default=None, help="Config file to read.")
@click.option("--json-output", "--json", is_flag=True)
def show(path: Optional[str], json_output: bool):
    """Show the resolved configuration."""
    try:
        cfg = load_config(Path(path) if path else None)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    if json_output:
        click.echo(json.dumps(cfg.model_dump()))
        return
    for key, value in cfg.model_dump().items():
        console.print(f"[bold]{key}[/bold]: {value}")
    console.print(f"[dim]Environment overrides: {ENV_URL}, {ENV_GAME}[/dim]")


@config.command("set-url")
@click.argument("url")
@click.option("--path", default=None, help="Config file to write.")
def set_url(url: str, path: Optional[str]):
    """Set the Neuro API websocket URL."""
    if not url.startswith(REQUIRED_SCHEME):
        console.print(f"[yellow]Warning: only {REQUIRED_SCHEME} URLs can be connected to.[/yellow]")
    _update("url", url, path)


@config.command("set-game")
@click.argument("game")
@click.option("--path", default=None, help="Config file to write.")
def set_game(game: str, path: Optional[str]):
    """Set the game name."""
    _update("game", game, path)
