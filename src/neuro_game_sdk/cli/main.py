"""
Neuro Game SDK CLI: the `neuro-game` command.

Commands:
  neuro-game demo               Run the sample game against a Neuro API server
  neuro-game config <cmd>       Show or edit the SDK config file
"""

import asyncio
import logging
from typing import Optional

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
except ImportError:
    raise SystemExit("CLI requires extras: pip install neuro-game-sdk[cli]")

from neuro_game_sdk import __version__
from neuro_game_sdk.actions import NeuroAction
from neuro_game_sdk.client import AsyncNeuroGame
from neuro_game_sdk.config import load_config
from neuro_game_sdk.errors import NeuroSDKError

console = Console()


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )


@click.group()
@click.version_option(__version__)
@click.option("--log-level", default="INFO", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
def main(log_level: str):
    """Neuro Game SDK CLI."""
    _setup_logging(log_level)


@main.command("demo")
@click.option("--url", default=None, help="Websocket URL of the Neuro API server.")
@click.option("--game", default=None, help="Game name sent with every message.")
@click.option("--interval", default=5.0, show_default=True, type=float,
              help="Seconds between forced action requests.")
def demo_cmd(url: Optional[str], game: Optional[str], interval: float):
    """Run a sample game with echo, no-response and list actions."""
    from neuro_game_sdk.cli.demo import demo_actions

    try:
        cfg = load_config(url=url, game=game)
        if not cfg.game:
            cfg = cfg.model_copy(update={"game": "Epic Game"})
        client = AsyncNeuroGame.from_config(cfg)
    except NeuroSDKError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)

    actions = demo_actions()

    def on_forced(action: NeuroAction) -> None:
        console.print(f"[green]Executed action callback for action:[/green] {action.name}")

    async def _force_periodically() -> None:
        while True:
            await asyncio.sleep(interval)
            await client.force_action("Current state!", "Please send an echo:", False, actions, on_forced)

    async def _demo() -> None:
        forcer = asyncio.create_task(_force_periodically())
        try:
            await client.start()
        finally:
            forcer.cancel()

    console.print(f"[cyan]Running '{client.game}' against {client.url} (Ctrl+C to exit)[/cyan]")
    try:
        asyncio.run(_demo())
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")


# Register subcommands from separate modules
from neuro_game_sdk.cli.config import config

main.add_command(config)


if __name__ == "__main__":
    main()
