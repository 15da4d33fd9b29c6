import sys

import typer
from loguru import logger
from pydantic import ValidationError

from dapsw.config import WebhookConfig
from dapsw.services.webhook import run

app = typer.Typer(no_args_is_help=True)


@app.callback()
def main():
    """DAP secret webhook: attaches MLP secrets to Flyte pods."""


def configure_logging(debug: bool):
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if debug else "INFO")


def webhook(
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    try:
        config = WebhookConfig(debug=True) if debug else WebhookConfig()
    except ValidationError as e:
        logger.error(f"Invalid configuration:\n{e}")
        sys.exit(1)

    configure_logging(config.debug)
    run(config)


app.command(
    name="webhook",
    help="Starts a HTTPS server which runs the DAP secret webhook. "
    "Secrets are attached to Flyte pods from the MLP API.",
)(webhook)

if __name__ == "__main__":
    app()
