# ==============================================================================
# Sitepulse CLI
# ==============================================================================
"""
Command-line interface for the sitepulse analytics jobs.

Usage:
    sitepulse --help
    sitepulse config show
    sitepulse db init
    sitepulse db reset -y
    sitepulse sessions aggregate
    sitepulse sessions funnel SITE_ID
    sitepulse patterns detect [SITE_ID]
    sitepulse peers calculate BUSINESS_ID
    sitepulse peers recalculate INDUSTRY
    sitepulse peers backfill
    sitepulse peers benchmark BUSINESS_ID
"""

import logging
from typing import Annotated

# ==============================================================================
# App Configuration
# ==============================================================================
# Set consistent terminal width for help output formatting
import os

import typer

from sitepulse.utils.config import get_settings

if "COLUMNS" not in os.environ:
    os.environ["COLUMNS"] = "115"

app = typer.Typer(
    name="sitepulse",
    help="Site visitor analytics: sessions, behavioral patterns and peer benchmarks",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@app.callback()
def configure(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
) -> None:
    """Configure logging before any command runs."""
    level = "DEBUG" if verbose else get_settings().log_level.upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


sessions_app = typer.Typer(
    help="Session aggregation and journey funnels",
    no_args_is_help=True,
)
app.add_typer(sessions_app, name="sessions")

# Register session commands from cli.sessions module
from sitepulse.cli.sessions import sessions_aggregate, sessions_funnel

sessions_app.command("aggregate")(sessions_aggregate)
sessions_app.command("funnel")(sessions_funnel)

patterns_app = typer.Typer(
    help="Behavioral pattern detection",
    no_args_is_help=True,
)
app.add_typer(patterns_app, name="patterns")

# Register pattern commands from cli.patterns module
from sitepulse.cli.patterns import patterns_detect

patterns_app.command("detect")(patterns_detect)

peers_app = typer.Typer(
    help="Peer groups and benchmarks",
    no_args_is_help=True,
)
app.add_typer(peers_app, name="peers")

# Register peer commands from cli.peers module
from sitepulse.cli.peers import peers_backfill, peers_benchmark, peers_calculate, peers_recalculate

peers_app.command("calculate")(peers_calculate)
peers_app.command("recalculate")(peers_recalculate)
peers_app.command("backfill")(peers_backfill)
peers_app.command("benchmark")(peers_benchmark)

db_app = typer.Typer(
    help="Database schema management",
    no_args_is_help=True,
)
app.add_typer(db_app, name="db")

# Register db commands from cli.db module
from sitepulse.cli.db import db_init, db_reset

db_app.command("init")(db_init)
db_app.command("reset")(db_reset)

config_app = typer.Typer(
    help="Configuration management",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")

# Register config commands from cli.config module
from sitepulse.cli.config import config_show

config_app.command("show")(config_show)


# ==============================================================================
# Entry Point
# ==============================================================================


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
