# ==============================================================================
# Config Commands
# ==============================================================================
"""
Configuration commands for the sitepulse CLI.
"""

import json
from typing import Annotated

import typer

from sitepulse.cli.shared import C
from sitepulse.utils.config import get_settings

MASK = "********"


# ==============================================================================
# Commands
# ==============================================================================


def config_show(
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output configuration as JSON")
    ] = False,
) -> None:
    """Display current configuration (passwords are masked)."""
    settings = get_settings()

    if json_output:
        config = {
            "postgresql": {
                **settings.postgres.model_dump(),
                "password": MASK,
            },
            "aggregation": settings.aggregation.model_dump(),
            "patterns": settings.patterns.model_dump(),
            "peers": settings.peers.model_dump(),
            "debug": settings.debug,
            "log_level": settings.log_level,
        }
        print(json.dumps(config, indent=2))
        return

    # Human-readable output
    print()
    print(f"{C.BOLD}Configuration{C.RESET}")
    print()

    # PostgreSQL
    print(f"{C.CYAN}PostgreSQL{C.RESET}")
    print(f"  Host:       {C.WHITE}{settings.postgres.host}{C.RESET}")
    print(f"  Port:       {C.WHITE}{settings.postgres.port}{C.RESET}")
    print(f"  Database:   {C.WHITE}{settings.postgres.database}{C.RESET}")
    print(f"  Schema:     {C.WHITE}{settings.postgres.schema_name}{C.RESET}")
    print(f"  User:       {C.WHITE}{settings.postgres.user}{C.RESET}")
    print(f"  Password:   {C.WHITE}{MASK}{C.RESET}")
    print(f"  SSL:        {C.WHITE}{settings.postgres.sslmode}{C.RESET}")
    print()

    # Session aggregation
    print(f"{C.CYAN}Session Aggregation{C.RESET}")
    print(f"  Batch size: {C.WHITE}{settings.aggregation.batch_size:,}{C.RESET}")
    print(f"  Lookback:   {C.WHITE}{settings.aggregation.lookback_hours}h{C.RESET}")
    print()

    # Pattern detection
    patterns = settings.patterns
    print(f"{C.CYAN}Pattern Detection{C.RESET}")
    print(f"  Min sessions:         {C.WHITE}{patterns.min_sessions}{C.RESET}")
    print(f"  Abandonment rate:     {C.WHITE}> {patterns.abandonment_rate}%{C.RESET}")
    print(f"  Hesitation rate:      {C.WHITE}> {patterns.hesitation_rate}%{C.RESET}")
    print(f"  Low engagement ratio: {C.WHITE}< {patterns.low_engagement_ratio}{C.RESET}")
    print(f"  Window:               {C.WHITE}{patterns.analysis_window_days} days{C.RESET}")
    print()

    # Peer matching
    peers = settings.peers
    print(f"{C.CYAN}Peer Matching{C.RESET}")
    print(f"  Min group size:        {C.WHITE}{peers.min_group_size}{C.RESET}")
    print(f"  Acceptable group size: {C.WHITE}{peers.acceptable_group_size}{C.RESET}")
    print(f"  Max peers:             {C.WHITE}{peers.max_peers}{C.RESET}")
    print(f"  Time budget:           {C.WHITE}{peers.time_budget_ms}ms{C.RESET}")
    print()

    print(f"{C.CYAN}General{C.RESET}")
    print(f"  Log level:  {C.WHITE}{settings.log_level}{C.RESET}")
    print(f"  Debug:      {C.WHITE}{settings.debug}{C.RESET}")
    print()
