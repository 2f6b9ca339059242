# ==============================================================================
# Peer Group Commands
# ==============================================================================
"""
Peer group calculation and benchmarking commands for the sitepulse CLI.
"""

import json
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from sitepulse.cli.shared import (
    C,
    I,
    connected,
    print_error,
    print_success,
    print_warning,
    require_db_connection,
)
from sitepulse.infrastructure.repositories import (
    PostgreSQLBusinessRepository,
    PostgreSQLPeerGroupRepository,
    PostgreSQLSessionRepository,
)
from sitepulse.jobs.peer_groups import (
    BusinessNotFoundError,
    PeerGroupNotFoundError,
    PeerGroupService,
    RecalculationResult,
)
from sitepulse.utils.config import get_settings

_PERCENTILE_COLORS = {"top-25": C.BRIGHT_GREEN, "median": C.WHITE, "bottom-25": C.BRIGHT_RED}


def _print_recalculation(result: RecalculationResult, label: str) -> None:
    print()
    print_success(f"{label}: {C.WHITE}{result.recalculated}{C.RESET} peer groups calculated")
    if result.skipped:
        print(f"  {C.DIM}{I.BULLET} {result.skipped} businesses skipped{C.RESET}")
    for error in result.errors:
        print_warning(error)
    print()


# ==============================================================================
# Commands
# ==============================================================================


def peers_calculate(
    business_id: Annotated[str, typer.Argument(help="Business to calculate peers for")],
) -> None:
    """Calculate a new peer group for one business.

    Examples:
        sitepulse peers calculate biz-42
    """
    settings = get_settings()
    require_db_connection()

    with connected(
        PostgreSQLBusinessRepository(settings), PostgreSQLPeerGroupRepository(settings)
    ) as (business_repo, peer_group_repo):
        service = PeerGroupService(business_repo, peer_group_repo, settings=settings.peers)
        try:
            result = service.calculate_peer_group(business_id)
        except BusinessNotFoundError as e:
            print_error(str(e))
            raise typer.Exit(1)

    print()
    print_success(
        f"Peer group {C.WHITE}{result.peer_group_id}{C.RESET}: "
        f"{C.WHITE}{result.match_count}{C.RESET} peers "
        f"({result.tier.value} tier) in {result.execution_time_ms:.0f}ms"
    )
    if result.match_count < settings.peers.acceptable_group_size:
        print_warning(
            f"Only {result.match_count} peers found; benchmarks may not be representative"
        )
    print()


def peers_recalculate(
    industry: Annotated[str, typer.Argument(help="Industry to recalculate")],
    exclude: Annotated[
        Optional[str], typer.Option("--exclude", "-e", help="Business id to leave out")
    ] = None,
) -> None:
    """Recalculate the peer groups of every business in an industry.

    Run after a business joins or changes its profile, so existing
    businesses can pick it up as a peer.

    Examples:
        sitepulse peers recalculate fashion
        sitepulse peers recalculate fashion --exclude biz-42
    """
    settings = get_settings()
    require_db_connection()

    with connected(
        PostgreSQLBusinessRepository(settings), PostgreSQLPeerGroupRepository(settings)
    ) as (business_repo, peer_group_repo):
        service = PeerGroupService(business_repo, peer_group_repo, settings=settings.peers)
        result = service.recalculate_industry(industry, exclude_business_id=exclude)

    _print_recalculation(result, f"Industry '{industry}'")
    if result.errors:
        raise typer.Exit(1)


def peers_backfill(
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="List the count without calculating")
    ] = False,
) -> None:
    """Calculate peer groups for every business that has none.

    Examples:
        sitepulse peers backfill
        sitepulse peers backfill --dry-run
    """
    settings = get_settings()
    require_db_connection()

    with connected(
        PostgreSQLBusinessRepository(settings), PostgreSQLPeerGroupRepository(settings)
    ) as (business_repo, peer_group_repo):
        service = PeerGroupService(business_repo, peer_group_repo, settings=settings.peers)
        result = service.backfill_missing(dry_run=dry_run)

    _print_recalculation(result, "Backfill (dry run)" if dry_run else "Backfill")
    if result.errors:
        raise typer.Exit(1)


def peers_benchmark(
    business_id: Annotated[str, typer.Argument(help="Business to benchmark")],
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Compare a business's site metrics with its peer group.

    Examples:
        sitepulse peers benchmark biz-42
        sitepulse peers benchmark biz-42 --json
    """
    settings = get_settings()
    require_db_connection()

    with connected(
        PostgreSQLBusinessRepository(settings),
        PostgreSQLPeerGroupRepository(settings),
        PostgreSQLSessionRepository(settings),
    ) as (business_repo, peer_group_repo, session_repo):
        service = PeerGroupService(
            business_repo, peer_group_repo, session_repo, settings=settings.peers
        )
        try:
            report = service.benchmark(business_id)
        except (BusinessNotFoundError, PeerGroupNotFoundError) as e:
            print_error(str(e))
            raise typer.Exit(1)

    if json_output:
        print(
            json.dumps(
                {
                    "business_id": report.business_id,
                    "peer_group_id": report.peer_group_id,
                    "tier": report.tier.value,
                    "peer_count": report.peer_count,
                    "description": report.description,
                    "comparisons": [c.to_dict() for c in report.comparisons],
                },
                indent=2,
            )
        )
        return

    console = Console()
    table = Table(title=f"Benchmark - {business_id}", show_header=True, header_style="bold")
    table.add_column("Metric", justify="left")
    table.add_column("You", justify="right")
    table.add_column("Peer Avg", justify="right")
    table.add_column("Percentile", justify="right")
    table.add_column("Rank", justify="left")

    for comparison in report.comparisons:
        table.add_row(
            comparison.metric,
            f"{comparison.user_value:.1f}%",
            f"{comparison.peer_average:.1f}%",
            str(comparison.percentile_value),
            comparison.percentile,
        )

    print()
    console.print(table)
    print(f"  {C.DIM}{report.description} ({report.tier.value} match){C.RESET}")
    for comparison in report.comparisons:
        color = _PERCENTILE_COLORS.get(comparison.percentile, C.WHITE)
        print(f"  {color}{I.ARROW}{C.RESET} {comparison.explanation}")
    print()
