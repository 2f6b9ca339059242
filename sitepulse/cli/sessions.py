# ==============================================================================
# Session Commands
# ==============================================================================
"""
Session aggregation and journey funnel commands for the sitepulse CLI.
"""

import json
from datetime import datetime
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from sitepulse.cli.shared import (
    C,
    DATETIME_FORMATS,
    I,
    as_utc,
    connected,
    print_error,
    print_success,
    print_warning,
    require_db_connection,
)
from sitepulse.core.funnel import (
    JOURNEY_TYPES,
    compute_funnel,
    funnel_insight,
    journey_type_stats,
)
from sitepulse.infrastructure.repositories import (
    PostgreSQLEventRepository,
    PostgreSQLSessionRepository,
)
from sitepulse.jobs.sessions import FUNNEL_SESSION_LIMIT, SessionAggregationJob
from sitepulse.utils.config import get_settings


# ==============================================================================
# Commands
# ==============================================================================


def sessions_aggregate(
    start: Annotated[
        Optional[datetime],
        typer.Option("--start", formats=DATETIME_FORMATS, help="Window start (UTC)"),
    ] = None,
    end: Annotated[
        Optional[datetime],
        typer.Option("--end", formats=DATETIME_FORMATS, help="Window end (UTC)"),
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Aggregate raw events into sessions.

    Without --start, the window begins at the newest stored session
    (or AGGREGATION_LOOKBACK_HOURS ago on the first run). Re-running over
    the same window is safe: existing sessions are skipped.

    Examples:
        sitepulse sessions aggregate
        sitepulse sessions aggregate --start 2025-01-01 --end 2025-01-02
    """
    settings = get_settings()
    require_db_connection()

    with connected(
        PostgreSQLEventRepository(settings), PostgreSQLSessionRepository(settings)
    ) as (event_repo, session_repo):
        job = SessionAggregationJob(event_repo, session_repo, settings.aggregation)
        result = job.run(as_utc(start), as_utc(end))

    if json_output:
        print(
            json.dumps(
                {
                    "start": result.start.isoformat(),
                    "end": result.end.isoformat(),
                    "events_processed": result.events_processed,
                    "sessions_processed": result.sessions_processed,
                    "sessions_created": result.sessions_created,
                    "errors": result.errors,
                    "execution_time_ms": round(result.execution_time_ms, 1),
                },
                indent=2,
            )
        )
    else:
        print()
        print_success(
            f"Aggregated {C.WHITE}{result.events_processed:,}{C.RESET} events into "
            f"{C.WHITE}{result.sessions_processed:,}{C.RESET} sessions "
            f"({C.WHITE}{result.sessions_created:,}{C.RESET} new) "
            f"in {result.execution_time_ms:.0f}ms"
        )
        for error in result.errors:
            print_warning(error)
        print()

    if not result.success:
        raise typer.Exit(1)


def sessions_funnel(
    site_id: Annotated[str, typer.Argument(help="Site to report on")],
    journey_type: Annotated[
        str,
        typer.Option(
            "--journey-type",
            "-t",
            help="Journey type: all, homepage, search, direct-to-product, other",
        ),
    ] = "all",
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show the journey funnel for a site.

    Examples:
        sitepulse sessions funnel site-1
        sitepulse sessions funnel site-1 --journey-type search --json
    """
    if journey_type not in JOURNEY_TYPES:
        print_error(
            f"Unknown journey type '{journey_type}' "
            f"(expected one of: {', '.join(JOURNEY_TYPES)})"
        )
        raise typer.Exit(1)

    settings = get_settings()
    require_db_connection()

    with connected(PostgreSQLSessionRepository(settings)) as (session_repo,):
        sessions = session_repo.get_sessions(site_id, limit=FUNNEL_SESSION_LIMIT)

    report = compute_funnel(site_id, sessions, journey_type=journey_type)
    insight = funnel_insight(report)
    journeys = journey_type_stats(sessions)

    if json_output:
        data = report.to_dict()
        data["insight"] = insight.primary
        data["journey_types"] = [
            {"type": j.type, "label": j.label, "count": j.count, "percentage": j.percentage}
            for j in journeys
        ]
        print(json.dumps(data, indent=2))
        return

    if report.total_sessions == 0:
        print(f"\n  {C.BRIGHT_YELLOW}{I.WARN} {insight.primary}{C.RESET}\n")
        return

    console = Console()
    table = Table(
        title=f"Journey Funnel - {site_id} ({JOURNEY_TYPES[journey_type]})",
        show_header=True,
        header_style="bold",
    )
    table.add_column("Stage", justify="left")
    table.add_column("Visitors", justify="right")
    table.add_column("% of Sessions", justify="right")
    table.add_column("Drop-off", justify="right")

    for stage in report.stages:
        drop_off = (
            f"{stage.drop_off_rate:.1f}% ({stage.drop_off_count:,})"
            if stage.drop_off_rate is not None
            else "-"
        )
        table.add_row(stage.stage, f"{stage.visitors:,}", f"{stage.percentage:.1f}%", drop_off)

    print()
    console.print(table)
    print(f"  {C.BOLD}Sessions:{C.RESET}         {report.total_sessions:,}")
    print(f"  {C.BOLD}Conversion rate:{C.RESET}  {report.conversion_rate:.2f}%")
    print(f"  {C.BRIGHT_CYAN}{I.ARROW}{C.RESET} {insight.primary}")
    print()

    print(f"  {C.BOLD}Journey types{C.RESET}")
    for j in journeys[1:]:
        print(
            f"    {I.BULLET} {j.label:<20} {C.WHITE}{j.count:>7,}{C.RESET}  "
            f"{C.DIM}({j.percentage:.1f}%){C.RESET}"
        )
    print()
