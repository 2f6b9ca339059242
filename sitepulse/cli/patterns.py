# ==============================================================================
# Pattern Commands
# ==============================================================================
"""
Behavioral pattern detection commands for the sitepulse CLI.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from sitepulse.cli.shared import (
    C,
    I,
    connected,
    print_success,
    print_warning,
    require_db_connection,
)
from sitepulse.infrastructure.repositories import (
    PostgreSQLEventRepository,
    PostgreSQLPatternRepository,
    PostgreSQLSessionRepository,
)
from sitepulse.jobs.patterns import PatternDetectionJob, PatternDetectionResult
from sitepulse.utils.config import get_settings


def _result_to_dict(result: PatternDetectionResult) -> dict:
    return {
        "site_id": result.site_id,
        "sessions_analyzed": result.sessions_analyzed,
        "patterns_detected": result.patterns_detected,
        "patterns_stored": result.patterns_stored,
        "errors": result.errors,
        "patterns": [p.to_db_record() for p in result.patterns],
    }


def _print_result(console: Console, result: PatternDetectionResult) -> None:
    if not result.success and not result.patterns:
        print_warning(f"{result.site_id}: {'; '.join(result.errors)}")
        return
    if not result.patterns:
        print(
            f"  {C.DIM}{I.BULLET} {result.site_id}: no patterns "
            f"({result.sessions_analyzed:,} sessions analyzed){C.RESET}"
        )
        return

    table = Table(
        title=f"Patterns - {result.site_id} ({result.sessions_analyzed:,} sessions)",
        show_header=True,
        header_style="bold",
    )
    table.add_column("Type", justify="left")
    table.add_column("Severity", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Sessions", justify="right")
    table.add_column("Description", justify="left")

    for pattern in result.patterns:
        table.add_row(
            pattern.pattern_type.value,
            f"{pattern.severity:.2f}",
            f"{pattern.confidence_score:.1f}",
            f"{pattern.session_count:,}",
            pattern.description,
        )
    console.print(table)
    for error in result.errors:
        print_warning(error)


# ==============================================================================
# Commands
# ==============================================================================


def patterns_detect(
    site_id: Annotated[
        Optional[str], typer.Argument(help="Site to analyze (all sites when omitted)")
    ] = None,
    days: Annotated[
        Optional[int],
        typer.Option("--days", "-d", min=1, help="Analysis window in days (default from config)"),
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Detect abandonment, hesitation and low-engagement patterns.

    Examples:
        sitepulse patterns detect
        sitepulse patterns detect site-1 --days 14
    """
    settings = get_settings()
    require_db_connection()

    end = datetime.now(timezone.utc)
    start = end - timedelta(days=days or settings.patterns.analysis_window_days)

    with connected(
        PostgreSQLEventRepository(settings),
        PostgreSQLSessionRepository(settings),
        PostgreSQLPatternRepository(settings),
    ) as (event_repo, session_repo, pattern_repo):
        job = PatternDetectionJob(event_repo, session_repo, pattern_repo, settings.patterns)
        if site_id:
            results = [job.run_for_site(site_id, start, end)]
        else:
            results = job.run_all(start, end)

    if json_output:
        print(json.dumps([_result_to_dict(r) for r in results], indent=2, default=str))
    else:
        console = Console()
        print()
        for result in results:
            _print_result(console, result)
        total = sum(r.patterns_detected for r in results)
        print()
        print_success(
            f"Detected {C.WHITE}{total}{C.RESET} patterns across "
            f"{C.WHITE}{len(results)}{C.RESET} sites"
        )
        print()

    if any(not r.success for r in results):
        raise typer.Exit(1)
