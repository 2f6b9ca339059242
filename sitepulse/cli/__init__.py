# ==============================================================================
# CLI Commands Module
# ==============================================================================
"""
CLI commands for sitepulse.

Commands are organized into separate modules for maintainability:
- shared.py: Common utilities, constants, and helpers
- sessions.py: Session aggregation and journey funnels
- patterns.py: Behavioral pattern detection
- peers.py: Peer groups and benchmarks
- db.py: Schema management
- config.py: Configuration display
"""

from sitepulse.cli.shared import (
    # Constants
    DATETIME_FORMATS,
    # Classes
    Colors,
    Icons,
    # Aliases
    C,
    I,
    # Output helpers
    as_utc,
    print_error,
    print_success,
    print_warning,
    # Database helpers
    check_db_connection,
    connected,
    require_db_connection,
)

__all__ = [
    # Constants
    "DATETIME_FORMATS",
    # Classes
    "Colors",
    "Icons",
    # Aliases
    "C",
    "I",
    # Output helpers
    "as_utc",
    "print_error",
    "print_success",
    "print_warning",
    # Database helpers
    "check_db_connection",
    "connected",
    "require_db_connection",
]
