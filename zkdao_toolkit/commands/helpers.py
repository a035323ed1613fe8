"""Shared command helpers and utilities."""

import sys
from typing import Callable, Optional

from rich import print as rprint

from zkdao_toolkit.shared.exceptions import (
    NonRetryableException,
    RetryableException,
    error_kind,
)


def handle_command_error(
    error: Exception, show_usage_fn: Optional[Callable[[], None]] = None
) -> None:
    """
    Standard error handling for commands.

    Args:
        error: The exception that occurred
        show_usage_fn: Optional function to display usage instructions
    """
    if isinstance(error, (RetryableException, NonRetryableException)):
        rprint(f"[red]{error_kind(error).value} error:[/red] {error.message}")
    elif isinstance(error, ValueError):
        rprint(f"[red]Error:[/red] {str(error)}")
    else:
        rprint(f"[red]Unexpected error:[/red] {str(error)}")

    if show_usage_fn:
        show_usage_fn()

    sys.exit(1)
