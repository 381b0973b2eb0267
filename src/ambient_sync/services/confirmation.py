"""
Backfill confirmation capabilities.

The orchestrator only calls `confirm(gap, label) -> bool`. Unattended runs
use `auto_confirm`; interactive runs prompt on the terminal.
"""

import sys
from typing import Callable, Optional

import click

from ..core.exceptions import ConfirmationUnavailableError
from ..domain.results import Gap, format_epoch

ConfirmFn = Callable[[Gap, str], bool]


def auto_confirm(gap: Gap, label: str = "") -> bool:
    return True


class TerminalConfirmation:
    """Shows the gap and asks the operator before anything is written."""

    def __init__(self, is_tty: Optional[Callable[[], bool]] = None):
        self.is_tty = is_tty or sys.stdin.isatty

    def __call__(self, gap: Gap, label: str = "") -> bool:
        if not self.is_tty():
            raise ConfirmationUnavailableError()

        click.echo("")
        click.echo(f"Backfill [{gap.cluster}]{label}")
        click.echo(f"  Start:    {format_epoch(gap.start_epoch)}")
        click.echo(f"  End:      {format_epoch(gap.end_epoch)}")
        click.echo(f"  Duration: {gap.duration_hours:.2f} hours ({gap.duration_days:.2f} days)")
        return click.confirm(f"Proceed with backfill for {gap.cluster}?", default=False)
