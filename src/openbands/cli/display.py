"""Rich rendering for CLI output.

Accepts an optional :class:`~rich.console.Console` for dependency
injection in tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from openbands.attestation.base import AttestationRecord, AttestationType


class Display:
    """Tables for badge lookups and counter reconciliation."""

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()

    def badge(
        self,
        address: str,
        attestation_type: AttestationType,
        record: AttestationRecord | None,
    ) -> None:
        """Print a wallet's badge record, or that it has none."""
        if record is None:
            self._console.print(
                f"[yellow]No active {attestation_type} badge[/yellow] for {address}"
            )
            return

        table = Table(title=f"{attestation_type} badge", show_header=False)
        table.add_column("field", style="bold")
        table.add_column("value")
        table.add_row("Wallet", address)
        table.add_row("Value", record.value)
        table.add_row("Verified at", record.verified_at.isoformat())
        table.add_row("Active", "yes" if record.is_active else "no")
        self._console.print(table)

    def reconcile(self, corrected: dict[str, int]) -> None:
        """Print how many rows had a drifted counter, per counter."""
        table = Table(title="Counter reconciliation")
        table.add_column("Counter")
        table.add_column("Rows corrected", justify="right")
        for counter, rows in corrected.items():
            style = "green" if rows == 0 else "yellow"
            table.add_row(counter, f"[{style}]{rows}[/{style}]")
        self._console.print(table)

        total = sum(corrected.values())
        if total == 0:
            self._console.print("[green]All counters consistent.[/green]")
        else:
            self._console.print(f"[yellow]Corrected {total} counter value(s).[/yellow]")
