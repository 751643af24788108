"""Output formatters for console and JSON display."""

from __future__ import annotations

import json
from collections import defaultdict
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ._version import __version__

if TYPE_CHECKING:
    from .engine import HighLevelOp, PhaseResult, RepoOutcome
    from .manifest import RepoRecord
    from .runner import BatchReport


def compute_unique_display_names(records: list[RepoRecord]) -> dict[str, str]:
    """Compute unique display names for records whose paths share a basename.

    Parent directory components are added until each name becomes unique.

    Args:
        records: Repository records in manifest order

    Returns:
        Dictionary mapping record path to display name
    """
    name_groups: dict[str, list[str]] = defaultdict(list)
    for record in records:
        if record.path not in name_groups[record.name]:
            name_groups[record.name].append(record.path)

    result: dict[str, str] = {}
    for name, paths in name_groups.items():
        if len(paths) == 1:
            result[paths[0]] = name
            continue
        parts_list = [list(reversed(Path(p).parts)) for p in paths]
        for path, parts in zip(paths, parts_list):
            depth = 1
            while depth < len(parts):
                candidate = parts[:depth]
                if all(other[:depth] != candidate for other in parts_list if other is not parts):
                    break
                depth += 1
            result[path] = "/".join(reversed(parts[:depth]))
    return result


class OutputFormatter:
    """Render repository outcomes to the terminal or as JSON."""

    def __init__(self, console: Console, use_json: bool = False):
        self.console = console
        self.use_json = use_json

    def print_header(self, operation: HighLevelOp):
        """Print the banner shown before any repository work."""
        if self.use_json:
            return
        self.console.print(f"[bold]Repoteer v{__version__}[/]")
        self.console.print(f"Running command: [cyan]{operation.value}[/]\n")

    def print_outcome(self, outcome: RepoOutcome):
        """Print one repository's phases as a single block."""
        if self.use_json:
            return
        lines = [
            f"[bold]Repo:[/] [cyan]{escape(outcome.record.url)}[/]",
            f"   at {escape(outcome.record.path)}",
        ]
        lines.extend(f"   {self._phase_line(phase)}" for phase in outcome.phase_results)
        self.console.print("\n".join(lines) + "\n", highlight=False)

    def _phase_line(self, phase: PhaseResult) -> str:
        label = phase.phase
        if phase.branch:
            label = f"{label} [{phase.branch}]"
        label = escape(label)
        message = escape(phase.message.strip())

        if phase.status == "success":
            line = f"[green]✓[/] {label}"
            return f"{line}: [dim]{message}[/]" if message else line
        if phase.status == "skipped":
            return f"[yellow]–[/] {label}: [dim]{message or 'skipped'}[/]"
        return f"[red]✗ {label}: {message or 'Failed'}[/]"

    def print_report(self, report: BatchReport):
        """Print the final summary, or the whole report as JSON."""
        if self.use_json:
            self.console.print_json(json.dumps(report.to_dict()))
            return
        self._print_summary_table(report)

    def _print_summary_table(self, report: BatchReport):
        if not report.outcomes:
            self.console.print("[dim]No repositories processed[/]")
            return

        display_names = compute_unique_display_names([o.record for o in report.outcomes])

        table = Table(title=f"{report.operation.value.title()} Results")
        table.add_column("Repository", style="cyan")
        table.add_column("Status", justify="center")
        table.add_column("Message")

        for outcome in report.outcomes:
            repo_display = display_names.get(outcome.record.path, outcome.record.name)
            if outcome.success:
                status = "[green]✓[/]"
                message = "OK"
            else:
                status = "[red]✗[/]" if outcome.has_hard_error else "[yellow]![/]"
                first = outcome.failures[0]
                text = first.message.strip().splitlines()[0] if first.message.strip() else "Failed"
                message = f"[red]{escape(text[:60])}[/]"
            table.add_row(escape(repo_display), status, message)

        self.console.print(table)

        summary = report.summary()
        self.console.print(f"\n[bold]Success:[/] {summary.succeeded}/{summary.total}")
        if report.truncated:
            self.console.print(
                f"[yellow]Interrupted: {summary.not_attempted} repositories not attempted[/]"
            )
