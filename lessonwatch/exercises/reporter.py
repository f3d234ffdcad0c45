#!/usr/bin/env python3
"""
Terminal rendering for status events and verdicts.
"""

import os
from typing import List

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table
from rich.text import Text

from .marker import MARKER
from .models import EventKind, ExerciseCheck, FailureKind, Mode, StatusEvent

FAILURE_TITLES = {
    FailureKind.COMPILE: "Compilation of {name} failed",
    FailureKind.TEST: "Testing of {name} failed",
    FailureKind.IO: "Could not read {name}",
    FailureKind.TIMEOUT: "Checking {name} timed out",
    FailureKind.BACKEND: "Could not run the backend for {name}",
}

SUCCESS_MESSAGES = {
    Mode.COMPILE: "The code is compiling!",
    Mode.TEST: "The code is compiling, and the tests pass!",
}


class ConsoleReporter:
    """Renders StatusEvents with rich"""

    def __init__(self, console: Console = None, marker: str = MARKER):
        self.console = console or Console()
        self.marker = marker
        self.no_emoji = 'NO_EMOJI' in os.environ

    def __call__(self, event: StatusEvent) -> None:
        self.emit(event)

    def emit(self, event: StatusEvent) -> None:
        """Display one status event"""
        if event.kind in (EventKind.CHECKED, EventKind.STILL_ON, EventKind.ADVANCED) and event.check:
            self.show_check(event.exercise, event.check, event.mode)

        if event.kind == EventKind.ADVANCED:
            self.console.print(f"\n[bold cyan]{escape(event.message)}[/bold cyan]")
        elif event.kind == EventKind.STILL_ON:
            self.console.print(f"[dim]{escape(event.message)}[/dim]")
        elif event.kind == EventKind.COMPLETE:
            self.show_complete(event.message)
        elif event.kind == EventKind.HINT:
            self.console.print(Panel(
                escape(event.message) or "[dim]No hint for this exercise.[/dim]",
                title=f"[yellow]Hint: {escape(event.exercise or '')}[/yellow]",
                border_style="yellow",
            ))
        elif event.kind == EventKind.NOT_FOUND:
            self.console.print(f"[red]{escape(event.message)}[/red]")
        elif event.kind == EventKind.INFO and event.message:
            self.console.print(escape(event.message))

    def show_check(self, name: str, check: ExerciseCheck, mode: Mode = None) -> None:
        """Verdict panel for one check"""
        result = check.result
        if not result.passed:
            title = FAILURE_TITLES[result.kind].format(name=name)
            self.console.print(f"\n[yellow]! {escape(title)}. Please try again. Here's the output:[/yellow]")
            if result.diagnostics:
                self.console.print(Text(result.diagnostics))
            return

        message = SUCCESS_MESSAGES.get(mode, f"{name} passes!")
        if self.no_emoji:
            self.console.print(f"\n[green]~*~ {escape(message)} ~*~[/green]")
        else:
            self.console.print(f"\n[green]🎉 🎉  {escape(message)} 🎉 🎉[/green]")

        if result.output:
            self.console.print(Panel(Text(result.output), title="Output", border_style="green"))

        if not check.marked_done:
            self.console.print("You can keep working on this exercise,")
            self.console.print(
                f"or jump into the next one by removing the [bold]`{escape(self.marker)}`[/bold] comment:\n"
            )
            for context_line in check.context:
                line = escape(context_line.line)
                if context_line.important:
                    line = f"[bold]{line}[/bold]"
                self.console.print(f"[bold blue]{context_line.number:>2}[/bold blue] [blue]|[/blue]  {line}")

    def show_progress(self, done: int, total: int) -> None:
        percentage = done / total * 100.0 if total else 100.0
        self.console.print(f"[dim]Progress: {done}/{total} exercises ({percentage:.1f} %)[/dim]")

    def show_complete(self, message: str = '') -> None:
        star = '*' if self.no_emoji else '🎉'
        self.console.print(f"\n[bold green]{'=' * 60}[/bold green]")
        self.console.print(f"[bold green]{star} All exercises completed! {star}[/bold green]")
        self.console.print(f"[bold green]{'=' * 60}[/bold green]")
        if message:
            self.console.print(escape(message))

    def show_list(self, rows: List[dict], names_only: bool = False, paths_only: bool = False) -> None:
        """Exercise listing, either plain names/paths or a status table"""
        if names_only or paths_only:
            key = 'name' if names_only else 'path'
            for row in rows:
                self.console.print(escape(str(row[key])), highlight=False)
            return

        table = Table(title="Exercises")
        table.add_column("Name", style="cyan")
        table.add_column("Path")
        table.add_column("Status")
        for row in rows:
            status = "[green]Done[/green]" if row['done'] else "[yellow]Pending[/yellow]"
            table.add_row(escape(row['name']), escape(str(row['path'])), status)
        self.console.print(table)

    def progress_bar(self) -> Progress:
        """Progress bar used while verifying the whole curriculum"""
        return Progress(
            TextColumn("Progress:"),
            BarColumn(bar_width=60, complete_style="green", style="red"),
            MofNCompleteColumn(),
            console=self.console,
            transient=False,
        )
