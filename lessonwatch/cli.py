#!/usr/bin/env python3
"""
lessonwatch - Interactive Exercise Runner CLI

Usage:
    lessonwatch watch
    lessonwatch run intro1
    lessonwatch hint next
    lessonwatch verify
    lessonwatch list --unsolved
"""

import sys
import argparse
from typing import List, Optional

from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from . import __version__
from .config import Settings, get_config_dir, get_config_path, load_settings, set_config_value
from .errors import ConfigError, LessonwatchError, NotFoundError
from .exercises import (
    CommandBackend,
    CommandDispatcher,
    ConsoleReporter,
    ExerciseRegistry,
    TutorialSession,
    Verifier,
    WatchLoop,
    WatchStatus,
    load_manifest,
)

WELCOME = """[bold blue]lessonwatch[/bold blue] - An interactive exercise runner

Here's how it works:

1. Run [cyan]lessonwatch watch[/cyan]. It starts with the first exercise. Don't be
   put off by the error messages: fixing them is the exercise. Open the file
   in your editor and start your detective work.
2. Stuck? Type [cyan]hint[/cyan] in watch mode, or run [cyan]lessonwatch hint <name>[/cyan].
3. Once an exercise passes, remove the [bold]I AM NOT DONE[/bold] comment to move on.
"""

WELCOME_DONE = Panel(
    "You've reached the finish line!\nWe hope you enjoyed the curriculum.",
    border_style="green",
)


def configure_logging(verbose: bool = False) -> None:
    """Send log lines to stderr; quiet unless --verbose"""
    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "WARNING",
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )


def build_verifier(settings: Settings) -> Verifier:
    backend = CommandBackend(commands=settings.commands(), timeout=settings.verify_timeout)
    return Verifier(backend=backend, marker=settings.marker)


def load_registry(settings: Settings) -> ExerciseRegistry:
    return load_manifest(settings.manifest)


def cmd_watch(args, settings: Settings, console: Console) -> int:
    from .exercises.shell import WatchShell

    registry = load_registry(settings)
    reporter = ConsoleReporter(console, marker=settings.marker)
    session = TutorialSession(registry)
    loop = WatchLoop(
        session,
        build_verifier(settings),
        on_event=reporter,
        debounce_seconds=settings.debounce_seconds,
        max_workers=settings.max_workers,
    )

    shell = WatchShell(loop, console=console, history_path=get_config_dir() / 'watch_history')
    console.clear()
    try:
        status = loop.run(on_watching=shell.start)
    except OSError as e:
        console.print(f"[red]Error: Could not watch your progress. The error message was {escape(str(e))}.[/red]")
        console.print("[dim]Most likely you've run out of disk space or your 'inotify limit' has been reached.[/dim]")
        return 1

    if status == WatchStatus.FINISHED:
        console.print(WELCOME_DONE)
    else:
        console.print("We hope you're enjoying the exercises!")
        console.print("If you want to continue working on them later, just run [cyan]lessonwatch watch[/cyan] again.")
    return 0


def cmd_run(args, settings: Settings, console: Console) -> int:
    registry = load_registry(settings)
    reporter = ConsoleReporter(console, marker=settings.marker)
    dispatcher = CommandDispatcher(TutorialSession(registry), build_verifier(settings), on_event=reporter)
    with console.status(f"Checking {escape(args.name)}..."):
        check = dispatcher.run_one(args.name)
    return 0 if check.result.passed else 1


def cmd_hint(args, settings: Settings, console: Console) -> int:
    registry = load_registry(settings)
    dispatcher = CommandDispatcher(TutorialSession(registry), build_verifier(settings))
    console.print(escape(dispatcher.hint(args.name)) or "[dim]No hint for this exercise.[/dim]")
    return 0


def _verify(dispatcher: CommandDispatcher, reporter: ConsoleReporter) -> int:
    total = len(dispatcher.registry)
    with reporter.progress_bar() as progress:
        task = progress.add_task("verify", total=total)
        summary = dispatcher.verify_all(
            on_progress=lambda done, _total: progress.update(task, completed=done)
        )
    if not summary.complete:
        reporter.show_progress(len(summary.done), summary.total)
        return 1
    return 0


def cmd_verify(args, settings: Settings, console: Console) -> int:
    registry = load_registry(settings)
    reporter = ConsoleReporter(console, marker=settings.marker)
    dispatcher = CommandDispatcher(TutorialSession(registry), build_verifier(settings), on_event=reporter)
    return _verify(dispatcher, reporter)


def cmd_compile_solutions(args, settings: Settings, console: Console) -> int:
    registry = load_registry(settings).rebase(settings.exercises_dir, settings.solutions_dir)
    reporter = ConsoleReporter(console, marker=settings.marker)
    dispatcher = CommandDispatcher(TutorialSession(registry), build_verifier(settings), on_event=reporter)
    code = _verify(dispatcher, reporter)
    if code == 0:
        console.print("[green]All solutions compile![/green]")
    else:
        console.print("Stopped checking solutions.")
    return code


def cmd_list(args, settings: Settings, console: Console) -> int:
    registry = load_registry(settings)
    reporter = ConsoleReporter(console, marker=settings.marker)
    dispatcher = CommandDispatcher(TutorialSession(registry), build_verifier(settings))
    rows, done, total = dispatcher.list_status(args.filter, solved=args.solved, unsolved=args.unsolved)
    reporter.show_list(rows, names_only=args.names, paths_only=args.paths)
    if not args.names and not args.paths:
        reporter.show_progress(done, total)
    return 0


def cmd_reset(args, settings: Settings, console: Console) -> int:
    registry = load_registry(settings)
    dispatcher = CommandDispatcher(TutorialSession(registry), build_verifier(settings))
    ok, message = dispatcher.reset(args.name)
    console.print(f"[green]{escape(message)}[/green]" if ok else f"[red]{escape(message)}[/red]")
    return 0 if ok else 1


def cmd_config(args, settings: Settings, console: Console) -> int:
    if args.action == 'path':
        console.print(str(get_config_path()), highlight=False)
    elif args.action == 'set':
        if args.key is None or args.value is None:
            raise ConfigError("Usage: lessonwatch config set <key> <value>")
        set_config_value(args.key, args.value)
        console.print(f"[green]{escape(args.key)} saved.[/green]")
    else:
        for key, value in vars(settings).items():
            console.print(f"{key} = {escape(repr(value))}", highlight=False)
    return 0


COMMAND_HANDLERS = {
    'watch': cmd_watch,
    'run': cmd_run,
    'hint': cmd_hint,
    'verify': cmd_verify,
    'compile-solutions': cmd_compile_solutions,
    'list': cmd_list,
    'reset': cmd_reset,
    'config': cmd_config,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='lessonwatch',
        description='lessonwatch - Interactive exercise runner',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  lessonwatch watch                    # Re-check exercises as you save them
  lessonwatch run intro1               # Check a single exercise
  lessonwatch run next                 # Check the first unfinished exercise
  lessonwatch hint intro1              # Show the hint for an exercise
  lessonwatch verify                   # Check every exercise in order
  lessonwatch list -u                  # List unfinished exercises
  lessonwatch reset intro1             # Restore an exercise with git stash
  lessonwatch config set verify_timeout 30
        """
    )
    parser.add_argument('-v', '--version', action='store_true', help='Show the version')
    parser.add_argument('--manifest', help='Exercise manifest (default: info.toml)')
    parser.add_argument('--timeout', type=float, help='Seconds allowed per check')
    parser.add_argument('--debounce', type=float, help='Quiet period before re-checking a saved file')
    parser.add_argument('--verbose', action='store_true', help='Show debug logging')

    subparsers = parser.add_subparsers(dest='command')

    subparsers.add_parser('watch', help='Re-check exercises when files are edited')
    subparsers.add_parser('verify', help='Verify all exercises in the recommended order')
    subparsers.add_parser('compile-solutions', help='Verify the reference solutions')

    run_parser = subparsers.add_parser('run', help='Check a single exercise')
    run_parser.add_argument('name', help="Exercise name, or 'next'")

    hint_parser = subparsers.add_parser('hint', help='Show the hint for an exercise')
    hint_parser.add_argument('name', help="Exercise name, or 'next'")

    reset_parser = subparsers.add_parser('reset', help='Reset an exercise with "git stash push -- <file>"')
    reset_parser.add_argument('name', help="Exercise name, or 'next'")

    list_parser = subparsers.add_parser('list', help='List the exercises')
    list_parser.add_argument('-p', '--paths', action='store_true', help='Show only the paths')
    list_parser.add_argument('-n', '--names', action='store_true', help='Show only the names')
    list_parser.add_argument('-f', '--filter', help='Comma separated substrings to match names or paths')
    list_parser.add_argument('-u', '--unsolved', action='store_true', help='Only exercises not yet solved')
    list_parser.add_argument('-s', '--solved', action='store_true', help='Only exercises already solved')

    config_parser = subparsers.add_parser('config', help='Show or change settings')
    config_parser.add_argument('action', nargs='?', default='show', choices=['show', 'set', 'path'])
    config_parser.add_argument('key', nargs='?')
    config_parser.add_argument('value', nargs='?')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)
    console = Console()

    if args.version:
        console.print(f"v{__version__}", highlight=False)
        return 0

    configure_logging(args.verbose)

    if not args.command:
        console.print(Panel(WELCOME, border_style="blue"))
        parser.print_help()
        return 0

    try:
        settings = load_settings({
            'manifest': args.manifest,
            'verify_timeout': args.timeout,
            'debounce_seconds': args.debounce,
        })
        return COMMAND_HANDLERS[args.command](args, settings, console)
    except NotFoundError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        return 1
    except LessonwatchError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1
    except OSError as e:
        console.print(f"[red]I/O error: {escape(str(e))}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
