#!/usr/bin/env python3
"""
Interactive shell for watch mode.
Reads commands on a background thread and hands them to the watch loop.
"""

import threading
from pathlib import Path
from typing import Callable, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.history import FileHistory, InMemoryHistory
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console

from .watcher import WatchLoop

COMMANDS = {
    'hint': {
        'help': 'Show the hint for the current exercise (or a named one)',
        'usage': 'hint [name]',
    },
    'check': {
        'help': 'Re-check the current exercise (or a named one) now',
        'usage': 'check [name]',
    },
    'list': {
        'help': 'Show the current exercise and overall progress',
        'usage': 'list',
    },
    'clear': {
        'help': 'Clear the screen',
        'usage': 'clear',
    },
    'help': {
        'help': 'Show this help message',
        'usage': 'help',
    },
    'quit': {
        'help': 'Quit watch mode',
        'usage': 'quit',
    },
}


def get_command_help() -> str:
    """Help text listing every watch-mode command"""
    lines = ["Commands available in watch mode:"]
    for info in COMMANDS.values():
        lines.append(f"  {info['usage']:<14} - {info['help']}")
    lines.append("")
    lines.append("Watch mode re-checks an exercise automatically")
    lines.append("whenever you save its file.")
    return '\n'.join(lines)


class WatchShell:
    """Background reader feeding commands into a WatchLoop"""

    def __init__(
        self,
        loop: WatchLoop,
        console: Console = None,
        read_line: Optional[Callable[[], str]] = None,
        history_path: Optional[Path] = None,
    ):
        self.loop = loop
        self.console = console or Console()
        self._read_line = read_line
        self._history_path = history_path
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start reading commands on a daemon thread"""
        self.console.print(
            "Welcome to watch mode! You can type 'help' to get an overview "
            "of the commands you can use here."
        )
        self._thread = threading.Thread(target=self.run, name='lessonwatch-shell', daemon=True)
        self._thread.start()

    def run(self) -> None:
        """Read until quit, end of input, or the loop stops"""
        if self._read_line is not None:
            self._read_loop(self._read_line)
            return

        prompt_session = self._make_prompt_session()
        # Keep loop output from tearing through the prompt line
        with patch_stdout():
            self._read_loop(lambda: prompt_session.prompt('lessonwatch> '))

    def _read_loop(self, read_line: Callable[[], str]) -> None:
        while self.loop.running:
            try:
                user_input = read_line()
            except (EOFError, KeyboardInterrupt):
                self.loop.submit_command('quit')
                return
            if not self.handle_input(user_input):
                return

    def handle_input(self, user_input: str) -> bool:
        """
        Process one line of input.

        Returns:
            False once the shell should stop reading
        """
        text = user_input.strip()
        if not text:
            return True

        command = text.split(maxsplit=1)[0].lower()
        if command == 'clear':
            self.console.clear()
        elif command == 'help':
            self.console.print(get_command_help())
        else:
            self.loop.submit_command(text)
            if command in ('quit', 'exit'):
                self.console.print("Bye!")
                return False
        return True

    def _make_prompt_session(self) -> PromptSession:
        if self._history_path:
            self._history_path.parent.mkdir(parents=True, exist_ok=True)
            history = FileHistory(str(self._history_path))
        else:
            history = InMemoryHistory()
        return PromptSession(history=history, auto_suggest=AutoSuggestFromHistory())
