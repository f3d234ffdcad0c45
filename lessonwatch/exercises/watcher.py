#!/usr/bin/env python3
"""
Watch mode.
Monitors exercise files and re-checks them as the learner saves.

All state changes happen on the thread that calls WatchLoop.run(). The
watchdog observer, the interactive shell and the verification workers only
put events on the loop's queue.
"""

import os
import queue
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Union

from loguru import logger
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..errors import NotFoundError
from .dispatcher import CommandDispatcher, EventSink
from .models import (
    EventKind,
    ExerciseCheck,
    ExerciseDescriptor,
    FailureKind,
    StatusEvent,
    Verdict,
    VerifyResult,
)
from .progress import TutorialSession
from .verifier import Verifier

DEFAULT_DEBOUNCE_SECONDS = 1.0

# Upper bound on how long the loop blocks waiting for an event
POLL_SECONDS = 0.5


class WatchStatus(Enum):
    """How watch mode ended"""
    FINISHED = 'finished'      # Every exercise is done
    UNFINISHED = 'unfinished'  # Learner quit or interrupted


@dataclass(frozen=True)
class FileChanged:
    path: str
    at: float


@dataclass(frozen=True)
class CommandInput:
    text: str


@dataclass(frozen=True)
class CheckFinished:
    name: str
    seq: int
    check: ExerciseCheck


LoopEvent = Union[FileChanged, CommandInput, CheckFinished]


class ExerciseChangeHandler(FileSystemEventHandler):
    """Forwards file events from the watchdog thread to the watch loop"""

    def __init__(self, notify: Callable[[str], None]):
        super().__init__()
        self.notify = notify

    def on_modified(self, event: FileSystemEvent):
        if not event.is_directory:
            self.notify(event.src_path)

    def on_created(self, event: FileSystemEvent):
        if not event.is_directory:
            self.notify(event.src_path)

    def on_deleted(self, event: FileSystemEvent):
        if not event.is_directory:
            self.notify(event.src_path)

    def on_moved(self, event: FileSystemEvent):
        # Editors that save via rename land on dest_path; renaming an exercise
        # away vanishes src_path
        if not event.is_directory:
            self.notify(event.src_path)
            self.notify(event.dest_path)


class WatchLoop:
    """
    Single control loop for watch mode.

    File notifications are debounced per exercise: a check fires once the
    file has been quiet for debounce_seconds. Checks run on a worker pool and
    come back through the queue, so a slow compile never blocks events for
    other exercises.
    """

    def __init__(
        self,
        session: TutorialSession,
        verifier: Verifier,
        on_event: EventSink = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        max_workers: int = 4,
        executor: Executor = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.session = session
        self.registry = session.registry
        self.verifier = verifier
        self.on_event = on_event or (lambda event: None)
        self.debounce_seconds = debounce_seconds
        self.clock = clock
        self.events: "queue.Queue[LoopEvent]" = queue.Queue()
        self.dispatcher = CommandDispatcher(session, verifier, on_event=self.on_event)

        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix='lessonwatch-check'
        )
        self._owns_executor = executor is None
        self._due: Dict[str, float] = {}   # exercise name -> time its check fires
        self._quit = False
        self.observer = None

    # === Thread-safe producers ===

    def notify_path(self, path: str) -> None:
        """Report a changed file. Safe to call from any thread."""
        self.events.put(FileChanged(path=os.fspath(path), at=self.clock()))

    def submit_command(self, text: str) -> None:
        """Queue an interactive command. Safe to call from any thread."""
        self.events.put(CommandInput(text=text))

    # === Control loop ===

    @property
    def running(self) -> bool:
        return not self._quit and not self.session.is_complete()

    def start(self) -> bool:
        """
        Recompute progress from the files on disk.

        Returns:
            False if the curriculum is already complete
        """
        summary = self.dispatcher.verify_all()
        if summary.complete:
            return False
        self._check_current_if_unchecked()
        return True

    def run(self, on_watching: Callable[[], None] = None) -> WatchStatus:
        """
        Watch until every exercise is done or the learner quits.

        on_watching is called once the observer is running, e.g. to start
        the interactive shell. Errors starting the observer propagate.
        """
        try:
            if not self.start():
                return WatchStatus.FINISHED
            self.start_observer()
            if on_watching:
                on_watching()
            while self.step():
                pass
        except KeyboardInterrupt:
            logger.debug("Watch interrupted")
        finally:
            self.stop()
        return WatchStatus.FINISHED if self.session.is_complete() else WatchStatus.UNFINISHED

    def step(self, timeout: float = POLL_SECONDS) -> bool:
        """
        Handle at most one queued event, then fire any due checks.

        Returns:
            True while the loop should keep running
        """
        wait = timeout
        if self._due:
            wait = max(0.0, min(wait, min(self._due.values()) - self.clock()))
        try:
            event = self.events.get(timeout=wait)
        except queue.Empty:
            event = None

        if event is not None:
            self.handle(event)
        self.flush_due()
        return self.running

    def handle(self, event: LoopEvent) -> None:
        if isinstance(event, FileChanged):
            self._on_file_changed(event)
        elif isinstance(event, CommandInput):
            self.handle_command(event.text)
        elif isinstance(event, CheckFinished):
            self._on_check_finished(event)

    def flush_due(self, now: Optional[float] = None) -> None:
        """Start checks for exercises whose files have been quiet long enough"""
        now = self.clock() if now is None else now
        for name, deadline in list(self._due.items()):
            if deadline <= now:
                del self._due[name]
                self.schedule_check(self.registry.get(name))

    def schedule_check(self, exercise: ExerciseDescriptor) -> int:
        """Queue a background check; its result comes back as CheckFinished"""
        seq = self.session.begin_check(exercise.name)
        logger.debug(f"Dispatching check #{seq} for {exercise.name}")
        self._executor.submit(self._run_check, exercise, seq)
        return seq

    def _run_check(self, exercise: ExerciseDescriptor, seq: int) -> None:
        # Runs on a worker thread: only touches the queue
        try:
            check = self.verifier.check(exercise)
        except Exception as e:
            logger.exception(f"Check of {exercise.name} crashed")
            check = ExerciseCheck(
                result=VerifyResult.failure(FailureKind.BACKEND, f"Internal error while checking: {e}"),
                marked_done=False,
            )
        self.events.put(CheckFinished(name=exercise.name, seq=seq, check=check))

    def _on_file_changed(self, event: FileChanged) -> None:
        exercise = self.registry.find_by_path(event.path)
        if exercise is None:
            return
        self._due[exercise.name] = event.at + self.debounce_seconds

    def _on_check_finished(self, event: CheckFinished) -> None:
        if not self.session.apply(event.name, event.seq, event.check):
            return

        exercise = self.registry.get(event.name)
        moved = self.session.advance_cursor()
        current = self.session.current_exercise()

        if current is None:
            self.on_event(StatusEvent(
                kind=EventKind.ADVANCED if moved else EventKind.STILL_ON,
                exercise=exercise.name,
                check=event.check,
                mode=exercise.mode,
            ))
            self.on_event(StatusEvent(kind=EventKind.COMPLETE))
            return

        if moved:
            self.on_event(StatusEvent(
                kind=EventKind.ADVANCED,
                exercise=exercise.name,
                check=event.check,
                mode=exercise.mode,
                message=f"Next exercise: {current.name} ({current.path})",
            ))
            self._check_current_if_unchecked()
        else:
            verdict = self.session.state(exercise.name).verdict.value
            if current.name == exercise.name:
                message = f"Still on {exercise.name}: {verdict}"
            else:
                message = f"{exercise.name}: {verdict}. Still on {current.name}"
            self.on_event(StatusEvent(
                kind=EventKind.STILL_ON,
                exercise=exercise.name,
                check=event.check,
                mode=exercise.mode,
                message=message,
            ))
        self.on_event(StatusEvent(kind=EventKind.INFO, message=self._progress_line()))

    def _check_current_if_unchecked(self) -> None:
        current = self.session.current_exercise()
        if current is None:
            return
        state = self.session.state(current.name)
        if state.verdict == Verdict.PENDING and state.requested_seq == state.applied_seq:
            self.schedule_check(current)

    def _progress_line(self) -> str:
        done, total = self.session.progress()
        percentage = done / total * 100.0 if total else 100.0
        return f"Progress: {done}/{total} exercises ({percentage:.1f} %)"

    # === Interactive commands ===

    def handle_command(self, text: str) -> None:
        """Apply one interactive command on the control thread"""
        parts = text.strip().split(maxsplit=1)
        if not parts:
            return
        command = parts[0].lower()
        args = parts[1].strip() if len(parts) > 1 else ''

        handlers = {
            'hint': self._cmd_hint,
            'check': self._cmd_check,
            'run': self._cmd_check,
            'list': self._cmd_list,
            'status': self._cmd_list,
            'quit': self._cmd_quit,
            'exit': self._cmd_quit,
        }
        handler = handlers.get(command)
        if handler is None:
            self.on_event(StatusEvent(kind=EventKind.INFO, message=f"unknown command: {command}"))
            return

        try:
            handler(args)
        except NotFoundError as e:
            self.on_event(StatusEvent(kind=EventKind.NOT_FOUND, exercise=e.name, message=str(e)))

    def _cmd_hint(self, args: str) -> None:
        if args:
            exercise = self.dispatcher.resolve(args)
        else:
            exercise = self.session.current_exercise()
            if exercise is None:
                self.on_event(StatusEvent(kind=EventKind.INFO, message="All exercises are done, no hints left."))
                return
        self.on_event(StatusEvent(kind=EventKind.HINT, exercise=exercise.name, message=exercise.hint))

    def _cmd_check(self, args: str) -> None:
        exercise = self.dispatcher.resolve(args) if args else self.session.current_exercise()
        if exercise is None:
            return
        self._due.pop(exercise.name, None)
        self.schedule_check(exercise)

    def _cmd_list(self, args: str) -> None:
        current = self.session.current_exercise()
        where = current.name if current else 'complete'
        self.on_event(StatusEvent(kind=EventKind.INFO, message=f"Current exercise: {where}. {self._progress_line()}"))

    def _cmd_quit(self, args: str) -> None:
        self._quit = True

    # === Filesystem observer ===

    def start_observer(self) -> None:
        """Subscribe to changes under the directory holding the exercises"""
        handler = ExerciseChangeHandler(self.notify_path)
        self.observer = Observer()
        watch_dir = str(self.registry.watch_root())
        self.observer.schedule(handler, path=watch_dir, recursive=True)
        self.observer.start()
        logger.info(f"Watching {watch_dir} for changes")

    def stop(self) -> None:
        """Stop watching"""
        if self.observer:
            self.observer.stop()
            self.observer.join()
            self.observer = None
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
