#!/usr/bin/env python3
"""
One-shot commands outside watch mode: run, hint, verify, list, reset.
"""

import subprocess
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from loguru import logger

from .marker import is_marked_done
from .models import EventKind, ExerciseCheck, ExerciseDescriptor, StatusEvent
from .progress import TutorialSession
from .verifier import Verifier

EventSink = Callable[[StatusEvent], None]


@dataclass
class CompletionSummary:
    """Result of verifying the curriculum in order"""
    total: int
    done: List[str] = field(default_factory=list)
    stopped_at: Optional[str] = None
    check: Optional[ExerciseCheck] = None  # Check of the exercise we stopped at

    @property
    def complete(self) -> bool:
        return self.stopped_at is None and len(self.done) == self.total


class CommandDispatcher:
    """
    Discrete operations on the curriculum.

    Shares the Verifier and TutorialSession used by watch mode but never
    touches the filesystem watcher.
    """

    def __init__(self, session: TutorialSession, verifier: Verifier, on_event: EventSink = None):
        self.session = session
        self.registry = session.registry
        self.verifier = verifier
        self.on_event = on_event or (lambda event: None)

    def resolve(self, name: str) -> ExerciseDescriptor:
        """Find an exercise by name; 'next' is the first one still carrying the marker"""
        return self.registry.find(name, is_done=self.looks_done)

    def looks_done(self, exercise: ExerciseDescriptor) -> bool:
        """Marker-only check, no backend run. Unreadable files are not done."""
        try:
            contents = exercise.path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError):
            return False
        return is_marked_done(contents, self.verifier.marker)

    def run_one(self, name: str) -> ExerciseCheck:
        """Check a single exercise and report the verdict. The cursor does not move."""
        exercise = self.resolve(name)
        check = self.verifier.check(exercise)
        self.session.record(exercise.name, check)
        self.on_event(StatusEvent(
            kind=EventKind.CHECKED,
            exercise=exercise.name,
            check=check,
            mode=exercise.mode,
        ))
        return check

    def hint(self, name: str) -> str:
        """Hint text for an exercise, raising NotFoundError for unknown names"""
        return self.resolve(name).hint

    def verify_all(self, on_progress: Callable[[int, int], None] = None) -> CompletionSummary:
        """
        Check exercises in curriculum order, stopping at the first one
        that is not done.
        """
        summary = CompletionSummary(total=len(self.registry))
        for exercise in self.registry:
            check = self.verifier.check(exercise)
            self.session.record(exercise.name, check)
            if not self.session.is_done(exercise.name):
                summary.stopped_at = exercise.name
                summary.check = check
                self.on_event(StatusEvent(
                    kind=EventKind.CHECKED,
                    exercise=exercise.name,
                    check=check,
                    mode=exercise.mode,
                ))
                break
            summary.done.append(exercise.name)
            if on_progress:
                on_progress(len(summary.done), summary.total)

        self.session.advance_cursor()
        logger.info(f"Verified {len(summary.done)}/{summary.total} exercises")
        if summary.complete:
            self.on_event(StatusEvent(kind=EventKind.COMPLETE))
        return summary

    def list_status(
        self,
        filters: Optional[str] = None,
        solved: bool = False,
        unsolved: bool = False,
    ) -> Tuple[List[Dict], int, int]:
        """
        Exercise rows for listing, based on the marker only.

        Args:
            filters: Comma-separated substrings matched against name or path
            solved: Only exercises without the marker
            unsolved: Only exercises still carrying the marker

        Returns:
            (rows, done count, total) where the counts cover the whole curriculum
        """
        patterns = [p.strip().lower() for p in (filters or '').split(',') if p.strip()]
        rows = []
        done_count = 0

        for exercise in self.registry:
            done = self.looks_done(exercise)
            if done:
                done_count += 1

            if patterns and not any(p in exercise.name.lower() or p in str(exercise.path).lower() for p in patterns):
                continue
            if solved != unsolved and done != solved:
                continue

            rows.append({'name': exercise.name, 'path': exercise.path, 'done': done})

        return rows, done_count, len(self.registry)

    def reset(self, name: str, timeout: float = 30) -> Tuple[bool, str]:
        """
        Restore an exercise file with "git stash push -- <file>".

        Returns:
            (success, message)
        """
        exercise = self.resolve(name)
        cmd = ['git', 'stash', 'push', '--', str(exercise.path)]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                cwd=str(exercise.path.parent),
            )
        except subprocess.TimeoutExpired:
            return False, f"git timed out after {timeout} seconds"
        except OSError as e:
            return False, f"Could not run git: {e}"

        if result.returncode != 0:
            return False, (result.stderr or result.stdout).strip()
        logger.info(f"Reset {exercise.name}")
        return True, f"The file {exercise.path} has been reset!"
