#!/usr/bin/env python3
"""
Data model for the exercise runner.
Descriptors, verdicts, per-exercise state and the status events emitted to the UI.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional


class Mode(Enum):
    """How the backend checks an exercise"""
    COMPILE = 'compile'  # File must compile and run
    TEST = 'test'        # Embedded tests must pass


class Outcome(Enum):
    """Raw result of one backend invocation"""
    PASS = 'pass'
    FAIL = 'fail'


class FailureKind(Enum):
    """Where a failure came from"""
    COMPILE = 'compile'  # Compiler rejected the file
    TEST = 'test'        # A test case failed
    IO = 'io'            # File unreadable or vanished
    TIMEOUT = 'timeout'  # Backend exceeded its budget
    BACKEND = 'backend'  # Backend could not be started


class Verdict(Enum):
    """Verdict recorded for an exercise"""
    PENDING = 'pending'  # Never checked
    FAILING = 'failing'
    PASSING = 'passing'


@dataclass(frozen=True)
class ExerciseDescriptor:
    """One curriculum unit, immutable after manifest load"""
    name: str
    path: Path
    mode: Mode
    hint: str = ''

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class VerifyResult:
    """Classified backend result"""
    outcome: Outcome
    diagnostics: str = ''
    kind: Optional[FailureKind] = None
    output: str = ''

    @property
    def passed(self) -> bool:
        return self.outcome == Outcome.PASS

    @classmethod
    def success(cls, output: str = '') -> 'VerifyResult':
        return cls(outcome=Outcome.PASS, output=output)

    @classmethod
    def failure(cls, kind: FailureKind, diagnostics: str) -> 'VerifyResult':
        return cls(outcome=Outcome.FAIL, diagnostics=diagnostics, kind=kind)


@dataclass(frozen=True)
class ContextLine:
    """A numbered source line shown around the completion marker"""
    number: int
    line: str
    important: bool = False


@dataclass(frozen=True)
class ExerciseCheck:
    """One observation of an exercise: backend verdict plus marker status"""
    result: VerifyResult
    marked_done: bool
    context: List[ContextLine] = field(default_factory=list)


@dataclass
class ExerciseState:
    """
    Mutable state for one exercise.

    An exercise is done only when the backend passes AND the learner has
    removed the marker from the file.
    """
    verdict: Verdict = Verdict.PENDING
    marked_done: bool = False
    last_checked_at: int = 0      # Logical clock value at the last commit
    requested_seq: int = 0        # Last check sequence handed out
    applied_seq: int = 0          # Last check sequence committed
    last_check: Optional[ExerciseCheck] = None

    @property
    def done(self) -> bool:
        return self.verdict == Verdict.PASSING and self.marked_done

    @property
    def diagnostics(self) -> str:
        if self.last_check is None:
            return ''
        return self.last_check.result.diagnostics


class EventKind(Enum):
    """Kinds of status events emitted by the watch loop and dispatcher"""
    CHECKED = 'checked'        # A check finished (one-shot commands)
    ADVANCED = 'advanced'      # Cursor moved to a new exercise
    STILL_ON = 'still_on'      # Cursor did not move
    COMPLETE = 'complete'      # Every exercise is done
    HINT = 'hint'
    NOT_FOUND = 'not_found'
    INFO = 'info'


@dataclass(frozen=True)
class StatusEvent:
    """Something the presentation layer should show"""
    kind: EventKind
    exercise: Optional[str] = None
    check: Optional[ExerciseCheck] = None
    message: str = ''
    mode: Optional[Mode] = None
