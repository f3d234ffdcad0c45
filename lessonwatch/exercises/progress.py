#!/usr/bin/env python3
"""
Progress tracking for a tutorial session.

TutorialSession owns all mutable tutorial state: one ExerciseState per
exercise and the cursor marking the learner's position in the curriculum.
Nothing here is persisted. Restarting recomputes everything from the files
on disk.
"""

from typing import Dict, List, Optional, Tuple

from loguru import logger

from .models import ExerciseCheck, ExerciseDescriptor, ExerciseState, Verdict
from .registry import ExerciseRegistry


class TutorialSession:
    """
    Per-exercise state machine plus the curriculum cursor.

    The cursor only ever moves forward, and only past exercises that are
    done. Checks can be committed in any order across exercises; within one
    exercise a result older than the last committed one is discarded.
    """

    def __init__(self, registry: ExerciseRegistry):
        self.registry = registry
        self.states: Dict[str, ExerciseState] = {e.name: ExerciseState() for e in registry}
        self.cursor = 0
        self._clock = 0

    def state(self, name: str) -> ExerciseState:
        """State for an exercise, raising NotFoundError if unknown"""
        self.registry.index_of(name)
        return self.states[name]

    def is_done(self, name: str) -> bool:
        return self.state(name).done

    def begin_check(self, name: str) -> int:
        """Hand out the sequence number for a check triggered now"""
        state = self.state(name)
        state.requested_seq += 1
        return state.requested_seq

    def apply(self, name: str, seq: int, check: ExerciseCheck) -> bool:
        """
        Commit a finished check.

        Returns False (and changes nothing) if a newer check for the same
        exercise has already been committed.
        """
        state = self.state(name)
        if seq <= state.applied_seq:
            logger.debug(f"Dropping stale check #{seq} for {name} (have #{state.applied_seq})")
            return False

        self._clock += 1
        state.applied_seq = seq
        state.verdict = Verdict.PASSING if check.result.passed else Verdict.FAILING
        state.marked_done = check.marked_done
        state.last_checked_at = self._clock
        state.last_check = check
        return True

    def record(self, name: str, check: ExerciseCheck) -> bool:
        """Begin and commit a check in one step, for synchronous callers"""
        return self.apply(name, self.begin_check(name), check)

    def advance_cursor(self) -> bool:
        """
        Move past every consecutive done exercise at the cursor.

        Returns:
            True if the cursor moved
        """
        start = self.cursor
        while self.cursor < len(self.registry) and self.states[self.registry[self.cursor].name].done:
            self.cursor += 1
        if self.cursor != start:
            logger.debug(f"Cursor advanced {start} -> {self.cursor}")
        return self.cursor != start

    def current_exercise(self) -> Optional[ExerciseDescriptor]:
        """Exercise at the cursor, or None once the curriculum is complete"""
        if self.is_complete():
            return None
        return self.registry[self.cursor]

    def is_complete(self) -> bool:
        return self.cursor >= len(self.registry)

    def progress(self) -> Tuple[int, int]:
        """(done, total) across the whole curriculum"""
        done = sum(1 for state in self.states.values() if state.done)
        return done, len(self.registry)

    def pending(self) -> List[ExerciseDescriptor]:
        """Exercises not yet done, in curriculum order"""
        return [e for e in self.registry if not self.states[e.name].done]
