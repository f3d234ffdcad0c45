#!/usr/bin/env python3
"""
Exercise orchestration engine.

Loads the curriculum, checks exercises against the language backend and the
completion marker, tracks progress, and drives watch mode.
"""

from .models import (
    Mode,
    Outcome,
    FailureKind,
    Verdict,
    ExerciseDescriptor,
    VerifyResult,
    ExerciseCheck,
    ExerciseState,
    EventKind,
    StatusEvent,
)
from .marker import MARKER, is_marked_done, marker_context
from .registry import ExerciseRegistry, load_manifest
from .verifier import CommandBackend, Verifier
from .progress import TutorialSession
from .dispatcher import CommandDispatcher, CompletionSummary
from .watcher import WatchLoop, WatchStatus
from .reporter import ConsoleReporter

__all__ = [
    'Mode',
    'Outcome',
    'FailureKind',
    'Verdict',
    'ExerciseDescriptor',
    'VerifyResult',
    'ExerciseCheck',
    'ExerciseState',
    'EventKind',
    'StatusEvent',
    'MARKER',
    'is_marked_done',
    'marker_context',
    'ExerciseRegistry',
    'load_manifest',
    'CommandBackend',
    'Verifier',
    'TutorialSession',
    'CommandDispatcher',
    'CompletionSummary',
    'WatchLoop',
    'WatchStatus',
    'ConsoleReporter',
]
