#!/usr/bin/env python3
"""
Tests for the watch loop, driven step by step with a manual executor and clock.
"""

import queue
from unittest.mock import Mock

import pytest
from watchdog.events import DirModifiedEvent, FileDeletedEvent, FileModifiedEvent, FileMovedEvent

from lessonwatch.exercises import (
    EventKind,
    FailureKind,
    TutorialSession,
    Verdict,
    WatchLoop,
    WatchStatus,
)
from lessonwatch.exercises.watcher import CheckFinished, ExerciseChangeHandler


class ManualExecutor:
    """Collects submitted checks and runs them only when asked"""

    def __init__(self):
        self.jobs = []

    def submit(self, fn, *args):
        self.jobs.append((fn, args))

    def run(self, index=None):
        if index is None:
            jobs, self.jobs = self.jobs, []
        else:
            jobs = [self.jobs.pop(index)]
        for fn, args in jobs:
            fn(*args)

    def shutdown(self, wait=True, cancel_futures=False):
        self.jobs = []


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def executor():
    return ManualExecutor()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_loop(verifier, executor, clock):
    def _make(registry):
        events = []
        loop = WatchLoop(
            TutorialSession(registry),
            verifier,
            on_event=events.append,
            debounce_seconds=1.0,
            executor=executor,
            clock=clock,
        )
        return loop, events
    return _make


def drain(loop):
    """Handle every queued loop event on the calling thread"""
    while True:
        try:
            event = loop.events.get_nowait()
        except queue.Empty:
            return
        loop.handle(event)


class TestDebounce:
    """Tests for coalescing file notifications"""

    def test_burst_of_saves_gives_one_check(self, curriculum, make_loop, executor, clock, write_exercise):
        """Three saves 300ms apart produce a single check 1s after the last"""
        loop, _ = make_loop(curriculum(('ex1', 'compile', False)))
        path = write_exercise('ex1')

        for at in (0.0, 0.3, 0.6):
            clock.now = at
            loop.notify_path(path)
        drain(loop)

        loop.flush_due(now=1.5)
        assert executor.jobs == []

        loop.flush_due(now=1.6)
        assert len(executor.jobs) == 1

        loop.flush_due(now=5.0)
        assert len(executor.jobs) == 1

    def test_unregistered_file_is_ignored(self, tmp_path, curriculum, make_loop, executor):
        loop, events = make_loop(curriculum(('ex1', 'compile', False)))
        notes = tmp_path / 'exercises' / 'notes.md'
        notes.write_text('scratch')

        loop.notify_path(notes)
        drain(loop)
        loop.flush_due(now=100.0)

        assert executor.jobs == []
        assert events == []

    def test_step_fires_due_check(self, curriculum, make_loop, executor, clock, write_exercise):
        loop, _ = make_loop(curriculum(('ex1', 'compile', False)))
        loop.notify_path(write_exercise('ex1'))

        assert loop.step(timeout=0)
        assert executor.jobs == []

        clock.now = 1.0
        loop.step(timeout=0)
        assert len(executor.jobs) == 1


class TestCheckResults:
    """Tests for applying finished checks"""

    def test_newer_check_wins(self, curriculum, make_loop, executor, backend, write_exercise):
        """A slow stale check finishing last does not overwrite the newer verdict"""
        registry = curriculum(('ex1', 'compile', False), ('ex2', 'compile', False))
        loop, _ = make_loop(registry)
        exercise = registry.get('ex1')

        loop.schedule_check(exercise)
        loop.schedule_check(exercise)

        write_exercise('ex1', done=True)
        executor.run(index=1)
        backend.fail('ex1')
        executor.run(index=0)
        drain(loop)

        state = loop.session.state('ex1')
        assert state.verdict == Verdict.PASSING
        assert state.applied_seq == 2
        assert loop.session.current_exercise().name == 'ex2'

    def test_walkthrough_to_completion(self, curriculum, make_loop, executor, clock, write_exercise):
        loop, events = make_loop(curriculum(('ex1', 'compile', False), ('ex2', 'test', False)))

        assert loop.start()
        assert loop.session.current_exercise().name == 'ex1'
        assert [e.kind for e in events] == [EventKind.CHECKED]
        assert executor.jobs == []

        loop.notify_path(write_exercise('ex1', done=True))
        drain(loop)
        loop.flush_due(now=clock.now + 1.0)
        executor.run()
        drain(loop)

        advanced = [e for e in events if e.kind == EventKind.ADVANCED]
        assert len(advanced) == 1
        assert advanced[0].exercise == 'ex1'
        assert advanced[0].message.startswith('Next exercise: ex2')
        assert events[-1].kind == EventKind.INFO
        assert events[-1].message == 'Progress: 1/2 exercises (50.0 %)'

        # The new current exercise is checked right away
        assert len(executor.jobs) == 1
        write_exercise('ex2', done=True)
        executor.run()
        drain(loop)

        assert [e.kind for e in events[-2:]] == [EventKind.ADVANCED, EventKind.COMPLETE]
        assert loop.session.is_complete()
        assert not loop.running

    def test_editing_later_exercise(self, curriculum, make_loop, executor, clock, write_exercise):
        """Finishing ex3 while on ex1 records it but keeps the cursor"""
        loop, events = make_loop(curriculum(
            ('ex1', 'compile', False), ('ex2', 'compile', False), ('ex3', 'compile', False),
        ))
        loop.start()

        loop.notify_path(write_exercise('ex3', done=True))
        drain(loop)
        loop.flush_due(now=10.0)
        executor.run()
        drain(loop)

        still_on = [e for e in events if e.kind == EventKind.STILL_ON]
        assert still_on[-1].message == 'ex3: passing. Still on ex1'
        assert loop.session.is_done('ex3')
        assert loop.session.current_exercise().name == 'ex1'

    def test_deleted_exercise_reports_io_failure(self, curriculum, make_loop, executor, write_exercise):
        """Removing the current exercise's file mid-watch yields a visible I/O verdict"""
        loop, events = make_loop(curriculum(('ex1', 'compile', False), ('ex2', 'compile', False)))
        loop.start()
        path = write_exercise('ex1')
        path.unlink()

        loop.notify_path(path)
        drain(loop)
        loop.flush_due(now=10.0)
        executor.run()
        drain(loop)

        still_on = [e for e in events if e.kind == EventKind.STILL_ON]
        assert still_on[-1].exercise == 'ex1'
        assert still_on[-1].check.result.kind == FailureKind.IO
        assert loop.session.state('ex1').verdict == Verdict.FAILING
        assert loop.session.current_exercise().name == 'ex1'

    def test_crashing_check_becomes_failure(self, curriculum, make_loop, executor, write_exercise):
        registry = curriculum(('ex1', 'compile', False))
        loop, _ = make_loop(registry)

        def explode(exercise):
            raise RuntimeError('backend adapter bug')

        loop.verifier.check = explode
        loop.schedule_check(registry.get('ex1'))
        executor.run()

        event = loop.events.get_nowait()
        assert isinstance(event, CheckFinished)
        assert event.check.result.kind == FailureKind.BACKEND
        assert 'backend adapter bug' in event.check.result.diagnostics


class TestCommands:
    """Tests for interactive commands"""

    def test_hint_for_current(self, curriculum, make_loop):
        loop, events = make_loop(curriculum(('ex1', 'compile', False), ('ex2', 'compile', False)))
        loop.handle_command('hint')
        assert events[-1].kind == EventKind.HINT
        assert events[-1].exercise == 'ex1'
        assert events[-1].message == 'Hint for ex1'

    def test_hint_unknown(self, curriculum, make_loop):
        loop, events = make_loop(curriculum(('ex1', 'compile', False)))
        loop.handle_command('hint nonexistent')
        assert events[-1].kind == EventKind.NOT_FOUND
        assert events[-1].exercise == 'nonexistent'
        assert loop.session.cursor == 0

    def test_check_named_exercise(self, curriculum, make_loop, executor):
        loop, _ = make_loop(curriculum(('ex1', 'compile', False), ('ex2', 'compile', False)))
        loop.handle_command('check ex2')
        assert len(executor.jobs) == 1
        assert loop.session.state('ex2').requested_seq == 1

    def test_list(self, curriculum, make_loop):
        loop, events = make_loop(curriculum(('ex1', 'compile', False)))
        loop.handle_command('list')
        assert events[-1].message == 'Current exercise: ex1. Progress: 0/1 exercises (0.0 %)'

    def test_unknown_command(self, curriculum, make_loop):
        loop, events = make_loop(curriculum(('ex1', 'compile', False)))
        loop.handle_command('frobnicate now')
        assert events[-1].kind == EventKind.INFO
        assert events[-1].message == 'unknown command: frobnicate'

    def test_quit(self, curriculum, make_loop):
        loop, _ = make_loop(curriculum(('ex1', 'compile', False)))
        loop.submit_command('quit')
        assert not loop.step(timeout=0)


class TestRun:
    """Tests for WatchLoop.run"""

    def test_already_complete(self, curriculum, make_loop):
        loop, events = make_loop(curriculum(('ex1', 'compile', True), ('ex2', 'compile', True)))
        assert loop.run() == WatchStatus.FINISHED
        assert events[-1].kind == EventKind.COMPLETE
        assert loop.observer is None

    def test_on_watching_hook_runs_once_watching(self, curriculum, make_loop):
        loop, _ = make_loop(curriculum(('ex1', 'compile', False)))
        loop.start_observer = Mock()

        status = loop.run(on_watching=lambda: loop.submit_command('quit'))

        assert status == WatchStatus.UNFINISHED
        loop.start_observer.assert_called_once_with()


class TestChangeHandler:
    """Tests for the watchdog event handler"""

    def test_forwards_file_events(self):
        seen = []
        handler = ExerciseChangeHandler(seen.append)

        handler.on_modified(FileModifiedEvent('/ex/a.cairo'))
        handler.on_modified(DirModifiedEvent('/ex'))
        assert seen == ['/ex/a.cairo']

    def test_forwards_vanishing_paths(self):
        """Deleting or renaming an exercise away reports the old path"""
        seen = []
        handler = ExerciseChangeHandler(seen.append)

        handler.dispatch(FileDeletedEvent('/ex/a.cairo'))
        handler.dispatch(FileMovedEvent('/ex/b.cairo', '/ex/b.cairo.bak'))

        assert seen == ['/ex/a.cairo', '/ex/b.cairo', '/ex/b.cairo.bak']
