"""
Shared fixtures: a scriptable backend and helpers to lay out exercise files.
"""

import pytest

from lessonwatch.config import ENV_PREFIX, SETTING_TYPES
from lessonwatch.exercises import (
    FailureKind,
    Verifier,
    VerifyResult,
    load_manifest,
)


class FakeBackend:
    """Backend stand-in. Every file passes unless told otherwise, keyed by exercise name."""

    def __init__(self):
        self.results = {}
        self.calls = []

    def fail(self, name, diagnostics='error: Missing semicolon', kind=FailureKind.COMPILE):
        self.results[name] = VerifyResult.failure(kind, diagnostics)

    def succeed(self, name, output=''):
        self.results[name] = VerifyResult.success(output)

    def check(self, path, mode):
        self.calls.append((path.stem, mode))
        return self.results.get(path.stem, VerifyResult.success())


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep config reads and writes out of the real home directory"""
    monkeypatch.setenv('LESSONWATCH_HOME', str(tmp_path / 'home'))
    for key in SETTING_TYPES:
        monkeypatch.delenv(ENV_PREFIX + key.upper(), raising=False)
    monkeypatch.delenv('NO_EMOJI', raising=False)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def verifier(backend):
    return Verifier(backend=backend)


@pytest.fixture
def write_exercise(tmp_path):
    """Write exercises/<name>.cairo, with the marker unless done=True"""
    def _write(name, done=False, body='fn main() {\n    let x = 5;\n}\n'):
        path = tmp_path / 'exercises' / f'{name}.cairo'
        path.parent.mkdir(parents=True, exist_ok=True)
        marker = '' if done else '// I AM NOT DONE\n'
        path.write_text(marker + body)
        return path
    return _write


@pytest.fixture
def curriculum(tmp_path, write_exercise):
    """Build a registry from (name, mode, done) tuples, writing each file"""
    def _build(*specs):
        records = []
        for name, mode, done in specs:
            write_exercise(name, done=done)
            records.append({
                'name': name,
                'path': f'exercises/{name}.cairo',
                'mode': mode,
                'hint': f'Hint for {name}',
            })
        return load_manifest(records, base_dir=tmp_path)
    return _build
