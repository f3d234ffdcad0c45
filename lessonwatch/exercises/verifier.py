#!/usr/bin/env python3
"""
Backend integration for checking exercises.
Invokes the language toolchain as a subprocess and classifies its result.
"""

import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger

from .marker import MARKER, is_marked_done, marker_context
from .models import ExerciseCheck, ExerciseDescriptor, FailureKind, Mode, VerifyResult

DEFAULT_COMMANDS = {
    Mode.COMPILE: 'cairo-run --single-file {path}',
    Mode.TEST: 'cairo-test --single-file {path}',
}

DEFAULT_TIMEOUT = 60.0

# Failure kind reported when the backend rejects the file in each mode
REJECTION_KINDS = {
    Mode.COMPILE: FailureKind.COMPILE,
    Mode.TEST: FailureKind.TEST,
}


class CommandBackend:
    """
    Runs the external compiler/test tool for one file.

    Commands are templates with a {path} placeholder, one per mode.
    """

    def __init__(self, commands: Dict[Mode, str] = None, timeout: float = DEFAULT_TIMEOUT, cwd: str = None):
        self.commands = dict(DEFAULT_COMMANDS)
        if commands:
            self.commands.update(commands)
        self.timeout = timeout
        self.cwd = cwd

    def build_command(self, path: Path, mode: Mode) -> List[str]:
        """Expand the template for mode into an argument list"""
        template = self.commands[mode]
        return [part.replace('{path}', str(path)) for part in shlex.split(template)]

    def is_available(self, mode: Mode) -> bool:
        """Check if the backend executable for mode can be found"""
        template = self.commands[mode]
        parts = shlex.split(template)
        return bool(parts) and shutil.which(parts[0]) is not None

    def check(self, path: Path, mode: Mode) -> VerifyResult:
        """
        Run the backend once.

        Returns:
            VerifyResult. Any non-zero exit is a failure with the backend's
            stdout and stderr passed through unmodified.
        """
        cmd = self.build_command(path, mode)
        logger.debug(f"Running backend: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=self.cwd,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Backend timed out after {self.timeout}s on {path}")
            return VerifyResult.failure(
                FailureKind.TIMEOUT,
                f"Checking {path.name} timed out after {self.timeout:g} seconds",
            )
        except FileNotFoundError:
            return VerifyResult.failure(
                FailureKind.BACKEND,
                f"Backend command not found: {cmd[0]}",
            )
        except OSError as e:
            return VerifyResult.failure(FailureKind.BACKEND, f"Could not start backend: {e}")

        text = _join_output(result.stdout, result.stderr)
        if result.returncode == 0:
            return VerifyResult.success(output=text)
        return VerifyResult.failure(REJECTION_KINDS[mode], text)


class Verifier:
    """Checks exercises against the backend and the completion marker"""

    def __init__(self, backend: CommandBackend = None, marker: str = MARKER):
        self.backend = backend or CommandBackend()
        self.marker = marker

    def verify(self, exercise: ExerciseDescriptor) -> VerifyResult:
        """Run the backend on one exercise. Never raises for I/O problems."""
        try:
            self._read(exercise)
        except OSError as e:
            return _io_failure(exercise, e)
        return self.backend.check(exercise.path, exercise.mode)

    def check(self, exercise: ExerciseDescriptor) -> ExerciseCheck:
        """Read the file once, consult the marker, then run the backend"""
        try:
            contents = self._read(exercise)
        except OSError as e:
            return ExerciseCheck(result=_io_failure(exercise, e), marked_done=False)

        result = self.backend.check(exercise.path, exercise.mode)
        return ExerciseCheck(
            result=result,
            marked_done=is_marked_done(contents, self.marker),
            context=marker_context(contents, self.marker),
        )

    def _read(self, exercise: ExerciseDescriptor) -> str:
        # Decoding errors count as unreadable
        try:
            return exercise.path.read_text(encoding='utf-8')
        except UnicodeDecodeError as e:
            raise OSError(f"not valid UTF-8 ({e.reason})") from e


def _io_failure(exercise: ExerciseDescriptor, error: OSError) -> VerifyResult:
    logger.debug(f"I/O failure on {exercise.path}: {error}")
    return VerifyResult.failure(
        FailureKind.IO,
        f"I/O error: could not read {exercise.path}: {error}",
    )


def _join_output(stdout: Optional[str], stderr: Optional[str]) -> str:
    parts = [p for p in (stdout, stderr) if p]
    return '\n'.join(p.rstrip('\n') for p in parts)
