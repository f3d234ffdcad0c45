#!/usr/bin/env python3
"""
Exception types for lessonwatch.

Only ManifestError is fatal. Verification problems never raise; they are
recorded as failing verdicts with diagnostics.
"""


class LessonwatchError(Exception):
    """Base class for lessonwatch errors"""


class ManifestError(LessonwatchError):
    """The exercise manifest is malformed and the curriculum cannot run"""


class NotFoundError(LessonwatchError):
    """No exercise matches the requested name"""

    def __init__(self, name: str, message: str = None):
        self.name = name
        super().__init__(message or f"No exercise found for '{name}'")


class ConfigError(LessonwatchError):
    """Unknown configuration key or invalid value"""
