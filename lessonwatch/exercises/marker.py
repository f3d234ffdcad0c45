#!/usr/bin/env python3
"""
Completion marker detection.

Exercise templates ship with a marker comment. The learner removes it once
they consider the exercise finished; until then the runner will not move on,
even if the code already compiles.
"""

from typing import List

from .models import ContextLine

MARKER = 'I AM NOT DONE'

CONTEXT_RADIUS = 2


def is_marked_done(contents: str, marker: str = MARKER) -> bool:
    """True unless the marker appears anywhere in the file"""
    return marker not in contents


def marker_context(contents: str, marker: str = MARKER, radius: int = CONTEXT_RADIUS) -> List[ContextLine]:
    """
    Lines surrounding the first marker occurrence, 1-based numbering.

    Returns an empty list when the marker is absent.
    """
    lines = contents.splitlines()
    for index, line in enumerate(lines):
        if marker in line:
            start = max(0, index - radius)
            end = min(len(lines), index + radius + 1)
            return [
                ContextLine(number=i + 1, line=lines[i], important=(i == index))
                for i in range(start, end)
            ]
    return []
