#!/usr/bin/env python3
"""
Exercise registry.
Loads the ordered curriculum from a manifest and answers lookups by name or path.
"""

import os
import tomllib
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Union

import yaml
from loguru import logger

from ..errors import ManifestError, NotFoundError
from .models import ExerciseDescriptor, Mode

# Name that resolves to the first exercise still carrying the marker
NEXT_KEYWORD = 'next'

REQUIRED_FIELDS = ('name', 'path', 'mode')


class ExerciseRegistry:
    """Ordered, read-only list of exercises. Order is curriculum order."""

    def __init__(self, exercises: Sequence[ExerciseDescriptor], root: Path = None):
        self.root = Path(root) if root else Path.cwd()
        self._exercises = tuple(exercises)
        self._by_name: Dict[str, int] = {}
        self._by_path: Dict[str, ExerciseDescriptor] = {}
        for index, exercise in enumerate(self._exercises):
            if exercise.name in self._by_name:
                raise ManifestError(f"Duplicate exercise name '{exercise.name}'")
            self._by_name[exercise.name] = index
            key = _path_key(exercise.path)
            if key in self._by_path:
                raise ManifestError(
                    f"Exercise '{exercise.name}' shares its file with '{self._by_path[key].name}'"
                )
            self._by_path[key] = exercise

    def __len__(self) -> int:
        return len(self._exercises)

    def __iter__(self) -> Iterator[ExerciseDescriptor]:
        return iter(self._exercises)

    def __getitem__(self, index: int) -> ExerciseDescriptor:
        return self._exercises[index]

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def names(self) -> List[str]:
        return [e.name for e in self._exercises]

    def index_of(self, name: str) -> int:
        """Position of an exercise in the curriculum"""
        try:
            return self._by_name[name]
        except KeyError:
            raise NotFoundError(name) from None

    def get(self, name: str) -> ExerciseDescriptor:
        """Look up an exercise by name, raising NotFoundError if unknown"""
        return self._exercises[self.index_of(name)]

    def find(self, name: str, is_done: Callable[[ExerciseDescriptor], bool] = None) -> ExerciseDescriptor:
        """
        Resolve a user-supplied name.

        'next' resolves to the first exercise for which is_done is false.
        """
        if name == NEXT_KEYWORD and is_done is not None and name not in self._by_name:
            return self.find_next(is_done)
        return self.get(name)

    def find_next(self, is_done: Callable[[ExerciseDescriptor], bool]) -> ExerciseDescriptor:
        for exercise in self._exercises:
            if not is_done(exercise):
                return exercise
        raise NotFoundError(NEXT_KEYWORD, "All exercises are done, there is no next exercise")

    def find_by_path(self, path: Union[str, Path]) -> Optional[ExerciseDescriptor]:
        """Exercise whose file is at path, or None for files outside the curriculum"""
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.root / candidate
        return self._by_path.get(_path_key(candidate))

    def watch_root(self) -> Path:
        """Deepest directory containing every exercise file"""
        if not self._exercises:
            return self.root
        parents = [str(e.path.parent) for e in self._exercises]
        return Path(os.path.commonpath(parents))

    def rebase(self, old_root: Union[str, Path], new_root: Union[str, Path]) -> 'ExerciseRegistry':
        """
        Copy of the registry with every path moved from old_root to new_root.

        Used to point the curriculum at reference solutions. Paths are not
        checked for existence; a missing file fails verification instead.
        """
        old_base = self._resolve(Path(old_root))
        new_base = self._resolve(Path(new_root))
        moved = []
        for exercise in self._exercises:
            try:
                relative = exercise.path.relative_to(old_base)
            except ValueError:
                raise ManifestError(
                    f"Exercise '{exercise.name}' is not under {old_base}"
                ) from None
            moved.append(ExerciseDescriptor(
                name=exercise.name,
                path=new_base / relative,
                mode=exercise.mode,
                hint=exercise.hint,
            ))
        return ExerciseRegistry(moved, root=self.root)

    def _resolve(self, path: Path) -> Path:
        if not path.is_absolute():
            path = self.root / path
        return path.resolve()


def _path_key(path: Path) -> str:
    return os.path.normcase(str(Path(path).resolve()))


def parse_manifest_file(path: Union[str, Path]) -> List[Dict]:
    """Read raw exercise records from a TOML or YAML manifest"""
    path = Path(path)
    try:
        text = path.read_text(encoding='utf-8')
    except OSError as e:
        raise ManifestError(f"Cannot read manifest {path}: {e}") from e

    try:
        if path.suffix in ('.yaml', '.yml'):
            data = yaml.safe_load(text) or {}
        else:
            data = tomllib.loads(text)
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as e:
        raise ManifestError(f"Cannot parse manifest {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get('exercises'), list):
        raise ManifestError(f"Manifest {path} has no 'exercises' list")
    return data['exercises']


def _parse_record(record, position: int, base_dir: Path) -> ExerciseDescriptor:
    if not isinstance(record, dict):
        raise ManifestError(f"Exercise #{position} is not a table")

    for key in REQUIRED_FIELDS:
        value = record.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ManifestError(f"Exercise #{position} is missing '{key}'")

    name = record['name'].strip()
    hint = record.get('hint', '')
    if not isinstance(hint, str):
        raise ManifestError(f"Exercise '{name}' has a non-text hint")

    try:
        mode = Mode(record['mode'].strip().lower())
    except ValueError:
        raise ManifestError(
            f"Exercise '{name}' has unknown mode '{record['mode']}' "
            f"(expected one of: {', '.join(m.value for m in Mode)})"
        ) from None

    path = Path(record['path'])
    if not path.is_absolute():
        path = base_dir / path
    path = path.resolve()
    if not path.is_file() or not os.access(path, os.R_OK):
        raise ManifestError(f"Exercise '{name}' points at unreadable file {path}")

    return ExerciseDescriptor(name=name, path=path, mode=mode, hint=hint.strip())


def load_manifest(source: Union[str, Path, Sequence[Dict]], base_dir: Union[str, Path] = None) -> ExerciseRegistry:
    """
    Build the registry from a manifest file or a list of pre-parsed records.

    Relative exercise paths are resolved against base_dir, which defaults to
    the manifest's directory (or the working directory for in-memory records).
    Raises ManifestError on the first bad record.
    """
    if isinstance(source, (str, Path)):
        manifest_path = Path(source)
        records = parse_manifest_file(manifest_path)
        base = Path(base_dir) if base_dir else manifest_path.resolve().parent
    else:
        records = list(source)
        base = Path(base_dir) if base_dir else Path.cwd()

    exercises = [_parse_record(record, i + 1, base) for i, record in enumerate(records)]
    registry = ExerciseRegistry(exercises, root=base.resolve())
    logger.debug(f"Loaded {len(registry)} exercises from {source if isinstance(source, (str, Path)) else 'records'}")
    return registry
