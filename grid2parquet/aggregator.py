# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
Timestep ordering
──────────────────────────────────────────────────────────────────────────────
Simulation runs write one file per timestep, e.g.

    run_00000.vti  run_00001.vti  run_00002.vti ...

Directory listings come back in no particular order, so inputs are turned
into work items ``(timestep_key, path)`` and sorted by key before they are
merged into a single output. Ties (two files with the same key) are broken by
file name and both files are kept; the collision is logged as a warning.

The key extractor is pluggable. The default, ``fixed_width_key(5)``, reads the
five characters just before the suffix, which is the historical convention.

"""

from __future__ import annotations

import logging
import os
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional

from .errors import DatasetOpenError, DirectoryOpenError
from .session import ChunkInfo, RewriteSession
from .sources import SampleSource

logger = logging.getLogger("grid2parquet")

KeyFunc = Callable[[str, str], Optional[int]]
Opener = Callable[[str], SampleSource]


class WorkItem(NamedTuple):
    timestep_key: int
    source_path: str

    @property
    def filename(self) -> str:
        return os.path.basename(self.source_path)


def fixed_width_key(width: int = 5) -> KeyFunc:
    """
    Build a key extractor reading the ``width`` characters right before the suffix.

    The returned function takes ``(filename, suffix)`` and returns the key, or
    None when those characters are not all digits.
    """
    if width <= 0:
        raise ValueError(f"width must be positive, got {width}")

    def extract(filename: str, suffix: str) -> Optional[int]:
        stem = filename[: len(filename) - len(suffix)] if suffix else filename
        token = stem[-width:]
        if len(token) != width or not token.isdigit():
            return None
        return int(token)

    return extract


def list_inputs(directory, suffix: str) -> List[str]:
    """
    Paths of the regular files (symlinks followed) in ``directory`` ending in ``suffix``, by name.

    Raises:
        DirectoryOpenError: if the directory cannot be listed.
    """
    try:
        entries = list(os.scandir(directory))
    except OSError as e:
        raise DirectoryOpenError(f"Fail to open dir {directory}: {e.strerror or e}") from e

    paths = []
    for entry in entries:
        if not entry.name.endswith(suffix):
            continue
        if entry.is_file():
            paths.append(entry.path)
    return sorted(paths, key=os.path.basename)


def discover(directory, suffix: str, key_func: Optional[KeyFunc] = None) -> List[WorkItem]:
    """
    Find the inputs in ``directory`` and return them in timestep order.

    Files whose name carries no key are skipped with a warning. Duplicate keys
    are kept, ordered by file name, and reported.
    """
    key_func = key_func or fixed_width_key()

    items: List[WorkItem] = []
    seen: Dict[int, str] = {}

    for path in list_inputs(directory, suffix):
        name = os.path.basename(path)
        key = key_func(name, suffix)
        if key is None:
            logger.warning("Cannot read a timestep from '%s'; skipping.", name)
            continue
        if key in seen:
            logger.warning("Timestep %d appears in both '%s' and '%s'", key, seen[key], name)
        seen[key] = name
        items.append(WorkItem(key, path))

    return sort_work_items(items)


def sort_work_items(items: Iterable[WorkItem]) -> List[WorkItem]:
    """Total order: timestep key ascending, then file name."""
    return sorted(items, key=lambda it: (it.timestep_key, it.filename))


def merged_output_name(item: WorkItem, suffix: str, width: int = 5) -> str:
    """
    Name of the merged output for a run: the input name without ``_<key><suffix>``.

        run_00003.vti -> run.parquet
    """
    name = item.filename
    stem = name[: len(name) - len(suffix) - width]
    if stem.endswith("_"):
        stem = stem[:-1]
    return (stem or "merged") + ".parquet"


def aggregate(
    items: Iterable[WorkItem],
    session: RewriteSession,
    opener: Opener,
    on_error: str = "abort",
) -> List[ChunkInfo]:
    """
    Write every work item, in order, into one session and close it.

    One row group is ended after each item. With ``on_error="abort"`` the first
    ``DatasetOpenError`` closes the session and is re-raised; with ``"skip"`` the
    item is logged and left out.

    Returns:
        The chunks written by the session.
    """
    try:
        for item in items:
            logger.info("Processing %s... ", item.source_path)
            try:
                source = opener(item.source_path)
            except DatasetOpenError as e:
                session.abort_input()
                if on_error != "skip":
                    raise
                logger.error("Skipping timestep %d: %s", item.timestep_key, e)
                continue

            with source:
                n = session.write_source(source, timestep=item.timestep_key)
            session.end_input()
            logger.debug("Timestep %d: %d records", item.timestep_key, n)
    finally:
        chunks = session.close()

    return chunks


__all__ = [
    "WorkItem",
    "fixed_width_key",
    "list_inputs",
    "discover",
    "sort_work_items",
    "merged_output_name",
    "aggregate",
]
