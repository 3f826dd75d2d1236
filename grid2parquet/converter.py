#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
Description
──────────────────────────────────────────────────────────────────────────────
Converts a directory of simulation grid files (VTK XML image / unstructured
grids, VTKHDF files, or existing Parquet files) into Parquet files that
columnar analysis tools can scan efficiently.

──────────────────────────────────────────────────────────────────────────────
WHY THIS EXISTS
──────────────────────────────────────────────────────────────────────────────
- Grid formats are laid out for visualization: one file per timestep, arrays
  per field, geometry alongside.
- Analysis jobs want the opposite: a few large, compressed, column-oriented
  files with a row id per element and, when many timesteps are merged, the
  timestep as a column.

──────────────────────────────────────────────────────────────────────────────
IT SUPPORTS:
──────────────────────────────────────────────────────────────────────────────
 - Five conversion modes (see config.py), one per historical converter
 - Decimal quantization of float fields before writing (6 decimals)
 - Size-bounded output chunks with row ids continuing across chunk files
 - Merging all timesteps of a run into one file, one row group per timestep,
   in timestep order regardless of directory order
 - Abort-on-first-error (default) or skip-and-continue for unreadable inputs
 - Dry-run mode that only prints the plan

"""

from __future__ import annotations

import logging
import os
import time
from typing import List, Optional, Tuple

from .aggregator import (
    KeyFunc,
    WorkItem,
    aggregate,
    discover,
    fixed_width_key,
    list_inputs,
    merged_output_name,
)
from .config import (
    ON_ERROR_SKIP,
    OUTPUT_IN_PLACE,
    TIMESTEP_KEY_WIDTH,
    ConversionMode,
    RewriteOptions,
    get_mode,
)
from .errors import DatasetOpenError, DirectoryOpenError
from .session import ChunkInfo, RewriteSession
from .sources import SampleSource, list_fields, open_source

__version__ = "1.0.0"


def setup_logging(verbose: bool) -> None:
    """
    Configure global logging.

    Args:
        verbose: If True, set DEBUG level, otherwise INFO.
    """

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%H:%M:%S",
    )

    # Reduce noise from libraries (adjustable)
    logging.getLogger("h5py").setLevel(logging.WARNING)
    logging.getLogger("pyarrow").setLevel(logging.WARNING)


logger = logging.getLogger("grid2parquet")


class GridToParquetConverter:
    """
    Convert every input of one directory according to a conversion mode.

    Per-file modes write one output (one or more chunks) per input. The merge
    mode writes a single output for the whole directory in timestep order.
    """

    def __init__(
        self,
        mode,
        input_dir: str,
        output_dir: Optional[str] = ".",
        options: Optional[RewriteOptions] = None,
        on_error: Optional[str] = None,
        dry_run: bool = False,
        key_func: Optional[KeyFunc] = None,
    ):
        self.mode: ConversionMode = get_mode(mode) if isinstance(mode, str) else mode
        self.input_dir = input_dir
        self.output_dir = output_dir if output_dir is not None else "."

        options = options or self.mode.options
        if on_error is not None:
            options = options.replace(on_error=on_error)
        self.options = options

        self.dry_run = dry_run
        self.key_func = key_func or fixed_width_key(TIMESTEP_KEY_WIDTH)

    # ──────────────────────────────────────────────────────────────
    # Planning
    # ──────────────────────────────────────────────────────────────

    def check_output_dir(self) -> None:
        """Raise DirectoryOpenError unless the output directory exists (in-place modes have none)."""
        if self.mode.output == OUTPUT_IN_PLACE:
            return
        if not os.path.isdir(self.output_dir):
            raise DirectoryOpenError(f"Fail to open dir {self.output_dir}: not a directory")

    def output_base(self, path: str) -> str:
        """Output path (or chunk prefix) for a per-file conversion of ``path``."""
        if self.mode.output == OUTPUT_IN_PLACE:
            return path
        name = os.path.basename(path)
        stem = name[: len(name) - len(self.mode.suffix)]
        return os.path.join(self.output_dir, stem + ".parquet")

    def plan(self) -> List[Tuple[str, Optional[int], str]]:
        """
        List what would be written, without writing: ``(input, timestep, output)``.

        For the merge mode every input maps to the same output.
        """
        if self.mode.merge or self.mode.timestep_from_filename:
            items = discover(self.input_dir, self.mode.suffix, self.key_func)
            if self.mode.merge:
                if not items:
                    return []
                out = os.path.join(self.output_dir, merged_output_name(items[0], self.mode.suffix, TIMESTEP_KEY_WIDTH))
                return [(it.source_path, it.timestep_key, out) for it in items]
            return [(it.source_path, it.timestep_key, self.output_base(it.source_path)) for it in items]

        return [(p, None, self.output_base(p)) for p in list_inputs(self.input_dir, self.mode.suffix)]

    # ──────────────────────────────────────────────────────────────
    # Conversion
    # ──────────────────────────────────────────────────────────────

    def open_source(self, path: str) -> SampleSource:
        return open_source(path, self.mode.schema.field_names, self.mode.association)

    def new_session(self, base_path: str) -> RewriteSession:
        return RewriteSession(
            base_path,
            self.mode.schema,
            self.options,
            source_metadata=self.mode.source_metadata,
        )

    def convert_file(self, path: str, timestep: Optional[int] = None, base_path: Optional[str] = None) -> List[ChunkInfo]:
        """
        Rewrite one input into its own output.

        Raises:
            DatasetOpenError: when the input cannot be read (before anything is written).
        """
        logger.info("Rewriting %s to parquet... ", path)
        base_path = base_path or self.output_base(path)

        with self.open_source(path) as source:
            session = self.new_session(base_path)
            try:
                session.write_source(source, timestep=timestep)
                session.end_input()
            finally:
                chunks = session.close()

        for c in chunks:
            logger.debug("Wrote %s: %d rows, row groups %s", c.path, c.rows, c.row_groups)
        return chunks

    def convert_merged(self, plan: Optional[List[Tuple[str, Optional[int], str]]] = None) -> List[ChunkInfo]:
        """Merge all inputs into one output, in timestep order."""
        plan = self.plan() if plan is None else plan
        if not plan:
            logger.warning("No %s inputs found in %s; nothing to merge.", self.mode.suffix, self.input_dir)
            return []

        items = [WorkItem(t, p) for p, t, _ in plan]
        session = self.new_session(plan[0][2])
        return aggregate(items, session, self.open_source, on_error=self.options.on_error)

    def run(self) -> List[ChunkInfo]:
        """
        Convert the whole input directory.

        Raises:
            DirectoryOpenError: input or output directory cannot be opened.
            DatasetOpenError: an input is unreadable and the error policy is "abort".
        """
        self.check_output_dir()
        plan = self.plan()
        t0 = time.time()

        if self.dry_run:
            for path, timestep, out in plan:
                logger.info("[dry-run] Would write '%s' from '%s' (timestep %s)", out, path, timestep)
            logger.info("[dry-run] %d input(s), mode %s", len(plan), self.mode.name)
            return []

        if self.mode.merge:
            chunks = self.convert_merged(plan)
        else:
            chunks = []
            for path, timestep, out in plan:
                try:
                    chunks.extend(self.convert_file(path, timestep, out))
                except DatasetOpenError as e:
                    if self.options.on_error != ON_ERROR_SKIP:
                        raise
                    logger.error("Skipping %s: %s", path, e)

        logger.info(
            "DONE: %d chunk(s), %d rows in %.2fs",
            len(chunks),
            sum(c.rows for c in chunks),
            time.time() - t0,
        )
        logger.info("Done!")
        return chunks


def list_fields_for_file(path: str, association: str = "point") -> List[str]:
    """
    Return the fields available in one input file, or [] if it cannot be read.
    """
    try:
        return list_fields(path, association)
    except DatasetOpenError as e:
        logger.error("Failed to list fields of %s: %s", path, e)
        return []
