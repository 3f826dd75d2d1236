#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

Parallel execution utilities for grid2parquet.

Only per-file modes fan out: each worker converts whole files with its own
session, so row id counters are never shared between processes. The merge
mode always runs in a single process because its output is one sequential
stream.

"""

from __future__ import annotations

from functools import partial
from typing import List, Optional

import logging
import time
import concurrent.futures

from .config import ON_ERROR_SKIP, ConversionMode, RewriteOptions
from .converter import GridToParquetConverter, setup_logging
from .errors import DatasetOpenError
from .session import ChunkInfo

logger = logging.getLogger("grid2parquet")


def convert_single_file(
    path: str,
    timestep: Optional[int],
    base_path: str,
    mode: ConversionMode,
    options: RewriteOptions,
    verbose: bool,
) -> List[ChunkInfo]:
    """
    Worker function executed in each process. It configures logging and converts
    one input file.

    Args:
        path: input file.
        timestep: timestep key of the input (None when the mode has none).
        base_path: output path or chunk prefix.
        mode: conversion mode.
        options: rewrite options (error policy included).
        verbose: Flag for verbose logging.

    Returns:
        The chunks written; [] when the file was skipped.
    """
    setup_logging(verbose)

    conv = GridToParquetConverter(mode, input_dir=".", options=options)
    try:
        return conv.convert_file(path, timestep, base_path)
    except DatasetOpenError as e:
        if options.on_error != ON_ERROR_SKIP:
            raise
        logger.error("[worker] Skipping %s: %s", path, e)
        return []


def run_parallel_conversion(
    mode,
    input_dir: str,
    output_dir: Optional[str] = ".",
    options: Optional[RewriteOptions] = None,
    on_error: Optional[str] = None,
    nproc: Optional[int] = None,
    verbose: bool = False,
) -> List[ChunkInfo]:
    """
    High-level parallel runner that dispatches the conversion of every input.

    Parameters:
    - mode: conversion mode (name or ConversionMode).
    - input_dir: directory holding the inputs.
    - output_dir: directory for the outputs (ignored by in-place modes).
    - options: rewrite options; defaults to the mode's.
    - on_error: "abort" or "skip", overrides options.on_error.
    - nproc: Number of worker processes.
             If None or below 2, runs serially in this process.
    - verbose: Enable detailed logging.

    Behavior:
    - Merge modes, and runs with a single worker, use the serial converter.
    - On a pool failure other than an unreadable input, falls back to serial
      processing file by file.

    Returns:
    - The chunks written, in input order.
    """
    conv = GridToParquetConverter(mode, input_dir, output_dir, options=options, on_error=on_error)

    if conv.mode.merge or nproc is None or nproc <= 1:
        return conv.run()

    conv.check_output_dir()
    plan = conv.plan()
    nworkers = max(1, min(nproc, len(plan)))

    logger.info("Starting on %d worker(s) for %d input(s)", nworkers, len(plan))
    t0 = time.time()

    worker = partial(convert_single_file, mode=conv.mode, options=conv.options, verbose=verbose)
    paths = [p for p, _, _ in plan]
    timesteps = [t for _, t, _ in plan]
    outputs = [o for _, _, o in plan]

    chunks: List[ChunkInfo] = []
    try:
        with concurrent.futures.ProcessPoolExecutor(max_workers=nworkers) as ex:
            for result in ex.map(worker, paths, timesteps, outputs):
                chunks.extend(result)
    except DatasetOpenError:
        raise
    except Exception as e:
        logger.error("Parallel execution failed: %s", e)
        logger.info("Falling back to serial execution...")

        chunks = []
        for path, timestep, out in plan:
            chunks.extend(worker(path, timestep, out))

    logger.info("Total elapsed: %.2fs", time.time() - t0)
    return chunks
