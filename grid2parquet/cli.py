#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
CLI QUICK START
──────────────────────────────────────────────────────────────────────────────
One command per historical converter, no flags:

    vti2pqt     inputdir [outputdir]     # .vti -> .parquet with grid metadata
    vti2pqtv2b  inputdir [outputdir]     # .vti -> .parquet.N chunks (25M rows)
    vti2pqtv2a  inputdir [outputdir]     # all .vti -> one .parquet, timestep order
    vtu2pqt     inputdir [outputdir]     # .vtu cell data -> .parquet (zstd)
    pqt2pqt     inputdir                 # .parquet -> .parquet.N chunks (31.25M rows)

outputdir defaults to the current directory.

The umbrella command takes the mode first and adds a few switches:

    grid2parquet vti2pqtv2a ./run ./out --verbose --skip-failed
    grid2parquet vtu2pqt ./run ./out --nproc 8
    grid2parquet vti2pqt ./run --dry-run
    grid2parquet vti2pqt ./run --list-fields

Exit status: 0 on success, 1 when a directory cannot be opened or an input
cannot be read (unless --skip-failed).

"""


import argparse
import logging
import sys
from typing import List, Optional

from .aggregator import list_inputs
from .config import MODES, ON_ERROR_ABORT, ON_ERROR_SKIP, get_mode
from .converter import GridToParquetConverter, list_fields_for_file, setup_logging
from .errors import DatasetOpenError, DirectoryOpenError
from .parallel import run_parallel_conversion

logger = logging.getLogger("grid2parquet")


def _add_dir_args(parser: argparse.ArgumentParser, takes_output_dir: bool) -> None:
    parser.add_argument("inputdir", help="Directory holding the input files")
    if takes_output_dir:
        parser.add_argument("outputdir", nargs="?", default=".", help="Directory for the output files (default: .)")


def _execute(run) -> int:
    try:
        run()
    except DirectoryOpenError as e:
        logger.error("%s", e)
        return 1
    except DatasetOpenError as e:
        logger.error("Aborting: %s", e)
        return 1
    return 0


def run_program(name: str, argv: Optional[List[str]] = None) -> int:
    """
    Flag-free entry point for one conversion mode.
    """
    mode = get_mode(name)
    parser = argparse.ArgumentParser(prog=name, description=mode.description)
    _add_dir_args(parser, mode.takes_output_dir)
    args = parser.parse_args(argv)

    setup_logging(False)

    output_dir = getattr(args, "outputdir", None)
    conv = GridToParquetConverter(mode, args.inputdir, output_dir)
    return _execute(conv.run)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Parse CLI args and run the conversion pipeline.
    """

    parser = argparse.ArgumentParser(description="Rewrite simulation grid files into Parquet")

    parser.add_argument("mode", choices=sorted(MODES), help="Conversion mode")
    _add_dir_args(parser, True)

    parser.add_argument("--skip-failed", action="store_true", help="Log unreadable inputs and continue instead of aborting.")
    parser.add_argument("--nproc", type=int, default=None, help="Worker processes for per-file modes (default: 1).")
    parser.add_argument("--list-fields", action="store_true", help="List the fields of the first input and exit.")

    # Utility flags
    parser.add_argument("--dry-run", action="store_true", help="Print plan without writing files.")
    parser.add_argument("--verbose", action="store_true", help="Verbose logging.")

    args = parser.parse_args(argv)

    # Configure logging early
    setup_logging(args.verbose)

    mode = get_mode(args.mode)
    on_error = ON_ERROR_SKIP if args.skip_failed else ON_ERROR_ABORT

    if args.list_fields:
        try:
            inputs = list_inputs(args.inputdir, mode.suffix)
        except DirectoryOpenError as e:
            logger.error("%s", e)
            return 1

        if not inputs:
            print(f"No {mode.suffix} files found in {args.inputdir}.")
            return 0

        logger.info("Listing fields of %s...", inputs[0])
        fields = list_fields_for_file(inputs[0], mode.association)
        if fields:
            print("Available fields:")
            for f in fields:
                print(" -", f)
        else:
            print("No fields discovered (see logs for details).")
        return 0

    if args.dry_run:
        conv = GridToParquetConverter(mode, args.inputdir, args.outputdir, on_error=on_error, dry_run=True)
        return _execute(conv.run)

    return _execute(
        lambda: run_parallel_conversion(
            mode,
            args.inputdir,
            args.outputdir,
            on_error=on_error,
            nproc=args.nproc,
            verbose=args.verbose,
        )
    )


def vti2pqt() -> int:
    return run_program("vti2pqt")


def vti2pqtv2a() -> int:
    return run_program("vti2pqtv2a")


def vti2pqtv2b() -> int:
    return run_program("vti2pqtv2b")


def vtu2pqt() -> int:
    return run_program("vtu2pqt")


def pqt2pqt() -> int:
    return run_program("pqt2pqt")


if __name__ == "__main__":
    sys.exit(main())
