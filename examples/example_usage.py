#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""

─────────────────────────────────────────────────────────────
Example Usage of grid2parquet
─────────────────────────────────────────────────────────────

This script demonstrates how to use the `GridToParquetConverter`
class to inspect a run directory and plan its conversion into
Parquet.

Features demonstrated:
1. Listing the fields stored in the first input file
2. Showing the timestep order the inputs will be merged in
3. Performing a dry-run conversion for every mode (no files written)

Note: the output directory must already exist.

─────────────────────────────────────────────────────────────

"""

import os
from typing import List

from grid2parquet.aggregator import list_inputs
from grid2parquet.config import MODES
from grid2parquet.converter import GridToParquetConverter, list_fields_for_file, setup_logging
from grid2parquet.errors import Grid2ParquetError

# ──────────────────────────────────────────────────────────────
# Configuration
# ──────────────────────────────────────────────────────────────

RUN_DIR = "simulation_outputs/run"

OUTPUT_DIR = "parquet_outputs"

MODES_TO_PLAN = ["vti2pqt", "vti2pqtv2b", "vti2pqtv2a"]

DRY_RUN = True


# ──────────────────────────────────────────────────────────────
# Helper Functions
# ──────────────────────────────────────────────────────────────


def print_fields(path: str, fields: List[str]):

    print(f"\nFirst input: {os.path.basename(path)}")
    if fields:
        print(f"Detected fields: {', '.join(fields)}")
    else:
        print("Detected fields: None")


def print_plan(mode_name: str, plan):

    print(f"\n[{mode_name}] {MODES[mode_name].description}")
    for path, timestep, out in plan:
        step = "-" if timestep is None else timestep
        print(f"  {os.path.basename(path):<24} timestep {step!s:>6} -> {out}")
    if not plan:
        print("  (no inputs)")


# ──────────────────────────────────────────────────────────────
# Main Example Workflow
# ──────────────────────────────────────────────────────────────

def main():

    setup_logging(False)

    print("=== grid2parquet Example Usage ===")
    print("This example inspects a run directory and performs a dry-run conversion.\n")

    try:
        inputs = list_inputs(RUN_DIR, ".vti")
    except Grid2ParquetError as e:
        print(f"Cannot read {RUN_DIR}: {e}")
        return

    if inputs:
        print_fields(inputs[0], list_fields_for_file(inputs[0]))

    for name in MODES_TO_PLAN:
        converter = GridToParquetConverter(name, RUN_DIR, OUTPUT_DIR, dry_run=DRY_RUN)
        try:
            print_plan(name, converter.plan())
            converter.run()
        except Grid2ParquetError as e:
            print(f"Failed to plan {name}: {e}")

    print("\nExample usage finished!")
    print("Set `DRY_RUN = False` to write the Parquet files.")


# ──────────────────────────────────────────────────────────────
# Entry Point
# ──────────────────────────────────────────────────────────────

if __name__ == "__main__":
    main()
