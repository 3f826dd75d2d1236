# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
Configuration
──────────────────────────────────────────────────────────────────────────────
Rewrite options and the conversion modes.

Each mode reproduces one of the historical converters:

    vti2pqt      one .vti -> one .parquet (rowid, v02, v03) with grid metadata
    vti2pqtv2b   one .vti -> .parquet.0, .parquet.1, ... split at 25M rows,
                 timestep from the file name, row ids continue across chunks
    vti2pqtv2a   all .vti of a run -> one .parquet, timestep order,
                 one row group per input
    vtu2pqt      one .vtu -> one .parquet with 11 cell fields, zstd
    pqt2pqt      one .parquet -> .parquet.0, .parquet.1, ... split at 31.25M rows

The chunk limits below are the values the converters have always used. They
are not exposed on the command line.

"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Dict, Optional

from .rowid import RowIdPolicy
from .schema import SOURCE_ROWID, SOURCE_TIMESTEP, ChunkSchema, ColumnSpec
from .sources import CELL, DEFAULT_BATCH_ROWS, POINT
from .writer import DEFAULT_MAX_ROW_GROUP_ROWS

MAX_ROWS_PER_CHUNK_SPLIT = 100 * 500 * 500
MAX_ROWS_PER_CHUNK_RECHUNK = 31_250_000

DEFAULT_DECIMALS = 6
TIMESTEP_KEY_WIDTH = 5

ON_ERROR_ABORT = "abort"
ON_ERROR_SKIP = "skip"

OUTPUT_BESIDE = "output-dir"
OUTPUT_IN_PLACE = "in-place"


@dataclass
class RewriteOptions:
    """
    Knobs of one rewrite session.

    Attributes:
        max_rows_per_chunk: records per chunk file (None = unbounded, single file).
        max_row_group_rows: upper bound on rows buffered for one row group.
        batch_rows: rows read from a source per batch.
        rowid_policy: when row ids restart (see rowid.py).
        rowid_seed: first row id.
        on_error: "abort" stops the run on the first unreadable input,
            "skip" logs it and moves on.
    """

    max_rows_per_chunk: Optional[int] = None
    max_row_group_rows: int = DEFAULT_MAX_ROW_GROUP_ROWS
    batch_rows: int = DEFAULT_BATCH_ROWS
    rowid_policy: RowIdPolicy = RowIdPolicy.RUN_SCOPED
    rowid_seed: int = 0
    on_error: str = ON_ERROR_ABORT

    def __post_init__(self):
        self.rowid_policy = RowIdPolicy(self.rowid_policy)
        if self.max_rows_per_chunk is not None and self.max_rows_per_chunk <= 0:
            raise ValueError(f"max_rows_per_chunk must be positive, got {self.max_rows_per_chunk}")
        if self.max_row_group_rows <= 0:
            raise ValueError(f"max_row_group_rows must be positive, got {self.max_row_group_rows}")
        if self.batch_rows <= 0:
            raise ValueError(f"batch_rows must be positive, got {self.batch_rows}")
        if self.rowid_seed < 0:
            raise ValueError(f"rowid_seed must be >= 0, got {self.rowid_seed}")
        if self.on_error not in (ON_ERROR_ABORT, ON_ERROR_SKIP):
            raise ValueError(f"on_error must be '{ON_ERROR_ABORT}' or '{ON_ERROR_SKIP}', got {self.on_error!r}")

    def replace(self, **changes) -> "RewriteOptions":
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class ConversionMode:
    """
    Everything that distinguishes one converter from another.

    Attributes:
        name: mode / command name.
        suffix: input file suffix.
        association: "point" or "cell" data.
        schema: output columns.
        options: rewrite options.
        merge: merge all inputs of a directory into one output in timestep order.
        timestep_from_filename: read a fixed-width timestep key from each file name.
        source_metadata: copy the input's grid metadata into the output.
        output: "output-dir" (``<outdir>/<stem>.parquet``) or "in-place"
            (chunks next to the input, ``<input>.<i>``).
    """

    name: str
    suffix: str
    association: str
    schema: ChunkSchema
    options: RewriteOptions = field(default_factory=RewriteOptions)
    merge: bool = False
    timestep_from_filename: bool = False
    source_metadata: bool = False
    output: str = OUTPUT_BESIDE
    description: str = ""

    @property
    def takes_output_dir(self) -> bool:
        return self.output == OUTPUT_BESIDE


def _int_column(name: str, source: str) -> ColumnSpec:
    return ColumnSpec(name, "int32", source=source, encoding="DELTA_BINARY_PACKED", compression="snappy")


def _float_column(name: str, decimals: Optional[int] = DEFAULT_DECIMALS) -> ColumnSpec:
    return ColumnSpec(name, "float32", encoding="PLAIN", compression="none", decimals=decimals)


VTU_FIELDS = ("rho", "prs", "tev", "xdt", "ydt", "zdt", "snd", "grd", "mat", "v02", "v03")

MODES: Dict[str, ConversionMode] = {
    "vti2pqt": ConversionMode(
        name="vti2pqt",
        suffix=".vti",
        association=POINT,
        schema=ChunkSchema(
            (
                _int_column("rowid", SOURCE_ROWID),
                _float_column("v02"),
                _float_column("v03"),
            )
        ),
        options=RewriteOptions(rowid_policy=RowIdPolicy.RUN_SCOPED),
        source_metadata=True,
        description="Rewrite each .vti file into one Parquet file with grid metadata.",
    ),
    "vti2pqtv2b": ConversionMode(
        name="vti2pqtv2b",
        suffix=".vti",
        association=POINT,
        schema=ChunkSchema(
            (
                _int_column("timestep", SOURCE_TIMESTEP),
                _int_column("rowid", SOURCE_ROWID),
                _float_column("v02"),
                _float_column("v03"),
            )
        ),
        options=RewriteOptions(
            max_rows_per_chunk=MAX_ROWS_PER_CHUNK_SPLIT,
            rowid_policy=RowIdPolicy.RUN_SCOPED,
        ),
        timestep_from_filename=True,
        description="Rewrite each .vti file into Parquet chunks of at most 25M rows.",
    ),
    "vti2pqtv2a": ConversionMode(
        name="vti2pqtv2a",
        suffix=".vti",
        association=POINT,
        schema=ChunkSchema(
            (
                _int_column("timestep", SOURCE_TIMESTEP),
                _int_column("rowid", SOURCE_ROWID),
                _float_column("v02"),
                _float_column("v03"),
            )
        ),
        options=RewriteOptions(rowid_policy=RowIdPolicy.CARRY_FORWARD),
        merge=True,
        timestep_from_filename=True,
        description="Merge all .vti timesteps into one Parquet file, one row group per timestep.",
    ),
    "vtu2pqt": ConversionMode(
        name="vtu2pqt",
        suffix=".vtu",
        association=CELL,
        schema=ChunkSchema(tuple(ColumnSpec(name, "float32", compression="zstd") for name in VTU_FIELDS)),
        description="Rewrite each .vtu file's cell data into one zstd-compressed Parquet file.",
    ),
    "pqt2pqt": ConversionMode(
        name="pqt2pqt",
        suffix=".parquet",
        association=POINT,
        schema=ChunkSchema(
            (
                ColumnSpec("timestep", "int32", encoding="DELTA_BINARY_PACKED", compression="snappy"),
                ColumnSpec("rowid", "int32", encoding="DELTA_BINARY_PACKED", compression="snappy"),
                _float_column("v02", decimals=None),
                _float_column("v03", decimals=None),
            )
        ),
        options=RewriteOptions(max_rows_per_chunk=MAX_ROWS_PER_CHUNK_RECHUNK),
        output=OUTPUT_IN_PLACE,
        description="Split each Parquet file into chunks of at most 31.25M rows.",
    ),
}


def get_mode(name: str) -> ConversionMode:
    """Look up a conversion mode by name."""
    try:
        return MODES[name]
    except KeyError:
        raise KeyError(f"Unknown mode '{name}'. Known modes: {', '.join(sorted(MODES))}") from None


__all__ = [
    "MAX_ROWS_PER_CHUNK_SPLIT",
    "MAX_ROWS_PER_CHUNK_RECHUNK",
    "DEFAULT_DECIMALS",
    "TIMESTEP_KEY_WIDTH",
    "ON_ERROR_ABORT",
    "ON_ERROR_SKIP",
    "OUTPUT_BESIDE",
    "OUTPUT_IN_PLACE",
    "RewriteOptions",
    "ConversionMode",
    "MODES",
    "get_mode",
]
