# -*- coding: utf-8 -*-

"""

grid2parquet: Simulation grid → Parquet rewrite engine
======================================================

──────────────────────────────────────────────────────────────────────────────
Description
──────────────────────────────────────────────────────────────────────────────
grid2parquet rewrites per-point / per-cell scalar fields of simulation grid
files (VTK XML, VTKHDF) into compressed, size-bounded Parquet files.

──────────────────────────────────────────────────────────────────────────────
WHY THIS EXISTS
──────────────────────────────────────────────────────────────────────────────
- Simulations write one grid file per timestep, laid out for visualization.
- Analysis tools read columnar files far faster: quantized floats, a row id
  per element, row groups per timestep, chunks of bounded size.

"""

from .errors import (
    Grid2ParquetError,
    DirectoryOpenError,
    DatasetOpenError,
    WriterClosedError,
)

from .quantize import quantize, quantize_array
from .rowid import RowIdPolicy, make_row_assigner
from .schema import ChunkSchema, ColumnSpec
from .sources import SampleSource, open_source
from .writer import ChunkWriter
from .session import RewriteSession
from .aggregator import WorkItem, aggregate, discover, fixed_width_key

from .config import MODES, RewriteOptions, get_mode
from .converter import GridToParquetConverter, list_fields_for_file

from .parallel import (
    convert_single_file,
    run_parallel_conversion,
)

__version__ = "1.0.0"
