# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
Chunk writer
──────────────────────────────────────────────────────────────────────────────
One ``ChunkWriter`` produces one Parquet file (a "chunk"):

    IDLE --open()--> OPEN --append()--> WRITING --close()--> CLOSED
                                  ^          |
                                  +-- flush_row_group() (lazy)

 - The schema and the file-level key/value metadata are fixed at ``open()``.
 - ``should_rotate()`` only reports that the chunk is full; opening the next
   chunk is the caller's job (see session.py).
 - ``flush_row_group()`` does not write anything. It marks the rows buffered so
   far as a complete row group, and that group is written just before the next
   append or at ``close()``. Flushing with nothing buffered is a no-op, so a
   flush followed directly by ``close()`` never leaves an empty row group.
 - Buffered rows are written early, as their own row group, once they reach
   ``max_row_group_rows``.
 - Closing twice is fine. A chunk closed without any append is a valid, empty
   Parquet file.

"""

from __future__ import annotations

import enum
import logging
import os
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np
import pyarrow as pa
import pyarrow.parquet as pq

from .errors import WriterClosedError
from .schema import ChunkSchema

logger = logging.getLogger("grid2parquet")

# Same as pyarrow's default maximum row group length.
DEFAULT_MAX_ROW_GROUP_ROWS = 1024 * 1024


class WriterState(enum.Enum):
    IDLE = "idle"
    OPEN = "open"
    WRITING = "writing"
    CLOSED = "closed"


class ChunkWriter:
    """
    Write records to a single Parquet file with caller-controlled row groups.

    Args:
        path: output file path.
        schema: output columns (names, types, encoding and compression hints).
        max_rows: maximum number of records in this chunk, or None for no limit.
        max_row_group_rows: buffered rows are written as a row group once they reach this.
    """

    def __init__(
        self,
        path,
        schema: ChunkSchema,
        max_rows: Optional[int] = None,
        max_row_group_rows: int = DEFAULT_MAX_ROW_GROUP_ROWS,
    ):
        if max_rows is not None and max_rows <= 0:
            raise ValueError(f"max_rows must be positive, got {max_rows}")
        if max_row_group_rows <= 0:
            raise ValueError(f"max_row_group_rows must be positive, got {max_row_group_rows}")

        self.path = str(path)
        self.schema = schema
        self.max_rows = max_rows
        self.max_row_group_rows = max_row_group_rows

        self.state = WriterState.IDLE
        self.rows_written = 0
        self.row_group_sizes: List[int] = []

        self._writer: Optional[pq.ParquetWriter] = None
        self._arrow_schema: Optional[pa.Schema] = None
        self._buffer: List[List[np.ndarray]] = []
        self._buffered = 0
        self._pending_flush = False

    # ──────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────

    def open(self, metadata: Optional[Mapping[str, Any]] = None) -> "ChunkWriter":
        """Create the output file. ``metadata`` is stored as file-level key/value pairs."""
        if self.state is WriterState.CLOSED:
            raise WriterClosedError(f"Chunk {self.path} is already closed")
        if self.state is not WriterState.IDLE:
            raise RuntimeError(f"Chunk {self.path} is already open")

        self._arrow_schema = self.schema.to_arrow(metadata)
        self._writer = pq.ParquetWriter(self.path, self._arrow_schema, **self.schema.writer_kwargs())
        self.state = WriterState.OPEN
        logger.debug("Opened chunk %s", self.path)
        return self

    def close(self) -> None:
        """Write any buffered rows and close the file. Safe to call more than once."""
        if self.state is WriterState.CLOSED:
            return

        try:
            if self._writer is not None and self._buffered:
                self._write_buffer()
        finally:
            if self._writer is not None:
                self._writer.close()
                self._writer = None
            self.state = WriterState.CLOSED
            self._buffer = []
            self._buffered = 0
            self._pending_flush = False

        logger.debug(
            "Closed chunk %s: %d rows in %d row group(s)",
            self.path,
            self.rows_written,
            len(self.row_group_sizes),
        )

    def __enter__(self) -> "ChunkWriter":
        if self.state is WriterState.IDLE:
            self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ──────────────────────────────────────────────────────────────
    # Writing
    # ──────────────────────────────────────────────────────────────

    def _check_writable(self) -> None:
        if self.state is WriterState.CLOSED:
            raise WriterClosedError(f"Cannot write to closed chunk {self.path}")
        if self.state is WriterState.IDLE:
            raise RuntimeError(f"Chunk {self.path} has not been opened")

    def remaining(self) -> Optional[int]:
        """Records that still fit in this chunk (None when unbounded)."""
        if self.max_rows is None:
            return None
        return self.max_rows - self.rows_written

    def should_rotate(self) -> bool:
        """True once the chunk holds ``max_rows`` records."""
        return self.max_rows is not None and self.rows_written >= self.max_rows

    def append(self, record) -> None:
        """
        Append one record, given as a sequence in schema order or a mapping by column name.
        """
        names = self.schema.names
        if isinstance(record, Mapping):
            values = [record[name] for name in names]
        else:
            values = list(record)
            if len(values) != len(names):
                raise ValueError(f"Record has {len(values)} values, schema has {len(names)} columns")

        self.append_columns({name: [v] for name, v in zip(names, values)})

    def append_columns(self, columns: Mapping[str, Sequence]) -> None:
        """
        Append a batch of records given column-wise: ``{column name: values}``.

        All columns of the schema must be present and have the same length.
        """
        self._check_writable()

        arrays = [self._coerce(spec, columns[spec.name]) for spec in self.schema.columns]
        lengths = {len(a) for a in arrays}
        if len(lengths) != 1:
            raise ValueError(f"Columns have different lengths: {sorted(lengths)}")
        n = lengths.pop()

        if n == 0:
            return

        if self.max_rows is not None and self.rows_written + n > self.max_rows:
            raise ValueError(
                f"Appending {n} rows to {self.path} would exceed {self.max_rows} rows "
                f"({self.rows_written} already written)"
            )

        if self._pending_flush:
            self._write_buffer()
            self._pending_flush = False

        self._buffer.append(arrays)
        self._buffered += n
        self.rows_written += n
        self.state = WriterState.WRITING

        while self._buffered >= self.max_row_group_rows:
            self._write_buffer(limit=self.max_row_group_rows)

    def flush_row_group(self) -> None:
        """
        End the current row group. The group is written lazily, before the next
        append or at close; with nothing buffered this does nothing.
        """
        self._check_writable()
        if self._buffered:
            self._pending_flush = True

    @staticmethod
    def _coerce(spec, values) -> np.ndarray:
        src = np.asarray(values)
        if spec.dtype == "int32" and src.size:
            if src.dtype.kind not in "iub":
                raise ValueError(f"Column '{spec.name}': expected integers, got {src.dtype}")
            info = np.iinfo(np.int32)
            if src.min() < info.min or src.max() > info.max:
                raise ValueError(f"Column '{spec.name}': value out of int32 range")
        with np.errstate(over="ignore", invalid="ignore"):
            out = src.astype(spec.numpy_dtype, copy=False)
        if spec.dtype == "float32" and src.dtype.kind == "f" and src.dtype != np.float32:
            overflow = np.isinf(out) & np.isfinite(src)
            if overflow.any():
                raise ValueError(f"Column '{spec.name}': value out of float32 range")
        return out.reshape(-1)

    def _write_buffer(self, limit: Optional[int] = None) -> None:
        """Write the first ``limit`` buffered rows (default: all) as one row group."""
        if not self._buffered:
            return

        merged = [np.concatenate(parts) for parts in zip(*self._buffer)]
        n = self._buffered if limit is None else min(limit, self._buffered)

        table = pa.Table.from_arrays([pa.array(col[:n]) for col in merged], schema=self._arrow_schema)
        self._writer.write_table(table, row_group_size=n)
        self.row_group_sizes.append(n)

        rest = [col[n:] for col in merged]
        self._buffered -= n
        self._buffer = [rest] if self._buffered else []

    def stats(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "rows": self.rows_written,
            "row_groups": list(self.row_group_sizes),
            "bytes": os.path.getsize(self.path) if os.path.exists(self.path) else 0,
        }

    def __repr__(self) -> str:
        return f"ChunkWriter({self.path!r}, state={self.state.value}, rows={self.rows_written})"


__all__ = ["DEFAULT_MAX_ROW_GROUP_ROWS", "WriterState", "ChunkWriter"]
