# -*- coding: utf-8 -*-

"""

Rewrite session: the state of one logical output.

A session owns everything that must stay consistent while records flow into
one logical output (one or more chunk files): the row assigner, the chunk
currently open, the chunk index and the list of finished chunks. It is passed
explicitly through the conversion loop; nothing here is global.

Chunk rotation is lazy. When the open chunk is full the next chunk is opened
only once another record needs room, so an input that exactly fills a chunk
does not leave a trailing empty file behind. The first chunk is opened by the
first input (or by ``close()`` if there was none), so every session produces
at least one file.

"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import numpy as np

from .config import RewriteOptions
from .quantize import quantize_array
from .rowid import RowAssigner, make_row_assigner
from .schema import SOURCE_FIELD, SOURCE_ROWID, SOURCE_TIMESTEP, ChunkSchema
from .sources import SampleSource
from .writer import ChunkWriter

logger = logging.getLogger("grid2parquet")


@dataclass
class ChunkInfo:
    path: str
    rows: int
    row_groups: List[int] = field(default_factory=list)


def chunk_path(base_path: str, index: int, indexed: bool) -> str:
    """``<base>.<index>`` for split outputs, ``<base>`` otherwise."""
    return f"{base_path}.{index}" if indexed else base_path


class RewriteSession:
    """
    Stream sample sources into size-bounded Parquet chunks.

    Args:
        base_path: output path, or path prefix when chunks are indexed.
        schema: output columns.
        options: chunk limits, batch size and row id policy.
        metadata: file-level key/value metadata written to every chunk.
        source_metadata: if True and ``metadata`` is None, use the metadata of
            the first source written.
        indexed: name chunks ``<base>.<i>``. Defaults to True when the chunk
            size is bounded.
    """

    def __init__(
        self,
        base_path,
        schema: ChunkSchema,
        options: Optional[RewriteOptions] = None,
        metadata: Optional[Mapping[str, Any]] = None,
        source_metadata: bool = False,
        indexed: Optional[bool] = None,
    ):
        if not schema.field_names:
            raise ValueError("Schema has no input field columns")

        self.base_path = str(base_path)
        self.schema = schema
        self.options = options or RewriteOptions()
        self.metadata: Optional[Dict[str, str]] = (
            {str(k): str(v) for k, v in metadata.items()} if metadata else None
        )
        self.source_metadata = source_metadata
        self.indexed = self.options.max_rows_per_chunk is not None if indexed is None else indexed

        if self.options.max_rows_per_chunk is not None and not self.indexed:
            logger.debug("Bounded chunks without indexed names: %s can hold only one chunk", self.base_path)

        self.assigner: RowAssigner = make_row_assigner(self.options.rowid_policy, self.options.rowid_seed)
        self.chunks: List[ChunkInfo] = []
        self.chunk_index = 0
        self.rows_total = 0
        self.inputs_done = 0

        self._writer: Optional[ChunkWriter] = None
        self._closed = False

    # ──────────────────────────────────────────────────────────────
    # Chunks
    # ──────────────────────────────────────────────────────────────

    @property
    def writer(self) -> Optional[ChunkWriter]:
        return self._writer

    def _open_chunk(self) -> None:
        if self.chunks and not self.indexed:
            raise ValueError(
                f"{self.base_path} is full ({self.options.max_rows_per_chunk} rows) "
                "and chunk names are not indexed"
            )
        path = chunk_path(self.base_path, self.chunk_index, self.indexed)
        self._writer = ChunkWriter(
            path,
            self.schema,
            max_rows=self.options.max_rows_per_chunk,
            max_row_group_rows=self.options.max_row_group_rows,
        )
        self._writer.open(self.metadata)
        self.assigner.chunk_opened()

    def _close_chunk(self) -> None:
        w = self._writer
        if w is None:
            return
        w.close()
        self.chunks.append(ChunkInfo(w.path, w.rows_written, list(w.row_group_sizes)))
        logger.debug("Chunk %s done: %d rows", w.path, w.rows_written)
        self._writer = None
        self.chunk_index += 1

    def _rotate(self) -> None:
        self._close_chunk()
        self._open_chunk()

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError(f"Session for {self.base_path} is closed")

    # ──────────────────────────────────────────────────────────────
    # Inputs
    # ──────────────────────────────────────────────────────────────

    def write_source(self, source: SampleSource, timestep: Optional[int] = None) -> int:
        """
        Stream every record of ``source`` into the output.

        Returns:
            Number of records written.
        """
        self._check_open()
        if self.schema.has_timestep and timestep is None:
            raise ValueError(f"Schema has a timestep column but no timestep was given for {source.path}")

        self.assigner.input_started()

        if self._writer is None:
            if self.metadata is None and self.source_metadata:
                self.metadata = source.metadata() or None
            self._open_chunk()

        written = 0
        for batch in source.iter_batches(self.options.batch_rows):
            n = len(next(iter(batch.values())))
            offset = 0
            while offset < n:
                if self._writer.should_rotate():
                    self._rotate()
                room = self._writer.remaining()
                stop = n if room is None else min(n, offset + room)
                self._writer.append_columns(self._build_columns(batch, offset, stop, timestep))
                offset = stop
            written += n

        self.rows_total += written
        return written

    def _build_columns(self, batch: Mapping[str, np.ndarray], start: int, stop: int, timestep):
        n = stop - start
        out: Dict[str, np.ndarray] = {}
        for col in self.schema.columns:
            if col.source == SOURCE_FIELD:
                values = batch[col.input_field][start:stop]
                if col.decimals is not None:
                    values = quantize_array(values, col.decimals)
                out[col.name] = values
            elif col.source == SOURCE_ROWID:
                out[col.name] = self.assigner.assign(n)
            elif col.source == SOURCE_TIMESTEP:
                out[col.name] = np.full(n, timestep, dtype=np.int32)
        return out

    def end_input(self) -> None:
        """One input's contribution is complete: end the row group (lazily)."""
        self._check_open()
        if self._writer is not None:
            self._writer.flush_row_group()
        self.assigner.input_finished()
        self.inputs_done += 1

    def abort_input(self) -> None:
        """An input failed before any of its records were written."""
        self._check_open()
        self.assigner.input_failed()

    def close(self) -> List[ChunkInfo]:
        """Close the open chunk (creating an empty one if nothing was written)."""
        if self._closed:
            return self.chunks
        try:
            if self._writer is None and not self.chunks:
                self._open_chunk()
            self._close_chunk()
        finally:
            self._closed = True
        return self.chunks

    def __enter__(self) -> "RewriteSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"RewriteSession({self.base_path!r}, chunks={len(self.chunks)}, "
            f"rows={self.rows_total}, assigner={self.assigner!r})"
        )


__all__ = ["ChunkInfo", "RewriteSession", "chunk_path"]
