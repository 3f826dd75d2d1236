# -*- coding: utf-8 -*-

"""

Output schema for the Parquet chunks.

Each column is declared once with its primitive type, where its values come
from (a named input field, the row assigner, or the work item's timestep),
and the encoding/compression hints handed to ``pyarrow``. Every column is
written as never-null.

"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np
import pyarrow as pa

SOURCE_FIELD = "field"
SOURCE_ROWID = "rowid"
SOURCE_TIMESTEP = "timestep"

_SOURCES = (SOURCE_FIELD, SOURCE_ROWID, SOURCE_TIMESTEP)

_ARROW_TYPES = {
    "int32": pa.int32(),
    "float32": pa.float32(),
}

_NUMPY_TYPES = {
    "int32": np.int32,
    "float32": np.float32,
}


@dataclass(frozen=True)
class ColumnSpec:
    """
    One output column.

    Args:
        name: column name in the Parquet file.
        dtype: ``"int32"`` or ``"float32"``.
        source: ``"field"``, ``"rowid"`` or ``"timestep"``.
        field: input field name for ``source="field"`` (defaults to ``name``).
        encoding: Parquet encoding hint (e.g. ``"DELTA_BINARY_PACKED"``), or None.
        compression: codec name (``"snappy"``, ``"zstd"``, ``"none"``...).
        decimals: quantize to this many decimals before writing, or None.
    """

    name: str
    dtype: str = "float32"
    source: str = SOURCE_FIELD
    field: Optional[str] = None
    encoding: Optional[str] = None
    compression: str = "none"
    decimals: Optional[int] = None

    def __post_init__(self):
        if self.dtype not in _ARROW_TYPES:
            raise ValueError(f"Column '{self.name}': unsupported dtype '{self.dtype}'")
        if self.source not in _SOURCES:
            raise ValueError(f"Column '{self.name}': unknown source '{self.source}'")
        if self.decimals is not None:
            if self.dtype != "float32":
                raise ValueError(f"Column '{self.name}': only float columns can be quantized")
            if self.decimals < 0:
                raise ValueError(f"Column '{self.name}': decimals must be >= 0")
        if self.source != SOURCE_FIELD and self.dtype != "int32":
            raise ValueError(f"Column '{self.name}': {self.source} columns must be int32")

    @property
    def input_field(self) -> str:
        return self.field or self.name

    @property
    def numpy_dtype(self):
        return _NUMPY_TYPES[self.dtype]

    def to_arrow(self) -> pa.Field:
        return pa.field(self.name, _ARROW_TYPES[self.dtype], nullable=False)


@dataclass(frozen=True)
class ChunkSchema:
    """Ordered, immutable list of output columns."""

    columns: Tuple[ColumnSpec, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "columns", tuple(self.columns))
        names = [c.name for c in self.columns]
        if not names:
            raise ValueError("A chunk schema needs at least one column")
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"Duplicate column names: {dupes}")

    @property
    def names(self) -> List[str]:
        return [c.name for c in self.columns]

    @property
    def field_names(self) -> List[str]:
        """Input fields that must be present in every source."""
        return [c.input_field for c in self.columns if c.source == SOURCE_FIELD]

    @property
    def has_rowid(self) -> bool:
        return any(c.source == SOURCE_ROWID for c in self.columns)

    @property
    def has_timestep(self) -> bool:
        return any(c.source == SOURCE_TIMESTEP for c in self.columns)

    def to_arrow(self, metadata: Optional[Mapping[str, Any]] = None) -> pa.Schema:
        schema = pa.schema([c.to_arrow() for c in self.columns])
        if metadata:
            schema = schema.with_metadata({str(k): str(v) for k, v in metadata.items()})
        return schema

    def writer_kwargs(self) -> Dict[str, Any]:
        """
        Keyword arguments for ``pyarrow.parquet.ParquetWriter``.

        Explicit per-column encodings require dictionary encoding to be off.
        """
        kwargs: Dict[str, Any] = {
            "compression": {c.name: c.compression for c in self.columns},
        }
        encodings = {c.name: c.encoding for c in self.columns if c.encoding}
        if encodings:
            kwargs["use_dictionary"] = False
            kwargs["column_encoding"] = encodings
        return kwargs


__all__ = [
    "SOURCE_FIELD",
    "SOURCE_ROWID",
    "SOURCE_TIMESTEP",
    "ColumnSpec",
    "ChunkSchema",
]
