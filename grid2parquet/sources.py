# -*- coding: utf-8 -*-

"""

──────────────────────────────────────────────────────────────────────────────
Sample sources
──────────────────────────────────────────────────────────────────────────────
A sample source is one open input dataset seen as ``n`` rows of named scalar
fields. It owns (or borrows from the reading library) the field arrays for as
long as it is open and only hands out bounds-checked values or read-only
views, never the underlying buffers.

Sources are single pass: ``iter_batches`` may be called once, rows come out
in element order, and the cursor never goes back.

Adapters:
 - ``.vti`` / ``.vtu``  VTK XML image / unstructured grids (``vtk``), see vtkxml.py
 - ``.vtkhdf`` / ``.hdf``  VTKHDF files read with ``h5py``
 - ``.parquet``  existing Parquet files (``pyarrow``), used for re-chunking

"""

from __future__ import annotations

import logging
import os
from typing import Dict, Iterator, List, Mapping, Optional, Sequence

import h5py as h5
import numpy as np
import pyarrow.parquet as pq

from .errors import DatasetOpenError

logger = logging.getLogger("grid2parquet")

POINT = "point"
CELL = "cell"

DEFAULT_BATCH_ROWS = 1 << 20


class SampleSource:
    """
    Base class for single-pass, read-only field sources.

    Subclasses implement ``_load`` which must set ``self._n`` and register
    every requested field through ``_adopt``. Optional file-level metadata goes
    in ``self._metadata``.
    """

    suffixes: Sequence[str] = ()

    def __init__(self, path, fields: Sequence[str], association: str = POINT):
        if association not in (POINT, CELL):
            raise ValueError(f"association must be '{POINT}' or '{CELL}', got {association!r}")
        self.path = str(path)
        self.fields: List[str] = list(fields)
        self.association = association

        self._n = 0
        self._columns: Dict[str, np.ndarray] = {}
        self._metadata: Dict[str, str] = {}
        self._position = 0
        self._consumed = False
        self._closed = False

    @classmethod
    def open(cls, path, fields: Sequence[str], association: str = POINT) -> "SampleSource":
        """
        Open ``path`` and resolve every name in ``fields``.

        Raises:
            DatasetOpenError: the file cannot be parsed or a field is missing.
        """
        src = cls(path, fields, association)
        try:
            src._load()
        except DatasetOpenError:
            raise
        except Exception as e:
            raise DatasetOpenError(path, f"cannot read dataset ({e})") from e

        logger.debug("Opened %s: %d rows, fields %s", src.path, src._n, src.fields)
        return src

    def _load(self) -> None:
        raise NotImplementedError

    @classmethod
    def available_fields(cls, path, association: str = POINT) -> List[str]:
        """Names of the scalar arrays stored for ``association`` in ``path``."""
        raise NotImplementedError

    def _require_fields(self, available: Sequence[str]) -> None:
        missing = [f for f in self.fields if f not in available]
        if missing:
            raise DatasetOpenError(
                self.path,
                f"required field(s) {missing} not found in {self.association} data "
                f"(available: {sorted(available)})",
            )

    def _adopt(self, name: str, values) -> None:
        arr = np.asarray(values)
        if arr.ndim != 1:
            raise DatasetOpenError(self.path, f"field '{name}' is not scalar (shape {arr.shape})")
        if len(arr) != self._n:
            raise DatasetOpenError(
                self.path, f"field '{name}' has {len(arr)} values, expected {self._n}"
            )
        view = arr.view()
        view.flags.writeable = False
        self._columns[name] = view

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError(f"Sample source {self.path} is closed")

    def count(self) -> int:
        """Number of rows, fixed at open time."""
        return self._n

    def __len__(self) -> int:
        return self._n

    @property
    def position(self) -> int:
        """Rows handed out by ``iter_batches`` so far."""
        return self._position

    def column(self, name: str) -> np.ndarray:
        """Read-only view of a requested field."""
        self._check_open()
        if name not in self.fields:
            raise KeyError(f"Field '{name}' was not requested from {self.path}")
        return self._columns[name]

    def value_at(self, name: str, i: int):
        """Value of field ``name`` at row ``i`` (0 <= i < count())."""
        col = self.column(name)
        if not 0 <= i < self._n:
            raise IndexError(f"Row {i} out of range for {self.path} ({self._n} rows)")
        return col[i].item()

    def metadata(self) -> Dict[str, str]:
        return dict(self._metadata)

    def iter_batches(self, batch_size: int = DEFAULT_BATCH_ROWS) -> Iterator[Dict[str, np.ndarray]]:
        """
        Yield ``{field: array}`` batches of at most ``batch_size`` rows, in order.

        Can be called only once per source.
        """
        self._check_open()
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if self._consumed:
            raise RuntimeError(f"Sample source {self.path} has already been consumed")
        self._consumed = True
        return self._batches(batch_size)

    def _batches(self, batch_size: int) -> Iterator[Dict[str, np.ndarray]]:
        for start in range(0, self._n, batch_size):
            stop = min(start + batch_size, self._n)
            batch = {f: self._columns[f][start:stop] for f in self.fields}
            self._position = stop
            yield batch

    def close(self) -> None:
        self._columns = {}
        self._closed = True

    def __enter__(self) -> "SampleSource":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.path!r}, rows={self._n}, fields={self.fields})"


class VtkHdfSource(SampleSource):
    """
    VTKHDF files (ImageData or UnstructuredGrid) read with h5py.

    Image data arrays may be stored with their (z, y, x) shape; they are
    flattened in C order, which is VTK's x-fastest point order.
    """

    suffixes = (".vtkhdf", ".hdf")

    @classmethod
    def available_fields(cls, path, association: str = POINT) -> List[str]:
        group_name = "PointData" if association == POINT else "CellData"
        with h5.File(str(path), "r") as f:
            if "VTKHDF" not in f or group_name not in f["VTKHDF"]:
                return []
            return list(f["VTKHDF"][group_name].keys())

    def _load(self) -> None:
        group_name = "PointData" if self.association == POINT else "CellData"

        with h5.File(self.path, "r") as f:
            if "VTKHDF" not in f:
                raise DatasetOpenError(self.path, "missing 'VTKHDF' root group")
            root = f["VTKHDF"]
            kind = root.attrs.get("Type", b"")
            if isinstance(kind, bytes):
                kind = kind.decode("ascii", "replace")
            is_image = kind == "ImageData"

            data = root[group_name] if group_name in root else {}
            self._require_fields(list(data.keys()))

            arrays = {}
            for name in self.fields:
                arr = np.asarray(data[name][()])
                if is_image:
                    if arr.ndim == 4 and arr.shape[-1] == 1:
                        arr = arr[..., 0]
                    if arr.ndim == 4:
                        raise DatasetOpenError(self.path, f"field '{name}' is not scalar (shape {arr.shape})")
                    arr = arr.reshape(-1)
                elif arr.ndim == 2 and arr.shape[1] == 1:
                    arr = arr[:, 0]
                arrays[name] = arr

            if is_image:
                self._metadata.update(_image_metadata(root.attrs))

            if "FieldData" in root and "cycle_index" in root["FieldData"]:
                cycle = np.asarray(root["FieldData"]["cycle_index"][()]).reshape(-1)
                if cycle.size:
                    self._metadata["cycle_index"] = str(int(cycle[0]))

        lengths = {len(a) for a in arrays.values()}
        if len(lengths) > 1:
            raise DatasetOpenError(self.path, f"fields have different lengths: {sorted(lengths)}")
        self._n = lengths.pop() if lengths else 0

        for name, arr in arrays.items():
            self._adopt(name, arr)


def _image_metadata(attrs: Mapping) -> Dict[str, str]:
    kv: Dict[str, str] = {}
    if "WholeExtent" in attrs:
        for i, v in enumerate(np.asarray(attrs["WholeExtent"]).reshape(-1)):
            kv[f"extent_{i}"] = str(int(v))
    if "Origin" in attrs:
        for i, v in enumerate(np.asarray(attrs["Origin"]).reshape(-1)):
            kv[f"origin_{i}"] = f"{float(v):f}"
    if "Spacing" in attrs:
        for i, v in enumerate(np.asarray(attrs["Spacing"]).reshape(-1)):
            kv[f"spacing_{i}"] = f"{float(v):f}"
    return kv


class ParquetSource(SampleSource):
    """
    An existing Parquet file. Batches are streamed from the file; ``column``
    and ``value_at`` read a whole column on first use.
    """

    suffixes = (".parquet",)

    def __init__(self, path, fields: Sequence[str], association: str = POINT):
        super().__init__(path, fields, association)
        self._file: Optional[pq.ParquetFile] = None

    @classmethod
    def available_fields(cls, path, association: str = POINT) -> List[str]:
        return list(pq.read_schema(str(path)).names)

    def _load(self) -> None:
        self._file = pq.ParquetFile(self.path)
        schema = self._file.schema_arrow
        self._require_fields(schema.names)
        self._n = self._file.metadata.num_rows

        for k, v in (schema.metadata or {}).items():
            if k == b"ARROW:schema":
                continue
            self._metadata[k.decode("utf-8", "replace")] = v.decode("utf-8", "replace")

    def column(self, name: str) -> np.ndarray:
        self._check_open()
        if name not in self.fields:
            raise KeyError(f"Field '{name}' was not requested from {self.path}")
        if name not in self._columns:
            values = self._file.read(columns=[name]).column(name).to_numpy()
            self._adopt(name, values)
        return self._columns[name]

    def _batches(self, batch_size: int) -> Iterator[Dict[str, np.ndarray]]:
        for rb in self._file.iter_batches(batch_size=batch_size, columns=self.fields):
            batch = {f: rb.column(f).to_numpy(zero_copy_only=False) for f in self.fields}
            self._position += rb.num_rows
            yield batch

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
        super().close()


def source_class_for(path) -> type:
    """Return the SampleSource subclass that reads ``path`` (chosen by suffix)."""
    name = os.path.basename(str(path)).lower()

    if name.endswith((".vti", ".vtu")):
        from .vtkxml import VtkXmlSource

        return VtkXmlSource

    for cls in (VtkHdfSource, ParquetSource):
        if name.endswith(tuple(cls.suffixes)):
            return cls

    raise DatasetOpenError(path, "no sample source for this file type")


def open_source(path, fields: Sequence[str], association: str = POINT) -> SampleSource:
    """Open ``path`` with the adapter matching its suffix."""
    return source_class_for(path).open(path, fields, association)


def list_fields(path, association: str = POINT) -> List[str]:
    """
    List the scalar fields available in ``path``.

    Raises:
        DatasetOpenError: the file cannot be read.
    """
    cls = source_class_for(path)
    try:
        return cls.available_fields(path, association)
    except DatasetOpenError:
        raise
    except Exception as e:
        raise DatasetOpenError(path, f"cannot read dataset ({e})") from e


__all__ = [
    "POINT",
    "CELL",
    "DEFAULT_BATCH_ROWS",
    "SampleSource",
    "VtkHdfSource",
    "ParquetSource",
    "source_class_for",
    "open_source",
    "list_fields",
]
