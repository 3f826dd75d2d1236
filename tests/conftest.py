"""
Shared fixtures for the grid2parquet tests.

Inputs are built on the fly: VTKHDF files with h5py, in-memory sources with
a small SampleSource subclass, so most tests do not need VTK installed.

"""

import numpy as np
import h5py as h5
import pytest

from grid2parquet.sources import SampleSource


# ──────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────

def write_vtkhdf(path, point_data=None, cell_data=None, kind="UnstructuredGrid",
                 extent=None, origin=None, spacing=None, cycle_index=None):
    """Write a minimal VTKHDF file holding the given scalar arrays."""
    with h5.File(path, "w") as f:
        root = f.create_group("VTKHDF")
        root.attrs["Version"] = (2, 2)
        root.attrs.create("Type", kind.encode("ascii"), dtype=h5.string_dtype("ascii", len(kind)))

        if extent is not None:
            root.attrs["WholeExtent"] = np.asarray(extent, dtype=np.int64)
        if origin is not None:
            root.attrs["Origin"] = np.asarray(origin, dtype=np.float64)
        if spacing is not None:
            root.attrs["Spacing"] = np.asarray(spacing, dtype=np.float64)

        pd = root.create_group("PointData")
        for name, values in (point_data or {}).items():
            pd.create_dataset(name, data=np.asarray(values, dtype=np.float32))

        cd = root.create_group("CellData")
        for name, values in (cell_data or {}).items():
            cd.create_dataset(name, data=np.asarray(values, dtype=np.float32))

        if cycle_index is not None:
            fd = root.create_group("FieldData")
            fd.create_dataset("cycle_index", data=np.asarray([cycle_index], dtype=np.int32))
    return str(path)


def array_source(data, fields=None, path="memory", metadata=None):
    """Open an in-memory SampleSource over ``{field: values}``."""

    class ArraySource(SampleSource):
        def _load(self):
            self._require_fields(list(data))
            lengths = {len(v) for v in data.values()}
            self._n = lengths.pop() if lengths else 0
            for name in self.fields:
                self._adopt(name, np.asarray(data[name], dtype=np.float32))
            self._metadata.update(metadata or {})

    return ArraySource.open(path, fields if fields is not None else list(data))


def timestep_values(n, timestep):
    """Deterministic field values for a timestep: v02 = t + i/10, v03 = -(t + i/10)."""
    v02 = np.asarray([timestep + i / 10.0 for i in range(n)], dtype=np.float32)
    return {"v02": v02, "v03": -v02}


# ──────────────────────────────────────────────────────────────
# Fixtures
# ──────────────────────────────────────────────────────────────

@pytest.fixture
def make_vtkhdf():
    return write_vtkhdf


@pytest.fixture
def make_source():
    return array_source


@pytest.fixture
def run_dir(tmp_path):
    """Three timesteps (3, 5 and 4 points) written out of order as VTKHDF files."""
    indir = tmp_path / "run"
    indir.mkdir()
    for t, n in ((2, 4), (0, 3), (1, 5)):
        write_vtkhdf(indir / f"sim_{t:05d}.vtkhdf", point_data=timestep_values(n, t))
    return indir
