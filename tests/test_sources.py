"""
Unit tests for the sample source adapters.

These tests verify that:
1. VTKHDF point / cell data and image metadata are read with h5py
2. Sources only hand out read-only, bounds-checked values
3. Missing fields and unreadable files raise DatasetOpenError
4. Batches are single pass and in element order
5. Parquet files and (when VTK is installed) VTK XML files can be read

"""

import numpy as np
import pyarrow as pa
import pyarrow.parquet as pq
import pytest

from grid2parquet.errors import DatasetOpenError
from grid2parquet.sources import (
    CELL,
    ParquetSource,
    VtkHdfSource,
    list_fields,
    open_source,
    source_class_for,
)


# ──────────────────────────────────────────────────────────────
# VTKHDF
# ──────────────────────────────────────────────────────────────

def test_vtkhdf_unstructured_point_data(tmp_path, make_vtkhdf):
    path = make_vtkhdf(tmp_path / "g.vtkhdf", point_data={"v02": [1.0, 2.0, 3.0], "v03": [4.0, 5.0, 6.0]})

    with open_source(path, ["v03"]) as src:
        assert isinstance(src, VtkHdfSource)
        assert src.count() == 3
        assert src.fields == ["v03"]
        assert src.value_at("v03", 2) == 6.0
        assert src.metadata() == {}


def test_vtkhdf_cell_data(tmp_path, make_vtkhdf):
    path = make_vtkhdf(tmp_path / "c.vtkhdf", point_data={"p": [0.0]}, cell_data={"rho": [1.5, 2.5]})
    with open_source(path, ["rho"], association=CELL) as src:
        assert src.count() == 2
        assert src.column("rho").tolist() == [1.5, 2.5]


def test_vtkhdf_image_data_metadata(tmp_path, make_vtkhdf):
    values = np.arange(8, dtype=np.float32).reshape(2, 2, 2)
    path = make_vtkhdf(
        tmp_path / "img.vtkhdf",
        point_data={"v02": values},
        kind="ImageData",
        extent=(0, 1, 0, 1, 0, 1),
        origin=(0.0, 0.5, 1.0),
        spacing=(0.25, 0.25, 0.25),
        cycle_index=17,
    )

    with open_source(path, ["v02"]) as src:
        assert src.count() == 8
        assert src.column("v02").tolist() == list(range(8))
        md = src.metadata()

    assert md["extent_1"] == "1"
    assert md["origin_1"] == "0.500000"
    assert md["spacing_2"] == "0.250000"
    assert md["cycle_index"] == "17"


def test_column_is_read_only(tmp_path, make_vtkhdf):
    path = make_vtkhdf(tmp_path / "ro.vtkhdf", point_data={"v02": [1.0, 2.0]})
    with open_source(path, ["v02"]) as src:
        col = src.column("v02")
        with pytest.raises(ValueError):
            col[0] = 5.0


def test_value_at_bounds_and_unknown_field(make_source):
    src = make_source({"v02": [1.0, 2.0]})
    with pytest.raises(IndexError):
        src.value_at("v02", 2)
    with pytest.raises(IndexError):
        src.value_at("v02", -1)
    with pytest.raises(KeyError):
        src.column("v03")


def test_missing_field(tmp_path, make_vtkhdf):
    path = make_vtkhdf(tmp_path / "m.vtkhdf", point_data={"v02": [1.0]})
    with pytest.raises(DatasetOpenError) as err:
        open_source(path, ["v02", "v03"])
    assert err.value.path == path
    assert "v03" in str(err.value)


def test_garbage_file(tmp_path):
    path = tmp_path / "junk.vtkhdf"
    path.write_bytes(b"definitely not hdf5")
    with pytest.raises(DatasetOpenError):
        open_source(path, ["v02"])


def test_unknown_suffix(tmp_path):
    with pytest.raises(DatasetOpenError):
        source_class_for(tmp_path / "grid.xyz")


def test_list_fields(tmp_path, make_vtkhdf):
    path = make_vtkhdf(tmp_path / "f.vtkhdf", point_data={"v02": [1.0], "v03": [2.0]}, cell_data={"rho": []})
    assert sorted(list_fields(path)) == ["v02", "v03"]
    assert list_fields(path, CELL) == ["rho"]


# ──────────────────────────────────────────────────────────────
# Batches
# ──────────────────────────────────────────────────────────────

def test_batches_single_pass(make_source):
    src = make_source({"v02": [0.0, 1.0, 2.0, 3.0, 4.0]})
    batches = list(src.iter_batches(2))

    assert [len(b["v02"]) for b in batches] == [2, 2, 1]
    assert np.concatenate([b["v02"] for b in batches]).tolist() == [0.0, 1.0, 2.0, 3.0, 4.0]
    assert src.position == 5

    with pytest.raises(RuntimeError):
        src.iter_batches(2)


def test_closed_source(make_source):
    src = make_source({"v02": [1.0]})
    src.close()
    with pytest.raises(RuntimeError):
        src.column("v02")
    with pytest.raises(RuntimeError):
        src.iter_batches()


# ──────────────────────────────────────────────────────────────
# Parquet
# ──────────────────────────────────────────────────────────────

def test_parquet_source(tmp_path):
    path = str(tmp_path / "in.parquet")
    table = pa.table(
        {"rowid": pa.array([0, 1, 2], pa.int32()), "v02": pa.array([0.5, 1.5, 2.5], pa.float32())}
    )
    pq.write_table(table.replace_schema_metadata({"cycle_index": "3"}), path)

    with open_source(path, ["rowid", "v02"]) as src:
        assert isinstance(src, ParquetSource)
        assert src.count() == 3
        assert src.metadata() == {"cycle_index": "3"}
        assert src.value_at("v02", 1) == 1.5
        batches = list(src.iter_batches(2))

    assert [b["rowid"].tolist() for b in batches] == [[0, 1], [2]]
    assert list_fields(path) == ["rowid", "v02"]


# ──────────────────────────────────────────────────────────────
# VTK XML
# ──────────────────────────────────────────────────────────────

def _vtk_array(name, values):
    from vtkmodules.util.numpy_support import numpy_to_vtk

    arr = numpy_to_vtk(np.asarray(values, dtype=np.float32), deep=True)
    arr.SetName(name)
    return arr


def test_vti_point_data_and_metadata(tmp_path):
    pytest.importorskip("vtkmodules")
    from vtkmodules.vtkCommonDataModel import vtkImageData
    from vtkmodules.vtkIOXML import vtkXMLImageDataWriter

    img = vtkImageData()
    img.SetExtent(0, 1, 0, 1, 0, 0)
    img.SetOrigin(1.0, 2.0, 0.0)
    img.SetSpacing(0.5, 0.5, 1.0)
    img.GetPointData().AddArray(_vtk_array("v02", [0.1, 0.2, 0.3, 0.4]))
    img.GetPointData().AddArray(_vtk_array("v03", [1.0, 2.0, 3.0, 4.0]))
    cycle = _vtk_array("cycle_index", [9])
    img.GetFieldData().AddArray(cycle)

    path = str(tmp_path / "run_00009.vti")
    writer = vtkXMLImageDataWriter()
    writer.SetFileName(path)
    writer.SetInputData(img)
    writer.Write()

    assert sorted(list_fields(path)) == ["v02", "v03"]
    with open_source(path, ["v03"]) as src:
        assert src.count() == 4
        assert src.column("v03").tolist() == [1.0, 2.0, 3.0, 4.0]
        md = src.metadata()

    assert md["extent_1"] == "1"
    assert md["origin_0"] == "1.000000"
    assert md["spacing_1"] == "0.500000"
    assert md["cycle_index"] == "9"


def test_vtu_cell_data(tmp_path):
    pytest.importorskip("vtkmodules")
    from vtkmodules.vtkCommonCore import vtkPoints
    from vtkmodules.vtkCommonDataModel import VTK_VERTEX, vtkUnstructuredGrid
    from vtkmodules.vtkIOXML import vtkXMLUnstructuredGridWriter

    grid = vtkUnstructuredGrid()
    points = vtkPoints()
    for i in range(3):
        points.InsertNextPoint(float(i), 0.0, 0.0)
    grid.SetPoints(points)
    for i in range(3):
        grid.InsertNextCell(VTK_VERTEX, 1, [i])
    grid.GetCellData().AddArray(_vtk_array("rho", [7.0, 8.0, 9.0]))

    path = str(tmp_path / "cells.vtu")
    writer = vtkXMLUnstructuredGridWriter()
    writer.SetFileName(path)
    writer.SetInputData(grid)
    writer.Write()

    with open_source(path, ["rho"], association=CELL) as src:
        assert src.count() == 3
        assert src.column("rho").tolist() == [7.0, 8.0, 9.0]
        assert "extent_0" not in src.metadata()

    with pytest.raises(DatasetOpenError):
        open_source(path, ["prs"], association=CELL)


def test_vti_not_readable(tmp_path):
    pytest.importorskip("vtkmodules")
    path = tmp_path / "broken.vti"
    path.write_text("<not vtk>")
    with pytest.raises(DatasetOpenError):
        open_source(path, ["v02"])
