# -*- coding: utf-8 -*-

"""

VTK XML grids (``.vti`` image data, ``.vtu`` unstructured grids).

Only the requested arrays are enabled on the reader before ``Update()`` so a
file with dozens of fields does not get fully decoded. Arrays are exposed
through ``vtk_to_numpy`` views; the source keeps the reader output alive for
as long as those views are in use.

"""

from __future__ import annotations

import logging
from typing import Dict, List

from vtkmodules.util.numpy_support import vtk_to_numpy
from vtkmodules.vtkCommonDataModel import vtkImageData
from vtkmodules.vtkIOXML import vtkXMLImageDataReader, vtkXMLUnstructuredGridReader

from .errors import DatasetOpenError
from .sources import POINT, SampleSource

logger = logging.getLogger("grid2parquet")


class VtkXmlSource(SampleSource):
    suffixes = (".vti", ".vtu")

    def __init__(self, path, fields, association=POINT):
        super().__init__(path, fields, association)
        self._dataset = None

    def _make_reader(self):
        if self.path.lower().endswith(".vti"):
            return vtkXMLImageDataReader()
        return vtkXMLUnstructuredGridReader()

    def _load(self) -> None:
        reader = self._make_reader()

        if not reader.CanReadFile(self.path):
            raise DatasetOpenError(self.path, "not a readable VTK XML file")

        reader.SetFileName(self.path)
        reader.UpdateInformation()

        if self.association == POINT:
            selection = reader.GetPointDataArraySelection()
        else:
            selection = reader.GetCellDataArraySelection()

        available = [selection.GetArrayName(i) for i in range(selection.GetNumberOfArrays())]
        self._require_fields(available)

        selection.DisableAllArrays()
        for name in self.fields:
            selection.EnableArray(name)
        reader.Update()

        dataset = reader.GetOutput()
        if self.association == POINT:
            attributes = dataset.GetPointData()
            self._n = dataset.GetNumberOfPoints()
        else:
            attributes = dataset.GetCellData()
            self._n = dataset.GetNumberOfCells()

        for name in self.fields:
            arr = attributes.GetAbstractArray(name)
            if arr is None:
                raise DatasetOpenError(self.path, f"field '{name}' could not be loaded")
            if arr.GetNumberOfComponents() != 1:
                raise DatasetOpenError(
                    self.path, f"field '{name}' has {arr.GetNumberOfComponents()} components"
                )
            self._adopt(name, vtk_to_numpy(arr))

        self._dataset = dataset
        self._metadata.update(self._extra_metadata(dataset))

    def _extra_metadata(self, dataset) -> Dict[str, str]:
        kv: Dict[str, str] = {}

        if isinstance(dataset, vtkImageData):
            for i, v in enumerate(dataset.GetExtent()):
                kv[f"extent_{i}"] = str(v)
            for i, v in enumerate(dataset.GetOrigin()):
                kv[f"origin_{i}"] = f"{v:f}"
            for i, v in enumerate(dataset.GetSpacing()):
                kv[f"spacing_{i}"] = f"{v:f}"

        field_data = dataset.GetFieldData()
        cycle = field_data.GetAbstractArray("cycle_index") if field_data is not None else None
        if cycle is not None and cycle.GetNumberOfTuples() > 0:
            kv["cycle_index"] = str(int(vtk_to_numpy(cycle).reshape(-1)[0]))
        elif isinstance(dataset, vtkImageData):
            logger.debug("%s has no cycle_index field data", self.path)

        return kv

    def close(self) -> None:
        super().close()
        self._dataset = None

    @classmethod
    def available_fields(cls, path, association: str = POINT) -> List[str]:
        src = cls(path, [], association)
        reader = src._make_reader()
        if not reader.CanReadFile(src.path):
            raise DatasetOpenError(src.path, "not a readable VTK XML file")
        reader.SetFileName(src.path)
        reader.UpdateInformation()
        if association == POINT:
            selection = reader.GetPointDataArraySelection()
        else:
            selection = reader.GetCellDataArraySelection()
        return [selection.GetArrayName(i) for i in range(selection.GetNumberOfArrays())]


__all__ = ["VtkXmlSource"]
