# -*- coding: utf-8 -*-

"""Exceptions raised by the grid2parquet rewrite engine."""

from __future__ import annotations


class Grid2ParquetError(Exception):
    """Base exception for all grid2parquet errors."""


class DirectoryOpenError(Grid2ParquetError, OSError):
    """An input or output directory cannot be opened or listed. Fatal to the run."""


class DatasetOpenError(Grid2ParquetError, RuntimeError):
    """An input dataset cannot be parsed or lacks a required named field."""

    def __init__(self, path, message: str):
        super().__init__(path, message)
        self.path = str(path)
        self.message = message

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


class WriterClosedError(Grid2ParquetError, RuntimeError):
    """A chunk writer was used after it had been closed."""


__all__ = [
    "Grid2ParquetError",
    "DirectoryOpenError",
    "DatasetOpenError",
    "WriterClosedError",
]
