# -*- coding: utf-8 -*-

"""

Row id assignment policies.

A row assigner hands out contiguous blocks of int32 row ids. Which events
restart the sequence is fixed when the assigner is built:

    RUN_SCOPED       never restarts
    CARRY_FORWARD    each input starts where the last *completed* input ended
    PER_CHUNK_RESET  restarts whenever a new output chunk is opened
    PER_INPUT_RESET  restarts after every input (row-group flush)

"""

from __future__ import annotations

import enum
from typing import Dict, Type

import numpy as np

INT32_MAX = int(np.iinfo(np.int32).max)


class RowIdPolicy(str, enum.Enum):
    RUN_SCOPED = "run"
    CARRY_FORWARD = "carry-forward"
    PER_CHUNK_RESET = "per-chunk"
    PER_INPUT_RESET = "per-input"


class RowAssigner:
    """
    Run-scoped counter: starts at ``seed`` and only ever increments.

    Subclasses change behaviour through the event hooks only; ``assign`` is the
    same for every policy.
    """

    policy = RowIdPolicy.RUN_SCOPED

    def __init__(self, seed: int = 0):
        if seed < 0:
            raise ValueError(f"Row id seed must be >= 0, got {seed}")
        self.seed = int(seed)
        self.next_id = int(seed)

    def assign(self, n: int) -> np.ndarray:
        """Return the next ``n`` row ids as an int32 array."""
        start = self.next_id
        stop = start + int(n)
        if stop - 1 > INT32_MAX:
            raise OverflowError(f"Row id {stop - 1} does not fit in an int32 column")
        self.next_id = stop
        return np.arange(start, stop, dtype=np.int64).astype(np.int32)

    def chunk_opened(self) -> None:
        pass

    def input_started(self) -> None:
        pass

    def input_finished(self) -> None:
        pass

    def input_failed(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(seed={self.seed}, next_id={self.next_id})"


class CarryForwardRowAssigner(RowAssigner):
    """Seeds every input from the number of records in the inputs that completed."""

    policy = RowIdPolicy.CARRY_FORWARD

    def __init__(self, seed: int = 0):
        super().__init__(seed)
        self.committed = 0

    def input_started(self) -> None:
        self.next_id = self.seed + self.committed

    def input_finished(self) -> None:
        self.committed = self.next_id - self.seed

    def input_failed(self) -> None:
        self.next_id = self.seed + self.committed


class PerChunkResetRowAssigner(RowAssigner):
    policy = RowIdPolicy.PER_CHUNK_RESET

    def chunk_opened(self) -> None:
        self.next_id = self.seed


class PerInputResetRowAssigner(RowAssigner):
    policy = RowIdPolicy.PER_INPUT_RESET

    def input_started(self) -> None:
        self.next_id = self.seed

    def input_finished(self) -> None:
        self.next_id = self.seed


_ASSIGNERS: Dict[RowIdPolicy, Type[RowAssigner]] = {
    RowIdPolicy.RUN_SCOPED: RowAssigner,
    RowIdPolicy.CARRY_FORWARD: CarryForwardRowAssigner,
    RowIdPolicy.PER_CHUNK_RESET: PerChunkResetRowAssigner,
    RowIdPolicy.PER_INPUT_RESET: PerInputResetRowAssigner,
}


def make_row_assigner(policy, seed: int = 0) -> RowAssigner:
    """
    Build the row assigner for ``policy`` (a :class:`RowIdPolicy` or its value).
    """
    return _ASSIGNERS[RowIdPolicy(policy)](seed)


__all__ = [
    "INT32_MAX",
    "RowIdPolicy",
    "RowAssigner",
    "CarryForwardRowAssigner",
    "PerChunkResetRowAssigner",
    "PerInputResetRowAssigner",
    "make_row_assigner",
]
