"""Dense <-> sparse sample conversion.

Dense rows become LIBSVM node rows ``[{1, v1}, ..., {n, vn}, {-1, 0.0}]``.
All rows of a problem (or all support vectors of a model) live in one node
arena: a C-contiguous numpy structured array whose dtype is derived from
``svm_node``. Row pointers handed to the engine point into that arena.
"""

from __future__ import annotations

from ctypes import POINTER, Structure, c_double, c_size_t, cast
from typing import Any, List, Optional, Tuple

import numpy as np

from .engine import svm_node, svm_problem
from .errors import ShapeMismatchError

NODE_DTYPE = np.dtype(svm_node)
SENTINEL_INDEX = -1


def as_samples(x: Any) -> np.ndarray:
    """Cast samples to a contiguous float64 matrix of shape [n_samples, n_features]."""
    try:
        samples = np.asarray(x, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise ShapeMismatchError(
            f"Expect samples to be a rectangular numeric array: {exc}"
        ) from None
    if samples.ndim != 2:
        raise ShapeMismatchError("Expect samples to be 2-D array.")
    return np.ascontiguousarray(samples)


def as_targets(y: Any, n_samples: int) -> np.ndarray:
    """Cast labels or target values to a contiguous float64 vector."""
    try:
        targets = np.asarray(y, dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise ShapeMismatchError(
            f"Expect label or target values to be a numeric array: {exc}"
        ) from None
    if targets.ndim != 1:
        raise ShapeMismatchError("Expect label or target values to be 1-D array.")
    if targets.shape[0] != n_samples:
        raise ShapeMismatchError(
            "Expect to have the same number of samples for samples and labels."
        )
    return np.ascontiguousarray(targets)


def node_arena(dense: np.ndarray) -> np.ndarray:
    """Lay out dense rows as node rows, one sentinel per row."""
    n_rows, n_features = dense.shape
    arena = np.empty((n_rows, n_features + 1), dtype=NODE_DTYPE)
    arena["index"][:, :n_features] = np.arange(1, n_features + 1, dtype=np.int32)
    arena["value"][:, :n_features] = dense
    arena["index"][:, n_features] = SENTINEL_INDEX
    arena["value"][:, n_features] = 0.0
    return arena


def row_pointers(block: np.ndarray, ctype) -> Any:
    """Build a C array of ``ctype*`` pointing at each row of a 2-D block."""
    n_rows = block.shape[0]
    rows = (POINTER(ctype) * n_rows)()
    if n_rows == 0:
        return rows
    addresses = np.ctypeslib.as_array(cast(rows, POINTER(c_size_t)), shape=(n_rows,))
    stride = np.uint64(block.strides[0])
    addresses[:] = np.uint64(block.ctypes.data) + np.arange(n_rows, dtype=np.uint64) * stride
    return rows


def sparse_row(row: Any) -> List[Tuple[int, float]]:
    """Return the (index, value) nodes of one dense row, sentinel included."""
    values = np.asarray(row, dtype=np.float64)
    if values.ndim != 1:
        raise ShapeMismatchError("Expect a sample row to be 1-D array.")
    arena = node_arena(values.reshape(1, -1))
    return [(int(node["index"]), float(node["value"])) for node in arena[0]]


class NativeProblem(svm_problem):
    """``svm_problem`` over a node arena, owned by a single call."""

    def __init__(self, samples: np.ndarray, targets: np.ndarray) -> None:
        # Bypass svm_problem.__init__, which builds its own (sparse) nodes.
        Structure.__init__(self)
        if targets.shape[0] != samples.shape[0]:
            raise ShapeMismatchError(
                "Expect to have the same number of samples for samples and labels."
            )
        self.n_features = int(samples.shape[1])
        self._arena: Optional[np.ndarray] = node_arena(samples)
        self._targets: Optional[np.ndarray] = np.ascontiguousarray(targets, dtype=np.float64)
        self._rows = row_pointers(self._arena, svm_node)
        self.l = int(samples.shape[0])
        self.y = self._targets.ctypes.data_as(POINTER(c_double))
        self.x = cast(self._rows, POINTER(POINTER(svm_node)))
        self.closed = False

    def node_row(self, i: int) -> np.ndarray:
        if self._arena is None:
            raise ValueError("problem is closed")
        return self._arena[i]

    def close(self) -> None:
        if self.closed:
            return
        self.x = None
        self.y = None
        self.l = 0
        self._rows = None
        self._arena = None
        self._targets = None
        self.closed = True

    def __enter__(self) -> "NativeProblem":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class SampleBuffer:
    """One reusable node row for per-sample prediction.

    Indices and the sentinel are fixed once ``n_features`` is known; each
    ``load`` only overwrites the value fields and returns the same pointer.
    """

    def __init__(self, n_features: int) -> None:
        self.n_features = int(n_features)
        self._space = node_arena(np.zeros((1, self.n_features)))
        self._values = self._space["value"][0, : self.n_features]
        self.pointer = self._space.ctypes.data_as(POINTER(svm_node))

    @property
    def nodes(self) -> np.ndarray:
        return self._space[0]

    def load(self, row: np.ndarray) -> Any:
        if row.shape[0] != self.n_features:
            raise ShapeMismatchError(
                f"Expect {self.n_features} features per sample, got {row.shape[0]}"
            )
        self._values[:] = row
        return self.pointer
