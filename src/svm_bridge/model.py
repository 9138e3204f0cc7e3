"""Model codec: LIBSVM ``svm_model`` struct <-> plain mapping of numpy arrays.

Mapping layout (``nc`` = nr_class, ``np`` = nc * (nc - 1) / 2):

- ``param``: parameter mapping
- ``nr_class``, ``l``, ``free_sv``: ints
- ``SV``: float64 [l, n_sv_features], dense rendition of the support vectors
- ``sv_coef``: float64 [nc - 1, l]
- ``rho``: float64 [np]
- ``probA`` / ``probB``: float64 [np], optional
- ``prob_density_marks``: float64 [10], optional (one-class probability)
- ``sv_indices``: int32 [l], optional
- ``label`` / ``nSV``: int32 [nc], optional (classification only)

Optional keys are emitted only when the struct carries the array.
"""

from __future__ import annotations

from ctypes import POINTER, c_char, c_double, c_int, c_size_t, cast
from typing import Any, Dict, Mapping, Optional

import numpy as np

from .engine import MODEL_FIELDS, PROB_DENSITY_MARKS, svm_model, svm_node
from .errors import InvalidModelError
from .params import KernelType, NativeParameter, encode_parameter, is_classification
from .samples import NODE_DTYPE, SENTINEL_INDEX, node_arena, row_pointers

REQUIRED_KEYS = ("nr_class", "l", "SV", "sv_coef", "rho")
PAIR_ARRAYS = ("probA", "probB")
CLASS_ARRAYS = ("label", "nSV")
ARRAY_FIELDS = (
    "SV",
    "sv_coef",
    "rho",
    "probA",
    "probB",
    "prob_density_marks",
    "sv_indices",
    "label",
    "nSV",
)


def n_pairs(nr_class: int) -> int:
    """Number of one-vs-one class pairs."""
    return nr_class * (nr_class - 1) // 2


def _copy_doubles(ptr, n: int) -> np.ndarray:
    if n <= 0 or not ptr:
        return np.zeros(0, dtype=np.float64)
    return np.ctypeslib.as_array(ptr, shape=(n,)).astype(np.float64, copy=True)


def _copy_ints(ptr, n: int) -> np.ndarray:
    if n <= 0 or not ptr:
        return np.zeros(0, dtype=np.int32)
    return np.ctypeslib.as_array(ptr, shape=(n,)).astype(np.int32, copy=True)


def _node_view(address: int, count: int) -> np.ndarray:
    """Structured numpy view of ``count`` nodes starting at ``address``."""
    raw = (c_char * (count * NODE_DTYPE.itemsize)).from_address(address)
    return np.frombuffer(raw, dtype=NODE_DTYPE)


def _row_length(nodes) -> int:
    """Node count of one row, sentinel included."""
    j = 0
    while nodes[j].index != SENTINEL_INDEX:
        j += 1
    return j + 1


def _support_vectors(model: svm_model, l: int, positional: bool) -> np.ndarray:
    """Densify the support vectors.

    Columns follow ``index - 1``. With a precomputed kernel the first node
    carries the sample serial number (index 0 in LIBSVM files), so columns
    follow node position instead.

    All SV rows live in one node allocation (the training arena, LIBSVM's
    loaded node space or a decoded model's arena), so the gap to the next
    row start bounds each row. Only the row at the highest address is
    scanned for its sentinel.
    """
    if l == 0:
        return np.zeros((0, 0), dtype=np.float64)

    starts = np.ctypeslib.as_array(cast(model.SV, POINTER(c_size_t)), shape=(l,)).copy()
    boundaries = np.unique(starts)
    rows = []
    width = 0
    for i in range(l):
        start = int(starts[i])
        k = int(np.searchsorted(boundaries, start, side="right"))
        if k < boundaries.shape[0]:
            span = (int(boundaries[k]) - start) // NODE_DTYPE.itemsize
        else:
            span = _row_length(model.SV[i])
        nodes = _node_view(start, span)
        stop = int(np.argmax(nodes["index"] == SENTINEL_INDEX))
        if positional:
            columns = np.arange(stop)
        else:
            columns = nodes["index"][:stop].astype(np.intp) - 1
        if stop:
            width = max(width, int(columns.max()) + 1)
        rows.append((columns, nodes["value"][:stop].copy()))

    dense = np.zeros((l, width), dtype=np.float64)
    for i, (columns, values) in enumerate(rows):
        dense[i, columns] = values
    return dense


def encode_model(
    model: svm_model, param_record: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Transcribe a model struct into a mapping. The struct is not modified.

    ``param_record`` replaces the transcription of ``model.param``; loaded
    models only carry the parameter fields the file format stores.
    """
    nr_class = int(model.nr_class)
    l = int(model.l)
    pairs = n_pairs(nr_class)
    positional = int(model.param.kernel_type) == KernelType.PRECOMPUTED

    sv_coef = np.zeros((max(nr_class - 1, 0), l), dtype=np.float64)
    if l > 0 and model.sv_coef:
        for k in range(nr_class - 1):
            sv_coef[k] = _copy_doubles(model.sv_coef[k], l)

    record: Dict[str, Any] = {
        "param": param_record if param_record is not None else encode_parameter(model.param),
        "nr_class": nr_class,
        "l": l,
        "SV": _support_vectors(model, l, positional) if model.SV else np.zeros((l, 0)),
        "sv_coef": sv_coef,
        "rho": _copy_doubles(model.rho, pairs),
    }
    for key in PAIR_ARRAYS:
        ptr = getattr(model, key)
        if ptr:
            record[key] = _copy_doubles(ptr, pairs)
    if "prob_density_marks" in MODEL_FIELDS and model.prob_density_marks:
        record["prob_density_marks"] = _copy_doubles(
            model.prob_density_marks, PROB_DENSITY_MARKS
        )
    if "sv_indices" in MODEL_FIELDS and model.sv_indices:
        record["sv_indices"] = _copy_ints(model.sv_indices, l)
    for key in CLASS_ARRAYS:
        ptr = getattr(model, key)
        if ptr:
            record[key] = _copy_ints(ptr, nr_class)
    record["free_sv"] = int(model.free_sv)
    return record


class NativeModel(svm_model):
    """``svm_model`` rebuilt from a mapping; every array is Python-owned."""

    def __init__(self, param: NativeParameter) -> None:
        svm_model.__init__(self)
        self._param: Optional[NativeParameter] = param
        self._owned: Dict[str, Any] = {}
        self.closed = False
        self.param = param
        self.free_sv = 1

    def keep(self, key: str, value: Any) -> Any:
        self._owned[key] = value
        return value

    def close(self) -> None:
        if self.closed:
            return
        for key in ARRAY_FIELDS:
            if key in MODEL_FIELDS:
                setattr(self, key, None)
        self.l = 0
        self.nr_class = 0
        self._owned.clear()
        self._param = None
        self.closed = True

    def __enter__(self) -> "NativeModel":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _count(mapping: Mapping[str, Any], key: str, minimum: int) -> int:
    value = mapping[key]
    try:
        number = int(value)
        if number != value:
            raise ValueError(value)
    except (TypeError, ValueError):
        raise InvalidModelError(f"Expect {key} to be an integer, got {value!r}") from None
    if number < minimum:
        raise InvalidModelError(f"Expect {key} to be >= {minimum}, got {number}")
    return number


def _array(mapping: Mapping[str, Any], key: str, dtype) -> np.ndarray:
    try:
        return np.ascontiguousarray(np.asarray(mapping[key], dtype=dtype))
    except (TypeError, ValueError) as exc:
        raise InvalidModelError(f"Invalid {key}: {exc}") from None


def _vector(mapping: Mapping[str, Any], key: str, dtype, length: int) -> np.ndarray:
    values = np.atleast_1d(_array(mapping, key, dtype))
    if values.ndim != 1 or values.shape[0] != length:
        raise InvalidModelError(
            f"Expect {key} to have length {length}, got shape {values.shape}"
        )
    return values


def _present(mapping: Mapping[str, Any], key: str) -> bool:
    return mapping.get(key) is not None


def decode_model(mapping: Mapping[str, Any], param: NativeParameter) -> NativeModel:
    """Rebuild a model struct from a mapping, using ``param`` as its parameters."""
    if not isinstance(mapping, Mapping):
        raise InvalidModelError(
            f"Expect model to be a mapping, got {type(mapping).__name__}"
        )
    for key in REQUIRED_KEYS:
        if not _present(mapping, key):
            raise InvalidModelError(f"Model is missing required field '{key}'")

    nr_class = _count(mapping, "nr_class", 1)
    l = _count(mapping, "l", 0)
    pairs = n_pairs(nr_class)

    sv = _array(mapping, "SV", np.float64)
    if l == 0 and sv.size == 0 and sv.ndim < 2:
        sv = sv.reshape(0, 0)
    if sv.ndim != 2 or sv.shape[0] != l:
        raise InvalidModelError(f"Expect SV to have shape [{l}, n_features], got {sv.shape}")

    sv_coef = _array(mapping, "sv_coef", np.float64)
    if sv_coef.ndim == 1 and nr_class == 2:
        sv_coef = sv_coef.reshape(1, -1)
    if sv_coef.shape != (nr_class - 1, l):
        raise InvalidModelError(
            f"Expect sv_coef to have shape [{nr_class - 1}, {l}], got {sv_coef.shape}"
        )
    rho = _vector(mapping, "rho", np.float64, pairs)

    optional: Dict[str, np.ndarray] = {}
    for key in PAIR_ARRAYS:
        if _present(mapping, key):
            optional[key] = _vector(mapping, key, np.float64, pairs)
    if "prob_density_marks" in MODEL_FIELDS and _present(mapping, "prob_density_marks"):
        optional["prob_density_marks"] = _vector(
            mapping, "prob_density_marks", np.float64, PROB_DENSITY_MARKS
        )
    if "sv_indices" in MODEL_FIELDS and _present(mapping, "sv_indices"):
        optional["sv_indices"] = _vector(mapping, "sv_indices", np.int32, l)
    for key in CLASS_ARRAYS:
        if _present(mapping, key):
            optional[key] = _vector(mapping, key, np.int32, nr_class)

    if is_classification(int(param.svm_type)):
        for key in CLASS_ARRAYS:
            if key not in optional:
                raise InvalidModelError(f"Classification model is missing '{key}'")
        if int(optional["nSV"].sum()) != l:
            raise InvalidModelError(
                f"Expect nSV to sum to l={l}, got {int(optional['nSV'].sum())}"
            )

    model = NativeModel(param)
    model.nr_class = nr_class
    model.l = l

    sv_arena = model.keep("SV", node_arena(sv))
    sv_rows = model.keep("SV_rows", row_pointers(sv_arena, svm_node))
    model.SV = cast(sv_rows, POINTER(POINTER(svm_node)))

    coef = model.keep("sv_coef", sv_coef)
    coef_rows = model.keep("sv_coef_rows", row_pointers(coef, c_double))
    model.sv_coef = cast(coef_rows, POINTER(POINTER(c_double)))

    model.rho = model.keep("rho", rho).ctypes.data_as(POINTER(c_double))
    for key, values in optional.items():
        ctype = c_int if values.dtype == np.int32 else c_double
        setattr(model, key, model.keep(key, values).ctypes.data_as(POINTER(ctype)))
    return model
