"""Parameter codec: plain mapping <-> LIBSVM ``svm_parameter`` struct."""

from __future__ import annotations

from ctypes import POINTER, Structure, c_double, c_int
from enum import IntEnum
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

import numpy as np

from .engine import svm_parameter
from .errors import InvalidParameterError


class SvmType(IntEnum):
    C_SVC = 0
    NU_SVC = 1
    ONE_CLASS = 2
    EPSILON_SVR = 3
    NU_SVR = 4


class KernelType(IntEnum):
    LINEAR = 0
    POLY = 1
    RBF = 2
    SIGMOID = 3
    PRECOMPUTED = 4


CLASSIFICATION_TYPES = frozenset({SvmType.C_SVC, SvmType.NU_SVC})

# svm-train defaults, except gamma: prediction copies the caller's parameters
# into the model, so gamma must be a fixed number, not 1 / n_features.
DEFAULT_PARAMETERS: Dict[str, Any] = {
    "svm_type": SvmType.C_SVC,
    "kernel_type": KernelType.RBF,
    "degree": 3,
    "gamma": 1.0,
    "coef0": 0.0,
    "cache_size": 100.0,
    "eps": 1e-3,
    "C": 1.0,
    "nu": 0.5,
    "p": 0.1,
    "shrinking": True,
    "probability": False,
}

INT_FIELDS = ("degree",)
FLOAT_FIELDS = ("gamma", "coef0", "cache_size", "eps", "C", "nu", "p")
FLAG_FIELDS = ("shrinking", "probability")

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off", ""}

EnumT = TypeVar("EnumT", SvmType, KernelType)


def _coerce_enum(enum_cls: Type[EnumT], key: str, value: Any) -> EnumT:
    if isinstance(value, str):
        try:
            return enum_cls[value.strip().upper()]
        except KeyError:
            raise InvalidParameterError(f"Unknown {key}: {value!r}") from None
    try:
        number = int(value)
        if number != value:
            raise ValueError(value)
        return enum_cls(number)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"Unknown {key}: {value!r}") from None


def _coerce_flag(key: str, value: Any) -> int:
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return 1
        if text in _FALSE_STRINGS:
            return 0
        raise InvalidParameterError(f"Expect {key} to be a boolean, got {value!r}")
    return 1 if value else 0


def _coerce_number(key: str, value: Any, kind: type) -> Any:
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise InvalidParameterError(
            f"Expect {key} to be {kind.__name__}, got {value!r}"
        ) from None


def enum_member(enum_cls: Type[EnumT], value: int) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        return int(value)


def is_classification(svm_type: int) -> bool:
    return svm_type in CLASSIFICATION_TYPES


class NativeParameter(svm_parameter):
    """``svm_parameter`` owned by a single call.

    Weight arrays are numpy buffers referenced from the struct; ``close()``
    detaches them. Use as a context manager so release happens on every exit
    path.
    """

    def __init__(self) -> None:
        # Bypass the option-string parser of svm_parameter.__init__.
        Structure.__init__(self)
        self._weight_label: Optional[np.ndarray] = None
        self._weight: Optional[np.ndarray] = None
        self.closed = False
        self.svm_type = int(DEFAULT_PARAMETERS["svm_type"])
        self.kernel_type = int(DEFAULT_PARAMETERS["kernel_type"])
        for key in INT_FIELDS:
            setattr(self, key, int(DEFAULT_PARAMETERS[key]))
        for key in FLOAT_FIELDS:
            setattr(self, key, float(DEFAULT_PARAMETERS[key]))
        for key in FLAG_FIELDS:
            setattr(self, key, 1 if DEFAULT_PARAMETERS[key] else 0)
        self.set_weights(None, None)

    def set_weights(self, labels: Optional[np.ndarray], weights: Optional[np.ndarray]) -> None:
        if labels is None or weights is None or labels.size == 0:
            self._weight_label = None
            self._weight = None
            self.nr_weight = 0
            self.weight_label = None
            self.weight = None
            return
        self._weight_label = np.ascontiguousarray(labels, dtype=np.int32)
        self._weight = np.ascontiguousarray(weights, dtype=np.float64)
        self.nr_weight = int(self._weight_label.size)
        self.weight_label = self._weight_label.ctypes.data_as(POINTER(c_int))
        self.weight = self._weight.ctypes.data_as(POINTER(c_double))

    def close(self) -> None:
        if self.closed:
            return
        self.set_weights(None, None)
        self.closed = True

    def __enter__(self) -> "NativeParameter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _weight_arrays(mapping: Mapping[str, Any]) -> tuple[Optional[np.ndarray], Optional[np.ndarray]]:
    if "weight_label" not in mapping or "weight" not in mapping:
        return None, None
    try:
        labels = np.atleast_1d(np.asarray(mapping["weight_label"], dtype=np.int32))
        weights = np.atleast_1d(np.asarray(mapping["weight"], dtype=np.float64))
    except (TypeError, ValueError) as exc:
        raise InvalidParameterError(f"Invalid class weights: {exc}") from None
    if labels.ndim != 1 or weights.ndim != 1:
        raise InvalidParameterError("Expect weight_label and weight to be 1-D arrays.")
    if labels.size != weights.size:
        raise InvalidParameterError(
            "Expect weight_label and weight to have the same length: "
            f"{labels.size} != {weights.size}"
        )
    return labels, weights


def decode_parameter(mapping: Optional[Mapping[str, Any]]) -> NativeParameter:
    """Build a parameter struct from a mapping; unknown keys are ignored."""
    if mapping is None:
        mapping = {}
    if not isinstance(mapping, Mapping):
        raise InvalidParameterError(
            f"Expect parameters to be a mapping, got {type(mapping).__name__}"
        )

    labels, weights = _weight_arrays(mapping)
    param = NativeParameter()
    try:
        if "svm_type" in mapping:
            param.svm_type = int(_coerce_enum(SvmType, "svm_type", mapping["svm_type"]))
        if "kernel_type" in mapping:
            param.kernel_type = int(
                _coerce_enum(KernelType, "kernel_type", mapping["kernel_type"])
            )
        for key in INT_FIELDS:
            if key in mapping:
                setattr(param, key, _coerce_number(key, mapping[key], int))
        for key in FLOAT_FIELDS:
            if key in mapping:
                setattr(param, key, _coerce_number(key, mapping[key], float))
        for key in FLAG_FIELDS:
            if key in mapping:
                setattr(param, key, _coerce_flag(key, mapping[key]))
        param.set_weights(labels, weights)
    except Exception:
        param.close()
        raise
    return param


def encode_parameter(param: svm_parameter) -> Dict[str, Any]:
    """Transcribe a parameter struct into a plain mapping."""
    record: Dict[str, Any] = {
        "svm_type": enum_member(SvmType, param.svm_type),
        "kernel_type": enum_member(KernelType, param.kernel_type),
    }
    for key in INT_FIELDS:
        record[key] = int(getattr(param, key))
    for key in FLOAT_FIELDS:
        record[key] = float(getattr(param, key))
    for key in FLAG_FIELDS:
        record[key] = bool(getattr(param, key))

    nr_weight = int(param.nr_weight)
    record["nr_weight"] = nr_weight
    if nr_weight > 0 and param.weight_label and param.weight:
        record["weight_label"] = np.ctypeslib.as_array(
            param.weight_label, shape=(nr_weight,)
        ).astype(np.int32, copy=True)
        record["weight"] = np.ctypeslib.as_array(
            param.weight, shape=(nr_weight,)
        ).astype(np.float64, copy=True)
    return record


def default_parameters() -> Dict[str, Any]:
    return dict(DEFAULT_PARAMETERS)
