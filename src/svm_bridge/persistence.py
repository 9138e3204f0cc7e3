"""Model persistence through LIBSVM's own text model format."""

from __future__ import annotations

import os
import sys
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .engine import engine_model, lib, svm_model
from .model import decode_model, encode_model
from .params import KernelType, SvmType, decode_parameter, default_parameters, enum_member

DEBUG_ENV = "SVM_BRIDGE_DEBUG"

PathLike = Union[str, "os.PathLike[str]"]


def _debug_log(message: str) -> None:
    """Print optional debug logs when SVM_BRIDGE_DEBUG is enabled."""
    if os.environ.get(DEBUG_ENV):
        print(f"[persistence] {message}", file=sys.stderr)


def _file_parameter(model: svm_model) -> Dict[str, Any]:
    """Parameters as stored in a model file; everything else is a default.

    LIBSVM leaves the training-only fields of a loaded model uninitialized, so
    only the fields written by ``svm_save_model`` are read from the struct.
    """
    record = default_parameters()
    record["nr_weight"] = 0
    svm_type = int(model.param.svm_type)
    kernel_type = int(model.param.kernel_type)
    record["svm_type"] = enum_member(SvmType, svm_type)
    record["kernel_type"] = enum_member(KernelType, kernel_type)
    if kernel_type == KernelType.POLY:
        record["degree"] = int(model.param.degree)
    if kernel_type in (KernelType.POLY, KernelType.RBF, KernelType.SIGMOID):
        record["gamma"] = float(model.param.gamma)
    if kernel_type in (KernelType.POLY, KernelType.SIGMOID):
        record["coef0"] = float(model.param.coef0)
    record["probability"] = bool(model.probA) and bool(model.probB)
    return record


def load_svm_model(path: PathLike) -> Tuple[Optional[Dict[str, Any]], Optional[Dict[str, Any]]]:
    """Load (parameters, model) from a LIBSVM model file.

    Returns ``(None, None)`` when the engine cannot read the file.
    """
    model_ptr = lib.svm_load_model(os.fsencode(path))
    if not model_ptr:
        _debug_log(f"load failed: path={path}")
        return None, None

    with engine_model(model_ptr) as model:
        param_record = _file_parameter(model)
        model_record = encode_model(model, param_record=dict(param_record))
    _debug_log(
        f"loaded: path={path}, nr_class={model_record['nr_class']}, l={model_record['l']}"
    )
    return param_record, model_record


def save_svm_model(
    path: PathLike,
    param: Optional[Mapping[str, Any]],
    model: Mapping[str, Any],
) -> bool:
    """Write a model file; ``param`` replaces the parameters embedded in ``model``."""
    with decode_parameter(param) as native_param, decode_model(model, native_param) as native_model:
        status = lib.svm_save_model(os.fsencode(path), native_model)
    if status < 0:
        _debug_log(f"save failed: path={path}, status={status}")
        return False
    return True
