"""svm_bridge: numpy arrays in, LIBSVM out."""

from .api import cross_validation, cv, decision_function, predict, predict_proba, train
from .engine import LIBSVM_VERSION
from .errors import (
    InvalidModelError,
    InvalidParameterError,
    ModelIOError,
    ShapeMismatchError,
    SvmBridgeError,
)
from .params import DEFAULT_PARAMETERS, KernelType, SvmType
from .persistence import load_svm_model, save_svm_model

VERSION = "0.1.0"

__all__ = [
    "VERSION",
    "LIBSVM_VERSION",
    "SvmType",
    "KernelType",
    "DEFAULT_PARAMETERS",
    "train",
    "cross_validation",
    "cv",
    "predict",
    "decision_function",
    "predict_proba",
    "load_svm_model",
    "save_svm_model",
    "SvmBridgeError",
    "ShapeMismatchError",
    "InvalidParameterError",
    "InvalidModelError",
    "ModelIOError",
]
