"""Public SVM operations on dense numpy arrays.

Every call builds its native structures, runs the engine synchronously and
releases everything it built before returning. Nothing is shared between
calls except LIBSVM's process-wide print hook, which each training call sets
from its own ``verbose`` argument.
"""

from __future__ import annotations

import os
import sys
import time
from ctypes import POINTER, c_double
from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np

from .dispatch import class_probabilities, decision_values, predict_labels
from .engine import configure_output, engine_model, lib
from .errors import InvalidParameterError, ShapeMismatchError
from .model import decode_model, encode_model
from .params import NativeParameter, decode_parameter
from .samples import NativeProblem, as_samples, as_targets

DEBUG_ENV = "SVM_BRIDGE_DEBUG"

ParamMapping = Optional[Mapping[str, Any]]
ModelMapping = Mapping[str, Any]


def _debug_log(message: str) -> None:
    """Print optional debug logs when SVM_BRIDGE_DEBUG is enabled."""
    if os.environ.get(DEBUG_ENV):
        print(f"[svm_bridge] {message}", file=sys.stderr)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _training_arrays(x: Any, y: Any) -> Tuple[np.ndarray, np.ndarray]:
    samples = as_samples(x)
    targets = as_targets(y, samples.shape[0])
    if samples.shape[0] == 0:
        raise ShapeMismatchError("Expect at least one sample.")
    return samples, targets


def _check_parameter(problem: NativeProblem, param: NativeParameter) -> None:
    """Surface LIBSVM's own verdict on the parameters for this problem."""
    verdict = lib.svm_check_parameter(problem, param)
    if verdict:
        raise InvalidParameterError(
            f"Invalid LIBSVM parameter is given: {verdict.decode('utf-8', errors='replace')}"
        )


def train(x: Any, y: Any, param: ParamMapping, *, verbose: bool = False) -> Dict[str, Any]:
    """Train a model.

    x: samples, shape [n_samples, n_features]
    y: labels or target values, shape [n_samples]
    param: parameter mapping (see ``DEFAULT_PARAMETERS``)
    Returns the model mapping.
    """
    samples, targets = _training_arrays(x, y)
    started = time.perf_counter()
    with decode_parameter(param) as native_param, NativeProblem(samples, targets) as problem:
        _check_parameter(problem, native_param)
        configure_output(verbose)
        model_ptr = lib.svm_train(problem, native_param)
        # Support vectors may point into the problem's arena: encode first.
        with engine_model(model_ptr) as model:
            record = encode_model(model)
    _debug_log(
        f"train: n_samples={samples.shape[0]}, n_features={samples.shape[1]}, "
        f"nr_class={record['nr_class']}, n_sv={record['l']}, "
        f"elapsed_ms={_elapsed_ms(started)}"
    )
    return record


def cross_validation(
    x: Any, y: Any, param: ParamMapping, n_folds: int, *, verbose: bool = False
) -> np.ndarray:
    """Predicted label or value of each sample under n-fold cross validation."""
    try:
        folds = int(n_folds)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"Expect n_folds to be an integer, got {n_folds!r}") from None
    if folds < 2:
        raise InvalidParameterError(f"Expect n_folds to be >= 2, got {folds}")

    samples, targets = _training_arrays(x, y)
    started = time.perf_counter()
    predicted = np.empty(samples.shape[0], dtype=np.float64)
    with decode_parameter(param) as native_param, NativeProblem(samples, targets) as problem:
        _check_parameter(problem, native_param)
        configure_output(verbose)
        lib.svm_cross_validation(
            problem, native_param, folds, predicted.ctypes.data_as(POINTER(c_double))
        )
    _debug_log(
        f"cross_validation: n_samples={samples.shape[0]}, n_folds={folds}, "
        f"elapsed_ms={_elapsed_ms(started)}"
    )
    return predicted


cv = cross_validation


def predict(x: Any, param: ParamMapping, model: ModelMapping) -> np.ndarray:
    """Predicted label or value of each sample, shape [n_samples]."""
    samples = as_samples(x)
    with decode_parameter(param) as native_param, decode_model(model, native_param) as native_model:
        return predict_labels(samples, native_model)


def decision_function(x: Any, param: ParamMapping, model: ModelMapping) -> np.ndarray:
    """Decision values.

    Shape [n_samples] for one-class and regression models, and
    [n_samples, n_classes * (n_classes - 1) / 2] for classification.
    """
    samples = as_samples(x)
    with decode_parameter(param) as native_param, decode_model(model, native_param) as native_model:
        return decision_values(samples, native_model)


def predict_proba(x: Any, param: ParamMapping, model: ModelMapping) -> Optional[np.ndarray]:
    """Class probabilities, shape [n_samples, n_classes].

    Returns None unless the model is a C-SVC/nu-SVC model trained with
    ``probability`` enabled.
    """
    samples = as_samples(x)
    with decode_parameter(param) as native_param, decode_model(model, native_param) as native_model:
        probabilities = class_probabilities(samples, native_model)
    if probabilities is None:
        _debug_log("predict_proba: model has no probability information")
    return probabilities
