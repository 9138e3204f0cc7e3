"""Prediction dispatch.

Picks the output layout from the model's ``svm_type`` and calls the matching
engine entry point once per sample row.
"""

from __future__ import annotations

from ctypes import POINTER, c_double
from typing import Dict, Optional

import numpy as np

from .engine import lib, svm_model
from .errors import InvalidModelError
from .params import CLASSIFICATION_TYPES, SvmType
from .samples import SampleBuffer

SCALAR = "scalar"
PAIRWISE = "pairwise"

# Closed table: every SvmType member must appear here.
SCORE_LAYOUTS: Dict[SvmType, str] = {
    SvmType.C_SVC: PAIRWISE,
    SvmType.NU_SVC: PAIRWISE,
    SvmType.ONE_CLASS: SCALAR,
    SvmType.EPSILON_SVR: SCALAR,
    SvmType.NU_SVR: SCALAR,
}


def score_layout(svm_type: int) -> str:
    """Return SCALAR or PAIRWISE for an svm_type."""
    try:
        return SCORE_LAYOUTS[SvmType(svm_type)]
    except (KeyError, ValueError):
        raise InvalidModelError(f"Unknown svm_type: {svm_type!r}") from None


def decision_width(svm_type: int, nr_class: int) -> int:
    """Decision values per sample: 1, or one per one-vs-one class pair."""
    if score_layout(svm_type) == SCALAR:
        return 1
    return nr_class * (nr_class - 1) // 2


def supports_probability(model: svm_model) -> bool:
    return (
        int(model.param.svm_type) in CLASSIFICATION_TYPES
        and bool(model.probA)
        and bool(model.probB)
    )


def predict_labels(samples: np.ndarray, model: svm_model) -> np.ndarray:
    """Predicted label or value per sample, shape [n_samples]."""
    n_samples, n_features = samples.shape
    buffer = SampleBuffer(n_features)
    labels = np.empty(n_samples, dtype=np.float64)
    for i in range(n_samples):
        labels[i] = lib.svm_predict(model, buffer.load(samples[i]))
    return labels


def decision_values(samples: np.ndarray, model: svm_model) -> np.ndarray:
    """Decision values: [n_samples] for SCALAR models, [n_samples, n_pairs] otherwise."""
    n_samples, n_features = samples.shape
    svm_type = int(model.param.svm_type)
    width = decision_width(svm_type, int(model.nr_class))
    buffer = SampleBuffer(n_features)
    scratch = np.zeros(max(width, 1), dtype=np.float64)
    scratch_ptr = scratch.ctypes.data_as(POINTER(c_double))

    if score_layout(svm_type) == SCALAR:
        scores = np.empty(n_samples, dtype=np.float64)
        for i in range(n_samples):
            lib.svm_predict_values(model, buffer.load(samples[i]), scratch_ptr)
            scores[i] = scratch[0]
        return scores

    scores = np.empty((n_samples, width), dtype=np.float64)
    for i in range(n_samples):
        lib.svm_predict_values(model, buffer.load(samples[i]), scratch_ptr)
        scores[i] = scratch[:width]
    return scores


def class_probabilities(samples: np.ndarray, model: svm_model) -> Optional[np.ndarray]:
    """Per-class probabilities [n_samples, nr_class], or None without calibration."""
    if not supports_probability(model):
        return None
    n_samples, n_features = samples.shape
    nr_class = int(model.nr_class)
    buffer = SampleBuffer(n_features)
    scratch = np.zeros(nr_class, dtype=np.float64)
    scratch_ptr = scratch.ctypes.data_as(POINTER(c_double))
    probabilities = np.empty((n_samples, nr_class), dtype=np.float64)
    for i in range(n_samples):
        lib.svm_predict_probability(model, buffer.load(samples[i]), scratch_ptr)
        probabilities[i] = scratch
    return probabilities
