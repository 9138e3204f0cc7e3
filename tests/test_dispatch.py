"""Prediction dispatch tests on hand-built linear models."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from svm_bridge import SvmType, decision_function, predict, predict_proba
from svm_bridge.dispatch import PAIRWISE, SCALAR, SCORE_LAYOUTS, decision_width, score_layout
from svm_bridge.errors import InvalidModelError, ShapeMismatchError


def two_class_model() -> dict:
    """Linear C-SVC with decision value 2 * x[0]."""
    return {
        "nr_class": 2,
        "l": 2,
        "SV": np.array([[1.0, 0.0], [-1.0, 0.0]]),
        "sv_coef": np.array([[1.0, -1.0]]),
        "rho": np.array([0.0]),
        "label": np.array([1, -1], dtype=np.int32),
        "nSV": np.array([1, 1], dtype=np.int32),
    }


def single_vector_model() -> dict:
    """One support vector [1, 0] with coefficient 1 and rho 0.5."""
    return {
        "nr_class": 2,
        "l": 1,
        "SV": np.array([[1.0, 0.0]]),
        "sv_coef": np.array([[1.0]]),
        "rho": np.array([0.5]),
    }


class TestScoreLayouts(unittest.TestCase):
    """Closed svm_type -> layout table."""

    def test_every_svm_type_has_a_layout(self) -> None:
        self.assertEqual(set(SCORE_LAYOUTS), set(SvmType))

    def test_layouts(self) -> None:
        self.assertEqual(score_layout(SvmType.C_SVC), PAIRWISE)
        self.assertEqual(score_layout(SvmType.NU_SVC), PAIRWISE)
        self.assertEqual(score_layout(SvmType.ONE_CLASS), SCALAR)
        self.assertEqual(score_layout(SvmType.EPSILON_SVR), SCALAR)
        self.assertEqual(score_layout(SvmType.NU_SVR), SCALAR)

    def test_decision_width(self) -> None:
        self.assertEqual(decision_width(SvmType.C_SVC, 2), 1)
        self.assertEqual(decision_width(SvmType.NU_SVC, 4), 6)
        self.assertEqual(decision_width(SvmType.NU_SVR, 2), 1)

    def test_unknown_svm_type_raises(self) -> None:
        with self.assertRaises(InvalidModelError):
            score_layout(9)


class TestDispatch(unittest.TestCase):
    """Output shapes and values per model kind."""

    x = np.array([[3.0, 0.0], [-2.0, 5.0], [0.25, 1.0]])

    def test_classification_outputs(self) -> None:
        param = {"svm_type": "c_svc", "kernel_type": "linear"}
        model = two_class_model()

        labels = predict(self.x, param, model)
        np.testing.assert_array_equal(labels, [1.0, -1.0, 1.0])

        scores = decision_function(self.x, param, model)
        self.assertEqual(scores.shape, (3, 1))
        np.testing.assert_allclose(scores[:, 0], [6.0, -4.0, 0.5])

        self.assertIsNone(predict_proba(self.x, param, model))

    def test_classification_probabilities(self) -> None:
        param = {"svm_type": "c_svc", "kernel_type": "linear", "probability": True}
        model = two_class_model()
        model["probA"] = np.array([-1.0])
        model["probB"] = np.array([0.0])

        proba = predict_proba(self.x, param, model)
        self.assertEqual(proba.shape, (3, 2))
        np.testing.assert_allclose(proba.sum(axis=1), 1.0)
        expected = 1.0 / (1.0 + np.exp(-np.array([6.0, -4.0, 0.5])))
        np.testing.assert_allclose(proba[:, 0], expected, atol=1e-2)

    def test_one_class_outputs(self) -> None:
        param = {"svm_type": "one_class", "kernel_type": "linear"}
        model = single_vector_model()

        np.testing.assert_array_equal(predict(self.x, param, model), [1.0, -1.0, -1.0])
        scores = decision_function(self.x, param, model)
        self.assertEqual(scores.shape, (3,))
        np.testing.assert_allclose(scores, [2.5, -2.5, -0.25])
        self.assertIsNone(predict_proba(self.x, param, model))

    def test_regression_outputs(self) -> None:
        param = {"svm_type": "epsilon_svr", "kernel_type": "linear"}
        model = single_vector_model()
        model["probA"] = np.array([0.3])

        np.testing.assert_allclose(predict(self.x, param, model), [2.5, -2.5, -0.25])
        self.assertEqual(decision_function(self.x, param, model).shape, (3,))
        self.assertIsNone(predict_proba(self.x, param, model))

    def test_empty_input(self) -> None:
        param = {"svm_type": "c_svc", "kernel_type": "linear"}
        model = two_class_model()
        empty = np.zeros((0, 2))
        self.assertEqual(predict(empty, param, model).shape, (0,))
        self.assertEqual(decision_function(empty, param, model).shape, (0, 1))

    def test_rejects_one_dimensional_samples(self) -> None:
        param = {"svm_type": "c_svc", "kernel_type": "linear"}
        with self.assertRaises(ShapeMismatchError):
            predict([1.0, 2.0], param, two_class_model())


if __name__ == "__main__":
    unittest.main()
