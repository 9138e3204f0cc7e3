"""Parameter codec tests."""

from __future__ import annotations

import sys
import unittest
from pathlib import Path
from unittest.mock import patch

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from svm_bridge.errors import InvalidParameterError
from svm_bridge.params import (
    DEFAULT_PARAMETERS,
    KernelType,
    NativeParameter,
    SvmType,
    decode_parameter,
    encode_parameter,
)


class TestParameterCodec(unittest.TestCase):
    """Mapping <-> svm_parameter conversion."""

    def test_defaults_fill_every_field(self) -> None:
        with decode_parameter(None) as param:
            record = encode_parameter(param)
        for key, value in DEFAULT_PARAMETERS.items():
            self.assertEqual(record[key], value, key)
        self.assertEqual(record["nr_weight"], 0)
        self.assertNotIn("weight_label", record)
        self.assertNotIn("weight", record)

    def test_round_trip_with_weights(self) -> None:
        mapping = {
            "svm_type": SvmType.NU_SVC,
            "kernel_type": KernelType.POLY,
            "degree": 2,
            "gamma": 0.25,
            "coef0": 1.5,
            "cache_size": 50,
            "eps": 0.01,
            "C": 4.0,
            "nu": 0.3,
            "p": 0.2,
            "shrinking": False,
            "probability": True,
            "weight_label": [1, 2, 3],
            "weight": [0.5, 1.0, 2.0],
        }
        with decode_parameter(mapping) as param:
            self.assertEqual(param.nr_weight, 3)
            record = encode_parameter(param)

        self.assertIs(record["svm_type"], SvmType.NU_SVC)
        self.assertIs(record["kernel_type"], KernelType.POLY)
        self.assertEqual(record["degree"], 2)
        self.assertEqual(record["cache_size"], 50.0)
        self.assertIs(record["shrinking"], False)
        self.assertIs(record["probability"], True)
        self.assertEqual(record["weight_label"].dtype, np.int32)
        np.testing.assert_array_equal(record["weight_label"], [1, 2, 3])
        np.testing.assert_allclose(record["weight"], [0.5, 1.0, 2.0])

        with decode_parameter(record) as again:
            self.assertEqual(encode_parameter(again)["nu"], 0.3)

    def test_enum_names_are_case_insensitive(self) -> None:
        with decode_parameter({"svm_type": "epsilon_svr", "kernel_type": "Linear"}) as param:
            self.assertEqual(param.svm_type, SvmType.EPSILON_SVR)
            self.assertEqual(param.kernel_type, KernelType.LINEAR)
        with decode_parameter({"svm_type": 2, "kernel_type": 3}) as param:
            self.assertEqual(param.svm_type, SvmType.ONE_CLASS)
            self.assertEqual(param.kernel_type, KernelType.SIGMOID)

    def test_unknown_enum_values_raise(self) -> None:
        for mapping in (
            {"svm_type": "svr"},
            {"svm_type": 7},
            {"svm_type": 1.5},
            {"kernel_type": "gaussian"},
        ):
            with self.subTest(mapping=mapping):
                with self.assertRaises(InvalidParameterError):
                    decode_parameter(mapping)

    def test_weight_length_mismatch_raises(self) -> None:
        with self.assertRaises(InvalidParameterError) as ctx:
            decode_parameter({"weight_label": [1, 2], "weight": [1.0, 2.0, 3.0]})
        self.assertIn("2 != 3", str(ctx.exception))

    def test_weights_need_both_keys(self) -> None:
        with decode_parameter({"weight": [1.0, 2.0]}) as param:
            self.assertEqual(param.nr_weight, 0)
            self.assertFalse(param.weight)

    def test_flags_accept_strings(self) -> None:
        with decode_parameter({"shrinking": "off", "probability": "yes"}) as param:
            self.assertEqual(param.shrinking, 0)
            self.assertEqual(param.probability, 1)
        with self.assertRaises(InvalidParameterError):
            decode_parameter({"probability": "maybe"})

    def test_uncoercible_values_raise(self) -> None:
        with self.assertRaises(InvalidParameterError):
            decode_parameter({"gamma": "abc"})
        with self.assertRaises(InvalidParameterError):
            decode_parameter({"degree": None})

    def test_failed_decode_closes_struct(self) -> None:
        original_close = NativeParameter.close
        with patch.object(
            NativeParameter, "close", autospec=True, side_effect=original_close
        ) as close_spy:
            with self.assertRaises(InvalidParameterError):
                decode_parameter({"weight_label": [1], "weight": [2.0], "degree": "three"})
        self.assertEqual(close_spy.call_count, 1)
        param = close_spy.call_args[0][0]
        self.assertTrue(param.closed)
        self.assertEqual(param.nr_weight, 0)

    def test_non_mapping_raises(self) -> None:
        with self.assertRaises(InvalidParameterError):
            decode_parameter([("C", 1.0)])

    def test_unknown_keys_are_ignored(self) -> None:
        with decode_parameter({"C": 2.0, "tolerance": 9}) as param:
            self.assertEqual(param.C, 2.0)

    def test_close_detaches_weights(self) -> None:
        param = decode_parameter({"weight_label": [1], "weight": [3.0]})
        param.close()
        param.close()
        self.assertTrue(param.closed)
        self.assertEqual(param.nr_weight, 0)
        self.assertFalse(param.weight_label)


if __name__ == "__main__":
    unittest.main()
