"""LIBSVM engine binding.

The only module that touches ``libsvm.svm`` directly. It re-exports the
ctypes struct classes, exposes the shared library handle, and provides:

1. ``LIBSVM_VERSION`` read from the library's exported ``libsvm_version``
2. per-call routing of the engine's progress output (quiet or stderr)
3. a scope that frees engine-allocated models with ``svm_free_and_destroy_model``
"""

from __future__ import annotations

import sys
from contextlib import contextmanager
from ctypes import c_int, pointer
from typing import Iterator

from libsvm import svm as _svm

lib = _svm.libsvm

svm_node = _svm.svm_node
svm_problem = _svm.svm_problem
svm_parameter = _svm.svm_parameter
svm_model = _svm.svm_model

LIBSVM_VERSION: int = c_int.in_dll(lib, "libsvm_version").value

MODEL_FIELDS = frozenset(name for name, _ in svm_model._fields_)

# Number of density marks LIBSVM stores for one-class probability models.
PROB_DENSITY_MARKS = 10


def _echo_engine_output(text: bytes) -> None:
    sys.stderr.write(text.decode("utf-8", errors="replace"))
    sys.stderr.flush()


# Callback objects must outlive every engine call that may invoke them.
_QUIET_OUTPUT = _svm.PRINT_STRING_FUN(_svm.print_null)
_STDERR_OUTPUT = _svm.PRINT_STRING_FUN(_echo_engine_output)


def configure_output(verbose: bool = False) -> None:
    """Route engine progress text for the upcoming call."""
    lib.svm_set_print_string_function(_STDERR_OUTPUT if verbose else _QUIET_OUTPUT)


@contextmanager
def engine_model(model_ptr) -> Iterator[svm_model]:
    """Yield the struct behind an engine-allocated model and free it on exit."""
    try:
        yield model_ptr.contents
    finally:
        lib.svm_free_and_destroy_model(pointer(model_ptr))


__all__ = [
    "LIBSVM_VERSION",
    "MODEL_FIELDS",
    "PROB_DENSITY_MARKS",
    "configure_output",
    "engine_model",
    "lib",
    "svm_model",
    "svm_node",
    "svm_parameter",
    "svm_problem",
]
