"""CSV helpers for the command-line front end."""

from __future__ import annotations

from typing import Tuple

import numpy as np


def load_csv(path: str, target_col: int = -1) -> Tuple[np.ndarray, np.ndarray]:
    """Split a numeric CSV file into (samples, targets)."""
    data = np.genfromtxt(path, delimiter=",", dtype=float)
    if data.ndim == 1:
        data = data.reshape(1, -1)

    n_cols = data.shape[1]
    if n_cols < 2:
        raise ValueError(f"Expect at least two columns in {path}, got {n_cols}")
    idx = target_col if target_col >= 0 else n_cols + target_col
    if idx < 0 or idx >= n_cols:
        raise ValueError(f"target_col out of range: {target_col}")

    y = data[:, idx]
    x = np.delete(data, idx, axis=1)
    return x, y


def save_matrix(path: str, values) -> None:
    """Write a vector (one value per line) or a matrix (one row per line)."""
    np.savetxt(path, np.asarray(values), delimiter=",", fmt="%.10g")
