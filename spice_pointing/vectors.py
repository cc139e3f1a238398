# vectors.py - small vector helpers used by the pointing code.

from __future__ import annotations

import numpy as np


def normalize(vector) -> np.ndarray:
    """
    Return a copy of vector scaled to unit length.

    A zero-length vector comes back as a zero vector (no division), and a
    vector whose norm is already exactly 1 is copied unchanged. Components
    are assumed finite.
    """
    v = np.array(vector, dtype=float)
    norm = np.linalg.norm(v)
    if norm != 0.0 and norm != 1.0:
        v = v / norm
    return v


def frozen(vector) -> np.ndarray:
    """Read-only float copy of vector (or matrix)."""
    v = np.array(vector, dtype=float)
    v.flags.writeable = False
    return v


def as_vector3(values, what: str = "vector") -> np.ndarray:
    v = np.array(values, dtype=float)
    if v.shape != (3,):
        raise ValueError(f"{what} must have 3 components, got shape {v.shape}")
    return v
