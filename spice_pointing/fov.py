#!/usr/bin/env python3

# fov.py
#
# Instrument field of view from IK kernel pool variables, following the
# conventions of the GETFOV routine:
#
#   INS<id>_BORESIGHT        boresight vector (instrument frame)
#   INS<id>_FOV_CLASS_SPEC   'ANGLES' or 'CORNERS' (default 'CORNERS')
#   INS<id>_FOV_SHAPE        'RECTANGLE', 'POLYGON', 'CIRCLE', 'ELLIPSE'
#   INS<id>_FOV_REF_VECTOR   ANGLES: reference vector
#   INS<id>_FOV_REF_ANGLE    ANGLES: half angle in the boresight/ref plane
#   INS<id>_FOV_CROSS_ANGLE  ANGLES: half angle across it (default REF_ANGLE)
#   INS<id>_FOV_ANGLE_UNITS  ANGLES: units of the two angles (default DEGREES)
#
# The boresight, up direction and frustum corners are time-independent and
# are extracted once per instrument.

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
import spiceypy as spice
from spiceypy.utils.exceptions import SpiceyError

from .kernel_pool import CSPICE_LOCK, KernelPool
from .vectors import as_vector3, normalize

# RectangularCone corners are cyclic. Consumers expect the legacy frustum
# order, which is GETFOV's ANGLES bounds taken in the order 1, 0, 2, 3.
CORNER_ORDER = (0, 1, 3, 2)

DEFAULT_CLASS_SPEC = "CORNERS"
DEFAULT_ANGLE_UNITS = "DEGREES"


# ---------------------------------------------------------------------------
# Rectangular cone
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RectangularCone:
    """
    Four-sided cone with its apex at the origin.

    vertex is the unit reference ray (the reference vector made
    perpendicular to the boresight). corners are unit rays in cyclic order:
    (-ref, +cross), (+ref, +cross), (+ref, -cross), (-ref, -cross),
    where cross = boresight x ref.
    """
    boresight: np.ndarray
    vertex: np.ndarray
    corners: tuple


def rectangular_cone(ref_vector, boresight, ref_angle: float, cross_angle: float) -> RectangularCone:
    """
    Build the cone for an ANGLES-class rectangular FOV. Angles are half
    angles in radians.
    """
    b = normalize(as_vector3(boresight, "boresight"))
    if not b.any():
        raise ValueError("Boresight has zero length")

    ref = as_vector3(ref_vector, "reference vector")
    x = normalize(ref - np.dot(ref, b) * b)
    if not x.any():
        raise ValueError("Reference vector is parallel to the boresight")
    y = np.cross(b, x)

    for label, angle in (("reference", ref_angle), ("cross", cross_angle)):
        if not (0.0 <= angle < math.pi / 2):
            raise ValueError(f"FOV {label} angle {angle} rad is outside [0, pi/2)")

    tr = math.tan(ref_angle)
    tc = math.tan(cross_angle)
    corners = (
        normalize(b - tr * x + tc * y),
        normalize(b + tr * x + tc * y),
        normalize(b + tr * x - tc * y),
        normalize(b - tr * x - tc * y),
    )
    return RectangularCone(boresight=b, vertex=x, corners=corners)


def reorder_corners(corners) -> list:
    """Put a cone's four corners in the order downstream consumers expect."""
    corners = list(corners)
    if len(corners) != 4:
        raise ValueError(f"Expected 4 frustum corners, got {len(corners)}")
    return [corners[i] for i in CORNER_ORDER]


def up_direction(boresight, vertex) -> np.ndarray:
    """Component of the vertex ray perpendicular to the boresight."""
    b = np.asarray(boresight, dtype=float)
    return np.cross(b, np.cross(np.asarray(vertex, dtype=float), b))


# ---------------------------------------------------------------------------
# Kernel pool extraction
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InstrumentFov:
    """Boresight, up and frustum corners in the instrument frame."""
    code: int
    frame_name: str
    boresight: np.ndarray
    up: np.ndarray
    frustum: tuple


def read_boresight(pool: KernelPool, code: int) -> np.ndarray:
    return np.array(pool.get_doubles(f"INS{code}_BORESIGHT", 3), dtype=float)


def _to_radians(value: float, units: str, key: str) -> float:
    try:
        with CSPICE_LOCK:
            return float(spice.convrt(value, units, "RADIANS"))
    except SpiceyError as e:
        raise ValueError(f"Cannot convert {key} from units {units!r}: {e}") from e


def read_frustum(pool: KernelPool, code: int, frame_name: str, boresight) -> RectangularCone:
    """
    Frustum cone for instrument code. Only ANGLES-class rectangles are
    supported; CORNERS-class rectangles raise NotImplementedError.
    """
    prefix = f"INS{code}_"

    shape = pool.get_string(prefix + "FOV_SHAPE").strip().upper()
    class_spec = pool.get_string(prefix + "FOV_CLASS_SPEC", required=False)
    class_spec = (class_spec or DEFAULT_CLASS_SPEC).strip().upper()

    if class_spec == "CORNERS":
        if shape != "RECTANGLE":
            raise ValueError(f"Unsupported FOV shape {shape} for instrument frame {frame_name}")
        raise NotImplementedError(
            f"CORNERS-class FOV definitions are not supported (instrument frame {frame_name})"
        )

    if class_spec != "ANGLES":
        raise ValueError(
            "Illegal value in SPICE kernel; FOV_CLASS_SPEC must be either "
            f'"CORNERS" or "ANGLES" for instrument frame {frame_name}'
        )
    if shape != "RECTANGLE":
        raise ValueError(f"Unsupported FOV shape {shape} for instrument frame {frame_name}")

    ref_vector = pool.get_doubles(prefix + "FOV_REF_VECTOR", 3)
    ref_angle = pool.get_double(prefix + "FOV_REF_ANGLE")
    cross_angle = pool.get_double(prefix + "FOV_CROSS_ANGLE", required=False)
    if cross_angle is None:
        cross_angle = ref_angle

    units = pool.get_string(prefix + "FOV_ANGLE_UNITS", required=False)
    units = (units or DEFAULT_ANGLE_UNITS).strip().upper()

    ref_angle = _to_radians(ref_angle, units, prefix + "FOV_REF_ANGLE")
    cross_angle = _to_radians(cross_angle, units, prefix + "FOV_CROSS_ANGLE")

    return rectangular_cone(ref_vector, boresight, ref_angle, cross_angle)


def extract_fov(pool: KernelPool, code: int, frame_name: str) -> InstrumentFov:
    """Read the boresight and frustum of instrument code from the pool."""
    boresight = read_boresight(pool, code)
    cone = read_frustum(pool, code, frame_name, boresight)
    return InstrumentFov(
        code=code,
        frame_name=frame_name,
        boresight=boresight,
        up=up_direction(boresight, cone.vertex),
        frustum=tuple(reorder_corners(cone.corners)),
    )
