#!/usr/bin/env python3
"""
conftest.py - shared fixtures for the spice_pointing tests.

The tests run without SPICE kernels. Instead of CSPICE they use:

  - an IK-like MemoryKernelPool describing four test instruments
  - FakeEphemerisProvider: an analytic solar system with a target at the
    origin, a spacecraft on a straight line, a target frame spinning about
    +Z and a camera frame fixed in J2000
  - FakeEnvironment: stands in for SpiceEnvironment via the builder's
    environment_factory
"""

import math

import numpy as np
import pytest

from spice_pointing.kernel_pool import MemoryKernelPool

C_KM_S = 299792.458

TARGET = "TEST_TARGET"
TARGET_FRAME = "TEST_FIXED"
SPACECRAFT = "TEST_SC"
SPACECRAFT_FRAME = "TEST_SC_FRAME"
MOON = "TEST_MOON"
MOON_FRAME = "TEST_MOON_FIXED"

SPIN_RATE = 1.0e-3  # rad/s, target frame about +Z
SC_POSITION0 = np.array([1000.0, 0.0, 0.0])  # km, J2000, relative to target
SC_VELOCITY = np.array([0.0, 1.0, 0.0])  # km/s
SUN_POSITION = np.array([1.5e8, 2.0e7, -1.0e6])
EARTH_POSITION = np.array([-1.0e8, 5.0e7, 0.0])
MOON_POSITION = np.array([0.0, 1.2, 0.3])

# Camera -> J2000: camera +Z (boresight) looks along J2000 -X, camera +X
# (up) is J2000 +Z.
CAMERA_TO_J2000 = np.array([
    [0.0, 0.0, -1.0],
    [0.0, 1.0, 0.0],
    [1.0, 0.0, 0.0],
])


def rz(angle):
    """Passive rotation about +Z (coordinates in a frame rotated by angle)."""
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[c, s, 0.0], [-s, c, 0.0], [0.0, 0.0, 1.0]])


def ik_values():
    return {
        # ANGLES rectangle with its own name
        "INS-1001_FOV_FRAME": "TEST_CAM",
        "INS-1001_NAME": "TEST_CAM",
        "INS-1001_BORESIGHT": [0.0, 0.0, 1.0],
        "INS-1001_FOV_CLASS_SPEC": "ANGLES",
        "INS-1001_FOV_SHAPE": "RECTANGLE",
        "INS-1001_FOV_REF_VECTOR": [1.0, 0.0, 0.0],
        "INS-1001_FOV_REF_ANGLE": 1.0,
        "INS-1001_FOV_CROSS_ANGLE": 2.0,
        "INS-1001_FOV_ANGLE_UNITS": "DEGREES",
        # CORNERS rectangle
        "INS-1002_FOV_FRAME": "TEST_WIDE",
        "INS-1002_NAME": "TEST_WIDE",
        "INS-1002_BORESIGHT": [0.0, 0.0, 1.0],
        "INS-1002_FOV_CLASS_SPEC": "CORNERS",
        "INS-1002_FOV_SHAPE": "RECTANGLE",
        "INS-1002_FOV_BOUNDARY_CORNERS": [
            0.1, 0.1, 1.0, -0.1, 0.1, 1.0, -0.1, -0.1, 1.0, 0.1, -0.1, 1.0,
        ],
        # Shares TEST_CAM's frame; named through the body tables; square FOV
        # given in radians, tilted boresight
        "INS-1003_FOV_FRAME": "TEST_CAM",
        "INS-1003_BORESIGHT": [0.0, 0.1, 1.0],
        "INS-1003_FOV_CLASS_SPEC": "ANGLES",
        "INS-1003_FOV_SHAPE": "RECTANGLE",
        "INS-1003_FOV_REF_VECTOR": [1.0, 0.0, 0.0],
        "INS-1003_FOV_REF_ANGLE": 0.05,
        "INS-1003_FOV_ANGLE_UNITS": "RADIANS",
        "NAIF_BODY_NAME": ["OLD_NAME", "TEST_CAM_ALT"],
        "NAIF_BODY_CODE": [-1003, -1003],
        # No name anywhere: skipped
        "INS-1004_FOV_FRAME": "TEST_CAM",
        "INS-1004_BORESIGHT": [0.0, 0.0, 1.0],
    }


# ---------------------------------------------------------------------------
# Fake ephemeris
# ---------------------------------------------------------------------------

class FakeEphemerisProvider:
    """
    Same interface as SpiceEphemerisProvider, computed analytically.
    Counts calls so tests can check caching.
    """

    def __init__(self, ephemeris_ids, frame_ids, inertial_frame):
        self._bodies = {e.name: e for e in ephemeris_ids}
        self._frames = {f.name: f for f in frame_ids}
        self.inertial_frame = inertial_frame
        self.state_calls = 0
        self.transform_calls = 0

    # inertial positions relative to the target, which sits at the origin
    def _position(self, name, t):
        if name == TARGET:
            return np.zeros(3)
        if name == SPACECRAFT:
            return SC_POSITION0 + SC_VELOCITY * t
        if name == "SUN":
            return SUN_POSITION.copy()
        if name == "EARTH":
            return EARTH_POSITION.copy()
        if name == MOON:
            return MOON_POSITION.copy()
        raise ValueError(f"unknown body {name}")

    def _velocity(self, name):
        return SC_VELOCITY.copy() if name == SPACECRAFT else np.zeros(3)

    def _from_j2000(self, name, t):
        if name in ("J2000", SPACECRAFT_FRAME):
            return np.eye(3)
        if name == TARGET_FRAME:
            return rz(SPIN_RATE * t)
        if name in ("TEST_CAM", "TEST_WIDE"):
            return CAMERA_TO_J2000.T
        if name == MOON_FRAME:
            return rz(0.3)
        raise ValueError(f"unknown frame {name}")

    def _check(self, ids, table):
        for i in ids:
            if table.get(i.name) is not i:
                raise ValueError(f"{i.name} is not bound to this provider")

    def state(self, target, observer, frame, et):
        self._check((target, observer), self._bodies)
        self._check((frame,), self._frames)
        self.state_calls += 1

        observer_position = self._position(observer.name, et)
        lt = 0.0
        for _ in range(5):
            relative = self._position(target.name, et - lt) - observer_position
            lt = np.linalg.norm(relative) / C_KM_S
        relative = self._position(target.name, et - lt) - observer_position
        velocity = self._velocity(target.name) - self._velocity(observer.name)

        rotation = self._from_j2000(frame.name, et - lt)
        return np.concatenate([rotation @ relative, rotation @ velocity]), lt

    def transform(self, from_frame, to_frame, et):
        self._check((from_frame, to_frame), self._frames)
        self.transform_calls += 1
        return self._from_j2000(to_frame.name, et) @ self._from_j2000(from_frame.name, et).T


class FakeEnvironment:
    """Stands in for SpiceEnvironment; records every instance created."""

    instances = []
    known_bodies = {TARGET, SPACECRAFT, "SUN", "EARTH", MOON}
    known_frames = {"J2000", TARGET_FRAME, SPACECRAFT_FRAME, "TEST_CAM", "TEST_WIDE", MOON_FRAME}

    def __init__(self, kernels):
        self.kernels = tuple(kernels)
        self.pool = MemoryKernelPool(ik_values())
        self.activations = 0
        self.provider = None
        FakeEnvironment.instances.append(self)

    def activate(self):
        self.activations += 1

    def ephemeris_provider(self, registry):
        for body in registry.ephemeris_ids():
            if body.name not in self.known_bodies:
                raise ValueError(f"Ephemeris {body.name} is not known to the loaded kernels")
        for frame in registry.frame_ids():
            if frame.name not in self.known_frames:
                raise ValueError(f"Frame {frame.name} is not known to the loaded kernels")
        self.provider = FakeEphemerisProvider(
            registry.ephemeris_ids(), registry.frame_ids(), registry.lookup_frame("J2000")
        )
        return self.provider


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def pool():
    return MemoryKernelPool(ik_values())


@pytest.fixture
def fake_environment():
    FakeEnvironment.instances = []
    yield FakeEnvironment
    FakeEnvironment.instances = []


@pytest.fixture
def metakernel(tmp_path):
    """A metakernel listing two (empty) kernel files under $ROOT."""
    kernel_dir = tmp_path / "kernels"
    kernel_dir.mkdir()
    (kernel_dir / "test.tls").write_text("")
    (kernel_dir / "test.bsp").write_text("")
    mk = tmp_path / "test.tm"
    mk.write_text(
        "KPL/MK\n"
        "\\begindata\n"
        "   PATH_SYMBOLS = ( 'ROOT' )\n"
        f"   PATH_VALUES  = ( '{kernel_dir.as_posix()}' )\n"
        "   KERNELS_TO_LOAD = ( '$ROOT/test.tls'\n"
        "                       '$ROOT/test.bsp' )\n"
        "\\begintext\n"
    )
    return mk


@pytest.fixture
def builder(metakernel, fake_environment):
    from spice_pointing.provider import PointingProviderBuilder

    return PointingProviderBuilder(
        [metakernel], TARGET, TARGET_FRAME, SPACECRAFT, SPACECRAFT_FRAME,
        environment_factory=fake_environment,
    )


@pytest.fixture
def provider(builder):
    """Provider with TEST_CAM as its only instrument."""
    return builder.include_instrument("TEST_CAM").build()
