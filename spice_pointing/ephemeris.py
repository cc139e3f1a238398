#!/usr/bin/env python3

# ephemeris.py
#
# SPICE-backed ephemeris/frame provider and the kernel environment that
# feeds it.
#
# SpiceEphemerisProvider answers two questions, always with light-time and
# stellar-aberration correction ("LT+S"):
#   state(target, observer, frame, et) -> (6-vector state, one-way light time)
#   transform(from_frame, to_frame, et) -> 3x3 rotation
#
# SpiceEnvironment loads a kernel set into CSPICE. The CSPICE pool is
# process-global, so the environment remembers which instance is loaded and
# reloads (kclear + furnsh) whenever a different one is activated. Activation
# and the CSPICE call that needs it happen under one hold of CSPICE_LOCK.

from __future__ import annotations

import logging

import numpy as np
import spiceypy as spice
from spiceypy.utils.exceptions import NotFoundError, SpiceyError

from .ids import EphemerisId, FrameId, IdRegistry
from .kernel_pool import CSPICE_LOCK, SpiceKernelPool
from .metakernel import KernelLoadError

logger = logging.getLogger(__name__)

J2000 = "J2000"
ABCORR = "LT+S"


class SpiceEphemerisProvider:
    """
    Aberration-corrected states and frame transforms from CSPICE.

    Only identifiers bound when the provider was built may be queried;
    anything else is a ValueError.
    """

    def __init__(self, ephemeris_ids, frame_ids, inertial_frame: FrameId, abcorr: str = ABCORR, environment=None):
        self._ephemerides = frozenset(ephemeris_ids)
        self._frames = frozenset(frame_ids)
        if inertial_frame not in self._frames:
            raise ValueError(f"Inertial frame {inertial_frame.name} is not bound")
        self.inertial_frame = inertial_frame
        self.abcorr = abcorr
        self._environment = environment

    def _activate(self):
        if self._environment is not None:
            self._environment.activate()

    def _check_body(self, body: EphemerisId):
        if body not in self._ephemerides:
            raise ValueError(f"Ephemeris {getattr(body, 'name', body)!r} is not bound to this provider")

    def _check_frame(self, frame: FrameId):
        if frame not in self._frames:
            raise ValueError(f"Frame {getattr(frame, 'name', frame)!r} is not bound to this provider")

    def state(self, target: EphemerisId, observer: EphemerisId, frame: FrameId, et: float):
        """
        State of target relative to observer in frame at observer time et,
        corrected for light time and stellar aberration.

        Returns (state, light_time): a 6-vector [km, km/s] and seconds.
        """
        self._check_body(target)
        self._check_body(observer)
        self._check_frame(frame)
        with CSPICE_LOCK:
            self._activate()
            state, lt = spice.spkezr(target.name, float(et), frame.name, self.abcorr, observer.name)
        return np.asarray(state, dtype=float), float(lt)

    def transform(self, from_frame: FrameId, to_frame: FrameId, et: float) -> np.ndarray:
        """Rotation taking vectors in from_frame to to_frame at et."""
        self._check_frame(from_frame)
        self._check_frame(to_frame)
        with CSPICE_LOCK:
            self._activate()
            rotation = spice.pxform(from_frame.name, to_frame.name, float(et))
        return np.asarray(rotation, dtype=float)


class SpiceEnvironment:
    """
    A kernel set loaded into CSPICE, exposing its kernel pool and an
    ephemeris provider for the identifiers bound in a registry.
    """

    _active = None

    def __init__(self, kernels):
        self.kernels = tuple(str(k) for k in kernels)
        if not self.kernels:
            raise KernelLoadError("No kernels to load")
        self.activate()
        self.pool = SpiceKernelPool(self)

    def activate(self):
        """Make this kernel set the one loaded in CSPICE."""
        with CSPICE_LOCK:
            if SpiceEnvironment._active is self:
                return
            spice.kclear()
            SpiceEnvironment._active = None
            for kernel in self.kernels:
                logger.debug("furnsh %s", kernel)
                try:
                    spice.furnsh(kernel)
                except SpiceyError as e:
                    spice.kclear()
                    raise KernelLoadError(f"Failed to load kernel {kernel}: {e}") from e
            SpiceEnvironment._active = self
        logger.info("Loaded %d kernels", len(self.kernels))

    def ephemeris_provider(self, registry: IdRegistry) -> SpiceEphemerisProvider:
        """
        Check every bound name against the loaded kernels and return a
        provider for them.
        """
        with CSPICE_LOCK:
            self.activate()
            for body in registry.ephemeris_ids():
                try:
                    spice.bods2c(body.name)
                except NotFoundError:
                    raise ValueError(f"Ephemeris {body.name} is not known to the loaded kernels") from None
            for frame in registry.frame_ids():
                if spice.namfrm(frame.name) == 0:
                    raise ValueError(f"Frame {frame.name} is not known to the loaded kernels")
        return SpiceEphemerisProvider(
            registry.ephemeris_ids(),
            registry.frame_ids(),
            inertial_frame=registry.lookup_frame(J2000),
            environment=self,
        )
