#!/usr/bin/env python3

# provider.py
#
# PointingProviderBuilder turns metakernels plus a handful of names (target,
# target frame, spacecraft, spacecraft frame) into a PointingProvider, which
# hands out InstrumentPointing snapshots for the included instruments.
#
# Instruments are discovered from the IK variables in the kernel pool:
#
#   INS<id>_FOV_FRAME   frame the FOV is defined in (one per instrument)
#   INS<id>_NAME        instrument name; if absent the NAIF_BODY_NAME /
#                       NAIF_BODY_CODE tables are searched for <id>
#
# Typical use:
#
#   builder = PointingProviderBuilder(["dart.tm"], "DIDYMOS", "DIDYMOS_FIXED",
#                                     "DART", "DART_SPACECRAFT")
#   builder.include_instrument("DART_DRACO")
#   provider = builder.build()
#   pointing = provider.provide(et)

from __future__ import annotations

import logging
import math
import os
import re
import threading
from dataclasses import dataclass

from .ephemeris import J2000, SpiceEnvironment
from .fov import InstrumentFov, extract_fov
from .ids import EphemerisId, FrameId, IdRegistry
from .kernel_pool import KernelPool
from .metakernel import KernelLoadError, read_metakernel
from .pointing import InstrumentPointing

logger = logging.getLogger(__name__)

SUN = "SUN"
EARTH = "EARTH"

_FOV_FRAME_KEY = re.compile(r"^INS(-?\d+)_FOV_FRAME$")


# ---------------------------------------------------------------------------
# Instrument discovery
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Instrument:
    name: str
    code: int
    frame_name: str


def _body_name(pool: KernelPool, code: int):
    names = pool.get_strings("NAIF_BODY_NAME", required=False)
    codes = pool.get_integers("NAIF_BODY_CODE", required=False)
    if not names or not codes:
        return None
    # Later assignments override earlier ones, as in the SPICE body tables.
    found = None
    for name, body_code in zip(names, codes):
        if body_code == code:
            found = name
    return found


def discover_instruments(pool: KernelPool) -> dict[str, Instrument]:
    """
    Map instrument name -> Instrument for every INS<id>_FOV_FRAME in the
    pool, in ascending key order. Instruments without a resolvable name are
    skipped with a warning.
    """
    instruments: dict[str, Instrument] = {}
    for key in sorted(pool.keywords("INS*_FOV_FRAME")):
        m = _FOV_FRAME_KEY.match(key)
        if m is None:
            continue
        code = int(m.group(1))
        frame_name = pool.get_string(key).strip()

        name = pool.get_string(f"INS{code}_NAME", required=False)
        if name is None:
            name = _body_name(pool, code)
        if name is None:
            logger.warning("Skipping instrument %d (frame %s): no name in kernels", code, frame_name)
            continue
        name = name.strip()

        if name in instruments:
            logger.warning(
                "Instrument name %s used by codes %d and %d; keeping %d",
                name, instruments[name].code, code, instruments[name].code,
            )
            continue
        instruments[name] = Instrument(name=name, code=code, frame_name=frame_name)

    logger.info("Found %d instruments in kernel pool", len(instruments))
    return instruments


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------

class PointingProvider:
    """
    Hands out InstrumentPointing snapshots for a fixed set of instruments.

    Snapshots are memoized: asking twice for the same time and instrument
    returns the same object. The current instrument is used when provide()
    is called without a name; it defaults to the only instrument when
    exactly one is included.
    """

    def __init__(
        self,
        ephemeris_provider,
        kernel_pool: KernelPool,
        registry: IdRegistry,
        target_id: EphemerisId,
        target_frame: FrameId,
        spacecraft_id: EphemerisId,
        spacecraft_frame: FrameId,
        sun_id: EphemerisId,
        earth_id: EphemerisId,
        instruments,
    ):
        self._ephemeris_provider = ephemeris_provider
        self._kernel_pool = kernel_pool
        self._registry = registry
        self._target_id = target_id
        self._target_frame = target_frame
        self._spacecraft_id = spacecraft_id
        self._spacecraft_frame = spacecraft_frame
        self._sun_id = sun_id
        self._earth_id = earth_id

        self._instruments = {i.name: i for i in instruments}
        self._fovs: dict[str, InstrumentFov] = {}
        self._cache: dict[tuple, InstrumentPointing] = {}
        self._lock = threading.Lock()

        self._current = None
        if len(self._instruments) == 1:
            self._current = next(iter(self._instruments))

    def __repr__(self):
        return (
            f"PointingProvider(target={self._target_id.name}, "
            f"spacecraft={self._spacecraft_id.name}, instruments={list(self._instruments)})"
        )

    # -- instruments ----------------------------------------------------------

    @property
    def instrument_names(self) -> tuple[str, ...]:
        return tuple(self._instruments)

    def _instrument(self, name: str) -> Instrument:
        try:
            return self._instruments[name]
        except KeyError:
            raise ValueError(f"No instrument named {name!r}; known instruments: {list(self._instruments)}") from None

    @property
    def current_instrument_name(self):
        return self._current

    @current_instrument_name.setter
    def current_instrument_name(self, name: str):
        self._instrument(name)
        self._current = name

    def set_current_instrument_name(self, name: str):
        self.current_instrument_name = name

    def _fov(self, instrument: Instrument) -> InstrumentFov:
        fov = self._fovs.get(instrument.name)
        if fov is None:
            fov = extract_fov(self._kernel_pool, instrument.code, instrument.frame_name)
            self._fovs[instrument.name] = fov
        return fov

    # -- pointing -------------------------------------------------------------

    def provide(self, time: float, instrument_name: str = None) -> InstrumentPointing:
        """
        Pointing of instrument_name (default: the current instrument) at
        ephemeris time `time` (TDB seconds past J2000).
        """
        if instrument_name is None:
            instrument_name = self._current
            if instrument_name is None:
                raise RuntimeError("No instrument given and no current instrument is set")
        instrument = self._instrument(instrument_name)

        time = float(time)
        if not math.isfinite(time):
            raise ValueError(f"Time must be finite, got {time}")

        instrument_frame = self._registry.lookup_frame(instrument.frame_name)
        key = (time, instrument_frame, self._target_frame, instrument.code)

        with self._lock:
            pointing = self._cache.get(key)
            if pointing is None:
                fov = self._fov(instrument)
                pointing = InstrumentPointing(
                    self._ephemeris_provider,
                    self._target_id,
                    self._target_frame,
                    self._spacecraft_id,
                    self._spacecraft_frame,
                    instrument_frame,
                    fov.boresight,
                    fov.up,
                    fov.frustum,
                    time,
                )
                self._cache[key] = pointing
                logger.debug("New pointing for %s at et %.6f", instrument.name, time)
        return pointing

    # -- accessors ------------------------------------------------------------

    @property
    def ephemeris_provider(self):
        return self._ephemeris_provider

    @property
    def kernel_pool(self) -> KernelPool:
        return self._kernel_pool

    @property
    def target_id(self) -> EphemerisId:
        return self._target_id

    @property
    def target_frame(self) -> FrameId:
        return self._target_frame

    @property
    def spacecraft_id(self) -> EphemerisId:
        return self._spacecraft_id

    @property
    def spacecraft_frame(self) -> FrameId:
        return self._spacecraft_frame

    @property
    def sun_id(self) -> EphemerisId:
        return self._sun_id

    @property
    def earth_id(self) -> EphemerisId:
        return self._earth_id

    def ephemeris_id(self, name: str) -> EphemerisId:
        return self._registry.lookup_ephemeris(name)

    def frame_id(self, name: str) -> FrameId:
        return self._registry.lookup_frame(name)


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

class PointingProviderBuilder:
    """
    Collects kernels, bindings and instrument choices, then build()s a
    PointingProvider.

    The target, target frame, spacecraft, spacecraft frame, SUN, EARTH and
    J2000 are bound on construction. The kernel environment is created the
    first time it is needed and reused afterwards.
    """

    def __init__(
        self,
        metakernels,
        target_name: str,
        target_frame_name: str,
        spacecraft_name: str,
        spacecraft_frame_name: str,
        environment_factory=SpiceEnvironment,
    ):
        if isinstance(metakernels, (str, os.PathLike)):
            metakernels = [metakernels]

        self._registry = IdRegistry()

        kernels = []
        for mk in metakernels:
            kernels.extend(read_metakernel(mk))
        if not kernels:
            raise KernelLoadError("No kernels listed in the given metakernels")
        self._kernels = kernels
        self._environment_factory = environment_factory
        self._environment = None
        self._instruments = None
        self._included: dict[str, Instrument] = {}

        self.target_id = self.bind_ephemeris(target_name)
        self.target_frame = self.bind_frame(target_frame_name)
        self.spacecraft_id = self.bind_ephemeris(spacecraft_name)
        self.spacecraft_frame = self.bind_frame(spacecraft_frame_name)
        self.sun_id = self.bind_ephemeris(SUN)
        self.earth_id = self.bind_ephemeris(EARTH)
        self.bind_frame(J2000)

    @property
    def kernels(self) -> tuple:
        return tuple(self._kernels)

    def bind_ephemeris(self, name: str) -> EphemerisId:
        return self._registry.ephemeris(name)

    def bind_frame(self, name: str) -> FrameId:
        return self._registry.frame(name)

    def environment(self):
        if self._environment is None:
            self._environment = self._environment_factory(self._kernels)
        return self._environment

    def instruments(self) -> dict[str, Instrument]:
        """All instruments defined in the kernels, by name."""
        if self._instruments is None:
            self._instruments = discover_instruments(self.environment().pool)
        return self._instruments

    # -- instrument selection -------------------------------------------------

    def include_instrument(self, *names: str) -> "PointingProviderBuilder":
        instruments = self.instruments()
        for name in names:
            if name not in instruments:
                raise ValueError(f"Instrument {name} is not defined in the kernels")
        for name in names:
            self._included[name] = instruments[name]
        return self

    def include_all_instruments(self) -> "PointingProviderBuilder":
        self._included.update(self.instruments())
        return self

    def _with_frame(self, frame_name: str) -> list[Instrument]:
        wanted = frame_name.strip().upper()
        matches = [i for i in self.instruments().values() if i.frame_name.upper() == wanted]
        if not matches:
            raise ValueError(f"No instrument is defined in frame {frame_name}")
        return matches

    def include_all_instruments_with_frame(self, frame_name: str) -> "PointingProviderBuilder":
        for instrument in self._with_frame(frame_name):
            self._included[instrument.name] = instrument
        return self

    def include_first_instrument_with_frame(self, frame_name: str) -> "PointingProviderBuilder":
        instrument = self._with_frame(frame_name)[0]
        self._included[instrument.name] = instrument
        return self

    @property
    def included_instrument_names(self) -> tuple[str, ...]:
        return tuple(self._included)

    # -- build ----------------------------------------------------------------

    def build(self) -> PointingProvider:
        instruments = tuple(self._included.values())
        for instrument in instruments:
            self.bind_frame(instrument.frame_name)

        environment = self.environment()
        ephemeris_provider = environment.ephemeris_provider(self._registry)
        provider = PointingProvider(
            ephemeris_provider,
            environment.pool,
            self._registry.copy(),
            self.target_id,
            self.target_frame,
            self.spacecraft_id,
            self.spacecraft_frame,
            self.sun_id,
            self.earth_id,
            instruments,
        )
        logger.info(
            "Built pointing provider for %s from %s with %d instruments",
            self.target_id.name, self.spacecraft_id.name, len(instruments),
        )
        return provider
