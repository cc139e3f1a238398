#!/usr/bin/env python3

# pointing.py
#
# InstrumentPointing: the pointing of one instrument at one instant, with
# every vector expressed in the target body-fixed frame.
#
# Everything derived is computed on first access and kept:
#
#   spacecraft state   target-from-spacecraft state (LT+S) at et, negated;
#                      also gives time_at_target = et - light time
#   rotation(frame)    frame -> J2000 at et, then J2000 -> target frame at
#                      time_at_target
#   position(body)     body relative to target at time_at_target
#
# et is used for everything on the spacecraft side (spacecraft and
# instrument orientation); time_at_target, when the light now reaching the
# spacecraft left the target, for everything on the target side.

from __future__ import annotations

import logging
from functools import cached_property

import numpy as np

from .ids import EphemerisId, FrameId
from .vectors import as_vector3, frozen, normalize

logger = logging.getLogger(__name__)


class InstrumentPointing:
    """
    Pointing snapshot of one instrument at time et.

    boresight, up_direction and frustum are given in the instrument frame;
    the properties of the same names return them in the target frame.
    Returned arrays are read-only.
    """

    def __init__(
        self,
        ephemeris_provider,
        target_id: EphemerisId,
        target_frame: FrameId,
        sc_id: EphemerisId,
        sc_frame: FrameId,
        instrument_frame: FrameId,
        boresight,
        up_direction,
        frustum,
        time: float,
    ):
        self._provider = ephemeris_provider
        self.target_id = target_id
        self.target_frame = target_frame
        self.sc_id = sc_id
        self.sc_frame = sc_frame
        self.instrument_frame = instrument_frame
        self._boresight = normalize(as_vector3(boresight, "boresight"))
        self._up = normalize(as_vector3(up_direction, "up direction"))
        self._frustum = tuple(as_vector3(c, "frustum corner") for c in frustum)
        self.time = float(time)

        self._sc_position = None
        self._sc_velocity = None
        self._time_at_target = None
        self._rotations: dict[FrameId, np.ndarray] = {}
        self._body_positions: dict[EphemerisId, np.ndarray] = {}

    def __repr__(self):
        return (
            f"InstrumentPointing(instrument_frame={self.instrument_frame.name}, "
            f"target_frame={self.target_frame.name}, time={self.time!r})"
        )

    # -- spacecraft side ------------------------------------------------------

    def _compute_sc_pointing(self):
        if self._sc_position is not None:
            return

        target_from_sc, light_time = self._provider.state(
            self.target_id, self.sc_id, self.target_frame, self.time
        )
        sc_from_target = -np.asarray(target_from_sc, dtype=float)

        self._sc_position = frozen(sc_from_target[:3])
        self._sc_velocity = frozen(sc_from_target[3:6])
        self._time_at_target = self.time - light_time
        logger.debug(
            "%s at et %.6f: light time %.6f s", self.sc_id.name, self.time, light_time
        )

    @property
    def time_at_target(self) -> float:
        self._compute_sc_pointing()
        return self._time_at_target

    @property
    def sc_position(self) -> np.ndarray:
        """Spacecraft position relative to the target, target frame [km]."""
        self._compute_sc_pointing()
        return self._sc_position

    @property
    def sc_velocity(self) -> np.ndarray:
        """Spacecraft velocity relative to the target, target frame [km/s]."""
        self._compute_sc_pointing()
        return self._sc_velocity

    def rotation_to_target(self, from_frame: FrameId) -> np.ndarray:
        """
        Rotation from from_frame to the target frame, going through the
        inertial frame so that each side is evaluated at its own time.
        """
        rotation = self._rotations.get(from_frame)
        if rotation is None:
            self._compute_sc_pointing()
            inertial = self._provider.inertial_frame

            to_inertial = self._provider.transform(from_frame, inertial, self.time)
            inertial_to_target = self._provider.transform(
                inertial, self.target_frame, self._time_at_target
            )
            rotation = frozen(np.asarray(inertial_to_target) @ np.asarray(to_inertial))
            self._rotations[from_frame] = rotation
        return rotation

    @property
    def sc_rotation(self) -> np.ndarray:
        """Spacecraft frame -> target frame."""
        return self.rotation_to_target(self.sc_frame)

    @property
    def instrument_rotation(self) -> np.ndarray:
        """Instrument frame -> target frame."""
        return self.rotation_to_target(self.instrument_frame)

    # -- target side ----------------------------------------------------------

    def position(self, body_id: EphemerisId) -> np.ndarray:
        """Position of body_id relative to the target, target frame [km]."""
        position = self._body_positions.get(body_id)
        if position is None:
            self._compute_sc_pointing()
            state, _ = self._provider.state(
                body_id, self.target_id, self.target_frame, self._time_at_target
            )
            position = frozen(np.asarray(state, dtype=float)[:3])
            self._body_positions[body_id] = position
        return position

    # -- instrument -----------------------------------------------------------

    def _to_target(self, vector) -> np.ndarray:
        return frozen(normalize(self.instrument_rotation @ vector))

    @cached_property
    def boresight(self) -> np.ndarray:
        """Unit boresight, target frame."""
        return self._to_target(self._boresight)

    @cached_property
    def up_direction(self) -> np.ndarray:
        """Unit instrument "up" vector, target frame."""
        return self._to_target(self._up)

    @cached_property
    def frustum(self) -> tuple:
        """The four unit frustum corner vectors, target frame."""
        return tuple(self._to_target(corner) for corner in self._frustum)
