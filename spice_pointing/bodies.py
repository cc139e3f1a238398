# bodies.py - pose of a secondary body (e.g. a moonlet) in the target frame.
#
# body_pose() gives the 4x4 matrix that takes points in the body's own
# frame to the target frame: rotation in the upper-left 3x3, the body's
# position relative to the target (from the pointing snapshot) in the last
# column. Apply it to a shape model of the body to place it next to the
# target.

from __future__ import annotations

import numpy as np

from .ids import EphemerisId, FrameId


def body_pose(provider, body_id: EphemerisId, body_frame: FrameId, time: float, instrument_name: str = None) -> np.ndarray:
    """
    Homogeneous body -> target transform at `time`.

    body_id and body_frame must have been bound when the provider was built.
    """
    pointing = provider.provide(time, instrument_name)
    position = pointing.position(body_id)
    rotation = provider.ephemeris_provider.transform(body_frame, provider.target_frame, pointing.time)

    pose = np.eye(4)
    pose[:3, :3] = rotation
    pose[:3, 3] = position
    return pose
