#!/usr/bin/env python3

# info_file.py
#
# INFO files: one pointing per file, the plain-text record image viewers
# load alongside an image.
#
#   START_TIME            = 2022-09-26T23:14:23.000
#   STOP_TIME             = 2022-09-26T23:14:23.000
#   SPACECRAFT_POSITION   = ( x , y , z )      km, target frame
#   BORESIGHT_DIRECTION   = ( x , y , z )      unit
#   UP_DIRECTION          = ( x , y , z )      unit
#   FRUSTUM1 .. FRUSTUM4  = ( x , y , z )      unit corner rays
#   SUN_POSITION_LT       = ( x , y , z )      km, Sun relative to target
#
# Older files prefix the direction keys with an instrument name
# (MSI_FRUSTUM1, ...); the reader matches those by suffix.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import numpy as np

from .vectors import normalize

logger = logging.getLogger(__name__)

START_TIME = "START_TIME"
STOP_TIME = "STOP_TIME"
SPACECRAFT_POSITION = "SPACECRAFT_POSITION"
BORESIGHT_DIRECTION = "BORESIGHT_DIRECTION"
UP_DIRECTION = "UP_DIRECTION"
FRUSTUM_KEYS = ("FRUSTUM1", "FRUSTUM2", "FRUSTUM3", "FRUSTUM4")
SUN_POSITION_LT = "SUN_POSITION_LT"


def _zeros():
    return np.zeros(3)


@dataclass
class InfoRecord:
    start_time: Optional[str] = None
    stop_time: Optional[str] = None
    spacecraft_position: np.ndarray = field(default_factory=_zeros)
    boresight_direction: np.ndarray = field(default_factory=_zeros)
    up_direction: np.ndarray = field(default_factory=_zeros)
    frustum: tuple = field(default_factory=lambda: tuple(_zeros() for _ in range(4)))
    sun_position: np.ndarray = field(default_factory=_zeros)

    @classmethod
    def from_pointing(cls, pointing, sun_id, start_time: str, stop_time: str = None) -> "InfoRecord":
        """Fill a record from an InstrumentPointing snapshot."""
        return cls(
            start_time=start_time,
            stop_time=stop_time if stop_time is not None else start_time,
            spacecraft_position=np.array(pointing.sc_position),
            boresight_direction=np.array(pointing.boresight),
            up_direction=np.array(pointing.up_direction),
            frustum=tuple(np.array(c) for c in pointing.frustum),
            sun_position=np.array(pointing.position(sun_id)),
        )


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

def _vector_line(key, v) -> str:
    return f"{key:<22}= ( {v[0]:1.16e} , {v[1]:1.16e} , {v[2]:1.16e} )\n"


def format_info(record: InfoRecord) -> str:
    lines = [
        f"{START_TIME:<22}= {record.start_time}\n",
        f"{STOP_TIME:<22}= {record.stop_time}\n",
        _vector_line(SPACECRAFT_POSITION, record.spacecraft_position),
        _vector_line(BORESIGHT_DIRECTION, record.boresight_direction),
        _vector_line(UP_DIRECTION, record.up_direction),
    ]
    for key, corner in zip(FRUSTUM_KEYS, record.frustum):
        lines.append(_vector_line(key, corner))
    lines.append(_vector_line(SUN_POSITION_LT, record.sun_position))
    return "".join(lines)


def write_info(path, record: InfoRecord) -> Path:
    out = Path(path)
    with open(out, "w", encoding="utf-8") as f:
        f.write(format_info(record))
    logger.debug("Wrote %s", out)
    return out


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

def _parse_vector(key: str, text: str) -> np.ndarray:
    parts = [p.strip() for p in text.strip().strip("()").split(",")]
    if len(parts) < 3:
        raise ValueError(f"Expected 3 values for {key}, got {text.strip()!r}")
    try:
        return np.array([float(p) for p in parts[:3]])
    except ValueError:
        raise ValueError(f"Bad vector value for {key}: {text.strip()!r}") from None


def read_info(path) -> InfoRecord:
    """
    Read an INFO file. Unknown keys are ignored; frustum corners are
    normalized. Vectors missing from the file stay zero.
    """
    record = InfoRecord()
    frustum = list(record.frustum)

    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            if "=" not in line:
                continue
            key, value = line.split("=", 1)
            key = key.strip()

            if key == START_TIME:
                record.start_time = value.strip()
            elif key == STOP_TIME:
                record.stop_time = value.strip()
            elif key == SPACECRAFT_POSITION:
                record.spacecraft_position = _parse_vector(key, value)
            elif key == SUN_POSITION_LT:
                record.sun_position = _parse_vector(key, value)
            elif key.endswith(BORESIGHT_DIRECTION):
                record.boresight_direction = _parse_vector(key, value)
            elif key.endswith(UP_DIRECTION):
                record.up_direction = _parse_vector(key, value)
            else:
                for i, suffix in enumerate(FRUSTUM_KEYS):
                    if key.endswith(suffix):
                        frustum[i] = normalize(_parse_vector(key, value))
                        break

    record.frustum = tuple(frustum)
    return record
