# ids.py - interned ephemeris (body) and frame identifiers.
#
# Identifiers compare by identity. A registry hands out exactly one object
# per name, so two lookups of "SUN" through the same registry are the same
# object, while an identifier from another registry never matches.

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, eq=False)
class EphemerisId:
    """Handle for a body or spacecraft known to the ephemeris provider."""
    name: str


@dataclass(frozen=True, eq=False)
class FrameId:
    """Handle for a reference frame known to the ephemeris provider."""
    name: str


def _key(name: str) -> str:
    if name is None:
        raise ValueError("Identifier name must not be None")
    key = str(name).strip().upper()
    if not key:
        raise ValueError("Identifier name must not be empty")
    return key


class IdRegistry:
    """
    Name -> identifier interning tables for one provider session.

    SPICE names are case-insensitive, so names are interned upper-cased.
    """

    def __init__(self):
        self._ephemerides: dict[str, EphemerisId] = {}
        self._frames: dict[str, FrameId] = {}

    def ephemeris(self, name: str) -> EphemerisId:
        key = _key(name)
        result = self._ephemerides.get(key)
        if result is None:
            result = EphemerisId(key)
            self._ephemerides[key] = result
        return result

    def frame(self, name: str) -> FrameId:
        key = _key(name)
        result = self._frames.get(key)
        if result is None:
            result = FrameId(key)
            self._frames[key] = result
        return result

    def lookup_ephemeris(self, name: str) -> EphemerisId:
        """Return an already interned body identifier; ValueError if unbound."""
        try:
            return self._ephemerides[_key(name)]
        except KeyError:
            raise ValueError(f"Ephemeris {name!r} has not been bound") from None

    def lookup_frame(self, name: str) -> FrameId:
        """Return an already interned frame identifier; ValueError if unbound."""
        try:
            return self._frames[_key(name)]
        except KeyError:
            raise ValueError(f"Frame {name!r} has not been bound") from None

    def ephemeris_ids(self) -> tuple[EphemerisId, ...]:
        return tuple(self._ephemerides.values())

    def frame_ids(self) -> tuple[FrameId, ...]:
        return tuple(self._frames.values())

    def copy(self) -> "IdRegistry":
        """Independent registry holding the same identifier objects."""
        other = IdRegistry()
        other._ephemerides = dict(self._ephemerides)
        other._frames = dict(self._frames)
        return other
