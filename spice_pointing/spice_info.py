#!/usr/bin/env python3

# spice_info.py
#
# SpiceInfo: the names a pointing provider needs for one mission, kept in a
# small JSON file next to the metakernels, e.g.
#
#   {
#     "scId": "DART",
#     "scFrameName": "DART_SPACECRAFT",
#     "bodyName": "DIDYMOS",
#     "bodyFrameName": "DIDYMOS_FIXED",
#     "bodyNamesToBind": ["DIMORPHOS"],
#     "bodyFramesToBind": ["DIMORPHOS_FIXED"],
#     "instrumentNamesToBind": ["DART_DRACO"],
#     "instrumentFrameNamesToBind": []
#   }

from __future__ import annotations

import json
from dataclasses import dataclass, field

from .provider import PointingProvider, PointingProviderBuilder

_REQUIRED = {
    "sc_name": "scId",
    "body_frame_name": "bodyFrameName",
    "sc_frame_name": "scFrameName",
    "body_name": "bodyName",
}

_LISTS = {
    "body_names_to_bind": "bodyNamesToBind",
    "body_frames_to_bind": "bodyFramesToBind",
    "instrument_names_to_bind": "instrumentNamesToBind",
    "instrument_frame_names_to_bind": "instrumentFrameNamesToBind",
}


@dataclass
class SpiceInfo:
    sc_name: str
    body_frame_name: str
    sc_frame_name: str
    body_name: str
    body_names_to_bind: list = field(default_factory=list)
    body_frames_to_bind: list = field(default_factory=list)
    instrument_names_to_bind: list = field(default_factory=list)
    instrument_frame_names_to_bind: list = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "SpiceInfo":
        kwargs = {}
        for attr, key in _REQUIRED.items():
            value = data.get(key)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"SpiceInfo is missing required string {key!r}")
            kwargs[attr] = value
        for attr, key in _LISTS.items():
            values = data.get(key) or []
            if isinstance(values, str) or not all(isinstance(v, str) for v in values):
                raise ValueError(f"SpiceInfo {key!r} must be a list of strings")
            kwargs[attr] = list(values)
        return cls(**kwargs)

    def to_dict(self) -> dict:
        data = {key: getattr(self, attr) for attr, key in _REQUIRED.items()}
        data.update({key: list(getattr(self, attr)) for attr, key in _LISTS.items()})
        return data

    @classmethod
    def load(cls, path) -> "SpiceInfo":
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"{path}: not valid JSON ({e})") from e
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a JSON object")
        return cls.from_dict(data)

    def save(self, path):
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)
            f.write("\n")

    def builder(self, metakernels, environment_factory=None) -> PointingProviderBuilder:
        """Builder with this record's names bound and instruments included."""
        kwargs = {}
        if environment_factory is not None:
            kwargs["environment_factory"] = environment_factory
        builder = PointingProviderBuilder(
            metakernels, self.body_name, self.body_frame_name, self.sc_name, self.sc_frame_name, **kwargs
        )
        for name in self.body_names_to_bind:
            builder.bind_ephemeris(name)
        for name in self.body_frames_to_bind:
            builder.bind_frame(name)
        if self.instrument_names_to_bind:
            builder.include_instrument(*self.instrument_names_to_bind)
        for frame_name in self.instrument_frame_names_to_bind:
            builder.include_first_instrument_with_frame(frame_name)
        return builder

    def build_provider(self, metakernels, instrument_name: str = "", environment_factory=None) -> PointingProvider:
        """
        Build a provider and select instrument_name as its current
        instrument, or the first included instrument when it is empty.
        """
        provider = self.builder(metakernels, environment_factory).build()
        if not provider.instrument_names:
            raise ValueError("SpiceInfo does not include any instrument")
        provider.current_instrument_name = instrument_name or provider.instrument_names[0]
        return provider
