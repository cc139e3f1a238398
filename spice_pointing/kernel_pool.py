#!/usr/bin/env python3

# kernel_pool.py
#
# Read-only access to SPICE kernel pool variables (the key = value(s) table
# loaded from text kernels such as IKs and FKs).
#
# KernelPool holds the typed accessors (get_doubles / get_integers /
# get_strings and their scalar forms). Subclasses only know how to look up
# a raw variable:
#   - SpiceKernelPool   reads the CSPICE pool through spiceypy
#   - MemoryKernelPool  wraps a dict, e.g. a parsed text kernel
#
# CSPICE is not re-entrant and its pool is process-global. Every call into
# it, together with the activation of the kernel set it needs, runs under
# CSPICE_LOCK.

from __future__ import annotations

import fnmatch
import threading
from typing import Mapping, Optional

import spiceypy as spice
from spiceypy.utils.exceptions import NotFoundError

NUMERIC = "N"
CHARACTER = "C"

_TYPE_LABELS = {NUMERIC: "numeric", CHARACTER: "character"}

CSPICE_LOCK = threading.RLock()


class KernelPool:
    """
    Typed, validated access to kernel pool variables.

    Every accessor takes the variable name and:
      - size: expected number of values (checked when values are found)
      - required: raise ValueError when the variable is missing; otherwise
        return None for a missing variable.
    A variable of the wrong type is always a ValueError.
    """

    def keywords(self, pattern: str = "*") -> list[str]:
        """Variable names matching a SPICE template ('*' and '%' wildcards)."""
        raise NotImplementedError

    def _lookup(self, key: str):
        """Return (type, values) for key, or None if it is not in the pool."""
        raise NotImplementedError

    def has_key(self, key: str) -> bool:
        return self._lookup(key) is not None

    def _values(self, key: str, value_type: str, size: Optional[int], required: bool):
        found = self._lookup(key)
        if found is None:
            if required:
                raise ValueError(f"Kernel pool is missing values for key {key}")
            return None

        found_type, values = found
        if found_type != value_type:
            raise ValueError(
                f"Kernel pool does not have {_TYPE_LABELS[value_type]} values for key {key}"
            )
        if size is not None and len(values) != size:
            raise ValueError(
                f"Kernel pool has {len(values)} values, not expected number {size} for key {key}"
            )
        return list(values)

    # -- vectors --------------------------------------------------------------

    def get_doubles(self, key: str, size: Optional[int] = None, required: bool = True):
        values = self._values(key, NUMERIC, size, required)
        return None if values is None else [float(v) for v in values]

    def get_integers(self, key: str, size: Optional[int] = None, required: bool = True):
        # The pool stores numbers as doubles.
        values = self._values(key, NUMERIC, size, required)
        if values is None:
            return None
        for v in values:
            if v != int(v):
                raise ValueError(f"Kernel pool value {v} is not an integer for key {key}")
        return [int(v) for v in values]

    def get_strings(self, key: str, size: Optional[int] = None, required: bool = True):
        values = self._values(key, CHARACTER, size, required)
        return None if values is None else [str(v) for v in values]

    # -- scalars --------------------------------------------------------------

    def get_double(self, key: str, required: bool = True) -> Optional[float]:
        values = self.get_doubles(key, 1, required)
        return None if values is None else values[0]

    def get_integer(self, key: str, required: bool = True) -> Optional[int]:
        values = self.get_integers(key, 1, required)
        return None if values is None else values[0]

    def get_string(self, key: str, required: bool = True) -> Optional[str]:
        values = self.get_strings(key, 1, required)
        return None if values is None else values[0]


class SpiceKernelPool(KernelPool):
    """
    View of the CSPICE kernel pool. When tied to an environment, that
    environment is made the loaded one before every read.
    """

    ROOM = 500

    def __init__(self, environment=None):
        self._environment = environment

    def _activate(self):
        if self._environment is not None:
            self._environment.activate()

    def keywords(self, pattern: str = "*") -> list[str]:
        names = []
        start = 0
        with CSPICE_LOCK:
            self._activate()
            while True:
                try:
                    batch = spice.gnpool(pattern, start, self.ROOM)
                except NotFoundError:
                    break
                names.extend(batch)
                if len(batch) < self.ROOM:
                    break
                start += len(batch)
        return names

    def _lookup(self, key: str):
        with CSPICE_LOCK:
            self._activate()
            try:
                size, value_type = spice.dtpool(key)
            except NotFoundError:
                return None
            if value_type == NUMERIC:
                return NUMERIC, [float(v) for v in spice.gdpool(key, 0, size)]
            return CHARACTER, list(spice.gcpool(key, 0, size))


class MemoryKernelPool(KernelPool):
    """
    Kernel pool held in memory.

    values maps variable names to a scalar or a list; a variable whose values
    are all strings is character-typed, otherwise numeric.
    """

    def __init__(self, values: Mapping[str, object]):
        self._pool = {}
        for key, value in values.items():
            if isinstance(value, (list, tuple)):
                items = list(value)
            else:
                items = [value]
            if not items:
                continue
            if all(isinstance(v, str) for v in items):
                self._pool[key] = (CHARACTER, items)
            elif any(isinstance(v, str) for v in items):
                raise ValueError(f"Kernel variable {key} mixes strings and numbers")
            else:
                self._pool[key] = (NUMERIC, [float(v) for v in items])

    def keywords(self, pattern: str = "*") -> list[str]:
        template = pattern.replace("%", "?")
        return [k for k in self._pool if fnmatch.fnmatchcase(k, template)]

    def _lookup(self, key: str):
        return self._pool.get(key)

    def __len__(self):
        return len(self._pool)
