# timeutil.py - UTC strings as they appear in file names and FITS headers,
# converted to something spice.str2et accepts.
#
# Accepted forms:
#   yyyydddhhmmss            2022269230607        (day of year)
#   yyyymmddhhmmss           20220926230607
#   yyyy.mm.dd.hh.mm.ss      2022.09.26.23.06.07
#   yyyy-mm-ddThh:mm:ss[.f]  2022-09-26T23:06:07.123   ('T' or ' ')
#   yyyy-dddThh:mm:ss[.f]    2022-269T23:06:07.123

from __future__ import annotations

import re

import spiceypy as spice

from .kernel_pool import CSPICE_LOCK

_COMPACT_DOY = re.compile(r"^(\d{4})(\d{3})(\d{2})(\d{2})(\d{2})$")
_COMPACT_YMD = re.compile(r"^(\d{4})(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})$")
_DOTTED = re.compile(r"^(\d{4})\.(\d{2})\.(\d{2})\.(\d{2})\.(\d{2})\.(\d{2})$")
_ISO_YMD = re.compile(r"^(\d{4})-(\d{2})-(\d{2})[T ](\d{2}):(\d{2}):(\d{2}(?:\.\d*)?)Z?$")
_ISO_DOY = re.compile(r"^(\d{4})-(\d{3})[T ](\d{2}):(\d{2}):(\d{2}(?:\.\d*)?)Z?$")


def _check(text, month=None, day=None, doy=None, hour=0, minute=0, second=0.0):
    ok = (
        (month is None or 1 <= month <= 12)
        and (day is None or 1 <= day <= 31)
        and (doy is None or 1 <= doy <= 366)
        and 0 <= hour <= 23
        and 0 <= minute <= 59
        and 0 <= second < 61  # leap second
    )
    if not ok:
        raise ValueError(f"Can't parse string as time: {text}")


def _ymd(y, mo, d, h, mi, s):
    return f"{y}-{mo}-{d}T{h}:{mi}:{s}"


def _doy(y, doy, h, mi, s):
    return f"{y}-{doy}T{h}:{mi}:{s}"


def normalize_utc(text: str) -> str:
    """Return text as an ISO calendar or day-of-year UTC string."""
    if text is None:
        raise ValueError("Can't parse string as time: None")
    s = str(text).strip()

    m = _COMPACT_DOY.match(s)
    if m:
        y, doy, h, mi, sec = m.groups()
        _check(s, doy=int(doy), hour=int(h), minute=int(mi), second=float(sec))
        return _doy(y, doy, h, mi, sec)

    m = _COMPACT_YMD.match(s) or _DOTTED.match(s)
    if m:
        y, mo, d, h, mi, sec = m.groups()
        _check(s, month=int(mo), day=int(d), hour=int(h), minute=int(mi), second=float(sec))
        return _ymd(y, mo, d, h, mi, sec)

    m = _ISO_YMD.match(s)
    if m:
        y, mo, d, h, mi, sec = m.groups()
        _check(s, month=int(mo), day=int(d), hour=int(h), minute=int(mi), second=float(sec))
        return _ymd(y, mo, d, h, mi, sec)

    m = _ISO_DOY.match(s)
    if m:
        y, doy, h, mi, sec = m.groups()
        _check(s, doy=int(doy), hour=int(h), minute=int(mi), second=float(sec))
        return _doy(y, doy, h, mi, sec)

    raise ValueError(f"Can't parse string as time: {text}")


def utc_to_et(text: str, environment=None) -> float:
    """
    Ephemeris time for a UTC string. Needs a leapseconds kernel: the one in
    environment when given, otherwise whatever CSPICE has loaded.
    """
    text = normalize_utc(text)
    with CSPICE_LOCK:
        if environment is not None:
            environment.activate()
        return float(spice.str2et(text))


def et_to_utc(et: float, precision: int = 3, environment=None) -> str:
    """ISO calendar UTC string for et; see utc_to_et for environment."""
    with CSPICE_LOCK:
        if environment is not None:
            environment.activate()
        return spice.et2utc(float(et), "ISOC", precision)
