#!/usr/bin/env python3
"""
test_timeutil.py - UTC string normalization (no kernels needed).
"""

import pytest

from spice_pointing.timeutil import normalize_utc


@pytest.mark.parametrize("text, expected", [
    ("2022269231423", "2022-269T23:14:23"),
    ("20220926231423", "2022-09-26T23:14:23"),
    ("2022.09.26.23.14.23", "2022-09-26T23:14:23"),
    ("2022-09-26T23:14:23.123", "2022-09-26T23:14:23.123"),
    ("2022-09-26 23:14:23", "2022-09-26T23:14:23"),
    ("2022-09-26T23:14:23.5Z", "2022-09-26T23:14:23.5"),
    ("2022-269T23:14:23.250", "2022-269T23:14:23.250"),
    ("  20161231235960 ", "2016-12-31T23:59:60"),
])
def test_normalize_utc(text, expected):
    assert normalize_utc(text) == expected


@pytest.mark.parametrize("text", [
    "",
    None,
    "yesterday",
    "202209262314",
    "20221326231423",
    "2022400231423",
    "2022-09-26T24:00:00",
    "2022-09-26T23:61:00",
    "2022.09.26 23.14.23",
])
def test_normalize_utc_rejects(text):
    with pytest.raises(ValueError):
        normalize_utc(text)
