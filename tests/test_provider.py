#!/usr/bin/env python3
"""
test_provider.py - instrument discovery, builder selection and the
provider's memoization.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor

import numpy.testing as npt
import pytest

from conftest import SPACECRAFT, SPACECRAFT_FRAME, TARGET, TARGET_FRAME
from spice_pointing.kernel_pool import MemoryKernelPool
from spice_pointing.metakernel import KernelLoadError
from spice_pointing.provider import Instrument, PointingProviderBuilder, discover_instruments


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

def test_discover_instruments(pool):
    instruments = discover_instruments(pool)
    assert list(instruments) == ["TEST_CAM", "TEST_WIDE", "TEST_CAM_ALT"]
    assert instruments["TEST_CAM"] == Instrument("TEST_CAM", -1001, "TEST_CAM")
    assert instruments["TEST_WIDE"].frame_name == "TEST_WIDE"
    # the later NAIF_BODY_NAME entry for -1003 wins
    assert instruments["TEST_CAM_ALT"].code == -1003


def test_discover_skips_unnamed(pool, caplog):
    with caplog.at_level(logging.WARNING, logger="spice_pointing"):
        instruments = discover_instruments(pool)
    assert all(i.code != -1004 for i in instruments.values())
    assert "-1004" in caplog.text


def test_discover_duplicate_name_keeps_first(caplog):
    pool = MemoryKernelPool({
        "INS-10_FOV_FRAME": "A_FRAME",
        "INS-10_NAME": "CAM",
        "INS-20_FOV_FRAME": "B_FRAME",
        "INS-20_NAME": "CAM",
    })
    with caplog.at_level(logging.WARNING, logger="spice_pointing"):
        instruments = discover_instruments(pool)
    assert instruments == {"CAM": Instrument("CAM", -10, "A_FRAME")}
    assert "CAM" in caplog.text


def test_discover_empty_pool():
    assert discover_instruments(MemoryKernelPool({})) == {}


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

def test_builder_binds_defaults(builder):
    assert builder.target_id.name == TARGET
    assert builder.target_frame.name == TARGET_FRAME
    assert builder.spacecraft_id.name == SPACECRAFT
    assert builder.spacecraft_frame.name == SPACECRAFT_FRAME
    assert builder.sun_id is builder.bind_ephemeris("sun")
    assert builder.earth_id is builder.bind_ephemeris("EARTH")
    assert len(builder.kernels) == 2


def test_each_builder_has_its_own_identifiers(metakernel, fake_environment):
    a = PointingProviderBuilder(metakernel, TARGET, TARGET_FRAME, SPACECRAFT, SPACECRAFT_FRAME,
                                environment_factory=fake_environment)
    b = PointingProviderBuilder(metakernel, TARGET, TARGET_FRAME, SPACECRAFT, SPACECRAFT_FRAME,
                                environment_factory=fake_environment)
    assert a.sun_id is not b.sun_id
    assert a.sun_id.name == b.sun_id.name


def test_environment_created_once(builder, fake_environment):
    assert fake_environment.instances == []
    builder.include_instrument("TEST_CAM")
    builder.include_all_instruments_with_frame("TEST_CAM")
    builder.build()
    builder.build()
    assert len(fake_environment.instances) == 1
    assert builder.environment() is fake_environment.instances[0]


def test_include_instrument(builder):
    builder.include_instrument("TEST_CAM", "TEST_WIDE")
    assert builder.included_instrument_names == ("TEST_CAM", "TEST_WIDE")


def test_include_unknown_instrument_is_all_or_nothing(builder):
    with pytest.raises(ValueError, match="NO_SUCH_CAM"):
        builder.include_instrument("TEST_CAM", "NO_SUCH_CAM")
    assert builder.included_instrument_names == ()


def test_include_all_instruments(builder):
    builder.include_all_instruments()
    assert set(builder.included_instrument_names) == {"TEST_CAM", "TEST_WIDE", "TEST_CAM_ALT"}


def test_include_by_frame(builder):
    builder.include_all_instruments_with_frame("test_cam")
    assert builder.included_instrument_names == ("TEST_CAM", "TEST_CAM_ALT")


def test_include_first_by_frame(builder):
    builder.include_first_instrument_with_frame("TEST_CAM")
    assert builder.included_instrument_names == ("TEST_CAM",)


def test_include_by_unknown_frame(builder):
    with pytest.raises(ValueError, match="NO_FRAME"):
        builder.include_all_instruments_with_frame("NO_FRAME")
    with pytest.raises(ValueError, match="NO_FRAME"):
        builder.include_first_instrument_with_frame("NO_FRAME")


def test_build_unknown_auxiliary_body(builder):
    builder.bind_ephemeris("PLUTO")
    with pytest.raises(ValueError, match="PLUTO"):
        builder.build()


def test_no_kernels(tmp_path, fake_environment):
    with pytest.raises(KernelLoadError):
        PointingProviderBuilder([], TARGET, TARGET_FRAME, SPACECRAFT, SPACECRAFT_FRAME,
                                environment_factory=fake_environment)
    assert issubclass(KernelLoadError, RuntimeError)


def test_bad_metakernel(tmp_path, fake_environment):
    mk = tmp_path / "bad.tm"
    mk.write_text("\\begindata\nPATH_SYMBOLS = ( 'A' 'B' )\nPATH_VALUES = ( '/x' )\n"
                  "KERNELS_TO_LOAD = ( '$A/k.bsp' )\n\\begintext\n")
    with pytest.raises(KernelLoadError):
        PointingProviderBuilder([mk], TARGET, TARGET_FRAME, SPACECRAFT, SPACECRAFT_FRAME,
                                environment_factory=fake_environment)


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------

def test_single_instrument_is_current(provider):
    assert provider.instrument_names == ("TEST_CAM",)
    assert provider.current_instrument_name == "TEST_CAM"
    assert provider.provide(10.0) is provider.provide(10.0, "TEST_CAM")


def test_zero_instruments(builder):
    provider = builder.build()
    assert provider.instrument_names == ()
    assert provider.current_instrument_name is None
    with pytest.raises(RuntimeError):
        provider.provide(0.0)


def test_no_current_with_several(builder):
    provider = builder.include_instrument("TEST_CAM", "TEST_CAM_ALT").build()
    assert provider.current_instrument_name is None
    with pytest.raises(RuntimeError):
        provider.provide(0.0)
    provider.set_current_instrument_name("TEST_CAM_ALT")
    assert provider.provide(0.0) is provider.provide(0.0, "TEST_CAM_ALT")


def test_set_unknown_current_leaves_state(provider):
    with pytest.raises(ValueError):
        provider.current_instrument_name = "TEST_WIDE"
    with pytest.raises(ValueError):
        provider.set_current_instrument_name("NOPE")
    assert provider.current_instrument_name == "TEST_CAM"


def test_provide_unknown_instrument(provider):
    with pytest.raises(ValueError, match="TEST_WIDE"):
        provider.provide(0.0, "TEST_WIDE")


@pytest.mark.parametrize("time", [math.nan, math.inf, -math.inf])
def test_provide_non_finite_time(provider, time):
    with pytest.raises(ValueError):
        provider.provide(time)


def test_memoization_is_exact(provider):
    a = provider.provide(100.0)
    assert provider.provide(100.0) is a
    assert provider.provide(100) is a
    assert provider.provide(100.0 + 1e-9) is not a


def test_shared_frame_instruments_do_not_alias(builder):
    provider = builder.include_all_instruments_with_frame("TEST_CAM").build()
    cam = provider.provide(0.0, "TEST_CAM")
    alt = provider.provide(0.0, "TEST_CAM_ALT")
    assert cam is not alt
    assert cam.instrument_frame is alt.instrument_frame
    assert abs(cam.boresight @ alt.boresight) < 1.0
    npt.assert_allclose(cam.instrument_rotation, alt.instrument_rotation)


def test_corners_fov_not_implemented(builder):
    provider = builder.include_instrument("TEST_WIDE").build()
    with pytest.raises(NotImplementedError):
        provider.provide(0.0)


def test_concurrent_provide_returns_one_object(provider):
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: provider.provide(7.0), range(32)))
    assert all(r is results[0] for r in results)


def test_accessors(builder, provider):
    assert provider.target_id is builder.target_id
    assert provider.target_frame is builder.target_frame
    assert provider.spacecraft_id is builder.spacecraft_id
    assert provider.spacecraft_frame is builder.spacecraft_frame
    assert provider.sun_id is provider.ephemeris_id("SUN")
    assert provider.earth_id is provider.ephemeris_id("earth")
    assert provider.frame_id("J2000") is provider.ephemeris_provider.inertial_frame
    assert provider.kernel_pool.get_string("INS-1001_NAME") == "TEST_CAM"
    with pytest.raises(ValueError):
        provider.ephemeris_id("NEVER_BOUND")
    with pytest.raises(ValueError):
        provider.frame_id("NEVER_BOUND")
    assert "TEST_CAM" in repr(provider)
