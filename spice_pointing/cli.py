#!/usr/bin/env python3

# cli.py
# Usage: spice-pointing --mk <meta-kernel.tm>[,<more.tm>] --config <SpiceInfo.json> [times...]
#        spice-pointing --mk dart.tm --target DIDYMOS --target-frame DIDYMOS_FIXED \
#                       --spacecraft DART --spacecraft-frame DART_SPACECRAFT \
#                       --instrument DART_DRACO 2022-09-26T23:14:23
#
# Computes instrument pointing from SPICE kernels and writes view JSON
# (nm, ti, et, cv, up, su, sc, fr) with every vector in the target frame:
#   cv  unit boresight
#   up  unit "up" direction of the image
#   su  Sun position relative to the target [km]
#   sc  spacecraft position relative to the target [km]
#   fr  four unit frustum corner rays
#
# Times come from the command line (UTC strings or --et), from FITS headers
# (--fits, keyword COR_UTC by default) or from PDS3 labels (--label,
# START_TIME). --info-dir also writes one INFO file per time.

from __future__ import annotations

import argparse
import datetime
import json
import logging
import os
import sys

import pvl
from astropy.io import fits
from spiceypy.utils.exceptions import SpiceyError

from .info_file import InfoRecord, write_info
from .log import get_logger
from .provider import PointingProviderBuilder
from .spice_info import SpiceInfo
from .timeutil import et_to_utc, normalize_utc, utc_to_et

# ---------------------------------------------------------------------------
# Time sources
# ---------------------------------------------------------------------------

def split_list(values) -> list[str]:
    """Flatten repeated and comma-separated option values."""
    result = []
    for value in values or []:
        result.extend(v.strip() for v in value.split(",") if v.strip())
    return result


def time_from_fits(path: str, key: str = "COR_UTC") -> str:
    header = fits.getheader(path, 0)
    if key not in header:
        raise KeyError(f"{path}: no {key} keyword in primary header")
    return str(header[key]).strip()


def time_from_label(path: str, key: str = "START_TIME") -> str:
    label = pvl.load(path)
    if key not in label:
        raise KeyError(f"{path}: no {key} in label")
    value = label[key]
    if isinstance(value, datetime.datetime):
        return value.replace(tzinfo=None).isoformat()
    return str(value).strip()


def collect_times(args) -> list[dict]:
    """
    One record per requested time: nm (name), ti (UTC string or None) and
    et (float or None). UTC strings are converted once kernels are loaded.
    """
    records = []
    for text in args.times:
        records.append({"nm": text, "ti": normalize_utc(text), "et": None})
    for et in args.et:
        records.append({"nm": f"et{et:.3f}", "ti": None, "et": float(et)})
    for path in args.fits:
        try:
            ti = normalize_utc(time_from_fits(path, args.fits_key))
        except (OSError, KeyError, ValueError) as e:
            sys.stderr.write(f"[WARN] {path}: {e}\n")
            continue
        records.append({"nm": os.path.splitext(os.path.basename(path))[0], "ti": ti, "et": None})
    for path in args.label:
        try:
            ti = normalize_utc(time_from_label(path))
        except Exception as e:
            sys.stderr.write(f"[WARN] {path}: {e}\n")
            continue
        records.append({"nm": os.path.splitext(os.path.basename(path))[0], "ti": ti, "et": None})
    return records


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------

def compute_view(provider, record: dict, instrument_name: str = None) -> dict:
    """
    View fields for one time. record["et"] must be set.
    """
    pointing = provider.provide(record["et"], instrument_name)
    return {
        "nm": record["nm"],
        "ti": record["ti"],
        "et": pointing.time,
        "cv": pointing.boresight.tolist(),
        "up": pointing.up_direction.tolist(),
        "su": pointing.position(provider.sun_id).tolist(),
        "sc": pointing.sc_position.tolist(),
        "fr": [c.tolist() for c in pointing.frustum],
    }


def make_builder(args, environment_factory=None) -> PointingProviderBuilder:
    metakernels = split_list(args.meta_kernel)
    kwargs = {}
    if environment_factory is not None:
        kwargs["environment_factory"] = environment_factory
    if args.config:
        info = SpiceInfo.load(args.config)
        builder = info.builder(metakernels, **kwargs)
    else:
        missing = [
            opt for opt, value in (
                ("--target", args.target),
                ("--target-frame", args.target_frame),
                ("--spacecraft", args.spacecraft),
                ("--spacecraft-frame", args.spacecraft_frame),
            ) if not value
        ]
        if missing:
            raise ValueError(f"without --config, {', '.join(missing)} must be given")
        builder = PointingProviderBuilder(
            metakernels, args.target, args.target_frame, args.spacecraft, args.spacecraft_frame, **kwargs
        )

    instruments = split_list(args.instrument)
    if instruments:
        builder.include_instrument(*instruments)
    for frame_name in split_list(args.instrument_frame):
        builder.include_all_instruments_with_frame(frame_name)
    if not builder.included_instrument_names:
        builder.include_all_instruments()
    return builder


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="spice-pointing",
        description=(
            "Compute instrument pointing (cv, up, su, sc, fr) in a target "
            "body-fixed frame from SPICE kernels."
        ),
    )
    ap.add_argument("times", nargs="*", help="UTC times (ISO, DOY or compact yyyymmddhhmmss forms)")
    ap.add_argument(
        "--mk",
        "--meta-kernel",
        dest="meta_kernel",
        action="append",
        required=True,
        help="SPICE meta-kernel(s) (.tm). Repeat or comma-separate for several.",
    )
    ap.add_argument("--config", help="SpiceInfo JSON naming target, spacecraft and instruments")
    ap.add_argument("--target", help="Target body name (e.g. DIDYMOS)")
    ap.add_argument("--target-frame", help="Target body-fixed frame (e.g. DIDYMOS_FIXED)")
    ap.add_argument("--spacecraft", help="Spacecraft name (e.g. DART)")
    ap.add_argument("--spacecraft-frame", help="Spacecraft frame (e.g. DART_SPACECRAFT)")
    ap.add_argument(
        "--instrument",
        action="append",
        default=[],
        help="Instrument name from the IK (repeatable). Default: all instruments.",
    )
    ap.add_argument(
        "--instrument-frame",
        action="append",
        default=[],
        help="Include every instrument whose FOV is defined in this frame (repeatable)",
    )
    ap.add_argument("--use", dest="use_instrument", help="Instrument to compute pointing for (default: first included)")
    ap.add_argument("--et", type=float, action="append", default=[], help="Ephemeris time (TDB seconds past J2000)")
    ap.add_argument("--fits", action="append", default=[], help="FITS image whose header holds the time")
    ap.add_argument("--fits-key", default="COR_UTC", help="FITS header keyword with the UTC time (default: COR_UTC)")
    ap.add_argument("--label", action="append", default=[], help="PDS3 label whose START_TIME is used")
    ap.add_argument("--out", default="views.json", help="Output JSON file (default: views.json)")
    ap.add_argument("--info-dir", help="Also write <nm>.INFO files into this directory")
    ap.add_argument("--list-instruments", action="store_true", help="List instruments found in the kernels and exit")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return ap


def main(argv=None, environment_factory=None) -> int:
    args = build_parser().parse_args(argv)
    logger = get_logger()
    if args.verbose:
        logger.setLevel(logging.DEBUG)

    try:
        builder = make_builder(args, environment_factory)
    except (OSError, ValueError, RuntimeError) as e:
        sys.stderr.write(f"ERROR: {e}\n")
        return 2

    if args.list_instruments:
        for name, instrument in builder.instruments().items():
            print(f"{name:<24} {instrument.code:>10}   {instrument.frame_name}")
        return 0

    try:
        records = collect_times(args)
        provider = builder.build()
    except (ValueError, RuntimeError) as e:
        sys.stderr.write(f"ERROR: {e}\n")
        return 2
    if not records:
        sys.stderr.write("ERROR: no times given\n")
        return 2

    if not provider.instrument_names:
        sys.stderr.write("ERROR: no instruments selected\n")
        return 2
    instrument_name = args.use_instrument or provider.instrument_names[0]
    if instrument_name not in provider.instrument_names:
        sys.stderr.write(f"ERROR: instrument {instrument_name} is not included\n")
        return 2

    if args.info_dir:
        os.makedirs(args.info_dir, exist_ok=True)

    environment = builder.environment()
    views = []
    for count, record in enumerate(records, 1):
        try:
            if record["et"] is None:
                record["et"] = utc_to_et(record["ti"], environment=environment)
            if record["ti"] is None:
                record["ti"] = et_to_utc(record["et"], environment=environment)

            view = compute_view(provider, record, instrument_name)
            views.append(view)
            print(f"[OK {count}] {view['nm']}   {view['ti']}   {instrument_name}")

            if args.info_dir:
                pointing = provider.provide(record["et"], instrument_name)
                info = InfoRecord.from_pointing(pointing, provider.sun_id, record["ti"])
                write_info(os.path.join(args.info_dir, f"{view['nm']}.INFO"), info)
        except (ValueError, RuntimeError, SpiceyError) as e:
            sys.stderr.write(f"[WARN] {record['nm']}: {e}\n")

    views.sort(key=lambda v: v["et"])
    with open(args.out, "w", encoding="utf-8") as f:
        json.dump(views, f, separators=(",", ":"))
    print(f"Wrote {len(views)} views to {args.out}")
    return 0 if views else 1


if __name__ == "__main__":
    sys.exit(main())
