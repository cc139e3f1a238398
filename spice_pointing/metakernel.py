#!/usr/bin/env python3

# metakernel.py
#
# Text-kernel parsing and metakernel (.tm / .mk) handling.
#
# A metakernel is a text kernel whose data section lists other kernels:
#
#   \begindata
#      PATH_SYMBOLS    = ( 'ROOT' )
#      PATH_VALUES     = ( '/data/dart/spice' )
#      KERNELS_TO_LOAD = ( '$ROOT/lsk/naif0012.tls'
#                          '$ROOT/spk/dart.bsp' )
#   \begintext
#
# read_metakernel() expands the path symbols and returns the kernel files in
# load order; write_metakernel() produces one with a single ROOT symbol.

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from .kernel_pool import MemoryKernelPool

logger = logging.getLogger(__name__)


class KernelLoadError(RuntimeError):
    """Kernels could not be listed or loaded (bad metakernel, no kernels, ...)."""


# ---------------------------------------------------------------------------
# Text kernel parsing
# ---------------------------------------------------------------------------

_BEGIN_DATA = re.compile(r"^\s*\\begindata\b", re.IGNORECASE)
_BEGIN_TEXT = re.compile(r"^\s*\\begintext\b", re.IGNORECASE)

_TOKEN = re.compile(
    r"""\s*(?:
        (?P<str>'(?:[^']|'')*')
      | (?P<op>\+=|=)
      | (?P<lp>\()
      | (?P<rp>\))
      | (?P<comma>,)
      | (?P<word>[^\s=(),']+)
    )""",
    re.VERBOSE,
)


def _data_sections(text: str) -> str:
    lines = []
    in_data = False
    for line in text.splitlines():
        if _BEGIN_DATA.match(line):
            in_data = True
            continue
        if _BEGIN_TEXT.match(line):
            in_data = False
            continue
        if in_data:
            lines.append(line)
    return "\n".join(lines)


def _tokens(data: str):
    pos = 0
    end = len(data.rstrip())
    while pos < end:
        m = _TOKEN.match(data, pos)
        if m is None or m.end() == pos:
            raise ValueError(f"Cannot parse text kernel near {data[pos:pos + 40]!r}")
        pos = m.end()
        yield m.lastgroup, m.group(m.lastgroup)


def _convert(kind: str, token: str, name: str):
    if kind == "str":
        return token[1:-1].replace("''", "'")
    if token.startswith("@"):
        # Calendar dates are kept as text; nothing here needs them as ET.
        return token
    try:
        return float(token.replace("D", "E").replace("d", "e"))
    except ValueError:
        raise ValueError(f"Bad value {token!r} for kernel variable {name}") from None


def parse_text_kernel(text: str) -> dict[str, list]:
    """
    Parse the data sections of a SPICE text kernel into {name: [values]}.

    Supports '=' and '+=' assignments, scalar and parenthesized values
    (possibly spanning lines, commas optional), quoted strings with ''
    escapes and numbers with D or E exponents.
    """
    pool: dict[str, list] = {}
    tokens = _tokens(_data_sections(text))

    for kind, name in tokens:
        if kind != "word":
            raise ValueError(f"Expected a variable name, found {name!r}")

        kind, op = next(tokens, (None, None))
        if name.endswith("+") and op == "=":
            # "NAME+= ..." written without a space
            name, op = name[:-1], "+="
        if kind != "op":
            raise ValueError(f"Expected '=' or '+=' after {name}")

        values = []
        kind, token = next(tokens, (None, None))
        if kind == "lp":
            for kind, token in tokens:
                if kind == "rp":
                    break
                if kind == "comma":
                    continue
                if kind not in ("str", "word"):
                    raise ValueError(f"Unexpected {token!r} in values of {name}")
                values.append(_convert(kind, token, name))
            else:
                raise ValueError(f"Unterminated value list for {name}")
        elif kind in ("str", "word"):
            values.append(_convert(kind, token, name))
        else:
            raise ValueError(f"Missing value for {name}")

        if op == "=":
            pool[name] = values
        else:
            pool.setdefault(name, []).extend(values)

    return pool


def load_text_kernel(path) -> MemoryKernelPool:
    """Parse a text kernel file into an in-memory kernel pool."""
    with open(path, "r", encoding="utf-8", errors="ignore") as f:
        return MemoryKernelPool(parse_text_kernel(f.read()))


# ---------------------------------------------------------------------------
# Metakernels
# ---------------------------------------------------------------------------

def _join_continued(names: list[str]) -> list[str]:
    # A value ending in '+' continues in the next value.
    result = []
    pending = ""
    for name in names:
        if name.endswith("+"):
            pending += name[:-1]
            continue
        result.append(pending + name)
        pending = ""
    if pending:
        result.append(pending)
    return result


def read_metakernel(path) -> list[Path]:
    """
    Return the kernel files listed by a metakernel, in load order.

    $SYMBOL prefixes are replaced using PATH_SYMBOLS / PATH_VALUES; paths
    that are still relative are taken relative to the metakernel's own
    directory.
    """
    mk_path = Path(path)
    try:
        with open(mk_path, "r", encoding="utf-8", errors="ignore") as f:
            values = parse_text_kernel(f.read())
    except OSError as e:
        raise KernelLoadError(f"Error reading kernel list from {mk_path}: {e}") from e
    except ValueError as e:
        raise KernelLoadError(f"Error parsing metakernel {mk_path}: {e}") from e

    symbols = [str(s) for s in values.get("PATH_SYMBOLS", [])]
    path_values = [str(v) for v in values.get("PATH_VALUES", [])]
    if len(symbols) != len(path_values):
        raise KernelLoadError(
            f"Metakernel {mk_path} has {len(symbols)} PATH_SYMBOLS "
            f"but {len(path_values)} PATH_VALUES"
        )
    substitutions = {s.upper(): v for s, v in zip(symbols, path_values)}

    names = values.get("KERNELS_TO_LOAD")
    if not names:
        raise KernelLoadError(f"Metakernel {mk_path} has no KERNELS_TO_LOAD")

    def expand(m):
        symbol = m.group(1).upper()
        if symbol not in substitutions:
            raise KernelLoadError(f"Undefined path symbol ${m.group(1)} in metakernel {mk_path}")
        return substitutions[symbol]

    kernels = []
    for name in _join_continued([str(n) for n in names]):
        kernel = Path(re.sub(r"\$(\w+)", expand, name))
        if not kernel.is_absolute():
            kernel = mk_path.parent / kernel
        if not kernel.exists():
            logger.warning("Kernel listed in %s not found: %s", mk_path, kernel)
        kernels.append(kernel)

    logger.debug("Metakernel %s lists %d kernels", mk_path, len(kernels))
    return kernels


def _common_root(kernels: list[Path]):
    if not kernels:
        return None
    try:
        return Path(os.path.commonpath([str(k.parent) for k in kernels]))
    except ValueError:
        # kernels on different drives
        return None


def write_metakernel(path, kernels) -> Path:
    """
    Write a metakernel listing kernels under a single ROOT symbol, set to
    the longest directory all kernels have in common.
    """
    kernels = [Path(k).absolute() for k in kernels]
    if not kernels:
        raise ValueError("Cannot write a metakernel without kernels")
    root = _common_root(kernels)

    lines = ["\\begindata", ""]
    if root is not None:
        lines += [
            "   PATH_SYMBOLS = ( 'ROOT' )",
            f"   PATH_VALUES  = ( '{root.as_posix()}' )",
            "",
        ]
    lines.append("   KERNELS_TO_LOAD = (")
    for i, kernel in enumerate(kernels):
        if root is not None:
            entry = "$ROOT/" + kernel.relative_to(root).as_posix()
        else:
            entry = kernel.as_posix()
        comma = "," if i < len(kernels) - 1 else ""
        lines.append(f"                  '{entry}'{comma}")
    lines += ["   )", "", "\\begintext", ""]

    out = Path(path)
    with open(out, "w", encoding="utf-8") as f:
        f.write("\n".join(lines))
    return out
