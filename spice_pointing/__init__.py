# spice_pointing - instrument pointing from SPICE kernels.
#
# Build a provider from metakernels, then ask it for the pointing of an
# instrument at an ephemeris time; every vector comes back in the target
# body-fixed frame.

from .fov import InstrumentFov, RectangularCone, extract_fov, rectangular_cone, reorder_corners
from .ids import EphemerisId, FrameId, IdRegistry
from .kernel_pool import KernelPool, MemoryKernelPool, SpiceKernelPool
from .metakernel import KernelLoadError, load_text_kernel, parse_text_kernel, read_metakernel, write_metakernel
from .pointing import InstrumentPointing
from .provider import Instrument, PointingProvider, PointingProviderBuilder, discover_instruments
from .spice_info import SpiceInfo

__version__ = "0.1.0"

__all__ = [
    "EphemerisId",
    "FrameId",
    "IdRegistry",
    "Instrument",
    "InstrumentFov",
    "InstrumentPointing",
    "KernelLoadError",
    "KernelPool",
    "MemoryKernelPool",
    "PointingProvider",
    "PointingProviderBuilder",
    "RectangularCone",
    "SpiceInfo",
    "SpiceKernelPool",
    "discover_instruments",
    "extract_fov",
    "load_text_kernel",
    "parse_text_kernel",
    "read_metakernel",
    "rectangular_cone",
    "reorder_corners",
    "write_metakernel",
]
