"""Package utilities for mesh-fairing.

The fairing core lives in top-level packages like `geometry/`, `runtime/`
and `parameters/`. This package exposes the version and the one-call entry
point `fair(mesh, vertices, continuity)`.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from runtime.fairing import Fairer, FairingReport, FairingState, fair

try:
    __version__ = version("mesh-fairing")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

__all__ = ["Fairer", "FairingReport", "FairingState", "fair", "__version__"]
