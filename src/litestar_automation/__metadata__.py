"""Version and name of the installed ``litestar-automation`` distribution."""

from __future__ import annotations

import importlib.metadata

__all__ = ("__project__", "__version__")

_DISTRIBUTION = "litestar-automation"

__version__ = importlib.metadata.version(_DISTRIBUTION)
"""Installed version."""
__project__ = importlib.metadata.metadata(_DISTRIBUTION)["Name"]
"""Distribution name."""
