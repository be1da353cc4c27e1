"""WebSpec: compile declarative web-project specs into guarded execution plans.

The package root stays import-light; submodules are loaded on demand.
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
