"""MICA application layer.

Delimited curve import/export, result exporters, project configuration and
the ``mica`` command line tool around the :mod:`mica_core` alignment engine.
"""

from ._version import __version__
from .exporters import exporters_registry
from .io import ExportMode, export_csv, load_curves, write_aligned_x

__all__ = [
    "__version__",
    "ExportMode",
    "export_csv",
    "exporters_registry",
    "load_curves",
    "write_aligned_x",
]
