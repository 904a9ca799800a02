"""
MULTAs - clinical experience log for medical students.

Experiences are classified into a 12-category clock taxonomy and stored in
a local workbook mirrored to a Google Sheets spreadsheet.
"""

from .config import Settings, get_settings
from .protocols import ConfigurationError, MultasError, RemoteMirrorError, StorageError
from .types import AddResult, AnalysisResult, ClassificationResult, Record, StorageMode

try:
    from importlib.metadata import version

    __version__ = version("multas")
except Exception:
    __version__ = "0.0.0"

__all__ = [
    "AddResult",
    "AnalysisResult",
    "ClassificationResult",
    "ConfigurationError",
    "MultasError",
    "Record",
    "RemoteMirrorError",
    "Settings",
    "StorageError",
    "StorageMode",
    "get_settings",
]
