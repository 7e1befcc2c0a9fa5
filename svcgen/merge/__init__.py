"""Marker-region merge of generated artifacts into existing files."""

from .engine import DEFAULT_CODE_START, MergeEngine
from .markers import (
    CODE_PLACEHOLDER,
    IMPORT_PLACEHOLDER,
    MalformedTargetError,
    MergeError,
    scan_regions,
    split_entries,
)

__all__ = [
    "CODE_PLACEHOLDER",
    "DEFAULT_CODE_START",
    "IMPORT_PLACEHOLDER",
    "MalformedTargetError",
    "MergeEngine",
    "MergeError",
    "scan_regions",
    "split_entries",
]
