"""Identifier helpers shared by the extractor, renderer and merge engine."""

from __future__ import annotations

import re
from pathlib import PurePosixPath

_WORD_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_INVALID_CHARS = re.compile(r"[^0-9a-zA-Z_]+")


def snake_case(name: str) -> str:
    """Convert ``GetByID`` style identifiers to ``get_by_id``."""
    cleaned = _INVALID_CHARS.sub("_", name.strip())
    split = _WORD_BOUNDARY.sub("_", cleaned)
    return re.sub(r"_+", "_", split).strip("_").lower()


def constant_case(name: str) -> str:
    return snake_case(name).upper()


def pascal_case(name: str) -> str:
    return "".join(part.capitalize() for part in snake_case(name).split("_") if part)


def method_key(service: str, method: str) -> str:
    """Key used for logic-stub and error-code entries."""
    return f"{service}.{method}"


def route_key(verb: str, path: str) -> str:
    """Key used for router-wiring entries."""
    return f"{verb.upper()} {path}"


def stub_function_name(service: str, method: str) -> str:
    return f"{snake_case(service)}_{snake_case(method)}"


def error_code_name(service: str, method: str) -> str:
    return f"{constant_case(service)}_{constant_case(method)}"


def module_stem(source_file: str) -> str:
    """Python module name used for files generated from ``source_file``."""
    stem = PurePosixPath(source_file or "service.proto").stem
    return snake_case(stem) or stem


def dotted(*parts: str) -> str:
    """Join non-empty module path fragments with dots."""
    pieces: list[str] = []
    for part in parts:
        if not part:
            continue
        pieces.extend(segment for segment in re.split(r"[./\\]+", part) if segment)
    return ".".join(pieces)


__all__ = [
    "constant_case",
    "dotted",
    "error_code_name",
    "method_key",
    "module_stem",
    "pascal_case",
    "route_key",
    "snake_case",
    "stub_function_name",
]
