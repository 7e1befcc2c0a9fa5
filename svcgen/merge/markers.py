"""Marker constants and the strict region scanner used by the merge engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

MARKER_PREFIX = "# svcgen:"
BEGIN_FMT = "# svcgen:begin:{key}"
END_FMT = "# svcgen:end:{key}"
ENTRY_FMT = "# svcgen:entry {key}"
IMPORT_PLACEHOLDER = "# svcgen:import-placeholder"
CODE_PLACEHOLDER = "__svcgen_code__"

IMPORTS_REGION = "imports"
ENTRIES_REGION = "entries"
REQUIRED_REGIONS: Tuple[str, ...] = (IMPORTS_REGION, ENTRIES_REGION)

_BEGIN_TOKEN = "# svcgen:begin:"
_END_TOKEN = "# svcgen:end:"
_ENTRY_TOKEN = "# svcgen:entry "


class MergeError(RuntimeError):
    """Base class for merge failures."""


class MalformedTargetError(MergeError):
    """Raised when a target file's markers cannot be reasoned about."""

    def __init__(
        self,
        detail: str,
        *,
        line: Optional[int] = None,
        target: Optional[str] = None,
        kind: Optional[str] = None,
    ) -> None:
        self.detail = detail
        self.line = line
        self.target = target
        self.kind = kind
        super().__init__(self._format())

    def with_context(self, *, target: Optional[str], kind: Optional[str]) -> "MalformedTargetError":
        return MalformedTargetError(self.detail, line=self.line, target=target, kind=kind)

    def _format(self) -> str:
        where = self.target or "target"
        if self.line is not None:
            where = f"{where}:{self.line}"
        prefix = f"[{self.kind}] " if self.kind else ""
        return f"{prefix}{where}: {self.detail}"


@dataclass
class Region:
    """A generator-owned block delimited by begin/end marker lines."""

    name: str
    begin: int
    end: int

    def body(self, lines: Sequence[str]) -> List[str]:
        return list(lines[self.begin + 1 : self.end])


@dataclass
class Entry:
    """One keyed entry inside the entries region, sentinel line included."""

    key: str
    lines: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(self.lines)


def marker_text(line: str) -> str:
    return line.strip()


def is_marker(line: str) -> bool:
    return marker_text(line).startswith(MARKER_PREFIX)


def entry_key(line: str) -> Optional[str]:
    stripped = marker_text(line)
    if stripped.startswith(_ENTRY_TOKEN):
        return stripped[len(_ENTRY_TOKEN) :].strip()
    return None


def scan_regions(
    lines: Sequence[str], required: Iterable[str] = REQUIRED_REGIONS
) -> Dict[str, Region]:
    """Locate every region, rejecting missing, duplicated or misnested anchors."""
    regions: Dict[str, Region] = {}
    open_name: Optional[str] = None
    open_line = -1
    for index, line in enumerate(lines):
        stripped = marker_text(line)
        if not stripped.startswith(MARKER_PREFIX):
            continue
        lineno = index + 1
        if stripped.startswith(_BEGIN_TOKEN):
            name = stripped[len(_BEGIN_TOKEN) :].strip()
            if open_name is not None:
                raise MalformedTargetError(
                    f"region '{name}' begins inside open region '{open_name}'", line=lineno
                )
            if name in regions:
                raise MalformedTargetError(f"duplicated begin marker for region '{name}'", line=lineno)
            open_name, open_line = name, index
        elif stripped.startswith(_END_TOKEN):
            name = stripped[len(_END_TOKEN) :].strip()
            if open_name is None:
                if name in regions:
                    raise MalformedTargetError(f"duplicated end marker for region '{name}'", line=lineno)
                raise MalformedTargetError(f"end marker for region '{name}' has no begin", line=lineno)
            if name != open_name:
                raise MalformedTargetError(
                    f"end marker for region '{name}' interleaves open region '{open_name}'", line=lineno
                )
            regions[name] = Region(name=name, begin=open_line, end=index)
            open_name = None
        elif stripped.startswith(_ENTRY_TOKEN):
            if open_name != ENTRIES_REGION:
                raise MalformedTargetError("entry marker outside the entries region", line=lineno)
        elif stripped == IMPORT_PLACEHOLDER:
            if open_name != IMPORTS_REGION:
                raise MalformedTargetError("import placeholder outside the imports region", line=lineno)
        else:
            raise MalformedTargetError(f"unrecognised marker '{stripped}'", line=lineno)
    if open_name is not None:
        raise MalformedTargetError(f"region '{open_name}' is never closed", line=open_line + 1)
    for name in required:
        if name not in regions:
            raise MalformedTargetError(f"missing region '{name}'")
    return regions


def split_entries(region: Region, lines: Sequence[str]) -> Tuple[List[str], List[Entry]]:
    """Split an entries region body into its preamble and keyed entries."""
    preamble: List[str] = []
    entries: List[Entry] = []
    seen: Dict[str, int] = {}
    current: Optional[Entry] = None
    for offset, line in enumerate(region.body(lines)):
        key = entry_key(line)
        if key is not None:
            lineno = region.begin + offset + 2
            if not key:
                raise MalformedTargetError("entry marker without a key", line=lineno)
            if key in seen:
                raise MalformedTargetError(
                    f"duplicated entry '{key}' (first seen at line {seen[key]})", line=lineno
                )
            seen[key] = lineno
            current = Entry(key=key, lines=[line])
            entries.append(current)
        elif current is None:
            preamble.append(line)
        else:
            current.lines.append(line)
    return preamble, entries


__all__ = [
    "BEGIN_FMT",
    "CODE_PLACEHOLDER",
    "END_FMT",
    "ENTRIES_REGION",
    "ENTRY_FMT",
    "IMPORTS_REGION",
    "IMPORT_PLACEHOLDER",
    "Entry",
    "MalformedTargetError",
    "MergeError",
    "Region",
    "REQUIRED_REGIONS",
    "entry_key",
    "is_marker",
    "scan_regions",
    "split_entries",
]
