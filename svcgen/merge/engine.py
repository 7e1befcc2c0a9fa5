"""Reconciles freshly rendered artifacts with hand-edited target files."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ..logging import get_logger
from ..models import ArtifactKind, ErrorCodeEntry, MergeResult, RenderedArtifact
from ..rendering.errors import RenderError
from .markers import (
    CODE_PLACEHOLDER,
    ENTRIES_REGION,
    IMPORTS_REGION,
    IMPORT_PLACEHOLDER,
    Entry,
    MalformedTargetError,
    Region,
    marker_text,
    scan_regions,
    split_entries,
)

DEFAULT_CODE_START = 10001

_CODE_PATTERN = re.compile(r"^\s*[A-Za-z_][A-Za-z0-9_]*\s*=\s*(\d+)\b")


@dataclass(frozen=True)
class _ImportStatement:
    """One logical import, possibly spanning continuation lines."""

    key: str
    lines: Tuple[str, ...]


class MergeEngine:
    """Applies generator-owned regions onto an existing file.

    Entries already present in the target are never rewritten, new entries
    are appended after every existing entry, the import block is replaced by
    the union of old and new imports, and everything outside the marker
    regions is copied through untouched.  Merging a result with the same
    artifact again is a no-op.
    """

    def __init__(self, *, code_start: int = DEFAULT_CODE_START) -> None:
        self.code_start = code_start
        self.logger = get_logger("merge")

    def merge(
        self,
        existing: Optional[str],
        fresh: RenderedArtifact,
        *,
        target: Optional[str] = None,
    ) -> MergeResult:
        """Merge ``fresh`` into ``existing`` and return the full file content."""
        if fresh.is_empty:
            return MergeResult(content=existing or "")
        fresh_lines = fresh.content.splitlines(keepends=True)
        fresh_regions, fresh_imports, fresh_entries = self._parse_fresh(fresh, fresh_lines)

        if existing is None or not existing.strip():
            return self._first_generation(fresh, fresh_lines, fresh_regions, fresh_imports, fresh_entries)

        try:
            return self._merge_existing(existing, fresh, fresh_imports, fresh_entries)
        except MalformedTargetError as exc:
            raise exc.with_context(target=target, kind=fresh.kind.value) from exc

    def assigned_codes(self, content: str) -> List[ErrorCodeEntry]:
        """Return the error codes currently recorded in an error-code table."""
        lines = content.splitlines(keepends=True)
        regions = scan_regions(lines)
        _, entries = split_entries(regions[ENTRIES_REGION], lines)
        return [ErrorCodeEntry(entry.key, _parse_code(entry, regions[ENTRIES_REGION], lines)) for entry in entries]

    # ------------------------------------------------------------------
    # Internal helpers

    def _parse_fresh(
        self, fresh: RenderedArtifact, lines: Sequence[str]
    ) -> Tuple[Dict[str, Region], List[_ImportStatement], List[Entry]]:
        try:
            regions = scan_regions(lines)
            _, entries = split_entries(regions[ENTRIES_REGION], lines)
        except MalformedTargetError as exc:
            raise RenderError(f"rendered {fresh.kind.value} artifact is malformed: {exc.detail}") from exc
        imports = regions[IMPORTS_REGION].body(lines)
        if any(marker_text(line) == IMPORT_PLACEHOLDER for line in imports):
            raise RenderError(f"rendered {fresh.kind.value} artifact has an unresolved import placeholder")
        return regions, _import_statements(imports), entries

    def _first_generation(
        self,
        fresh: RenderedArtifact,
        lines: List[str],
        regions: Dict[str, Region],
        imports: List[_ImportStatement],
        entries: List[Entry],
    ) -> MergeResult:
        entries_region = regions[ENTRIES_REGION]
        preamble, _ = split_entries(entries_region, lines)
        if fresh.kind is ArtifactKind.ERROR_CODE_TABLE:
            entries = self._assign_codes(entries, self.code_start)
        body = list(preamble)
        for entry in entries:
            body.extend(entry.lines)
        content = _assemble(lines, regions, regions[IMPORTS_REGION].body(lines), body)
        keys = [entry.key for entry in entries]
        self.logger.debug("First generation of %s with %d entries", fresh.kind.value, len(keys))
        return MergeResult(
            content=content,
            inserted=keys,
            imports_added=[statement.key for statement in imports],
            changed=True,
        )

    def _merge_existing(
        self,
        existing: str,
        fresh: RenderedArtifact,
        fresh_imports: List[_ImportStatement],
        fresh_entries: List[Entry],
    ) -> MergeResult:
        lines = existing.splitlines(keepends=True)
        regions = scan_regions(lines)
        entries_region = regions[ENTRIES_REGION]
        _, existing_entries = split_entries(entries_region, lines)

        existing_keys = {entry.key for entry in existing_entries}
        fresh_keys = {entry.key for entry in fresh_entries}
        new_entries = [entry for entry in fresh_entries if entry.key not in existing_keys]
        preserved = [entry.key for entry in existing_entries if entry.key in fresh_keys]
        stale = [entry.key for entry in existing_entries if entry.key not in fresh_keys]

        if fresh.kind is ArtifactKind.ERROR_CODE_TABLE:
            for entry in existing_entries:
                _parse_code(entry, entries_region, lines)
            codes = _region_codes(entries_region.body(lines))
            next_code = max(codes) + 1 if codes else self.code_start
            new_entries = self._assign_codes(new_entries, next_code)

        newline = _newline_of(lines[entries_region.begin])
        body = entries_region.body(lines)
        for entry in new_entries:
            body.extend(_with_newline(entry.lines, newline))

        imports_region = regions[IMPORTS_REGION]
        current_imports = _import_statements(imports_region.body(lines))
        merged_imports: Dict[str, _ImportStatement] = {statement.key: statement for statement in fresh_imports}
        for statement in current_imports:
            # Existing text wins; fresh statements only fix the position.
            merged_imports[statement.key] = statement
        current_keys = {statement.key for statement in current_imports}
        imports_added = [statement.key for statement in fresh_imports if statement.key not in current_keys]
        import_newline = _newline_of(lines[imports_region.begin])
        import_body = [line + import_newline for statement in merged_imports.values() for line in statement.lines]

        content = _assemble(lines, regions, import_body, body)
        inserted = [entry.key for entry in new_entries]
        return MergeResult(
            content=content,
            inserted=inserted,
            preserved=preserved,
            stale=stale,
            imports_added=imports_added,
            changed=content != existing,
        )

    @staticmethod
    def _assign_codes(entries: List[Entry], start: int) -> List[Entry]:
        assigned: List[Entry] = []
        code = start
        for entry in entries:
            lines = [line.replace(CODE_PLACEHOLDER, str(code)) for line in entry.lines]
            assigned.append(Entry(key=entry.key, lines=lines))
            code += 1
        return assigned


def _parse_code(entry: Entry, region: Region, lines: Sequence[str]) -> int:
    for line in entry.lines[1:]:
        match = _CODE_PATTERN.match(line)
        if match:
            return int(match.group(1))
    lineno = _line_number(entry, region, lines)
    raise MalformedTargetError(f"entry '{entry.key}' has no numeric error code", line=lineno)


def _line_number(entry: Entry, region: Region, lines: Sequence[str]) -> Optional[int]:
    sentinel = entry.lines[0]
    for index in range(region.begin + 1, region.end):
        if lines[index] == sentinel:
            return index + 1
    return None


def _region_codes(body: Sequence[str]) -> List[int]:
    """Every numeric code in an entries region, hand-added constants included."""
    codes: List[int] = []
    for line in body:
        match = _CODE_PATTERN.match(line)
        if match:
            codes.append(int(match.group(1)))
    return codes


def _import_statements(body: Sequence[str]) -> List[_ImportStatement]:
    """Group import lines into logical statements, keeping their original text.

    Parenthesised imports and backslash continuations form a single statement.
    Statements are keyed by their whitespace-normalised text and deduplicated.
    """
    statements: Dict[str, _ImportStatement] = {}
    pending: List[str] = []
    depth = 0
    for line in body:
        text = line.rstrip("\r\n")
        stripped = text.strip()
        if not pending and (not stripped or stripped == IMPORT_PLACEHOLDER):
            continue
        pending.append(text)
        code = stripped.split("#", 1)[0]
        depth += code.count("(") - code.count(")")
        if depth > 0 or code.rstrip().endswith("\\"):
            continue
        statement = _statement(pending)
        statements.setdefault(statement.key, statement)
        pending, depth = [], 0
    if pending:
        statement = _statement(pending)
        statements.setdefault(statement.key, statement)
    return list(statements.values())


def _statement(lines: Sequence[str]) -> _ImportStatement:
    return _ImportStatement(key=" ".join(" ".join(lines).split()), lines=tuple(lines))


def _assemble(
    lines: Sequence[str],
    regions: Dict[str, Region],
    import_body: Sequence[str],
    entries_body: Sequence[str],
) -> str:
    replacements = sorted(
        [
            (regions[IMPORTS_REGION], import_body),
            (regions[ENTRIES_REGION], entries_body),
        ],
        key=lambda item: item[0].begin,
    )
    output: List[str] = []
    cursor = 0
    for region, body in replacements:
        output.extend(lines[cursor : region.begin + 1])
        output.extend(body)
        cursor = region.end
    output.extend(lines[cursor:])
    return "".join(output)


def _newline_of(line: str) -> str:
    if line.endswith("\r\n"):
        return "\r\n"
    return "\n"


def _with_newline(lines: Sequence[str], newline: str) -> List[str]:
    if newline == "\n":
        return list(lines)
    return [line[:-1] + newline if line.endswith("\n") and not line.endswith("\r\n") else line for line in lines]


__all__ = ["DEFAULT_CODE_START", "MergeEngine"]
