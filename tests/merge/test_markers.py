"""Tests for the marker region scanner."""

from __future__ import annotations

import pytest

from svcgen.merge.markers import MalformedTargetError, entry_key, scan_regions, split_entries

_TEXT = """header
# svcgen:begin:imports
import os
# svcgen:end:imports
middle
    # svcgen:begin:entries

    # svcgen:entry Order.Create
    ORDER_CREATE = 1
    # svcgen:entry Order.Get
    ORDER_GET = 2
    # svcgen:end:entries
footer
"""


def test_scan_regions_locates_indented_markers() -> None:
    lines = _TEXT.splitlines(keepends=True)
    regions = scan_regions(lines)

    assert regions["imports"].begin == 1
    assert regions["imports"].end == 3
    assert regions["entries"].begin == 5
    assert regions["entries"].end == 11


def test_split_entries_keeps_preamble_and_entry_text() -> None:
    lines = _TEXT.splitlines(keepends=True)
    preamble, entries = split_entries(scan_regions(lines)["entries"], lines)

    assert preamble == ["\n"]
    assert [entry.key for entry in entries] == ["Order.Create", "Order.Get"]
    assert entries[1].text == "    # svcgen:entry Order.Get\n    ORDER_GET = 2\n"


def test_entry_key_parses_route_keys() -> None:
    assert entry_key("# svcgen:entry GET /orders/{id}\n") == "GET /orders/{id}"
    assert entry_key("router = APIRouter()\n") is None


def test_duplicated_entry_reports_both_lines() -> None:
    text = _TEXT.replace("# svcgen:entry Order.Get", "# svcgen:entry Order.Create")
    lines = text.splitlines(keepends=True)
    with pytest.raises(MalformedTargetError) as excinfo:
        split_entries(scan_regions(lines)["entries"], lines)

    assert excinfo.value.line == 10
    assert "first seen at line 8" in str(excinfo.value)


def test_required_regions_can_be_narrowed() -> None:
    lines = ["# svcgen:begin:imports\n", "# svcgen:end:imports\n"]
    assert set(scan_regions(lines, required=("imports",))) == {"imports"}
    with pytest.raises(MalformedTargetError, match="missing region 'entries'"):
        scan_regions(lines)
