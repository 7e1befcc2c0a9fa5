from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.descriptors import ProjectBuilder


@pytest.fixture
def project(tmp_path: Path) -> ProjectBuilder:
    """Provide a project builder rooted at the pytest tmp_path."""
    return ProjectBuilder(tmp_path)


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SVCGEN_MODULE_NAME", raising=False)
    monkeypatch.delenv("SVCGEN_SERVER_NAME", raising=False)
    monkeypatch.delenv("SVCGEN_LOG_LEVEL", raising=False)
