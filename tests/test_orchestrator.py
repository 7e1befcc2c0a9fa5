"""Tests for svcgen.orchestrator."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

import pytest

from svcgen.config import ConfigError
from svcgen.descriptors import DescriptorError
from svcgen.models import ArtifactKind
from svcgen.orchestrator import Orchestrator
from svcgen.rendering import RenderError
from tests._fixtures.descriptors import ProjectBuilder, descriptor, method, order_descriptor

LOGIC = "internal/service/order.py"
ROUTER = "internal/routers/order_router.py"
ECODE = "internal/ecode/order_rpc.py"


def _fixed_clock() -> datetime:
    return datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)


def _orchestrator() -> Orchestrator:
    return Orchestrator(clock=_fixed_clock)


def test_generate_writes_all_three_artifacts(project: ProjectBuilder) -> None:
    project.write_config("module_name: shop\n")
    path = project.write_descriptor(order_descriptor())

    (outcome,) = _orchestrator().run_generate([str(path)], root=str(project.root))

    assert outcome.source_file == "api/order/v1/order.proto"
    assert [target.kind for target in outcome.targets] == list(ArtifactKind)
    assert all(target.status == "created" for target in outcome.targets)
    assert "async def order_create(" in project.read(LOGIC)
    assert "from shop.internal.service import order" in project.read(ROUTER)
    assert "ORDER_CREATE = 10001" in project.read(ECODE)


def test_regeneration_is_a_no_op(project: ProjectBuilder) -> None:
    project.write_config("module_name: shop\n")
    path = project.write_descriptor(order_descriptor())
    orchestrator = _orchestrator()
    orchestrator.run_generate([str(path)], root=str(project.root))
    before = {name: project.read(name) for name in (LOGIC, ROUTER, ECODE)}

    (outcome,) = orchestrator.run_generate([str(path)], root=str(project.root))

    assert all(target.status == "unchanged" for target in outcome.targets)
    assert {name: project.read(name) for name in (LOGIC, ROUTER, ECODE)} == before
    assert not (project.root / ".svcgen" / "backup").exists()


def test_regeneration_preserves_edits_and_backs_up(project: ProjectBuilder) -> None:
    project.write_config("module_name: shop\n")
    path = project.write_descriptor(order_descriptor())
    orchestrator = _orchestrator()
    orchestrator.run_generate([str(path)], root=str(project.root))

    logic_path = project.root / LOGIC
    edited = logic_path.read_text(encoding="utf-8").replace(
        'raise NotImplementedError("Order.Get is not implemented")',
        "return await repository.get(request.id)",
    )
    logic_path.write_text(edited, encoding="utf-8")

    project.write_descriptor(order_descriptor(method("Cancel", http={"post": "/orders/{id}/cancel"})))
    (outcome,) = orchestrator.run_generate([str(path)], root=str(project.root))

    logic = project.read(LOGIC)
    assert "return await repository.get(request.id)" in logic
    assert logic.index("async def order_get(") < logic.index("async def order_cancel(")
    assert "ORDER_CANCEL = 10003" in project.read(ECODE)
    assert all(target.status == "updated" for target in outcome.targets)

    backup = project.root / ".svcgen" / "backup" / "20260102T030405" / LOGIC
    assert backup.read_text(encoding="utf-8") == edited


def test_dry_run_reports_diff_without_writing(project: ProjectBuilder) -> None:
    project.write_config("module_name: shop\n")
    path = project.write_descriptor(order_descriptor())

    (outcome,) = _orchestrator().run_generate([str(path)], root=str(project.root), dry_run=True)

    assert outcome.dry_run is True
    assert outcome.changed is True
    assert not (project.root / "internal").exists()
    router = next(target for target in outcome.targets if target.kind is ArtifactKind.ROUTER_WIRING)
    assert "+router = APIRouter()" in router.diff


def test_malformed_target_is_left_untouched(project: ProjectBuilder) -> None:
    project.write_config("module_name: shop\n")
    path = project.write_descriptor(order_descriptor())
    orchestrator = _orchestrator()
    orchestrator.run_generate([str(path)], root=str(project.root))

    ecode_path = project.root / ECODE
    broken = ecode_path.read_text(encoding="utf-8").replace("    # svcgen:end:entries\n", "")
    ecode_path.write_text(broken, encoding="utf-8")

    project.write_descriptor(order_descriptor(method("Cancel")))
    (outcome,) = orchestrator.run_generate([str(path)], root=str(project.root))

    (failure,) = outcome.failures
    assert failure.kind is ArtifactKind.ERROR_CODE_TABLE
    assert "never closed" in (failure.error or "")
    assert ecode_path.read_text(encoding="utf-8") == broken
    assert "order_cancel" in project.read(LOGIC)


def test_empty_model_is_reported_not_raised(project: ProjectBuilder) -> None:
    path = project.write_descriptor(descriptor({}, name="api/types/types.proto"), name="types.json")

    (outcome,) = _orchestrator().run_generate([str(path)], root=str(project.root), module_name="shop")

    assert outcome.empty is True
    assert outcome.targets == []
    assert not (project.root / "internal").exists()


def test_router_is_skipped_without_http_bindings(project: ProjectBuilder) -> None:
    path = project.write_descriptor(descriptor({"Audit": [method("Record")]}))

    (outcome,) = _orchestrator().run_generate([str(path)], root=str(project.root), module_name="shop")

    assert [target.kind for target in outcome.targets] == [
        ArtifactKind.LOGIC_STUB,
        ArtifactKind.ERROR_CODE_TABLE,
    ]
    assert not (project.root / ROUTER).exists()


def test_mono_repo_layout_prefixes_outputs(project: ProjectBuilder) -> None:
    project.write_config(
        """
        module_name: shop
        server_name: orders
        mono_repo: true
        """
    )
    path = project.write_descriptor(order_descriptor())

    _orchestrator().run_generate([str(path)], root=str(project.root))

    router = project.read("orders/" + ROUTER)
    assert "from shop.orders.internal.service import order" in router


def test_missing_module_name_is_a_config_error(project: ProjectBuilder) -> None:
    path = project.write_descriptor(order_descriptor())
    with pytest.raises(ConfigError):
        _orchestrator().run_generate([str(path)], root=str(project.root))


def test_test_suffixed_proto_files_are_refused(project: ProjectBuilder) -> None:
    path = project.write_descriptor(
        descriptor({"Order": [method("Create")]}, name="api/order/v1/order_test.proto")
    )
    with pytest.raises(DescriptorError, match="_test"):
        _orchestrator().run_generate([str(path)], root=str(project.root), module_name="shop")


def test_render_failure_writes_nothing(project: ProjectBuilder) -> None:
    path = project.write_descriptor(order_descriptor(method("Find", http={"get": "/orders/{id}"})))

    with pytest.raises(RenderError):
        _orchestrator().run_generate([str(path)], root=str(project.root), module_name="shop")

    assert not (project.root / "internal").exists()


def test_undecodable_target_fails_without_stopping_the_batch(project: ProjectBuilder) -> None:
    path = project.write_descriptor(order_descriptor())
    router = project.root / ROUTER
    router.parent.mkdir(parents=True)
    router.write_bytes(b"\xff\xfe not utf-8\n")

    (outcome,) = _orchestrator().run_generate([str(path)], root=str(project.root), module_name="shop")

    (failure,) = outcome.failures
    assert failure.kind is ArtifactKind.ROUTER_WIRING
    assert ROUTER in (failure.error or "")
    assert router.read_bytes() == b"\xff\xfe not utf-8\n"
    assert "async def order_create(" in project.read(LOGIC)
    assert "ORDER_CREATE = 10001" in project.read(ECODE)


def test_stale_entries_are_warned_once(
    project: ProjectBuilder, caplog: pytest.LogCaptureFixture, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(logging.getLogger("svcgen"), "propagate", True)
    path = project.write_descriptor(order_descriptor(method("Cancel")))
    orchestrator = _orchestrator()
    orchestrator.run_generate([str(path)], root=str(project.root), module_name="shop")

    project.write_descriptor(order_descriptor(method("Refund")))
    caplog.clear()
    with caplog.at_level(logging.DEBUG, logger="svcgen"):
        orchestrator.run_generate([str(path)], root=str(project.root), module_name="shop")

    stale = [record for record in caplog.records if "Order.Cancel" in record.getMessage()]
    assert [record.levelno for record in stale] == [logging.WARNING, logging.WARNING]
    assert {record.name for record in stale} == {"svcgen.orchestrator"}
