"""CLI parser and entrypoint behaviour tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from svcgen.cli import _build_parser, main
from tests._fixtures.descriptors import ProjectBuilder, descriptor, method, order_descriptor


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "generate", "order.json"])
    assert args.verbose is True
    assert args.command == "generate"
    assert args.descriptors == ["order.json"]


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["check", "a.json", "b.json", "--verbose"])
    assert args.verbose is True
    assert args.command == "check"
    assert args.descriptors == ["a.json", "b.json"]


def test_cli_accepts_generate_options() -> None:
    parser = _build_parser()
    args = parser.parse_args(["generate", "order.json", "--dry-run", "--root", "svc", "--module-name", "shop"])
    assert args.dry_run is True
    assert args.root == "svc"
    assert args.module_name == "shop"


def test_cli_accepts_log_file_before_command() -> None:
    args = _build_parser().parse_args(["--log-file", "svcgen.log", "check", "order.json"])
    assert args.log_file == Path("svcgen.log")


def test_cli_requires_a_descriptor() -> None:
    with pytest.raises(SystemExit):
        _build_parser().parse_args(["generate"])


def test_generate_then_check_passes(project: ProjectBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    project.write_config("module_name: shop\n")
    path = project.write_descriptor(order_descriptor())

    main(["generate", str(path), "--root", str(project.root)])
    output = capsys.readouterr().out
    assert "created" in output
    assert "order_router.py" in output

    main(["check", str(path), "--root", str(project.root)])
    assert "unchanged" in capsys.readouterr().out


def test_check_fails_when_outputs_are_stale(project: ProjectBuilder) -> None:
    project.write_config("module_name: shop\n")
    path = project.write_descriptor(order_descriptor())
    main(["generate", str(path), "--root", str(project.root)])

    project.write_descriptor(order_descriptor(method("Cancel")))
    with pytest.raises(SystemExit) as excinfo:
        main(["check", str(path), "--root", str(project.root)])
    assert excinfo.value.code == 1


def test_generate_without_module_name_exits(project: ProjectBuilder) -> None:
    path = project.write_descriptor(order_descriptor())
    with pytest.raises(SystemExit) as excinfo:
        main(["generate", str(path), "--root", str(project.root)])
    assert excinfo.value.code == 1


def test_generate_reports_empty_model(project: ProjectBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    path = project.write_descriptor(descriptor({}, name="api/types/types.proto"), name="types.json")

    main(["generate", str(path), "--root", str(project.root), "--module-name", "shop"])

    assert "no services, nothing to generate" in capsys.readouterr().out
    assert not (project.root / "internal").exists()


def test_generate_exits_non_zero_on_malformed_target(project: ProjectBuilder) -> None:
    project.write_config("module_name: shop\n")
    path = project.write_descriptor(order_descriptor())
    target = project.root / "internal" / "routers" / "order_router.py"
    target.parent.mkdir(parents=True)
    target.write_text("router = object()\n", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        main(["generate", str(path), "--root", str(project.root)])

    assert excinfo.value.code == 1
    assert target.read_text(encoding="utf-8") == "router = object()\n"
