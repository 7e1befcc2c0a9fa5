"""Renders the three service artifacts from the service model."""

from __future__ import annotations

import json
from pathlib import Path, PurePosixPath
from typing import Dict, List, Sequence

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from ..imports import ImportResolver
from ..merge.markers import (
    BEGIN_FMT,
    CODE_PLACEHOLDER,
    END_FMT,
    ENTRIES_REGION,
    ENTRY_FMT,
    IMPORTS_REGION,
    IMPORT_PLACEHOLDER,
)
from ..models import ArtifactKind, MethodDescriptor, RenderedArtifact, ServiceDescriptor
from ..naming import error_code_name, method_key, pascal_case, route_key, stub_function_name
from .errors import RenderError

TEMPLATE_NAMES: Dict[ArtifactKind, str] = {
    ArtifactKind.LOGIC_STUB: "logic_stub.py.j2",
    ArtifactKind.ROUTER_WIRING: "router_wiring.py.j2",
    ArtifactKind.ERROR_CODE_TABLE: "error_code_table.py.j2",
}


class ArtifactRenderer:
    """Deterministic, side-effect free rendering of svcgen artifacts.

    Each ``render_*`` method returns text whose import block holds the
    unresolved placeholder; :meth:`render` also substitutes the resolved
    imports.
    """

    def __init__(
        self,
        templates_dir: Path | None = None,
        *,
        resolver: ImportResolver | None = None,
    ) -> None:
        self.templates_dir = templates_dir
        self.resolver = resolver or ImportResolver()
        self._env = self._create_env(templates_dir)

    def render(self, kind: ArtifactKind, services: Sequence[ServiceDescriptor]) -> RenderedArtifact:
        """Render one artifact kind with its imports resolved."""
        renderers = {
            ArtifactKind.LOGIC_STUB: self.render_logic_stubs,
            ArtifactKind.ROUTER_WIRING: self.render_router_wiring,
            ArtifactKind.ERROR_CODE_TABLE: self.render_error_codes,
        }
        artifact = renderers[kind](services)
        if artifact.is_empty:
            return artifact
        return self.substitute_imports(artifact, self.resolver.resolve(services, kind))

    def render_all(self, services: Sequence[ServiceDescriptor]) -> Dict[ArtifactKind, RenderedArtifact]:
        return {kind: self.render(kind, services) for kind in ArtifactKind}

    def render_logic_stubs(self, services: Sequence[ServiceDescriptor]) -> RenderedArtifact:
        entries = [
            {
                "sentinel": ENTRY_FMT.format(key=method_key(service.name, method.name)),
                "key": method_key(service.name, method.name),
                "function": stub_function_name(service.name, method.name),
                "parameter": _parameter(method),
                "returns": _returns(method),
                "doc": _docstring(method.comment or f"{service.name}.{method.name}"),
            }
            for service in services
            for method in service.methods
        ]
        _ensure_unique(ArtifactKind.LOGIC_STUB, "function", [(entry["function"], entry["key"]) for entry in entries])
        if not entries:
            return _empty(ArtifactKind.LOGIC_STUB)
        notes = [
            _docstring(f"{service.name}: {service.source_comment}")
            for service in services
            if service.source_comment
        ]
        return self._render(ArtifactKind.LOGIC_STUB, services, entries=entries, service_notes=notes)

    def render_router_wiring(self, services: Sequence[ServiceDescriptor]) -> RenderedArtifact:
        entries: List[Dict[str, str]] = []
        for service in services:
            for method in service.http_methods:
                binding = method.http_binding
                if binding is None:
                    continue
                statement = (
                    f"router.add_api_route({json.dumps(binding.path)}, "
                    f"{service.logic_alias}.{stub_function_name(service.name, method.name)}, "
                    f"methods=[{json.dumps(binding.verb)}], "
                    f"name={json.dumps(method_key(service.name, method.name))})"
                )
                if binding.body_field:
                    statement += f"  # body: {binding.body_field}"
                entries.append(
                    {
                        "sentinel": ENTRY_FMT.format(key=route_key(binding.verb, binding.path)),
                        "statement": statement,
                        "route": route_key(binding.verb, binding.path),
                        "key": method_key(service.name, method.name),
                    }
                )
        _ensure_unique(ArtifactKind.ROUTER_WIRING, "route", [(entry["route"], entry["key"]) for entry in entries])
        if not entries:
            return _empty(ArtifactKind.ROUTER_WIRING)
        return self._render(ArtifactKind.ROUTER_WIRING, services, entries=entries)

    def render_error_codes(self, services: Sequence[ServiceDescriptor]) -> RenderedArtifact:
        entries = [
            {
                "sentinel": ENTRY_FMT.format(key=method_key(service.name, method.name)),
                "name": error_code_name(service.name, method.name),
                "key": method_key(service.name, method.name),
            }
            for service in services
            for method in service.methods
        ]
        _ensure_unique(ArtifactKind.ERROR_CODE_TABLE, "error code", [(entry["name"], entry["key"]) for entry in entries])
        if not entries:
            return _empty(ArtifactKind.ERROR_CODE_TABLE)
        names = [service.name for service in services]
        return self._render(
            ArtifactKind.ERROR_CODE_TABLE,
            services,
            entries=entries,
            class_name=f"{pascal_case(_file_stem(services))}ErrorCode",
            service_names=", ".join(names),
            service_count=len(names),
            code_placeholder=CODE_PLACEHOLDER,
        )

    @staticmethod
    def substitute_imports(artifact: RenderedArtifact, references: Sequence[str]) -> RenderedArtifact:
        """Replace the import placeholder with ``references``, exactly once."""
        token = artifact.import_placeholder
        occurrences = artifact.content.count(token)
        if occurrences != 1:
            raise RenderError(
                f"{artifact.kind.value} artifact holds {occurrences} import placeholders; expected exactly one"
            )
        start = artifact.content.index(token)
        end = start + len(token)
        if artifact.content[end : end + 1] == "\n":
            end += 1
            block = "".join(f"{line}\n" for line in references)
        else:
            block = "\n".join(references)
        content = artifact.content[:start] + block + artifact.content[end:]
        return RenderedArtifact(kind=artifact.kind, content=content, import_placeholder=token)

    # ------------------------------------------------------------------
    # Internal helpers

    def _render(
        self,
        kind: ArtifactKind,
        services: Sequence[ServiceDescriptor],
        **context: object,
    ) -> RenderedArtifact:
        try:
            template = self._env.get_template(TEMPLATE_NAMES[kind])
            content = template.render(
                source_file=_source_file(services),
                import_placeholder=IMPORT_PLACEHOLDER,
                begin_imports=BEGIN_FMT.format(key=IMPORTS_REGION),
                end_imports=END_FMT.format(key=IMPORTS_REGION),
                begin_entries=BEGIN_FMT.format(key=ENTRIES_REGION),
                end_entries=END_FMT.format(key=ENTRIES_REGION),
                **context,
            )
        except TemplateError as exc:
            raise RenderError(f"Failed to render {kind.value} template: {exc}") from exc
        return RenderedArtifact(kind=kind, content=content, import_placeholder=IMPORT_PLACEHOLDER)

    @staticmethod
    def _create_env(templates_dir: Path | None) -> Environment:
        directories: List[str] = []
        if templates_dir:
            directories.append(str(templates_dir))
        default_dir = str(Path(__file__).with_name("templates"))
        if default_dir not in directories:
            directories.append(default_dir)
        return Environment(
            loader=FileSystemLoader(directories),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )


def _parameter(method: MethodDescriptor) -> str:
    annotation = method.request_type.annotation
    if method.streaming_kind.streams_request:
        return f"requests: AsyncIterator[{annotation}]"
    return f"request: {annotation}"


def _returns(method: MethodDescriptor) -> str:
    annotation = method.reply_type.annotation
    if method.streaming_kind.streams_reply:
        return f"AsyncIterator[{annotation}]"
    return annotation


def _docstring(text: str) -> str:
    cleaned = " ".join(text.split()).replace("\\", "\\\\").replace('"""', '\\"\\"\\"')
    if cleaned.endswith('"'):
        cleaned += " "
    return cleaned


def _source_file(services: Sequence[ServiceDescriptor]) -> str:
    for service in services:
        if service.source_file:
            return service.source_file
    return "service.proto"


def _file_stem(services: Sequence[ServiceDescriptor]) -> str:
    return PurePosixPath(_source_file(services)).stem


def _ensure_unique(kind: ArtifactKind, label: str, names: Sequence[tuple[str, str]]) -> None:
    """Refuse a model whose methods map onto the same generated name."""
    owners: Dict[str, str] = {}
    for name, key in names:
        first = owners.setdefault(name, key)
        if first != key:
            raise RenderError(
                f"{kind.value}: {key} and {first} both generate the {label} '{name}'; rename one of the methods"
            )


def _empty(kind: ArtifactKind) -> RenderedArtifact:
    return RenderedArtifact(kind=kind, content="", import_placeholder=IMPORT_PLACEHOLDER)


__all__ = ["ArtifactRenderer", "TEMPLATE_NAMES"]
