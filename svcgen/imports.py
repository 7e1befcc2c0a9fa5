"""Computes the import lines each rendered artifact actually needs."""

from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple

from .models import ArtifactKind, ServiceDescriptor, StreamingKind, TypeRef

STREAMING_IMPORT = "from typing import AsyncIterator"
ROUTER_IMPORT = "from fastapi import APIRouter"
ERROR_CODE_IMPORT = "from enum import IntEnum"


def import_line(module: str) -> str:
    """Render the import statement that binds the last segment of ``module``."""
    parent, _, name = module.rpartition(".")
    if not parent:
        return f"import {name}"
    return f"from {parent} import {name}"


class ImportResolver:
    """Resolves an ordered, deduplicated import set for one artifact kind."""

    def resolve(self, services: Sequence[ServiceDescriptor], kind: ArtifactKind) -> Tuple[str, ...]:
        if kind is ArtifactKind.LOGIC_STUB:
            lines = self._logic_stub_imports(services)
        elif kind is ArtifactKind.ROUTER_WIRING:
            lines = self._router_imports(services)
        else:
            lines = self._error_code_imports(services)
        return tuple(dict.fromkeys(lines))

    @staticmethod
    def _logic_stub_imports(services: Sequence[ServiceDescriptor]) -> List[str]:
        methods = [method for service in services for method in service.methods]
        lines: List[str] = []
        if any(method.streaming_kind is not StreamingKind.UNARY for method in methods):
            lines.append(STREAMING_IMPORT)
        lines.extend(
            import_line(ref.module)
            for ref in _type_refs(
                ref for method in methods for ref in (method.request_type, method.reply_type)
            )
        )
        return lines

    @staticmethod
    def _router_imports(services: Sequence[ServiceDescriptor]) -> List[str]:
        bound = [service for service in services if service.http_methods]
        if not bound:
            return []
        lines = [ROUTER_IMPORT]
        lines.extend(import_line(service.logic_module) for service in bound)
        return lines

    @staticmethod
    def _error_code_imports(services: Sequence[ServiceDescriptor]) -> List[str]:
        if any(service.methods for service in services):
            return [ERROR_CODE_IMPORT]
        return []


def _type_refs(refs: Iterable[TypeRef]) -> List[TypeRef]:
    seen: set[str] = set()
    ordered: List[TypeRef] = []
    for ref in refs:
        if ref.module in seen:
            continue
        seen.add(ref.module)
        ordered.append(ref)
    return ordered


__all__ = ["ERROR_CODE_IMPORT", "ImportResolver", "ROUTER_IMPORT", "STREAMING_IMPORT", "import_line"]
