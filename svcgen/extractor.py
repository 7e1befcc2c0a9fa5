"""Convert descriptor records into the immutable service model."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Tuple

from .descriptors import FileRecord, MethodRecord, ServiceRecord, parse_http_rule
from .models import HttpBinding, MethodDescriptor, ServiceDescriptor, StreamingKind, TypeRef
from .naming import dotted, module_stem, snake_case

DEFAULT_LOGIC_PACKAGE = "internal.service"
_WELL_KNOWN_PACKAGE = "google.protobuf"


class ServiceModelExtractor:
    """Builds ServiceDescriptor values from one compiled descriptor file.

    Extraction is pure: the same records always yield the same model.  A file
    without services yields an empty tuple, which callers treat as "nothing to
    generate".
    """

    def __init__(self, module_name: str, *, logic_package: str = DEFAULT_LOGIC_PACKAGE) -> None:
        self.module_name = module_name
        self.logic_package = logic_package

    def extract(self, file_record: FileRecord) -> Tuple[ServiceDescriptor, ...]:
        if not file_record.services:
            return ()
        path = PurePosixPath(file_record.name or "service.proto")
        stem = path.stem
        types_module = dotted(self.module_name, str(path.parent), f"{stem}_pb2")
        logic_module = dotted(self.module_name, self.logic_package, module_stem(file_record.name))
        return tuple(
            self._service(service, file_record, types_module, logic_module)
            for service in file_record.services
        )

    def _service(
        self,
        service: ServiceRecord,
        file_record: FileRecord,
        types_module: str,
        logic_module: str,
    ) -> ServiceDescriptor:
        methods = tuple(
            self._method(method, file_record.package, types_module) for method in service.methods
        )
        return ServiceDescriptor(
            name=service.name,
            methods=methods,
            source_comment=service.comment,
            source_file=file_record.name,
            logic_module=logic_module,
        )

    def _method(self, method: MethodRecord, package: str, types_module: str) -> MethodDescriptor:
        binding = None
        parsed = parse_http_rule(method.http_rule)
        if parsed is not None:
            verb, route, body = parsed
            binding = HttpBinding(verb=verb, path=route, body_field=body)
        return MethodDescriptor(
            name=method.name,
            request_type=self._type_ref(method.input_type, package, types_module),
            reply_type=self._type_ref(method.output_type, package, types_module),
            streaming_kind=StreamingKind.from_flags(
                bool(method.client_streaming), bool(method.server_streaming)
            ),
            http_binding=binding,
            comment=method.comment,
        )

    def _type_ref(self, proto_name: str, package: str, types_module: str) -> TypeRef:
        qualified = proto_name.lstrip(".")
        if package and qualified.startswith(package + "."):
            return TypeRef(name=qualified[len(package) + 1 :], module=types_module, proto_name=qualified)
        type_package, name = _split_proto_name(qualified)
        if not type_package:
            local_name = f"{package}.{qualified}" if package else qualified
            return TypeRef(name=name, module=types_module, proto_name=local_name)
        if type_package == _WELL_KNOWN_PACKAGE:
            first = name.split(".", 1)[0]
            module = f"{_WELL_KNOWN_PACKAGE}.{snake_case(first)}_pb2"
            return TypeRef(name=name, module=module, proto_name=qualified)
        last_segment = type_package.rsplit(".", 1)[-1]
        module = dotted(self.module_name, type_package, f"{last_segment}_pb2")
        return TypeRef(name=name, module=module, proto_name=qualified)


def extract_services(
    file_record: FileRecord,
    module_name: str,
    *,
    logic_package: str = DEFAULT_LOGIC_PACKAGE,
) -> Tuple[ServiceDescriptor, ...]:
    """Functional shorthand for :class:`ServiceModelExtractor`."""
    return ServiceModelExtractor(module_name, logic_package=logic_package).extract(file_record)


def _split_proto_name(qualified: str) -> Tuple[str, str]:
    # Packages are lower-case by convention; the first capitalised segment
    # starts the (possibly nested) message name.
    segments = qualified.split(".")
    for index, segment in enumerate(segments):
        if segment[:1].isupper():
            return ".".join(segments[:index]), ".".join(segments[index:])
    return ".".join(segments[:-1]), segments[-1]


__all__ = ["DEFAULT_LOGIC_PACKAGE", "ServiceModelExtractor", "extract_services"]
