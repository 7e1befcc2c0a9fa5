"""Descriptor records consumed by the extractor and their document loader.

The extractor only depends on the small record protocols declared here.  The
dataclass records and :func:`records_from_descriptor` adapt a protoc
``FileDescriptorProto`` or ``FileDescriptorSet`` rendered as JSON or YAML
(``protoc --descriptor_set_out`` piped through a JSON converter, or written by
hand) into that shape.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

import yaml

# FileDescriptorProto.service and ServiceDescriptorProto.method field numbers,
# used by SourceCodeInfo location paths.
_SERVICE_FIELD = 6
_METHOD_FIELD = 2

_HTTP_VERBS = ("get", "put", "post", "delete", "patch")
_HTTP_OPTION_KEYS = ("[google.api.http]", "google.api.http", "http")


class DescriptorError(RuntimeError):
    """Raised when a descriptor document cannot be loaded."""


class MethodRecord(Protocol):
    name: str
    input_type: str
    output_type: str
    client_streaming: bool
    server_streaming: bool
    http_rule: Optional[Mapping[str, Any]]
    comment: Optional[str]


class ServiceRecord(Protocol):
    name: str
    methods: Sequence[MethodRecord]
    comment: Optional[str]


class FileRecord(Protocol):
    name: str
    package: str
    services: Sequence[ServiceRecord]


@dataclass(frozen=True)
class DescriptorMethod:
    name: str
    input_type: str
    output_type: str
    client_streaming: bool = False
    server_streaming: bool = False
    http_rule: Optional[Mapping[str, Any]] = None
    comment: Optional[str] = None


@dataclass(frozen=True)
class DescriptorService:
    name: str
    methods: Tuple[DescriptorMethod, ...] = ()
    comment: Optional[str] = None


@dataclass(frozen=True)
class DescriptorFile:
    name: str
    package: str = ""
    services: Tuple[DescriptorService, ...] = field(default_factory=tuple)


def load_descriptor_file(path: Path) -> List[DescriptorFile]:
    """Read a JSON or YAML descriptor document from disk."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise DescriptorError(f"Cannot read descriptor {path}: {exc}") from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise DescriptorError(f"Failed to parse {path.name}: {exc}") from exc
    if not isinstance(data, Mapping):
        raise DescriptorError(f"{path.name} must contain a mapping at the root")
    return records_from_descriptor(data)


def records_from_descriptor(data: Mapping[str, Any]) -> List[DescriptorFile]:
    """Adapt a FileDescriptorProto/FileDescriptorSet mapping into records."""
    files = _get(data, "file")
    if isinstance(files, list):
        return [_file_from_mapping(item) for item in files if isinstance(item, Mapping)]
    return [_file_from_mapping(data)]


def _file_from_mapping(data: Mapping[str, Any]) -> DescriptorFile:
    comments = _collect_comments(_as_dict(_get(data, "source_code_info")))
    services: List[DescriptorService] = []
    for service_index, raw_service in enumerate(_as_list(_get(data, "service", "services"))):
        if not isinstance(raw_service, Mapping):
            continue
        methods: List[DescriptorMethod] = []
        for method_index, raw_method in enumerate(_as_list(_get(raw_service, "method", "methods"))):
            if not isinstance(raw_method, Mapping):
                continue
            location = (_SERVICE_FIELD, service_index, _METHOD_FIELD, method_index)
            methods.append(
                DescriptorMethod(
                    name=str(raw_method.get("name", "")),
                    input_type=str(_get(raw_method, "input_type") or ""),
                    output_type=str(_get(raw_method, "output_type") or ""),
                    client_streaming=bool(_get(raw_method, "client_streaming")),
                    server_streaming=bool(_get(raw_method, "server_streaming")),
                    http_rule=_http_rule(raw_method),
                    comment=_comment(raw_method) or comments.get(location),
                )
            )
        services.append(
            DescriptorService(
                name=str(raw_service.get("name", "")),
                methods=tuple(methods),
                comment=_comment(raw_service) or comments.get((_SERVICE_FIELD, service_index)),
            )
        )
    return DescriptorFile(
        name=str(data.get("name", "")),
        package=str(data.get("package", "") or ""),
        services=tuple(services),
    )


def _http_rule(method: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    options = _as_dict(method.get("options"))
    for key in _HTTP_OPTION_KEYS:
        rule = options.get(key) if key in options else method.get(key)
        if isinstance(rule, Mapping):
            return dict(rule)
    return None


def parse_http_rule(rule: Optional[Mapping[str, Any]]) -> Optional[Tuple[str, str, Optional[str]]]:
    """Return ``(verb, path, body)`` for a google.api.http rule, if it binds a route."""
    if not rule:
        return None
    body = rule.get("body")
    body_field = str(body) if body else None
    for verb in _HTTP_VERBS:
        path = rule.get(verb)
        if path:
            return verb.upper(), str(path), body_field
    custom = _as_dict(rule.get("custom"))
    if custom.get("kind") and custom.get("path"):
        return str(custom["kind"]).upper(), str(custom["path"]), body_field
    return None


def _collect_comments(source_code_info: Mapping[str, Any]) -> Dict[Tuple[int, ...], str]:
    comments: Dict[Tuple[int, ...], str] = {}
    for location in _as_list(source_code_info.get("location")):
        if not isinstance(location, Mapping):
            continue
        path = location.get("path")
        text = _get(location, "leading_comments")
        if not isinstance(path, list) or not isinstance(text, str):
            continue
        try:
            key = tuple(int(part) for part in path)
        except (TypeError, ValueError):
            continue
        cleaned = _clean_comment(text)
        if cleaned:
            comments[key] = cleaned
    return comments


def _comment(data: Mapping[str, Any]) -> Optional[str]:
    value = data.get("comment")
    if value is None:
        value = _get(data, "leading_comments")
    if isinstance(value, str):
        return _clean_comment(value) or None
    return None


def _clean_comment(text: str) -> str:
    lines = [line.strip() for line in text.strip().splitlines()]
    return " ".join(line for line in lines if line)


def _get(data: Mapping[str, Any], *keys: str) -> Any:
    """Look up a snake_case key, falling back to its protobuf JSON camelCase name."""
    for key in keys:
        if key in data:
            return data[key]
        head, *rest = key.split("_")
        camel = head + "".join(part.title() for part in rest)
        if camel in data:
            return data[camel]
    return None


def _as_dict(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


__all__ = [
    "DescriptorError",
    "DescriptorFile",
    "DescriptorMethod",
    "DescriptorService",
    "FileRecord",
    "MethodRecord",
    "ServiceRecord",
    "load_descriptor_file",
    "parse_http_rule",
    "records_from_descriptor",
]
