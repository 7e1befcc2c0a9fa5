"""Core data models shared across svcgen components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class StreamingKind(str, Enum):
    """Whether a method streams its request, its reply, both, or neither."""

    UNARY = "unary"
    CLIENT_STREAM = "client_stream"
    SERVER_STREAM = "server_stream"
    BIDI_STREAM = "bidi_stream"

    @classmethod
    def from_flags(cls, client_streaming: bool, server_streaming: bool) -> "StreamingKind":
        if client_streaming and server_streaming:
            return cls.BIDI_STREAM
        if client_streaming:
            return cls.CLIENT_STREAM
        if server_streaming:
            return cls.SERVER_STREAM
        return cls.UNARY

    @property
    def streams_request(self) -> bool:
        return self in (StreamingKind.CLIENT_STREAM, StreamingKind.BIDI_STREAM)

    @property
    def streams_reply(self) -> bool:
        return self in (StreamingKind.SERVER_STREAM, StreamingKind.BIDI_STREAM)


class ArtifactKind(str, Enum):
    """The three artifact kinds svcgen renders."""

    LOGIC_STUB = "logic_stub"
    ROUTER_WIRING = "router_wiring"
    ERROR_CODE_TABLE = "error_code_table"


@dataclass(frozen=True)
class HttpBinding:
    """HTTP exposure of an RPC method."""

    verb: str
    path: str
    body_field: Optional[str] = None


@dataclass(frozen=True)
class TypeRef:
    """Opaque message reference plus the module that defines it."""

    name: str
    module: str
    proto_name: str = ""

    @property
    def alias(self) -> str:
        return self.module.rsplit(".", 1)[-1]

    @property
    def annotation(self) -> str:
        return f"{self.alias}.{self.name}"


@dataclass(frozen=True)
class MethodDescriptor:
    """Compiler-agnostic view of one RPC method."""

    name: str
    request_type: TypeRef
    reply_type: TypeRef
    streaming_kind: StreamingKind = StreamingKind.UNARY
    http_binding: Optional[HttpBinding] = None
    comment: Optional[str] = None


@dataclass(frozen=True)
class ServiceDescriptor:
    """Compiler-agnostic view of one RPC service, methods in declaration order."""

    name: str
    methods: Tuple[MethodDescriptor, ...] = ()
    source_comment: Optional[str] = None
    source_file: str = ""
    logic_module: str = ""

    @property
    def http_methods(self) -> Tuple[MethodDescriptor, ...]:
        return tuple(method for method in self.methods if method.http_binding is not None)

    @property
    def logic_alias(self) -> str:
        return self.logic_module.rsplit(".", 1)[-1]


@dataclass(frozen=True)
class RenderedArtifact:
    """Text produced by one renderer invocation."""

    kind: ArtifactKind
    content: str
    import_placeholder: str

    @property
    def is_empty(self) -> bool:
        return not self.content


@dataclass(frozen=True)
class ErrorCodeEntry:
    """A method key and the numeric code assigned to it."""

    method_key: str
    code: int


@dataclass
class MergeResult:
    """Outcome of reconciling a fresh artifact with an existing file."""

    content: str
    inserted: list[str] = field(default_factory=list)
    preserved: list[str] = field(default_factory=list)
    stale: list[str] = field(default_factory=list)
    imports_added: list[str] = field(default_factory=list)
    changed: bool = False

    @property
    def inserted_count(self) -> int:
        return len(self.inserted)

    @property
    def preserved_count(self) -> int:
        return len(self.preserved)
