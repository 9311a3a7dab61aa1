"""Size calculation for message bodies and struct fields."""

from dataclasses import dataclass
from enum import StrEnum, auto

from .types import (
    ArrayFieldType,
    ArraySpec,
    Catalog,
    MessageBody,
    MessageDefinition,
    PrimitiveFieldType,
    PrimitiveType,
    ScalarSpec,
    StructField,
    StructSpec,
)

# Largest body a single frame can carry
MAX_PAYLOAD_SIZE = 251

# Largest max_length accepted for arrays and array fields
MAX_ARRAY_LENGTH = 1024


class SizeKind(StrEnum):
    """Classification of size characteristics."""

    FIXED = auto()  # Min == Max, no variable components
    BOUNDED = auto()  # Contains an array, max is still known


@dataclass(frozen=True)
class SizeInfo:
    """Encoded size bounds of a body or field."""

    min_size: int
    max_size: int
    kind: SizeKind

    @property
    def is_fixed(self) -> bool:
        return self.kind == SizeKind.FIXED

    @property
    def has_variable(self) -> bool:
        return self.kind == SizeKind.BOUNDED


@dataclass(frozen=True)
class VariableField:
    """An array field whose length is recovered from the frame length."""

    path: tuple[str, ...]
    primitive: PrimitiveType
    max_length: int

    @property
    def element_width(self) -> int:
        return self.primitive.byte_len


@dataclass(frozen=True)
class MessageSizeInfo:
    """Complete size information for one message."""

    name: str
    packet_id: int
    size: SizeInfo


@dataclass(frozen=True)
class ProtocolSizeInfo:
    """Size information for an entire catalog."""

    messages: dict[str, MessageSizeInfo]
    min_message_size: int
    max_message_size: int
    payload_limit: int

    @property
    def headroom(self) -> int:
        """Bytes left between the largest message and the payload limit."""
        return self.payload_limit - self.max_message_size


def _fixed(size: int) -> SizeInfo:
    return SizeInfo(size, size, SizeKind.FIXED)


class SizeCalculator:
    """Calculate encoded sizes for message bodies."""

    def primitive_size(self, primitive: PrimitiveType) -> SizeInfo:
        return _fixed(primitive.byte_len)

    def array_size(self, primitive: PrimitiveType, max_length: int) -> SizeInfo:
        # Length is implied by the frame, so an empty array costs nothing
        return SizeInfo(0, primitive.byte_len * max_length, SizeKind.BOUNDED)

    def field_size(self, field: StructField) -> SizeInfo:
        """Calculate size for a struct field (nested structs recurse)."""
        field_type = field.field_type
        if isinstance(field_type, PrimitiveFieldType):
            return self.primitive_size(field_type.primitive)
        if isinstance(field_type, ArrayFieldType):
            return self.array_size(field_type.primitive, field_type.max_length)
        return self.struct_size(field_type)

    def struct_size(self, spec: StructSpec) -> SizeInfo:
        total_min = 0
        total_max = 0
        overall_kind = SizeKind.FIXED

        for field in spec.fields:
            size = self.field_size(field)
            total_min += size.min_size
            total_max += size.max_size
            if size.kind == SizeKind.BOUNDED:
                overall_kind = SizeKind.BOUNDED

        return SizeInfo(total_min, total_max, overall_kind)

    def body_size(self, body: MessageBody) -> SizeInfo:
        match body:
            case ScalarSpec(primitive=primitive):
                return self.primitive_size(primitive)
            case ArraySpec(primitive=primitive, max_length=max_length):
                return self.array_size(primitive, max_length)
            case StructSpec():
                return self.struct_size(body)
        raise TypeError(f"Unknown message body {body!r}")

    def message_size(self, message: MessageDefinition) -> MessageSizeInfo:
        return MessageSizeInfo(message.name, message.packet_id, self.body_size(message.body))

    def variable_fields(self, spec: StructSpec, prefix: tuple[str, ...] = ()) -> list[VariableField]:
        """List every array field reachable from a struct, in wire order."""
        found: list[VariableField] = []
        for field in spec.fields:
            path = (*prefix, field.name)
            field_type = field.field_type
            if isinstance(field_type, ArrayFieldType):
                found.append(VariableField(path, field_type.primitive, field_type.max_length))
            elif isinstance(field_type, StructSpec):
                found.extend(self.variable_fields(field_type, path))
        return found

    def variable_field(self, spec: StructSpec) -> VariableField | None:
        """Return the single variable-length field of a struct, if any."""
        found = self.variable_fields(spec)
        return found[0] if found else None

    def calc_protocol_info(self, catalog: Catalog) -> ProtocolSizeInfo:
        infos = {m.name: self.message_size(m) for m in catalog.messages}

        if infos:
            min_msg = min(i.size.min_size for i in infos.values())
            max_msg = max(i.size.max_size for i in infos.values())
        else:
            min_msg = 0
            max_msg = 0

        return ProtocolSizeInfo(
            messages=infos,
            min_message_size=min_msg,
            max_message_size=max_msg,
            payload_limit=MAX_PAYLOAD_SIZE,
        )


def calculate_sizes(catalog: Catalog) -> ProtocolSizeInfo:
    """Calculate size information for a catalog."""
    return SizeCalculator().calc_protocol_info(catalog)
