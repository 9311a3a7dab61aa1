"""Type definitions for IR parsing and code generation."""

from dataclasses import dataclass, field
from enum import StrEnum, auto

from dataclasses_json import DataClassJsonMixin


class PrimitiveType(StrEnum):
    """Scalar primitive kinds understood by the wire format."""

    BOOL = auto()
    CHAR = auto()
    INT8 = auto()
    UINT8 = auto()
    INT16 = auto()
    UINT16 = auto()
    INT32 = auto()
    UINT32 = auto()
    INT64 = auto()
    UINT64 = auto()
    FLOAT32 = auto()
    FLOAT64 = auto()

    @property
    def byte_len(self) -> int:
        return PRIMITIVE_SIZES[self]

    @property
    def c_type(self) -> str:
        return PRIMITIVE_TYPE_MAP[self]

    @classmethod
    def from_str(cls, value: str) -> "PrimitiveType | None":
        """Look up a primitive by any of its accepted spellings."""
        return PRIMITIVE_ALIASES.get(value.lower())


class Endian(StrEnum):
    """Byte order of a primitive on the wire."""

    LITTLE = auto()
    BIG = auto()

    @property
    def suffix(self) -> str:
        return "le" if self is Endian.LITTLE else "be"

    @classmethod
    def from_str(cls, value: str) -> "Endian | None":
        return ENDIAN_ALIASES.get(value.lower())


class RequestType(StrEnum):
    """Direction of a message as seen from the server."""

    PUB = auto()
    SUB = auto()

    @classmethod
    def from_str(cls, value: str) -> "RequestType | None":
        return REQUEST_TYPE_ALIASES.get(value.lower())


PRIMITIVE_SIZES: dict[PrimitiveType, int] = {
    PrimitiveType.BOOL: 1,
    PrimitiveType.CHAR: 1,
    PrimitiveType.INT8: 1,
    PrimitiveType.UINT8: 1,
    PrimitiveType.INT16: 2,
    PrimitiveType.UINT16: 2,
    PrimitiveType.INT32: 4,
    PrimitiveType.UINT32: 4,
    PrimitiveType.INT64: 8,
    PrimitiveType.UINT64: 8,
    PrimitiveType.FLOAT32: 4,
    PrimitiveType.FLOAT64: 8,
}

PRIMITIVE_TYPE_MAP: dict[PrimitiveType, str] = {
    PrimitiveType.BOOL: "bool",
    PrimitiveType.CHAR: "char",
    PrimitiveType.INT8: "int8_t",
    PrimitiveType.UINT8: "uint8_t",
    PrimitiveType.INT16: "int16_t",
    PrimitiveType.UINT16: "uint16_t",
    PrimitiveType.INT32: "int32_t",
    PrimitiveType.UINT32: "uint32_t",
    PrimitiveType.INT64: "int64_t",
    PrimitiveType.UINT64: "uint64_t",
    PrimitiveType.FLOAT32: "float",
    PrimitiveType.FLOAT64: "double",
}

PRIMITIVE_ALIASES: dict[str, PrimitiveType] = {
    "bool": PrimitiveType.BOOL,
    "char": PrimitiveType.CHAR,
    "int8": PrimitiveType.INT8,
    "i8": PrimitiveType.INT8,
    "uint8": PrimitiveType.UINT8,
    "u8": PrimitiveType.UINT8,
    "int16": PrimitiveType.INT16,
    "i16": PrimitiveType.INT16,
    "uint16": PrimitiveType.UINT16,
    "u16": PrimitiveType.UINT16,
    "int32": PrimitiveType.INT32,
    "i32": PrimitiveType.INT32,
    "uint32": PrimitiveType.UINT32,
    "u32": PrimitiveType.UINT32,
    "int64": PrimitiveType.INT64,
    "i64": PrimitiveType.INT64,
    "uint64": PrimitiveType.UINT64,
    "u64": PrimitiveType.UINT64,
    "float32": PrimitiveType.FLOAT32,
    "f32": PrimitiveType.FLOAT32,
    "float": PrimitiveType.FLOAT32,
    "float64": PrimitiveType.FLOAT64,
    "f64": PrimitiveType.FLOAT64,
    "double": PrimitiveType.FLOAT64,
}

ENDIAN_ALIASES: dict[str, Endian] = {
    "little": Endian.LITTLE,
    "le": Endian.LITTLE,
    "big": Endian.BIG,
    "be": Endian.BIG,
}

REQUEST_TYPE_ALIASES: dict[str, RequestType] = {
    "pub": RequestType.PUB,
    "publish": RequestType.PUB,
    "sub": RequestType.SUB,
    "subscribe": RequestType.SUB,
}

BROADCAST_CLIENT_ID = -1


@dataclass(frozen=True)
class Metadata(DataClassJsonMixin):
    """Informational protocol metadata; never referenced by the layout."""

    version: str | None = None
    max_address: int | None = None


@dataclass(frozen=True)
class ScalarSpec(DataClassJsonMixin):
    """A message body holding a single primitive."""

    primitive: PrimitiveType
    endian: Endian = Endian.LITTLE


@dataclass(frozen=True)
class ArraySpec(DataClassJsonMixin):
    """A message body holding up to max_length primitives.

    The element count is not encoded; it is recovered from the frame length.
    """

    primitive: PrimitiveType
    max_length: int
    endian: Endian = Endian.LITTLE
    sector_bytes: int | None = None


@dataclass(frozen=True)
class PrimitiveFieldType(DataClassJsonMixin):
    primitive: PrimitiveType


@dataclass(frozen=True)
class ArrayFieldType(DataClassJsonMixin):
    primitive: PrimitiveType
    max_length: int


@dataclass(frozen=True)
class StructField(DataClassJsonMixin):
    """A member of a struct body. Field order is the on-wire order."""

    name: str
    field_type: "FieldType"
    endian: Endian = Endian.LITTLE


@dataclass(frozen=True)
class StructSpec(DataClassJsonMixin):
    """A message body (or nested field) made of ordered fields."""

    fields: tuple[StructField, ...]


FieldType = PrimitiveFieldType | ArrayFieldType | StructSpec
MessageBody = ScalarSpec | ArraySpec | StructSpec


@dataclass(frozen=True)
class MessageDefinition(DataClassJsonMixin):
    """A named, packet-ID-tagged wire record."""

    name: str
    packet_id: int
    body: MessageBody
    description: str | None = None
    request_type: RequestType = RequestType.PUB
    target_client_id: int = BROADCAST_CLIENT_ID

    @property
    def is_broadcast(self) -> bool:
        return self.target_client_id == BROADCAST_CLIENT_ID


@dataclass(frozen=True)
class Catalog(DataClassJsonMixin):
    """A validated set of messages, sorted by packet id."""

    metadata: Metadata = field(default_factory=Metadata)
    messages: tuple[MessageDefinition, ...] = ()

    def client_ids(self) -> list[int]:
        """Return the distinct positive client ids in ascending order."""
        return sorted({m.target_client_id for m in self.messages if m.target_client_id > 0})


def primitive_types() -> list[str]:
    """Return a list of accepted primitive type spellings."""
    return list(PRIMITIVE_ALIASES)
