"""Intermediate representation (IR) loader and validator."""

import json
import logging
import os
from typing import Any

from .errors import (
    CatalogError,
    FieldTypeError,
    MalformedError,
    MissingFieldError,
    RangeError,
    UnknownEndianError,
    UnknownPrimitiveError,
    ValidationError,
)
from .sizes import MAX_ARRAY_LENGTH, MAX_PAYLOAD_SIZE, SizeCalculator
from .types import (
    BROADCAST_CLIENT_ID,
    ArrayFieldType,
    ArraySpec,
    Catalog,
    Endian,
    MessageBody,
    MessageDefinition,
    Metadata,
    PrimitiveFieldType,
    PrimitiveType,
    RequestType,
    ScalarSpec,
    StructField,
    StructSpec,
)
from .util import to_snake_case

logger = logging.getLogger(__name__)

METADATA_KEYS = frozenset(["version", "max_address"])

# Keys that mark an object as a message definition rather than a container
MESSAGE_KEYS = frozenset(
    [
        "packet_id",
        "msg_type",
        "msg_desc",
        "fields",
        "array",
        "max_length",
        "endianess",
        "endianness",
    ]
)

MAX_PACKET_ID = 255
MAX_ADDRESS = 0xFFFFFFFF

_JSON_TYPE_NAMES: dict[type, str] = {
    str: "a string",
    int: "an integer",
    bool: "a boolean",
    dict: "an object",
}

_MISSING: Any = object()


def _is_type(value: Any, expected: type) -> bool:
    # bool is an int subclass, but JSON true/false is never a number here
    if expected is int and isinstance(value, bool):
        return False
    return isinstance(value, expected)


def _optional(map_: dict[str, Any], key: str, expected: type, path: str, default: Any = None) -> Any:
    value = map_.get(key, _MISSING)
    if value is _MISSING or value is None:
        return default
    if not _is_type(value, expected):
        raise FieldTypeError(path, f"'{key}' must be {_JSON_TYPE_NAMES[expected]}", key=key)
    return value


def _required(map_: dict[str, Any], key: str, expected: type, path: str, hint: str) -> Any:
    value = _optional(map_, key, expected, path, default=_MISSING)
    if value is _MISSING:
        raise MissingFieldError(path, f"missing required field '{key}' ({hint})", key=key)
    return value


def _parse_primitive(text: str, path: str, key: str) -> PrimitiveType:
    primitive = PrimitiveType.from_str(text)
    if primitive is None:
        raise UnknownPrimitiveError(path, f"unsupported {key} '{text}'", key=key)
    return primitive


def _parse_endian(map_: dict[str, Any], path: str) -> Endian:
    # Both spellings are found in the wild
    for key in ("endianess", "endianness"):
        if key in map_:
            text = _optional(map_, key, str, path)
            if text is None:
                continue
            endian = Endian.from_str(text)
            if endian is None:
                raise UnknownEndianError(
                    path, f"unsupported endian value '{text}' (expected little, le, big or be)", key=key
                )
            return endian
    return Endian.LITTLE


def _parse_max_length(map_: dict[str, Any], path: str) -> int:
    max_length = _required(map_, "max_length", int, path, f"1-{MAX_ARRAY_LENGTH} for arrays")
    if max_length < 1:
        raise RangeError(path, f"max_length of {max_length}, must be at least 1", key="max_length")
    if max_length > MAX_ARRAY_LENGTH:
        raise RangeError(
            path,
            f"max_length {max_length} exceeds maximum of {MAX_ARRAY_LENGTH}",
            key="max_length",
        )
    return max_length


def _member_names(field: StructField) -> list[str]:
    ident = to_snake_case(field.name)
    if isinstance(field.field_type, ArrayFieldType):
        return [ident, f"{ident}_length"]
    return [ident]


def _check_member_names(fields: tuple[StructField, ...], path: str) -> None:
    seen: dict[str, str] = {}
    for field in fields:
        for member in _member_names(field):
            if member in seen:
                raise MalformedError(
                    path,
                    f"fields '{seen[member]}' and '{field.name}' both map to C member '{member}'",
                )
            seen[member] = field.name


def _parse_struct(map_: dict[str, Any], path: str) -> StructSpec:
    fields_obj = _required(map_, "fields", dict, path, "object of field definitions")
    if not fields_obj:
        raise MalformedError(path, "struct must define at least one field in 'fields'", key="fields")

    fields = tuple(
        _parse_field(field_name, field_value, f"{path}.{field_name}")
        for field_name, field_value in fields_obj.items()
    )
    _check_member_names(fields, path)
    return StructSpec(fields=fields)


def _parse_field(name: str, value: Any, path: str) -> StructField:
    if not isinstance(value, dict):
        raise FieldTypeError(path, "field definition must be an object")

    # Fields accept "type" as well as the message-level "msg_type"
    type_key = "type" if "type" in value else "msg_type"
    type_str = _required(value, type_key, str, path, "e.g. 'uint8', 'float32', 'struct'")
    endian = _parse_endian(value, path)

    if type_str.lower() == "struct":
        return StructField(name=name, field_type=_parse_struct(value, path), endian=endian)

    primitive = _parse_primitive(type_str, path, type_key)
    if _optional(value, "array", bool, path, default=False):
        field_type: Any = ArrayFieldType(primitive=primitive, max_length=_parse_max_length(value, path))
    else:
        field_type = PrimitiveFieldType(primitive=primitive)
    return StructField(name=name, field_type=field_type, endian=endian)


def _parse_role(map_: dict[str, Any], path: str) -> tuple[RequestType, int]:
    text = _optional(map_, "request_type", str, path)
    if text is None:
        request_type = RequestType.PUB
    else:
        parsed = RequestType.from_str(text)
        if parsed is None:
            raise MalformedError(
                path, f"unsupported request_type '{text}', expected 'pub' or 'sub'", key="request_type"
            )
        request_type = parsed

    target = _optional(map_, "target_client_id", int, path, default=BROADCAST_CLIENT_ID)
    if target != BROADCAST_CLIENT_ID and target < 1:
        raise RangeError(
            path,
            f"target_client_id {target} must be -1 (all clients) or a positive id",
            key="target_client_id",
        )
    return request_type, target


def _check_body(body: MessageBody, path: str) -> None:
    calc = SizeCalculator()

    if isinstance(body, StructSpec):
        variable = calc.variable_fields(body)
        if len(variable) > 1:
            names = ", ".join(".".join(v.path) for v in variable)
            raise MalformedError(
                path,
                f"struct declares {len(variable)} variable-length array fields ({names}); "
                "at most one is supported",
            )

    size = calc.body_size(body).max_size
    if size > MAX_PAYLOAD_SIZE:
        raise RangeError(
            path,
            f"maximum payload size of {size} bytes exceeds the limit of {MAX_PAYLOAD_SIZE} bytes",
        )


def parse_message(name: str, value: Any) -> MessageDefinition:
    """Parse and validate a single message definition."""
    path = name
    if not isinstance(value, dict):
        raise FieldTypeError(path, "message definition must be an object")

    packet_id = _required(value, "packet_id", int, path, f"must be 0-{MAX_PACKET_ID}")
    if not 0 <= packet_id <= MAX_PACKET_ID:
        raise RangeError(
            path, f"packet_id {packet_id} is outside 0-{MAX_PACKET_ID}", key="packet_id"
        )

    description = _optional(value, "msg_desc", str, path)
    msg_type = _required(value, "msg_type", str, path, "e.g. 'uint8', 'float32', 'struct'")
    request_type, target_client_id = _parse_role(value, path)

    body: MessageBody
    if msg_type.lower() == "struct":
        body = _parse_struct(value, path)
    else:
        primitive = _parse_primitive(msg_type, path, "msg_type")
        endian = _parse_endian(value, path)
        if _optional(value, "array", bool, path, default=False):
            sector_bytes = _optional(value, "sector_bytes", int, path)
            if sector_bytes is not None and sector_bytes < 0:
                raise RangeError(path, "sector_bytes must not be negative", key="sector_bytes")
            body = ArraySpec(
                primitive=primitive,
                max_length=_parse_max_length(value, path),
                endian=endian,
                sector_bytes=sector_bytes,
            )
        else:
            body = ScalarSpec(primitive=primitive, endian=endian)

    _check_body(body, path)

    return MessageDefinition(
        name=name,
        packet_id=packet_id,
        body=body,
        description=description,
        request_type=request_type,
        target_client_id=target_client_id,
    )


def _parse_metadata(map_: dict[str, Any]) -> Metadata:
    version = _optional(map_, "version", str, "version")
    max_address = _optional(map_, "max_address", int, "max_address")
    if max_address is not None and not 0 <= max_address <= MAX_ADDRESS:
        raise RangeError("max_address", f"max_address {max_address} does not fit in 32 bits")
    return Metadata(version=version, max_address=max_address)


def _is_container(value: Any) -> bool:
    if not isinstance(value, dict) or not value:
        return False
    if MESSAGE_KEYS & value.keys():
        return False
    return all(isinstance(v, dict) for k, v in value.items() if k not in METADATA_KEYS)


def _message_entries(map_: dict[str, Any]) -> tuple[dict[str, Any], list[tuple[str, Any]]]:
    """Split the top level into metadata and message entries.

    Messages may sit directly at the top level or under a container key such
    as ``packets``.
    """
    metadata = {k: v for k, v in map_.items() if k in METADATA_KEYS}
    entries: list[tuple[str, Any]] = []
    for key, value in map_.items():
        if key in METADATA_KEYS:
            continue
        if _is_container(value):
            logger.debug("Reading messages from container '%s'", key)
            for inner_key, inner_value in value.items():
                if inner_key in METADATA_KEYS:
                    metadata.setdefault(inner_key, inner_value)
                else:
                    entries.append((inner_key, inner_value))
        else:
            entries.append((key, value))
    return metadata, entries


def validate(messages: list[MessageDefinition]) -> list[ValidationError]:
    """Cross-message checks: unique packet ids and unique C identifiers."""
    errors: list[ValidationError] = []
    ids: dict[int, str] = {}
    idents: dict[str, str] = {}

    for msg in messages:
        if msg.packet_id in ids:
            errors.append(
                MalformedError(
                    msg.name,
                    f"packet_id {msg.packet_id} is already used by '{ids[msg.packet_id]}'",
                    key="packet_id",
                )
            )
        else:
            ids[msg.packet_id] = msg.name

        ident = to_snake_case(msg.name)
        if ident in idents:
            errors.append(
                MalformedError(msg.name, f"name collides with '{idents[ident]}' as C identifier '{ident}'")
            )
        else:
            idents[ident] = msg.name

    return errors


def parse_ir(data: Any) -> Catalog:
    """Validate a decoded IR document and build a catalog sorted by packet id."""
    if not isinstance(data, dict):
        raise MalformedError("", "top-level JSON must be an object")

    errors: list[ValidationError] = []
    messages: list[MessageDefinition] = []

    metadata_map, entries = _message_entries(data)
    try:
        metadata = _parse_metadata(metadata_map)
    except ValidationError as e:
        errors.append(e)
        metadata = Metadata()

    for name, value in entries:
        try:
            msg = parse_message(name, value)
        except ValidationError as e:
            errors.append(e)
            continue
        logger.debug("Parsed message '%s' (packet id %d)", msg.name, msg.packet_id)
        messages.append(msg)

    errors.extend(validate(messages))

    if not errors and not messages:
        errors.append(MalformedError("", "no message definitions found"))

    if len(errors) == 1:
        raise errors[0]
    if errors:
        raise CatalogError(errors)

    messages.sort(key=lambda m: m.packet_id)
    logger.debug("Loaded %d message definition(s)", len(messages))
    return Catalog(metadata=metadata, messages=tuple(messages))


def parse(text: str) -> Catalog:
    """Parse IR JSON text."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedError("", f"failed to parse intermediate representation JSON: {e}") from e
    return parse_ir(data)


def load(path: str | os.PathLike[str]) -> Catalog:
    """Read and parse an IR file. I/O errors propagate to the caller."""
    with open(path, encoding="utf-8") as f:
        text = f.read()
    return parse(text)
