"""C99 code generator for h6xserial protocols."""

import logging
import os
from dataclasses import dataclass
from enum import StrEnum, auto

from jinja2 import Environment, PackageLoader

from .errors import TemplateNotFoundError
from .sizes import SizeCalculator
from .types import (
    ArrayFieldType,
    ArraySpec,
    Catalog,
    Endian,
    MessageDefinition,
    PrimitiveFieldType,
    PrimitiveType,
    RequestType,
    ScalarSpec,
    StructField,
    StructSpec,
)
from .util import (
    decode_fn_name,
    encode_fn_name,
    header_guard,
    macro_prefix,
    nested_macro_prefix,
    nested_type_name,
    to_macro_ident,
    to_snake_case,
    type_name,
)

logger = logging.getLogger(__name__)

env = Environment(
    loader=PackageLoader("h6xserial_idl.generator", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    line_comment_prefix="%%",
    line_statement_prefix="%",
)

header_template = env.get_template("c99_header.h.j2")
role_template = env.get_template("c99_role.h.j2")

# Endian helpers inlined at the top of the types header, in dependency order
HELPER_FILES = [
    "helpers_u16.h",
    "helpers_u32.h",
    "helpers_u64.h",
    "helpers_f32.h",
    "helpers_f64.h",
]

# Helper family used for each multi-byte primitive
HELPER_KIND_MAP = {
    PrimitiveType.INT16: "u16",
    PrimitiveType.UINT16: "u16",
    PrimitiveType.INT32: "u32",
    PrimitiveType.UINT32: "u32",
    PrimitiveType.INT64: "u64",
    PrimitiveType.UINT64: "u64",
    PrimitiveType.FLOAT32: "f32",
    PrimitiveType.FLOAT64: "f64",
}

SIGNED_TYPES = frozenset(
    [PrimitiveType.INT8, PrimitiveType.INT16, PrimitiveType.INT32, PrimitiveType.INT64]
)

INDENT = "    "


class FunctionMode(StrEnum):
    """Which of encode/decode to emit for a message."""

    ENCODE_ONLY = auto()
    DECODE_ONLY = auto()
    BOTH = auto()

    @property
    def encodes(self) -> bool:
        return self in (FunctionMode.ENCODE_ONLY, FunctionMode.BOTH)

    @property
    def decodes(self) -> bool:
        return self in (FunctionMode.DECODE_ONLY, FunctionMode.BOTH)


class RoleKind(StrEnum):
    SERVER = auto()
    CLIENT_COMMON = auto()
    CLIENT = auto()


@dataclass(frozen=True)
class Role:
    """A header audience: the server, every client, or one client id."""

    kind: RoleKind
    client_id: int | None = None

    @classmethod
    def server(cls) -> "Role":
        return cls(RoleKind.SERVER)

    @classmethod
    def client_common(cls) -> "Role":
        return cls(RoleKind.CLIENT_COMMON)

    @classmethod
    def client(cls, client_id: int) -> "Role":
        return cls(RoleKind.CLIENT, client_id)

    @property
    def description(self) -> str:
        if self.kind == RoleKind.SERVER:
            return "Server"
        if self.kind == RoleKind.CLIENT_COMMON:
            return "Client (Common)"
        return f"Client (ID: {self.client_id})"

    def mode_for(self, msg: MessageDefinition) -> FunctionMode | None:
        """Return the functions this role needs for a message, or None."""
        if self.kind == RoleKind.SERVER:
            # Server publishes pub messages and consumes sub messages
            if msg.request_type == RequestType.PUB:
                return FunctionMode.ENCODE_ONLY
            return FunctionMode.DECODE_ONLY

        if self.kind == RoleKind.CLIENT_COMMON:
            applies = msg.is_broadcast
        else:
            applies = msg.target_client_id == self.client_id
        if not applies:
            return None

        if msg.request_type == RequestType.PUB:
            return FunctionMode.DECODE_ONLY
        return FunctionMode.ENCODE_ONLY


@dataclass(frozen=True)
class OutputFile:
    """One generated file, named relative to the output directory."""

    filename: str
    content: str


def _comment(text: str) -> str:
    return "/* " + text.replace("*/", "* /") + " */"


def _encode_stmt(primitive: PrimitiveType, endian: Endian, source: str, dest: str, indent: str) -> str:
    """Write one primitive from a C expression into a byte pointer."""
    if primitive == PrimitiveType.BOOL:
        return f"{indent}({dest})[0] = ({source}) ? 1 : 0;"
    if primitive.byte_len == 1:
        return f"{indent}({dest})[0] = (uint8_t)({source});"

    kind = HELPER_KIND_MAP[primitive]
    if kind.startswith("f"):
        value = source
    else:
        value = f"(uint{primitive.byte_len * 8}_t)({source})"
    return f"{indent}h6xserial_write_{kind}_{endian.suffix}({value}, {dest});"


def _decode_stmt(primitive: PrimitiveType, endian: Endian, dest: str, source: str, indent: str) -> str:
    """Read one primitive from a byte pointer into a C lvalue."""
    if primitive == PrimitiveType.BOOL:
        return f"{indent}{dest} = (({source})[0]) != 0;"
    if primitive.byte_len == 1:
        return f"{indent}{dest} = ({primitive.c_type})(({source})[0]);"

    kind = HELPER_KIND_MAP[primitive]
    cast = f"({primitive.c_type})" if primitive in SIGNED_TYPES else ""
    return f"{indent}{dest} = {cast}h6xserial_read_{kind}_{endian.suffix}({source});"


def _guard(lines: list[str], condition: str, result: str, indent: str = INDENT) -> None:
    lines.append(f"{indent}if ({condition}) {{")
    lines.append(f"{indent}{INDENT}return {result};")
    lines.append(f"{indent}}}")


def _encode_signature(msg: MessageDefinition) -> str:
    return (
        f"static inline size_t {encode_fn_name(msg.name)}"
        f"(const {type_name(msg.name)} *msg, uint8_t *out_buf, const size_t out_len) {{"
    )


def _decode_signature(msg: MessageDefinition) -> str:
    return (
        f"static inline bool {decode_fn_name(msg.name)}"
        f"({type_name(msg.name)} *msg, const uint8_t *data, const size_t data_len) {{"
    )


# Type definitions


def _message_macros(msg: MessageDefinition) -> list[str]:
    prefix = macro_prefix(msg.name)
    lines = [f"#define {prefix}_PACKET_ID {msg.packet_id}"]
    if isinstance(msg.body, ArraySpec):
        lines.append(f"#define {prefix}_MAX_LENGTH {msg.body.max_length}")
        if msg.body.sector_bytes is not None:
            lines.append(f"#define {prefix}_SECTOR_BYTES {msg.body.sector_bytes}")
    return lines


def _struct_typedef(lines: list[str], struct_type: str, prefix: str, spec: StructSpec) -> None:
    """Emit typedefs for a struct, nested struct typedefs first."""
    for field in spec.fields:
        if isinstance(field.field_type, StructSpec):
            _struct_typedef(
                lines,
                nested_type_name(struct_type, field.name),
                nested_macro_prefix(prefix, field.name),
                field.field_type,
            )

    for field in spec.fields:
        if isinstance(field.field_type, ArrayFieldType):
            lines.append(
                f"#define {prefix}_{to_macro_ident(field.name)}_MAX_LENGTH {field.field_type.max_length}"
            )

    lines.append("typedef struct {")
    for field in spec.fields:
        ident = to_snake_case(field.name)
        field_type = field.field_type
        if isinstance(field_type, PrimitiveFieldType):
            lines.append(f"{INDENT}{field_type.primitive.c_type} {ident};")
        elif isinstance(field_type, ArrayFieldType):
            max_macro = f"{prefix}_{to_macro_ident(field.name)}_MAX_LENGTH"
            lines.append(f"{INDENT}size_t {ident}_length;")
            lines.append(f"{INDENT}{field_type.primitive.c_type} {ident}[{max_macro}];")
        else:
            lines.append(f"{INDENT}{nested_type_name(struct_type, field.name)} {ident};")
    lines.append(f"}} {struct_type};")
    lines.append("")


def message_types(msg: MessageDefinition) -> str:
    """Render the macros and typedefs of a message for the types header."""
    lines: list[str] = []
    if msg.description:
        lines.append(_comment(msg.description))
    lines.extend(_message_macros(msg))
    lines.append("")

    struct_type = type_name(msg.name)
    body = msg.body
    if isinstance(body, ScalarSpec):
        lines.append("typedef struct {")
        lines.append(f"{INDENT}{body.primitive.c_type} value;")
        lines.append(f"}} {struct_type};")
    elif isinstance(body, ArraySpec):
        lines.append("typedef struct {")
        lines.append(f"{INDENT}size_t length;")
        lines.append(f"{INDENT}{body.primitive.c_type} data[{macro_prefix(msg.name)}_MAX_LENGTH];")
        lines.append(f"}} {struct_type};")
    else:
        _struct_typedef(lines, struct_type, macro_prefix(msg.name), body)

    return "\n".join(lines).rstrip("\n")


# Scalar bodies


def _scalar_encode(msg: MessageDefinition, spec: ScalarSpec) -> list[str]:
    width = spec.primitive.byte_len
    lines = [_encode_signature(msg)]
    _guard(lines, "!msg || !out_buf", "0")
    _guard(lines, f"out_len < {width}", "0")
    lines.append(_encode_stmt(spec.primitive, spec.endian, "msg->value", "out_buf", INDENT))
    lines.append(f"{INDENT}return {width};")
    lines.append("}")
    return lines


def _scalar_decode(msg: MessageDefinition, spec: ScalarSpec) -> list[str]:
    width = spec.primitive.byte_len
    lines = [_decode_signature(msg)]
    _guard(lines, "!msg || !data", "false")
    _guard(lines, f"data_len != {width}", "false")
    lines.append(_decode_stmt(spec.primitive, spec.endian, "msg->value", "data", INDENT))
    lines.append(f"{INDENT}return true;")
    lines.append("}")
    return lines


# Array bodies


def _array_encode(msg: MessageDefinition, spec: ArraySpec) -> list[str]:
    width = spec.primitive.byte_len
    max_macro = f"{macro_prefix(msg.name)}_MAX_LENGTH"
    lines = [_encode_signature(msg)]
    _guard(lines, "!msg || !out_buf", "0")
    _guard(lines, f"msg->length > {max_macro}", "0")
    lines.append(f"{INDENT}size_t required = msg->length * {width};")
    _guard(lines, "out_len < required", "0")

    if width == 1:
        lines.append(f"{INDENT}if (required > 0) {{")
        lines.append(f"{INDENT * 2}memcpy(out_buf, msg->data, required);")
        lines.append(f"{INDENT}}}")
        lines.append(f"{INDENT}return required;")
    else:
        lines.append(f"{INDENT}size_t offset = 0;")
        lines.append(f"{INDENT}for (size_t i = 0; i < msg->length; ++i) {{")
        lines.append(_encode_stmt(spec.primitive, spec.endian, "msg->data[i]", "out_buf + offset", INDENT * 2))
        lines.append(f"{INDENT * 2}offset += {width};")
        lines.append(f"{INDENT}}}")
        lines.append(f"{INDENT}return offset;")
    lines.append("}")
    return lines


def _array_decode(msg: MessageDefinition, spec: ArraySpec) -> list[str]:
    width = spec.primitive.byte_len
    max_macro = f"{macro_prefix(msg.name)}_MAX_LENGTH"
    is_char = spec.primitive == PrimitiveType.CHAR

    lines = [_decode_signature(msg)]
    _guard(lines, "!msg || !data", "false")
    _guard(lines, f"data_len % {width} != 0", "false")
    lines.append(f"{INDENT}size_t element_count = data_len / {width};")
    _guard(lines, f"element_count > {max_macro}", "false")
    lines.append(f"{INDENT}msg->length = element_count;")

    lines.append(f"{INDENT}if (element_count == 0) {{")
    if is_char:
        lines.append(f"{INDENT * 2}if ({max_macro} > 0) {{")
        lines.append(f"{INDENT * 3}msg->data[0] = '\\0';")
        lines.append(f"{INDENT * 2}}}")
    lines.append(f"{INDENT * 2}return true;")
    lines.append(f"{INDENT}}}")

    if width == 1:
        lines.append(f"{INDENT}memcpy(msg->data, data, element_count);")
    else:
        lines.append(f"{INDENT}size_t offset = 0;")
        lines.append(f"{INDENT}for (size_t i = 0; i < element_count; ++i) {{")
        lines.append(_decode_stmt(spec.primitive, spec.endian, "msg->data[i]", "data + offset", INDENT * 2))
        lines.append(f"{INDENT * 2}offset += {width};")
        lines.append(f"{INDENT}}}")

    if is_char:
        lines.append(f"{INDENT}if (element_count < {max_macro}) {{")
        lines.append(f"{INDENT * 2}msg->data[element_count] = '\\0';")
        lines.append(f"{INDENT}}}")
    lines.append(f"{INDENT}return true;")
    lines.append("}")
    return lines


# Struct bodies


def _length_checks(lines: list[str], fields: tuple[StructField, ...], accessor: str, prefix: str) -> None:
    """Reject array fields whose length exceeds their capacity."""
    for field in fields:
        ident = to_snake_case(field.name)
        field_type = field.field_type
        if isinstance(field_type, ArrayFieldType):
            max_macro = f"{prefix}_{to_macro_ident(field.name)}_MAX_LENGTH"
            _guard(lines, f"{accessor}{ident}_length > {max_macro}", "0")
        elif isinstance(field_type, StructSpec):
            _length_checks(
                lines,
                field_type.fields,
                f"{accessor}{ident}.",
                nested_macro_prefix(prefix, field.name),
            )


def _field_encode(lines: list[str], fields: tuple[StructField, ...], accessor: str, prefix: str) -> None:
    for field in fields:
        ident = to_snake_case(field.name)
        target = f"{accessor}{ident}"
        field_type = field.field_type

        if isinstance(field_type, PrimitiveFieldType):
            lines.append(_encode_stmt(field_type.primitive, field.endian, target, "out_buf + offset", INDENT))
            lines.append(f"{INDENT}offset += {field_type.primitive.byte_len};")
        elif isinstance(field_type, ArrayFieldType):
            max_macro = f"{prefix}_{to_macro_ident(field.name)}_MAX_LENGTH"
            lines.append(f"{INDENT}for (size_t i = 0; i < {target}_length && i < {max_macro}; ++i) {{")
            lines.append(
                _encode_stmt(field_type.primitive, field.endian, f"{target}[i]", "out_buf + offset", INDENT * 2)
            )
            lines.append(f"{INDENT * 2}offset += {field_type.primitive.byte_len};")
            lines.append(f"{INDENT}}}")
        else:
            _field_encode(lines, field_type.fields, f"{target}.", nested_macro_prefix(prefix, field.name))


def _field_decode(lines: list[str], fields: tuple[StructField, ...], accessor: str, prefix: str) -> None:
    for field in fields:
        ident = to_snake_case(field.name)
        target = f"{accessor}{ident}"
        field_type = field.field_type

        if isinstance(field_type, PrimitiveFieldType):
            lines.append(_decode_stmt(field_type.primitive, field.endian, target, "data + offset", INDENT))
            lines.append(f"{INDENT}offset += {field_type.primitive.byte_len};")
        elif isinstance(field_type, ArrayFieldType):
            # The one variable field takes whatever the fixed fields leave over
            width = field_type.primitive.byte_len
            max_macro = f"{prefix}_{to_macro_ident(field.name)}_MAX_LENGTH"
            lines.append(f"{INDENT}{{")
            lines.append(f"{INDENT * 2}size_t elem_count = remaining / {width};")
            lines.append(f"{INDENT * 2}if (elem_count > {max_macro}) {{")
            lines.append(f"{INDENT * 3}elem_count = {max_macro};")
            lines.append(f"{INDENT * 2}}}")
            lines.append(f"{INDENT * 2}{target}_length = elem_count;")
            lines.append(f"{INDENT * 2}for (size_t i = 0; i < elem_count; ++i) {{")
            lines.append(
                _decode_stmt(field_type.primitive, field.endian, f"{target}[i]", "data + offset", INDENT * 3)
            )
            lines.append(f"{INDENT * 3}offset += {width};")
            lines.append(f"{INDENT * 2}}}")
            lines.append(f"{INDENT}}}")
        else:
            _field_decode(lines, field_type.fields, f"{target}.", nested_macro_prefix(prefix, field.name))


def _struct_encode(msg: MessageDefinition, spec: StructSpec) -> list[str]:
    size = SizeCalculator().struct_size(spec)
    prefix = macro_prefix(msg.name)

    lines = [_encode_signature(msg)]
    _guard(lines, "!msg || !out_buf", "0")
    # The full worst-case buffer is reserved up front
    _guard(lines, f"out_len < {size.max_size}", "0")
    _length_checks(lines, spec.fields, "msg->", prefix)
    lines.append(f"{INDENT}size_t offset = 0;")
    _field_encode(lines, spec.fields, "msg->", prefix)
    lines.append(f"{INDENT}return offset;")
    lines.append("}")
    return lines


def _struct_decode(msg: MessageDefinition, spec: StructSpec) -> list[str]:
    calc = SizeCalculator()
    size = calc.struct_size(spec)
    variable = calc.variable_field(spec)
    prefix = macro_prefix(msg.name)

    lines = [_decode_signature(msg)]
    _guard(lines, "!msg || !data", "false")

    if variable is None:
        _guard(lines, f"data_len != {size.max_size}", "false")
        lines.append(f"{INDENT}size_t offset = 0;")
    else:
        if size.min_size > 0:
            _guard(lines, f"data_len < {size.min_size}", "false")
        _guard(lines, f"data_len > {size.max_size}", "false")
        remaining = f"data_len - {size.min_size}" if size.min_size > 0 else "data_len"
        if variable.element_width > 1:
            _guard(lines, f"({remaining}) % {variable.element_width} != 0", "false")
        lines.append(f"{INDENT}size_t offset = 0;")
        lines.append(f"{INDENT}size_t remaining = {remaining};")

    _field_decode(lines, spec.fields, "msg->", prefix)
    lines.append(f"{INDENT}return true;")
    lines.append("}")
    return lines


def message_functions(msg: MessageDefinition, mode: FunctionMode) -> str:
    """Render the encode and/or decode functions of a message."""
    body = msg.body
    if isinstance(body, ScalarSpec):
        encode, decode = _scalar_encode, _scalar_decode
    elif isinstance(body, ArraySpec):
        encode, decode = _array_encode, _array_decode
    else:
        encode, decode = _struct_encode, _struct_decode

    sections: list[str] = []
    if msg.description:
        sections.append(_comment(msg.description))
    if mode.encodes:
        sections.append("\n".join(encode(msg, body)) + "\n")  # type: ignore[arg-type]
    if mode.decodes:
        sections.append("\n".join(decode(msg, body)) + "\n")  # type: ignore[arg-type]
    return "\n".join(sections).rstrip("\n")


def helper_block() -> str:
    """Return the endian helper functions every generated function calls."""

    def include(filename: str) -> str:
        path = os.path.join(os.path.dirname(__file__), "runtimes", "c", filename)
        try:
            with open(path, encoding="utf-8") as f:
                return f.read()
        except OSError as e:
            raise TemplateNotFoundError(f"failed to read template {path}") from e

    return "\n\n".join(include(filename).rstrip("\n") for filename in HELPER_FILES)


def render_types_header(catalog: Catalog, source: str, filename: str) -> str:
    """Render the shared header: helpers, macros and typedefs."""
    return header_template.render(
        source=source,
        metadata=catalog.metadata,
        banner_lines=["Common type definitions and helper functions"],
        guard=header_guard(filename),
        helpers=helper_block(),
        blocks=[message_types(msg) for msg in catalog.messages],
    )


def render_role_header(
    catalog: Catalog,
    source: str,
    filename: str,
    types_header: str,
    role: Role,
    common_header: str | None = None,
) -> str:
    """Render the functions one role needs, on top of the types header."""
    blocks: list[str] = []
    for msg in catalog.messages:
        mode = role.mode_for(msg)
        if mode is not None:
            blocks.append(message_functions(msg, mode))

    includes = [types_header]
    if common_header is not None:
        includes.append(common_header)

    return role_template.render(
        source=source,
        metadata=catalog.metadata,
        banner_lines=[f"Role: {role.description}"],
        guard=header_guard(filename),
        includes=includes,
        blocks=blocks,
    )


def render_files(catalog: Catalog, source: str, base_name: str) -> list[OutputFile]:
    """Render every header for a catalog.

    Produces ``<base>_types.h``, ``<base>_server.h``, ``<base>_client_common.h``
    and one ``<base>_client_<id>.h`` per distinct positive client id.
    """
    types_filename = f"{base_name}_types.h"
    server_filename = f"{base_name}_server.h"
    common_filename = f"{base_name}_client_common.h"

    files = [
        OutputFile(types_filename, render_types_header(catalog, source, types_filename)),
        OutputFile(
            server_filename,
            render_role_header(catalog, source, server_filename, types_filename, Role.server()),
        ),
        OutputFile(
            common_filename,
            render_role_header(catalog, source, common_filename, types_filename, Role.client_common()),
        ),
    ]

    for client_id in catalog.client_ids():
        client_filename = f"{base_name}_client_{client_id}.h"
        logger.debug("Rendering header for client %d", client_id)
        files.append(
            OutputFile(
                client_filename,
                render_role_header(
                    catalog,
                    source,
                    client_filename,
                    types_filename,
                    Role.client(client_id),
                    common_header=common_filename,
                ),
            )
        )

    logger.debug("Rendered %d header(s) for base name '%s'", len(files), base_name)
    return files


def render(catalog: Catalog, source: str, filename: str) -> str:
    """Render a single self-contained header with encode and decode for every message."""
    blocks = [
        message_types(msg) + "\n\n" + message_functions(msg, FunctionMode.BOTH)
        for msg in catalog.messages
    ]
    return header_template.render(
        source=source,
        metadata=catalog.metadata,
        banner_lines=[],
        guard=header_guard(filename),
        helpers=helper_block(),
        blocks=blocks,
    )
