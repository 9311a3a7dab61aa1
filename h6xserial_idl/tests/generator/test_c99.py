"""Tests for C99 code generation."""

import pytest

from h6xserial_idl.generator import c99, parse_ir
from h6xserial_idl.generator.c99 import FunctionMode, Role
from h6xserial_idl.generator.errors import TemplateNotFoundError


def _catalog(definitions):
    return parse_ir(definitions)


def _message(definition, name="m"):
    return parse_ir({name: definition}).messages[0]


def _role_catalog():
    return _catalog(
        {
            "A": {"packet_id": 10, "msg_type": "uint8"},
            "B": {"packet_id": 11, "msg_type": "uint8", "request_type": "sub"},
            "C": {"packet_id": 12, "msg_type": "uint8", "target_client_id": 7},
        }
    )


def describe_message_types():
    def renders_scalar(expect):
        msg = _message({"packet_id": 0, "msg_type": "uint8"}, name="ping")

        expect(c99.message_types(msg)) == (
            "#define H6XSERIAL_MSG_PING_PACKET_ID 0\n"
            "\n"
            "typedef struct {\n"
            "    uint8_t value;\n"
            "} h6xserial_msg_ping_t;"
        )

    def renders_array(expect):
        msg = _message(
            {"packet_id": 2, "msg_type": "char", "array": True, "max_length": 8, "sector_bytes": 512},
            name="name",
        )

        expect(c99.message_types(msg)) == (
            "#define H6XSERIAL_MSG_NAME_PACKET_ID 2\n"
            "#define H6XSERIAL_MSG_NAME_MAX_LENGTH 8\n"
            "#define H6XSERIAL_MSG_NAME_SECTOR_BYTES 512\n"
            "\n"
            "typedef struct {\n"
            "    size_t length;\n"
            "    char data[H6XSERIAL_MSG_NAME_MAX_LENGTH];\n"
            "} h6xserial_msg_name_t;"
        )

    def renders_struct_with_array_field(expect):
        msg = _message(
            {
                "packet_id": 4,
                "msg_type": "struct",
                "fields": {
                    "id": {"type": "uint8"},
                    "data": {"type": "uint16", "array": True, "max_length": 4},
                },
            }
        )

        expect(c99.message_types(msg)) == (
            "#define H6XSERIAL_MSG_M_PACKET_ID 4\n"
            "\n"
            "#define H6XSERIAL_MSG_M_DATA_MAX_LENGTH 4\n"
            "typedef struct {\n"
            "    uint8_t id;\n"
            "    size_t data_length;\n"
            "    uint16_t data[H6XSERIAL_MSG_M_DATA_MAX_LENGTH];\n"
            "} h6xserial_msg_m_t;"
        )

    def emits_nested_typedefs_first(expect):
        msg = _message(
            {
                "packet_id": 5,
                "msg_type": "struct",
                "fields": {
                    "pos": {
                        "type": "struct",
                        "fields": {"tags": {"type": "char", "array": True, "max_length": 3}},
                    },
                    "ok": {"type": "bool"},
                },
            }
        )
        text = c99.message_types(msg)

        expect("#define H6XSERIAL_MSG_M_POS_TAGS_MAX_LENGTH 3" in text) == True
        expect("    h6xserial_msg_m_pos_t pos;" in text) == True
        expect(text.index("} h6xserial_msg_m_pos_t;") < text.index("} h6xserial_msg_m_t;")) == True

    def sanitizes_description(expect):
        msg = _message({"packet_id": 0, "msg_type": "uint8", "msg_desc": "ends */ early"})

        expect(c99.message_types(msg).splitlines()[0]) == "/* ends * / early */"


def describe_scalar_functions():
    def encodes_single_byte(expect):
        msg = _message({"packet_id": 0, "msg_type": "uint8"}, name="ping")
        text = c99.message_functions(msg, FunctionMode.BOTH)

        expect(
            "static inline size_t h6xserial_msg_ping_encode("
            "const h6xserial_msg_ping_t *msg, uint8_t *out_buf, const size_t out_len) {" in text
        ) == True
        expect("    if (out_len < 1) {" in text) == True
        expect("    (out_buf)[0] = (uint8_t)(msg->value);" in text) == True
        expect("    return 1;" in text) == True

    def decodes_exact_length(expect):
        msg = _message({"packet_id": 0, "msg_type": "uint8"}, name="ping")
        text = c99.message_functions(msg, FunctionMode.DECODE_ONLY)

        expect(
            "static inline bool h6xserial_msg_ping_decode("
            "h6xserial_msg_ping_t *msg, const uint8_t *data, const size_t data_len) {" in text
        ) == True
        expect("    if (data_len != 1) {" in text) == True
        expect("    msg->value = (uint8_t)((data)[0]);" in text) == True
        expect("_encode(" in text) == False

    def uses_endian_helpers(expect):
        big = _message({"packet_id": 1, "msg_type": "float32", "endianess": "big"}, name="temp")
        little = _message({"packet_id": 1, "msg_type": "float32"}, name="temp")

        expect("h6xserial_write_f32_be(msg->value, out_buf);" in c99.message_functions(big, FunctionMode.BOTH)) == True
        expect("msg->value = h6xserial_read_f32_le(data);" in c99.message_functions(little, FunctionMode.BOTH)) == True

    def casts_signed_integers(expect):
        msg = _message({"packet_id": 1, "msg_type": "int32"})
        text = c99.message_functions(msg, FunctionMode.BOTH)

        expect("h6xserial_write_u32_le((uint32_t)(msg->value), out_buf);" in text) == True
        expect("msg->value = (int32_t)h6xserial_read_u32_le(data);" in text) == True

    def normalizes_bools(expect):
        msg = _message({"packet_id": 1, "msg_type": "bool"})
        text = c99.message_functions(msg, FunctionMode.BOTH)

        expect("(out_buf)[0] = (msg->value) ? 1 : 0;" in text) == True
        expect("msg->value = ((data)[0]) != 0;" in text) == True


def describe_array_functions():
    def copies_byte_arrays(expect):
        msg = _message({"packet_id": 2, "msg_type": "char", "array": True, "max_length": 8}, name="name")
        text = c99.message_functions(msg, FunctionMode.BOTH)

        expect("    if (msg->length > H6XSERIAL_MSG_NAME_MAX_LENGTH) {" in text) == True
        expect("        memcpy(out_buf, msg->data, required);" in text) == True
        expect("    memcpy(msg->data, data, element_count);" in text) == True

    def terminates_char_arrays(expect):
        msg = _message({"packet_id": 2, "msg_type": "char", "array": True, "max_length": 8}, name="name")
        text = c99.message_functions(msg, FunctionMode.DECODE_ONLY)

        expect("            msg->data[0] = '\\0';" in text) == True
        expect("    if (element_count < H6XSERIAL_MSG_NAME_MAX_LENGTH) {" in text) == True
        expect("        msg->data[element_count] = '\\0';" in text) == True

    def does_not_terminate_byte_arrays(expect):
        msg = _message({"packet_id": 2, "msg_type": "uint8", "array": True, "max_length": 8})
        text = c99.message_functions(msg, FunctionMode.DECODE_ONLY)

        expect("'\\0'" in text) == False

    def loops_over_wide_elements(expect):
        msg = _message({"packet_id": 2, "msg_type": "uint16", "array": True, "max_length": 8, "endianess": "be"})
        text = c99.message_functions(msg, FunctionMode.BOTH)

        expect("    if (data_len % 2 != 0) {" in text) == True
        expect("        h6xserial_write_u16_be((uint16_t)(msg->data[i]), out_buf + offset);" in text) == True
        expect("        msg->data[i] = h6xserial_read_u16_be(data + offset);" in text) == True


def describe_struct_functions():
    def encodes_fixed_struct(expect):
        msg = _message(
            {
                "packet_id": 3,
                "msg_type": "struct",
                "fields": {"a": {"type": "uint8"}, "b": {"type": "uint16", "endianess": "big"}},
            }
        )
        text = c99.message_functions(msg, FunctionMode.BOTH)

        expect("    if (out_len < 3) {" in text) == True
        expect("    (out_buf + offset)[0] = (uint8_t)(msg->a);" in text) == True
        expect("    h6xserial_write_u16_be((uint16_t)(msg->b), out_buf + offset);" in text) == True
        expect("    if (data_len != 3) {" in text) == True
        expect("    msg->b = h6xserial_read_u16_be(data + offset);" in text) == True

    def decodes_variable_tail(expect):
        msg = _message(
            {
                "packet_id": 4,
                "msg_type": "struct",
                "fields": {
                    "id": {"type": "uint8"},
                    "data": {"type": "uint16", "array": True, "max_length": 4},
                },
            }
        )
        text = c99.message_functions(msg, FunctionMode.DECODE_ONLY)

        expect("    if (data_len < 1) {" in text) == True
        expect("    if (data_len > 9) {" in text) == True
        expect("    if ((data_len - 1) % 2 != 0) {" in text) == True
        expect("    size_t remaining = data_len - 1;" in text) == True
        expect("        msg->data_length = elem_count;" in text) == True

    def rejects_overlong_arrays_on_encode(expect):
        msg = _message(
            {
                "packet_id": 4,
                "msg_type": "struct",
                "fields": {
                    "id": {"type": "uint8"},
                    "data": {"type": "uint16", "array": True, "max_length": 4},
                },
            }
        )
        text = c99.message_functions(msg, FunctionMode.ENCODE_ONLY)

        expect("    if (msg->data_length > H6XSERIAL_MSG_M_DATA_MAX_LENGTH) {" in text) == True
        expect("    for (size_t i = 0; i < msg->data_length && i < H6XSERIAL_MSG_M_DATA_MAX_LENGTH; ++i) {" in text) == True
        expect("    return offset;" in text) == True

    def walks_nested_fields(expect):
        msg = _message(
            {
                "packet_id": 5,
                "msg_type": "struct",
                "fields": {
                    "pos": {"type": "struct", "fields": {"x": {"type": "int16"}}},
                },
            }
        )
        text = c99.message_functions(msg, FunctionMode.BOTH)

        expect("    h6xserial_write_u16_le((uint16_t)(msg->pos.x), out_buf + offset);" in text) == True
        expect("    msg->pos.x = (int16_t)h6xserial_read_u16_le(data + offset);" in text) == True


def describe_roles():
    def partitions_by_direction(expect):
        a, b, c = _role_catalog().messages

        expect(Role.server().mode_for(a)) == FunctionMode.ENCODE_ONLY
        expect(Role.server().mode_for(b)) == FunctionMode.DECODE_ONLY
        expect(Role.server().mode_for(c)) == FunctionMode.ENCODE_ONLY
        expect(Role.client_common().mode_for(a)) == FunctionMode.DECODE_ONLY
        expect(Role.client_common().mode_for(b)) == FunctionMode.ENCODE_ONLY
        expect(Role.client_common().mode_for(c)) == None
        expect(Role.client(7).mode_for(a)) == None
        expect(Role.client(7).mode_for(c)) == FunctionMode.DECODE_ONLY

    def names_roles(expect):
        expect(Role.server().description) == "Server"
        expect(Role.client_common().description) == "Client (Common)"
        expect(Role.client(7).description) == "Client (ID: 7)"


def describe_render_files():
    def names_every_header(expect):
        files = c99.render_files(_role_catalog(), "msgs/in.json", "proto")

        expect([f.filename for f in files]) == [
            "proto_types.h",
            "proto_server.h",
            "proto_client_common.h",
            "proto_client_7.h",
        ]

    def splits_functions_by_role(expect):
        files = {f.filename: f.content for f in c99.render_files(_role_catalog(), "msgs/in.json", "proto")}

        server = files["proto_server.h"]
        expect("h6xserial_msg_a_encode(" in server) == True
        expect("h6xserial_msg_a_decode(" in server) == False
        expect("h6xserial_msg_b_decode(" in server) == True
        expect("h6xserial_msg_c_encode(" in server) == True

        common = files["proto_client_common.h"]
        expect("h6xserial_msg_a_decode(" in common) == True
        expect("h6xserial_msg_b_encode(" in common) == True
        expect("h6xserial_msg_c_" in common) == False

        client = files["proto_client_7.h"]
        expect("h6xserial_msg_c_decode(" in client) == True
        expect("h6xserial_msg_a_" in client) == False
        expect('#include "proto_types.h"\n#include "proto_client_common.h"\n' in client) == True

    def keeps_types_out_of_role_headers(expect):
        files = {f.filename: f.content for f in c99.render_files(_role_catalog(), "msgs/in.json", "proto")}

        expect("typedef struct" in files["proto_types.h"]) == True
        expect("h6xserial_write_u16_le" in files["proto_types.h"]) == True
        expect("typedef struct" in files["proto_server.h"]) == False
        expect("_encode(" in files["proto_types.h"]) == False

    def creates_one_header_per_client(expect):
        catalog = _catalog(
            {
                "x": {"packet_id": 1, "msg_type": "uint8", "target_client_id": 42},
                "y": {"packet_id": 2, "msg_type": "uint8", "target_client_id": 3},
                "z": {"packet_id": 3, "msg_type": "uint8", "target_client_id": 42},
            }
        )
        names = [f.filename for f in c99.render_files(catalog, "in.json", "p")]

        expect(names) == ["p_types.h", "p_server.h", "p_client_common.h", "p_client_3.h", "p_client_42.h"]

    def is_deterministic(expect):
        first = c99.render_files(_role_catalog(), "msgs/in.json", "proto")
        second = c99.render_files(_role_catalog(), "msgs/in.json", "proto")

        expect(first) == second


def describe_headers():
    def writes_banner_and_guards(expect):
        catalog = _catalog({"version": "1.2", "max_address": 9, "ping": {"packet_id": 0, "msg_type": "uint8"}})
        text = c99.render_types_header(catalog, "msgs/in.json", "proto_types.h")

        expect(text.startswith(
            "/*\n"
            " * Auto-generated by h6xserial_idl.\n"
            " * Source: msgs/in.json\n"
            " * Common type definitions and helper functions\n"
            " * Protocol version: 1.2\n"
            " * Max address: 9\n"
            " */\n"
            "\n"
            "#ifndef PROTO_TYPES_H\n"
            "#define PROTO_TYPES_H\n"
        )) == True
        expect('extern "C" {' in text) == True
        expect(text.endswith("#endif /* PROTO_TYPES_H */\n")) == True

    def names_role_in_banner(expect):
        text = c99.render_role_header(
            _role_catalog(), "in.json", "proto_client_7.h", "proto_types.h", Role.client(7), "proto_client_common.h"
        )

        expect(" * Role: Client (ID: 7)\n" in text) == True
        expect("#ifndef PROTO_CLIENT_7_H\n" in text) == True
        expect("Protocol version" in text) == False

    def renders_single_header(expect):
        text = c99.render(_role_catalog(), "in.json", "messages.h")

        expect("#ifndef MESSAGES_H" in text) == True
        expect("#include \"" in text) == False
        for name in ["a", "b", "c"]:
            expect(f"h6xserial_msg_{name}_encode(" in text) == True
            expect(f"h6xserial_msg_{name}_decode(" in text) == True


def describe_helper_block():
    def inlines_every_helper(expect):
        text = c99.helper_block()

        for kind in ["u16", "u32", "u64", "f32", "f64"]:
            for endian in ["le", "be"]:
                expect(f"h6xserial_write_{kind}_{endian}(" in text) == True
                expect(f"h6xserial_read_{kind}_{endian}(" in text) == True
        expect("seridl" in text) == False

    def fails_on_missing_template(expect, monkeypatch):
        monkeypatch.setattr(c99, "HELPER_FILES", ["helpers_u128.h"])

        with pytest.raises(TemplateNotFoundError):
            c99.helper_block()
