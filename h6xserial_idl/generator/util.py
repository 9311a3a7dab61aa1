"""Identifier conventions shared by the emitters.

The case transforms are deliberately non-smart: interior case transitions are
not split, so ``CO2Level`` becomes ``co2level`` rather than ``co2_level``.
Generated identifiers must stay stable across versions.
"""


def _join_alnum_runs(name: str, upper: bool, empty: str) -> str:
    result: list[str] = []
    last_was_underscore = False
    for ch in name:
        if ch.isascii() and ch.isalnum():
            if not result and ch.isdigit():
                result.append("_")
            result.append(ch.upper() if upper else ch.lower())
            last_was_underscore = False
        elif not last_was_underscore:
            result.append("_")
            last_was_underscore = True

    text = "".join(result)
    if text.endswith("_"):
        text = text[:-1]
    return text or empty


def to_snake_case(name: str) -> str:
    """Lowercase ASCII alphanumerics, collapsing every other run to ``_``."""
    return _join_alnum_runs(name, upper=False, empty="msg")


def to_macro_ident(name: str) -> str:
    """Like :func:`to_snake_case` but uppercased, for macro names."""
    return _join_alnum_runs(name, upper=True, empty="MSG")


def to_pascal_case(name: str) -> str:
    """Capitalize each alphanumeric run and drop the separators."""
    result: list[str] = []
    capitalize = True
    for ch in name:
        if ch.isascii() and ch.isalnum():
            if not result and ch.isdigit():
                result.append("M")
            result.append(ch.upper() if capitalize else ch.lower())
            capitalize = False
        else:
            capitalize = True
    return "".join(result) or "Msg"


def type_name(message_name: str) -> str:
    return f"h6xserial_msg_{to_snake_case(message_name)}_t"


def encode_fn_name(message_name: str) -> str:
    return f"h6xserial_msg_{to_snake_case(message_name)}_encode"


def decode_fn_name(message_name: str) -> str:
    return f"h6xserial_msg_{to_snake_case(message_name)}_decode"


def macro_prefix(message_name: str) -> str:
    return f"H6XSERIAL_MSG_{to_macro_ident(message_name)}"


def nested_type_name(parent_type_name: str, field_name: str) -> str:
    """Name the typedef of a nested struct field.

    >>> nested_type_name("h6xserial_msg_pose_t", "Position")
    'h6xserial_msg_pose_position_t'
    """
    base = parent_type_name.removesuffix("_t")
    return f"{base}_{to_snake_case(field_name)}_t"


def nested_macro_prefix(parent_prefix: str, field_name: str) -> str:
    return f"{parent_prefix}_{to_macro_ident(field_name)}"


def header_guard(file_name: str) -> str:
    """Derive an include guard from a header file name."""
    guard = "".join(ch.upper() if ch.isascii() and ch.isalnum() else "_" for ch in file_name)
    if not guard.endswith("_H"):
        if not guard.endswith("_"):
            guard += "_"
        guard += "H"
    return guard


def format_command_name(name: str) -> str:
    """SCREAMING_SNAKE command name with a single ``CMD_`` prefix."""
    result: list[str] = []
    last_was_underscore = False
    for ch in name:
        if ch.isascii() and ch.isalnum():
            if not result and ch.isdigit():
                result.append("CMD_")
            result.append(ch.upper())
            last_was_underscore = False
        elif not last_was_underscore and result:
            result.append("_")
            last_was_underscore = True

    text = "".join(result)
    if text.endswith("_"):
        text = text[:-1]
    if not text.startswith("CMD_"):
        text = f"CMD_{text}"
    return text
