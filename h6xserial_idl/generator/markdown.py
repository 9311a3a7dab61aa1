"""Markdown command reference generator."""

import logging
from dataclasses import dataclass

from jinja2 import Environment, PackageLoader

from .types import Catalog, MessageDefinition
from .util import format_command_name

logger = logging.getLogger(__name__)

env = Environment(
    loader=PackageLoader("h6xserial_idl.generator", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    line_comment_prefix="%%",
    line_statement_prefix="%",
)

template = env.get_template("commands.md.j2")

# Packet ids below this are reserved for the base command set
CUSTOM_COMMAND_START = 20


@dataclass
class Section:
    title: str
    messages: list[MessageDefinition]


def describe(msg: MessageDefinition) -> str:
    if not msg.description:
        return "No description"
    return " ".join(msg.description.split()).replace("|", "\\|")


def sections(catalog: Catalog) -> list[Section]:
    """Group messages into the base and custom command tables, skipping empty ones."""
    base = [m for m in catalog.messages if m.packet_id < CUSTOM_COMMAND_START]
    custom = [m for m in catalog.messages if m.packet_id >= CUSTOM_COMMAND_START]

    result = []
    if base:
        result.append(Section(f"Base Commands (0~{CUSTOM_COMMAND_START - 1})", base))
    if custom:
        result.append(Section(f"Custom Commands ({CUSTOM_COMMAND_START}+)", custom))
    return result


def render(catalog: Catalog, source: str) -> str:
    logger.debug("Documenting %d command(s)", len(catalog.messages))
    return template.render(
        source=source,
        metadata=catalog.metadata,
        sections=sections(catalog),
        format_command_name=format_command_name,
        describe=describe,
    )
