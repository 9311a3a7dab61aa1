"""Command-line interface for h6xserial code generation."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from h6xserial_idl.generator import c99, markdown, parser
from h6xserial_idl.generator.errors import ValidationError
from h6xserial_idl.generator.sizes import ProtocolSizeInfo, calculate_sizes
from h6xserial_idl.generator.types import ArraySpec, Catalog, ScalarSpec

logger = logging.getLogger(__name__)

LANGUAGES = {"c": "C99", "c99": "C99"}

DEFAULT_INPUT = ("msgs/intermediate_msg.json", "../msgs/intermediate_msg.json")
DEFAULT_C_OUTPUT = (
    "generated_c/h6xserial_generated_messages.h",
    "../generated_c/h6xserial_generated_messages.h",
)
DEFAULT_DOCS_OUTPUT = ("docs/COMMANDS.md", "../docs/COMMANDS.md")


def _resolve_default(paths: tuple[str, str]) -> Path:
    """Pick the first default path that exists, or whose directory does."""
    primary, fallback = Path(paths[0]), Path(paths[1])
    if primary.exists():
        return primary
    if fallback.exists():
        return fallback
    if not primary.parent.is_dir() and fallback.parent.is_dir():
        return fallback
    return primary


def _language(name: str) -> str:
    try:
        return LANGUAGES[name.lower()]
    except KeyError:
        raise click.UsageError(f"unsupported language '{name}', expected 'c'") from None


def _setup_logging(verbose: bool) -> None:
    if not verbose:
        return
    package_logger = logging.getLogger("h6xserial_idl")
    package_logger.setLevel(logging.DEBUG)
    if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
        package_logger.addHandler(
            RichHandler(console=Console(stderr=True), show_path=False, show_time=False)
        )


def _load(input_path: Path) -> Catalog:
    try:
        return parser.load(input_path)
    except OSError as e:
        raise click.ClickException(
            f"failed to read input JSON: {input_path}: {e.strerror or e}"
        ) from e
    except ValidationError as e:
        raise click.ClickException(f"{input_path}: {e}") from e


def _write(path: Path, content: str) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        raise click.ClickException(f"failed to write output to {path}: {e.strerror or e}") from e
    logger.debug("Wrote %s", path)


@click.command()
@click.argument("args", nargs=-1, metavar="[LANGUAGE] [INPUT] [OUTPUT]")
@click.option("--lang", "-l", "lang", default=None, help="Target language (c)")
@click.option(
    "--export_docs",
    "--export-docs",
    "export_docs",
    is_flag=True,
    help="Generate Markdown command documentation instead of code",
)
@click.option(
    "--single-header",
    "single_header",
    is_flag=True,
    help="Write one header with every encoder and decoder instead of role headers",
)
@click.option("--info", "show_info", is_flag=True, help="Display message sizes and roles")
@click.option("--json", "output_json", is_flag=True, help="Output --info as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(
    args: tuple[str, ...],
    lang: str | None,
    export_docs: bool,
    single_header: bool,
    show_info: bool,
    output_json: bool,
    verbose: bool,
) -> None:
    """Generate C99 serializers or Markdown docs from an h6xserial IR file.

    LANGUAGE may be given as the first argument or with --lang; only c is
    supported. INPUT and OUTPUT default to msgs/intermediate_msg.json and
    generated_c/h6xserial_generated_messages.h, falling back to the parent
    directory when those are missing.
    """
    _setup_logging(verbose)

    positional = list(args)
    if positional and positional[0].lower() in LANGUAGES:
        language = _language(positional.pop(0))
    else:
        language = _language(lang or "c")

    if len(positional) > 2:
        raise click.UsageError(f"unexpected extra argument '{positional[2]}'")

    input_path = Path(positional[0]) if positional else _resolve_default(DEFAULT_INPUT)
    defaults = DEFAULT_DOCS_OUTPUT if export_docs else DEFAULT_C_OUTPUT
    output_path = Path(positional[1]) if len(positional) > 1 else _resolve_default(defaults)

    catalog = _load(input_path)
    source = str(input_path)
    count = len(catalog.messages)

    if show_info:
        size_info = calculate_sizes(catalog)
        if output_json:
            _output_json(catalog, size_info)
        else:
            _output_plain(catalog, size_info)
        return

    if export_docs:
        _write(output_path, markdown.render(catalog, source))
        click.echo(f"Generated documentation at {output_path} for {count} command(s).")
        return

    if single_header:
        _write(output_path, c99.render(catalog, source, output_path.name))
        click.echo(f"Generated {language} output at {output_path} for {count} message definition(s).")
        return

    output_dir = output_path.parent
    for output_file in c99.render_files(catalog, source, output_path.stem):
        _write(output_dir / output_file.filename, output_file.content)
    click.echo(f"Generated {language} output at {output_dir} for {count} message definition(s).")


def _body_kind(body: object) -> str:
    if isinstance(body, ScalarSpec):
        return "scalar"
    if isinstance(body, ArraySpec):
        return "array"
    return "struct"


def _format_target(target_client_id: int) -> str:
    return "all" if target_client_id < 0 else str(target_client_id)


def _output_json(catalog: Catalog, size_info: ProtocolSizeInfo) -> None:
    """Output catalog and size info as JSON."""
    messages = []
    for msg in catalog.messages:
        size = size_info.messages[msg.name].size
        entry = msg.to_dict()
        entry["min_size"] = size.min_size
        entry["max_size"] = size.max_size
        entry["kind"] = size.kind.value
        messages.append(entry)

    data = {
        "metadata": catalog.metadata.to_dict(),
        "messages": messages,
        "sizes": {
            "min_message_size": size_info.min_message_size,
            "max_message_size": size_info.max_message_size,
            "payload_limit": size_info.payload_limit,
            "headroom": size_info.headroom,
        },
    }
    click.echo(json.dumps(data, indent=2))


def _output_plain(catalog: Catalog, size_info: ProtocolSizeInfo) -> None:
    """Output catalog info using rich text formatting."""
    console = Console()

    console.print("[bold cyan]Protocol[/bold cyan]")
    proto_table = Table(show_header=False, box=None, padding=(0, 2, 0, 2))
    proto_table.add_column("Label", style="dim")
    proto_table.add_column("Value", style="white")
    proto_table.add_row("Version", catalog.metadata.version or "-")
    max_address = catalog.metadata.max_address
    proto_table.add_row("Max address", "-" if max_address is None else str(max_address))
    proto_table.add_row("Messages", str(len(catalog.messages)))
    console.print(proto_table)
    console.print()

    console.print("[bold cyan]Messages[/bold cyan]")
    msg_table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
    msg_table.add_column("Name", style="white")
    msg_table.add_column("ID", style="green", justify="right")
    msg_table.add_column("Body", style="dim")
    msg_table.add_column("Size", style="yellow", justify="right")
    msg_table.add_column("Type", style="dim")
    msg_table.add_column("Target", style="dim", justify="right")

    for msg in catalog.messages:
        size = size_info.messages[msg.name].size
        if size.is_fixed:
            size_str = f"{size.min_size} bytes"
        else:
            size_str = f"{size.min_size}-{size.max_size} bytes"
        msg_table.add_row(
            msg.name,
            str(msg.packet_id),
            _body_kind(msg.body),
            size_str,
            msg.request_type.value,
            _format_target(msg.target_client_id),
        )

    console.print(msg_table)
    console.print()

    console.print("[bold cyan]Payload[/bold cyan]")
    payload_table = Table(show_header=False, box=None, padding=(0, 2, 0, 2))
    payload_table.add_column("Label", style="dim")
    payload_table.add_column("Value", style="white")
    payload_table.add_row("Largest message", f"{size_info.max_message_size} bytes")
    payload_table.add_row("Limit", f"{size_info.payload_limit} bytes")
    payload_table.add_row("Headroom", f"{size_info.headroom} bytes")
    console.print(payload_table)


def main() -> None:
    """Main entry point."""
    cli(auto_envvar_prefix="H6XSERIAL_IDL")


if __name__ == "__main__":
    main()
