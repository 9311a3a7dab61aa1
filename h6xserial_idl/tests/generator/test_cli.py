"""Tests for CLI interface."""

import json
import os

from click.testing import CliRunner

from h6xserial_idl.generator.cli import cli

FILE_DIR = os.path.dirname(os.path.realpath(__file__))
MESSAGES = f"{FILE_DIR}/messages.json"


def describe_generate_c():
    def writes_role_headers(expect, tmp_path):
        runner = CliRunner()
        output = tmp_path / "out" / "proto.h"

        result = runner.invoke(cli, ["c", MESSAGES, str(output)])

        expect(result.exit_code) == 0
        expect(sorted(os.listdir(tmp_path / "out"))) == [
            "proto_client_7.h",
            "proto_client_common.h",
            "proto_server.h",
            "proto_types.h",
        ]
        expect("Generated C99 output at" in result.output) == True
        expect("for 3 message definition(s)." in result.output) == True

    def defaults_language_to_c(expect, tmp_path):
        runner = CliRunner()

        result = runner.invoke(cli, [MESSAGES, str(tmp_path / "proto.h")])

        expect(result.exit_code) == 0
        expect((tmp_path / "proto_types.h").exists()) == True

    def accepts_lang_option(expect, tmp_path):
        runner = CliRunner()

        result = runner.invoke(cli, ["--lang=C99", MESSAGES, str(tmp_path / "proto.h")])

        expect(result.exit_code) == 0

    def writes_single_header(expect, tmp_path):
        runner = CliRunner()
        output = tmp_path / "messages.h"

        result = runner.invoke(cli, ["--single-header", "c", MESSAGES, str(output)])

        expect(result.exit_code) == 0
        content = output.read_text()
        expect("#ifndef MESSAGES_H" in content) == True
        expect("h6xserial_msg_motor_status_encode(" in content) == True
        expect("h6xserial_msg_motor_status_decode(" in content) == True

    def fails_with_unknown_language(expect, tmp_path):
        runner = CliRunner()

        result = runner.invoke(cli, ["-l", "rust", MESSAGES, str(tmp_path / "proto.h")])

        expect(result.exit_code) == 2
        expect("unsupported language 'rust', expected 'c'" in result.output) == True

    def fails_with_extra_arguments(expect, tmp_path):
        runner = CliRunner()

        result = runner.invoke(cli, ["c", MESSAGES, str(tmp_path / "a.h"), "extra"])

        expect(result.exit_code) == 2

    def uses_default_paths(expect, tmp_path, monkeypatch):
        runner = CliRunner()
        workdir = tmp_path / "project"
        (workdir / "msgs").mkdir(parents=True)
        with open(MESSAGES, encoding="utf-8") as f:
            (workdir / "msgs" / "intermediate_msg.json").write_text(f.read())
        monkeypatch.chdir(workdir)

        result = runner.invoke(cli, [])

        expect(result.exit_code) == 0
        expect((workdir / "generated_c" / "h6xserial_generated_messages_types.h").exists()) == True
        expect((workdir / "generated_c" / "h6xserial_generated_messages_client_7.h").exists()) == True


def describe_errors():
    def reports_missing_input(expect, tmp_path):
        runner = CliRunner()
        missing = tmp_path / "missing.json"

        result = runner.invoke(cli, ["c", str(missing), str(tmp_path / "proto.h")])

        expect(result.exit_code) == 1
        expect(f"failed to read input JSON: {missing}" in result.output) == True

    def reports_validation_errors(expect, tmp_path):
        runner = CliRunner()
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"ping": {"packet_id": 300, "msg_type": "uint8"}}))

        result = runner.invoke(cli, ["c", str(bad), str(tmp_path / "proto.h")])

        expect(result.exit_code) == 1
        expect("ping: packet_id 300 is outside 0-255" in result.output) == True

    def reports_write_failures(expect, tmp_path):
        runner = CliRunner()
        blocker = tmp_path / "blocker"
        blocker.write_text("")

        result = runner.invoke(cli, ["c", MESSAGES, str(blocker / "proto.h")])

        expect(result.exit_code) == 1
        expect("failed to write output to" in result.output) == True


def describe_export_docs():
    def writes_markdown(expect, tmp_path):
        runner = CliRunner()
        output = tmp_path / "docs" / "COMMANDS.md"

        result = runner.invoke(cli, ["--export_docs", MESSAGES, str(output)])

        expect(result.exit_code) == 0
        content = output.read_text()
        expect("| `CMD_PING` | 0 | Liveness check |" in content) == True
        expect("| `CMD_MOTOR_STATUS` | 21 | Motor telemetry for one client |" in content) == True
        expect("for 3 command(s)." in result.output) == True

    def accepts_dashed_alias(expect, tmp_path):
        runner = CliRunner()
        output = tmp_path / "COMMANDS.md"

        result = runner.invoke(cli, ["--export-docs", MESSAGES, str(output)])

        expect(result.exit_code) == 0
        expect(output.exists()) == True

    def reads_environment(expect, tmp_path):
        runner = CliRunner()
        output = tmp_path / "COMMANDS.md"

        result = runner.invoke(
            cli,
            [MESSAGES, str(output)],
            auto_envvar_prefix="H6XSERIAL_IDL",
            env={"H6XSERIAL_IDL_EXPORT_DOCS": "1"},
        )

        expect(result.exit_code) == 0
        expect(output.read_text().startswith("# Command Definitions")) == True


def describe_info():
    def prints_message_table(expect):
        runner = CliRunner()

        result = runner.invoke(cli, ["--info", MESSAGES])

        expect(result.exit_code) == 0
        expect("motor_status" in result.output) == True
        expect("6-14 bytes" in result.output) == True
        expect("Headroom" in result.output) == True

    def prints_json(expect):
        runner = CliRunner()

        result = runner.invoke(cli, ["--info", "--json", MESSAGES])

        expect(result.exit_code) == 0
        data = json.loads(result.output)
        expect(data["metadata"]["version"]) == "1.2.0"
        expect([m["name"] for m in data["messages"]]) == ["ping", "set_name", "motor_status"]
        expect(data["messages"][2]["min_size"]) == 6
        expect(data["messages"][2]["max_size"]) == 14
        expect(data["messages"][2]["request_type"]) == "pub"
        expect(data["sizes"]["payload_limit"]) == 251
