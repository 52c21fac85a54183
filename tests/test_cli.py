from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from changed_functions.cli import cli, format_functions

_CLEAN_ENV = {
    name: None
    for name in (
        "GITHUB_TOKEN",
        "INPUT_GITHUB_TOKEN",
        "GITHUB_EVENT_PATH",
        "GITHUB_WORKSPACE",
        "COMPARE_URL",
        "BEFORE_SHA",
        "AFTER_SHA",
        "INDIVIDUAL_FUNCTION_GLOB",
        "INPUT_INDIVIDUAL_FUNCTION_GLOB",
        "INDIVIDUAL_FUNCTION_REGEX",
        "INPUT_INDIVIDUAL_FUNCTION_REGEX",
        "FULL_DEPLOYMENT_REGEX",
        "INPUT_FULL_DEPLOYMENT_REGEX",
        "FILE_CHANGES_REGEX_FILTER",
        "INPUT_FILE_CHANGES_REGEX_FILTER",
    )
}


def _invoke(args: list[str], github_output: Path | None = None):
    env = dict(_CLEAN_ENV)
    env["GITHUB_OUTPUT"] = str(github_output) if github_output else None
    return CliRunner().invoke(cli, args, env=env)


def _read_json(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def test_format_functions() -> None:
    assert format_functions([]) == ""
    assert format_functions(["sendEmail", "report"]) == ":sendEmail,report"


def test_decide_without_glob_writes_deploy_all_output(tmp_path: Path) -> None:
    github_output = tmp_path / "github_output"

    result = _invoke(
        ["decide", "--workspace", str(tmp_path), "--changed-file", "src/index.ts"],
        github_output=github_output,
    )

    assert result.exit_code == 0, result.output
    assert github_output.read_text(encoding="utf-8") == "functions_changed=\n"


def test_decide_full_deployment_trigger_json(tmp_path: Path) -> None:
    out = tmp_path / "plan.json"

    result = _invoke(
        [
            "decide",
            "--workspace", str(tmp_path),
            "--unit-glob", "functions/*.ts",
            "--changed-file", "package.json",
            "--format", "json",
            "--output", str(out),
        ]
    )

    assert result.exit_code == 0, result.output
    data = _read_json(out)
    assert data["deploy_all"] is True
    assert data["functions"] == []
    assert data["reason"] == "full_deployment_trigger"
    assert data["trigger"] == "package.json"


def test_decide_changed_file_filter_can_hide_triggers(tmp_path: Path) -> None:
    out = tmp_path / "plan.json"

    result = _invoke(
        [
            "decide",
            "--workspace", str(tmp_path),
            "--unit-glob", "functions/*.ts",
            "--changed-file", "package.json",
            "--changed-file-filter", r"\.ts$",
            "--format", "json",
            "--output", str(out),
        ]
    )

    assert result.exit_code == 0, result.output
    assert _read_json(out)["reason"] == "no_changed_files"


def test_decide_direct_function_change(tmp_path: Path) -> None:
    pytest.importorskip("tree_sitter_languages")
    (tmp_path / "functions").mkdir()
    (tmp_path / "functions" / "sendEmail.function.ts").write_text(
        "export const sendEmail = () => 1;\n", encoding="utf-8"
    )
    github_output = tmp_path / "github_output"

    result = _invoke(
        [
            "decide",
            "--workspace", str(tmp_path),
            "--unit-glob", "functions/*.ts",
            "--changed-file", "functions/sendEmail.function.ts",
        ],
        github_output=github_output,
    )

    assert result.exit_code == 0, result.output
    assert github_output.read_text(encoding="utf-8") == "functions_changed=:sendEmail\n"


def test_decide_malformed_pattern_aborts_without_output(tmp_path: Path) -> None:
    github_output = tmp_path / "github_output"

    result = _invoke(
        [
            "decide",
            "--workspace", str(tmp_path),
            "--unit-glob", "functions/*.ts",
            "--unit-pattern", "(functions/",
            "--changed-file", "functions/a.ts",
        ],
        github_output=github_output,
    )

    assert result.exit_code != 0
    assert not github_output.exists()


def test_decide_missing_token_deploys_everything(tmp_path: Path) -> None:
    github_output = tmp_path / "github_output"

    result = _invoke(
        ["decide", "--workspace", str(tmp_path), "--unit-glob", "functions/*.ts"],
        github_output=github_output,
    )

    assert result.exit_code == 0, result.output
    assert github_output.read_text(encoding="utf-8") == "functions_changed=\n"


def test_decide_failed_fetch_aborts_without_output(tmp_path: Path) -> None:
    github_output = tmp_path / "github_output"

    result = _invoke(
        [
            "decide",
            "--workspace", str(tmp_path / "not-a-repo"),
            "--unit-glob", "functions/*.ts",
            "--source", "git",
            "--before", "HEAD~1",
            "--after", "HEAD",
        ],
        github_output=github_output,
    )

    assert result.exit_code != 0
    assert not github_output.exists()


def test_decide_without_github_output_prints_set_output(tmp_path: Path) -> None:
    result = _invoke(["decide", "--workspace", str(tmp_path), "--changed-file", "yarn.lock"])

    assert result.exit_code == 0, result.output
    assert "::set-output name=functions_changed::" in result.output


def test_graph_json(tmp_path: Path) -> None:
    pytest.importorskip("tree_sitter_languages")
    (tmp_path / "functions").mkdir()
    (tmp_path / "src").mkdir()
    (tmp_path / "functions" / "report.function.ts").write_text(
        "import { util } from '../src/util';\n", encoding="utf-8"
    )
    (tmp_path / "src" / "util.ts").write_text("export const util = 1;\n", encoding="utf-8")

    result = CliRunner().invoke(
        cli, ["graph", "--workspace", str(tmp_path), "--unit-glob", "functions/*.ts", "--format", "json"]
    )

    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"src/util.ts": ["functions/report.function.ts"]}


def test_decide_glob_matching_nothing_deploys_everything(tmp_path: Path) -> None:
    out = tmp_path / "plan.json"

    result = _invoke(
        [
            "decide",
            "--workspace", str(tmp_path),
            "--unit-glob", "functions/*.{ts,js}",
            "--changed-file", "src/util.ts",
            "--format", "json",
            "--output", str(out),
        ]
    )

    assert result.exit_code == 0, result.output
    assert _read_json(out)["reason"] == "no_unit_files"


def test_graph_glob_outside_workspace_aborts(tmp_path: Path) -> None:
    workspace = tmp_path / "app"
    workspace.mkdir()

    result = _invoke(["graph", "--workspace", str(workspace), "--unit-glob", f"{tmp_path}/other/*.ts"])

    assert result.exit_code != 0
    assert isinstance(result.exception, SystemExit)
