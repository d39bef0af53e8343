import json
from pathlib import Path

import pytest
from click.testing import CliRunner
from inline_snapshot import snapshot

from ruby_stubs_mcp.lint import lint_stubs


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def test_lint_clean_stubs(runner: CliRunner, stubs_dir: Path):
    result = runner.invoke(lint_stubs, ["--stubs-dir", str(stubs_dir), "--ruby-version", "3.3"])

    assert result.exit_code == 0
    assert result.output == snapshot("Ruby 3.3: 9 files, 0 errors, 0 warnings\n")


def test_lint_all_versions(runner: CliRunner, stubs_dir: Path):
    result = runner.invoke(lint_stubs, ["--stubs-dir", str(stubs_dir), "--all"])

    assert result.exit_code == 0
    assert result.output.splitlines() == snapshot(["Ruby 2.7: 8 files, 0 errors, 0 warnings", "Ruby 3.3: 9 files, 0 errors, 0 warnings"])


def test_lint_broken_stubs(runner: CliRunner, broken_stubs_dir: Path):
    result = runner.invoke(lint_stubs, ["--stubs-dir", str(broken_stubs_dir), "--ruby-version", "3.3"])

    assert result.exit_code == 1

    lines = result.output.splitlines()
    assert len(lines) == 10
    assert lines[0] == "broken.rb:2: error [parse-error] Scope was not closed before the end of the file"
    assert lines[-1] == "Ruby 3.3: 4 files, 6 errors, 3 warnings"


def test_lint_warnings_only_exit_cleanly(runner: CliRunner, broken_stubs_dir: Path):
    result = runner.invoke(
        lint_stubs,
        ["--stubs-dir", str(broken_stubs_dir), "--ruby-version", "3.3", "--rule", "file-name-mismatch", "--rule", "undocumented-parameter"],
    )

    assert result.exit_code == 0
    assert result.output.splitlines()[-1] == "Ruby 3.3: 4 files, 0 errors, 2 warnings"


def test_lint_json_format(runner: CliRunner, broken_stubs_dir: Path):
    result = runner.invoke(
        lint_stubs,
        ["--stubs-dir", str(broken_stubs_dir), "--ruby-version", "3.3", "--rule", "dangling-alias", "--format", "json"],
    )

    assert result.exit_code == 1
    assert json.loads(result.output) == snapshot(
        [
            {
                "version": "3.3",
                "files": 4,
                "findings": [
                    {
                        "rule": "dangling-alias",
                        "severity": "error",
                        "path": "date.rb",
                        "line": 11,
                        "namespace": "Date",
                        "message": "`alias mon month` refers to a method that is not defined in Date",
                    }
                ],
                "counts": {"dangling-alias": 1},
                "errors": 1,
                "warnings": 0,
                "has_errors": True,
            }
        ]
    )


def test_lint_all_and_ruby_version_conflict(runner: CliRunner, stubs_dir: Path):
    result = runner.invoke(lint_stubs, ["--stubs-dir", str(stubs_dir), "--all", "--ruby-version", "3.3"])

    assert result.exit_code == 2
    assert "--all and --ruby-version cannot be used together" in result.output


def test_lint_every_rule_disabled(runner: CliRunner, stubs_dir: Path):
    result = runner.invoke(lint_stubs, ["--stubs-dir", str(stubs_dir), "--rule", "parse-error", "--disable", "parse-error"])

    assert result.exit_code == 2
    assert "Every selected rule is disabled" in result.output


def test_lint_unknown_rule(runner: CliRunner, stubs_dir: Path):
    result = runner.invoke(lint_stubs, ["--stubs-dir", str(stubs_dir), "--rule", "no-such-rule"])

    assert result.exit_code == 2


def test_lint_missing_version(runner: CliRunner, stubs_dir: Path):
    result = runner.invoke(lint_stubs, ["--stubs-dir", str(stubs_dir), "--ruby-version", "2.2"])

    assert result.exit_code == 1
    assert "No stub snapshot matches the requested Ruby version" in result.output


def test_lint_invalid_version(runner: CliRunner, stubs_dir: Path):
    result = runner.invoke(lint_stubs, ["--stubs-dir", str(stubs_dir), "--ruby-version", "latest"])

    assert result.exit_code == 1
    assert "Error:" in result.output
