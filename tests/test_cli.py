"""
Tests for CLI commands — install, cleanup, plan, steps, report, backups,
config check, and global options.
"""

import json
import os
import time
from pathlib import Path

import pytest
from click.testing import CliRunner

from provision.main import cli

CONFIG = """\
name: test-env
settings:
  notes:
    - Restart your terminal.
steps:
  - id: dirs
    description: Config directory
    action:
      type: directory
      path: home/.config
      mode: "700"
  - id: gitconfig
    destructive: true
    action:
      type: file
      path: home/.gitconfig
      content: "[user]\\n  name = test\\n"
  - id: hello
    depends_on: dirs
    action:
      type: shell
      check: test -f home/.config/hello
      apply: touch home/.config/hello
      revert: rm home/.config/hello
"""

FAILING = """\
steps:
  - id: broken
    action:
      type: shell
      apply: "echo 'package not found' >&2; exit 1"
  - id: after
    depends_on: broken
    action:
      type: shell
      apply: "true"
"""

INTERACTIVE = """\
steps:
  - id: upload-key
    interactive: true
    prompt: Add the key to your account.
    action:
      type: manual
      instructions: Open the settings page.
"""


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def config(write_config) -> Path:
    return write_config(CONFIG)


def _invoke(runner: CliRunner, config: Path, *args: str, input: str | None = None):
    return runner.invoke(cli, ["--config", str(config), *args], input=input)


class TestCLIGlobal:
    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "idempotent" in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_missing_config(self, runner, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(cli, ["plan"])
        assert result.exit_code == 1
        assert "No provision.yml" in result.output


class TestPlanAndSteps:
    def test_plan_order(self, runner, config):
        result = _invoke(runner, config, "plan", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [s["id"] for s in data["steps"]] == ["dirs", "gitconfig", "hello"]

    def test_plan_reverse(self, runner, config):
        result = _invoke(runner, config, "plan", "--reverse", "--json")
        data = json.loads(result.output)
        assert data["direction"] == "reverse"
        assert [s["id"] for s in data["steps"]] == ["hello", "gitconfig", "dirs"]

    def test_plan_only_with_deps(self, runner, config):
        result = _invoke(runner, config, "plan", "--only", "hello", "--with-deps", "--json")
        assert [s["id"] for s in json.loads(result.output)["steps"]] == ["dirs", "hello"]

    def test_plan_text(self, runner, config):
        result = _invoke(runner, config, "plan")
        assert result.exit_code == 0
        assert result.output.index("dirs") < result.output.index("hello")

    def test_plan_unknown_step(self, runner, config):
        result = _invoke(runner, config, "plan", "--only", "ghost")
        assert result.exit_code == 1
        assert "ghost" in result.output

    def test_steps(self, runner, config):
        result = _invoke(runner, config, "steps")
        assert result.exit_code == 0
        assert "gitconfig (file) [destructive]" in result.output
        assert "Config directory" in result.output


class TestInstall:
    def test_install_creates_state(self, runner, config, tmp_path: Path):
        result = _invoke(runner, config, "install")

        assert result.exit_code == 0, result.output
        assert (tmp_path / "home" / ".config" / "hello").exists()
        assert (tmp_path / "home" / ".gitconfig").read_text() == "[user]\n  name = test\n"
        assert "Restart your terminal." in result.output

    def test_second_install_applies_nothing(self, runner, config):
        _invoke(runner, config, "install")
        result = _invoke(runner, config, "install", "--json")

        assert result.exit_code == 0
        report = json.loads(result.output)["report"]
        assert report["applied"] == 0
        assert report["skipped"] == 3

    def test_dry_run(self, runner, config, tmp_path: Path):
        result = _invoke(runner, config, "install", "--dry-run")

        assert result.exit_code == 0
        assert "would apply" in result.output
        assert not (tmp_path / "home").exists()

    def test_only_without_deps_fails(self, runner, config):
        result = _invoke(runner, config, "install", "--only", "hello")
        assert result.exit_code == 1

    def test_only_with_deps(self, runner, config, tmp_path: Path):
        result = _invoke(runner, config, "install", "--only", "hello", "--with-deps")
        assert result.exit_code == 0
        assert (tmp_path / "home" / ".config" / "hello").exists()
        assert not (tmp_path / "home" / ".gitconfig").exists()

    def test_failure_blocks_dependents(self, runner, write_config):
        config = write_config(FAILING)
        result = _invoke(runner, config, "install")

        assert result.exit_code == 1
        assert "package not found" in result.output
        assert "blocked" in result.output

    def test_interactive_confirmed(self, runner, write_config):
        config = write_config(INTERACTIVE)
        result = _invoke(runner, config, "install", input="y\n")

        assert result.exit_code == 0
        assert "Open the settings page." in result.output
        assert "Add the key to your account." in result.output
        assert "upload-key" in result.output

    def test_interactive_declined(self, runner, write_config):
        config = write_config(INTERACTIVE)
        result = _invoke(runner, config, "install", input="n\n")

        assert result.exit_code == 0
        assert "Cancelled" in result.output
        assert "upload-key (cancelled by operator)" in result.output

    def test_yes_skips_prompts(self, runner, write_config):
        config = write_config(INTERACTIVE)
        result = _invoke(runner, config, "install", "--yes", "--json")

        assert result.exit_code == 0
        steps = json.loads(result.output)["report"]["steps"]
        assert steps[0]["outcome"] == "applied"


class TestCleanup:
    def _install_over_existing(self, runner, config, tmp_path: Path) -> Path:
        gitconfig = tmp_path / "home" / ".gitconfig"
        gitconfig.parent.mkdir()
        gitconfig.write_text("old")
        result = _invoke(runner, config, "install")
        assert result.exit_code == 0, result.output
        return gitconfig

    def test_install_backs_up_and_cleanup_restores(self, runner, config, tmp_path: Path):
        gitconfig = self._install_over_existing(runner, config, tmp_path)
        assert gitconfig.read_text() != "old"

        result = _invoke(runner, config, "cleanup", "--yes")

        assert result.exit_code == 0, result.output
        assert gitconfig.read_text() == "old"
        assert not (tmp_path / "home" / ".config").exists()

    def test_requires_typed_yes(self, runner, config, tmp_path: Path):
        _invoke(runner, config, "install")

        result = _invoke(runner, config, "cleanup", input="y\n")

        assert result.exit_code == 0
        assert "cancelled" in result.output
        assert (tmp_path / "home" / ".config" / "hello").exists()

    def test_typed_yes_proceeds(self, runner, config, tmp_path: Path):
        _invoke(runner, config, "install")

        result = _invoke(runner, config, "cleanup", input="yes\n")

        assert result.exit_code == 0, result.output
        assert not (tmp_path / "home" / ".config").exists()

    def test_dry_run_needs_no_confirmation(self, runner, config, tmp_path: Path):
        _invoke(runner, config, "install")

        result = _invoke(runner, config, "cleanup", "--dry-run")

        assert result.exit_code == 0
        assert "would revert" in result.output
        assert (tmp_path / "home" / ".config" / "hello").exists()

    def test_cleanup_twice_is_noop(self, runner, config):
        _invoke(runner, config, "install")
        _invoke(runner, config, "cleanup", "--yes")

        result = _invoke(runner, config, "cleanup", "--yes", "--json")

        assert result.exit_code == 0
        report = json.loads(result.output)["report"]
        assert report["applied"] == 0
        assert {s["reason"] for s in report["steps"]} == {"already reverted"}


class TestReport:
    def test_report_after_install(self, runner, config):
        _invoke(runner, config, "install")

        result = _invoke(runner, config, "report", "--json")

        assert result.exit_code == 0
        entries = json.loads(result.output)
        assert [e["step_id"] for e in entries] == ["dirs", "gitconfig", "hello"]
        assert {e["mode"] for e in entries} == {"install"}

    def test_report_limit(self, runner, config):
        _invoke(runner, config, "install")
        result = _invoke(runner, config, "report", "-n", "1", "--json")
        assert len(json.loads(result.output)) == 1

    def test_report_empty(self, runner, config):
        result = _invoke(runner, config, "report")
        assert result.exit_code == 0
        assert "No runs logged yet" in result.output


class TestBackups:
    def _backed_up(self, runner, config, tmp_path: Path) -> Path:
        gitconfig = tmp_path / "home" / ".gitconfig"
        gitconfig.parent.mkdir()
        gitconfig.write_text("old")
        _invoke(runner, config, "install")
        gitconfig.write_text("edited by hand")
        future = time.time() + 3600
        os.utime(gitconfig, (future, future))
        return gitconfig

    def test_list(self, runner, config, tmp_path: Path):
        gitconfig = self._backed_up(runner, config, tmp_path)

        result = _invoke(runner, config, "backups", "list", "--json")

        assert result.exit_code == 0
        records = json.loads(result.output)
        assert [r["original_path"] for r in records] == [str(gitconfig)]
        assert records[0]["step_id"] == "gitconfig"

    def test_list_empty(self, runner, config):
        result = _invoke(runner, config, "backups", "list")
        assert result.exit_code == 0
        assert "No backups found" in result.output

    def test_restore_conflict_then_force(self, runner, config, tmp_path: Path):
        gitconfig = self._backed_up(runner, config, tmp_path)

        conflict = _invoke(runner, config, "backups", "restore", str(gitconfig))
        assert conflict.exit_code == 1
        assert "Cannot restore" in conflict.output

        forced = _invoke(runner, config, "backups", "restore", str(gitconfig), "--force")
        assert forced.exit_code == 0, forced.output
        assert gitconfig.read_text() == "old"
        assert "Previous content backed up" in forced.output

    def test_restore_by_stamp(self, runner, config, tmp_path: Path):
        gitconfig = self._backed_up(runner, config, tmp_path)
        stamp = json.loads(
            _invoke(runner, config, "backups", "list", "--json").output
        )[0]["created_at"][:4]

        missing = _invoke(runner, config, "backups", "restore", str(gitconfig), "--at", "1999")
        assert missing.exit_code == 1

        result = _invoke(runner, config, "backups", "restore", str(gitconfig), "--at", stamp, "--force")
        assert result.exit_code == 0
        assert gitconfig.read_text() == "old"


class TestConfigCheck:
    def test_valid(self, runner, config):
        result = _invoke(runner, config, "config", "check")
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output
        assert "Steps: 3" in result.output

    def test_cycle(self, runner, write_config):
        config = write_config("""\
            steps:
              - id: a
                depends_on: b
                action: {type: mock}
              - id: b
                depends_on: a
                action: {type: mock}
        """)
        result = _invoke(runner, config, "config", "check", "--json")
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert not data["valid"]
        assert "cycle" in data["errors"][0]

    def test_warnings(self, runner, write_config):
        config = write_config("""\
            steps:
              - id: note
                action: {type: manual, instructions: Do it}
        """)
        result = _invoke(runner, config, "config", "check", "--json")
        data = json.loads(result.output)
        assert data["valid"]
        assert any("not interactive" in w for w in data["warnings"])
        assert any("cannot be reverted" in w for w in data["warnings"])
