"""
Tests for the process runner, the mock runner and confirmation gates.
"""

import sys

import click
from click.testing import CliRunner

from stackboot.adapters.base import ExitStatus
from stackboot.adapters.mock import MockProcessRunner, ScriptedGate
from stackboot.adapters.prompt import AutoApproveGate, ClickConfirmationGate
from stackboot.adapters.shell.command import EXIT_NOT_FOUND, SubprocessRunner

# ── Subprocess runner ────────────────────────────────────────────────


class TestSubprocessRunner:
    def test_success_captures_stdout(self):
        status = SubprocessRunner().run(sys.executable, ["-c", "print('hi')"])
        assert status.ok
        assert status.stdout.strip() == "hi"

    def test_failure_is_captured_not_raised(self):
        status = SubprocessRunner().run(
            sys.executable, ["-c", "import sys; sys.stderr.write('boom'); sys.exit(3)"],
        )
        assert not status.ok
        assert status.returncode == 3
        assert status.stderr == "boom"

    def test_missing_executable(self):
        status = SubprocessRunner().run("definitely-not-a-real-command-xyz")
        assert status.returncode == EXIT_NOT_FOUND
        assert "not found" in status.stderr

    def test_timeout(self):
        status = SubprocessRunner().run(
            sys.executable, ["-c", "import time; time.sleep(5)"], timeout=0.2,
        )
        assert status.timed_out
        assert not status.ok

    def test_cwd_and_env(self, tmp_path):
        status = SubprocessRunner().run(
            sys.executable,
            ["-c", "import os; print(os.getcwd()); print(os.environ['SB_TEST'])"],
            cwd=str(tmp_path),
            env={"SB_TEST": "yes", "PATH": "/usr/bin:/bin"},
        )
        lines = status.stdout.splitlines()
        assert lines[0] == str(tmp_path.resolve())
        assert lines[1] == "yes"


# ── Mock runner ──────────────────────────────────────────────────────


class TestMockProcessRunner:
    def test_default_success(self):
        mock = MockProcessRunner()
        assert mock.run("git", ["init"]).ok
        assert mock.call_count == 1
        assert mock.commands == ["git init"]

    def test_default_returncode(self):
        assert not MockProcessRunner(default_returncode=1).run("git").ok

    def test_full_line_beats_command(self):
        mock = MockProcessRunner()
        mock.set_output("node", "generic")
        mock.set_output("node --version", "v22.21.1")
        assert mock.run("node", ["--version"]).stdout == "v22.21.1"
        assert mock.run("node", ["-e", "1"]).stdout == "generic"

    def test_set_failure(self):
        mock = MockProcessRunner()
        mock.set_failure("apt-get install -y make", returncode=100, stderr="E: locked")
        status = mock.run("apt-get", ["install", "-y", "make"])
        assert status.returncode == 100
        assert status.stderr == "E: locked"

    def test_callable_response(self):
        mock = MockProcessRunner()
        mock.set_response("echo", lambda cmd, args: ExitStatus.success(cmd, args, " ".join(args)))
        assert mock.run("echo", ["a", "b"]).stdout == "a b"

    def test_records_cwd_and_env(self):
        mock = MockProcessRunner()
        mock.run("pnpm", ["add", "axios"], cwd="/p/frontend", env={"A": "1"})
        assert mock.call_log[0] == {
            "argv": ["pnpm", "add", "axios"], "cwd": "/p/frontend", "env": {"A": "1"},
        }

    def test_reset(self):
        mock = MockProcessRunner()
        mock.set_failure("git")
        mock.run("git")
        mock.reset()
        assert mock.call_count == 0
        assert mock.run("git").ok


class TestExitStatus:
    def test_display(self):
        assert ExitStatus.success("git", ["init", "-b", "main"]).display == "git init -b main"

    def test_timed_out_is_not_ok(self):
        assert not ExitStatus(command="x", returncode=0, timed_out=True).ok


# ── Gates ────────────────────────────────────────────────────────────


class TestGates:
    def test_auto_approve(self):
        assert AutoApproveGate().ask("System tools")

    def test_scripted(self):
        gate = ScriptedGate([True, False], default=True)
        assert [gate.ask("a"), gate.ask("b"), gate.ask("c")] == [True, False, True]
        assert gate.asked == ["a", "b", "c"]

    def _ask_via_click(self, user_input: str | None) -> bool:
        answers = []

        @click.command()
        def cmd():
            answers.append(ClickConfirmationGate().ask("PostgreSQL client", "psql not found"))

        CliRunner().invoke(cmd, input=user_input)
        return answers[0]

    def test_click_gate_yes(self):
        assert self._ask_via_click("y\n") is True

    def test_click_gate_default_is_no(self):
        assert self._ask_via_click("\n") is False

    def test_click_gate_eof_declines(self):
        assert self._ask_via_click(None) is False
