import errno
import shlex
import subprocess
import sys
from dataclasses import dataclass

import pytest

import clitree  # type: ignore


@dataclass(frozen=True, slots=True)
class StaticRunner:
    output: str | None

    def run(self, command_line: str) -> str:
        if self.output is None:
            raise clitree.ProcessError(f"Command could not be started: {command_line}")
        return self.output


def test_run_returns_stdout_without_trailing_whitespace(monkeypatch: pytest.MonkeyPatch):
    seen = {}

    def fake_run(cmd, capture_output, text, timeout, **kwargs):
        seen["cmd"] = cmd
        seen["timeout"] = timeout
        return subprocess.CompletedProcess(
            cmd, 0, stdout="Usage:\n  tool [command]\n\n\n", stderr="deprecated!"
        )

    monkeypatch.setattr(clitree.subprocess, "run", fake_run)

    out = clitree.SubprocessRunner(timeout_s=7).run("'./bin/my tool' net -h")

    assert out == "Usage:\n  tool [command]"
    assert seen == {"cmd": ["./bin/my tool", "net", "-h"], "timeout": 7}


def test_run_raises_on_non_zero_exit(monkeypatch: pytest.MonkeyPatch):
    def fake_run(cmd, capture_output, text, timeout, **kwargs):
        return subprocess.CompletedProcess(cmd, 2, stdout="partial", stderr="boom")

    monkeypatch.setattr(clitree.subprocess, "run", fake_run)

    with pytest.raises(clitree.ProcessError, match="exit 2"):
        clitree.SubprocessRunner().run("tool -h")


def test_run_raises_when_executable_is_missing(monkeypatch: pytest.MonkeyPatch):
    def fake_run(cmd, capture_output, text, timeout, **kwargs):
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr(clitree.subprocess, "run", fake_run)

    with pytest.raises(clitree.ProcessError, match="could not be started"):
        clitree.SubprocessRunner().run("no-such-tool -h")


def test_run_raises_on_timeout(monkeypatch: pytest.MonkeyPatch):
    def fake_run(cmd, capture_output, text, timeout, **kwargs):
        raise subprocess.TimeoutExpired(cmd, timeout)

    monkeypatch.setattr(clitree.subprocess, "run", fake_run)

    with pytest.raises(clitree.ProcessError, match="timed out after 3s"):
        clitree.SubprocessRunner(timeout_s=3).run("hang -h")


@pytest.mark.parametrize("command_line", ["", "   ", "tool 'unterminated"])
def test_run_rejects_unusable_command_lines(command_line: str):
    with pytest.raises(clitree.ProcessError):
        clitree.SubprocessRunner().run(command_line)


def test_detect_version_extracts_first_dotted_triple():
    runner = StaticRunner(output="avalanche version 1.8.3 (go1.21.12 linux/amd64)")

    assert clitree.detect_version(runner=runner, tool="avalanche") == "v1.8.3"


def test_detect_version_without_number_is_unknown():
    runner = StaticRunner(output="avalanche development build")

    assert clitree.detect_version(runner=runner, tool="avalanche") == "Unknown"


def test_detect_version_survives_process_error(capsys):
    runner = StaticRunner(output=None)

    assert clitree.detect_version(runner=runner, tool="avalanche") == "Unknown"
    assert "Error fetching CLI version" in capsys.readouterr().err


def test_run_replaces_undecodable_output(tmp_path):
    script = tmp_path / "emit.py"
    script.write_text(
        "import sys\n"
        "sys.stdout.buffer.write(b'Bad \\xff\\xfe help\\n')\n"
        "sys.stderr.buffer.write(b'\\xff noise\\n')\n"
    )

    out = clitree.SubprocessRunner().run(shlex.join([sys.executable, str(script)]))

    assert out.startswith("Bad ")
    assert out.endswith(" help")
    assert "\ufffd" in out


def test_run_maps_any_launch_oserror(monkeypatch: pytest.MonkeyPatch):
    def fake_run(cmd, capture_output, text, timeout, **kwargs):
        raise OSError(errno.ENOEXEC, "Exec format error")

    monkeypatch.setattr(clitree.subprocess, "run", fake_run)

    with pytest.raises(clitree.ProcessError, match="Exec format error"):
        clitree.SubprocessRunner().run("./wrong-arch -h")


def test_detect_version_is_unknown_for_unrunnable_binary(monkeypatch: pytest.MonkeyPatch):
    def fake_run(cmd, capture_output, text, timeout, **kwargs):
        raise OSError(errno.ENOEXEC, "Exec format error")

    monkeypatch.setattr(clitree.subprocess, "run", fake_run)

    assert clitree.detect_version(runner=clitree.SubprocessRunner(), tool="./wrong-arch") == "Unknown"
