#!/usr/bin/env python3
"""
Toolchain driver tests. Uses fake tools unless LLVM is on PATH.
"""

import shutil
import subprocess
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

import pytest

from bfir import toolchain as tc
from bfir.codegen import generate
from bfir.errors import ToolchainError
from bfir.parser import parse


class FakeRunner:
    """Records commands and creates each command's -o target."""

    def __init__(self, fail_on=None):
        self.commands = []
        self.fail_on = fail_on

    def __call__(self, cmd, **kwargs):
        self.commands.append(list(cmd))
        if self.fail_on is not None and os.path.basename(cmd[0]) == self.fail_on:
            raise subprocess.CalledProcessError(1, cmd, output="", stderr="boom")
        out = cmd[cmd.index("-o") + 1]
        with open(out, "w") as f:
            f.write("fake")
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")


@pytest.fixture
def fake_tools(monkeypatch):
    monkeypatch.setattr(tc.shutil, "which", lambda tool: "/usr/bin/" + tool)
    runner = FakeRunner()
    monkeypatch.setattr(tc.subprocess, "run", runner)
    return runner


def test_build_runs_pipeline_in_order(fake_tools, tmp_path):
    out = tmp_path / "prog"
    result = tc.Toolchain(opt="opt", llc="llc", cc="clang").build(generate(parse("+.")), out)

    assert result == out
    assert out.exists()
    tools = [os.path.basename(c[0]) for c in fake_tools.commands]
    assert tools == ["opt", "llc", "clang"]
    assert fake_tools.commands[0][1:3] == ["-O2", "-S"]
    assert fake_tools.commands[0][3] == str(tmp_path / "prog.ll")
    assert fake_tools.commands[1][-1] == str(tmp_path / "prog.o")
    assert fake_tools.commands[2][1] == str(tmp_path / "prog.o")


def test_build_removes_intermediates(fake_tools, tmp_path):
    out = tmp_path / "prog"
    tc.Toolchain(opt="opt", llc="llc", cc="clang").build("; ir\n", out)
    assert sorted(p.name for p in tmp_path.iterdir()) == ["prog"]


def test_build_can_keep_intermediates(fake_tools, tmp_path):
    out = tmp_path / "prog"
    tc.Toolchain(opt="opt", llc="llc", cc="clang", keep_intermediates=True).build("; ir\n", out)
    names = sorted(p.name for p in tmp_path.iterdir())
    assert names == ["prog", "prog.ll", "prog.o", "prog.opt.ll"]
    assert (tmp_path / "prog.ll").read_text() == "; ir\n"


def test_opt_level_is_clamped(fake_tools, tmp_path):
    tc.Toolchain(opt="opt", llc="llc", cc="clang", opt_level=9).build("", tmp_path / "p")
    assert fake_tools.commands[0][1] == "-O3"


def test_failure_raises_and_keeps_ir(monkeypatch, tmp_path):
    monkeypatch.setattr(tc.shutil, "which", lambda tool: "/usr/bin/" + tool)
    monkeypatch.setattr(tc.subprocess, "run", FakeRunner(fail_on="llc"))
    out = tmp_path / "prog"

    with pytest.raises(ToolchainError) as info:
        tc.Toolchain(opt="opt", llc="llc", cc="clang").build("; ir\n", out)

    assert "Command failed" in str(info.value)
    assert info.value.stderr == "boom"
    assert os.path.basename(info.value.command[0]) == "llc"
    assert (tmp_path / "prog.ll").read_text() == "; ir\n"
    assert not out.exists()


def test_missing_tool(monkeypatch, tmp_path):
    monkeypatch.setattr(tc.shutil, "which", lambda tool: None)
    with pytest.raises(ToolchainError) as info:
        tc.Toolchain(opt="no-such-opt").build("", tmp_path / "p")
    assert "Tool not found: no-such-opt" in str(info.value)
    assert list(tmp_path.iterdir()) == []


def test_tool_names_from_environment(monkeypatch):
    monkeypatch.setenv("BFIR_OPT", "opt-18")
    monkeypatch.setenv("BFIR_LLC", "llc-18")
    monkeypatch.setenv("BFIR_CC", "gcc")
    t = tc.Toolchain()
    assert (t.opt, t.llc, t.cc) == ("opt-18", "llc-18", "gcc")


def test_verbose_logs_commands(fake_tools, tmp_path, capsys):
    tc.Toolchain(opt="opt", llc="llc", cc="clang", verbose=True).build("", tmp_path / "p")
    out = capsys.readouterr().out
    assert "[bfir] Running: /usr/bin/opt -O2 -S" in out
    assert "[bfir] Removed" in out


@pytest.mark.parametrize("name", ["prog.o", "prog.ll", "prog.opt.ll"])
def test_output_named_like_an_intermediate_survives(fake_tools, tmp_path, name):
    out = tmp_path / name
    result = tc.Toolchain(opt="opt", llc="llc", cc="clang").build("; ir\n", out)
    assert result == out
    assert out.exists()
    assert out.read_text() == "fake"
    assert sorted(p.name for p in tmp_path.iterdir()) == [name]


HAVE_LLVM = all(shutil.which(t) for t in ("opt", "llc", "clang"))


@pytest.mark.skipif(not HAVE_LLVM, reason="LLVM toolchain not installed")
@pytest.mark.parametrize("source, expected", [
    ("+++.", b"\x03"),
    ("-.", b"\xff"),
    ("+++[>+<-]>.", b"\x03"),
    ("++++++++[>++++++++<-]>+.[-]+[[-]]++++++++++.", b"A\n"),
])
def test_native_build_end_to_end(tmp_path, source, expected):
    exe = tc.Toolchain().build(generate(parse(source)), tmp_path / "prog")
    result = subprocess.run([str(exe)], capture_output=True, check=True)
    assert result.stdout == expected


if __name__ == "__main__":
    raise SystemExit(pytest.main([__file__, "-v"]))
