"""
Native build driver.

Writes generated IR next to the requested output and runs, in order:

    opt -O<level> -S  prog.ll     -> prog.opt.ll
    llc -filetype=obj prog.opt.ll -> prog.o
    cc  prog.o                    -> prog

Intermediates are removed after a successful build unless
`keep_intermediates` is set.
Tool names can be overridden with BFIR_OPT, BFIR_LLC and BFIR_CC.
"""
from __future__ import annotations

import os
import shutil
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence, Union

from .errors import ToolchainError


def _env_tool(var: str, default: str) -> str:
    value = os.environ.get(var)
    return value if value else default


@dataclass
class Toolchain:
    opt: str = field(default_factory=lambda: _env_tool("BFIR_OPT", "opt"))
    llc: str = field(default_factory=lambda: _env_tool("BFIR_LLC", "llc"))
    cc: str = field(default_factory=lambda: _env_tool("BFIR_CC", "clang"))
    opt_level: int = 2
    verbose: bool = False
    keep_intermediates: bool = False

    def log(self, msg: str) -> None:
        """Log message if verbose"""
        if self.verbose:
            print(f"[bfir] {msg}")

    def find_tool(self, tool: str) -> str:
        which_result = shutil.which(tool)
        if which_result:
            return which_result
        raise ToolchainError(message=f"Tool not found: {tool}", command=(tool,))

    def run_command(self, cmd: Sequence[str]) -> subprocess.CompletedProcess:
        """Run command and check result"""
        cmd_str = ' '.join(str(c) for c in cmd)
        self.log(f"Running: {cmd_str}")

        try:
            result = subprocess.run(
                [str(c) for c in cmd],
                check=True,
                capture_output=True,
                text=True,
            )
        except subprocess.CalledProcessError as e:
            if e.stderr:
                print("STDERR:", e.stderr, file=sys.stderr)
            raise ToolchainError(
                message=f"Command failed: {cmd_str}",
                command=tuple(str(c) for c in cmd),
                stderr=e.stderr or "",
            ) from e
        if result.stdout and self.verbose:
            print(result.stdout)
        return result

    def build(self, ir_text: str, output: Union[str, Path]) -> Path:
        """Compile IR text to a native executable at `output`."""
        output = Path(output)
        level = min(3, max(0, int(self.opt_level)))
        # suffixes are appended so no intermediate can alias the output
        ll_file = output.with_name(output.name + ".ll")
        opt_file = output.with_name(output.name + ".opt.ll")
        obj_file = output.with_name(output.name + ".o")
        intermediates: List[Path] = [ll_file, opt_file, obj_file]

        opt = self.find_tool(self.opt)
        llc = self.find_tool(self.llc)
        cc = self.find_tool(self.cc)

        ll_file.write_text(ir_text, encoding="utf-8")
        self.log(f"Wrote {ll_file}")
        self.run_command([opt, f"-O{level}", "-S", ll_file, "-o", opt_file])
        self.run_command([llc, "-filetype=obj", f"-O{level}", opt_file, "-o", obj_file])
        self.run_command([cc, obj_file, "-o", output])

        # on failure the intermediates stay behind for inspection
        if not self.keep_intermediates:
            for path in intermediates:
                if path.exists():
                    path.unlink()
                    self.log(f"Removed {path}")
        return output
