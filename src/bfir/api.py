from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .codegen import DEFAULT_TAPE_SIZE, CodeGenContext, generate_with_context
from .nodes import Program
from .parser import Source, parse


@dataclass(frozen=True)
class CompileOptions:
    tape_size: int = DEFAULT_TAPE_SIZE
    opaque_pointers: bool = True
    strict: bool = False


@dataclass(frozen=True)
class CompileResult:
    ir: str
    program: Program
    registers: int
    loops: int


def compile_string(source: Source, *, options: Optional[CompileOptions] = None) -> CompileResult:
    opts = CompileOptions() if options is None else options
    program = parse(source, strict=opts.strict)
    ctx = generate_with_context(
        program, CodeGenContext(tape_size=opts.tape_size, opaque_pointers=opts.opaque_pointers)
    )
    return CompileResult(
        ir=ctx.text(),
        program=program,
        registers=ctx.registers,
        loops=ctx.loops,
    )


def compile_file(path: Union[str, Path], *, options: Optional[CompileOptions] = None) -> CompileResult:
    p = Path(path)
    return compile_string(p.read_bytes(), options=options)
