"""
LLVM IR code generation for program trees.

Every statement is lowered to a load-modify-store against the global tape
(`@memory`) and cursor (`@memory_idx`). Virtual registers `%0, %1, ...` and
loop ids come from a `CodeGenContext` owned by a single generation pass;
both counters only ever grow, so every register is assigned exactly once
and every loop gets its own `loop_cond/loop_begin/loop_end` labels.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .nodes import Add, Input, Loop, Move, Output, Program

DEFAULT_TAPE_SIZE = 65536


@dataclass
class CodeGenContext:
    registers: int = 0
    loops: int = 0
    tape_size: int = DEFAULT_TAPE_SIZE
    opaque_pointers: bool = True
    lines: List[str] = field(default_factory=list)

    def reg(self) -> int:
        """Claim the next virtual register number."""
        r = self.registers
        self.registers += 1
        return r

    def emit(self, line: str) -> None:
        self.lines.append(line)

    def text(self) -> str:
        return "\n".join(self.lines) + "\n"

    def ptr(self, pointee: str) -> str:
        return "ptr" if self.opaque_pointers else f"{pointee}*"

    @property
    def tape_type(self) -> str:
        return f"[{self.tape_size} x i8]"


def _wrap_i8(n: int) -> int:
    return ((n + 128) % 256) - 128


# ---------------- Prologue / epilogue ----------------
def _write_header(ctx: CodeGenContext) -> None:
    ctx.emit(f"@memory = global {ctx.tape_type} zeroinitializer, align 16")
    ctx.emit("")
    ctx.emit("@memory_idx = global i32 0, align 4")
    ctx.emit("")
    ctx.emit("define i32 @main() {")
    ctx.emit("entry:")


def _write_footer(ctx: CodeGenContext) -> None:
    ctx.emit("  ret i32 0")
    ctx.emit("}")
    ctx.emit("")
    ctx.emit("declare i32 @putchar(i32)")
    ctx.emit("declare i32 @getchar()")


# ---------------- Statements ----------------
def _write_cell_ref(ctx: CodeGenContext) -> int:
    """Compute &memory[memory_idx]; returns the register holding it."""
    idx = ctx.reg()
    ctx.emit(f"  %{idx} = load i32, {ctx.ptr('i32')} @memory_idx, align 4")
    wide = ctx.reg()
    ctx.emit(f"  %{wide} = zext i32 %{idx} to i64")
    ref = ctx.reg()
    ctx.emit(
        f"  %{ref} = getelementptr inbounds {ctx.tape_type}, "
        f"{ctx.ptr(ctx.tape_type)} @memory, i64 0, i64 %{wide}"
    )
    return ref


def _write_move(ctx: CodeGenContext, n: int) -> None:
    old = ctx.reg()
    ctx.emit(f"  %{old} = load i32, {ctx.ptr('i32')} @memory_idx, align 4")
    new = ctx.reg()
    ctx.emit(f"  %{new} = add i32 %{old}, {n}")
    ctx.emit(f"  store i32 %{new}, {ctx.ptr('i32')} @memory_idx, align 4")
    ctx.emit("")


def _write_add(ctx: CodeGenContext, n: int) -> None:
    ref = _write_cell_ref(ctx)
    old = ctx.reg()
    ctx.emit(f"  %{old} = load i8, {ctx.ptr('i8')} %{ref}, align 1")
    new = ctx.reg()
    ctx.emit(f"  %{new} = add i8 %{old}, {_wrap_i8(n)}")
    ctx.emit(f"  store i8 %{new}, {ctx.ptr('i8')} %{ref}, align 1")
    ctx.emit("")


def _write_getc(ctx: CodeGenContext) -> None:
    ch = ctx.reg()
    ctx.emit(f"  %{ch} = call i32 @getchar()")
    value = ctx.reg()
    ctx.emit(f"  %{value} = trunc i32 %{ch} to i8")
    ref = _write_cell_ref(ctx)
    ctx.emit(f"  store i8 %{value}, {ctx.ptr('i8')} %{ref}, align 1")
    ctx.emit("")


def _write_putc(ctx: CodeGenContext) -> None:
    ref = _write_cell_ref(ctx)
    value = ctx.reg()
    ctx.emit(f"  %{value} = load i8, {ctx.ptr('i8')} %{ref}, align 1")
    wide = ctx.reg()
    ctx.emit(f"  %{wide} = zext i8 %{value} to i32")
    # result unused; leaving it unnamed keeps register numbering dense
    ctx.emit(f"  call i32 @putchar(i32 %{wide})")
    ctx.emit("")


def _write_loop_begin(ctx: CodeGenContext) -> int:
    loop_id = ctx.loops
    ctx.loops += 1
    ctx.emit(f"  br label %loop_cond{loop_id}")
    ctx.emit(f"loop_cond{loop_id}:")
    ref = _write_cell_ref(ctx)
    value = ctx.reg()
    ctx.emit(f"  %{value} = load i8, {ctx.ptr('i8')} %{ref}, align 1")
    is_zero = ctx.reg()
    ctx.emit(f"  %{is_zero} = icmp eq i8 %{value}, 0")
    ctx.emit(f"  br i1 %{is_zero}, label %loop_end{loop_id}, label %loop_begin{loop_id}")
    ctx.emit(f"loop_begin{loop_id}:")
    return loop_id


def _write_loop_end(ctx: CodeGenContext, loop_id: int) -> None:
    ctx.emit(f"  br label %loop_cond{loop_id}")
    ctx.emit(f"loop_end{loop_id}:")
    ctx.emit("")


def write_code(ctx: CodeGenContext, program: Program) -> None:
    """Emit the instruction stream for `program` into `ctx`, depth first."""
    for stmt in program:
        if isinstance(stmt, Move):
            _write_move(ctx, stmt.delta)
        elif isinstance(stmt, Add):
            _write_add(ctx, stmt.delta)
        elif isinstance(stmt, Input):
            _write_getc(ctx)
        elif isinstance(stmt, Output):
            _write_putc(ctx)
        elif isinstance(stmt, Loop):
            loop_id = _write_loop_begin(ctx)
            write_code(ctx, stmt.body)
            _write_loop_end(ctx, loop_id)
        else:
            raise TypeError(f"not a statement: {stmt!r}")


# ---------------- Entry points ----------------
def generate_with_context(program: Program, ctx: Optional[CodeGenContext] = None) -> CodeGenContext:
    if ctx is None:
        ctx = CodeGenContext()
    _write_header(ctx)
    write_code(ctx, program)
    _write_footer(ctx)
    return ctx


def generate(program: Program, *, tape_size: int = DEFAULT_TAPE_SIZE, opaque_pointers: bool = True) -> str:
    """Translate a program tree into the text of an LLVM IR module."""
    ctx = generate_with_context(
        program, CodeGenContext(tape_size=tape_size, opaque_pointers=opaque_pointers)
    )
    return ctx.text()
