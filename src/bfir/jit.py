"""
Numba-backed runner.

The tree is lowered once to two parallel int32 arrays (opcode, argument).
`[`/`]` become JZ/JNZ whose argument is the index of the partner
instruction. The compiled loop runs in batches and stops for I/O so the
Python side can service streams, the same way the step loop in the
visualizer does.
"""
from __future__ import annotations

import sys
from typing import BinaryIO, List, Optional, Tuple

import numpy as np
from numba import njit

from .errors import make_bounds_error
from .executor import DEFAULT_TAPE_SIZE, Tape
from .nodes import Add, Input, Loop, Move, Output, Program

OP_MOVE = 0
OP_ADD = 1
OP_IN = 2
OP_OUT = 3
OP_JZ = 4
OP_JNZ = 5

STOP_OUTPUT = 1
STOP_INPUT = 2
STOP_END = 3
STOP_BATCH = 4
STOP_BOUNDS = 5


def _lower_into(program: Program, ops: List[int], args: List[int]) -> None:
    for stmt in program:
        if isinstance(stmt, Move):
            ops.append(OP_MOVE)
            args.append(stmt.delta)
        elif isinstance(stmt, Add):
            ops.append(OP_ADD)
            args.append(stmt.delta % 256)
        elif isinstance(stmt, Input):
            ops.append(OP_IN)
            args.append(0)
        elif isinstance(stmt, Output):
            ops.append(OP_OUT)
            args.append(0)
        elif isinstance(stmt, Loop):
            start = len(ops)
            ops.append(OP_JZ)
            args.append(-1)
            _lower_into(stmt.body, ops, args)
            end = len(ops)
            ops.append(OP_JNZ)
            args.append(start)
            args[start] = end


def lower(program: Program) -> Tuple[np.ndarray, np.ndarray]:
    ops: List[int] = []
    args: List[int] = []
    _lower_into(program, ops, args)
    return np.array(ops, dtype=np.int32), np.array(args, dtype=np.int32)


@njit(cache=True)
def _jit_loop(ops, args, memory, pc, pointer, max_steps):
    stop_reason = STOP_END
    mem_len = len(memory)
    prog_len = len(ops)
    steps = 0

    while pc < prog_len:
        if steps >= max_steps:
            stop_reason = STOP_BATCH
            break
        op = ops[pc]
        arg = args[pc]

        if op == OP_MOVE:
            pointer += arg
            if pointer < 0 or pointer >= mem_len:
                stop_reason = STOP_BOUNDS
                break
        elif op == OP_ADD:
            memory[pointer] = (memory[pointer] + arg) & 255
        elif op == OP_OUT:
            stop_reason = STOP_OUTPUT
            break
        elif op == OP_IN:
            stop_reason = STOP_INPUT
            break
        elif op == OP_JZ:
            if memory[pointer] == 0:
                pc = arg
        elif op == OP_JNZ:
            if memory[pointer] != 0:
                pc = arg

        pc += 1
        steps += 1

    return pc, pointer, stop_reason


def run(
    program: Program,
    *,
    stdin: Optional[BinaryIO] = None,
    stdout: Optional[BinaryIO] = None,
    tape_size: int = DEFAULT_TAPE_SIZE,
    batch_steps: int = 50000,
) -> Tape:
    """Run a program with the compiled step loop; same contract as `execute`."""
    stdin = stdin if stdin is not None else sys.stdin.buffer
    stdout = stdout if stdout is not None else sys.stdout.buffer
    ops, args = lower(program)
    tape = Tape(tape_size)
    pc = 0

    while True:
        pc, pointer, stop_reason = _jit_loop(ops, args, tape.cells, pc, tape.cursor, batch_steps)
        if stop_reason == STOP_BOUNDS:
            raise make_bounds_error(cursor=int(pointer), tape_size=tape_size)
        tape.cursor = int(pointer)

        if stop_reason == STOP_END:
            return tape
        if stop_reason == STOP_OUTPUT:
            stdout.write(bytes((tape.current,)))
            stdout.flush()
            pc += 1
        elif stop_reason == STOP_INPUT:
            data = stdin.read(1)
            tape.current = data[0] if data else 0
            pc += 1
