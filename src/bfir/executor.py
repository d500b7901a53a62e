from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import BinaryIO, Optional

import numpy as np

from .errors import make_bounds_error
from .nodes import Add, Input, Loop, Move, Output, Program

DEFAULT_TAPE_SIZE = 30000


@dataclass
class Tape:
    size: int = DEFAULT_TAPE_SIZE
    cells: np.ndarray = field(init=False, repr=False, compare=False)
    cursor: int = 0

    def __post_init__(self) -> None:
        self.cells = np.zeros(self.size, dtype=np.uint8)

    def move(self, delta: int) -> None:
        ptr = self.cursor + delta
        if ptr < 0 or ptr >= self.size:
            raise make_bounds_error(cursor=ptr, tape_size=self.size)
        self.cursor = ptr

    @property
    def current(self) -> int:
        return int(self.cells[self.cursor])

    @current.setter
    def current(self, value: int) -> None:
        self.cells[self.cursor] = value & 0xFF


def _read_byte(stream: BinaryIO) -> int:
    data = stream.read(1)
    return data[0] if data else 0


def _run(program: Program, tape: Tape, stdin: BinaryIO, stdout: BinaryIO) -> None:
    for stmt in program:
        if isinstance(stmt, Move):
            tape.move(stmt.delta)
        elif isinstance(stmt, Add):
            tape.current = tape.current + stmt.delta
        elif isinstance(stmt, Input):
            tape.current = _read_byte(stdin)
        elif isinstance(stmt, Output):
            stdout.write(bytes((tape.current,)))
            stdout.flush()
        elif isinstance(stmt, Loop):
            while tape.current:
                _run(stmt.body, tape, stdin, stdout)


def execute(
    program: Program,
    *,
    stdin: Optional[BinaryIO] = None,
    stdout: Optional[BinaryIO] = None,
    tape_size: int = DEFAULT_TAPE_SIZE,
) -> Tape:
    """
    Run a program tree directly against a fresh zeroed tape.

    Reads/writes raw bytes; defaults to the process' binary stdin/stdout.
    End of input stores 0. Returns the final tape.
    """
    tape = Tape(tape_size)
    _run(
        program,
        tape,
        stdin if stdin is not None else sys.stdin.buffer,
        stdout if stdout is not None else sys.stdout.buffer,
    )
    return tape
