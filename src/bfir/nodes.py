from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union


# ---------------- Program tree ----------------
@dataclass(frozen=True)
class Move:
    delta: int  # net >/<


@dataclass(frozen=True)
class Add:
    delta: int  # net +/- on current cell


@dataclass(frozen=True)
class Input:
    pass  # ','


@dataclass(frozen=True)
class Output:
    pass  # '.'


@dataclass(frozen=True)
class Loop:
    body: "Program"


Statement = Union[Move, Add, Input, Output, Loop]
Program = Tuple[Statement, ...]


# ---------------- Tree utilities ----------------
def format_program(program: Program) -> str:
    """
    Render a program tree back to canonical source text.

    Move(0) and Add(0) render as nothing, so a tree holding them does not
    survive a re-parse: (Move(1), Add(0), Move(1)) comes back as (Move(2),).
    """
    out = []
    for stmt in program:
        if isinstance(stmt, Move):
            out.append(">" * stmt.delta if stmt.delta > 0 else "<" * -stmt.delta)
        elif isinstance(stmt, Add):
            out.append("+" * stmt.delta if stmt.delta > 0 else "-" * -stmt.delta)
        elif isinstance(stmt, Input):
            out.append(",")
        elif isinstance(stmt, Output):
            out.append(".")
        elif isinstance(stmt, Loop):
            out.append("[" + format_program(stmt.body) + "]")
    return "".join(out)


def loop_depth(program: Program) -> int:
    depth = 0
    for stmt in program:
        if isinstance(stmt, Loop):
            depth = max(depth, 1 + loop_depth(stmt.body))
    return depth


def count_statements(program: Program) -> int:
    c = 0
    for stmt in program:
        c += 1
        if isinstance(stmt, Loop):
            c += count_statements(stmt.body)
    return c
