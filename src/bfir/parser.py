from __future__ import annotations

from typing import List, Tuple, Union

from .errors import make_bracket_error
from .nodes import Add, Input, Loop, Move, Output, Program, Statement

Source = Union[bytes, bytearray, str]

_PRIMITIVES = {
    ord('>'): lambda: Move(1),
    ord('<'): lambda: Move(-1),
    ord('+'): lambda: Add(1),
    ord('-'): lambda: Add(-1),
    ord(','): Input,
    ord('.'): Output,
}
_OPEN = ord('[')
_CLOSE = ord(']')


def _as_bytes(source: Source) -> bytes:
    if isinstance(source, str):
        return source.encode("utf-8")
    return bytes(source)


def _append(code: List[Statement], stmt: Statement) -> None:
    """Append a statement, folding it into a same-kind Move/Add predecessor."""
    if code:
        last = code[-1]
        if isinstance(last, Move) and isinstance(stmt, Move):
            code[-1] = Move(last.delta + stmt.delta)
            return
        if isinstance(last, Add) and isinstance(stmt, Add):
            code[-1] = Add(last.delta + stmt.delta)
            return
    code.append(stmt)


def _parse_block(src: bytes, start: int) -> Tuple[Program, int]:
    """
    Parse from `start` until the matching ']' or end of input.

    Returns the statements and the index just after the ']' that ended the
    block, or len(src) when input ran out first.
    """
    code: List[Statement] = []
    i = start
    n = len(src)
    while i < n:
        c = src[i]

        if c == _OPEN:
            body, i = _parse_block(src, i + 1)
            code.append(Loop(body))
            continue

        if c == _CLOSE:
            return tuple(code), i + 1

        make = _PRIMITIVES.get(c)
        if make is not None:
            _append(code, make())
        i += 1

    return tuple(code), n


def check_brackets(source: Source) -> None:
    """Raise BracketError for the first unmatched ']' or an unclosed '['."""
    src = _as_bytes(source)
    stack: List[int] = []
    for pos, c in enumerate(src):
        if c == _OPEN:
            stack.append(pos)
        elif c == _CLOSE:
            if not stack:
                raise make_bracket_error(message="Unmatched ']'", source=src, offset=pos)
            stack.pop()
    if stack:
        raise make_bracket_error(message="Unmatched '['", source=src, offset=stack[-1])


def parse(source: Source, *, strict: bool = False) -> Program:
    """
    Parse program text into a folded statement tree.

    Any byte outside `><+-,.[]` is a comment. Without `strict`, bracket
    mismatches are not errors: an unclosed '[' runs to the end of input and
    a stray ']' at top level ends the program.
    """
    src = _as_bytes(source)
    if strict:
        check_brackets(src)
    program, _ = _parse_block(src, 0)
    return program
