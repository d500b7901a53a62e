from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple


def _locate(source: bytes, offset: int) -> Tuple[int, int]:
    """Return the 1-based (line, column) of a byte offset."""
    line = source.count(b"\n", 0, offset) + 1
    column = offset - (source.rfind(b"\n", 0, offset) + 1) + 1
    return line, column


def _build_context(source: bytes, line_no_1: int, column: int, *, context: int = 2) -> str:
    lines = source.decode("utf-8", errors="replace").split("\n")
    idx = max(1, line_no_1)
    start = max(1, idx - context)
    end = min(len(lines), idx + context)

    out: List[str] = []
    for i in range(start, end + 1):
        prefix = '>' if i == idx else ' '
        out.append(f"{prefix} {i:4d} | {lines[i - 1]}")
        if i == idx:
            out.append(f"       | {' ' * (column - 1)}^")
    return "\n".join(out)


def _hint_for(message: str) -> Optional[str]:
    msg = message.lower()
    if "unmatched ']'" in msg:
        return "Remove the stray ']' or add the '[' it was meant to close."
    if "unmatched '['" in msg:
        return "Add the missing ']'. Without it the loop runs to the end of the program."
    return None


@dataclass
class BFIRError(Exception):
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class BracketError(BFIRError):
    offset: int
    line: int
    column: int
    context: str


@dataclass
class TapeBoundsError(BFIRError):
    cursor: int
    tape_size: int


@dataclass
class ToolchainError(BFIRError):
    command: Sequence[str] = ()
    stderr: str = ""


def make_bracket_error(*, message: str, source: bytes, offset: int) -> BracketError:
    line, column = _locate(source, offset)
    ctx = _build_context(source, line, column)
    hint = _hint_for(message)
    hint_block = f"\nHint: {hint}" if hint else ""
    return BracketError(
        message=f"BracketError: {message} (line {line}, column {column})\n{ctx}{hint_block}",
        offset=offset,
        line=line,
        column=column,
        context=ctx,
    )


def make_bounds_error(*, cursor: int, tape_size: int) -> TapeBoundsError:
    return TapeBoundsError(
        message=f"TapeBoundsError: cursor {cursor} outside tape [0, {tape_size})",
        cursor=cursor,
        tape_size=tape_size,
    )
