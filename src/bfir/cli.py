from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path
from typing import List, Optional

from .codegen import DEFAULT_TAPE_SIZE as IR_TAPE_SIZE
from .codegen import generate
from .errors import BFIRError
from .executor import DEFAULT_TAPE_SIZE as RUN_TAPE_SIZE
from .executor import execute
from .parser import parse
from .toolchain import Toolchain


def tape_size_arg(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}")
    if n < 1:
        raise argparse.ArgumentTypeError(f"tape size must be at least 1, got {n}")
    return n


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bfir",
        description="Compile brainfuck to LLVM IR / native code, or run it directly.",
    )
    parser.add_argument("source", help="program file")
    parser.add_argument("-o", "--output", help="output path ('-' = stdout with --emit-llvm)")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--emit-llvm", action="store_true", help="write LLVM IR instead of building")
    mode.add_argument("--run", action="store_true", help="interpret the program tree")
    mode.add_argument("--jit", action="store_true", help="run with the numba step loop")
    parser.add_argument("--strict", action="store_true", help="reject unmatched brackets")
    parser.add_argument("--tape-size", type=tape_size_arg, default=None, help="tape cells (default 65536 compiled, 30000 run)")
    parser.add_argument("--typed-pointers", action="store_true", help="emit legacy typed pointers (i8*)")
    parser.add_argument("-O", dest="opt_level", type=int, default=2, help="0..3 passed to opt/llc")
    parser.add_argument("--keep", action="store_true", help="keep intermediate .ll/.o files")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def _run(program, args) -> None:
    tape_size = RUN_TAPE_SIZE if args.tape_size is None else args.tape_size
    if args.jit:
        from .jit import run

        runner = run
    else:
        runner = execute

    start = time.time()
    runner(program, tape_size=tape_size)
    end = time.time()
    if args.verbose:
        print(f"\nExecution took {(end - start) * 1000:.2f} ms", file=sys.stderr)


def _compile(program, args, src_path: Path) -> None:
    tape_size = IR_TAPE_SIZE if args.tape_size is None else args.tape_size
    start = time.time()
    ir = generate(program, tape_size=tape_size, opaque_pointers=not args.typed_pointers)
    end = time.time()
    if args.verbose:
        print(f"Code generation took {(end - start) * 1000:.2f} ms", file=sys.stderr)

    if args.emit_llvm:
        if args.output == "-":
            sys.stdout.write(ir)
            return
        out = Path(args.output) if args.output else Path(src_path.stem + ".ll")
        out.write_text(ir, encoding="utf-8")
        return

    out = Path(args.output) if args.output else Path(src_path.stem)
    toolchain = Toolchain(opt_level=args.opt_level, verbose=args.verbose, keep_intermediates=args.keep)
    toolchain.build(ir, out)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    src_path = Path(args.source)

    try:
        src = src_path.read_bytes()
    except FileNotFoundError:
        print(f"Error: Couldn't find file {src_path}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: Couldn't read {src_path}: {e}", file=sys.stderr)
        return 1

    try:
        start = time.time()
        program = parse(src, strict=args.strict)
        end = time.time()
        if args.verbose:
            print(f"Parsing took {(end - start) * 1000:.2f} ms", file=sys.stderr)

        if args.run or args.jit:
            _run(program, args)
        else:
            _compile(program, args, src_path)
    except BFIRError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
