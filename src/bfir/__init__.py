from .nodes import Add, Input, Loop, Move, Output, Program, Statement, format_program
from .parser import check_brackets, parse
from .codegen import CodeGenContext, generate
from .executor import Tape, execute
from .errors import BFIRError, BracketError, TapeBoundsError, ToolchainError
from .api import CompileOptions, CompileResult, compile_file, compile_string

__all__ = [
    'Add',
    'Input',
    'Loop',
    'Move',
    'Output',
    'Program',
    'Statement',
    'format_program',
    'parse',
    'check_brackets',
    'CodeGenContext',
    'generate',
    'Tape',
    'execute',
    'BFIRError',
    'BracketError',
    'TapeBoundsError',
    'ToolchainError',
    'CompileOptions',
    'CompileResult',
    'compile_string',
    'compile_file',
]
