# solar_runtime.py

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Literal, Dict

from solar.solar_transformer import SolarTransformer
from solar.solar_interpreter import Evaluator
from solar.solar_datatypes import (
    NativeFunction, Program, Frame, SolarError, stringify,
)
from solar.solar_stack import Stack

# ===================================================================
# 1. Builtins
# ===================================================================


class StdLib:
    """Contains Python implementations for all Solar built-ins."""

    # name -> (method, parameter names, variadic)
    BUILTINS = {
        "println": ("_println", [], True),
        "exit": ("_exit", ["exitCode"], False),
        "printStackTrace": ("_print_stack_trace", [], False),
        "printVariableTrace": ("_print_variable_trace", [], False),
    }

    def __init__(self, evaluator):
        self.evaluator = evaluator

    def register(self):
        for name, (method, params, variadic) in self.BUILTINS.items():
            fn = NativeFunction(name, getattr(self, method), params, variadic)
            self.evaluator.functions.declare(fn)

    @property
    def out(self):
        return self.evaluator.out or sys.stdout

    def _println(self, args: List[Any]):
        if len(args) == 1:
            print(stringify(args[0]), file=self.out)
        else:
            from solar.solar_printer import Printer
            print(Printer().pformat(args), file=self.out)

    def _exit(self, args: List[Any]):
        code = args[0] if args else -1
        if type(code) is not int:
            code = -1
        sys.exit(code)

    def _print_stack_trace(self, args: List[Any]):
        self.evaluator.stack.print_stack_trace()

    def _print_variable_trace(self, args: List[Any]):
        self.evaluator.stack.print_variable_stack()


# ===================================================================
# 2. Script Execution
# ===================================================================

Token = Dict[str, Any]

@dataclass
class ExecutionResult:
    """The structured result of a program execution."""
    status: Literal['success', 'error']
    error_message: Optional[str] = None
    error_token: Optional[Token] = None

    def format_error(self) -> str:
        """Formats an error message with line and column if available."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        where = self.error_token or {}
        if where.get('line') is None or msg.startswith("Error on line "):
            return msg
        col = where.get('col')
        suffix = "" if col is None else f", col {col}"
        return f"Error on line {where['line']}{suffix}: {msg}"


class ScriptRunner:
    """Transforms and executes parsed Solar programs."""

    _transformer: Optional[SolarTransformer] = None

    def __init__(self, stack: Optional[Stack] = None, out=None, legacy_boolean_text: bool = True):
        self.evaluator = Evaluator(stack=stack, out=out, legacy_boolean_text=legacy_boolean_text)
        if ScriptRunner._transformer is None:
            ScriptRunner._transformer = SolarTransformer()
        self.transformer = ScriptRunner._transformer

    def _format_runtime_error(self, e, source: Optional[str], node) -> tuple[str, Optional[dict]]:
        match e:
            case SolarError():
                msg = f"{type(e).__name__}: {e}"
            case RecursionError():
                msg = "RecursionError: call depth exceeded"
            case _:
                msg = f"InternalError: {e}"

        token = None
        offender = getattr(e, 'solar_node', None) or node
        loc = getattr(offender, 'loc', None) if offender is not None else None
        if loc and isinstance(loc, dict):
            line = loc.get('line'); col = loc.get('col')
            token = {'line': line, 'col': col, 'tag': loc.get('tag'), 'text': loc.get('text')}
            if line is not None:
                msg = f"{msg}\n(line {line}, col {col})"
                if source:
                    excerpt = self._excerpt(source.splitlines(), line, col)
                    if excerpt:
                        msg = f"{msg}\n{excerpt}"
            if loc.get('tag') or loc.get('text'):
                msg = f"{msg}\nAt node tag={loc.get('tag')!r} text={loc.get('text')!r}"

        st = self._format_stacktrace()
        if st:
            msg += "\n" + st
        return msg, token

    def _excerpt(self, lines: List[str], line: int, col: Optional[int]) -> str:
        """Numbered source lines around `line`, with a caret under `col`."""
        if not 1 <= line <= len(lines):
            return ""
        first, last = max(1, line - 2), min(len(lines), line + 2)
        gutter = len(str(last))
        rows = []
        for n in range(first, last + 1):
            marker = ">" if n == line else " "
            rows.append(f"{marker} {n:>{gutter}} | {lines[n - 1]}")
            if n == line and col is not None:
                caret = " " * max(col - 1, 0)
                rows.append(" " * (gutter + 2) + f" | {caret}^")
        return "\n".join(rows)

    def _format_stacktrace(self) -> str:
        from solar.solar_printer import Printer
        frames: List[Frame] = self.evaluator.call_stack[1:]
        if not frames:
            return ""
        pf = Printer().pformat
        # Innermost call first
        return "Solar stacktrace: " + " ".join(pf(f) for f in reversed(frames))

    def handle_program(self, program: Program, source: Optional[str] = None) -> ExecutionResult:
        """Runs an already transformed program."""
        self.evaluator.reset()
        try:
            self.evaluator.run(program)
        except (SolarError, RecursionError) as e:
            msg, token = self._format_runtime_error(e, source, self.evaluator.current_node)
            return ExecutionResult(status='error', error_message=msg, error_token=token)
        return ExecutionResult(status='success')

    def handle_tree(self, raw: Any, source: Optional[str] = None) -> ExecutionResult:
        """The main entry point: transforms a raw parse tree and runs it."""
        try:
            program = self.transformer.transform(raw)
        except (ValueError, KeyError, NotImplementedError, SolarError) as e:
            return ExecutionResult(status='error', error_message=f"InvalidTree: {e}")
        if not isinstance(program, Program):
            return ExecutionResult(status='error', error_message="InvalidTree: root node is not a program")
        return self.handle_program(program, source)

    def handle_file(self, path: str) -> ExecutionResult:
        """Loads a serialized parse tree (JSON or YAML) and runs it."""
        import yaml
        from solar.solar_serialize import load_tree
        p = Path(path)
        try:
            raw = load_tree(p)
        except (ValueError, yaml.YAMLError) as e:
            return ExecutionResult(status='error', error_message=f"InvalidTree: {e}")
        source = None
        if isinstance(raw, dict) and isinstance(raw.get('source'), str):
            source = raw['source']
        return self.handle_tree(raw, source)
