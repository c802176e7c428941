"""
The variable store used by the evaluator: a global scope plus one scope per
active function call.
"""
import sys
from typing import Any, Dict, List, Optional, TextIO

from solar.solar_datatypes import UndefinedVariable


class Scope:
    """A single set of bindings with an optional parent to fall back to."""
    def __init__(self, name: str, parent: Optional['Scope'] = None):
        self.name = name
        self.parent = parent
        self.bindings: Dict[str, Any] = {}

    def __setitem__(self, key: str, value: Any):
        if not isinstance(key, str):
            raise TypeError(f"Scope key must be a str, not {type(key)}")
        self.bindings[key] = value

    def __getitem__(self, key: str) -> Any:
        owner = self.find_owner(key)
        if owner is not None:
            return owner.bindings[key]
        raise KeyError(f"'{key}'")

    def __contains__(self, key: Any) -> bool:
        return isinstance(key, str) and self.find_owner(key) is not None

    def find_owner(self, key: str) -> Optional['Scope']:
        """Finds the Scope in the lookup chain (self → parent) that owns key."""
        if key in self.bindings:
            return self
        if self.parent is not None:
            return self.parent.find_owner(key)
        return None

    def __repr__(self) -> str:
        keys = ', '.join(self.bindings.keys())
        return f"<Scope {self.name} bindings=[{keys}]>"


class Stack:
    """Holds variable bindings for the program and each active call.

    A frame scope falls back to the global scope only, so a function body
    never sees the locals of its caller.
    """
    def __init__(self, out: Optional[TextIO] = None):
        self.out = out
        self.globals = Scope("<main>")
        self.frames: List[Scope] = []

    @property
    def current(self) -> Scope:
        return self.frames[-1] if self.frames else self.globals

    @property
    def depth(self) -> int:
        return len(self.frames)

    def push_frame(self, name: str) -> Scope:
        scope = Scope(name, parent=self.globals)
        self.frames.append(scope)
        return scope

    def pop_frame(self) -> Scope:
        if not self.frames:
            raise IndexError("pop_frame called on an empty stack")
        return self.frames.pop()

    def define_variable(self, name: str, value: Any):
        self.current[name] = value

    def get_variable(self, name: str) -> Any:
        try:
            return self.current[name]
        except KeyError:
            raise UndefinedVariable(name) from None

    def has_variable(self, name: str) -> bool:
        return name in self.current

    def _write(self, line: str):
        print(line, file=self.out or sys.stdout)

    def print_stack_trace(self):
        """Writes the active scopes, innermost first."""
        for scope in reversed(self.frames):
            self._write(f"  at {scope.name}")
        self._write(f"  at {self.globals.name}")

    def print_variable_stack(self):
        """Writes every scope with its bindings, innermost first."""
        from solar.solar_printer import Printer
        pf = Printer().pformat
        for scope in reversed([self.globals] + self.frames):
            self._write(f"{scope.name}: {pf(scope.bindings)}")
