"""
A debug printer for Solar values.
"""
import collections.abc

from solar.solar_datatypes import (
    NativeFunction, UserFunction, Frame,
    Expression, Term, Factor, BooleanExpression,
)


class Printer:
    """Formats Solar values into their debug representation."""

    _ESCAPES = {'\\': '\\\\', '"': '\\"', '\n': '\\n', '\t': '\\t', '\r': '\\r'}

    def __init__(self):
        self._handlers = self._create_handlers()

    def pformat(self, obj):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj)

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, collections.abc.Mapping): return self._pformat_mapping
        if isinstance(obj, (list, tuple)): return self._pformat_sequence
        # Default to Python's repr for unknown types
        return repr

    def _create_handlers(self):
        return {
            str: self._pformat_str,
            int: self._pformat_primitive,
            bool: self._pformat_bool,
            type(None): self._pformat_none,
            NativeFunction: self._pformat_function,
            UserFunction: self._pformat_function,
            Frame: self._pformat_frame,
            Expression: self._pformat_expression,
            Term: self._pformat_term,
            Factor: self._pformat_factor,
            BooleanExpression: self._pformat_boolean_expression,
        }

    def _pformat_primitive(self, obj):
        return str(obj)

    def _pformat_str(self, obj):
        escaped = ''.join(self._ESCAPES.get(ch, ch) for ch in obj)
        return f'"{escaped}"'

    def _pformat_bool(self, obj):
        return 'true' if obj else 'false'

    def _pformat_none(self, obj):
        return 'null'

    def _pformat_sequence(self, obj):
        return "[" + ", ".join(self.pformat(item) for item in obj) + "]"

    def _pformat_mapping(self, obj):
        items = ", ".join(f"{k} = {self.pformat(v)}" for k, v in obj.items())
        return "{" + items + "}"

    def _pformat_function(self, obj):
        kind = "native" if isinstance(obj, NativeFunction) else "fun"
        return f"{kind} {obj.signature()}"

    def _pformat_frame(self, obj):
        if not obj.args:
            return f"({obj.name})"
        return f"({obj.name} " + " ".join(self.pformat(a) for a in obj.args) + ")"

    # Source-like rendering of expression nodes, used in error messages when
    # the parser did not supply the raw text.
    def _pformat_expression(self, obj):
        if obj.text is not None:
            return obj.text
        parts = [self.pformat(obj.terms[0])]
        for op, term in zip(obj.operators, obj.terms[1:]):
            parts.append(f"{op} {self.pformat(term)}")
        return " ".join(parts)

    def _pformat_term(self, obj):
        parts = [self.pformat(obj.factors[0])]
        for op, factor in zip(obj.operators, obj.factors[1:]):
            parts.append(f"{op} {self.pformat(factor)}")
        return " ".join(parts)

    def _pformat_factor(self, obj):
        match obj.kind:
            case 'expression':
                return f"({self.pformat(obj.value)})"
            case 'boolean':
                return self._pformat_bool(obj.value) if isinstance(obj.value, bool) else str(obj.value)
            case _:
                return str(obj.value)

    def _pformat_boolean_expression(self, obj):
        if obj.left is not None:
            return f"{self.pformat(obj.left)} {obj.operator} {self.pformat(obj.right)}"
        if obj.nested is not None:
            return f"({self.pformat(obj.nested)})"
        if obj.text is not None:
            return obj.text
        return self._pformat_bool(obj.literal)
