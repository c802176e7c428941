"""
Defines the core data types for the Solar language runtime.

This module provides the runtime value helpers, the error taxonomy, the
AST node types the evaluator dispatches on, and the function/frame objects
that the interpreter works with.
"""

from abc import ABC
from typing import List, Dict, Any, Optional, Callable, Union

# =================================================================
# Errors
# =================================================================

class SolarError(Exception):
    """Base class for every fatal evaluation condition."""
    def __init__(self, message: str, node: Any = None):
        super().__init__(message)
        self.solar_node = node


class UndefinedVariable(SolarError):
    def __init__(self, name: str, node: Any = None):
        super().__init__(f"Undefined variable {name}", node)
        self.name = name


class UndefinedFunction(SolarError):
    def __init__(self, name: str, node: Any = None):
        super().__init__(f"Undefined function {name}", node)
        self.name = name


class DuplicateFunction(SolarError):
    def __init__(self, name: str, node: Any = None):
        super().__init__(f"Function with name {name} is already defined", node)
        self.name = name


class NestedFunctionDeclaration(SolarError):
    pass


class TypeMismatch(SolarError, TypeError):
    pass


class UnknownOperator(SolarError):
    def __init__(self, operator: str, node: Any = None):
        super().__init__(f"Unknown operator: {operator}", node)
        self.operator = operator


class DivisionByZero(SolarError, ZeroDivisionError):
    pass


class ReturnOutsideFunction(SolarError):
    pass


class InvalidNode(SolarError):
    """The tree handed to the evaluator does not have a shape it understands."""
    pass


# =================================================================
# Value Model
# =================================================================

Value = Union[int, bool, str]


def type_name(value: Any) -> str:
    # bool is checked first: it is a subclass of int
    if type(value) is bool:
        return "bool"
    if type(value) is int:
        return "int"
    if type(value) is str:
        return "string"
    if value is None:
        return "none"
    return type(value).__name__


def stringify(value: Any) -> str:
    """Text form of a value, used for '+' concatenation and println."""
    match value:
        case bool():
            return 'true' if value else 'false'
        case int() | str():
            return str(value)
        case None:
            return 'null'
        case _:
            from solar.solar_printer import Printer
            return Printer().pformat(value)


def equals(left: Any, right: Any) -> bool:
    """Structural equality within a tag; values of different tags are never equal."""
    return type(left) is type(right) and left == right


def as_int(value: Any, node: Any = None) -> int:
    if type(value) is not int:
        raise TypeMismatch(f"Expected int but got {type_name(value)}", node)
    return value


def as_bool(value: Any, node: Any = None) -> bool:
    if type(value) is not bool:
        raise TypeMismatch(f"Expected bool but got {type_name(value)}", node)
    return value


# =================================================================
# AST Nodes
# =================================================================

class Node(ABC):
    """Abstract base class for every AST node handed to the evaluator."""
    loc: Optional[Dict[str, Any]] = None

    def _fields(self) -> tuple:
        return ()

    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return self._fields() == other._fields()

    def __hash__(self):
        return hash((type(self).__name__,) + tuple(repr(f) for f in self._fields()))


class Expression(Node):
    """A sum/difference chain of terms: term (('+'|'-') term)*.

    `text` is the raw source text of the whole expression; it is needed by
    the legacy boolean-literal check in the evaluator.
    """
    def __init__(self, terms: List['Term'], operators: Optional[List[str]] = None, text: Optional[str] = None):
        if not terms:
            raise ValueError("Expression must have at least one term.")
        self.terms = list(terms)
        self.operators = list(operators or [])
        if len(self.operators) != len(self.terms) - 1:
            raise ValueError("Expression needs exactly one operator between each pair of terms.")
        self.text = text

    def _fields(self):
        return (tuple(self.terms), tuple(self.operators))

    def __repr__(self) -> str:
        return f"Expression(terms={self.terms!r}, operators={self.operators!r})"


class Term(Node):
    """A product/quotient chain of factors: factor (('*'|'/') factor)*."""
    def __init__(self, factors: List['Factor'], operators: Optional[List[str]] = None):
        if not factors:
            raise ValueError("Term must have at least one factor.")
        self.factors = list(factors)
        self.operators = list(operators or [])
        if len(self.operators) != len(self.factors) - 1:
            raise ValueError("Term needs exactly one operator between each pair of factors.")

    def _fields(self):
        return (tuple(self.factors), tuple(self.operators))

    def __repr__(self) -> str:
        return f"Term(factors={self.factors!r}, operators={self.operators!r})"


class Factor(Node):
    """The smallest evaluable unit of an expression.

    `kind` is one of 'int', 'identifier', 'string', 'boolean' or
    'expression'. For 'int' the value is the literal's text or an int, for
    'string' it is the quoted source text (escapes undecoded), for
    'expression' it is a nested Expression.
    """
    KINDS = ('int', 'identifier', 'string', 'boolean', 'expression')

    def __init__(self, kind: str, value: Any):
        if kind not in self.KINDS:
            raise ValueError(f"Unknown factor kind {kind!r}")
        self.kind = kind
        self.value = value

    def _fields(self):
        return (self.kind, self.value)

    def __repr__(self) -> str:
        return f"Factor<{self.kind}>({self.value!r})"


class BooleanExpression(Node):
    """A condition: `left OP right`, a literal true/false, or a nested condition."""
    def __init__(self, left: Optional[Expression] = None, operator: Optional[str] = None,
                 right: Optional[Expression] = None, literal: Optional[bool] = None,
                 nested: Optional['BooleanExpression'] = None, text: Optional[str] = None):
        self.left = left
        self.operator = operator
        self.right = right
        self.literal = literal
        self.nested = nested
        self.text = text

    @classmethod
    def compare(cls, left: Expression, operator: str, right: Expression) -> 'BooleanExpression':
        return cls(left=left, operator=operator, right=right)

    @classmethod
    def of(cls, literal: bool) -> 'BooleanExpression':
        return cls(literal=literal, text='true' if literal else 'false')

    def _fields(self):
        return (self.left, self.operator, self.right, self.literal, self.nested)

    def __repr__(self) -> str:
        if self.left is not None:
            return f"BooleanExpression({self.left!r} {self.operator} {self.right!r})"
        if self.nested is not None:
            return f"BooleanExpression(({self.nested!r}))"
        return f"BooleanExpression({self.text or self.literal!r})"


class Statement(Node):
    """Abstract base class for all statement nodes."""
    pass


class Assignment(Statement):
    def __init__(self, name: str, expression: Expression):
        self.name = name
        self.expression = expression

    def _fields(self):
        return (self.name, self.expression)

    def __repr__(self) -> str:
        return f"Assignment({self.name} = {self.expression!r})"


class FunctionCall(Statement):
    def __init__(self, name: str, arguments: Optional[List[Expression]] = None):
        self.name = name
        self.arguments = list(arguments or [])

    def _fields(self):
        return (self.name, tuple(self.arguments))

    def __repr__(self) -> str:
        return f"FunctionCall({self.name}, {self.arguments!r})"


class FunctionDecl(Statement):
    def __init__(self, name: str, parameters: Optional[List[str]] = None, body: Optional[List[Statement]] = None, variadic: bool = False):
        self.name = name
        self.parameters = list(parameters or [])
        self.body = list(body or [])
        # The whole argument list binds to parameters[0]
        self.variadic = variadic

    def _fields(self):
        return (self.name, tuple(self.parameters), tuple(self.body), self.variadic)

    def __repr__(self) -> str:
        dots = "..." if self.variadic else ""
        return f"FunctionDecl({self.name}({', '.join(self.parameters)}{dots}), body={self.body!r})"


class Return(Statement):
    def __init__(self, expression: Optional[Expression] = None):
        self.expression = expression

    def _fields(self):
        return (self.expression,)

    def __repr__(self) -> str:
        return f"Return({self.expression!r})"


class IfElse(Statement):
    def __init__(self, condition: BooleanExpression, then_branch: Statement, else_branch: Optional[Statement] = None):
        self.condition = condition
        self.then_branch = then_branch
        self.else_branch = else_branch

    def _fields(self):
        return (self.condition, self.then_branch, self.else_branch)

    def __repr__(self) -> str:
        return f"IfElse({self.condition!r}, then={self.then_branch!r}, else={self.else_branch!r})"


class WhileLoop(Statement):
    def __init__(self, condition: BooleanExpression, body: Optional[List[Statement]] = None):
        self.condition = condition
        self.body = list(body or [])

    def _fields(self):
        return (self.condition, tuple(self.body))

    def __repr__(self) -> str:
        return f"WhileLoop({self.condition!r}, body={self.body!r})"


class Block(Statement):
    """A nested statement sequence (`{ ... }`) used as a single statement."""
    def __init__(self, statements: Optional[List[Statement]] = None):
        self.statements = list(statements or [])

    def _fields(self):
        return (tuple(self.statements),)

    def __repr__(self) -> str:
        return f"Block({self.statements!r})"


class Program(Node):
    def __init__(self, statements: Optional[List[Statement]] = None):
        self.statements = list(statements or [])

    def _fields(self):
        return (tuple(self.statements),)

    def __repr__(self) -> str:
        return f"Program({self.statements!r})"


# =================================================================
# Functions and Frames
# =================================================================

class SolarFunction(ABC):
    """Abstract base class for all entries of the function registry."""
    def __init__(self, name: str, params: Optional[List[str]] = None, variadic: bool = False):
        self.name = name
        self.params = list(params or [])
        self.variadic = variadic

    def signature(self) -> str:
        if self.variadic:
            return f"{self.name}(...)"
        return f"{self.name}({', '.join(self.params)})"


class NativeFunction(SolarFunction):
    """A builtin implemented by a Python callable taking the argument list."""
    def __init__(self, name: str, body: Callable[[List[Any]], Any], params: Optional[List[str]] = None, variadic: bool = False):
        super().__init__(name, params, variadic)
        self.body = body

    def __repr__(self) -> str:
        return f"<NativeFunction {self.signature()}>"


class UserFunction(SolarFunction):
    """A function declared in Solar source with `fun`; its body is a statement sequence."""
    def __init__(self, name: str, params: Optional[List[str]], body: List[Statement], variadic: bool = False, decl: Optional[FunctionDecl] = None):
        super().__init__(name, params, variadic)
        self.body = list(body)
        self.decl = decl

    def __repr__(self) -> str:
        return f"<UserFunction {self.signature()}>"


class Frame:
    """One activation on the evaluator's call stack; owns its return state."""
    def __init__(self, name: str, function: Optional[SolarFunction] = None, args: Optional[List[Any]] = None, call_site: Any = None):
        self.name = name
        self.function = function
        self.args = list(args or [])
        self.call_site = call_site
        self.returning: bool = False
        self.return_value: Any = None

    @property
    def is_function(self) -> bool:
        return self.function is not None

    def take_return_value(self) -> Any:
        """Reads and clears the pending return value."""
        value = self.return_value
        self.return_value = None
        self.returning = False
        return value

    def __repr__(self) -> str:
        return f"<Frame {self.name} returning={self.returning}>"
