"""
The core Solar interpreter, containing the Evaluator and FunctionRegistry.
"""
import os
import re
import sys
from typing import Any, List, Optional, Dict

from solar.solar_datatypes import (
    Expression, Term, Factor, BooleanExpression,
    Statement, Assignment, FunctionCall, FunctionDecl, Return, IfElse, WhileLoop, Block, Program,
    SolarFunction, NativeFunction, UserFunction, Frame,
    UndefinedFunction, DuplicateFunction, NestedFunctionDeclaration, UnknownOperator,
    DivisionByZero, ReturnOutsideFunction, InvalidNode, SolarError,
    stringify, equals, as_int,
)
from solar.solar_stack import Stack

_ESCAPE_RE = re.compile(r'\\([ntr"\\])')
_ESCAPES = {'n': '\n', 't': '\t', 'r': '\r', '"': '"', '\\': '\\'}


def decode_string(raw: str) -> str:
    """Strips the surrounding quotes of a string literal and decodes its escapes."""
    if len(raw) >= 2 and raw[0] == raw[-1] == '"':
        raw = raw[1:-1]
    return _ESCAPE_RE.sub(lambda m: _ESCAPES[m.group(1)], raw)


def _truncating_div(a: int, b: int) -> int:
    # Python's // floors; the language truncates toward zero
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


class FunctionRegistry:
    """Maps function names to builtins and user-declared functions."""
    def __init__(self):
        self.functions: Dict[str, SolarFunction] = {}

    def declare(self, fn: SolarFunction, node: Any = None) -> SolarFunction:
        if fn.name in self.functions:
            raise DuplicateFunction(fn.name, node)
        self.functions[fn.name] = fn
        return fn

    def get(self, name: str, node: Any = None) -> SolarFunction:
        fn = self.functions.get(name)
        if fn is None:
            raise UndefinedFunction(name, node)
        return fn

    def names(self) -> List[str]:
        return list(self.functions.keys())

    def __contains__(self, name: str) -> bool:
        return name in self.functions

    def __len__(self) -> int:
        return len(self.functions)


class Evaluator:
    """The Solar execution engine."""
    def __init__(self, stack: Optional[Stack] = None, out=None, legacy_boolean_text: bool = True, load_builtins: bool = True):
        self.out = out
        self.stack = stack if stack is not None else Stack(out)
        self.functions = FunctionRegistry()
        # Bottom frame is the program itself; function calls push on top of it.
        self.call_stack: List[Frame] = [Frame('<main>')]
        self.is_declaring_function: bool = False
        # Keep the historical `true`/`false` source-text match in evaluate_expression.
        self.legacy_boolean_text = legacy_boolean_text
        self.current_node = None
        if load_builtins:
            from solar.solar_runtime import StdLib
            StdLib(self).register()

    # --- Call stack ---

    @property
    def frame(self) -> Frame:
        return self.call_stack[-1]

    @property
    def is_returning(self) -> bool:
        return self.frame.returning

    def _push_frame(self, name, func, args, call_site_node) -> Frame:
        frame = Frame(name, func, args, getattr(call_site_node, 'loc', None))
        self.call_stack.append(frame)
        return frame

    def _pop_frame(self):
        if len(self.call_stack) > 1:
            self.call_stack.pop()

    def reset(self):
        """Drops every frame left behind by a failed run."""
        del self.call_stack[1:]
        self.call_stack[0].take_return_value()
        self.is_declaring_function = False
        while self.stack.depth:
            self.stack.pop_frame()

    def _dbg(self, *parts):
        if os.environ.get("SOLAR_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    # --- Expressions ---

    def evaluate_expression(self, expr: Expression) -> Any:
        result = self.evaluate_term(expr.terms[0])
        for operator, term in zip(expr.operators, expr.terms[1:]):
            right = self.evaluate_term(term)
            match operator:
                case '+':
                    if type(result) is int and type(right) is int:
                        result = result + right
                    else:
                        result = stringify(result) + stringify(right)
                case '-':
                    result = as_int(result, expr) - as_int(right, expr)
                case _:
                    raise UnknownOperator(operator, expr)

        # NOTE: historical behaviour, see DESIGN.md. The whole expression's
        # source text wins over the computed value when it spells a boolean.
        if self.legacy_boolean_text and expr.text is not None:
            if expr.text == 'true':
                return True
            if expr.text == 'false':
                return False
        return result

    def evaluate_term(self, term: Term) -> Any:
        result = self.evaluate_factor(term.factors[0])
        for operator, factor in zip(term.operators, term.factors[1:]):
            right = self.evaluate_factor(factor)
            match operator:
                case '*':
                    result = as_int(result, term) * as_int(right, term)
                case '/':
                    divisor = as_int(right, term)
                    if divisor == 0:
                        raise DivisionByZero("Division by zero", term)
                    result = _truncating_div(as_int(result, term), divisor)
                case _:
                    raise UnknownOperator(operator, term)
        return result

    def evaluate_factor(self, factor: Factor) -> Any:
        match factor.kind:
            case 'int':
                return int(factor.value)
            case 'identifier':
                try:
                    return self.stack.get_variable(factor.value)
                except SolarError as e:
                    if e.solar_node is None:
                        e.solar_node = factor
                    raise
            case 'string':
                return decode_string(factor.value)
            case 'boolean':
                if isinstance(factor.value, bool):
                    return factor.value
                return factor.value == 'true'
            case 'expression':
                return self.evaluate_expression(factor.value)
        raise InvalidNode("Invalid factor", factor)

    def evaluate_boolean_expression(self, node: BooleanExpression) -> bool:
        if node.left is not None and node.right is not None:
            left = self.evaluate_expression(node.left)
            right = self.evaluate_expression(node.right)
            match node.operator:
                case '==':
                    return equals(left, right)
                case '!=':
                    return not equals(left, right)
                case '<':
                    return as_int(left, node) < as_int(right, node)
                case '>':
                    return as_int(left, node) > as_int(right, node)
                case '<=':
                    return as_int(left, node) <= as_int(right, node)
                case '>=':
                    return as_int(left, node) >= as_int(right, node)
                case _:
                    raise UnknownOperator(str(node.operator), node)
        if node.literal is not None:
            return node.literal
        if node.text == 'true':
            return True
        if node.text == 'false':
            return False
        if node.nested is not None:
            return self.evaluate_boolean_expression(node.nested)
        raise InvalidNode("Invalid boolean expression", node)

    # --- Statements ---

    def run(self, program: Program | List[Statement]):
        """Runs a whole program in the current (top-level) frame."""
        statements = program.statements if isinstance(program, Program) else program
        self.execute(statements)

    def execute(self, statements: List[Statement]):
        """Runs a statement sequence, stopping as soon as the current frame returns."""
        for statement in statements:
            if self.is_returning:
                return
            self.execute_statement(statement)

    def execute_statement(self, statement: Statement):
        self.current_node = statement
        self._dbg("EXEC", type(statement).__name__, "depth", len(self.call_stack) - 1)
        match statement:
            case Assignment():
                self.exit_assignment(statement)
            case FunctionCall():
                self.exit_function_call(statement)
            case FunctionDecl():
                self.enter_function_decl(statement)
                self.exit_function_decl(statement)
            case Return():
                self.exit_return(statement)
            case IfElse():
                self.exit_if_else(statement)
            case WhileLoop():
                self.exit_while_loop(statement)
            case Block():
                self.execute(statement.statements)
            case _:
                raise InvalidNode(f"Not a statement: {statement!r}", statement)

    def _suppressed(self) -> bool:
        return self.is_declaring_function or self.is_returning

    def exit_assignment(self, node: Assignment):
        if self._suppressed():
            return
        value = self.evaluate_expression(node.expression)
        self.stack.define_variable(node.name, value)

    def exit_function_call(self, node: FunctionCall) -> Any:
        if self._suppressed():
            return None
        args = [self.evaluate_expression(arg) for arg in node.arguments]
        return self.invoke(node.name, args, node)

    def enter_function_decl(self, node: FunctionDecl):
        if self.is_declaring_function or self.frame.is_function:
            raise NestedFunctionDeclaration("Cannot define functions in this scope", node)
        fn = UserFunction(node.name, node.parameters, node.body, variadic=node.variadic, decl=node)
        self.functions.declare(fn, node)
        self._dbg("DECLARE", fn.signature())
        self.is_declaring_function = True

    def exit_function_decl(self, node: FunctionDecl):
        self.is_declaring_function = False

    def exit_return(self, node: Return):
        # A body walked during its declaration is not running.
        if self.is_declaring_function:
            return
        frame = self.frame
        if not frame.is_function:
            raise ReturnOutsideFunction("Return statement outside of a function", node)
        value = self.evaluate_expression(node.expression) if node.expression is not None else None
        frame.return_value = value
        frame.returning = True

    def exit_if_else(self, node: IfElse):
        if self._suppressed():
            return
        if self.evaluate_boolean_expression(node.condition) is True:
            self.execute_statement(node.then_branch)
        elif node.else_branch is not None:
            self.execute_statement(node.else_branch)

    def exit_while_loop(self, node: WhileLoop):
        if self.is_declaring_function:
            return
        while True:
            if self.is_returning:
                return
            if self.evaluate_boolean_expression(node.condition) is True:
                self.execute(node.body)
            else:
                break

    # --- Functions ---

    def invoke(self, name: str, args: List[Any], call_site: Any = None) -> Any:
        """Calls a registered function and returns its result."""
        fn = self.functions.get(name, call_site)
        self._dbg("INVOKE", fn.signature(), "args", args)
        frame = self._push_frame(name, fn, args, call_site)
        _ok = False
        try:
            match fn:
                case NativeFunction():
                    result = fn.body(list(args))
                case UserFunction():
                    result = self._call_user_function(fn, frame, args)
                case _:
                    raise InvalidNode(f"Not callable: {fn!r}", call_site)
            _ok = True
        finally:
            # Frames of a failed call stay in place for the stack trace.
            if _ok:
                self._pop_frame()
        return result

    def _call_user_function(self, fn: UserFunction, frame: Frame, args: List[Any]) -> Any:
        self.stack.push_frame(fn.name)
        if fn.variadic:
            if fn.params:
                self.stack.define_variable(fn.params[0], list(args))
        else:
            for param, arg in zip(fn.params, args):
                self.stack.define_variable(param, arg)
        self.execute(fn.body)
        self.stack.pop_frame()
        return frame.take_return_value()
