import io

import pytest

from solar.solar_interpreter import Evaluator, FunctionRegistry, decode_string
from solar.solar_datatypes import (
    Expression, Term, Factor, BooleanExpression, NativeFunction, UserFunction,
    UndefinedVariable, UndefinedFunction, DuplicateFunction, NestedFunctionDeclaration,
    TypeMismatch, UnknownOperator, DivisionByZero, ReturnOutsideFunction, InvalidNode,
)

from ast_helpers import (
    var, string, term, expr, cmp, TRUE, FALSE,
    assign, call, fun, ret, if_else, while_loop, block, program,
)


@pytest.fixture
def ev():
    return Evaluator(out=io.StringIO())


# --- Expressions ---

@pytest.mark.parametrize("a,b", [(3, 4), (-7, 2), (0, 0), (123456789, 987654321)])
def test_integer_arithmetic(ev, a, b):
    assert ev.evaluate_expression(expr(a, '+', b)) == a + b
    assert ev.evaluate_expression(expr(a, '-', b)) == a - b
    assert ev.evaluate_expression(expr(term(a, '*', b))) == a * b


def test_precedence_of_term_over_expression(ev):
    # 2 + 3 * 4 - 10 / 5
    e = expr(2, '+', term(3, '*', 4), '-', term(10, '/', 5))
    assert ev.evaluate_expression(e) == 12


def test_parenthesized_expression(ev):
    # (2 + 3) * 4
    e = expr(term(expr(2, '+', 3), '*', 4))
    assert ev.evaluate_expression(e) == 20


def test_division_truncates_toward_zero(ev):
    assert ev.evaluate_expression(expr(term(7, '/', 2))) == 3
    assert ev.evaluate_expression(expr(term(-7, '/', 2))) == -3
    assert ev.evaluate_expression(expr(term(7, '/', -2))) == -3


def test_division_by_zero(ev):
    with pytest.raises(DivisionByZero):
        ev.evaluate_expression(expr(term(5, '/', 0)))


def test_plus_concatenates_when_any_operand_is_a_string(ev):
    assert ev.evaluate_expression(expr(string("a"), '+', 1)) == "a1"
    assert ev.evaluate_expression(expr(1, '+', string("b"))) == "1b"
    assert ev.evaluate_expression(expr(string("x"), '+', string("y"))) == "xy"
    # left fold: 1 + 2 happens before the string joins
    assert ev.evaluate_expression(expr(1, '+', 2, '+', string("!"))) == "3!"


def test_plus_stringifies_booleans(ev):
    ev.stack.define_variable("flag", True)
    assert ev.evaluate_expression(expr(string("is "), '+', var("flag"))) == "is true"


def test_minus_requires_integers(ev):
    with pytest.raises(TypeMismatch):
        ev.evaluate_expression(expr(string("a"), '-', 1))


@pytest.mark.parametrize("op", ['*', '/'])
def test_term_operators_require_integers(ev, op):
    with pytest.raises(TypeMismatch):
        ev.evaluate_expression(expr(term(string("a"), op, 2)))


def test_unknown_operators(ev):
    with pytest.raises(UnknownOperator):
        ev.evaluate_expression(expr(1, '%', 2))
    with pytest.raises(UnknownOperator):
        ev.evaluate_expression(expr(term(1, '^', 2)))


def test_string_escape_decoding(ev):
    value = ev.evaluate_expression(expr(string(r'a\nb\t\"c\\d')))
    assert value == 'a\nb\t"c\\d'
    assert decode_string(r'"\r"') == '\r'


def test_escaped_backslash_is_not_reinterpreted():
    assert decode_string(r'"\\n"') == '\\n'


def test_identifier_lookup_and_undefined_variable(ev):
    ev.run(program(assign("x", 5)))
    assert ev.evaluate_expression(expr(var("x"))) == 5
    with pytest.raises(UndefinedVariable) as exc:
        ev.evaluate_expression(expr(var("nope")))
    assert exc.value.solar_node == var("nope")


def test_boolean_factor(ev):
    assert ev.evaluate_expression(expr(True)) is True
    assert ev.evaluate_expression(expr(Factor('boolean', 'false'))) is False


def test_legacy_boolean_text_overrides_result(ev):
    e = Expression([Term([var("t")])], [], text="true")
    ev.stack.define_variable("t", 1)
    assert ev.evaluate_expression(e) is True


def test_legacy_boolean_text_can_be_disabled():
    ev = Evaluator(out=io.StringIO(), legacy_boolean_text=False)
    e = Expression([Term([var("t")])], [], text="true")
    ev.stack.define_variable("t", 1)
    assert ev.evaluate_expression(e) == 1


def test_invalid_factor_kind_is_rejected(ev):
    f = Factor('int', 1)
    f.kind = 'float'
    with pytest.raises(InvalidNode):
        ev.evaluate_factor(f)


# --- Boolean expressions ---

@pytest.mark.parametrize("left,op,right,expected", [
    (1, '<', 2, True),
    (2, '<=', 2, True),
    (3, '>', 2, True),
    (2, '>=', 3, False),
    (1, '==', 1, True),
    (1, '!=', 2, True),
])
def test_integer_comparisons(ev, left, op, right, expected):
    assert ev.evaluate_boolean_expression(cmp(left, op, right)) is expected


def test_string_equality(ev):
    assert ev.evaluate_boolean_expression(cmp(string("a"), '==', string("a"))) is True
    assert ev.evaluate_boolean_expression(cmp(string("a"), '!=', string("b"))) is True


def test_cross_type_equality_is_never_true(ev):
    assert ev.evaluate_boolean_expression(cmp(1, '==', string("1"))) is False
    assert ev.evaluate_boolean_expression(cmp(1, '!=', string("1"))) is True
    # bool is not an int even though Python says True == 1
    assert ev.evaluate_boolean_expression(cmp(True, '==', 1)) is False


def test_ordering_requires_integers(ev):
    with pytest.raises(TypeMismatch):
        ev.evaluate_boolean_expression(cmp(string("a"), '<', string("b")))


def test_unknown_comparison_operator(ev):
    with pytest.raises(UnknownOperator):
        ev.evaluate_boolean_expression(cmp(1, '<>', 2))


def test_boolean_literals_and_nesting(ev):
    assert ev.evaluate_boolean_expression(TRUE) is True
    assert ev.evaluate_boolean_expression(FALSE) is False
    nested = BooleanExpression(nested=BooleanExpression(nested=cmp(1, '<', 2)))
    assert ev.evaluate_boolean_expression(nested) is True
    with pytest.raises(InvalidNode):
        ev.evaluate_boolean_expression(BooleanExpression())


# --- Statements and control flow ---

def test_if_else_branches(ev):
    ev.run(program(
        if_else(cmp(1, '<', 2), assign("a", 1), assign("a", 2)),
        if_else(cmp(1, '>', 2), assign("b", 1), assign("b", 2)),
        if_else(FALSE, assign("c", 1)),
    ))
    assert ev.stack.get_variable("a") == 1
    assert ev.stack.get_variable("b") == 2
    assert not ev.stack.has_variable("c")


def test_else_if_by_nesting(ev):
    ev.stack.define_variable("n", 5)
    ev.run(program(
        if_else(cmp(var("n"), '<', 0), assign("sign", string("neg")),
                if_else(cmp(var("n"), '==', 0), assign("sign", string("zero")),
                        assign("sign", string("pos")))),
    ))
    assert ev.stack.get_variable("sign") == "pos"


def test_while_loop_counts(ev):
    ev.run(program(
        assign("i", 0),
        assign("total", 0),
        while_loop(cmp(var("i"), '<', 5),
                   assign("total", expr(var("total"), '+', var("i"))),
                   assign("i", expr(var("i"), '+', 1))),
    ))
    assert ev.stack.get_variable("i") == 5
    assert ev.stack.get_variable("total") == 10


def test_while_false_never_runs_body(ev):
    ev.run(program(while_loop(FALSE, assign("x", 1))))
    with pytest.raises(UndefinedVariable):
        ev.evaluate_expression(expr(var("x")))


def test_block_runs_statements_in_order(ev):
    ev.run(program(block(assign("x", 1), assign("x", term(var("x"), "*", 10)))))
    assert ev.stack.get_variable("x") == 10


def test_execute_rejects_non_statements(ev):
    with pytest.raises(InvalidNode):
        ev.execute([expr(1)])


# --- Functions ---

def test_duplicate_declaration(ev):
    ev.run(program(fun("f", [])))
    with pytest.raises(DuplicateFunction):
        ev.run(program(fun("f", [])))


def test_builtin_names_cannot_be_redeclared(ev):
    with pytest.raises(DuplicateFunction):
        ev.run(program(fun("println", ["x"])))


def test_undefined_function(ev):
    with pytest.raises(UndefinedFunction):
        ev.run(program(call("missing", 1)))


def test_return_skips_rest_of_body(ev):
    ev.run(program(fun("f", [], ret(1), assign("x", 2), call("println", var("x")))))
    assert ev.invoke("f", []) == 1
    assert not ev.stack.has_variable("x")
    assert ev.out.getvalue() == ""
    assert ev.is_returning is False


def test_parameters_bind_positionally(ev):
    ev.run(program(fun("sub", ["a", "b"], ret(expr(var("a"), '-', var("b"))))))
    assert ev.invoke("sub", [10, 3]) == 7


def test_parameters_are_local_to_the_call(ev):
    ev.run(program(
        assign("a", 100),
        fun("shadow", ["a"], assign("b", var("a")), ret(var("b"))),
    ))
    assert ev.invoke("shadow", [1]) == 1
    assert ev.stack.get_variable("a") == 100
    assert not ev.stack.has_variable("b")


def test_function_body_reads_globals(ev):
    ev.run(program(assign("g", 7), fun("getg", [], ret(var("g")))))
    assert ev.invoke("getg", []) == 7


def test_bare_return_yields_none(ev):
    ev.run(program(fun("f", [], ret(), assign("x", 1))))
    assert ev.invoke("f", []) is None


def test_function_without_return_yields_none(ev):
    ev.run(program(fun("f", [], assign("x", 1))))
    assert ev.invoke("f", []) is None


def test_return_unwinds_nested_blocks_and_loops(ev):
    body = [
        assign("i", 0),
        while_loop(TRUE,
                   assign("i", expr(var("i"), '+', 1)),
                   if_else(cmp(var("i"), '==', 3), block(ret(var("i")), call("println", string("after")))),
                   call("println", var("i"))),
        call("println", string("never")),
    ]
    ev.run(program(fun("first3", [], *body)))
    assert ev.invoke("first3", []) == 3
    assert ev.out.getvalue() == "1\n2\n"


def test_return_outside_function(ev):
    with pytest.raises(ReturnOutsideFunction):
        ev.run(program(ret(1)))


def test_call_statement_runs_user_function_side_effects(ev):
    ev.run(program(
        fun("say", ["msg"], call("println", var("msg"))),
        call("say", string("hi")),
    ))
    assert ev.out.getvalue() == "hi\n"


def test_recursive_calls_keep_their_own_return_state(ev):
    ev.run(program(
        fun("countdown", ["n"],
            if_else(cmp(var("n"), '==', 0), ret(0)),
            call("println", var("n")),
            call("countdown", expr(var("n"), '-', 1)),
            call("println", var("n")),
            ret(var("n"))),
    ))
    assert ev.invoke("countdown", [3]) == 3
    assert ev.out.getvalue() == "3\n2\n1\n1\n2\n3\n"
    assert len(ev.call_stack) == 1
    assert ev.stack.depth == 0


def test_nested_call_return_does_not_leak_into_caller(ev):
    ev.run(program(
        fun("inner", [], ret(1)),
        fun("outer", [], call("inner"), assign("ran", True), ret(2)),
    ))
    assert ev.invoke("outer", []) == 2


def test_nested_declaration_inside_a_running_function(ev):
    ev.run(program(fun("outer", [], fun("inner", []))))
    with pytest.raises(NestedFunctionDeclaration):
        ev.invoke("outer", [])


def test_declaration_flag_suppresses_side_effects(ev):
    decl = fun("f", ["x"], assign("y", 1))
    ev.enter_function_decl(decl)
    # A driver visiting the body during declaration must not run it.
    ev.exit_assignment(assign("y", 1))
    ev.exit_function_call(call("println", 1))
    ev.exit_return(ret(1))
    with pytest.raises(NestedFunctionDeclaration):
        ev.enter_function_decl(fun("g", []))
    ev.exit_function_decl(decl)
    assert not ev.stack.has_variable("y")
    assert ev.out.getvalue() == ""
    assert "f" in ev.functions


def test_variadic_user_function_receives_whole_argument_list(ev):
    fn = UserFunction("collect", ["items"], [ret(var("items"))], variadic=True)
    ev.functions.declare(fn)
    assert ev.invoke("collect", [1, "a", True]) == [1, "a", True]


def test_variadic_declaration_binds_argument_list(ev):
    ev.execute([fun("collect", ["items"], ret(var("items")), variadic=True)])
    assert ev.functions.get("collect").variadic is True
    assert ev.invoke("collect", [1, 2]) == [1, 2]


def test_native_function_result_is_returned_by_invoke(ev):
    ev.functions.declare(NativeFunction("twice", lambda args: args[0] * 2, ["x"]))
    assert ev.invoke("twice", [21]) == 42


def test_failed_call_leaves_frames_for_stack_trace(ev):
    ev.run(program(fun("boom", ["x"], assign("y", expr(term(var("x"), '/', 0))))))
    with pytest.raises(DivisionByZero):
        ev.invoke("boom", [5])
    assert [f.name for f in ev.call_stack] == ["<main>", "boom"]
    ev.reset()
    assert len(ev.call_stack) == 1
    assert ev.stack.depth == 0


# --- Registry ---

def test_function_registry_basics():
    reg = FunctionRegistry()
    fn = NativeFunction("noop", lambda args: None)
    reg.declare(fn)
    assert "noop" in reg
    assert reg.get("noop") is fn
    assert reg.names() == ["noop"]
    assert len(reg) == 1
    with pytest.raises(DuplicateFunction):
        reg.declare(NativeFunction("noop", lambda args: None))
    with pytest.raises(UndefinedFunction):
        reg.get("other")


def test_builtins_are_registered_at_startup(ev):
    for name in ("println", "exit", "printStackTrace", "printVariableTrace"):
        assert name in ev.functions
    assert ev.functions.get("println").variadic is True


def test_evaluator_without_builtins():
    ev = Evaluator(load_builtins=False)
    assert len(ev.functions) == 0
