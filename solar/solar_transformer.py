"""
Transforms the raw parser AST into a semantic AST using solar_datatypes.

The raw tree is what the external front end hands over: nested dicts with a
'tag', an optional 'text', a list of 'children', and 'line'/'col' location
info. Operators appear as `{'tag': 'operator', 'text': '+'}` children between
their operands.
"""

from solar.solar_datatypes import (
    Expression, Term, Factor, BooleanExpression,
    Assignment, FunctionCall, FunctionDecl, Return, IfElse, WhileLoop, Block, Program,
    InvalidNode,
)

_LEAF_FACTORS = ('int', 'identifier', 'string', 'boolean')


class SolarTransformer:
    def _attach_loc(self, obj, node):
        line = node.get('line'); col = node.get('col')
        if line is not None and hasattr(obj, '__dict__'):
            obj.loc = {'line': line, 'col': col, 'tag': node.get('tag'), 'text': node.get('text')}
        return obj

    def transform(self, node: object) -> object:
        # Lists: transform each item
        if isinstance(node, list):
            return [self.transform(n) for n in node]

        if not isinstance(node, dict) or 'tag' not in node:
            raise InvalidNode(f"Expected a tagged node, got {node!r}")

        tag = node['tag']
        children = self._children(node)

        match tag:
            # Structural containers
            case 'program':
                return self._attach_loc(Program(self._statements(children)), node)
            case 'statement':
                # Grammar-level wrapper around exactly one statement
                if len(children) != 1:
                    raise InvalidNode(f"statement must wrap exactly one node, got {len(children)}")
                return self.transform(children[0])
            case 'block':
                return self._attach_loc(Block(self._statements(children)), node)

            # Statements
            case 'assignment':
                name, rest = self._split_name(children, tag)
                if len(rest) != 1:
                    raise InvalidNode("assignment needs exactly one expression")
                return self._attach_loc(Assignment(name, self._expression(rest[0])), node)
            case 'function-call':
                name, rest = self._split_name(children, tag)
                args = []
                for ch in rest:
                    if self._tag(ch) != 'argument-list':
                        raise InvalidNode(f"Unexpected {ch!r} in function-call")
                    args.extend(self._expression(a) for a in self._children(ch))
                return self._attach_loc(FunctionCall(name, args), node)
            case 'function-decl':
                name, rest = self._split_name(children, tag)
                params, variadic = [], False
                if rest and self._tag(rest[0]) == 'parameter-list':
                    params = [self._identifier(p) for p in self._children(rest[0])]
                    variadic = bool(rest[0].get('variadic'))
                    rest = rest[1:]
                decl = FunctionDecl(name, params, self._statements(rest), variadic)
                return self._attach_loc(decl, node)
            case 'return':
                if len(children) > 1:
                    raise InvalidNode("return takes at most one expression")
                expr = self._expression(children[0]) if children else None
                return self._attach_loc(Return(expr), node)
            case 'if-else':
                if len(children) not in (2, 3):
                    raise InvalidNode("if-else needs a condition and one or two statements")
                cond = self._boolean_expression(children[0])
                then_branch = self.transform(children[1])
                else_branch = self.transform(children[2]) if len(children) == 3 else None
                return self._attach_loc(IfElse(cond, then_branch, else_branch), node)
            case 'while-loop':
                if not children:
                    raise InvalidNode("while-loop needs a condition")
                cond = self._boolean_expression(children[0])
                return self._attach_loc(WhileLoop(cond, self._statements(children[1:])), node)

            # Expressions
            case 'expression':
                return self._expression(node)
            case 'boolean-expression':
                return self._boolean_expression(node)
            case 'term':
                return self._term(node)
            case 'factor' | 'int' | 'identifier' | 'string' | 'boolean':
                return self._factor(node)

            case _:
                raise NotImplementedError(f"No transformer for tag '{tag}'")

    # --- Helpers ---

    def _statements(self, nodes):
        return [self.transform(n) for n in nodes]

    def _tag(self, node):
        if not isinstance(node, dict):
            raise InvalidNode(f"Expected a tagged node, got {node!r}")
        return node.get('tag')

    def _children(self, node):
        children = node.get('children') or []
        if not isinstance(children, list):
            raise InvalidNode(f"children of '{node.get('tag')}' must be a list")
        return children

    def _identifier(self, node) -> str:
        if not isinstance(node, dict) or node.get('tag') != 'identifier' or not node.get('text'):
            raise InvalidNode(f"Expected an identifier, got {node!r}")
        return node['text']

    def _split_name(self, children, tag):
        if not children:
            raise InvalidNode(f"{tag} is missing its identifier")
        return self._identifier(children[0]), list(children[1:])

    def _operands_and_operators(self, children, owner):
        """Splits alternating `operand, operator, operand, ...` children."""
        operands, operators = [], []
        for i, ch in enumerate(children):
            if i % 2 == 1:
                if not isinstance(ch, dict) or ch.get('tag') != 'operator':
                    raise InvalidNode(f"Expected an operator in {owner}, got {ch!r}")
                operators.append(ch.get('text'))
            else:
                operands.append(ch)
        if not operands or len(operands) != len(operators) + 1:
            raise InvalidNode(f"Malformed {owner}")
        return operands, operators

    def _expression(self, node) -> Expression:
        tag = self._tag(node)
        if tag != 'expression':
            raise InvalidNode(f"Expected an expression, got '{tag}'")
        operands, operators = self._operands_and_operators(self._children(node), 'expression')
        expr = Expression([self._term(t) for t in operands], operators, node.get('text'))
        return self._attach_loc(expr, node)

    def _term(self, node) -> Term:
        if self._tag(node) != 'term':
            # A bare factor standing in for a one-factor term
            return Term([self._factor(node)])
        operands, operators = self._operands_and_operators(self._children(node), 'term')
        return self._attach_loc(Term([self._factor(f) for f in operands], operators), node)

    def _factor(self, node) -> Factor:
        tag = self._tag(node)
        if tag == 'factor':
            children = self._children(node)
            if len(children) != 1:
                raise InvalidNode("factor must wrap exactly one node")
            return self._attach_loc(self._factor(children[0]), node)
        match tag:
            case 'int':
                text = node.get('text')
                if not isinstance(text, (str, int)) or isinstance(text, bool):
                    raise InvalidNode(f"int node needs numeric text, got {text!r}")
                try:
                    value = int(text)
                except ValueError:
                    raise InvalidNode(f"int node needs numeric text, got {text!r}") from None
                return self._attach_loc(Factor('int', value), node)
            case 'identifier':
                return self._attach_loc(Factor('identifier', self._identifier(node)), node)
            case 'string':
                if not isinstance(node.get('text'), str):
                    raise InvalidNode("string node needs its quoted text")
                return self._attach_loc(Factor('string', node['text']), node)
            case 'boolean':
                value = node.get('value')
                if not isinstance(value, bool):
                    value = node.get('text') == 'true'
                return self._attach_loc(Factor('boolean', value), node)
            case 'expression':
                return self._attach_loc(Factor('expression', self._expression(node)), node)
        raise InvalidNode("Invalid factor")

    def _boolean_expression(self, node) -> BooleanExpression:
        tag = self._tag(node)
        if tag == 'boolean':
            value = node.get('value')
            if not isinstance(value, bool):
                value = node.get('text') == 'true'
            return self._attach_loc(BooleanExpression.of(value), node)
        if tag != 'boolean-expression':
            raise InvalidNode(f"Expected a boolean-expression, got '{tag}'")
        children = self._children(node)
        text = node.get('text')
        if len(children) == 3:
            left, op, right = children
            if self._tag(op) != 'operator':
                raise InvalidNode("Expected a comparison operator")
            b = BooleanExpression.compare(self._expression(left), op.get('text'), self._expression(right))
            b.text = text
        elif len(children) == 1:
            inner = self._boolean_expression(children[0])
            b = BooleanExpression(nested=inner, text=text)
        elif not children and text in ('true', 'false'):
            b = BooleanExpression.of(text == 'true')
        else:
            raise InvalidNode("Invalid boolean expression")
        return self._attach_loc(b, node)
