# src/envcast/expression.py
"""Compiled expressions for rule-style configuration values.

A field annotated with ``Program`` holds an expression such as
``user.age >= 18 and user.verified`` that is compiled when the configuration
is loaded and evaluated later against a mapping of variables. Compilation
uses Python's ast module and a whitelist; this is NOT eval().

The program goes through two phases:
1. Compile-time validation: syntax errors and forbidden constructs are
   rejected when the configuration loads, so a broken rule fails start-up
2. Evaluation: the validated AST is walked against caller-supplied variables

Allowed operations:
- Variables: any bare name, resolved from the evaluation environment
- Member access: ``user.role`` (mapping key or public attribute), ``items[0]``
- Comparisons: ==, !=, <, >, <=, >=, in, not in, is/is not (None only)
- Boolean operators: and, or, not
- Arithmetic: +, -, *, /, //, %
- Literals: strings, numbers, booleans, None, list/tuple/set/dict displays
- Ternary expressions: x if condition else y
- Calls to a fixed set of builtins: len, abs, min, max, any, all, str, int, float
"""

from __future__ import annotations

import ast
import operator
from collections.abc import Mapping
from typing import Any, Final


class ExpressionSecurityError(Exception):
    """Raised when an expression contains forbidden constructs."""


class ExpressionSyntaxError(Exception):
    """Raised when an expression is not valid syntax."""


class ExpressionEvaluationError(Exception):
    """Raised when a valid expression fails while running.

    Wraps operational errors (missing variables, ZeroDivisionError,
    TypeError) raised against a particular environment. The original
    exception is chained via __cause__.
    """


# Allowed comparison operators
_COMPARISON_OPS: dict[type[ast.cmpop], Any] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}

# Allowed binary operators
_BINARY_OPS: dict[type[ast.operator], Any] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
}

# Allowed unary operators
_UNARY_OPS: dict[type[ast.unaryop], Any] = {
    ast.Not: operator.not_,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

# Functions callable by name
_FUNCTIONS: Final[dict[str, Any]] = {
    "len": len,
    "abs": abs,
    "min": min,
    "max": max,
    "any": any,
    "all": all,
    "str": str,
    "int": int,
    "float": float,
}


class _ExpressionValidator(ast.NodeVisitor):
    """AST visitor that rejects constructs outside the whitelist.

    Problems are collected in ``errors`` rather than raised so that one
    compile reports every forbidden construct at once.
    """

    def __init__(self) -> None:
        self.errors: list[str] = []

    def _is_none_constant(self, node: ast.expr) -> bool:
        if isinstance(node, ast.Constant) and node.value is None:
            return True
        return isinstance(node, ast.Name) and node.id == "None"

    def visit_Name(self, node: ast.Name) -> None:
        if node.id.startswith("_"):
            self.errors.append(f"Forbidden name: {node.id!r}")

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if node.attr.startswith("_"):
            self.errors.append(f"Forbidden attribute access: {node.attr!r}")
        self.generic_visit(node)

    def visit_Subscript(self, node: ast.Subscript) -> None:
        if isinstance(node.slice, ast.Slice):
            self.errors.append("Slice syntax (e.g., [1:3]) is forbidden")
        self.generic_visit(node)

    def visit_Slice(self, node: ast.Slice) -> None:
        self.errors.append("Slice syntax (e.g., [1:3]) is forbidden")

    def visit_Call(self, node: ast.Call) -> None:
        """Allow only calls to whitelisted functions, positional arguments only."""
        if not isinstance(node.func, ast.Name) or node.func.id not in _FUNCTIONS:
            self.errors.append(f"Forbidden function call: {ast.unparse(node.func)}")
        if node.keywords:
            self.errors.append("Keyword arguments are forbidden")
        for arg in node.args:
            self.visit(arg)

    def visit_Compare(self, node: ast.Compare) -> None:
        all_operands = [node.left, *node.comparators]

        for i, op in enumerate(node.ops):
            if type(op) not in _COMPARISON_OPS:
                self.errors.append(f"Forbidden comparison operator: {type(op).__name__}")
            # Restrict is/is not to None checks only
            elif isinstance(op, ast.Is | ast.IsNot):
                if not (self._is_none_constant(all_operands[i]) or self._is_none_constant(all_operands[i + 1])):
                    self.errors.append("'is' and 'is not' operators are only allowed for None checks")
        self.generic_visit(node)

    def visit_BinOp(self, node: ast.BinOp) -> None:
        if type(node.op) not in _BINARY_OPS:
            self.errors.append(f"Forbidden binary operator: {type(node.op).__name__}")
        self.generic_visit(node)

    def visit_UnaryOp(self, node: ast.UnaryOp) -> None:
        if type(node.op) not in _UNARY_OPS:
            self.errors.append(f"Forbidden unary operator: {type(node.op).__name__}")
        self.generic_visit(node)

    def visit_Constant(self, node: ast.Constant) -> None:
        if node.value is None or isinstance(node.value, str | int | float | bool):
            return
        self.errors.append(f"Forbidden constant type: {type(node.value).__name__}")

    def visit_Dict(self, node: ast.Dict) -> None:
        # None keys indicate **spread syntax
        for key in node.keys:
            if key is None:
                self.errors.append("Dict spread (**) is forbidden")
        self.generic_visit(node)

    # Explicitly forbidden constructs

    def visit_Lambda(self, node: ast.Lambda) -> None:
        self.errors.append("Lambda expressions are forbidden")

    def visit_ListComp(self, node: ast.ListComp) -> None:
        self.errors.append("List comprehensions are forbidden")

    def visit_DictComp(self, node: ast.DictComp) -> None:
        self.errors.append("Dict comprehensions are forbidden")

    def visit_SetComp(self, node: ast.SetComp) -> None:
        self.errors.append("Set comprehensions are forbidden")

    def visit_GeneratorExp(self, node: ast.GeneratorExp) -> None:
        self.errors.append("Generator expressions are forbidden")

    def visit_Await(self, node: ast.Await) -> None:
        self.errors.append("Await expressions are forbidden")

    def visit_Yield(self, node: ast.Yield) -> None:
        self.errors.append("Yield expressions are forbidden")

    def visit_YieldFrom(self, node: ast.YieldFrom) -> None:
        self.errors.append("Yield from expressions are forbidden")

    def visit_NamedExpr(self, node: ast.NamedExpr) -> None:
        self.errors.append("Assignment expressions (:=) are forbidden")

    def visit_JoinedStr(self, node: ast.JoinedStr) -> None:
        self.errors.append("F-strings are forbidden")

    def visit_Starred(self, node: ast.Starred) -> None:
        self.errors.append("Starred expressions (*) are forbidden")


class _ExpressionEvaluator(ast.NodeVisitor):
    """AST visitor that evaluates a validated expression."""

    def __init__(self, env: Mapping[str, Any]) -> None:
        self._env = env

    def visit_Expression(self, node: ast.Expression) -> Any:
        return self.visit(node.body)

    def visit_Name(self, node: ast.Name) -> Any:
        if node.id in self._env:
            return self._env[node.id]
        msg = f"unknown name {node.id!r}"
        raise ExpressionEvaluationError(msg)

    def visit_Constant(self, node: ast.Constant) -> Any:
        return node.value

    def visit_Attribute(self, node: ast.Attribute) -> Any:
        value = self.visit(node.value)
        if isinstance(value, Mapping):
            try:
                return value[node.attr]
            except KeyError as e:
                msg = f"Field '{node.attr}' not found. Available fields: {list(value.keys())}"
                raise ExpressionEvaluationError(msg) from e
        try:
            return getattr(value, node.attr)
        except AttributeError as e:
            msg = f"'{type(value).__name__}' has no member '{node.attr}'"
            raise ExpressionEvaluationError(msg) from e

    def visit_Subscript(self, node: ast.Subscript) -> Any:
        value = self.visit(node.value)
        key = self.visit(node.slice)
        try:
            return value[key]
        except KeyError as e:
            msg = f"Key '{key}' not found in {type(value).__name__}"
            raise ExpressionEvaluationError(msg) from e
        except IndexError as e:
            msg = f"Index {key} out of range for {type(value).__name__} of length {len(value)}"
            raise ExpressionEvaluationError(msg) from e
        except TypeError as e:
            msg = f"Cannot access '{key}' on {type(value).__name__}: {e}"
            raise ExpressionEvaluationError(msg) from e

    def visit_Call(self, node: ast.Call) -> Any:
        assert isinstance(node.func, ast.Name)  # guaranteed by validation
        func = _FUNCTIONS[node.func.id]
        args = [self.visit(arg) for arg in node.args]
        try:
            return func(*args)
        except (TypeError, ValueError) as e:
            msg = f"{node.func.id}() failed: {e}"
            raise ExpressionEvaluationError(msg) from e

    def visit_Compare(self, node: ast.Compare) -> Any:
        left = self.visit(node.left)
        for op, comparator in zip(node.ops, node.comparators, strict=True):
            right = self.visit(comparator)
            op_func = _COMPARISON_OPS[type(op)]
            try:
                if not op_func(left, right):
                    return False
            except TypeError as e:
                op_name = type(op).__name__
                msg = f"type error in comparison ({op_name}): cannot compare {type(left).__name__} and {type(right).__name__}"
                raise ExpressionEvaluationError(msg) from e
            left = right
        return True

    def visit_BoolOp(self, node: ast.BoolOp) -> Any:
        if isinstance(node.op, ast.And):
            for value in node.values:
                result = self.visit(value)
                if not result:
                    return result
            return result
        for value in node.values:
            result = self.visit(value)
            if result:
                return result
        return result

    def visit_BinOp(self, node: ast.BinOp) -> Any:
        left = self.visit(node.left)
        right = self.visit(node.right)
        op_func = _BINARY_OPS[type(node.op)]
        try:
            return op_func(left, right)
        except ZeroDivisionError as e:
            msg = f"division by zero in {type(node.op).__name__} operation"
            raise ExpressionEvaluationError(msg) from e
        except TypeError as e:
            op_name = type(node.op).__name__
            msg = f"type error in {op_name}: cannot apply to {type(left).__name__} and {type(right).__name__}"
            raise ExpressionEvaluationError(msg) from e

    def visit_UnaryOp(self, node: ast.UnaryOp) -> Any:
        operand = self.visit(node.operand)
        op_func = _UNARY_OPS[type(node.op)]
        try:
            return op_func(operand)
        except TypeError as e:
            msg = f"type error in unary {type(node.op).__name__}: cannot apply to {type(operand).__name__}"
            raise ExpressionEvaluationError(msg) from e

    def visit_List(self, node: ast.List) -> Any:
        return [self.visit(elt) for elt in node.elts]

    def visit_Tuple(self, node: ast.Tuple) -> Any:
        return tuple(self.visit(elt) for elt in node.elts)

    def visit_Set(self, node: ast.Set) -> Any:
        try:
            return {self.visit(elt) for elt in node.elts}
        except TypeError as e:
            msg = f"cannot create set literal: {e}"
            raise ExpressionEvaluationError(msg) from e

    def visit_Dict(self, node: ast.Dict) -> Any:
        try:
            return {self.visit(k): self.visit(v) for k, v in zip(node.keys, node.values, strict=True) if k is not None}
        except TypeError as e:
            msg = f"cannot create dict literal: {e}"
            raise ExpressionEvaluationError(msg) from e

    def visit_IfExp(self, node: ast.IfExp) -> Any:
        if self.visit(node.test):
            return self.visit(node.body)
        return self.visit(node.orelse)


class Program:
    """A validated, ready-to-run expression.

    Example:
        program = compile_expression("user.age >= 18 and user.verified")
        program.run({"user": {"age": 21, "verified": True}})  # True
    """

    def __init__(self, source: str) -> None:
        """Parse and validate ``source``.

        Raises:
            ExpressionSyntaxError: If the source is not a valid expression
            ExpressionSecurityError: If the source uses forbidden constructs
        """
        self._source = source

        try:
            self._ast = ast.parse(source.strip(), mode="eval")
        except SyntaxError as e:
            msg = f"Invalid syntax: {e.msg}"
            raise ExpressionSyntaxError(msg) from e

        validator = _ExpressionValidator()
        validator.visit(self._ast)
        if validator.errors:
            raise ExpressionSecurityError("; ".join(validator.errors))

    @property
    def source(self) -> str:
        return self._source

    def run(self, env: Mapping[str, Any] | None = None) -> Any:
        """Evaluate the program with ``env`` supplying variable values."""
        return _ExpressionEvaluator(env or {}).visit(self._ast)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Program):
            return NotImplemented
        return self._source == other._source

    def __hash__(self) -> int:
        return hash(self._source)

    def __str__(self) -> str:
        return self._source

    def __repr__(self) -> str:
        return f"Program({self._source!r})"


def compile_expression(source: str) -> Program:
    """Compile ``source`` into a Program, raising on invalid or unsafe input."""
    return Program(source)
