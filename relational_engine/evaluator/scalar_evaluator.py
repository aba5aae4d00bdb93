# relational_engine/evaluator/scalar_evaluator.py
"""
Row-at-a-time scalar expression evaluation.

The evaluator walks an expression tree against one row and its schema and
returns a Value. Column references resolve against the row first and then
through the binding environment of enclosing queries. Boolean-producing
nodes return True, False or None (unknown) and never fold unknown into
False; that decision belongs to the operator consuming the predicate.

Subquery expressions are delegated to a subquery runner supplied by the
executor, which owns the prepared inner operator trees.
"""

import math
import re
from decimal import Decimal
from typing import Any, Callable, Dict, Optional, Tuple

from relational_engine.ast.expression_ast import (
    AggregateCall, Between, BinaryOp, Case, ColumnRef, Comparison, Expression,
    FunctionCall, InList, IsNull, Like, Literal, LogicalOp, Not, Star,
    SubqueryExpr, UnaryOp, WindowCall
)
from relational_engine.config.engine_config import EngineConfig
from relational_engine.errors import (
    DivisionByZeroError, InvalidPlanError, TypeMismatchError, UnknownColumnError
)
from relational_engine.evaluator.environment import BindingEnvironment
from relational_engine.semantic.three_valued import and3, check_truth, not3, or3
from relational_engine.semantic.type_system import (
    SqlType, coerce_numeric_pair, compare_values, type_of
)
from relational_engine.storage.schema import Schema
from relational_engine.storage.table import Row
from relational_engine.utils.logging_config import get_logger

logger = get_logger(__name__)

_COMPARISONS: Dict[str, Callable[[int], bool]] = {
    "=": lambda c: c == 0,
    "<>": lambda c: c != 0,
    "<": lambda c: c < 0,
    "<=": lambda c: c <= 0,
    ">": lambda c: c > 0,
    ">=": lambda c: c >= 0,
}


def _require_numeric(value: Any, op: str) -> None:
    if not type_of(value).is_numeric:
        raise TypeMismatchError(
            f"Operator '{op}' requires numeric operands, got {type_of(value).value} {value!r}")


def _require_text(value: Any, what: str) -> None:
    if type_of(value) is not SqlType.TEXT:
        raise TypeMismatchError(f"{what} requires TEXT, got {type_of(value).value} {value!r}")


def _sql_round(value, digits=0):
    if isinstance(value, Decimal):
        return round(value, digits)
    if isinstance(value, int) and digits >= 0:
        return value
    result = round(value, digits)
    return int(result) if isinstance(value, int) else result


SCALAR_FUNCTIONS: Dict[str, Tuple[int, int]] = {
    # name: (min args, max args); None max means variadic
    "ABS": (1, 1),
    "ROUND": (1, 2),
    "UPPER": (1, 1),
    "LOWER": (1, 1),
    "LENGTH": (1, 1),
    "COALESCE": (1, None),
    "NULLIF": (2, 2),
}


class ExpressionEvaluator:
    """
    Evaluates expressions against a row, its schema and an optional
    binding environment.

    Dispatch is by node class to a visit_<ClassName> method.
    """

    def __init__(self, config: Optional[EngineConfig] = None, subquery_runner=None):
        self.config = config or EngineConfig()
        self.subquery_runner = subquery_runner
        self._dispatch: Dict[type, Callable] = {}
        self._like_cache: Dict[Tuple[str, Optional[str], bool], re.Pattern] = {}

    def evaluate(self, expr: Expression, row: Row, schema: Schema,
                 env: Optional[BindingEnvironment] = None) -> Any:
        """
        Evaluate expr for one row.

        Args:
            expr: Expression tree
            row: Current row, aligned with schema
            schema: Schema of the row
            env: Outer-row bindings for correlated references

        Returns:
            The resulting value; None for NULL / unknown
        """
        handler = self._dispatch.get(type(expr))
        if handler is None:
            handler = getattr(self, f"visit_{type(expr).__name__}", None)
            if handler is None:
                raise InvalidPlanError(f"Cannot evaluate expression node {type(expr).__name__}")
            self._dispatch[type(expr)] = handler
        return handler(expr, row, schema, env)

    def evaluate_predicate(self, expr: Expression, row: Row, schema: Schema,
                           env: Optional[BindingEnvironment] = None):
        """Evaluate a predicate and check that it produced a truth value."""
        return check_truth(self.evaluate(expr, row, schema, env), f"predicate {expr}")

    # ------------------------------------------------------------------
    # Leaves
    # ------------------------------------------------------------------

    def visit_Literal(self, expr: Literal, row, schema, env):
        return expr.value

    def visit_ColumnRef(self, expr: ColumnRef, row, schema, env):
        position = schema.resolve(expr.name, expr.table)
        if position is not None:
            return row[position]
        if env is not None:
            return env.lookup(expr.name, expr.table)
        raise UnknownColumnError(f"Column '{expr}' does not exist")

    def visit_Star(self, expr: Star, row, schema, env):
        raise InvalidPlanError(f"'{expr}' is only valid as a projection item")

    def visit_AggregateCall(self, expr: AggregateCall, row, schema, env):
        raise InvalidPlanError(
            f"Aggregate {expr} used outside of a grouping context",
            suggestion="Compute aggregates in a GroupAggregate node and reference them by name")

    def visit_WindowCall(self, expr: WindowCall, row, schema, env):
        raise InvalidPlanError(
            f"Window function {expr} used outside of a Window node",
            suggestion="Compute window functions in a Window node and reference them by name")

    def visit_SubqueryExpr(self, expr: SubqueryExpr, row, schema, env):
        if self.subquery_runner is None:
            raise InvalidPlanError("Subquery expressions need an executor-provided subquery runner")
        return self.subquery_runner.evaluate(expr, row, schema, env)

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def visit_UnaryOp(self, expr: UnaryOp, row, schema, env):
        value = self.evaluate(expr.operand, row, schema, env)
        if value is None:
            return None
        _require_numeric(value, expr.op)
        if expr.op == "-":
            return -value
        if expr.op == "+":
            return value
        raise InvalidPlanError(f"Unknown unary operator '{expr.op}'")

    def visit_BinaryOp(self, expr: BinaryOp, row, schema, env):
        left = self.evaluate(expr.left, row, schema, env)
        right = self.evaluate(expr.right, row, schema, env)
        return self.arithmetic(expr.op, left, right)

    def arithmetic(self, op: str, left: Any, right: Any) -> Any:
        """Apply an arithmetic or concatenation operator under the coercion table."""
        if left is None or right is None:
            return None

        if op == "||":
            _require_text(left, "Concatenation")
            _require_text(right, "Concatenation")
            return left + right

        _require_numeric(left, op)
        _require_numeric(right, op)
        left, right = coerce_numeric_pair(left, right)

        if op == "+":
            return left + right
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if op in ("/", "%"):
            if right == 0:
                if self.config.null_on_division_by_zero:
                    logger.debug(f"Division by zero in {left!r} {op} {right!r} yields NULL")
                    return None
                raise DivisionByZeroError(f"Division by zero in {left!r} {op} {right!r}")
            if op == "/":
                # true division: INTEGER / INTEGER is DECIMAL
                return left / right
            # Remainder takes the sign of the dividend
            if isinstance(left, float) or isinstance(right, float):
                return math.fmod(left, right)
            if isinstance(left, Decimal) or isinstance(right, Decimal):
                return Decimal(left) % Decimal(right)
            remainder = abs(left) % abs(right)
            return remainder if left >= 0 else -remainder
        raise InvalidPlanError(f"Unknown arithmetic operator '{op}'")

    # ------------------------------------------------------------------
    # Comparison and logic
    # ------------------------------------------------------------------

    def compare(self, op: str, left: Any, right: Any) -> Optional[bool]:
        if left is None or right is None:
            return None
        try:
            test = _COMPARISONS[op]
        except KeyError:
            raise InvalidPlanError(f"Unknown comparison operator '{op}'") from None
        return test(compare_values(left, right))

    def visit_Comparison(self, expr: Comparison, row, schema, env):
        left = self.evaluate(expr.left, row, schema, env)
        right = self.evaluate(expr.right, row, schema, env)
        return self.compare(expr.op, left, right)

    def visit_LogicalOp(self, expr: LogicalOp, row, schema, env):
        if expr.op == "AND":
            result = True
            for operand in expr.operands:
                value = check_truth(self.evaluate(operand, row, schema, env), "AND operand")
                result = and3(result, value)
                if result is False:
                    return False
            return result
        if expr.op == "OR":
            result = False
            for operand in expr.operands:
                value = check_truth(self.evaluate(operand, row, schema, env), "OR operand")
                result = or3(result, value)
                if result is True:
                    return True
            return result
        raise InvalidPlanError(f"Unknown logical operator '{expr.op}'")

    def visit_Not(self, expr: Not, row, schema, env):
        return not3(check_truth(self.evaluate(expr.operand, row, schema, env), "NOT operand"))

    def visit_IsNull(self, expr: IsNull, row, schema, env):
        is_null = self.evaluate(expr.operand, row, schema, env) is None
        return not is_null if expr.negated else is_null

    def visit_Like(self, expr: Like, row, schema, env):
        value = self.evaluate(expr.operand, row, schema, env)
        pattern = self.evaluate(expr.pattern, row, schema, env)
        if value is None or pattern is None:
            return None
        _require_text(value, "LIKE operand")
        _require_text(pattern, "LIKE pattern")
        matched = self._like_regex(pattern, expr.escape).fullmatch(value) is not None
        return not matched if expr.negated else matched

    def _like_regex(self, pattern: str, escape: Optional[str]) -> re.Pattern:
        case_sensitive = self.config.like_case_sensitive
        key = (pattern, escape, case_sensitive)
        compiled = self._like_cache.get(key)
        if compiled is not None:
            return compiled

        parts = []
        chars = iter(pattern)
        for ch in chars:
            if escape is not None and ch == escape:
                escaped = next(chars, None)
                if escaped is None:
                    raise InvalidPlanError(f"LIKE pattern {pattern!r} ends with escape character")
                parts.append(re.escape(escaped))
            elif ch == "%":
                parts.append(".*")
            elif ch == "_":
                parts.append(".")
            else:
                parts.append(re.escape(ch))
        flags = re.DOTALL if case_sensitive else re.DOTALL | re.IGNORECASE
        compiled = re.compile("".join(parts), flags)
        self._like_cache[key] = compiled
        return compiled

    def visit_InList(self, expr: InList, row, schema, env):
        value = self.evaluate(expr.operand, row, schema, env)
        items = [self.evaluate(item, row, schema, env) for item in expr.items]
        result = self.membership(value, items)
        return not3(result) if expr.negated else result

    @staticmethod
    def membership(value: Any, candidates) -> Optional[bool]:
        """
        SQL IN: True on a match, unknown when no match but a NULL is involved,
        otherwise False. An empty candidate list is always False.
        """
        candidates = list(candidates)
        if not candidates:
            return False
        if value is None:
            return None
        saw_null = False
        for candidate in candidates:
            if candidate is None:
                saw_null = True
            elif compare_values(value, candidate) == 0:
                return True
        return None if saw_null else False

    def visit_Between(self, expr: Between, row, schema, env):
        value = self.evaluate(expr.operand, row, schema, env)
        low = self.evaluate(expr.low, row, schema, env)
        high = self.evaluate(expr.high, row, schema, env)
        result = and3(self.compare(">=", value, low), self.compare("<=", value, high))
        return not3(result) if expr.negated else result

    def visit_Case(self, expr: Case, row, schema, env):
        if expr.operand is not None:
            subject = self.evaluate(expr.operand, row, schema, env)
            for candidate, result in expr.whens:
                if self.compare("=", subject, self.evaluate(candidate, row, schema, env)) is True:
                    return self.evaluate(result, row, schema, env)
        else:
            for condition, result in expr.whens:
                if check_truth(self.evaluate(condition, row, schema, env), "CASE condition") is True:
                    return self.evaluate(result, row, schema, env)
        if expr.else_ is not None:
            return self.evaluate(expr.else_, row, schema, env)
        return None

    # ------------------------------------------------------------------
    # Scalar functions
    # ------------------------------------------------------------------

    def visit_FunctionCall(self, expr: FunctionCall, row, schema, env):
        name = expr.name
        if name not in SCALAR_FUNCTIONS:
            raise InvalidPlanError(f"Unknown function {name}")

        if name == "COALESCE":
            for arg in expr.args:
                value = self.evaluate(arg, row, schema, env)
                if value is not None:
                    return value
            return None

        args = [self.evaluate(a, row, schema, env) for a in expr.args]
        if name == "NULLIF":
            return None if self.compare("=", args[0], args[1]) is True else args[0]
        if args[0] is None:
            return None

        if name == "ABS":
            _require_numeric(args[0], name)
            return abs(args[0])
        if name == "ROUND":
            _require_numeric(args[0], name)
            digits = args[1] if len(args) > 1 else 0
            if digits is None:
                return None
            if type_of(digits) is not SqlType.INTEGER:
                raise TypeMismatchError(f"ROUND precision must be INTEGER, got {digits!r}")
            return _sql_round(args[0], digits)
        if name in ("UPPER", "LOWER"):
            _require_text(args[0], name)
            return args[0].upper() if name == "UPPER" else args[0].lower()
        if name == "LENGTH":
            _require_text(args[0], name)
            return len(args[0])
        raise InvalidPlanError(f"Unknown function {name}")
