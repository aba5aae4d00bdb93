"""
Tests for scalar expression evaluation and three-valued logic.
"""

import datetime
from decimal import Decimal

import pytest

from relational_engine.ast.builders import (
    add, and_, between, case, col, concat, div, eq, func, gt, in_list, is_not_null,
    is_null, like, lit, lt, mul, neg, not_, not_in_list, not_like, or_, sub
)
from relational_engine.ast.expression_ast import BinaryOp, Literal
from relational_engine.config import EngineConfig
from relational_engine.errors import (
    AmbiguousColumnError, DivisionByZeroError, TypeMismatchError, UnknownColumnError
)
from relational_engine.evaluator import BindingEnvironment, ExpressionEvaluator
from relational_engine.semantic import SqlType
from relational_engine.semantic.three_valued import and3, not3, or3
from relational_engine.storage import Column, Schema


SCHEMA = Schema([Column('a', SqlType.INTEGER), Column('b', SqlType.TEXT), Column('n', SqlType.INTEGER)])
ROW = (5, 'hello', None)


def evaluate(expr, config=None, row=ROW, schema=SCHEMA, env=None):
    return ExpressionEvaluator(config).evaluate(expr, row, schema, env)


class TestThreeValuedLogic:
    """AND / OR / NOT over True, False and unknown (None)."""

    def test_truth_tables(self):
        """Unknown combines with true/false per SQL rules."""
        assert and3(None, False) is False
        assert and3(None, True) is None
        assert or3(None, True) is True
        assert or3(None, False) is None
        assert not3(None) is None

    def test_logical_expressions(self):
        """Logical nodes keep unknown instead of folding it into false."""
        assert evaluate(and_(lit(None), lit(False))) is False
        assert evaluate(and_(lit(None), lit(True))) is None
        assert evaluate(or_(lit(None), lit(True))) is True
        assert evaluate(or_(lit(None), lit(False))) is None
        assert evaluate(not_(lit(None))) is None
        assert evaluate(not_(gt(col('a'), 1))) is False

    def test_comparison_with_null_is_unknown(self):
        """Any comparison involving NULL yields unknown."""
        assert evaluate(eq(col('n'), 1)) is None
        assert evaluate(eq(lit(None), lit(None))) is None

    def test_is_null(self):
        assert evaluate(is_null(col('n'))) is True
        assert evaluate(is_not_null(col('a'))) is True

    def test_non_boolean_logical_operand(self):
        """AND over a non-boolean value is a type error."""
        with pytest.raises(TypeMismatchError):
            evaluate(and_(col('a'), lit(True)))


class TestArithmetic:
    """Arithmetic under the coercion table."""

    def test_integer_arithmetic(self):
        assert evaluate(add(col('a'), 2)) == 7
        assert evaluate(sub(col('a'), 7)) == -2
        assert evaluate(mul(col('a'), 3)) == 15
        assert evaluate(neg(col('a'))) == -5

    def test_integer_division_is_decimal(self):
        """INTEGER / INTEGER produces a fractional result."""
        assert evaluate(div(7, 2)) == 3.5

    def test_remainder_takes_dividend_sign(self):
        assert evaluate(BinaryOp('%', Literal(-7), Literal(3))) == -1
        assert evaluate(BinaryOp('%', Literal(7), Literal(-3))) == 1

    def test_mixed_numeric_types(self):
        assert evaluate(add(1, 0.5)) == 1.5
        assert evaluate(add(Decimal('1.5'), 1)) == Decimal('2.5')
        assert evaluate(add(Decimal('1.5'), 0.5)) == 2.0

    def test_null_propagates(self):
        assert evaluate(add(col('n'), 1)) is None

    def test_division_by_zero_yields_null(self):
        assert evaluate(div(col('a'), 0)) is None

    def test_division_by_zero_error_when_configured(self):
        config = EngineConfig(null_on_division_by_zero=False)
        with pytest.raises(DivisionByZeroError):
            evaluate(div(col('a'), 0), config=config)

    def test_text_arithmetic_is_type_mismatch(self):
        with pytest.raises(TypeMismatchError):
            evaluate(add(col('b'), 1))

    def test_concatenation(self):
        assert evaluate(concat(col('b'), ' world')) == 'hello world'


class TestComparison:
    """Comparison operators and type families."""

    def test_numeric_comparison_across_types(self):
        assert evaluate(eq(1, 1.0)) is True
        assert evaluate(lt(Decimal('1.5'), 2)) is True

    def test_text_vs_boolean_is_type_mismatch(self):
        with pytest.raises(TypeMismatchError):
            evaluate(eq(col('b'), lit(True)))

    def test_date_and_datetime_compare(self):
        day = datetime.date(2024, 1, 1)
        midnight = datetime.datetime(2024, 1, 1, 0, 0)
        assert evaluate(eq(lit(day), lit(midnight))) is True


class TestPredicates:
    """LIKE, IN and BETWEEN."""

    def test_like_wildcards(self):
        assert evaluate(like(col('b'), 'he%')) is True
        assert evaluate(like(col('b'), 'h_llo')) is True
        assert evaluate(like(col('b'), 'h_lo')) is False
        assert evaluate(not_like(col('b'), 'x%')) is True

    def test_like_is_case_sensitive_by_default(self):
        assert evaluate(like(col('b'), 'HE%')) is False
        config = EngineConfig(like_case_sensitive=False)
        assert evaluate(like(col('b'), 'HE%'), config=config) is True

    def test_like_escape(self):
        assert evaluate(like(lit('50%'), '50!%', escape='!')) is True
        assert evaluate(like(lit('500'), '50!%', escape='!')) is False

    def test_like_null(self):
        assert evaluate(like(lit(None), '%')) is None

    def test_in_list(self):
        assert evaluate(in_list(col('a'), [1, 5])) is True
        assert evaluate(in_list(col('a'), [1, 2])) is False
        assert evaluate(not_in_list(col('a'), [1, 2])) is True

    def test_in_list_null_semantics(self):
        """No match plus a NULL candidate is unknown; NULL operand is unknown."""
        assert evaluate(in_list(col('a'), [1, None])) is None
        assert evaluate(not_in_list(col('a'), [1, None])) is None
        assert evaluate(in_list(col('n'), [1, 2])) is None
        assert evaluate(in_list(col('a'), [5, None])) is True

    def test_between_is_inclusive(self):
        assert evaluate(between(col('a'), 1, 5)) is True
        assert evaluate(between(col('a'), 5, 9)) is True
        assert evaluate(between(col('a'), 6, 9)) is False
        assert evaluate(between(col('n'), 1, 9)) is None


class TestCaseAndFunctions:

    def test_searched_case(self):
        expr = case((gt(col('a'), 10), 'big'), (gt(col('a'), 1), 'medium'), else_='small')
        assert evaluate(expr) == 'medium'

    def test_simple_case_without_match(self):
        expr = case((1, 'one'), (2, 'two'), operand=col('a'))
        assert evaluate(expr) is None

    def test_scalar_functions(self):
        assert evaluate(func('COALESCE', col('n'), 3)) == 3
        assert evaluate(func('NULLIF', col('a'), 5)) is None
        assert evaluate(func('UPPER', col('b'))) == 'HELLO'
        assert evaluate(func('LENGTH', col('b'))) == 5
        assert evaluate(func('ABS', neg(col('a')))) == 5
        assert evaluate(func('ROUND', 2.567, 2)) == pytest.approx(2.57)


class TestColumnResolution:

    def test_unknown_column(self):
        with pytest.raises(UnknownColumnError):
            evaluate(col('missing'))

    def test_outer_binding_fallback(self):
        """References missing from the row resolve through the environment."""
        outer = BindingEnvironment((10,), Schema([Column('outer_x', SqlType.INTEGER, 'o')]))
        assert evaluate(add(col('o.outer_x'), col('a')), env=outer) == 15

    def test_nested_environment(self):
        outermost = BindingEnvironment((1,), Schema([Column('x', SqlType.INTEGER, 'p')]))
        middle = BindingEnvironment((2,), Schema([Column('y', SqlType.INTEGER, 'q')]), outermost)
        assert evaluate(add(col('p.x'), col('q.y')), env=middle) == 3
        assert middle.depth() == 2

    def test_ambiguous_column(self):
        schema = Schema([Column('c1', SqlType.INTEGER, 't1'), Column('c1', SqlType.INTEGER, 't2')])
        with pytest.raises(AmbiguousColumnError):
            evaluate(col('c1'), row=(1, 2), schema=schema)
        assert evaluate(col('t2.c1'), row=(1, 2), schema=schema) == 2
