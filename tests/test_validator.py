# tests/test_validator.py

import unittest

from relational_engine.ast.builders import (
    add, and_, avg, case, col, concat, count, eq, exists, func, gt, in_list, like,
    lit, rank, scalar_subquery, string_agg, sum_
)
from relational_engine.ast import Scan
from relational_engine.errors import (
    AmbiguousColumnError, InvalidPlanError, InvalidProjectionError,
    TypeMismatchError, UnknownColumnError
)
from relational_engine.semantic import SqlType
from relational_engine.storage import Column, Schema
from relational_engine.validator import ExpressionValidator, Scope, contains_aggregate

EMPLOYEES = Schema([
    Column('name', SqlType.TEXT, 'e'),
    Column('deptname', SqlType.TEXT, 'e'),
    Column('salary', SqlType.INTEGER, 'e'),
    Column('bonus', SqlType.DECIMAL, 'e'),
])


class _Frame:
    correlated = False


class TestExpressionValidator(unittest.TestCase):

    def setUp(self):
        self.prepared = []
        self.validator = ExpressionValidator(self._prepare)
        self.scope = Scope(EMPLOYEES)

    def _prepare(self, expr, scope):
        self.prepared.append((expr, scope))
        return Schema([Column('v', SqlType.INTEGER)])

    def test_type_inference(self):
        """Inferred types follow the coercion table"""
        validate = self.validator.validate
        self.assertIs(validate(add(col('salary'), 1), self.scope), SqlType.INTEGER)
        self.assertIs(validate(add(col('salary'), col('bonus')), self.scope), SqlType.DECIMAL)
        self.assertIs(validate(concat(col('name'), '!'), self.scope), SqlType.TEXT)
        self.assertIs(validate(gt(col('salary'), 10), self.scope), SqlType.BOOLEAN)
        self.assertIs(validate(func('LENGTH', col('name')), self.scope), SqlType.INTEGER)
        self.assertIs(validate(case((gt(col('salary'), 1), 1), else_=2.5), self.scope),
                      SqlType.DECIMAL)

    def test_static_type_errors(self):
        """Incompatible declared types are rejected before any row flows"""
        with self.assertRaises(TypeMismatchError):
            self.validator.validate(add(col('name'), 1), self.scope)
        with self.assertRaises(TypeMismatchError):
            self.validator.validate(eq(col('name'), col('salary')), self.scope)
        with self.assertRaises(TypeMismatchError):
            self.validator.validate(like(col('salary'), '1%'), self.scope)
        with self.assertRaises(TypeMismatchError):
            self.validator.validate(in_list(col('salary'), ['a']), self.scope)
        with self.assertRaises(TypeMismatchError):
            self.validator.validate_predicate(col('salary'), self.scope)
        with self.assertRaises(TypeMismatchError):
            self.validator.validate(and_(col('name'), lit(True)), self.scope)

    def test_null_literal_is_compatible(self):
        self.assertIs(self.validator.validate(eq(col('name'), lit(None)), self.scope), SqlType.BOOLEAN)

    def test_column_resolution(self):
        with self.assertRaises(UnknownColumnError):
            self.validator.validate(col('missing'), self.scope)
        with self.assertRaises(UnknownColumnError):
            self.validator.validate(col('x.salary'), self.scope)
        doubled = Scope(EMPLOYEES.concat(EMPLOYEES.qualify('m')))
        with self.assertRaises(AmbiguousColumnError):
            self.validator.validate(col('salary'), doubled)
        self.assertIs(self.validator.validate(col('m.salary'), doubled), SqlType.INTEGER)

    def test_functions(self):
        with self.assertRaises(InvalidPlanError):
            self.validator.validate(func('SOUNDEX', col('name')), self.scope)
        with self.assertRaises(InvalidPlanError):
            self.validator.validate(func('UPPER'), self.scope)

    def test_aggregate_placement(self):
        """Aggregates are rejected unless explicitly allowed; nesting is never allowed"""
        with self.assertRaises(InvalidPlanError):
            self.validator.validate(sum_(col('salary')), self.scope)
        self.assertIs(self.validator.validate(sum_(col('salary')), self.scope, allow_aggregates=True),
                      SqlType.INTEGER)
        self.assertIs(self.validator.aggregate_type(avg(col('salary')), self.scope), SqlType.DECIMAL)
        self.assertIs(self.validator.aggregate_type(count(), self.scope), SqlType.INTEGER)
        self.assertIs(self.validator.aggregate_type(string_agg(col('name')), self.scope), SqlType.TEXT)
        with self.assertRaises(InvalidPlanError):
            self.validator.aggregate_type(sum_(count()), self.scope)

    def test_window_call_outside_select(self):
        with self.assertRaises(InvalidPlanError):
            self.validator.validate(rank(), self.scope)

    def test_grouped_schema(self):
        """A source column that was not grouped is a projection error, not an unknown column"""
        grouped = Schema([EMPLOYEES[1], Column('total', SqlType.INTEGER)], grouped_source=EMPLOYEES)
        scope = Scope(grouped)
        self.assertIs(self.validator.validate(col('deptname'), scope), SqlType.TEXT)
        with self.assertRaises(InvalidProjectionError):
            self.validator.validate(col('name'), scope)
        with self.assertRaises(UnknownColumnError):
            self.validator.validate(col('nickname'), scope)

    def test_subqueries_are_prepared(self):
        plan = Scan('departments')
        self.assertIs(self.validator.validate(scalar_subquery(plan), self.scope), SqlType.INTEGER)
        self.assertIs(self.validator.validate(exists(plan), self.scope), SqlType.BOOLEAN)
        self.assertEqual(len(self.prepared), 2)
        self.assertIs(self.prepared[0][1], self.scope)

    def test_outer_references_mark_frames(self):
        """Resolving a column two scopes out marks both enclosing subqueries correlated"""
        outermost = Schema([Column('location', SqlType.TEXT, 'd')])
        middle, inner = _Frame(), _Frame()
        self.validator.push_frame(middle)
        self.validator.push_frame(inner)
        scope = Scope(Schema([Column('x', SqlType.INTEGER, 'i')]), (EMPLOYEES, outermost))

        self.assertIs(self.validator.validate(col('d.location'), scope), SqlType.TEXT)
        self.assertTrue(inner.correlated)
        self.assertTrue(middle.correlated)

    def test_local_reference_leaves_frame_uncorrelated(self):
        frame = _Frame()
        self.validator.push_frame(frame)
        self.validator.validate(col('salary'), self.scope)
        self.validator.pop_frame()
        self.assertFalse(frame.correlated)

    def test_contains_aggregate(self):
        self.assertTrue(contains_aggregate(gt(sum_(col('salary')), 1)))
        self.assertFalse(contains_aggregate(gt(col('salary'), 1)))
        self.assertFalse(contains_aggregate(None))


if __name__ == '__main__':
    unittest.main()
