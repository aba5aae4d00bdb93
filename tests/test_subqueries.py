"""
Tests for scalar, IN and EXISTS subqueries, correlated and uncorrelated.
"""

from decimal import Decimal

import pytest

from relational_engine.ast import Filter, Project, ProjectItem, Scan, SelectQuery, Values
from relational_engine.ast.builders import (
    and_, avg, col, count, eq, exists, gt, in_subquery, lit, min_, not_exists,
    not_in_subquery, scalar_subquery
)
from relational_engine.errors import (
    ArityMismatchError, InvalidProjectionError, QueryCancelledError, ScalarSubqueryCardinalityError,
    UnknownColumnError
)
from relational_engine.executor import CancellationToken


def _names(result):
    return [row[0] for row in result.rows]


def _salaries():
    return Project([ProjectItem(col('salary'))], Scan('employees'))


def _above_department_average(correlation_columns=()):
    department_average = SelectQuery(
        select=[avg(col('i.salary'))],
        from_=Scan('employees', 'i'),
        where=eq(col('i.deptname'), col('e.deptname')),
    )
    return Project(
        [ProjectItem(col('e.name'))],
        Filter(gt(col('e.salary'), scalar_subquery(department_average, correlation_columns)),
               Scan('employees', 'e'))
    )


class CountdownToken(CancellationToken):
    """Cancels itself after a fixed number of checks."""

    def __init__(self, remaining):
        super().__init__()
        self.remaining = remaining

    def check(self):
        self.remaining -= 1
        if self.remaining < 0:
            self.cancel()
        super().check()


class TestScalarSubqueries:

    def test_uncorrelated_is_evaluated_once(self, run):
        average = SelectQuery(select=[avg(col('salary'))], from_=Scan('employees'))
        plan = Project([ProjectItem(col('name'))],
                       Filter(gt(col('salary'), scalar_subquery(average)), Scan('employees')))
        result = run(plan)
        assert _names(result) == ['alice', 'bruno', 'chen']
        (subquery,) = result.report.subqueries
        assert subquery.correlated is False
        assert subquery.evaluations == 1

    def test_correlated_detected_from_outer_reference(self, run):
        result = run(_above_department_average())
        assert _names(result) == ['alice', 'bruno', 'chen']
        (subquery,) = result.report.subqueries
        assert subquery.correlated is True
        assert subquery.evaluations == 6

    def test_declared_correlation_columns(self, run):
        result = run(_above_department_average([col('e.deptname')]))
        assert _names(result) == ['alice', 'bruno', 'chen']
        assert result.report.subqueries[0].evaluations == 6

    def test_unknown_correlation_column(self, run):
        with pytest.raises(UnknownColumnError):
            run(_above_department_average([col('e.missing')]))

    def test_scalar_subquery_in_projection(self, run):
        locations = SelectQuery(
            select=[count()],
            from_=Scan('departments', 'd'),
            where=eq(col('d.deptname'), col('e.deptname')),
        )
        plan = Project([ProjectItem(col('e.name')), ProjectItem(scalar_subquery(locations), 'n')],
                       Scan('employees', 'e'))
        result = run(plan)
        assert result.column_names == ['name', 'n']
        assert [row[1] for row in result.rows] == [1] * 6

    def test_correlated_on_group_key(self, run):
        matching = SelectQuery(
            select=[count()],
            from_=Scan('departments', 'd'),
            where=eq(col('d.deptname'), col('e.deptname')),
        )
        plan = SelectQuery(
            select=[col('e.deptname'), ProjectItem(scalar_subquery(matching), 'n')],
            from_=Scan('employees', 'e'),
            group_by=(col('e.deptname'),),
        )
        assert run(plan).rows == [('HR', 1), ('IT', 1), ('Finance', 1)]

    def test_correlated_on_ungrouped_column(self, run):
        """An outer column that was neither grouped nor aggregated is a projection error."""
        matching = SelectQuery(
            select=[count()],
            from_=Scan('salaries', 's'),
            where=eq(col('s.salary'), col('e.salary')),
        )
        plan = SelectQuery(
            select=[col('e.deptname'), ProjectItem(scalar_subquery(matching), 'n')],
            from_=Scan('employees', 'e'),
            group_by=(col('e.deptname'),),
        )
        with pytest.raises(InvalidProjectionError):
            run(plan)

    def test_more_than_one_row(self, run):
        plan = Filter(eq(col('salary'), scalar_subquery(_salaries())), Scan('employees'))
        with pytest.raises(ScalarSubqueryCardinalityError) as excinfo:
            run(plan)
        assert excinfo.value.row_ordinal == 0
        assert excinfo.value.plan_node is plan

    def test_no_rows(self, run):
        empty = Project([ProjectItem(col('salary'))],
                        Filter(gt(col('salary'), 10 ** 6), Scan('employees')))
        plan = Filter(eq(col('salary'), scalar_subquery(empty)), Scan('employees'))
        with pytest.raises(ScalarSubqueryCardinalityError) as excinfo:
            run(plan)
        assert excinfo.value.row_ordinal == 0
        assert excinfo.value.plan_node is plan

    def test_more_than_one_column(self, run):
        plan = Filter(eq(col('c1'), scalar_subquery(Scan('t2'))), Scan('t1'))
        with pytest.raises(ArityMismatchError):
            run(plan)


class TestExistsSubqueries:
    """Departments HR, IT and Finance have employees; Sales has none."""

    def _departments(self, predicate):
        return Project([ProjectItem(col('d.deptname'))], Filter(predicate, Scan('departments', 'd')))

    def _staff(self):
        return Filter(eq(col('e.deptname'), col('d.deptname')), Scan('employees', 'e'))

    def test_exists(self, run):
        assert _names(run(self._departments(exists(self._staff())))) == ['HR', 'IT', 'Finance']

    def test_not_exists(self, run):
        assert _names(run(self._departments(not_exists(self._staff())))) == ['Sales']

    def test_uncorrelated_exists(self, run):
        plan = self._departments(exists(Filter(gt(col('salary'), 10 ** 6), Scan('employees'))))
        assert run(plan).rows == []

    def test_nested_correlation(self, run):
        """The innermost query reads a column of the outermost one."""
        lowest_in_ny = SelectQuery(
            select=[min_(col('i.salary'))],
            from_=Scan('employees', 'i'),
            where=and_(eq(col('i.deptname'), col('d.deptname')), eq(col('d.location'), 'NY')),
        )
        staff = Filter(
            and_(eq(col('e.deptname'), col('d.deptname')),
                 gt(col('e.salary'), scalar_subquery(lowest_in_ny))),
            Scan('employees', 'e')
        )
        result = run(self._departments(exists(staff)))
        assert _names(result) == ['HR', 'Finance']
        assert all(sub.correlated for sub in result.report.subqueries)


class TestInSubqueries:

    def test_in(self, run):
        in_ny = Project([ProjectItem(col('deptname'))],
                        Filter(eq(col('location'), 'NY'), Scan('departments')))
        plan = Project([ProjectItem(col('name'))],
                       Filter(in_subquery(col('deptname'), in_ny), Scan('employees')))
        assert _names(run(plan)) == ['alice', 'chen', 'dana', 'fatima']

    def test_not_in_with_null_member(self, run):
        """x NOT IN (3, NULL) is never true."""
        members = Values(['v'], [(3,), (None,)])
        plan = Filter(not_in_subquery(col('x'), members), Scan('a'))
        assert run(plan).rows == []

    def test_in_with_null_member(self, run):
        members = Values(['v'], [(3,), (None,)])
        plan = Filter(in_subquery(col('x'), members), Scan('a'))
        assert run(plan).rows == [(3,)]

    def test_empty_set(self, run):
        nothing = Filter(lit(False), Scan('b'))
        assert run(Filter(in_subquery(col('x'), nothing), Scan('a'))).rows == []
        assert len(run(Filter(not_in_subquery(col('x'), nothing), Scan('a')))) == 3

    def test_null_operand_not_in_empty_set(self, run):
        nothing = Filter(lit(False), Scan('b'))
        plan = Filter(not_in_subquery(col('value'), nothing), Scan('nulls'))
        assert len(run(plan)) == 5

    def test_multi_column_in(self, run):
        plan = Filter(in_subquery(col('c1'), Scan('t2')), Scan('t1'))
        with pytest.raises(ArityMismatchError):
            run(plan)

    def test_float_operand_matches_decimal_member(self, run):
        """Membership agrees with '=' and IN (list) for a float/Decimal pair."""
        floats = Values(['x'], [(0.1,), (0.2,)])
        decimals = Values(['d'], [(Decimal('0.1'),)])
        assert run(Filter(in_subquery(col('x'), decimals), floats)).rows == [(0.1,)]
        assert run(Filter(eq(col('x'), Decimal('0.1')), floats)).rows == [(0.1,)]

    def test_integral_decimal_matches_integer(self, run):
        members = Values(['d'], [(Decimal('90'),)])
        assert run(Filter(in_subquery(col('value'), members), Scan('nulls'))).rows == [
            (1, 'g1', 90), (5, 'g2', 90)
        ]


class TestCancellation:

    def test_cancel_before_start(self, run):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(QueryCancelledError):
            run(Scan('employees'), cancellation=token)

    def test_cancel_during_correlated_evaluation(self, run):
        with pytest.raises(QueryCancelledError):
            run(_above_department_average(), cancellation=CountdownToken(3))

    def test_token_left_alone_completes(self, run):
        token = CountdownToken(100)
        assert len(run(_above_department_average(), cancellation=token)) == 3
        assert not token.cancelled
