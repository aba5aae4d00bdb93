"""
End-to-end tests for the query executor: ordering, limits, DISTINCT,
derived tables, reports and error context.
"""

import pytest

from relational_engine import execute
from relational_engine.ast import (
    Filter, Join, Limit, Project, ProjectItem, Scan, SelectQuery, Sort, Values
)
from relational_engine.ast.builders import (
    add, asc, col, desc, div, eq, gt, lit, star, sum_
)
from relational_engine.config import EngineConfig, NullsOrder
from relational_engine.errors import (
    DivisionByZeroError, InvalidPlanError, TableNotFoundError, TypeMismatchError,
    UnknownColumnError
)
from relational_engine.semantic import SqlType


def _employees(*order_by, **clauses):
    return SelectQuery(select=[ProjectItem(col('name'))], from_=Scan('employees'),
                       order_by=order_by, **clauses)


def _ids(result):
    return [row[0] for row in result.rows]


class TestOrdering:

    def test_order_by_alias(self, run):
        plan = SelectQuery(select=[ProjectItem(col('name')), ProjectItem(col('salary'), 'pay')],
                           from_=Scan('employees'), order_by=[desc(col('pay'))])
        assert _ids(run(plan))[:2] == ['alice', 'bruno']

    def test_order_by_ordinal(self, run):
        plan = SelectQuery(select=[ProjectItem(col('name')), ProjectItem(col('salary'))],
                           from_=Scan('employees'), order_by=[asc(2)])
        assert _ids(run(plan))[0] == 'fatima'

    def test_order_by_unselected_column(self, run):
        result = run(_employees(asc(col('salary'))))
        assert _ids(result) == ['fatima', 'eli', 'dana', 'chen', 'bruno', 'alice']
        assert result.column_names == ['name']

    def test_ordinal_out_of_range(self, run):
        with pytest.raises(InvalidPlanError):
            run(_employees(asc(3)))

    def test_sort_is_stable(self, run):
        plan = Sort([asc(col('deptname'))], Scan('employees'))
        assert [row[0] for row in run(plan).rows] == ['chen', 'fatima', 'alice', 'dana', 'bruno', 'eli']

    def test_multiple_keys(self, run):
        plan = Sort([asc(col('deptname')), asc(col('salary'))], Scan('employees'))
        assert [row[0] for row in run(plan).rows] == ['fatima', 'chen', 'dana', 'alice', 'eli', 'bruno']


class TestNullOrdering:
    """nulls.value = [90, NULL, 70, NULL, 90] for ids 1..5."""

    def _plan(self, *keys):
        return SelectQuery(select=[ProjectItem(col('id'))], from_=Scan('nulls'),
                           order_by=list(keys) + [asc(col('id'))])

    def test_lowest_policy_ascending(self, run):
        assert _ids(run(self._plan(asc(col('value'))))) == [2, 4, 3, 1, 5]

    def test_lowest_policy_descending(self, run):
        assert _ids(run(self._plan(desc(col('value'))))) == [1, 5, 3, 2, 4]

    def test_highest_policy(self, run):
        config = EngineConfig(nulls_order=NullsOrder.HIGHEST)
        assert _ids(run(self._plan(asc(col('value'))), config=config)) == [3, 1, 5, 2, 4]

    def test_explicit_placement_overrides_policy(self, run):
        assert _ids(run(self._plan(asc(col('value'), nulls='last')))) == [3, 1, 5, 2, 4]

    def test_config_from_dict(self):
        config = EngineConfig.from_dict({'nulls_order': 'highest', 'trace': True})
        assert config.nulls_order is NullsOrder.HIGHEST
        assert config.get_setting('trace') is True


class TestLimitAndDistinct:

    def test_limit_with_offset(self, run):
        result = run(_employees(desc(col('salary')), limit=2, offset=1))
        assert _ids(result) == ['bruno', 'chen']

    def test_limit_zero(self, run):
        assert run(_employees(limit=0)).rows == []

    def test_offset_only(self, run):
        assert len(run(_employees(offset=4))) == 2

    def test_offset_past_end(self, run):
        assert run(Limit(None, 10, Scan('employees'))).rows == []

    def test_negative_limit(self, run):
        with pytest.raises(InvalidPlanError):
            run(Limit(-1, 0, Scan('employees')))
        with pytest.raises(InvalidPlanError):
            run(_employees(limit=2, offset=-1))

    def test_distinct_with_order(self, run):
        plan = SelectQuery(select=[col('deptname')], from_=Scan('employees'),
                           distinct=True, order_by=[asc(col('deptname'))])
        assert _ids(run(plan)) == ['Finance', 'HR', 'IT']

    def test_distinct_order_by_unselected_column(self, run):
        plan = SelectQuery(select=[col('deptname')], from_=Scan('employees'),
                           distinct=True, order_by=[asc(col('salary'))])
        with pytest.raises(UnknownColumnError):
            run(plan)


class TestQueryShapes:

    def test_select_without_from(self, run):
        result = run(SelectQuery(select=[ProjectItem(add(1, 2), 'three')]))
        assert result.rows == [(3,)]
        assert result.column_names == ['three']

    def test_derived_table(self, run):
        totals = SelectQuery(
            select=[col('deptname'), ProjectItem(sum_(col('salary')), 'total')],
            from_=Scan('employees'),
            group_by=(col('deptname'),),
            alias='totals',
        )
        plan = SelectQuery(select=[col('totals.deptname')], from_=totals,
                           where=gt(col('totals.total'), 160000))
        assert _ids(run(plan)) == ['HR', 'IT']

    def test_star_projection(self, run):
        join = Join('INNER', eq(col('t1.c1'), col('t2.c1')), Scan('t1'), Scan('t2'))
        assert run(Project([star()], join)).rows == [(3, 'c', 3, 'x')]
        assert run(Project([star('t2')], join)).rows == [(3, 'x')]

    def test_star_of_unknown_relation(self, run):
        with pytest.raises(UnknownColumnError):
            run(Project([star('t9')], Scan('t1')))

    def test_filter_is_idempotent(self, run):
        predicate = gt(col('salary'), 80000)
        once = run(Filter(predicate, Scan('employees'))).rows
        twice = run(Filter(predicate, Filter(predicate, Scan('employees')))).rows
        assert once == twice
        assert len(once) == 3

    def test_unknown_table(self, run):
        plan = Filter(gt(col('x'), 1), Scan('missing'))
        with pytest.raises(TableNotFoundError) as excinfo:
            run(plan)
        assert excinfo.value.plan_node is plan.input

    def test_module_level_execute(self, store):
        result = execute(Scan('departments'), store)
        assert len(result) == 4


class TestRuntimeErrors:

    def test_type_mismatch_carries_row_ordinal(self, run):
        values = Values([('v', SqlType.ANY)], [(1,), ('x',)])
        plan = Filter(gt(col('v'), 0), values)
        with pytest.raises(TypeMismatchError) as excinfo:
            run(plan)
        assert excinfo.value.row_ordinal == 1
        assert excinfo.value.plan_node is plan

    def test_division_by_zero_yields_null(self, run):
        plan = Project([ProjectItem(div(col('salary'), 0), 'q')], Scan('employees'))
        assert run(plan).rows == [(None,)] * 6

    def test_division_by_zero_error(self, run):
        plan = Project([ProjectItem(div(col('salary'), 0), 'q')], Scan('employees'))
        config = EngineConfig(null_on_division_by_zero=False)
        with pytest.raises(DivisionByZeroError) as excinfo:
            run(plan, config=config)
        assert excinfo.value.row_ordinal == 0

    def test_unknown_column(self, run):
        with pytest.raises(UnknownColumnError):
            run(Filter(eq(col('bonus'), 1), Scan('employees')))

    def test_non_boolean_predicate(self, run):
        with pytest.raises(TypeMismatchError):
            run(Filter(col('salary'), Scan('employees')))

    def test_unknown_predicate_filters_row(self, run):
        assert run(Filter(eq(col('value'), lit(None)), Scan('nulls'))).rows == []


class TestResultAndReport:

    def test_report_stages(self, run):
        result = run(Filter(gt(col('salary'), 85000), Scan('employees')))
        report = result.report
        assert report.result_rows == 2
        assert report.stages[0].label.startswith('Filter')
        assert report.stages[0].rows_out == 2
        scan = report.find_stage('Scan')
        assert scan.depth == 1
        assert scan.rows_out == 6
        assert 'Scan(employees)' in report.summary()
        assert report.to_dict()['result_rows'] == 2

    def test_to_dataframe(self, run):
        result = run(SelectQuery(select=[col('name'), col('salary')], from_=Scan('employees'),
                                 order_by=[desc(col('salary'))], limit=2))
        df = result.to_dataframe()
        assert list(df.columns) == ['name', 'salary']
        assert df['salary'].tolist() == [100000, 90000]

    def test_format(self, run):
        text = run(Scan('nulls')).format()
        assert text.splitlines()[0].split(' | ')[0].strip() == 'id'
        assert 'NULL' in text
        assert text.endswith('(5 rows)')
