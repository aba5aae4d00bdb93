"""
Pytest fixtures for the relational engine tests.
"""

import pytest
import pandas as pd

from relational_engine.config import EngineConfig
from relational_engine.executor import QueryExecutor
from relational_engine.storage import TableStore


@pytest.fixture
def join_tables():
    """Two small relations sharing key column c1."""
    return {
        't1': pd.DataFrame({'c1': [1, 2, 3], 'c2': ['a', 'b', 'c']}),
        't2': pd.DataFrame({'c1': [3, 4, 5], 'c2': ['x', 'y', 'z']}),
    }


@pytest.fixture
def set_tables():
    """Single-column relations for set operations."""
    return {
        'a': pd.DataFrame({'x': [1, 2, 3]}),
        'b': pd.DataFrame({'x': [3, 4, 5]}),
    }


@pytest.fixture
def salary_data():
    """Salaries with ties for ranking tests."""
    return pd.DataFrame({
        'name': ['ann', 'bob', 'cid', 'dan', 'eve', 'fay', 'gus'],
        'salary': [200, 200, 100, 100, 70, 60, 50]
    })


@pytest.fixture
def employee_data():
    """Employees whose per-department salary sums are HR 180000, IT 165000, Finance 155000."""
    return pd.DataFrame({
        'name': ['alice', 'bruno', 'chen', 'dana', 'eli', 'fatima'],
        'deptname': ['HR', 'IT', 'Finance', 'HR', 'IT', 'Finance'],
        'salary': [100000, 90000, 85000, 80000, 75000, 70000]
    })


@pytest.fixture
def department_data():
    """Departments; Sales has no employees."""
    return pd.DataFrame({
        'deptname': ['HR', 'IT', 'Finance', 'Sales'],
        'location': ['NY', 'SF', 'NY', 'LA']
    })


@pytest.fixture
def null_data():
    """Dataset with NULL values for NULL handling testing."""
    return pd.DataFrame({
        'id': [1, 2, 3, 4, 5],
        'grp': ['g1', None, 'g1', None, 'g2'],
        'value': [90, None, 70, None, 90]
    })


@pytest.fixture
def empty_data():
    """Empty dataset for edge case testing."""
    return pd.DataFrame({
        'id': pd.Series([], dtype='int64'),
        'value': pd.Series([], dtype='int64')
    })


@pytest.fixture
def store(join_tables, set_tables, salary_data, employee_data, department_data,
          null_data, empty_data):
    """Table store holding every fixture relation."""
    tables = TableStore()
    for name, df in {**join_tables, **set_tables}.items():
        tables.register(name, df)
    tables.register('salaries', salary_data)
    tables.register('employees', employee_data)
    tables.register('departments', department_data)
    tables.register('nulls', null_data)
    tables.register('empty', empty_data)
    return tables


@pytest.fixture
def run(store):
    """Execute a plan against the fixture store and return its rows."""
    def _run(plan, config=None, cancellation=None):
        return QueryExecutor(store, config or EngineConfig()).execute(plan, cancellation)
    return _run
