# relational_engine/executor/report.py
"""
Execution report: per-operator row counts and subquery evaluation counts.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from relational_engine.operators.base import Operator


@dataclass
class StageReport:
    label: str
    depth: int
    rows_out: int
    invocations: int


@dataclass
class SubqueryReport:
    description: str
    mode: str
    correlated: bool
    evaluations: int
    stages: List[StageReport] = field(default_factory=list)


@dataclass
class ExecutionReport:
    """
    Statistics of one execution.

    stages lists the main operator tree in pre-order with its nesting depth.
    Each subquery reports how many times its inner plan was driven: once for
    an uncorrelated subquery, once per outer row for a correlated one.
    """
    stages: List[StageReport] = field(default_factory=list)
    subqueries: List[SubqueryReport] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    result_rows: int = 0

    def find_stage(self, prefix: str) -> Optional[StageReport]:
        """First stage whose label starts with prefix."""
        for stage in self.stages:
            if stage.label.startswith(prefix):
                return stage
        return None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def summary(self) -> str:
        lines = [f"Execution: {self.result_rows} rows in {self.elapsed_seconds:.4f}s"]
        for stage in self.stages:
            indent = "  " * (stage.depth + 1)
            lines.append(f"{indent}{stage.label}: rows={stage.rows_out} invocations={stage.invocations}")
        for sub in self.subqueries:
            kind = "correlated" if sub.correlated else "uncorrelated"
            lines.append(f"  Subquery {sub.description} [{sub.mode}, {kind}]: "
                         f"evaluations={sub.evaluations}")
        return "\n".join(lines)


def collect_stages(root: Operator, depth: int = 0) -> List[StageReport]:
    stages = [StageReport(root.stats.label, depth, root.stats.rows_out, root.stats.invocations)]
    for child in root.children:
        stages.extend(collect_stages(child, depth + 1))
    return stages


def build_report(root: Operator, context, elapsed: float, result_rows: int) -> ExecutionReport:
    subqueries = [
        SubqueryReport(
            description=str(prepared.expr),
            mode=prepared.mode.value,
            correlated=prepared.correlated,
            evaluations=prepared.evaluations,
            stages=collect_stages(prepared.operator) if prepared.operator is not None else [],
        )
        for prepared in context.subqueries.prepared()
    ]
    return ExecutionReport(collect_stages(root), subqueries, elapsed, result_rows)
