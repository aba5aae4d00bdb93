# relational_engine/utils/formatting.py

import pandas as pd


def _cell(value) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return "NULL"
    return str(value)


def format_table(df: pd.DataFrame) -> str:
    """Render a result DataFrame as an aligned text table with a row count footer."""
    if df.columns.empty:
        return f"({len(df)} {'row' if len(df) == 1 else 'rows'})"

    columns = [str(c) for c in df.columns]
    cells = [[_cell(v) for v in row] for row in df.itertuples(index=False, name=None)]

    col_widths = []
    for position, name in enumerate(columns):
        width = max([len(name)] + [len(row[position]) for row in cells])
        col_widths.append(width)

    header = " | ".join(f"{name:{width}}" for name, width in zip(columns, col_widths))
    separator = "-+-".join("-" * width for width in col_widths)
    lines = [header, separator]
    for row in cells:
        lines.append(" | ".join(f"{value:{width}}" for value, width in zip(row, col_widths)))
    lines.append(f"({len(df)} {'row' if len(df) == 1 else 'rows'})")
    return "\n".join(lines)
