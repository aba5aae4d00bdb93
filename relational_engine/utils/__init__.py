# relational_engine/utils/__init__.py

from .formatting import format_table
from .logging_config import PerformanceTimer, get_logger, setup_logging

__all__ = [
    'format_table',
    'get_logger',
    'setup_logging',
    'PerformanceTimer',
]
