# relational_engine/utils/logging_config.py
"""
Logging for the relational engine.

Nothing is configured on import: every module logs through a logger under
the ``relational_engine`` namespace and the host application decides where
records go. ``setup_logging`` is an explicit opt-in for scripts and tests
that want console or file output without writing their own configuration.
"""

import logging
import logging.config
import time
from pathlib import Path
from typing import Optional

LOGGER_NAMESPACE = "relational_engine"
TIMING_LOGGER = f"{LOGGER_NAMESPACE}.timing"

# Loggers that emit one record per plan node or per prepared subquery
_STAGE_LOGGERS = (
    f"{LOGGER_NAMESPACE}.executor.plan_builder",
    f"{LOGGER_NAMESPACE}.operators",
)

logging.getLogger(LOGGER_NAMESPACE).addHandler(logging.NullHandler())


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    enable_console: bool = True,
    trace_stages: bool = False
) -> None:
    """
    Configure output for the engine's loggers.

    Args:
        log_level: Level for the ``relational_engine`` namespace
        log_file: Optional path of a log file receiving DEBUG and above
        enable_console: Whether to log to stderr
        trace_stages: Log plan building, subquery preparation and per-stage
            group counts at DEBUG regardless of log_level
    """
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    config = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'detailed': {
                'format': '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            },
            'simple': {
                'format': '%(levelname)s - %(name)s - %(message)s'
            },
        },
        'handlers': {},
        'loggers': {
            LOGGER_NAMESPACE: {
                'level': log_level.upper(),
                'handlers': [],
                'propagate': True
            },
        },
    }

    if enable_console:
        config['handlers']['console'] = {
            'class': 'logging.StreamHandler',
            'level': 'DEBUG',
            'formatter': 'simple',
            'stream': 'ext://sys.stderr'
        }
        config['loggers'][LOGGER_NAMESPACE]['handlers'].append('console')
        config['loggers'][LOGGER_NAMESPACE]['propagate'] = False

    if log_file:
        config['handlers']['file'] = {
            'class': 'logging.FileHandler',
            'level': 'DEBUG',
            'formatter': 'detailed',
            'filename': log_file,
            'encoding': 'utf8'
        }
        config['loggers'][LOGGER_NAMESPACE]['handlers'].append('file')

    if trace_stages:
        for name in _STAGE_LOGGERS:
            config['loggers'][name] = {'level': 'DEBUG', 'propagate': True}

    logging.config.dictConfig(config)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for the specified module.

    Names outside the engine namespace are nested under it, so a caller's
    ``get_logger("myapp")`` still follows the engine configuration.
    """
    if name.startswith(f"{LOGGER_NAMESPACE}.") or name == LOGGER_NAMESPACE:
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


class PerformanceTimer:
    """
    Context manager timing one query execution.

    The measured duration is kept on the timer for the execution report and
    logged to the timing logger: INFO on success, WARNING on failure.
    """

    def __init__(self, operation_name: str, logger: Optional[logging.Logger] = None):
        self.operation_name = operation_name
        self.logger = logger or logging.getLogger(TIMING_LOGGER)
        self.start_time = None
        self.duration = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.debug(f"Starting {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.perf_counter() - self.start_time

        if exc_type is None:
            self.logger.info(f"{self.operation_name} completed in {self.duration:.4f}s")
        else:
            self.logger.warning(f"{self.operation_name} failed after {self.duration:.4f}s: {exc_val}")
