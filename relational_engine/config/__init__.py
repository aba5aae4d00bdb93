# relational_engine/config/__init__.py

from .engine_config import EngineConfig, NullsOrder

__all__ = ['EngineConfig', 'NullsOrder']
