# relational_engine/config/engine_config.py

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict


class NullsOrder(Enum):
    """Where NULL sorts relative to non-NULL values."""
    LOWEST = "LOWEST"     # NULLS FIRST ascending, NULLS LAST descending
    HIGHEST = "HIGHEST"   # NULLS LAST ascending, NULLS FIRST descending


@dataclass
class EngineConfig:
    """Configuration for execution behavior"""
    nulls_order: NullsOrder = NullsOrder.LOWEST
    like_case_sensitive: bool = True
    null_on_division_by_zero: bool = True
    validate_input_types: bool = True
    custom_settings: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if isinstance(self.nulls_order, str):
            self.nulls_order = NullsOrder(self.nulls_order.upper())

    def get_setting(self, key: str, default=None):
        return self.custom_settings.get(key, default)

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "EngineConfig":
        """Build a config from a plain mapping; unknown keys land in custom_settings."""
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in values.items() if k in known}
        extra = {k: v for k, v in values.items() if k not in known}
        if extra:
            kwargs.setdefault("custom_settings", {})
            kwargs["custom_settings"] = {**kwargs["custom_settings"], **extra}
        return cls(**kwargs)
