from .semver import Version, parse_version, render, expand_expression
from .strategies import (
    Strategy,
    ConfigStrategy,
    ExpressionStrategy,
    NpmStrategy,
    strategies_from_config,
    get_version,
    set_version,
)

__all__ = [
    "Version",
    "parse_version",
    "render",
    "expand_expression",
    "Strategy",
    "ConfigStrategy",
    "ExpressionStrategy",
    "NpmStrategy",
    "strategies_from_config",
    "get_version",
    "set_version",
]
