"""Pydantic configuration schemas for amrproj.

All configuration validation, coercion, and normalization happens at
schema validation time via Pydantic.

Exports
-------
resolve_config : function
    Single entrypoint for configuration resolution
InternalConfig : class
    Fully validated, authoritative runtime configuration
ParamConfig : class
    Expert defaults (complete)
UserConfig : class
    Per-call options (forgiving, minimal)
"""

from amrproj.schemas.resolve import resolve_config
from amrproj.schemas.internal import InternalConfig
from amrproj.schemas.param import ParamConfig
from amrproj.schemas.user import UserConfig

__all__ = [
    'resolve_config',
    'InternalConfig',
    'ParamConfig',
    'UserConfig',
]
