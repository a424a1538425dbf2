"""Pydantic configuration schemas for the radvol pipeline.

This module provides strictly typed configuration models for the radvol
processing pipeline. All configuration validation, coercion, and
normalization happens at schema validation time via Pydantic.

Exports
-------
resolve_config : function
    Single entrypoint for configuration resolution
InternalConfig : class
    Fully validated, authoritative runtime configuration
ParamConfig : class
    Expert defaults (complete)
UserConfig : class
    User-facing configuration (forgiving, minimal)
CLIConfig : class
    Command-line operational overrides
"""

from radvol.schemas.resolve import resolve_config, deep_merge
from radvol.schemas.internal import InternalConfig
from radvol.schemas.param import ParamConfig
from radvol.schemas.user import UserConfig
from radvol.schemas.cli import CLIConfig

__all__ = [
    'resolve_config',
    'deep_merge',
    'InternalConfig',
    'ParamConfig',
    'UserConfig',
    'CLIConfig',
]
