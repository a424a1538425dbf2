"""Turn the three configuration layers into one InternalConfig.

Layers, later ones winning:

- ParamConfig: every default
- UserConfig: the user's CONFIG dict
- CLIConfig: flags given on the command line
"""

from typing import Optional, Union
from radvol.schemas.param import ParamConfig
from radvol.schemas.user import UserConfig
from radvol.schemas.cli import CLIConfig
from radvol.schemas.internal import InternalConfig


def deep_merge(base: dict, *overrides: dict) -> dict:
    """Merge nested override dicts into a copy of ``base``.

    Dict values are merged key by key; anything else (including None)
    replaces what was there. ``base`` and the overrides are not modified.

    Examples
    --------
    >>> deep_merge({"projector": {"max_range": 1, "workers": 2}},
    ...            {"projector": {"workers": 4}})
    {'projector': {'max_range': 1, 'workers': 4}}
    """
    merged = dict(base)
    for layer in overrides:
        for key, value in layer.items():
            current = merged.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                merged[key] = deep_merge(current, value)
            else:
                merged[key] = value
    return merged


def _as_model(cfg, model):
    if cfg is None or (isinstance(cfg, dict) and not cfg):
        return model()
    if isinstance(cfg, model):
        return cfg
    return model.model_validate(cfg)


def resolve_config(
    param_cfg: Optional[Union[dict, ParamConfig]] = None,
    user_cfg: Optional[Union[dict, UserConfig]] = None,
    cli_cfg: Optional[Union[dict, CLIConfig]] = None,
) -> InternalConfig:
    """Build the frozen runtime config from param, user and CLI layers.

    Each layer may be a model, a plain dict, or None (no overrides). The
    user and CLI layers are converted with ``to_internal_overrides`` and
    merged over the param defaults before validation.

    Raises
    ------
    pydantic.ValidationError
        If a layer or the merged result is invalid.

    Examples
    --------
    >>> config = resolve_config(ParamConfig(), UserConfig(MAX_RANGE=100000))
    >>> config.projector.max_range
    100000.0
    """
    param = _as_model(param_cfg, ParamConfig)
    user = _as_model(user_cfg, UserConfig)
    cli = _as_model(cli_cfg, CLIConfig)

    merged = deep_merge(
        param.model_dump(),
        user.to_internal_overrides(),
        cli.to_internal_overrides(),
    )
    return InternalConfig.model_validate(merged)
