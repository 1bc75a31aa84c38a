"""Configuration resolution and merging logic.

This module provides the single entrypoint for configuration resolution:
resolve_config(). It merges ParamConfig, UserConfig, and CLIConfig in
the correct precedence order and returns a validated InternalConfig.

Precedence (highest to lowest):
1. CLIConfig (command-line overrides)
2. UserConfig (user file)
3. ParamConfig (expert defaults)
"""

from typing import Dict, Optional, Union
from stackalign.schemas.param import ParamConfig
from stackalign.schemas.user import UserConfig
from stackalign.schemas.cli import CLIConfig
from stackalign.schemas.internal import InternalConfig


def deep_merge(base: dict, *overrides: dict) -> dict:
    """Deep merge multiple dictionaries.

    Later dictionaries override earlier ones. Nested dictionaries are
    merged recursively; other values are replaced.

    Examples
    --------
    >>> base = {"a": 1, "b": {"c": 2, "d": 3}}
    >>> override = {"b": {"d": 4, "e": 5}, "f": 6}
    >>> deep_merge(base, override)
    {'a': 1, 'b': {'c': 2, 'd': 4, 'e': 5}, 'f': 6}
    """
    result = base.copy()

    for override in overrides:
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = deep_merge(result[key], value)
            else:
                result[key] = value

    return result


def parse_z_map(z_map: str) -> Dict[float, float]:
    """Parse ``"a=b,c=d"`` into ``{a: b, c: d}``.

    An empty (or whitespace-only) string means no mapping.

    Raises
    ------
    ValueError
        If any pair is not two numbers separated by '='.
    """
    mapping = {}
    if not z_map or not z_map.strip():
        return mapping

    for pair in z_map.split(","):
        parts = pair.split("=")
        try:
            if len(parts) != 2:
                raise ValueError(f"pair '{pair}' is not of the form sourceZ=targetZ")
            mapping[float(parts[0])] = float(parts[1])
        except ValueError as exc:
            raise ValueError(f"invalid z map string '{z_map}'") from exc

    return mapping


def resolve_config(
    param_cfg: Union[dict, ParamConfig],
    user_cfg: Optional[Union[dict, UserConfig]] = None,
    cli_cfg: Optional[Union[dict, CLIConfig]] = None,
) -> InternalConfig:
    """Resolve final runtime configuration from param, user, and CLI configs.

    This is the SINGLE ENTRYPOINT for configuration resolution. It validates
    and merges configs in the correct precedence order, fills owner/project
    fallbacks for the TrakEM2 basis and target stacks, parses the z map,
    and returns an immutable InternalConfig for runtime use.

    Parameters
    ----------
    param_cfg : dict or ParamConfig
        Expert configuration with complete defaults. Required.
    user_cfg : dict or UserConfig, optional
        User configuration with overrides.
    cli_cfg : dict or CLIConfig, optional
        Command-line overrides.

    Returns
    -------
    InternalConfig
        Fully validated, immutable runtime configuration

    Raises
    ------
    ValueError
        If any config fails validation (pydantic ValidationError is a
        ValueError), a mode-required field is missing, or the z map
        string is malformed.

    Examples
    --------
    >>> user = UserConfig(OWNER="flyTEM", PROJECT="FAFB00", BASE_DATA_URL="http://h/render-ws/v1",
    ...                   ACQUIRE_STACK="acquire", ALIGN_STACK="align", MET_FILE="s.met")
    >>> config = resolve_config(ParamConfig(), user)
    >>> config.met.format_version
    'v1'
    """
    if not isinstance(param_cfg, ParamConfig):
        param = ParamConfig.model_validate(param_cfg)
    else:
        param = param_cfg

    if user_cfg is None or (isinstance(user_cfg, dict) and not user_cfg):
        user = UserConfig()
    elif not isinstance(user_cfg, UserConfig):
        user = UserConfig.model_validate(user_cfg)
    else:
        user = user_cfg

    if cli_cfg is None or (isinstance(cli_cfg, dict) and not cli_cfg):
        cli = CLIConfig()
    elif not isinstance(cli_cfg, CLIConfig):
        cli = CLIConfig.model_validate(cli_cfg)
    else:
        cli = cli_cfg

    # Deep merge: param < user < cli
    merged = deep_merge(param.model_dump(), user.to_internal_overrides(), cli.to_internal_overrides())

    service = merged["service"]
    trakem2 = merged["trakem2"]
    for role in ("basis", "target"):
        if trakem2.get(f"{role}_owner") is None:
            trakem2[f"{role}_owner"] = service.get("owner")
        if trakem2.get(f"{role}_project") is None:
            trakem2[f"{role}_project"] = service.get("project")

    trakem2["z_mapping"] = parse_z_map(trakem2.get("z_map", ""))

    return InternalConfig.model_validate(merged)
