"""CLIConfig: Command-line operational overrides.

Minimal configuration for the parameters that commonly change between
runs: elevation, raster extent, output paths, verbosity.

This schema handles command-line arguments parsed by argparse.
"""

from typing import Literal, Optional
from pydantic import Field
from radvol.schemas.base import RadvolBaseModel


class CLIConfig(RadvolBaseModel):
    """Command-line configuration overrides.

    Operational-only settings that override user and param configs.
    Highest priority in config resolution.

    Usage
    -----
        cli_cfg = CLIConfig(
            elevation=0.5,
            output_dir="/scratch/ppi",
            log_level="DEBUG",
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    elevation: Optional[float] = None
    max_range: Optional[float] = Field(None, gt=0)
    resolution: Optional[float] = Field(None, gt=0)
    parameters: Optional[list[str]] = None
    classify: Optional[bool] = None
    output_dir: Optional[str] = None
    plot: Optional[bool] = None
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = None

    def to_internal_overrides(self) -> dict:
        """Convert CLI config to internal config structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        if self.elevation is not None:
            overrides["selection"] = {"elevation": self.elevation}

        projector = {}
        if self.max_range is not None:
            projector["max_range"] = self.max_range
        if self.resolution is not None:
            projector["resolution"] = self.resolution
        if self.parameters is not None:
            projector["parameters"] = self.parameters
        if projector:
            overrides["projector"] = projector

        if self.classify is not None:
            overrides["classifier"] = {"enabled": self.classify}

        if self.output_dir is not None:
            overrides["output"] = {"output_dir": str(self.output_dir)}

        if self.plot is not None:
            overrides["visualization"] = {"enabled": self.plot}

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
