"""ParamConfig: Expert defaults for the radvol pipeline.

This module defines the complete default configuration. ALL pipeline
parameters must have defaults here. No runtime code should define fallback
values - this is the single source of truth for defaults.

Runtime code NEVER reads from ParamConfig directly - it only receives InternalConfig.
"""

from typing import Literal, Optional
from pydantic import Field, field_validator, model_validator
from radvol.schemas.base import RadvolBaseModel


FileFormat = Literal["auto", "nexrad_archive", "odim_h5", "cfradial"]
EarthModel = Literal["curved", "flat"]
Interpolation = Literal["nearest", "bilinear"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


# =============================================================================
# Nested Configuration Models
# =============================================================================

class ReaderConfig(RadvolBaseModel):
    """Radar file reader configuration."""
    file_format: FileFormat = "auto"


class SelectionConfig(RadvolBaseModel):
    """Sweep selection configuration."""
    elevation: float = Field(0.5, ge=-2.0, le=90.0, description="Requested elevation in degrees")
    elevation_tolerance: float = Field(0.01, gt=0, description="Accepted distance to nearest sweep")

    @field_validator("elevation", mode="before")
    @classmethod
    def coerce_elevation_to_float(cls, v):
        """Allow int or float for elevation."""
        return float(v)


class ClassifierConfig(RadvolBaseModel):
    """Classifier configuration.

    ``method="threshold"`` selects the rule-based classifier; the remaining
    fields are its thresholds.
    """
    enabled: bool = True
    method: Literal["threshold"] = "threshold"
    timeout_sec: Optional[float] = Field(60.0, gt=0)
    dbz_min: float = Field(5.0, description="Reflectivity below this is background, dBZ")
    rhohv_low: float = Field(0.85, ge=0, le=1.0)
    rhohv_high: float = Field(0.97, ge=0, le=1.0)
    weather_threshold: float = Field(0.5, ge=0, le=1.0)
    min_cell_gates: int = Field(10, ge=1)
    dilation_gates: int = Field(2, ge=0)

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method_name(cls, v):
        """Normalize method names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v

    @model_validator(mode="after")
    def check_rhohv_ramp(self):
        if self.rhohv_low >= self.rhohv_high:
            raise ValueError(
                f"rhohv_low ({self.rhohv_low}) must be below rhohv_high ({self.rhohv_high})"
            )
        return self


class MaskingConfig(RadvolBaseModel):
    """Conditional masking configuration.

    Every listed parameter gets a ``{name}{suffix}`` copy in which bins with
    ``predicate_param >= threshold`` are no-data.
    """
    enabled: bool = True
    predicate_param: str = "CELL"
    threshold: float = 1.0
    parameters: list[str] = Field(default_factory=lambda: ["DBZH", "RHOHV", "VRADH"])
    suffix: str = Field("_clean", min_length=1)


class ProjectorConfig(RadvolBaseModel):
    """PPI projection configuration."""
    max_range: float = Field(150000.0, gt=0, description="Raster half-width in metres")
    resolution: float = Field(500.0, gt=0, description="Raster cell size in metres")
    earth_model: EarthModel = "curved"
    interpolation: Interpolation = "nearest"
    workers: int = Field(1, ge=1, le=64)
    effective_radius_factor: float = Field(4.0 / 3.0, gt=0)
    parameters: Optional[list[str]] = Field(
        default_factory=lambda: ["DBZH", "DBZH_clean", "RHOHV", "VRADH", "CELL"],
        description="Parameters to project; None projects every parameter",
    )

    @field_validator("earth_model", "interpolation", mode="before")
    @classmethod
    def normalize_names(cls, v):
        if isinstance(v, str):
            return v.lower().strip()
        return v


class VisualizationConfig(RadvolBaseModel):
    """Visualization settings."""
    enabled: bool = False
    dpi: int = Field(150, ge=50)
    figsize: tuple[float, float] = (14.0, 6.5)
    output_format: Literal["png", "pdf", "jpeg"] = "png"
    parameters: list[str] = Field(default_factory=lambda: ["DBZH", "DBZH_clean"])
    range_rings_km: list[float] = Field(default_factory=lambda: [50.0, 100.0, 150.0])


class OutputConfig(RadvolBaseModel):
    """Output file configuration."""
    save_netcdf: bool = True
    output_dir: Optional[str] = None
    complevel: int = Field(4, ge=0, le=9)


class LoggingConfig(RadvolBaseModel):
    """Logging configuration."""
    level: LogLevel = "INFO"


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(RadvolBaseModel):
    """Complete expert configuration with all defaults.

    This is the single source of truth for all pipeline parameters.
    Every tunable parameter MUST have a default here.

    Usage
    -----
    This config is NOT used directly by runtime code. It serves as the
    base layer in config resolution:

        internal_cfg = resolve_config(param_cfg, user_cfg, cli_cfg)

    Runtime code only sees InternalConfig.
    """

    reader: ReaderConfig = Field(default_factory=ReaderConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    masking: MaskingConfig = Field(default_factory=MaskingConfig)
    projector: ProjectorConfig = Field(default_factory=ProjectorConfig)
    visualization: VisualizationConfig = Field(default_factory=VisualizationConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
