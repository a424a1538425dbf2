"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully validated,
normalized, and contains NO optional fields that processing code depends on.

All .get() calls, fallback defaults, and validation logic are FORBIDDEN in
runtime code - everything is explicit here.
"""

from typing import Literal, Optional
from pydantic import ConfigDict, Field, model_validator
from radvol.schemas.base import RadvolBaseModel
from radvol.schemas.param import EarthModel, FileFormat, Interpolation, LogLevel


# =============================================================================
# Nested Configuration Models (Runtime)
# =============================================================================

class InternalReaderConfig(RadvolBaseModel):
    """Runtime reader configuration."""
    file_format: FileFormat


class InternalSelectionConfig(RadvolBaseModel):
    """Runtime sweep selection configuration."""
    elevation: float = Field(ge=-2.0, le=90.0)
    elevation_tolerance: float = Field(gt=0)


class InternalClassifierConfig(RadvolBaseModel):
    """Runtime classifier configuration."""
    enabled: bool
    method: Literal["threshold"]
    timeout_sec: Optional[float] = Field(gt=0)
    dbz_min: float
    rhohv_low: float = Field(ge=0, le=1.0)
    rhohv_high: float = Field(ge=0, le=1.0)
    weather_threshold: float = Field(ge=0, le=1.0)
    min_cell_gates: int = Field(ge=1)
    dilation_gates: int = Field(ge=0)

    @model_validator(mode="after")
    def check_rhohv_ramp(self):
        if self.rhohv_low >= self.rhohv_high:
            raise ValueError(
                f"rhohv_low ({self.rhohv_low}) must be below rhohv_high ({self.rhohv_high})"
            )
        return self


class InternalMaskingConfig(RadvolBaseModel):
    """Runtime masking configuration."""
    enabled: bool
    predicate_param: str
    threshold: float
    parameters: list[str]
    suffix: str = Field(min_length=1)


class InternalProjectorConfig(RadvolBaseModel):
    """Runtime projection configuration."""
    max_range: float = Field(gt=0)
    resolution: float = Field(gt=0)
    earth_model: EarthModel
    interpolation: Interpolation
    workers: int = Field(ge=1, le=64)
    effective_radius_factor: float = Field(gt=0)
    parameters: Optional[list[str]]


class InternalVisualizationConfig(RadvolBaseModel):
    """Runtime visualization settings."""
    enabled: bool
    dpi: int = Field(ge=50)
    figsize: tuple[float, float]
    output_format: Literal["png", "pdf", "jpeg"]
    parameters: list[str]
    range_rings_km: list[float]


class InternalOutputConfig(RadvolBaseModel):
    """Runtime output configuration."""
    save_netcdf: bool
    output_dir: Optional[str]
    complevel: int = Field(ge=0, le=9)


class InternalLoggingConfig(RadvolBaseModel):
    """Runtime logging configuration."""
    level: LogLevel


# =============================================================================
# Main InternalConfig
# =============================================================================

class InternalConfig(RadvolBaseModel):
    """Authoritative runtime configuration.

    This is the ONLY configuration schema that processing code sees.
    It is fully validated, immutable, and contains explicit values for
    all parameters.

    Usage
    -----
    Runtime modules receive InternalConfig and access fields directly:

        def __init__(self, config: InternalConfig):
            self.max_range = config.projector.max_range  # NOT .get()

    Rules
    -----
    - NO .get() calls
    - NO fallback defaults
    - NO validation

    All of that happens during config resolution, not in runtime code.
    """

    reader: InternalReaderConfig
    selection: InternalSelectionConfig
    classifier: InternalClassifierConfig
    masking: InternalMaskingConfig
    projector: InternalProjectorConfig
    visualization: InternalVisualizationConfig
    output: InternalOutputConfig
    logging: InternalLoggingConfig

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,  # Immutable after construction
    )
