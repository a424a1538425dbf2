"""UserConfig: Forgiving, minimal user-facing configuration.

This schema accepts user inputs in a variety of formats, with aliases
for common naming patterns (e.g., MAX_RANGE → max_range, ELEVATION → elevation).

UserConfig is intentionally minimal - users only specify what they want
to override from the expert defaults. Validation is lenient to accept
both uppercase and lowercase keys, integers where floats are expected, etc.
"""

from typing import Literal, Optional
from pydantic import Field, field_validator
from radvol.schemas.base import RadvolBaseModel


class UserSelectionConfig(RadvolBaseModel):
    """User-facing sweep selection config."""
    elevation: Optional[float] = None
    elevation_tolerance: Optional[float] = None


class UserClassifierConfig(RadvolBaseModel):
    """User-facing classifier config."""
    enabled: Optional[bool] = None
    method: Optional[str] = None
    timeout_sec: Optional[float] = None
    dbz_min: Optional[float] = None
    rhohv_low: Optional[float] = None
    rhohv_high: Optional[float] = None
    weather_threshold: Optional[float] = None
    min_cell_gates: Optional[int] = None
    dilation_gates: Optional[int] = None

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v):
        """Normalize method names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v


class UserMaskingConfig(RadvolBaseModel):
    """User-facing masking config."""
    enabled: Optional[bool] = None
    predicate_param: Optional[str] = None
    threshold: Optional[float] = None
    parameters: Optional[list[str]] = None
    suffix: Optional[str] = None


class UserProjectorConfig(RadvolBaseModel):
    """User-facing projector config."""
    max_range: Optional[float] = None
    resolution: Optional[float] = None
    earth_model: Optional[str] = None
    interpolation: Optional[str] = None
    workers: Optional[int] = None
    effective_radius_factor: Optional[float] = None
    parameters: Optional[list[str]] = None


class UserVisualizationConfig(RadvolBaseModel):
    """User-facing visualization config."""
    enabled: Optional[bool] = None
    dpi: Optional[int] = None
    figsize: Optional[tuple[float, float]] = None
    output_format: Optional[str] = None
    parameters: Optional[list[str]] = None
    range_rings_km: Optional[list[float]] = None


class UserOutputConfig(RadvolBaseModel):
    """User-facing output config."""
    save_netcdf: Optional[bool] = None
    output_dir: Optional[str] = None
    complevel: Optional[int] = None


class UserConfig(RadvolBaseModel):
    """User-facing configuration schema.

    Minimal, forgiving, and uses common aliases. Users only specify
    what they want to override from ParamConfig defaults.

    This config is converted to internal overrides during resolution.

    Usage
    -----
        user_cfg = UserConfig(
            ELEVATION=1.5,
            MAX_RANGE=100000,
            RESOLUTION=250,
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    # Reader / selection (flat aliases)
    file_format: Optional[str] = Field(None, alias="FILE_FORMAT")
    elevation: Optional[float] = Field(None, alias="ELEVATION")
    elevation_tolerance: Optional[float] = Field(None, alias="ELEVATION_TOLERANCE")

    # Classifier (flat aliases)
    classify: Optional[bool] = Field(None, alias="CLASSIFY")
    classifier_method: Optional[str] = Field(None, alias="CLASSIFIER_METHOD")
    classifier_timeout: Optional[float] = Field(None, alias="CLASSIFIER_TIMEOUT")

    # Masking (flat aliases)
    mask_predicate: Optional[str] = Field(None, alias="MASK_PREDICATE")
    mask_threshold: Optional[float] = Field(None, alias="MASK_THRESHOLD")
    mask_parameters: Optional[list[str]] = Field(None, alias="MASK_PARAMETERS")

    # Projection (flat aliases)
    max_range: Optional[float] = Field(None, alias="MAX_RANGE")
    resolution: Optional[float] = Field(None, alias="RESOLUTION")
    earth_model: Optional[str] = Field(None, alias="EARTH_MODEL")
    interpolation: Optional[str] = Field(None, alias="INTERPOLATION")
    workers: Optional[int] = Field(None, alias="WORKERS")
    parameters: Optional[list[str]] = Field(None, alias="PARAMETERS")

    # Output (flat aliases)
    output_dir: Optional[str] = Field(None, alias="OUTPUT_DIR")
    save_netcdf: Optional[bool] = Field(None, alias="SAVE_NETCDF")
    plot: Optional[bool] = Field(None, alias="PLOT")
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = Field(
        None, alias="LOG_LEVEL"
    )

    # Nested overrides (advanced users)
    selection: Optional[UserSelectionConfig] = None
    classifier: Optional[UserClassifierConfig] = None
    masking: Optional[UserMaskingConfig] = None
    projector: Optional[UserProjectorConfig] = None
    visualization: Optional[UserVisualizationConfig] = None
    output: Optional[UserOutputConfig] = None

    model_config = RadvolBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown keys)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("elevation", "max_range", "resolution", "mask_threshold", mode="before")
    @classmethod
    def coerce_numeric_fields(cls, v):
        """Accept int or float for numeric fields."""
        if v is not None:
            return float(v)
        return v

    @field_validator("file_format", "classifier_method", "earth_model", "interpolation",
                     mode="before")
    @classmethod
    def normalize_names(cls, v):
        """Normalize method names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper().strip()
        return v

    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure.

        Flat aliases are applied first; explicit nested sections win over
        them.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        if self.file_format is not None:
            overrides["reader"] = {"file_format": self.file_format}

        # Selection section
        selection = {}
        if self.elevation is not None:
            selection["elevation"] = self.elevation
        if self.elevation_tolerance is not None:
            selection["elevation_tolerance"] = self.elevation_tolerance
        if self.selection is not None:
            selection.update(self.selection.model_dump(exclude_none=True))
        if selection:
            overrides["selection"] = selection

        # Classifier section
        classifier = {}
        if self.classify is not None:
            classifier["enabled"] = self.classify
        if self.classifier_method is not None:
            classifier["method"] = self.classifier_method
        if self.classifier_timeout is not None:
            classifier["timeout_sec"] = self.classifier_timeout
        if self.classifier is not None:
            classifier.update(self.classifier.model_dump(exclude_none=True))
        if classifier:
            overrides["classifier"] = classifier

        # Masking section
        masking = {}
        if self.mask_predicate is not None:
            masking["predicate_param"] = self.mask_predicate
        if self.mask_threshold is not None:
            masking["threshold"] = self.mask_threshold
        if self.mask_parameters is not None:
            masking["parameters"] = self.mask_parameters
        if self.masking is not None:
            masking.update(self.masking.model_dump(exclude_none=True))
        if masking:
            overrides["masking"] = masking

        # Projector section
        projector = {}
        if self.max_range is not None:
            projector["max_range"] = self.max_range
        if self.resolution is not None:
            projector["resolution"] = self.resolution
        if self.earth_model is not None:
            projector["earth_model"] = self.earth_model
        if self.interpolation is not None:
            projector["interpolation"] = self.interpolation
        if self.workers is not None:
            projector["workers"] = self.workers
        if self.parameters is not None:
            projector["parameters"] = self.parameters
        if self.projector is not None:
            projector.update(self.projector.model_dump(exclude_none=True))
        if projector:
            overrides["projector"] = projector

        # Visualization section
        visualization = {}
        if self.plot is not None:
            visualization["enabled"] = self.plot
        if self.visualization is not None:
            visualization.update(self.visualization.model_dump(exclude_none=True))
        if visualization:
            overrides["visualization"] = visualization

        # Output section
        output = {}
        if self.output_dir is not None:
            output["output_dir"] = str(self.output_dir)
        if self.save_netcdf is not None:
            output["save_netcdf"] = self.save_netcdf
        if self.output is not None:
            output.update(self.output.model_dump(exclude_none=True))
        if output:
            overrides["output"] = output

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
