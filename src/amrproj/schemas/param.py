"""ParamConfig: Expert defaults for amrproj projections.

This module defines the complete default configuration. ALL projection
parameters must have defaults here. No runtime code should define
fallback values - this is the single source of truth for defaults.

Runtime code NEVER reads from ParamConfig directly - it only receives InternalConfig.
"""

from typing import Literal, Optional, Union
from pydantic import Field, field_validator
from amrproj.schemas.base import AmrprojBaseModel


CENTER_SYMBOLS = ("bc", "boxcenter")


def normalize_center(v, allow_none: bool = False):
    """Expand a one-element center to three axes and lowercase symbols."""
    if v is None:
        return v
    if isinstance(v, (str, int, float)):
        v = [v]
    v = list(v)
    if len(v) == 1:
        v = v * 3
    if len(v) != 3:
        raise ValueError(f"center needs 1 or 3 entries, got {len(v)}")
    out = []
    for item in v:
        if isinstance(item, str):
            item = item.strip().lower().lstrip(":")
            if item not in CENTER_SYMBOLS:
                raise ValueError(
                    f"unknown center symbol '{item}', expected one of {CENTER_SYMBOLS}"
                )
        elif item is None and not allow_none:
            raise ValueError("center entries cannot be None")
        out.append(item)
    return out


def normalize_token(v):
    """Lowercase option tokens and drop a leading ':'."""
    if isinstance(v, str):
        return v.strip().lower().lstrip(":")
    return v


# =============================================================================
# Nested Configuration Models
# =============================================================================

class MapConfig(AmrprojBaseModel):
    """Output map geometry."""
    direction: str = "z"
    res: Optional[float] = Field(None, gt=0, description="Pixels across the full box")
    pxsize: Optional[float] = Field(None, gt=0, description="Pixel size in pxsize_unit")
    pxsize_unit: str = "standard"
    lmax: Optional[int] = Field(None, ge=0, description="Level that sets the default res")

    @field_validator("direction", mode="before")
    @classmethod
    def normalize_direction(cls, v):
        """Accept 'Z', ':z' and friends."""
        return normalize_token(v)


class WeightingConfig(AmrprojBaseModel):
    """Weighting scheme and aggregation mode."""
    scheme: Literal["mass", "volume"] = "mass"
    unit: str = "standard"
    mode: Literal["average", "sum"] = "average"

    @field_validator("scheme", mode="before")
    @classmethod
    def normalize_scheme(cls, v):
        return normalize_token(v)

    @field_validator("mode", mode="before")
    @classmethod
    def normalize_mode(cls, v):
        """'standard' is the historical name of the weighted average."""
        v = normalize_token(v)
        if v == "standard":
            return "average"
        return v


class RegionConfig(AmrprojBaseModel):
    """Sub-volume selection and map centering."""
    xrange: tuple[Optional[float], Optional[float]] = (None, None)
    yrange: tuple[Optional[float], Optional[float]] = (None, None)
    zrange: tuple[Optional[float], Optional[float]] = (None, None)
    center: list[Union[float, str]] = Field(default_factory=lambda: [0.0, 0.0, 0.0])
    range_unit: str = "standard"
    data_center: list[Optional[Union[float, str]]] = Field(
        default_factory=lambda: [None, None, None],
        description="None entries fall back to center",
    )
    data_center_unit: str = "standard"

    @field_validator("center", mode="before")
    @classmethod
    def normalize_center_field(cls, v):
        return normalize_center(v)

    @field_validator("data_center", mode="before")
    @classmethod
    def normalize_data_center_field(cls, v):
        return normalize_center(v, allow_none=True)


class RasterizerConfig(AmrprojBaseModel):
    """Area-overlap rasterizer strategy selection."""
    strategy: Literal["auto", "direct", "binned"] = "auto"
    binned_min_cells: int = Field(50000, ge=0)
    binned_min_pixels: int = Field(10000, ge=0)
    min_bin_size: int = Field(8, ge=1)

    @field_validator("strategy", mode="before")
    @classmethod
    def normalize_strategy(cls, v):
        return normalize_token(v)


class ExecutionConfig(AmrprojBaseModel):
    """Per-level worker settings."""
    max_workers: int = Field(1, ge=1)
    show_progress: bool = False


class VarNamesConfig(AmrprojBaseModel):
    """Hydro column name mappings."""
    density: str = "rho"
    vx: str = "vx"
    vy: str = "vy"
    vz: str = "vz"
    pressure: str = "p"


class GlobalConfig(AmrprojBaseModel):
    """Global projection settings."""
    var_names: VarNamesConfig = Field(default_factory=VarNamesConfig)


class LoggingConfig(AmrprojBaseModel):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    verbose: bool = False

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(AmrprojBaseModel):
    """Expert configuration with complete defaults.

    Every field that runtime code reads is present here with a default.
    UserConfig overrides are deep-merged on top of this by resolve_config().
    """

    map: MapConfig = Field(default_factory=MapConfig)
    weighting: WeightingConfig = Field(default_factory=WeightingConfig)
    region: RegionConfig = Field(default_factory=RegionConfig)
    rasterizer: RasterizerConfig = Field(default_factory=RasterizerConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = AmrprojBaseModel.model_config.copy()
    model_config.update({"populate_by_name": True})
