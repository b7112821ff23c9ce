"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully validated,
normalized, and contains NO optional fields that processing code depends on
beyond the documented ``None`` sentinels (``res``, ``pxsize``, ``lmax`` and
per-axis ``data_center`` entries, which are resolved against the cell table).
"""

from typing import Literal, Optional, Union
from pydantic import Field, ConfigDict
from amrproj.schemas.base import AmrprojBaseModel


# =============================================================================
# Nested Configuration Models (Runtime)
# =============================================================================

class InternalMapConfig(AmrprojBaseModel):
    """Runtime map geometry."""
    direction: str
    res: Optional[float]
    pxsize: Optional[float]
    pxsize_unit: str
    lmax: Optional[int]


class InternalWeightingConfig(AmrprojBaseModel):
    """Runtime weighting configuration."""
    scheme: Literal["mass", "volume"]
    unit: str
    mode: Literal["average", "sum"]


class InternalRegionConfig(AmrprojBaseModel):
    """Runtime region selection."""
    xrange: tuple[Optional[float], Optional[float]]
    yrange: tuple[Optional[float], Optional[float]]
    zrange: tuple[Optional[float], Optional[float]]
    center: tuple[Union[float, str], Union[float, str], Union[float, str]]
    range_unit: str
    data_center: tuple[
        Optional[Union[float, str]], Optional[Union[float, str]], Optional[Union[float, str]]
    ]
    data_center_unit: str


class InternalRasterizerConfig(AmrprojBaseModel):
    """Runtime rasterizer configuration."""
    strategy: Literal["auto", "direct", "binned"]
    binned_min_cells: int
    binned_min_pixels: int
    min_bin_size: int = Field(ge=1)


class InternalExecutionConfig(AmrprojBaseModel):
    """Runtime execution configuration."""
    max_workers: int = Field(ge=1)
    show_progress: bool


class InternalVarNamesConfig(AmrprojBaseModel):
    """Runtime hydro column names."""
    density: str
    vx: str
    vy: str
    vz: str
    pressure: str


class InternalGlobalConfig(AmrprojBaseModel):
    """Runtime global settings."""
    var_names: InternalVarNamesConfig


class InternalLoggingConfig(AmrprojBaseModel):
    """Runtime logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    verbose: bool


# =============================================================================
# Main InternalConfig
# =============================================================================

class InternalConfig(AmrprojBaseModel):
    """Authoritative runtime configuration.

    This is the ONLY configuration schema that processing code sees.
    It is fully validated and immutable.

    Usage
    -----
    Runtime modules receive InternalConfig and access fields directly:

        def __init__(self, config: InternalConfig):
            self.mode = config.weighting.mode  # NOT .get()
            self.density_var = config.global_.var_names.density

    Rules
    -----
    - NO .get() calls
    - NO fallback defaults
    - NO validation

    All of that happens during config resolution, not in runtime code.
    """

    map: InternalMapConfig
    weighting: InternalWeightingConfig
    region: InternalRegionConfig
    rasterizer: InternalRasterizerConfig
    execution: InternalExecutionConfig
    global_: InternalGlobalConfig = Field(alias="global")
    logging: InternalLoggingConfig

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,  # Immutable after construction
        populate_by_name=True,  # Allow both 'global' and 'global_'
    )
