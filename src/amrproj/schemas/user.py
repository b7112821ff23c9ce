"""UserConfig: Forgiving, minimal per-call projection options.

This schema accepts the options a caller passes to ``projection()`` in a
variety of formats, with aliases for common spellings (e.g. ``RES`` ->
``res``, ``weighting=["mass", "Msol"]`` -> scheme plus unit).

UserConfig is intentionally minimal - callers only specify what they want
to override from the expert defaults.
"""

from typing import Any, Optional, Union
from pydantic import Field, field_validator, model_validator
from amrproj.schemas.base import AmrprojBaseModel
from amrproj.schemas.param import normalize_center, normalize_token


class UserRasterizerConfig(AmrprojBaseModel):
    """User-facing rasterizer config."""
    strategy: Optional[str] = None
    binned_min_cells: Optional[int] = None
    binned_min_pixels: Optional[int] = None
    min_bin_size: Optional[int] = None

    @field_validator("strategy", mode="before")
    @classmethod
    def normalize_strategy(cls, v):
        return normalize_token(v)


class UserExecutionConfig(AmrprojBaseModel):
    """User-facing execution config."""
    max_workers: Optional[int] = None
    show_progress: Optional[bool] = None


class UserGlobalConfig(AmrprojBaseModel):
    """User-facing global config."""
    var_names: Optional[dict[str, str]] = None


class UserLoggingConfig(AmrprojBaseModel):
    """User-facing logging config."""
    level: Optional[str] = None
    verbose: Optional[bool] = None

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v


class UserConfig(AmrprojBaseModel):
    """Per-call projection options.

    Minimal, forgiving, and uses common aliases. Callers only specify
    what they want to override from ParamConfig defaults.

    Usage
    -----
        user_cfg = UserConfig(
            res=256,
            direction="x",
            weighting=["mass", "Msol"],
            xrange=[-10, 10],
            center=["bc"],
            range_unit="kpc",
        )

        internal = resolve_config(param_cfg, user_cfg)
    """

    # Map geometry (flat aliases)
    res: Optional[float] = Field(None, alias="RES")
    pxsize: Optional[float] = Field(None, alias="PXSIZE")
    pxsize_unit: Optional[str] = None
    direction: Optional[str] = Field(None, alias="DIRECTION")
    lmax: Optional[int] = Field(None, alias="LMAX")

    # Weighting (flat aliases)
    weighting: Optional[str] = Field(None, alias="WEIGHTING")
    weight_unit: Optional[str] = None
    mode: Optional[str] = Field(None, alias="MODE")

    # Region (flat aliases)
    xrange: Optional[tuple[Optional[float], Optional[float]]] = None
    yrange: Optional[tuple[Optional[float], Optional[float]]] = None
    zrange: Optional[tuple[Optional[float], Optional[float]]] = None
    center: Optional[list[Union[float, str]]] = None
    range_unit: Optional[str] = None
    data_center: Optional[list[Optional[Union[float, str]]]] = None
    data_center_unit: Optional[str] = None

    # Execution and logging (flat aliases)
    strategy: Optional[str] = None
    max_workers: Optional[int] = None
    show_progress: Optional[bool] = None
    verbose: Optional[bool] = Field(None, alias="VERBOSE")
    density_var: Optional[str] = None

    # Nested overrides (advanced users)
    rasterizer: Optional[UserRasterizerConfig] = None
    execution: Optional[UserExecutionConfig] = None
    global_: Optional[UserGlobalConfig] = Field(None, alias="global")
    logging: Optional[UserLoggingConfig] = None

    model_config = AmrprojBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown legacy keys)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @model_validator(mode="before")
    @classmethod
    def split_value_unit_pairs(cls, data: Any):
        """Split ``pxsize=[value, unit]`` and ``weighting=[scheme, unit]``."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key, unit_key in (("pxsize", "pxsize_unit"), ("PXSIZE", "pxsize_unit"),
                              ("weighting", "weight_unit"), ("WEIGHTING", "weight_unit")):
            value = data.get(key)
            if isinstance(value, (list, tuple)):
                if len(value) not in (1, 2):
                    raise ValueError(f"{key} expects [value] or [value, unit], got {value!r}")
                data[key] = value[0]
                if len(value) == 2 and data.get(unit_key) is None:
                    data[unit_key] = value[1]
        return data

    @field_validator("direction", "weighting", "strategy", mode="before")
    @classmethod
    def normalize_tokens(cls, v):
        """Normalize option tokens to lowercase."""
        return normalize_token(v)

    @field_validator("mode", mode="before")
    @classmethod
    def normalize_mode(cls, v):
        """'standard' is accepted as the weighted average."""
        v = normalize_token(v)
        if v == "standard":
            return "average"
        return v

    @field_validator("center", mode="before")
    @classmethod
    def normalize_center_field(cls, v):
        return normalize_center(v)

    @field_validator("data_center", mode="before")
    @classmethod
    def normalize_data_center_field(cls, v):
        return normalize_center(v, allow_none=True)

    @field_validator("pxsize_unit", "weight_unit", "range_unit", "data_center_unit",
                     mode="before")
    @classmethod
    def normalize_unit_names(cls, v):
        """Units may be passed as ':kpc' style symbols."""
        if isinstance(v, str):
            return v.strip().lstrip(":")
        return v

    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        # Map section
        map_cfg = {}
        if self.res is not None:
            map_cfg["res"] = self.res
        if self.pxsize is not None:
            map_cfg["pxsize"] = self.pxsize
        if self.pxsize_unit is not None:
            map_cfg["pxsize_unit"] = self.pxsize_unit
        if self.direction is not None:
            map_cfg["direction"] = self.direction
        if self.lmax is not None:
            map_cfg["lmax"] = self.lmax
        if map_cfg:
            overrides["map"] = map_cfg

        # Weighting section
        weighting = {}
        if self.weighting is not None:
            weighting["scheme"] = self.weighting
        if self.weight_unit is not None:
            weighting["unit"] = self.weight_unit
        if self.mode is not None:
            weighting["mode"] = self.mode
        if weighting:
            overrides["weighting"] = weighting

        # Region section
        region = {}
        for key in ("xrange", "yrange", "zrange", "center", "range_unit",
                    "data_center", "data_center_unit"):
            value = getattr(self, key)
            if value is not None:
                region[key] = value
        if region:
            overrides["region"] = region

        # Rasterizer section
        rasterizer = {}
        if self.strategy is not None:
            rasterizer["strategy"] = self.strategy
        if self.rasterizer is not None:
            rasterizer.update(self.rasterizer.model_dump(exclude_none=True))
        if rasterizer:
            overrides["rasterizer"] = rasterizer

        # Execution section
        execution = {}
        if self.max_workers is not None:
            execution["max_workers"] = self.max_workers
        if self.show_progress is not None:
            execution["show_progress"] = self.show_progress
        if self.execution is not None:
            execution.update(self.execution.model_dump(exclude_none=True))
        if execution:
            overrides["execution"] = execution

        # Global section
        global_cfg = {}
        if self.global_ is not None and self.global_.var_names is not None:
            global_cfg["var_names"] = dict(self.global_.var_names)
        if self.density_var is not None:
            var_names = global_cfg.get("var_names", {})
            var_names["density"] = self.density_var
            global_cfg["var_names"] = var_names
        if global_cfg:
            overrides["global"] = global_cfg

        # Logging section
        logging_cfg = {}
        if self.verbose is not None:
            logging_cfg["verbose"] = self.verbose
        if self.logging is not None:
            logging_cfg.update(self.logging.model_dump(exclude_none=True))
        if logging_cfg:
            overrides["logging"] = logging_cfg

        return overrides
