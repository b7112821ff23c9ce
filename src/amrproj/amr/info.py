"""Simulation metadata consumed by the projection engine."""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class SimInfo(BaseModel):
    """Box size, level span and unit scales of one simulation output.

    ``scale`` maps a unit name to the factor that converts a code-unit
    value into that unit (``value_in_unit = value_code * scale[unit]``).
    Length units are relative to the code length unit, so a box spans
    ``boxlen * scale[unit]`` in that unit.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    boxlen: float = Field(gt=0)
    levelmin: int = Field(ge=0)
    levelmax: int = Field(ge=0)
    gamma: float = Field(5.0 / 3.0, gt=1.0)
    scale: dict[str, float] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_level_span(self):
        if self.levelmin > self.levelmax:
            raise ValueError(
                f"levelmin ({self.levelmin}) exceeds levelmax ({self.levelmax})"
            )
        return self
