"""Root-level pytest fixtures for the amrproj test suite.

Provides shared configuration fixtures following the Pydantic-based
configuration layers, plus small synthetic cell tables.
"""

import pytest

from amrproj.schemas import ParamConfig, UserConfig, resolve_config
from tests.helpers.fake_cells import make_amr_cells, make_uniform_cells


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

@pytest.fixture
def param_config():
    """Expert configuration with all defaults."""
    return ParamConfig()


@pytest.fixture
def internal_config(param_config):
    """Fully validated runtime configuration (no overrides)."""
    return resolve_config(param_config, None)


@pytest.fixture
def make_config(param_config):
    """Factory fixture for creating custom test configs.

    Examples
    --------
    >>> def test_custom_res(make_config):
    ...     config = make_config(res=32, direction="x")
    ...     assert config.map.res == 32.0
    """
    def _make(**user_overrides):
        """Create InternalConfig with user overrides."""
        if user_overrides:
            return resolve_config(param_config, UserConfig(**user_overrides))
        return resolve_config(param_config, None)

    return _make


# =============================================================================
# Cell Table Fixtures
# =============================================================================

@pytest.fixture
def uniform_cells():
    """Level-3 cube, 512 cells, unit density, boxlen 1."""
    return make_uniform_cells(level=3)


@pytest.fixture
def amr_cells():
    """Levels 2 and 3 with one refined octant, random density and velocities."""
    return make_amr_cells(
        coarse=2,
        fine=3,
        fields={"rho": "random", "vx": "random", "vy": "random", "vz": "random"},
    )
