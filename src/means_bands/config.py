# ---------------------------------------------------------------------------
# means_bands.config — Run configuration and project constants
# ---------------------------------------------------------------------------
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

BASE_DIR = Path(__file__).resolve().parents[2]  # repo root
DATA_DIR = BASE_DIR / "data"
OUTPUT_DIR = BASE_DIR / "output"

# ---------------------------------------------------------------------------
# Means and bands constants
# ---------------------------------------------------------------------------

DEFAULT_DENSITY_BANDS: list[float] = [0.5, 0.6, 0.7, 0.8, 0.9]

# Conventional smoothing parameter for quarterly data
HP_LAMBDA_QUARTERLY = 1600.0

# Input types that carry a single parameter draw; only the median band is kept
SINGLE_DRAW_INPUT_TYPES = frozenset({"init", "mode", "mean"})

CLASSES = ("obs", "pseudo")
BASE_PRODUCTS = ("hist", "forecast", "trend", "dettrend", "shockdec")
FOUR_QUARTER_PRODUCTS = ("hist4q", "forecast4q")
PRODUCTS = BASE_PRODUCTS + FOUR_QUARTER_PRODUCTS

# Column holding filtered population growth once transform_population_data
# has run
POPULATION_GROWTH_COLUMN = "population_growth"


# ---------------------------------------------------------------------------
# Run configuration
# ---------------------------------------------------------------------------


@dataclass
class MeansBandsConfig:
    """Settings for one means-and-bands run.

    Parameters
    ----------
    input_type : str
        Which parameter draws produced the forecast output (``'full'``,
        ``'subset'``, ``'mode'``, ...).
    cond_type : str
        Conditioning type of the forecast (``'none'``, ``'semi'``, ``'full'``).
    density_bands : list[float]
        Probability levels in (0, 1) for which bands are computed.
    population_mnemonic : str, optional
        Column holding population levels in the population tables.
    minimize : bool
        If True, bands are highest-density intervals rather than
        equal-tailed quantiles.
    on_error : ``'raise'`` | ``'skip'``
        Whether a configuration error for one output variable aborts the run
        or is recorded and skipped.
    """

    input_type: str = "full"
    cond_type: str = "none"
    density_bands: list[float] = field(default_factory=lambda: list(DEFAULT_DENSITY_BANDS))
    population_mnemonic: str | None = None
    minimize: bool = False
    on_error: Literal["raise", "skip"] = "raise"

