# ---------------------------------------------------------------------------
# means_bands — Means and density bands of DSGE forecast output
# ---------------------------------------------------------------------------
"""Reverse-transform forecast draws into reportable units and summarize them
as per-period means and density bands."""

from .bands import band_column_names, find_density_bands
from .compute import compute_means_bands, compute_means_bands_all, compute_means_bands_shockdec
from .config import (
    BASE_DIR,
    DATA_DIR,
    DEFAULT_DENSITY_BANDS,
    OUTPUT_DIR,
    PRODUCTS,
    MeansBandsConfig,
)
from .errors import (
    ConfigurationError,
    InconsistentDatesError,
    LengthMismatchError,
    MissingResourceError,
    PopulationLookupError,
    PreconditionError,
    UnmappedTransformError,
)
from .filters import hpfilter
from .io import load_forecast_output, load_means_bands, make_draw_reader, save_means_bands
from .meansbands import MeansBands
from .metadata import ForecastMetadata, add_requisite_output_vars, build_y0_indexes
from .population import (
    resize_population_forecast,
    resolve_population_series,
    transform_population_data,
)

__all__ = [
    "BASE_DIR",
    "DATA_DIR",
    "OUTPUT_DIR",
    "DEFAULT_DENSITY_BANDS",
    "PRODUCTS",
    "MeansBandsConfig",
    "band_column_names",
    "find_density_bands",
    "compute_means_bands",
    "compute_means_bands_all",
    "compute_means_bands_shockdec",
    "ConfigurationError",
    "InconsistentDatesError",
    "LengthMismatchError",
    "MissingResourceError",
    "PopulationLookupError",
    "PreconditionError",
    "UnmappedTransformError",
    "hpfilter",
    "load_forecast_output",
    "load_means_bands",
    "make_draw_reader",
    "save_means_bands",
    "MeansBands",
    "ForecastMetadata",
    "add_requisite_output_vars",
    "build_y0_indexes",
    "resize_population_forecast",
    "resolve_population_series",
    "transform_population_data",
]
