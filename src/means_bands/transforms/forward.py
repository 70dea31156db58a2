"""Forward transforms applied to raw data before it enters the model."""

from __future__ import annotations

import numpy as np
import polars as pl
from numpy.typing import ArrayLike

from ..errors import PopulationLookupError, PreconditionError


def _column(df: pl.DataFrame, col: str) -> np.ndarray:
    if col not in df.columns:
        raise PreconditionError(f'Column {col!r} not found. Available: {df.columns}')
    return df[col].to_numpy().astype(float)


def percapita(df: pl.DataFrame, col: str, population_mnemonic: str | None) -> np.ndarray:
    """Convert column ``col`` of ``df`` to a per-capita value.

    Raises
    ------
    PopulationLookupError
        If no population mnemonic is given or it is not a column of ``df``.
    """
    if population_mnemonic is None:
        raise PopulationLookupError('No population mnemonic provided', variable=col)
    if population_mnemonic not in df.columns:
        raise PopulationLookupError(
            f'Population mnemonic {population_mnemonic!r} not found in data', variable=col
        )
    return _column(df, col) / _column(df, population_mnemonic)


def nominal_to_real(df: pl.DataFrame, col: str, deflator_mnemonic: str = 'GDPCTPI') -> np.ndarray:
    """Deflate nominal column ``col`` by ``deflator_mnemonic`` (FRED GDP deflator by default)."""
    return _column(df, col) / _column(df, deflator_mnemonic)


def difflog(x: ArrayLike) -> np.ndarray:
    """Log first difference; the first period is NaN."""
    x = np.asarray(x, dtype=np.float64)
    if x.size == 0:
        return x.copy()
    return np.concatenate([[np.nan], np.diff(np.log(x))])


def oneqtrpctchange(x: ArrayLike) -> np.ndarray:
    """Quarter-to-quarter percent change (100 times the log difference)."""
    return 100 * difflog(x)


def hpadjust(
    df: pl.DataFrame,
    col: str,
    filtered_mnemonic: str = 'filtered_population_growth',
    unfiltered_mnemonic: str = 'unfiltered_population_growth',
) -> np.ndarray:
    """Compensate ``col`` for the gap between unfiltered and filtered population growth."""
    return _column(df, col) + 100 * (
        _column(df, unfiltered_mnemonic) - _column(df, filtered_mnemonic)
    )
