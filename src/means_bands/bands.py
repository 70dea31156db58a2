# ---------------------------------------------------------------------------
# means_bands.bands — Density bands across posterior draws
# ---------------------------------------------------------------------------
from __future__ import annotations

from collections.abc import Sequence

import arviz as az
import numpy as np
import polars as pl
from numpy.typing import ArrayLike

from .errors import PreconditionError


def band_column_names(level: float) -> tuple[str, str]:
    """Lower and upper column names for a band, e.g. ``('90.0% LB', '90.0% UB')``."""
    pct = f'{100 * level:.1f}%'
    return f'{pct} LB', f'{pct} UB'


def find_density_bands(
    draws: ArrayLike,
    density_bands: Sequence[float],
    minimize: bool = False,
) -> pl.DataFrame:
    """Per-period density bands of an ``ndraws x nperiods`` matrix.

    Parameters
    ----------
    draws : array_like
        Transformed draws, one row per draw. A 1-D input is one period.
    density_bands : sequence of float
        Probability mass in each band, each in (0, 1).
    minimize : bool
        If True, each band is the highest-density (shortest) interval
        holding the requested mass (``arviz.hdi``). Otherwise the band is
        equal-tailed.

    Returns
    -------
    pl.DataFrame
        One row per period, a lower and an upper column per band.
        Non-finite draws give NaN bounds for that period.
    """
    draws = np.asarray(draws, dtype=np.float64)
    if draws.ndim == 1:
        draws = draws[:, np.newaxis]

    columns: dict[str, np.ndarray] = {}
    for level in density_bands:
        if not 0.0 < level < 1.0:
            raise PreconditionError(f'Density band {level} must be in (0, 1)')

        lb_col, ub_col = band_column_names(level)
        if lb_col in columns:
            raise PreconditionError(
                f'Density band {level} gives the same column names as an earlier band ({lb_col})'
            )
        if minimize:
            lower, upper = _hdi_bounds(draws, level)
        else:
            tail = (1.0 - level) / 2.0
            lower, upper = np.quantile(draws, [tail, 1.0 - tail], axis=0)
        columns[lb_col] = lower
        columns[ub_col] = upper

    return pl.DataFrame(columns)


def _hdi_bounds(draws: np.ndarray, level: float) -> tuple[np.ndarray, np.ndarray]:
    nperiods = draws.shape[1]
    lower = np.full(nperiods, np.nan)
    upper = np.full(nperiods, np.nan)
    for t in range(nperiods):
        column = draws[:, t]
        if not np.all(np.isfinite(column)):
            continue
        lower[t], upper[t] = az.hdi(column, hdi_prob=level)
    return lower, upper
