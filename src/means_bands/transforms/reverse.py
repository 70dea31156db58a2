"""Reverse transforms: model units back to reportable percent changes.

Every function accepts either a single path of length ``nperiods`` or an
``ndraws x nperiods`` matrix of draws. Internally a path is the one-draw case
of the matrix form, and the output keeps the caller's dimensionality.

Log levels and log growth rates are expected in percent units (100 times the
natural log); population growth rates are plain log differences. Outputs are
in percent.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike

from ..errors import LengthMismatchError

GROWTH_LOOKBACK = 3
LEVEL_LOOKBACK = 4


def _as_draws(y: ArrayLike) -> tuple[np.ndarray, bool]:
    """Return ``y`` as an ``ndraws x nperiods`` float array and whether it was a path."""
    arr = np.asarray(y, dtype=np.float64)
    if arr.ndim == 1:
        return arr[np.newaxis, :], True
    if arr.ndim != 2:
        raise ValueError(f'Expected a path or a draws x periods matrix, got ndim={arr.ndim}')
    return arr, False


def _restore(out: np.ndarray, was_path: bool) -> np.ndarray:
    return out[0] if was_path else out


def _as_vector(x: ArrayLike) -> np.ndarray:
    return np.ravel(np.asarray(x, dtype=np.float64))


def _check_length(x: np.ndarray, expected: int, name: str) -> None:
    if len(x) != expected:
        raise LengthMismatchError(f'Length of {name} ({len(x)}) must be {expected}')


def _rolling_4q_sum(x: np.ndarray) -> np.ndarray:
    """Sum of four consecutive periods along the last axis (length shrinks by 3)."""
    return x[..., :-3] + x[..., 1:-2] + x[..., 2:-1] + x[..., 3:]


# =========================================================================
# Frequency rescaling
# =========================================================================


def identity(y: ArrayLike) -> np.ndarray:
    return np.asarray(y, dtype=np.float64)


def annualtoquarter(y: ArrayLike) -> np.ndarray:
    """Convert from annual to quarterly frequency by dividing by 4."""
    return np.asarray(y, dtype=np.float64) / 4


def quartertoannual(y: ArrayLike) -> np.ndarray:
    """Convert from quarterly to annual frequency by multiplying by 4."""
    return 4 * np.asarray(y, dtype=np.float64)


def quartertoannualpercent(y: ArrayLike) -> np.ndarray:
    """Convert from quarterly to annual frequency in percent (multiply by 400)."""
    return 400 * np.asarray(y, dtype=np.float64)


# =========================================================================
# Annualized quarter-over-quarter
# =========================================================================


def loggrowthtopct_annualized(y: ArrayLike) -> np.ndarray:
    """Log growth rates to annualized quarter-over-quarter percent change."""
    y = np.asarray(y, dtype=np.float64)
    return 100.0 * (np.exp(y / 100.0) ** 4 - 1.0)


def loggrowthtopct_annualized_percapita(y: ArrayLike, pop_growth: ArrayLike) -> np.ndarray:
    """Log per-capita growth rates to annualized aggregate percent change.

    Only appropriate for aggregate flow variables (output, consumption,
    investment) and the GDP deflator.

    Parameters
    ----------
    y : array_like
        Path of length ``nperiods`` or ``ndraws x nperiods`` matrix.
    pop_growth : array_like
        Length ``nperiods`` log population growth rates, shared by all draws.
    """
    draws, was_path = _as_draws(y)
    pop_growth = _as_vector(pop_growth)
    _check_length(pop_growth, draws.shape[1], 'pop_growth')

    out = 100.0 * (np.exp(draws / 100.0 + pop_growth[np.newaxis, :]) ** 4 - 1.0)
    return _restore(out, was_path)


def _lag_one(draws: np.ndarray, y0: float) -> np.ndarray:
    """Previous-period values for each draw, seeded with ``y0``."""
    y_t1 = np.empty_like(draws)
    y_t1[:, 0] = y0
    y_t1[:, 1:] = draws[:, :-1]
    return y_t1


def logleveltopct_annualized(y: ArrayLike, y0: float) -> np.ndarray:
    """Log levels to annualized quarter-over-quarter percent change.

    Parameters
    ----------
    y : array_like
        Path of length ``nperiods`` or ``ndraws x nperiods`` matrix.
    y0 : float
        Last level before the first period of ``y``; needed for the first
        period's change.
    """
    draws, was_path = _as_draws(y)
    y_t1 = _lag_one(draws, float(y0))

    out = 100.0 * (np.exp(draws / 100.0 - y_t1 / 100.0) ** 4 - 1.0)
    return _restore(out, was_path)


def logleveltopct_annualized_percapita(
    y: ArrayLike, y0: float, pop_growth: ArrayLike
) -> np.ndarray:
    """Per-capita log levels to annualized aggregate percent change.

    Usually applied to labor supply (hours worked) only.
    """
    draws, was_path = _as_draws(y)
    pop_growth = _as_vector(pop_growth)
    _check_length(pop_growth, draws.shape[1], 'pop_growth')
    y_t1 = _lag_one(draws, float(y0))

    out = 100.0 * (
        np.exp(draws / 100.0 - y_t1 / 100.0 + pop_growth[np.newaxis, :]) ** 4 - 1.0
    )
    return _restore(out, was_path)


# =========================================================================
# Four-quarter
# =========================================================================


def prepend_data(y: ArrayLike, data: ArrayLike) -> np.ndarray:
    """Prepend ``data`` to ``y``; a matrix gets the same prefix on every draw.

    Parameters
    ----------
    y : array_like
        Path or ``ndraws x nperiods`` matrix.
    data : array_like
        Values to place before the first period.
    """
    draws, was_path = _as_draws(y)
    data = _as_vector(data)
    prefix = np.broadcast_to(data, (draws.shape[0], len(data)))
    return _restore(np.hstack([prefix, draws]), was_path)


def loggrowthtopct_4q(y: ArrayLike, data: ArrayLike) -> np.ndarray:
    """Log growth rates to four-quarter percent change.

    Parameters
    ----------
    y : array_like
        Path ``[y_t, ..., y_{t+n-1}]`` or ``ndraws x n`` matrix.
    data : array_like
        ``[y_{t-3}, y_{t-2}, y_{t-1}]``, needed for the first three periods.
    """
    data = _as_vector(data)
    _check_length(data, GROWTH_LOOKBACK, 'data')

    draws, was_path = _as_draws(y)
    y_4q = _rolling_4q_sum(prepend_data(draws, data))

    return _restore(100.0 * (np.exp(y_4q / 100.0) - 1.0), was_path)


def loggrowthtopct_4q_percapita(
    y: ArrayLike, data: ArrayLike, pop_growth: ArrayLike
) -> np.ndarray:
    """Log per-capita growth rates to aggregate four-quarter percent change.

    Only appropriate for output, consumption, investment and the GDP deflator.

    Parameters
    ----------
    y : array_like
        Path of length ``n`` or ``ndraws x n`` matrix.
    data : array_like
        The three periods preceding ``y``.
    pop_growth : array_like
        Length ``n + 3`` log population growth rates: the three periods
        preceding ``y`` followed by the ``n`` periods of ``y``.
    """
    data = _as_vector(data)
    _check_length(data, GROWTH_LOOKBACK, 'data')

    draws, was_path = _as_draws(y)
    pop_growth = _as_vector(pop_growth)
    _check_length(pop_growth, draws.shape[1] + GROWTH_LOOKBACK, 'pop_growth')

    y_4q = _rolling_4q_sum(prepend_data(draws, data))
    pop_growth_4q = _rolling_4q_sum(pop_growth)

    out = 100.0 * (np.exp(y_4q / 100.0 + pop_growth_4q[np.newaxis, :]) - 1.0)
    return _restore(out, was_path)


def _lag_four(draws: np.ndarray, data: np.ndarray) -> np.ndarray:
    """Values four periods back for each draw, seeded with ``data``."""
    nperiods = draws.shape[1]
    return prepend_data(draws, data)[:, :nperiods]


def logleveltopct_4q(y: ArrayLike, data: ArrayLike) -> np.ndarray:
    """Log levels to four-quarter percent change.

    Parameters
    ----------
    y : array_like
        Path ``[y_t, ..., y_{t+n-1}]`` or ``ndraws x n`` matrix.
    data : array_like
        ``[y_{t-4}, y_{t-3}, y_{t-2}, y_{t-1}]``.
    """
    data = _as_vector(data)
    _check_length(data, LEVEL_LOOKBACK, 'data')

    draws, was_path = _as_draws(y)
    y_4q = draws - _lag_four(draws, data)

    return _restore(100.0 * (np.exp(y_4q / 100.0) - 1.0), was_path)


def logleveltopct_4q_percapita(
    y: ArrayLike, data: ArrayLike, pop_growth: ArrayLike
) -> np.ndarray:
    """Per-capita log levels to aggregate four-quarter percent change.

    Usually applied to labor supply (hours worked) only. ``pop_growth`` has
    length ``n + 3`` as in :func:`loggrowthtopct_4q_percapita`.
    """
    data = _as_vector(data)
    _check_length(data, LEVEL_LOOKBACK, 'data')

    draws, was_path = _as_draws(y)
    pop_growth = _as_vector(pop_growth)
    _check_length(pop_growth, draws.shape[1] + GROWTH_LOOKBACK, 'pop_growth')

    y_4q = draws - _lag_four(draws, data)
    pop_growth_4q = _rolling_4q_sum(pop_growth)

    out = 100.0 * (np.exp(y_4q / 100.0 + pop_growth_4q[np.newaxis, :]) - 1.0)
    return _restore(out, was_path)
