# ---------------------------------------------------------------------------
# means_bands.filters — Hodrick-Prescott trend/cycle decomposition
# ---------------------------------------------------------------------------
from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike
from scipy import sparse
from scipy.sparse.linalg import spsolve

from .errors import PreconditionError


def hpfilter(y: ArrayLike, lam: float) -> tuple[np.ndarray, np.ndarray]:
    """Apply the Hodrick-Prescott filter.

    Consecutive missing values at the beginning or end of the series are
    excluded from the filtering and returned as NaN in both components. A
    missing value inside the series is not handled: the whole trend comes
    back NaN.

    Parameters
    ----------
    y : array_like
        Series to filter; anything that flattens to one dimension.
    lam : float
        Smoothing parameter (1600 for quarterly data).

    Returns
    -------
    trend, cycle : np.ndarray
        Arrays of the same length as ``y`` with ``y = trend + cycle``.

    Raises
    ------
    PreconditionError
        If ``y`` is empty or every value is missing.

    References
    ----------
    Hodrick, R. and Prescott, E. C. (1997). "Postwar U.S. Business Cycles:
    An Empirical Investigation". Journal of Money, Credit, and Banking
    29 (1): 1-16.
    """
    y = np.ravel(np.asarray(y, dtype=np.float64))
    n = len(y)

    present = np.where(~np.isnan(y))[0]
    if len(present) == 0:
        raise PreconditionError(f'Cannot HP-filter a series with only missing values (length {n})')

    # Leading and trailing NaN runs
    i, j = present[0], present[-1] + 1
    yt_, yf_ = _hpfilter(y[i:j], lam)

    trend = np.full(n, np.nan)
    cycle = np.full(n, np.nan)
    trend[i:j] = yt_
    cycle[i:j] = yf_
    return trend, cycle


def _hpfilter(y: np.ndarray, lam: float) -> tuple[np.ndarray, np.ndarray]:
    n = len(y)
    if n < 3:
        return y.copy(), np.zeros(n)

    # I + lam * D'D is pentadiagonal; its first and last two rows carry the
    # boundary coefficients (1+lam, -2lam, lam) and (-2lam, 1+5lam, -4lam, lam)
    d2 = sparse.diags([1.0, -2.0, 1.0], [0, 1, 2], shape=(n - 2, n), format='csc')
    a = sparse.identity(n, format='csc') + lam * (d2.T @ d2)

    yt = spsolve(a.tocsc(), y)
    yf = y - yt
    return yt, yf
