"""Forecast output metadata and output-variable naming.

An output variable is named ``<product><class>``, e.g. ``forecastobs`` or
``shockdecpseudo``. Metadata written alongside the forecast draws says which
transform each series uses, where each series sits in the draws array, and
which date each period index stands for.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from .config import CLASSES, PRODUCTS
from .errors import InconsistentDatesError, PreconditionError


@dataclass(frozen=True)
class ForecastMetadata:
    """Metadata accompanying one output variable's draws.

    Parameters
    ----------
    observable_transforms, pseudoobservable_transforms : dict[str, str]
        Series name -> reverse transform identifier.
    observable_indices, pseudoobservable_indices : dict[str, int]
        Series name -> position along the variable axis of the draws.
    date_indices : dict[date, int]
        Date -> position along the period axis of the draws.
    shock_indices : dict[str, int], optional
        Shock name -> position along the shock axis (shock decompositions).
    """

    observable_transforms: dict[str, str] = field(default_factory=dict)
    pseudoobservable_transforms: dict[str, str] = field(default_factory=dict)
    observable_indices: dict[str, int] = field(default_factory=dict)
    pseudoobservable_indices: dict[str, int] = field(default_factory=dict)
    date_indices: dict[date, int] = field(default_factory=dict)
    shock_indices: dict[str, int] | None = None

    def for_class(self, class_: str) -> tuple[dict[str, str], dict[str, int]]:
        """Transforms and variable indices for ``'obs'`` or ``'pseudo'``.

        Raises
        ------
        PreconditionError
            If ``class_`` is neither, or a series has an index but no transform.
        """
        if class_ == 'obs':
            transforms, indices = self.observable_transforms, self.observable_indices
        elif class_ == 'pseudo':
            transforms, indices = self.pseudoobservable_transforms, self.pseudoobservable_indices
        else:
            raise PreconditionError(
                f'Means and bands are only calculated for observables and '
                f'pseudo-observables, not {class_!r}'
            )

        unassigned = sorted(set(indices) - set(transforms))
        if unassigned:
            raise PreconditionError(f'No transform assigned to series {unassigned}')
        return transforms, indices


def get_class(output_var: str) -> str:
    """Class suffix of an output variable (``'forecastobs'`` -> ``'obs'``)."""
    for class_ in CLASSES:
        if output_var.endswith(class_) and output_var[: -len(class_)] in PRODUCTS:
            return class_
    raise PreconditionError(f'Cannot determine class of output variable {output_var!r}')


def get_product(output_var: str) -> str:
    """Product prefix of an output variable (``'forecastobs'`` -> ``'forecast'``)."""
    return output_var[: -len(get_class(output_var))]


def check_consistent_order(dates: list[date], indices: list[int]) -> None:
    """Verify that sorting dates and sorting indices give the same order.

    The indices must also be consecutive integers (no gaps).

    Raises
    ------
    InconsistentDatesError
        If the orders disagree, indices repeat, or indices have gaps.
    """
    if len(dates) != len(indices):
        raise InconsistentDatesError(
            f'{len(dates)} dates but {len(indices)} date indices'
        )
    if not dates:
        return

    by_date = sorted(range(len(dates)), key=lambda k: dates[k])
    by_index = sorted(range(len(indices)), key=lambda k: indices[k])
    if by_date != by_index:
        raise InconsistentDatesError('Date order is inconsistent with date index order')

    ordered = sorted(indices)
    gaps = [(a, b) for a, b in zip(ordered, ordered[1:]) if b - a != 1]
    if gaps:
        raise InconsistentDatesError(f'Date indices are not consecutive: {gaps[:3]}')


def sorted_dates(date_indices: dict[date, int]) -> tuple[list[date], list[int]]:
    """Dates and their indices, both in index order, after validation."""
    date_list = list(date_indices.keys())
    check_consistent_order(date_list, list(date_indices.values()))
    date_list.sort(key=lambda d: date_indices[d])
    return date_list, [date_indices[d] for d in date_list]


def add_requisite_output_vars(output_vars: list[str]) -> list[str]:
    """Add the trend and deterministic trend that a shock decomposition needs.

    Plotting a shock decomposition requires the trend and the deterministic
    trend of the same class, so requesting ``shockdecobs`` also computes
    ``trendobs`` and ``dettrendobs``.
    """
    result = list(output_vars)
    for output_var in output_vars:
        if get_product(output_var) == 'shockdec':
            class_ = get_class(output_var)
            for extra in (f'trend{class_}', f'dettrend{class_}'):
                if extra not in result:
                    result.append(extra)
    return result


def build_y0_indexes(
    output_vars: list[str],
    *,
    index_mainsample_start: int,
    index_forecast_start: int,
    index_shockdec_start: int,
) -> dict[str, int]:
    """Index of the period before each product's first period.

    Parameters
    ----------
    output_vars : list[str]
        Output variables whose products need a y0 index.
    index_mainsample_start, index_forecast_start, index_shockdec_start : int
        Positions (in the historical data matrix) of the first main-sample,
        forecast and shock-decomposition periods.

    Returns
    -------
    dict[str, int]
        Product -> y0 index. Four-quarter products share their base
        product's index.
    """
    starts = {
        'forecast': index_forecast_start,
        'shockdec': index_shockdec_start,
        'hist': index_mainsample_start,
        'dettrend': index_mainsample_start,
        'trend': index_mainsample_start,
    }
    y0_indexes: dict[str, int] = {}
    for output_var in output_vars:
        product = get_product(output_var)
        y0_indexes[product] = starts[product.removesuffix('4q')] - 1
    return y0_indexes
