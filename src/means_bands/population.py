# ---------------------------------------------------------------------------
# means_bands.population — Population growth history/forecast alignment
# ---------------------------------------------------------------------------
"""Build population growth series that line up with a product's periods.

Per-capita transforms need one population growth rate per reported period
(plus three earlier periods for four-quarter transforms). The recorded
history and the population forecast are kept in separate tables; the
functions here cut and join them to exactly the periods a product covers.
"""

from __future__ import annotations

import logging
from datetime import date

import numpy as np
import polars as pl

from .config import HP_LAMBDA_QUARTERLY
from .errors import MissingResourceError, PopulationLookupError, PreconditionError
from .filters import hpfilter
from .transforms.forward import difflog

logger = logging.getLogger(__name__)


def _check_mnemonic(df: pl.DataFrame, mnemonic: str, table: str) -> None:
    if mnemonic not in df.columns:
        raise PopulationLookupError(
            f'Population mnemonic {mnemonic!r} not found in {table}. '
            f'Available: {df.columns}'
        )
    if 'date' not in df.columns:
        raise PopulationLookupError(f'Population {table} has no date column')


def resize_population_forecast(
    population_forecast: pl.DataFrame,
    nperiods: int,
    mnemonic: str,
) -> pl.DataFrame:
    """Return the first ``nperiods`` rows of the population forecast.

    Raises
    ------
    PopulationLookupError
        If the mnemonic is missing or the forecast has fewer than
        ``nperiods`` rows. The forecast is never extrapolated.
    """
    if nperiods < 0:
        raise PreconditionError(f'nperiods must be non-negative, got {nperiods}')
    _check_mnemonic(population_forecast, mnemonic, 'population forecast')

    n_available = len(population_forecast)
    if n_available < nperiods:
        raise PopulationLookupError(
            f'Population forecast has {n_available} periods, {nperiods} required'
        )
    return population_forecast.sort('date').head(nperiods)


def resolve_population_series(
    product: str,
    *,
    population_data: pl.DataFrame | None,
    population_forecast: pl.DataFrame | None,
    mnemonic: str | None,
    dates: list[date],
    nperiods: int,
    lookback: int = 0,
) -> np.ndarray:
    """Population growth rates aligned to the periods of ``product``.

    Parameters
    ----------
    product : str
        ``'hist'``, ``'forecast'``, ``'trend'``, ``'dettrend'``,
        ``'shockdec'``, or a four-quarter product (``'hist4q'``,
        ``'forecast4q'``).
    population_data : pl.DataFrame, optional
        Recorded (filtered) population growth with a ``date`` column.
    population_forecast : pl.DataFrame, optional
        Forecast population growth with a ``date`` column.
    mnemonic : str, optional
        Column holding the growth rates in both tables.
    dates : list[date]
        Sorted dates the product covers.
    nperiods : int
        Number of periods the product covers.
    lookback : int
        Extra periods required before the first date (3 for four-quarter
        per-capita transforms).

    Returns
    -------
    np.ndarray
        Length ``nperiods + lookback`` growth rates (the full recorded column
        for ``'hist'`` without lookback).

    Raises
    ------
    MissingResourceError
        If a table or the mnemonic needed by the product is not supplied.
    PopulationLookupError
        If the mnemonic or a requested date cannot be found.
    """
    if mnemonic is None:
        raise MissingResourceError('No population mnemonic provided', product=product)

    base_product = product.removesuffix('4q')

    if base_product == 'forecast':
        if population_forecast is None:
            raise MissingResourceError('No population forecast provided', product=product)
        if dates and 'date' in population_forecast.columns:
            population_forecast = population_forecast.filter(pl.col('date') >= dates[0])
        forecast = resize_population_forecast(population_forecast, nperiods, mnemonic)
        _check_dates(forecast['date'].to_list(), list(dates), 'population forecast', product)
        segments = [forecast[mnemonic].to_numpy().astype(float)]
        if lookback > 0:
            recorded = _require_recorded(population_data, mnemonic, product)
            if dates:
                recorded = recorded.filter(pl.col('date') < dates[0])
            if len(recorded) < lookback:
                raise PopulationLookupError(
                    f'Population history has {len(recorded)} periods, '
                    f'{lookback} required before the forecast',
                    product=product,
                )
            prior = recorded.tail(lookback)
            if dates:
                expected = [_shift_quarters(dates[0], -k) for k in range(lookback, 0, -1)]
                _check_dates(prior['date'].to_list(), expected, 'population data', product)
            segments.insert(0, prior[mnemonic].to_numpy().astype(float))
        return np.concatenate(segments)

    recorded = _require_recorded(population_data, mnemonic, product)

    if base_product == 'hist' and lookback == 0:
        return recorded[mnemonic].to_numpy().astype(float)

    return _resolve_date_range(
        recorded, population_forecast, mnemonic, dates, lookback, product
    )


def _shift_quarters(d: date, quarters: int) -> date:
    months = d.year * 12 + (d.month - 1) + 3 * quarters
    return date(months // 12, months % 12 + 1, d.day)


def _check_dates(found: list[date], expected: list[date], table: str, product: str) -> None:
    """Raise unless ``found`` dates are exactly the ``expected`` dates."""
    if found == expected:
        return

    def _span(ds: list[date]) -> str:
        return f'{ds[0]} to {ds[-1]}' if ds else 'no dates'

    raise PopulationLookupError(
        f'{table.capitalize()} dates do not match the requested periods: requested '
        f'{_span(expected)}, found {_span(found)}',
        product=product,
    )


def _require_recorded(
    population_data: pl.DataFrame | None, mnemonic: str, product: str
) -> pl.DataFrame:
    if population_data is None:
        raise MissingResourceError('No population data provided', product=product)
    _check_mnemonic(population_data, mnemonic, 'population data')
    return population_data.sort('date')


def _resolve_date_range(
    recorded: pl.DataFrame,
    population_forecast: pl.DataFrame | None,
    mnemonic: str,
    dates: list[date],
    lookback: int,
    product: str,
) -> np.ndarray:
    """History from the first requested date, topped up from the forecast."""
    if not dates:
        raise PreconditionError('No dates requested', product=product)

    start_date, end_date = dates[0], dates[-1]
    recorded_dates = recorded['date'].to_list()

    if start_date in recorded_dates:
        start_pos = recorded_dates.index(start_date)
    elif not recorded_dates or start_date > recorded_dates[-1]:
        # Window starts after the recorded history
        start_pos = len(recorded_dates)
    else:
        raise PopulationLookupError(
            f'Start date {start_date} not found in population data', product=product
        )

    begin = start_pos - lookback
    if begin < 0:
        raise PopulationLookupError(
            f'{lookback} periods of population history required before {start_date}, '
            f'{start_pos} available',
            product=product,
        )

    n_needed = len(dates) + lookback
    history = recorded.slice(begin, n_needed).select('date', mnemonic)

    # Periods beyond the recorded history come from the forecast
    n_fcast_periods = n_needed - len(history)
    parts = [history]
    if n_fcast_periods > 0:
        if population_forecast is None:
            raise MissingResourceError(
                f'No population forecast provided; {n_fcast_periods} periods after '
                f'the recorded history are required',
                product=product,
            )
        forecast = resize_population_forecast(population_forecast, n_fcast_periods, mnemonic)
        parts.append(forecast.select('date', pl.col(mnemonic).cast(history.schema[mnemonic])))

    series = pl.concat(parts)
    series_dates = series['date'].to_list()[lookback:]
    if series_dates != list(dates):
        missing = next(
            (d for d, s in zip(dates, series_dates) if d != s),
            end_date,
        )
        raise PopulationLookupError(
            f'Population series does not cover {missing}; requested '
            f'{start_date} to {end_date}',
            product=product,
        )

    return series[mnemonic].to_numpy().astype(float)


def transform_population_data(
    population_levels: pl.DataFrame,
    population_forecast_levels: pl.DataFrame | None,
    mnemonic: str,
    lam: float = HP_LAMBDA_QUARTERLY,
) -> tuple[pl.DataFrame, pl.DataFrame]:
    """HP-filter population levels and compute log growth rates.

    Recorded and forecast levels are filtered together so the filtered
    growth rates are continuous across the forecast boundary, then split
    back apart.

    Parameters
    ----------
    population_levels : pl.DataFrame
        Recorded population levels with ``date`` and ``mnemonic`` columns.
    population_forecast_levels : pl.DataFrame, optional
        Forecast population levels with the same columns.
    mnemonic : str
        Column holding population levels.
    lam : float
        HP smoothing parameter.

    Returns
    -------
    recorded, forecast : pl.DataFrame
        ``recorded`` has columns ``date``, ``population_recorded``,
        ``filtered_population_recorded``, ``dlpopulation_recorded``,
        ``dlfiltered_population_recorded``; ``forecast`` has the same with a
        ``_forecast`` suffix (and no rows if no forecast was given).
    """
    _check_mnemonic(population_levels, mnemonic, 'population data')
    recorded = population_levels.select('date', pl.col(mnemonic).cast(pl.Float64)).sort('date')

    parts = [recorded]
    if population_forecast_levels is not None:
        _check_mnemonic(population_forecast_levels, mnemonic, 'population forecast')
        forecast = (
            population_forecast_levels.select('date', pl.col(mnemonic).cast(pl.Float64))
            .sort('date')
            .filter(pl.col('date') > recorded['date'].max())
        )
        parts.append(forecast)
    else:
        logger.info('No population forecast provided; filtering recorded population only')

    combined = pl.concat(parts)
    levels = combined[mnemonic].to_numpy().astype(float)
    filtered, _ = hpfilter(levels, lam)

    frame = combined.select('date').with_columns(
        pl.Series('population', levels),
        pl.Series('filtered_population', filtered),
        pl.Series('dlpopulation', difflog(levels)),
        pl.Series('dlfiltered_population', difflog(filtered)),
    )

    n_recorded = len(recorded)
    renamed = {
        'population': '{}',
        'filtered_population': 'filtered_{}',
        'dlpopulation': 'dl{}',
        'dlfiltered_population': 'dlfiltered_{}',
    }

    def _split(part: pl.DataFrame, suffix: str) -> pl.DataFrame:
        return part.rename(
            {col: pattern.format(f'population_{suffix}') for col, pattern in renamed.items()}
        )

    return (
        _split(frame.head(n_recorded), 'recorded'),
        _split(frame.slice(n_recorded), 'forecast'),
    )
