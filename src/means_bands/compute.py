# ---------------------------------------------------------------------------
# means_bands.compute — Means and bands for observables and pseudo-observables
# ---------------------------------------------------------------------------
"""Turn forecast draws into reportable means and density bands.

For each output variable, every series is put through the reverse transform
its metadata assigns (or the four-quarter counterpart for ``*4q``
products), with whatever history and population growth that transform
needs, and the transformed draws are reduced to a mean and bands.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

import numpy as np
import polars as pl

from .bands import find_density_bands
from .config import DEFAULT_DENSITY_BANDS, POPULATION_GROWTH_COLUMN, SINGLE_DRAW_INPUT_TYPES
from .errors import (
    ConfigurationError,
    InconsistentDatesError,
    MissingResourceError,
    PreconditionError,
)
from .meansbands import MeansBands
from .metadata import (
    ForecastMetadata,
    add_requisite_output_vars,
    get_class,
    get_product,
    sorted_dates,
)
from .population import resolve_population_series, transform_population_data
from .transforms import (
    GROWTH_LOOKBACK,
    TRANSFORMS,
    TransformSpec,
    apply_transform,
    get_transform4q,
    parse_transform,
)

logger = logging.getLogger(__name__)

DrawReader = Callable[[str, str], tuple[ForecastMetadata, np.ndarray]]
BandFunction = Callable[..., pl.DataFrame]


@dataclass(frozen=True)
class _SeriesPlan:
    series: str
    index: int
    spec: TransformSpec


# =========================================================================
# Planning and input checks
# =========================================================================


def _plan_series(
    transforms: dict[str, str],
    variable_indices: dict[str, int],
    product: str,
    four_quarter: bool,
) -> list[_SeriesPlan]:
    plans = []
    for series, index in sorted(variable_indices.items(), key=lambda kv: kv[1]):
        try:
            kind = parse_transform(transforms[series])
            if four_quarter:
                kind = get_transform4q(kind)
        except ConfigurationError as e:
            raise e.with_context(variable=series, product=product)
        plans.append(_SeriesPlan(series, index, TRANSFORMS[kind]))
    return plans


def _check_resources(
    plans: list[_SeriesPlan],
    product: str,
    *,
    population_supplied: bool,
    y0_index: int | None,
    data: np.ndarray | None,
) -> None:
    """Refuse to start if any series lacks an input its transform needs."""
    for plan in plans:
        spec = plan.spec
        context = dict(variable=plan.series, product=product, transform=spec.kind.value)
        if spec.needs_population and not population_supplied:
            raise MissingResourceError(
                'Per-capita transform requires population data and a population mnemonic',
                **context,
            )
        if spec.needs_history and y0_index is None:
            raise MissingResourceError('Transform requires a y0 index', **context)
        if spec.needs_history and data is None:
            raise MissingResourceError('Transform requires historical data', **context)


def _history_inputs(
    plan: _SeriesPlan, data: np.ndarray | None, y0_index: int | None
) -> tuple[float | None, np.ndarray | None]:
    """Last historical level and prior periods for one series."""
    spec = plan.spec
    if not spec.needs_history:
        return None, None

    if data.ndim != 2:
        raise PreconditionError(
            f'Historical data must be an nvars x nperiods matrix, got shape {data.shape}'
        )
    nvars, nhist = data.shape
    if not 0 <= plan.index < nvars or not 0 <= y0_index < nhist:
        raise PreconditionError(
            f'Historical data of shape {data.shape} has no entry for variable index '
            f'{plan.index} at y0 index {y0_index}'
        )

    y0 = float(data[plan.index, y0_index]) if spec.needs_y0 else None
    prior = None
    if spec.lookback > 0:
        start = y0_index - spec.lookback + 1
        if start < 0:
            raise PreconditionError(
                f'{spec.lookback} periods of history required up to y0 index {y0_index}'
            )
        prior = data[plan.index, start : y0_index + 1]
    return y0, prior


def _transform_series(
    plan: _SeriesPlan,
    y: np.ndarray,
    *,
    product: str,
    data: np.ndarray | None,
    y0_index: int | None,
    population_series: np.ndarray | None,
) -> np.ndarray:
    try:
        y0, prior = _history_inputs(plan, data, y0_index)
        return apply_transform(
            plan.spec.kind,
            y,
            y0=y0,
            prior=prior,
            population=population_series if plan.spec.needs_population else None,
        )
    except ConfigurationError as e:
        raise e.with_context(
            variable=plan.series, product=product, transform=plan.spec.kind.value
        )


def _reduce(
    transformed: np.ndarray,
    date_list: list,
    density_bands: list[float],
    minimize: bool,
    band_fn: BandFunction,
) -> tuple[np.ndarray, pl.DataFrame]:
    """Column mean and date-indexed bands of an ``ndraws x nperiods`` matrix."""
    mean = np.mean(transformed, axis=0)
    bands = band_fn(transformed, density_bands, minimize=minimize)
    if len(bands) != len(date_list):
        raise InconsistentDatesError(
            f'Band table has {len(bands)} rows for {len(date_list)} dates'
        )
    return mean, pl.DataFrame({'date': date_list}).hstack(bands)


# =========================================================================
# Single output variable
# =========================================================================


def compute_means_bands(
    input_type: str,
    output_var: str,
    metadata: ForecastMetadata,
    draws: np.ndarray,
    *,
    cond_type: str = 'none',
    density_bands: list[float] | None = None,
    subset_string: str = '',
    population_data: pl.DataFrame | None = None,
    population_forecast: pl.DataFrame | None = None,
    population_mnemonic: str | None = None,
    y0_index: int | None = None,
    data: np.ndarray | None = None,
    minimize: bool = False,
    band_fn: BandFunction = find_density_bands,
    log: logging.Logger | None = None,
) -> MeansBands:
    """Compute means and bands for a single output variable.

    Parameters
    ----------
    input_type : str
        Parameter draws behind the forecast. ``'init'``, ``'mode'`` and
        ``'mean'`` carry one draw, so only the 0.5 band is computed.
    output_var : str
        ``<product><class>``, e.g. ``'forecastobs'``.
    metadata : ForecastMetadata
        Transforms, variable indices, date indices (and shock indices).
    draws : np.ndarray
        ``ndraws x nvars x nperiods`` (``hist``, ``forecast``, ``dettrend``);
        ``ndraws x nvars`` or ``ndraws x nvars x 1`` (``trend``);
        ``ndraws x nvars x nperiods x nshocks`` (``shockdec``).
    cond_type, subset_string : str
        Recorded in the result metadata.
    density_bands : list[float], optional
        Band levels; defaults to :data:`DEFAULT_DENSITY_BANDS`.
    population_data, population_forecast : pl.DataFrame, optional
        Recorded and forecast population growth with a ``date`` column.
    population_mnemonic : str, optional
        Column of the population tables holding growth rates.
    y0_index : int, optional
        Column of ``data`` holding the period before the product's first
        period; required by level-based and four-quarter transforms.
    data : np.ndarray, optional
        ``nvars x nperiods`` historical data, rows aligned with the class's
        variable indices.
    minimize : bool
        Highest-density rather than equal-tailed bands.
    band_fn : callable
        ``band_fn(matrix, levels, minimize=...) -> pl.DataFrame`` with one
        row per period.
    log : logging.Logger, optional
        Logger for progress messages; defaults to this module's logger.

    Returns
    -------
    MeansBands

    Raises
    ------
    ConfigurationError
        Any malformed or missing input, with the series, product and
        transform involved.
    """
    log = log or logger

    if density_bands is None:
        density_bands = list(DEFAULT_DENSITY_BANDS)
    if input_type in SINGLE_DRAW_INPUT_TYPES:
        density_bands = [0.5]

    class_ = get_class(output_var)
    product = get_product(output_var)
    base_product = product.removesuffix('4q')
    four_quarter = base_product != product

    log.info(f'Computing means and bands for {output_var}')

    transforms, variable_indices = metadata.for_class(class_)
    try:
        date_list, _ = sorted_dates(metadata.date_indices)
    except ConfigurationError as e:
        raise e.with_context(product=product)

    plans = _plan_series(transforms, variable_indices, product, four_quarter)
    population_supplied = population_mnemonic is not None and (
        population_data is not None or population_forecast is not None
    )
    _check_resources(
        plans,
        product,
        population_supplied=population_supplied,
        y0_index=y0_index,
        data=data,
    )

    draws = np.asarray(draws, dtype=np.float64)
    if data is not None:
        data = np.asarray(data, dtype=np.float64)
        if data.ndim != 2:
            raise PreconditionError(
                f'Historical data must be an nvars x nperiods matrix, got shape {data.shape}',
                product=product,
            )
    nperiods = len(date_list)

    nvars = draws.shape[1] if draws.ndim >= 2 else 0
    for plan in plans:
        if not 0 <= plan.index < nvars:
            raise PreconditionError(
                f'Variable index {plan.index} outside draws of shape {draws.shape}',
                variable=plan.series,
                product=product,
            )

    population_series = None
    if any(plan.spec.needs_population for plan in plans):
        try:
            population_series = resolve_population_series(
                product,
                population_data=population_data,
                population_forecast=population_forecast,
                mnemonic=population_mnemonic,
                dates=date_list,
                nperiods=nperiods,
                lookback=GROWTH_LOOKBACK if four_quarter else 0,
            )
        except ConfigurationError as e:
            raise e.with_context(product=product)

    mb_metadata = {
        'para': input_type,
        'cond_type': cond_type,
        'product': product,
        'class': class_,
        'indices': dict(variable_indices),
        'subset_string': subset_string,
        'date_inds': dict(metadata.date_indices),
    }

    if base_product == 'shockdec':
        if metadata.shock_indices is None:
            raise PreconditionError(
                'Shock decomposition metadata has no shock indices', product=product
            )
        mb_metadata['shock_indices'] = dict(metadata.shock_indices)
        means, bands = compute_means_bands_shockdec(
            draws,
            transforms,
            variable_indices,
            metadata.shock_indices,
            metadata.date_indices,
            density_bands=density_bands,
            product=product,
            data=data,
            population_series=population_series,
            y0_index=y0_index,
            minimize=minimize,
            band_fn=band_fn,
            log=log,
        )
        return MeansBands(mb_metadata, means, bands).validate()

    if base_product == 'trend':
        draws = _broadcast_trend(draws, nperiods, product)
    elif draws.ndim != 3 or draws.shape[2] != nperiods:
        raise InconsistentDatesError(
            f'Draws of shape {draws.shape} do not match {nperiods} dates', product=product
        )

    means_cols: dict[str, object] = {'date': date_list}
    bands: dict[str, pl.DataFrame] = {}
    for plan in plans:
        log.debug(f'  {plan.series}: {plan.spec.kind.value}')
        transformed = _transform_series(
            plan,
            draws[:, plan.index, :],
            product=product,
            data=data,
            y0_index=y0_index,
            population_series=population_series,
        )
        means_cols[plan.series], bands[plan.series] = _reduce(
            transformed, date_list, density_bands, minimize, band_fn
        )

    return MeansBands(mb_metadata, pl.DataFrame(means_cols), bands).validate()


def _broadcast_trend(draws: np.ndarray, nperiods: int, product: str) -> np.ndarray:
    """Repeat the date-invariant trend across every date.

    Population adjustments differ by date even though the trend does not.
    """
    if draws.ndim == 2:
        draws = draws[:, :, np.newaxis]
    if draws.ndim != 3:
        raise InconsistentDatesError(f'Trend draws of shape {draws.shape}', product=product)
    if draws.shape[2] == nperiods:
        return draws
    if draws.shape[2] != 1:
        raise InconsistentDatesError(
            f'Trend draws have {draws.shape[2]} periods, expected 1 or {nperiods}',
            product=product,
        )
    return np.repeat(draws, nperiods, axis=2)


def compute_means_bands_shockdec(
    draws: np.ndarray,
    transforms: dict[str, str],
    variable_indices: dict[str, int],
    shock_indices: dict[str, int],
    date_indices: dict,
    *,
    density_bands: list[float],
    product: str = 'shockdec',
    data: np.ndarray | None = None,
    population_series: np.ndarray | None = None,
    y0_index: int | None = None,
    minimize: bool = False,
    band_fn: BandFunction = find_density_bands,
    log: logging.Logger | None = None,
) -> tuple[pl.DataFrame, dict[str, pl.DataFrame]]:
    """Means and bands of a shock decomposition, one column per (series, shock).

    Parameters
    ----------
    draws : np.ndarray
        ``ndraws x nvars x nperiods x nshocks``; the period axis is indexed
        by the values of ``date_indices``.
    shock_indices : dict[str, int]
        Shock name -> position along the last axis.

    Returns
    -------
    means : pl.DataFrame
        ``date`` plus a ``<series>__<shock>`` column per pair.
    bands : dict[str, pl.DataFrame]
        Keyed like the mean columns.
    """
    log = log or logger

    date_list, date_order = sorted_dates(date_indices)
    plans = _plan_series(transforms, variable_indices, product, product.endswith('4q'))

    draws = np.asarray(draws, dtype=np.float64)
    if draws.ndim != 4:
        raise InconsistentDatesError(
            f'Shock decomposition draws must be 4-dimensional, got shape {draws.shape}',
            product=product,
        )
    if date_order and date_order[-1] >= draws.shape[2]:
        raise InconsistentDatesError(
            f'Date index {date_order[-1]} outside {draws.shape[2]} periods of draws',
            product=product,
        )
    bad_shocks = [s for s, i in shock_indices.items() if not 0 <= i < draws.shape[3]]
    if bad_shocks:
        raise PreconditionError(
            f'Shock indices out of range for {draws.shape[3]} shocks: {bad_shocks}',
            product=product,
        )
    draws = draws[:, :, date_order, :]

    shocks = sorted(shock_indices, key=shock_indices.get)
    means_cols: dict[str, object] = {'date': date_list}
    bands: dict[str, pl.DataFrame] = {}
    for plan in plans:
        log.debug(f'  {plan.series}: {plan.spec.kind.value} x {len(shocks)} shocks')
        for shock in shocks:
            key = f'{plan.series}__{shock}'
            transformed = _transform_series(
                plan,
                draws[:, plan.index, :, shock_indices[shock]],
                product=product,
                data=data,
                y0_index=y0_index,
                population_series=population_series,
            )
            means_cols[key], bands[key] = _reduce(
                transformed, date_list, density_bands, minimize, band_fn
            )

    return pl.DataFrame(means_cols), bands


# =========================================================================
# All output variables
# =========================================================================


def compute_means_bands_all(
    input_type: str,
    output_vars: list[str],
    read_draws: DrawReader,
    *,
    cond_type: str = 'none',
    density_bands: list[float] | None = None,
    subset_string: str = '',
    population_levels: pl.DataFrame | None = None,
    population_forecast_levels: pl.DataFrame | None = None,
    population_mnemonic: str | None = None,
    y0_indexes: dict[str, int] | None = None,
    data: np.ndarray | None = None,
    minimize: bool = False,
    band_fn: BandFunction = find_density_bands,
    on_error: Literal['raise', 'skip'] = 'raise',
    log: logging.Logger | None = None,
) -> tuple[dict[str, MeansBands], dict[str, ConfigurationError]]:
    """Compute means and bands for several output variables.

    Shock decompositions pull in the trend and deterministic trend of the
    same class. Population levels, when given, are HP-filtered and turned
    into growth rates once for the whole run.

    Parameters
    ----------
    read_draws : callable
        ``read_draws(input_type, output_var) -> (metadata, draws)``.
    population_levels, population_forecast_levels : pl.DataFrame, optional
        Recorded and forecast population *levels* with a ``date`` column.
    population_mnemonic : str, optional
        Column of the population tables holding levels.
    y0_indexes : dict[str, int], optional
        Product -> y0 index (see :func:`~means_bands.metadata.build_y0_indexes`).
    on_error : ``'raise'`` | ``'skip'``
        ``'raise'`` aborts on the first configuration error; ``'skip'``
        records it and continues with the next output variable.

    Other parameters are passed to :func:`compute_means_bands`.

    Returns
    -------
    results : dict[str, MeansBands]
        Output variable -> means and bands.
    failures : dict[str, ConfigurationError]
        Output variables skipped under ``on_error='skip'``.
    """
    log = log or logger
    if on_error not in ('raise', 'skip'):
        raise ValueError(f"on_error must be 'raise' or 'skip', got {on_error!r}")

    log.info(
        f'Computing means and bands for input_type = {input_type}, cond_type = {cond_type}'
    )
    output_vars = add_requisite_output_vars(output_vars)

    population_data = population_forecast = None
    mnemonic = None
    if population_levels is not None and population_mnemonic is not None:
        recorded, forecast = transform_population_data(
            population_levels, population_forecast_levels, population_mnemonic
        )
        population_data = recorded.select(
            'date', pl.col('dlfiltered_population_recorded').alias(POPULATION_GROWTH_COLUMN)
        )
        population_forecast = forecast.select(
            'date', pl.col('dlfiltered_population_forecast').alias(POPULATION_GROWTH_COLUMN)
        )
        mnemonic = POPULATION_GROWTH_COLUMN
    else:
        if population_levels is None:
            log.warning('No population data provided')
        if population_mnemonic is None:
            log.warning('No population mnemonic provided')

    y0_indexes = y0_indexes or {}
    results: dict[str, MeansBands] = {}
    failures: dict[str, ConfigurationError] = {}

    for output_var in output_vars:
        product = get_product(output_var)
        y0_index = y0_indexes.get(product, y0_indexes.get(product.removesuffix('4q')))
        try:
            metadata, draws = read_draws(input_type, output_var)
            results[output_var] = compute_means_bands(
                input_type,
                output_var,
                metadata,
                draws,
                cond_type=cond_type,
                density_bands=density_bands,
                subset_string=subset_string,
                population_data=population_data,
                population_forecast=population_forecast,
                population_mnemonic=mnemonic,
                y0_index=y0_index,
                data=data,
                minimize=minimize,
                band_fn=band_fn,
                log=log,
            )
        except ConfigurationError as e:
            if on_error == 'raise':
                raise
            log.warning(f'Skipping {output_var}: {e}')
            failures[output_var] = e

    log.info(
        f'Computation of means and bands complete: {len(results)} computed, '
        f'{len(failures)} skipped'
    )
    return results, failures
