"""Tests for means_bands.compute — means and bands orchestration."""

import logging
from datetime import date

import numpy as np
import polars as pl
import pytest

from means_bands.bands import find_density_bands
from means_bands.compute import compute_means_bands, compute_means_bands_all
from means_bands.errors import (
    InconsistentDatesError,
    MissingResourceError,
    PopulationLookupError,
    PreconditionError,
    UnmappedTransformError,
)
from means_bands.metadata import ForecastMetadata
from means_bands.transforms import (
    loggrowthtopct_4q_percapita,
    loggrowthtopct_annualized_percapita,
    logleveltopct_4q,
    logleveltopct_annualized,
)


def _quarters(start: int, n: int) -> list[date]:
    """Quarter-start dates, counting quarters from 2020Q1."""
    return [date(2020 + (q // 4), 1 + 3 * (q % 4), 1) for q in range(start, start + n)]


def _make_metadata(
    start: int,
    n: int,
    percapita: bool = True,
    offset: int = 0,
    shocks: dict[str, int] | None = None,
    **transforms: str,
) -> ForecastMetadata:
    """Observables gdp (growth), infl (quarterly rate) and hours (log level)."""
    observable_transforms = {
        'gdp': 'loggrowthtopct_annualized_percapita' if percapita else 'loggrowthtopct_annualized',
        'infl': 'quartertoannual',
        'hours': 'logleveltopct_annualized',
    }
    observable_transforms.update(transforms)
    return ForecastMetadata(
        observable_transforms=observable_transforms,
        observable_indices={'gdp': 0, 'infl': 1, 'hours': 2},
        date_indices={d: offset + i for i, d in enumerate(_quarters(start, n))},
        shock_indices=shocks,
    )


def _make_draws(*shape: int, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.normal(0.5, 0.2, size=shape)


def _make_data() -> np.ndarray:
    """Historical data: 3 variables x 10 periods (2018Q1-2020Q2 in model units)."""
    return np.linspace(0.0, 2.9, 30).reshape(3, 10)


def _make_population() -> tuple[pl.DataFrame, pl.DataFrame]:
    """Recorded growth 0.001 for 2020Q1-2021Q4, forecast growth 0.002 for 2022Q1-2023Q4."""
    recorded = pl.DataFrame({'date': _quarters(0, 8), 'pop': [0.001] * 8})
    forecast = pl.DataFrame({'date': _quarters(8, 8), 'pop': [0.002] * 8})
    return recorded, forecast


def _population_kwargs() -> dict:
    recorded, forecast = _make_population()
    return dict(
        population_data=recorded, population_forecast=forecast, population_mnemonic='pop'
    )


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------


class TestComputeMeansBands:
    def test_forecast(self):
        draws = _make_draws(50, 3, 4)
        data = _make_data()
        mb = compute_means_bands(
            'full',
            'forecastobs',
            _make_metadata(8, 4),
            draws,
            density_bands=[0.5, 0.9],
            y0_index=9,
            data=data,
            **_population_kwargs(),
        )

        assert mb.get_product() == 'forecast'
        assert mb.metadata['para'] == 'full'
        assert mb.get_variables() == ['gdp', 'infl', 'hours']
        assert mb.means['date'].to_list() == _quarters(8, 4)

        gdp = loggrowthtopct_annualized_percapita(draws[:, 0, :], [0.002] * 4)
        np.testing.assert_allclose(mb.means['gdp'].to_numpy(), gdp.mean(axis=0))
        np.testing.assert_allclose(mb.means['infl'].to_numpy(), (4 * draws[:, 1, :]).mean(axis=0))
        hours = logleveltopct_annualized(draws[:, 2, :], data[2, 9])
        np.testing.assert_allclose(mb.means['hours'].to_numpy(), hours.mean(axis=0))

        assert mb.bands['gdp'].columns == ['date', '50.0% LB', '50.0% UB', '90.0% LB', '90.0% UB']
        assert mb.bands['gdp']['date'].to_list() == _quarters(8, 4)

    def test_hist_uses_recorded_population(self):
        mb = compute_means_bands(
            'full',
            'histobs',
            _make_metadata(0, 8),
            _make_draws(20, 3, 8),
            y0_index=0,
            data=_make_data(),
            **_population_kwargs(),
        )
        assert mb.n_periods() == 8
        assert mb.which_density_bands() == [0.5, 0.6, 0.7, 0.8, 0.9]

    def test_trend_broadcast_across_dates(self):
        draws = _make_draws(30, 3)
        mb = compute_means_bands(
            'full',
            'trendobs',
            _make_metadata(0, 4),
            draws,
            y0_index=9,
            data=_make_data(),
            **_population_kwargs(),
        )
        infl = mb.means['infl'].to_numpy()
        np.testing.assert_allclose(infl, np.full(4, (4 * draws[:, 1]).mean()))
        assert mb.bands['gdp']['50.0% LB'].n_unique() == 1

    def test_shockdec(self):
        draws = _make_draws(20, 3, 6, 2)
        mb = compute_means_bands(
            'full',
            'shockdecobs',
            _make_metadata(2, 4, offset=2, shocks={'b_sh': 1, 'a_sh': 0}),
            draws,
            y0_index=9,
            data=_make_data(),
            **_population_kwargs(),
        )
        assert mb.get_variables() == [
            'gdp__a_sh', 'gdp__b_sh', 'infl__a_sh', 'infl__b_sh', 'hours__a_sh', 'hours__b_sh',
        ]
        assert mb.get_shocks() == ['a_sh', 'b_sh']
        np.testing.assert_allclose(
            mb.means['infl__b_sh'].to_numpy(), (4 * draws[:, 1, 2:6, 1]).mean(axis=0)
        )
        assert set(mb.bands) == set(mb.get_variables())

    def test_shockdec_requires_shock_indices(self):
        with pytest.raises(PreconditionError, match='no shock indices'):
            compute_means_bands(
                'full', 'shockdecobs', _make_metadata(0, 4, percapita=False),
                _make_draws(5, 3, 4, 2), y0_index=9, data=_make_data(),
            )

    def test_forecast4q(self):
        draws = _make_draws(30, 3, 4)
        data = _make_data()
        mb = compute_means_bands(
            'full',
            'forecast4qobs',
            _make_metadata(8, 4),
            draws,
            y0_index=9,
            data=data,
            **_population_kwargs(),
        )
        gdp = loggrowthtopct_4q_percapita(draws[:, 0, :], data[0, 7:10], [0.001] * 3 + [0.002] * 4)
        hours = logleveltopct_4q(draws[:, 2, :], data[2, 6:10])
        np.testing.assert_allclose(mb.means['gdp'].to_numpy(), gdp.mean(axis=0))
        np.testing.assert_allclose(mb.means['hours'].to_numpy(), hours.mean(axis=0))
        np.testing.assert_allclose(mb.means['infl'].to_numpy(), (4 * draws[:, 1, :]).mean(axis=0))

    def test_single_draw_input_type(self):
        mb = compute_means_bands(
            'mode',
            'forecastobs',
            _make_metadata(8, 4, percapita=False),
            _make_draws(1, 3, 4),
            y0_index=9,
            data=_make_data(),
        )
        assert mb.which_density_bands() == [0.5]

    def test_nan_draws_propagate(self):
        draws = _make_draws(10, 3, 4)
        draws[3, 1, 2] = np.nan
        mb = compute_means_bands(
            'full', 'forecastobs', _make_metadata(8, 4, percapita=False), draws,
            y0_index=9, data=_make_data(),
        )
        infl = mb.means['infl'].to_numpy()
        assert np.isnan(infl[2]) and np.isfinite(infl[[0, 1, 3]]).all()


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class TestComputeErrors:
    def test_missing_population_before_any_band(self):
        calls = []

        def band_fn(matrix, levels, minimize=False):
            calls.append(matrix.shape)
            return find_density_bands(matrix, levels, minimize)

        with pytest.raises(MissingResourceError, match='population') as exc:
            compute_means_bands(
                'full', 'forecastobs', _make_metadata(8, 4), _make_draws(5, 3, 4),
                y0_index=9, data=_make_data(), band_fn=band_fn,
            )
        assert exc.value.variable == 'gdp'
        assert exc.value.product == 'forecast'
        assert exc.value.transform == 'loggrowthtopct_annualized_percapita'
        assert calls == []

    @pytest.mark.parametrize('product', ['hist', 'forecast', 'trend', 'dettrend', 'shockdec'])
    def test_missing_population_every_product(self, product):
        with pytest.raises(MissingResourceError):
            compute_means_bands(
                'full', f'{product}obs', _make_metadata(0, 4, shocks={'a_sh': 0}),
                _make_draws(5, 3, 4), y0_index=9, data=_make_data(),
            )

    def test_missing_y0(self):
        with pytest.raises(MissingResourceError, match='y0') as exc:
            compute_means_bands(
                'full', 'forecastobs', _make_metadata(8, 4, percapita=False),
                _make_draws(5, 3, 4), data=_make_data(),
            )
        assert exc.value.variable == 'hours'

    def test_missing_data(self):
        with pytest.raises(MissingResourceError, match='historical data'):
            compute_means_bands(
                'full', 'forecastobs', _make_metadata(8, 4, percapita=False),
                _make_draws(5, 3, 4), y0_index=9,
            )

    def test_periods_disagree_with_dates(self):
        with pytest.raises(InconsistentDatesError, match='4 dates'):
            compute_means_bands(
                'full', 'forecastobs', _make_metadata(8, 4, percapita=False),
                _make_draws(5, 3, 5), y0_index=9, data=_make_data(),
            )

    def test_history_must_be_matrix(self):
        with pytest.raises(PreconditionError, match='nvars x nperiods matrix'):
            compute_means_bands(
                'full', 'forecastobs', _make_metadata(8, 4, percapita=False),
                _make_draws(5, 3, 4), y0_index=9, data=np.zeros(10),
            )

    def test_population_forecast_on_other_quarters(self):
        recorded, _ = _make_population()
        late_forecast = pl.DataFrame({'date': _quarters(12, 4), 'pop': [0.5] * 4})
        with pytest.raises(PopulationLookupError, match='do not match') as exc:
            compute_means_bands(
                'full', 'forecastobs', _make_metadata(8, 4), _make_draws(5, 3, 4),
                y0_index=9, data=_make_data(), population_data=recorded,
                population_forecast=late_forecast, population_mnemonic='pop',
            )
        assert exc.value.product == 'forecast'

    def test_variable_index_outside_draws(self):
        with pytest.raises(PreconditionError, match='Variable index 2') as exc:
            compute_means_bands(
                'full', 'forecastobs', _make_metadata(8, 4, percapita=False),
                _make_draws(5, 2, 4), y0_index=9, data=_make_data(),
            )
        assert exc.value.variable == 'hours'

    def test_inconsistent_date_indices(self):
        md = ForecastMetadata(
            observable_transforms={'infl': 'quartertoannual'},
            observable_indices={'infl': 0},
            date_indices={date(2022, 1, 1): 1, date(2022, 4, 1): 0},
        )
        with pytest.raises(InconsistentDatesError) as exc:
            compute_means_bands('full', 'forecastobs', md, _make_draws(5, 1, 2))
        assert exc.value.product == 'forecast'

    def test_unmapped_4q_transform(self):
        with pytest.raises(UnmappedTransformError, match='4q equivalent') as exc:
            compute_means_bands(
                'full', 'forecast4qobs', _make_metadata(8, 4, infl='annualtoquarter'),
                _make_draws(5, 3, 4), y0_index=9, data=_make_data(), **_population_kwargs(),
            )
        assert exc.value.variable == 'infl'
        assert exc.value.product == 'forecast4q'

    def test_insufficient_history_for_4q(self):
        with pytest.raises(PreconditionError, match='4 periods of history'):
            compute_means_bands(
                'full', 'forecast4qobs', _make_metadata(8, 4, percapita=False),
                _make_draws(5, 3, 4), y0_index=2, data=_make_data(),
            )


# ---------------------------------------------------------------------------
# compute_means_bands_all
# ---------------------------------------------------------------------------


def _make_reader(entries: dict[str, tuple[ForecastMetadata, np.ndarray]], requested: list[str]):
    def read_draws(input_type, output_var):
        requested.append(output_var)
        return entries[output_var]

    return read_draws


class TestComputeMeansBandsAll:
    def _entries(self) -> dict:
        return {
            'histobs': (_make_metadata(0, 8, percapita=False), _make_draws(20, 3, 8)),
            'forecastobs': (_make_metadata(8, 4), _make_draws(20, 3, 4)),
        }

    def test_skip_records_failures(self, caplog):
        requested = []
        with caplog.at_level(logging.WARNING, logger='means_bands.compute'):
            results, failures = compute_means_bands_all(
                'full',
                ['histobs', 'forecastobs'],
                _make_reader(self._entries(), requested),
                y0_indexes={'hist': 0, 'forecast': 9},
                data=_make_data(),
                on_error='skip',
            )
        assert list(results) == ['histobs']
        assert isinstance(failures['forecastobs'], MissingResourceError)
        assert 'No population data provided' in caplog.text
        assert 'Skipping forecastobs' in caplog.text

    def test_raise_aborts(self):
        with pytest.raises(MissingResourceError, match='variable=gdp'):
            compute_means_bands_all(
                'full',
                ['histobs', 'forecastobs'],
                _make_reader(self._entries(), []),
                y0_indexes={'hist': 0, 'forecast': 9},
                data=_make_data(),
            )

    def test_population_levels_are_transformed(self):
        levels = pl.DataFrame(
            {'date': _quarters(0, 8), 'CNP16OV': 250_000.0 * np.exp(0.002 * np.arange(8))}
        )
        forecast_levels = pl.DataFrame(
            {'date': _quarters(8, 8), 'CNP16OV': 250_000.0 * np.exp(0.002 * np.arange(8, 16))}
        )
        results, failures = compute_means_bands_all(
            'full',
            ['forecastobs'],
            _make_reader(self._entries(), []),
            population_levels=levels,
            population_forecast_levels=forecast_levels,
            population_mnemonic='CNP16OV',
            y0_indexes={'forecast': 9},
            data=_make_data(),
        )
        assert failures == {}
        assert np.isfinite(results['forecastobs'].means['gdp'].to_numpy()).all()

    def test_shockdec_reads_trends(self):
        md = _make_metadata(0, 4, percapita=False, shocks={'a_sh': 0})
        entries = {
            'shockdecobs': (md, _make_draws(10, 3, 4, 1)),
            'trendobs': (md, _make_draws(10, 3)),
            'dettrendobs': (md, _make_draws(10, 3, 4)),
        }
        requested = []
        results, _ = compute_means_bands_all(
            'full',
            ['shockdecobs'],
            _make_reader(entries, requested),
            y0_indexes={'shockdec': 9, 'trend': 9, 'dettrend': 9},
            data=_make_data(),
        )
        assert requested == ['shockdecobs', 'trendobs', 'dettrendobs']
        assert set(results) == set(requested)

    def test_y0_falls_back_to_base_product(self):
        results, _ = compute_means_bands_all(
            'full',
            ['forecast4qobs'],
            _make_reader(
                {'forecast4qobs': (_make_metadata(8, 4, percapita=False), _make_draws(5, 3, 4))},
                [],
            ),
            y0_indexes={'forecast': 9},
            data=_make_data(),
        )
        assert results['forecast4qobs'].get_product() == 'forecast4q'

    def test_invalid_on_error(self):
        with pytest.raises(ValueError, match='on_error'):
            compute_means_bands_all('full', [], _make_reader({}, []), on_error='ignore')

    def test_malformed_history_is_recorded_as_failure(self):
        entries = {'histobs': self._entries()['histobs']}
        results, failures = compute_means_bands_all(
            'full',
            ['histobs'],
            _make_reader(entries, []),
            y0_indexes={'hist': 0},
            data=np.zeros(10),
            on_error='skip',
        )
        assert results == {}
        assert isinstance(failures['histobs'], PreconditionError)
        assert failures['histobs'].product == 'hist'
