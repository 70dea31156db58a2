"""Tests for means_bands.io — forecast output and means/bands persistence."""

from datetime import date

import numpy as np
import polars as pl
import pytest

from means_bands.compute import compute_means_bands
from means_bands.io import (
    load_forecast_output,
    load_means_bands,
    make_draw_reader,
    save_forecast_output,
    save_means_bands,
)
from means_bands.metadata import ForecastMetadata


def _make_metadata() -> ForecastMetadata:
    return ForecastMetadata(
        observable_transforms={'infl': 'quartertoannual', 'gdp': 'loggrowthtopct_annualized'},
        observable_indices={'infl': 1, 'gdp': 0},
        date_indices={date(2022, 1, 1): 0, date(2022, 4, 1): 1, date(2022, 7, 1): 2},
        shock_indices={'g_sh': 0},
    )


def _make_draws() -> np.ndarray:
    return np.random.default_rng(11).normal(size=(25, 2, 3))


class TestForecastOutput:
    def test_save_and_load(self, tmp_path):
        path = tmp_path / 'forecast' / 'full_none_forecastobs.npz'
        save_forecast_output(path, _make_metadata(), _make_draws())

        assert path.with_suffix('.json').exists()
        metadata, draws = load_forecast_output(path)
        assert metadata == _make_metadata()
        np.testing.assert_array_equal(draws, _make_draws())

    def test_missing_sidecar(self, tmp_path):
        path = tmp_path / 'draws.npz'
        np.savez(path, draws=_make_draws())
        with pytest.raises(FileNotFoundError, match='draws.json'):
            load_forecast_output(path)

    def test_draw_reader(self, tmp_path):
        path = tmp_path / 'forecastobs.npz'
        save_forecast_output(path, _make_metadata(), _make_draws())
        read_draws = make_draw_reader({'forecastobs': path})

        metadata, draws = read_draws('full', 'forecastobs')
        assert draws.shape == (25, 2, 3)
        with pytest.raises(FileNotFoundError, match='histobs'):
            read_draws('full', 'histobs')


class TestMeansBandsPersistence:
    def test_save_and_load(self, tmp_path):
        mb = compute_means_bands('full', 'forecastobs', _make_metadata(), _make_draws())
        save_means_bands(mb, tmp_path / 'forecastobs')

        assert (tmp_path / 'forecastobs' / 'bands' / 'gdp.parquet').exists()
        loaded = load_means_bands(tmp_path / 'forecastobs')

        assert loaded.get_product() == 'forecast'
        assert loaded.metadata['date_inds'] == mb.metadata['date_inds']
        assert loaded.means.equals(mb.means)
        assert loaded.bands['infl'].equals(mb.bands['infl'])
        assert loaded.which_density_bands() == mb.which_density_bands()

    def test_load_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError, match='means.parquet'):
            load_means_bands(tmp_path)

    def test_load_missing_bands(self, tmp_path):
        mb = compute_means_bands('full', 'forecastobs', _make_metadata(), _make_draws())
        save_means_bands(mb, tmp_path)
        (tmp_path / 'bands' / 'gdp.parquet').unlink()
        with pytest.raises(FileNotFoundError, match='gdp.parquet'):
            load_means_bands(tmp_path)

    def test_written_tables_are_polars(self, tmp_path):
        mb = compute_means_bands('full', 'forecastobs', _make_metadata(), _make_draws())
        save_means_bands(mb, tmp_path)
        means = pl.read_parquet(tmp_path / 'means.parquet')
        assert means.columns == ['date', 'gdp', 'infl']
