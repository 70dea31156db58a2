#!/usr/bin/env python
# ---------------------------------------------------------------------------
# run_means_bands.py — Thin runner for the means_bands package
# ---------------------------------------------------------------------------
"""Compute means and density bands for saved forecast output.

Expects, under ``data/``:

    forecast/<input_type>_<cond_type>_<output_var>.npz (+ .json metadata)
    history.npz         ``data`` array and ``index_*_start`` scalars
    population.parquet  recorded population levels (optional)
    population_forecast.parquet  forecast population levels (optional)

Usage:
    python run_means_bands.py
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

import numpy as np
import polars as pl

# Allow running from repo root without installing the package
sys.path.insert(0, str(Path(__file__).resolve().parent / "src"))

from means_bands.compute import compute_means_bands_all
from means_bands.config import DATA_DIR, OUTPUT_DIR, MeansBandsConfig
from means_bands.io import make_draw_reader, save_means_bands
from means_bands.metadata import add_requisite_output_vars, build_y0_indexes

OUTPUT_VARS = ["histobs", "forecastobs", "forecast4qobs", "shockdecobs"]

CONFIG = MeansBandsConfig(
    input_type="full",
    cond_type="none",
    population_mnemonic="CNP16OV",
)


def _read_optional_parquet(path: Path) -> pl.DataFrame | None:
    return pl.read_parquet(path) if path.exists() else None


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)

    # 1. Forecast output -------------------------------------------------------
    output_vars = add_requisite_output_vars(OUTPUT_VARS)
    forecast_dir = DATA_DIR / "forecast"
    read_draws = make_draw_reader(
        {
            var: forecast_dir / f"{CONFIG.input_type}_{CONFIG.cond_type}_{var}.npz"
            for var in output_vars
        }
    )

    # 2. Historical data -------------------------------------------------------
    with np.load(DATA_DIR / "history.npz") as history:
        data = history["data"]
        y0_indexes = build_y0_indexes(
            output_vars,
            index_mainsample_start=int(history["index_mainsample_start"]),
            index_forecast_start=int(history["index_forecast_start"]),
            index_shockdec_start=int(history["index_shockdec_start"]),
        )

    # 3. Means and bands -------------------------------------------------------
    results, failures = compute_means_bands_all(
        CONFIG.input_type,
        output_vars,
        read_draws,
        cond_type=CONFIG.cond_type,
        density_bands=CONFIG.density_bands,
        population_levels=_read_optional_parquet(DATA_DIR / "population.parquet"),
        population_forecast_levels=_read_optional_parquet(
            DATA_DIR / "population_forecast.parquet"
        ),
        population_mnemonic=CONFIG.population_mnemonic,
        y0_indexes=y0_indexes,
        data=data,
        minimize=CONFIG.minimize,
        on_error=CONFIG.on_error,
    )

    # 4. Save ------------------------------------------------------------------
    for output_var, mb in results.items():
        save_means_bands(mb, OUTPUT_DIR / f"{CONFIG.input_type}_{CONFIG.cond_type}" / output_var)

    print("\n" + "=" * 72)
    print(f"means_bands complete: {len(results)} computed, {len(failures)} skipped.")
    for output_var, err in failures.items():
        print(f"  {output_var}: {err}")
    print("=" * 72)


if __name__ == "__main__":
    main()
