# ---------------------------------------------------------------------------
# means_bands.io — Reading forecast draws, saving/loading means and bands
# ---------------------------------------------------------------------------
"""Persistence for the means-and-bands pipeline.

Forecast output is an ``.npz`` archive holding a ``draws`` array, with its
metadata in a JSON file of the same name. Computed means and bands are
written as parquet tables plus a ``metadata.json`` manifest::

    <output_dir>/
        means.parquet
        bands/<series>.parquet
        metadata.json
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import date, datetime
from pathlib import Path
from typing import Any

import numpy as np
import polars as pl

from .meansbands import MeansBands
from .metadata import ForecastMetadata

logger = logging.getLogger(__name__)


# =========================================================================
# Forecast output
# =========================================================================


def _parse_date_indices(raw: dict[str, int]) -> dict[date, int]:
    return {date.fromisoformat(k): int(v) for k, v in raw.items()}


def _format_date_indices(date_indices: dict[date, int]) -> dict[str, int]:
    return {d.isoformat(): int(i) for d, i in date_indices.items()}


def metadata_from_dict(raw: dict[str, Any]) -> ForecastMetadata:
    """Build :class:`ForecastMetadata` from its JSON form (ISO date keys)."""
    shock_indices = raw.get('shock_indices')
    return ForecastMetadata(
        observable_transforms=dict(raw.get('observable_transforms', {})),
        pseudoobservable_transforms=dict(raw.get('pseudoobservable_transforms', {})),
        observable_indices={k: int(v) for k, v in raw.get('observable_indices', {}).items()},
        pseudoobservable_indices={
            k: int(v) for k, v in raw.get('pseudoobservable_indices', {}).items()
        },
        date_indices=_parse_date_indices(raw.get('date_indices', {})),
        shock_indices=(
            {k: int(v) for k, v in shock_indices.items()} if shock_indices is not None else None
        ),
    )


def metadata_to_dict(metadata: ForecastMetadata) -> dict[str, Any]:
    return {
        'observable_transforms': metadata.observable_transforms,
        'pseudoobservable_transforms': metadata.pseudoobservable_transforms,
        'observable_indices': metadata.observable_indices,
        'pseudoobservable_indices': metadata.pseudoobservable_indices,
        'date_indices': _format_date_indices(metadata.date_indices),
        'shock_indices': metadata.shock_indices,
    }


def save_forecast_output(
    path: Path, metadata: ForecastMetadata, draws: np.ndarray
) -> None:
    """Write draws to ``path`` (``.npz``) and metadata to its JSON sidecar."""
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savez(path, draws=np.asarray(draws))
    with open(path.with_suffix('.json'), 'w') as f:
        json.dump(metadata_to_dict(metadata), f, indent=2)


def load_forecast_output(path: Path) -> tuple[ForecastMetadata, np.ndarray]:
    """Read forecast draws and their metadata.

    Parameters
    ----------
    path : Path
        ``.npz`` archive with a ``draws`` array. Metadata is read from the
        file with the same stem and a ``.json`` suffix.

    Returns
    -------
    tuple[ForecastMetadata, np.ndarray]
    """
    meta_path = path.with_suffix('.json')
    for p in (path, meta_path):
        if not p.exists():
            raise FileNotFoundError(f'Forecast output not found: {p}')

    with np.load(path) as archive:
        if 'draws' not in archive:
            raise KeyError(f'{path} has no "draws" array; found {list(archive.keys())}')
        draws = archive['draws']
    with open(meta_path) as f:
        metadata = metadata_from_dict(json.load(f))

    logger.debug(f'Loaded draws of shape {draws.shape} from {path}')
    return metadata, draws


def make_draw_reader(
    files: dict[str, Path],
) -> Callable[[str, str], tuple[ForecastMetadata, np.ndarray]]:
    """Build a ``read_draws(input_type, output_var)`` callable over fixed files.

    Parameters
    ----------
    files : dict[str, Path]
        Output variable -> forecast output path.
    """

    def read_draws(input_type: str, output_var: str) -> tuple[ForecastMetadata, np.ndarray]:
        if output_var not in files:
            raise FileNotFoundError(
                f'No forecast output for {output_var} (input_type = {input_type})'
            )
        return load_forecast_output(files[output_var])

    return read_draws


# =========================================================================
# Means and bands
# =========================================================================


def _jsonable_metadata(metadata: dict[str, Any]) -> dict[str, Any]:
    out = dict(metadata)
    if 'date_inds' in out:
        out['date_inds'] = _format_date_indices(out['date_inds'])
    return out


def save_means_bands(mb: MeansBands, output_dir: Path) -> None:
    """Save means, bands and metadata under ``output_dir``.

    Parameters
    ----------
    mb : MeansBands
        Validated means and bands for one output variable.
    output_dir : Path
        Directory to write means.parquet, bands/ and metadata.json.
    """
    bands_dir = output_dir / 'bands'
    bands_dir.mkdir(parents=True, exist_ok=True)

    mb.means.write_parquet(output_dir / 'means.parquet')
    for series, table in mb.bands.items():
        table.write_parquet(bands_dir / f'{series}.parquet')

    manifest = {
        'build_timestamp': datetime.now().isoformat(),
        'metadata': _jsonable_metadata(mb.metadata),
        'series': list(mb.bands),
        'density_bands': mb.which_density_bands(),
    }
    with open(output_dir / 'metadata.json', 'w') as f:
        json.dump(manifest, f, indent=2)

    logger.info(
        f'Means and bands saved: {len(mb.bands)} series x {mb.n_periods()} periods '
        f'to {output_dir}'
    )


def load_means_bands(input_dir: Path) -> MeansBands:
    """Load means and bands previously written by :func:`save_means_bands`."""
    means_path = input_dir / 'means.parquet'
    meta_path = input_dir / 'metadata.json'
    for p in (means_path, meta_path):
        if not p.exists():
            raise FileNotFoundError(f'Means and bands file not found: {p}')

    with open(meta_path) as f:
        manifest = json.load(f)

    metadata = manifest['metadata']
    if 'date_inds' in metadata:
        metadata['date_inds'] = _parse_date_indices(metadata['date_inds'])

    bands = {}
    for series in manifest['series']:
        band_path = input_dir / 'bands' / f'{series}.parquet'
        if not band_path.exists():
            raise FileNotFoundError(f'Bands file not found: {band_path}')
        bands[series] = pl.read_parquet(band_path)

    return MeansBands(metadata, pl.read_parquet(means_path), bands).validate()
