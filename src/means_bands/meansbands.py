# ---------------------------------------------------------------------------
# means_bands.meansbands — Result container for means and density bands
# ---------------------------------------------------------------------------
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any

import polars as pl

from .errors import InconsistentDatesError

_BAND_COLUMN = re.compile(r'^(\d+(?:\.\d+)?)% (LB|UB)$')


@dataclass
class MeansBands:
    """Means and density bands for one output variable.

    Attributes
    ----------
    metadata : dict
        ``para`` (input type), ``cond_type``, ``product``, ``class``,
        ``indices`` (series -> variable index), ``date_inds``
        (date -> period index), ``subset_string``, and for shock
        decompositions ``shock_indices``.
    means : pl.DataFrame
        ``date`` column plus one column per series (``<series>__<shock>`` for
        shock decompositions).
    bands : dict[str, pl.DataFrame]
        Same keys as the mean columns; each frame has a ``date`` column and a
        lower/upper column per density band.
    """

    metadata: dict[str, Any]
    means: pl.DataFrame
    bands: dict[str, pl.DataFrame] = field(default_factory=dict)

    def get_class(self) -> str:
        return self.metadata['class']

    def get_product(self) -> str:
        return self.metadata['product']

    def get_variables(self) -> list[str]:
        """Mean columns, excluding ``date``."""
        return [c for c in self.means.columns if c != 'date']

    def get_shocks(self) -> list[str]:
        """Shock names for a shock decomposition, in index order."""
        shock_indices = self.metadata.get('shock_indices') or {}
        return sorted(shock_indices, key=shock_indices.get)

    def which_density_bands(self) -> list[float]:
        """Density band levels present in the bands tables, ascending."""
        levels: set[float] = set()
        for table in self.bands.values():
            for col in table.columns:
                match = _BAND_COLUMN.match(col)
                if match:
                    levels.add(float(match.group(1)) / 100)
        return sorted(levels)

    def n_periods(self) -> int:
        return len(self.means)

    def start_date(self) -> date | None:
        return self.means['date'][0] if len(self.means) else None

    def end_date(self) -> date | None:
        return self.means['date'][-1] if len(self.means) else None

    def validate(self) -> MeansBands:
        """Check that every series has one mean column and one bands table on the same dates.

        Raises
        ------
        InconsistentDatesError
            If the mean columns and bands keys differ, or a bands table does
            not share the means' dates.
        """
        variables = set(self.get_variables())
        if variables != set(self.bands):
            raise InconsistentDatesError(
                f'Mean columns and bands differ: means only {sorted(variables - set(self.bands))}, '
                f'bands only {sorted(set(self.bands) - variables)}',
                product=self.metadata.get('product'),
            )

        dates = self.means['date']
        for series, table in self.bands.items():
            if 'date' not in table.columns or not table['date'].equals(dates):
                raise InconsistentDatesError(
                    'Bands dates differ from means dates',
                    variable=series,
                    product=self.metadata.get('product'),
                )
        return self
