"""Closed set of reverse transforms and their input requirements.

Forecast metadata names the transform for each variable with a string
identifier. :func:`parse_transform` turns it into a :class:`TransformKind`,
and :data:`TRANSFORMS` tells the caller which auxiliary inputs the kind needs
and which four-quarter transform corresponds to it.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import numpy as np
from numpy.typing import ArrayLike

from ..errors import MissingResourceError, UnmappedTransformError
from . import reverse


class TransformKind(str, Enum):
    IDENTITY = 'identity'
    ANNUAL_TO_QUARTER = 'annualtoquarter'
    QUARTER_TO_ANNUAL = 'quartertoannual'
    QUARTER_TO_ANNUAL_PERCENT = 'quartertoannualpercent'
    LOGGROWTH_ANNUALIZED = 'loggrowthtopct_annualized'
    LOGGROWTH_ANNUALIZED_PERCAPITA = 'loggrowthtopct_annualized_percapita'
    LOGLEVEL_ANNUALIZED = 'logleveltopct_annualized'
    LOGLEVEL_ANNUALIZED_PERCAPITA = 'logleveltopct_annualized_percapita'
    LOGGROWTH_4Q = 'loggrowthtopct_4q'
    LOGGROWTH_4Q_PERCAPITA = 'loggrowthtopct_4q_percapita'
    LOGLEVEL_4Q = 'logleveltopct_4q'
    LOGLEVEL_4Q_PERCAPITA = 'logleveltopct_4q_percapita'


@dataclass(frozen=True)
class TransformSpec:
    """Requirements of one transform kind.

    Parameters
    ----------
    kind : TransformKind
        The transform this entry describes.
    func : callable
        Function from :mod:`means_bands.transforms.reverse`.
    needs_population : bool
        Whether a population growth series must be supplied.
    needs_y0 : bool
        Whether the last historical level before the window is needed.
    lookback : int
        Number of prior periods of history to prepend (0, 3 or 4).
    four_quarter : TransformKind, optional
        Four-quarter counterpart, ``None`` if there is none.
    """

    kind: TransformKind
    func: Callable[..., np.ndarray]
    needs_population: bool = False
    needs_y0: bool = False
    lookback: int = 0
    four_quarter: TransformKind | None = None

    @property
    def needs_history(self) -> bool:
        """Whether the historical data matrix is read (for y0 or lookback)."""
        return self.needs_y0 or self.lookback > 0


_K = TransformKind

TRANSFORMS: dict[TransformKind, TransformSpec] = {
    spec.kind: spec
    for spec in [
        TransformSpec(_K.IDENTITY, reverse.identity, four_quarter=_K.IDENTITY),
        TransformSpec(_K.ANNUAL_TO_QUARTER, reverse.annualtoquarter),
        TransformSpec(
            _K.QUARTER_TO_ANNUAL, reverse.quartertoannual, four_quarter=_K.QUARTER_TO_ANNUAL
        ),
        TransformSpec(_K.QUARTER_TO_ANNUAL_PERCENT, reverse.quartertoannualpercent),
        TransformSpec(
            _K.LOGGROWTH_ANNUALIZED,
            reverse.loggrowthtopct_annualized,
            four_quarter=_K.LOGGROWTH_4Q,
        ),
        TransformSpec(
            _K.LOGGROWTH_ANNUALIZED_PERCAPITA,
            reverse.loggrowthtopct_annualized_percapita,
            needs_population=True,
            four_quarter=_K.LOGGROWTH_4Q_PERCAPITA,
        ),
        TransformSpec(
            _K.LOGLEVEL_ANNUALIZED,
            reverse.logleveltopct_annualized,
            needs_y0=True,
            four_quarter=_K.LOGLEVEL_4Q,
        ),
        TransformSpec(
            _K.LOGLEVEL_ANNUALIZED_PERCAPITA,
            reverse.logleveltopct_annualized_percapita,
            needs_population=True,
            needs_y0=True,
            four_quarter=_K.LOGLEVEL_4Q_PERCAPITA,
        ),
        TransformSpec(
            _K.LOGGROWTH_4Q, reverse.loggrowthtopct_4q, lookback=reverse.GROWTH_LOOKBACK
        ),
        TransformSpec(
            _K.LOGGROWTH_4Q_PERCAPITA,
            reverse.loggrowthtopct_4q_percapita,
            needs_population=True,
            lookback=reverse.GROWTH_LOOKBACK,
        ),
        TransformSpec(
            _K.LOGLEVEL_4Q, reverse.logleveltopct_4q, lookback=reverse.LEVEL_LOOKBACK
        ),
        TransformSpec(
            _K.LOGLEVEL_4Q_PERCAPITA,
            reverse.logleveltopct_4q_percapita,
            needs_population=True,
            lookback=reverse.LEVEL_LOOKBACK,
        ),
    ]
}


def _check_table() -> None:
    missing = set(TransformKind) - set(TRANSFORMS)
    if missing:
        raise RuntimeError(f'Transforms without a table entry: {sorted(k.value for k in missing)}')
    for spec in TRANSFORMS.values():
        if spec.four_quarter is not None and spec.four_quarter not in TRANSFORMS:
            raise RuntimeError(f'{spec.kind.value} maps to unknown 4q transform {spec.four_quarter}')


_check_table()


def parse_transform(name: str | TransformKind) -> TransformKind:
    """Map a metadata transform identifier to its :class:`TransformKind`.

    Raises
    ------
    UnmappedTransformError
        If ``name`` is not one of the known identifiers.
    """
    if isinstance(name, TransformKind):
        return name
    try:
        return TransformKind(name)
    except ValueError:
        valid = sorted(k.value for k in TransformKind)
        raise UnmappedTransformError(
            f'Unknown transform {name!r}. Valid: {valid}', transform=str(name)
        ) from None


def get_transform4q(kind: str | TransformKind) -> TransformKind:
    """Return the four-quarter transform associated with an annualizing one.

    Raises
    ------
    UnmappedTransformError
        If ``kind`` has no four-quarter equivalent.
    """
    kind = parse_transform(kind)
    four_quarter = TRANSFORMS[kind].four_quarter
    if four_quarter is None:
        raise UnmappedTransformError(
            f'4q equivalent not implemented for {kind.value}', transform=kind.value
        )
    return four_quarter


def apply_transform(
    kind: str | TransformKind,
    y: ArrayLike,
    *,
    y0: float | None = None,
    prior: ArrayLike | None = None,
    population: ArrayLike | None = None,
) -> np.ndarray:
    """Apply a transform, passing exactly the auxiliary inputs it needs.

    Parameters
    ----------
    kind : str or TransformKind
        Transform to apply.
    y : array_like
        Path or ``ndraws x nperiods`` matrix.
    y0 : float, optional
        Last level before the window (level-based annualized transforms).
    prior : array_like, optional
        Prior periods of history (four-quarter transforms).
    population : array_like, optional
        Log population growth rates (per-capita transforms).

    Raises
    ------
    MissingResourceError
        If an input required by the transform is ``None``.
    """
    spec = TRANSFORMS[parse_transform(kind)]

    if spec.needs_population and population is None:
        raise MissingResourceError(
            'Population growth is required but was not supplied', transform=spec.kind.value
        )
    if spec.needs_y0 and y0 is None:
        raise MissingResourceError(
            'Last historical level (y0) is required but was not supplied',
            transform=spec.kind.value,
        )
    if spec.lookback > 0 and prior is None:
        raise MissingResourceError(
            f'{spec.lookback} prior periods of history are required but were not supplied',
            transform=spec.kind.value,
        )

    args: list = [y]
    if spec.needs_y0:
        args.append(y0)
    if spec.lookback > 0:
        args.append(prior)
    if spec.needs_population:
        args.append(population)
    return spec.func(*args)
