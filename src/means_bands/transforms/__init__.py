"""Reverse transforms, their requirement table, and forward data transforms."""

from .forward import difflog, hpadjust, nominal_to_real, oneqtrpctchange, percapita
from .kinds import (
    TRANSFORMS,
    TransformKind,
    TransformSpec,
    apply_transform,
    get_transform4q,
    parse_transform,
)
from .reverse import (
    GROWTH_LOOKBACK,
    LEVEL_LOOKBACK,
    annualtoquarter,
    identity,
    loggrowthtopct_4q,
    loggrowthtopct_4q_percapita,
    loggrowthtopct_annualized,
    loggrowthtopct_annualized_percapita,
    logleveltopct_4q,
    logleveltopct_4q_percapita,
    logleveltopct_annualized,
    logleveltopct_annualized_percapita,
    prepend_data,
    quartertoannual,
    quartertoannualpercent,
)

__all__ = [
    'GROWTH_LOOKBACK',
    'LEVEL_LOOKBACK',
    'TRANSFORMS',
    'TransformKind',
    'TransformSpec',
    'annualtoquarter',
    'apply_transform',
    'difflog',
    'get_transform4q',
    'hpadjust',
    'identity',
    'loggrowthtopct_4q',
    'loggrowthtopct_4q_percapita',
    'loggrowthtopct_annualized',
    'loggrowthtopct_annualized_percapita',
    'logleveltopct_4q',
    'logleveltopct_4q_percapita',
    'logleveltopct_annualized',
    'logleveltopct_annualized_percapita',
    'nominal_to_real',
    'oneqtrpctchange',
    'parse_transform',
    'percapita',
    'prepend_data',
    'quartertoannual',
    'quartertoannualpercent',
]
