# ---------------------------------------------------------------------------
# means_bands.errors — Configuration error taxonomy
# ---------------------------------------------------------------------------
"""Errors raised when inputs to the means-and-bands computation are malformed.

All of them are configuration errors: they are deterministic given the same
inputs and are never retried or defaulted. Numerical degeneracy (NaN, inf) is
not an error and propagates through the results instead.
"""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Base class for fatal configuration errors.

    Parameters
    ----------
    message : str
        Description of the violated precondition.
    variable, product, transform : str, optional
        Context identifying the computation that failed.
    """

    def __init__(
        self,
        message: str,
        *,
        variable: str | None = None,
        product: str | None = None,
        transform: str | None = None,
    ) -> None:
        self.message = message
        self.variable = variable
        self.product = product
        self.transform = transform
        super().__init__(message)

    def with_context(
        self,
        *,
        variable: str | None = None,
        product: str | None = None,
        transform: str | None = None,
    ) -> ConfigurationError:
        """Fill in any context not already set and return ``self``."""
        self.variable = self.variable or variable
        self.product = self.product or product
        self.transform = self.transform or transform
        self.args = (str(self),)
        return self

    def __str__(self) -> str:
        context = [
            f'{key}={value}'
            for key, value in (
                ('variable', self.variable),
                ('product', self.product),
                ('transform', self.transform),
            )
            if value is not None
        ]
        if not context:
            return self.message
        return f'{self.message} [{", ".join(context)}]'


class PreconditionError(ConfigurationError):
    """An input violates a documented precondition."""


class LengthMismatchError(PreconditionError):
    """Auxiliary data has the wrong length for the requested transform."""


class UnmappedTransformError(PreconditionError):
    """A transform identifier is unknown or has no four-quarter counterpart."""


class InconsistentDatesError(PreconditionError):
    """Date/index metadata is not internally consistent."""


class MissingResourceError(ConfigurationError):
    """A transform needs an input (population, y0, history) that was not supplied."""


class PopulationLookupError(ConfigurationError):
    """A population mnemonic or date could not be found in the supplied tables."""
