"""Strategy error taxonomy.

- Every error the strategy raises on purpose is a :py:class:`StrategyError`

- Anything a collaborator raises is wrapped to :py:class:`ExternalCallFailure`
  by the atomic section of the strategy entry point, see :py:meth:`eth_compounder.strategy.CompoundingStrategy.atomic`
"""


class StrategyError(Exception):
    """Base class for strategy errors."""


class Unauthorized(StrategyError):
    """Caller is not the vault, or not the owner or a strategist."""


class InsufficientLiquidity(StrategyError):
    """The farm position cannot supply the requested unstake amount."""

    def __init__(self, message: str, requested: int = 0, available: int = 0):
        super().__init__(message)
        self.requested = requested
        self.available = available


class ExternalCallFailure(StrategyError):
    """A farm, router, pool or token call reverted.

    The original exception is chained as ``__cause__``.
    """


class ConfigurationError(StrategyError):
    """Strategy configuration does not match itself or the liquidity pool."""


class StrategyPaused(StrategyError):
    """Operation needs an active strategy."""


class StrategyNotPaused(StrategyError):
    """Operation needs a paused strategy."""


class ReentrancyError(StrategyError):
    """An entry point was called while another entry point was still running."""
