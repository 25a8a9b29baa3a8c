"""Strategy position accounting."""

from dataclasses import dataclass

from eth_compounder.collaborators import Farm, TokenLedger
from eth_compounder.config import StrategyConfig


@dataclass(slots=True, frozen=True)
class PositionState:
    """Basket token held by the strategy, read at one point of time."""

    #: Basket tokens held directly
    idle: int

    #: Basket tokens staked in the farm
    staked: int

    @property
    def total(self) -> int:
        return self.idle + self.staked


class PositionAccessor:
    """Read idle and staked balances.

    Nothing is cached, every call reads the collaborators.
    """

    def __init__(self, config: StrategyConfig, ledger: TokenLedger, farm: Farm):
        self.config = config
        self.ledger = ledger
        self.farm = farm

    def get_idle_balance(self) -> int:
        return self.ledger.balance_of(self.config.basket_token)

    def get_staked_balance(self) -> int:
        return self.farm.position_balance()

    def get_position(self) -> PositionState:
        return PositionState(idle=self.get_idle_balance(), staked=self.get_staked_balance())

    def balance_of(self) -> int:
        """Accounting balance reported to the vault."""
        return self.get_idle_balance() + self.get_staked_balance()
