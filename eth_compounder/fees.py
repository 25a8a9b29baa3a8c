"""Harvest fee split and payout.

The split for the base asset received from one harvest is:

.. code-block:: text

    fee_amount = balance * total_fee / divisor
    call_amount = fee_amount * call_fee / divisor
    treasury_amount = fee_amount * treasury_fee / divisor
    strategist_amount = treasury_amount * strategist_fee / divisor
    treasury_amount -= strategist_amount

Integer division residue stays with the strategy and is reinvested.

Example with divisor 1000, fees 45/50/950/5 and balance 10 000:
fee 450, caller 22, treasury 425, strategist 2, reinvested 9 550.
The 1 unit of rounding dust also stays with the strategy.
"""

import logging
from dataclasses import dataclass

from eth_typing import HexAddress

from eth_compounder.collaborators import FeeRouter, TokenLedger
from eth_compounder.config import FeeSchedule, StrategyConfig

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class FeeSplit:
    """How a base asset balance is split into fees."""

    #: Base asset balance the split was calculated from
    balance: int

    #: Total fee cut
    fee_amount: int

    #: Paid to the harvest caller
    call_amount: int

    #: Paid to the treasury, strategist cut already removed
    treasury_amount: int

    #: Paid to the strategist remitter through the fee router
    strategist_amount: int

    @property
    def paid_amount(self) -> int:
        return self.call_amount + self.treasury_amount + self.strategist_amount

    @property
    def reinvested_amount(self) -> int:
        """Balance left after the nominal fee cut."""
        return self.balance - self.fee_amount

    @property
    def rounding_dust(self) -> int:
        """Part of the fee cut lost to integer division, kept by the strategy."""
        return self.fee_amount - self.paid_amount


def calculate_fee_split(balance: int, fees: FeeSchedule) -> FeeSplit:
    """Split a base asset balance.

    Strategist cut is carved out of the treasury cut.
    """
    assert type(balance) == int and balance >= 0, f"Bad balance {balance}"
    fee_amount = balance * fees.total_fee // fees.divisor
    call_amount = fee_amount * fees.call_fee // fees.divisor
    treasury_amount = fee_amount * fees.treasury_fee // fees.divisor
    strategist_amount = treasury_amount * fees.strategist_fee // fees.divisor
    treasury_amount -= strategist_amount
    return FeeSplit(
        balance=balance,
        fee_amount=fee_amount,
        call_amount=call_amount,
        treasury_amount=treasury_amount,
        strategist_amount=strategist_amount,
    )


def calculate_security_fee(amount: int, fees: FeeSchedule) -> int:
    """Withdrawal fee kept by the strategy."""
    return amount * fees.security_fee // fees.divisor


class FeeDistributor:
    """Pay harvest fees from the base asset held by the strategy."""

    def __init__(self, config: StrategyConfig, ledger: TokenLedger, fee_router: FeeRouter):
        self.config = config
        self.ledger = ledger
        self.fee_router = fee_router

    def distribute(self, caller: HexAddress, proceeds: int) -> FeeSplit:
        """Split harvest proceeds and pay out.

        Base asset the strategy held before the harvest is not charged again.

        :param caller:
            Harvest caller receiving the call fee

        :param proceeds:
            Base asset received for the rewards of this harvest
        """
        base = self.config.base_asset
        split = calculate_fee_split(proceeds, self.config.fees)
        if proceeds == 0:
            return split

        if split.call_amount:
            self.ledger.transfer(base, caller, split.call_amount)

        if split.treasury_amount:
            self.ledger.transfer(base, self.config.treasury, split.treasury_amount)

        if split.strategist_amount:
            self.fee_router.route_payment(base, split.strategist_amount)

        logger.info(
            "Fees paid from %d base proceeds: caller %s got %d, treasury %d, strategist %d",
            proceeds,
            caller,
            split.call_amount,
            split.treasury_amount,
            split.strategist_amount,
        )
        return split
