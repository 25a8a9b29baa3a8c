"""Abstract capabilities the strategy depends on.

- The strategy never talks to a blockchain directly, it is given bound collaborators

- Every collaborator acts on behalf of the strategy account
  (``msg.sender`` is always :py:attr:`eth_compounder.config.StrategyConfig.strategy_address`)

- Implementations: :py:mod:`eth_compounder.simulator` for tests and dry runs,
  :py:mod:`eth_compounder.onchain` for web3.py

- Any exception raised by a collaborator aborts the strategy entry point,
  see :py:class:`eth_compounder.errors.ExternalCallFailure`
"""

import datetime
from abc import ABC, abstractmethod

from eth_typing import HexAddress

from eth_compounder.route import Route
from eth_compounder.utils import to_unix_timestamp


class TokenLedger(ABC):
    """ERC-20 balances and approvals of the strategy account."""

    @abstractmethod
    def balance_of(self, token: HexAddress, holder: HexAddress | None = None) -> int:
        """Raw token balance.

        :param holder:
            Defaults to the strategy account
        """

    @abstractmethod
    def transfer(self, token: HexAddress, to: HexAddress, amount: int) -> None:
        """Transfer from the strategy account."""

    @abstractmethod
    def allowance(self, token: HexAddress, spender: HexAddress) -> int:
        """How much the spender may pull from the strategy account."""

    @abstractmethod
    def increase_allowance(self, token: HexAddress, spender: HexAddress, amount: int) -> None:
        pass

    @abstractmethod
    def decrease_allowance(self, token: HexAddress, spender: HexAddress, amount: int) -> None:
        pass


class Farm(ABC):
    """Staking farm for the basket token.

    Bound to one farm pool id and the strategy position in it.
    """

    #: Spender address for the basket token approval
    address: HexAddress

    @abstractmethod
    def stake(self, amount: int) -> None:
        pass

    @abstractmethod
    def unstake(self, amount: int) -> None:
        """Withdraw staked basket tokens back to the strategy account.

        May return slightly more than asked.
        """

    @abstractmethod
    def harvest_rewards(self) -> None:
        """Claim pending rewards to the strategy account."""

    @abstractmethod
    def emergency_exit(self) -> None:
        """Withdraw the whole position, forfeiting pending rewards."""

    @abstractmethod
    def position_balance(self) -> int:
        """Staked basket tokens of the strategy."""

    @abstractmethod
    def pending_rewards(self) -> int:
        """Unclaimed reward tokens of the strategy."""


class Router(ABC):
    """Swap router taking pre-configured hop routes."""

    #: Spender address for swap input approvals
    address: HexAddress

    @abstractmethod
    def quote_output(self, amount_in: int, route: Route) -> int:
        """Expected output of a swap, without executing it."""

    @abstractmethod
    def swap(self, amount_in: int, min_out: int, route: Route, deadline: int) -> int:
        """Swap exact input.

        :param deadline:
            UNIX timestamp after which the swap must fail

        :return:
            Output amount received by the strategy account
        """


class LiquidityPool(ABC):
    """Multi-asset weighted liquidity pool minting the basket token."""

    #: Spender address for underlying asset approvals
    address: HexAddress

    @abstractmethod
    def current_composition(self) -> list[tuple[HexAddress, int]]:
        """Pool tokens in pool order with their pool balances."""

    @abstractmethod
    def join(self, assets_in: list[tuple[HexAddress, int]], min_bpt_out: int) -> int:
        """Supply assets, mint basket tokens to the strategy account.

        :return:
            Basket tokens minted
        """


class FeeRouter(ABC):
    """Forwards the strategist cut onward.

    Pulls the asset from the strategy account using an allowance.
    """

    #: Spender address for the base asset approval
    address: HexAddress

    @abstractmethod
    def route_payment(self, asset: HexAddress, amount: int) -> None:
        pass


class StateJournal(ABC):
    """Rolls back collaborator state when a strategy entry point fails."""

    @abstractmethod
    def snapshot(self) -> int:
        """Take a snapshot, return its id."""

    @abstractmethod
    def revert(self, snapshot_id: int) -> bool:
        """Restore the state of a snapshot.

        :return:
            True if the state was restored
        """

    def discard(self, snapshot_id: int) -> None:
        """Release a snapshot that is no longer needed.

        No-op where snapshots cost nothing to keep around.
        """


class Clock(ABC):
    """Time source for swap deadlines and the harvest log."""

    @abstractmethod
    def now(self) -> datetime.datetime:
        """Current naive UTC time."""

    def get_deadline(self, padding: datetime.timedelta) -> int:
        """UNIX timestamp ``padding`` ahead of now."""
        return int(to_unix_timestamp(self.now() + padding))


class SystemClock(Clock):
    """Wall clock time."""

    def now(self) -> datetime.datetime:
        return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


class FixedClock(Clock):
    """Manually advanced time for tests."""

    def __init__(self, now: datetime.datetime):
        assert now.tzinfo is None, "Use naive UTC datetimes"
        self._now = now

    def now(self) -> datetime.datetime:
        return self._now

    def set(self, now: datetime.datetime):
        self._now = now

    def advance(self, delta: datetime.timedelta):
        self._now += delta
