"""Auto-compounding strategy engine.

- The vault calls :py:meth:`CompoundingStrategy.deposit` and :py:meth:`CompoundingStrategy.withdraw`

- A keeper calls :py:meth:`CompoundingStrategy.harvest` on its own cadence and receives the call fee

- The owner or a strategist can :py:meth:`CompoundingStrategy.pause`, :py:meth:`CompoundingStrategy.unpause`
  and :py:meth:`CompoundingStrategy.panic`

Harvest runs:

1. Claim farm rewards
2. Swap all reward tokens to the base asset
3. Pay fees, see :py:mod:`eth_compounder.fees`
4. Swap the base asset to the underlying assets by weight, see :py:mod:`eth_compounder.rebalance`
5. Join the pool with every underlying asset balance
6. Stake the minted basket tokens

Every entry point is all-or-nothing: collaborator state is rolled back through
the :py:class:`eth_compounder.collaborators.StateJournal` if any step fails,
and nested entry from a collaborator callback is rejected.

Example:

.. code-block:: python

    strategy = CompoundingStrategy(config, ledger, farm, router, pool, fee_router, journal)
    strategy.deposit(caller=config.vault)
    report = strategy.harvest(caller=keeper)
    print("Reinvested", report.basket_minted)
"""

import copy
import datetime
import enum
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterable, Iterator

from eth_typing import HexAddress

from eth_compounder.allowance import AllowanceManager
from eth_compounder.collaborators import Clock, Farm, FeeRouter, LiquidityPool, Router, StateJournal, SystemClock, TokenLedger
from eth_compounder.config import SlippageConfig, StrategyConfig
from eth_compounder.errors import (
    ConfigurationError,
    ExternalCallFailure,
    InsufficientLiquidity,
    ReentrancyError,
    StrategyError,
    StrategyNotPaused,
    StrategyPaused,
    Unauthorized,
)
from eth_compounder.fees import FeeDistributor, FeeSplit, calculate_security_fee
from eth_compounder.position import PositionAccessor
from eth_compounder.rebalance import RebalanceResult, WeightedLiquidityRebalancer
from eth_compounder.route import Route, RouteTable
from eth_compounder.weights import WeightTable

logger = logging.getLogger(__name__)

#: Used to annualise harvest profits
SECONDS_PER_YEAR = 365 * 24 * 3600


class LifecycleState(enum.Enum):
    """Strategy lifecycle."""

    #: Deposits and harvests allowed, allowances granted
    active = "active"

    #: Only withdrawals allowed, allowances revoked
    paused = "paused"


@dataclass(slots=True, frozen=True)
class WithdrawResult:
    """What a vault withdrawal did."""

    #: Basket tokens the vault asked for
    requested: int

    #: Basket tokens pulled from the farm to cover the request
    unstaked: int

    #: Security fee left idle in the strategy
    fee: int

    #: Basket tokens sent to the vault
    transferred: int


@dataclass(slots=True, frozen=True)
class HarvestEstimate:
    """What a harvest would earn now."""

    #: Claimable rewards valued in the base asset
    profit: int

    #: Base asset the harvest caller would receive
    call_fee: int


@dataclass(slots=True)
class HarvestReport:
    """Outcome of one harvest."""

    caller: HexAddress | None

    timestamp: datetime.datetime

    #: Reward tokens swapped to the base asset
    reward_swapped: int

    #: Base asset received for the rewards
    base_from_rewards: int

    #: ``None`` when no fees were charged
    fee_split: FeeSplit | None

    rebalance: RebalanceResult

    #: Basket tokens minted by the pool join
    basket_minted: int

    #: Basket tokens staked after the harvest
    deposited: int = 0


@dataclass(slots=True, frozen=True)
class HarvestLogEntry:
    """Strategy balance and profit at a logged harvest."""

    timestamp: datetime.datetime

    #: Accounting balance after the harvest
    balance: int

    #: Basket tokens minted since the previous entry
    profit: int


@dataclass
class HarvestLog:
    """Harvest history for APR estimation.

    A harvest is logged if at least ``cadence`` has passed since the last entry.
    Profit of harvests falling between entries is carried to the next entry.
    """

    cadence: datetime.timedelta

    entries: list[HarvestLogEntry] = field(default_factory=list)

    #: Profit of harvests not logged yet
    unlogged_profit: int = 0

    def record(self, timestamp: datetime.datetime, balance: int, profit: int) -> bool:
        """Add a harvest.

        :return:
            True if a new log entry was created
        """
        self.unlogged_profit += profit
        if self.entries and timestamp < self.entries[-1].timestamp + self.cadence:
            return False

        self.entries.append(HarvestLogEntry(timestamp=timestamp, balance=balance, profit=self.unlogged_profit))
        self.unlogged_profit = 0
        return True

    def calculate_average_apr(self, last_n: int = 10) -> float | None:
        """Average annualised return across the last ``last_n`` log entries.

        Each entry is compared to the balance of the entry before it.

        :return:
            APR as a fraction, ``None`` if there are less than two entries
        """
        assert last_n >= 2, f"Need at least two entries, got {last_n}"
        entries = self.entries[-last_n:]
        aprs = []
        for previous, current in zip(entries, entries[1:]):
            elapsed = (current.timestamp - previous.timestamp).total_seconds()
            if previous.balance == 0 or elapsed <= 0:
                continue
            aprs.append(current.profit / previous.balance * SECONDS_PER_YEAR / elapsed)

        if not aprs:
            return None
        return sum(aprs) / len(aprs)


class CompoundingStrategy:
    """Harvest-and-rebalance strategy for a weighted pool farm.

    - Holds the vault's basket tokens, idle or staked in the farm
    - Reports idle + staked as :py:meth:`balance_of`
    - Validates at construction that the pool holds exactly the configured underlying assets
    """

    def __init__(
        self,
        config: StrategyConfig,
        ledger: TokenLedger,
        farm: Farm,
        router: Router,
        pool: LiquidityPool,
        fee_router: FeeRouter,
        journal: StateJournal,
        clock: Clock | None = None,
    ):
        """
        :param config:
            Deployment addresses and parameters

        :param journal:
            Rolls collaborator state back on a failed entry point

        :param clock:
            Time source for swap deadlines and the harvest log, wall clock by default

        :raise ConfigurationError:
            Pool composition does not match the configured underlying assets
        """
        assert isinstance(config, StrategyConfig), f"Got {type(config)}"
        self.config = config
        self.ledger = ledger
        self.farm = farm
        self.router = router
        self.pool = pool
        self.fee_router = fee_router
        self.journal = journal
        self.clock = clock or SystemClock()

        self.route_table = RouteTable(config.base_asset, {u.asset: u.route for u in config.underlyings})
        self.weight_table = WeightTable({u.asset: u.weight for u in config.underlyings}, config.fees.divisor)
        self.allowances = AllowanceManager(config, ledger, farm, router, pool, fee_router)
        self.position = PositionAccessor(config, ledger, farm)
        self.fee_distributor = FeeDistributor(config, ledger, fee_router)
        self.rebalancer = WeightedLiquidityRebalancer(config, ledger, router, pool, self.route_table, self.weight_table, self.clock)

        self.state = LifecycleState.active
        self.harvest_log = HarvestLog(cadence=config.harvest_log_cadence)

        #: Name of the running entry point
        self._entered: str | None = None

        with self.atomic("initialise"):
            self._check_pool_composition()
            self.allowances.grant_all()

    def __repr__(self):
        return f"<CompoundingStrategy {self.config.strategy_address} {self.state.value}>"

    @contextmanager
    def atomic(self, operation: str) -> Iterator[None]:
        """Run an entry point all-or-nothing.

        - Reject nested entry
        - Roll back collaborator and lifecycle state on any exception, release the snapshot on success
        - Wrap collaborator exceptions to :py:class:`ExternalCallFailure`
        """
        if self._entered:
            raise ReentrancyError(f"{operation}() entered while {self._entered}() is running")

        self._entered = operation
        try:
            saved_state = self.state
            saved_log = copy.deepcopy(self.harvest_log)
            snapshot_id = self.journal.snapshot()
            try:
                yield
            except Exception as e:
                self.journal.revert(snapshot_id)
                self.state = saved_state
                self.harvest_log = saved_log
                logger.info("%s() rolled back: %s", operation, e)
                if isinstance(e, StrategyError):
                    raise
                raise ExternalCallFailure(f"{operation}() aborted by external call failure: {e}") from e
            else:
                self.journal.discard(snapshot_id)
        finally:
            self._entered = None

    def _check_pool_composition(self):
        pool_assets = {asset.lower() for asset, _ in self.pool.current_composition()}
        declared = set(self.config.get_underlying_assets())
        if pool_assets != declared:
            raise ConfigurationError(f"Pool holds {sorted(pool_assets)}, strategy declares {sorted(declared)}")

    def _require_vault(self, caller: HexAddress, operation: str):
        if caller.lower() != self.config.vault:
            raise Unauthorized(f"{operation}() can only be called by the vault {self.config.vault}, got {caller}")

    def _require_privileged(self, caller: HexAddress, operation: str):
        if caller.lower() not in self.config.privileged:
            raise Unauthorized(f"{operation}() can only be called by the owner or a strategist, got {caller}")

    def _require_active(self, operation: str):
        if self.state != LifecycleState.active:
            raise StrategyPaused(f"{operation}() not allowed while paused")

    def _require_paused(self, operation: str):
        if self.state != LifecycleState.paused:
            raise StrategyNotPaused(f"{operation}() needs a paused strategy")

    def is_paused(self) -> bool:
        return self.state == LifecycleState.paused

    def balance_of(self) -> int:
        """Basket tokens held for the vault, idle + staked."""
        return self.position.balance_of()

    def deposit(self, caller: HexAddress) -> int:
        """Stake all idle basket tokens.

        :return:
            Amount staked, 0 if nothing was idle

        :raise Unauthorized:
            Caller is not the vault

        :raise StrategyPaused:
            Strategy is paused
        """
        self._require_vault(caller, "deposit")
        with self.atomic("deposit"):
            self._require_active("deposit")
            return self._deposit()

    def _deposit(self) -> int:
        idle = self.position.get_idle_balance()
        if idle == 0:
            return 0
        self.farm.stake(idle)
        logger.info("Staked %d basket tokens", idle)
        return idle

    def withdraw(self, amount: int, caller: HexAddress) -> WithdrawResult:
        """Send basket tokens to the vault, minus the security fee.

        Works in both lifecycle states.

        :raise Unauthorized:
            Caller is not the vault

        :raise InsufficientLiquidity:
            Idle and staked balance together do not cover the amount
        """
        self._require_vault(caller, "withdraw")
        assert type(amount) == int and amount >= 0, f"Bad withdraw amount {amount}"
        basket = self.config.basket_token

        with self.atomic("withdraw"):
            idle = self.position.get_idle_balance()
            unstaked = 0
            if idle < amount:
                shortfall = amount - idle
                staked = self.farm.position_balance()
                if staked < shortfall:
                    raise InsufficientLiquidity(
                        f"Withdraw of {amount} needs {shortfall} from the farm, position has {staked}",
                        requested=shortfall,
                        available=staked,
                    )
                self.farm.unstake(shortfall)
                unstaked = shortfall
                idle = self.position.get_idle_balance()
                if idle < amount:
                    raise InsufficientLiquidity(
                        f"Farm returned too little, idle balance {idle} after unstaking {shortfall} for withdraw of {amount}",
                        requested=amount,
                        available=idle,
                    )

            # Anything the farm over-returned stays idle for the next deposit
            fee = calculate_security_fee(amount, self.config.fees)
            transferred = amount - fee
            if transferred:
                self.ledger.transfer(basket, self.config.vault, transferred)

        logger.info("Withdrew %d basket tokens to vault, unstaked %d, security fee %d", transferred, unstaked, fee)
        return WithdrawResult(requested=amount, unstaked=unstaked, fee=fee, transferred=transferred)

    def harvest(self, caller: HexAddress) -> HarvestReport:
        """Claim, charge fees, reinvest.

        Anyone can call, the caller receives the call fee.

        :raise StrategyPaused:
            Strategy is paused
        """
        with self.atomic("harvest"):
            self._require_active("harvest")
            report = self._compound(caller, charge_fees=True)
            report.deposited = self._deposit()
            if self.harvest_log.record(report.timestamp, self.position.balance_of(), report.basket_minted):
                logger.info("Harvest logged at %s", report.timestamp)

        logger.info(
            "Harvest by %s: %d rewards swapped to %d base, minted %d basket tokens",
            caller,
            report.reward_swapped,
            report.base_from_rewards,
            report.basket_minted,
        )
        return report

    def _compound(self, caller: HexAddress | None, charge_fees: bool) -> HarvestReport:
        timestamp = self.clock.now()
        self.farm.harvest_rewards()
        reward_swapped, base_from_rewards = self._swap_reward_to_base()
        fee_split = self.fee_distributor.distribute(caller, base_from_rewards) if charge_fees else None
        rebalance = self.rebalancer.rebalance()
        minted = self.rebalancer.join_pool()
        return HarvestReport(
            caller=caller,
            timestamp=timestamp,
            reward_swapped=reward_swapped,
            base_from_rewards=base_from_rewards,
            fee_split=fee_split,
            rebalance=rebalance,
            basket_minted=minted,
        )

    def _swap_reward_to_base(self) -> tuple[int, int]:
        """Swap the whole reward balance.

        :return:
            (reward tokens in, base asset out)
        """
        reward_balance = self.ledger.balance_of(self.config.reward_asset)
        if reward_balance == 0:
            return 0, 0

        route = self.config.reward_route
        max_slippage = self.config.slippage.reward_swap_max_slippage_bps
        if max_slippage is None:
            min_out = 0
        else:
            min_out = SlippageConfig.get_min_out(self.router.quote_output(reward_balance, route), max_slippage)

        deadline = self.clock.get_deadline(self.config.swap_deadline_padding)
        base_out = self.router.swap(reward_balance, min_out, route, deadline)
        return reward_balance, base_out

    def estimate_harvest(self) -> HarvestEstimate:
        """Value claimable rewards in the base asset."""
        with self.atomic("estimate_harvest"):
            rewards = self.farm.pending_rewards() + self.ledger.balance_of(self.config.reward_asset)
            profit = self.router.quote_output(rewards, self.config.reward_route) if rewards else 0

        fees = self.config.fees
        call_fee = profit * fees.total_fee * fees.call_fee // (fees.divisor * fees.divisor)
        return HarvestEstimate(profit=profit, call_fee=call_fee)

    def retire_strat(self, caller: HexAddress) -> int:
        """Exit everything and send all basket tokens to the vault.

        Used when the vault migrates to a new strategy.
        While active, pending rewards are compounded first without fees.
        While paused, swaps are not possible and only the position is exited.

        :return:
            Basket tokens sent to the vault
        """
        self._require_vault(caller, "retire_strat")
        basket = self.config.basket_token
        with self.atomic("retire_strat"):
            if self.state == LifecycleState.active:
                self._compound(None, charge_fees=False)

            staked = self.farm.position_balance()
            if staked:
                self.farm.unstake(staked)

            amount = self.ledger.balance_of(basket)
            if amount:
                self.ledger.transfer(basket, self.config.vault, amount)

        logger.info("Strategy %s retired, %d basket tokens sent to vault", self.config.strategy_address, amount)
        return amount

    def pause(self, caller: HexAddress):
        """Stop deposits and harvests, revoke all allowances."""
        self._require_privileged(caller, "pause")
        with self.atomic("pause"):
            self._pause()

    def _pause(self):
        self._require_active("pause")
        self.state = LifecycleState.paused
        self.allowances.revoke_all()
        logger.info("Strategy %s paused", self.config.strategy_address)

    def unpause(self, caller: HexAddress):
        """Resume, grant allowances and stake idle basket tokens."""
        self._require_privileged(caller, "unpause")
        with self.atomic("unpause"):
            self._require_paused("unpause")
            self.state = LifecycleState.active
            self.allowances.grant_all()
            self._deposit()
        logger.info("Strategy %s unpaused", self.config.strategy_address)

    def panic(self, caller: HexAddress):
        """Pause and pull the whole position out of the farm, forfeiting pending rewards."""
        self._require_privileged(caller, "panic")
        with self.atomic("panic"):
            self._pause()
            self.farm.emergency_exit()
        logger.warning("Strategy %s panicked, farm position exited", self.config.strategy_address)

    def update_route(self, asset: HexAddress, route: Iterable[str], caller: HexAddress) -> Route:
        """Replace the swap route of an underlying asset."""
        self._require_privileged(caller, "update_route")
        with self.atomic("update_route"):
            return self.route_table.update_route(asset, route)

    def update_weight(self, asset: HexAddress, weight: int, caller: HexAddress):
        """Change the rebalancing weight of an underlying asset."""
        self._require_privileged(caller, "update_weight")
        with self.atomic("update_weight"):
            self.weight_table.update_weight(asset, weight)
