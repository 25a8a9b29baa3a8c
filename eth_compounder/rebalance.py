"""Convert the base asset into the weighted basket and join the pool.

- Each underlying asset other than the base asset gets its weight of the base asset balance,
  swapped through its route

- Which base asset balance the weight applies to is set by :py:class:`eth_compounder.config.AllocationPolicy`

- A zero quote means the swap is skipped, the asset joins the pool with whatever balance it already has

- The base asset underlying is never swapped, its share simply stays as the base asset
"""

import logging
from dataclasses import dataclass, field

from eth_typing import HexAddress

from eth_compounder.collaborators import Clock, LiquidityPool, Router, TokenLedger
from eth_compounder.config import AllocationPolicy, SlippageConfig, StrategyConfig
from eth_compounder.route import RouteTable
from eth_compounder.weights import WeightTable

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class AssetSwap:
    """One rebalancing decision."""

    asset: HexAddress

    #: Base asset allocated to this asset
    amount_in: int

    #: Router quote, 0 if not quoted
    quoted_out: int

    #: Received amount, 0 if skipped
    amount_out: int

    #: Why the swap was not executed, ``None`` if it was
    skip_reason: str | None = None

    @property
    def executed(self) -> bool:
        return self.skip_reason is None


@dataclass(slots=True)
class RebalanceResult:
    """Outcome of one rebalance pass."""

    #: Base asset balance when the pass started
    starting_balance: int

    policy: AllocationPolicy

    swaps: list[AssetSwap] = field(default_factory=list)

    def get_executed_swaps(self) -> list[AssetSwap]:
        return [s for s in self.swaps if s.executed]

    def get_total_swapped(self) -> int:
        """Base asset spent on swaps."""
        return sum(s.amount_in for s in self.get_executed_swaps())


class WeightedLiquidityRebalancer:
    """Turn base asset holdings into pool join inputs."""

    def __init__(
        self,
        config: StrategyConfig,
        ledger: TokenLedger,
        router: Router,
        pool: LiquidityPool,
        route_table: RouteTable,
        weight_table: WeightTable,
        clock: Clock,
    ):
        self.config = config
        self.ledger = ledger
        self.router = router
        self.pool = pool
        self.route_table = route_table
        self.weight_table = weight_table
        self.clock = clock

    def rebalance(self) -> RebalanceResult:
        """Swap the base asset to the underlying assets by weight."""
        base = self.config.base_asset
        policy = self.config.allocation_policy
        starting_balance = self.ledger.balance_of(base)
        result = RebalanceResult(starting_balance=starting_balance, policy=policy)

        for asset in self.config.get_underlying_assets():
            if not self.route_table.needs_swap(asset):
                continue

            if policy == AllocationPolicy.snapshot:
                basis = starting_balance
            else:
                basis = self.ledger.balance_of(base)

            amount_in = self.weight_table.get_swap_amount(asset, basis)
            if amount_in == 0:
                logger.debug("Nothing allocated to %s from base balance %d", asset, basis)
                result.swaps.append(AssetSwap(asset, 0, 0, 0, skip_reason="zero_allocation"))
                continue

            route = self.route_table.get_route(asset)
            quoted_out = self.router.quote_output(amount_in, route)
            if quoted_out == 0:
                logger.warning("Zero output quoted for %d base to %s over %s, skipping the swap", amount_in, asset, route)
                result.swaps.append(AssetSwap(asset, amount_in, 0, 0, skip_reason="zero_quote"))
                continue

            min_out = SlippageConfig.get_min_out(quoted_out, self.config.slippage.rebalance_max_slippage_bps)
            deadline = self.clock.get_deadline(self.config.swap_deadline_padding)
            amount_out = self.router.swap(amount_in, min_out, route, deadline)
            logger.debug("Swapped %d base to %d %s, quoted %d, min out %d", amount_in, amount_out, asset, quoted_out, min_out)
            result.swaps.append(AssetSwap(asset, amount_in, quoted_out, amount_out))

        return result

    def join_pool(self) -> int:
        """Supply the whole balance of every underlying asset to the pool.

        Assets are passed in the pool order.

        :return:
            Basket tokens minted, 0 if there was nothing to supply
        """
        composition = self.pool.current_composition()
        assets_in = [(asset, self.ledger.balance_of(asset)) for asset, _ in composition]
        if not any(amount for _, amount in assets_in):
            logger.info("No underlying assets to supply, pool join skipped")
            return 0

        minted = self.pool.join(assets_in, self.config.slippage.min_basket_out)
        logger.info("Joined pool with %s, minted %d basket tokens", assets_in, minted)
        return minted
