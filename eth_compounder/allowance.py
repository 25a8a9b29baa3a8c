"""Token approvals for the farm, router, fee router and pool.

- Approvals are granted to the maximum while the strategy is active
  and revoked to zero while it is paused

- Granting is idempotent: an allowance already at the maximum is increased by zero
"""

import logging

from eth_typing import HexAddress

from eth_compounder.collaborators import Farm, FeeRouter, LiquidityPool, Router, TokenLedger
from eth_compounder.config import MAX_UINT256, StrategyConfig

logger = logging.getLogger(__name__)


class AllowanceManager:
    """Grant and revoke every (asset, spender) pair the strategy needs."""

    def __init__(
        self,
        config: StrategyConfig,
        ledger: TokenLedger,
        farm: Farm,
        router: Router,
        pool: LiquidityPool,
        fee_router: FeeRouter,
    ):
        self.config = config
        self.ledger = ledger
        self.farm = farm
        self.router = router
        self.pool = pool
        self.fee_router = fee_router

    def get_required_allowances(self) -> list[tuple[HexAddress, HexAddress]]:
        """List (asset, spender) pairs, deduplicated, in a stable order."""
        pairs = [
            # Deposit
            (self.config.basket_token, self.farm.address),
            # Reward to base swap
            (self.config.reward_asset, self.router.address),
            # Rebalancing swaps
            (self.config.base_asset, self.router.address),
            # Strategist cut
            (self.config.base_asset, self.fee_router.address),
        ]

        # Pool join
        for asset in self.config.get_underlying_assets():
            pairs.append((asset, self.pool.address))

        result = []
        for asset, spender in pairs:
            pair = (asset.lower(), spender.lower())
            if pair not in result:
                result.append(pair)
        return result

    def grant_all(self):
        for asset, spender in self.get_required_allowances():
            current = self.ledger.allowance(asset, spender)
            self.ledger.increase_allowance(asset, spender, MAX_UINT256 - current)
        logger.info("Allowances granted for strategy %s", self.config.strategy_address)

    def revoke_all(self):
        for asset, spender in self.get_required_allowances():
            current = self.ledger.allowance(asset, spender)
            if current > 0:
                self.ledger.decrease_allowance(asset, spender, current)
        logger.info("Allowances revoked for strategy %s", self.config.strategy_address)

    def get_allowances(self) -> dict[tuple[HexAddress, HexAddress], int]:
        return {(asset, spender): self.ledger.allowance(asset, spender) for asset, spender in self.get_required_allowances()}

    def is_fully_granted(self) -> bool:
        return all(a == MAX_UINT256 for a in self.get_allowances().values())

    def is_fully_revoked(self) -> bool:
        return all(a == 0 for a in self.get_allowances().values())
