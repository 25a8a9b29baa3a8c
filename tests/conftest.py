"""Simulated strategy deployment shared by the tests.

Basket of three underlying assets:

- WFTM, the base asset, 50%
- USDC, 30%, swapped directly
- WBTC, 20%, swapped through USDC
"""
import datetime
from dataclasses import dataclass

import pytest
from eth_typing import HexAddress

from eth_compounder.collaborators import FixedClock
from eth_compounder.config import StrategyConfig, UnderlyingAsset
from eth_compounder.simulator import (
    SimulatedChain,
    SimulatedFarm,
    SimulatedFeeRouter,
    SimulatedJournal,
    SimulatedRouter,
    SimulatedTokenLedger,
    SimulatedWeightedPool,
    make_address,
)
from eth_compounder.strategy import CompoundingStrategy

#: Basket tokens the vault has handed to the strategy at the start of each test
INITIAL_BASKET = 1_000 * 10**18


@dataclass
class Deployment:
    """Everything a test may want to poke."""

    clock: FixedClock
    chain: SimulatedChain
    ledger: SimulatedTokenLedger
    farm: SimulatedFarm
    router: SimulatedRouter
    pool: SimulatedWeightedPool
    fee_router: SimulatedFeeRouter
    journal: SimulatedJournal
    config: StrategyConfig

    def create_strategy(self) -> CompoundingStrategy:
        return CompoundingStrategy(
            self.config,
            self.ledger,
            self.farm,
            self.router,
            self.pool,
            self.fee_router,
            self.journal,
            clock=self.clock,
        )


@pytest.fixture()
def wftm() -> HexAddress:
    return make_address("wftm")


@pytest.fixture()
def usdc() -> HexAddress:
    return make_address("usdc")


@pytest.fixture()
def wbtc() -> HexAddress:
    return make_address("wbtc")


@pytest.fixture()
def beets() -> HexAddress:
    return make_address("beets")


@pytest.fixture()
def bpt() -> HexAddress:
    return make_address("bpt")


@pytest.fixture()
def strategy_address() -> HexAddress:
    return make_address("strategy")


@pytest.fixture()
def vault() -> HexAddress:
    return make_address("vault")


@pytest.fixture()
def owner() -> HexAddress:
    return make_address("owner")


@pytest.fixture()
def strategist() -> HexAddress:
    return make_address("strategist")


@pytest.fixture()
def treasury() -> HexAddress:
    return make_address("treasury")


@pytest.fixture()
def remitter() -> HexAddress:
    return make_address("remitter")


@pytest.fixture()
def keeper() -> HexAddress:
    """Anyone can harvest."""
    return make_address("keeper")


@pytest.fixture()
def config(strategy_address, wftm, usdc, wbtc, beets, bpt, vault, owner, strategist, treasury, remitter) -> StrategyConfig:
    return StrategyConfig(
        strategy_address=strategy_address,
        base_asset=wftm,
        reward_asset=beets,
        basket_token=bpt,
        farm_pool_id=17,
        liquidity_pool_id="0x" + "ab" * 32,
        vault=vault,
        treasury=treasury,
        strategist_remitter=remitter,
        owner=owner,
        strategists=frozenset([strategist]),
        underlyings=(
            UnderlyingAsset(wftm, 5000, (wftm,)),
            UnderlyingAsset(usdc, 3000, (wftm, usdc)),
            UnderlyingAsset(wbtc, 2000, (wftm, usdc, wbtc)),
        ),
        reward_route=(beets, wftm),
    )


@pytest.fixture()
def deployment(config, strategy_address, wftm, usdc, wbtc, beets, bpt, remitter) -> Deployment:
    """Farm, router, pool and fee router on one simulated chain."""
    clock = FixedClock(datetime.datetime(2024, 1, 1))
    chain = SimulatedChain(clock)

    router = SimulatedRouter(chain, make_address("router"), strategy_address)
    router.add_pair(beets, wftm, 2_000_000 * 10**18, 1_000_000 * 10**18)
    router.add_pair(wftm, usdc, 1_000_000 * 10**18, 300_000 * 10**18)
    router.add_pair(usdc, wbtc, 300_000 * 10**18, 10 * 10**18)

    pool = SimulatedWeightedPool(chain, make_address("pool"), strategy_address, pool_token=bpt)
    pool.initialise(
        [(wftm, 500_000 * 10**18), (usdc, 90_000 * 10**18), (wbtc, 3 * 10**18)],
        [5000, 3000, 2000],
        1_000_000 * 10**18,
    )

    chain.mint(bpt, strategy_address, INITIAL_BASKET)

    return Deployment(
        clock=clock,
        chain=chain,
        ledger=SimulatedTokenLedger(chain, strategy_address),
        farm=SimulatedFarm(chain, make_address("farm"), strategy_address, basket_token=bpt, reward_token=beets),
        router=router,
        pool=pool,
        fee_router=SimulatedFeeRouter(chain, make_address("fee_router"), strategy_address, remitter=remitter),
        journal=SimulatedJournal(chain),
        config=config,
    )


@pytest.fixture()
def strategy(deployment) -> CompoundingStrategy:
    """Freshly constructed strategy, basket tokens still idle."""
    return deployment.create_strategy()


@pytest.fixture()
def deposited_strategy(strategy, vault) -> CompoundingStrategy:
    """Strategy with the whole initial basket staked."""
    strategy.deposit(vault)
    return strategy
