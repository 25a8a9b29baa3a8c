"""Run a few harvest cycles against the in-memory simulator.

Prints reinvested basket tokens, fee payouts and the APR estimate
from the harvest log.

.. code-block:: shell

    LOG_LEVEL=info python scripts/simulate-harvest.py

"""
import datetime

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
from eth_compounder.utils import setup_console_logging

setup_console_logging(default_log_level="info")

clock = FixedClock(datetime.datetime(2024, 1, 1))
chain = SimulatedChain(clock)

strategy_address = make_address("strategy")
vault = make_address("vault")
keeper = make_address("keeper")
wftm = make_address("wftm")
usdc = make_address("usdc")
beets = make_address("beets")
bpt = make_address("bpt")

ledger = SimulatedTokenLedger(chain, strategy_address)
farm = SimulatedFarm(chain, make_address("farm"), strategy_address, basket_token=bpt, reward_token=beets)
router = SimulatedRouter(chain, make_address("router"), strategy_address)
router.add_pair(beets, wftm, 2_000_000 * 10**18, 1_000_000 * 10**18)
router.add_pair(wftm, usdc, 1_000_000 * 10**18, 300_000 * 10**18)
pool = SimulatedWeightedPool(chain, make_address("pool"), strategy_address, pool_token=bpt)
pool.initialise([(wftm, 800_000 * 10**18), (usdc, 240_000 * 10**18)], [6000, 4000], 1_000_000 * 10**18)
fee_router = SimulatedFeeRouter(chain, make_address("fee_router"), strategy_address, remitter=make_address("remitter"))

config = StrategyConfig(
    strategy_address=strategy_address,
    base_asset=wftm,
    reward_asset=beets,
    basket_token=bpt,
    farm_pool_id=17,
    liquidity_pool_id="0x" + "cd" * 32,
    vault=vault,
    treasury=make_address("treasury"),
    strategist_remitter=make_address("remitter"),
    owner=make_address("owner"),
    underlyings=(
        UnderlyingAsset(wftm, 6000, (wftm,)),
        UnderlyingAsset(usdc, 4000, (wftm, usdc)),
    ),
    reward_route=(beets, wftm),
)

strategy = CompoundingStrategy(config, ledger, farm, router, pool, fee_router, SimulatedJournal(chain), clock=clock)

# Vault sends basket tokens to the strategy and tells it to deposit
chain.mint(bpt, strategy_address, 10_000 * 10**18)
strategy.deposit(vault)

for day in range(14):
    clock.advance(datetime.timedelta(days=1))
    farm.accrue_rewards(500 * 10**18)
    estimate = strategy.estimate_harvest()
    report = strategy.harvest(keeper)
    print(
        f"Day {day + 1}: estimated profit {estimate.profit / 10**18:,.4f} WFTM, "
        f"minted {report.basket_minted / 10**18:,.4f} BPT, "
        f"keeper got {report.fee_split.call_amount / 10**18:,.4f} WFTM"
    )

print(f"Strategy balance {strategy.balance_of() / 10**18:,.4f} BPT")
print(f"Keeper earned {ledger.balance_of(wftm, keeper) / 10**18:,.4f} WFTM")
apr = strategy.harvest_log.calculate_average_apr()
print(f"Estimated APR {apr * 100:.2f}%")
