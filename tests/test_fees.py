"""Fee split arithmetic and harvest fee payouts."""
import dataclasses

import pytest

from eth_compounder.config import FeeSchedule, UnderlyingAsset
from eth_compounder.errors import ConfigurationError
from eth_compounder.fees import calculate_fee_split, calculate_security_fee
from eth_compounder.simulator import SimulatedWeightedPool, make_address


@pytest.fixture()
def per_mille_fees() -> FeeSchedule:
    """4.5% total fee, 5% of it to the caller, 95% to the treasury, 0.5% of the treasury cut to the strategist."""
    return FeeSchedule(
        total_fee=45,
        call_fee=50,
        treasury_fee=950,
        strategist_fee=5,
        security_fee=1,
        divisor=1000,
    )


def test_fee_split_example(per_mille_fees: FeeSchedule):
    """Split 10 000 units of base asset."""
    split = calculate_fee_split(10_000, per_mille_fees)
    assert split.fee_amount == 450
    assert split.call_amount == 22
    assert split.strategist_amount == 2
    assert split.treasury_amount == 425
    assert split.reinvested_amount == 9_550
    assert split.rounding_dust == 1
    assert split.paid_amount == 449


def test_fee_split_zero_balance():
    split = calculate_fee_split(0, FeeSchedule())
    assert split.fee_amount == 0
    assert split.paid_amount == 0


@pytest.mark.parametrize(
    "fees",
    [
        FeeSchedule(),
        FeeSchedule(total_fee=45, call_fee=50, treasury_fee=950, strategist_fee=5, security_fee=1, divisor=1000),
        FeeSchedule(total_fee=10_000, call_fee=5_000, treasury_fee=5_000, strategist_fee=10_000, security_fee=10_000),
        FeeSchedule(total_fee=0, call_fee=0, treasury_fee=0, strategist_fee=0, security_fee=0),
        FeeSchedule(total_fee=1, call_fee=1, treasury_fee=1, strategist_fee=1, security_fee=1, divisor=3),
    ],
)
def test_fee_split_never_exceeds_source(fees: FeeSchedule):
    """Payouts fit in the fee cut and the fee cut fits in the balance."""
    for balance in (0, 1, 7, 999, 10_000, 123_456_789, 10**27 + 13):
        split = calculate_fee_split(balance, fees)
        assert split.call_amount + split.treasury_amount + split.strategist_amount <= split.fee_amount
        assert split.fee_amount <= balance
        assert min(split.call_amount, split.treasury_amount, split.strategist_amount) >= 0


def test_security_fee():
    fees = FeeSchedule()
    # 0.1%
    assert calculate_security_fee(100_000, fees) == 100
    assert calculate_security_fee(99, fees) == 0


def test_fee_schedule_validation():
    with pytest.raises(ConfigurationError):
        FeeSchedule(total_fee=10_001)

    with pytest.raises(ConfigurationError):
        FeeSchedule(call_fee=2_000, treasury_fee=9_000)

    with pytest.raises(ConfigurationError):
        FeeSchedule(security_fee=-1)


def test_harvest_pays_fees(deposited_strategy, deployment, keeper, treasury, remitter, wftm):
    """Caller, treasury and strategist remitter receive their cut of the harvested base asset."""
    strategy = deposited_strategy
    ledger = deployment.ledger
    deployment.farm.accrue_rewards(500 * 10**18)

    report = strategy.harvest(keeper)

    split = report.fee_split
    assert split.balance == report.base_from_rewards
    assert split.call_amount > 0
    assert ledger.balance_of(wftm, keeper) == split.call_amount
    assert ledger.balance_of(wftm, treasury) == split.treasury_amount
    assert ledger.balance_of(wftm, remitter) == split.strategist_amount
    assert split.strategist_amount > 0
    assert len(deployment.chain.get_calls("fee_router", "route_payment")) == 1


def test_idle_base_not_charged_twice(deployment, config, strategy_address, vault, keeper, wftm, usdc, wbtc, bpt):
    """Base asset left over from an earlier harvest pays no fee on the next harvest.

    WFTM is not in the pool and weights leave 20% of the proceeds unallocated,
    so every harvest leaves some WFTM idle in the strategy.
    """
    pool = SimulatedWeightedPool(deployment.chain, make_address("usdc-wbtc-pool"), strategy_address, pool_token=bpt)
    pool.initialise([(usdc, 90_000 * 10**18), (wbtc, 3 * 10**18)], [5000, 3000], 1_000_000 * 10**18)
    deployment.pool = pool
    deployment.config = dataclasses.replace(
        config,
        underlyings=(
            UnderlyingAsset(usdc, 5000, (wftm, usdc)),
            UnderlyingAsset(wbtc, 3000, (wftm, usdc, wbtc)),
        ),
    )
    strategy = deployment.create_strategy()
    strategy.deposit(vault)
    ledger = deployment.ledger

    deployment.farm.accrue_rewards(500 * 10**18)
    first = strategy.harvest(keeper)
    assert first.fee_split.balance == first.base_from_rewards
    assert first.fee_split.fee_amount > 0
    assert ledger.balance_of(wftm) > 0
    keeper_earned = ledger.balance_of(wftm, keeper)

    second = strategy.harvest(keeper)
    assert second.reward_swapped == 0
    assert second.fee_split.fee_amount == 0
    assert ledger.balance_of(wftm, keeper) == keeper_earned

    # New rewards are charged on their own proceeds only
    deployment.farm.accrue_rewards(100 * 10**18)
    third = strategy.harvest(keeper)
    assert third.fee_split.balance == third.base_from_rewards
    assert ledger.balance_of(wftm, keeper) == keeper_earned + third.fee_split.call_amount
