"""Route and weight tables and the two rebalance allocation policies."""
import datetime
import logging

import pytest

from eth_compounder.collaborators import FixedClock, LiquidityPool, Router, TokenLedger
from eth_compounder.config import AllocationPolicy, FeeSchedule, StrategyConfig, UnderlyingAsset
from eth_compounder.errors import ConfigurationError
from eth_compounder.rebalance import WeightedLiquidityRebalancer
from eth_compounder.route import RouteTable, validate_route
from eth_compounder.simulator import make_address
from eth_compounder.weights import WeightTable


BASE = make_address("base")
ASSET_A = make_address("asset-a")
ASSET_B = make_address("asset-b")


class FakeLedger(TokenLedger):
    """Balances in a dict, allowances ignored."""

    def __init__(self, balances: dict):
        self.balances = balances

    def balance_of(self, token, holder=None) -> int:
        return self.balances.get(token, 0)

    def transfer(self, token, to, amount):
        self.balances[token] -= amount

    def allowance(self, token, spender) -> int:
        return 0

    def increase_allowance(self, token, spender, amount):
        pass

    def decrease_allowance(self, token, spender, amount):
        pass


class OneToOneRouter(Router):
    """Swaps at par and records inputs."""

    address = make_address("one-to-one-router")

    def __init__(self, ledger: FakeLedger, dead_assets=()):
        self.ledger = ledger
        self.dead_assets = set(dead_assets)
        self.swaps = []

    def quote_output(self, amount_in, route) -> int:
        return 0 if route[-1] in self.dead_assets else amount_in

    def swap(self, amount_in, min_out, route, deadline) -> int:
        self.swaps.append((route[-1], amount_in))
        self.ledger.balances[route[0]] -= amount_in
        self.ledger.balances[route[-1]] = self.ledger.balances.get(route[-1], 0) + amount_in
        return amount_in


class NullPool(LiquidityPool):
    address = make_address("null-pool")

    def current_composition(self):
        return [(BASE, 1), (ASSET_A, 1), (ASSET_B, 1)]

    def join(self, assets_in, min_bpt_out) -> int:
        return 0


def create_rebalancer(policy: AllocationPolicy, balance: int, dead_assets=()) -> tuple[WeightedLiquidityRebalancer, OneToOneRouter]:
    """Two swapped assets with weights 600 and 400 of divisor 1000."""
    config = StrategyConfig(
        strategy_address=make_address("strategy"),
        base_asset=BASE,
        reward_asset=make_address("reward"),
        basket_token=make_address("basket"),
        farm_pool_id=1,
        liquidity_pool_id="0x" + "00" * 32,
        vault=make_address("vault"),
        treasury=make_address("treasury"),
        strategist_remitter=make_address("remitter"),
        owner=make_address("owner"),
        underlyings=(
            UnderlyingAsset(BASE, 0, (BASE,)),
            UnderlyingAsset(ASSET_A, 600, (BASE, ASSET_A)),
            UnderlyingAsset(ASSET_B, 400, (BASE, ASSET_B)),
        ),
        reward_route=(make_address("reward"), BASE),
        fees=FeeSchedule(total_fee=45, call_fee=50, treasury_fee=950, strategist_fee=5, security_fee=1, divisor=1000),
        allocation_policy=policy,
    )
    ledger = FakeLedger({BASE: balance})
    router = OneToOneRouter(ledger, dead_assets)
    rebalancer = WeightedLiquidityRebalancer(
        config,
        ledger,
        router,
        NullPool(),
        RouteTable(config.base_asset, {u.asset: u.route for u in config.underlyings}),
        WeightTable({u.asset: u.weight for u in config.underlyings}, config.fees.divisor),
        FixedClock(datetime.datetime(2024, 1, 1)),
    )
    return rebalancer, router


def test_snapshot_policy_splits_starting_balance():
    """Every weight applies to the balance read at the start."""
    rebalancer, router = create_rebalancer(AllocationPolicy.snapshot, 1_000)
    result = rebalancer.rebalance()
    assert router.swaps == [(ASSET_A, 600), (ASSET_B, 400)]
    assert result.get_total_swapped() == 1_000
    assert result.starting_balance == 1_000


def test_remaining_policy_splits_what_is_left():
    """Later assets get their weight of the balance left by earlier swaps."""
    rebalancer, router = create_rebalancer(AllocationPolicy.remaining, 1_000)
    result = rebalancer.rebalance()
    assert router.swaps == [(ASSET_A, 600), (ASSET_B, 160)]
    assert result.get_total_swapped() == 760
    assert result.get_total_swapped() <= result.starting_balance


def test_base_asset_never_swapped():
    rebalancer, router = create_rebalancer(AllocationPolicy.snapshot, 1_000)
    result = rebalancer.rebalance()
    assert BASE not in [asset for asset, _ in router.swaps]
    assert BASE not in [s.asset for s in result.swaps]


def test_zero_quote_skips_swap(caplog):
    rebalancer, router = create_rebalancer(AllocationPolicy.snapshot, 1_000, dead_assets=[ASSET_A])
    with caplog.at_level(logging.WARNING):
        result = rebalancer.rebalance()
    assert router.swaps == [(ASSET_B, 400)]
    skipped = [s for s in result.swaps if not s.executed]
    assert len(skipped) == 1
    assert skipped[0].asset == ASSET_A
    assert skipped[0].skip_reason == "zero_quote"
    assert "Zero output quoted" in caplog.text


def test_zero_allocation_skips_swap():
    rebalancer, router = create_rebalancer(AllocationPolicy.snapshot, 1)
    result = rebalancer.rebalance()
    assert router.swaps == []
    assert {s.skip_reason for s in result.swaps} == {"zero_allocation"}


def test_validate_route():
    assert validate_route(BASE, BASE, [BASE.upper().replace("0X", "0x")]) == (BASE,)
    assert validate_route(BASE, ASSET_A, [BASE, ASSET_B, ASSET_A]) == (BASE, ASSET_B, ASSET_A)

    with pytest.raises(ConfigurationError):
        validate_route(BASE, BASE, [BASE, ASSET_A])

    with pytest.raises(ConfigurationError):
        validate_route(BASE, ASSET_A, [ASSET_A])

    with pytest.raises(ConfigurationError):
        validate_route(BASE, ASSET_A, [ASSET_B, ASSET_A])

    with pytest.raises(ConfigurationError):
        validate_route(BASE, ASSET_A, [BASE, ASSET_B])


def test_route_table_update():
    table = RouteTable(BASE, {BASE: (BASE,), ASSET_A: (BASE, ASSET_A)})
    assert len(table) == 2
    assert not table.needs_swap(BASE)
    assert table.needs_swap(ASSET_A)

    table.update_route(ASSET_A, [BASE, ASSET_B, ASSET_A])
    assert table.get_route(ASSET_A) == (BASE, ASSET_B, ASSET_A)

    with pytest.raises(ConfigurationError):
        table.update_route(ASSET_B, [BASE, ASSET_B])

    with pytest.raises(ConfigurationError):
        table.get_route(ASSET_B)


def test_weight_validation(caplog):
    with pytest.raises(ConfigurationError):
        WeightTable({ASSET_A: 600, ASSET_B: 401}, 1000)

    with pytest.raises(ConfigurationError):
        WeightTable({ASSET_A: -1, ASSET_B: 400}, 1000)

    with caplog.at_level(logging.WARNING):
        table = WeightTable({ASSET_A: 600, ASSET_B: 300}, 1000)
    assert "stay as the base asset" in caplog.text
    assert table.get_total_weight() == 900


def test_weight_table_update():
    table = WeightTable({BASE: 0, ASSET_A: 600, ASSET_B: 400}, 1000)
    assert table.get_swap_targets(1_000, skip=BASE) == {ASSET_A.lower(): 600, ASSET_B.lower(): 400}

    # Over-allocating update is rejected and leaves the table intact
    with pytest.raises(ConfigurationError):
        table.update_weight(ASSET_A, 700)
    assert table.get_weight(ASSET_A) == 600

    table.update_weight(ASSET_A, 500)
    assert table.get_swap_amount(ASSET_A, 1_000) == 500

    with pytest.raises(ConfigurationError):
        table.update_weight(make_address("unknown"), 1)
