"""Pause, unpause, panic and retirement."""
import pytest

from eth_compounder.config import MAX_UINT256
from eth_compounder.errors import ExternalCallFailure, StrategyNotPaused, StrategyPaused, Unauthorized
from eth_compounder.strategy import CompoundingStrategy

from conftest import INITIAL_BASKET


def test_allowances_granted_on_construction(strategy: CompoundingStrategy, deployment, bpt, beets, wftm, usdc, wbtc):
    allowances = strategy.allowances.get_allowances()
    pool = deployment.pool.address
    router = deployment.router.address
    assert set(allowances.keys()) == {
        (bpt, deployment.farm.address),
        (beets, router),
        (wftm, router),
        (wftm, deployment.fee_router.address),
        (wftm, pool),
        (usdc, pool),
        (wbtc, pool),
    }
    assert all(a == MAX_UINT256 for a in allowances.values())


def test_pause_revokes_unpause_grants(deposited_strategy: CompoundingStrategy, deployment, owner, strategist, vault):
    strategy = deposited_strategy

    strategy.pause(owner)
    assert strategy.is_paused()
    assert strategy.allowances.is_fully_revoked()

    with pytest.raises(StrategyPaused):
        strategy.deposit(vault)

    strategy.unpause(strategist)
    assert not strategy.is_paused()
    assert strategy.allowances.is_fully_granted()


def test_grant_is_idempotent(strategy: CompoundingStrategy):
    strategy.allowances.grant_all()
    assert strategy.allowances.is_fully_granted()


def test_wrong_state_transitions(strategy: CompoundingStrategy, owner):
    with pytest.raises(StrategyNotPaused):
        strategy.unpause(owner)

    strategy.pause(owner)
    with pytest.raises(StrategyPaused):
        strategy.pause(owner)

    with pytest.raises(StrategyPaused):
        strategy.panic(owner)

    # Failed calls leave the state alone
    assert strategy.is_paused()
    assert strategy.allowances.is_fully_revoked()


def test_privileged_only(strategy: CompoundingStrategy, keeper, vault, wftm, usdc):
    for caller in (keeper, vault):
        with pytest.raises(Unauthorized):
            strategy.pause(caller)
        with pytest.raises(Unauthorized):
            strategy.panic(caller)
        with pytest.raises(Unauthorized):
            strategy.update_route(usdc, [wftm, usdc], caller)
        with pytest.raises(Unauthorized):
            strategy.update_weight(usdc, 1000, caller)

    assert not strategy.is_paused()


def test_withdraw_while_paused(deposited_strategy: CompoundingStrategy, deployment, owner, vault, bpt):
    strategy = deposited_strategy
    strategy.pause(owner)
    result = strategy.withdraw(50 * 10**18, vault)
    assert deployment.ledger.balance_of(bpt, vault) == result.transferred


def test_unpause_stakes_idle(deposited_strategy: CompoundingStrategy, deployment, owner):
    strategy = deposited_strategy
    strategy.panic(owner)
    assert deployment.farm.position_balance() == 0

    strategy.unpause(owner)
    assert deployment.farm.position_balance() == INITIAL_BASKET
    assert strategy.position.get_idle_balance() == 0


def test_panic(deposited_strategy: CompoundingStrategy, deployment, strategist, beets):
    """Panic pulls everything out of the farm and forfeits pending rewards."""
    strategy = deposited_strategy
    deployment.farm.accrue_rewards(100 * 10**18)

    strategy.panic(strategist)

    assert strategy.is_paused()
    assert strategy.allowances.is_fully_revoked()
    assert deployment.farm.position_balance() == 0
    assert deployment.farm.pending_rewards() == 0
    assert deployment.ledger.balance_of(beets) == 0
    assert strategy.position.get_idle_balance() == INITIAL_BASKET
    assert strategy.balance_of() == INITIAL_BASKET


def test_panic_rolls_back(deposited_strategy: CompoundingStrategy, deployment, owner):
    """Failing emergency exit keeps the strategy active with allowances intact."""
    strategy = deposited_strategy
    deployment.farm.fail_on.add("emergency_exit")

    with pytest.raises(ExternalCallFailure):
        strategy.panic(owner)

    assert not strategy.is_paused()
    assert strategy.allowances.is_fully_granted()
    assert deployment.farm.position_balance() == INITIAL_BASKET


def test_retire_active(deposited_strategy: CompoundingStrategy, deployment, vault, bpt, beets, wftm, treasury):
    """Retirement compounds pending rewards without fees and hands everything to the vault."""
    strategy = deposited_strategy
    ledger = deployment.ledger
    deployment.farm.accrue_rewards(100 * 10**18)

    amount = strategy.retire_strat(vault)

    assert amount > INITIAL_BASKET
    assert ledger.balance_of(bpt, vault) == amount
    assert ledger.balance_of(bpt) == 0
    assert ledger.balance_of(beets) == 0
    assert deployment.farm.position_balance() == 0
    assert ledger.balance_of(wftm, treasury) == 0
    assert strategy.balance_of() == 0


def test_retire_paused(deposited_strategy: CompoundingStrategy, deployment, owner, vault, bpt, beets):
    strategy = deposited_strategy
    strategy.panic(owner)

    amount = strategy.retire_strat(vault)

    assert amount == INITIAL_BASKET
    assert deployment.ledger.balance_of(bpt, vault) == INITIAL_BASKET
    assert deployment.ledger.balance_of(beets) == 0
    assert deployment.farm.position_balance() == 0
    assert deployment.chain.get_calls("router", "swap") == []


def test_update_weight_by_strategist(strategy: CompoundingStrategy, strategist, usdc):
    strategy.update_weight(usdc, 2500, strategist)
    assert strategy.weight_table.get_weight(usdc) == 2500
