"""In-memory collaborators.

- Run the strategy without a blockchain: unit tests, dry runs, what-if scripts

- All simulated contracts keep their state in one :py:class:`SimulatedChain`,
  so :py:class:`SimulatedJournal` can snapshot and revert everything at once

- Each mutating contract call is its own transaction: it either completes or
  reverts with :py:class:`SimulatedRevert` leaving no trace, like on an EVM

- Swaps use Uniswap v2 constant product pricing with a 30 bps fee,
  pool joins use a weighted proportional mint

Example:

.. code-block:: python

    chain = SimulatedChain(clock)
    ledger = SimulatedTokenLedger(chain, strategy_address)
    router = SimulatedRouter(chain, make_address("router"), strategy_address, clock)
    router.add_pair(wftm, usdc, 1_000 * 10**18, 300 * 10**6)
"""

import copy
import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from eth_typing import HexAddress
from eth_utils import keccak

from eth_compounder.collaborators import Clock, Farm, FeeRouter, LiquidityPool, Router, StateJournal, TokenLedger
from eth_compounder.config import MAX_UINT256
from eth_compounder.route import Route
from eth_compounder.utils import to_unix_timestamp

logger = logging.getLogger(__name__)


class SimulatedRevert(Exception):
    """A simulated contract call reverted."""


def make_address(label: str) -> HexAddress:
    """Deterministic fake address for a label."""
    return HexAddress("0x" + keccak(text=label)[-20:].hex())


def get_amount_out_from_reserves(
    amount_in: int,
    reserve_in: int,
    reserve_out: int,
    *,
    fee: int = 30,
) -> int:
    """Given an input asset amount, returns the maximum output amount of
    the other asset (accounting for fees) given reserves.

    :param amount_in: Amount of input asset.
    :param reserve_in: Reserve of input asset in the pair contract.
    :param reserve_out: Reserve of output asset in the pair contract.
    :param fee: Trading fee express in bps, default = 30 bps (0.3%)
    :return: Maximum amount of output asset.
    """
    assert amount_in >= 0
    assert reserve_in > 0 and reserve_out > 0
    amount_in_with_fee = amount_in * (10_000 - fee)
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * 10_000 + amount_in_with_fee
    return numerator // denominator


@dataclass
class SimulatedCall:
    """Trace of a simulated contract call."""

    contract: str
    function: str
    args: tuple


class SimulatedChain:
    """Token balances, allowances and contract storage.

    Snapshot semantics follow Anvil ``evm_snapshot`` / ``evm_revert``:
    reverting to a snapshot drops it and every later snapshot.
    """

    def __init__(self, clock: Clock):
        self.clock = clock

        #: (token, holder) -> raw balance
        self.balances: dict[tuple[HexAddress, HexAddress], int] = {}

        #: (token, owner, spender) -> raw allowance
        self.allowances: dict[tuple[HexAddress, HexAddress, HexAddress], int] = {}

        #: Contract address -> contract state dict
        self.storage: dict[HexAddress, dict[str, Any]] = {}

        #: Every contract call attempted, including reverted ones
        self.calls: list[SimulatedCall] = []

        self._snapshots: dict[int, tuple] = {}
        self._next_snapshot_id = 1

    def get_timestamp(self) -> int:
        return int(to_unix_timestamp(self.clock.now()))

    def balance_of(self, token: HexAddress, holder: HexAddress) -> int:
        return self.balances.get((token.lower(), holder.lower()), 0)

    def mint(self, token: HexAddress, to: HexAddress, amount: int):
        assert type(amount) == int and amount >= 0, f"Bad amount {amount}"
        key = (token.lower(), to.lower())
        self.balances[key] = self.balances.get(key, 0) + amount

    def burn(self, token: HexAddress, holder: HexAddress, amount: int):
        self.move(token, holder, "0x0000000000000000000000000000000000000000", amount)

    def move(self, token: HexAddress, sender: HexAddress, to: HexAddress, amount: int):
        """ERC-20 transfer."""
        assert type(amount) == int, f"Bad amount {amount}"
        if amount < 0:
            raise SimulatedRevert(f"Negative transfer {amount}")
        balance = self.balance_of(token, sender)
        if balance < amount:
            raise SimulatedRevert(f"ERC20: transfer amount {amount} exceeds balance {balance} of {sender}, token {token}")
        self.balances[(token.lower(), sender.lower())] = balance - amount
        self.mint(token, to, amount)

    def allowance(self, token: HexAddress, owner: HexAddress, spender: HexAddress) -> int:
        return self.allowances.get((token.lower(), owner.lower(), spender.lower()), 0)

    def set_allowance(self, token: HexAddress, owner: HexAddress, spender: HexAddress, amount: int):
        assert 0 <= amount <= MAX_UINT256, f"Bad allowance {amount}"
        self.allowances[(token.lower(), owner.lower(), spender.lower())] = amount

    def transfer_from(self, token: HexAddress, spender: HexAddress, owner: HexAddress, to: HexAddress, amount: int):
        """ERC-20 transferFrom, infinite allowance is not consumed."""
        allowed = self.allowance(token, owner, spender)
        if allowed < amount:
            raise SimulatedRevert(f"ERC20: insufficient allowance {allowed} for {amount}, token {token}, owner {owner}, spender {spender}")
        if allowed != MAX_UINT256:
            self.set_allowance(token, owner, spender, allowed - amount)
        self.move(token, owner, to, amount)

    def snapshot(self) -> int:
        snapshot_id = self._next_snapshot_id
        self._next_snapshot_id += 1
        self._snapshots[snapshot_id] = copy.deepcopy((self.balances, self.allowances, self.storage))
        return snapshot_id

    def revert(self, snapshot_id: int) -> bool:
        if snapshot_id not in self._snapshots:
            return False
        self.balances, self.allowances, self.storage = self._snapshots[snapshot_id]
        for later in [s for s in self._snapshots if s >= snapshot_id]:
            del self._snapshots[later]
        return True

    def discard(self, snapshot_id: int):
        self._snapshots.pop(snapshot_id, None)

    def get_snapshot_count(self) -> int:
        """Snapshots still held in memory."""
        return len(self._snapshots)

    def get_calls(self, contract: str | None = None, function: str | None = None) -> list[SimulatedCall]:
        return [c for c in self.calls if (contract is None or c.contract == contract) and (function is None or c.function == function)]


def transaction(func: Callable) -> Callable:
    """Run a simulated contract method as a transaction.

    - Record the call
    - Raise if failure was injected for this function
    - Revert all state changes if the method raises
    """

    @functools.wraps(func)
    def wrapper(self: "SimulatedContract", *args, **kwargs):
        chain = self.chain
        chain.calls.append(SimulatedCall(self.label, func.__name__, args))
        if func.__name__ in self.fail_on:
            raise SimulatedRevert(f"{self.label}.{func.__name__}() reverted: injected failure")

        snapshot_id = chain.snapshot()
        try:
            result = func(self, *args, **kwargs)
        except Exception:
            chain.revert(snapshot_id)
            raise
        chain.discard(snapshot_id)
        return result

    return wrapper


@dataclass
class SimulatedContract:
    """Base for simulated contracts bound to the strategy account."""

    chain: SimulatedChain

    #: Contract address
    address: HexAddress

    #: Account the contract acts for, the strategy
    account: HexAddress

    #: Name in the call trace
    label: str = "contract"

    #: Function names that revert when called, for failure injection
    fail_on: set[str] = field(default_factory=set)

    def __post_init__(self):
        self.address = self.address.lower()
        self.account = self.account.lower()

    @property
    def state(self) -> dict[str, Any]:
        return self.chain.storage.setdefault(self.address, {})


class SimulatedJournal(StateJournal):
    """Snapshot and revert the whole simulated chain."""

    def __init__(self, chain: SimulatedChain):
        self.chain = chain

    def snapshot(self) -> int:
        return self.chain.snapshot()

    def revert(self, snapshot_id: int) -> bool:
        return self.chain.revert(snapshot_id)

    def discard(self, snapshot_id: int) -> None:
        self.chain.discard(snapshot_id)


class SimulatedTokenLedger(TokenLedger):
    """ERC-20 operations of the strategy account."""

    def __init__(self, chain: SimulatedChain, account: HexAddress):
        self.chain = chain
        self.account = account.lower()
        self.label = "ledger"
        self.fail_on: set[str] = set()

    def balance_of(self, token: HexAddress, holder: HexAddress | None = None) -> int:
        return self.chain.balance_of(token, holder or self.account)

    @transaction
    def transfer(self, token: HexAddress, to: HexAddress, amount: int) -> None:
        self.chain.move(token, self.account, to, amount)

    def allowance(self, token: HexAddress, spender: HexAddress) -> int:
        return self.chain.allowance(token, self.account, spender)

    @transaction
    def increase_allowance(self, token: HexAddress, spender: HexAddress, amount: int) -> None:
        current = self.allowance(token, spender)
        if current + amount > MAX_UINT256:
            raise SimulatedRevert(f"SafeERC20: allowance overflow for {token}, spender {spender}")
        self.chain.set_allowance(token, self.account, spender, current + amount)

    @transaction
    def decrease_allowance(self, token: HexAddress, spender: HexAddress, amount: int) -> None:
        current = self.allowance(token, spender)
        if amount > current:
            raise SimulatedRevert(f"SafeERC20: decreased allowance below zero for {token}, spender {spender}")
        self.chain.set_allowance(token, self.account, spender, current - amount)


@dataclass
class SimulatedFarm(SimulatedContract, Farm):
    """MasterChef style farm with one staking position.

    Rewards accrue only through :py:meth:`accrue_rewards`.
    """

    basket_token: HexAddress = None

    reward_token: HexAddress = None

    label: str = "farm"

    #: Extra basket tokens returned by every unstake, to simulate inexact withdrawals
    unstake_excess: int = 0

    def __post_init__(self):
        super().__post_init__()
        assert self.basket_token and self.reward_token, "Farm needs basket and reward tokens"
        self.basket_token = self.basket_token.lower()
        self.reward_token = self.reward_token.lower()
        self.state.setdefault("staked", 0)
        self.state.setdefault("pending", 0)

    def accrue_rewards(self, amount: int):
        self.state["pending"] += amount

    @transaction
    def stake(self, amount: int) -> None:
        self.chain.transfer_from(self.basket_token, self.address, self.account, self.address, amount)
        self.state["staked"] += amount

    @transaction
    def unstake(self, amount: int) -> None:
        staked = self.state["staked"]
        if amount > staked:
            raise SimulatedRevert(f"withdraw: not good, asked {amount}, staked {staked}")
        amount += min(self.unstake_excess, staked - amount)
        self.state["staked"] = staked - amount
        self.chain.move(self.basket_token, self.address, self.account, amount)

    @transaction
    def harvest_rewards(self) -> None:
        pending = self.state["pending"]
        self.state["pending"] = 0
        self.chain.mint(self.reward_token, self.account, pending)

    @transaction
    def emergency_exit(self) -> None:
        staked = self.state["staked"]
        self.state["staked"] = 0
        self.state["pending"] = 0
        self.chain.move(self.basket_token, self.address, self.account, staked)

    def position_balance(self) -> int:
        return self.state["staked"]

    def pending_rewards(self) -> int:
        return self.state["pending"]


@dataclass
class SimulatedRouter(SimulatedContract, Router):
    """Uniswap v2 style router over constant product pairs."""

    label: str = "router"

    #: LP fee in bps
    fee: int = 30

    def __post_init__(self):
        super().__post_init__()
        self.state.setdefault("reserves", {})

    def add_pair(self, token_a: HexAddress, token_b: HexAddress, reserve_a: int, reserve_b: int):
        """Create a pair, the router holds the reserves."""
        token_a, token_b = token_a.lower(), token_b.lower()
        self.state["reserves"][(token_a, token_b)] = reserve_a
        self.state["reserves"][(token_b, token_a)] = reserve_b
        self.chain.mint(token_a, self.address, reserve_a)
        self.chain.mint(token_b, self.address, reserve_b)

    def get_reserves(self, token_in: HexAddress, token_out: HexAddress) -> tuple[int, int]:
        reserves = self.state["reserves"]
        key = (token_in.lower(), token_out.lower())
        if key not in reserves:
            raise SimulatedRevert(f"No pair for {token_in} -> {token_out}")
        return reserves[key], reserves[(key[1], key[0])]

    def get_amounts_out(self, amount_in: int, route: Route) -> list[int]:
        assert len(route) >= 2, f"Bad route {route}"
        amounts = [amount_in]
        for token_in, token_out in zip(route, route[1:]):
            reserve_in, reserve_out = self.get_reserves(token_in, token_out)
            amounts.append(get_amount_out_from_reserves(amounts[-1], reserve_in, reserve_out, fee=self.fee))
        return amounts

    def quote_output(self, amount_in: int, route: Route) -> int:
        return self.get_amounts_out(amount_in, route)[-1]

    @transaction
    def swap(self, amount_in: int, min_out: int, route: Route, deadline: int) -> int:
        if deadline < self.chain.get_timestamp():
            raise SimulatedRevert("UniswapV2Router: EXPIRED")

        amounts = self.get_amounts_out(amount_in, route)
        if amounts[-1] < min_out:
            raise SimulatedRevert(f"UniswapV2Router: INSUFFICIENT_OUTPUT_AMOUNT, got {amounts[-1]}, min {min_out}")

        if any(a == 0 for a in amounts):
            raise SimulatedRevert("UniswapV2: INSUFFICIENT_OUTPUT_AMOUNT")

        self.chain.transfer_from(route[0], self.address, self.account, self.address, amount_in)
        reserves = self.state["reserves"]
        for (token_in, token_out), hop_in, hop_out in zip(zip(route, route[1:]), amounts, amounts[1:]):
            reserves[(token_in, token_out)] += hop_in
            reserves[(token_out, token_in)] -= hop_out
        self.chain.move(route[-1], self.address, self.account, amounts[-1])
        return amounts[-1]


@dataclass
class SimulatedWeightedPool(SimulatedContract, LiquidityPool):
    """Balancer style weighted pool.

    Joins mint pool tokens proportionally to the weighted share each asset adds
    to the pool balance, no swap fee.
    """

    #: Pool share token, the basket token
    pool_token: HexAddress = None

    label: str = "pool"

    def __post_init__(self):
        super().__post_init__()
        assert self.pool_token, "Pool needs a pool token"
        self.pool_token = self.pool_token.lower()
        self.state.setdefault("tokens", [])
        self.state.setdefault("weights", [])
        self.state.setdefault("total_supply", 0)

    def initialise(self, balances: list[tuple[HexAddress, int]], weights: list[int], total_supply: int):
        """Seed the pool, tokens in pool order."""
        assert len(balances) == len(weights)
        self.state["tokens"] = [token.lower() for token, _ in balances]
        self.state["weights"] = list(weights)
        self.state["total_supply"] = total_supply
        for token, amount in balances:
            self.chain.mint(token, self.address, amount)
        self.chain.mint(self.pool_token, self.address, total_supply)

    def current_composition(self) -> list[tuple[HexAddress, int]]:
        return [(token, self.chain.balance_of(token, self.address)) for token in self.state["tokens"]]

    @transaction
    def join(self, assets_in: list[tuple[HexAddress, int]], min_bpt_out: int) -> int:
        tokens = self.state["tokens"]
        if [a.lower() for a, _ in assets_in] != tokens:
            raise SimulatedRevert(f"BAL#520 input token mismatch, expected {tokens}")

        weights = self.state["weights"]
        total_weight = sum(weights)
        supply = self.state["total_supply"]
        bpt_out = 0
        for (token, amount), weight in zip(assets_in, weights):
            balance = self.chain.balance_of(token, self.address)
            bpt_out += supply * weight * amount // (balance * total_weight)

        if bpt_out < min_bpt_out:
            raise SimulatedRevert(f"BAL#208 BPT out {bpt_out} below minimum {min_bpt_out}")

        for token, amount in assets_in:
            if amount:
                self.chain.transfer_from(token, self.address, self.account, self.address, amount)

        self.state["total_supply"] = supply + bpt_out
        self.chain.mint(self.pool_token, self.account, bpt_out)
        return bpt_out


@dataclass
class SimulatedFeeRouter(SimulatedContract, FeeRouter):
    """Payment router forwarding to the strategist remitter."""

    remitter: HexAddress = None

    label: str = "fee_router"

    def __post_init__(self):
        super().__post_init__()
        assert self.remitter, "Fee router needs a remitter"
        self.remitter = self.remitter.lower()

    @transaction
    def route_payment(self, asset: HexAddress, amount: int) -> None:
        self.chain.transfer_from(asset, self.address, self.account, self.remitter, amount)
