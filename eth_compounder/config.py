"""Strategy configuration.

- Deployment addresses, fee schedule and basket composition are injected
  as a :py:class:`StrategyConfig` instead of being compiled in

- The same engine can target any deployment or the in-memory simulator

Example:

.. code-block:: python

    config = StrategyConfig.from_dict(json.load(open("deployment.json")))
"""

import datetime
import enum
import logging
from dataclasses import dataclass, field
from typing import Any

from eth_typing import HexAddress

from eth_compounder.errors import ConfigurationError
from eth_compounder.route import Route, validate_reward_route, validate_route
from eth_compounder.weights import validate_weights

logger = logging.getLogger(__name__)

#: Percent divisor shared by the fee schedule and the basket weights
DEFAULT_FEE_DIVISOR = 10_000

#: Maximum ERC-20 allowance
MAX_UINT256 = 2**256 - 1

#: How far in the future swap deadlines are set
DEFAULT_SWAP_DEADLINE_PADDING = datetime.timedelta(minutes=10)

#: How often a harvest is recorded in the harvest log
DEFAULT_HARVEST_LOG_CADENCE = datetime.timedelta(hours=12)


def normalise_address(address: str) -> HexAddress:
    """Force address to lowercase."""
    assert isinstance(address, str), f"Expected str address, got {type(address)}: {address}"
    assert address.startswith("0x"), f"Not a 0x address: {address}"
    return HexAddress(address.lower())


class AllocationPolicy(enum.Enum):
    """What base asset balance the rebalancing weights apply to."""

    #: Read the base asset balance once at the start of the rebalance pass
    #: and apply every weight to that figure.
    snapshot = "snapshot"

    #: Re-read the base asset balance before every swap,
    #: so later assets get their weight of what is left.
    remaining = "remaining"


@dataclass(frozen=True, slots=True)
class FeeSchedule:
    """Harvest and withdrawal fees as parts of :py:attr:`divisor`.

    ``strategist_fee`` is a share of the treasury cut, not of the total fee.
    """

    #: Share of harvested base asset taken as fees
    total_fee: int = 450

    #: Share of the total fee paid to the harvest caller
    call_fee: int = 1000

    #: Share of the total fee paid to the treasury
    treasury_fee: int = 9000

    #: Share of the treasury cut redirected to the strategist remitter
    strategist_fee: int = 2500

    #: Share of a withdrawal kept by the strategy
    security_fee: int = 10

    divisor: int = DEFAULT_FEE_DIVISOR

    def __post_init__(self):
        assert type(self.divisor) == int and self.divisor > 0, f"Bad divisor {self.divisor}"
        for name in ("total_fee", "call_fee", "treasury_fee", "strategist_fee", "security_fee"):
            value = getattr(self, name)
            assert type(value) == int, f"{name} must be int, got {type(value)}"
            if not 0 <= value <= self.divisor:
                raise ConfigurationError(f"{name} {value} outside 0...{self.divisor}")

        if self.call_fee + self.treasury_fee > self.divisor:
            raise ConfigurationError(f"call_fee {self.call_fee} and treasury_fee {self.treasury_fee} exceed divisor {self.divisor}")


@dataclass(frozen=True, slots=True)
class SlippageConfig:
    """Minimum output protection.

    The defaults accept any output for reward and rebalancing swaps
    and a nominal floor of 1 unit for the pool join.
    """

    #: Max slippage for reward to base asset swap, in bps. ``None`` means no minimum output.
    reward_swap_max_slippage_bps: int | None = None

    #: Max slippage for base asset to underlying swaps, in bps. ``None`` means no minimum output.
    rebalance_max_slippage_bps: int | None = None

    #: Minimum basket tokens minted by a pool join
    min_basket_out: int = 1

    def __post_init__(self):
        for bps in (self.reward_swap_max_slippage_bps, self.rebalance_max_slippage_bps):
            assert bps is None or bps >= 0, f"Bad slippage {bps}"
        assert self.min_basket_out >= 0

    @staticmethod
    def get_min_out(quoted_amount: int, max_slippage_bps: int | None) -> int:
        """Minimum acceptable swap output for a quote."""
        if max_slippage_bps is None:
            return 0
        return int(quoted_amount * 10_000 // (10_000 + max_slippage_bps))


@dataclass(frozen=True, slots=True)
class UnderlyingAsset:
    """One member of the basket."""

    #: Token address
    asset: HexAddress

    #: Target weight as parts of the fee divisor
    weight: int

    #: Swap route from the base asset.
    #:
    #: ``(base_asset,)`` for the base asset itself.
    route: Route


@dataclass(frozen=True, slots=True)
class StrategyConfig:
    """Immutable identifiers and parameters of one strategy deployment."""

    #: Account holding the strategy tokens
    strategy_address: HexAddress

    #: Token all swaps route through, e.g. wrapped native token
    base_asset: HexAddress

    #: Token emitted by the farm
    reward_asset: HexAddress

    #: Liquidity pool share token staked in the farm
    basket_token: HexAddress

    #: Farm pool id of the basket token
    farm_pool_id: int

    #: Liquidity pool id, e.g. Balancer ``bytes32`` pool id as hex
    liquidity_pool_id: str

    #: Vault owning this strategy
    vault: HexAddress

    #: Receives the treasury cut
    treasury: HexAddress

    #: Receives the strategist cut through the fee router
    strategist_remitter: HexAddress

    #: Can pause, unpause, panic and update routes and weights
    owner: HexAddress

    #: Basket members
    underlyings: tuple[UnderlyingAsset, ...]

    #: Reward asset to base asset route
    reward_route: Route

    #: Can pause, unpause, panic and update routes and weights
    strategists: frozenset[HexAddress] = field(default_factory=frozenset)

    fees: FeeSchedule = field(default_factory=FeeSchedule)

    slippage: SlippageConfig = field(default_factory=SlippageConfig)

    allocation_policy: AllocationPolicy = AllocationPolicy.snapshot

    swap_deadline_padding: datetime.timedelta = DEFAULT_SWAP_DEADLINE_PADDING

    harvest_log_cadence: datetime.timedelta = DEFAULT_HARVEST_LOG_CADENCE

    def __post_init__(self):
        for name in ("strategy_address", "base_asset", "reward_asset", "basket_token", "vault", "treasury", "strategist_remitter", "owner"):
            object.__setattr__(self, name, normalise_address(getattr(self, name)))

        object.__setattr__(self, "strategists", frozenset(normalise_address(s) for s in self.strategists))

        assert isinstance(self.fees, FeeSchedule), f"Got {type(self.fees)}"
        assert isinstance(self.allocation_policy, AllocationPolicy), f"Got {type(self.allocation_policy)}"

        if not self.underlyings:
            raise ConfigurationError("No underlying assets configured")

        underlyings = []
        for u in self.underlyings:
            asset = normalise_address(u.asset)
            route = validate_route(self.base_asset, asset, u.route)
            underlyings.append(UnderlyingAsset(asset=asset, weight=u.weight, route=route))

        assets = [u.asset for u in underlyings]
        if len(set(assets)) != len(assets):
            raise ConfigurationError(f"Duplicate underlying assets: {assets}")

        validate_weights({u.asset: u.weight for u in underlyings}, self.fees.divisor)

        object.__setattr__(self, "underlyings", tuple(underlyings))
        object.__setattr__(self, "reward_route", validate_reward_route(self.reward_asset, self.base_asset, self.reward_route))

    @property
    def privileged(self) -> frozenset[HexAddress]:
        """Addresses allowed to pause and reconfigure."""
        return self.strategists | {self.owner}

    def get_underlying_assets(self) -> list[HexAddress]:
        return [u.asset for u in self.underlyings]

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "StrategyConfig":
        """Read a deployment description.

        Durations are given in seconds, fees as a nested dict of :py:class:`FeeSchedule` fields.

        :raise ConfigurationError:
            Missing keys or inconsistent values
        """
        try:
            underlyings = tuple(
                UnderlyingAsset(
                    asset=u["asset"],
                    weight=int(u["weight"]),
                    route=tuple(u["route"]),
                )
                for u in data["underlyings"]
            )

            return StrategyConfig(
                strategy_address=data["strategy_address"],
                base_asset=data["base_asset"],
                reward_asset=data["reward_asset"],
                basket_token=data["basket_token"],
                farm_pool_id=int(data["farm_pool_id"]),
                liquidity_pool_id=data["liquidity_pool_id"],
                vault=data["vault"],
                treasury=data["treasury"],
                strategist_remitter=data["strategist_remitter"],
                owner=data["owner"],
                strategists=frozenset(data.get("strategists", [])),
                underlyings=underlyings,
                reward_route=tuple(data["reward_route"]),
                fees=FeeSchedule(**data.get("fees", {})),
                slippage=SlippageConfig(**data.get("slippage", {})),
                allocation_policy=AllocationPolicy(data.get("allocation_policy", AllocationPolicy.snapshot.value)),
                swap_deadline_padding=datetime.timedelta(seconds=data.get("swap_deadline_padding", DEFAULT_SWAP_DEADLINE_PADDING.total_seconds())),
                harvest_log_cadence=datetime.timedelta(seconds=data.get("harvest_log_cadence", DEFAULT_HARVEST_LOG_CADENCE.total_seconds())),
            )
        except KeyError as e:
            raise ConfigurationError(f"Strategy config is missing key {e}") from e
