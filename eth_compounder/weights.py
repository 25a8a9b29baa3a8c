"""Underlying asset weight table.

Weights are integer parts of the fee divisor, e.g. with divisor ``10_000``
a weight of ``2_500`` means 25% of the base asset balance goes to this asset.
"""

import logging

from eth_typing import HexAddress

from eth_compounder.errors import ConfigurationError

logger = logging.getLogger(__name__)


def validate_weights(weights: dict[HexAddress, int], divisor: int) -> None:
    """Check weights are non-negative and do not over-allocate.

    Weights summing below the divisor are accepted,
    the unallocated share stays as the base asset.

    :raise ConfigurationError:
        Negative weight or total weight above the divisor
    """
    for asset, weight in weights.items():
        assert type(weight) == int, f"Weight must be int, got {type(weight)}: {weight}"
        if weight < 0:
            raise ConfigurationError(f"Negative weight {weight} for {asset}")

    total = sum(weights.values())
    if total > divisor:
        raise ConfigurationError(f"Weights sum to {total}, more than the divisor {divisor}")

    if total < divisor:
        logger.warning("Weights sum to %d of %d, %d parts stay as the base asset", total, divisor, divisor - total)


def calculate_swap_amount(balance: int, weight: int, divisor: int) -> int:
    """How much of the base asset balance one asset gets."""
    return balance * weight // divisor


class WeightTable:
    """Underlying asset to target weight mapping."""

    def __init__(self, weights: dict[HexAddress, int], divisor: int):
        assert divisor > 0, f"Bad divisor {divisor}"
        self.divisor = divisor
        self._weights = {asset.lower(): weight for asset, weight in weights.items()}
        validate_weights(self._weights, divisor)

    def __contains__(self, asset: str) -> bool:
        return asset.lower() in self._weights

    def get_assets(self) -> list[HexAddress]:
        return list(self._weights.keys())

    def get_weight(self, asset: HexAddress) -> int:
        try:
            return self._weights[asset.lower()]
        except KeyError as e:
            raise ConfigurationError(f"No weight configured for {asset}") from e

    def get_total_weight(self) -> int:
        return sum(self._weights.values())

    def get_swap_amount(self, asset: HexAddress, balance: int) -> int:
        return calculate_swap_amount(balance, self.get_weight(asset), self.divisor)

    def get_swap_targets(self, balance: int, skip: HexAddress | None = None) -> dict[HexAddress, int]:
        """Split a fixed base asset balance across the assets.

        :param skip:
            Asset left out, usually the base asset itself
        """
        return {asset: calculate_swap_amount(balance, weight, self.divisor) for asset, weight in self._weights.items() if skip is None or asset != skip.lower()}

    def update_weight(self, asset: HexAddress, weight: int) -> None:
        """Change the weight of a known asset.

        :raise ConfigurationError:
            Unknown asset or the new weight set is invalid
        """
        asset = asset.lower()
        if asset not in self._weights:
            raise ConfigurationError(f"Cannot update weight of unknown asset {asset}")

        candidate = dict(self._weights)
        candidate[asset] = weight
        validate_weights(candidate, self.divisor)
        logger.info("Weight for %s updated from %d to %d", asset, self._weights[asset], weight)
        self._weights = candidate
