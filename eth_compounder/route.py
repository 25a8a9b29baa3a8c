"""Swap route table.

- Routes are pre-configured hop lists, we do no path finding

- A route from the base asset to an underlying asset starts with the base asset
  and ends with the underlying asset, like a Uniswap v2 ``path``

- The underlying asset that is the base asset itself has a single element route,
  meaning no swap is needed
"""

import logging
from typing import Iterable

from eth_typing import HexAddress

from eth_compounder.errors import ConfigurationError

logger = logging.getLogger(__name__)

#: Route of hops, lowercased addresses
Route = tuple[HexAddress, ...]


def validate_route(base_asset: HexAddress, asset: HexAddress, route: Iterable[str]) -> Route:
    """Check a route from the base asset to an asset.

    :return:
        Route as a lowercased tuple

    :raise ConfigurationError:
        The route does not start from the base asset or does not end at the asset
    """
    route = tuple(r.lower() for r in route)
    base_asset = base_asset.lower()
    asset = asset.lower()

    if asset == base_asset:
        if route != (base_asset,):
            raise ConfigurationError(f"Base asset {base_asset} must have the no-swap route ({base_asset},), got {route}")
        return route

    if len(route) < 2:
        raise ConfigurationError(f"Route for {asset} needs at least two hops, got {route}")

    if route[0] != base_asset:
        raise ConfigurationError(f"Route for {asset} must start from the base asset {base_asset}, got {route}")

    if route[-1] != asset:
        raise ConfigurationError(f"Route for {asset} must end at the asset, got {route}")

    return route


def validate_reward_route(reward_asset: HexAddress, base_asset: HexAddress, route: Iterable[str]) -> Route:
    """Check the reward asset to base asset route."""
    route = tuple(r.lower() for r in route)
    if len(route) < 2 or route[0] != reward_asset.lower() or route[-1] != base_asset.lower():
        raise ConfigurationError(f"Reward route must go from {reward_asset} to {base_asset}, got {route}")
    return route


class RouteTable:
    """Asset to swap route mapping.

    Mutated only through :py:meth:`update_route`.
    """

    def __init__(self, base_asset: HexAddress, routes: dict[HexAddress, Route]):
        self.base_asset = base_asset.lower()
        self._routes: dict[HexAddress, Route] = {}
        for asset, route in routes.items():
            self._routes[asset.lower()] = validate_route(self.base_asset, asset, route)

    def __contains__(self, asset: str) -> bool:
        return asset.lower() in self._routes

    def __len__(self) -> int:
        return len(self._routes)

    def get_assets(self) -> list[HexAddress]:
        return list(self._routes.keys())

    def get_route(self, asset: HexAddress) -> Route:
        try:
            return self._routes[asset.lower()]
        except KeyError as e:
            raise ConfigurationError(f"No route configured for {asset}") from e

    def needs_swap(self, asset: HexAddress) -> bool:
        return asset.lower() != self.base_asset

    def update_route(self, asset: HexAddress, route: Iterable[str]) -> Route:
        """Replace the route of a known asset.

        :raise ConfigurationError:
            Unknown asset or malformed route
        """
        asset = asset.lower()
        if asset not in self._routes:
            raise ConfigurationError(f"Cannot update route of unknown asset {asset}")

        new_route = validate_route(self.base_asset, asset, route)
        old_route = self._routes[asset]
        self._routes[asset] = new_route
        logger.info("Route for %s updated from %s to %s", asset, old_route, new_route)
        return new_route
